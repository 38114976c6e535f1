"""Access token construction from provider user records."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from .exceptions import CredentialError
from .types import AccessToken, OidcUser, UserProfile


# Claims without which a profile cannot identify its owner
REQUIRED_CLAIMS = ("sub", "email")


def create_user_profile(claims: dict[str, Any]) -> UserProfile:
    """Map identity claims onto a ``UserProfile``.

    Raises
    ------
    CredentialError
        If ``sub`` or ``email`` is absent or empty.
    """
    missing = [name for name in REQUIRED_CLAIMS if not claims.get(name)]
    if missing:
        msg = f"User profile is missing mandatory claims: {', '.join(missing)}"
        raise CredentialError(msg, missing=missing)

    return UserProfile(
        user_id=claims["sub"],
        email=claims["email"],
        first_name=claims.get("given_name"),
        last_name=claims.get("family_name"),
        organization=claims.get("org_name"),
        organization_id=claims.get("org"),
        ultimate_site=claims.get("ultimate_site"),
        usage_country_iso=claims.get("usage_country_iso"),
    )


def create_access_token(user: OidcUser) -> AccessToken:
    """Build the application's access token from a raw user record.

    The validity window ends at ``user.expires_at`` and starts
    ``user.expires_in`` seconds earlier.

    Parameters
    ----------
    user : OidcUser
        The record held by the protocol engine.

    Returns
    -------
    AccessToken
        The immutable credential.

    Raises
    ------
    CredentialError
        If the token string, expiry fields or mandatory claims are
        absent, or ``expires_in`` is negative, or the expiry
        timestamps are out of range (e.g. given in milliseconds).
    """
    missing = [
        name
        for name, value in (
            ("access_token", user.access_token),
            ("expires_at", user.expires_at),
            ("expires_in", user.expires_in),
        )
        if value is None or value == ""
    ]
    if missing:
        msg = f"User record is missing fields: {', '.join(missing)}"
        raise CredentialError(msg, missing=missing)

    if user.expires_in < 0:  # type: ignore[operator]
        msg = f"expires_in must not be negative, got {user.expires_in}"
        raise CredentialError(msg, expires_in=user.expires_in)

    profile = create_user_profile(user.profile)
    try:
        expires_at = datetime.fromtimestamp(user.expires_at, tz=timezone.utc)  # type: ignore[arg-type]
        starts_at = datetime.fromtimestamp(
            user.expires_at - user.expires_in,  # type: ignore[operator]
            tz=timezone.utc,
        )
    except (ValueError, OverflowError, OSError, TypeError) as exc:
        msg = f"Token validity window cannot be represented: {exc}"
        raise CredentialError(
            msg, expires_at=user.expires_at, expires_in=user.expires_in
        ) from exc

    return AccessToken(
        token=user.access_token,
        starts_at=starts_at,
        expires_at=expires_at,
        user_profile=profile,
    )
