"""Type definitions for oidc_session.

Shared types used by the credential factory, the protocol engine
contract and the session manager.
"""

from __future__ import annotations

import time

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class EngineEvent(str, Enum):
    """Lifecycle events raised by the protocol engine."""

    USER_LOADED = "user-loaded"
    SILENT_RENEW_ERROR = "silent-renew-error"
    ACCESS_TOKEN_EXPIRED = "access-token-expired"
    USER_UNLOADED = "user-unloaded"
    USER_SIGNED_OUT = "user-signed-out"


class StateChangeReason(str, Enum):
    """Why the session manager applied a transition."""

    LOADED = "loaded"
    EXPIRED = "expired"
    UNLOADED = "unloaded"
    SIGNED_OUT = "signed out"
    ERROR = "error"


@dataclass
class OidcUser:
    """Raw user record as held by the protocol engine.

    Attributes
    ----------
    access_token : str
        The bearer access token issued by the provider.
    expires_at : float or None
        Unix timestamp at which the access token expires.
    expires_in : int or None
        Validity duration of the access token in seconds, as
        reported by the provider.
    profile : dict[str, Any]
        Identity claims (``sub``, ``email``, ``given_name``, ...).
    token_type : str
        Token type, typically "Bearer".
    id_token : str or None
        The OIDC identity token (JWT).
    scope : str
        Space-separated list of granted scopes.
    session_state : str or None
        Provider session state used for session monitoring.
    """

    access_token: str
    expires_at: float | None = None
    expires_in: int | None = None
    profile: dict[str, Any] = field(default_factory=dict)
    token_type: str = "Bearer"  # noqa: S105
    id_token: str | None = None
    scope: str = ""
    session_state: str | None = None

    @property
    def expired(self) -> bool:
        """Check if the access token has expired."""
        if self.expires_at is None:
            return False
        return self.expires_at <= time.time()

    @property
    def scopes(self) -> list[str]:
        """Granted scopes as a list."""
        return self.scope.split()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OidcUser:
        """Build a user record from a provider response mapping.

        Parameters
        ----------
        data : dict[str, Any]
            Mapping using the provider's field names.

        Returns
        -------
        OidcUser
            The user record. Unknown keys are ignored.
        """
        return cls(
            access_token=data.get("access_token", ""),
            expires_at=data.get("expires_at"),
            expires_in=data.get("expires_in"),
            profile=dict(data.get("profile") or {}),
            token_type=data.get("token_type", "Bearer"),
            id_token=data.get("id_token"),
            scope=data.get("scope", ""),
            session_state=data.get("session_state"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain mapping."""
        return asdict(self)


@dataclass(frozen=True)
class UserProfile:
    """Identity claims of the signed-in user.

    Attributes
    ----------
    user_id : str
        Subject identifier (``sub``).
    email : str
        Email address.
    first_name : str or None
        Given name.
    last_name : str or None
        Family name.
    organization : str or None
        Organization name.
    organization_id : str or None
        Organization identifier.
    ultimate_site : str or None
        Site identifier.
    usage_country_iso : str or None
        ISO country code.
    """

    user_id: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    organization: str | None = None
    organization_id: str | None = None
    ultimate_site: str | None = None
    usage_country_iso: str | None = None


@dataclass(frozen=True)
class AccessToken:
    """Immutable credential of an authenticated session.

    Absence of an ``AccessToken`` means "not authenticated".

    Attributes
    ----------
    token : str
        The opaque bearer token. Excluded from ``repr``.
    starts_at : datetime
        Start of the validity window (UTC).
    expires_at : datetime
        End of the validity window (UTC).
    user_profile : UserProfile
        Identity claims of the token's owner.
    """

    token: str = field(repr=False)
    starts_at: datetime
    expires_at: datetime
    user_profile: UserProfile

    def __post_init__(self) -> None:
        if self.starts_at > self.expires_at:
            msg = f"starts_at ({self.starts_at}) is after expires_at ({self.expires_at})"
            raise ValueError(msg)

    def to_token_string(self) -> str:
        """Return the value for an ``Authorization`` header."""
        return f"Bearer {self.token}"

    def is_expired(self, buffer_seconds: float = 0.0, now: datetime | None = None) -> bool:
        """Check whether the validity window has closed.

        Parameters
        ----------
        buffer_seconds : float
            Treat the token as expired this many seconds early.
        now : datetime, optional
            Reference time (defaults to the current UTC time).

        Returns
        -------
        bool
            True if ``now + buffer_seconds`` is at or past expiry.
        """
        now = now or datetime.now(timezone.utc)
        return now.timestamp() + buffer_seconds >= self.expires_at.timestamp()


@dataclass(frozen=True)
class EngineSettings:
    """Configuration handed to the protocol engine at construction.

    Attributes
    ----------
    authority : str
        The identity provider authority URL.
    client_id : str
        Client id registered with the provider.
    redirect_uri : str
        Where the provider returns after interactive sign-in.
    silent_redirect_uri : str
        Where the provider returns after silent renewal.
    response_type : str
        Requested response type (identity token and access token).
    scope : str
        Space-delimited list of requested scopes.
    """

    authority: str
    client_id: str
    redirect_uri: str
    silent_redirect_uri: str
    response_type: str
    scope: str

    def to_dict(self) -> dict[str, str]:
        """Convert to a plain mapping using the engine's field names."""
        return asdict(self)
