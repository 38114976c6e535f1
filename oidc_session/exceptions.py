"""oidc_session exception hierarchy.

All package-specific exceptions inherit from OidcSessionError, enabling
catch-all handling while supporting specific error types.
"""

from __future__ import annotations

from typing import Any


class OidcSessionError(Exception):
    """Base exception for all oidc_session errors."""

    def __init__(self, message: str, **context: Any) -> None:
        """Initialize the exception.

        Parameters
        ----------
        message : str
            Human-readable error message.
        **context : Any
            Additional context (search_key, missing, etc.).
        """
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        """Format exception with context."""
        if self.context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx})"
        return self.message


class ConfigurationError(OidcSessionError):
    """Required configuration is missing or invalid.

    Raised when the redirect path or client id has not been configured.
    """

    def __init__(self, message: str, keys: list[str] | None = None, **context: Any) -> None:
        """Initialize configuration error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        keys : list of str, optional
            The configuration keys that are missing or invalid.
        **context : Any
            Additional context.
        """
        super().__init__(message, keys=keys, **context)
        self.keys = keys or []


class DiscoveryError(OidcSessionError):
    """Authority URL discovery failed.

    Raised when the discovery service cannot be reached, answers with
    an error status, or returns a response without a URL.
    """

    def __init__(self, message: str, search_key: str | None = None, **context: Any) -> None:
        """Initialize discovery error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        search_key : str, optional
            The well-known key that was being resolved.
        **context : Any
            Additional context.
        """
        super().__init__(message, search_key=search_key, **context)
        self.search_key = search_key


class SessionNotReadyError(OidcSessionError):
    """The session manager has no attached protocol engine.

    Raised by ``sign_in`` and ``sign_out`` when they are called before
    setup has attached the engine. This is a programming error.
    """


class CredentialError(OidcSessionError):
    """A provider user record cannot be turned into an access token.

    Raised when mandatory claims or expiry fields are absent, which
    points at a misconfigured identity provider.
    """

    def __init__(self, message: str, missing: list[str] | None = None, **context: Any) -> None:
        """Initialize credential error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        missing : list of str, optional
            Names of the absent fields.
        **context : Any
            Additional context.
        """
        super().__init__(message, missing=missing, **context)
        self.missing = missing or []


class EngineError(OidcSessionError):
    """The protocol engine reported a failure.

    Raised by engine implementations for silent renew and redirect
    callback failures.
    """
