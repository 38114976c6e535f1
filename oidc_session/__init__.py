"""oidc_session - client-side OIDC session management.

Tracks whether the user is authenticated, exposes the current access
token and drives the redirect-based sign-in and sign-out lifecycle on
top of a pluggable protocol engine.
"""

from __future__ import annotations

from .config import (
    DiscoverySettings,
    LogSettings,
    OidcSettings,
    SessionSettings,
    get_settings,
    reload_settings,
)
from .credential import create_access_token, create_user_profile
from .discovery import UrlDiscoveryClient
from .engine import UserManager, UserManagerEvents
from .events import Event, Subscription
from .exceptions import (
    ConfigurationError,
    CredentialError,
    DiscoveryError,
    EngineError,
    OidcSessionError,
    SessionNotReadyError,
)
from .location import Location, StaticLocation
from .session import OidcSessionManager, build_engine_settings
from .types import (
    AccessToken,
    EngineEvent,
    EngineSettings,
    OidcUser,
    StateChangeReason,
    UserProfile,
)


__version__ = "0.1.0"

__all__ = [
    "AccessToken",
    "ConfigurationError",
    "CredentialError",
    "DiscoveryError",
    "DiscoverySettings",
    "EngineError",
    "EngineEvent",
    "EngineSettings",
    "Event",
    "Location",
    "LogSettings",
    "OidcSessionError",
    "OidcSessionManager",
    "OidcSettings",
    "OidcUser",
    "SessionNotReadyError",
    "SessionSettings",
    "StateChangeReason",
    "StaticLocation",
    "Subscription",
    "UrlDiscoveryClient",
    "UserManager",
    "UserManagerEvents",
    "UserProfile",
    "build_engine_settings",
    "create_access_token",
    "create_user_profile",
    "get_settings",
    "reload_settings",
]
