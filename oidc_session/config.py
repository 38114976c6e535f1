"""Configuration system for oidc_session using pydantic-settings.

Supports layered configuration:
1. Built-in defaults (lowest priority)
2. pyproject.toml [tool.oidc_session] section (project-level)
3. ./oidc_session.toml (project-level, explicit)
4. ~/.config/oidc_session/config.toml (user-level, overrides project)
5. Environment variables (highest priority)

Environment variables use OIDC_SESSION_ prefix with nested delimiter __.
Example: OIDC_SESSION_OIDC__CLIENT_ID, OIDC_SESSION_DISCOVERY__URL
"""

from __future__ import annotations

import os
import sys

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomli as tomllib  # type: ignore[import-not-found]
    except ImportError:
        tomllib = None


CONFIG_FILE_NAME = "oidc_session.toml"
CONFIG_FILE_ENV = "OIDC_SESSION_CONFIG_FILE"

DEFAULT_SCOPES = (
    "openid email profile organization feature_tracking imodelhub "
    "rbac-service context-registry-service"
)


def user_config_path() -> Path:
    """Return the user-level configuration file path."""
    if sys.platform == "win32":
        return (Path(os.environ.get("APPDATA", "~")) / "oidc_session" / "config.toml").expanduser()
    return Path("~/.config/oidc_session/config.toml").expanduser()


def _find_config_files() -> list[Path]:
    """Find all configuration files in order of precedence (lowest first)."""
    files = []

    pyproject = Path("pyproject.toml")
    if pyproject.exists():
        files.append(pyproject)

    explicit = Path(CONFIG_FILE_NAME)
    if explicit.exists():
        files.append(explicit)

    user_config = user_config_path()
    if user_config.exists():
        files.append(user_config)

    env_config = os.environ.get(CONFIG_FILE_ENV)
    if env_config:
        env_path = Path(env_config)
        if env_path.exists():
            files.append(env_path)

    return files


def _load_toml_config() -> dict[str, Any]:
    """Load and merge all TOML configuration files."""
    if tomllib is None:
        return {}

    merged: dict[str, Any] = {}

    for config_file in _find_config_files():
        try:
            data = tomllib.loads(config_file.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError):
            continue  # unreadable files do not block startup

        if config_file.name == "pyproject.toml":
            data = data.get("tool", {}).get("oidc_session", {})

        merged = _deep_merge(merged, data)

    return merged


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _drop_env_overrides(config: dict[str, Any], prefix: str) -> dict[str, Any]:
    """Remove TOML values that an environment variable also sets.

    Keyword data outranks environment variables in pydantic-settings, so
    TOML values must be dropped here for the environment to win.
    """
    environ = {key.upper() for key in os.environ}
    result: dict[str, Any] = {}
    for key, value in config.items():
        name = f"{prefix}{key}".upper()
        if isinstance(value, dict):
            result[key] = _drop_env_overrides(value, f"{name}__")
        elif name not in environ:
            result[key] = value
    return result


class OidcSettings(BaseSettings):
    """Identity provider client settings.

    Environment prefix: OIDC_SESSION_OIDC__
    Example: OIDC_SESSION_OIDC__REDIRECT_PATH=/signin-oidc
    Example: OIDC_SESSION_OIDC__CLIENT_ID=my-spa-client

    TOML section: [tool.oidc_session.oidc]
    """

    model_config = SettingsConfigDict(
        env_prefix="OIDC_SESSION_OIDC__",
        extra="ignore",
    )

    redirect_path: str = Field(
        default="",
        description="Path the identity provider redirects back to (e.g. /signin-oidc)",
    )
    client_id: str = Field(
        default="",
        description="Client id registered with the identity provider",
    )
    scopes: str = Field(
        default=DEFAULT_SCOPES,
        description="Space-separated scopes to request",
    )
    response_type: str = Field(
        default="id_token token",
        description="Response type; must request both an identity token and an access token",
    )
    authority_url: str = Field(
        default="",
        description="Static authority URL; when set, discovery is skipped",
    )
    post_redirect_path: str = Field(
        default="/",
        description="Location to return to once a redirect callback completes",
    )

    @field_validator("redirect_path", "post_redirect_path")
    @classmethod
    def _leading_slash(cls, v: str) -> str:
        """Normalize paths so they always start with a slash."""
        if v and not v.startswith("/"):
            return f"/{v}"
        return v

    @field_validator("response_type")
    @classmethod
    def _requests_both_tokens(cls, v: str) -> str:
        """Reject response types that omit the identity or the access token."""
        parts = set(v.split())
        if not {"id_token", "token"} <= parts:
            msg = f"response_type must request both 'id_token' and 'token', got {v!r}"
            raise ValueError(msg)
        return v

    @property
    def scope_list(self) -> list[str]:
        """Requested scopes as a list."""
        return self.scopes.split()

    def require(self) -> OidcSettings:
        """Check that the keys needed for setup are present.

        Returns
        -------
        OidcSettings
            ``self``, for chaining.

        Raises
        ------
        ConfigurationError
            If ``redirect_path`` or ``client_id`` is empty.
        """
        missing = [name for name in ("redirect_path", "client_id") if not getattr(self, name)]
        if missing:
            msg = f"Missing OIDC configuration: {', '.join(missing)}"
            raise ConfigurationError(msg, keys=missing)
        return self


class DiscoverySettings(BaseSettings):
    """Authority discovery service settings.

    Environment prefix: OIDC_SESSION_DISCOVERY__
    Example: OIDC_SESSION_DISCOVERY__URL=https://discovery.example.com/WebService
    """

    model_config = SettingsConfigDict(
        env_prefix="OIDC_SESSION_DISCOVERY__",
        extra="ignore",
    )

    url: str = Field(
        default="",
        description="Base URL of the discovery web service",
    )
    search_key: str = Field(
        default="IMSOpenID",
        description="Well-known key that resolves to the identity provider authority",
    )
    region: str = Field(
        default="",
        description="Optional deployment region passed to the discovery service",
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        description="Timeout for a single discovery request",
    )


class LogSettings(BaseSettings):
    """Logging settings.

    Environment prefix: OIDC_SESSION_LOG__
    Example: OIDC_SESSION_LOG__LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_prefix="OIDC_SESSION_LOG__",
        extra="ignore",
    )

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    format: str = "%(name)s - %(levelname)s - %(message)s"


class SessionSettings(BaseSettings):
    """Main settings aggregating all configuration sections.

    Environment prefix: OIDC_SESSION_

    Configuration sources (in order of precedence):
    1. Built-in defaults
    2. pyproject.toml [tool.oidc_session] section
    3. ./oidc_session.toml (project-level)
    4. ~/.config/oidc_session/config.toml (user-level, overrides project)
    5. Environment variables (highest priority)
    """

    model_config = SettingsConfigDict(
        env_prefix="OIDC_SESSION_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    oidc: OidcSettings = Field(default_factory=OidcSettings)
    discovery: DiscoverySettings = Field(default_factory=DiscoverySettings)
    log: LogSettings = Field(default_factory=LogSettings)

    def __init__(self, **data: Any) -> None:
        # Explicit keyword data takes precedence over TOML files
        toml_config = _drop_env_overrides(_load_toml_config(), "OIDC_SESSION_")
        merged = _deep_merge(toml_config, data)
        super().__init__(**merged)

    def _sections(self) -> list[str]:
        return ["oidc", "discovery", "log"]

    def to_toml(self) -> str:
        """Export settings as TOML string."""
        lines = ["# oidc_session Configuration", "# Generated by: oidc-session config --toml", ""]

        section_names = self._sections()
        all_data = self.model_dump()

        for section_name in section_names:
            lines.append(f"[{section_name}]")
            for field_name, field_value in all_data.get(section_name, {}).items():
                if isinstance(field_value, bool):
                    value_str = "true" if field_value else "false"
                elif isinstance(field_value, str):
                    value_str = f'"{field_value}"'
                else:
                    value_str = str(field_value)
                lines.append(f"{field_name} = {value_str}")
            lines.append("")

        return "\n".join(lines)

    def to_env(self) -> str:
        """Export settings as shell environment variables."""
        lines = [
            "# oidc_session Environment Variables",
            "# Generated by: oidc-session config --env",
            "",
        ]

        section_names = self._sections()
        all_data = self.model_dump()

        for section_name in section_names:
            prefix = f"OIDC_SESSION_{section_name.upper()}__"
            for field_name, field_value in all_data.get(section_name, {}).items():
                if isinstance(field_value, bool):
                    value_str = "true" if field_value else "false"
                else:
                    value_str = str(field_value)
                lines.append(f'export {prefix}{field_name.upper()}="{value_str}"')

        return "\n".join(lines)

    def show(self) -> str:
        """Format settings as a readable table."""
        lines = ["oidc_session Configuration", "=" * 60, ""]

        show_sections = [
            ("Identity Provider Client", "oidc"),
            ("Authority Discovery", "discovery"),
            ("Logging", "log"),
        ]

        all_data = self.model_dump()

        for display_name, attr_name in show_sections:
            lines.append(f"\n{display_name}")
            lines.append("-" * 40)
            for field_name, field_value in all_data.get(attr_name, {}).items():
                value_str = str(field_value)
                if len(value_str) > 50:
                    value_str = value_str[:47] + "..."
                lines.append(f"  {field_name:20} = {value_str}")

        return "\n".join(lines)


@lru_cache(maxsize=1)
def get_settings() -> SessionSettings:
    """Get the global settings instance (cached).

    Call clear_settings() to reload configuration.
    """
    return SessionSettings()


def clear_settings() -> None:
    """Clear the cached settings to force reload."""
    get_settings.cache_clear()


def reload_settings() -> SessionSettings:
    """Reload settings from all sources."""
    clear_settings()
    return get_settings()
