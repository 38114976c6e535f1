"""Pytest configuration and fixtures."""

from __future__ import annotations

import os
import time

from typing import TYPE_CHECKING

import pytest

from oidc_session.config import OidcSettings, SessionSettings, clear_settings
from oidc_session.location import StaticLocation
from tests.constants import APP_ORIGIN, AUTHORITY_URL, CLIENT_ID, REDIRECT_PATH
from tests.fakes import FakeUserManagerFactory, make_user


if TYPE_CHECKING:
    from collections.abc import Generator

    from oidc_session.types import OidcUser


@pytest.fixture(autouse=True)
def isolated_settings(
    monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory
) -> Generator[None, None, None]:
    """Keep tests independent of the developer's environment and config files."""
    for key in list(os.environ):
        if key.startswith("OIDC_SESSION_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path_factory.mktemp("home")))
    monkeypatch.setenv("APPDATA", str(tmp_path_factory.mktemp("appdata")))
    monkeypatch.chdir(tmp_path_factory.mktemp("cwd"))
    clear_settings()
    yield
    clear_settings()


@pytest.fixture()
def settings() -> SessionSettings:
    """Settings with a static authority so setup needs no discovery."""
    return SessionSettings(
        oidc=OidcSettings(
            redirect_path=REDIRECT_PATH,
            client_id=CLIENT_ID,
            authority_url=AUTHORITY_URL,
        )
    )


@pytest.fixture()
def app_location() -> StaticLocation:
    """A page on the application root."""
    return StaticLocation(f"{APP_ORIGIN}/")


@pytest.fixture()
def redirect_location() -> StaticLocation:
    """A page on the redirect path, as after an identity provider round trip."""
    return StaticLocation(f"{APP_ORIGIN}{REDIRECT_PATH}#id_token=x&access_token=y")


@pytest.fixture()
def engine_factory() -> FakeUserManagerFactory:
    """Factory recording the protocol engines it builds."""
    return FakeUserManagerFactory()


@pytest.fixture()
def valid_user() -> OidcUser:
    """An unexpired provider user record."""
    return make_user()


@pytest.fixture()
def expired_user() -> OidcUser:
    """A provider user record whose token expired an hour ago."""
    return make_user(expires_at=time.time() - 3600)
