"""Demo: redirect-based sign-in and sign-out with OidcSessionManager.

Walks through one full round trip against an in-memory protocol engine,
so no identity provider is needed:

- ``OidcSessionManager.start()`` / ``ready()`` for the two-phase setup
- ``sign_in()`` sending the page to the identity provider and back to
  the redirect path
- a page load on the redirect path completing the callback and
  returning to the application root
- ``sign_out()`` and the final signed-out state

Run::

    python examples/demo_session.py

Set ``OIDC_SESSION_LOG__LEVEL=DEBUG`` to see every state transition.
"""

from __future__ import annotations

import asyncio
import time

from oidc_session import (
    EngineEvent,
    EngineSettings,
    OidcSessionManager,
    OidcSettings,
    OidcUser,
    SessionSettings,
    StaticLocation,
    UserManager,
)


APP_ORIGIN = "https://app.example.com"

settings = SessionSettings(
    oidc=OidcSettings(
        redirect_path="/signin-oidc",
        client_id="demo-spa",
        authority_url="https://ims.example.com",
    )
)


# ───────────────────────────────────────────────────────────
# In-memory protocol engine
# ───────────────────────────────────────────────────────────


class DemoStore:
    """Survives "page loads", like the browser's session storage."""

    user: OidcUser | None = None
    pending: str | None = None


class DemoUserManager(UserManager):
    """Pretends the identity provider approves every request immediately."""

    def __init__(self, engine_settings: EngineSettings, location: StaticLocation) -> None:
        super().__init__(engine_settings)
        self.location = location

    async def get_user(self) -> OidcUser | None:
        return DemoStore.user

    def signin_redirect(self) -> None:
        DemoStore.pending = "signin"
        self.location.replace(f"{self.settings.redirect_uri}#id_token=demo&access_token=demo")

    def signout_redirect(self) -> None:
        DemoStore.pending = "signout"
        self.location.replace(self.settings.redirect_uri)

    async def signin_redirect_callback(self) -> OidcUser:
        if DemoStore.pending != "signin":
            raise RuntimeError("No sign-in response on this page")
        DemoStore.pending = None
        DemoStore.user = OidcUser(
            access_token="demo-access-token",
            expires_at=time.time() + 3600,
            expires_in=3600,
            profile={"sub": "demo-user", "email": "demo@example.com", "given_name": "Demo"},
        )
        self.events.raise_event(EngineEvent.USER_LOADED, DemoStore.user)
        return DemoStore.user

    async def signout_redirect_callback(self) -> None:
        if DemoStore.pending != "signout":
            raise RuntimeError("No sign-out response on this page")
        DemoStore.pending = None
        DemoStore.user = None
        self.events.raise_event(EngineEvent.USER_SIGNED_OUT)


# ───────────────────────────────────────────────────────────
# Page loads
# ───────────────────────────────────────────────────────────


async def load_page(location: StaticLocation) -> OidcSessionManager:
    """Build a session manager for a freshly loaded page and run setup."""
    manager = OidcSessionManager(
        lambda engine_settings: DemoUserManager(engine_settings, location),
        location,
        settings=settings,
    )
    manager.on_user_state_changed.add_listener(
        lambda token: print(f"  -> state changed: {describe(token)}")
    )
    await manager.initialize()
    return manager


def describe(token) -> str:
    if token is None:
        return "signed out"
    return f"signed in as {token.user_profile.email} until {token.expires_at:%H:%M:%S} UTC"


async def main() -> None:
    location = StaticLocation(f"{APP_ORIGIN}/")

    print(f"1. Load {location.href}")
    manager = await load_page(location)
    print(f"   authenticated: {manager.is_authenticated}")

    print("2. Sign in")
    manager.sign_in()
    manager.dispose()
    print(f"   navigated to {location.href}")

    print("3. Identity provider returns to the redirect path")
    manager = await load_page(location)
    print(f"   back on {location.href}, authenticated: {manager.is_authenticated}")
    print(f"   Authorization: {manager.access_token.to_token_string()}")

    print("4. Sign out")
    manager.sign_out()
    manager.dispose()
    manager = await load_page(location)
    print(f"   back on {location.href}, authenticated: {manager.is_authenticated}")
    manager.dispose()


if __name__ == "__main__":
    asyncio.run(main())
