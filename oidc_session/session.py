"""OIDC session manager.

Tracks whether the user is authenticated, exposes the current access
token and drives the redirect-based sign-in and sign-out lifecycle on
top of a protocol engine (``UserManager``).

Setup runs once, asynchronously, after construction::

    manager = OidcSessionManager(engine_factory, location)
    manager.start()
    await manager.ready()

Every lifecycle event raised by the engine is normalized into one
transition of the current access token, followed by a
``on_user_state_changed`` notification. Notifications are held back
while the page sits on the redirect path; the internal state is still
updated, and the held-back state is delivered once the manager has
navigated away from the redirect path.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import asyncio
import inspect
import logging

from typing import TYPE_CHECKING

from .config import get_settings
from .credential import create_access_token
from .discovery import UrlDiscoveryClient
from .events import Event
from .exceptions import CredentialError, SessionNotReadyError
from .log import get_logger, redact_sensitive_data
from .types import EngineEvent, EngineSettings, StateChangeReason


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from .config import OidcSettings, SessionSettings
    from .engine import UserManager, UserManagerFactory
    from .events import Subscription
    from .location import Location
    from .types import AccessToken, OidcUser


logger = logging.getLogger("oidc_session.session")


def build_engine_settings(authority: str, settings: OidcSettings, origin: str) -> EngineSettings:
    """Build the configuration handed to the protocol engine.

    Parameters
    ----------
    authority : str
        The identity provider authority URL.
    settings : OidcSettings
        Client id, redirect path, response type and scopes.
    origin : str
        Origin of the current page (``scheme://host[:port]``).

    Returns
    -------
    EngineSettings
        Both redirect URIs point at ``{origin}{redirect_path}``.
    """
    redirect_uri = f"{origin.rstrip('/')}{settings.redirect_path}"
    return EngineSettings(
        authority=authority,
        client_id=settings.client_id,
        redirect_uri=redirect_uri,
        silent_redirect_uri=redirect_uri,
        response_type=settings.response_type,
        scope=" ".join(settings.scope_list),
    )


class OidcSessionManager:
    """Client-side OIDC session state machine.

    Parameters
    ----------
    user_manager_factory : UserManagerFactory
        Builds the protocol engine from its ``EngineSettings``. May be
        a coroutine function.
    location : Location
        Current page location and navigation.
    settings : SessionSettings, optional
        Configuration; defaults to ``get_settings()``.
    discovery : UrlDiscoveryClient, optional
        Client used to resolve the authority URL. When omitted, one is
        built from the discovery settings and closed after setup.
    """

    def __init__(
        self,
        user_manager_factory: UserManagerFactory,
        location: Location,
        settings: SessionSettings | None = None,
        discovery: UrlDiscoveryClient | None = None,
    ) -> None:
        """Initialize the session manager. No I/O happens here."""
        get_logger()
        settings = settings if settings is not None else get_settings()
        self._settings = settings.oidc
        self._discovery_settings = settings.discovery
        self._user_manager_factory = user_manager_factory
        self._location = location
        self._discovery = discovery

        self._user_manager: UserManager | None = None
        self._subscriptions: list[Subscription] = []
        self._access_token: AccessToken | None = None
        self._last_change_reason: StateChangeReason | None = None
        self._notification_deferred = False
        self._disposed = False
        self._ready = asyncio.Event()
        self._setup_task: asyncio.Task[None] | None = None

        self.on_user_state_changed: Event[AccessToken | None] = Event("user-state-changed")

    # ── Lifecycle ────────────────────────────────────────────────────

    def start(self) -> asyncio.Task[None]:
        """Schedule setup on the running event loop.

        Calling ``start`` again returns the same task.

        Returns
        -------
        asyncio.Task
            The setup task. It never fails; setup errors are logged
            and leave the manager signed out.
        """
        if self._setup_task is None:
            self._setup_task = asyncio.get_running_loop().create_task(self._setup())
        return self._setup_task

    async def initialize(self) -> None:
        """Run setup (once) and wait for it to finish.

        Unlike ``ready``, this also waits for redirect callback
        completion when the page is on the redirect path.
        """
        await self.start()

    async def ready(self) -> None:
        """Wait until the protocol engine is configured and attached.

        Schedules setup through ``start`` if that has not happened yet.
        Also resolves when setup failed; the manager is then signed out.
        """
        self.start()
        await self._ready.wait()

    @property
    def is_ready(self) -> bool:
        """Whether setup has reached the readiness point."""
        return self._ready.is_set()

    def dispose(self) -> None:
        """Unsubscribe from every protocol engine event.

        Safe to call repeatedly and before setup has finished; in the
        latter case setup will not subscribe at all.
        """
        self._disposed = True
        if self._user_manager is None:
            return

        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions.clear()
        logger.debug("Session manager disposed")

    # ── Public state ─────────────────────────────────────────────────

    @property
    def access_token(self) -> AccessToken | None:
        """Access token of the signed-in user, or None when signed out."""
        return self._access_token

    @property
    def is_authenticated(self) -> bool:
        """Whether an access token is currently held."""
        return self._access_token is not None

    @property
    def is_loading(self) -> bool:
        """Whether a redirect callback is in flight.

        True exactly while the page is on the configured redirect path.
        """
        return self._location.pathname == self._settings.redirect_path

    @property
    def last_change_reason(self) -> StateChangeReason | None:
        """Reason of the most recently applied transition."""
        return self._last_change_reason

    @property
    def user_manager(self) -> UserManager | None:
        """The attached protocol engine, if setup has attached one."""
        return self._user_manager

    # ── Commands ─────────────────────────────────────────────────────

    def sign_in(self) -> None:
        """Start the sign-in procedure.

        The engine redirects to the identity provider, which returns to
        the redirect path; the manager then navigates back to the
        application root.

        Raises
        ------
        SessionNotReadyError
            If the protocol engine has not been attached yet.
        """
        self._require_user_manager().signin_redirect()

    def sign_out(self) -> None:
        """Start the sign-out procedure.

        Raises
        ------
        SessionNotReadyError
            If the protocol engine has not been attached yet.
        """
        self._require_user_manager().signout_redirect()

    def _require_user_manager(self) -> UserManager:
        if self._user_manager is None:
            msg = "OidcSessionManager is not ready to be used yet"
            raise SessionNotReadyError(msg)
        return self._user_manager

    # ── Setup ────────────────────────────────────────────────────────

    async def _setup(self) -> None:
        try:
            user_manager = await self._create_user_manager()
            if self._disposed:
                logger.debug("Disposed during setup; not attaching to the protocol engine")
                return

            self._attach(user_manager)
            await self._load_initial_user(user_manager)
        except Exception as exc:
            self._on_error(exc)
            return
        finally:
            # the gate resolves whatever happened above
            self._ready.set()

        if self.is_loading:
            await self._complete_redirect(user_manager)

    async def _load_initial_user(self, user_manager: UserManager) -> None:
        try:
            user = await user_manager.get_user()
        except Exception as exc:
            self._on_error(exc)
            return

        if user is not None and not user.expired:
            self._on_user_loaded(user)
        else:
            self._on_user_expired()

    async def _create_user_manager(self) -> UserManager:
        settings = self._settings.require()
        authority = await self._resolve_authority()
        engine_settings = build_engine_settings(authority, settings, self._location.origin)
        logger.debug("Creating protocol engine with %s", engine_settings)

        user_manager = self._user_manager_factory(engine_settings)
        if inspect.isawaitable(user_manager):
            user_manager = await user_manager
        return user_manager

    async def _resolve_authority(self) -> str:
        if self._settings.authority_url:
            return self._settings.authority_url

        if self._discovery is not None:
            return await self._discovery.discover_url(self._discovery_settings.search_key)

        client = UrlDiscoveryClient.from_settings(self._discovery_settings)
        try:
            return await client.discover_url(self._discovery_settings.search_key)
        finally:
            await client.close()

    def _attach(self, user_manager: UserManager) -> None:
        self._user_manager = user_manager
        events = user_manager.events
        self._subscriptions = [
            events.add(EngineEvent.USER_LOADED, self._on_user_loaded),
            events.add(EngineEvent.SILENT_RENEW_ERROR, self._on_error),
            events.add(EngineEvent.ACCESS_TOKEN_EXPIRED, self._on_user_expired),
            events.add(EngineEvent.USER_UNLOADED, self._on_user_unloaded),
            events.add(EngineEvent.USER_SIGNED_OUT, self._on_user_signed_out),
        ]
        logger.debug("Attached to protocol engine %s", type(user_manager).__name__)

    async def _complete_redirect(self, user_manager: UserManager) -> None:
        """Finish whichever redirect brought the page to the redirect path.

        The page carries either a sign-in or a sign-out response, so one
        of the two completions is expected to fail. Only when both fail
        is the failure applied as an error transition.
        """
        outcomes = await asyncio.gather(
            self._complete_callback("sign-in", user_manager.signin_redirect_callback),
            self._complete_callback("sign-out", user_manager.signout_redirect_callback),
        )
        failures = [exc for exc in outcomes if exc is not None]
        if len(failures) == len(outcomes):
            self._on_error(failures[0])

    async def _complete_callback(
        self,
        kind: str,
        callback: Callable[[], Awaitable[object]],
    ) -> Exception | None:
        try:
            await callback()
        except Exception as exc:
            logger.debug("%s redirect callback did not complete: %s", kind, exc)
            return exc

        logger.info("%s redirect completed", kind)
        self._location.replace(self._settings.post_redirect_path)
        self._deliver_deferred()
        return None

    # ── Transitions ──────────────────────────────────────────────────

    def _on_user_state_changed(self, token: AccessToken | None, reason: StateChangeReason) -> None:
        self._access_token = token
        self._last_change_reason = reason
        logger.debug("User state changed: %s", reason.value)

        if self.is_loading:
            # a redirect is about to settle the state
            self._notification_deferred = True
            return

        self._notification_deferred = False
        self.on_user_state_changed.raise_event(token)

    def _deliver_deferred(self) -> None:
        if self._notification_deferred and not self.is_loading:
            self._notification_deferred = False
            self.on_user_state_changed.raise_event(self._access_token)

    def _on_user_loaded(self, user: OidcUser) -> None:
        """Apply a loaded user (startup, token renewal or sign-in callback)."""
        if user.expired:
            self._on_user_expired()
            return

        try:
            token = create_access_token(user)
        except CredentialError as exc:
            logger.debug("Rejected user record: %s", redact_sensitive_data(user.to_dict()))
            self._on_error(exc)
            return

        self._on_user_state_changed(token, StateChangeReason.LOADED)

    def _on_user_expired(self) -> None:
        """No valid user on startup, or the access token expired."""
        self._on_user_state_changed(None, StateChangeReason.EXPIRED)

    def _on_user_unloaded(self) -> None:
        """The user session was removed at the identity provider."""
        self._on_user_state_changed(None, StateChangeReason.UNLOADED)

    def _on_user_signed_out(self) -> None:
        """The user signed out."""
        self._on_user_state_changed(None, StateChangeReason.SIGNED_OUT)

    def _on_error(self, error: BaseException | str) -> None:
        """Setup failed or silent renewal failed."""
        logger.error(
            "Identity provider error: %s",
            error,
            exc_info=error if isinstance(error, BaseException) else None,
        )
        self._on_user_state_changed(None, StateChangeReason.ERROR)
