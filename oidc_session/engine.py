"""Protocol engine contract.

The protocol engine owns the redirect and callback mechanics, token
renewal timers and the raw session. The session manager only talks to
it through the ``UserManager`` interface defined here: five lifecycle
events, two redirect commands, a user query and two callback
completion entry points.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from .events import Event, Subscription
from .types import EngineEvent


if TYPE_CHECKING:
    from typing import TypeAlias

    from .types import EngineSettings, OidcUser


class UserManagerEvents:
    """Lifecycle events raised by a ``UserManager``.

    One ``Event`` per ``EngineEvent``. Listener signatures:

    - ``USER_LOADED``: ``(user: OidcUser) -> None``
    - ``SILENT_RENEW_ERROR``: ``(error: BaseException) -> None``
    - ``ACCESS_TOKEN_EXPIRED``, ``USER_UNLOADED``, ``USER_SIGNED_OUT``:
      ``() -> None``
    """

    def __init__(self) -> None:
        """Create an empty event for every lifecycle event."""
        self._events: dict[EngineEvent, Event[Any]] = {
            kind: Event(name=kind.value) for kind in EngineEvent
        }

    def add(self, kind: EngineEvent, listener: Callable[..., Any]) -> Subscription:
        """Subscribe ``listener`` to ``kind`` and return its handle."""
        return self._events[kind].add_listener(listener)

    def remove(self, kind: EngineEvent, listener: Callable[..., Any]) -> bool:
        """Unsubscribe ``listener`` from ``kind``."""
        return self._events[kind].remove_listener(listener)

    def raise_event(self, kind: EngineEvent, *args: Any) -> None:
        """Deliver a lifecycle event to its listeners."""
        self._events[kind].raise_event(*args)

    def listener_count(self, kind: EngineEvent | None = None) -> int:
        """Count listeners of one event, or of all events when ``kind`` is None."""
        if kind is not None:
            return self._events[kind].number_of_listeners
        return sum(event.number_of_listeners for event in self._events.values())


class UserManager(ABC):
    """Abstract protocol engine.

    Parameters
    ----------
    settings : EngineSettings
        Authority, client id, redirect URIs, response type and scope.
    """

    def __init__(self, settings: EngineSettings) -> None:
        """Initialize the engine with its settings."""
        self.settings = settings
        self.events = UserManagerEvents()

    @abstractmethod
    async def get_user(self) -> OidcUser | None:
        """Return the currently stored user record, if any."""

    @abstractmethod
    def signin_redirect(self) -> None:
        """Begin the interactive sign-in redirect.

        The host navigates away; nothing is returned to the caller.
        """

    @abstractmethod
    def signout_redirect(self) -> None:
        """Begin the sign-out redirect."""

    @abstractmethod
    async def signin_redirect_callback(self) -> OidcUser:
        """Complete a sign-in redirect on the redirect page.

        Raises
        ------
        EngineError
            If the current page does not carry a sign-in response.
        """

    @abstractmethod
    async def signout_redirect_callback(self) -> None:
        """Complete a sign-out redirect on the redirect page.

        Raises
        ------
        EngineError
            If the current page does not carry a sign-out response.
        """


if TYPE_CHECKING:
    # Builds the engine from its settings; may be a coroutine function when
    # construction needs asynchronous work.
    UserManagerFactory: TypeAlias = Callable[[EngineSettings], UserManager | Awaitable[UserManager]]
