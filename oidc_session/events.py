"""Synchronous broadcast events with explicit unsubscribe handles.

Listeners are invoked in subscription order on the thread that raises
the event. A listener that raises is logged and skipped so the rest of
the listeners still receive the event.
"""

from __future__ import annotations

import logging

from collections.abc import Callable
from typing import Any, Generic, TypeVar


logger = logging.getLogger("oidc_session.events")

T = TypeVar("T")

Listener = Callable[..., Any]


class Subscription:
    """Handle returned by ``Event.add_listener``.

    Calling ``unsubscribe`` more than once is a no-op.
    """

    __slots__ = ("_event", "listener")

    def __init__(self, event: Event[Any], listener: Listener) -> None:
        self._event: Event[Any] | None = event
        self.listener = listener

    @property
    def active(self) -> bool:
        """Whether the listener is still attached."""
        return self._event is not None

    def unsubscribe(self) -> bool:
        """Detach the listener.

        Returns
        -------
        bool
            True if this call detached it, False if it was already detached.
        """
        if self._event is None:
            return False
        event, self._event = self._event, None
        return event._detach(self)


class Event(Generic[T]):
    """A named broadcast point carrying a single payload to its listeners.

    Parameters
    ----------
    name : str
        Name used in log messages.
    """

    def __init__(self, name: str = "event") -> None:
        """Initialize the event."""
        self.name = name
        self._subscriptions: list[Subscription] = []

    def add_listener(self, listener: Callable[[T], Any]) -> Subscription:
        """Attach a listener.

        Parameters
        ----------
        listener : callable
            Called with the payload each time the event is raised.

        Returns
        -------
        Subscription
            Handle used to detach the listener.
        """
        subscription = Subscription(self, listener)
        self._subscriptions.append(subscription)
        logger.debug("Listener added to %s (%d total)", self.name, len(self._subscriptions))
        return subscription

    def remove_listener(self, listener: Callable[[T], Any]) -> bool:
        """Detach the first subscription of ``listener``.

        Returns
        -------
        bool
            True if a subscription was found and detached.
        """
        for subscription in self._subscriptions:
            if subscription.listener is listener or subscription.listener == listener:
                return subscription.unsubscribe()
        return False

    def raise_event(self, *args: Any) -> None:
        """Deliver ``args`` to every listener attached at call time."""
        for subscription in list(self._subscriptions):
            if not subscription.active:
                continue
            try:
                subscription.listener(*args)
            except Exception:
                logger.exception("Listener of %s raised", self.name)

    def has(self, listener: Callable[[T], Any]) -> bool:
        """Check whether ``listener`` is attached."""
        return any(
            s.listener is listener or s.listener == listener for s in self._subscriptions
        )

    @property
    def number_of_listeners(self) -> int:
        """Number of attached listeners."""
        return len(self._subscriptions)

    def clear(self) -> None:
        """Detach all listeners."""
        for subscription in list(self._subscriptions):
            subscription.unsubscribe()

    def _detach(self, subscription: Subscription) -> bool:
        try:
            self._subscriptions.remove(subscription)
        except ValueError:
            return False
        logger.debug("Listener removed from %s (%d left)", self.name, len(self._subscriptions))
        return True
