"""Page location and navigation collaborator.

The session manager never reads a global location. It is handed a
``Location`` that answers "which path is the page on" and "what is the
origin", and that can replace the current location.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from urllib.parse import urljoin, urlsplit


class Location(ABC):
    """Abstract page location."""

    @property
    @abstractmethod
    def pathname(self) -> str:
        """Path component of the current location (e.g. ``/signin-oidc``)."""

    @property
    @abstractmethod
    def origin(self) -> str:
        """Scheme, host and port of the current location (e.g. ``https://app.example.com``)."""

    @abstractmethod
    def replace(self, url: str) -> None:
        """Navigate to ``url`` without adding a history entry."""


class StaticLocation(Location):
    """In-memory location for hosts without a browser and for tests.

    Parameters
    ----------
    href : str
        Absolute URL of the current page.

    Attributes
    ----------
    history : list[str]
        Every absolute URL passed through ``replace``, oldest first.
    """

    def __init__(self, href: str) -> None:
        """Initialize from an absolute URL."""
        parts = urlsplit(href)
        if not parts.scheme or not parts.netloc:
            msg = f"StaticLocation needs an absolute URL, got {href!r}"
            raise ValueError(msg)
        self._href = href
        self.history: list[str] = []

    @property
    def href(self) -> str:
        """Absolute URL of the current page."""
        return self._href

    @property
    def pathname(self) -> str:
        """Path component of the current location."""
        return urlsplit(self._href).path or "/"

    @property
    def origin(self) -> str:
        """Scheme and network location of the current page."""
        parts = urlsplit(self._href)
        return f"{parts.scheme}://{parts.netloc}"

    def replace(self, url: str) -> None:
        """Resolve ``url`` against the current page and move there."""
        self._href = urljoin(self._href, url)
        self.history.append(self._href)

    def __repr__(self) -> str:
        return f"StaticLocation({self._href!r})"
