"""Named-event listener registry and router.

Listeners are kept per event name in registration order. A listener is
stored at most once per name; membership uses ``==``, which is identity for
plain functions and matches bound methods of the same instance.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .ws_client import PbuiWsClient

_LOGGER = logging.getLogger(__name__)

Listener = Callable[[Any], Any]

# Lifecycle events published to subscribers in addition to server events.
EVENT_RECONNECT_FAILED = "reconnect_failed"


class ListenerRegistry:
    """Mapping of name to an ordered, duplicate-free list of listeners."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}

    def add(self, name: str, listener: Listener) -> bool:
        """Register ``listener``; return False if it was already present."""
        listeners = self._listeners.setdefault(name, [])
        if listener in listeners:
            return False
        listeners.append(listener)
        return True

    def remove(self, name: str, listener: Listener) -> bool:
        """Remove ``listener``; return False if it was not registered."""
        listeners = self._listeners.get(name)
        if not listeners or listener not in listeners:
            return False
        listeners.remove(listener)
        if not listeners:
            del self._listeners[name]
        return True

    def get(self, name: str) -> tuple[Listener, ...]:
        """Snapshot of listeners for ``name``."""
        return tuple(self._listeners.get(name, ()))

    def has(self, name: str) -> bool:
        return bool(self._listeners.get(name))

    def notify(self, name: str, data: Any) -> int:
        """Call every listener for ``name`` with ``data``, in order.

        A failing listener is logged and does not stop the others.

        Returns:
            Number of listeners invoked
        """
        listeners = self.get(name)
        for listener in listeners:
            try:
                listener(data)
            except Exception:
                _LOGGER.exception("Listener for %s failed", name)
        return len(listeners)

    def clear(self) -> None:
        self._listeners.clear()


class EventRouter:
    """Dispatches transport and application events to listeners.

    Subscriptions live on the router and survive reconnects. Raw handlers
    added through :meth:`on` live on a single transport handle instead.
    """

    def __init__(self) -> None:
        self._registry = ListenerRegistry()

    def subscribe(self, event: str, listener: Listener) -> bool:
        """Subscribe ``listener`` to ``event``; repeated calls are no-ops."""
        if self._registry.add(event, listener):
            _LOGGER.debug("Subscribed to event: %s", event)
            return True
        _LOGGER.debug("Listener already subscribed to event: %s", event)
        return False

    def unsubscribe(self, event: str, listener: Listener) -> bool:
        """Remove ``listener`` from ``event``.

        Unknown events and listeners are reported, never raised.
        """
        if not self._registry.has(event):
            _LOGGER.warning("No listeners to remove for event: %s", event)
            return False
        if not self._registry.remove(event, listener):
            _LOGGER.warning("Listener not found for event: %s", event)
            return False
        _LOGGER.debug("Unsubscribed from event: %s", event)
        return True

    def listeners(self, event: str) -> tuple[Listener, ...]:
        return self._registry.get(event)

    def trigger(self, event: str, data: Any) -> None:
        """Invoke subscribers of ``event`` with ``data`` unchanged."""
        self._registry.notify(event, data)

    def clear(self) -> None:
        """Drop every subscription."""
        self._registry.clear()

    @staticmethod
    def on(transport: PbuiWsClient, event: str, callback: Listener) -> None:
        """Attach a raw handler to ``transport`` for ``event``."""
        transport.on(event, callback)
