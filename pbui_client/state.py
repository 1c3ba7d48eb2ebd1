"""Change-aware cache of server-authoritative state."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from .events import Listener, ListenerRegistry
from .models import StateUpdate, validate_request

if TYPE_CHECKING:
    from .http import PbuiHttpClient

_LOGGER = logging.getLogger(__name__)

STATE_KEY = "state"


def deep_equal(left: Any, right: Any) -> bool:
    """Structural equality for JSON-like values.

    Mappings are equal when they have the same keys and equal values, lists
    and tuples when they have the same length and equal items. Anything else
    falls back to ``==``, except that booleans never equal numbers.
    Self-referential structures terminate: a pair of containers that is
    already being compared further up the stack counts as equal.
    """
    return _deep_equal(left, right, set())


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _deep_equal(left: Any, right: Any, active: set[tuple[int, int]]) -> bool:
    if left is right:
        return True

    left_map = isinstance(left, Mapping)
    left_seq = _is_sequence(left)
    if left_map or left_seq:
        if left_map != isinstance(right, Mapping) or left_seq != _is_sequence(right):
            return False
        pair = (id(left), id(right))
        if pair in active:
            return True
        active.add(pair)
        try:
            if left_map:
                if left.keys() != right.keys():
                    return False
                return all(_deep_equal(left[k], right[k], active) for k in left)
            if len(left) != len(right):
                return False
            return all(_deep_equal(a, b, active) for a, b in zip(left, right))
        finally:
            active.discard(pair)

    if isinstance(left, bool) != isinstance(right, bool):
        return False
    return bool(left == right)


class StateCache:
    """Keyed view over server state with equality-gated notifications.

    Only :data:`STATE_KEY` is ever fetched over REST. Every other key is
    populated by pushes from the realtime transport through :meth:`apply`.
    """

    def __init__(self, http: PbuiHttpClient) -> None:
        self._http = http
        self._data: dict[str, Any] = {}
        self._listeners = ListenerRegistry()

    def add_listener(self, key: str, listener: Listener) -> bool:
        """Call ``listener`` with the new value whenever ``key`` changes."""
        return self._listeners.add(key, listener)

    def remove_listener(self, key: str, listener: Listener) -> bool:
        return self._listeners.remove(key, listener)

    def cached(self, key: str = STATE_KEY) -> Any:
        """Return the cached value without any network access."""
        return self._data.get(key)

    def apply(self, key: str, value: Any) -> bool:
        """Store ``value`` under ``key`` unless it deep-equals the cached one.

        Listeners for ``key`` fire synchronously, in registration order, only
        when the value changed.

        Returns:
            True if the value changed and listeners were notified
        """
        if key in self._data and deep_equal(self._data[key], value):
            return False
        self._data[key] = value
        self._listeners.notify(key, value)
        return True

    async def get(self, key: str = STATE_KEY, force_fetch: bool = True) -> Any:
        """Return the value for ``key``.

        For :data:`STATE_KEY` the value is fetched from ``GET /state`` when
        nothing is cached yet or ``force_fetch`` is set.
        """
        if key == STATE_KEY and (force_fetch or self._data.get(key) is None):
            _LOGGER.debug("Fetching state")
            data = await self._http.fetch_data("/state")
            self.apply(key, data)
        return self._data.get(key)

    async def update(self, song_states: Any, current_flow_step: Any) -> bool:
        """Post new song states and flow step to ``POST /update``.

        Raises:
            ValidationError: Empty or non-mapping song states, or a flow step
                that is not a finite number
        """
        body = validate_request(
            StateUpdate,
            {"song_states": song_states, "current_flow_step": current_flow_step},
        )
        data = await self._http.fetch_data("/update", "POST", body.model_dump())
        return _reported_success(data)

    async def reset(self) -> bool:
        """Request a server-side reset through ``POST /reset``."""
        _LOGGER.info("Resetting state")
        data = await self._http.fetch_data("/reset", "POST")
        success = _reported_success(data)
        if success:
            _LOGGER.info("State successfully reset")
        return success


def _reported_success(data: Any) -> bool:
    return isinstance(data, Mapping) and bool(data.get("success"))
