"""Model event dispatcher.

Listeners are registered per concrete model class and event name. until()
runs listeners in registration order and halts as soon as one returns False
(used for the cancellable "ing" events); dispatch() runs all listeners and
ignores their results.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

Listener = Callable[[Any], Any]


class EventDispatcher:
    """Registry of model event listeners keyed by (model class, event name)."""

    def __init__(self) -> None:
        self._listeners: dict[tuple[type, str], list[Listener]] = defaultdict(list)

    def listen(self, model_cls: type, event: str, listener: Listener) -> None:
        self._listeners[(model_cls, event)].append(listener)

    def has_listeners(self, model_cls: type, event: str) -> bool:
        return bool(self._listeners.get((model_cls, event)))

    def until(self, event: str, model: Any) -> bool:
        """Run listeners for a cancellable event. Return False if any listener halts."""
        for listener in list(self._listeners.get((type(model), event), ())):
            if listener(model) is False:
                logger.debug("%s cancelled by listener for %s", event, type(model).__name__)
                return False
        return True

    def dispatch(self, event: str, model: Any) -> None:
        """Run every listener for a fire-and-forget event."""
        for listener in list(self._listeners.get((type(model), event), ())):
            listener(model)

    def forget(self, model_cls: type | None = None) -> None:
        """Remove listeners for one model class, or all listeners when model_cls is None."""
        if model_cls is None:
            self._listeners.clear()
            return
        for key in [k for k in self._listeners if k[0] is model_cls]:
            del self._listeners[key]


dispatcher = EventDispatcher()
