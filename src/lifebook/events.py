"""Event bus connecting the manuscript and conversation stores to their views.

Stores publish plain dataclass events; the UI layer (or tests) subscribes to
the types it cares about without the stores knowing who is listening.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, List, TypeVar
from weakref import WeakMethod

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for all events published on an :class:`EventBus`."""


@dataclass(slots=True)
class ManuscriptPatched(Event):
    """Emitted after a patch has been applied to the manuscript.

    Attributes:
        version_id: Manuscript version after the patch.
        strategy: How the selection was located (exact, normalized, boundary).
        span: Replaced range in the previous manuscript text.
        summary: Short length-delta summary of the change.
    """

    version_id: int
    strategy: str
    span: tuple[int, int]
    summary: str
    patch_id: str | None = None


@dataclass(slots=True)
class PatchFailed(Event):
    """Emitted when a patch could not be applied; the manuscript is unchanged."""

    version_id: int
    reason: str
    message: str
    patch_id: str | None = None


@dataclass(slots=True)
class ManuscriptRestored(Event):
    """Emitted after an undo or redo replaced the manuscript text."""

    version_id: int
    direction: str
    action: str


@dataclass(slots=True)
class TurnRecorded(Event):
    index: int
    question: str
    answered: bool


@dataclass(slots=True)
class FlowDecided(Event):
    should_transition: bool
    reason: str
    source: str


class _Subscription:
    """A registered handler; bound methods are held weakly."""

    __slots__ = ("_target", "_weak")

    def __init__(self, handler: Callable[[Any], None]) -> None:
        self._weak = getattr(handler, "__self__", None) is not None and hasattr(handler, "__func__")
        self._target: Any = WeakMethod(handler) if self._weak else handler  # type: ignore[arg-type]

    def resolve(self) -> Callable[[Any], None] | None:
        return self._target() if self._weak else self._target

    @property
    def alive(self) -> bool:
        return self.resolve() is not None

    def __repr__(self) -> str:
        handler = self.resolve()
        if handler is None:
            return "<dead handler>"
        owner = getattr(handler, "__self__", None)
        name = getattr(handler, "__name__", None) or repr(handler)
        return f"{type(owner).__name__}.{name}" if owner is not None else name


class EventBus(Generic[E]):
    """A typed publish-subscribe event bus.

    Delivery is keyed on the exact event class. Not thread-safe: publish and
    subscribe from the thread that owns the stores.
    """

    __slots__ = ("_subscriptions",)

    def __init__(self) -> None:
        self._subscriptions: Dict[type, List[_Subscription]] = {}

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        subscription = _Subscription(handler)
        self._subscriptions.setdefault(event_type, []).append(subscription)
        logger.debug("Subscribed %r to %s", subscription, event_type.__name__)

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Remove the first registration of ``handler``; unknown handlers are ignored."""

        registered = self._subscriptions.get(event_type, [])
        for position, subscription in enumerate(registered):
            if subscription.resolve() == handler:
                del registered[position]
                logger.debug("Unsubscribed %r from %s", subscription, event_type.__name__)
                return

    def publish(self, event: E) -> None:
        """Invoke every live handler registered for ``type(event)`` in order.

        A handler raising an exception is logged and the remaining handlers
        still run. Handlers whose owner has been collected are dropped.
        """

        event_type = type(event)
        registered = self._subscriptions.get(event_type)
        if not registered:
            logger.debug("No handlers for %s", event_type.__name__)
            return

        for subscription in list(registered):
            handler = subscription.resolve()
            if handler is None:
                continue
            try:
                handler(event)
            except Exception:
                logger.exception("Handler %r failed on %s", subscription, event_type.__name__)
        registered[:] = [subscription for subscription in registered if subscription.alive]

    def clear(self) -> None:
        self._subscriptions.clear()

    def handler_count(self, event_type: type[E] | None = None) -> int:
        if event_type is not None:
            return len(self._subscriptions.get(event_type, []))
        return sum(len(registered) for registered in self._subscriptions.values())


__all__ = [
    "Event",
    "EventBus",
    "Handler",
    "ManuscriptPatched",
    "ManuscriptRestored",
    "PatchFailed",
    "TurnRecorded",
    "FlowDecided",
]
