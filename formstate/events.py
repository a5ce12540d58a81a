"""Event system for the formstate engine.

Every field write, touch, validation verdict, submit transition and draft
operation emits a typed FormEvent. Widget bindings subscribe to these events
to re-read their field; hosts may subscribe to everything for audit or
debugging.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from dateutil import parser as date_parser

from formstate.types import EventType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FormEvent:
    """A single event in a form's lifetime.

    Attributes:
        event_id: Unique event identifier (e.g., "evt_01H8...")
        type: Event type from EventType enum
        form_id: ID of the form this event relates to
        ts: UTC timestamp when the event occurred
        field: Field key the event is about, if any
        payload: Optional event-specific data (ticket, error, states, ...)

    Examples:
        >>> from datetime import datetime, timezone
        >>> event = FormEvent(
        ...     event_id="evt_001",
        ...     type=EventType.FIELD_UPDATED,
        ...     form_id="signup",
        ...     ts=datetime.now(timezone.utc),
        ...     field="email",
        ... )
        >>> event.type.value
        'field.updated'
    """
    event_id: str
    type: EventType
    form_id: str
    ts: datetime
    field: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        # Convert string type to EventType enum if needed
        if isinstance(self.type, str):
            object.__setattr__(self, "type", EventType(self.type))

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization.

        Returns:
            Dictionary with all event fields, suitable for JSON serialization.
            Timestamp is formatted as ISO 8601 string.
        """
        result: Dict[str, Any] = {
            "eventId": self.event_id,
            "type": self.type.value,
            "formId": self.form_id,
            "ts": self.ts.isoformat(),
        }
        if self.field is not None:
            result["field"] = self.field
        if self.payload is not None:
            result["payload"] = self.payload
        return result

    def to_jsonl(self) -> str:
        """Convert event to JSONL format (single-line JSON)."""
        return json.dumps(self.to_dict(), separators=(",", ":"), default=str)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FormEvent":
        """Create FormEvent from dictionary (camelCase keys)."""
        return cls(
            event_id=data["eventId"],
            type=EventType(data["type"]),
            form_id=data["formId"],
            ts=date_parser.isoparse(data["ts"]),
            field=data.get("field"),
            payload=data.get("payload"),
        )


EventListener = Callable[[FormEvent], None]
"""Type alias for event listener callbacks.

Listeners are called synchronously on the form's event loop, in registration
order. They should return quickly.
"""


class Subscription:
    """Handle returned by EventEmitter.subscribe.

    Cancelling is idempotent. Can be used as a context manager to scope a
    subscription to a block.
    """

    def __init__(self, emitter: "EventEmitter", types: List[Optional[EventType]], listener: EventListener):
        self._emitter = emitter
        self._types = types
        self._listener = listener
        self.active = True

    def cancel(self) -> None:
        if not self.active:
            return
        for event_type in self._types:
            if event_type is None:
                self._emitter.off_any(self._listener)
            else:
                self._emitter.off(event_type, self._listener)
        self.active = False

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.cancel()


class EventEmitter:
    """Event emitter for managing listeners and dispatching form events.

    Features:
    - Type-specific subscriptions (listen to specific event types)
    - Wildcard subscriptions (listen to all events)
    - Field-filtered subscriptions via subscribe()
    - Synchronous dispatch (listeners called in registration order)
    - Error isolation (a failing listener is logged and skipped)

    Examples:
        >>> emitter = EventEmitter()
        >>> seen = []
        >>> sub = emitter.subscribe([EventType.FIELD_UPDATED], seen.append, field="email")
        >>> emitter.listener_count(EventType.FIELD_UPDATED)
        1
        >>> sub.cancel()
        >>> emitter.listener_count()
        0
    """

    def __init__(self):
        self._listeners: Dict[EventType, List[EventListener]] = {}
        self._any_listeners: List[EventListener] = []

    def on(self, event_type: EventType, listener: EventListener) -> None:
        """Subscribe to a specific event type."""
        if event_type not in self._listeners:
            self._listeners[event_type] = []
        self._listeners[event_type].append(listener)

    def on_any(self, listener: EventListener) -> None:
        """Subscribe to all event types (wildcard subscription)."""
        self._any_listeners.append(listener)

    def off(self, event_type: EventType, listener: EventListener) -> None:
        """Unsubscribe from a specific event type. Unknown listeners are ignored."""
        listeners = self._listeners.get(event_type)
        if listeners and listener in listeners:
            listeners.remove(listener)

    def off_any(self, listener: EventListener) -> None:
        """Unsubscribe from the wildcard subscription. Unknown listeners are ignored."""
        if listener in self._any_listeners:
            self._any_listeners.remove(listener)

    def subscribe(
        self,
        types: Optional[Iterable[Union[EventType, str]]],
        listener: EventListener,
        field: Optional[str] = None,
    ) -> Subscription:
        """Subscribe to several event types at once, optionally for one field.

        Args:
            types: Event types to listen for; None means every event
            listener: Callback invoked with each matching event
            field: If given, only events about this field are delivered

        Returns:
            Subscription handle; call cancel() to stop receiving events
        """
        if field is not None:
            target = listener

            def listener(event: FormEvent) -> None:
                if event.field == field:
                    target(event)

        if types is None:
            self.on_any(listener)
            return Subscription(self, [None], listener)

        resolved = [EventType(t) for t in types]
        for event_type in resolved:
            self.on(event_type, listener)
        return Subscription(self, list(resolved), listener)

    def emit(self, event: FormEvent) -> None:
        """Dispatch an event to all registered listeners.

        Type-specific listeners run first, then wildcard listeners. A listener
        that raises is logged and does not prevent the others from running.
        """
        for listener in list(self._listeners.get(event.type, ())):
            self._call(listener, event)
        for listener in list(self._any_listeners):
            self._call(listener, event)

    def _call(self, listener: EventListener, event: FormEvent) -> None:
        try:
            listener(event)
        except Exception:
            logger.warning(
                "Event listener %r failed on %s", listener, event.type.value, exc_info=True
            )

    def clear(self) -> None:
        """Remove all event listeners."""
        self._listeners.clear()
        self._any_listeners.clear()

    def listener_count(self, event_type: Optional[EventType] = None) -> int:
        """Get count of registered listeners.

        Args:
            event_type: If provided, count listeners for this type only.
                        If None, count all listeners (including wildcard).
        """
        if event_type is not None:
            return len(self._listeners.get(event_type, []))
        total = len(self._any_listeners)
        for listeners in self._listeners.values():
            total += len(listeners)
        return total


__all__ = [
    "FormEvent",
    "EventListener",
    "EventEmitter",
    "Subscription",
]
