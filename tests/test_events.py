"""Unit tests for the event system.

Tests cover:
- FormEvent creation, immutability and serialization
- EventEmitter typed and wildcard subscriptions
- Field-filtered subscriptions and cancellation
- Listener failures not breaking dispatch
- Events emitted by the form controller
"""

import json
from dataclasses import FrozenInstanceError
from datetime import datetime, timezone

import pytest

from formstate.controller import FormController
from formstate.events import EventEmitter, FormEvent
from formstate.types import EventType


def make_event(event_type=EventType.FIELD_UPDATED, field="email", payload=None):
    return FormEvent(
        event_id="evt_001",
        type=event_type,
        form_id="signup",
        ts=datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc),
        field=field,
        payload=payload,
    )


class TestFormEvent:
    """Test FormEvent creation and serialization."""

    def test_string_type_coerced(self):
        """Should accept the string value of an event type."""
        event = make_event(event_type="validation.failed")
        assert event.type == EventType.VALIDATION_FAILED

    def test_event_is_immutable(self):
        event = make_event()
        with pytest.raises(FrozenInstanceError):
            event.field = "name"

    def test_to_dict(self):
        event = make_event(payload={"dirty": True})
        data = event.to_dict()
        assert data == {
            "eventId": "evt_001",
            "type": "field.updated",
            "formId": "signup",
            "ts": "2024-01-15T10:30:00+00:00",
            "field": "email",
            "payload": {"dirty": True},
        }

    def test_optional_keys_omitted(self):
        data = make_event(field=None).to_dict()
        assert "field" not in data
        assert "payload" not in data

    def test_to_jsonl_is_single_line(self):
        line = make_event(payload={"ticket": 3}).to_jsonl()
        assert "\n" not in line
        assert json.loads(line)["payload"] == {"ticket": 3}

    def test_from_dict(self):
        """Should parse the ISO timestamp back into an aware datetime."""
        original = make_event(payload={"ticket": 1})
        restored = FormEvent.from_dict(original.to_dict())
        assert restored == original
        assert restored.ts.tzinfo is not None


class TestEventEmitter:
    """Test subscription and dispatch."""

    def test_typed_listener(self):
        emitter = EventEmitter()
        received = []
        emitter.on(EventType.FIELD_UPDATED, received.append)
        emitter.emit(make_event())
        emitter.emit(make_event(EventType.FIELD_TOUCHED))
        assert [e.type for e in received] == [EventType.FIELD_UPDATED]

    def test_typed_before_wildcard(self):
        """Type-specific listeners run before wildcard listeners."""
        emitter = EventEmitter()
        order = []
        emitter.on_any(lambda e: order.append("any"))
        emitter.on(EventType.FIELD_UPDATED, lambda e: order.append("typed"))
        emitter.emit(make_event())
        assert order == ["typed", "any"]

    def test_off(self):
        emitter = EventEmitter()
        received = []
        emitter.on(EventType.FIELD_UPDATED, received.append)
        emitter.off(EventType.FIELD_UPDATED, received.append)
        emitter.emit(make_event())
        assert received == []
        assert emitter.listener_count() == 0

    def test_field_filtered_subscription(self):
        """A field filter only delivers events about that field."""
        emitter = EventEmitter()
        received = []
        emitter.subscribe([EventType.FIELD_UPDATED], received.append, field="email")
        emitter.emit(make_event(field="name"))
        emitter.emit(make_event(field="email"))
        assert [e.field for e in received] == ["email"]

    def test_subscription_cancel(self):
        emitter = EventEmitter()
        received = []
        subscription = emitter.subscribe(None, received.append)
        subscription.cancel()
        subscription.cancel()
        emitter.emit(make_event())
        assert received == []
        assert subscription.active is False

    def test_subscription_context_manager(self):
        emitter = EventEmitter()
        received = []
        with emitter.subscribe([EventType.FIELD_UPDATED, "field.touched"], received.append):
            emitter.emit(make_event())
        emitter.emit(make_event())
        assert len(received) == 1

    def test_failing_listener_does_not_stop_dispatch(self, caplog):
        """A raising listener is logged; the remaining listeners still run."""
        emitter = EventEmitter()
        received = []

        def broken(event):
            raise ValueError("listener bug")

        emitter.on(EventType.FIELD_UPDATED, broken)
        emitter.on(EventType.FIELD_UPDATED, received.append)
        with caplog.at_level("WARNING", logger="formstate.events"):
            emitter.emit(make_event())
        assert len(received) == 1
        assert "listener bug" in caplog.text

    def test_clear(self):
        emitter = EventEmitter()
        emitter.on(EventType.FIELD_UPDATED, lambda e: None)
        emitter.on_any(lambda e: None)
        emitter.clear()
        assert emitter.listener_count() == 0


class TestControllerEvents:
    """Test the events a form controller emits."""

    def test_set_emits_update_and_verdict(self):
        form = FormController({"email": ""}, form_id="signup")
        form.register_required_field("email")
        received = []
        form.events.on_any(received.append)
        form.set("email", "")
        assert [e.type for e in received] == [
            EventType.FIELD_UPDATED,
            EventType.VALIDATION_FAILED,
        ]
        assert received[1].payload["error"]["code"] == "required"
        assert all(e.form_id == "signup" for e in received)

    def test_touch_emits_touched(self):
        form = FormController({"email": ""})
        received = []
        form.events.on(EventType.FIELD_TOUCHED, received.append)
        form.touch("email")
        assert received[0].field == "email"

    def test_reset_emits_form_reset(self):
        form = FormController({"email": ""})
        received = []
        form.events.on(EventType.FORM_RESET, received.append)
        form.reset_to_initial()
        assert received[0].payload["to_state"] == "idle"
