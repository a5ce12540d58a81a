"""Submission state machine for the formstate engine.

The state machine enforces the submit lifecycle:

    idle | failed | succeeded --submit--> validating
    validating --all valid--> submitting
    validating --any invalid--> failed        (submit_count += 1)
    submitting --success--> succeeded
    submitting --failure--> failed            (submit_count += 1)
    any --reset--> idle

Every transition is recorded as a FormEvent and forwarded to an optional
listener (the controller's event emitter).

Usage:
    >>> sm = SubmissionStateMachine(form_id="signup")
    >>> sm.state
    <SubmitState.IDLE: 'idle'>
    >>> sm.transition_to(SubmitState.VALIDATING)
    >>> sm.transition_to(SubmitState.FAILED)
    >>> sm.submit_count
    1
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set

from formstate.errors import InvalidStateTransitionError
from formstate.events import FormEvent
from formstate.types import EventType, SubmitState

logger = logging.getLogger(__name__)


# Map target states to their corresponding event types
STATE_TO_EVENT_TYPE: Dict[SubmitState, EventType] = {
    SubmitState.IDLE: EventType.FORM_RESET,
    SubmitState.VALIDATING: EventType.SUBMISSION_VALIDATING,
    SubmitState.SUBMITTING: EventType.SUBMISSION_SUBMITTING,
    SubmitState.SUCCEEDED: EventType.SUBMISSION_SUCCEEDED,
    SubmitState.FAILED: EventType.SUBMISSION_FAILED,
}


# Maps each state to the set of states it can transition to.
# Any state may additionally return to IDLE through a reset.
VALID_TRANSITIONS: Dict[SubmitState, Set[SubmitState]] = {
    SubmitState.IDLE: {SubmitState.VALIDATING},
    SubmitState.VALIDATING: {SubmitState.SUBMITTING, SubmitState.FAILED},
    SubmitState.SUBMITTING: {SubmitState.SUCCEEDED, SubmitState.FAILED},
    SubmitState.SUCCEEDED: {SubmitState.VALIDATING},
    SubmitState.FAILED: {SubmitState.VALIDATING},
}

BUSY_STATES = frozenset({SubmitState.VALIDATING, SubmitState.SUBMITTING})


@dataclass
class SubmissionStateMachine:
    """Submit lifecycle of one form.

    Attributes:
        form_id: Identifier of the owning form
        state: Current submit state
        submit_count: Number of failed submit attempts; drives error display

    Examples:
        >>> sm = SubmissionStateMachine(form_id="f")
        >>> sm.can_transition_to(SubmitState.SUBMITTING)
        False
        >>> sm.can_transition_to(SubmitState.VALIDATING)
        True
    """

    form_id: str
    state: SubmitState = SubmitState.IDLE
    submit_count: int = 0
    listener: Optional[Callable[[FormEvent], None]] = field(default=None, repr=False)
    _events: List[FormEvent] = field(default_factory=list, init=False, repr=False)

    def can_transition_to(self, target_state: SubmitState) -> bool:
        """Check if transition to target state is valid."""
        if target_state == SubmitState.IDLE:
            return True
        return target_state in VALID_TRANSITIONS.get(self.state, set())

    def is_busy(self) -> bool:
        """True while a submit attempt is validating or submitting."""
        return self.state in BUSY_STATES

    def transition_to(self, target_state: SubmitState, payload: Optional[Dict[str, Any]] = None) -> None:
        """Transition to a new state and record a transition event.

        Entering FAILED increments submit_count; entering IDLE (reset)
        clears it.

        Raises:
            InvalidStateTransitionError: If the transition is not allowed
        """
        if not self.can_transition_to(target_state):
            allowed = sorted(s.value for s in VALID_TRANSITIONS[self.state] | {SubmitState.IDLE})
            raise InvalidStateTransitionError(
                current_state=self.state,
                target_state=target_state,
                message=(
                    f"Invalid submit state transition: cannot transition from "
                    f"'{self.state.value}' to '{target_state.value}'. "
                    f"Valid transitions from '{self.state.value}' are: {', '.join(allowed)}"
                ),
            )

        old_state = self.state
        self.state = target_state
        if target_state == SubmitState.FAILED:
            self.submit_count += 1
        elif target_state == SubmitState.IDLE:
            self.submit_count = 0

        logger.debug("Form '%s' submit state %s -> %s", self.form_id, old_state.value, target_state.value)
        self._emit_event(target_state, old_state, payload)

    def _emit_event(
        self,
        new_state: SubmitState,
        old_state: SubmitState,
        payload: Optional[Dict[str, Any]],
    ) -> None:
        body: Dict[str, Any] = {
            "from_state": old_state.value,
            "to_state": new_state.value,
            "submit_count": self.submit_count,
        }
        if payload:
            body.update(payload)
        event = FormEvent(
            event_id=f"evt_{uuid.uuid4().hex[:16]}",
            type=STATE_TO_EVENT_TYPE[new_state],
            form_id=self.form_id,
            ts=datetime.now(timezone.utc),
            payload=body,
        )
        self._events.append(event)
        if self.listener is not None:
            self.listener(event)

    def get_events(self) -> List[FormEvent]:
        """Get all transition events in chronological order."""
        return list(self._events)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the state machine to a dictionary.

        Examples:
            >>> SubmissionStateMachine(form_id="f", state=SubmitState.FAILED, submit_count=2).to_dict()
            {'formId': 'f', 'state': 'failed', 'submitCount': 2}
        """
        return {
            "formId": self.form_id,
            "state": self.state.value,
            "submitCount": self.submit_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SubmissionStateMachine":
        """Deserialize a state machine from a dictionary."""
        state = data["state"]
        if isinstance(state, str):
            state = SubmitState(state)
        return cls(
            form_id=data["formId"],
            state=state,
            submit_count=data.get("submitCount", 0),
        )


__all__ = [
    "SubmissionStateMachine",
    "VALID_TRANSITIONS",
    "BUSY_STATES",
]
