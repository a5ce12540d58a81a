"""Runtime state of a form: current model plus per-field interaction state.

FormStateStore is the single mutable record of a form. Only the
FormController and the collaborators it owns (scheduler, state machine)
write to it; everyone else reads immutable FormSnapshot copies.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional

from formstate.errors import FieldError
from formstate.types import SubmitState


@dataclass
class FieldState:
    """Dynamic per-field runtime state.

    Attributes:
        touched: The user has interacted with the field (blur/change)
        dirty: The value differs from the initial model's value
        pending: An async validation for the current ticket is outstanding
        error: Current error (sync or async), stored regardless of visibility
        async_error: Last applied async verdict for the current value
        ticket: Highest async validation ticket issued for the field
    """
    touched: bool = False
    dirty: bool = False
    pending: bool = False
    error: Optional[FieldError] = None
    async_error: Optional[FieldError] = None
    ticket: int = 0

    @property
    def is_valid(self) -> bool:
        return self.error is None

    def copy(self) -> "FieldState":
        return replace(self)

    def reset(self) -> None:
        """Clear interaction and validation state; the ticket keeps counting."""
        self.touched = False
        self.dirty = False
        self.pending = False
        self.error = None
        self.async_error = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "touched": self.touched,
            "dirty": self.dirty,
            "pending": self.pending,
            "ticket": self.ticket,
        }
        if self.error is not None:
            result["error"] = self.error.to_dict()
        return result


@dataclass(frozen=True)
class FormSnapshot:
    """Immutable view of a form at one point in time.

    Examples:
        >>> snap = FormSnapshot(form_id="f", model={}, submit_state=SubmitState.IDLE,
        ...                     submit_count=0, fields={})
        >>> snap.is_valid
        True
    """
    form_id: str
    model: Any
    submit_state: SubmitState
    submit_count: int
    fields: Dict[str, FieldState]

    @property
    def is_dirty(self) -> bool:
        return any(state.dirty for state in self.fields.values())

    @property
    def is_valid(self) -> bool:
        return all(state.error is None for state in self.fields.values())

    @property
    def is_validating(self) -> bool:
        return any(state.pending for state in self.fields.values())

    @property
    def first_error(self) -> Optional[str]:
        """Key of the first invalid field in declaration order."""
        for key, state in self.fields.items():
            if state.error is not None:
                return key
        return None

    def errors(self) -> Dict[str, FieldError]:
        return {key: state.error for key, state in self.fields.items() if state.error is not None}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization (the model is left as-is)."""
        return {
            "formId": self.form_id,
            "submitState": self.submit_state.value,
            "submitCount": self.submit_count,
            "isDirty": self.is_dirty,
            "isValid": self.is_valid,
            "fields": {key: state.to_dict() for key, state in self.fields.items()},
        }


@dataclass
class FormStateStore:
    """The mutable state record owned by a FormController.

    Submit state lives in the SubmissionStateMachine; snapshot() takes it as
    arguments so that a snapshot is always consistent with the machine.
    """
    form_id: str
    initial_model: Any
    model: Any
    fields: Dict[str, FieldState] = field(default_factory=dict)

    @classmethod
    def create(cls, form_id: str, initial_model: Any, keys: Iterable[str]) -> "FormStateStore":
        return cls(
            form_id=form_id,
            initial_model=initial_model,
            model=initial_model,
            fields={key: FieldState() for key in keys},
        )

    def field_state(self, key: str) -> FieldState:
        return self.fields[key]

    def next_ticket(self, key: str) -> int:
        state = self.fields[key]
        state.ticket += 1
        return state.ticket

    def is_current(self, key: str, ticket: int) -> bool:
        return self.fields[key].ticket == ticket

    def pending_keys(self) -> List[str]:
        return [key for key, state in self.fields.items() if state.pending]

    def snapshot(self, submit_state: SubmitState, submit_count: int) -> FormSnapshot:
        return FormSnapshot(
            form_id=self.form_id,
            model=self.model,
            submit_state=submit_state,
            submit_count=submit_count,
            fields={key: state.copy() for key, state in self.fields.items()},
        )


__all__ = [
    "FieldState",
    "FormSnapshot",
    "FormStateStore",
]
