"""formstate: typed form-state and validation engine.

formstate keeps the state of one form in one place and provides:
- Typed field identifiers (lenses) over dataclass or mapping models
- Sync validators, debounced async validators and whole-form validators
- Field dependencies with transitive revalidation
- Stale-result protection for async validation through per-field tickets
- A submit state machine with busy rejection and a failed-attempt counter
- Error display gating (touched or submitted at least once)
- Draft save and restore through a pluggable store
- Widget binding adapters and an event stream of every change

Basic usage:
    >>> from formstate import FormController
    >>> form = FormController({"email": ""}, form_id="signup")
    >>> form.register_required_field("email")
    >>> form.validate_form()
    False
    >>> form.set("email", "ada@example.com")
    >>> form.validate_form()
    True
"""

__version__ = "0.1.0"
__author__ = "formstate developers"

# Version info
VERSION = (0, 1, 0)

# Core exports
from formstate.binding import FieldBinding
from formstate.controller import FormController, SubmissionOutcome
from formstate.draft import Draft, DraftStore, InMemoryDraftStore
from formstate.errors import (
    DraftError,
    FieldError,
    FormError,
    InvalidStateTransitionError,
    RegistrationError,
    SubmissionError,
    UnknownFieldError,
)
from formstate.events import EventEmitter, FormEvent, Subscription
from formstate.fields import AttrLens, FieldLens, FieldSet, KeyLens, form_fields
from formstate.state import FieldState, FormSnapshot
from formstate.types import (
    EventType,
    FieldErrorCode,
    FormOptions,
    RevalidateMode,
    SubmissionStatus,
    SubmitState,
    ValidationMode,
)
from formstate.validation import SchemaValidator

# Package metadata
__all__ = [
    "__version__",
    "VERSION",
    "FormController",
    "SubmissionOutcome",
    "FieldBinding",
    "Draft",
    "DraftStore",
    "InMemoryDraftStore",
    "DraftError",
    "FieldError",
    "FormError",
    "InvalidStateTransitionError",
    "RegistrationError",
    "SubmissionError",
    "UnknownFieldError",
    "EventEmitter",
    "FormEvent",
    "Subscription",
    "AttrLens",
    "FieldLens",
    "FieldSet",
    "KeyLens",
    "form_fields",
    "FieldState",
    "FormSnapshot",
    "EventType",
    "FieldErrorCode",
    "FormOptions",
    "RevalidateMode",
    "SubmissionStatus",
    "SubmitState",
    "ValidationMode",
    "SchemaValidator",
]
