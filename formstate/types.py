"""Core type definitions for the formstate engine.

This module defines the fundamental types used throughout the package:
- SubmitState: Lifecycle states of a form submission attempt
- SubmissionStatus: Outcome categories returned by submit_in
- ValidationMode / RevalidateMode: When validators and dependents run
- FieldErrorCode: Validation error codes for individual fields
- EventType: Event types emitted on the form's event stream
- FormOptions: Per-form configuration

These types form the contract between widget bindings and the form
controller, keeping error handling and state reporting consistent.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, NewType


ValidationTicket = NewType("ValidationTicket", int)
"""Per-field, strictly increasing sequence number for async validation."""


class SubmitState(str, Enum):
    """Submission lifecycle states.

    A submit attempt always passes through VALIDATING. FAILED and SUCCEEDED
    are resting states from which a new attempt may start.
    """
    IDLE = "idle"
    VALIDATING = "validating"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class SubmissionStatus(str, Enum):
    """Outcome of a single submit_in call."""
    SUCCEEDED = "succeeded"
    INVALID = "invalid"
    FAILED = "failed"
    BUSY = "busy"


class ValidationMode(str, Enum):
    """When a field's own validators run."""
    ON_CHANGE = "on_change"
    ON_BLUR = "on_blur"
    ON_SUBMIT = "on_submit"


class RevalidateMode(str, Enum):
    """When dependents of a changed field are revalidated."""
    ON_CHANGE = "on_change"
    ON_BLUR = "on_blur"
    ON_SUBMIT = "on_submit"


class FieldErrorCode(str, Enum):
    """Validation error codes for individual field failures.

    VALIDATOR_FAILED is reserved for validators that crashed instead of
    returning a verdict.
    """
    REQUIRED = "required"
    INVALID_TYPE = "invalid_type"
    INVALID_FORMAT = "invalid_format"
    INVALID_VALUE = "invalid_value"
    TOO_LONG = "too_long"
    TOO_SHORT = "too_short"
    VALIDATOR_FAILED = "validator_failed"
    CUSTOM = "custom"


class EventType(str, Enum):
    """Event types for the form event stream."""
    FIELD_UPDATED = "field.updated"
    FIELD_TOUCHED = "field.touched"
    FIELD_RESET = "field.reset"
    VALIDATION_STARTED = "validation.started"
    VALIDATION_PASSED = "validation.passed"
    VALIDATION_FAILED = "validation.failed"
    VALIDATION_DISCARDED = "validation.discarded"
    SUBMISSION_VALIDATING = "submission.validating"
    SUBMISSION_SUBMITTING = "submission.submitting"
    SUBMISSION_SUCCEEDED = "submission.succeeded"
    SUBMISSION_FAILED = "submission.failed"
    SUBMISSION_BUSY = "submission.busy"
    DRAFT_SAVED = "draft.saved"
    DRAFT_LOADED = "draft.loaded"
    DRAFT_CLEARED = "draft.cleared"
    FORM_RESET = "form.reset"


@dataclass(frozen=True)
class FormOptions:
    """Configuration for a single form controller.

    Attributes:
        validate_mode: When a field's own validators run
        revalidate_mode: When dependents of a changed field are revalidated
        enforce_required: Treat empty values of required fields as errors
        default_debounce_ms: Debounce for async validators registered
            without an explicit window
        focus_first_error_on_submit: Invoke the focus handler of the first
            invalid field after a failed submit
        touch_unbound_fields_on_submit_failure: Whether a failed submit also
            marks fields without a widget binding as touched

    Examples:
        >>> opts = FormOptions.from_dict({"validateMode": "on_blur"})
        >>> opts.validate_mode
        <ValidationMode.ON_BLUR: 'on_blur'>
    """
    validate_mode: ValidationMode = ValidationMode.ON_CHANGE
    revalidate_mode: RevalidateMode = RevalidateMode.ON_CHANGE
    enforce_required: bool = True
    default_debounce_ms: int = 0
    focus_first_error_on_submit: bool = True
    touch_unbound_fields_on_submit_failure: bool = True

    def __post_init__(self):
        if isinstance(self.validate_mode, str):
            object.__setattr__(self, "validate_mode", ValidationMode(self.validate_mode))
        if isinstance(self.revalidate_mode, str):
            object.__setattr__(self, "revalidate_mode", RevalidateMode(self.revalidate_mode))
        if self.default_debounce_ms < 0:
            raise ValueError("default_debounce_ms must not be negative")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "validateMode": self.validate_mode.value,
            "revalidateMode": self.revalidate_mode.value,
            "enforceRequired": self.enforce_required,
            "defaultDebounceMs": self.default_debounce_ms,
            "focusFirstErrorOnSubmit": self.focus_first_error_on_submit,
            "touchUnboundFieldsOnSubmitFailure": self.touch_unbound_fields_on_submit_failure,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FormOptions":
        """Create FormOptions from dict, falling back to defaults for missing keys."""
        defaults = cls()
        return cls(
            validate_mode=ValidationMode(data.get("validateMode", defaults.validate_mode)),
            revalidate_mode=RevalidateMode(data.get("revalidateMode", defaults.revalidate_mode)),
            enforce_required=data.get("enforceRequired", defaults.enforce_required),
            default_debounce_ms=data.get("defaultDebounceMs", defaults.default_debounce_ms),
            focus_first_error_on_submit=data.get(
                "focusFirstErrorOnSubmit", defaults.focus_first_error_on_submit
            ),
            touch_unbound_fields_on_submit_failure=data.get(
                "touchUnboundFieldsOnSubmitFailure",
                defaults.touch_unbound_fields_on_submit_failure,
            ),
        )


__all__ = [
    "ValidationTicket",
    "SubmitState",
    "SubmissionStatus",
    "ValidationMode",
    "RevalidateMode",
    "FieldErrorCode",
    "EventType",
    "FormOptions",
]
