"""Error types for the formstate engine.

Two kinds of failure live here:

- FieldError is a value. Validators produce it, the controller stores it on
  the field, and bindings show it once the display-gating rule allows. It is
  never raised.
- FormError and its subclasses are exceptions raised (or, for submissions,
  returned inside a SubmissionOutcome) to the code driving the form.
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from formstate.types import FieldErrorCode, SubmitState


@dataclass(frozen=True)
class FieldError:
    """Per-field validation error details.

    Attributes:
        field: Dot-notation field key (e.g., "email", "address.city")
        code: Specific validation error code
        message: Human-readable error description
        expected: Optional - what was expected (type, format, enum values, etc.)
        received: Optional - what was actually received

    Examples:
        >>> err = FieldError(
        ...     field="email",
        ...     code=FieldErrorCode.INVALID_FORMAT,
        ...     message="Invalid email format",
        ... )
        >>> err.to_dict()["code"]
        'invalid_format'
    """
    field: str
    code: FieldErrorCode
    message: str
    expected: Optional[Any] = None
    received: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "field": self.field,
            "code": self.code.value if isinstance(self.code, FieldErrorCode) else self.code,
            "message": self.message,
        }
        if self.expected is not None:
            result["expected"] = self.expected
        if self.received is not None:
            result["received"] = self.received
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldError":
        """Create FieldError from dict."""
        code = data["code"]
        if isinstance(code, str):
            code = FieldErrorCode(code)
        return cls(
            field=data["field"],
            code=code,
            message=data["message"],
            expected=data.get("expected"),
            received=data.get("received"),
        )

    @classmethod
    def custom(cls, field: str, message: str) -> "FieldError":
        return cls(field=field, code=FieldErrorCode.CUSTOM, message=message)

    @classmethod
    def validator_failed(cls, field: str, exc: BaseException) -> "FieldError":
        return cls(
            field=field,
            code=FieldErrorCode.VALIDATOR_FAILED,
            message="validator failed",
            received=type(exc).__name__,
        )


class FormError(Exception):
    """Base class for all exceptions raised by formstate."""


class RegistrationError(FormError):
    """Raised when form setup is inconsistent.

    Covers duplicate fields, unknown fields, a validator slot filled twice,
    dependency cycles, and registrations after the form has been submitted.
    Setup code should let it propagate: a half-registered form is unusable.

    Attributes:
        field: Field key the registration was about, if any
        reason: Short machine-readable reason
    """

    def __init__(self, message: str, field: Optional[str] = None, reason: str = "invalid"):
        self.field = field
        self.reason = reason
        super().__init__(message)


class UnknownFieldError(RegistrationError):
    """Raised when a field identifier does not belong to the form."""

    def __init__(self, field: str):
        super().__init__(f"Unknown field '{field}'", field=field, reason="unknown_field")


class InvalidStateTransitionError(FormError):
    """Raised when attempting an invalid submit-state transition.

    Attributes:
        current_state: The current state before the attempted transition
        target_state: The target state that was attempted
    """

    def __init__(self, current_state: SubmitState, target_state: SubmitState, message: str):
        self.current_state = current_state
        self.target_state = target_state
        super().__init__(message)


class SubmissionError(FormError):
    """Aggregate of everything that made a submit attempt fail.

    Attributes:
        field_errors: Current error of every invalid field, keyed by field
        cause: Exception raised by the success callback, if that is what failed
    """

    def __init__(
        self,
        field_errors: Optional[Mapping[str, FieldError]] = None,
        cause: Optional[BaseException] = None,
    ):
        self.field_errors: Dict[str, FieldError] = dict(field_errors or {})
        self.cause = cause
        if self.field_errors:
            message = f"{len(self.field_errors)} field(s) failed validation: " + ", ".join(
                self.field_errors
            )
        elif cause is not None:
            message = f"submit handler failed: {cause}"
        else:
            message = "submit handler reported failure"
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "message": str(self),
            "fields": [error.to_dict() for error in self.field_errors.values()],
        }
        if self.cause is not None:
            result["cause"] = repr(self.cause)
        return result


class DraftError(FormError):
    """Raised when saving, loading or clearing a draft fails.

    The original exception, if any, is chained as __cause__.

    Attributes:
        operation: "save", "load" or "clear"
    """

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"failed to {operation} draft: {message}")


__all__ = [
    "FieldError",
    "FormError",
    "RegistrationError",
    "UnknownFieldError",
    "InvalidStateTransitionError",
    "SubmissionError",
    "DraftError",
]
