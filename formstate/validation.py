"""Validator execution helpers and JSON Schema backed field validators.

Field validators are plain callables ``(model, value) -> verdict`` where the
verdict is None (valid), a FieldError, or a message string. This module
normalizes verdicts, runs a field's synchronous validators, and provides
SchemaValidator, which checks a single field value against a JSON Schema
fragment and reports the first violation as a FieldError.
"""

import logging
from collections.abc import Collection
from typing import Any, Dict, Optional

import jsonschema
from jsonschema import Draft7Validator
from jsonschema.exceptions import best_match

from formstate.errors import FieldError
from formstate.registry import FieldMeta, ValidatorResult
from formstate.types import FieldErrorCode

logger = logging.getLogger(__name__)


def is_empty(value: Any) -> bool:
    """Return True for values a required field must not hold.

    None, blank strings and empty collections are empty; False and 0 are not.

    Examples:
        >>> is_empty("  ")
        True
        >>> is_empty(0)
        False
    """
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, Collection):
        return len(value) == 0
    return False


def normalize_result(key: str, result: ValidatorResult) -> Optional[FieldError]:
    """Turn a validator verdict into an optional FieldError for ``key``.

    Raises:
        TypeError: If the validator returned something that is not a verdict
    """
    if result is None:
        return None
    if isinstance(result, FieldError):
        if result.field != key:
            return FieldError(
                field=key,
                code=result.code,
                message=result.message,
                expected=result.expected,
                received=result.received,
            )
        return result
    if isinstance(result, str):
        return FieldError.custom(key, result)
    raise TypeError(
        f"validator for '{key}' returned {type(result).__name__}; "
        f"expected None, FieldError or str"
    )


def required_error(key: str) -> FieldError:
    return FieldError(
        field=key,
        code=FieldErrorCode.REQUIRED,
        message=f"Field '{key}' is required but was not provided",
        expected="required field",
    )


def run_sync_validators(
    meta: FieldMeta, model: Any, value: Any, enforce_required: bool = True
) -> Optional[FieldError]:
    """Run the required check and the sync validators of one field.

    Validators run in registration order and the first error wins. A
    validator that raises is reported as a VALIDATOR_FAILED error.

    Returns:
        The field's sync error, or None if every check passed
    """
    if enforce_required and meta.required and is_empty(value):
        return required_error(meta.key)

    for validator in meta.sync_validators:
        try:
            error = normalize_result(meta.key, validator(model, value))
        except Exception as exc:
            logger.warning("Sync validator for '%s' raised", meta.key, exc_info=True)
            return FieldError.validator_failed(meta.key, exc)
        if error is not None:
            return error
    return None


class SchemaValidator:
    """Sync field validator checking a value against a JSON Schema fragment.

    Wraps jsonschema's Draft 7 validator and translates the first violation
    into a FieldError with an error code and an actionable message.

    Attributes:
        schema: The JSON Schema fragment describing one field value

    Examples:
        >>> check = SchemaValidator({"type": "string", "minLength": 3})
        >>> check(None, "abcd") is None
        True
        >>> check.validate_value("email", "ab").code
        <FieldErrorCode.TOO_SHORT: 'too_short'>
    """

    def __init__(self, schema: Dict[str, Any], field: Optional[str] = None) -> None:
        """Initialize with a JSON Schema fragment.

        Args:
            schema: Schema for the field value (Draft 7 or compatible)
            field: Field key used in error messages when not known at call time

        Raises:
            jsonschema.SchemaError: If the provided schema is invalid
        """
        Draft7Validator.check_schema(schema)
        self.schema = schema
        self.field = field
        self.validator = Draft7Validator(schema, format_checker=Draft7Validator.FORMAT_CHECKER)

    def __call__(self, model: Any, value: Any) -> Optional[FieldError]:
        return self.validate_value(self.field or "value", value)

    def validate_value(self, key: str, value: Any) -> Optional[FieldError]:
        """Validate a single value and return its first error, if any."""
        error = best_match(self.validator.iter_errors(value))
        if error is None:
            return None
        return self._translate_error(key, error)

    def _translate_error(self, key: str, error: jsonschema.ValidationError) -> FieldError:
        """Translate a jsonschema ValidationError to a FieldError.

        Error mapping:
            - 'required' property errors -> REQUIRED
            - 'type' errors -> INVALID_TYPE
            - 'format' and 'pattern' errors -> INVALID_FORMAT
            - 'enum' or 'const' errors -> INVALID_VALUE
            - 'minLength' / 'minItems' errors -> TOO_SHORT
            - 'maxLength' / 'maxItems' errors -> TOO_LONG
            - Numeric range errors -> INVALID_VALUE
            - Anything else -> CUSTOM
        """
        path = ".".join([key, *(str(p) for p in error.path)])

        if error.validator == "required":
            missing_prop = error.message.split("'")[1] if "'" in error.message else "field"
            full_path = f"{path}.{missing_prop}"
            return FieldError(
                field=key,
                code=FieldErrorCode.REQUIRED,
                message=f"Field '{full_path}' is required but was not provided",
                expected="required field",
            )

        if error.validator == "type":
            return FieldError(
                field=key,
                code=FieldErrorCode.INVALID_TYPE,
                message=(
                    f"Field '{path}' has invalid type. Expected {error.validator_value}, "
                    f"got {type(error.instance).__name__}"
                ),
                expected=error.validator_value,
                received=type(error.instance).__name__,
            )

        if error.validator == "format":
            return FieldError(
                field=key,
                code=FieldErrorCode.INVALID_FORMAT,
                message=f"Field '{path}' has invalid format. Expected format: {error.validator_value}",
                expected=error.validator_value,
                received=error.instance,
            )

        if error.validator in ("enum", "const"):
            return FieldError(
                field=key,
                code=FieldErrorCode.INVALID_VALUE,
                message=f"Field '{path}' has invalid value. Must be one of: {error.validator_value}",
                expected=error.validator_value,
                received=error.instance,
            )

        if error.validator in ("minLength", "minItems"):
            actual = len(error.instance) if error.instance else 0
            return FieldError(
                field=key,
                code=FieldErrorCode.TOO_SHORT,
                message=f"Field '{path}' is too short. Minimum length: {error.validator_value}, got: {actual}",
                expected=f"minimum {error.validator_value}",
                received=actual,
            )

        if error.validator in ("maxLength", "maxItems"):
            actual = len(error.instance) if error.instance else 0
            return FieldError(
                field=key,
                code=FieldErrorCode.TOO_LONG,
                message=f"Field '{path}' is too long. Maximum length: {error.validator_value}, got: {actual}",
                expected=f"maximum {error.validator_value}",
                received=actual,
            )

        if error.validator in ("minimum", "maximum", "exclusiveMinimum", "exclusiveMaximum"):
            return FieldError(
                field=key,
                code=FieldErrorCode.INVALID_VALUE,
                message=f"Field '{path}' violates {error.validator} constraint: {error.validator_value}",
                expected=f"{error.validator}: {error.validator_value}",
                received=error.instance,
            )

        if error.validator == "pattern":
            return FieldError(
                field=key,
                code=FieldErrorCode.INVALID_FORMAT,
                message=f"Field '{path}' does not match required pattern: {error.validator_value}",
                expected=f"pattern: {error.validator_value}",
                received=error.instance,
            )

        return FieldError(
            field=key,
            code=FieldErrorCode.CUSTOM,
            message=f"Field '{path}' validation failed: {error.message}",
            expected=error.validator_value,
            received=error.instance,
        )


__all__ = [
    "is_empty",
    "normalize_result",
    "required_error",
    "run_sync_validators",
    "SchemaValidator",
]
