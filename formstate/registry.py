"""Field registry: static configuration of every field in a form.

The registry is filled during form setup and frozen when the form is first
submitted. Every registration is checked eagerly so that a misconfigured
form fails at construction time rather than on the first keystroke.
"""

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Mapping, Optional, Union

from typing_extensions import TypeAlias

from formstate.errors import FieldError, RegistrationError, UnknownFieldError
from formstate.fields import FieldLens, FieldRef, FieldSet, field_key

logger = logging.getLogger(__name__)

ValidatorResult: TypeAlias = Union[None, FieldError, str]
SyncValidator: TypeAlias = Callable[[Any, Any], ValidatorResult]
AsyncValidator: TypeAlias = Callable[[Any, Any], Awaitable[ValidatorResult]]
FormValidator: TypeAlias = Callable[[Any], Mapping[str, Union[FieldError, str]]]
FocusHandler: TypeAlias = Callable[[], None]


@dataclass
class FieldMeta:
    """Static configuration for one field.

    Attributes:
        lens: Typed identifier used to read and write the field
        order: Declaration index, used for deterministic iteration
        required: Whether an empty value is an error
        description: Human-readable help text for widgets
        sync_validators: Validators run inline, in registration order
        async_validator: Optional coroutine validator (single slot)
        debounce_ms: Debounce window for the async validator
        focus_handler: Optional callback moving UI focus to the field
    """
    lens: FieldLens
    order: int
    required: bool = False
    description: Optional[str] = None
    sync_validators: List[SyncValidator] = field(default_factory=list)
    async_validator: Optional[AsyncValidator] = None
    debounce_ms: int = 0
    focus_handler: Optional[FocusHandler] = None

    @property
    def key(self) -> str:
        return self.lens.key

    @property
    def has_validators(self) -> bool:
        return bool(self.sync_validators) or self.async_validator is not None or self.required


class FieldRegistry:
    """Per-form registry of field metadata and validators.

    Examples:
        >>> from formstate.fields import KeyLens
        >>> registry = FieldRegistry(FieldSet([KeyLens("name")]))
        >>> registry.register_required_field("name")
        >>> registry.meta("name").required
        True
    """

    def __init__(self, fields: FieldSet):
        self._meta: Dict[str, FieldMeta] = {}
        self._form_validators: List[FormValidator] = []
        self._frozen = False
        for lens in fields:
            self.declare(lens)

    def declare(self, lens: FieldLens) -> FieldMeta:
        """Add a field to the registry.

        Raises:
            RegistrationError: If the key is already declared or the registry is frozen
        """
        self.ensure_open(lens.key)
        if lens.key in self._meta:
            raise RegistrationError(
                f"Field '{lens.key}' is already registered",
                field=lens.key,
                reason="duplicate_field",
            )
        meta = FieldMeta(lens=lens, order=len(self._meta))
        self._meta[lens.key] = meta
        return meta

    def freeze(self) -> None:
        """Reject any further registration (called on first submission)."""
        if not self._frozen:
            logger.debug("Field registry frozen with %d fields", len(self._meta))
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def meta(self, field: FieldRef) -> FieldMeta:
        """Return the metadata of a field.

        Raises:
            UnknownFieldError: If the field does not belong to this form
        """
        key = field_key(field)
        meta = self._meta.get(key)
        if meta is None or (isinstance(field, FieldLens) and meta.lens != field):
            raise UnknownFieldError(key)
        return meta

    def lens(self, field: FieldRef) -> FieldLens:
        return self.meta(field).lens

    def keys(self) -> List[str]:
        return list(self._meta)

    def __iter__(self) -> Iterator[FieldMeta]:
        return iter(self._meta.values())

    def __contains__(self, field: object) -> bool:
        return isinstance(field, (str, FieldLens)) and field_key(field) in self._meta

    def register_required_field(self, field: FieldRef) -> None:
        meta = self._open_meta(field)
        meta.required = True

    def unregister_required_field(self, field: FieldRef) -> None:
        meta = self._open_meta(field)
        meta.required = False

    def register_field_description(self, field: FieldRef, text: str) -> None:
        meta = self._open_meta(field)
        meta.description = text

    def clear_field_description(self, field: FieldRef) -> None:
        meta = self._open_meta(field)
        meta.description = None

    def register_field_validator(
        self, field: FieldRef, validator: SyncValidator, replace: bool = False
    ) -> None:
        """Attach a synchronous validator to a field.

        Args:
            field: Field to validate
            validator: ``(model, value) -> None | FieldError | str``
            replace: Drop every previously registered sync validator first

        Raises:
            RegistrationError: If the same validator is already attached,
                the validator is a coroutine function, or the field is unknown
        """
        meta = self._open_meta(field)
        if inspect.iscoroutinefunction(validator):
            raise RegistrationError(
                f"Validator for '{meta.key}' is a coroutine function; "
                f"use register_async_field_validator",
                field=meta.key,
                reason="async_validator_in_sync_slot",
            )
        if replace:
            meta.sync_validators = [validator]
            return
        if validator in meta.sync_validators:
            raise RegistrationError(
                f"Validator {getattr(validator, '__name__', validator)!r} is already "
                f"registered for '{meta.key}'",
                field=meta.key,
                reason="duplicate_validator",
            )
        meta.sync_validators.append(validator)

    def register_async_field_validator(
        self,
        field: FieldRef,
        debounce_ms: int,
        validator: AsyncValidator,
        replace: bool = False,
    ) -> None:
        """Attach the asynchronous validator of a field.

        A field has a single async slot; filling it twice requires replace=True.

        Raises:
            RegistrationError: If the slot is taken, the debounce is negative,
                or the field is unknown
        """
        meta = self._open_meta(field)
        if debounce_ms < 0:
            raise RegistrationError(
                f"Debounce for '{meta.key}' must not be negative",
                field=meta.key,
                reason="invalid_debounce",
            )
        if meta.async_validator is not None and not replace:
            raise RegistrationError(
                f"An async validator is already registered for '{meta.key}'",
                field=meta.key,
                reason="duplicate_validator",
            )
        meta.async_validator = validator
        meta.debounce_ms = debounce_ms

    def register_form_validator(self, validator: FormValidator) -> None:
        """Attach a whole-model validator returning ``{field_key: error}``."""
        self.ensure_open(None)
        if validator in self._form_validators:
            raise RegistrationError(
                "Form validator is already registered", reason="duplicate_validator"
            )
        self._form_validators.append(validator)

    @property
    def form_validators(self) -> List[FormValidator]:
        return list(self._form_validators)

    def register_focus_handler(self, field: FieldRef, handler: FocusHandler) -> None:
        meta = self._open_meta(field)
        meta.focus_handler = handler

    def _open_meta(self, field: FieldRef) -> FieldMeta:
        self.ensure_open(field_key(field))
        return self.meta(field)

    def ensure_open(self, key: Optional[str]) -> None:
        if self._frozen:
            raise RegistrationError(
                "Form has already been submitted; registrations are closed",
                field=key,
                reason="registry_frozen",
            )


__all__ = [
    "ValidatorResult",
    "SyncValidator",
    "AsyncValidator",
    "FormValidator",
    "FocusHandler",
    "FieldMeta",
    "FieldRegistry",
]
