"""Widget binding adapters.

A FieldBinding is the glue between one form field and one widget: the
widget reads ``get()``, writes ``set()``, reports blur through ``touch()``,
listens with ``subscribe()`` and shows ``display_error()``. Widgets never
see the form's state directly.

The bind_* constructors on FormController build bindings with the value
coercion each widget kind needs (text is always a str, a switch is always a
bool, a multiselect is a de-duplicated list, a number input speaks float to
the widget and Decimal to the model).
"""

from decimal import Decimal, InvalidOperation
import math
from typing import TYPE_CHECKING, Any, Callable, Dict, Generic, List, Optional, TypeVar

from formstate.errors import FieldError
from formstate.events import FormEvent, Subscription
from formstate.fields import FieldLens
from formstate.types import EventType

if TYPE_CHECKING:
    from formstate.controller import FormController

V = TypeVar("V")

# events after which a widget should re-read its field
FIELD_EVENTS = (
    EventType.FIELD_UPDATED,
    EventType.FIELD_TOUCHED,
    EventType.FIELD_RESET,
    EventType.VALIDATION_STARTED,
    EventType.VALIDATION_PASSED,
    EventType.VALIDATION_FAILED,
)


class FieldBinding(Generic[V]):
    """Adapter exposing one field to one widget.

    Attributes:
        lens: The bound field
        kind: Widget kind this binding was built for ("text_input", ...)
        live: Route writes and blurs through the async validators
    """

    def __init__(
        self,
        controller: "FormController",
        lens: FieldLens,
        kind: str = "generic",
        parse: Optional[Callable[[Any], V]] = None,
        render: Optional[Callable[[V], Any]] = None,
        live: bool = False,
    ):
        self._controller = controller
        self.lens = lens
        self.kind = kind
        self.live = live
        self._parse = parse
        self._render = render

    @property
    def key(self) -> str:
        return self.lens.key

    def get(self) -> Any:
        """Current value in the widget's representation."""
        value = self._controller.get(self.lens)
        return self._render(value) if self._render is not None else value

    def set(self, value: Any) -> None:
        """Write a widget value into the form.

        Values the parser rejects (returns None for a non-None input) are
        ignored, the way a number input ignores a non-finite reading.
        """
        parsed = self._parse(value) if self._parse is not None else value
        if parsed is None and value is not None and self._parse is not None:
            return
        if self.live:
            self._controller.set_async(self.lens, parsed)
        else:
            self._controller.set(self.lens, parsed)

    def touch(self) -> None:
        if self.live:
            self._controller.touch_async(self.lens)
        else:
            self._controller.touch(self.lens)

    def subscribe(self, on_change: Callable[[FormEvent], None]) -> Subscription:
        """Call ``on_change`` whenever the field's value or status changes."""
        return self._controller.events.subscribe(FIELD_EVENTS, on_change, field=self.key)

    def display_error(self) -> Optional[FieldError]:
        """The field's error if the user may see it yet, else None."""
        return self._controller.display_error(self.lens)

    def error_message(self) -> Optional[str]:
        error = self.display_error()
        return error.message if error is not None else None

    @property
    def required(self) -> bool:
        return self._controller.is_required(self.lens)

    @property
    def description(self) -> Optional[str]:
        return self._controller.field_description(self.lens)

    @property
    def pending(self) -> bool:
        return self._controller.field_state(self.lens).pending

    def presentation(self) -> Dict[str, Any]:
        """Everything a field-like widget renders, in one dict."""
        return {
            "value": self.get(),
            "required": self.required,
            "description": self.description,
            "error": self.error_message(),
            "pending": self.pending,
        }

    def __repr__(self) -> str:
        return f"FieldBinding({self.key!r}, kind={self.kind!r})"


def text_value(value: Any) -> str:
    return "" if value is None else str(value)


def bool_value(value: Any) -> bool:
    return bool(value)


def unique_list(values: Any) -> List[Any]:
    """Order-preserving de-duplication of a multiselect selection."""
    if values is None:
        return []
    seen: List[Any] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


def decimal_from_float(value: Any) -> Optional[Decimal]:
    """Convert a number widget reading to Decimal; None for non-finite input.

    Examples:
        >>> decimal_from_float(12.5)
        Decimal('12.5')
        >>> decimal_from_float(float("nan")) is None
        True
    """
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    try:
        return Decimal(repr(number))
    except InvalidOperation:
        return None


def float_from_decimal(value: Any) -> float:
    if value is None:
        return 0.0
    return float(value)


__all__ = [
    "FIELD_EVENTS",
    "FieldBinding",
    "text_value",
    "bool_value",
    "unique_list",
    "decimal_from_float",
    "float_from_decimal",
]
