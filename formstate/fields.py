"""Typed field identifiers (lenses) for form models.

A lens names one field of a model and knows how to read it and how to build
a new model with that field replaced. Models are treated as immutable values:
validators and drafts always see a consistent copy, and a write never mutates
a model someone else is holding.

Two lens kinds cover the usual model shapes:
- AttrLens for dataclasses and plain attribute objects (nested paths allowed)
- KeyLens for mapping models

Usage:
    >>> from dataclasses import dataclass
    >>> @dataclass(frozen=True)
    ... class Signup:
    ...     email: str
    ...     age: int
    >>> fields = form_fields(Signup)
    >>> fields.email.key
    'email'
    >>> fields.age.set(Signup("a@b.c", 1), 30)
    Signup(email='a@b.c', age=30)
"""

import copy
import dataclasses
from typing import Any, Dict, Generic, Iterator, List, Mapping, Optional, Sequence, TypeVar, Union, get_type_hints

from formstate.errors import RegistrationError

M = TypeVar("M")
V = TypeVar("V")


class FieldLens(Generic[M, V]):
    """Typed handle naming one field of a model type.

    Attributes:
        key: Dot-notation path of the field within the model
        value_type: Declared type of the field value (informational)
    """

    def __init__(self, key: str, value_type: Any = Any):
        if not key:
            raise ValueError("field key must not be empty")
        self.key = key
        self.value_type = value_type

    def get(self, model: M) -> V:
        raise NotImplementedError

    def set(self, model: M, value: V) -> M:
        raise NotImplementedError

    def __eq__(self, other: object) -> bool:
        return type(other) is type(self) and other.key == self.key  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.key))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.key!r})"


def _replace_attr(obj: Any, name: str, value: Any) -> Any:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.replace(obj, **{name: value})
    clone = copy.copy(obj)
    setattr(clone, name, value)
    return clone


class AttrLens(FieldLens[M, V]):
    """Lens over an attribute path of a dataclass or plain object."""

    def __init__(self, key: str, value_type: Any = Any):
        super().__init__(key, value_type)
        self._path = key.split(".")

    def get(self, model: M) -> V:
        target: Any = model
        for name in self._path:
            target = getattr(target, name)
        return target

    def set(self, model: M, value: V) -> M:
        return self._set_path(model, self._path, value)

    def _set_path(self, obj: Any, path: List[str], value: Any) -> Any:
        head = path[0]
        if len(path) == 1:
            return _replace_attr(obj, head, value)
        return _replace_attr(obj, head, self._set_path(getattr(obj, head), path[1:], value))


class KeyLens(FieldLens[Mapping[str, Any], V]):
    """Lens over a key of a mapping model (nested mappings via dotted keys)."""

    def __init__(self, key: str, value_type: Any = Any):
        super().__init__(key, value_type)
        self._path = key.split(".")

    def get(self, model: Mapping[str, Any]) -> V:
        target: Any = model
        for name in self._path:
            target = target[name]
        return target

    def set(self, model: Mapping[str, Any], value: V) -> Dict[str, Any]:
        return self._set_path(model, self._path, value)

    def _set_path(self, obj: Mapping[str, Any], path: List[str], value: Any) -> Dict[str, Any]:
        clone = dict(obj)
        head = path[0]
        if len(path) == 1:
            clone[head] = value
        else:
            clone[head] = self._set_path(obj[head], path[1:], value)
        return clone


FieldRef = Union[FieldLens, str]
"""Anything the controller accepts as a field identifier."""


def field_key(field: FieldRef) -> str:
    """Return the key of a lens, or the string itself."""
    if isinstance(field, FieldLens):
        return field.key
    if isinstance(field, str):
        return field
    raise TypeError(f"expected a FieldLens or str, got {type(field).__name__}")


class FieldSet:
    """Ordered, attribute-accessible collection of lenses for one model type.

    Keys must be unique; nested keys are reachable through ``fields["a.b"]``.

    Examples:
        >>> fields = FieldSet([KeyLens("name"), KeyLens("email")])
        >>> [lens.key for lens in fields]
        ['name', 'email']
        >>> fields.email
        KeyLens('email')
    """

    def __init__(self, lenses: Sequence[FieldLens]):
        self._lenses: Dict[str, FieldLens] = {}
        for lens in lenses:
            if lens.key in self._lenses:
                raise RegistrationError(
                    f"Field '{lens.key}' is declared more than once",
                    field=lens.key,
                    reason="duplicate_field",
                )
            self._lenses[lens.key] = lens

    def __getattr__(self, name: str) -> FieldLens:
        lenses = self.__dict__.get("_lenses", {})
        try:
            return lenses[name]
        except KeyError:
            raise AttributeError(name) from None

    def __getitem__(self, key: str) -> FieldLens:
        return self._lenses[key]

    def __contains__(self, field: object) -> bool:
        if isinstance(field, FieldLens):
            return self._lenses.get(field.key) == field
        return field in self._lenses

    def __iter__(self) -> Iterator[FieldLens]:
        return iter(self._lenses.values())

    def __len__(self) -> int:
        return len(self._lenses)

    def keys(self) -> List[str]:
        return list(self._lenses)

    def get(self, key: str) -> Optional[FieldLens]:
        return self._lenses.get(key)


def form_fields(model: Any) -> FieldSet:
    """Build one lens per field of a dataclass type/instance or mapping.

    Dataclass fields get an AttrLens carrying the resolved type hint;
    mapping keys get a KeyLens typed after the current value.

    Args:
        model: A dataclass type, a dataclass instance, or a mapping

    Returns:
        FieldSet in declaration order

    Raises:
        TypeError: If the model shape is not supported
    """
    if isinstance(model, Mapping):
        return FieldSet([KeyLens(str(key), type(value)) for key, value in model.items()])

    model_type = model if isinstance(model, type) else type(model)
    if not dataclasses.is_dataclass(model_type):
        raise TypeError(
            f"cannot derive fields for {model_type.__name__}; pass a dataclass, "
            f"a mapping, or an explicit FieldSet"
        )
    try:
        hints = get_type_hints(model_type)
    except (NameError, TypeError):
        hints = {}
    return FieldSet(
        [
            AttrLens(f.name, hints.get(f.name, f.type))
            for f in dataclasses.fields(model_type)
        ]
    )


__all__ = [
    "FieldLens",
    "AttrLens",
    "KeyLens",
    "FieldRef",
    "FieldSet",
    "field_key",
    "form_fields",
]
