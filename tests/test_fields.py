"""Unit tests for typed field identifiers.

Tests cover:
- AttrLens reads and copy-on-write updates of dataclass models
- Nested attribute and mapping paths
- KeyLens updates never mutating the original mapping
- FieldSet ordering, lookup and duplicate detection
- form_fields derivation from dataclasses and mappings
"""

from dataclasses import dataclass

import pytest

from formstate.errors import RegistrationError
from formstate.fields import AttrLens, FieldSet, KeyLens, field_key, form_fields


@dataclass(frozen=True)
class Address:
    city: str
    zip_code: str


@dataclass(frozen=True)
class Profile:
    name: str
    age: int
    address: Address


class PlainModel:
    def __init__(self, title):
        self.title = title


class TestAttrLens:
    """Test lenses over dataclass and plain object attributes."""

    def test_get_reads_attribute(self):
        """Should read the attribute named by the key."""
        profile = Profile("Ada", 36, Address("London", "N1"))
        assert AttrLens("name").get(profile) == "Ada"

    def test_set_returns_new_model(self):
        """Should build a new model and leave the original untouched."""
        profile = Profile("Ada", 36, Address("London", "N1"))
        updated = AttrLens("age").set(profile, 37)
        assert updated.age == 37
        assert profile.age == 36
        assert updated is not profile

    def test_nested_path(self):
        """Should read and replace nested dataclass attributes."""
        profile = Profile("Ada", 36, Address("London", "N1"))
        lens = AttrLens("address.city")
        updated = lens.set(profile, "Paris")
        assert lens.get(updated) == "Paris"
        assert updated.address.zip_code == "N1"
        assert profile.address.city == "London"

    def test_plain_object_is_copied(self):
        """Should copy non-dataclass objects before setting the attribute."""
        model = PlainModel("draft")
        updated = AttrLens("title").set(model, "final")
        assert updated.title == "final"
        assert model.title == "draft"

    def test_equality_by_kind_and_key(self):
        """Lenses are equal when they have the same kind and key."""
        assert AttrLens("name") == AttrLens("name")
        assert AttrLens("name") != KeyLens("name")
        assert len({AttrLens("name"), AttrLens("name")}) == 1

    def test_empty_key_rejected(self):
        """Should reject an empty key."""
        with pytest.raises(ValueError):
            AttrLens("")


class TestKeyLens:
    """Test lenses over mapping models."""

    def test_set_copies_mapping(self):
        """Should return a new dict and keep the original unchanged."""
        model = {"email": "a@b.c", "age": 3}
        updated = KeyLens("email").set(model, "x@y.z")
        assert updated == {"email": "x@y.z", "age": 3}
        assert model["email"] == "a@b.c"

    def test_nested_key(self):
        """Should copy every level of a nested mapping on write."""
        model = {"address": {"city": "London", "zip": "N1"}}
        updated = KeyLens("address.city").set(model, "Paris")
        assert updated["address"] == {"city": "Paris", "zip": "N1"}
        assert model["address"]["city"] == "London"

    def test_missing_key_raises(self):
        """Should raise KeyError when reading an absent key."""
        with pytest.raises(KeyError):
            KeyLens("missing").get({})


class TestFieldSet:
    """Test the ordered lens collection."""

    def test_attribute_and_item_access(self):
        """Should expose lenses as attributes and by key."""
        fields = FieldSet([KeyLens("name"), KeyLens("email")])
        assert fields.email is fields["email"]
        assert fields.keys() == ["name", "email"]
        assert len(fields) == 2

    def test_unknown_attribute(self):
        """Should raise AttributeError for unknown fields."""
        fields = FieldSet([KeyLens("name")])
        with pytest.raises(AttributeError):
            fields.nope

    def test_contains_lens_and_key(self):
        """Should accept both keys and lenses for membership."""
        fields = FieldSet([KeyLens("name")])
        assert "name" in fields
        assert KeyLens("name") in fields
        assert AttrLens("name") not in fields

    def test_duplicate_key_rejected(self):
        """Should reject two lenses with the same key."""
        with pytest.raises(RegistrationError) as exc_info:
            FieldSet([KeyLens("name"), KeyLens("name")])
        assert exc_info.value.reason == "duplicate_field"

    def test_field_key(self):
        """Should accept lenses and strings, and reject anything else."""
        assert field_key(KeyLens("a")) == "a"
        assert field_key("b") == "b"
        with pytest.raises(TypeError):
            field_key(3)


class TestFormFields:
    """Test deriving field sets from models."""

    def test_from_dataclass_type(self):
        """Should build one AttrLens per dataclass field with its type hint."""
        fields = form_fields(Profile)
        assert fields.keys() == ["name", "age", "address"]
        assert isinstance(fields.age, AttrLens)
        assert fields.age.value_type is int

    def test_from_dataclass_instance(self):
        """Should accept an instance as well as the type."""
        fields = form_fields(Profile("Ada", 36, Address("London", "N1")))
        assert fields.keys() == ["name", "age", "address"]

    def test_from_mapping(self):
        """Should build KeyLenses typed after the current values."""
        fields = form_fields({"email": "", "subscribed": False})
        assert isinstance(fields.email, KeyLens)
        assert fields.subscribed.value_type is bool

    def test_unsupported_model(self):
        """Should raise TypeError for models that are neither dataclass nor mapping."""
        with pytest.raises(TypeError):
            form_fields(PlainModel("x"))
