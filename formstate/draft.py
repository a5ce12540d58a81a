"""Draft persistence contract.

A draft is a serialized copy of a form's field values (optionally with
dirty/touched flags) kept outside the form's lifetime. The form controller
encodes drafts as a small versioned JSON envelope and hands the bytes to a
caller-supplied DraftStore; what the store does with them is its own
business.

The envelope is checked against DRAFT_ENVELOPE_SCHEMA before anything is
applied to a form, so a corrupted or foreign payload is rejected as a whole.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from dateutil import parser as date_parser
from jsonschema import Draft7Validator
from jsonschema.exceptions import best_match
from typing_extensions import Protocol, runtime_checkable

DRAFT_SCHEMA_VERSION = 1

DRAFT_ENVELOPE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "schemaVersion": {"type": "integer", "minimum": 1},
        "formId": {"type": "string", "minLength": 1},
        "savedAt": {"type": "string"},
        "values": {"type": "object"},
        "flags": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "properties": {
                    "dirty": {"type": "boolean"},
                    "touched": {"type": "boolean"},
                },
                "additionalProperties": False,
            },
        },
    },
    "required": ["schemaVersion", "formId", "savedAt", "values"],
    "additionalProperties": False,
}

_envelope_validator = Draft7Validator(DRAFT_ENVELOPE_SCHEMA)


class DraftFormatError(ValueError):
    """Raised when a payload is not a valid draft envelope."""


@runtime_checkable
class DraftStore(Protocol):
    """Persistence backend for drafts.

    Implementations may raise any exception; the controller wraps it in a
    DraftError. ``load`` returns None when no draft exists for the key.
    """

    def save(self, key: str, payload: bytes) -> None: ...

    def load(self, key: str) -> Optional[bytes]: ...

    def clear(self, key: str) -> None: ...


class InMemoryDraftStore:
    """Dict-backed DraftStore, for tests and single-process embedding.

    Examples:
        >>> store = InMemoryDraftStore()
        >>> store.save("signup", b"{}")
        >>> store.load("signup")
        b'{}'
        >>> store.clear("signup")
        >>> store.load("signup") is None
        True
    """

    def __init__(self):
        self._drafts: Dict[str, bytes] = {}

    def save(self, key: str, payload: bytes) -> None:
        self._drafts[key] = bytes(payload)

    def load(self, key: str) -> Optional[bytes]:
        return self._drafts.get(key)

    def clear(self, key: str) -> None:
        self._drafts.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._drafts

    def __len__(self) -> int:
        return len(self._drafts)


@dataclass(frozen=True)
class Draft:
    """Decoded draft envelope.

    Attributes:
        form_id: Form the draft belongs to (also the store key)
        values: Field key -> JSON-compatible value
        saved_at: UTC time the draft was written
        flags: Optional field key -> {"dirty": bool, "touched": bool}
        schema_version: Envelope format version
    """
    form_id: str
    values: Dict[str, Any]
    saved_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    flags: Optional[Dict[str, Dict[str, bool]]] = None
    schema_version: int = DRAFT_SCHEMA_VERSION

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "schemaVersion": self.schema_version,
            "formId": self.form_id,
            "savedAt": self.saved_at.isoformat(),
            "values": self.values,
        }
        if self.flags is not None:
            result["flags"] = self.flags
        return result

    def encode(self) -> bytes:
        """Encode as compact UTF-8 JSON.

        Values must come back from JSON unchanged: a tuple (decoded as a
        list) or a dict with non-string keys is rejected rather than saved
        in a form that would not reproduce the model.

        Raises:
            DraftFormatError: If a value is not JSON serializable or would
                not decode to an equal value
        """
        try:
            text = json.dumps(
                self.to_dict(), separators=(",", ":"), sort_keys=True, allow_nan=False
            )
        except (TypeError, ValueError) as exc:
            raise DraftFormatError(f"draft values are not JSON serializable: {exc}") from exc
        decoded = json.loads(text)["values"]
        changed = sorted(key for key, value in self.values.items() if decoded[key] != value)
        if changed:
            raise DraftFormatError(
                f"draft values do not survive JSON encoding: {', '.join(changed)}"
            )
        return text.encode("utf-8")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Draft":
        """Create a Draft from an envelope dict, validating its shape.

        Raises:
            DraftFormatError: If the envelope is malformed or from a newer version
        """
        error = best_match(_envelope_validator.iter_errors(data))
        if error is not None:
            location = ".".join(str(p) for p in error.path) or "<envelope>"
            raise DraftFormatError(f"invalid draft envelope at {location}: {error.message}")
        if data["schemaVersion"] != DRAFT_SCHEMA_VERSION:
            raise DraftFormatError(
                f"unsupported draft schema version {data['schemaVersion']} "
                f"(expected {DRAFT_SCHEMA_VERSION})"
            )
        try:
            saved_at = date_parser.isoparse(data["savedAt"])
        except ValueError as exc:
            raise DraftFormatError(f"invalid savedAt timestamp: {data['savedAt']!r}") from exc
        return cls(
            form_id=data["formId"],
            values=dict(data["values"]),
            saved_at=saved_at,
            flags=data.get("flags"),
            schema_version=data["schemaVersion"],
        )

    @classmethod
    def decode(cls, payload: bytes) -> "Draft":
        """Decode bytes produced by encode().

        Raises:
            DraftFormatError: If the payload is not valid JSON or not a draft
        """
        try:
            data = json.loads(payload.decode("utf-8") if isinstance(payload, (bytes, bytearray)) else payload)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise DraftFormatError(f"draft payload is not valid JSON: {exc}") from exc
        return cls.from_dict(data)


__all__ = [
    "DRAFT_SCHEMA_VERSION",
    "DRAFT_ENVELOPE_SCHEMA",
    "DraftFormatError",
    "DraftStore",
    "InMemoryDraftStore",
    "Draft",
]
