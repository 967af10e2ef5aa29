"""
MIT License
Copyright (c) 2025 DarekDGB

Field and flag validators for raw request payloads.

Design goals:
- Every parser returns a typed value or raises ValidationError naming the field.
- JSON-carrying fields are resolved once, at the boundary, into
  RawJson(text) | ParsedJson(items). Nothing downstream re-checks the shape.
- No best-effort coercion: a malformed hash or address is an error,
  an empty one is "absent".
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .errors import ValidationError
from .models import CompactIAddress, DataDescriptor, RequestFlags


_HASH_RE = re.compile(r"^[0-9a-fA-F]{64}$")

_TRUE_STRINGS = ("true", "1", "on", "yes")
_FALSE_STRINGS = ("false", "0", "off", "no", "")

REDIRECT_TYPES = ("1", "2")

# payload key -> flag bit
FLAG_FIELDS: Tuple[Tuple[str, RequestFlags], ...] = (
    ("flagHasRequestId", RequestFlags.HAS_REQUEST_ID),
    ("flagHasStatements", RequestFlags.HAS_STATEMENTS),
    ("flagHasSignature", RequestFlags.HAS_SIGNATURE),
    ("flagForUsersSignature", RequestFlags.FOR_USERS_SIGNATURE),
    ("flagForTransmittalToUser", RequestFlags.FOR_TRANSMITTAL_TO_USER),
    ("flagHasUrlForDownload", RequestFlags.HAS_URL_FOR_DOWNLOAD),
)


# ---------------------------------------------------------------------------
# JSON field union
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RawJson:
    text: str


@dataclass(frozen=True)
class ParsedJson:
    items: Tuple[Any, ...]


JsonField = Union[RawJson, ParsedJson]


def to_json_field(value: Any, field: str) -> Optional[JsonField]:
    """
    Classify a raw payload value. None / "" / "[]" mean absent.
    """
    if value is None:
        return None
    if isinstance(value, str):
        if value.strip() in ("", "[]"):
            return None
        return RawJson(value)
    if isinstance(value, (list, tuple)):
        return ParsedJson(tuple(value)) if value else None
    raise ValidationError(field, "must be a JSON array.")


def resolve_json_array(value: Any, field: str, *, required: bool = False) -> Optional[List[Any]]:
    """
    The single parse step for array-valued JSON fields.
    """
    wrapped = to_json_field(value, field)
    if wrapped is None:
        if required:
            raise ValidationError(field, "is required.")
        return None

    if isinstance(wrapped, ParsedJson):
        return list(wrapped.items)

    try:
        parsed = json.loads(wrapped.text)
    except json.JSONDecodeError as exc:
        raise ValidationError(field, f"Invalid JSON: {exc.msg}") from exc
    if not isinstance(parsed, list):
        raise ValidationError(field, "must be a JSON array.")
    if not parsed:
        if required:
            raise ValidationError(field, "is required.")
        return None
    return parsed


# ---------------------------------------------------------------------------
# Scalar fields
# ---------------------------------------------------------------------------


def _require_utf8(text: str, field: str, what: str = "Value") -> str:
    # lone surrogates survive json.loads but cannot be serialized
    try:
        text.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise ValidationError(field, f"{what} is not valid UTF-8.") from exc
    return text


def require_string(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(field, "is required.")
    return _require_utf8(value.strip(), field)


def optional_string(value: Any, field: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(field, "must be a string.")
    trimmed = value.strip()
    return _require_utf8(trimmed, field) if trimmed else None


def parse_flag(value: Any, field: str) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise ValidationError(field, "must be a boolean.")


def validate_data_hash(value: Any, field: str = "dataHash") -> Optional[bytes]:
    """
    Exactly 32 bytes as 64 hex characters (any case). Blank means absent.
    """
    hex_value = optional_string(value, field)
    if hex_value is None:
        return None
    if not _HASH_RE.match(hex_value):
        raise ValidationError(field, "Data hash must be exactly 32 bytes (64 hex characters).")
    return bytes.fromhex(hex_value)


def parse_optional_iaddress(value: Any, field: str) -> Optional[CompactIAddress]:
    """
    Trim, strip a single trailing '@', parse. Empty after cleaning is absent.
    """
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError(field, "must be a string.")
    cleaned = value.strip()
    if cleaned.endswith("@"):
        cleaned = cleaned[:-1]
    if not cleaned:
        return None
    _require_utf8(cleaned, field)
    try:
        return CompactIAddress.from_address(cleaned)
    except ValueError as exc:
        raise ValidationError(field, str(exc)) from exc


# ---------------------------------------------------------------------------
# Flags
# ---------------------------------------------------------------------------


def read_flag_inputs(payload: Mapping[str, Any]) -> Dict[RequestFlags, bool]:
    return {bit: parse_flag(payload.get(name), name) for name, bit in FLAG_FIELDS}


def check_signature_exclusivity(selected: Mapping[RequestFlags, bool]) -> None:
    if selected.get(RequestFlags.HAS_SIGNATURE) and selected.get(RequestFlags.FOR_USERS_SIGNATURE):
        raise ValidationError(
            "flagHasSignature",
            "'Has Signature' and 'For User's Signature' are mutually exclusive.",
        )


def compose_flags(selected: Mapping[RequestFlags, bool]) -> RequestFlags:
    flags = RequestFlags.NONE
    for bit, enabled in selected.items():
        if enabled:
            flags |= bit
    return flags


# ---------------------------------------------------------------------------
# Array fields
# ---------------------------------------------------------------------------


def parse_signable_objects(value: Any, field: str = "signableObjects") -> List[DataDescriptor]:
    items = resolve_json_array(value, field) or []
    out: List[DataDescriptor] = []
    for index, item in enumerate(items):
        try:
            out.append(DataDescriptor.from_json(item))
        except (ValueError, TypeError, KeyError) as exc:
            raise ValidationError(field, f"Invalid DataDescriptor at index {index}: {exc}") from exc
    return out


def parse_statements(value: Any, field: str = "statements") -> Optional[List[str]]:
    items = resolve_json_array(value, field)
    if items is None:
        return None
    for index, item in enumerate(items):
        if not isinstance(item, str):
            raise ValidationError(field, f"Statement at index {index} must be a string.")
        _require_utf8(item, field, f"Statement at index {index}")
    return items


@dataclass(frozen=True)
class Redirect:
    type: str
    uri: str

    def to_json(self) -> Dict[str, str]:
        return {"type": self.type, "uri": self.uri}


def parse_redirects(value: Any, field: str = "redirects", *, required: bool = True) -> Optional[List[Redirect]]:
    items = resolve_json_array(value, field, required=required)
    if items is None:
        return None
    out: List[Redirect] = []
    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            raise ValidationError(field, f"Redirect at index {index} must be an object.")
        kind = str(item.get("type", "")).strip()
        uri = item.get("uri")
        if kind not in REDIRECT_TYPES:
            raise ValidationError(field, f"Redirect at index {index} has unsupported type {kind!r}.")
        if not isinstance(uri, str) or not uri.strip():
            raise ValidationError(field, f"Redirect at index {index} requires a uri.")
        _require_utf8(uri, field, f"Redirect uri at index {index}")
        out.append(Redirect(type=kind, uri=uri.strip()))
    return out
