from __future__ import annotations

import itertools

import pytest

from conftest import make_iaddress
from vqr.errors import ValidationError
from vqr.fields import (
    FLAG_FIELDS,
    ParsedJson,
    RawJson,
    check_signature_exclusivity,
    compose_flags,
    optional_string,
    parse_flag,
    parse_optional_iaddress,
    parse_redirects,
    parse_signable_objects,
    parse_statements,
    read_flag_inputs,
    require_string,
    resolve_json_array,
    to_json_field,
    validate_data_hash,
)
from vqr.models import CompactIAddress, RequestFlags


# -------------------------
# hash validator
# -------------------------


def test_data_hash_roundtrip_normalizes_to_lowercase() -> None:
    value = "AbCdEf0123456789" * 4
    raw = validate_data_hash(value)
    assert raw is not None and len(raw) == 32
    assert raw.hex() == value.lower()


@pytest.mark.parametrize("bad", ["00" * 31, "00" * 33, "zz" + "00" * 31, "0x" + "00" * 31, "0" * 63])
def test_data_hash_rejects_wrong_shapes(bad: str) -> None:
    with pytest.raises(ValidationError) as exc:
        validate_data_hash(bad)
    assert "64 hex characters" in exc.value.message


def test_data_hash_blank_is_absent() -> None:
    assert validate_data_hash(None) is None
    assert validate_data_hash("   ") is None


def test_data_hash_rejects_non_string() -> None:
    with pytest.raises(ValidationError):
        validate_data_hash(123)


# -------------------------
# compact address parser
# -------------------------


def test_iaddress_parser_strips_trailing_at() -> None:
    parsed = parse_optional_iaddress("  alice@ ", "requestId")
    assert parsed == CompactIAddress(address="alice", type=CompactIAddress.TYPE_FQN)


def test_iaddress_parser_recognizes_iaddress() -> None:
    addr = make_iaddress(9)
    parsed = parse_optional_iaddress(addr, "requestId")
    assert parsed is not None
    assert parsed.type == CompactIAddress.TYPE_I_ADDRESS
    assert parsed.address == addr


@pytest.mark.parametrize("value", [None, "", "   ", "@", " @ "])
def test_iaddress_parser_empty_after_cleaning_is_absent(value) -> None:
    assert parse_optional_iaddress(value, "requestId") is None


def test_iaddress_parser_rejects_non_string() -> None:
    with pytest.raises(ValidationError) as exc:
        parse_optional_iaddress(42, "requestId")
    assert exc.value.field == "requestId"


# -------------------------
# JSON fields
# -------------------------


def test_json_field_union_classification() -> None:
    assert to_json_field(None, "x") is None
    assert to_json_field("", "x") is None
    assert to_json_field("[]", "x") is None
    assert to_json_field([], "x") is None
    assert to_json_field('["a"]', "x") == RawJson('["a"]')
    assert to_json_field(["a"], "x") == ParsedJson(("a",))


def test_json_field_rejects_objects() -> None:
    with pytest.raises(ValidationError):
        to_json_field({"a": 1}, "statements")


def test_resolve_json_array_reports_bad_json() -> None:
    with pytest.raises(ValidationError) as exc:
        resolve_json_array("[1,", "statements")
    assert exc.value.field == "statements"
    assert "Invalid JSON" in exc.value.message


def test_resolve_json_array_required_absent() -> None:
    with pytest.raises(ValidationError):
        resolve_json_array(None, "redirects", required=True)
    with pytest.raises(ValidationError):
        resolve_json_array("[]", "redirects", required=True)


def test_resolve_json_array_rejects_non_array_json() -> None:
    with pytest.raises(ValidationError):
        resolve_json_array('{"a": 1}', "statements")


def test_statements_accept_string_or_list() -> None:
    assert parse_statements('["one", "two"]') == ["one", "two"]
    assert parse_statements(["one"]) == ["one"]
    assert parse_statements("[]") is None


def test_statements_reject_non_strings() -> None:
    with pytest.raises(ValidationError) as exc:
        parse_statements(["ok", 5])
    assert "index 1" in exc.value.message


def test_signable_objects_defaults_and_index_errors() -> None:
    objs = parse_signable_objects('[{"objectdata": "deadbeef"}]')
    assert len(objs) == 1
    assert objs[0].version == 1
    assert objs[0].flags == 0
    assert objs[0].objectdata == bytes.fromhex("deadbeef")

    with pytest.raises(ValidationError) as exc:
        parse_signable_objects([{"objectdata": "00"}, {"version": "x"}])
    assert "index 1" in exc.value.message


def test_redirects_require_type_and_uri() -> None:
    redirects = parse_redirects([{"type": "1", "uri": "https://a"}, {"type": 2, "uri": "https://b"}])
    assert redirects is not None
    assert [r.type for r in redirects] == ["1", "2"]

    with pytest.raises(ValidationError):
        parse_redirects([{"type": "3", "uri": "https://a"}])
    with pytest.raises(ValidationError):
        parse_redirects([{"type": "1"}])
    with pytest.raises(ValidationError):
        parse_redirects(None)


def test_require_string() -> None:
    assert require_string("  alice@ ", "signingId") == "alice@"
    with pytest.raises(ValidationError) as exc:
        require_string("", "signingId")
    assert exc.value.field == "signingId"


# -------------------------
# flags
# -------------------------


def test_parse_flag_accepts_common_forms() -> None:
    assert parse_flag(True, "f") is True
    assert parse_flag(None, "f") is False
    assert parse_flag("on", "f") is True
    assert parse_flag("false", "f") is False
    assert parse_flag(0, "f") is False
    with pytest.raises(ValidationError):
        parse_flag("maybe", "f")


def _valid_subsets():
    bits = [bit for _, bit in FLAG_FIELDS]
    for mask in range(1 << len(bits)):
        selected = {bit: bool(mask & (1 << i)) for i, bit in enumerate(bits)}
        if selected[RequestFlags.HAS_SIGNATURE] and selected[RequestFlags.FOR_USERS_SIGNATURE]:
            continue
        yield selected


def test_flag_composition_is_injective() -> None:
    values = [int(compose_flags(s)) for s in _valid_subsets()]
    assert len(values) == 48
    assert len(set(values)) == len(values)


def test_flag_composition_is_order_independent() -> None:
    selected = {
        RequestFlags.HAS_REQUEST_ID: True,
        RequestFlags.HAS_STATEMENTS: True,
        RequestFlags.FOR_TRANSMITTAL_TO_USER: True,
        RequestFlags.HAS_URL_FOR_DOWNLOAD: True,
    }
    expected = compose_flags(selected)
    for perm in itertools.permutations(selected.items()):
        assert compose_flags(dict(perm)) == expected


def test_signature_flags_are_mutually_exclusive() -> None:
    selected = read_flag_inputs({"flagHasSignature": True, "flagForUsersSignature": True})
    with pytest.raises(ValidationError) as exc:
        check_signature_exclusivity(selected)
    assert "mutually exclusive" in exc.value.message


def test_text_fields_reject_unencodable_strings() -> None:
    # "\ud800" in JSON text decodes to a lone surrogate
    with pytest.raises(ValidationError) as exc:
        parse_statements('["ok", "\\ud800"]')
    assert exc.value.field == "statements"
    assert "index 1" in exc.value.message

    with pytest.raises(ValidationError) as exc:
        parse_redirects([{"type": "1", "uri": "https://a/\ud800"}])
    assert exc.value.field == "redirects"
    assert "index 0" in exc.value.message

    with pytest.raises(ValidationError) as exc:
        optional_string("https://x.test/\ud800", "downloadUrl")
    assert exc.value.field == "downloadUrl"

    with pytest.raises(ValidationError):
        require_string("alice\ud800@", "signingId")
    with pytest.raises(ValidationError):
        parse_optional_iaddress("bob\ud800", "requestId")


def test_signable_object_label_must_be_encodable() -> None:
    with pytest.raises(ValidationError) as exc:
        parse_signable_objects([{"objectdata": "00", "label": "\ud800"}])
    assert "index 0" in exc.value.message
