"""
Tests for the Verus wire objects.
"""

from __future__ import annotations

import base64

import pytest

from conftest import make_iaddress
from vqr.models import (
    CROSSCHAIN_DATAREF_KEY,
    CompactIAddress,
    CrossChainDataRef,
    DataDescriptor,
    RequestDetails,
    RequestFlags,
    SignatureRecord,
    URLRef,
    VdxfUniValue,
    build_url_descriptor,
)


def test_url_descriptor_payload_decodes_to_urlref() -> None:
    desc = build_url_descriptor("https://x.test/f", b"\x00" * 32)
    assert desc.version == 1
    assert desc.flags == 0

    container = VdxfUniValue.from_buffer(desc.objectdata)
    assert len(container.values) == 1
    key, ref = container.values[0]
    assert key == CROSSCHAIN_DATAREF_KEY
    assert ref.ref == URLRef(url="https://x.test/f", datahash=b"\x00" * 32)


def test_url_descriptor_without_hash() -> None:
    desc = build_url_descriptor("https://x.test/f")
    (_, ref), = VdxfUniValue.from_buffer(desc.objectdata).values
    assert ref.ref.datahash is None
    assert ref.ref.flags == 0


def test_urlref_rejects_short_hash() -> None:
    with pytest.raises(ValueError):
        URLRef(url="https://x.test/f", datahash=b"\x00" * 31)


def test_urlref_json_matches_preview_shape() -> None:
    ref = CrossChainDataRef(ref=URLRef(url="https://x.test/f", datahash=b"\x11" * 32))
    assert ref.to_json() == {
        "version": 1,
        "flags": 1,
        "datahash": "11" * 32,
        "url": "https://x.test/f",
        "type": 2,
    }


def test_descriptor_from_json_object_payload_builds_container() -> None:
    desc = DataDescriptor.from_json(
        {"objectdata": {CROSSCHAIN_DATAREF_KEY: {"version": 1, "url": "https://x.test/f", "type": 2}}}
    )
    assert desc.objectdata == build_url_descriptor("https://x.test/f").objectdata


def test_descriptor_text_payload_is_utf8() -> None:
    desc = DataDescriptor.from_json({"objectdata": "hello world", "label": "greeting"})
    assert desc.objectdata == b"hello world"
    assert desc.effective_flags & DataDescriptor.FLAG_LABEL_PRESENT
    assert DataDescriptor.from_buffer(desc.to_buffer()) == DataDescriptor(
        flags=DataDescriptor.FLAG_LABEL_PRESENT, objectdata=b"hello world", label="greeting"
    )


def test_descriptor_rejects_unsupported_key_flags() -> None:
    with pytest.raises(ValueError):
        DataDescriptor(flags=DataDescriptor.FLAG_ENCRYPTION_PUBLIC_KEY_PRESENT)


def test_descriptor_rejects_unknown_vdxf_key() -> None:
    with pytest.raises(ValueError):
        DataDescriptor.from_json({"objectdata": {make_iaddress(1): {"url": "https://x"}}})


def test_compact_address_kinds() -> None:
    addr = make_iaddress(4)
    i = CompactIAddress.from_address(addr)
    fqn = CompactIAddress.from_address("alice.vrsctest")
    assert i.type == CompactIAddress.TYPE_I_ADDRESS
    assert fqn.type == CompactIAddress.TYPE_FQN
    # version, type, 20-byte hash
    assert len(i.to_buffer()) == 22


def test_request_details_flag_gated_members() -> None:
    with pytest.raises(ValueError):
        RequestDetails(flags=RequestFlags.HAS_STATEMENTS)
    with pytest.raises(ValueError):
        RequestDetails(flags=RequestFlags.NONE, statements=("x",))
    with pytest.raises(ValueError):
        RequestDetails(flags=RequestFlags.HAS_REQUEST_ID)
    with pytest.raises(ValueError):
        RequestDetails(flags=RequestFlags.HAS_SIGNATURE | RequestFlags.FOR_USERS_SIGNATURE)


def test_request_details_roundtrip_with_optional_members() -> None:
    details = RequestDetails(
        flags=RequestFlags.HAS_STATEMENTS | RequestFlags.HAS_REQUEST_ID | RequestFlags.FOR_TRANSMITTAL_TO_USER,
        signable_objects=(DataDescriptor(objectdata=b"\x01\x02"),),
        statements=("I agree",),
        request_id=CompactIAddress.from_address(make_iaddress(5)),
    )
    decoded = RequestDetails.from_buffer(details.to_buffer())
    assert decoded == details
    assert decoded.to_json()["statements"] == ["I agree"]


def test_request_details_omits_absent_members_on_wire() -> None:
    bare = RequestDetails(flags=RequestFlags.NONE)
    # version, flags, zero objects
    assert bare.to_buffer() == b"\x01\x00\x00"
    assert "statements" not in bare.to_json()
    assert "requestid" not in bare.to_json()


def test_signature_record_from_cli_json() -> None:
    sig = base64.b64encode(b"\x02" * 65).decode()
    rec = SignatureRecord.from_cli_json(
        {"signature": sig, "hash": "cd" * 32, "hashtype": "SHA256"},
        signing_id="alice@",
        system_id="VRSCTEST",
    )
    assert rec.identity_id == "alice@"
    assert rec.system_id == "VRSCTEST"
    assert rec.hash_type == "sha256"
    out = rec.to_json()
    assert out["signatureasvch"] == sig
    assert SignatureRecord.from_json(out) == rec


def test_signature_record_rejects_missing_or_bad_signature() -> None:
    with pytest.raises(ValueError):
        SignatureRecord.from_cli_json({}, signing_id="a", system_id="b")
    with pytest.raises(ValueError):
        SignatureRecord.from_cli_json({"signature": "***"}, signing_id="a", system_id="b")


def test_signed_details_carry_signature() -> None:
    rec = SignatureRecord(system_id="VRSCTEST", identity_id="alice@", signature=b"\x03" * 65)
    details = RequestDetails(flags=RequestFlags.HAS_SIGNATURE, signature=rec)
    unsigned = RequestDetails(flags=RequestFlags.HAS_SIGNATURE)
    assert details.to_buffer().startswith(unsigned.to_buffer())
    assert RequestDetails.from_buffer(details.to_buffer()).signature == rec
