"""
MIT License
Copyright (c) 2025 DarekDGB

Core wire objects for Verus data packet requests.

These describe the binary objects a data packet request is made of:
- request flags (six disjoint bits)
- data descriptors (the atomic "signable object")
- URL references wrapped in a CrossChainDataRef keyed container
- compact identity / name references
- the request details object itself
- normalized signer output

Every object has a canonical byte form (`to_buffer`) and a JSON view
(`to_json`). Constructors validate eagerly and raise ValueError.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from enum import IntFlag
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .codec import (
    HASH160_LEN,
    BufferReader,
    BufferWriter,
    hash_to_iaddress,
    iaddress_to_hash,
    is_hex,
    is_iaddress,
)


# CrossChainDataRef VDXF key (vrsc::data.type.object.crosschaindataref)
CROSSCHAIN_DATAREF_KEY = "iP3euVSzNcXUrLNHnQnR9G6q8jeYuGSxgw"
VDXF_DATA_VERSION = 1

DATAHASH_LEN = 32


class RequestFlags(IntFlag):
    NONE = 0
    HAS_REQUEST_ID = 1
    HAS_STATEMENTS = 2
    HAS_SIGNATURE = 4
    FOR_USERS_SIGNATURE = 8
    FOR_TRANSMITTAL_TO_USER = 16
    HAS_URL_FOR_DOWNLOAD = 32


# -------------------------
# URL references
# -------------------------


@dataclass(frozen=True)
class URLRef:
    url: str
    version: int = 1
    datahash: Optional[bytes] = None

    FLAG_HAS_HASH = 1

    def __post_init__(self) -> None:
        if not isinstance(self.url, str) or not self.url:
            raise ValueError("URLRef url must be a non-empty string")
        if self.datahash is not None and len(self.datahash) != DATAHASH_LEN:
            raise ValueError("URLRef datahash must be exactly 32 bytes")

    @property
    def flags(self) -> int:
        return self.FLAG_HAS_HASH if self.datahash is not None else 0

    def to_buffer(self) -> bytes:
        w = BufferWriter().write_varint(self.version).write_varint(self.flags)
        if self.datahash is not None:
            w.write(self.datahash)
        return w.write_var_slice(self.url.encode("utf-8")).getvalue()

    @classmethod
    def from_reader(cls, reader: BufferReader) -> "URLRef":
        version = reader.read_varint()
        flags = reader.read_varint()
        datahash = reader.read(DATAHASH_LEN) if flags & cls.FLAG_HAS_HASH else None
        url = reader.read_var_slice().decode("utf-8")
        return cls(url=url, version=version, datahash=datahash)

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"version": self.version, "flags": self.flags}
        if self.datahash is not None:
            out["datahash"] = self.datahash.hex()
        out["url"] = self.url
        return out

    @classmethod
    def from_json(cls, obj: Mapping[str, Any]) -> "URLRef":
        datahash = obj.get("datahash")
        return cls(
            url=obj.get("url", ""),
            version=int(obj.get("version", 1)),
            datahash=bytes.fromhex(datahash) if datahash else None,
        )


@dataclass(frozen=True)
class CrossChainDataRef:
    """Keyed union member. Only the URL reference variant is carried."""

    ref: URLRef

    TYPE_URL = 2

    def to_buffer(self) -> bytes:
        return BufferWriter().write_uint8(self.TYPE_URL).write(self.ref.to_buffer()).getvalue()

    @classmethod
    def from_buffer(cls, data: bytes) -> "CrossChainDataRef":
        reader = BufferReader(data)
        ref_type = reader.read_uint8()
        if ref_type != cls.TYPE_URL:
            raise ValueError(f"Unsupported CrossChainDataRef type: {ref_type}")
        ref = URLRef.from_reader(reader)
        if reader.remaining:
            raise ValueError("Trailing bytes after CrossChainDataRef")
        return cls(ref=ref)

    def to_json(self) -> Dict[str, Any]:
        out = self.ref.to_json()
        out["type"] = self.TYPE_URL
        return out

    @classmethod
    def from_json(cls, obj: Mapping[str, Any]) -> "CrossChainDataRef":
        ref_type = obj.get("type", cls.TYPE_URL)
        if ref_type != cls.TYPE_URL:
            raise ValueError(f"Unsupported CrossChainDataRef type: {ref_type!r}")
        return cls(ref=URLRef.from_json(obj))


@dataclass(frozen=True)
class VdxfUniValue:
    """
    Ordered keyed container: [(vdxfid, object), ...].

    Wire form per entry: key hash (20 bytes) + VDXF version varint +
    var-slice body.
    """

    values: Tuple[Tuple[str, CrossChainDataRef], ...]

    def to_buffer(self) -> bytes:
        w = BufferWriter()
        for key, obj in self.values:
            w.write(iaddress_to_hash(key))
            w.write_varint(VDXF_DATA_VERSION)
            w.write_var_slice(obj.to_buffer())
        return w.getvalue()

    @classmethod
    def from_buffer(cls, data: bytes) -> "VdxfUniValue":
        reader = BufferReader(data)
        values: List[Tuple[str, CrossChainDataRef]] = []
        while reader.remaining:
            key = hash_to_iaddress(reader.read(HASH160_LEN))
            version = reader.read_varint()
            if version != VDXF_DATA_VERSION:
                raise ValueError(f"Unsupported VDXF data version: {version}")
            body = reader.read_var_slice()
            if key != CROSSCHAIN_DATAREF_KEY:
                raise ValueError(f"Unsupported VDXF key: {key}")
            values.append((key, CrossChainDataRef.from_buffer(body)))
        return cls(values=tuple(values))

    def to_json(self) -> List[Dict[str, Any]]:
        return [{key: obj.to_json()} for key, obj in self.values]

    @classmethod
    def from_json(cls, obj: Any) -> "VdxfUniValue":
        entries = [obj] if isinstance(obj, Mapping) else obj
        if not isinstance(entries, list):
            raise ValueError("VdxfUniValue JSON must be an object or a list of objects")
        values: List[Tuple[str, CrossChainDataRef]] = []
        for entry in entries:
            if not isinstance(entry, Mapping):
                raise ValueError("VdxfUniValue entries must be objects")
            for key, value in entry.items():
                if key != CROSSCHAIN_DATAREF_KEY:
                    raise ValueError(f"Unsupported VDXF key: {key}")
                if not isinstance(value, Mapping):
                    raise ValueError("CrossChainDataRef value must be an object")
                values.append((key, CrossChainDataRef.from_json(value)))
        return cls(values=tuple(values))


# -------------------------
# data descriptors
# -------------------------


@dataclass(frozen=True)
class DataDescriptor:
    """
    Versioned, flagged binary payload. Presence bits for label, mimetype
    and salt are derived from the fields, never trusted from input.
    """

    version: int = 1
    flags: int = 0
    objectdata: bytes = b""
    label: Optional[str] = None
    mimetype: Optional[str] = None
    salt: Optional[bytes] = None

    FLAG_ENCRYPTED_DATA = 0x01
    FLAG_SALT_PRESENT = 0x02
    FLAG_ENCRYPTION_PUBLIC_KEY_PRESENT = 0x04
    FLAG_INCOMING_VIEWING_KEY_PRESENT = 0x08
    FLAG_SYMMETRIC_ENCRYPTION_KEY_PRESENT = 0x10
    FLAG_LABEL_PRESENT = 0x20
    FLAG_MIME_TYPE_PRESENT = 0x40

    MAX_LABEL_LEN = 64
    MAX_MIMETYPE_LEN = 128

    def __post_init__(self) -> None:
        for name in ("version", "flags"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(f"DataDescriptor {name} must be a non-negative integer")
        key_bits = (
            self.FLAG_ENCRYPTION_PUBLIC_KEY_PRESENT
            | self.FLAG_INCOMING_VIEWING_KEY_PRESENT
            | self.FLAG_SYMMETRIC_ENCRYPTION_KEY_PRESENT
        )
        if self.flags & key_bits:
            raise ValueError("DataDescriptor encryption key fields are not supported")
        if self.label is not None and len(self.label) > self.MAX_LABEL_LEN:
            raise ValueError("DataDescriptor label exceeds 64 characters")
        if self.mimetype is not None and len(self.mimetype) > self.MAX_MIMETYPE_LEN:
            raise ValueError("DataDescriptor mimetype exceeds 128 characters")
        for name in ("label", "mimetype"):
            value = getattr(self, name)
            if value is not None:
                try:
                    value.encode("utf-8")
                except UnicodeEncodeError as exc:
                    raise ValueError(f"DataDescriptor {name} is not valid UTF-8") from exc

    @property
    def effective_flags(self) -> int:
        presence = self.FLAG_LABEL_PRESENT | self.FLAG_MIME_TYPE_PRESENT | self.FLAG_SALT_PRESENT
        flags = self.flags & ~presence
        if self.label is not None:
            flags |= self.FLAG_LABEL_PRESENT
        if self.mimetype is not None:
            flags |= self.FLAG_MIME_TYPE_PRESENT
        if self.salt is not None:
            flags |= self.FLAG_SALT_PRESENT
        return flags

    def to_buffer(self) -> bytes:
        w = BufferWriter()
        w.write_varint(self.version)
        w.write_varint(self.effective_flags)
        w.write_var_slice(self.objectdata)
        if self.label is not None:
            w.write_var_slice(self.label.encode("utf-8"))
        if self.mimetype is not None:
            w.write_var_slice(self.mimetype.encode("utf-8"))
        if self.salt is not None:
            w.write_var_slice(self.salt)
        return w.getvalue()

    @classmethod
    def from_reader(cls, reader: BufferReader) -> "DataDescriptor":
        version = reader.read_varint()
        flags = reader.read_varint()
        objectdata = reader.read_var_slice()
        label = reader.read_var_slice().decode("utf-8") if flags & cls.FLAG_LABEL_PRESENT else None
        mimetype = reader.read_var_slice().decode("utf-8") if flags & cls.FLAG_MIME_TYPE_PRESENT else None
        salt = reader.read_var_slice() if flags & cls.FLAG_SALT_PRESENT else None
        return cls(version=version, flags=flags, objectdata=objectdata, label=label, mimetype=mimetype, salt=salt)

    @classmethod
    def from_buffer(cls, data: bytes) -> "DataDescriptor":
        reader = BufferReader(data)
        obj = cls.from_reader(reader)
        if reader.remaining:
            raise ValueError("Trailing bytes after DataDescriptor")
        return obj

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "version": self.version,
            "flags": self.effective_flags,
            "objectdata": self.objectdata.hex(),
        }
        if self.label is not None:
            out["label"] = self.label
        if self.mimetype is not None:
            out["mimetype"] = self.mimetype
        if self.salt is not None:
            out["salt"] = self.salt.hex()
        return out

    @classmethod
    def from_json(cls, obj: Mapping[str, Any]) -> "DataDescriptor":
        """
        Build a descriptor from its JSON form.

        `objectdata` may be:
        - a hex string (raw bytes)
        - any other string (UTF-8 bytes)
        - an object / list (serialized as a CrossChainDataRef keyed container)
        """
        if not isinstance(obj, Mapping):
            raise ValueError("DataDescriptor JSON must be an object")

        raw = obj.get("objectdata")
        if raw is None:
            objectdata = b""
        elif isinstance(raw, str):
            objectdata = bytes.fromhex(raw) if is_hex(raw) else raw.encode("utf-8")
        elif isinstance(raw, (Mapping, list)):
            objectdata = VdxfUniValue.from_json(raw).to_buffer()
        else:
            raise ValueError("DataDescriptor objectdata must be a string or an object")

        label = obj.get("label")
        mimetype = obj.get("mimetype")
        salt = obj.get("salt")
        if label is not None and not isinstance(label, str):
            raise ValueError("DataDescriptor label must be a string")
        if mimetype is not None and not isinstance(mimetype, str):
            raise ValueError("DataDescriptor mimetype must be a string")
        if salt is not None and not is_hex(salt):
            raise ValueError("DataDescriptor salt must be a hex string")

        return cls(
            version=obj["version"] if obj.get("version") is not None else 1,
            flags=obj["flags"] if obj.get("flags") is not None else 0,
            objectdata=objectdata,
            label=label,
            mimetype=mimetype,
            salt=bytes.fromhex(salt) if salt is not None else None,
        )


def build_url_descriptor(url: str, datahash: Optional[bytes] = None) -> DataDescriptor:
    """
    Wrap a URLRef in a CrossChainDataRef keyed container and carry the
    serialized container as a version-1 descriptor payload.
    """
    container = VdxfUniValue(values=((CROSSCHAIN_DATAREF_KEY, CrossChainDataRef(ref=URLRef(url=url, datahash=datahash))),))
    return DataDescriptor(version=1, objectdata=container.to_buffer())


# -------------------------
# compact identity references
# -------------------------


@dataclass(frozen=True)
class CompactIAddress:
    address: str
    type: int
    version: int = 1

    TYPE_I_ADDRESS = 1
    TYPE_FQN = 2

    @classmethod
    def from_address(cls, address: str) -> "CompactIAddress":
        if not isinstance(address, str) or not address:
            raise ValueError("address must be a non-empty string")
        if address != address.strip():
            raise ValueError(f"Invalid address: {address!r}")
        kind = cls.TYPE_I_ADDRESS if is_iaddress(address) else cls.TYPE_FQN
        return cls(address=address, type=kind)

    def to_buffer(self) -> bytes:
        w = BufferWriter().write_varint(self.version).write_varint(self.type)
        if self.type == self.TYPE_I_ADDRESS:
            w.write(iaddress_to_hash(self.address))
        else:
            w.write_var_slice(self.address.encode("utf-8"))
        return w.getvalue()

    @classmethod
    def from_reader(cls, reader: BufferReader) -> "CompactIAddress":
        version = reader.read_varint()
        kind = reader.read_varint()
        if kind == cls.TYPE_I_ADDRESS:
            address = hash_to_iaddress(reader.read(HASH160_LEN))
        elif kind == cls.TYPE_FQN:
            address = reader.read_var_slice().decode("utf-8")
        else:
            raise ValueError(f"Unsupported compact address type: {kind}")
        return cls(address=address, type=kind, version=version)

    def to_json(self) -> Dict[str, Any]:
        return {"version": self.version, "type": self.type, "address": self.address}


# -------------------------
# signer output
# -------------------------


HASH_TYPES = {"sha256": 1, "sha256d": 2, "blake2b": 3, "keccak256": 4}


@dataclass(frozen=True)
class SignatureRecord:
    """
    Normalized `signdata` result (verifiable signature data).
    """

    system_id: str
    identity_id: str
    signature: bytes
    hash_type: str = "sha256"
    signature_hash: Optional[bytes] = None
    version: int = 1

    def __post_init__(self) -> None:
        if not self.signature:
            raise ValueError("signature must be non-empty")
        if self.hash_type not in HASH_TYPES:
            raise ValueError(f"Unsupported hash type: {self.hash_type!r}")

    @classmethod
    def from_cli_json(cls, result: Mapping[str, Any], *, signing_id: str, system_id: str) -> "SignatureRecord":
        """
        Normalize the daemon's `signdata` response.

        Expected fields: `signature` (base64, required), `hash` (hex),
        `hashtype`, `identity`, `system`. Missing identity / system fall
        back to the signing identity and configured chain.
        """
        sig = result.get("signature")
        if not isinstance(sig, str) or not sig:
            raise ValueError("signdata result has no signature")
        try:
            raw_sig = base64.b64decode(sig, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("signdata signature is not valid base64") from exc

        digest = result.get("hash")
        if digest is not None and not is_hex(digest):
            raise ValueError("signdata hash is not valid hex")

        return cls(
            system_id=str(result.get("system") or system_id),
            identity_id=str(result.get("identity") or signing_id),
            signature=raw_sig,
            hash_type=str(result.get("hashtype") or "sha256").lower(),
            signature_hash=bytes.fromhex(digest) if digest else None,
        )

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "version": self.version,
            "hashtype": self.hash_type,
            "systemid": self.system_id,
            "identityid": self.identity_id,
        }
        if self.signature_hash is not None:
            out["signaturehash"] = self.signature_hash.hex()
        out["signatureasvch"] = base64.b64encode(self.signature).decode("ascii")
        return out

    @classmethod
    def from_json(cls, obj: Mapping[str, Any]) -> "SignatureRecord":
        if not isinstance(obj, Mapping):
            raise ValueError("signature data must be an object")
        digest = obj.get("signaturehash")
        try:
            raw_sig = base64.b64decode(obj.get("signatureasvch") or "", validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("signatureasvch is not valid base64") from exc
        return cls(
            system_id=str(obj.get("systemid") or ""),
            identity_id=str(obj.get("identityid") or ""),
            signature=raw_sig,
            hash_type=str(obj.get("hashtype") or "sha256").lower(),
            signature_hash=bytes.fromhex(digest) if digest else None,
            version=int(obj.get("version", 1)),
        )

    def to_buffer(self) -> bytes:
        w = BufferWriter()
        w.write_varint(self.version)
        w.write_varint(HASH_TYPES[self.hash_type])
        w.write(CompactIAddress.from_address(self.system_id).to_buffer())
        w.write(CompactIAddress.from_address(self.identity_id).to_buffer())
        w.write_var_slice(self.signature_hash or b"")
        w.write_var_slice(self.signature)
        return w.getvalue()

    @classmethod
    def from_reader(cls, reader: BufferReader) -> "SignatureRecord":
        version = reader.read_varint()
        code = reader.read_varint()
        names = {v: k for k, v in HASH_TYPES.items()}
        if code not in names:
            raise ValueError(f"Unsupported hash type code: {code}")
        system = CompactIAddress.from_reader(reader)
        identity = CompactIAddress.from_reader(reader)
        digest = reader.read_var_slice()
        signature = reader.read_var_slice()
        return cls(
            system_id=system.address,
            identity_id=identity.address,
            signature=signature,
            hash_type=names[code],
            signature_hash=digest or None,
            version=version,
        )


# -------------------------
# request details
# -------------------------


@dataclass(frozen=True)
class RequestDetails:
    """
    Data packet request details.

    Optional members are written only when their flag is set:
    - statements    <-> HAS_STATEMENTS
    - request_id    <-> HAS_REQUEST_ID
    - signature     <-> HAS_SIGNATURE (omitted while the details are being signed)
    """

    flags: RequestFlags
    signable_objects: Tuple[DataDescriptor, ...] = field(default_factory=tuple)
    statements: Optional[Tuple[str, ...]] = None
    request_id: Optional[CompactIAddress] = None
    signature: Optional[SignatureRecord] = None
    version: int = 1

    def __post_init__(self) -> None:
        flags = RequestFlags(self.flags)
        if (flags & RequestFlags.HAS_SIGNATURE) and (flags & RequestFlags.FOR_USERS_SIGNATURE):
            raise ValueError("HAS_SIGNATURE and FOR_USERS_SIGNATURE are mutually exclusive")
        if bool(flags & RequestFlags.HAS_STATEMENTS) != bool(self.statements):
            raise ValueError("statements must be present exactly when HAS_STATEMENTS is set")
        if bool(flags & RequestFlags.HAS_REQUEST_ID) != (self.request_id is not None):
            raise ValueError("request_id must be present exactly when HAS_REQUEST_ID is set")
        if self.signature is not None and not flags & RequestFlags.HAS_SIGNATURE:
            raise ValueError("signature requires HAS_SIGNATURE")

    def to_buffer(self) -> bytes:
        w = BufferWriter()
        w.write_varint(self.version)
        w.write_varint(int(self.flags))
        w.write_compact_size(len(self.signable_objects))
        for obj in self.signable_objects:
            w.write(obj.to_buffer())
        if self.statements:
            w.write_compact_size(len(self.statements))
            for statement in self.statements:
                w.write_var_slice(statement.encode("utf-8"))
        if self.request_id is not None:
            w.write(self.request_id.to_buffer())
        if self.signature is not None:
            w.write(self.signature.to_buffer())
        return w.getvalue()

    @classmethod
    def from_reader(cls, reader: BufferReader) -> "RequestDetails":
        version = reader.read_varint()
        flags = RequestFlags(reader.read_varint())
        objects = tuple(DataDescriptor.from_reader(reader) for _ in range(reader.read_compact_size()))
        statements = None
        if flags & RequestFlags.HAS_STATEMENTS:
            statements = tuple(
                reader.read_var_slice().decode("utf-8") for _ in range(reader.read_compact_size())
            )
        request_id = CompactIAddress.from_reader(reader) if flags & RequestFlags.HAS_REQUEST_ID else None
        signature = None
        if flags & RequestFlags.HAS_SIGNATURE and reader.remaining:
            signature = SignatureRecord.from_reader(reader)
        return cls(
            flags=flags,
            signable_objects=objects,
            statements=statements,
            request_id=request_id,
            signature=signature,
            version=version,
        )

    @classmethod
    def from_buffer(cls, data: bytes) -> "RequestDetails":
        reader = BufferReader(data)
        obj = cls.from_reader(reader)
        if reader.remaining:
            raise ValueError("Trailing bytes after RequestDetails")
        return obj

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "version": self.version,
            "flags": int(self.flags),
            "signableobjects": [obj.to_json() for obj in self.signable_objects],
        }
        if self.statements:
            out["statements"] = list(self.statements)
        if self.request_id is not None:
            out["requestid"] = self.request_id.to_json()
        if self.signature is not None:
            out["signature"] = self.signature.to_json()
        return out
