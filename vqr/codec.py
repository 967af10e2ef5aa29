"""
MIT License
Copyright (c) 2025 DarekDGB

Low-level binary helpers for Verus wire objects.

Rules:
- VarInt is the Bitcoin/Verus "VARINT" (MSB base-128 with +1 carry).
- CompactSize is the Bitcoin length prefix (0xfd/0xfe/0xff escapes).
- VarSlice = CompactSize length + raw bytes.
- i-addresses are base58check with version byte 102 over a 20-byte hash.
- Fail-closed decoding (raise ValueError on truncated or malformed input).
"""

from __future__ import annotations

import base64
import struct
from typing import List

import base58


IADDRESS_VERSION = 102
HASH160_LEN = 20


# -------------------------
# base64url / hex helpers
# -------------------------


def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def b64url_decode(token: str) -> bytes:
    if not isinstance(token, str) or not token:
        raise ValueError("Invalid base64url string")
    padding = "=" * (-len(token) % 4)
    return base64.urlsafe_b64decode((token + padding).encode("ascii"))


def is_hex(value: str) -> bool:
    if not isinstance(value, str) or len(value) % 2 != 0:
        return False
    try:
        bytes.fromhex(value)
    except ValueError:
        return False
    return True


# -------------------------
# i-address helpers
# -------------------------


def iaddress_to_hash(address: str) -> bytes:
    """
    Decode a base58check i-address into its 20-byte hash.
    """
    try:
        raw = base58.b58decode_check(address)
    except ValueError as exc:
        raise ValueError(f"Invalid i-address: {address!r}") from exc
    if len(raw) != 1 + HASH160_LEN or raw[0] != IADDRESS_VERSION:
        raise ValueError(f"Invalid i-address: {address!r}")
    return raw[1:]


def hash_to_iaddress(raw: bytes) -> str:
    if len(raw) != HASH160_LEN:
        raise ValueError("i-address hash must be 20 bytes")
    return base58.b58encode_check(bytes([IADDRESS_VERSION]) + raw).decode("ascii")


def is_iaddress(address: str) -> bool:
    try:
        iaddress_to_hash(address)
    except ValueError:
        return False
    return True


# -------------------------
# integer encodings
# -------------------------


def encode_varint(n: int) -> bytes:
    if n < 0:
        raise ValueError("VarInt must be non-negative")
    out: List[int] = []
    while True:
        out.append((n & 0x7F) | (0x80 if out else 0x00))
        if n <= 0x7F:
            break
        n = (n >> 7) - 1
    return bytes(reversed(out))


def encode_compact_size(n: int) -> bytes:
    if n < 0:
        raise ValueError("CompactSize must be non-negative")
    if n < 0xFD:
        return bytes([n])
    if n <= 0xFFFF:
        return b"\xfd" + struct.pack("<H", n)
    if n <= 0xFFFFFFFF:
        return b"\xfe" + struct.pack("<I", n)
    return b"\xff" + struct.pack("<Q", n)


class BufferWriter:
    """Append-only writer for Verus serialization."""

    def __init__(self) -> None:
        self._parts: List[bytes] = []

    def write(self, data: bytes) -> "BufferWriter":
        self._parts.append(bytes(data))
        return self

    def write_uint8(self, n: int) -> "BufferWriter":
        return self.write(struct.pack("<B", n))

    def write_uint64(self, n: int) -> "BufferWriter":
        return self.write(struct.pack("<Q", n))

    def write_varint(self, n: int) -> "BufferWriter":
        return self.write(encode_varint(n))

    def write_compact_size(self, n: int) -> "BufferWriter":
        return self.write(encode_compact_size(n))

    def write_var_slice(self, data: bytes) -> "BufferWriter":
        self.write_compact_size(len(data))
        return self.write(data)

    def getvalue(self) -> bytes:
        return b"".join(self._parts)


class BufferReader:
    """Cursor over a byte buffer. Every read is bounds-checked."""

    def __init__(self, data: bytes, offset: int = 0) -> None:
        self._data = bytes(data)
        self.offset = offset

    @property
    def remaining(self) -> int:
        return len(self._data) - self.offset

    def read(self, n: int) -> bytes:
        if n < 0 or self.offset + n > len(self._data):
            raise ValueError("Unexpected end of buffer")
        chunk = self._data[self.offset : self.offset + n]
        self.offset += n
        return chunk

    def read_uint8(self) -> int:
        return self.read(1)[0]

    def read_uint64(self) -> int:
        return struct.unpack("<Q", self.read(8))[0]

    def read_varint(self) -> int:
        n = 0
        while True:
            b = self.read_uint8()
            n = (n << 7) | (b & 0x7F)
            if b & 0x80:
                n += 1
            else:
                return n

    def read_compact_size(self) -> int:
        first = self.read_uint8()
        if first < 0xFD:
            return first
        if first == 0xFD:
            return struct.unpack("<H", self.read(2))[0]
        if first == 0xFE:
            return struct.unpack("<I", self.read(4))[0]
        return struct.unpack("<Q", self.read(8))[0]

    def read_var_slice(self) -> bytes:
        return self.read(self.read_compact_size())
