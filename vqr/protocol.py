"""
High-level Verus data packet request helpers.

This module provides:

- Generic request envelope:
    - GenericRequest (details + redirects + signing identity + signature)
    - GenericRequest.signing_bytes() / to_buffer() / from_buffer()

- Signing orchestration:
    - sign_message(...)              signdata round trip + normalization
    - generate_data_packet_qr(...)   path A: embed, sign, deeplink + QR
    - sign_data_packet(...)          path B: sign the details only

Per request: Received -> Validating -> (Rejected) -> Assembling -> Signing
-> (SignerFailed) -> Encoding/Normalizing -> Completed. Nothing is retried;
any failure aborts the request. All validation happens before the RPC call.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping, Optional, Tuple

from .codec import BufferReader, BufferWriter
from .config import Settings
from .data_packet import build_data_packet_details
from .errors import OperationError, ValidationError
from .fields import Redirect, parse_redirects
from .models import CompactIAddress, RequestDetails, RequestFlags, SignatureRecord
from .qr_payloads import render_qr_data_url
from .rpc import VerusRpcClient
from .uri_scheme import encode_deeplink

logger = logging.getLogger(__name__)


# Ordinal VDXF object type for data packet request details
DATA_PACKET_REQUEST_ORDINAL = 7


# ---------------------------------------------------------------------------
# Generic request envelope
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GenericRequest:
    """
    Signed request envelope carried by the wallet deeplink.

    Wire form:
        version varint, flags varint, created_at uint64,
        signing identity (compact address), signature var-slice
        (empty while unsigned), details list, redirects list.

    The signing bytes are the wire form with an empty signature slice.
    """

    details: Tuple[RequestDetails, ...]
    signing_id: str
    redirects: Tuple[Redirect, ...] = ()
    created_at: int = 0
    signature: Optional[SignatureRecord] = None
    version: int = 1

    FLAG_SIGNED = 1
    FLAG_HAS_REDIRECTS = 2
    FLAG_HAS_CREATED_AT = 4

    @property
    def flags(self) -> int:
        flags = self.FLAG_SIGNED
        if self.redirects:
            flags |= self.FLAG_HAS_REDIRECTS
        if self.created_at:
            flags |= self.FLAG_HAS_CREATED_AT
        return flags

    def _write(self, include_signature: bool) -> bytes:
        w = BufferWriter()
        w.write_varint(self.version)
        w.write_varint(self.flags)
        if self.created_at:
            w.write_uint64(self.created_at)
        w.write(CompactIAddress.from_address(self.signing_id).to_buffer())
        if include_signature and self.signature is not None:
            w.write_var_slice(self.signature.to_buffer())
        else:
            w.write_var_slice(b"")
        w.write_compact_size(len(self.details))
        for details in self.details:
            w.write_varint(DATA_PACKET_REQUEST_ORDINAL)
            w.write_var_slice(details.to_buffer())
        if self.redirects:
            w.write_compact_size(len(self.redirects))
            for redirect in self.redirects:
                w.write_varint(int(redirect.type))
                w.write_var_slice(redirect.uri.encode("utf-8"))
        return w.getvalue()

    def signing_bytes(self) -> bytes:
        return self._write(include_signature=False)

    def to_buffer(self) -> bytes:
        return self._write(include_signature=True)

    def with_signature(self, signature: SignatureRecord) -> "GenericRequest":
        return replace(self, signature=signature)

    @classmethod
    def from_buffer(cls, data: bytes) -> "GenericRequest":
        reader = BufferReader(data)
        version = reader.read_varint()
        flags = reader.read_varint()
        created_at = reader.read_uint64() if flags & cls.FLAG_HAS_CREATED_AT else 0
        signing_id = CompactIAddress.from_reader(reader).address

        raw_sig = reader.read_var_slice()
        signature = None
        if raw_sig:
            sig_reader = BufferReader(raw_sig)
            signature = SignatureRecord.from_reader(sig_reader)

        details = []
        for _ in range(reader.read_compact_size()):
            ordinal = reader.read_varint()
            if ordinal != DATA_PACKET_REQUEST_ORDINAL:
                raise ValueError(f"Unsupported request ordinal: {ordinal}")
            details.append(RequestDetails.from_buffer(reader.read_var_slice()))

        redirects = []
        if flags & cls.FLAG_HAS_REDIRECTS:
            for _ in range(reader.read_compact_size()):
                kind = str(reader.read_varint())
                uri = reader.read_var_slice().decode("utf-8")
                redirects.append(Redirect(type=kind, uri=uri))

        if reader.remaining:
            raise ValueError("Trailing bytes after GenericRequest")

        return cls(
            details=tuple(details),
            signing_id=signing_id,
            redirects=tuple(redirects),
            created_at=created_at,
            signature=signature,
            version=version,
        )


# ---------------------------------------------------------------------------
# Signing helpers
# ---------------------------------------------------------------------------


def parse_signature_data(value: Any, field: str = "signatureData") -> SignatureRecord:
    """
    Signature produced by an earlier sign_data_packet call, re-supplied by
    the caller for embedding.
    """
    if value is None or value == "":
        raise ValidationError(field, "A signature is required when FLAG_HAS_SIGNATURE is set.")
    try:
        record = SignatureRecord.from_json(value)
        # system and identity must be encodable compact addresses
        record.to_buffer()
    except (ValueError, TypeError) as exc:
        raise ValidationError(field, f"Invalid signature data: {exc}") from exc
    return record


async def sign_message(
    rpc: VerusRpcClient,
    signing_id: str,
    message_hex: str,
    *,
    system_id: str,
) -> SignatureRecord:
    """
    Sign a hex message via `signdata` and normalize the CLI result.
    Any signer problem surfaces as OperationError.
    """
    result = await rpc.signdata(signing_id, message_hex)
    try:
        return SignatureRecord.from_cli_json(result, signing_id=signing_id, system_id=system_id)
    except ValueError as exc:
        raise OperationError(f"RPC signdata returned an unusable signature: {exc}") from exc


# ---------------------------------------------------------------------------
# Path A: embed and encode
# ---------------------------------------------------------------------------


async def generate_data_packet_qr(
    payload: Mapping[str, Any],
    *,
    rpc: VerusRpcClient,
    settings: Settings,
    now: Optional[int] = None,
) -> Dict[str, str]:
    """
    Build, sign and encode a data packet request.

    Returns {"deeplink": ..., "qrDataUrl": ...}.
    """
    outcome = build_data_packet_details(payload)
    details = outcome.unwrap()
    signing_id = outcome.signing_id

    redirects = parse_redirects(payload.get("redirects"), required=True) or []

    if details.flags & RequestFlags.HAS_SIGNATURE:
        details = replace(details, signature=parse_signature_data(payload.get("signatureData")))

    request = GenericRequest(
        details=(details,),
        signing_id=signing_id,
        redirects=tuple(redirects),
        created_at=int(time.time()) if now is None else now,
    )

    try:
        message_hex = request.signing_bytes().hex()
    except ValueError as exc:
        raise OperationError(f"Failed to serialize request: {exc}") from exc

    signature = await sign_message(rpc, signing_id, message_hex, system_id=settings.system_id)
    signed = request.with_signature(signature)

    try:
        wire = signed.to_buffer()
    except ValueError as exc:
        raise OperationError(f"Failed to serialize signed request: {exc}") from exc

    deeplink = encode_deeplink(
        wire,
        scheme=settings.wallet_scheme,
        request_key=settings.generic_request_key,
    )
    logger.info(
        "Data packet request signed by %s (%d signable objects, %d redirects)",
        signing_id,
        len(details.signable_objects),
        len(redirects),
    )
    qr_data_url = await asyncio.to_thread(render_qr_data_url, deeplink)
    return {"deeplink": deeplink, "qrDataUrl": qr_data_url}


# ---------------------------------------------------------------------------
# Path B: sign only
# ---------------------------------------------------------------------------


async def sign_data_packet(
    payload: Mapping[str, Any],
    *,
    rpc: VerusRpcClient,
    settings: Settings,
) -> Dict[str, Any]:
    """
    Sign the serialized details alone (no envelope, redirects not required).

    Returns {"signatureData": <verifiable signature JSON>, "messageHex": ...}.
    The caller re-supplies signatureData on a later generate call.
    """
    outcome = build_data_packet_details(payload)
    details = outcome.unwrap()

    try:
        message_hex = details.to_buffer().hex()
    except ValueError as exc:
        raise OperationError(f"Failed to serialize data packet details: {exc}") from exc

    signature = await sign_message(rpc, outcome.signing_id, message_hex, system_id=settings.system_id)

    logger.info("Data packet details signed by %s", outcome.signing_id)
    return {"signatureData": signature.to_json(), "messageHex": message_hex}
