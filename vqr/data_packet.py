"""
MIT License
Copyright (c) 2025 DarekDGB

Data packet request details assembly.

Input is a raw form payload (camelCase keys, as posted by the UI):

{
  "signingId": "alice@",
  "flagHasRequestId": false,
  "flagHasStatements": true,
  "flagHasSignature": false,
  "flagForUsersSignature": false,
  "flagForTransmittalToUser": false,
  "flagHasUrlForDownload": true,
  "signableObjects": "[...]" | [...],
  "statements": "[...]" | [...],
  "requestId": "i...",
  "downloadUrl": "https://example.com/file",
  "dataHash": "<64 hex chars>"
}

Preconditions run in a fixed order before anything is assembled, and the
result is returned as a BuildOutcome (details | validation error) so the
"fail before RPC" contract holds for every caller.

URL mode wins completely: when HAS_URL_FOR_DOWNLOAD is set the signable
objects are exactly one synthesized URL descriptor and any submitted
objects are ignored.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Mapping, Optional

from .errors import OperationError, ValidationError
from .fields import (
    check_signature_exclusivity,
    compose_flags,
    optional_string,
    parse_optional_iaddress,
    parse_signable_objects,
    parse_statements,
    read_flag_inputs,
    require_string,
    validate_data_hash,
)
from .models import (
    CompactIAddress,
    DataDescriptor,
    RequestDetails,
    RequestFlags,
    SignatureRecord,
    build_url_descriptor,
)


@dataclass(frozen=True)
class DataPacketForm:
    signing_id: str
    flags: RequestFlags
    signable_objects: List[DataDescriptor]
    statements: Optional[List[str]] = None
    request_id: Optional[CompactIAddress] = None
    download_url: Optional[str] = None
    data_hash: Optional[bytes] = None

    @property
    def url_mode(self) -> bool:
        return bool(self.flags & RequestFlags.HAS_URL_FOR_DOWNLOAD)


@dataclass(frozen=True)
class BuildOutcome:
    details: Optional[RequestDetails] = None
    signing_id: str = ""
    error: Optional[ValidationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> RequestDetails:
        if self.error is not None:
            raise self.error
        if self.details is None:
            raise OperationError("Data packet details were not assembled.")
        return self.details


def parse_data_packet_form(payload: Mapping[str, Any]) -> DataPacketForm:
    """
    Run every precondition, in order, and return the validated form.
    Raises ValidationError on the first failure.
    """
    if not isinstance(payload, Mapping):
        raise ValidationError("payload", "must be a JSON object.")

    signing_id = require_string(payload.get("signingId"), "signingId")

    selected = read_flag_inputs(payload)
    check_signature_exclusivity(selected)
    flags = compose_flags(selected)

    download_url: Optional[str] = None
    data_hash: Optional[bytes] = None
    if flags & RequestFlags.HAS_URL_FOR_DOWNLOAD:
        download_url = optional_string(payload.get("downloadUrl"), "downloadUrl")
        if download_url is None:
            raise ValidationError(
                "downloadUrl", "Download URL is required when FLAG_HAS_URL_FOR_DOWNLOAD is set."
            )
        data_hash = validate_data_hash(payload.get("dataHash"), "dataHash")

    statements = parse_statements(payload.get("statements"))
    if flags & RequestFlags.HAS_STATEMENTS and not statements:
        raise ValidationError("statements", "Statements are required when FLAG_HAS_STATEMENTS is set.")

    request_id = parse_optional_iaddress(payload.get("requestId"), "requestId")
    if flags & RequestFlags.HAS_REQUEST_ID and request_id is None:
        raise ValidationError("requestId", "Request ID is required when FLAG_HAS_REQUEST_ID is set.")

    signable_objects: List[DataDescriptor] = []
    if not flags & RequestFlags.HAS_URL_FOR_DOWNLOAD:
        signable_objects = parse_signable_objects(payload.get("signableObjects"))

    return DataPacketForm(
        signing_id=signing_id,
        flags=flags,
        signable_objects=signable_objects,
        statements=statements,
        request_id=request_id,
        download_url=download_url,
        data_hash=data_hash,
    )


def assemble_details(form: DataPacketForm, signature: Optional[SignatureRecord] = None) -> RequestDetails:
    """
    Produce the immutable RequestDetails for a validated form.

    Statements and request id are flag-gated: if the flag is unset they are
    omitted even when supplied.
    """
    try:
        if form.url_mode:
            objects = (build_url_descriptor(form.download_url or "", form.data_hash),)
        else:
            objects = tuple(form.signable_objects)

        return RequestDetails(
            flags=form.flags,
            signable_objects=objects,
            statements=tuple(form.statements) if form.flags & RequestFlags.HAS_STATEMENTS else None,
            request_id=form.request_id if form.flags & RequestFlags.HAS_REQUEST_ID else None,
            signature=signature if form.flags & RequestFlags.HAS_SIGNATURE else None,
        )
    except ValueError as exc:
        raise OperationError(f"Failed to assemble data packet details: {exc}") from exc


def build_data_packet_details(
    payload: Mapping[str, Any],
    signature: Optional[SignatureRecord] = None,
) -> BuildOutcome:
    try:
        form = parse_data_packet_form(payload)
    except ValidationError as exc:
        return BuildOutcome(error=exc)
    return BuildOutcome(details=assemble_details(form, signature), signing_id=form.signing_id)
