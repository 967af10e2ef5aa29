"""
Wallet deeplink URI scheme.

This module is the single source of truth for wallet deeplinks.

Format:
    <wallet-scheme>://x-callback-url/<request-key>/?<request-key>=<base64url(bytes)>

Rules:
- URL-safe base64 (no padding) for the payload parameter.
- The payload is the serialized, signed request envelope (binary, not JSON).
- Fail-closed decoding (raise ValueError).
"""

from __future__ import annotations

from .codec import b64url_decode, b64url_encode
from .config import GENERIC_REQUEST_KEY, WALLET_SCHEME


_CALLBACK_HOST = "x-callback-url"


def _extract_query_param(query: str, key: str) -> str | None:
    for pair in query.split("&"):
        if not pair:
            continue
        k, _, v = pair.partition("=")
        if k == key:
            return v
    return None


def encode_deeplink(
    payload: bytes,
    *,
    scheme: str = WALLET_SCHEME,
    request_key: str = GENERIC_REQUEST_KEY,
) -> str:
    if not scheme or any(c.isspace() for c in scheme):
        raise ValueError("Invalid wallet scheme")
    if not request_key or any(c.isspace() for c in request_key):
        raise ValueError("Invalid request key")
    if not payload:
        raise ValueError("Deeplink payload must be non-empty")

    token = b64url_encode(payload)
    return f"{scheme.lower()}://{_CALLBACK_HOST}/{request_key}/?{request_key}={token}"


def decode_deeplink(
    uri: str,
    *,
    scheme: str = WALLET_SCHEME,
    request_key: str = GENERIC_REQUEST_KEY,
) -> bytes:
    prefix = f"{scheme.lower()}://{_CALLBACK_HOST}/"
    if not isinstance(uri, str) or not uri.startswith(prefix):
        raise ValueError("Not a wallet deeplink (unexpected scheme or host).")

    rest = uri[len(prefix) :]
    if "?" not in rest:
        raise ValueError("Wallet deeplink missing query part.")

    path, query = rest.split("?", 1)
    if path.rstrip("/") != request_key:
        raise ValueError(f"Unsupported deeplink request key: {path!r}")

    token = _extract_query_param(query, request_key)
    if not token:
        raise ValueError("Wallet deeplink missing payload parameter.")

    try:
        return b64url_decode(token)
    except Exception as exc:  # noqa: BLE001
        raise ValueError("Failed to decode wallet deeplink payload.") from exc
