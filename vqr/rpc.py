"""JSON-RPC client for the Verus daemon (signer and identity lookups).

The daemon speaks JSON-RPC 1.0 over HTTP with basic auth. RPC-level
failures come back as ``{"result": null, "error": {"code": ..., "message": ...}}``,
usually with HTTP 500, so the body is inspected before the status code.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from .config import Settings
from .errors import OperationError

logger = logging.getLogger(__name__)


class VerusRpcClient:
    """Async JSON-RPC client. One instance per request is fine; it holds no state."""

    def __init__(
        self,
        url: str,
        user: str,
        password: str,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._url = url.rstrip("/")
        self._has_credentials = bool(user) and bool(password)
        self._client = httpx.AsyncClient(
            base_url=self._url,
            auth=(user, password),
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "VerusRpcClient":
        return cls(
            settings.rpc_url,
            settings.rpc_user,
            settings.rpc_password,
            timeout=settings.rpc_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "VerusRpcClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Low-level call
    # ------------------------------------------------------------------

    async def request(self, method: str, params: List[Any]) -> Any:
        if not self._has_credentials:
            raise OperationError("RPC credentials are not configured (RPC_USER / RPC_PASSWORD).")

        body = {"jsonrpc": "1.0", "id": "vqr", "method": method, "params": params}
        logger.debug("RPC call %s -> %s", method, self._url)

        try:
            response = await self._client.post("/", json=body)
        except httpx.TimeoutException as exc:
            raise OperationError(f"RPC {method} timed out.") from exc
        except httpx.HTTPError as exc:
            raise OperationError(f"RPC {method} failed: daemon unreachable.") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise OperationError(
                f"RPC {method} returned a non-JSON response (HTTP {response.status_code})."
            ) from exc

        if not isinstance(data, dict):
            raise OperationError(f"RPC {method} returned a malformed response.")

        error = data.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise OperationError(message or f"RPC {method} failed.")

        if response.status_code >= 400:
            raise OperationError(f"RPC {method} failed with HTTP {response.status_code}.")

        return data.get("result")

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def signdata(self, address: str, message_hex: str) -> Dict[str, Any]:
        """Sign a hex message with a VerusID. Returns the raw CLI result."""
        result = await self.request("signdata", [{"address": address, "messagehex": message_hex}])
        if not isinstance(result, dict):
            raise OperationError("RPC signdata returned no valid signature.")
        signature = result.get("signature")
        if not isinstance(signature, str) or not signature:
            raise OperationError("RPC signdata returned no valid signature.")
        return result

    async def list_identities(self) -> List[Dict[str, str]]:
        """Wallet identities as [{name, iAddress}]; malformed entries are skipped."""
        result = await self.request("listidentities", [])
        if not isinstance(result, list):
            return []

        identities: List[Dict[str, str]] = []
        for entry in result:
            identity = entry.get("identity") if isinstance(entry, dict) else None
            if not isinstance(identity, dict):
                continue
            name = identity.get("name")
            address = identity.get("identityaddress")
            if name and address:
                identities.append({"name": name, "iAddress": address})
        return identities
