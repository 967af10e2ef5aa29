from __future__ import annotations

import base64
import json
from typing import Any, Dict, List

import base58
import httpx
import pytest

from vqr.config import Settings
from vqr.rpc import VerusRpcClient


FAKE_SIGNATURE = base64.b64encode(b"\x01" * 65).decode("ascii")


def make_iaddress(seed: int) -> str:
    return base58.b58encode_check(bytes([102]) + bytes([seed]) * 20).decode("ascii")


class FakeDaemon:
    """In-process stand-in for the daemon's JSON-RPC endpoint."""

    def __init__(self, *, signdata_result: Any = None, error: Any = None, status_code: int = 200) -> None:
        self.calls: List[Dict[str, Any]] = []
        self.signdata_result = signdata_result
        self.error = error
        self.status_code = status_code
        self.identities: List[Any] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.calls.append(body)

        if self.error is not None:
            return httpx.Response(self.status_code, json={"result": None, "error": self.error, "id": body["id"]})

        if body["method"] == "signdata":
            params = body["params"][0]
            result = self.signdata_result
            if result is None:
                result = {
                    "hash": "ab" * 32,
                    "hashtype": "sha256",
                    "identity": params["address"],
                    "system": "VRSCTEST",
                    "signature": FAKE_SIGNATURE,
                }
            return httpx.Response(self.status_code, json={"result": result, "error": None, "id": body["id"]})

        if body["method"] == "listidentities":
            return httpx.Response(200, json={"result": self.identities, "error": None, "id": body["id"]})

        return httpx.Response(500, json={"result": None, "error": {"code": -32601, "message": "Method not found"}})

    def client(self) -> VerusRpcClient:
        return VerusRpcClient(
            "http://rpc.test:18843",
            "user",
            "pass",
            transport=httpx.MockTransport(self.handler),
        )

    def signdata_calls(self) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["method"] == "signdata"]


@pytest.fixture
def daemon() -> FakeDaemon:
    return FakeDaemon()


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, rpc_user="user", rpc_password="pass")


@pytest.fixture
def signing_id() -> str:
    return make_iaddress(7)
