"""
Simple end-to-end data packet request example.

This simulates:

1. A service signing the request details alone (sign-only path).
2. The same service embedding that signature, signing the envelope and
   encoding it as a wallet deeplink + QR.
3. A wallet decoding the deeplink back into the request.

The daemon is faked with an in-process httpx transport. In production,
point RPC_HOST / RPC_USER / RPC_PASSWORD at a real node.
"""

import asyncio
import base64
import json

import base58
import httpx

from vqr.config import Settings
from vqr.protocol import GenericRequest, generate_data_packet_qr, sign_data_packet
from vqr.rpc import VerusRpcClient
from vqr.uri_scheme import decode_deeplink

SIGNING_ID = base58.b58encode_check(bytes([102]) + bytes(20)).decode("ascii")


def fake_daemon(request: httpx.Request) -> httpx.Response:
    body = json.loads(request.content)
    params = body["params"][0]
    result = {
        "hash": "00" * 32,
        "hashtype": "sha256",
        "identity": params["address"],
        "signature": base64.b64encode(b"\x00" * 65).decode("ascii"),  # not a real signature
    }
    return httpx.Response(200, json={"result": result, "error": None, "id": body["id"]})


def rpc_client() -> VerusRpcClient:
    return VerusRpcClient("http://localhost:18843", "user", "pass", transport=httpx.MockTransport(fake_daemon))


async def main() -> None:
    settings = Settings(_env_file=None, rpc_user="user", rpc_password="pass")

    form = {
        "signingId": SIGNING_ID,
        "flagHasSignature": True,
        "flagHasUrlForDownload": True,
        "downloadUrl": "https://example.com/files/report.pdf",
        "dataHash": "00" * 32,
    }

    # 1. Sign the details only
    async with rpc_client() as rpc:
        signed = await sign_data_packet(form, rpc=rpc, settings=settings)
    print("Signed details (hex):")
    print(signed["messageHex"])
    print()

    # 2. Embed the signature and build the deeplink
    form["signatureData"] = signed["signatureData"]
    form["redirects"] = [{"type": "1", "uri": "https://example.com/callback"}]
    async with rpc_client() as rpc:
        out = await generate_data_packet_qr(form, rpc=rpc, settings=settings)
    print("Wallet deeplink:")
    print(out["deeplink"])
    print()

    # 3. Wallet side: decode
    request = GenericRequest.from_buffer(decode_deeplink(out["deeplink"]))
    for details in request.details:
        print("Decoded details:")
        print(json.dumps(details.to_json(), indent=2))


if __name__ == "__main__":
    asyncio.run(main())
