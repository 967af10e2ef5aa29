"""HTTP surface: data packet QR generation, signing and identity listing.

Error responses are ``{"error": message}``:
- ValidationError -> 400
- OperationError  -> 500 (logged server-side)
- anything else   -> 500 "Unexpected error." (logged with traceback)
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

import httpx
from fastapi import Body, Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .errors import OperationError, ValidationError
from .protocol import generate_data_packet_qr, sign_data_packet
from .rpc import VerusRpcClient

logger = logging.getLogger(__name__)


RpcFactory = Callable[[Settings], VerusRpcClient]


def default_rpc_factory(settings: Settings) -> VerusRpcClient:
    return VerusRpcClient.from_settings(settings)


def get_rpc_factory() -> RpcFactory:
    return default_rpc_factory


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        logger.warning("Rejected %s: %s", request.url.path, exc.message)
        return JSONResponse(status_code=400, content={"error": exc.message})

    @app.exception_handler(OperationError)
    async def operation_error_handler(request: Request, exc: OperationError) -> JSONResponse:
        logger.error("Request to %s failed: %s", request.url.path, exc.message)
        return JSONResponse(status_code=500, content={"error": exc.message})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unexpected error handling %s", request.url.path)
        return JSONResponse(status_code=500, content={"error": "Unexpected error."})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    app = FastAPI(title="Verus request QR", docs_url=None, redoc_url=None)
    register_exception_handlers(app)

    def _settings() -> Settings:
        return settings if settings is not None else get_settings()

    @app.post("/api/generate-data-packet-qr")
    async def generate_data_packet_qr_route(
        payload: Dict[str, Any] = Body(...),
        rpc_factory: RpcFactory = Depends(get_rpc_factory),
    ) -> Dict[str, str]:
        cfg = _settings()
        async with rpc_factory(cfg) as rpc:
            return await generate_data_packet_qr(payload, rpc=rpc, settings=cfg)

    @app.post("/api/sign-data-packet")
    async def sign_data_packet_route(
        payload: Dict[str, Any] = Body(...),
        rpc_factory: RpcFactory = Depends(get_rpc_factory),
    ) -> Dict[str, Any]:
        cfg = _settings()
        async with rpc_factory(cfg) as rpc:
            return await sign_data_packet(payload, rpc=rpc, settings=cfg)

    @app.get("/api/identities")
    async def list_identities_route(
        rpc_factory: RpcFactory = Depends(get_rpc_factory),
    ) -> Dict[str, Any]:
        try:
            async with rpc_factory(_settings()) as rpc:
                identities = await rpc.list_identities()
        except (OperationError, httpx.HTTPError) as exc:
            logger.error("Failed to list identities: %s", exc)
            identities = []
        return {"identities": identities}

    return app
