"""Application entry point — builds the FastAPI app and wires services."""
from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from streamcurator.database import DB_NAME, init_db
from streamcurator.errors import DataUnavailableError, NotFoundError
from streamcurator.routes import (
    config_api,
    filter_api,
    health,
    missing_api,
    playlist,
    provider_api,
    stream_api,
    sync_api,
    xtream_api,
)
from streamcurator.services.config_service import ConfigService
from streamcurator.services.http_client import HttpClientService
from streamcurator.services.m3u_service import M3uService
from streamcurator.services.missing_service import MissingService
from streamcurator.services.provider_service import ProviderService
from streamcurator.services.rule_service import RuleService
from streamcurator.services.stream_service import StreamService
from streamcurator.services.sync_service import SyncService
from streamcurator.services.xtream_service import XtreamService

# Configure logging
logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

# Data directory - use environment variable or default to /data (Docker) or ./data (local)
DATA_DIR = os.environ.get("DATA_DIR", "/data" if os.path.exists("/data") else "./data")


def attach_services(
    app: FastAPI,
    data_dir: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> None:
    """Create every service for *data_dir* and attach it to ``app.state``."""
    cfg = ConfigService(data_dir)
    cfg.load()
    http = HttpClientService(transport)
    providers = ProviderService(data_dir)
    streams = StreamService(data_dir)
    rules = RuleService(data_dir)
    missing = MissingService(data_dir)

    app.state.data_dir = data_dir
    app.state.config_service = cfg
    app.state.http_client = http
    app.state.provider_service = providers
    app.state.stream_service = streams
    app.state.rule_service = rules
    app.state.missing_service = missing
    app.state.m3u_service = M3uService(streams, providers, rules)
    app.state.xtream_service = XtreamService(streams)
    app.state.sync_service = SyncService(cfg, http, providers, streams, missing)


def install_handlers(app: FastAPI) -> None:
    """UTF-8 JSON middleware and the error -> status mapping."""

    # Middleware to ensure UTF-8 charset in JSON responses
    @app.middleware("http")
    async def add_utf8_charset(request: Request, call_next):
        response = await call_next(request)
        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type and "charset" not in content_type:
            response.headers["content-type"] = "application/json; charset=utf-8"
        return response

    @app.exception_handler(NotFoundError)
    async def not_found(request: Request, exc: NotFoundError):
        return JSONResponse({"error": str(exc)}, status_code=404)

    @app.exception_handler(DataUnavailableError)
    async def data_unavailable(request: Request, exc: DataUnavailableError):
        logger.error(f"{request.method} {request.url.path}: data unavailable: {exc}")
        return JSONResponse({"error": "Data temporarily unavailable"}, status_code=503)


def include_routers(app: FastAPI) -> None:
    for r in (
        health, config_api, provider_api, stream_api, filter_api,
        missing_api, sync_api, playlist, xtream_api,
    ):
        app.include_router(r.router)


def create_app(data_dir: Optional[str] = None) -> FastAPI:
    data_dir = data_dir or DATA_DIR

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager - handles startup and shutdown"""
        # Startup
        os.makedirs(data_dir, exist_ok=True)
        init_db(os.path.join(data_dir, DB_NAME))

        background_task = None
        if app.state.config_service.sync_enabled:
            background_task = asyncio.create_task(app.state.sync_service.background_sync_loop())

        yield

        # Shutdown
        if background_task:
            background_task.cancel()
            try:
                await background_task
            except asyncio.CancelledError:
                pass

        await app.state.http_client.close()
        logger.info("Application shutdown complete")

    app = FastAPI(title="StreamCurator", lifespan=lifespan)
    attach_services(app, data_dir)
    install_handlers(app)
    include_routers(app)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", "5000")))
