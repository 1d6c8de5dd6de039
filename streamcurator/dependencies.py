"""FastAPI dependency injection — provides services via Depends()."""
from __future__ import annotations

from fastapi import Header, HTTPException, Request

from streamcurator.services.config_service import ConfigService
from streamcurator.services.http_client import HttpClientService
from streamcurator.services.m3u_service import M3uService
from streamcurator.services.missing_service import MissingService
from streamcurator.services.provider_service import ProviderService
from streamcurator.services.rule_service import RuleService
from streamcurator.services.stream_service import StreamService
from streamcurator.services.sync_service import SyncService
from streamcurator.services.xtream_service import XtreamService


def get_config_service(request: Request) -> ConfigService:
    return request.app.state.config_service


def get_http_client(request: Request) -> HttpClientService:
    return request.app.state.http_client


def get_provider_service(request: Request) -> ProviderService:
    return request.app.state.provider_service


def get_stream_service(request: Request) -> StreamService:
    return request.app.state.stream_service


def get_rule_service(request: Request) -> RuleService:
    return request.app.state.rule_service


def get_missing_service(request: Request) -> MissingService:
    return request.app.state.missing_service


def get_m3u_service(request: Request) -> M3uService:
    return request.app.state.m3u_service


def get_xtream_service(request: Request) -> XtreamService:
    return request.app.state.xtream_service


def get_sync_service(request: Request) -> SyncService:
    return request.app.state.sync_service


def get_user_id(x_user_id: str | None = Header(default=None)) -> int:
    """The requesting user, taken from the ``X-User-Id`` header."""
    if x_user_id is None or not x_user_id.strip().isdigit():
        raise HTTPException(status_code=401, detail="X-User-Id header required")
    return int(x_user_id)
