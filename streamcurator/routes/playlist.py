"""Playlist routes — per-user M3U export."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, Response

from streamcurator.dependencies import get_config_service, get_m3u_service
from streamcurator.errors import DataUnavailableError
from streamcurator.models.stream import STREAM_TYPES_BY_NAME
from streamcurator.services.config_service import ConfigService
from streamcurator.services.m3u_service import M3uService, render_error_m3u

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/playlist", tags=["playlist"])

MEDIA_TYPE = "application/mpegurl"


def _playlist_response(
    m3u: M3uService,
    cfg: ConfigService,
    user_id: int,
    which: str,
    provider_id: int | None = None,
):
    stream_type = STREAM_TYPES_BY_NAME.get(which.lower())
    if stream_type is None:
        return JSONResponse({"error": f"Unknown playlist type: {which}"}, status_code=404)

    try:
        content = m3u.generate_playlist(user_id, stream_type, provider_id)
    except DataUnavailableError as e:
        logger.error(f"Playlist {which} for user {user_id} unavailable: {e}")
        return Response(
            content=render_error_m3u("Unable to generate playlist"),
            media_type=MEDIA_TYPE,
            status_code=503,
            headers={"Cache-Control": "no-cache"},
        )

    return Response(
        content=content,
        media_type=MEDIA_TYPE,
        headers={
            "Content-Disposition": f'attachment; filename="{which.lower()}.m3u8"',
            "Cache-Control": f"public, max-age={cfg.playlist_cache_ttl}",
        },
    )


@router.get("/{user_id}/{which}")
async def user_playlist(
    user_id: int,
    which: str,
    cfg: ConfigService = Depends(get_config_service),
    m3u: M3uService = Depends(get_m3u_service),
):
    return _playlist_response(m3u, cfg, user_id, which)


@router.get("/{user_id}/{provider_id}/{which}")
async def provider_playlist(
    user_id: int,
    provider_id: int,
    which: str,
    cfg: ConfigService = Depends(get_config_service),
    m3u: M3uService = Depends(get_m3u_service),
):
    return _playlist_response(m3u, cfg, user_id, which, provider_id)
