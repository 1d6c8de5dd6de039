"""Stream API routes — search, edit and bulk-manage a user's streams."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from streamcurator.dependencies import get_config_service, get_stream_service, get_user_id
from streamcurator.models.api import ChannelIn, IdsIn, MoveIn, NameIn
from streamcurator.models.stream import CATEGORIES, CATEGORY_OTHER, STREAM_TYPES_BY_NAME, StreamIn
from streamcurator.services.config_service import ConfigService
from streamcurator.services.stream_service import StreamService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/streams", tags=["streams"])


@router.get("")
async def list_streams(
    search: str = Query(""),
    type: Optional[str] = Query(None),
    active: Optional[bool] = Query(None),
    category: Optional[str] = Query(None),
    provider_id: Optional[int] = Query(None),
    sort: str = Query("name"),
    direction: str = Query("asc"),
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1, le=1000),
    user_id: int = Depends(get_user_id),
    cfg: ConfigService = Depends(get_config_service),
    streams: StreamService = Depends(get_stream_service),
):
    stream_type = None
    if type is not None:
        stream_type = STREAM_TYPES_BY_NAME.get(type.lower())
        if stream_type is None:
            return JSONResponse({"error": f"Unknown stream type: {type}"}, status_code=400)
    if category is not None and category not in CATEGORIES:
        return JSONResponse({"error": f"Unknown category: {category}"}, status_code=400)

    per_page = per_page or cfg.get_default_page_size()
    items, total = streams.search_streams(
        user_id,
        search=search.strip(),
        stream_type=None if stream_type is None else int(stream_type),
        active=active,
        category=category,
        provider_id=provider_id,
        sort=sort,
        direction=direction,
        page=page,
        per_page=per_page,
    )
    return {
        "items": [s.model_dump() for s in items],
        "total": total,
        "page": page,
        "per_page": per_page,
    }


@router.post("", status_code=201)
async def create_stream(
    data: StreamIn,
    user_id: int = Depends(get_user_id),
    streams: StreamService = Depends(get_stream_service),
):
    stream = streams.create_stream(user_id, data)
    return {"status": "ok", "stream": stream.model_dump()}


@router.post("/delete")
async def delete_streams(
    data: IdsIn,
    user_id: int = Depends(get_user_id),
    streams: StreamService = Depends(get_stream_service),
):
    return {"status": "ok", "deleted": streams.delete_streams(user_id, data.ids)}


@router.post("/toggle-active")
async def toggle_active(
    data: IdsIn,
    user_id: int = Depends(get_user_id),
    streams: StreamService = Depends(get_stream_service),
):
    return {"status": "ok", "updated": streams.toggle_active(user_id, data.ids)}


@router.post("/move")
async def move_streams(
    data: MoveIn,
    user_id: int = Depends(get_user_id),
    streams: StreamService = Depends(get_stream_service),
):
    target = data.to.lower()
    if target == CATEGORY_OTHER:
        moved = streams.move_to_other(user_id, data.ids)
    elif target in STREAM_TYPES_BY_NAME:
        moved = streams.move_to_type(user_id, data.ids, STREAM_TYPES_BY_NAME[target])
    else:
        return JSONResponse({"error": f"Unknown move target: {data.to}"}, status_code=400)
    logger.info(f"User {user_id} moved {moved} stream(s) to {target}")
    return {"status": "ok", "moved": moved}


@router.get("/{stream_id}")
async def get_stream(
    stream_id: int,
    user_id: int = Depends(get_user_id),
    streams: StreamService = Depends(get_stream_service),
):
    return streams.require_stream(user_id, stream_id).model_dump()


@router.put("/{stream_id}")
async def update_stream(
    stream_id: int,
    data: StreamIn,
    user_id: int = Depends(get_user_id),
    streams: StreamService = Depends(get_stream_service),
):
    stream = streams.update_stream(user_id, stream_id, data)
    return {"status": "ok", "stream": stream.model_dump()}


@router.delete("/{stream_id}")
async def delete_stream(
    stream_id: int,
    user_id: int = Depends(get_user_id),
    streams: StreamService = Depends(get_stream_service),
):
    if not streams.delete_streams(user_id, [stream_id]):
        return JSONResponse({"error": f"Stream {stream_id} not found"}, status_code=404)
    return {"status": "ok"}


@router.post("/{stream_id}/name")
async def update_name(
    stream_id: int,
    data: NameIn,
    user_id: int = Depends(get_user_id),
    streams: StreamService = Depends(get_stream_service),
):
    stream = streams.update_name(user_id, stream_id, data.name.strip())
    return {"status": "ok", "name": stream.name}


@router.post("/{stream_id}/channel")
async def update_channel(
    stream_id: int,
    data: ChannelIn,
    user_id: int = Depends(get_user_id),
    streams: StreamService = Depends(get_stream_service),
):
    stream = streams.update_channel(user_id, stream_id, data.channel.strip() or "0")
    return {"status": "ok", "channel": stream.channel}
