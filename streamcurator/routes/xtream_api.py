"""Xtream Codes emulation — listing actions of player_api.php per user."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from streamcurator.dependencies import get_xtream_service
from streamcurator.errors import CuratorError
from streamcurator.services.xtream_service import ACTIONS, XtreamService

logger = logging.getLogger(__name__)
router = APIRouter(tags=["xtream"])


def _error(message: str, status_code: int = 400) -> JSONResponse:
    return JSONResponse({"error": True, "message": message}, status_code=status_code)


@router.get("/xtream/{user_id}/player_api.php")
async def player_api(
    user_id: int,
    action: str = Query(""),
    provider: Optional[int] = Query(None),
    xtream: XtreamService = Depends(get_xtream_service),
):
    if not action:
        return _error("No action specified")
    if action not in ACTIONS:
        return _error("Unknown action")

    try:
        data = xtream.list_action(user_id, action, provider)
    except CuratorError as e:
        logger.error(f"Xtream API error for action {action}: {e}")
        return _error("API error occurred", 500)

    return JSONResponse(data, headers={"Cache-Control": "no-cache, must-revalidate"})
