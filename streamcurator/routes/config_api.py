"""Options API routes."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from streamcurator.dependencies import get_config_service
from streamcurator.services.config_service import ConfigService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["config"])


@router.get("/api/options")
async def get_options(cfg: ConfigService = Depends(get_config_service)):
    return cfg.config.get("options", {})


@router.post("/api/options")
async def update_options(request: Request, cfg: ConfigService = Depends(get_config_service)):
    data = await request.json()
    if not isinstance(data, dict):
        return JSONResponse({"error": "Expected a JSON object"}, status_code=400)
    try:
        options = cfg.update_options(data)
    except ValidationError as e:
        return JSONResponse({"error": f"Invalid options: {e}"}, status_code=400)
    logger.info(f"Options updated: {', '.join(data)}")
    return {"status": "ok", "options": options}
