"""Missing-stream API routes."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from streamcurator.dependencies import get_missing_service, get_user_id
from streamcurator.models.api import IdsIn
from streamcurator.services.missing_service import MissingService

router = APIRouter(prefix="/api/missing", tags=["missing"])


@router.get("")
async def list_missing(
    provider_id: Optional[int] = Query(None),
    user_id: int = Depends(get_user_id),
    missing: MissingService = Depends(get_missing_service),
):
    return [m.model_dump() for m in missing.list_missing(user_id, provider_id)]


@router.post("/delete")
async def delete_missing(
    data: IdsIn,
    user_id: int = Depends(get_user_id),
    missing: MissingService = Depends(get_missing_service),
):
    return {"status": "ok", "deleted": missing.delete_missing(user_id, data.ids)}


@router.delete("/provider/{provider_id}")
async def clear_provider(
    provider_id: int,
    user_id: int = Depends(get_user_id),
    missing: MissingService = Depends(get_missing_service),
):
    return {"status": "ok", "deleted": missing.clear_provider(user_id, provider_id)}


@router.delete("/{missing_id}")
async def delete_one(
    missing_id: int,
    user_id: int = Depends(get_user_id),
    missing: MissingService = Depends(get_missing_service),
):
    if not missing.delete_missing(user_id, [missing_id]):
        return JSONResponse({"error": f"Missing record {missing_id} not found"}, status_code=404)
    return {"status": "ok"}
