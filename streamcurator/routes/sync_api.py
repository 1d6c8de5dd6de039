"""Sync API routes — on-demand provider sync, missing check and metadata fixup."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from streamcurator.dependencies import get_provider_service, get_sync_service, get_user_id
from streamcurator.services.provider_service import ProviderService
from streamcurator.services.sync_service import SyncService

router = APIRouter(prefix="/api/sync", tags=["sync"])


@router.post("")
async def sync_now(
    provider_id: Optional[int] = Query(None),
    user_id: int = Depends(get_user_id),
    providers: ProviderService = Depends(get_provider_service),
    sync: SyncService = Depends(get_sync_service),
):
    if provider_id is not None:
        providers.require_provider(user_id, provider_id)
    summary = await sync.run_sync(user_id, provider_id)
    return summary.model_dump()


@router.post("/missing")
async def check_missing(
    provider_id: Optional[int] = Query(None),
    user_id: int = Depends(get_user_id),
    providers: ProviderService = Depends(get_provider_service),
    sync: SyncService = Depends(get_sync_service),
):
    if provider_id is not None:
        providers.require_provider(user_id, provider_id)
    summary = await sync.run_missing(user_id, provider_id)
    return summary.model_dump()


@router.post("/fixup")
async def fixup(
    user_id: int = Depends(get_user_id),
    sync: SyncService = Depends(get_sync_service),
):
    return sync.run_fixup(user_id).model_dump()
