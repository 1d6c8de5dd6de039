"""Provider API routes — per-user provider CRUD."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from streamcurator.dependencies import get_provider_service, get_user_id
from streamcurator.models.api import IdsIn
from streamcurator.models.stream import ProviderIn
from streamcurator.services.provider_service import ProviderService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/providers", tags=["providers"])


@router.get("")
async def list_providers(
    user_id: int = Depends(get_user_id),
    providers: ProviderService = Depends(get_provider_service),
):
    return [p.model_dump() for p in providers.list_providers(user_id)]


@router.post("", status_code=201)
async def create_provider(
    data: ProviderIn,
    user_id: int = Depends(get_user_id),
    providers: ProviderService = Depends(get_provider_service),
):
    provider = providers.create_provider(user_id, data)
    return {"status": "ok", "provider": provider.model_dump()}


@router.post("/delete")
async def delete_providers(
    data: IdsIn,
    user_id: int = Depends(get_user_id),
    providers: ProviderService = Depends(get_provider_service),
):
    deleted = providers.delete_providers(user_id, data.ids)
    return {"status": "ok", "deleted": deleted}


@router.get("/{provider_id}")
async def get_provider(
    provider_id: int,
    user_id: int = Depends(get_user_id),
    providers: ProviderService = Depends(get_provider_service),
):
    return providers.require_provider(user_id, provider_id).model_dump()


@router.put("/{provider_id}")
async def update_provider(
    provider_id: int,
    data: ProviderIn,
    user_id: int = Depends(get_user_id),
    providers: ProviderService = Depends(get_provider_service),
):
    provider = providers.update_provider(user_id, provider_id, data)
    return {"status": "ok", "provider": provider.model_dump()}


@router.delete("/{provider_id}")
async def delete_provider(
    provider_id: int,
    user_id: int = Depends(get_user_id),
    providers: ProviderService = Depends(get_provider_service),
):
    providers.require_provider(user_id, provider_id)
    providers.delete_providers(user_id, [provider_id])
    return {"status": "ok"}


@router.post("/{provider_id}/toggle-filter")
async def toggle_filter(
    provider_id: int,
    user_id: int = Depends(get_user_id),
    providers: ProviderService = Depends(get_provider_service),
):
    provider = providers.toggle_should_filter(user_id, provider_id)
    return {"status": "ok", "should_filter": provider.should_filter}
