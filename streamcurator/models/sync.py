"""Pydantic models for provider sync results."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class SyncResult(BaseModel):
    """Outcome of syncing one provider."""

    provider_id: int
    provider_name: str = ""
    added: int = 0
    updated: int = 0
    total: int = 0
    error: Optional[str] = None


class SyncSummary(BaseModel):
    """Outcome of a sync / missing-check / fixup run over several providers."""

    action: str
    providers: int = 0
    streams: int = 0
    errors: int = 0
    results: list[SyncResult] = Field(default_factory=list)
