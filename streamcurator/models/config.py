"""Pydantic models for application configuration."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

IGNORABLE_FIELDS = ("tvg_id", "logo", "tvg_group")


class SyncOptions(BaseModel):
    """Provider synchronisation settings."""
    model_config = ConfigDict(extra="allow")

    enabled: bool = True
    check_interval: int = 3600
    ignore_fields: list[str] = Field(default_factory=list)
    retries: int = 2


class Options(BaseModel):
    """Application options."""
    model_config = ConfigDict(extra="allow")

    playlist_cache_ttl: int = 86400
    default_page_size: int = 50
    sync: SyncOptions = Field(default_factory=SyncOptions)


class AppConfig(BaseModel):
    """Root application configuration."""
    model_config = ConfigDict(extra="allow")

    options: Options = Field(default_factory=Options)
