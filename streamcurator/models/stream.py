"""Pydantic models for providers, streams, filter rules and missing-stream records."""
from __future__ import annotations

import re
from enum import IntEnum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class StreamType(IntEnum):
    LIVE = 0
    VOD = 4
    SERIES = 5


# Route segment ("live", "vod", "series") -> stored type id
STREAM_TYPES_BY_NAME = {
    "live": StreamType.LIVE,
    "vod": StreamType.VOD,
    "series": StreamType.SERIES,
}


class ProviderKind(IntEnum):
    XC_API = 0
    M3U = 1


class TransportKind(IntEnum):
    MPEGTS = 0
    HLS = 1


class FilterKind(IntEnum):
    INCLUDE_NAME_REGEX = 0
    EXCLUDE_NAME = 1
    EXCLUDE_NAME_REGEX = 2
    EXCLUDE_STREAM_REGEX = 3
    EXCLUDE_GROUP_REGEX = 4


FILTER_KIND_LABELS = {
    FilterKind.INCLUDE_NAME_REGEX: "Include Name (regex)",
    FilterKind.EXCLUDE_NAME: "Exclude Name",
    FilterKind.EXCLUDE_NAME_REGEX: "Exclude Name (regex)",
    FilterKind.EXCLUDE_STREAM_REGEX: "Exclude Stream (regex)",
    FilterKind.EXCLUDE_GROUP_REGEX: "Exclude Group (regex)",
}

CATEGORY_STREAM = "stream"
CATEGORY_OTHER = "other"
CATEGORIES = (CATEGORY_STREAM, CATEGORY_OTHER)

_LINE_BREAKS = re.compile(r"[\r\n]+")


def single_line(value: Optional[str]) -> Optional[str]:
    """Collapse CR/LF runs to a single space so a value stays on one M3U line."""
    if value is None:
        return None
    return _LINE_BREAKS.sub(" ", value)


class Provider(BaseModel):
    """An IPTV source (XC API credentials or a static M3U URL)."""
    model_config = ConfigDict(extra="ignore")

    id: int
    user_id: int
    name: str
    kind: int = ProviderKind.XC_API
    domain: str
    username: Optional[str] = None
    password: Optional[str] = None
    stream_type: int = TransportKind.MPEGTS
    priority: int = 99
    should_filter: bool = True
    refresh_period: int = 3
    connection_limit: int = 1
    last_synced: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ProviderIn(BaseModel):
    """Create/update payload for a provider."""

    name: str
    kind: ProviderKind = ProviderKind.XC_API
    domain: str
    username: Optional[str] = None
    password: Optional[str] = None
    stream_type: TransportKind = TransportKind.MPEGTS
    priority: int = 99
    should_filter: bool = True
    refresh_period: int = Field(default=3, ge=0)
    connection_limit: int = Field(default=1, ge=1)


class Stream(BaseModel):
    """A normalised channel / VOD / series entry owned by one user."""
    model_config = ConfigDict(extra="ignore")

    id: int
    user_id: int
    provider_id: Optional[int] = None
    type: int = StreamType.LIVE
    category: str = CATEGORY_STREAM
    active: bool = True
    channel: str = "0"
    name: str = ""
    orig_name: str = ""
    uri: str = ""
    tvg_id: Optional[str] = None
    tvg_group: Optional[str] = None
    tvg_logo: Optional[str] = None
    extras: Optional[str] = None
    provider_name: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class StreamIn(BaseModel):
    """Create/update payload for a stream."""

    provider_id: Optional[int] = None
    type: StreamType = StreamType.LIVE
    category: Literal["stream", "other"] = CATEGORY_STREAM
    active: bool = True
    channel: str = "0"
    name: str = ""
    orig_name: str = ""
    uri: str
    tvg_id: Optional[str] = None
    tvg_group: Optional[str] = None
    tvg_logo: Optional[str] = None
    extras: Optional[str] = None

    @field_validator("channel", "name", "orig_name", "tvg_id", "tvg_group", "tvg_logo")
    @classmethod
    def _one_line(cls, value: Optional[str]) -> Optional[str]:
        return single_line(value)

    @field_validator("uri")
    @classmethod
    def _uri_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value or _LINE_BREAKS.search(value):
            raise ValueError("uri must be a single non-empty line")
        return value


class FilterRule(BaseModel):
    """A user filter rule. ``kind`` stays a plain int so corrupt rows still load."""
    model_config = ConfigDict(extra="ignore")

    id: int = 0
    user_id: int = 0
    active: bool = True
    kind: int = FilterKind.EXCLUDE_NAME
    pattern: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class FilterRuleIn(BaseModel):
    active: bool = True
    kind: int = FilterKind.EXCLUDE_NAME
    pattern: str


class MissingStream(BaseModel):
    """A stored stream whose URI vanished from its provider's listing."""
    model_config = ConfigDict(extra="ignore")

    id: int
    user_id: int
    provider_id: int
    stream_id: Optional[int] = None
    stream_name: Optional[str] = None
    provider_name: Optional[str] = None
    created_at: Optional[str] = None
