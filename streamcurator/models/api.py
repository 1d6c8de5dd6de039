"""Request bodies for the management API."""
from __future__ import annotations

from pydantic import BaseModel, Field


class IdsIn(BaseModel):
    ids: list[int] = Field(default_factory=list)


class NameIn(BaseModel):
    name: str


class ChannelIn(BaseModel):
    channel: str


class MoveIn(BaseModel):
    """Bulk move: ``to`` is ``live``, ``vod``, ``series`` or ``other``."""

    ids: list[int] = Field(default_factory=list)
    to: str
