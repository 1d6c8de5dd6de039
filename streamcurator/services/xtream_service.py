"""Xtream service — shapes a user's streams as Xtream Codes ``player_api.php`` listings."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from streamcurator.models.stream import Stream, StreamType

if TYPE_CHECKING:
    from streamcurator.services.stream_service import StreamService

logger = logging.getLogger(__name__)


def live_entry(stream: Stream) -> dict:
    return {
        "stream_id": stream.id,
        "num": stream.channel,
        "name": stream.name,
        "stream_url": stream.uri,
        "epg_channel_id": stream.tvg_id,
        "stream_icon": stream.tvg_logo,
        "category_id": stream.tvg_group,
        "category_name": "live",
        "tv_archive": 1,
        "direct_source": 0,
        "tv_archive_duration": 0,
    }


def vod_entry(stream: Stream) -> dict:
    return {
        "stream_id": stream.id,
        "num": stream.channel,
        "name": stream.name,
        "stream_url": stream.uri,
        "stream_icon": stream.tvg_logo,
        "category_id": stream.tvg_group,
        "category_name": "vod",
        "direct_source": 0,
        "container_extension": "",
    }


def series_entry(stream: Stream) -> dict:
    return {
        "series_id": stream.id,
        "num": stream.channel,
        "name": stream.name,
        "stream_url": stream.uri,
        "cover": stream.tvg_logo,
        "category_id": stream.tvg_group,
        "category_name": "series",
        "direct_source": 0,
    }


# action -> (stream type, entry builder)
ACTIONS: dict[str, tuple[StreamType, Callable[[Stream], dict]]] = {
    "get_live_streams": (StreamType.LIVE, live_entry),
    "get_vod_streams": (StreamType.VOD, vod_entry),
    "get_series": (StreamType.SERIES, series_entry),
}


class XtreamService:
    """Answers the listing actions of the Xtream Codes player API from the stream store."""

    def __init__(self, stream_service: "StreamService"):
        self.stream_service = stream_service

    def list_action(self, user_id: int, action: str, provider_id: int | None = None) -> list[dict]:
        """Return the listing for *action*; raises ``KeyError`` for unknown actions.

        Entries come in playlist order (provider priority, then name) and
        only active streams are listed.
        """
        stream_type, build = ACTIONS[action]
        streams = self.stream_service.list_active_streams(user_id, stream_type, provider_id)
        logger.debug(f"Xtream {action} user={user_id} provider={provider_id}: {len(streams)} entries")
        return [build(s) for s in streams]
