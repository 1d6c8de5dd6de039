"""M3U service — playlist serialisation, parsing, and per-user playlist generation."""
from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Iterable, Optional

from streamcurator.models.stream import Stream, StreamType, single_line
from streamcurator.services.filter_service import filter_streams

if TYPE_CHECKING:
    from streamcurator.services.provider_service import ProviderService
    from streamcurator.services.rule_service import RuleService
    from streamcurator.services.stream_service import StreamService

logger = logging.getLogger(__name__)

M3U_HEADER = "#EXTM3U"

_ATTR_RE = re.compile(r'([a-zA-Z0-9_\-]+)="(.*?)"')
_KNOWN_TYPES = {t.value for t in StreamType}


# ---------------------------------------------------------------------------
# Serialisation
# ---------------------------------------------------------------------------

def format_extinf(stream: Stream) -> str:
    """Build the ``#EXTINF`` line for one stream.

    Line breaks inside values are collapsed so the entry never spills onto
    the URI line.
    """
    name = single_line(stream.name)
    group = single_line(stream.tvg_group)
    extinf = f'#EXTINF:-1 tvg-name="{name}" tvg-chno="{single_line(stream.channel)}" tvg-type="{int(stream.type)}"'
    if group:
        extinf += f' tvg-group="{group}" group-title="{group}"'
    if stream.tvg_id:
        extinf += f' tvg-id="{single_line(stream.tvg_id)}"'
    if stream.tvg_logo:
        extinf += f' tvg-logo="{single_line(stream.tvg_logo)}"'
    return f"{extinf}, {name}"


def render_m3u(streams: Iterable[Stream]) -> str:
    """Serialise streams, in the given order, as M3U8 text.

    An empty sequence yields the bare header line.
    """
    lines = [M3U_HEADER]
    for stream in streams:
        lines.append(format_extinf(stream))
        lines.append(stream.uri)
    return "\n".join(lines) + "\n"


def render_error_m3u(message: str) -> str:
    return f"{M3U_HEADER}\n# Error: {message}\n"


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def parse_extinf(line: str) -> Optional[dict]:
    """Parse an ``#EXTINF`` line into its attributes and display name."""
    if not line.startswith("#EXTINF:"):
        return None
    attributes = {key.lower(): value for key, value in _ATTR_RE.findall(line)}
    remainder = _ATTR_RE.sub("", line)
    parts = remainder.split(",", 1)
    title = parts[1].strip() if len(parts) == 2 else ""
    return {"attributes": attributes, "title": title}


def infer_stream_type(uri: str) -> StreamType:
    """Guess the stream type of an M3U entry from its URI layout."""
    lowered = uri.lower()
    if "/movie/" in lowered:
        return StreamType.VOD
    if "/series/" in lowered:
        return StreamType.SERIES
    return StreamType.LIVE


def parse_m3u(text: str) -> list[dict]:
    """Parse M3U text into entry dicts.

    Each entry carries ``name``, ``uri``, ``type``, ``channel``, ``tvg_id``,
    ``tvg_group`` and ``tvg_logo``.  Lines that are neither ``#EXTINF`` nor a
    URI (other directives, blanks) are skipped; a URI without a preceding
    ``#EXTINF`` is kept with its URI as the name.
    """
    entries: list[dict] = []
    current: Optional[dict] = None

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        if line.startswith("#EXTINF:"):
            current = parse_extinf(line)
            continue
        if line.startswith("#"):
            continue

        attrs = current["attributes"] if current else {}
        title = (current or {}).get("title") or attrs.get("tvg-name") or line
        type_attr = attrs.get("tvg-type", "")
        stream_type = (
            StreamType(int(type_attr))
            if type_attr.isdigit() and int(type_attr) in _KNOWN_TYPES
            else infer_stream_type(line)
        )
        entries.append(
            {
                "name": title,
                "uri": line,
                "type": stream_type,
                "channel": attrs.get("tvg-chno") or "0",
                "tvg_id": attrs.get("tvg-id") or None,
                "tvg_group": attrs.get("tvg-group") or attrs.get("group-title") or None,
                "tvg_logo": attrs.get("tvg-logo") or None,
            }
        )
        current = None

    return entries


# ---------------------------------------------------------------------------
# Playlist generation
# ---------------------------------------------------------------------------

class M3uService:
    """Generates filtered M3U playlists (per user or per user+provider)."""

    def __init__(
        self,
        stream_service: "StreamService",
        provider_service: "ProviderService",
        rule_service: "RuleService",
    ):
        self.stream_service = stream_service
        self.provider_service = provider_service
        self.rule_service = rule_service

    def generate_playlist(
        self,
        user_id: int,
        stream_type: StreamType,
        provider_id: int | None = None,
    ) -> str:
        """Read, filter and serialise a user's active streams of one type.

        Raises ``DataUnavailableError`` when storage fails.
        """
        streams = self.stream_service.list_active_streams(user_id, stream_type, provider_id)
        rules = self.rule_service.list_active_filter_rules(user_id)
        providers = {p.id: p for p in self.provider_service.list_providers(user_id)}

        included = filter_streams(streams, rules, providers)
        logger.info(
            f"Playlist user={user_id} type={int(stream_type)} provider={provider_id}: "
            f"{len(included)} of {len(streams)} stream(s) exported"
        )
        return render_m3u(included)
