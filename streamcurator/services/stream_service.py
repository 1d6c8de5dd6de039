"""Stream service — per-user stream storage, search, bulk actions and sync upserts."""
from __future__ import annotations

import logging
import os
from typing import Iterable, Optional

from streamcurator.database import DB_NAME, db_session
from streamcurator.errors import NotFoundError
from streamcurator.models.stream import (
    CATEGORY_OTHER,
    CATEGORY_STREAM,
    Provider,
    Stream,
    StreamIn,
    StreamType,
    single_line,
)

logger = logging.getLogger(__name__)

_SELECT = (
    "SELECT s.*, p.name AS provider_name FROM streams s "
    "LEFT JOIN providers p ON p.id = s.provider_id AND p.user_id = s.user_id "
    "WHERE s.user_id = ?"
)

_SEARCH_COLUMNS = (
    "p.name", "s.name", "s.orig_name", "s.uri", "s.tvg_id", "s.tvg_group", "s.tvg_logo", "s.extras",
)

SORTABLE_COLUMNS = {
    "id": "s.id",
    "name": "s.name COLLATE NOCASE",
    "orig_name": "s.orig_name COLLATE NOCASE",
    "channel": "s.channel",
    "type": "s.type",
    "active": "s.active",
    "provider_name": "p.name COLLATE NOCASE",
    "created_at": "s.created_at",
    "updated_at": "s.updated_at",
}

_EDITABLE = (
    "provider_id", "type", "category", "active", "channel", "name",
    "orig_name", "uri", "tvg_id", "tvg_group", "tvg_logo", "extras",
)

# Sync ignore-field name -> column
_IGNORE_FIELD_COLUMNS = {"tvg_id": "tvg_id", "logo": "tvg_logo", "tvg_group": "tvg_group"}

# Providers without a priority (no provider) sort after every real one.
_NO_PROVIDER_PRIORITY = 2147483647


def _edit_values(data: StreamIn) -> tuple:
    return (
        data.provider_id,
        int(data.type),
        data.category,
        int(data.active),
        data.channel,
        data.name,
        data.orig_name,
        data.uri,
        data.tvg_id,
        data.tvg_group,
        data.tvg_logo,
        data.extras,
    )


def _placeholders(ids: list[int]) -> str:
    return ", ".join("?" for _ in ids)


def _check_provider(conn, user_id: int, provider_id: Optional[int]) -> None:
    if provider_id is None:
        return
    row = conn.execute(
        "SELECT 1 FROM providers WHERE id = ? AND user_id = ?", (provider_id, user_id)
    ).fetchone()
    if row is None:
        raise NotFoundError(f"Provider {provider_id} not found")


class StreamService:
    """Stores streams; every query is scoped by the owning user."""

    def __init__(self, data_dir: str):
        self.db_path = os.path.join(data_dir, DB_NAME)

    # ------------------------------------------------------------------
    # Playlist read contract
    # ------------------------------------------------------------------

    def list_active_streams(
        self,
        user_id: int,
        stream_type: StreamType,
        provider_id: int | None = None,
    ) -> list[Stream]:
        """Active curated streams of one type, by provider priority then name."""
        query = _SELECT + " AND s.type = ? AND s.active = 1 AND s.category = ?"
        params: list = [user_id, int(stream_type), CATEGORY_STREAM]
        if provider_id is not None:
            query += " AND s.provider_id = ?"
            params.append(provider_id)
        query += (
            f" ORDER BY COALESCE(p.priority, {_NO_PROVIDER_PRIORITY}),"
            " s.name COLLATE NOCASE, s.id"
        )
        with db_session(self.db_path) as conn:
            rows = conn.execute(query, params).fetchall()
        return [Stream.model_validate(dict(r)) for r in rows]

    # ------------------------------------------------------------------
    # Listing / search
    # ------------------------------------------------------------------

    def search_streams(
        self,
        user_id: int,
        search: str = "",
        stream_type: int | None = None,
        active: bool | None = None,
        category: str | None = None,
        provider_id: int | None = None,
        sort: str = "name",
        direction: str = "asc",
        page: int = 1,
        per_page: int = 50,
    ) -> tuple[list[Stream], int]:
        """Return one page of streams plus the total match count."""
        where = ""
        params: list = [user_id]
        if search:
            term = f"%{search}%"
            where += " AND (" + " OR ".join(f"{c} LIKE ?" for c in _SEARCH_COLUMNS) + ")"
            params.extend([term] * len(_SEARCH_COLUMNS))
        if stream_type is not None:
            where += " AND s.type = ?"
            params.append(stream_type)
        if active is not None:
            where += " AND s.active = ?"
            params.append(int(active))
        if category is not None:
            where += " AND s.category = ?"
            params.append(category)
        if provider_id is not None:
            where += " AND s.provider_id = ?"
            params.append(provider_id)

        order = SORTABLE_COLUMNS.get(sort, SORTABLE_COLUMNS["name"])
        order_dir = "DESC" if direction.lower() == "desc" else "ASC"
        page = max(page, 1)
        offset = (page - 1) * per_page

        count_query = (
            "SELECT COUNT(s.id) AS total FROM streams s "
            "LEFT JOIN providers p ON p.id = s.provider_id AND p.user_id = s.user_id "
            "WHERE s.user_id = ?" + where
        )
        page_query = _SELECT + where + f" ORDER BY {order} {order_dir}, s.id LIMIT ? OFFSET ?"

        with db_session(self.db_path) as conn:
            total = conn.execute(count_query, params).fetchone()["total"]
            rows = conn.execute(page_query, [*params, per_page, offset]).fetchall()
        return [Stream.model_validate(dict(r)) for r in rows], total

    def get_stream(self, user_id: int, stream_id: int) -> Optional[Stream]:
        with db_session(self.db_path) as conn:
            row = conn.execute(_SELECT + " AND s.id = ?", (user_id, stream_id)).fetchone()
        return Stream.model_validate(dict(row)) if row else None

    def require_stream(self, user_id: int, stream_id: int) -> Stream:
        stream = self.get_stream(user_id, stream_id)
        if stream is None:
            raise NotFoundError(f"Stream {stream_id} not found")
        return stream

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create_stream(self, user_id: int, data: StreamIn) -> Stream:
        with db_session(self.db_path) as conn:
            _check_provider(conn, user_id, data.provider_id)
            cur = conn.execute(
                f"INSERT INTO streams (user_id, {', '.join(_EDITABLE)}) "
                f"VALUES (?, {', '.join('?' for _ in _EDITABLE)})",
                (user_id, *_edit_values(data)),
            )
            stream_id = cur.lastrowid
        return self.require_stream(user_id, stream_id)

    def update_stream(self, user_id: int, stream_id: int, data: StreamIn) -> Stream:
        assignments = ", ".join(f"{c} = ?" for c in _EDITABLE)
        with db_session(self.db_path) as conn:
            _check_provider(conn, user_id, data.provider_id)
            cur = conn.execute(
                f"UPDATE streams SET {assignments}, updated_at = CURRENT_TIMESTAMP "
                "WHERE id = ? AND user_id = ?",
                (*_edit_values(data), stream_id, user_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"Stream {stream_id} not found")
        return self.require_stream(user_id, stream_id)

    def _update_field(self, user_id: int, stream_id: int, column: str, value) -> Stream:
        with db_session(self.db_path) as conn:
            cur = conn.execute(
                f"UPDATE streams SET {column} = ?, updated_at = CURRENT_TIMESTAMP "
                "WHERE id = ? AND user_id = ?",
                (value, stream_id, user_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"Stream {stream_id} not found")
        return self.require_stream(user_id, stream_id)

    def update_name(self, user_id: int, stream_id: int, name: str) -> Stream:
        return self._update_field(user_id, stream_id, "name", single_line(name))

    def update_channel(self, user_id: int, stream_id: int, channel: str) -> Stream:
        return self._update_field(user_id, stream_id, "channel", channel)

    def delete_streams(self, user_id: int, stream_ids: list[int]) -> int:
        if not stream_ids:
            return 0
        with db_session(self.db_path) as conn:
            cur = conn.execute(
                f"DELETE FROM streams WHERE user_id = ? AND id IN ({_placeholders(stream_ids)})",
                (user_id, *stream_ids),
            )
        return cur.rowcount

    # ------------------------------------------------------------------
    # Bulk actions
    # ------------------------------------------------------------------

    def toggle_active(self, user_id: int, stream_ids: list[int]) -> int:
        """Flip the active flag of each listed stream."""
        if not stream_ids:
            return 0
        with db_session(self.db_path) as conn:
            cur = conn.execute(
                "UPDATE streams SET active = NOT active, updated_at = CURRENT_TIMESTAMP "
                f"WHERE user_id = ? AND id IN ({_placeholders(stream_ids)})",
                (user_id, *stream_ids),
            )
        return cur.rowcount

    def move_to_type(self, user_id: int, stream_ids: list[int], stream_type: StreamType) -> int:
        """Retype streams; entries coming from "other" become curated streams."""
        if not stream_ids:
            return 0
        with db_session(self.db_path) as conn:
            cur = conn.execute(
                "UPDATE streams SET type = ?, category = ?, updated_at = CURRENT_TIMESTAMP "
                f"WHERE user_id = ? AND id IN ({_placeholders(stream_ids)})",
                (int(stream_type), CATEGORY_STREAM, user_id, *stream_ids),
            )
        return cur.rowcount

    def move_to_other(self, user_id: int, stream_ids: list[int]) -> int:
        if not stream_ids:
            return 0
        with db_session(self.db_path) as conn:
            cur = conn.execute(
                "UPDATE streams SET category = ?, updated_at = CURRENT_TIMESTAMP "
                f"WHERE user_id = ? AND id IN ({_placeholders(stream_ids)})",
                (CATEGORY_OTHER, user_id, *stream_ids),
            )
        return cur.rowcount

    # ------------------------------------------------------------------
    # Sync support
    # ------------------------------------------------------------------

    def list_provider_uris(self, provider: Provider) -> dict[str, int]:
        """Map of stored URI -> stream id for one provider."""
        with db_session(self.db_path) as conn:
            rows = conn.execute(
                "SELECT id, uri FROM streams WHERE user_id = ? AND provider_id = ?",
                (provider.user_id, provider.id),
            ).fetchall()
        return {r["uri"]: r["id"] for r in rows}

    def upsert_provider_entries(
        self,
        provider: Provider,
        entries: Iterable[dict],
        ignore_fields: Iterable[str] = (),
    ) -> tuple[int, int]:
        """Insert new listing entries and refresh metadata of known ones.

        Entries are matched on ``(user, provider, uri)``.  New rows start
        active with ``name`` equal to the provider's original name.  Returns
        ``(added, updated)``.
        """
        skipped = {_IGNORE_FIELD_COLUMNS[f] for f in ignore_fields if f in _IGNORE_FIELD_COLUMNS}
        refresh_columns = [c for c in ("tvg_id", "tvg_group", "tvg_logo") if c not in skipped]
        added = updated = 0
        seen: set[str] = set()

        with db_session(self.db_path) as conn:
            existing = {
                r["uri"]: r
                for r in conn.execute(
                    "SELECT * FROM streams WHERE user_id = ? AND provider_id = ?",
                    (provider.user_id, provider.id),
                ).fetchall()
            }
            for entry in entries:
                uri = entry.get("uri")
                if not uri or uri in seen:
                    continue
                seen.add(uri)
                name = single_line(entry.get("name") or "")

                row = existing.get(uri)
                if row is None:
                    conn.execute(
                        "INSERT INTO streams (user_id, provider_id, type, category, active, channel, "
                        "name, orig_name, uri, tvg_id, tvg_group, tvg_logo, extras) "
                        "VALUES (?, ?, ?, ?, 1, ?, ?, ?, ?, ?, ?, ?, ?)",
                        (
                            provider.user_id,
                            provider.id,
                            int(entry.get("type", StreamType.LIVE)),
                            CATEGORY_STREAM,
                            entry.get("channel") or "0",
                            name,
                            name,
                            uri,
                            None if "tvg_id" in skipped else entry.get("tvg_id"),
                            None if "tvg_group" in skipped else entry.get("tvg_group"),
                            None if "tvg_logo" in skipped else entry.get("tvg_logo"),
                            entry.get("extras"),
                        ),
                    )
                    added += 1
                    continue

                changes = {"orig_name": name}
                for column in refresh_columns:
                    changes[column] = entry.get(column)
                if all(row[c] == v for c, v in changes.items()):
                    continue
                assignments = ", ".join(f"{c} = ?" for c in changes)
                conn.execute(
                    f"UPDATE streams SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                    (*changes.values(), row["id"]),
                )
                updated += 1

        return added, updated

    def fixup_metadata(self, user_id: int | None = None) -> int:
        """Share channel numbers and tvg metadata between same-name streams of one user.

        * live streams with channel ``"0"`` take the channel of a same-name
          stream that has one;
        * ``tvg_id`` and ``tvg_logo`` are taken from the most recently
          updated same-name stream carrying a non-empty value.

        Returns the number of rows changed.
        """
        scope = "" if user_id is None else " AND streams.user_id = ?"
        params: tuple = () if user_id is None else (user_id,)
        same_name = "b.name = streams.name AND b.user_id = streams.user_id"
        changed = 0

        with db_session(self.db_path) as conn:
            donor_channel = (
                f"SELECT b.channel FROM streams b WHERE {same_name} AND b.id != streams.id AND b.channel != '0'"
                " ORDER BY b.id LIMIT 1"
            )
            cur = conn.execute(
                f"UPDATE streams SET channel = ({donor_channel})"
                f" WHERE streams.channel = '0' AND streams.type = 0 AND EXISTS ({donor_channel})" + scope,
                params,
            )
            changed += cur.rowcount
            for column in ("tvg_id", "tvg_logo"):
                latest = (
                    f"SELECT b.{column} FROM streams b WHERE {same_name}"
                    f" AND b.{column} IS NOT NULL AND b.{column} != ''"
                    " ORDER BY COALESCE(b.updated_at, b.created_at) DESC, b.id DESC LIMIT 1"
                )
                cur = conn.execute(
                    f"UPDATE streams SET {column} = ({latest})"
                    f" WHERE EXISTS ({latest})"
                    f" AND (streams.{column} IS NULL OR streams.{column} != ({latest}))" + scope,
                    params,
                )
                changed += cur.rowcount
        logger.info(f"Metadata fixup changed {changed} row(s)")
        return changed

    def cleanup_streams(self, user_id: int | None = None) -> int:
        """Delete orphaned streams and duplicate URIs (keeping the newest row)."""
        scope = "" if user_id is None else " AND user_id = ?"
        params: tuple = () if user_id is None else (user_id,)
        with db_session(self.db_path) as conn:
            orphans = conn.execute(
                "DELETE FROM streams WHERE provider_id IS NOT NULL"
                " AND provider_id NOT IN (SELECT id FROM providers)" + scope,
                params,
            ).rowcount
            duplicates = conn.execute(
                "DELETE FROM streams WHERE id NOT IN ("
                "  SELECT MAX(id) FROM streams GROUP BY user_id, uri"
                ")" + scope,
                params,
            ).rowcount
        logger.info(f"Cleanup removed {orphans} orphaned and {duplicates} duplicate stream(s)")
        return orphans + duplicates
