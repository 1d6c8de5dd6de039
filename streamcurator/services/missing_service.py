"""Missing-stream service — bookkeeping for entries that vanished from a provider."""
from __future__ import annotations

import logging
import os
from typing import Iterable

from streamcurator.database import DB_NAME, db_session
from streamcurator.models.stream import MissingStream, Provider

logger = logging.getLogger(__name__)


class MissingService:

    def __init__(self, data_dir: str):
        self.db_path = os.path.join(data_dir, DB_NAME)

    def list_missing(self, user_id: int, provider_id: int | None = None) -> list[MissingStream]:
        query = (
            "SELECT m.*, s.name AS stream_name, p.name AS provider_name FROM stream_missing m "
            "LEFT JOIN streams s ON s.id = m.stream_id AND s.user_id = m.user_id "
            "LEFT JOIN providers p ON p.id = m.provider_id AND p.user_id = m.user_id "
            "WHERE m.user_id = ?"
        )
        params: list = [user_id]
        if provider_id is not None:
            query += " AND m.provider_id = ?"
            params.append(provider_id)
        query += " ORDER BY m.created_at DESC, m.id DESC"
        with db_session(self.db_path) as conn:
            rows = conn.execute(query, params).fetchall()
        return [MissingStream.model_validate(dict(r)) for r in rows]

    def record_missing(self, provider: Provider, stream_ids: Iterable[int]) -> int:
        """Record streams as missing; already-recorded ones are left alone."""
        recorded = 0
        with db_session(self.db_path) as conn:
            for stream_id in stream_ids:
                cur = conn.execute(
                    "INSERT OR IGNORE INTO stream_missing (user_id, provider_id, stream_id) VALUES (?, ?, ?)",
                    (provider.user_id, provider.id, stream_id),
                )
                recorded += cur.rowcount
        return recorded

    def resolve_present(self, provider: Provider, present_stream_ids: Iterable[int]) -> int:
        """Drop missing records for streams that are back in the listing."""
        ids = list(present_stream_ids)
        if not ids:
            return 0
        placeholders = ", ".join("?" for _ in ids)
        with db_session(self.db_path) as conn:
            cur = conn.execute(
                f"DELETE FROM stream_missing WHERE user_id = ? AND provider_id = ? AND stream_id IN ({placeholders})",
                (provider.user_id, provider.id, *ids),
            )
        return cur.rowcount

    def delete_missing(self, user_id: int, missing_ids: list[int]) -> int:
        if not missing_ids:
            return 0
        placeholders = ", ".join("?" for _ in missing_ids)
        with db_session(self.db_path) as conn:
            cur = conn.execute(
                f"DELETE FROM stream_missing WHERE user_id = ? AND id IN ({placeholders})",
                (user_id, *missing_ids),
            )
        return cur.rowcount

    def clear_provider(self, user_id: int, provider_id: int) -> int:
        with db_session(self.db_path) as conn:
            cur = conn.execute(
                "DELETE FROM stream_missing WHERE user_id = ? AND provider_id = ?",
                (user_id, provider_id),
            )
        return cur.rowcount
