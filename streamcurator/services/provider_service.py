"""Provider service — per-user CRUD over the providers table."""
from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Optional

from streamcurator.database import DB_NAME, db_session
from streamcurator.errors import NotFoundError
from streamcurator.models.stream import Provider, ProviderIn

logger = logging.getLogger(__name__)

_COLUMNS = (
    "name", "kind", "domain", "username", "password", "stream_type",
    "priority", "should_filter", "refresh_period", "connection_limit",
)


def _values(data: ProviderIn) -> tuple:
    return (
        data.name,
        int(data.kind),
        data.domain,
        data.username,
        data.password,
        int(data.stream_type),
        data.priority,
        int(data.should_filter),
        data.refresh_period,
        data.connection_limit,
    )


class ProviderService:
    """Stores IPTV provider definitions; every call is scoped by owning user."""

    def __init__(self, data_dir: str):
        self.db_path = os.path.join(data_dir, DB_NAME)

    def list_providers(self, user_id: int) -> list[Provider]:
        with db_session(self.db_path) as conn:
            rows = conn.execute(
                "SELECT * FROM providers WHERE user_id = ? ORDER BY priority, name COLLATE NOCASE",
                (user_id,),
            ).fetchall()
        return [Provider.model_validate(dict(r)) for r in rows]

    def get_provider(self, user_id: int, provider_id: int) -> Optional[Provider]:
        with db_session(self.db_path) as conn:
            row = conn.execute(
                "SELECT * FROM providers WHERE id = ? AND user_id = ?",
                (provider_id, user_id),
            ).fetchone()
        return Provider.model_validate(dict(row)) if row else None

    def require_provider(self, user_id: int, provider_id: int) -> Provider:
        provider = self.get_provider(user_id, provider_id)
        if provider is None:
            raise NotFoundError(f"Provider {provider_id} not found")
        return provider

    def list_for_sync(self, user_id: int | None = None, provider_id: int | None = None) -> list[Provider]:
        """Providers across users, optionally narrowed, for the sync jobs."""
        query = "SELECT * FROM providers WHERE 1 = 1"
        params: list = []
        if user_id is not None:
            query += " AND user_id = ?"
            params.append(user_id)
        if provider_id is not None:
            query += " AND id = ?"
            params.append(provider_id)
        query += " ORDER BY user_id, priority, id"
        with db_session(self.db_path) as conn:
            rows = conn.execute(query, params).fetchall()
        return [Provider.model_validate(dict(r)) for r in rows]

    def create_provider(self, user_id: int, data: ProviderIn) -> Provider:
        placeholders = ", ".join("?" for _ in _COLUMNS)
        with db_session(self.db_path) as conn:
            cur = conn.execute(
                f"INSERT INTO providers (user_id, {', '.join(_COLUMNS)}) VALUES (?, {placeholders})",
                (user_id, *_values(data)),
            )
            provider_id = cur.lastrowid
        logger.info(f"Created provider {provider_id} ({data.name}) for user {user_id}")
        return self.require_provider(user_id, provider_id)

    def update_provider(self, user_id: int, provider_id: int, data: ProviderIn) -> Provider:
        assignments = ", ".join(f"{c} = ?" for c in _COLUMNS)
        with db_session(self.db_path) as conn:
            cur = conn.execute(
                f"UPDATE providers SET {assignments}, updated_at = CURRENT_TIMESTAMP "
                "WHERE id = ? AND user_id = ?",
                (*_values(data), provider_id, user_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"Provider {provider_id} not found")
        return self.require_provider(user_id, provider_id)

    def delete_providers(self, user_id: int, provider_ids: list[int]) -> int:
        """Delete providers with their streams and missing records in one transaction."""
        deleted = 0
        with db_session(self.db_path) as conn:
            for provider_id in provider_ids:
                conn.execute(
                    "DELETE FROM stream_missing WHERE provider_id = ? AND user_id = ?",
                    (provider_id, user_id),
                )
                conn.execute(
                    "DELETE FROM streams WHERE provider_id = ? AND user_id = ?",
                    (provider_id, user_id),
                )
                cur = conn.execute(
                    "DELETE FROM providers WHERE id = ? AND user_id = ?",
                    (provider_id, user_id),
                )
                deleted += cur.rowcount
        if deleted:
            logger.info(f"Deleted {deleted} provider(s) for user {user_id}")
        return deleted

    def toggle_should_filter(self, user_id: int, provider_id: int) -> Provider:
        with db_session(self.db_path) as conn:
            cur = conn.execute(
                "UPDATE providers SET should_filter = NOT should_filter, updated_at = CURRENT_TIMESTAMP "
                "WHERE id = ? AND user_id = ?",
                (provider_id, user_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"Provider {provider_id} not found")
        return self.require_provider(user_id, provider_id)

    def mark_synced(self, provider_id: int, when: datetime | None = None) -> None:
        stamp = (when or datetime.now()).isoformat(timespec="seconds")
        with db_session(self.db_path) as conn:
            conn.execute("UPDATE providers SET last_synced = ? WHERE id = ?", (stamp, provider_id))
