"""Filter rule service — per-user CRUD over the stream_filters table."""
from __future__ import annotations

import logging
import os
from typing import Optional

from streamcurator.database import DB_NAME, db_session
from streamcurator.errors import NotFoundError
from streamcurator.models.stream import FilterRule, FilterRuleIn

logger = logging.getLogger(__name__)


class RuleService:
    """Stores filter rules; every call is scoped by owning user."""

    def __init__(self, data_dir: str):
        self.db_path = os.path.join(data_dir, DB_NAME)

    def list_active_filter_rules(self, user_id: int) -> list[FilterRule]:
        with db_session(self.db_path) as conn:
            rows = conn.execute(
                "SELECT * FROM stream_filters WHERE user_id = ? AND active = 1 ORDER BY kind, id",
                (user_id,),
            ).fetchall()
        return [FilterRule.model_validate(dict(r)) for r in rows]

    def list_rules(self, user_id: int, search: str = "") -> list[FilterRule]:
        query = "SELECT * FROM stream_filters WHERE user_id = ?"
        params: list = [user_id]
        if search:
            query += " AND pattern LIKE ?"
            params.append(f"%{search}%")
        query += " ORDER BY kind, pattern"
        with db_session(self.db_path) as conn:
            rows = conn.execute(query, params).fetchall()
        return [FilterRule.model_validate(dict(r)) for r in rows]

    def get_rule(self, user_id: int, rule_id: int) -> Optional[FilterRule]:
        with db_session(self.db_path) as conn:
            row = conn.execute(
                "SELECT * FROM stream_filters WHERE id = ? AND user_id = ?",
                (rule_id, user_id),
            ).fetchone()
        return FilterRule.model_validate(dict(row)) if row else None

    def require_rule(self, user_id: int, rule_id: int) -> FilterRule:
        rule = self.get_rule(user_id, rule_id)
        if rule is None:
            raise NotFoundError(f"Filter {rule_id} not found")
        return rule

    def create_rule(self, user_id: int, data: FilterRuleIn) -> FilterRule:
        with db_session(self.db_path) as conn:
            cur = conn.execute(
                "INSERT INTO stream_filters (user_id, active, kind, pattern) VALUES (?, ?, ?, ?)",
                (user_id, int(data.active), int(data.kind), data.pattern),
            )
            rule_id = cur.lastrowid
        return self.require_rule(user_id, rule_id)

    def update_rule(self, user_id: int, rule_id: int, data: FilterRuleIn) -> FilterRule:
        with db_session(self.db_path) as conn:
            cur = conn.execute(
                "UPDATE stream_filters SET active = ?, kind = ?, pattern = ?, "
                "updated_at = CURRENT_TIMESTAMP WHERE id = ? AND user_id = ?",
                (int(data.active), int(data.kind), data.pattern, rule_id, user_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"Filter {rule_id} not found")
        return self.require_rule(user_id, rule_id)

    def toggle_active(self, user_id: int, rule_id: int) -> FilterRule:
        with db_session(self.db_path) as conn:
            cur = conn.execute(
                "UPDATE stream_filters SET active = NOT active, updated_at = CURRENT_TIMESTAMP "
                "WHERE id = ? AND user_id = ?",
                (rule_id, user_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"Filter {rule_id} not found")
        return self.require_rule(user_id, rule_id)

    def delete_rules(self, user_id: int, rule_ids: list[int]) -> int:
        """Delete several rules in one transaction."""
        if not rule_ids:
            return 0
        placeholders = ", ".join("?" for _ in rule_ids)
        with db_session(self.db_path) as conn:
            cur = conn.execute(
                f"DELETE FROM stream_filters WHERE user_id = ? AND id IN ({placeholders})",
                (user_id, *rule_ids),
            )
        return cur.rowcount
