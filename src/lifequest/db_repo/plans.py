from __future__ import annotations

import json
import sqlite3
from contextlib import AbstractContextManager
from datetime import date, datetime
from typing import Any, Protocol

from lifequest.db_converters import _row_to_plan, _row_to_plan_item
from lifequest.db_models import Plan, PlanItem, TaskStatus

UPDATABLE_ITEM_FIELDS = ("title", "axis", "tier", "scheduled_at", "estimated_minutes", "description")


class DbProtocol(Protocol):
    def _session(self, conn: sqlite3.Connection | None = None) -> AbstractContextManager[sqlite3.Connection]: ...
    def get_plan(self, user_id: int, plan_date: date, conn: sqlite3.Connection | None = None) -> Plan | None: ...
    def get_plan_item(self, item_id: int, conn: sqlite3.Connection | None = None) -> PlanItem | None: ...


class PlanMixin:
    def get_plan(self: DbProtocol, user_id: int, plan_date: date, conn: sqlite3.Connection | None = None) -> Plan | None:
        with self._session(conn) as c:
            row = c.execute(
                "SELECT * FROM plans WHERE user_id = ? AND plan_date = ?",
                (user_id, plan_date.isoformat()),
            ).fetchone()
        return _row_to_plan(row) if row else None

    def get_plan_by_id(self: DbProtocol, plan_id: int, conn: sqlite3.Connection | None = None) -> Plan | None:
        with self._session(conn) as c:
            row = c.execute("SELECT * FROM plans WHERE id = ?", (plan_id,)).fetchone()
        return _row_to_plan(row) if row else None

    def get_or_create_plan(
        self: DbProtocol,
        user_id: int,
        plan_date: date,
        now: datetime,
        conn: sqlite3.Connection | None = None,
    ) -> Plan:
        with self._session(conn) as c:
            c.execute(
                """
                INSERT OR IGNORE INTO plans(user_id, plan_date, generated_from, created_at)
                VALUES (?, ?, 'auto', ?)
                """,
                (user_id, plan_date.isoformat(), now.isoformat()),
            )
            plan = self.get_plan(user_id, plan_date, conn=c)
        assert plan is not None
        return plan

    def mark_plan_materialized(self: DbProtocol, plan_id: int, now: datetime, conn: sqlite3.Connection | None = None) -> None:
        with self._session(conn) as c:
            c.execute(
                "UPDATE plans SET materialized_at = ? WHERE id = ? AND materialized_at IS NULL",
                (now.isoformat(), plan_id),
            )

    def list_plan_items(self: DbProtocol, plan_id: int, conn: sqlite3.Connection | None = None) -> list[PlanItem]:
        with self._session(conn) as c:
            rows = c.execute(
                "SELECT * FROM plan_items WHERE plan_id = ? ORDER BY sort_order ASC, id ASC",
                (plan_id,),
            ).fetchall()
        return [_row_to_plan_item(r) for r in rows]

    def get_plan_item(self: DbProtocol, item_id: int, conn: sqlite3.Connection | None = None) -> PlanItem | None:
        with self._session(conn) as c:
            row = c.execute("SELECT * FROM plan_items WHERE id = ?", (item_id,)).fetchone()
        return _row_to_plan_item(row) if row else None

    def next_sort_order(self: DbProtocol, plan_id: int, conn: sqlite3.Connection | None = None) -> int:
        with self._session(conn) as c:
            row = c.execute("SELECT MAX(sort_order) AS mx FROM plan_items WHERE plan_id = ?", (plan_id,)).fetchone()
        if row and row["mx"] is not None:
            return int(row["mx"]) + 1
        return 1

    def add_plan_item(
        self: DbProtocol,
        plan_id: int,
        user_id: int,
        source: str,
        axis: str,
        title: str,
        tier: int,
        estimated_minutes: int,
        sort_order: int,
        now: datetime,
        series_id: int | None = None,
        description: str | None = None,
        scheduled_at: datetime | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> PlanItem | None:
        """Insert one item. Returns None when the (plan, series) pair already exists."""
        stamp = now.isoformat()
        with self._session(conn) as c:
            cur = c.execute(
                """
                INSERT OR IGNORE INTO plan_items(
                    plan_id, user_id, series_id, source, axis, title, description, tier,
                    scheduled_at, estimated_minutes, status, sort_order, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 'todo', ?, ?, ?)
                """,
                (
                    plan_id,
                    user_id,
                    series_id,
                    source,
                    axis,
                    title,
                    description,
                    tier,
                    scheduled_at.isoformat() if scheduled_at else None,
                    estimated_minutes,
                    sort_order,
                    stamp,
                    stamp,
                ),
            )
            if cur.rowcount == 0:
                return None
            item = self.get_plan_item(int(cur.lastrowid), conn=c)
        return item

    def transition_plan_item(
        self: DbProtocol,
        item_id: int,
        target: TaskStatus,
        now: datetime,
        conn: sqlite3.Connection | None = None,
    ) -> bool:
        """Move a todo item to ``target``. False if the item was no longer todo."""
        if not TaskStatus.TODO.can_transition(target):
            raise ValueError(f"todo cannot transition to {target.value}")
        with self._session(conn) as c:
            cur = c.execute(
                "UPDATE plan_items SET status = ?, updated_at = ? WHERE id = ? AND status = ?",
                (target.value, now.isoformat(), item_id, TaskStatus.TODO.value),
            )
        return cur.rowcount > 0

    def update_plan_item_fields(
        self: DbProtocol,
        item_id: int,
        fields: dict[str, Any],
        now: datetime,
        conn: sqlite3.Connection | None = None,
    ) -> None:
        assignments: list[str] = []
        params: list[Any] = []
        for key in UPDATABLE_ITEM_FIELDS:
            if key not in fields:
                continue
            value = fields[key]
            if key == "scheduled_at" and isinstance(value, datetime):
                value = value.isoformat()
            assignments.append(f"{key} = ?")
            params.append(value)
        assignments.append("updated_at = ?")
        params.append(now.isoformat())
        params.append(item_id)
        with self._session(conn) as c:
            c.execute(f"UPDATE plan_items SET {', '.join(assignments)} WHERE id = ?", params)

    def delete_plan_item(self: DbProtocol, item_id: int, conn: sqlite3.Connection | None = None) -> bool:
        with self._session(conn) as c:
            cur = c.execute(
                "DELETE FROM plan_items WHERE id = ? AND status = ?",
                (item_id, TaskStatus.TODO.value),
            )
        return cur.rowcount > 0

    def upsert_plan_item_override(
        self: DbProtocol,
        item_id: int,
        apply_scope: str,
        override_fields: dict[str, Any],
        now: datetime,
        conn: sqlite3.Connection | None = None,
    ) -> None:
        with self._session(conn) as c:
            c.execute(
                """
                INSERT INTO plan_item_overrides(plan_item_id, apply_scope, override_json, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(plan_item_id) DO UPDATE SET
                    apply_scope=excluded.apply_scope,
                    override_json=excluded.override_json,
                    updated_at=excluded.updated_at
                """,
                (item_id, apply_scope, json.dumps(override_fields, sort_keys=True, default=str), now.isoformat()),
            )

    def get_plan_item_override(self: DbProtocol, item_id: int) -> dict[str, Any] | None:
        with self._session() as c:
            row = c.execute(
                "SELECT override_json FROM plan_item_overrides WHERE plan_item_id = ?",
                (item_id,),
            ).fetchone()
        return json.loads(row["override_json"]) if row else None
