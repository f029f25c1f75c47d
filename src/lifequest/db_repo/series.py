from __future__ import annotations

import json
import sqlite3
from contextlib import AbstractContextManager
from datetime import date, datetime
from typing import Any, Protocol

from lifequest.db_converters import _row_to_series
from lifequest.db_models import Series
from lifequest.recurrence import RecurrenceRule

SERIES_COLUMNS = ("title", "axis", "tier_default", "estimated_minutes_default", "active")


class DbProtocol(Protocol):
    def _session(self, conn: sqlite3.Connection | None = None) -> AbstractContextManager[sqlite3.Connection]: ...
    def get_series(self, user_id: int, series_id: int, conn: sqlite3.Connection | None = None) -> Series | None: ...


class SeriesMixin:
    def add_series(
        self: DbProtocol,
        user_id: int,
        title: str,
        axis: str,
        tier_default: int,
        estimated_minutes_default: int,
        active: bool,
        rule: RecurrenceRule,
        start_date: date,
        now: datetime,
        conn: sqlite3.Connection | None = None,
    ) -> Series:
        with self._session(conn) as c:
            cur = c.execute(
                """
                INSERT INTO series(
                    user_id, title, axis, tier_default, estimated_minutes_default,
                    active, rule_type, rule_json, start_date, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    title,
                    axis,
                    tier_default,
                    estimated_minutes_default,
                    1 if active else 0,
                    rule.rule_type.value,
                    json.dumps(rule.to_json()),
                    start_date.isoformat(),
                    now.isoformat(),
                ),
            )
            series = self.get_series(user_id, int(cur.lastrowid), conn=c)
        assert series is not None
        return series

    def get_series(self: DbProtocol, user_id: int, series_id: int, conn: sqlite3.Connection | None = None) -> Series | None:
        with self._session(conn) as c:
            row = c.execute(
                "SELECT * FROM series WHERE id = ? AND user_id = ?",
                (series_id, user_id),
            ).fetchone()
        return _row_to_series(row) if row else None

    def list_series(self: DbProtocol, user_id: int, active_only: bool = False, conn: sqlite3.Connection | None = None) -> list[Series]:
        with self._session(conn) as c:
            if active_only:
                rows = c.execute(
                    "SELECT * FROM series WHERE user_id = ? AND active = 1 ORDER BY id ASC",
                    (user_id,),
                ).fetchall()
            else:
                rows = c.execute(
                    "SELECT * FROM series WHERE user_id = ? ORDER BY created_at DESC, id DESC",
                    (user_id,),
                ).fetchall()
        return [_row_to_series(r) for r in rows]

    def update_series_fields(
        self: DbProtocol,
        series_id: int,
        fields: dict[str, Any],
        conn: sqlite3.Connection | None = None,
    ) -> None:
        if not fields:
            return
        assignments: list[str] = []
        params: list[Any] = []
        for key, value in fields.items():
            if key == "rule":
                assignments.append("rule_type = ?")
                params.append(value.rule_type.value)
                assignments.append("rule_json = ?")
                params.append(json.dumps(value.to_json()))
                continue
            if key not in SERIES_COLUMNS:
                continue
            if key == "active":
                value = 1 if value else 0
            assignments.append(f"{key} = ?")
            params.append(value)
        if not assignments:
            return
        params.append(series_id)
        with self._session(conn) as c:
            c.execute(f"UPDATE series SET {', '.join(assignments)} WHERE id = ?", params)

    def delete_series_row(self: DbProtocol, user_id: int, series_id: int, conn: sqlite3.Connection | None = None) -> bool:
        with self._session(conn) as c:
            cur = c.execute("DELETE FROM series WHERE id = ? AND user_id = ?", (series_id, user_id))
        return cur.rowcount > 0

    def list_users_with_active_series(self: DbProtocol) -> list[int]:
        with self._session() as c:
            rows = c.execute("SELECT DISTINCT user_id FROM series WHERE active = 1 ORDER BY user_id").fetchall()
        return [int(r["user_id"]) for r in rows]
