from __future__ import annotations

import json
import sqlite3
from contextlib import AbstractContextManager
from datetime import date, datetime
from typing import Protocol

from lifequest.db_converters import (
    _row_to_axis_ledger,
    _row_to_completion,
    _row_to_exp_ledger,
    _row_to_reward,
    _row_to_wallet_ledger,
)
from lifequest.db_models import CompletionEvent, LedgerEntry, RewardEvent


class DbProtocol(Protocol):
    def _session(self, conn: sqlite3.Connection | None = None) -> AbstractContextManager[sqlite3.Connection]: ...


class LedgerMixin:
    """Append-only history: completion/reward events and the three ledgers."""

    def add_completion_event(
        self: DbProtocol,
        user_id: int,
        plan_item_id: int,
        plan_date: date,
        completed_at: datetime,
        duration_minutes: int,
        quality: str,
        client_source: str,
        conn: sqlite3.Connection | None = None,
    ) -> CompletionEvent:
        with self._session(conn) as c:
            cur = c.execute(
                """
                INSERT INTO completion_events(user_id, plan_item_id, plan_date, completed_at, duration_minutes, quality, client_source)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    plan_item_id,
                    plan_date.isoformat(),
                    completed_at.isoformat(),
                    duration_minutes,
                    quality,
                    client_source,
                ),
            )
            row = c.execute("SELECT * FROM completion_events WHERE id = ?", (cur.lastrowid,)).fetchone()
        assert row is not None
        return _row_to_completion(row)

    def add_reward_event(
        self: DbProtocol,
        user_id: int,
        completion_event_id: int,
        gold_delta: int,
        diamond_delta: int,
        exp_delta: int,
        axis_delta: dict[str, int],
        levelup: bool,
        conn: sqlite3.Connection | None = None,
    ) -> RewardEvent:
        with self._session(conn) as c:
            cur = c.execute(
                """
                INSERT INTO reward_events(user_id, completion_event_id, gold_delta, diamond_delta, exp_delta, axis_delta_json, levelup)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    completion_event_id,
                    gold_delta,
                    diamond_delta,
                    exp_delta,
                    json.dumps(axis_delta, sort_keys=True),
                    1 if levelup else 0,
                ),
            )
            row = c.execute("SELECT * FROM reward_events WHERE id = ?", (cur.lastrowid,)).fetchone()
        assert row is not None
        return _row_to_reward(row)

    def get_completion_event(self: DbProtocol, completion_id: int) -> CompletionEvent | None:
        with self._session() as c:
            row = c.execute("SELECT * FROM completion_events WHERE id = ?", (completion_id,)).fetchone()
        return _row_to_completion(row) if row else None

    def get_reward_for_completion(self: DbProtocol, completion_id: int) -> RewardEvent | None:
        with self._session() as c:
            row = c.execute(
                "SELECT * FROM reward_events WHERE completion_event_id = ?",
                (completion_id,),
            ).fetchone()
        return _row_to_reward(row) if row else None

    def count_completion_events(self: DbProtocol, user_id: int, plan_item_id: int | None = None) -> int:
        with self._session() as c:
            if plan_item_id is None:
                row = c.execute(
                    "SELECT COUNT(*) AS c FROM completion_events WHERE user_id = ?",
                    (user_id,),
                ).fetchone()
            else:
                row = c.execute(
                    "SELECT COUNT(*) AS c FROM completion_events WHERE user_id = ? AND plan_item_id = ?",
                    (user_id, plan_item_id),
                ).fetchone()
        return int(row["c"]) if row else 0

    def sum_reward_exp(self: DbProtocol, user_id: int) -> int:
        with self._session() as c:
            row = c.execute(
                "SELECT COALESCE(SUM(exp_delta), 0) AS total FROM reward_events WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        return int(row["total"]) if row else 0

    def append_wallet_entry(
        self: DbProtocol,
        user_id: int,
        ref_type: str,
        ref_id: int,
        currency: str,
        delta: int,
        balance_after: int,
        created_at: datetime,
        conn: sqlite3.Connection | None = None,
    ) -> None:
        with self._session(conn) as c:
            c.execute(
                """
                INSERT INTO wallet_ledger(user_id, ref_type, ref_id, currency, delta, balance_after, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (user_id, ref_type, ref_id, currency, delta, balance_after, created_at.isoformat()),
            )

    def append_exp_entry(
        self: DbProtocol,
        user_id: int,
        ref_type: str,
        ref_id: int,
        delta: int,
        exp_after: int,
        level_after: int,
        created_at: datetime,
        conn: sqlite3.Connection | None = None,
    ) -> None:
        with self._session(conn) as c:
            c.execute(
                """
                INSERT INTO exp_ledger(user_id, ref_type, ref_id, delta, exp_after, level_after, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (user_id, ref_type, ref_id, delta, exp_after, level_after, created_at.isoformat()),
            )

    def append_axis_entry(
        self: DbProtocol,
        user_id: int,
        ref_type: str,
        ref_id: int,
        axis: str,
        delta: int,
        value_after: int,
        created_at: datetime,
        conn: sqlite3.Connection | None = None,
    ) -> None:
        with self._session(conn) as c:
            c.execute(
                """
                INSERT INTO axis_ledger(user_id, ref_type, ref_id, axis, delta, value_after, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (user_id, ref_type, ref_id, axis, delta, value_after, created_at.isoformat()),
            )

    def list_ledger_entries(self: DbProtocol, user_id: int, kind: str | None = None) -> list[LedgerEntry]:
        """Ledger rows for one user in commit order, optionally one kind only."""
        entries: list[LedgerEntry] = []
        with self._session() as c:
            if kind in (None, "currency"):
                rows = c.execute("SELECT * FROM wallet_ledger WHERE user_id = ? ORDER BY id ASC", (user_id,)).fetchall()
                entries.extend(_row_to_wallet_ledger(r) for r in rows)
            if kind in (None, "experience"):
                rows = c.execute("SELECT * FROM exp_ledger WHERE user_id = ? ORDER BY id ASC", (user_id,)).fetchall()
                entries.extend(_row_to_exp_ledger(r) for r in rows)
            if kind in (None, "axis"):
                rows = c.execute("SELECT * FROM axis_ledger WHERE user_id = ? ORDER BY id ASC", (user_id,)).fetchall()
                entries.extend(_row_to_axis_ledger(r) for r in rows)
        return entries
