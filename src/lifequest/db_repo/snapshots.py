from __future__ import annotations

import sqlite3
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Protocol

from lifequest.db_converters import _row_to_axis_scores, _row_to_progress, _row_to_wallet
from lifequest.db_models import AxisScores, Progress, Wallet


class DbProtocol(Protocol):
    def _session(self, conn: sqlite3.Connection | None = None) -> AbstractContextManager[sqlite3.Connection]: ...


class SnapshotMixin:
    """Current-value aggregates per user. Absent rows read as zero values."""

    def get_axis_scores(self: DbProtocol, user_id: int, conn: sqlite3.Connection | None = None) -> AxisScores:
        with self._session(conn) as c:
            row = c.execute("SELECT * FROM axis_scores WHERE user_id = ?", (user_id,)).fetchone()
        return _row_to_axis_scores(row) if row else AxisScores(user_id=user_id)

    def get_progress(self: DbProtocol, user_id: int, conn: sqlite3.Connection | None = None) -> Progress:
        with self._session(conn) as c:
            row = c.execute("SELECT * FROM progress WHERE user_id = ?", (user_id,)).fetchone()
        return _row_to_progress(row) if row else Progress(user_id=user_id)

    def get_wallet(self: DbProtocol, user_id: int, conn: sqlite3.Connection | None = None) -> Wallet:
        with self._session(conn) as c:
            row = c.execute("SELECT * FROM wallets WHERE user_id = ?", (user_id,)).fetchone()
        return _row_to_wallet(row) if row else Wallet(user_id=user_id)

    def ensure_user_snapshots(self: DbProtocol, user_id: int, now: datetime, conn: sqlite3.Connection | None = None) -> None:
        stamp = now.isoformat()
        with self._session(conn) as c:
            c.execute("INSERT OR IGNORE INTO axis_scores(user_id, updated_at) VALUES (?, ?)", (user_id, stamp))
            c.execute("INSERT OR IGNORE INTO progress(user_id, updated_at) VALUES (?, ?)", (user_id, stamp))
            c.execute("INSERT OR IGNORE INTO wallets(user_id, updated_at) VALUES (?, ?)", (user_id, stamp))

    def upsert_axis_scores(self: DbProtocol, scores: AxisScores, now: datetime, conn: sqlite3.Connection | None = None) -> None:
        with self._session(conn) as c:
            c.execute(
                """
                INSERT INTO axis_scores(user_id, body, focus, knowledge, discipline, organization, social, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    body=excluded.body,
                    focus=excluded.focus,
                    knowledge=excluded.knowledge,
                    discipline=excluded.discipline,
                    organization=excluded.organization,
                    social=excluded.social,
                    updated_at=excluded.updated_at
                """,
                (
                    scores.user_id,
                    scores.body,
                    scores.focus,
                    scores.knowledge,
                    scores.discipline,
                    scores.organization,
                    scores.social,
                    now.isoformat(),
                ),
            )

    def upsert_progress(self: DbProtocol, progress: Progress, now: datetime, conn: sqlite3.Connection | None = None) -> None:
        with self._session(conn) as c:
            c.execute(
                """
                INSERT INTO progress(user_id, level, exp, exp_to_next, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    level=excluded.level,
                    exp=excluded.exp,
                    exp_to_next=excluded.exp_to_next,
                    updated_at=excluded.updated_at
                """,
                (progress.user_id, progress.level, progress.exp, progress.exp_to_next, now.isoformat()),
            )

    def upsert_wallet(self: DbProtocol, wallet: Wallet, now: datetime, conn: sqlite3.Connection | None = None) -> None:
        with self._session(conn) as c:
            c.execute(
                """
                INSERT INTO wallets(user_id, gold, diamond, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    gold=excluded.gold,
                    diamond=excluded.diamond,
                    updated_at=excluded.updated_at
                """,
                (wallet.user_id, wallet.gold, wallet.diamond, now.isoformat()),
            )

    def list_snapshot_user_ids(self: DbProtocol) -> list[int]:
        with self._session() as c:
            rows = c.execute(
                """
                SELECT user_id FROM axis_scores
                UNION SELECT user_id FROM progress
                UNION SELECT user_id FROM wallets
                ORDER BY user_id
                """
            ).fetchall()
        return [int(r["user_id"]) for r in rows]
