from __future__ import annotations

import sqlite3
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Protocol

from lifequest.db_converters import _row_to_idempotency
from lifequest.db_models import IdempotencyRecord


class DbProtocol(Protocol):
    def _session(self, conn: sqlite3.Connection | None = None) -> AbstractContextManager[sqlite3.Connection]: ...


class IdempotencyMixin:
    def get_idempotency_record(
        self: DbProtocol,
        user_id: int,
        key: str,
        conn: sqlite3.Connection | None = None,
    ) -> IdempotencyRecord | None:
        with self._session(conn) as c:
            row = c.execute(
                "SELECT * FROM idempotency_keys WHERE user_id = ? AND key = ?",
                (user_id, key),
            ).fetchone()
        return _row_to_idempotency(row) if row else None

    def add_idempotency_record(
        self: DbProtocol,
        user_id: int,
        key: str,
        operation: str,
        target_id: int,
        response_json: str,
        created_at: datetime,
        completion_event_id: int | None = None,
        purchase_event_id: int | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> None:
        with self._session(conn) as c:
            c.execute(
                """
                INSERT INTO idempotency_keys(
                    user_id, key, operation, target_id, completion_event_id,
                    purchase_event_id, response_json, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    key,
                    operation,
                    target_id,
                    completion_event_id,
                    purchase_event_id,
                    response_json,
                    created_at.isoformat(),
                ),
            )
