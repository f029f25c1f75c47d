from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import TypeVar

from pydantic import BaseModel

from lifequest.db import Database
from lifequest.errors import IdempotencyConflictError, ValidationError

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT", bound=BaseModel)

MAX_KEY_LENGTH = 128


def normalize_key(key: str | None) -> str | None:
    if key is None:
        return None
    cleaned = key.strip()
    if not cleaned:
        return None
    if len(cleaned) > MAX_KEY_LENGTH:
        raise ValidationError(f"Idempotency key longer than {MAX_KEY_LENGTH} characters")
    return cleaned


def find_replay(
    db: Database,
    conn: sqlite3.Connection,
    user_id: int,
    key: str | None,
    operation: str,
    target_id: int,
    result_type: type[ResultT],
) -> ResultT | None:
    """Return the stored outcome for ``(user_id, key)``, or None if the key is new.

    The same key used for another operation or another target is rejected.
    """
    if key is None:
        return None
    record = db.get_idempotency_record(user_id, key, conn=conn)
    if record is None:
        return None
    if record.operation != operation or record.target_id != target_id:
        raise IdempotencyConflictError(
            "Idempotency key already used for a different request",
            details={"key": key, "operation": record.operation, "target_id": record.target_id},
        )
    logger.info("idempotent replay user=%s op=%s target=%s key=%s", user_id, operation, target_id, key)
    return result_type.model_validate_json(record.response_json)


def remember(
    db: Database,
    conn: sqlite3.Connection,
    user_id: int,
    key: str | None,
    operation: str,
    target_id: int,
    result: BaseModel,
    created_at: datetime,
    completion_event_id: int | None = None,
    purchase_event_id: int | None = None,
) -> None:
    if key is None:
        return
    db.add_idempotency_record(
        user_id,
        key,
        operation,
        target_id,
        result.model_dump_json(),
        created_at,
        completion_event_id=completion_event_id,
        purchase_event_id=purchase_event_id,
        conn=conn,
    )
