from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from lifequest.db import Database, Series
from lifequest.db_constants import DEFAULT_ESTIMATED_MINUTES, DEFAULT_TASK_TIER
from lifequest.errors import NotFoundError, ValidationError
from lifequest.recurrence import parse_rule
from lifequest.rewards import clamp_tier
from lifequest.schemas import SeriesView
from lifequest.service import normalize_axis

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeriesDraft:
    title: str
    axis: str
    rule_type: str
    rule_params: dict[str, Any] = field(default_factory=dict)
    tier_default: int = DEFAULT_TASK_TIER
    estimated_minutes_default: int = DEFAULT_ESTIMATED_MINUTES
    active: bool = True
    start_date: date | None = None


def list_series(db: Database, user_id: int, active_only: bool = False) -> list[SeriesView]:
    return [SeriesView.from_series(s) for s in db.list_series(user_id, active_only=active_only)]


def _insert(db: Database, conn: sqlite3.Connection, user_id: int, draft: SeriesDraft, now: datetime) -> Series:
    title = draft.title.strip()
    if not title:
        raise ValidationError("Series title must not be empty")
    if draft.estimated_minutes_default <= 0:
        raise ValidationError("estimated_minutes_default must be positive")
    return db.add_series(
        user_id,
        title=title,
        axis=normalize_axis(draft.axis),
        tier_default=clamp_tier(draft.tier_default),
        estimated_minutes_default=draft.estimated_minutes_default,
        active=draft.active,
        rule=parse_rule(draft.rule_type, draft.rule_params),
        start_date=draft.start_date or now.date(),
        now=now,
        conn=conn,
    )


def create_series(db: Database, user_id: int, draft: SeriesDraft, now: datetime) -> SeriesView:
    with db.transaction() as conn:
        series = _insert(db, conn, user_id, draft, now)
    logger.info("created series user=%s series=%s rule=%s", user_id, series.id, series.rule.rule_type.value)
    return SeriesView.from_series(series)


def create_series_batch(db: Database, user_id: int, drafts: list[SeriesDraft], now: datetime) -> list[SeriesView]:
    """Create several series at once; one invalid draft rejects the whole batch."""
    with db.transaction() as conn:
        created = [_insert(db, conn, user_id, d, now) for d in drafts]
    logger.info("created %s series for user=%s", len(created), user_id)
    return [SeriesView.from_series(s) for s in created]


def update_series(db: Database, user_id: int, series_id: int, changes: dict[str, Any]) -> SeriesView:
    fields: dict[str, Any] = {}
    for key, value in changes.items():
        if key == "title":
            title = str(value or "").strip()
            if not title:
                raise ValidationError("Series title must not be empty")
            fields["title"] = title
        elif key == "axis":
            fields["axis"] = normalize_axis(value)
        elif key == "tier_default":
            fields["tier_default"] = clamp_tier(value)
        elif key == "estimated_minutes_default":
            if int(value) <= 0:
                raise ValidationError("estimated_minutes_default must be positive")
            fields["estimated_minutes_default"] = int(value)
        elif key == "active":
            fields["active"] = bool(value)
        elif key in ("rule_type", "rule_params"):
            continue
        else:
            raise ValidationError(f"Field cannot be updated: {key}")

    with db.transaction() as conn:
        existing = db.get_series(user_id, series_id, conn=conn)
        if existing is None:
            raise NotFoundError("Series not found", details={"series_id": series_id})
        if "rule_type" in changes or "rule_params" in changes:
            rule_type = changes.get("rule_type", existing.rule.rule_type)
            params = changes.get("rule_params")
            fields["rule"] = parse_rule(rule_type, params if params is not None else existing.rule.to_json())
        db.update_series_fields(series_id, fields, conn=conn)
        series = db.get_series(user_id, series_id, conn=conn)
    assert series is not None
    return SeriesView.from_series(series)


def delete_series(db: Database, user_id: int, series_id: int) -> None:
    if not db.delete_series_row(user_id, series_id):
        raise NotFoundError("Series not found", details={"series_id": series_id})
    logger.info("deleted series user=%s series=%s", user_id, series_id)
