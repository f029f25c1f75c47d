from __future__ import annotations

import logging
import sqlite3
from datetime import date, datetime
from typing import Any

from lifequest.db import Database, PlanItem, TaskStatus
from lifequest.db_constants import (
    APPLY_SCOPES,
    CLIENT_SOURCES,
    DEFAULT_ESTIMATED_MINUTES,
    DEFAULT_TASK_TIER,
    MAX_DURATION_MINUTES,
)
from lifequest.errors import (
    AlreadyCompletedError,
    CannotDeleteCompletedError,
    CannotSkipCompletedError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from lifequest.idempotency import find_replay, normalize_key, remember
from lifequest.progression import commit_deltas
from lifequest.recurrence import applies_on
from lifequest.rewards import AXES, QUALITIES, calculate_rewards, clamp_tier
from lifequest.schemas import (
    AxisScoresPayload,
    CompleteTaskResult,
    PlanItemView,
    PlanView,
    ProgressPayload,
    RewardPayload,
    TodayView,
    WalletPayload,
)

logger = logging.getLogger(__name__)


def normalize_axis(raw: str | None) -> str:
    axis = (raw or "").strip().lower()
    if axis not in AXES:
        raise ValidationError(f"Unknown axis: {raw!r}", details={"allowed": list(AXES)})
    return axis


def _clean_title(raw: str | None) -> str:
    title = (raw or "").strip()
    if not title:
        raise ValidationError("Title must not be empty")
    return title


def _owned_item(db: Database, user_id: int, task_id: int, conn: sqlite3.Connection | None = None) -> PlanItem:
    item = db.get_plan_item(task_id, conn=conn)
    if item is None:
        raise NotFoundError("Task not found", details={"task_id": task_id})
    if item.user_id != user_id:
        raise ForbiddenError("Task belongs to another user", details={"task_id": task_id})
    return item


def ensure_user_snapshots(db: Database, user_id: int, now: datetime) -> None:
    db.ensure_user_snapshots(user_id, now)


def _materialize(db: Database, conn: sqlite3.Connection, user_id: int, plan_date: date, now: datetime) -> int:
    plan = db.get_or_create_plan(user_id, plan_date, now, conn=conn)
    if plan.materialized_at is not None:
        return plan.id

    created = 0
    for series in db.list_series(user_id, active_only=True, conn=conn):
        if series.start_date > plan_date:
            continue
        if not applies_on(series.rule, plan_date):
            continue
        item = db.add_plan_item(
            plan.id,
            user_id,
            source="template",
            axis=series.axis,
            title=series.title,
            tier=clamp_tier(series.tier_default),
            estimated_minutes=max(1, series.estimated_minutes_default),
            sort_order=db.next_sort_order(plan.id, conn=conn),
            now=now,
            series_id=series.id,
            conn=conn,
        )
        if item is not None:
            created += 1
    db.mark_plan_materialized(plan.id, now, conn=conn)
    logger.info("materialized plan user=%s date=%s plan=%s items=%s", user_id, plan_date, plan.id, created)
    return plan.id


def materialize_plan(db: Database, user_id: int, plan_date: date, now: datetime) -> PlanView:
    """Return the user's plan for ``plan_date``, expanding active series on first access.

    Expansion happens once per plan. Re-invocation, including concurrent
    callers, never duplicates a (plan, series) instance.
    """
    with db.transaction() as conn:
        plan_id = _materialize(db, conn, user_id, plan_date, now)
        items = db.list_plan_items(plan_id, conn=conn)
    return PlanView(
        plan_id=plan_id,
        date=plan_date.isoformat(),
        items=[PlanItemView.from_item(i) for i in items],
    )


def get_today(db: Database, user_id: int, plan_date: date, now: datetime) -> TodayView:
    with db.transaction() as conn:
        db.ensure_user_snapshots(user_id, now, conn=conn)
        plan_id = _materialize(db, conn, user_id, plan_date, now)
        items = db.list_plan_items(plan_id, conn=conn)
        scores = db.get_axis_scores(user_id, conn=conn)
        progress = db.get_progress(user_id, conn=conn)
        wallet = db.get_wallet(user_id, conn=conn)
    return TodayView(
        plan_id=plan_id,
        date=plan_date.isoformat(),
        axis_scores=AxisScoresPayload.from_snapshot(scores),
        progress=ProgressPayload.from_snapshot(progress),
        wallet=WalletPayload.from_snapshot(wallet),
        items=[PlanItemView.from_item(i) for i in items],
    )


def create_task(
    db: Database,
    user_id: int,
    plan_date: date,
    title: str,
    axis: str,
    now: datetime,
    tier: int = DEFAULT_TASK_TIER,
    description: str | None = None,
    scheduled_at: datetime | None = None,
    estimated_minutes: int = DEFAULT_ESTIMATED_MINUTES,
) -> PlanItemView:
    clean_title = _clean_title(title)
    clean_axis = normalize_axis(axis)
    if estimated_minutes <= 0:
        raise ValidationError("estimated_minutes must be positive")
    with db.transaction() as conn:
        plan = db.get_or_create_plan(user_id, plan_date, now, conn=conn)
        item = db.add_plan_item(
            plan.id,
            user_id,
            source="manual",
            axis=clean_axis,
            title=clean_title,
            tier=clamp_tier(tier),
            estimated_minutes=estimated_minutes,
            sort_order=db.next_sort_order(plan.id, conn=conn),
            now=now,
            description=description,
            scheduled_at=scheduled_at,
            conn=conn,
        )
    assert item is not None
    logger.info("created manual task user=%s task=%s date=%s", user_id, item.id, plan_date)
    return PlanItemView.from_item(item)


def _clean_task_fields(fields: dict[str, Any]) -> dict[str, Any]:
    cleaned: dict[str, Any] = {}
    for key, value in fields.items():
        if key == "title":
            cleaned["title"] = _clean_title(value)
        elif key == "axis":
            cleaned["axis"] = normalize_axis(value)
        elif key == "tier":
            cleaned["tier"] = clamp_tier(value)
        elif key == "estimated_minutes":
            if int(value) <= 0:
                raise ValidationError("estimated_minutes must be positive")
            cleaned["estimated_minutes"] = int(value)
        elif key in ("description", "scheduled_at"):
            cleaned[key] = value
        else:
            raise ValidationError(f"Field cannot be updated: {key}")
    return cleaned


def update_task(
    db: Database,
    user_id: int,
    task_id: int,
    fields: dict[str, Any],
    now: datetime,
    apply_scope: str | None = None,
) -> PlanItemView:
    if apply_scope is not None and apply_scope not in APPLY_SCOPES:
        raise ValidationError(f"Unknown apply_scope: {apply_scope!r}")
    cleaned = _clean_task_fields(fields)
    with db.transaction() as conn:
        _owned_item(db, user_id, task_id, conn=conn)
        if cleaned:
            db.update_plan_item_fields(task_id, cleaned, now, conn=conn)
        if apply_scope is not None:
            db.upsert_plan_item_override(task_id, apply_scope, cleaned, now, conn=conn)
        item = db.get_plan_item(task_id, conn=conn)
    assert item is not None
    return PlanItemView.from_item(item)


def skip_task(db: Database, user_id: int, task_id: int, now: datetime) -> PlanItemView:
    with db.transaction() as conn:
        item = _owned_item(db, user_id, task_id, conn=conn)
        if item.status is TaskStatus.DONE:
            raise CannotSkipCompletedError("Completed tasks cannot be skipped", details={"task_id": task_id})
        if not db.transition_plan_item(task_id, TaskStatus.SKIPPED, now, conn=conn):
            raise ConflictError("Task is no longer open", details={"task_id": task_id, "status": item.status.value})
        updated = db.get_plan_item(task_id, conn=conn)
    assert updated is not None
    logger.info("skipped task user=%s task=%s", user_id, task_id)
    return PlanItemView.from_item(updated)


def delete_task(db: Database, user_id: int, task_id: int) -> None:
    with db.transaction() as conn:
        item = _owned_item(db, user_id, task_id, conn=conn)
        if item.status is TaskStatus.DONE:
            raise CannotDeleteCompletedError("Completed tasks cannot be deleted", details={"task_id": task_id})
        if not db.delete_plan_item(task_id, conn=conn):
            raise ConflictError("Task is no longer open", details={"task_id": task_id, "status": item.status.value})
    logger.info("deleted task user=%s task=%s", user_id, task_id)


def complete_task(
    db: Database,
    user_id: int,
    task_id: int,
    now: datetime,
    quality: str = "mid",
    duration_minutes: int | None = None,
    client_source: str = "unknown",
    idempotency_key: str | None = None,
) -> CompleteTaskResult:
    """Mark a task done and apply its reward as one unit of work.

    With an idempotency key, a repeated call returns the stored result of the
    first call without touching any state.
    """
    if quality not in QUALITIES:
        raise ValidationError(f"Unknown quality: {quality!r}", details={"allowed": list(QUALITIES)})
    source = client_source if client_source in CLIENT_SOURCES else "unknown"
    key = normalize_key(idempotency_key)
    with db.transaction() as conn:
        replay = find_replay(db, conn, user_id, key, "complete", task_id, CompleteTaskResult)
        if replay is not None:
            return replay

        tuning = db.get_economy_tuning(conn=conn)
        item = _owned_item(db, user_id, task_id, conn=conn)
        if item.status is TaskStatus.DONE:
            raise AlreadyCompletedError("Task already completed", details={"task_id": task_id})
        if item.status.is_terminal:
            raise ConflictError("Task is not open", details={"task_id": task_id, "status": item.status.value})
        if not db.transition_plan_item(task_id, TaskStatus.DONE, now, conn=conn):
            raise AlreadyCompletedError("Task already completed", details={"task_id": task_id})

        plan = db.get_plan_by_id(item.plan_id, conn=conn)
        assert plan is not None
        minutes = item.estimated_minutes if duration_minutes is None else duration_minutes
        minutes = min(max(0, int(minutes)), MAX_DURATION_MINUTES)

        completion = db.add_completion_event(
            user_id, task_id, plan.plan_date, now, minutes, quality, source, conn=conn
        )
        reward = calculate_rewards(item.tier, quality, item.axis, tuning=tuning)
        state = commit_deltas(
            db,
            conn,
            user_id,
            ref_type="completion",
            ref_id=completion.id,
            now=now,
            currency_delta={c: v for c, v in (("gold", reward.gold_delta), ("diamond", reward.diamond_delta)) if v},
            exp_delta=reward.exp_delta,
            axis_delta=reward.axis_delta,
            tuning=tuning,
        )
        db.add_reward_event(
            user_id,
            completion.id,
            reward.gold_delta,
            reward.diamond_delta,
            reward.exp_delta,
            reward.axis_delta,
            state.leveled_up,
            conn=conn,
        )

        result = CompleteTaskResult(
            completion_event_id=completion.id,
            completed_at=completion.completed_at.isoformat(),
            reward=RewardPayload(
                gold_delta=reward.gold_delta,
                diamond_delta=reward.diamond_delta,
                exp_delta=reward.exp_delta,
                axis_delta=reward.axis_delta,
                levelup=state.leveled_up,
                new_progress=ProgressPayload.from_snapshot(state.progress),
                new_wallet=WalletPayload.from_snapshot(state.wallet),
                new_axis_scores=AxisScoresPayload.from_snapshot(state.axis_scores),
            ),
        )
        remember(db, conn, user_id, key, "complete", task_id, result, now, completion_event_id=completion.id)

    logger.info(
        "completed task user=%s task=%s gold=%s exp=%s axis=%s levelup=%s",
        user_id,
        task_id,
        reward.gold_delta,
        reward.exp_delta,
        reward.axis_delta,
        state.leveled_up,
    )
    return result
