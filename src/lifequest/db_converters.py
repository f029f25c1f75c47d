from __future__ import annotations

import json
import sqlite3
from datetime import date, datetime

from lifequest.db_models import (
    AuditLogEntry,
    AxisScores,
    CompletionEvent,
    EquippedRecord,
    IdempotencyRecord,
    InventoryRecord,
    LedgerEntry,
    Plan,
    PlanItem,
    Progress,
    PurchaseEvent,
    RewardEvent,
    Series,
    ShopItem,
    TaskStatus,
    Wallet,
)
from lifequest.recurrence import parse_rule


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _row_to_axis_scores(row: sqlite3.Row) -> AxisScores:
    return AxisScores(
        user_id=row["user_id"],
        body=int(row["body"]),
        focus=int(row["focus"]),
        knowledge=int(row["knowledge"]),
        discipline=int(row["discipline"]),
        organization=int(row["organization"]),
        social=int(row["social"]),
    )


def _row_to_progress(row: sqlite3.Row) -> Progress:
    return Progress(
        user_id=row["user_id"],
        level=int(row["level"]),
        exp=int(row["exp"]),
        exp_to_next=int(row["exp_to_next"]),
    )


def _row_to_wallet(row: sqlite3.Row) -> Wallet:
    return Wallet(user_id=row["user_id"], gold=int(row["gold"]), diamond=int(row["diamond"]))


def _row_to_plan(row: sqlite3.Row) -> Plan:
    return Plan(
        id=row["id"],
        user_id=row["user_id"],
        plan_date=date.fromisoformat(row["plan_date"]),
        generated_from=row["generated_from"],
        materialized_at=_dt(row["materialized_at"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_plan_item(row: sqlite3.Row) -> PlanItem:
    return PlanItem(
        id=row["id"],
        plan_id=row["plan_id"],
        user_id=row["user_id"],
        series_id=row["series_id"],
        source=row["source"],
        axis=row["axis"],
        title=row["title"],
        description=row["description"],
        tier=int(row["tier"]),
        scheduled_at=_dt(row["scheduled_at"]),
        estimated_minutes=int(row["estimated_minutes"]),
        status=TaskStatus(row["status"]),
        locked_by_user=bool(row["locked_by_user"]),
        sort_order=int(row["sort_order"]),
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _row_to_series(row: sqlite3.Row) -> Series:
    return Series(
        id=row["id"],
        user_id=row["user_id"],
        title=row["title"],
        axis=row["axis"],
        tier_default=int(row["tier_default"]),
        estimated_minutes_default=int(row["estimated_minutes_default"]),
        active=bool(row["active"]),
        rule=parse_rule(row["rule_type"], json.loads(row["rule_json"] or "{}")),
        start_date=date.fromisoformat(row["start_date"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_completion(row: sqlite3.Row) -> CompletionEvent:
    return CompletionEvent(
        id=row["id"],
        user_id=row["user_id"],
        plan_item_id=row["plan_item_id"],
        plan_date=date.fromisoformat(row["plan_date"]),
        completed_at=datetime.fromisoformat(row["completed_at"]),
        duration_minutes=int(row["duration_minutes"]),
        quality=row["quality"],
        client_source=row["client_source"],
    )


def _row_to_reward(row: sqlite3.Row) -> RewardEvent:
    return RewardEvent(
        id=row["id"],
        user_id=row["user_id"],
        completion_event_id=row["completion_event_id"],
        gold_delta=int(row["gold_delta"]),
        diamond_delta=int(row["diamond_delta"]),
        exp_delta=int(row["exp_delta"]),
        axis_delta={str(k): int(v) for k, v in json.loads(row["axis_delta_json"] or "{}").items()},
        levelup=bool(row["levelup"]),
    )


def _row_to_shop_item(row: sqlite3.Row) -> ShopItem:
    return ShopItem(
        id=row["id"],
        code=row["code"],
        axis=row["axis"],
        slot=row["slot"],
        rarity=row["rarity"],
        name=row["name"],
        description=row["description"] or "",
        price_currency=row["price_currency"],
        price_amount=int(row["price_amount"]),
        active=bool(row["active"]),
    )


def _row_to_inventory(row: sqlite3.Row) -> InventoryRecord:
    return InventoryRecord(
        id=row["id"],
        user_id=row["user_id"],
        shop_item_id=row["shop_item_id"],
        acquired_at=datetime.fromisoformat(row["acquired_at"]),
    )


def _row_to_equipped(row: sqlite3.Row) -> EquippedRecord:
    return EquippedRecord(
        user_id=row["user_id"],
        slot=row["slot"],
        shop_item_id=row["shop_item_id"],
        equipped_at=datetime.fromisoformat(row["equipped_at"]),
    )


def _row_to_purchase(row: sqlite3.Row) -> PurchaseEvent:
    return PurchaseEvent(
        id=row["id"],
        user_id=row["user_id"],
        shop_item_id=row["shop_item_id"],
        currency=row["currency"],
        amount=int(row["amount"]),
        status=row["status"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_wallet_ledger(row: sqlite3.Row) -> LedgerEntry:
    return LedgerEntry(
        id=row["id"],
        user_id=row["user_id"],
        kind="currency",
        resource=row["currency"],
        ref_type=row["ref_type"],
        ref_id=row["ref_id"],
        delta=int(row["delta"]),
        balance_after=int(row["balance_after"]),
        level_after=None,
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_exp_ledger(row: sqlite3.Row) -> LedgerEntry:
    return LedgerEntry(
        id=row["id"],
        user_id=row["user_id"],
        kind="experience",
        resource="exp",
        ref_type=row["ref_type"],
        ref_id=row["ref_id"],
        delta=int(row["delta"]),
        balance_after=int(row["exp_after"]),
        level_after=int(row["level_after"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_axis_ledger(row: sqlite3.Row) -> LedgerEntry:
    return LedgerEntry(
        id=row["id"],
        user_id=row["user_id"],
        kind="axis",
        resource=row["axis"],
        ref_type=row["ref_type"],
        ref_id=row["ref_id"],
        delta=int(row["delta"]),
        balance_after=int(row["value_after"]),
        level_after=None,
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_idempotency(row: sqlite3.Row) -> IdempotencyRecord:
    return IdempotencyRecord(
        user_id=row["user_id"],
        key=row["key"],
        operation=row["operation"],
        target_id=int(row["target_id"]),
        completion_event_id=row["completion_event_id"],
        purchase_event_id=row["purchase_event_id"],
        response_json=row["response_json"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_audit(row: sqlite3.Row) -> AuditLogEntry:
    payload = json.loads(row["payload_json"]) if row["payload_json"] else None
    return AuditLogEntry(
        id=row["id"],
        actor=row["actor"],
        action=row["action"],
        target=row["target"],
        payload=payload,
        created_at=datetime.fromisoformat(row["created_at"]),
    )
