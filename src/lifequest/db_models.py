from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any

from lifequest.recurrence import RecurrenceRule


class TaskStatus(str, Enum):
    TODO = "todo"
    DONE = "done"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return not TASK_TRANSITIONS[self]

    def can_transition(self, target: TaskStatus) -> bool:
        return target in TASK_TRANSITIONS[self]


TASK_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.TODO: frozenset({TaskStatus.DONE, TaskStatus.SKIPPED}),
    TaskStatus.DONE: frozenset(),
    TaskStatus.SKIPPED: frozenset(),
}


@dataclass(frozen=True)
class AxisScores:
    user_id: int
    body: int = 0
    focus: int = 0
    knowledge: int = 0
    discipline: int = 0
    organization: int = 0
    social: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "body": self.body,
            "focus": self.focus,
            "knowledge": self.knowledge,
            "discipline": self.discipline,
            "organization": self.organization,
            "social": self.social,
        }


@dataclass(frozen=True)
class Progress:
    user_id: int
    level: int = 1
    exp: int = 0
    exp_to_next: int = 100


@dataclass(frozen=True)
class Wallet:
    user_id: int
    gold: int = 0
    diamond: int = 0

    def balance(self, currency: str) -> int:
        return self.diamond if currency == "diamond" else self.gold


@dataclass(frozen=True)
class Plan:
    id: int
    user_id: int
    plan_date: date
    generated_from: str
    materialized_at: datetime | None
    created_at: datetime


@dataclass(frozen=True)
class PlanItem:
    id: int
    plan_id: int
    user_id: int
    series_id: int | None
    source: str
    axis: str
    title: str
    description: str | None
    tier: int
    scheduled_at: datetime | None
    estimated_minutes: int
    status: TaskStatus
    locked_by_user: bool
    sort_order: int
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class Series:
    id: int
    user_id: int
    title: str
    axis: str
    tier_default: int
    estimated_minutes_default: int
    active: bool
    rule: RecurrenceRule
    start_date: date
    created_at: datetime


@dataclass(frozen=True)
class CompletionEvent:
    id: int
    user_id: int
    plan_item_id: int
    plan_date: date
    completed_at: datetime
    duration_minutes: int
    quality: str
    client_source: str


@dataclass(frozen=True)
class RewardEvent:
    id: int
    user_id: int
    completion_event_id: int
    gold_delta: int
    diamond_delta: int
    exp_delta: int
    axis_delta: dict[str, int] = field(default_factory=dict)
    levelup: bool = False


@dataclass(frozen=True)
class ShopItem:
    id: int
    code: str
    axis: str | None
    slot: str
    rarity: str
    name: str
    description: str
    price_currency: str
    price_amount: int
    active: bool


@dataclass(frozen=True)
class InventoryRecord:
    id: int
    user_id: int
    shop_item_id: int
    acquired_at: datetime


@dataclass(frozen=True)
class EquippedRecord:
    user_id: int
    slot: str
    shop_item_id: int
    equipped_at: datetime


@dataclass(frozen=True)
class PurchaseEvent:
    id: int
    user_id: int
    shop_item_id: int
    currency: str
    amount: int
    status: str
    created_at: datetime


@dataclass(frozen=True)
class LedgerEntry:
    id: int
    user_id: int
    kind: str
    resource: str
    ref_type: str
    ref_id: int
    delta: int
    balance_after: int
    level_after: int | None
    created_at: datetime


@dataclass(frozen=True)
class IdempotencyRecord:
    user_id: int
    key: str
    operation: str
    target_id: int
    completion_event_id: int | None
    purchase_event_id: int | None
    response_json: str
    created_at: datetime


@dataclass(frozen=True)
class AuditLogEntry:
    id: int
    actor: str | None
    action: str
    target: str
    payload: dict[str, Any] | None
    created_at: datetime
