from __future__ import annotations

from lifequest.db_models import (
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
from lifequest.db_repo import (
    BaseDatabase,
    IdempotencyMixin,
    LedgerMixin,
    PlanMixin,
    SeriesMixin,
    ShopMixin,
    SnapshotMixin,
    SystemMixin,
)

__all__ = [
    "AxisScores",
    "CompletionEvent",
    "Database",
    "EquippedRecord",
    "IdempotencyRecord",
    "InventoryRecord",
    "LedgerEntry",
    "Plan",
    "PlanItem",
    "Progress",
    "PurchaseEvent",
    "RewardEvent",
    "Series",
    "ShopItem",
    "TaskStatus",
    "Wallet",
]


class Database(
    BaseDatabase,
    SnapshotMixin,
    LedgerMixin,
    PlanMixin,
    SeriesMixin,
    ShopMixin,
    IdempotencyMixin,
    SystemMixin,
):
    pass
