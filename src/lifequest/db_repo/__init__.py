from .base import BaseDatabase
from .snapshots import SnapshotMixin
from .ledger import LedgerMixin
from .plans import PlanMixin
from .series import SeriesMixin
from .shop import ShopMixin
from .idempotency import IdempotencyMixin
from .system import SystemMixin

__all__ = [
    "BaseDatabase",
    "SnapshotMixin",
    "LedgerMixin",
    "PlanMixin",
    "SeriesMixin",
    "ShopMixin",
    "IdempotencyMixin",
    "SystemMixin",
]
