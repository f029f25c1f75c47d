from __future__ import annotations

import logging
from datetime import datetime

from lifequest.db import Database
from lifequest.db_constants import COSMETIC_SLOTS
from lifequest.errors import (
    AlreadyOwnedError,
    NotFoundError,
    NotOwnedError,
    SlotMismatchError,
    ValidationError,
)
from lifequest.idempotency import find_replay, normalize_key, remember
from lifequest.progression import commit_deltas
from lifequest.rewards import AXES
from lifequest.schemas import EquipResult, PurchaseResult, ShopItemView, WalletPayload

logger = logging.getLogger(__name__)

ANY_FILTER = "any"


def _filter_value(raw: str | None, allowed: tuple[str, ...], label: str) -> str | None:
    if raw is None:
        return None
    value = raw.strip().lower()
    if not value or value == ANY_FILTER:
        return None
    if value not in allowed:
        raise ValidationError(f"Unknown {label}: {raw!r}", details={"allowed": [ANY_FILTER, *allowed]})
    return value


def list_shop_items(
    db: Database,
    user_id: int,
    axis: str | None = None,
    slot: str | None = None,
) -> list[ShopItemView]:
    items = db.list_shop_items(
        axis=_filter_value(axis, AXES, "axis"),
        slot=_filter_value(slot, COSMETIC_SLOTS, "slot"),
    )
    owned = db.list_owned_item_ids(user_id)
    equipped = {rec.shop_item_id for rec in db.list_equipped(user_id)}
    return [ShopItemView.from_item(item, item.id in owned, item.id in equipped) for item in items]


def list_equipped(db: Database, user_id: int) -> dict[str, int]:
    return {rec.slot: rec.shop_item_id for rec in db.list_equipped(user_id)}


def purchase_item(
    db: Database,
    user_id: int,
    item_id: int,
    now: datetime,
    idempotency_key: str | None = None,
) -> PurchaseResult:
    """Debit the item's price and grant ownership in one unit of work."""
    key = normalize_key(idempotency_key)
    with db.transaction() as conn:
        replay = find_replay(db, conn, user_id, key, "purchase", item_id, PurchaseResult)
        if replay is not None:
            return replay

        item = db.get_shop_item(item_id, conn=conn)
        if item is None or not item.active:
            raise NotFoundError("Shop item not found", details={"item_id": item_id})
        if db.get_inventory_record(user_id, item_id, conn=conn) is not None:
            raise AlreadyOwnedError("Item already owned", details={"item_id": item_id})

        purchase = db.add_purchase_event(user_id, item_id, item.price_currency, item.price_amount, now, conn=conn)
        state = commit_deltas(
            db,
            conn,
            user_id,
            ref_type="purchase",
            ref_id=purchase.id,
            now=now,
            currency_delta={item.price_currency: -item.price_amount},
            tuning=db.get_economy_tuning(conn=conn),
        )
        inventory = db.add_inventory_record(user_id, item_id, now, conn=conn)

        result = PurchaseResult(inventory_id=inventory.id, new_wallet=WalletPayload.from_snapshot(state.wallet))
        remember(db, conn, user_id, key, "purchase", item_id, result, now, purchase_event_id=purchase.id)

    logger.info(
        "purchased item user=%s item=%s price=%s %s",
        user_id,
        item.code,
        item.price_amount,
        item.price_currency,
    )
    return result


def equip_item(db: Database, user_id: int, item_id: int, slot: str, now: datetime) -> EquipResult:
    """Put an owned item into its slot, replacing whatever was there."""
    with db.transaction() as conn:
        item = db.get_shop_item(item_id, conn=conn)
        if item is None:
            raise NotFoundError("Shop item not found", details={"item_id": item_id})
        if db.get_inventory_record(user_id, item_id, conn=conn) is None:
            raise NotOwnedError("Item not owned", details={"item_id": item_id})
        if item.slot != slot:
            raise SlotMismatchError(
                "Item does not fit this slot",
                details={"item_id": item_id, "item_slot": item.slot, "requested_slot": slot},
            )
        previous = db.get_equipped(user_id, slot, conn=conn)
        db.set_equipped(user_id, slot, item_id, now, conn=conn)

    previous_id = previous.shop_item_id if previous else None
    logger.info("equipped item user=%s slot=%s item=%s previous=%s", user_id, slot, item_id, previous_id)
    return EquipResult(equipped_at=now.isoformat(), previous_item_id=previous_id)
