from __future__ import annotations

import sqlite3
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Protocol

from lifequest.db_converters import _row_to_equipped, _row_to_inventory, _row_to_purchase, _row_to_shop_item
from lifequest.db_models import EquippedRecord, InventoryRecord, PurchaseEvent, ShopItem

RARITY_ORDER_SQL = "CASE rarity WHEN 'epic' THEN 0 WHEN 'rare' THEN 1 ELSE 2 END"


class DbProtocol(Protocol):
    def _session(self, conn: sqlite3.Connection | None = None) -> AbstractContextManager[sqlite3.Connection]: ...


class ShopMixin:
    def upsert_shop_item(
        self: DbProtocol,
        code: str,
        axis: str | None,
        slot: str,
        rarity: str,
        name: str,
        description: str,
        price_currency: str,
        price_amount: int,
        active: bool = True,
    ) -> ShopItem:
        with self._session() as conn:
            conn.execute(
                """
                INSERT INTO shop_items(code, axis, slot, rarity, name, description, price_currency, price_amount, active)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(code) DO UPDATE SET
                    axis=excluded.axis,
                    slot=excluded.slot,
                    rarity=excluded.rarity,
                    name=excluded.name,
                    description=excluded.description,
                    price_currency=excluded.price_currency,
                    price_amount=excluded.price_amount,
                    active=excluded.active
                """,
                (code, axis, slot, rarity, name, description, price_currency, price_amount, 1 if active else 0),
            )
            row = conn.execute("SELECT * FROM shop_items WHERE code = ?", (code,)).fetchone()
        assert row is not None
        return _row_to_shop_item(row)

    def deactivate_shop_item(self: DbProtocol, item_id: int) -> bool:
        with self._session() as conn:
            cur = conn.execute("UPDATE shop_items SET active = 0 WHERE id = ?", (item_id,))
        return cur.rowcount > 0

    def get_shop_item(self: DbProtocol, item_id: int, conn: sqlite3.Connection | None = None) -> ShopItem | None:
        with self._session(conn) as c:
            row = c.execute("SELECT * FROM shop_items WHERE id = ?", (item_id,)).fetchone()
        return _row_to_shop_item(row) if row else None

    def find_shop_item_by_code(self: DbProtocol, code: str) -> ShopItem | None:
        with self._session() as conn:
            row = conn.execute("SELECT * FROM shop_items WHERE code = ?", (code,)).fetchone()
        return _row_to_shop_item(row) if row else None

    def list_shop_items(self: DbProtocol, axis: str | None = None, slot: str | None = None) -> list[ShopItem]:
        conditions = ["active = 1"]
        params: list[str] = []
        if axis is not None:
            conditions.append("axis = ?")
            params.append(axis)
        if slot is not None:
            conditions.append("slot = ?")
            params.append(slot)
        query = (
            f"SELECT * FROM shop_items WHERE {' AND '.join(conditions)} "
            f"ORDER BY {RARITY_ORDER_SQL} ASC, price_amount ASC, id ASC"
        )
        with self._session() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_row_to_shop_item(r) for r in rows]

    def get_inventory_record(
        self: DbProtocol,
        user_id: int,
        shop_item_id: int,
        conn: sqlite3.Connection | None = None,
    ) -> InventoryRecord | None:
        with self._session(conn) as c:
            row = c.execute(
                "SELECT * FROM inventory WHERE user_id = ? AND shop_item_id = ?",
                (user_id, shop_item_id),
            ).fetchone()
        return _row_to_inventory(row) if row else None

    def add_inventory_record(
        self: DbProtocol,
        user_id: int,
        shop_item_id: int,
        acquired_at: datetime,
        conn: sqlite3.Connection | None = None,
    ) -> InventoryRecord:
        with self._session(conn) as c:
            cur = c.execute(
                "INSERT INTO inventory(user_id, shop_item_id, acquired_at) VALUES (?, ?, ?)",
                (user_id, shop_item_id, acquired_at.isoformat()),
            )
            row = c.execute("SELECT * FROM inventory WHERE id = ?", (cur.lastrowid,)).fetchone()
        assert row is not None
        return _row_to_inventory(row)

    def list_owned_item_ids(self: DbProtocol, user_id: int) -> set[int]:
        with self._session() as conn:
            rows = conn.execute("SELECT shop_item_id FROM inventory WHERE user_id = ?", (user_id,)).fetchall()
        return {int(r["shop_item_id"]) for r in rows}

    def add_purchase_event(
        self: DbProtocol,
        user_id: int,
        shop_item_id: int,
        currency: str,
        amount: int,
        created_at: datetime,
        conn: sqlite3.Connection | None = None,
    ) -> PurchaseEvent:
        with self._session(conn) as c:
            cur = c.execute(
                """
                INSERT INTO purchase_events(user_id, shop_item_id, currency, amount, status, created_at)
                VALUES (?, ?, ?, ?, 'success', ?)
                """,
                (user_id, shop_item_id, currency, amount, created_at.isoformat()),
            )
            row = c.execute("SELECT * FROM purchase_events WHERE id = ?", (cur.lastrowid,)).fetchone()
        assert row is not None
        return _row_to_purchase(row)

    def count_purchase_events(self: DbProtocol, user_id: int, shop_item_id: int | None = None) -> int:
        with self._session() as conn:
            if shop_item_id is None:
                row = conn.execute("SELECT COUNT(*) AS c FROM purchase_events WHERE user_id = ?", (user_id,)).fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) AS c FROM purchase_events WHERE user_id = ? AND shop_item_id = ?",
                    (user_id, shop_item_id),
                ).fetchone()
        return int(row["c"]) if row else 0

    def get_equipped(
        self: DbProtocol,
        user_id: int,
        slot: str,
        conn: sqlite3.Connection | None = None,
    ) -> EquippedRecord | None:
        with self._session(conn) as c:
            row = c.execute(
                "SELECT * FROM equipped_items WHERE user_id = ? AND slot = ?",
                (user_id, slot),
            ).fetchone()
        return _row_to_equipped(row) if row else None

    def list_equipped(self: DbProtocol, user_id: int) -> list[EquippedRecord]:
        with self._session() as conn:
            rows = conn.execute(
                "SELECT * FROM equipped_items WHERE user_id = ? ORDER BY slot ASC",
                (user_id,),
            ).fetchall()
        return [_row_to_equipped(r) for r in rows]

    def set_equipped(
        self: DbProtocol,
        user_id: int,
        slot: str,
        shop_item_id: int,
        equipped_at: datetime,
        conn: sqlite3.Connection | None = None,
    ) -> None:
        with self._session(conn) as c:
            c.execute(
                """
                INSERT INTO equipped_items(user_id, slot, shop_item_id, equipped_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id, slot) DO UPDATE SET
                    shop_item_id=excluded.shop_item_id,
                    equipped_at=excluded.equipped_at
                """,
                (user_id, slot, shop_item_id, equipped_at.isoformat()),
            )
