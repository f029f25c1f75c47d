from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from lifequest.db import Database
from lifequest.db_constants import COSMETIC_SLOTS, DEFAULT_SHOP_ITEMS, RARITIES
from lifequest.rewards import AXES, CURRENCIES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogEntry:
    code: str
    axis: str | None
    slot: str
    rarity: str
    name: str
    description: str
    price_currency: str
    price_amount: int
    active: bool = True


def default_catalog() -> list[CatalogEntry]:
    return [
        CatalogEntry(
            code=code,
            axis=axis,
            slot=slot,
            rarity=rarity,
            name=name,
            description=description,
            price_currency=currency,
            price_amount=price,
        )
        for code, axis, slot, rarity, name, description, currency, price in DEFAULT_SHOP_ITEMS
    ]


def _parse_entry(payload: Any) -> CatalogEntry | None:
    if not isinstance(payload, dict):
        return None
    code = str(payload.get("code", "")).strip()
    name = str(payload.get("name", "")).strip()
    slot = str(payload.get("slot", "")).strip().lower()
    rarity = str(payload.get("rarity", "common")).strip().lower()
    currency = str(payload.get("currency", "gold")).strip().lower()
    raw_axis = payload.get("axis")
    axis = str(raw_axis).strip().lower() if raw_axis else None
    try:
        price = int(payload.get("price", -1))
    except (TypeError, ValueError):
        return None

    if not code or not name or price < 0:
        return None
    if slot not in COSMETIC_SLOTS or rarity not in RARITIES or currency not in CURRENCIES:
        return None
    if axis is not None and axis not in AXES:
        return None
    return CatalogEntry(
        code=code,
        axis=axis,
        slot=slot,
        rarity=rarity,
        name=name,
        description=str(payload.get("description", "")).strip(),
        price_currency=currency,
        price_amount=price,
        active=bool(payload.get("active", True)),
    )


def load_catalog(path: Path) -> list[CatalogEntry]:
    if not path.exists():
        return default_catalog()

    try:
        raw = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError:
        logger.warning("unreadable shop catalog %s, using built-in items", path)
        return default_catalog()

    items_raw = raw.get("items", []) if isinstance(raw, dict) else []
    entries: list[CatalogEntry] = []
    if isinstance(items_raw, list):
        for payload in items_raw:
            entry = _parse_entry(payload)
            if entry is None:
                logger.warning("skipping invalid catalog entry: %r", payload)
                continue
            entries.append(entry)
    if not entries:
        return default_catalog()
    return entries


def sync_catalog(db: Database, entries: list[CatalogEntry]) -> int:
    for entry in entries:
        db.upsert_shop_item(
            code=entry.code,
            axis=entry.axis,
            slot=entry.slot,
            rarity=entry.rarity,
            name=entry.name,
            description=entry.description,
            price_currency=entry.price_currency,
            price_amount=entry.price_amount,
            active=entry.active,
        )
    logger.info("synced %s shop items", len(entries))
    return len(entries)
