from __future__ import annotations

from typing import Any

COSMETIC_SLOTS = ("head", "face", "body", "legs", "back", "accessory")
RARITIES = ("common", "rare", "epic")
CLIENT_SOURCES = ("app", "notification", "widget", "unknown")
APPLY_SCOPES = ("today_only",)

DEFAULT_TASK_TIER = 1
DEFAULT_ESTIMATED_MINUTES = 15
MAX_DURATION_MINUTES = 480

# (code, axis, slot, rarity, name, description, currency, price)
DEFAULT_SHOP_ITEMS: list[tuple[str, str | None, str, str, str, str, str, int]] = [
    ("headband_focus", "focus", "head", "common", "Focus Headband", "A plain band that keeps your eyes on the task.", "gold", 50),
    ("runner_shoes", "body", "legs", "common", "Runner Shoes", "Light shoes for the morning jog.", "gold", 80),
    ("scholar_glasses", "knowledge", "face", "rare", "Scholar Glasses", "Round glasses with a faint glow.", "gold", 200),
    ("iron_cape", "discipline", "back", "rare", "Iron Cape", "Heavy, and you wear it anyway.", "gold", 350),
    ("planner_satchel", "organization", "accessory", "common", "Planner Satchel", "Every pocket has a label.", "gold", 120),
    ("guild_tunic", "social", "body", "rare", "Guild Tunic", "Colours of a guild that meets on Thursdays.", "gold", 260),
    ("star_crown", None, "head", "epic", "Star Crown", "Only the persistent wear this.", "diamond", 30),
]

APP_CONFIG_DEFAULTS: dict[str, Any] = {
    "job.materialize_enabled": True,
    "job.verify_ledger_enabled": True,
    "economy.gold.tier_1": 10,
    "economy.gold.tier_2": 25,
    "economy.gold.tier_3": 50,
    "economy.gold.tier_4": 100,
    "economy.gold.tier_5": 200,
    "economy.exp.tier_1": 5,
    "economy.exp.tier_2": 15,
    "economy.exp.tier_3": 30,
    "economy.exp.tier_4": 60,
    "economy.exp.tier_5": 120,
    "economy.axis.tier_1": 1,
    "economy.axis.tier_2": 2,
    "economy.axis.tier_3": 4,
    "economy.axis.tier_4": 8,
    "economy.axis.tier_5": 15,
    "economy.quality.low_percent": 50,
    "economy.quality.mid_percent": 100,
    "economy.quality.high_percent": 150,
    "economy.exp_curve.base": 100,
    "economy.exp_curve.growth_percent": 120,
}

JOB_CONFIG_KEYS = {
    "materialize_today": "job.materialize_enabled",
    "verify_ledger": "job.verify_ledger_enabled",
}
