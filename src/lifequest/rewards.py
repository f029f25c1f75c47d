from __future__ import annotations

from dataclasses import dataclass, field

AXES = ("body", "focus", "knowledge", "discipline", "organization", "social")
QUALITIES = ("low", "mid", "high")
CURRENCIES = ("gold", "diamond")

MIN_TIER = 1
MAX_TIER = 5

DEFAULT_ECONOMY_TUNING = {
    "gold_tier_1": 10,
    "gold_tier_2": 25,
    "gold_tier_3": 50,
    "gold_tier_4": 100,
    "gold_tier_5": 200,
    "exp_tier_1": 5,
    "exp_tier_2": 15,
    "exp_tier_3": 30,
    "exp_tier_4": 60,
    "exp_tier_5": 120,
    "axis_tier_1": 1,
    "axis_tier_2": 2,
    "axis_tier_3": 4,
    "axis_tier_4": 8,
    "axis_tier_5": 15,
    "quality_low_percent": 50,
    "quality_mid_percent": 100,
    "quality_high_percent": 150,
    "exp_curve_base": 100,
    "exp_curve_growth_percent": 120,
}


@dataclass(frozen=True)
class RewardCalculation:
    gold_delta: int
    diamond_delta: int
    exp_delta: int
    axis_delta: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class LevelResult:
    level: int
    exp: int
    exp_to_next: int
    leveled_up: bool


def _effective_tuning(tuning: dict[str, int] | None = None) -> dict[str, int]:
    if not tuning:
        return dict(DEFAULT_ECONOMY_TUNING)
    merged = dict(DEFAULT_ECONOMY_TUNING)
    merged.update(tuning)
    return merged


def clamp_tier(tier: int) -> int:
    return min(max(int(tier), MIN_TIER), MAX_TIER)


def quality_percent(quality: str, tuning: dict[str, int] | None = None) -> int:
    cfg = _effective_tuning(tuning)
    key = f"quality_{quality}_percent"
    if key not in cfg:
        key = "quality_mid_percent"
    return max(0, int(cfg[key]))


def calculate_rewards(
    tier: int,
    quality: str,
    axis: str,
    tuning: dict[str, int] | None = None,
) -> RewardCalculation:
    cfg = _effective_tuning(tuning)
    t = clamp_tier(tier)
    percent = quality_percent(quality, tuning=cfg)

    def _scaled(prefix: str) -> int:
        base = max(0, int(cfg[f"{prefix}_tier_{t}"]))
        return (base * percent) // 100

    # Diamonds never come from quest completion.
    return RewardCalculation(
        gold_delta=_scaled("gold"),
        diamond_delta=0,
        exp_delta=_scaled("exp"),
        axis_delta={axis: _scaled("axis")},
    )


def exp_to_next_level(level: int, tuning: dict[str, int] | None = None) -> int:
    cfg = _effective_tuning(tuning)
    base = max(1, int(cfg["exp_curve_base"]))
    growth_percent = max(100, int(cfg["exp_curve_growth_percent"]))
    steps = max(1, level) - 1
    # Integer form of floor(base * (growth/100) ** steps), exact at any level.
    return max(1, (base * growth_percent**steps) // (100**steps))


def process_level_up(
    level: int,
    exp: int,
    exp_delta: int,
    tuning: dict[str, int] | None = None,
) -> LevelResult:
    current_level = max(1, level)
    total = max(0, exp) + max(0, exp_delta)
    threshold = exp_to_next_level(current_level, tuning=tuning)
    leveled_up = False
    while total >= threshold:
        total -= threshold
        current_level += 1
        leveled_up = True
        threshold = exp_to_next_level(current_level, tuning=tuning)
    return LevelResult(level=current_level, exp=total, exp_to_next=threshold, leveled_up=leveled_up)


def apply_axis_delta(current: dict[str, int], delta: dict[str, int]) -> dict[str, int]:
    return {axis: int(current.get(axis, 0)) + int(delta.get(axis, 0)) for axis in AXES}
