from __future__ import annotations

import pytest

from lifequest.rewards import (
    QUALITIES,
    apply_axis_delta,
    calculate_rewards,
    clamp_tier,
    exp_to_next_level,
    process_level_up,
)


def test_tier_three_mid_quality_matches_base_table() -> None:
    reward = calculate_rewards(3, "mid", "focus")
    assert reward.gold_delta == 50
    assert reward.exp_delta == 30
    assert reward.diamond_delta == 0
    assert reward.axis_delta == {"focus": 4}


def test_quality_scales_and_floors() -> None:
    low = calculate_rewards(1, "low", "body")
    assert (low.gold_delta, low.exp_delta, low.axis_delta["body"]) == (5, 2, 0)
    high = calculate_rewards(5, "high", "social")
    assert (high.gold_delta, high.exp_delta, high.axis_delta["social"]) == (300, 180, 22)


@pytest.mark.parametrize("tier", [1, 2, 3, 4])
def test_rewards_non_decreasing_in_tier(tier: int) -> None:
    for quality in QUALITIES:
        lower = calculate_rewards(tier, quality, "knowledge")
        higher = calculate_rewards(tier + 1, quality, "knowledge")
        assert higher.gold_delta >= lower.gold_delta
        assert higher.exp_delta >= lower.exp_delta


@pytest.mark.parametrize("tier", [1, 2, 3, 4, 5])
def test_rewards_non_decreasing_in_quality(tier: int) -> None:
    low, mid, high = (calculate_rewards(tier, q, "discipline") for q in ("low", "mid", "high"))
    assert low.gold_delta <= mid.gold_delta <= high.gold_delta
    assert low.exp_delta <= mid.exp_delta <= high.exp_delta


def test_tier_is_clamped() -> None:
    assert clamp_tier(0) == 1
    assert clamp_tier(9) == 5
    assert calculate_rewards(42, "mid", "body").gold_delta == 200


def test_tuning_overrides_base_table() -> None:
    reward = calculate_rewards(2, "mid", "body", tuning={"gold_tier_2": 40})
    assert reward.gold_delta == 40
    assert reward.exp_delta == 15


def test_exp_curve_thresholds() -> None:
    assert [exp_to_next_level(level) for level in range(1, 6)] == [100, 120, 144, 172, 207]


def test_level_up_carries_remainder() -> None:
    result = process_level_up(1, 90, 30)
    assert (result.level, result.exp, result.exp_to_next, result.leveled_up) == (2, 20, 120, True)


def test_no_level_up_below_threshold() -> None:
    result = process_level_up(1, 0, 30)
    assert (result.level, result.exp, result.exp_to_next, result.leveled_up) == (1, 30, 100, False)


def test_multiple_level_ups_in_one_delta() -> None:
    result = process_level_up(1, 0, 400)
    assert (result.level, result.exp, result.exp_to_next) == (4, 36, 172)
    assert result.leveled_up is True


@pytest.mark.parametrize("level,exp,delta", [(1, 0, 0), (1, 99, 1), (3, 10, 5000), (7, 0, 123)])
def test_level_result_stays_below_threshold(level: int, exp: int, delta: int) -> None:
    result = process_level_up(level, exp, delta)
    assert result.level >= level
    assert 0 <= result.exp < exp_to_next_level(result.level)
    assert result.exp_to_next == exp_to_next_level(result.level)


def test_apply_axis_delta_adds_elementwise() -> None:
    current = {"body": 3, "focus": 1}
    updated = apply_axis_delta(current, {"focus": 4})
    assert updated["body"] == 3
    assert updated["focus"] == 5
    assert updated["social"] == 0
