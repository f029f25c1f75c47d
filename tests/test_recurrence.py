from datetime import date

import pytest

from lifequest.errors import ValidationError
from lifequest.recurrence import RuleType, applies_on, parse_rule

MONDAY = date(2026, 3, 2)
TUESDAY = date(2026, 3, 3)
WEDNESDAY = date(2026, 3, 4)
SATURDAY = date(2026, 3, 7)


def test_daily_always_applies() -> None:
    rule = parse_rule("DAILY")
    assert all(applies_on(rule, date(2026, 3, d)) for d in range(2, 9))


def test_weekdays_excludes_weekend() -> None:
    rule = parse_rule("weekdays")
    assert applies_on(rule, MONDAY) is True
    assert applies_on(rule, SATURDAY) is False


def test_weekly_selected_days() -> None:
    rule = parse_rule("WEEKLY", {"selected_days": ["MON", "wed"]})
    assert rule.selected_days == (0, 2)
    assert applies_on(rule, WEDNESDAY) is True
    assert applies_on(rule, TUESDAY) is False


def test_weekly_defaults_to_monday() -> None:
    rule = parse_rule("WEEKLY", {})
    assert applies_on(rule, MONDAY) is True
    assert applies_on(rule, TUESDAY) is False


@pytest.mark.parametrize("rule_type", ["N_PER_WEEK", "ONCE"])
def test_capped_and_once_rules_are_always_offered(rule_type: str) -> None:
    rule = parse_rule(rule_type, {"n_per_week": 2})
    assert applies_on(rule, SATURDAY) is True


def test_rule_round_trips_through_json() -> None:
    rule = parse_rule("WEEKLY", {"selected_days": ["FRI", "MON"]})
    assert rule.to_json() == {"selected_days": ["MON", "FRI"]}
    assert parse_rule(rule.rule_type, rule.to_json()) == rule


@pytest.mark.parametrize(
    "rule_type,params",
    [
        ("HOURLY", {}),
        ("WEEKLY", {"selected_days": ["FUNDAY"]}),
        ("WEEKLY", {"selected_days": "MON"}),
        ("N_PER_WEEK", {"n_per_week": 0}),
        ("N_PER_WEEK", {"n_per_week": 8}),
        ("N_PER_WEEK", {"n_per_week": "many"}),
    ],
)
def test_invalid_rules_rejected(rule_type: str, params: dict) -> None:
    with pytest.raises(ValidationError):
        parse_rule(rule_type, params)


def test_n_per_week_keeps_n() -> None:
    rule = parse_rule(RuleType.N_PER_WEEK, {"n_per_week": 3})
    assert rule.n_per_week == 3


@pytest.mark.parametrize("raw,expected", [("Wednesday", 2), (" sun ", 6), ("fri", 4), (0, 0)])
def test_weekday_accepts_full_and_short_names(raw, expected: int) -> None:
    assert parse_rule("WEEKLY", {"selected_days": [raw]}).selected_days == (expected,)


@pytest.mark.parametrize("raw", ["MONKEY", "Wed.", "THURS", "M"])
def test_weekday_prefix_lookalikes_rejected(raw: str) -> None:
    with pytest.raises(ValidationError):
        parse_rule("WEEKLY", {"selected_days": [raw]})
