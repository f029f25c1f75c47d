from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any

from lifequest.errors import ValidationError

WEEKDAY_NAMES = ("MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN")
WEEKDAY_FULL_NAMES = ("MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY", "SATURDAY", "SUNDAY")


class RuleType(str, Enum):
    DAILY = "DAILY"
    WEEKDAYS = "WEEKDAYS"
    WEEKLY = "WEEKLY"
    N_PER_WEEK = "N_PER_WEEK"
    ONCE = "ONCE"


@dataclass(frozen=True)
class RecurrenceRule:
    rule_type: RuleType
    selected_days: tuple[int, ...] = ()
    n_per_week: int | None = None

    def to_json(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        if self.selected_days:
            payload["selected_days"] = [WEEKDAY_NAMES[d] for d in self.selected_days]
        if self.n_per_week is not None:
            payload["n_per_week"] = self.n_per_week
        return payload


def _parse_weekday(raw: Any) -> int:
    if isinstance(raw, int) and not isinstance(raw, bool) and 0 <= raw <= 6:
        return raw
    name = str(raw).strip().upper()
    for index, short in enumerate(WEEKDAY_NAMES):
        if name in (short, WEEKDAY_FULL_NAMES[index]):
            return index
    raise ValidationError(f"Unknown weekday: {raw!r}")


def parse_rule(rule_type: str | RuleType, params: dict[str, Any] | None = None) -> RecurrenceRule:
    try:
        kind = RuleType(str(getattr(rule_type, "value", rule_type)).upper())
    except ValueError as exc:
        raise ValidationError(f"Unknown rule type: {rule_type!r}") from exc
    params = params or {}

    if kind is RuleType.WEEKLY:
        raw_days = params.get("selected_days") or []
        if not isinstance(raw_days, (list, tuple)):
            raise ValidationError("selected_days must be a list")
        days = tuple(sorted({_parse_weekday(d) for d in raw_days}))
        return RecurrenceRule(rule_type=kind, selected_days=days)

    if kind is RuleType.N_PER_WEEK:
        try:
            n = int(params.get("n_per_week", 0))
        except (TypeError, ValueError) as exc:
            raise ValidationError("n_per_week must be an integer") from exc
        if not 1 <= n <= 7:
            raise ValidationError("n_per_week must be between 1 and 7")
        return RecurrenceRule(rule_type=kind, n_per_week=n)

    return RecurrenceRule(rule_type=kind)


def applies_on(rule: RecurrenceRule, target: date) -> bool:
    weekday = target.weekday()
    if rule.rule_type is RuleType.WEEKDAYS:
        return weekday < 5
    if rule.rule_type is RuleType.WEEKLY:
        days = rule.selected_days or (0,)
        return weekday in days
    # DAILY, ONCE and N_PER_WEEK are always offered. The N_PER_WEEK weekly cap
    # and ONCE deactivation are left to the caller.
    return True
