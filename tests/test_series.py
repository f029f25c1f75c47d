from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest

from lifequest.db import Database
from lifequest.errors import NotFoundError, ValidationError
from lifequest.series import (
    SeriesDraft,
    create_series,
    create_series_batch,
    delete_series,
    list_series,
    update_series,
)


def _dt(y: int, m: int, d: int, h: int = 10, minute: int = 0) -> datetime:
    return datetime(y, m, d, h, minute, tzinfo=ZoneInfo("Europe/Oslo"))


def test_create_series_normalizes_fields(tmp_path) -> None:
    db = Database(tmp_path / "app.db")

    view = create_series(
        db,
        1,
        SeriesDraft(
            title=" Journal ",
            axis="Organization",
            rule_type="weekly",
            rule_params={"selected_days": ["fri", "TUE"]},
            tier_default=0,
        ),
        _dt(2026, 3, 1),
    )

    assert view.title == "Journal"
    assert view.axis == "organization"
    assert view.tier_default == 1
    assert view.rule_type == "WEEKLY"
    assert view.rule_json == {"selected_days": ["TUE", "FRI"]}
    assert db.get_series(1, view.id).start_date == date(2026, 3, 1)


def test_batch_is_all_or_nothing(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    drafts = [
        SeriesDraft(title="Run", axis="body", rule_type="DAILY"),
        SeriesDraft(title="Call a friend", axis="social", rule_type="N_PER_WEEK", rule_params={"n_per_week": 9}),
    ]

    with pytest.raises(ValidationError):
        create_series_batch(db, 1, drafts, _dt(2026, 3, 1))
    assert list_series(db, 1) == []

    drafts[1] = SeriesDraft(title="Call a friend", axis="social", rule_type="N_PER_WEEK", rule_params={"n_per_week": 2})
    created = create_series_batch(db, 1, drafts, _dt(2026, 3, 1))
    assert [s.title for s in created] == ["Run", "Call a friend"]
    assert created[1].rule_json == {"n_per_week": 2}


def test_update_series_rule_and_flags(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    series = create_series(db, 1, SeriesDraft(title="Read", axis="knowledge", rule_type="DAILY"), _dt(2026, 3, 1))

    updated = update_series(
        db,
        1,
        series.id,
        {"rule_type": "WEEKDAYS", "active": False, "estimated_minutes_default": 45},
    )

    assert updated.rule_type == "WEEKDAYS"
    assert updated.active is False
    assert updated.estimated_minutes_default == 45
    assert list_series(db, 1, active_only=True) == []


def test_update_and_delete_check_owner(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    series = create_series(db, 1, SeriesDraft(title="Read", axis="knowledge", rule_type="DAILY"), _dt(2026, 3, 1))

    with pytest.raises(NotFoundError):
        update_series(db, 2, series.id, {"title": "Mine now"})
    with pytest.raises(NotFoundError):
        delete_series(db, 2, series.id)

    delete_series(db, 1, series.id)
    assert list_series(db, 1) == []
    with pytest.raises(NotFoundError):
        delete_series(db, 1, series.id)


def test_update_series_rejects_unknown_field(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    series = create_series(db, 1, SeriesDraft(title="Read", axis="knowledge", rule_type="DAILY"), _dt(2026, 3, 1))

    with pytest.raises(ValidationError):
        update_series(db, 1, series.id, {"user_id": 2})
