from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest

from lifequest.config import Settings
from lifequest.db import Database, Wallet
from lifequest.jobs_runner import run_job, run_verify_ledger
from lifequest.series import SeriesDraft, create_series
from lifequest.service import complete_task, create_task
from lifequest.time_utils import now_local


def _dt(y: int, m: int, d: int, h: int = 10, minute: int = 0) -> datetime:
    return datetime(y, m, d, h, minute, tzinfo=ZoneInfo("Europe/Oslo"))


def _settings(tmp_path) -> Settings:
    return Settings(
        database_path=tmp_path / "app.db",
        tz="Europe/Oslo",
        catalog_path=tmp_path / "missing.yaml",
        busy_timeout_seconds=5.0,
        log_level="INFO",
    )


def test_materialize_job_builds_todays_plan(tmp_path) -> None:
    settings = _settings(tmp_path)
    db = Database(settings.database_path)
    create_series(db, 7, SeriesDraft(title="Walk", axis="body", rule_type="DAILY"), _dt(2026, 1, 1))

    run_job("materialize_today", db, settings)

    plan = db.get_plan(7, now_local(settings.tz).date())
    assert plan is not None
    assert plan.materialized_at is not None
    assert [i.title for i in db.list_plan_items(plan.id)] == ["Walk"]


def test_disabled_job_does_nothing(tmp_path) -> None:
    settings = _settings(tmp_path)
    db = Database(settings.database_path)
    create_series(db, 7, SeriesDraft(title="Walk", axis="body", rule_type="DAILY"), _dt(2026, 1, 1))
    db.set_app_config({"job.materialize_enabled": False}, actor="test")

    run_job("materialize_today", db, settings)

    assert db.get_plan(7, now_local(settings.tz).date()) is None


def test_verify_ledger_reports_mismatched_users(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    for user_id in (1, 2):
        task = create_task(db, user_id, date(2026, 3, 4), "Stretch", "body", _dt(2026, 3, 4, 8))
        complete_task(db, user_id, task.id, _dt(2026, 3, 4, 9))
    db.upsert_wallet(Wallet(user_id=2, gold=999), _dt(2026, 3, 4, 10))

    assert run_verify_ledger(db) == [2]


def test_sync_catalog_job_seeds_built_in_items(tmp_path) -> None:
    settings = _settings(tmp_path)
    db = Database(settings.database_path)

    run_job("sync_catalog", db, settings)

    assert db.find_shop_item_by_code("star_crown") is not None


def test_unknown_job_exits(tmp_path) -> None:
    settings = _settings(tmp_path)
    db = Database(settings.database_path)
    with pytest.raises(SystemExit, match="materialize_today"):
        run_job("sunday_summary", db, settings)

