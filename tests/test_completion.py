from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest

from lifequest.db import Database, TaskStatus, Wallet
from lifequest.errors import (
    AlreadyCompletedError,
    ConflictError,
    ForbiddenError,
    IdempotencyConflictError,
    NotFoundError,
    ValidationError,
)
from lifequest.progression import replay_ledger
from lifequest.service import complete_task, create_task, skip_task


def _dt(y: int, m: int, d: int, h: int = 10, minute: int = 0) -> datetime:
    return datetime(y, m, d, h, minute, tzinfo=ZoneInfo("Europe/Oslo"))


DAY = date(2026, 3, 4)


def _task(db: Database, user_id: int = 1, tier: int = 3, axis: str = "focus", title: str = "Deep work") -> int:
    return create_task(db, user_id, DAY, title, axis, _dt(2026, 3, 4, 8), tier=tier).id


def test_complete_task_applies_reward(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    task_id = _task(db)

    result = complete_task(db, 1, task_id, _dt(2026, 3, 4, 11), quality="mid", duration_minutes=40, client_source="app")

    reward = result.reward
    assert (reward.gold_delta, reward.exp_delta, reward.diamond_delta) == (50, 30, 0)
    assert reward.axis_delta == {"focus": 4}
    assert reward.levelup is False
    assert (reward.new_progress.level, reward.new_progress.exp, reward.new_progress.exp_to_next) == (1, 30, 100)
    assert reward.new_wallet.gold == 50
    assert reward.new_axis_scores.focus == 4

    assert db.get_plan_item(task_id).status is TaskStatus.DONE
    assert db.get_wallet(1).gold == 50
    assert db.get_progress(1).exp == 30
    assert db.get_axis_scores(1).focus == 4

    event = db.get_completion_event(result.completion_event_id)
    assert event.duration_minutes == 40
    assert event.plan_date == DAY
    reward_event = db.get_reward_for_completion(event.id)
    assert reward_event.axis_delta == {"focus": 4}


def test_completion_can_level_up(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    task_id = _task(db, tier=5)

    result = complete_task(db, 1, task_id, _dt(2026, 3, 4, 11), quality="high")

    assert result.reward.exp_delta == 180
    assert result.reward.levelup is True
    assert (result.reward.new_progress.level, result.reward.new_progress.exp) == (2, 80)
    assert result.reward.new_progress.exp_to_next == 120
    assert db.get_reward_for_completion(result.completion_event_id).levelup is True


def test_duration_defaults_to_estimate_and_is_clamped(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    first = _task(db)
    second = _task(db, title="Long run")

    a = complete_task(db, 1, first, _dt(2026, 3, 4, 11))
    b = complete_task(db, 1, second, _dt(2026, 3, 4, 12), duration_minutes=10_000)

    assert db.get_completion_event(a.completion_event_id).duration_minutes == 15
    assert db.get_completion_event(b.completion_event_id).duration_minutes == 480


def test_idempotent_replay_returns_identical_payload(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    task_id = _task(db)

    first = complete_task(db, 1, task_id, _dt(2026, 3, 4, 11), idempotency_key="k-1")
    second = complete_task(db, 1, task_id, _dt(2026, 3, 4, 12), idempotency_key="k-1")

    assert second.model_dump_json() == first.model_dump_json()
    assert db.count_completion_events(1, task_id) == 1
    assert db.get_wallet(1).gold == 50
    assert len(db.list_ledger_entries(1, kind="currency")) == 1


def test_second_completion_without_key_is_rejected(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    task_id = _task(db)
    complete_task(db, 1, task_id, _dt(2026, 3, 4, 11))

    with pytest.raises(AlreadyCompletedError) as exc:
        complete_task(db, 1, task_id, _dt(2026, 3, 4, 12))

    assert exc.value.code == "ALREADY_COMPLETED"
    assert exc.value.to_dict() == {
        "error": "ALREADY_COMPLETED",
        "message": "Task already completed",
        "details": {"task_id": task_id},
    }
    assert exc.value.http_status == 409
    assert db.get_wallet(1).gold == 50


def test_new_key_on_completed_task_is_rejected(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    task_id = _task(db)
    complete_task(db, 1, task_id, _dt(2026, 3, 4, 11), idempotency_key="k-1")

    with pytest.raises(AlreadyCompletedError):
        complete_task(db, 1, task_id, _dt(2026, 3, 4, 12), idempotency_key="k-2")


def test_key_reused_for_other_task_conflicts(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    first = _task(db)
    second = _task(db, title="Read a chapter", axis="knowledge")
    complete_task(db, 1, first, _dt(2026, 3, 4, 11), idempotency_key="same")

    with pytest.raises(IdempotencyConflictError) as exc:
        complete_task(db, 1, second, _dt(2026, 3, 4, 12), idempotency_key="same")

    assert exc.value.code == "IDEMPOTENCY_CONFLICT"
    assert db.get_plan_item(second).status is TaskStatus.TODO


def test_keys_are_scoped_per_user(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    mine = _task(db, user_id=1)
    theirs = _task(db, user_id=2)

    complete_task(db, 1, mine, _dt(2026, 3, 4, 11), idempotency_key="shared")
    complete_task(db, 2, theirs, _dt(2026, 3, 4, 11), idempotency_key="shared")

    assert db.get_wallet(1).gold == 50
    assert db.get_wallet(2).gold == 50


def test_other_users_task_is_forbidden(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    task_id = _task(db, user_id=1)

    with pytest.raises(ForbiddenError):
        complete_task(db, 2, task_id, _dt(2026, 3, 4, 11))
    with pytest.raises(NotFoundError):
        complete_task(db, 1, 999, _dt(2026, 3, 4, 11))


def test_skipped_task_cannot_be_completed(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    task_id = _task(db)
    skip_task(db, 1, task_id, _dt(2026, 3, 4, 9))

    with pytest.raises(ConflictError) as exc:
        complete_task(db, 1, task_id, _dt(2026, 3, 4, 11))

    assert exc.value.code == "CONFLICT"


def test_unknown_quality_rejected(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    task_id = _task(db)
    with pytest.raises(ValidationError):
        complete_task(db, 1, task_id, _dt(2026, 3, 4, 11), quality="perfect")


def test_failure_mid_transaction_leaves_no_trace(tmp_path, monkeypatch) -> None:
    db = Database(tmp_path / "app.db")
    task_id = _task(db)

    def boom(*args, **kwargs):
        raise RuntimeError("storage failure")

    monkeypatch.setattr(db, "add_reward_event", boom)
    with pytest.raises(RuntimeError):
        complete_task(db, 1, task_id, _dt(2026, 3, 4, 11), idempotency_key="k-1")

    assert db.get_plan_item(task_id).status is TaskStatus.TODO
    assert db.count_completion_events(1) == 0
    assert db.get_wallet(1).gold == 0
    assert db.get_progress(1).exp == 0
    assert db.list_ledger_entries(1) == []
    assert db.get_idempotency_record(1, "k-1") is None


def test_concurrent_completions_apply_once(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    task_id = _task(db)

    def attempt(minute: int) -> str:
        try:
            complete_task(db, 1, task_id, _dt(2026, 3, 4, 11, minute))
        except AlreadyCompletedError:
            return "rejected"
        return "ok"

    with ThreadPoolExecutor(max_workers=4) as pool:
        outcomes = list(pool.map(attempt, range(4)))

    assert outcomes.count("ok") == 1
    assert outcomes.count("rejected") == 3
    assert db.count_completion_events(1, task_id) == 1
    assert db.get_wallet(1).gold == 50


def test_ledger_replays_to_snapshots(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    for tier, axis in [(5, "body"), (4, "focus"), (3, "focus"), (2, "social")]:
        task_id = _task(db, tier=tier, axis=axis, title=f"{axis} tier {tier}")
        complete_task(db, 1, task_id, _dt(2026, 3, 4, 11), quality="high")

    report = replay_ledger(db, 1)

    assert report.matches_snapshots is True
    assert report.mismatches == []
    assert report.wallet.gold == db.get_wallet(1).gold
    assert report.axis_scores.focus == db.get_axis_scores(1).focus
    progress = db.get_progress(1)
    assert (report.progress.level, report.progress.exp) == (progress.level, progress.exp)
    assert report.total_exp == 180 + 90 + 45 + 22


def test_replay_detects_tampered_snapshot(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    task_id = _task(db)
    complete_task(db, 1, task_id, _dt(2026, 3, 4, 11))

    db.upsert_wallet(Wallet(user_id=1, gold=55, diamond=0), _dt(2026, 3, 4, 12))

    report = replay_ledger(db, 1)
    assert report.matches_snapshots is False
    assert report.mismatches == ["gold: ledger=50 snapshot=55"]


def test_zero_exp_completion_settles_level_after_curve_retune(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    for title in ("First", "Second"):
        complete_task(db, 1, _task(db, title=title), _dt(2026, 3, 4, 11))
    assert (db.get_progress(1).level, db.get_progress(1).exp) == (1, 60)

    db.set_app_config({"economy.exp_curve.base": 50, "economy.exp.tier_1": 0})
    result = complete_task(db, 1, _task(db, tier=1, title="Tidy desk"), _dt(2026, 3, 4, 12))

    progress = result.reward.new_progress
    assert result.reward.exp_delta == 0
    assert result.reward.levelup is True
    assert (progress.level, progress.exp, progress.exp_to_next) == (2, 10, 60)
    assert progress.exp < progress.exp_to_next
    stored = db.get_progress(1)
    assert (stored.level, stored.exp, stored.exp_to_next) == (2, 10, 60)
    assert replay_ledger(db, 1).matches_snapshots is True


def test_replay_survives_curve_retune(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    for title in ("First", "Second"):
        complete_task(db, 1, _task(db, title=title), _dt(2026, 3, 4, 11))

    db.set_app_config({"economy.exp_curve.base": 50})
    report = replay_ledger(db, 1)

    assert report.mismatches == []
    assert report.matches_snapshots is True
    assert (report.progress.level, report.progress.exp) == (1, 60)
    assert report.total_exp == 60


def test_replay_detects_missing_experience_rows(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    complete_task(db, 1, _task(db), _dt(2026, 3, 4, 11))
    with db.transaction() as conn:
        conn.execute("DELETE FROM exp_ledger WHERE user_id = 1")
        conn.execute("UPDATE progress SET exp = 0 WHERE user_id = 1")

    report = replay_ledger(db, 1)
    assert report.matches_snapshots is False
    assert report.mismatches == ["exp: ledger=0 rewards=30"]


def test_completion_reads_tuning_inside_its_transaction(tmp_path, monkeypatch) -> None:
    db = Database(tmp_path / "app.db")
    task_id = _task(db)
    seen = []
    original = Database.get_economy_tuning

    def tracking(self, conn=None):
        seen.append(conn is not None and conn.in_transaction)
        return original(self, conn=conn)

    monkeypatch.setattr(Database, "get_economy_tuning", tracking)
    complete_task(db, 1, task_id, _dt(2026, 3, 4, 11))

    assert seen == [True]
