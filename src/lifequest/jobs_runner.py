from __future__ import annotations

import logging

from lifequest.catalog import load_catalog, sync_catalog
from lifequest.config import Settings
from lifequest.db import Database
from lifequest.progression import replay_ledger
from lifequest.service import materialize_plan
from lifequest.time_utils import now_local

logger = logging.getLogger(__name__)

JOB_NAMES = ("materialize_today", "verify_ledger", "sync_catalog")


def run_materialize_today(db: Database, settings: Settings) -> int:
    now = now_local(settings.tz)
    count = 0
    for user_id in db.list_users_with_active_series():
        plan = materialize_plan(db, user_id, now.date(), now)
        logger.info("plan ready user=%s date=%s items=%s", user_id, plan.date, len(plan.items))
        count += 1
    return count


def run_verify_ledger(db: Database) -> list[int]:
    mismatched: list[int] = []
    for user_id in db.list_snapshot_user_ids():
        report = replay_ledger(db, user_id)
        if not report.matches_snapshots:
            mismatched.append(user_id)
    if mismatched:
        logger.warning("ledger verification failed for users: %s", mismatched)
    else:
        logger.info("ledger verification passed")
    return mismatched


def run_job(job_name: str, db: Database, settings: Settings) -> None:
    if not db.is_job_enabled(job_name):
        logger.info("job disabled: %s", job_name)
        return
    if job_name == "materialize_today":
        run_materialize_today(db, settings)
    elif job_name == "verify_ledger":
        run_verify_ledger(db)
    elif job_name == "sync_catalog":
        sync_catalog(db, load_catalog(settings.catalog_path))
    else:
        raise SystemExit(f"Unknown job '{job_name}'. Expected one of: {', '.join(JOB_NAMES)}")
