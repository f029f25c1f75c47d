from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Any, Protocol

from lifequest.db_constants import APP_CONFIG_DEFAULTS, JOB_CONFIG_KEYS
from lifequest.db_converters import _row_to_audit
from lifequest.db_models import AuditLogEntry
from lifequest.rewards import MAX_TIER, MIN_TIER, QUALITIES

logger = logging.getLogger(__name__)


class DbProtocol(Protocol):
    def _session(self, conn: sqlite3.Connection | None = None) -> AbstractContextManager[sqlite3.Connection]: ...
    def get_app_config(self, conn: sqlite3.Connection | None = None) -> dict[str, Any]: ...


def _as_int(config: dict[str, Any], key: str, floor: int = 0) -> int:
    default = int(APP_CONFIG_DEFAULTS[key])
    try:
        return max(floor, int(config.get(key, default)))
    except (TypeError, ValueError):
        return max(floor, default)


class SystemMixin:
    """Runtime tuning and job switches stored as JSON in ``app_config``."""

    def get_app_config(self: DbProtocol, conn: sqlite3.Connection | None = None) -> dict[str, Any]:
        with self._session(conn) as conn:
            rows = conn.execute("SELECT key, value_json FROM app_config").fetchall()
        stored: dict[str, Any] = {}
        for row in rows:
            if row["key"] not in APP_CONFIG_DEFAULTS:
                continue
            try:
                stored[row["key"]] = json.loads(row["value_json"])
            except json.JSONDecodeError:
                logger.warning("ignoring unreadable app_config value for %s", row["key"])
        return {**APP_CONFIG_DEFAULTS, **stored}

    def set_app_config(
        self: DbProtocol,
        updates: dict[str, Any],
        actor: str = "system",
        note: str | None = None,
    ) -> dict[str, Any]:
        """Store known keys and write one audit row per key. Unknown keys are dropped."""
        applied = {k: v for k, v in updates.items() if k in APP_CONFIG_DEFAULTS}
        dropped = sorted(set(updates) - set(applied))
        if dropped:
            logger.warning("unknown app_config keys ignored: %s", dropped)
        if applied:
            stamp = datetime.now().isoformat()
            with self._session() as conn:
                conn.executemany(
                    """
                    INSERT INTO app_config(key, value_json, updated_at, updated_by)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value_json=excluded.value_json,
                        updated_at=excluded.updated_at,
                        updated_by=excluded.updated_by
                    """,
                    [(key, json.dumps(value), stamp, actor) for key, value in applied.items()],
                )
                conn.executemany(
                    """
                    INSERT INTO admin_audit_log(actor, action, target, payload_json, created_at)
                    VALUES (?, 'app_config.set', ?, ?, ?)
                    """,
                    [
                        (actor, key, json.dumps({"value": value, "note": note}), stamp)
                        for key, value in applied.items()
                    ],
                )
        return self.get_app_config()

    def is_job_enabled(self: DbProtocol, job_name: str) -> bool:
        key = JOB_CONFIG_KEYS.get(job_name)
        if key is None:
            return True
        return bool(self.get_app_config().get(key, True))

    def get_economy_tuning(self: DbProtocol, conn: sqlite3.Connection | None = None) -> dict[str, int]:
        """Flatten the ``economy.*`` keys into the dict ``rewards`` expects."""
        config = self.get_app_config(conn=conn)
        tuning = {
            f"{kind}_tier_{tier}": _as_int(config, f"economy.{kind}.tier_{tier}")
            for kind in ("gold", "exp", "axis")
            for tier in range(MIN_TIER, MAX_TIER + 1)
        }
        for quality in QUALITIES:
            tuning[f"quality_{quality}_percent"] = _as_int(config, f"economy.quality.{quality}_percent")
        tuning["exp_curve_base"] = _as_int(config, "economy.exp_curve.base", floor=1)
        tuning["exp_curve_growth_percent"] = _as_int(config, "economy.exp_curve.growth_percent", floor=100)
        return tuning

    def list_audit_log(self: DbProtocol, limit: int = 50) -> list[AuditLogEntry]:
        with self._session() as conn:
            rows = conn.execute(
                "SELECT * FROM admin_audit_log ORDER BY id DESC LIMIT ?",
                (max(1, limit),),
            ).fetchall()
        return [_row_to_audit(r) for r in rows]
