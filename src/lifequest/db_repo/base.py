from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)


class BaseDatabase:
    def __init__(self, path: Path, busy_timeout_seconds: float = 30.0) -> None:
        self.path = path
        self.busy_timeout_seconds = busy_timeout_seconds
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path, timeout=self.busy_timeout_seconds)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Unit of work: everything executed on the yielded connection commits
        together or not at all.

        BEGIN IMMEDIATE takes the write lock before the first read, so two
        callers touching the same user serialize instead of both reading the
        same snapshot.
        """
        conn = self._connect()
        conn.isolation_level = None
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    @contextmanager
    def _session(self, conn: sqlite3.Connection | None = None) -> Iterator[sqlite3.Connection]:
        if conn is not None:
            yield conn
            return
        own = self._connect()
        try:
            with own:
                yield own
        finally:
            own.close()

    def _init_db(self) -> None:
        with self._session() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
                """
            )
            current = {row["version"] for row in conn.execute("SELECT version FROM schema_migrations")}

            migrations: dict[int, str] = {
                1: """
                    CREATE TABLE axis_scores (
                        user_id INTEGER PRIMARY KEY,
                        body INTEGER NOT NULL DEFAULT 0,
                        focus INTEGER NOT NULL DEFAULT 0,
                        knowledge INTEGER NOT NULL DEFAULT 0,
                        discipline INTEGER NOT NULL DEFAULT 0,
                        organization INTEGER NOT NULL DEFAULT 0,
                        social INTEGER NOT NULL DEFAULT 0,
                        updated_at TEXT NOT NULL
                    );

                    CREATE TABLE progress (
                        user_id INTEGER PRIMARY KEY,
                        level INTEGER NOT NULL DEFAULT 1 CHECK(level >= 1),
                        exp INTEGER NOT NULL DEFAULT 0 CHECK(exp >= 0),
                        exp_to_next INTEGER NOT NULL DEFAULT 100 CHECK(exp_to_next > 0),
                        updated_at TEXT NOT NULL
                    );

                    CREATE TABLE wallets (
                        user_id INTEGER PRIMARY KEY,
                        gold INTEGER NOT NULL DEFAULT 0 CHECK(gold >= 0),
                        diamond INTEGER NOT NULL DEFAULT 0 CHECK(diamond >= 0),
                        updated_at TEXT NOT NULL
                    );

                    CREATE TABLE wallet_ledger (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id INTEGER NOT NULL,
                        ref_type TEXT NOT NULL,
                        ref_id INTEGER NOT NULL,
                        currency TEXT NOT NULL CHECK(currency IN ('gold', 'diamond')),
                        delta INTEGER NOT NULL,
                        balance_after INTEGER NOT NULL CHECK(balance_after >= 0),
                        created_at TEXT NOT NULL
                    );
                    CREATE INDEX idx_wallet_ledger_user ON wallet_ledger(user_id, currency, id);

                    CREATE TABLE exp_ledger (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id INTEGER NOT NULL,
                        ref_type TEXT NOT NULL,
                        ref_id INTEGER NOT NULL,
                        delta INTEGER NOT NULL,
                        exp_after INTEGER NOT NULL,
                        level_after INTEGER NOT NULL,
                        created_at TEXT NOT NULL
                    );
                    CREATE INDEX idx_exp_ledger_user ON exp_ledger(user_id, id);

                    CREATE TABLE axis_ledger (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id INTEGER NOT NULL,
                        ref_type TEXT NOT NULL,
                        ref_id INTEGER NOT NULL,
                        axis TEXT NOT NULL,
                        delta INTEGER NOT NULL,
                        value_after INTEGER NOT NULL,
                        created_at TEXT NOT NULL
                    );
                    CREATE INDEX idx_axis_ledger_user ON axis_ledger(user_id, axis, id);
                """,
                2: """
                    CREATE TABLE series (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id INTEGER NOT NULL,
                        title TEXT NOT NULL,
                        axis TEXT NOT NULL,
                        tier_default INTEGER NOT NULL DEFAULT 1 CHECK(tier_default BETWEEN 1 AND 5),
                        estimated_minutes_default INTEGER NOT NULL DEFAULT 15,
                        active INTEGER NOT NULL DEFAULT 1,
                        rule_type TEXT NOT NULL,
                        rule_json TEXT NOT NULL DEFAULT '{}',
                        start_date TEXT NOT NULL,
                        created_at TEXT NOT NULL
                    );
                    CREATE INDEX idx_series_user_active ON series(user_id, active);

                    CREATE TABLE plans (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id INTEGER NOT NULL,
                        plan_date TEXT NOT NULL,
                        generated_from TEXT NOT NULL DEFAULT 'auto',
                        materialized_at TEXT,
                        created_at TEXT NOT NULL,
                        UNIQUE(user_id, plan_date)
                    );

                    CREATE TABLE plan_items (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        plan_id INTEGER NOT NULL REFERENCES plans(id) ON DELETE CASCADE,
                        user_id INTEGER NOT NULL,
                        series_id INTEGER,
                        source TEXT NOT NULL CHECK(source IN ('template', 'manual')),
                        axis TEXT NOT NULL,
                        title TEXT NOT NULL,
                        description TEXT,
                        tier INTEGER NOT NULL DEFAULT 1 CHECK(tier BETWEEN 1 AND 5),
                        scheduled_at TEXT,
                        estimated_minutes INTEGER NOT NULL DEFAULT 15,
                        status TEXT NOT NULL DEFAULT 'todo' CHECK(status IN ('todo', 'done', 'skipped')),
                        locked_by_user INTEGER NOT NULL DEFAULT 0,
                        sort_order INTEGER NOT NULL DEFAULT 0,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL,
                        UNIQUE(plan_id, series_id)
                    );
                    CREATE INDEX idx_plan_items_plan ON plan_items(plan_id, sort_order);

                    CREATE TABLE plan_item_overrides (
                        plan_item_id INTEGER PRIMARY KEY REFERENCES plan_items(id) ON DELETE CASCADE,
                        apply_scope TEXT NOT NULL,
                        override_json TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    );
                """,
                3: """
                    CREATE TABLE completion_events (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id INTEGER NOT NULL,
                        plan_item_id INTEGER NOT NULL UNIQUE,
                        plan_date TEXT NOT NULL,
                        completed_at TEXT NOT NULL,
                        duration_minutes INTEGER NOT NULL DEFAULT 0,
                        quality TEXT NOT NULL CHECK(quality IN ('low', 'mid', 'high')),
                        client_source TEXT NOT NULL DEFAULT 'app'
                    );
                    CREATE INDEX idx_completion_user_date ON completion_events(user_id, plan_date);

                    CREATE TABLE reward_events (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id INTEGER NOT NULL,
                        completion_event_id INTEGER NOT NULL UNIQUE REFERENCES completion_events(id),
                        gold_delta INTEGER NOT NULL,
                        diamond_delta INTEGER NOT NULL,
                        exp_delta INTEGER NOT NULL,
                        axis_delta_json TEXT NOT NULL,
                        levelup INTEGER NOT NULL DEFAULT 0
                    );
                """,
                4: """
                    CREATE TABLE shop_items (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        code TEXT NOT NULL UNIQUE,
                        axis TEXT,
                        slot TEXT NOT NULL,
                        rarity TEXT NOT NULL,
                        name TEXT NOT NULL,
                        description TEXT NOT NULL DEFAULT '',
                        price_currency TEXT NOT NULL CHECK(price_currency IN ('gold', 'diamond')),
                        price_amount INTEGER NOT NULL CHECK(price_amount >= 0),
                        active INTEGER NOT NULL DEFAULT 1
                    );

                    CREATE TABLE inventory (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id INTEGER NOT NULL,
                        shop_item_id INTEGER NOT NULL REFERENCES shop_items(id),
                        acquired_at TEXT NOT NULL,
                        UNIQUE(user_id, shop_item_id)
                    );

                    CREATE TABLE equipped_items (
                        user_id INTEGER NOT NULL,
                        slot TEXT NOT NULL,
                        shop_item_id INTEGER NOT NULL REFERENCES shop_items(id),
                        equipped_at TEXT NOT NULL,
                        PRIMARY KEY(user_id, slot)
                    );

                    CREATE TABLE purchase_events (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id INTEGER NOT NULL,
                        shop_item_id INTEGER NOT NULL REFERENCES shop_items(id),
                        currency TEXT NOT NULL,
                        amount INTEGER NOT NULL,
                        status TEXT NOT NULL DEFAULT 'success',
                        created_at TEXT NOT NULL
                    );
                """,
                5: """
                    CREATE TABLE idempotency_keys (
                        user_id INTEGER NOT NULL,
                        key TEXT NOT NULL,
                        operation TEXT NOT NULL CHECK(operation IN ('complete', 'purchase')),
                        target_id INTEGER NOT NULL,
                        completion_event_id INTEGER REFERENCES completion_events(id),
                        purchase_event_id INTEGER REFERENCES purchase_events(id),
                        response_json TEXT NOT NULL,
                        created_at TEXT NOT NULL,
                        PRIMARY KEY(user_id, key)
                    );
                """,
                6: """
                    CREATE TABLE IF NOT EXISTS app_config (
                        key TEXT PRIMARY KEY,
                        value_json TEXT NOT NULL,
                        updated_at TEXT NOT NULL,
                        updated_by TEXT
                    );

                    CREATE TABLE IF NOT EXISTS admin_audit_log (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        actor TEXT,
                        action TEXT NOT NULL,
                        target TEXT NOT NULL,
                        payload_json TEXT,
                        created_at TEXT NOT NULL
                    );
                """,
            }

            now = datetime.now().isoformat(timespec="seconds")
            for version in sorted(migrations):
                if version in current:
                    continue
                conn.executescript(migrations[version])
                conn.execute(
                    "INSERT INTO schema_migrations(version, applied_at) VALUES (?, ?)",
                    (version, now),
                )
                logger.info("applied schema migration %s to %s", version, self.path)
