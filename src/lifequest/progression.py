from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, replace
from datetime import datetime

from lifequest.db import AxisScores, Database, Progress, Wallet
from lifequest.errors import InsufficientFundsError
from lifequest.rewards import AXES, CURRENCIES, apply_axis_delta, exp_to_next_level, process_level_up
from lifequest.schemas import AxisScoresPayload, LedgerReplay, ProgressPayload, WalletPayload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommittedState:
    axis_scores: AxisScores
    progress: Progress
    wallet: Wallet
    leveled_up: bool


def commit_deltas(
    db: Database,
    conn: sqlite3.Connection,
    user_id: int,
    ref_type: str,
    ref_id: int,
    now: datetime,
    currency_delta: dict[str, int] | None = None,
    exp_delta: int = 0,
    axis_delta: dict[str, int] | None = None,
    tuning: dict[str, int] | None = None,
) -> CommittedState:
    """Apply one event's deltas to the user's snapshots and append ledger rows.

    Must run on a connection handed out by ``Database.transaction()``; nothing
    here commits. A wallet that would go negative raises
    ``InsufficientFundsError`` before anything is written. Every currency named
    in ``currency_delta`` gets a wallet ledger row, zero deltas included.
    """
    currency_delta = {c: int(v) for c, v in (currency_delta or {}).items() if c in CURRENCIES}
    axis_delta = {a: int(v) for a, v in (axis_delta or {}).items() if a in AXES}

    wallet = db.get_wallet(user_id, conn=conn)
    progress = db.get_progress(user_id, conn=conn)
    scores = db.get_axis_scores(user_id, conn=conn)

    new_wallet = replace(
        wallet,
        gold=wallet.gold + currency_delta.get("gold", 0),
        diamond=wallet.diamond + currency_delta.get("diamond", 0),
    )
    for currency in CURRENCIES:
        if new_wallet.balance(currency) < 0:
            raise InsufficientFundsError(
                f"Not enough {currency}",
                details={
                    "currency": currency,
                    "balance": wallet.balance(currency),
                    "required": -currency_delta.get(currency, 0),
                },
            )

    # Settle even when exp_delta is 0: a retuned curve may put exp above the new threshold.
    level = process_level_up(progress.level, progress.exp, max(0, exp_delta), tuning=tuning)
    new_progress = replace(progress, level=level.level, exp=level.exp, exp_to_next=level.exp_to_next)
    leveled_up = level.leveled_up
    resettled = (new_progress.level, new_progress.exp) != (progress.level, progress.exp)

    new_scores = AxisScores(user_id=user_id, **apply_axis_delta(scores.as_dict(), axis_delta))

    db.upsert_wallet(new_wallet, now, conn=conn)
    db.upsert_progress(new_progress, now, conn=conn)
    db.upsert_axis_scores(new_scores, now, conn=conn)

    for currency in CURRENCIES:
        if currency in currency_delta:
            db.append_wallet_entry(
                user_id, ref_type, ref_id, currency, currency_delta[currency], new_wallet.balance(currency), now, conn=conn
            )
    if exp_delta or resettled:
        db.append_exp_entry(
            user_id, ref_type, ref_id, exp_delta, new_progress.exp, new_progress.level, now, conn=conn
        )
    new_axis = new_scores.as_dict()
    for axis in AXES:
        delta = axis_delta.get(axis, 0)
        if delta:
            db.append_axis_entry(user_id, ref_type, ref_id, axis, delta, new_axis[axis], now, conn=conn)

    return CommittedState(axis_scores=new_scores, progress=new_progress, wallet=new_wallet, leveled_up=leveled_up)


def replay_ledger(db: Database, user_id: int) -> LedgerReplay:
    """Rebuild snapshots from ledger rows alone and compare with the stored ones.

    Currency and axis rows are summed. Progress comes from the level and exp
    recorded on the newest experience row, since the curve may have been
    retuned since earlier rows were written. The experience deltas must also
    add up to what the reward events granted.
    """
    tuning = db.get_economy_tuning()
    entries = db.list_ledger_entries(user_id)

    balances = {c: 0 for c in CURRENCIES}
    axes = {a: 0 for a in AXES}
    level, exp, total_exp = 1, 0, 0
    for entry in entries:
        if entry.kind == "currency":
            balances[entry.resource] = balances.get(entry.resource, 0) + entry.delta
        elif entry.kind == "axis":
            axes[entry.resource] = axes.get(entry.resource, 0) + entry.delta
        elif entry.kind == "experience":
            total_exp += entry.delta
            level = entry.level_after or 1
            exp = entry.balance_after

    wallet = db.get_wallet(user_id)
    progress = db.get_progress(user_id)
    scores = db.get_axis_scores(user_id)
    granted_exp = db.sum_reward_exp(user_id)

    mismatches: list[str] = []
    for currency in CURRENCIES:
        if balances[currency] != wallet.balance(currency):
            mismatches.append(f"{currency}: ledger={balances[currency]} snapshot={wallet.balance(currency)}")
    stored_axes = scores.as_dict()
    for axis in AXES:
        if axes[axis] != stored_axes[axis]:
            mismatches.append(f"{axis}: ledger={axes[axis]} snapshot={stored_axes[axis]}")
    if (level, exp) != (progress.level, progress.exp):
        mismatches.append(f"progress: ledger=L{level}/{exp} snapshot=L{progress.level}/{progress.exp}")
    if total_exp != granted_exp:
        mismatches.append(f"exp: ledger={total_exp} rewards={granted_exp}")

    if mismatches:
        logger.warning("ledger mismatch for user %s: %s", user_id, "; ".join(mismatches))

    return LedgerReplay(
        user_id=user_id,
        axis_scores=AxisScoresPayload(**axes),
        progress=ProgressPayload(level=level, exp=exp, exp_to_next=exp_to_next_level(level, tuning=tuning)),
        wallet=WalletPayload(gold=balances["gold"], diamond=balances["diamond"]),
        total_exp=total_exp,
        entry_count=len(entries),
        matches_snapshots=not mismatches,
        mismatches=mismatches,
    )
