"""
reconciler.py - Ledger Reconciliation

Re-derives the balance trail of a lineage purely from its persisted
OutcomeRecords. Nothing here reads a ProgressionEngine: the records are the
only input, and the result must equal what a live engine held after the same
outcomes.

Replay rule, starting from the configuration's starting baseline:

    running = baseline + profit_loss

    protection mode:
        level 0 (win or loss)  -> settled = protection_value
        level >= 1, win        -> settled = running
        level >= 1, loss       -> settled = protection_value

    reinvest mode:
        win                    -> settled = running
        loss                   -> settled = max(0, running)

    baseline <- settled

Also provides the history utilities used when displaying a ledger:
summarize(), records_on() and revise_record().
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from .core import (
    Configuration, Outcome, OutcomeRecord, ReconciledRecord,
    PROTECTION_LEVEL, ZERO, HUNDRED,
    profit_loss_for, round2, to_decimal, validate_payout, validate_stake,
)


# ============================================================================
# REPLAY
# ============================================================================

def settle(baseline: Decimal, record: OutcomeRecord, config: Configuration) -> Tuple[Decimal, Decimal]:
    """
    Apply one record to a baseline.

    Args:
        baseline: Balance carried in from the previous record
        record: The record being replayed
        config: Lineage configuration (selects the mode and protection value)

    Returns:
        (running_balance, settled_balance)
    """
    running = round2(baseline + record.profit_loss)

    if config.use_protection:
        if record.level == PROTECTION_LEVEL or record.outcome is Outcome.LOSS:
            return running, config.protection_value
        return running, running

    if record.outcome is Outcome.WIN:
        return running, running
    return running, max(ZERO, running)


def replay_order(records: Iterable[OutcomeRecord]) -> List[OutcomeRecord]:
    """Sort records into replay order: created_at, then sequence, then id."""
    return sorted(records, key=lambda r: (r.created_at, r.sequence, r.id))


def reconcile(
    records: Iterable[OutcomeRecord],
    config: Configuration,
    lineage_id: Optional[str] = None,
) -> List[ReconciledRecord]:
    """
    Replay a lineage's records and attach running and settled balances.

    Records may arrive in any order; they are replayed in created_at order.
    The input is not modified and each call returns a fresh list, so
    concurrent calls on different ledgers share nothing.

    Args:
        records: All records of one lineage
        config: The lineage's configuration
        lineage_id: When given, every record must belong to this lineage

    Returns:
        ReconciledRecords in replay order

    Raises:
        ValueError: If the records belong to more than one lineage, or to
            a lineage other than lineage_id

    Example:
        trail = reconcile(store.list_ordered(engine.lineage_id), engine.config, engine.lineage_id)
        trail[-1].settled_balance == engine.baseline
    """
    ordered = replay_order(records)
    lineages = {r.lineage_id for r in ordered}
    if len(lineages) > 1:
        raise ValueError(f"Records span multiple lineages: {sorted(lineages)}")
    if lineage_id is not None and lineages - {lineage_id}:
        raise ValueError(f"Records belong to {sorted(lineages)}, expected {lineage_id}")

    baseline = config.starting_baseline
    trail: List[ReconciledRecord] = []
    for record in ordered:
        running, settled = settle(baseline, record, config)
        trail.append(ReconciledRecord(record=record, running_balance=running, settled_balance=settled))
        baseline = settled
    return trail


def final_baseline(trail: List[ReconciledRecord], config: Configuration) -> Decimal:
    """Baseline the next record would start from."""
    if not trail:
        return config.starting_baseline
    return trail[-1].settled_balance


# ============================================================================
# HISTORY UTILITIES
# ============================================================================

@dataclass(frozen=True, slots=True)
class OutcomeSummary:
    """
    Aggregate of a set of records (e.g. one day of trading).

    total_loss is a positive magnitude; net_result = total_profit - total_loss.
    win_rate is a percentage rounded to two places, 0 when there are no records.
    """
    wins: int
    losses: int
    total_profit: Decimal
    total_loss: Decimal
    net_result: Decimal
    win_rate: Decimal

    @property
    def total_trades(self) -> int:
        return self.wins + self.losses


def summarize(records: Iterable[OutcomeRecord]) -> OutcomeSummary:
    """Count wins and losses and total the results of a set of records."""
    wins = losses = 0
    total_profit = ZERO
    total_loss = ZERO
    for record in records:
        if record.outcome is Outcome.WIN:
            wins += 1
            total_profit += record.profit_loss
        else:
            losses += 1
            total_loss += -record.profit_loss
    total = wins + losses
    win_rate = round2(Decimal(wins) * HUNDRED / Decimal(total)) if total else ZERO
    return OutcomeSummary(
        wins=wins,
        losses=losses,
        total_profit=round2(total_profit),
        total_loss=round2(total_loss),
        net_result=round2(total_profit - total_loss),
        win_rate=win_rate,
    )


def records_on(records: Iterable[OutcomeRecord], day: date) -> List[OutcomeRecord]:
    """Records created on a calendar day, in replay order."""
    return replay_order(r for r in records if r.created_at.date() == day)


def revise_record(
    record: OutcomeRecord,
    outcome: Optional[Outcome] = None,
    entry_value: Optional[Decimal] = None,
    payout_percent: Optional[Decimal] = None,
) -> OutcomeRecord:
    """
    Build a wholesale replacement for an edited record.

    The replacement keeps id, created_at, lineage and sequence, so it takes
    the original's place in replay order. profit_loss is always recomputed
    from outcome, entry and payout; the original record is not touched.

    Raises:
        ConfigurationError: If the new entry or payout is invalid
    """
    new_outcome = record.outcome if outcome is None else Outcome.coerce(outcome)
    new_entry = record.entry_value if entry_value is None else validate_stake(entry_value, "entry_value")
    new_payout = record.payout_percent if payout_percent is None else validate_payout(payout_percent)
    return replace(
        record,
        outcome=new_outcome,
        entry_value=new_entry,
        payout_percent=to_decimal(new_payout),
        profit_loss=profit_loss_for(new_outcome, new_entry, new_payout),
    )
