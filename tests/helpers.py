"""
helpers.py - Shared test helpers

Plain functions imported by test modules (fixtures live in conftest.py).
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Tuple

from soros import (
    Configuration,
    InMemoryOutcomeStore,
    Outcome,
    OutcomeRecord,
    ProgressionEngine,
)


def D(value) -> Decimal:
    """Shorthand for Decimal(str(value))."""
    return Decimal(str(value))


def quiet_store(name: str = "test") -> InMemoryOutcomeStore:
    """In-memory store in test mode with output disabled."""
    return InMemoryOutcomeStore(name, datetime(2025, 1, 1), verbose=False, test_mode=True)


def make_engine(config: Configuration, store=None, owner_id: str = "alice", **kwargs) -> ProgressionEngine:
    """Engine with a quiet in-memory store unless one is given."""
    if store is None:
        store = quiet_store()
    return ProgressionEngine(config, store, owner_id=owner_id, verbose=False, **kwargs)


def run_sequence(
    engine: ProgressionEngine,
    outcomes: Iterable[Outcome],
) -> Tuple[List[OutcomeRecord], List[Tuple[Decimal, Decimal]]]:
    """
    Feed outcomes to an engine, resetting whenever the round has ended.

    Returns:
        (records, balances) where balances holds (running_balance, baseline)
        as the engine saw them right after each outcome.
    """
    records = []
    balances = []
    for outcome in outcomes:
        if engine.active_level is None:
            engine.reset()
        records.append(engine.record_outcome(outcome))
        balances.append((engine.running_balance, engine.baseline))
    return records, balances
