"""
soros - Progressive-Stake (Soros) Simulation Engine

Live ladder simulation and ledger reconciliation for a trading journal.

Usage:
    from soros import (
        Configuration, ProgressionEngine, InMemoryOutcomeStore, Outcome, reconcile,
    )

    store = InMemoryOutcomeStore("journal", verbose=False)
    config = Configuration(initial_value=10, payout_percent=80,
                           use_protection=True, protection_value=10)
    engine = ProgressionEngine(config, store, owner_id="alice")

    engine.record_outcome(Outcome.WIN)     # level 0 won, level 1 active at 18.00
    engine.record_outcome(Outcome.LOSS)    # round over
    engine.reset()                         # new round

    # Displayed history is always re-derived from the stored records
    trail = reconcile(store.list_ordered(engine.lineage_id), config)
    assert trail[-1].settled_balance == engine.baseline
"""

# Core types
from .core import (
    Configuration,
    Level,
    LevelStatus,
    Outcome,
    RoundState,
    PendingOutcome,
    OutcomeRecord,
    ReconciledRecord,
    OutcomeStore,
    SorosError,
    ConfigurationError,
    NoActiveLevelError,
    LevelNotFoundError,
    EngineBusyError,
    PersistenceFailure,
    expected_profit,
    profit_loss_for,
    round2,
    to_decimal,
    lineage_id,
    DEFAULT_INITIAL_VALUE,
    DEFAULT_PROTECTION_VALUE,
    DEFAULT_PAYOUT_PERCENT,
    DEFAULT_PROTECTION_LEVELS,
    DEFAULT_REINVEST_LEVELS,
    PROTECTION_LEVEL,
)

# Ladder
from .ladder import (
    build_ladder,
    chain_entry_value,
    cascade_from,
    make_level,
    reprice_level,
)

# Engine
from .engine import ProgressionEngine

# Reconciliation
from .reconciler import (
    OutcomeSummary,
    reconcile,
    settle,
    replay_order,
    final_baseline,
    summarize,
    records_on,
    revise_record,
)

# Persistence
from .store import InMemoryOutcomeStore

__all__ = [
    # Core
    'Configuration', 'Level', 'LevelStatus', 'Outcome', 'RoundState',
    'PendingOutcome', 'OutcomeRecord', 'ReconciledRecord', 'OutcomeStore',
    'SorosError', 'ConfigurationError', 'NoActiveLevelError', 'LevelNotFoundError',
    'EngineBusyError', 'PersistenceFailure',
    'expected_profit', 'profit_loss_for', 'round2', 'to_decimal', 'lineage_id',
    'DEFAULT_INITIAL_VALUE', 'DEFAULT_PROTECTION_VALUE', 'DEFAULT_PAYOUT_PERCENT',
    'DEFAULT_PROTECTION_LEVELS', 'DEFAULT_REINVEST_LEVELS', 'PROTECTION_LEVEL',
    # Ladder
    'build_ladder', 'chain_entry_value', 'cascade_from', 'make_level', 'reprice_level',
    # Engine
    'ProgressionEngine',
    # Reconciliation
    'OutcomeSummary', 'reconcile', 'settle', 'replay_order', 'final_baseline',
    'summarize', 'records_on', 'revise_record',
    # Persistence
    'InMemoryOutcomeStore',
]

__version__ = '1.0.0'
