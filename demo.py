#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the Soros Simulator Step by Step

This is a pedagogical walk through the progressive-stake simulator. Each step
builds on the previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:   Ladders     - Configuration, protection and reinvest ladders
  4-6:   The Engine  - Wins, losses, resets and the live balance
  7-8:   Edits       - Payout changes and single-level overrides
  9-10:  The Ledger  - Reconciliation and restoring a session

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
import sys

from soros import (
    Configuration, InMemoryOutcomeStore, Outcome, ProgressionEngine,
    NoActiveLevelError,
    build_ladder, reconcile, summarize,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)
    owner_id: str = "alice"

    initial_value: Decimal = Decimal("10.00")
    protection_value: Decimal = Decimal("10.00")
    payout_percent: Decimal = Decimal("80")
    edited_payout: Decimal = Decimal("90")


CONFIG = DemoConfig()

# Global state for interactive mode
QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    """Print a section header within a step."""
    print(f"\n--- {text} ---\n")


def print_levels(levels):
    print(f"{'Level':<7} {'Entry':>10} {'Payout':>8} {'Profit':>10}  Status")
    print("-" * 50)
    for level in levels:
        status = level.status.value if level.outcome is None else f"{level.status.value} ({level.outcome.value})"
        print(f"L{level.index:<6} {level.entry_value:>10} {level.payout_percent:>7}% "
              f"{level.expected_profit:>10}  {status}")


# ============================================================================
# PHASE 1: LADDERS (Steps 1-3)
# ============================================================================

def step_01_configuration() -> Configuration:
    """Create a configuration."""
    step_header(1, "The Configuration",
        "A configuration fixes the stakes, the payout and the ladder strategy.")

    print(">>> config = Configuration(initial_value=10, payout_percent=80, protection_value=10)")
    config = Configuration(
        initial_value=CONFIG.initial_value,
        payout_percent=CONFIG.payout_percent,
        use_protection=True,
        protection_value=CONFIG.protection_value,
    )

    section_header("Fields")
    for key, value in config.to_dict().items():
        print(f"{key:<18} {value}")

    section_header("Key Insight")
    print("""
    All money is Decimal, rounded half-up to cents. A payout of 80% means a
    winning stake of 10.00 earns 8.00; a losing stake costs the full 10.00.
    Invalid values (payout outside (0, 100], non-positive stakes) raise
    ConfigurationError immediately.
    """)
    return config


def step_02_protection_ladder(config: Configuration):
    """Build a ladder with a protection level."""
    step_header(2, "The Protection Ladder",
        "Level 0 risks the protection value; later levels risk only winnings.")

    print(">>> build_ladder(config)")
    print_levels(build_ladder(config))

    section_header("Key Insight")
    print("""
    Each forward level stakes the previous level's expected profit. The
    protection capital is never placed at risk beyond level 0.
    """)


def step_03_reinvest_ladder(config: Configuration):
    """Build a ladder without protection."""
    step_header(3, "The Reinvest Ladder",
        "Without protection each level stakes the previous entry plus its profit.")

    reinvest = Configuration.from_dict({**config.to_dict(), 'use_protection': False})
    print(">>> build_ladder(Configuration(..., use_protection=False))")
    print_levels(build_ladder(reinvest))


# ============================================================================
# PHASE 2: THE ENGINE (Steps 4-6)
# ============================================================================

def step_04_engine(config: Configuration):
    """Create a store and an engine."""
    step_header(4, "The Progression Engine",
        "The engine owns the live ladder; the store owns the history.")

    print(">>> store = InMemoryOutcomeStore('tutorial', initial_time=...)")
    store = InMemoryOutcomeStore("tutorial", initial_time=CONFIG.start_time, verbose=True)
    print(">>> engine = ProgressionEngine(config, store, owner_id='alice')")
    engine = ProgressionEngine(config, store, owner_id=CONFIG.owner_id, verbose=True)

    section_header("Initial State")
    print(f"Lineage:       {engine.lineage_id}")
    print(f"Active level:  L{engine.active_level.index} at {engine.active_level.entry_value}")
    print(f"Baseline:      {engine.baseline}")
    return store, engine


def step_05_wins(store: InMemoryOutcomeStore, engine: ProgressionEngine):
    """Record a run of wins."""
    step_header(5, "Winning Streak",
        "A win completes the active level and activates the next one.")

    for _ in range(3):
        print(">>> engine.record_outcome(Outcome.WIN)")
        engine.record_outcome(Outcome.WIN)
        store.advance_time(store.current_time + timedelta(minutes=5))

    section_header("Ladder After Three Wins")
    engine.print_ladder()

    section_header("Key Insight")
    print("""
    The level-0 win seeds level 1 with the initial value plus the protection
    profit. Every record reached the store BEFORE the ladder moved: if the
    store had raised, the engine would be exactly as it was.
    """)


def step_06_loss_and_reset(store: InMemoryOutcomeStore, engine: ProgressionEngine):
    """Record a loss and start a new round."""
    step_header(6, "Loss and Reset",
        "A loss ends the round. Nothing more can be recorded until reset().")

    print(">>> engine.record_outcome(Outcome.LOSS)")
    engine.record_outcome(Outcome.LOSS)
    print(f"Round state: {engine.round_state.value}")

    print("\n>>> engine.record_outcome(Outcome.WIN)")
    try:
        engine.record_outcome(Outcome.WIN)
    except NoActiveLevelError as e:
        print(f"NoActiveLevelError: {e}")

    print("\n>>> engine.reset()")
    engine.reset()
    store.advance_time(store.current_time + timedelta(minutes=5))

    section_header("Balances")
    print(f"Running balance: {engine.running_balance}")
    print(f"Baseline:        {engine.baseline}")


# ============================================================================
# PHASE 3: EDITS (Steps 7-8)
# ============================================================================

def step_07_payout_edit(engine: ProgressionEngine):
    """Change the global payout."""
    step_header(7, "Changing the Payout",
        "Open levels are re-priced; completed levels and stored records are not.")

    engine.record_outcome(Outcome.WIN)
    print(f">>> engine.set_payout({CONFIG.edited_payout})")
    engine.set_payout(CONFIG.edited_payout)
    print_levels(engine.levels)


def step_08_level_edit(engine: ProgressionEngine):
    """Override a single level."""
    step_header(8, "Overriding One Level",
        "A manual entry value changes one level only; the next win re-cascades.")

    index = engine.active_level.index + 2
    print(f">>> engine.set_level_entry_value({index}, 50)")
    engine.set_level_entry_value(index, Decimal("50"))
    print_levels(engine.levels)

    print("\n>>> engine.record_outcome(Outcome.WIN)")
    engine.record_outcome(Outcome.WIN)
    print_levels(engine.levels)


# ============================================================================
# PHASE 4: THE LEDGER (Steps 9-10)
# ============================================================================

def step_09_reconcile(store: InMemoryOutcomeStore, engine: ProgressionEngine):
    """Replay the stored records."""
    step_header(9, "Reconciliation",
        "Replaying the stored records reproduces the live balance exactly.")

    records = store.list_ordered(engine.lineage_id)
    print(">>> trail = reconcile(store.list_ordered(engine.lineage_id), config)")
    trail = reconcile(list(reversed(records)), engine.config)

    print(f"{'Level':<7} {'Outcome':<8} {'P/L':>10} {'Running':>10} {'Settled':>10}")
    print("-" * 50)
    for r in trail:
        print(f"L{r.level:<6} {r.outcome.value:<8} {r.profit_loss:>10} "
              f"{r.running_balance:>10} {r.settled_balance:>10}")

    section_header("Result")
    if trail[-1].settled_balance == engine.baseline:
        print("REPLAY VERIFIED: settled balance matches the live engine.")
    else:
        print("WARNING: Mismatch detected!")

    summary = summarize(records)
    section_header("Summary")
    print(f"Trades: {summary.total_trades}  Wins: {summary.wins}  Losses: {summary.losses}")
    print(f"Net result: {summary.net_result}  Win rate: {summary.win_rate}%")


def step_10_restore(store: InMemoryOutcomeStore, engine: ProgressionEngine):
    """Start a new session from the store."""
    step_header(10, "Restoring a Session",
        "A new engine for the same owner and configuration picks up the ledger.")

    print(">>> session = ProgressionEngine(config, store, owner_id='alice')")
    session = ProgressionEngine(engine.config, store, owner_id=CONFIG.owner_id, verbose=False)
    print(">>> session.restore_balance()")
    session.restore_balance()
    print(f"Baseline: {session.baseline} (live engine: {engine.baseline})")


def main():
    """Run the complete tutorial."""
    print("=" * 70)
    print("       SOROS SIMULATOR - INTERACTIVE TUTORIAL")
    print("=" * 70)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")

    wait_for_enter()

    config = step_01_configuration()
    wait_for_enter()
    step_02_protection_ladder(config)
    wait_for_enter()
    step_03_reinvest_ladder(config)
    wait_for_enter()

    store, engine = step_04_engine(config)
    wait_for_enter()
    step_05_wins(store, engine)
    wait_for_enter()
    step_06_loss_and_reset(store, engine)
    wait_for_enter()

    step_07_payout_edit(engine)
    wait_for_enter()
    step_08_level_edit(engine)
    wait_for_enter()

    step_09_reconcile(store, engine)
    wait_for_enter()
    step_10_restore(store, engine)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    Next steps:
      - See soros/engine.py for the state machine
      - See soros/reconciler.py for the replay rules
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
