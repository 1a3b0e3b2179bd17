"""
engine.py - Live Progression Engine

The ProgressionEngine owns one lineage's live ladder and moves it forward as
outcomes arrive. It is the only module that holds mutable simulation state.

Key responsibilities:
    - Advances the active level on a win and cascades the rest of the ladder
    - Ends the round on a loss (or when the last level is won) until reset()
    - Persists every outcome through the OutcomeStore before touching state
    - Tracks the live balance with the same rules the reconciler replays
    - Supports live edits of the global payout and of single levels

Engines are plain instances, one per lineage: several simulations (e.g. one
per user session) run side by side without sharing anything.
"""

from __future__ import annotations
from dataclasses import replace
from decimal import Decimal
import threading
from typing import Any, List, Mapping, Optional, Tuple, Union

from .core import (
    Configuration, Level, LevelStatus, Outcome, OutcomeRecord, OutcomeStore,
    PendingOutcome, ReconciledRecord, RoundState,
    ZERO,
    ConfigurationError, EngineBusyError, LevelNotFoundError, NoActiveLevelError,
    lineage_id as make_lineage_id,
    round2, validate_payout, validate_stake,
)
from .ladder import build_ladder, cascade_from, reprice_level
from .reconciler import final_baseline, reconcile


class ProgressionEngine:
    """
    Live state machine for a progressive-stake ladder.

    State:
        levels: Ladder of PENDING / ACTIVE / COMPLETED levels (at most one ACTIVE)
        round_state: ACTIVE, LOST (after a loss) or EXHAUSTED (last level won)
        protection_profit: Profit of the last won protection level in this round
        baseline: Settled balance carried into the next outcome
        running_balance: Balance immediately after the last outcome

    Ordering guarantee:
        record_outcome() hands the outcome to the store first and only mutates
        the ladder after the store returns. If the store raises, the error
        propagates unchanged and the engine is exactly as it was, so the call
        can simply be retried.

    Thread Safety:
        record_outcome() is guarded: a second call entering while one is in
        flight raises EngineBusyError instead of racing on the same level.
        Other methods are not synchronised.

    Example:
        store = InMemoryOutcomeStore(verbose=False)
        engine = ProgressionEngine(
            Configuration(payout_percent=80, protection_value=10),
            store, owner_id="alice", verbose=False,
        )
        engine.record_outcome(Outcome.WIN)   # level 0 won
        engine.active_level                  # level 1, entry 18.00
    """

    def __init__(
        self,
        config: Union[Configuration, Mapping[str, Any]],
        store: OutcomeStore,
        owner_id: str = "default",
        verbose: bool = True,
        strict: bool = True,
    ):
        """
        Create an engine for one lineage.

        Args:
            config: Configuration, or a mapping accepted by Configuration.from_dict
            store: Persistence collaborator receiving every outcome
            owner_id: Owner of the lineage (e.g. user id)
            verbose: Print a trace line for each state change (default: True)
            strict: Raise NoActiveLevelError when no level is active (default: True);
                    when False such calls are a no-op returning None

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        self.config = self._coerce_config(config)
        self.store = store
        self.owner_id = owner_id
        self.lineage_id = make_lineage_id(owner_id, self.config)
        self.verbose = verbose
        self.strict = strict

        self._levels: List[Level] = build_ladder(self.config)
        self._round_state = RoundState.ACTIVE
        self._protection_profit: Decimal = ZERO
        self._baseline: Decimal = self.config.starting_baseline
        self._running_balance: Decimal = self._baseline
        self._history: List[OutcomeRecord] = []
        self._busy = threading.Lock()

    @staticmethod
    def _coerce_config(config: Union[Configuration, Mapping[str, Any]]) -> Configuration:
        if isinstance(config, Configuration):
            return config
        if isinstance(config, Mapping):
            return Configuration.from_dict(config)
        raise ConfigurationError(f"Expected Configuration, got {type(config).__name__}")

    # ========================================================================
    # READ-ONLY STATE
    # ========================================================================

    @property
    def levels(self) -> Tuple[Level, ...]:
        """Snapshot of the ladder."""
        return tuple(self._levels)

    @property
    def active_level(self) -> Optional[Level]:
        """The ACTIVE level, or None when the round has ended."""
        position = self._active_position()
        return None if position is None else self._levels[position]

    @property
    def round_state(self) -> RoundState:
        return self._round_state

    @property
    def protection_profit(self) -> Decimal:
        return self._protection_profit

    @property
    def baseline(self) -> Decimal:
        """Settled balance the next outcome starts from."""
        return self._baseline

    @property
    def running_balance(self) -> Decimal:
        """Balance immediately after the last recorded outcome."""
        return self._running_balance

    @property
    def history(self) -> Tuple[OutcomeRecord, ...]:
        """Records this engine has persisted for its current lineage."""
        return tuple(self._history)

    @property
    def is_busy(self) -> bool:
        return self._busy.locked()

    def get_level(self, index: int) -> Level:
        """
        Return the level with a given ladder index.

        Raises:
            LevelNotFoundError: If no level has this index
        """
        return self._levels[self._position_of(index)]

    # ========================================================================
    # OUTCOMES (Mutating)
    # ========================================================================

    def record_outcome(self, outcome: Union[Outcome, str]) -> Optional[OutcomeRecord]:
        """
        Record the outcome of the active level.

        Steps:
        1. Build a PendingOutcome from the active level
        2. Persist it through the store (errors propagate, nothing mutated)
        3. Mark the level COMPLETED and update the live balance
        4. On a win, activate the next level and cascade the rest of the
           ladder; on a loss, end the round

        Args:
            outcome: Outcome.WIN / Outcome.LOSS (or "win" / "loss")

        Returns:
            The stored OutcomeRecord, or None in non-strict mode when no
            level is active

        Raises:
            NoActiveLevelError: If no level is active and the engine is strict
            EngineBusyError: If another record_outcome() is still in flight
            Exception: Whatever the store raises, unchanged
        """
        outcome = Outcome.coerce(outcome)
        if not self._busy.acquire(blocking=False):
            raise EngineBusyError(f"Engine {self.lineage_id} is already recording an outcome")
        try:
            position = self._active_position()
            if position is None:
                if self.strict:
                    raise NoActiveLevelError(
                        f"No active level (round {self._round_state.value}); call reset() first"
                    )
                if self.verbose:
                    print(f"[{self.lineage_id}] ignored {outcome.value}: no active level")
                return None

            level = self._levels[position]
            pending = PendingOutcome(
                lineage_id=self.lineage_id,
                level=level.index,
                entry_value=level.entry_value,
                payout_percent=level.payout_percent,
                outcome=outcome,
            )
            stored = self.store.append(pending)

            self._apply(position, stored)
            return stored
        finally:
            self._busy.release()

    def _apply(self, position: int, record: OutcomeRecord) -> None:
        """Apply a persisted outcome to the ladder and the live balance."""
        level = self._levels[position]
        self._levels[position] = replace(level, status=LevelStatus.COMPLETED, outcome=record.outcome)
        self._history.append(record)
        self._update_balance(level, record)

        if record.outcome is Outcome.LOSS:
            self._round_state = RoundState.LOST
            if self.verbose:
                print(f"[{self.lineage_id}] L{level.index} LOSS {record.profit_loss}; round over, reset() to continue")
            return

        if level.is_protection:
            self._protection_profit = level.expected_profit
            next_entry = round2(self.config.initial_value + self._protection_profit)
        else:
            next_entry = level.expected_profit

        next_position = position + 1
        if next_position >= len(self._levels):
            self._round_state = RoundState.EXHAUSTED
            if self.verbose:
                print(f"[{self.lineage_id}] L{level.index} WIN +{record.profit_loss}; ladder exhausted")
            return

        activated = reprice_level(self._levels[next_position], entry_value=next_entry)
        self._levels[next_position] = replace(activated, status=LevelStatus.ACTIVE)
        self._levels = cascade_from(self._levels, next_position)
        self._round_state = RoundState.ACTIVE
        if self.verbose:
            print(f"[{self.lineage_id}] L{level.index} WIN +{record.profit_loss}; "
                  f"L{activated.index} active at {activated.entry_value}")

    def _update_balance(self, level: Level, record: OutcomeRecord) -> None:
        """
        Move the live balance by one outcome.

        With protection, the protection capital is what the lineage falls
        back to: after any level-0 stake and after any loss. Winnings on
        levels 1+ compound. Without protection, wins compound and losses
        settle at the remaining balance, floored at zero.
        """
        running = round2(self._baseline + record.profit_loss)
        self._running_balance = running

        if self.config.use_protection:
            compounding = not level.is_protection and record.outcome is Outcome.WIN
            self._baseline = running if compounding else self.config.protection_value
        elif record.outcome is Outcome.WIN:
            self._baseline = running
        else:
            self._baseline = running if running > 0 else ZERO

    # ========================================================================
    # EDITS (Mutating)
    # ========================================================================

    def set_payout(self, payout_percent: Any) -> None:
        """
        Change the global payout and re-price the open levels.

        Every PENDING and ACTIVE level takes the new payout (overwriting any
        per-level payout) and has its expected profit recomputed from its own
        entry value. COMPLETED levels keep what they were played with.

        Raises:
            ConfigurationError: If the payout is outside (0, 100]
        """
        payout = validate_payout(payout_percent)
        self.config = self.config.with_payout(payout)
        self._levels = [
            level if level.is_completed else reprice_level(level, payout_percent=payout)
            for level in self._levels
        ]
        if self.verbose:
            print(f"[{self.lineage_id}] payout set to {payout}%")

    def set_level_entry_value(self, index: int, entry_value: Any) -> Level:
        """
        Override one level's entry value.

        Only that level's expected profit is recomputed; later levels are not
        cascaded. The override stands until the next win, whose cascade
        re-prices every level after the newly active one.

        Returns:
            The edited level

        Raises:
            LevelNotFoundError: If no level has this index
            ConfigurationError: If the value is not positive or the level is completed
        """
        position = self._editable_position(index)
        entry = validate_stake(entry_value, "entry_value")
        self._levels[position] = reprice_level(self._levels[position], entry_value=entry)
        if self.verbose:
            print(f"[{self.lineage_id}] L{index} entry set to {entry}")
        return self._levels[position]

    def set_level_payout(self, index: int, payout_percent: Any) -> Level:
        """
        Override one level's payout and recompute its expected profit.

        Returns:
            The edited level

        Raises:
            LevelNotFoundError: If no level has this index
            ConfigurationError: If the payout is invalid or the level is completed
        """
        position = self._editable_position(index)
        payout = validate_payout(payout_percent)
        self._levels[position] = reprice_level(self._levels[position], payout_percent=payout)
        if self.verbose:
            print(f"[{self.lineage_id}] L{index} payout set to {payout}%")
        return self._levels[position]

    def reset(self) -> None:
        """
        Start a new round: rebuild the ladder from the configuration.

        Clears the protection profit. The live balance carries over, as the
        lineage's ledger does.
        """
        self._levels = build_ladder(self.config)
        self._protection_profit = ZERO
        self._round_state = RoundState.ACTIVE
        if self.verbose:
            print(f"[{self.lineage_id}] reset: L{self._levels[0].index} active at {self._levels[0].entry_value}")

    def reconfigure(self, config: Union[Configuration, Mapping[str, Any]]) -> None:
        """
        Install a new configuration and start over.

        Rebuilds the ladder, switches to the configuration's lineage and
        re-seeds the balance from its starting baseline.

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        self.config = self._coerce_config(config)
        self.lineage_id = make_lineage_id(self.owner_id, self.config)
        self._history = []
        self._baseline = self.config.starting_baseline
        self._running_balance = self._baseline
        self.reset()

    def restore_balance(self) -> List[ReconciledRecord]:
        """
        Load the balance of the current lineage from the store.

        Used when an engine is created for a lineage that already has
        history (e.g. a new session): the reconciled trail of the stored
        records becomes the live balance. Returns the trail.
        """
        records = self.store.list_ordered(self.lineage_id)
        trail = reconcile(records, self.config, self.lineage_id)
        self._baseline = final_baseline(trail, self.config)
        self._running_balance = trail[-1].running_balance if trail else self._baseline
        self._history = [r.record for r in trail]
        return trail

    # ========================================================================
    # DISPLAY
    # ========================================================================

    def describe(self) -> str:
        """Boxed text rendering of the ladder and balances."""
        w = 84
        bar = "─" * w

        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        mode = "protection" if self.config.use_protection else "reinvest"
        lines = [
            f"┌{bar}┐",
            f"│{pad(' Ladder: ' + self.lineage_id)}│",
            f"├{bar}┤",
            f"│{pad('   mode      : ' + mode)}│",
            f"│{pad('   payout    : ' + str(self.config.payout_percent) + '%')}│",
            f"│{pad('   round     : ' + self._round_state.value)}│",
            f"│{pad('   baseline  : ' + str(self._baseline))}│",
            f"├{bar}┤",
        ]
        for level in self._levels:
            status = level.status.value if level.outcome is None else f"{level.status.value} ({level.outcome.value})"
            marker = "▶" if level.is_active else " "
            row = (f" {marker} L{level.index:<2} entry {level.entry_value:>10}  "
                   f"payout {level.payout_percent:>6}%  profit {level.expected_profit:>10}  {status}")
            lines.append(f"│{pad(row)}│")
        lines.append(f"└{bar}┘")
        return "\n".join(lines)

    def print_ladder(self) -> None:
        print(self.describe())

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _active_position(self) -> Optional[int]:
        for position, level in enumerate(self._levels):
            if level.is_active:
                return position
        return None

    def _position_of(self, index: int) -> int:
        for position, level in enumerate(self._levels):
            if level.index == index:
                return position
        raise LevelNotFoundError(f"Level {index} not on the ladder")

    def _editable_position(self, index: int) -> int:
        position = self._position_of(index)
        if self._levels[position].is_completed:
            raise ConfigurationError(f"Level {index} is completed and cannot be edited")
        return position
