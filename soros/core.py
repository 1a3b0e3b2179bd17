"""
Core types and pure functions for the progressive-stake (Soros) simulator.

This module provides the foundational data structures and protocols:
1. Money helpers: Decimal coercion and the two-place rounding rule
2. Enums: Outcome, LevelStatus, RoundState
3. Exceptions: SorosError and domain-specific error types
4. Immutable data structures: Configuration, Level, PendingOutcome,
   OutcomeRecord, ReconciledRecord
5. Protocols: OutcomeStore for the persistence collaborator
6. Lineage identity: content hashing of a configuration

All functions in this module are pure. Nothing here holds simulation state.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP, getcontext, InvalidOperation
from enum import Enum
import hashlib
from typing import Any, Dict, List, Mapping, Optional, Protocol, runtime_checkable


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Money arithmetic must be reproducible between the live engine and the
# reconciler, so both run on the same Decimal context.
#
# PRECONDITION: No other code should modify the global Decimal context.
# If thread-local contexts are needed, use decimal.localcontext().
#
_SOROS_DECIMAL_CONTEXT = getcontext()
_SOROS_DECIMAL_CONTEXT.prec = 50


# ============================================================================
# CONSTANTS
# ============================================================================

# Defaults used by the trading journal when the user has not changed them.
DEFAULT_INITIAL_VALUE = Decimal("10")
DEFAULT_PROTECTION_VALUE = Decimal("10")
DEFAULT_PAYOUT_PERCENT = Decimal("85")

# Forward levels built after level 0 when protection is enabled.
DEFAULT_PROTECTION_LEVELS = 5

# Levels built when protection is disabled (level 1 onwards).
DEFAULT_REINVEST_LEVELS = 6

# Index reserved for the protection level.
PROTECTION_LEVEL = 0

MONEY_PLACES = 2
MONEY_QUANTUM = Decimal(10) ** -MONEY_PLACES
MONEY_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


# ============================================================================
# MONEY HELPERS
# ============================================================================

def to_decimal(value: Any) -> Decimal:
    """
    Coerce a number to Decimal without binary floating point artefacts.

    Floats go through str() so that 0.1 becomes Decimal("0.1"), not
    Decimal("0.1000000000000000055511151231257827...").

    Raises:
        ValueError: If the value cannot be parsed or is not finite.
    """
    if isinstance(value, bool):
        raise ValueError(f"Expected a number, got {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise ValueError(f"Expected a number, got {value!r}") from None
    if not result.is_finite():
        raise ValueError(f"Expected a finite number, got {value!r}")
    return result


def round2(value: Any) -> Decimal:
    """Round a money amount to two places (half up)."""
    return to_decimal(value).quantize(MONEY_QUANTUM, rounding=MONEY_ROUNDING)


def expected_profit(entry_value: Decimal, payout_percent: Decimal) -> Decimal:
    """
    Profit paid by a winning stake.

        expected_profit = round2(entry_value * payout_percent / 100)

    Idempotent: the same inputs always produce the same two-place result.
    """
    return round2(to_decimal(entry_value) * to_decimal(payout_percent) / HUNDRED)


def profit_loss_for(outcome: 'Outcome', entry_value: Decimal, payout_percent: Decimal) -> Decimal:
    """Signed result of a stake: +expected profit on a win, -entry on a loss."""
    if outcome is Outcome.WIN:
        return expected_profit(entry_value, payout_percent)
    return -round2(entry_value)


# ============================================================================
# ENUMS
# ============================================================================

class Outcome(Enum):
    """Result of a single stake."""
    WIN = "win"
    LOSS = "loss"

    @classmethod
    def coerce(cls, value: Any) -> 'Outcome':
        """Accept an Outcome or its string value ("win" / "loss")."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(f"Unknown outcome {value!r}, expected 'win' or 'loss'") from None


class LevelStatus(Enum):
    """Position of a level within the current round."""
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"


class RoundState(Enum):
    """
    State of the round held by a ProgressionEngine.

    ACTIVE: A level is active and accepts the next outcome.
    LOST: The last outcome was a loss; reset() is required to continue.
    EXHAUSTED: The last level was won; reset() is required to continue.
    """
    ACTIVE = "active"
    LOST = "lost"
    EXHAUSTED = "exhausted"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class SorosError(Exception):
    """Base exception for all simulator errors."""
    pass


class ConfigurationError(SorosError, ValueError):
    """Raised when a configuration or an edited value is invalid."""
    pass


class NoActiveLevelError(SorosError):
    """Raised when an outcome is recorded while no level is active."""
    pass


class LevelNotFoundError(SorosError, LookupError):
    """Raised when an edit names a level index that is not on the ladder."""
    pass


class EngineBusyError(SorosError):
    """Raised when an outcome is recorded while another one is still in flight."""
    pass


class PersistenceFailure(SorosError):
    """
    Raised by persistence collaborators when a record cannot be stored or read.

    The engine propagates collaborator errors unchanged; this type exists so
    stores have a common error to raise.
    """
    pass


# ============================================================================
# CONFIGURATION
# ============================================================================

def validate_payout(payout_percent: Any) -> Decimal:
    """Return the payout as Decimal, raising ConfigurationError outside (0, 100]."""
    try:
        payout = to_decimal(payout_percent)
    except ValueError as e:
        raise ConfigurationError(str(e)) from None
    if payout <= 0 or payout > HUNDRED:
        raise ConfigurationError(f"payout_percent must be in (0, 100], got {payout}")
    return payout


def validate_stake(value: Any, name: str) -> Decimal:
    """Return a positive stake rounded to cents, raising ConfigurationError otherwise."""
    try:
        stake = round2(value)
    except ValueError as e:
        raise ConfigurationError(f"{name}: {e}") from None
    if stake <= 0:
        raise ConfigurationError(f"{name} must be positive, got {stake}")
    return stake


@dataclass(frozen=True, slots=True)
class Configuration:
    """
    Parameters of one simulation lineage.

    Attributes:
        initial_value: Base stake without protection; added to the protection
            profit to seed level 1 after a protection win.
        payout_percent: Payout ratio applied to every level unless a level is
            edited individually.
        use_protection: Build a level 0 staked with protection_value and only
            risk its winnings afterwards.
        protection_value: Stake of level 0 when protection is enabled.
        max_levels: Forward levels to build; None selects the mode default.

    Numeric fields accept int, float, str or Decimal and are stored as Decimal.
    """
    initial_value: Decimal = DEFAULT_INITIAL_VALUE
    payout_percent: Decimal = DEFAULT_PAYOUT_PERCENT
    use_protection: bool = True
    protection_value: Decimal = DEFAULT_PROTECTION_VALUE
    max_levels: Optional[int] = None

    def __post_init__(self):
        if not isinstance(self.use_protection, bool):
            raise ConfigurationError(f"use_protection must be a bool, got {self.use_protection!r}")
        object.__setattr__(self, 'initial_value', validate_stake(self.initial_value, "initial_value"))
        object.__setattr__(self, 'payout_percent', validate_payout(self.payout_percent))
        if self.use_protection:
            object.__setattr__(
                self, 'protection_value',
                validate_stake(self.protection_value, "protection_value"),
            )
        else:
            try:
                object.__setattr__(self, 'protection_value', round2(self.protection_value))
            except ValueError as e:
                raise ConfigurationError(f"protection_value: {e}") from None
        if self.max_levels is not None:
            if isinstance(self.max_levels, bool) or not isinstance(self.max_levels, int):
                raise ConfigurationError(f"max_levels must be an int, got {self.max_levels!r}")
            if self.max_levels < 1:
                raise ConfigurationError(f"max_levels must be at least 1, got {self.max_levels}")

    @property
    def levels_to_build(self) -> int:
        """Forward levels the ladder will hold (level 0 not included)."""
        if self.max_levels is not None:
            return self.max_levels
        return DEFAULT_PROTECTION_LEVELS if self.use_protection else DEFAULT_REINVEST_LEVELS

    @property
    def starting_baseline(self) -> Decimal:
        """Balance a lineage starts from before any outcome is recorded."""
        return self.protection_value if self.use_protection else self.initial_value

    def with_payout(self, payout_percent: Any) -> Configuration:
        """Return a copy with a new global payout."""
        return replace(self, payout_percent=validate_payout(payout_percent))

    def fingerprint(self) -> str:
        """Deterministic content hash; equal configurations share a fingerprint."""
        return _content_hash(self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        """Plain mapping suitable for storing alongside user settings."""
        return {
            'initial_value': self.initial_value,
            'payout_percent': self.payout_percent,
            'use_protection': self.use_protection,
            'protection_value': self.protection_value,
            'max_levels': self.max_levels,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Configuration:
        """
        Build a Configuration from a plain mapping.

        Missing keys fall back to the defaults; unknown keys are rejected.

        Raises:
            ConfigurationError: On unknown keys or invalid values.
        """
        known = {'initial_value', 'payout_percent', 'use_protection', 'protection_value', 'max_levels'}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**dict(data))


# ============================================================================
# LEVEL
# ============================================================================

@dataclass(frozen=True, slots=True)
class Level:
    """
    One rung of the ladder.

    Levels are values: the engine replaces them (dataclasses.replace) rather
    than mutating them. expected_profit always equals
    expected_profit(entry_value, payout_percent).
    """
    index: int
    entry_value: Decimal
    payout_percent: Decimal
    expected_profit: Decimal
    status: LevelStatus = LevelStatus.PENDING
    outcome: Optional[Outcome] = None

    def __post_init__(self):
        if self.index < 0:
            raise ValueError(f"Level index must be >= 0, got {self.index}")
        if self.status is LevelStatus.COMPLETED and self.outcome is None:
            raise ValueError("Completed level must carry an outcome")
        if self.status is not LevelStatus.COMPLETED and self.outcome is not None:
            raise ValueError(f"Only completed levels carry an outcome, got {self.status.value}")

    @property
    def is_protection(self) -> bool:
        return self.index == PROTECTION_LEVEL

    @property
    def is_active(self) -> bool:
        return self.status is LevelStatus.ACTIVE

    @property
    def is_completed(self) -> bool:
        return self.status is LevelStatus.COMPLETED

    def __repr__(self) -> str:
        tag = self.status.value if self.outcome is None else f"{self.status.value}:{self.outcome.value}"
        return (
            f"Level({self.index}: {self.entry_value} @ {self.payout_percent}% "
            f"-> +{self.expected_profit} [{tag}])"
        )


# ============================================================================
# OUTCOME RECORDS
# ============================================================================

def _check_record_fields(level: int, entry_value: Decimal, payout_percent: Decimal,
                         outcome: Outcome, profit_loss: Decimal) -> None:
    if level < 0:
        raise ValueError(f"Record level must be >= 0, got {level}")
    # Chained stakes can round down to 0.00 at low payouts.
    if entry_value < 0:
        raise ValueError(f"Record entry_value must be >= 0, got {entry_value}")
    if payout_percent <= 0 or payout_percent > HUNDRED:
        raise ValueError(f"Record payout_percent must be in (0, 100], got {payout_percent}")
    expected = profit_loss_for(outcome, entry_value, payout_percent)
    if profit_loss != expected:
        raise ValueError(
            f"Record profit_loss {profit_loss} inconsistent with "
            f"{outcome.value} at {entry_value} @ {payout_percent}% (expected {expected})"
        )


@dataclass(frozen=True, slots=True)
class PendingOutcome:
    """
    An outcome before it is persisted - represents INTENT.

    Created by ProgressionEngine.record_outcome and handed to the store,
    which answers with an OutcomeRecord carrying id, created_at and sequence.
    profit_loss is computed from the other fields when not supplied.
    """
    lineage_id: str
    level: int
    entry_value: Decimal
    payout_percent: Decimal
    outcome: Outcome
    profit_loss: Optional[Decimal] = None

    def __post_init__(self):
        object.__setattr__(self, 'outcome', Outcome.coerce(self.outcome))
        object.__setattr__(self, 'entry_value', round2(self.entry_value))
        object.__setattr__(self, 'payout_percent', to_decimal(self.payout_percent))
        if self.profit_loss is None:
            object.__setattr__(
                self, 'profit_loss',
                profit_loss_for(self.outcome, self.entry_value, self.payout_percent),
            )
        else:
            object.__setattr__(self, 'profit_loss', round2(self.profit_loss))
        _check_record_fields(self.level, self.entry_value, self.payout_percent,
                             self.outcome, self.profit_loss)


@dataclass(frozen=True, slots=True)
class OutcomeRecord:
    """
    A persisted, immutable outcome - represents FACT.

    Attributes:
        id: Store-assigned identifier
        created_at: Store time of the append; defines replay order
        lineage_id: Lineage the record belongs to
        level: Ladder index the stake was placed at
        entry_value: Stake
        payout_percent: Payout the stake was played with
        outcome: WIN or LOSS
        profit_loss: +expected profit on a win, -entry_value on a loss
        sequence: Monotonic position within the store (tie-break for equal times)

    Edits never mutate a record: see reconciler.revise_record.
    """
    id: str
    created_at: datetime
    lineage_id: str
    level: int
    entry_value: Decimal
    payout_percent: Decimal
    outcome: Outcome
    profit_loss: Decimal
    sequence: int = 0

    def __post_init__(self):
        if not self.id or not str(self.id).strip():
            raise ValueError("OutcomeRecord id cannot be empty")
        object.__setattr__(self, 'outcome', Outcome.coerce(self.outcome))
        object.__setattr__(self, 'entry_value', round2(self.entry_value))
        object.__setattr__(self, 'payout_percent', to_decimal(self.payout_percent))
        object.__setattr__(self, 'profit_loss', round2(self.profit_loss))
        _check_record_fields(self.level, self.entry_value, self.payout_percent,
                             self.outcome, self.profit_loss)

    @classmethod
    def from_pending(cls, pending: PendingOutcome, id: str, created_at: datetime,
                     sequence: int = 0) -> OutcomeRecord:
        """Turn an intent into a stored fact."""
        return cls(
            id=id,
            created_at=created_at,
            lineage_id=pending.lineage_id,
            level=pending.level,
            entry_value=pending.entry_value,
            payout_percent=pending.payout_percent,
            outcome=pending.outcome,
            profit_loss=pending.profit_loss,
            sequence=sequence,
        )

    @property
    def is_win(self) -> bool:
        return self.outcome is Outcome.WIN

    def __repr__(self) -> str:
        sign = "+" if self.profit_loss >= 0 else ""
        return (
            f"OutcomeRecord({self.id}: L{self.level} {self.outcome.value} "
            f"{self.entry_value} @ {self.payout_percent}% = {sign}{self.profit_loss})"
        )


@dataclass(frozen=True, slots=True)
class ReconciledRecord:
    """
    An OutcomeRecord with the balances derived by replay. Never persisted.

    running_balance: balance immediately after the record
    settled_balance: baseline carried into the next record
    """
    record: OutcomeRecord
    running_balance: Decimal
    settled_balance: Decimal

    @property
    def id(self) -> str:
        return self.record.id

    @property
    def created_at(self) -> datetime:
        return self.record.created_at

    @property
    def level(self) -> int:
        return self.record.level

    @property
    def entry_value(self) -> Decimal:
        return self.record.entry_value

    @property
    def payout_percent(self) -> Decimal:
        return self.record.payout_percent

    @property
    def outcome(self) -> Outcome:
        return self.record.outcome

    @property
    def profit_loss(self) -> Decimal:
        return self.record.profit_loss


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class OutcomeStore(Protocol):
    """
    Append-only persistence collaborator, keyed by lineage.

    Implementations may raise any error (PersistenceFailure is provided as a
    common type); the engine surfaces it unchanged.
    """

    def append(self, pending: PendingOutcome) -> OutcomeRecord:
        """Persist an outcome and return the stored record with id and created_at."""
        ...

    def list_ordered(self, lineage_id: str) -> List[OutcomeRecord]:
        """Return the lineage's records sorted by created_at ascending."""
        ...


# ============================================================================
# LINEAGE IDENTITY
# ============================================================================

def _normalize_decimal(d: Decimal) -> str:
    """
    Normalize a Decimal to a canonical string representation.

    Decimal("10"), Decimal("10.0") and Decimal("10.00") all become "10".
    """
    normalized = d.normalize()
    if normalized == normalized.to_integral_value():
        return str(int(normalized))
    return format(normalized, 'f')


def _canonicalize(value: Any) -> str:
    """Produce a canonical string representation of a value for hashing."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Decimal):
        return f"D:{_normalize_decimal(value)}"
    if isinstance(value, int):
        return f"N:{value}"
    if isinstance(value, str):
        return f"S:{value}"
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        serialized = ",".join(f"{_canonicalize(k)}:{_canonicalize(v)}" for k, v in items)
        return f"{{{serialized}}}"
    return f"R:{repr(value)}"


def _content_hash(value: Any) -> str:
    return hashlib.sha256(_canonicalize(value).encode()).hexdigest()[:16]


def lineage_id(owner_id: str, config: Configuration) -> str:
    """
    Identity under which an owner's records for one configuration are grouped.

    Only the fields that seed the replayed balance take part: editing the
    payout or the ladder length keeps the lineage, switching protection or
    changing a base stake starts a new one.

    Format: {owner_id}:{hash}
    """
    if not owner_id or not owner_id.strip():
        raise ValueError("owner_id cannot be empty")
    key = {
        'use_protection': config.use_protection,
        'initial_value': config.initial_value,
        'protection_value': config.protection_value if config.use_protection else None,
    }
    return f"{owner_id}:{_content_hash(key)}"
