"""
ladder.py - Level Ladder Construction

Pure functions that build and re-price the ordered sequence of stake levels.

Two chaining rules exist:

    protection (only winnings ride):  entry[k] = profit[k-1]
    reinvest (stake and profit ride): entry[k] = entry[k-1] + profit[k-1]

build_ladder() uses the rule of the configured mode. cascade_from() always
uses the reinvest rule and is what ProgressionEngine calls after a win, so
both the initial ladder and every rebuilt tail go through chain_entry_value().

Every level satisfies:

    expected_profit == expected_profit(entry_value, payout_percent)

computed with the level's own payout.
"""

from __future__ import annotations
from dataclasses import replace
from decimal import Decimal
from typing import List, Optional, Sequence

from .core import (
    Configuration, Level, LevelStatus,
    PROTECTION_LEVEL,
    expected_profit, round2, to_decimal,
)


def make_level(
    index: int,
    entry_value: Decimal,
    payout_percent: Decimal,
    status: LevelStatus = LevelStatus.PENDING,
) -> Level:
    """Create a level with its expected profit derived from entry and payout."""
    entry = round2(entry_value)
    payout = to_decimal(payout_percent)
    return Level(
        index=index,
        entry_value=entry,
        payout_percent=payout,
        expected_profit=expected_profit(entry, payout),
        status=status,
    )


def chain_entry_value(previous: Level, reinvest: bool = True) -> Decimal:
    """
    Entry value of the level that follows `previous`.

    Args:
        previous: The level before the one being priced
        reinvest: True for the reinvest rule (entry + profit), False for the
                  protection rule (profit only)

    Returns:
        Entry value rounded to cents
    """
    if reinvest:
        return round2(previous.entry_value + previous.expected_profit)
    return previous.expected_profit


def reprice_level(
    level: Level,
    entry_value: Optional[Decimal] = None,
    payout_percent: Optional[Decimal] = None,
) -> Level:
    """
    Return a copy of `level` with a new entry and/or payout and its profit recomputed.

    Status and outcome are preserved.
    """
    entry = level.entry_value if entry_value is None else round2(entry_value)
    payout = level.payout_percent if payout_percent is None else to_decimal(payout_percent)
    return replace(
        level,
        entry_value=entry,
        payout_percent=payout,
        expected_profit=expected_profit(entry, payout),
    )


def build_ladder(config: Configuration) -> List[Level]:
    """
    Build the ordered level sequence for a configuration.

    Protection mode: level 0 stakes protection_value, levels 1..N chain with
    the protection rule (each stakes the previous level's profit).

    Reinvest mode: levels 1..N, level 1 stakes initial_value, later levels
    chain with the reinvest rule.

    The first level is ACTIVE, all others PENDING.

    Example:
        config = Configuration(payout_percent=80, use_protection=True, protection_value=10)
        ladder = build_ladder(config)
        # ladder[0]: entry 10.00, profit 8.00
        # ladder[1]: entry 8.00, profit 6.40
    """
    payout = config.payout_percent
    levels: List[Level] = []

    if config.use_protection:
        levels.append(make_level(PROTECTION_LEVEL, config.protection_value, payout, LevelStatus.ACTIVE))
        reinvest = False
    else:
        levels.append(make_level(1, config.initial_value, payout, LevelStatus.ACTIVE))
        reinvest = True

    while len(levels) < _ladder_length(config):
        previous = levels[-1]
        levels.append(make_level(previous.index + 1, chain_entry_value(previous, reinvest), payout))

    return levels


def cascade_from(levels: Sequence[Level], position: int) -> List[Level]:
    """
    Rebuild every level after `position` with the reinvest rule.

    Each rebuilt level keeps its own payout and status; only entry value and
    expected profit change. Levels up to and including `position` are
    returned unchanged.

    Args:
        levels: Current ladder
        position: List position of the level the cascade starts from

    Returns:
        New list of levels
    """
    if position < 0 or position >= len(levels):
        raise IndexError(f"Cascade position {position} outside ladder of {len(levels)} levels")
    rebuilt = list(levels)
    for i in range(position + 1, len(rebuilt)):
        rebuilt[i] = reprice_level(rebuilt[i], entry_value=chain_entry_value(rebuilt[i - 1]))
    return rebuilt


def _ladder_length(config: Configuration) -> int:
    """Total number of levels including level 0 when protection is enabled."""
    if config.use_protection:
        return config.levels_to_build + 1
    return config.levels_to_build
