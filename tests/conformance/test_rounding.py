"""
Rounding Conformance Tests

INVARIANT: Every monetary value the simulator produces is rounded to two
decimal places with ROUND_HALF_UP, and every level's expected profit is
derived from its own entry and payout:

    ∀ levels l:
        l.expected_profit = round_half_up(l.entry_value × l.payout_percent / 100, 2)

This holds for freshly built ladders, after wins cascade the ladder, and
after payout edits.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from decimal import Decimal, ROUND_HALF_UP

from soros import (
    Configuration, Outcome, build_ladder, expected_profit, profit_loss_for, round2,
)
from tests.helpers import make_engine


# =============================================================================
# STRATEGIES
# =============================================================================

@st.composite
def stake(draw, min_value=Decimal("0.01"), max_value=Decimal("100000")):
    """A stake in cents."""
    return draw(st.decimals(min_value=min_value, max_value=max_value, places=2,
                            allow_nan=False, allow_infinity=False))


@st.composite
def payout(draw, min_value=Decimal("0.01")):
    """A payout percentage in (0, 100] with up to two places."""
    return draw(st.decimals(min_value=min_value, max_value=Decimal("100"), places=2,
                            allow_nan=False, allow_infinity=False))


def _reference(entry: Decimal, payout_percent: Decimal) -> Decimal:
    return (entry * payout_percent / Decimal("100")).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _two_places(value: Decimal) -> bool:
    return value.as_tuple().exponent == -2


def _level_is_consistent(level) -> bool:
    return (
        _two_places(level.entry_value)
        and _two_places(level.expected_profit)
        and level.expected_profit == _reference(level.entry_value, level.payout_percent)
    )


# =============================================================================
# PROPERTIES
# =============================================================================

class TestRoundingProperties:
    """Property-based rounding tests."""

    @given(stake(), payout())
    @settings(max_examples=200)
    def test_expected_profit_is_half_up_cents(self, entry, payout_percent):
        """
        PROPERTY: expected_profit rounds the exact product half-up to cents.
        """
        profit = expected_profit(entry, payout_percent)
        assert _two_places(profit)
        assert profit == _reference(entry, payout_percent)

    @given(stake(), payout())
    @settings(max_examples=100)
    def test_profit_loss_signs(self, entry, payout_percent):
        """
        PROPERTY: A win pays the expected profit, a loss costs the full entry.
        """
        assert profit_loss_for(Outcome.WIN, entry, payout_percent) == expected_profit(entry, payout_percent)
        assert profit_loss_for(Outcome.LOSS, entry, payout_percent) == -round2(entry)

    @given(
        stake(),
        stake(),
        payout(),
        st.booleans(),
        st.integers(min_value=1, max_value=8),
    )
    @settings(max_examples=100)
    def test_built_ladders(self, initial, protection, payout_percent, use_protection, max_levels):
        """
        PROPERTY: Every level of a freshly built ladder is consistent.
        """
        config = Configuration(initial_value=initial, protection_value=protection,
                               payout_percent=payout_percent, use_protection=use_protection,
                               max_levels=max_levels)
        for level in build_ladder(config):
            assert _level_is_consistent(level)

    @given(
        stake(max_value=Decimal("1000")),
        st.lists(payout(), min_size=1, max_size=4),
        st.booleans(),
    )
    @settings(max_examples=50)
    def test_ladders_after_wins_and_edits(self, initial, payouts, use_protection):
        """
        PROPERTY: Cascading and payout edits keep every level consistent.
        """
        config = Configuration(initial_value=initial, protection_value=initial,
                               payout_percent=payouts[0], use_protection=use_protection)
        engine = make_engine(config)
        for new_payout in payouts[1:]:
            engine.record_outcome(Outcome.WIN)
            engine.set_payout(new_payout)
            for level in engine.levels:
                assert _level_is_consistent(level)


class TestRoundingExamples:
    """Hand-checked half-up cases."""

    @pytest.mark.parametrize("entry,payout_percent,expected", [
        ("0.05", "50", "0.03"),      # 0.025 -> 0.03
        ("4.10", "80", "3.28"),
        ("104.98", "80", "83.98"),   # 83.984
        ("1.01", "50", "0.51"),      # 0.505 -> 0.51
        ("3.33", "85", "2.83"),      # 2.8305
    ])
    def test_known_values(self, entry, payout_percent, expected):
        assert expected_profit(Decimal(entry), Decimal(payout_percent)) == Decimal(expected)
