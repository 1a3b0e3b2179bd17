"""
Replay Equivalence Conformance Tests

INVARIANT: The balance trail reconciled from a lineage's stored records is
exactly the balance the live engine held after each of those outcomes.

    ∀ outcome sequences O:
        reconcile(store.list_ordered(lineage), config)[i]
            = (engine.running_balance, engine.baseline) after O[i]

This must hold across wins, losses, ladder exhaustion, resets, payout edits
and per-level edits, whatever order the records are handed to the
reconciler in.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from datetime import timedelta
from decimal import Decimal

from soros import Configuration, Outcome, reconcile
from tests.helpers import make_engine, quiet_store, run_sequence


# =============================================================================
# STRATEGIES
# =============================================================================

@st.composite
def configuration(draw):
    """
    Any valid configuration.

    Low payouts chain stakes down to 0.00, which the engine must record and
    replay like any other stake.
    """
    money = st.decimals(min_value=Decimal("0.01"), max_value=Decimal("500"), places=2,
                        allow_nan=False, allow_infinity=False)
    return Configuration(
        initial_value=draw(money),
        protection_value=draw(money),
        payout_percent=draw(st.decimals(min_value=Decimal("0.01"), max_value=Decimal("100"), places=2,
                                        allow_nan=False, allow_infinity=False)),
        use_protection=draw(st.booleans()),
        max_levels=draw(st.one_of(st.none(), st.integers(min_value=1, max_value=6))),
    )


outcomes = st.lists(st.sampled_from([Outcome.WIN, Outcome.LOSS]), min_size=0, max_size=30)


def _assert_equivalent(trail, balances):
    assert len(trail) == len(balances)
    for reconciled, (running, baseline) in zip(trail, balances):
        assert reconciled.running_balance == running
        assert reconciled.settled_balance == baseline


# =============================================================================
# PROPERTIES
# =============================================================================

class TestReplayEquivalenceProperties:
    """Property-based replay tests."""

    @given(configuration(), outcomes)
    @settings(max_examples=100)
    def test_reconciled_trail_matches_live_balances(self, config, sequence):
        """
        PROPERTY: Reconciling the store reproduces every live balance.
        """
        store = quiet_store()
        engine = make_engine(config, store)
        _, balances = run_sequence(engine, sequence)

        trail = reconcile(store.list_ordered(engine.lineage_id), config)
        _assert_equivalent(trail, balances)

    @given(configuration(), outcomes, st.data())
    @settings(max_examples=50)
    def test_record_order_does_not_matter(self, config, sequence, data):
        """
        PROPERTY: Records handed over in any order reconcile identically.
        """
        store = quiet_store()
        engine = make_engine(config, store)
        for outcome in sequence:
            store.advance_time(store.current_time + timedelta(minutes=data.draw(st.integers(0, 2))))
            run_sequence(engine, [outcome])
        records = store.list_ordered(engine.lineage_id)

        shuffled = data.draw(st.permutations(records))
        assert reconcile(shuffled, config) == reconcile(records, config)

    @given(
        configuration(),
        st.lists(
            st.tuples(
                st.sampled_from([Outcome.WIN, Outcome.LOSS]),
                st.one_of(st.none(), st.decimals(min_value=Decimal("0.01"), max_value=Decimal("100"),
                                                 places=2, allow_nan=False, allow_infinity=False)),
            ),
            max_size=25,
        ),
    )
    @settings(max_examples=75)
    def test_payout_edits_between_outcomes(self, config, steps):
        """
        PROPERTY: Payout edits change future stakes, never the replayed past.
        """
        store = quiet_store()
        engine = make_engine(config, store)
        balances = []
        for outcome, new_payout in steps:
            if new_payout is not None:
                engine.set_payout(new_payout)
            _, step_balances = run_sequence(engine, [outcome])
            balances.extend(step_balances)

        # Replay always starts from the lineage's original configuration.
        trail = reconcile(store.list_ordered(engine.lineage_id), config)
        _assert_equivalent(trail, balances)

    @given(
        configuration(),
        st.lists(
            st.tuples(
                st.sampled_from([Outcome.WIN, Outcome.LOSS]),
                st.one_of(st.none(), st.decimals(min_value=Decimal("0.01"), max_value=Decimal("1000"),
                                                 places=2, allow_nan=False, allow_infinity=False)),
            ),
            max_size=25,
        ),
    )
    @settings(max_examples=75)
    def test_entry_edits_on_active_level(self, config, steps):
        """
        PROPERTY: Manual entry overrides are replayed through the stored stakes.
        """
        store = quiet_store()
        engine = make_engine(config, store)
        balances = []
        for outcome, new_entry in steps:
            if engine.active_level is None:
                engine.reset()
            if new_entry is not None:
                engine.set_level_entry_value(engine.active_level.index, new_entry)
            _, step_balances = run_sequence(engine, [outcome])
            balances.extend(step_balances)

        trail = reconcile(store.list_ordered(engine.lineage_id), config)
        _assert_equivalent(trail, balances)

    @given(configuration(), outcomes)
    @settings(max_examples=50)
    def test_restored_engine_continues_identically(self, config, sequence):
        """
        PROPERTY: An engine restored from the store carries on with the same balance.
        """
        store = quiet_store()
        live = make_engine(config, store)
        run_sequence(live, sequence)

        restored = make_engine(config, store)
        restored.restore_balance()

        assert restored.baseline == live.baseline
        assert restored.running_balance == live.running_balance
        assert restored.history == live.history


class TestReplayExamples:
    """Concrete replay cases."""

    def test_reinvest_floor_matches_engine(self, reinvest_config, store):
        engine = make_engine(reinvest_config, store)
        _, balances = run_sequence(engine, [Outcome.LOSS, Outcome.LOSS])
        assert balances == [(Decimal("0.00"), Decimal("0.00")), (Decimal("-10.00"), Decimal("0.00"))]

        trail = reconcile(store.list_ordered(engine.lineage_id), reinvest_config)
        _assert_equivalent(trail, balances)

    @pytest.mark.parametrize("max_levels", [1, 2, 3])
    def test_exhaustion_matches_engine(self, protection_config, store, max_levels):
        config = Configuration.from_dict({**protection_config.to_dict(), 'max_levels': max_levels})
        engine = make_engine(config, store)
        _, balances = run_sequence(engine, [Outcome.WIN] * (max_levels + 3))

        trail = reconcile(store.list_ordered(engine.lineage_id), config)
        _assert_equivalent(trail, balances)
