"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the simulator.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. rounding.py - Every monetary value carries exactly two places, half-up
2. replay_equivalence.py - Reconciling stored records reproduces the live balances
3. determinism.py - Reproducible ladders, records and identities

These tests use hypothesis for property-based testing.
"""
