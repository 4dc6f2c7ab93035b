"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the stablecoin engine.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. test_atomicity.py - All-or-nothing operations, failing collaborators, reentrancy
2. test_solvency_invariant.py - Every debtor stays above the minimum health
   factor and total collateral value covers total debt under stable prices
3. test_conservation.py - Collateral custody and debt token supply mirror
   the engine's internal positions
4. test_temporal.py - Oracle staleness against the engine clock

These tests use hypothesis for property-based testing.
"""
