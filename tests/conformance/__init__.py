"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the engine.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. solvency.py - No user operation leaves an indebted account below the minimum
2. rollback.py - All-or-nothing operation semantics, including reentrancy
3. liquidation_bounds.py - Liquidations improve health and respect the bonus cap

These tests use hypothesis for property-based testing.
"""
