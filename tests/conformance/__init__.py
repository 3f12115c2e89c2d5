"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the stablecoin engine.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. test_conservation.py - Debt supply and custody match the positions
2. test_atomicity.py - All-or-nothing operations, re-entrancy refusal
3. test_solvency.py - No operation leaves its caller under-collateralized
4. test_valuation.py - Rounding bounds and read-only queries

These tests use hypothesis for property-based testing.
"""
