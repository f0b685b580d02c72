"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the matched-betting ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. test_exposure_conservation.py - exposure tracks open liabilities exactly
2. test_float_conservation.py - placement moves money, settlement adds profit
3. test_idempotency.py - a bet settles exactly once
4. test_atomicity.py - a failed operation writes nothing

These tests use hypothesis for property-based testing.
"""
