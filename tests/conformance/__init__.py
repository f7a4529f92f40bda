"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the token ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. test_conservation.py - Total supply equals the sum of balances
2. test_atomicity.py - Rejected operations change nothing
3. test_access_control.py - Admin and minter rights, pause gating
4. test_determinism.py - Replay and reconstruction reproduce identical state

These tests use hypothesis for property-based testing.
"""
