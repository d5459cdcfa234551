"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the shop state.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. consistency.py - The two indexes always agree; product ids are unique;
   emptied sellers are pruned
2. atomicity.py - Failed operations and rejected transactions leave no trace
3. determinism.py - Serialization round trips and reproducible state hashes

These tests use hypothesis for property-based testing.
"""
