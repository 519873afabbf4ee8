"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the rental ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. test_id_allocation.py - Identifier allocation is sequential and never reused
2. test_exactly_once.py - Each billing period is paid at most once, in order
3. test_atomicity.py - Rejected calls change nothing
4. test_authorization.py - Only the entitled party can act
5. test_determinism.py - Replaying calls reproduces state
6. test_conservation.py - Funds are conserved and escrow matches deposits
7. test_temporal.py - Payment windows follow the block clock
8. test_concurrency.py - Concurrent callers cannot break the invariants

Random call sequences come from strategies.py and use hypothesis.
"""
