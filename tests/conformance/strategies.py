"""
Strategies and invariant checks shared by the conformance suite.

A scenario is a list of (height_step, call_name, caller, args). Steps are
non-negative so heights never decrease, and every call runs through
RentalProtocol.call exactly as a block driver would submit it.
"""

from typing import Any, List, Tuple

from hypothesis import strategies as st

from rental_ledger import (
    CallContext, CallResult, FundsLedger, RentalConfig, RentalProtocol,
    total_periods,
)

CALLERS = ["owner", "tenant", "outsider", "poor", "escrow"]
WALLET_BALANCES = {"owner": 50_000_000, "tenant": 50_000_000, "outsider": 50_000_000, "poor": 1_000_000}

Step = Tuple[int, str, str, Tuple[Any, ...]]


# =============================================================================
# STRATEGIES
# =============================================================================

callers = st.sampled_from(CALLERS)
ids = st.integers(min_value=1, max_value=4)
amounts = st.integers(min_value=0, max_value=5_000_000)

register_call = st.tuples(
    st.just("register-property"),
    callers,
    st.tuples(st.sampled_from(["Loft", "Studio", ""]), st.just("Listing"), amounts, amounts),
)
create_call = st.tuples(
    st.just("create-agreement"),
    callers,
    st.tuples(ids, st.integers(min_value=0, max_value=600), st.integers(min_value=0, max_value=1200)),
)
pay_call = st.tuples(st.just("pay-monthly-rent"), callers, st.tuples(ids))
terminate_call = st.tuples(st.just("terminate-agreement"), callers, st.tuples(ids))
toggle_call = st.tuples(
    st.sampled_from(["deactivate-property", "activate-property"]),
    callers,
    st.tuples(ids),
)

any_call = st.one_of(
    register_call, register_call,
    create_call, create_call,
    pay_call, pay_call, pay_call,
    terminate_call,
    toggle_call,
)


@st.composite
def scenario(draw, max_size: int = 40) -> List[Step]:
    """A random call sequence with non-decreasing block heights."""
    calls = draw(st.lists(any_call, max_size=max_size))
    steps = draw(st.lists(st.integers(min_value=0, max_value=80), min_size=len(calls), max_size=len(calls)))
    return [(step, name, caller, args) for step, (name, caller, args) in zip(steps, calls)]


# =============================================================================
# HELPERS
# =============================================================================

def new_protocol(config: RentalConfig = None) -> RentalProtocol:
    funds = FundsLedger("conformance")
    for wallet, balance in WALLET_BALANCES.items():
        funds.register_wallet(wallet)
        funds.mint(wallet, balance)
    return RentalProtocol(funds, config or RentalConfig(period_length=100))


def run_step(protocol: RentalProtocol, height: int, step: Step) -> CallResult:
    _, name, caller, args = step
    return protocol.call(name, CallContext(caller, height), *args)


def replay(protocol: RentalProtocol, steps: List[Step], start_height: int = 1) -> List[CallResult]:
    """Run every step in order; returns the results."""
    height = start_height
    results = []
    for step in steps:
        height += step[0]
        results.append(run_step(protocol, height, step))
    return results


def check_invariants(protocol: RentalProtocol) -> None:
    """Assert every cross-record invariant of the protocol."""
    funds = protocol.funds
    agreements = [protocol.get_agreement(i) for i in range(1, protocol.ids.next_agreement_id)]
    properties = [protocol.get_property(i) for i in range(1, protocol.ids.next_property_id)]

    # ids are dense: every allocated id has a record
    assert all(p is not None for p in properties)
    assert all(a is not None for a in agreements)
    assert protocol.agreements.count() == len(agreements)
    assert protocol.registry.count() == len(properties)

    # at most one Active agreement per property, matching the binding index
    active = [a for a in agreements if a.is_active]
    bound = {a.property_id: a.id for a in active}
    assert len(bound) == len(active)
    assert bound == dict(protocol.registry._active_agreement)

    for agreement in agreements:
        total = total_periods(agreement.start_block, agreement.end_block, protocol.config.period_length)
        assert 0 <= agreement.last_paid_period <= total
        history = protocol.payment_history(agreement.id)
        assert [r.period for r in history] == list(range(1, agreement.last_paid_period + 1))
        assert agreement.deposit_released == (not agreement.is_active)

    # escrow holds exactly the deposits of Active agreements
    escrowed = sum(a.security_deposit for a in active)
    assert funds.get_balance(protocol.config.escrow_wallet) == escrowed
    assert funds.verify_conservation()
