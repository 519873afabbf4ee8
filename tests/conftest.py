"""
conftest.py - Shared pytest fixtures for rental_ledger tests

Provides common fixtures used across unit, conformance and scenario tests:
- Funds ledgers with owner, tenant and outsider wallets
- Protocols with a short billing period for readable block arithmetic
- Pre-built rentals (property + agreement) at known heights
- Snapshot helpers for all-or-nothing assertions
"""

import pytest
from typing import Any, Dict

from rental_ledger import (
    AgreementState,
    CallContext,
    FundsLedger,
    RentalConfig,
    RentalProtocol,
    ManualBlockClock,
)


OWNER = "owner"
TENANT = "tenant"
OTHER = "outsider"

RENT = 2_000_000
DEPOSIT = 4_000_000
START = 100
END = 1000
PERIOD = 100
STARTING_BALANCE = 100_000_000


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def ctx(caller: str, height: int) -> CallContext:
    """Shorthand for CallContext."""
    return CallContext(caller, height)


def funded_ledger(*wallets: str, balance: int = STARTING_BALANCE) -> FundsLedger:
    """FundsLedger with each wallet registered and funded."""
    funds = FundsLedger("test")
    for wallet in wallets:
        funds.register_wallet(wallet)
        if balance:
            funds.mint(wallet, balance)
    return funds


def snapshot(protocol: RentalProtocol) -> Dict[str, Any]:
    """Capture every piece of protocol and funds state a call could touch."""
    funds = protocol.funds
    return {
        'next_property_id': protocol.ids.next_property_id,
        'next_agreement_id': protocol.ids.next_agreement_id,
        'properties': {pid: protocol.get_property(pid) for pid in range(1, protocol.ids.next_property_id)},
        'agreements': {aid: protocol.get_agreement(aid) for aid in range(1, protocol.ids.next_agreement_id)},
        'bindings': dict(protocol.registry._active_agreement),
        'history': {aid: protocol.payment_history(aid) for aid in range(1, protocol.ids.next_agreement_id)},
        'events': len(protocol.events),
        'balances': dict(funds.balances),
        'transfers': len(funds.transfer_log),
    }


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def config():
    """Short billing period: [100, 1000) is nine periods of 100 blocks."""
    return RentalConfig(period_length=PERIOD)


@pytest.fixture
def funds():
    return funded_ledger(OWNER, TENANT, OTHER)


@pytest.fixture
def protocol(funds, config):
    return RentalProtocol(funds, config)


@pytest.fixture
def listed(protocol):
    """Protocol with property 1 registered by OWNER."""
    result = protocol.register_property(ctx(OWNER, 1), "Luxury Downtown Apartment",
                                        "Modern 2BR with city view", RENT, DEPOSIT)
    assert result.expect_ok() == 1
    return protocol


@pytest.fixture
def rented(listed):
    """Protocol with agreement 1 on property 1, window [100, 1000), created at height 2."""
    result = listed.create_agreement(ctx(TENANT, 2), 1, START, END)
    assert result.expect_ok() == 1
    assert listed.get_agreement(1).state == AgreementState.ACTIVE
    return listed


@pytest.fixture
def clocked(funds, config):
    """Protocol driven by a ManualBlockClock starting at height 1."""
    clock = ManualBlockClock(1)
    return RentalProtocol(funds, config, clock), clock
