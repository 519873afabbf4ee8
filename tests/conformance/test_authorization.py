"""
Authorization Conformance Tests

INVARIANT: Only the entitled party can act.

    pay-monthly-rent        tenant only
    terminate-agreement     tenant or owner
    (de)activate-property   property owner only
    create-agreement        anyone but the owner (unless self-rental is allowed)
    every call              never the escrow wallet

An unauthorized call fails with UNAUTHORIZED and leaves last_paid_period,
state and balances unchanged.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from rental_ledger import ErrorKind, RentalConfig

from conftest import ctx, snapshot
from conformance.strategies import new_protocol

intruders = st.text(alphabet="abcdefghijklmnopqrstuvwxyz_", min_size=1, max_size=12).filter(
    lambda name: name not in ("owner", "tenant")
)


def _rented(config=None):
    protocol = new_protocol(config)
    protocol.register_property(ctx("owner", 1), "Loft", "2BR", 1_000_000, 2_000_000).expect_ok()
    protocol.create_agreement(ctx("tenant", 2), 1, 100, 1000).expect_ok()
    return protocol


class TestAuthorizationProperties:
    """Property-based authorization tests."""

    @given(intruders, st.integers(min_value=0, max_value=1500),
           st.sampled_from(["pay-monthly-rent", "terminate-agreement", "deactivate-property", "activate-property"]))
    @settings(max_examples=150, deadline=None)
    def test_strangers_are_refused(self, intruder, height, call):
        """
        PROPERTY: A non-party gets UNAUTHORIZED and changes nothing.
        """
        protocol = _rented()
        before = snapshot(protocol)
        protocol.call(call, ctx(intruder, height), 1).expect_err(ErrorKind.UNAUTHORIZED)
        assert snapshot(protocol) == before

    @given(st.integers(min_value=0, max_value=999))
    @settings(max_examples=50, deadline=None)
    def test_owner_cannot_pay_rent(self, height):
        protocol = _rented()
        protocol.pay_monthly_rent(ctx("owner", height), 1).expect_err(ErrorKind.UNAUTHORIZED)
        assert protocol.get_agreement(1).last_paid_period == 0


class TestAuthorizationExamples:

    def test_tenant_cannot_toggle_property(self):
        protocol = _rented()
        protocol.deactivate_property(ctx("tenant", 5), 1).expect_err(ErrorKind.UNAUTHORIZED)

    @pytest.mark.parametrize("caller", ["owner", "tenant"])
    def test_parties_may_terminate(self, caller):
        protocol = _rented()
        protocol.terminate_agreement(ctx(caller, 5), 1).expect_ok()

    def test_owner_self_rental(self):
        protocol = new_protocol()
        protocol.register_property(ctx("owner", 1), "Loft", "2BR", 1, 1).expect_ok()
        protocol.create_agreement(ctx("owner", 2), 1, 100, 1000).expect_err(ErrorKind.UNAUTHORIZED)

        permissive = new_protocol(RentalConfig(period_length=100, allow_self_rental=True))
        permissive.register_property(ctx("owner", 1), "Loft", "2BR", 1, 1).expect_ok()
        permissive.create_agreement(ctx("owner", 2), 1, 100, 1000).expect_ok()

    @pytest.mark.parametrize("call, args", [
        ("register-property", ("Vault", "Held", 1, 1)),
        ("create-agreement", (1, 100, 1000)),
        ("pay-monthly-rent", (1,)),
        ("terminate-agreement", (1,)),
        ("deactivate-property", (1,)),
    ])
    def test_escrow_wallet_is_never_a_party(self, call, args):
        protocol = new_protocol()
        protocol.register_property(ctx("owner", 1), "Loft", "2BR", 1_000_000, 2_000_000).expect_ok()
        protocol.funds.mint(protocol.config.escrow_wallet, 5_000_000)
        before = snapshot(protocol)
        protocol.call(call, ctx(protocol.config.escrow_wallet, 100), *args).expect_err(ErrorKind.UNAUTHORIZED)
        assert snapshot(protocol) == before
