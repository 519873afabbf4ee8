"""
policy.py - Deposit disposition on termination

When an Active agreement is terminated, the escrowed deposit is split between
tenant and owner by a named policy. Policies are pure functions: same
agreement, clock and terminating party always produce the same split, and the
two shares always sum to the deposit.

Available policies (RentalConfig.deposit_policy):
    - "standard": full refund before the window opens; afterwards unpaid opened
      periods are forfeited to the owner (capped at the deposit), plus
      early_exit_penalty_bps of the deposit when the tenant walks away mid-term
    - "full_refund": the whole deposit always goes back to the tenant
    - "forfeit": full refund before the window opens, whole deposit to the
      owner afterwards
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Dict

from .config import RentalConfig
from .core import (
    Agreement, BlockHeight, Identity, BPS_DENOMINATOR, ConfigurationError,
)
from .schedule import opened_periods


@dataclass(frozen=True, slots=True)
class DepositDisposition:
    """Split of an escrowed deposit. refund_to_tenant + forfeit_to_owner == deposit."""
    refund_to_tenant: int
    forfeit_to_owner: int

    def __post_init__(self):
        if self.refund_to_tenant < 0 or self.forfeit_to_owner < 0:
            raise ValueError(f"negative deposit share: {self}")

    @property
    def total(self) -> int:
        return self.refund_to_tenant + self.forfeit_to_owner


# (agreement, now, terminated_by, config) -> DepositDisposition
DepositPolicy = Callable[[Agreement, BlockHeight, Identity, RentalConfig], DepositDisposition]


def outstanding_periods(agreement: Agreement, now: BlockHeight, config: RentalConfig) -> int:
    """Periods whose window has opened by `now` but which are still unpaid."""
    opened = opened_periods(now, agreement.start_block, agreement.end_block, config.period_length)
    return max(0, opened - agreement.last_paid_period)


def full_refund_policy(
    agreement: Agreement,
    now: BlockHeight,
    terminated_by: Identity,
    config: RentalConfig,
) -> DepositDisposition:
    return DepositDisposition(refund_to_tenant=agreement.security_deposit, forfeit_to_owner=0)


def forfeit_policy(
    agreement: Agreement,
    now: BlockHeight,
    terminated_by: Identity,
    config: RentalConfig,
) -> DepositDisposition:
    deposit = agreement.security_deposit
    if now < agreement.start_block:
        return DepositDisposition(refund_to_tenant=deposit, forfeit_to_owner=0)
    return DepositDisposition(refund_to_tenant=0, forfeit_to_owner=deposit)


def standard_policy(
    agreement: Agreement,
    now: BlockHeight,
    terminated_by: Identity,
    config: RentalConfig,
) -> DepositDisposition:
    """
    Arrears first, then the early-exit penalty, remainder refunded.

    Args:
        agreement: Active agreement being terminated
        now: Block height of the termination call
        terminated_by: Owner or tenant
        config: Supplies period_length and early_exit_penalty_bps

    Returns:
        DepositDisposition whose shares sum to the deposit
    """
    deposit = agreement.security_deposit
    if now < agreement.start_block:
        return DepositDisposition(refund_to_tenant=deposit, forfeit_to_owner=0)

    arrears = outstanding_periods(agreement, now, config) * agreement.monthly_rent
    forfeit = min(deposit, arrears)

    mid_term = now < agreement.end_block
    if terminated_by == agreement.tenant and mid_term and config.early_exit_penalty_bps:
        penalty = deposit * config.early_exit_penalty_bps // BPS_DENOMINATOR
        forfeit = min(deposit, forfeit + penalty)

    return DepositDisposition(refund_to_tenant=deposit - forfeit, forfeit_to_owner=forfeit)


POLICIES: Dict[str, DepositPolicy] = {
    "standard": standard_policy,
    "full_refund": full_refund_policy,
    "forfeit": forfeit_policy,
}


def get_policy(name: str) -> DepositPolicy:
    """
    Look up a deposit policy by name.

    Raises:
        ConfigurationError: If no policy has that name
    """
    try:
        return POLICIES[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown deposit policy {name!r}; expected one of {sorted(POLICIES)}"
        ) from None
