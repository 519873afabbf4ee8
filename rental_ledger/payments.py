"""
payments.py - Payment Scheduler / Ledger

Computes which billing period a rent payment settles, enforces exactly-once
payment per period, moves rent to the owner and, on the final period,
releases the escrowed deposit back to the tenant in the same atomic transfer.

Periods are paid strictly in order. A call always settles the oldest unpaid
period whose window has opened, so a tenant in arrears catches up one period
per call, and a tenant who is up to date gets AlreadyPaid until the next
period opens.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional
import logging

from .agreements import AgreementEngine
from .config import RentalConfig
from .core import (
    Agreement, AgreementId, AgreementState, BlockHeight, CallContext, PaymentRecord,
    AlreadyPaid, InvalidWindow, TooEarly, Unauthorized,
)
from .funds import FundsTransfer, Move, transfer_or_raise
from .registry import require_ordinary_caller
from .schedule import opened_periods, period_number, period_start_block, total_periods

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PaymentStatus:
    """
    Read-only snapshot of an agreement's payment position at a block height.

    Attributes:
        agreement_id: Agreement described
        state: Phase of the agreement at `as_of` (PENDING before the window)
        as_of: Block height of the snapshot
        current_period: 1-based period containing as_of (0 before the window,
            clamped to total_periods after it)
        last_paid_period: Last period paid (0 = none)
        total_periods: Periods in the whole window
        outstanding_periods: Opened but unpaid periods
        amount_due: outstanding_periods * monthly_rent
        next_due_period: Next period to pay, None when all are paid
        next_due_block: Block at which next_due_period opens
    """
    agreement_id: AgreementId
    state: AgreementState
    as_of: BlockHeight
    current_period: int
    last_paid_period: int
    total_periods: int
    outstanding_periods: int
    amount_due: int
    next_due_period: Optional[int]
    next_due_block: Optional[BlockHeight]

    @property
    def fully_paid(self) -> bool:
        return self.last_paid_period >= self.total_periods


class PaymentLedger:
    """
    Rent payment processing and the per-agreement payment log.

    Args:
        agreements: Lifecycle engine (the only writer of agreement records)
        funds: Fund-transfer collaborator
        config: Supplies period_length, prepayment_blocks and escrow wallet
    """

    def __init__(self, agreements: AgreementEngine, funds: FundsTransfer, config: RentalConfig):
        self.agreements = agreements
        self.funds = funds
        self.config = config
        self._history: Dict[AgreementId, List[PaymentRecord]] = {}

    # ========================================================================
    # SCHEDULE HELPERS
    # ========================================================================

    def total_periods(self, agreement: Agreement) -> int:
        return total_periods(agreement.start_block, agreement.end_block, self.config.period_length)

    def payable_periods(self, agreement: Agreement, now: BlockHeight) -> int:
        """Periods whose rent is accepted at `now` (includes any prepayment allowance)."""
        return opened_periods(
            now, agreement.start_block, agreement.end_block,
            self.config.period_length, self.config.prepayment_blocks,
        )

    # ========================================================================
    # PAY
    # ========================================================================

    def pay_monthly_rent(self, ctx: CallContext, agreement_id: AgreementId) -> PaymentRecord:
        """
        Settle the next due billing period of an agreement.

        Args:
            ctx: Caller must be the tenant; block height selects the period
            agreement_id: Active agreement

        Returns:
            The PaymentRecord appended to the history

        Raises:
            InvalidInput: Malformed agreement id
            AgreementNotFound: Unknown agreement
            AgreementNotActive: Agreement Completed or Terminated
            Unauthorized: Caller is not the tenant, or is the escrow wallet
            InvalidWindow: Clock at or past end_block
            TooEarly: No period is payable yet
            AlreadyPaid: Every payable period is already paid
            TransferFailed: Rent (or deposit release) transfer rejected
        """
        now = ctx.block_height
        require_ordinary_caller(ctx, self.config)
        agreement = self.agreements.require_active(agreement_id)
        if ctx.caller != agreement.tenant:
            raise Unauthorized(f"{ctx.caller} is not the tenant of agreement {agreement_id}")
        if now >= agreement.end_block:
            raise InvalidWindow(
                f"Agreement {agreement_id} window ended at {agreement.end_block} (now={now})"
            )

        payable = self.payable_periods(agreement, now)
        if payable == 0:
            raise TooEarly(
                f"Agreement {agreement_id} billing opens at "
                f"{agreement.start_block - self.config.prepayment_blocks} (now={now})"
            )

        due = agreement.last_paid_period + 1
        if due > payable:
            raise AlreadyPaid(
                f"Agreement {agreement_id} period {agreement.last_paid_period} already paid "
                f"(payable through period {payable})"
            )

        final = due == self.total_periods(agreement)
        reference = f"agreement-{agreement_id}/rent/{due}"
        moves = []
        # a self-rental pays rent to itself; nothing moves
        if agreement.monthly_rent > 0 and agreement.tenant != agreement.owner:
            moves.append(Move(agreement.monthly_rent, agreement.tenant, agreement.owner, reference))
        if final and agreement.security_deposit > 0:
            moves.append(Move(agreement.security_deposit, self.config.escrow_wallet,
                              agreement.tenant, f"agreement-{agreement_id}/deposit-release"))
        transfer_or_raise(self.funds, moves, reference, now)

        updated = self.agreements.record_period_paid(agreement, due, now, final)
        record = PaymentRecord(
            agreement_id=agreement_id,
            period=due,
            amount=agreement.monthly_rent,
            paid_at=now,
            payer=ctx.caller,
        )
        self._history.setdefault(agreement_id, []).append(record)

        logger.info("Agreement %d: period %d paid by %s at %d (amount=%d)",
                    agreement_id, due, ctx.caller, now, agreement.monthly_rent)
        if updated.state == AgreementState.COMPLETED:
            logger.info("Agreement %d completed at %d; deposit %d released to %s",
                        agreement_id, now, agreement.security_deposit, agreement.tenant)
        return record

    # ========================================================================
    # QUERIES
    # ========================================================================

    def payment_history(self, agreement_id: AgreementId) -> List[PaymentRecord]:
        """Recorded payments in period order (empty for unknown agreements)."""
        return list(self._history.get(agreement_id, []))

    def payment_status(self, agreement_id: AgreementId, now: BlockHeight) -> PaymentStatus:
        """
        Describe what is owed on an agreement at `now`.

        Raises:
            AgreementNotFound: Unknown agreement
        """
        agreement = self.agreements.require(agreement_id)
        total = self.total_periods(agreement)
        current = max(0, min(period_number(now, agreement.start_block, self.config.period_length), total))

        if agreement.is_active:
            outstanding = max(0, current - agreement.last_paid_period)
        else:
            outstanding = 0

        next_period: Optional[int] = None
        next_block: Optional[BlockHeight] = None
        if agreement.is_active and agreement.last_paid_period < total:
            next_period = agreement.last_paid_period + 1
            next_block = period_start_block(agreement.start_block, next_period, self.config.period_length)

        return PaymentStatus(
            agreement_id=agreement_id,
            state=agreement.phase(now),
            as_of=now,
            current_period=current,
            last_paid_period=agreement.last_paid_period,
            total_periods=total,
            outstanding_periods=outstanding,
            amount_due=outstanding * agreement.monthly_rent,
            next_due_period=next_period,
            next_due_block=next_block,
        )
