"""
agreements.py - Agreement Lifecycle Engine

The single writer of Agreement records. Creates agreements against registered
properties, escrows the security deposit, and drives the state machine:

    ACTIVE --[final period paid]--> COMPLETED
    ACTIVE --[terminate]----------> TERMINATED

COMPLETED and TERMINATED are absorbing. Every operation checks everything
first, moves funds through one atomic transfer, and only then writes records,
so a rejected call leaves no trace.
"""

from __future__ import annotations
from dataclasses import replace
from typing import Dict, List, Optional, Tuple
import logging

from .config import RentalConfig
from .core import (
    Agreement, AgreementId, AgreementState, BlockHeight, CallContext, Identity,
    PropertyId,
    AgreementNotActive, AgreementNotFound, InvalidInput, InvalidWindow,
    PropertyAlreadyRented, PropertyInactive, SelfRentalNotAllowed, Unauthorized,
)
from .funds import FundsTransfer, Move, transfer_or_raise
from .ids import IdAllocator
from .policy import DepositDisposition, DepositPolicy, get_policy
from .registry import PropertyRegistry, require_ordinary_caller, validate_id

logger = logging.getLogger(__name__)


def _validate_block(name: str, value: BlockHeight) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput(f"{name} must be an integer block height, got {type(value).__name__}")
    if value < 0:
        raise InvalidInput(f"{name} must be non-negative, got {value}")


class AgreementEngine:
    """
    Agreement table and lifecycle transitions.

    Args:
        registry: Property registry (lookups and the binding index)
        ids: Shared identifier allocator
        funds: Fund-transfer collaborator
        config: Protocol configuration
        deposit_policy: Termination policy; defaults to config.deposit_policy
    """

    def __init__(
        self,
        registry: PropertyRegistry,
        ids: IdAllocator,
        funds: FundsTransfer,
        config: RentalConfig,
        deposit_policy: Optional[DepositPolicy] = None,
    ):
        self.registry = registry
        self.ids = ids
        self.funds = funds
        self.config = config
        self.deposit_policy: DepositPolicy = deposit_policy or get_policy(config.deposit_policy)
        self._agreements: Dict[AgreementId, Agreement] = {}

    # ========================================================================
    # QUERIES
    # ========================================================================

    def get_agreement(self, agreement_id: AgreementId) -> Optional[Agreement]:
        """Return the agreement or None when absent."""
        return self._agreements.get(agreement_id)

    def require(self, agreement_id: AgreementId) -> Agreement:
        """Return the agreement or raise InvalidInput / AgreementNotFound."""
        validate_id("agreement_id", agreement_id)
        agreement = self._agreements.get(agreement_id)
        if agreement is None:
            raise AgreementNotFound(f"Agreement {agreement_id} not found")
        return agreement

    def require_active(self, agreement_id: AgreementId) -> Agreement:
        """Return an ACTIVE agreement or raise AgreementNotFound / AgreementNotActive."""
        agreement = self.require(agreement_id)
        if not agreement.is_active:
            raise AgreementNotActive(
                f"Agreement {agreement_id} is {agreement.state.value}"
            )
        return agreement

    def agreements_for_tenant(self, tenant: Identity) -> List[Agreement]:
        return [a for _, a in sorted(self._agreements.items()) if a.tenant == tenant]

    def agreements_for_property(self, property_id: PropertyId) -> List[Agreement]:
        return [a for _, a in sorted(self._agreements.items()) if a.property_id == property_id]

    def count(self) -> int:
        return len(self._agreements)

    # ========================================================================
    # CREATE
    # ========================================================================

    def create_agreement(
        self,
        ctx: CallContext,
        property_id: PropertyId,
        start_block: BlockHeight,
        end_block: BlockHeight,
    ) -> Agreement:
        """
        Create an Active agreement for the caller as tenant.

        The security deposit moves from the tenant to escrow before anything
        is recorded; if the transfer is rejected the call fails with no state
        change and no id consumed.

        Args:
            ctx: Caller becomes the tenant; block height gates the start
            property_id: Existing, active, unbound property
            start_block: First block of the window
            end_block: Exclusive end of the window (must exceed start_block)

        Returns:
            The stored Agreement

        Raises:
            Unauthorized: Caller is the escrow wallet
            InvalidInput: Malformed property id or block heights
            InvalidWindow: start >= end, or the start is already past
            PropertyNotFound: Unknown property
            PropertyInactive: Property deactivated by its owner
            SelfRentalNotAllowed: Owner renting own property (unless allowed)
            PropertyAlreadyRented: Property bound to an Active agreement
            TransferFailed: Deposit could not be escrowed
        """
        now = ctx.block_height
        require_ordinary_caller(ctx, self.config)
        validate_id("property_id", property_id)
        _validate_block("start_block", start_block)
        _validate_block("end_block", end_block)
        if start_block >= end_block:
            raise InvalidWindow(f"start_block {start_block} must be before end_block {end_block}")

        prop = self.registry.require(property_id)
        if not prop.active:
            raise PropertyInactive(f"Property {property_id} is not active")
        if ctx.caller == prop.owner and not self.config.allow_self_rental:
            raise SelfRentalNotAllowed(f"Owner {ctx.caller} cannot rent own property {property_id}")
        if self.registry.is_bound(property_id):
            raise PropertyAlreadyRented(
                f"Property {property_id} is bound to agreement "
                f"{self.registry.active_agreement_id(property_id)}"
            )
        if now > start_block + self.config.start_grace_blocks:
            raise InvalidWindow(
                f"start_block {start_block} has passed (now={now}, "
                f"grace={self.config.start_grace_blocks})"
            )

        agreement_id = self.ids.peek_agreement_id()
        if prop.security_deposit > 0:
            moves = [Move(prop.security_deposit, ctx.caller, self.config.escrow_wallet,
                          f"agreement-{agreement_id}/deposit")]
            transfer_or_raise(self.funds, moves, f"agreement-{agreement_id}/deposit", now)

        allocated = self.ids.allocate_agreement_id()
        agreement = Agreement(
            id=allocated,
            property_id=property_id,
            tenant=ctx.caller,
            owner=prop.owner,
            start_block=start_block,
            end_block=end_block,
            monthly_rent=prop.monthly_rent,
            security_deposit=prop.security_deposit,
            state=AgreementState.ACTIVE,
            deposit_paid=True,
            last_paid_period=0,
            created_at=now,
        )
        self._agreements[allocated] = agreement
        self.registry.bind(property_id, allocated)
        logger.info("Agreement %d created: property=%d tenant=%s window=[%d, %d)",
                    allocated, property_id, ctx.caller, start_block, end_block)
        return agreement

    # ========================================================================
    # TERMINATE
    # ========================================================================

    def deposit_disposition(self, agreement: Agreement, now: BlockHeight, terminated_by: Identity) -> DepositDisposition:
        """Apply the configured policy and check the shares cover the deposit exactly."""
        disposition = self.deposit_policy(agreement, now, terminated_by, self.config)
        if disposition.total != agreement.security_deposit:
            raise RuntimeError(
                f"Deposit policy split {disposition} does not sum to {agreement.security_deposit}"
            )
        return disposition

    def terminate_agreement(self, ctx: CallContext, agreement_id: AgreementId) -> Tuple[Agreement, DepositDisposition]:
        """
        Terminate an Active agreement. Owner or tenant only.

        The escrowed deposit is split by the deposit policy and paid out in
        one atomic transfer before the state changes.

        Returns:
            (terminated agreement, deposit disposition)

        Raises:
            AgreementNotFound: Unknown agreement
            Unauthorized: Caller is neither owner nor tenant, or is the escrow wallet
            AgreementNotActive: Agreement already Completed or Terminated
            TransferFailed: Escrow payout rejected
        """
        now = ctx.block_height
        require_ordinary_caller(ctx, self.config)
        agreement = self.require(agreement_id)
        if not agreement.is_party(ctx.caller):
            raise Unauthorized(f"{ctx.caller} is not a party to agreement {agreement_id}")
        if not agreement.is_active:
            raise AgreementNotActive(f"Agreement {agreement_id} is {agreement.state.value}")

        disposition = self.deposit_disposition(agreement, now, ctx.caller)
        reference = f"agreement-{agreement_id}/termination"
        moves = []
        if disposition.refund_to_tenant > 0:
            moves.append(Move(disposition.refund_to_tenant, self.config.escrow_wallet,
                              agreement.tenant, f"{reference}/refund"))
        if disposition.forfeit_to_owner > 0:
            moves.append(Move(disposition.forfeit_to_owner, self.config.escrow_wallet,
                              agreement.owner, f"{reference}/forfeit"))
        transfer_or_raise(self.funds, moves, reference, now)

        terminated = self._close(agreement, AgreementState.TERMINATED, now, terminated_by=ctx.caller)
        logger.info("Agreement %d terminated by %s at %d (refund=%d, forfeit=%d)",
                    agreement_id, ctx.caller, now,
                    disposition.refund_to_tenant, disposition.forfeit_to_owner)
        return terminated, disposition

    # ========================================================================
    # PAYMENT HOOKS (called by the payment ledger)
    # ========================================================================

    def record_period_paid(self, agreement: Agreement, period: int, now: BlockHeight, final: bool) -> Agreement:
        """
        Commit a paid period; on the final period close the agreement as COMPLETED.

        Funds must already have moved. The caller guarantees `period` is
        exactly last_paid_period + 1.
        """
        if period != agreement.last_paid_period + 1:
            raise RuntimeError(
                f"Agreement {agreement.id}: period {period} does not follow {agreement.last_paid_period}"
            )
        updated = replace(agreement, last_paid_period=period)
        if final:
            return self._close(updated, AgreementState.COMPLETED, now)
        self._agreements[agreement.id] = updated
        return updated

    # ========================================================================
    # INTERNAL
    # ========================================================================

    def _close(
        self,
        agreement: Agreement,
        state: AgreementState,
        now: BlockHeight,
        terminated_by: Optional[Identity] = None,
    ) -> Agreement:
        """Move to a terminal state, mark escrow released and unbind the property."""
        closed = replace(
            agreement,
            state=state,
            deposit_released=True,
            closed_at=now,
            terminated_by=terminated_by,
        )
        self._agreements[agreement.id] = closed
        self.registry.unbind(agreement.property_id)
        return closed
