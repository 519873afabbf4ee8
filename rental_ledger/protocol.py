"""
protocol.py - RentalProtocol, the public call surface

RentalProtocol owns every piece of mutable state (id counters, property table,
agreement table, payment log, event log) and is the only entry point that
mutates it. Each public call:

    1. takes the protocol lock (one mutual-exclusion boundary for everything)
    2. reads caller and block height from its CallContext
    3. validates, moves funds atomically, commits records
    4. returns a CallResult: ok(value) or err(kind)

Typed RentalError exceptions raised by the engines become failed results;
anything else is a bug and propagates.

Example:
    funds = FundsLedger()
    funds.register_wallet("tenant")
    funds.mint("tenant", 50_000_000)
    protocol = RentalProtocol(funds, RentalConfig(period_length=100))
    owner, tenant = CallContext("owner", 1), CallContext("tenant", 1)

    property_id = protocol.register_property(owner, "Loft", "2BR", 2_000_000, 4_000_000).unwrap()
    agreement_id = protocol.create_agreement(tenant, property_id, 100, 1000).unwrap()
"""

from __future__ import annotations
from typing import Any, Callable, Dict, List, Optional
import inspect
import logging
import threading

from .agreements import AgreementEngine
from .clock import BlockClock
from .config import RentalConfig
from .core import (
    Agreement, AgreementId, BlockHeight, CallContext, CallResult, EventKind,
    Identity, InvalidInput, PaymentRecord, Property, PropertyId, RentalError,
    RentalEvent,
)
from .funds import FundsLedger, FundsTransfer
from .ids import IdAllocator
from .payments import PaymentLedger, PaymentStatus
from .policy import DepositPolicy
from .registry import PropertyRegistry

logger = logging.getLogger(__name__)


class RentalProtocol:
    """
    Rental agreement ledger: properties, agreements and rent payments.

    Thread Safety:
        Every public method runs under a single re-entrant lock, so the id
        counters, the one-active-agreement binding check and the payment
        period check are race-free when called from several threads.

    Args:
        funds: Fund-transfer collaborator (a FundsLedger by default)
        config: Protocol configuration (defaults to RentalConfig())
        clock: Optional block clock used by context() and read queries
        deposit_policy: Override of config.deposit_policy
    """

    CALLS = (
        "register-property",
        "create-agreement",
        "pay-monthly-rent",
        "terminate-agreement",
        "deactivate-property",
        "activate-property",
    )

    def __init__(
        self,
        funds: Optional[FundsTransfer] = None,
        config: Optional[RentalConfig] = None,
        clock: Optional[BlockClock] = None,
        deposit_policy: Optional[DepositPolicy] = None,
    ):
        self.config = config or RentalConfig()
        self.funds: FundsTransfer = funds if funds is not None else FundsLedger()
        self.clock = clock
        self.ids = IdAllocator()
        self.registry = PropertyRegistry(self.ids, self.config)
        self.agreements = AgreementEngine(
            self.registry, self.ids, self.funds, self.config, deposit_policy
        )
        self.payments = PaymentLedger(self.agreements, self.funds, self.config)
        self.events: List[RentalEvent] = []
        self._lock = threading.RLock()

        if isinstance(self.funds, FundsLedger):
            self.funds.register_wallet(self.config.escrow_wallet)

    # ========================================================================
    # CONTEXT
    # ========================================================================

    def context(self, caller: Identity) -> CallContext:
        """
        Build a CallContext for `caller` at the clock's current height.

        Raises:
            RuntimeError: If the protocol was created without a clock
        """
        if self.clock is None:
            raise RuntimeError("RentalProtocol has no clock; pass CallContext explicitly")
        return CallContext(caller, self.clock.block_height)

    def _now(self, now: Optional[BlockHeight]) -> BlockHeight:
        if now is not None:
            return now
        if self.clock is None:
            raise RuntimeError("RentalProtocol has no clock; pass the block height explicitly")
        return self.clock.block_height

    # ========================================================================
    # MUTATING CALLS
    # ========================================================================

    def register_property(
        self,
        ctx: CallContext,
        title: str,
        description: str,
        monthly_rent: int,
        security_deposit: int,
    ) -> CallResult:
        """Register a property owned by the caller. ok(property_id)."""
        def run() -> PropertyId:
            prop = self.registry.register_property(ctx, title, description, monthly_rent, security_deposit)
            self._emit(EventKind.PROPERTY_REGISTERED, ctx, prop.id, {
                'monthly_rent': prop.monthly_rent,
                'security_deposit': prop.security_deposit,
            })
            return prop.id
        return self._run("register-property", ctx, run)

    def create_agreement(
        self,
        ctx: CallContext,
        property_id: PropertyId,
        start_block: BlockHeight,
        end_block: BlockHeight,
    ) -> CallResult:
        """Rent a property as the caller, escrowing its deposit. ok(agreement_id)."""
        def run() -> AgreementId:
            agreement = self.agreements.create_agreement(ctx, property_id, start_block, end_block)
            self._emit(EventKind.AGREEMENT_CREATED, ctx, agreement.id, {
                'property_id': property_id,
                'start_block': start_block,
                'end_block': end_block,
                'deposit': agreement.security_deposit,
            })
            return agreement.id
        return self._run("create-agreement", ctx, run)

    def pay_monthly_rent(self, ctx: CallContext, agreement_id: AgreementId) -> CallResult:
        """Pay the next due period of an agreement. ok(True)."""
        def run() -> bool:
            record = self.payments.pay_monthly_rent(ctx, agreement_id)
            self._emit(EventKind.RENT_PAID, ctx, agreement_id, {
                'period': record.period,
                'amount': record.amount,
            })
            agreement = self.agreements.require(agreement_id)
            if not agreement.is_active:
                self._emit(EventKind.AGREEMENT_COMPLETED, ctx, agreement_id, {
                    'last_paid_period': agreement.last_paid_period,
                })
                self._emit(EventKind.DEPOSIT_RELEASED, ctx, agreement_id, {
                    'refund_to_tenant': agreement.security_deposit,
                    'forfeit_to_owner': 0,
                })
            return True
        return self._run("pay-monthly-rent", ctx, run)

    def terminate_agreement(self, ctx: CallContext, agreement_id: AgreementId) -> CallResult:
        """Terminate an Active agreement as owner or tenant. ok(None)."""
        def run() -> None:
            agreement, disposition = self.agreements.terminate_agreement(ctx, agreement_id)
            self._emit(EventKind.AGREEMENT_TERMINATED, ctx, agreement_id, {
                'last_paid_period': agreement.last_paid_period,
            })
            self._emit(EventKind.DEPOSIT_RELEASED, ctx, agreement_id, {
                'refund_to_tenant': disposition.refund_to_tenant,
                'forfeit_to_owner': disposition.forfeit_to_owner,
            })
            return None
        return self._run("terminate-agreement", ctx, run)

    def deactivate_property(self, ctx: CallContext, property_id: PropertyId) -> CallResult:
        """Stop a property from accepting new agreements. Owner only. ok(None)."""
        def run() -> None:
            self.registry.set_active(ctx, property_id, False)
            self._emit(EventKind.PROPERTY_DEACTIVATED, ctx, property_id)
            return None
        return self._run("deactivate-property", ctx, run)

    def activate_property(self, ctx: CallContext, property_id: PropertyId) -> CallResult:
        """Reopen a property for new agreements. Owner only. ok(None)."""
        def run() -> None:
            self.registry.set_active(ctx, property_id, True)
            self._emit(EventKind.PROPERTY_ACTIVATED, ctx, property_id)
            return None
        return self._run("activate-property", ctx, run)

    def call(self, name: str, ctx: CallContext, *args: Any) -> CallResult:
        """
        Dispatch a mutating call by name ("pay-monthly-rent" or "pay_monthly_rent").

        Unknown names and wrong argument counts come back as INVALID_INPUT.
        """
        canonical = name.replace("_", "-")
        if canonical not in self.CALLS:
            return CallResult.failure(InvalidInput(f"Unknown call {name!r}"))
        method = getattr(self, canonical.replace("-", "_"))
        try:
            inspect.signature(method).bind(ctx, *args)
        except TypeError as e:
            return CallResult.failure(InvalidInput(f"Bad arguments for {canonical}: {e}"))
        return method(ctx, *args)

    # ========================================================================
    # READ-ONLY CALLS
    # ========================================================================

    def get_property(self, property_id: PropertyId) -> Optional[Property]:
        with self._lock:
            return self.registry.get_property(property_id)

    def get_agreement(self, agreement_id: AgreementId) -> Optional[Agreement]:
        with self._lock:
            return self.agreements.get_agreement(agreement_id)

    def active_agreement_for(self, property_id: PropertyId) -> Optional[Agreement]:
        """The Active agreement bound to a property, if any."""
        with self._lock:
            agreement_id = self.registry.active_agreement_id(property_id)
            if agreement_id is None:
                return None
            return self.agreements.get_agreement(agreement_id)

    def properties_of(self, owner: Identity) -> List[Property]:
        with self._lock:
            return self.registry.properties_of(owner)

    def agreements_for_tenant(self, tenant: Identity) -> List[Agreement]:
        with self._lock:
            return self.agreements.agreements_for_tenant(tenant)

    def payment_history(self, agreement_id: AgreementId) -> List[PaymentRecord]:
        with self._lock:
            return self.payments.payment_history(agreement_id)

    def payment_status(self, agreement_id: AgreementId, now: Optional[BlockHeight] = None) -> Optional[PaymentStatus]:
        """Payment position at `now` (clock height by default); None for unknown agreements."""
        with self._lock:
            if self.agreements.get_agreement(agreement_id) is None:
                return None
            return self.payments.payment_status(agreement_id, self._now(now))

    def events_for(self, subject_id: int, kinds: Optional[List[EventKind]] = None) -> List[RentalEvent]:
        """Events about one property or agreement id, optionally filtered by kind."""
        with self._lock:
            return [
                e for e in self.events
                if e.subject_id == subject_id and (kinds is None or e.kind in kinds)
            ]

    # ========================================================================
    # INTERNAL
    # ========================================================================

    def _run(self, name: str, ctx: CallContext, fn: Callable[[], Any]) -> CallResult:
        with self._lock:
            try:
                value = fn()
            except RentalError as e:
                logger.info("%s by %s at %d rejected: %s (%s)",
                            name, ctx.caller, ctx.block_height, e.kind.value, e)
                return CallResult.failure(e)
            return CallResult.success(value)

    def _emit(
        self,
        kind: EventKind,
        ctx: CallContext,
        subject_id: int,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.events.append(RentalEvent(
            kind=kind,
            block_height=ctx.block_height,
            sequence=len(self.events),
            subject_id=subject_id,
            actor=ctx.caller,
            data=data or {},
        ))
