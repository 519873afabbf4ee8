"""
Core types for the rental agreement ledger.

This module provides the foundational data structures shared by every engine:
1. Constants and type aliases (identities, block heights, record ids)
2. Enums: AgreementState, ErrorKind, EventKind
3. Exceptions: RentalError and the typed errors returned to callers
4. Immutable records: Property, Agreement, PaymentRecord, RentalEvent
5. Call plumbing: CallContext (caller + clock) and CallResult (tagged outcome)

Records are frozen. Engines never mutate a record in place; they replace it
with dataclasses.replace().
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


# ============================================================================
# CONSTANTS
# ============================================================================

# Wallet that holds security deposits between agreement creation and close.
ESCROW_WALLET = "escrow"

# Largest amount a uint field can carry.
MAX_UINT = 2 ** 128 - 1

# Default billing period: ~30 days of 10-minute blocks.
DEFAULT_PERIOD_LENGTH = 4320

DEFAULT_MAX_TITLE_LENGTH = 100
DEFAULT_MAX_DESCRIPTION_LENGTH = 500

# Basis points denominator for penalty rates.
BPS_DENOMINATOR = 10_000


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Principal identity (an address or account name).
Identity = str

# Discrete clock value supplied by the execution environment.
BlockHeight = int

PropertyId = int
AgreementId = int


# ============================================================================
# ENUMS
# ============================================================================

class AgreementState(Enum):
    """
    Lifecycle state of an agreement.

    PENDING is never stored. It is reported by Agreement.phase() for an
    ACTIVE agreement whose window has not opened yet.
    """
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    TERMINATED = "terminated"

    @property
    def is_terminal(self) -> bool:
        return self in (AgreementState.COMPLETED, AgreementState.TERMINATED)


class ErrorKind(Enum):
    """Discriminator carried by every failed CallResult."""
    INVALID_INPUT = "invalid_input"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    INVALID_STATE = "invalid_state"
    INVALID_WINDOW = "invalid_window"
    ALREADY_PAID = "already_paid"
    TOO_EARLY = "too_early"
    TRANSFER_FAILED = "transfer_failed"
    PROPERTY_ALREADY_RENTED = "property_already_rented"
    CONFIGURATION = "configuration"


class EventKind(Enum):
    """Kinds of entries in the protocol event log."""
    PROPERTY_REGISTERED = "property_registered"
    PROPERTY_DEACTIVATED = "property_deactivated"
    PROPERTY_ACTIVATED = "property_activated"
    AGREEMENT_CREATED = "agreement_created"
    RENT_PAID = "rent_paid"
    AGREEMENT_COMPLETED = "agreement_completed"
    AGREEMENT_TERMINATED = "agreement_terminated"
    DEPOSIT_RELEASED = "deposit_released"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class RentalError(Exception):
    """Base exception for all rental ledger errors."""
    kind: ErrorKind = ErrorKind.INVALID_INPUT


class InvalidInput(RentalError):
    """Raised when call arguments are malformed or out of bounds."""
    kind = ErrorKind.INVALID_INPUT


class PropertyNotFound(RentalError):
    """Raised when a property id is unknown."""
    kind = ErrorKind.NOT_FOUND


class AgreementNotFound(RentalError):
    """Raised when an agreement id is unknown."""
    kind = ErrorKind.NOT_FOUND


class Unauthorized(RentalError):
    """Raised when the caller lacks the role the operation requires."""
    kind = ErrorKind.UNAUTHORIZED


class SelfRentalNotAllowed(Unauthorized):
    """Raised when a property owner tries to rent their own property."""


class PropertyInactive(RentalError):
    """Raised when a deactivated property is offered for a new agreement."""
    kind = ErrorKind.INVALID_STATE


class AgreementNotActive(RentalError):
    """Raised when an operation targets a Completed or Terminated agreement."""
    kind = ErrorKind.INVALID_STATE


class InvalidWindow(RentalError):
    """Raised when start >= end or the clock is outside the agreement window."""
    kind = ErrorKind.INVALID_WINDOW


class TooEarly(RentalError):
    """Raised when paying before the billing window has opened."""
    kind = ErrorKind.TOO_EARLY


class AlreadyPaid(RentalError):
    """Raised when every period opened so far has already been paid."""
    kind = ErrorKind.ALREADY_PAID


class TransferFailed(RentalError):
    """Raised when the funds collaborator rejects a transfer."""
    kind = ErrorKind.TRANSFER_FAILED


class PropertyAlreadyRented(RentalError):
    """Raised when a property is already bound to an Active agreement."""
    kind = ErrorKind.PROPERTY_ALREADY_RENTED


class ConfigurationError(RentalError):
    """Raised when configuration is invalid."""
    kind = ErrorKind.CONFIGURATION


# ============================================================================
# RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Property:
    """
    A rentable listing.

    Attributes:
        id: Sequential property id (starts at 1).
        owner: Identity that registered the property. Immutable.
        title: Short listing title.
        description: Listing description.
        monthly_rent: Rent per billing period, in the smallest currency unit.
        security_deposit: Deposit escrowed for the life of an agreement.
        active: True while the property accepts new agreements.
        registered_at: Block height of registration.
    """
    id: PropertyId
    owner: Identity
    title: str
    description: str
    monthly_rent: int
    security_deposit: int
    active: bool = True
    registered_at: BlockHeight = 0


@dataclass(frozen=True, slots=True)
class Agreement:
    """
    Binding record between a tenant and a property for a block window.

    Rent and deposit are snapshotted from the property at creation so the
    agreement is self-contained for payment and termination.

    Attributes:
        id: Sequential agreement id (independent of property ids).
        property_id: Lookup key of the rented property.
        tenant: Identity that created the agreement.
        owner: Property owner at creation time; receives rent.
        start_block: First block of the window (inclusive).
        end_block: End of the window (exclusive).
        monthly_rent: Rent per billing period.
        security_deposit: Escrowed deposit.
        state: ACTIVE, COMPLETED or TERMINATED.
        deposit_paid: True once the deposit is held in escrow.
        deposit_released: True once escrow has been paid out.
        last_paid_period: 1-based number of the last period paid, 0 = none.
        created_at: Block height of creation.
        closed_at: Block height of the terminal transition.
        terminated_by: Identity that terminated the agreement, if any.
    """
    id: AgreementId
    property_id: PropertyId
    tenant: Identity
    owner: Identity
    start_block: BlockHeight
    end_block: BlockHeight
    monthly_rent: int
    security_deposit: int
    state: AgreementState = AgreementState.ACTIVE
    deposit_paid: bool = False
    deposit_released: bool = False
    last_paid_period: int = 0
    created_at: BlockHeight = 0
    closed_at: Optional[BlockHeight] = None
    terminated_by: Optional[Identity] = None

    @property
    def is_active(self) -> bool:
        return self.state == AgreementState.ACTIVE

    def phase(self, now: BlockHeight) -> AgreementState:
        """Return the stored state, or PENDING for an Active agreement before its window."""
        if self.state == AgreementState.ACTIVE and now < self.start_block:
            return AgreementState.PENDING
        return self.state

    def is_party(self, identity: Identity) -> bool:
        return identity in (self.tenant, self.owner)


@dataclass(frozen=True, slots=True)
class PaymentRecord:
    """One recorded rent payment. Each (agreement_id, period) appears at most once."""
    agreement_id: AgreementId
    period: int
    amount: int
    paid_at: BlockHeight
    payer: Identity


@dataclass(frozen=True, slots=True)
class RentalEvent:
    """Audit log entry emitted for every successful mutation."""
    kind: EventKind
    block_height: BlockHeight
    sequence: int
    subject_id: int
    actor: Identity
    data: Dict[str, Any] = field(default_factory=dict)

    def __repr__(self) -> str:
        return f"RentalEvent(#{self.sequence} {self.kind.value} id={self.subject_id} @{self.block_height})"


# ============================================================================
# CALL PLUMBING
# ============================================================================

@dataclass(frozen=True, slots=True)
class CallContext:
    """
    Implicit environment of a call made explicit: who is calling and when.

    Attributes:
        caller: Identity submitting the call.
        block_height: Clock value read once for the whole call.
    """
    caller: Identity
    block_height: BlockHeight

    def __post_init__(self):
        if not self.caller or not self.caller.strip():
            raise ValueError("CallContext caller cannot be empty")
        if isinstance(self.block_height, bool) or not isinstance(self.block_height, int):
            raise ValueError(f"block_height must be int, got {type(self.block_height)}")
        if self.block_height < 0:
            raise ValueError(f"block_height must be non-negative, got {self.block_height}")


@dataclass(frozen=True, slots=True)
class CallResult:
    """
    Tagged outcome of a mutating call: ok(value) or err(kind).

    Attributes:
        ok: True when the call applied.
        value: Success payload (id, True or None).
        error: ErrorKind of the failure, None on success.
        message: Human-readable failure reason.
        exception: The typed exception behind a failure.
    """
    ok: bool
    value: Any = None
    error: Optional[ErrorKind] = None
    message: str = ""
    exception: Optional[RentalError] = None

    @classmethod
    def success(cls, value: Any = None) -> CallResult:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, exc: RentalError) -> CallResult:
        return cls(ok=False, error=exc.kind, message=str(exc), exception=exc)

    @property
    def is_err(self) -> bool:
        return not self.ok

    def unwrap(self) -> Any:
        """Return the success value or raise the typed error."""
        if self.ok:
            return self.value
        if self.exception is not None:
            raise self.exception
        raise RentalError(self.message)

    def expect_ok(self) -> Any:
        """Assert success and return the value (test helper)."""
        if not self.ok:
            raise AssertionError(f"expected ok, got err({self.error.value}): {self.message}")
        return self.value

    def expect_err(self, kind: ErrorKind) -> RentalError:
        """Assert failure of the given kind and return the exception (test helper)."""
        if self.ok:
            raise AssertionError(f"expected err({kind.value}), got ok({self.value!r})")
        if self.error != kind:
            raise AssertionError(f"expected err({kind.value}), got err({self.error.value}): {self.message}")
        return self.exception

    def __repr__(self) -> str:
        if self.ok:
            return f"ok({self.value!r})"
        return f"err({self.error.value}: {self.message})"
