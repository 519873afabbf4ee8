"""
rental_ledger - Rental Agreement Ledger

Properties, time-bounded rental agreements and monthly rent schedules, all
advancing on an external block clock.

Usage:
    from rental_ledger import RentalProtocol, RentalConfig, FundsLedger, CallContext

    funds = FundsLedger()
    funds.register_wallet("owner")
    funds.register_wallet("tenant")
    funds.mint("tenant", 50_000_000)

    protocol = RentalProtocol(funds, RentalConfig(period_length=100))
    property_id = protocol.register_property(
        CallContext("owner", 1), "Loft", "Two bedrooms", 2_000_000, 4_000_000
    ).unwrap()
    agreement_id = protocol.create_agreement(
        CallContext("tenant", 2), property_id, 100, 1000
    ).unwrap()
    protocol.pay_monthly_rent(CallContext("tenant", 100), agreement_id)
"""

# Core types
from .core import (
    Property,
    Agreement,
    AgreementState,
    PaymentRecord,
    RentalEvent,
    EventKind,
    CallContext,
    CallResult,
    ErrorKind,
    RentalError,
    InvalidInput,
    PropertyNotFound,
    AgreementNotFound,
    Unauthorized,
    SelfRentalNotAllowed,
    PropertyInactive,
    AgreementNotActive,
    InvalidWindow,
    TooEarly,
    AlreadyPaid,
    TransferFailed,
    PropertyAlreadyRented,
    ConfigurationError,
    ESCROW_WALLET,
    MAX_UINT,
    DEFAULT_PERIOD_LENGTH,
)

# Configuration and logging
from .config import RentalConfig
from .logging_config import setup_logging, get_logger, JsonFormatter

# Collaborators
from .clock import BlockClock, ManualBlockClock
from .funds import (
    FundsTransfer,
    FundsLedger,
    Move,
    TransferResult,
    TransferRecord,
    compute_intent_id,
    transfer_or_raise,
)

# Engines
from .ids import IdAllocator
from .registry import PropertyRegistry
from .agreements import AgreementEngine
from .payments import PaymentLedger, PaymentStatus
from .policy import (
    DepositDisposition,
    DepositPolicy,
    standard_policy,
    full_refund_policy,
    forfeit_policy,
    outstanding_periods,
    get_policy,
    POLICIES,
)
from .schedule import (
    total_periods,
    period_index,
    period_number,
    period_start_block,
    period_end_block,
    opened_periods,
)

# Protocol and chain driver
from .protocol import RentalProtocol
from .chain import Chain, Tx, Block, Receipt, GENESIS_HEIGHT

__all__ = [
    # Core
    'Property', 'Agreement', 'AgreementState', 'PaymentRecord', 'RentalEvent', 'EventKind',
    'CallContext', 'CallResult', 'ErrorKind',
    'RentalError', 'InvalidInput', 'PropertyNotFound', 'AgreementNotFound', 'Unauthorized',
    'SelfRentalNotAllowed', 'PropertyInactive', 'AgreementNotActive', 'InvalidWindow',
    'TooEarly', 'AlreadyPaid', 'TransferFailed', 'PropertyAlreadyRented', 'ConfigurationError',
    'ESCROW_WALLET', 'MAX_UINT', 'DEFAULT_PERIOD_LENGTH',
    # Config / logging
    'RentalConfig', 'setup_logging', 'get_logger', 'JsonFormatter',
    # Collaborators
    'BlockClock', 'ManualBlockClock',
    'FundsTransfer', 'FundsLedger', 'Move', 'TransferResult', 'TransferRecord',
    'compute_intent_id', 'transfer_or_raise',
    # Engines
    'IdAllocator', 'PropertyRegistry', 'AgreementEngine', 'PaymentLedger', 'PaymentStatus',
    'DepositDisposition', 'DepositPolicy', 'standard_policy', 'full_refund_policy',
    'forfeit_policy', 'outstanding_periods', 'get_policy', 'POLICIES',
    'total_periods', 'period_index', 'period_number', 'period_start_block',
    'period_end_block', 'opened_periods',
    # Protocol
    'RentalProtocol', 'Chain', 'Tx', 'Block', 'Receipt', 'GENESIS_HEIGHT',
]

__version__ = '1.0.0'
