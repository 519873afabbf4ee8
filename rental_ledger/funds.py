"""
funds.py - Atomic fund transfers between wallets

The rental engines never touch balances. They hand a list of moves to a
FundsTransfer collaborator, which applies all of them or none of them.
FundsLedger is the in-memory implementation used by the protocol and tests.

Key properties:
    - Atomic: every move in an execute() call succeeds together or fails together
    - Idempotent: a batch with the same intent_id is never applied twice
    - Conservative: balances never go negative, total supply only changes via mint()
    - Always logs: every applied batch is recorded in transfer_log
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Protocol, Sequence, Set, Tuple, runtime_checkable
import hashlib
import logging

from .core import BlockHeight, Identity, TransferFailed

logger = logging.getLogger(__name__)


# ============================================================================
# TYPES
# ============================================================================

class TransferResult(Enum):
    """
    Outcome of a transfer batch.

    APPLIED: All moves were validated and applied.
    ALREADY_APPLIED: The batch's intent_id was processed before (no-op).
    REJECTED: Validation failed; no balance changed.
    """
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    REJECTED = "rejected"


@dataclass(frozen=True, slots=True)
class Move:
    """
    A single transfer of value between two wallets.

    Attributes:
        amount: Positive integer amount in the smallest currency unit.
        source: Wallet debited.
        dest: Wallet credited.
        reference: Business reference (e.g. "agreement-1/rent/3").
    """
    amount: int
    source: Identity
    dest: Identity
    reference: str

    def __post_init__(self):
        if not self.source or not self.source.strip():
            raise ValueError("Move source cannot be empty")
        if not self.dest or not self.dest.strip():
            raise ValueError("Move dest cannot be empty")
        if not self.reference or not self.reference.strip():
            raise ValueError("Move reference cannot be empty")
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise ValueError(f"Move amount must be int, got {type(self.amount)}")
        if self.amount <= 0:
            raise ValueError(f"Move amount must be positive, got {self.amount}")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    def __repr__(self) -> str:
        return f"Move({self.amount}: {self.source}→{self.dest} [{self.reference}])"


def compute_intent_id(moves: Sequence[Move], reference: str) -> str:
    """
    Deterministic content hash of a transfer batch.

    Same reference and same moves (in any order) always hash identically.
    """
    parts = [f"ref:{reference}"]
    for m in sorted(moves, key=lambda m: (m.reference, m.source, m.dest, m.amount)):
        parts.append(f"move:{m.amount}|{m.source}|{m.dest}|{m.reference}")
    return hashlib.sha256("|".join(parts).encode()).hexdigest()[:16]


@dataclass(frozen=True, slots=True)
class TransferRecord:
    """
    Executed, immutable record of an applied batch.

    Attributes:
        moves: Moves applied together
        reference: Batch reference supplied by the caller
        intent_id: Content hash (for idempotency)
        sequence_number: Monotonic within the ledger
        block_height: Height at which the batch was applied
    """
    moves: Tuple[Move, ...]
    reference: str
    intent_id: str
    sequence_number: int
    block_height: BlockHeight

    def __repr__(self) -> str:
        moves = ", ".join(repr(m) for m in self.moves)
        return f"TransferRecord(#{self.sequence_number} {self.reference} @{self.block_height}: {moves})"


@runtime_checkable
class FundsTransfer(Protocol):
    """
    Fund-transfer primitive the rental engines call into.

    execute() must be atomic: on REJECTED no balance may have changed.
    """

    def execute(
        self,
        moves: Sequence[Move],
        reference: str,
        block_height: BlockHeight = 0,
    ) -> TransferResult:
        ...

    def last_rejection(self) -> str:
        """Reason for the most recent REJECTED result."""
        ...


# ============================================================================
# IN-MEMORY LEDGER
# ============================================================================

class FundsLedger:
    """
    Integer-balance wallet ledger with atomic batch transfers.

    Thread Safety:
        Not thread-safe on its own. RentalProtocol serializes every call that
        reaches it.

    Example:
        funds = FundsLedger()
        funds.register_wallet("alice")
        funds.register_wallet("bob")
        funds.mint("alice", 1000)
        funds.execute([Move(100, "alice", "bob", "payment_001")], "payment_001")
    """

    def __init__(self, name: str = "funds", verbose: bool = False):
        """
        Create a funds ledger.

        Args:
            name: Ledger identifier
            verbose: Print every applied or rejected batch (default: False)
        """
        self.name = name
        self.verbose = verbose
        self.balances: Dict[Identity, int] = defaultdict(int)
        self.registered_wallets: Set[Identity] = set()
        self.frozen_wallets: Set[Identity] = set()
        self.seen_intent_ids: Set[str] = set()
        self.transfer_log: List[TransferRecord] = []
        self._next_sequence: int = 0
        self._minted: int = 0
        self._last_rejection: str = ""

    # ========================================================================
    # READ-ONLY
    # ========================================================================

    def get_balance(self, wallet_id: Identity) -> int:
        """Return the wallet balance (0 for unknown wallets)."""
        return self.balances.get(wallet_id, 0)

    def is_registered(self, wallet_id: Identity) -> bool:
        return wallet_id in self.registered_wallets

    def list_wallets(self) -> Set[Identity]:
        return self.registered_wallets.copy()

    def total_supply(self) -> int:
        """Sum of all balances, summed in sorted wallet order."""
        return sum(self.balances.get(w, 0) for w in sorted(self.registered_wallets))

    def verify_conservation(self) -> bool:
        """True when total supply equals everything ever minted."""
        return self.total_supply() == self._minted

    def last_rejection(self) -> str:
        return self._last_rejection

    # ========================================================================
    # REGISTRATION (Mutating)
    # ========================================================================

    def register_wallet(self, wallet_id: Identity) -> Identity:
        """
        Register a wallet. Registering an existing wallet is a no-op.

        Returns:
            The wallet_id that was registered
        """
        if not wallet_id or not wallet_id.strip():
            raise ValueError("wallet_id cannot be empty")
        if wallet_id not in self.registered_wallets:
            self.registered_wallets.add(wallet_id)
            self.balances[wallet_id] = 0
        return wallet_id

    def mint(self, wallet_id: Identity, amount: int) -> None:
        """
        Issue new funds into a wallet (simulation funding).

        Raises:
            ValueError: If amount is not a positive int or wallet is unknown
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValueError(f"mint amount must be a positive int, got {amount!r}")
        if wallet_id not in self.registered_wallets:
            raise ValueError(f"Wallet {wallet_id} not registered")
        self.balances[wallet_id] += amount
        self._minted += amount

    def freeze(self, wallet_id: Identity) -> None:
        """Block a wallet from sending funds (transfer authorization failure)."""
        self.frozen_wallets.add(wallet_id)

    def unfreeze(self, wallet_id: Identity) -> None:
        self.frozen_wallets.discard(wallet_id)

    # ========================================================================
    # TRANSFER EXECUTION (Mutating)
    # ========================================================================

    def execute(
        self,
        moves: Sequence[Move],
        reference: str,
        block_height: BlockHeight = 0,
    ) -> TransferResult:
        """
        Apply a batch of moves atomically.

        Validation covers wallet registration, frozen senders and the
        non-negative balance constraint on the net effect of the batch.

        Args:
            moves: Moves to apply together
            reference: Business reference of the batch (part of the intent hash)
            block_height: Height recorded on the transfer record

        Returns:
            TransferResult.APPLIED if successful
            TransferResult.ALREADY_APPLIED if the batch was already applied
            TransferResult.REJECTED if validation failed
        """
        if not moves:
            return TransferResult.APPLIED

        intent_id = compute_intent_id(moves, reference)
        if intent_id in self.seen_intent_ids:
            if self.verbose:
                print(f"⚠️  ALREADY_APPLIED: {reference} intent_id={intent_id}")
            return TransferResult.ALREADY_APPLIED

        valid, reason = self._validate(moves)
        if not valid:
            self._last_rejection = reason
            logger.warning("Transfer %s rejected: %s", reference, reason)
            if self.verbose:
                print(f"✗ REJECTED: {reference}: {reason}")
            return TransferResult.REJECTED

        for move in moves:
            self.balances[move.source] -= move.amount
            self.balances[move.dest] += move.amount

        record = TransferRecord(
            moves=tuple(moves),
            reference=reference,
            intent_id=intent_id,
            sequence_number=self._next_sequence,
            block_height=block_height,
        )
        self._next_sequence += 1
        self.transfer_log.append(record)
        self.seen_intent_ids.add(intent_id)
        self._last_rejection = ""

        if self.verbose:
            print(f"✓ APPLIED: {record!r}")
        return TransferResult.APPLIED

    def _validate(self, moves: Sequence[Move]) -> Tuple[bool, str]:
        """
        Validate a batch against registration, freezes and balances.

        Returns:
            Tuple of (success: bool, reason: str)
        """
        for move in moves:
            if move.source not in self.registered_wallets:
                return False, f"wallet not registered: {move.source}"
            if move.dest not in self.registered_wallets:
                return False, f"wallet not registered: {move.dest}"
            if move.source in self.frozen_wallets:
                return False, f"wallet frozen: {move.source}"

        # Net effect per wallet so chained moves inside one batch are judged together
        net: Dict[Identity, int] = defaultdict(int)
        for move in moves:
            net[move.source] -= move.amount
            net[move.dest] += move.amount

        for wallet in sorted(net):
            proposed = self.balances[wallet] + net[wallet]
            if proposed < 0:
                return False, f"{wallet}: insufficient funds ({self.balances[wallet]} + {net[wallet]} < 0)"

        return True, ""

    def clone(self) -> FundsLedger:
        """Create a fully independent copy of this ledger."""
        cloned = FundsLedger(self.name, verbose=self.verbose)
        cloned.balances = defaultdict(int, self.balances)
        cloned.registered_wallets = self.registered_wallets.copy()
        cloned.frozen_wallets = self.frozen_wallets.copy()
        cloned.seen_intent_ids = self.seen_intent_ids.copy()
        cloned.transfer_log = list(self.transfer_log)
        cloned._next_sequence = self._next_sequence
        cloned._minted = self._minted
        cloned._last_rejection = self._last_rejection
        return cloned

    def __repr__(self) -> str:
        return f"FundsLedger({self.name!r}, wallets={len(self.registered_wallets)}, transfers={len(self.transfer_log)})"


def transfer_or_raise(
    funds: FundsTransfer,
    moves: Sequence[Move],
    reference: str,
    block_height: BlockHeight = 0,
) -> None:
    """
    Execute a batch and raise TransferFailed unless it was freshly applied.

    ALREADY_APPLIED counts as a failure: the rental engines only submit a
    batch once per business event, so a duplicate means the caller's view of
    the funds ledger is out of sync with its own records.
    """
    result = funds.execute(moves, reference, block_height)
    if result == TransferResult.APPLIED:
        return
    if result == TransferResult.ALREADY_APPLIED:
        raise TransferFailed(f"Transfer {reference} was already applied")
    raise TransferFailed(f"Transfer {reference} rejected: {funds.last_rejection()}")
