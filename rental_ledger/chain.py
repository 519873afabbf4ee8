"""
chain.py - Deterministic block-by-block driver

Stands in for the ordering environment: calls are grouped into blocks, each
block advances the clock by one, and the calls inside a block run one after
another at that height, each fully applied before the next starts.

Execution order each mine_block():
1. Advance the clock to the next height
2. Execute each Tx in submission order at that height
3. Return a Block with one Receipt per Tx

Example:
    chain = Chain(accounts={"deployer": 100_000_000, "wallet_1": 100_000_000})
    block = chain.mine_block([
        Tx.call("register-property", ["Loft", "2BR", 2_000_000, 4_000_000], "deployer"),
    ])
    assert block.height == 2
    assert block.receipts[0].result.expect_ok() == 1
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .clock import ManualBlockClock
from .config import RentalConfig
from .core import BlockHeight, CallContext, CallResult, Identity
from .funds import FundsLedger
from .policy import DepositPolicy
from .protocol import RentalProtocol

GENESIS_HEIGHT = 1


@dataclass(frozen=True, slots=True)
class Tx:
    """A call submitted by `sender`."""
    method: str
    args: Tuple[Any, ...]
    sender: Identity

    @classmethod
    def call(cls, method: str, args: Sequence[Any], sender: Identity) -> Tx:
        return cls(method=method, args=tuple(args), sender=sender)


@dataclass(frozen=True, slots=True)
class Receipt:
    """Result of one Tx inside a mined block."""
    tx: Tx
    result: CallResult
    block_height: BlockHeight


@dataclass(frozen=True, slots=True)
class Block:
    """A mined block and the receipts of its transactions."""
    height: BlockHeight
    receipts: Tuple[Receipt, ...]


class Chain:
    """
    Simulated chain wrapping a RentalProtocol, its funds ledger and clock.

    Args:
        config: Protocol configuration
        accounts: Wallets to register and fund (identity -> starting balance)
        deposit_policy: Optional override of the configured deposit policy
        verbose: Print fund transfers as they apply
    """

    def __init__(
        self,
        config: Optional[RentalConfig] = None,
        accounts: Optional[Dict[Identity, int]] = None,
        deposit_policy: Optional[DepositPolicy] = None,
        verbose: bool = False,
    ):
        self.clock = ManualBlockClock(GENESIS_HEIGHT)
        self.funds = FundsLedger("chain", verbose=verbose)
        self.protocol = RentalProtocol(self.funds, config, self.clock, deposit_policy)
        self.blocks: List[Block] = []
        for identity, balance in (accounts or {}).items():
            self.add_account(identity, balance)

    @property
    def block_height(self) -> BlockHeight:
        return self.clock.block_height

    def add_account(self, identity: Identity, balance: int = 0) -> None:
        """Register a wallet and fund it with `balance`."""
        self.funds.register_wallet(identity)
        if balance > 0:
            self.funds.mint(identity, balance)

    def balance(self, identity: Identity) -> int:
        return self.funds.get_balance(identity)

    def mine_block(self, txs: Sequence[Tx]) -> Block:
        """Advance one block and execute `txs` in order at the new height."""
        height = self.clock.advance(1)
        receipts = []
        for tx in txs:
            ctx = CallContext(tx.sender, height)
            result = self.protocol.call(tx.method, ctx, *tx.args)
            receipts.append(Receipt(tx=tx, result=result, block_height=height))
        block = Block(height=height, receipts=tuple(receipts))
        self.blocks.append(block)
        return block

    def mine_empty_blocks(self, count: int) -> BlockHeight:
        """Advance `count` blocks with no transactions."""
        if count < 0:
            raise ValueError(f"count must be non-negative, got {count}")
        return self.clock.advance(count)

    def advance_to(self, height: BlockHeight) -> BlockHeight:
        """
        Mine empty blocks until the chain sits just below `height`, so the
        next mine_block() executes at exactly `height`.
        """
        target = height - 1
        if target < self.block_height:
            raise ValueError(f"Chain already at {self.block_height}, cannot reach {height}")
        return self.clock.advance_to(target)
