"""
clock.py - Block clock abstraction

Engines never read time on their own. The execution environment supplies the
current block height through a BlockClock, and every public call reads it
exactly once into its CallContext.
"""

from __future__ import annotations
from typing import Protocol, runtime_checkable

from .core import BlockHeight


@runtime_checkable
class BlockClock(Protocol):
    """Read-only source of the current block height."""

    @property
    def block_height(self) -> BlockHeight:
        """Return the current block height."""
        ...


class ManualBlockClock:
    """
    Deterministic clock advanced explicitly by the caller.

    Height can only move forward, never backward.
    """

    def __init__(self, initial_height: BlockHeight = 0):
        if initial_height < 0:
            raise ValueError(f"initial_height must be non-negative, got {initial_height}")
        self._height = initial_height

    @property
    def block_height(self) -> BlockHeight:
        return self._height

    def advance(self, blocks: int = 1) -> BlockHeight:
        """Advance by the given number of blocks and return the new height."""
        if blocks < 0:
            raise ValueError(f"Cannot move clock backwards by {blocks} blocks")
        self._height += blocks
        return self._height

    def advance_to(self, height: BlockHeight) -> BlockHeight:
        """
        Move the clock to an absolute height.

        Raises:
            ValueError: If height is below the current height
        """
        if height < self._height:
            raise ValueError(f"Cannot move clock backwards: {height} < {self._height}")
        self._height = height
        return self._height

    def __repr__(self) -> str:
        return f"ManualBlockClock(height={self._height})"
