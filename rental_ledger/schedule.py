"""
schedule.py - Billing period arithmetic

Pure functions over block heights. An agreement window [start, end) is cut
into consecutive periods of period_length blocks; the last period may be
shorter. Period indices start at 0; period numbers (index + 1) are what
Agreement.last_paid_period stores, so 0 can mean "nothing paid".

    start                                                      end
      |---- period 1 ----|---- period 2 ----|---- period 3 --|
      index 0             index 1            index 2
"""

from __future__ import annotations

from .core import BlockHeight


def _check_length(period_length: int) -> None:
    if period_length <= 0:
        raise ValueError(f"period_length must be positive, got {period_length}")


def total_periods(start_block: BlockHeight, end_block: BlockHeight, period_length: int) -> int:
    """
    Number of billing periods in [start_block, end_block).

    ceil((end - start) / period_length); a trailing partial period counts.
    """
    _check_length(period_length)
    if end_block <= start_block:
        return 0
    return -(-(end_block - start_block) // period_length)


def period_index(now: BlockHeight, start_block: BlockHeight, period_length: int) -> int:
    """
    0-based index of the period containing now.

    floor((now - start) / period_length). Negative before the window opens.
    """
    _check_length(period_length)
    return (now - start_block) // period_length


def period_number(now: BlockHeight, start_block: BlockHeight, period_length: int) -> int:
    """1-based number of the period containing now (<= 0 before start)."""
    return period_index(now, start_block, period_length) + 1


def period_start_block(start_block: BlockHeight, number: int, period_length: int) -> BlockHeight:
    """First block of the 1-based period `number`."""
    _check_length(period_length)
    if number < 1:
        raise ValueError(f"period number must be >= 1, got {number}")
    return start_block + (number - 1) * period_length


def period_end_block(
    start_block: BlockHeight,
    end_block: BlockHeight,
    number: int,
    period_length: int,
) -> BlockHeight:
    """Exclusive end of the 1-based period `number`, capped at end_block."""
    return min(period_start_block(start_block, number, period_length) + period_length, end_block)


def opened_periods(
    now: BlockHeight,
    start_block: BlockHeight,
    end_block: BlockHeight,
    period_length: int,
    prepayment_blocks: int = 0,
) -> int:
    """
    How many periods are payable at `now`.

    A period becomes payable prepayment_blocks before it opens. The result is
    clamped to [0, total_periods].
    """
    count = period_number(now + prepayment_blocks, start_block, period_length)
    return max(0, min(count, total_periods(start_block, end_block, period_length)))
