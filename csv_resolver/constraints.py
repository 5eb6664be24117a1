"""
Structural eligibility of quote candidates.

A quote can only open a quoted field if it sits right after a delimiter, a
row terminator or the start of the buffer, and can only close one if it sits
right before a delimiter, a row terminator or the end of the buffer.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Tuple

from .candidates import CandidateSet
from .mask import Mask


@dataclass(frozen=True)
class QuoteConstraints:
    can_open: Mask
    can_close: Mask


def derive_constraints(candidates: CandidateSet) -> QuoteConstraints:
    count = len(candidates.quotes)
    can_open = Mask(count)
    can_close = Mask(count)

    for rank, offset in enumerate(candidates.quotes):
        # buffer edges behave like virtual delimiters at -1 and length
        if candidates.is_boundary(offset - 1):
            can_open.set(rank)
        if candidates.is_boundary(offset + 1):
            can_close.set(rank)

    # no span may close before anything could open it, or open with nothing left to close it
    first_open = can_open.first_one()
    if first_open is None:
        can_close.clear_range(0, count)
    else:
        can_close.clear_range(0, first_open)
    last_close = can_close.last_one()
    if last_close is None:
        can_open.clear_range(0, count)
    else:
        can_open.clear_range(last_close + 1, count)

    return QuoteConstraints(can_open=can_open, can_close=can_close)


def iter_quote_pairs(
    candidates: CandidateSet,
    constraints: QuoteConstraints,
    quote_valid: Mask,
) -> Iterator[Tuple[int, int]]:
    """
    Greedy left-to-right pairing of valid quotes into (open_offset, close_offset).

    An opening quote left without a closing partner is dropped.
    """
    ranks = iter(range(len(candidates.quotes)))
    while True:
        start = next(
            (r for r in ranks if quote_valid[r] and constraints.can_open[r]),
            None,
        )
        if start is None:
            return
        end = next(
            (r for r in ranks if quote_valid[r] and constraints.can_close[r]),
            None,
        )
        if end is None:
            return
        yield candidates.quotes[start], candidates.quotes[end]
