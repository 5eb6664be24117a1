"""
Candidate locations for structural bytes.

A candidate is a byte offset that might be a field separator, a row
terminator or a quote boundary, or might just be literal data. They are
collected once per parse; which ones are structural is decided later.
"""

from __future__ import annotations

from bisect import bisect_left
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Tuple

from .classes import CR, LF, SemanticClass, class_table


@dataclass(frozen=True)
class CandidateSet:
    delimiter: int
    quote: int
    length: int
    separators: Tuple[int, ...]
    separator_kinds: Tuple[SemanticClass, ...]
    separator_widths: Tuple[int, ...]
    quotes: Tuple[int, ...]
    # every delimiter/terminator byte offset, including the LF of a CR LF pair
    boundaries: FrozenSet[int] = field(repr=False)
    _separator_rank: Dict[int, int] = field(repr=False, compare=False)
    _quote_rank: Dict[int, int] = field(repr=False, compare=False)
    _delimiters_from: Tuple[int, ...] = field(repr=False, compare=False)

    @classmethod
    def build(cls, raw: bytes, delimiter: int, quote: int) -> "CandidateSet":
        if delimiter == quote:
            raise ValueError("delimiter and quote must differ")
        if delimiter in (CR, LF) or quote in (CR, LF):
            raise ValueError("delimiter and quote cannot be line terminators")

        table = class_table(delimiter, quote)
        length = len(raw)
        separators: List[int] = []
        kinds: List[SemanticClass] = []
        widths: List[int] = []
        boundaries = set()
        pending_quotes: List[int] = []

        i = 0
        while i < length:
            cls_ = table[raw[i]]
            if cls_ is SemanticClass.DELIMITER:
                separators.append(i)
                kinds.append(SemanticClass.DELIMITER)
                widths.append(1)
                boundaries.add(i)
            elif cls_ is SemanticClass.NEWLINE:
                width = 2 if raw[i] == CR and i + 1 < length and raw[i + 1] == LF else 1
                separators.append(i)
                kinds.append(SemanticClass.NEWLINE)
                widths.append(width)
                boundaries.update(range(i, i + width))
                i += width
                continue
            elif cls_ is SemanticClass.QUOTE:
                pending_quotes.append(i)
            i += 1

        # a quote glued to ordinary data on both sides can never be structural
        quotes = tuple(
            q
            for q in pending_quotes
            if q == 0 or q == length - 1 or (q - 1) in boundaries or (q + 1) in boundaries
        )

        delimiters_from = [0] * (len(separators) + 1)
        for rank in range(len(separators) - 1, -1, -1):
            delimiters_from[rank] = delimiters_from[rank + 1] + (kinds[rank] is SemanticClass.DELIMITER)

        return cls(
            delimiter=delimiter,
            quote=quote,
            length=length,
            separators=tuple(separators),
            separator_kinds=tuple(kinds),
            separator_widths=tuple(widths),
            quotes=quotes,
            boundaries=frozenset(boundaries),
            _separator_rank={offset: rank for rank, offset in enumerate(separators)},
            _quote_rank={offset: rank for rank, offset in enumerate(quotes)},
            _delimiters_from=tuple(delimiters_from),
        )

    def is_boundary(self, offset: int) -> bool:
        """True for delimiter/terminator bytes and the virtual delimiters just outside the buffer."""
        return offset < 0 or offset >= self.length or offset in self.boundaries

    def separator_rank(self, offset: int) -> Optional[int]:
        return self._separator_rank.get(offset)

    def quote_rank(self, offset: int) -> Optional[int]:
        return self._quote_rank.get(offset)

    def first_separator_at_or_after(self, offset: int, lo: int = 0, hi: Optional[int] = None) -> int:
        return bisect_left(self.separators, offset, lo, len(self.separators) if hi is None else hi)

    def delimiters_between(self, start_rank: int, stop_rank: int) -> int:
        """Number of delimiter-kind separators with rank in [start_rank, stop_rank)."""
        if stop_rank <= start_rank:
            return 0
        return self._delimiters_from[start_rank] - self._delimiters_from[stop_rank]

    def separator_end(self, rank: int) -> int:
        return self.separators[rank] + self.separator_widths[rank]
