from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .candidates import CandidateSet
from .constraints import QuoteConstraints, iter_quote_pairs
from .errors import CsvError
from .mask import Mask
from .stats import ColumnStats


@dataclass(frozen=True)
class CellSpan:
    """Cell bytes raw[start:end]; a quoted cell includes its two quote bytes."""

    start: int
    end: int
    quoted: bool = False

    @property
    def content_start(self) -> int:
        return self.start + 1 if self.quoted else self.start

    @property
    def content_end(self) -> int:
        return self.end - 1 if self.quoted else self.end


@dataclass(frozen=True)
class RegionFailure:
    start: int
    end: int
    error: CsvError


@dataclass
class Solution:
    """
    Resolved state of one parse.

    Created by the resolver's initial pass, mutated while regions are searched
    and read by the cell extractor once solve() returns.
    """

    raw: bytes
    candidates: CandidateSet
    constraints: QuoteConstraints
    column_count: Optional[int]
    delimiter_valid: Mask
    quote_valid: Mask
    stats: ColumnStats
    failures: List[RegionFailure] = field(default_factory=list)
    diagnostics: Dict[str, object] = field(default_factory=dict)

    @property
    def delimiter(self) -> int:
        return self.candidates.delimiter

    @property
    def quote(self) -> int:
        return self.candidates.quote

    def quote_pairs(self) -> Dict[int, int]:
        return dict(iter_quote_pairs(self.candidates, self.constraints, self.quote_valid))

    def structural_count(self) -> int:
        return self.delimiter_valid.count() + self.quote_valid.count()
