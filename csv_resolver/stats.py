"""
Per-column content statistics.

The resolver minimises the summed heterogeneity of all columns, treating a
column made of one kind of content as more likely to be split correctly.
Histograms are updated incrementally so that trying one more cell costs the
length of that cell rather than a rescan of the buffer.
"""

from __future__ import annotations

from collections import Counter
from typing import Dict, List, Sequence

from .classes import CLASS_COUNT, COMMA, DQUOTE, SemanticClass, class_table


class ColumnStats:
    def __init__(self, delimiter: int = COMMA, quote: int = DQUOTE):
        self._table = class_table(delimiter, quote)
        self._counts: List[List[int]] = []

    @property
    def column_count(self) -> int:
        return len(self._counts)

    def class_counts(self, span: bytes) -> List[int]:
        """Histogram of a byte span, without recording it."""
        counts = [0] * CLASS_COUNT
        for byte, n in Counter(span).items():
            counts[self._table[byte]] += n
        return counts

    def _column(self, column: int) -> List[int]:
        while len(self._counts) <= column:
            self._counts.append([0] * CLASS_COUNT)
        return self._counts[column]

    def add(self, column: int, span: bytes) -> None:
        row = self._column(column)
        for byte, n in Counter(span).items():
            row[self._table[byte]] += n

    def remove(self, column: int, span: bytes) -> None:
        """
        Forget a span previously passed to add().

        Removing bytes that were never added means the caller's bookkeeping is
        broken; nothing is changed and ValueError is raised.
        """
        delta = self.class_counts(span)
        row = self._column(column)
        for cls, n in enumerate(delta):
            if n > row[cls]:
                raise ValueError(
                    f"column {column}: cannot remove {n} {SemanticClass(cls).name} bytes, only {row[cls]} recorded"
                )
        for cls, n in enumerate(delta):
            row[cls] -= n

    def counts(self, column: int) -> Dict[SemanticClass, int]:
        if column >= len(self._counts):
            return {}
        return {SemanticClass(cls): n for cls, n in enumerate(self._counts[column]) if n}

    def heterogeneity(self, column: int) -> float:
        if column >= len(self._counts):
            return 0.0
        return _gini(self._counts[column])

    def heterogeneity_with(self, column: int, extra: Sequence[int]) -> float:
        """Score the column would have after adding a histogram from class_counts()."""
        if column >= len(self._counts):
            return _gini(extra)
        return _gini([a + b for a, b in zip(self._counts[column], extra)])

    def total_heterogeneity(self) -> float:
        return sum(_gini(row) for row in self._counts)

    def copy(self) -> "ColumnStats":
        other = ColumnStats.__new__(ColumnStats)
        other._table = self._table
        other._counts = [list(row) for row in self._counts]
        return other


def _gini(counts: Sequence[int]) -> float:
    # 0.0 when one class holds every byte, approaching 1.0 as classes mix evenly
    total = sum(counts)
    if total == 0:
        return 0.0
    return 1.0 - sum((n / total) ** 2 for n in counts)
