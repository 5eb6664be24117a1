"""
Cell extraction from a resolved Solution.

The buffer is walked once, splitting at structural separators. Quoted cells
lose their enclosing quotes and have doubled quotes collapsed. The sequences
returned here are single-pass generators.
"""

from __future__ import annotations

import logging
from bisect import bisect_right
from typing import Callable, Dict, Iterator, List, Optional

from .candidates import CandidateSet
from .classes import SemanticClass
from .errors import CsvError
from .mask import Mask
from .solution import CellSpan, Solution

logger = logging.getLogger(__name__)


def iter_row_spans(
    candidates: CandidateSet,
    delimiter_valid: Mask,
    pairs: Dict[int, int],
) -> Iterator[List[CellSpan]]:
    """
    Lay out rows of cell spans.

    A separator is structural when its delimiter_valid bit is set and it does
    not fall strictly inside a quote pair. A terminator at the very end of the
    buffer does not start an extra empty row.
    """
    opens = sorted(pairs)
    length = candidates.length
    row: List[CellSpan] = []
    start = 0

    for rank, offset in enumerate(candidates.separators):
        if not delimiter_valid[rank]:
            continue
        i = bisect_right(opens, offset) - 1
        if i >= 0 and offset < pairs[opens[i]]:
            continue
        row.append(_span(start, offset, pairs))
        start = candidates.separator_end(rank)
        if candidates.separator_kinds[rank] is SemanticClass.NEWLINE:
            yield row
            row = []

    if row or start < length:
        row.append(_span(start, length, pairs))
        yield row


def _span(start: int, end: int, pairs: Dict[int, int]) -> CellSpan:
    return CellSpan(start, end, quoted=end - start >= 2 and pairs.get(start) == end - 1)


def cell_bytes(raw: bytes, span: CellSpan, quote: int) -> bytes:
    content = raw[span.content_start:span.content_end]
    if span.quoted:
        q = bytes([quote])
        content = content.replace(q + q, q)
    return content


def iter_cells(solution: Solution) -> Iterator[bytes]:
    for row in iter_row_spans(solution.candidates, solution.delimiter_valid, solution.quote_pairs()):
        for span in row:
            yield cell_bytes(solution.raw, span, solution.quote)


def iter_rows(
    solution: Solution,
    on_error: Optional[Callable[[CsvError], None]] = None,
) -> Iterator[List[bytes]]:
    """
    Yield rows of cell bytes.

    At a region the resolver could not repair, the recorded error is raised,
    or passed to on_error and the region's rows are skipped.
    """
    failures = sorted(solution.failures, key=lambda f: f.start)
    failure_index = 0
    skip_until = -1

    for row in iter_row_spans(solution.candidates, solution.delimiter_valid, solution.quote_pairs()):
        row_start = row[0].start
        if row_start <= skip_until:
            continue
        while failure_index < len(failures) and failures[failure_index].end < row_start:
            failure_index += 1
        if failure_index < len(failures) and failures[failure_index].start <= row_start:
            failure = failures[failure_index]
            if on_error is None:
                raise failure.error
            logger.warning("skipping rows at bytes %d-%d: %s", failure.start, failure.end, failure.error)
            on_error(failure.error)
            skip_until = failure.end
            failure_index += 1
            continue
        yield [cell_bytes(solution.raw, span, solution.quote) for span in row]
