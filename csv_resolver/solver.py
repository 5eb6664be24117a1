"""
Resolution engine.

The initial pass treats every candidate as structural, pairs quotes greedily
and lays out rows. Rows whose field count differs from the target are grouped
into regions, and only candidates inside a region are reconsidered. Each
region is searched depth-first one cell at a time: a cell either ends at a
later separator (everything in between becomes literal) or, when it starts on
an opening quote, ends on a matching closing quote. Complete assignments are
scored by the summed column heterogeneity, then by how many candidates they
treat as structural; the lowest score wins and the first one found wins ties.

Search effort is bounded by a SearchBudget shared across all regions of one
parse. A searched cell swallows at most MAX_CELL_SEPARATORS literal
separators, so the cost of one move does not depend on the region's size.

A lone short row with no assignment of its own may still continue into the
row after it, but only across the newline between them: every other
separator of both rows stays structural.
"""

from __future__ import annotations

import logging
from bisect import bisect_left
from dataclasses import dataclass, field
from time import perf_counter
from typing import List, Optional, Tuple

from .candidates import CandidateSet
from .cells import iter_row_spans
from .classes import CLASS_COUNT, COMMA, DQUOTE, SemanticClass
from .constraints import derive_constraints, iter_quote_pairs
from .errors import (
    BUDGET_EXHAUSTED,
    NOT_ENOUGH_COLUMNS,
    SHAPE_MISMATCH,
    CsvAmbiguity,
    CsvError,
    CsvInvalid,
    Position,
)
from .mask import Mask
from .rules import (
    DEFAULT_SEARCH_MOVES,
    DEFAULT_SEARCH_SECONDS,
    HETEROGENEITY_EPSILON,
    MAX_CELL_SEPARATORS,
)
from .solution import CellSpan, RegionFailure, Solution
from .stats import ColumnStats

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchBudget:
    """Upper bound on search effort; None disables a limit."""

    max_moves: Optional[int] = DEFAULT_SEARCH_MOVES
    max_seconds: Optional[float] = DEFAULT_SEARCH_SECONDS

    def __post_init__(self) -> None:
        if self.max_moves is not None and self.max_moves < 0:
            raise ValueError(f"max_moves must be >= 0, got {self.max_moves}")
        if self.max_seconds is not None and self.max_seconds < 0:
            raise ValueError(f"max_seconds must be >= 0, got {self.max_seconds}")


@dataclass(frozen=True)
class ResolveOptions:
    fixed_column_count: Optional[int] = None
    search_budget: SearchBudget = field(default_factory=SearchBudget)
    # the first row is a header: it is emitted but kept out of the column statistics
    header: bool = True
    # when set, only this column may contain unescaped delimiters
    absorbing_column: Optional[int] = None

    def __post_init__(self) -> None:
        if self.fixed_column_count is not None and self.fixed_column_count < 1:
            raise ValueError(f"fixed_column_count must be >= 1, got {self.fixed_column_count}")
        if self.absorbing_column is not None:
            if self.absorbing_column < 0:
                raise ValueError(f"absorbing_column must be >= 0, got {self.absorbing_column}")
            if self.fixed_column_count is not None and self.absorbing_column >= self.fixed_column_count:
                raise ValueError("absorbing_column must be smaller than fixed_column_count")


class _Clock:
    def __init__(self, budget: SearchBudget):
        self.budget = budget
        self.moves = 0
        self.exhausted = False
        self._deadline = None if budget.max_seconds is None else perf_counter() + budget.max_seconds

    def spend(self) -> bool:
        if self.exhausted:
            return False
        if self.budget.max_moves is not None and self.moves >= self.budget.max_moves:
            self.exhausted = True
        elif self._deadline is not None and perf_counter() > self._deadline:
            self.exhausted = True
        else:
            self.moves += 1
        return not self.exhausted


@dataclass(frozen=True)
class _Option:
    span: CellSpan
    rank: Optional[int]  # separator ending the cell, None at the end of the buffer
    terminates_row: bool
    open_rank: Optional[int] = None
    close_rank: Optional[int] = None

    @property
    def weight(self) -> int:
        return (self.rank is not None) + (2 if self.span.quoted else 0)


@dataclass
class _Frame:
    start: int
    column: int
    options: List[_Option]
    index: int = 0
    applied: Optional[_Option] = None
    # (parent path, (column, applied option)); shared with the frames above it
    path: Optional[tuple] = None


@dataclass
class _Bounds:
    start: int
    end: int
    end_rank: Optional[int]
    lo: int
    hi: int


@dataclass
class _SearchResult:
    best: Optional[List[Tuple[int, _Option]]]
    exhausted: bool
    score: Optional[float] = None


class Resolver:
    def __init__(
        self,
        raw: bytes,
        delimiter: int = COMMA,
        quote: int = DQUOTE,
        options: Optional[ResolveOptions] = None,
    ):
        self.raw = bytes(raw)
        self.options = options or ResolveOptions()
        self.candidates = CandidateSet.build(self.raw, delimiter, quote)
        self.constraints = derive_constraints(self.candidates)
        self._clock = _Clock(self.options.search_budget)

    def solve(self) -> Solution:
        started = perf_counter()
        solution = self._initial_solution()
        rows = list(iter_row_spans(self.candidates, solution.delimiter_valid, solution.quote_pairs()))
        if not rows:
            solution.diagnostics = self._diagnostics(started, 0, 0, [])
            return solution

        column_count = self.options.fixed_column_count or len(rows[0])
        solution.column_count = column_count
        absorbing = self.options.absorbing_column
        if absorbing is not None and absorbing >= column_count:
            raise ValueError("absorbing_column must be smaller than the column count")

        for index, row in enumerate(rows):
            if self._seeds_stats(index, row, column_count):
                self._add_row(solution.stats, row)

        line = 0
        i = 0
        regions = 0
        repaired: List[int] = []
        while i < len(rows):
            if len(rows[i]) == column_count:
                line += 1
                i += 1
                continue
            j = i
            while j < len(rows) and len(rows[j]) != column_count:
                j += 1
            regions += 1
            i, produced, ok = self._resolve_region(solution, rows, i, j, line)
            if ok:
                repaired.append(line)
            line += produced

        solution.diagnostics = self._diagnostics(started, len(rows), regions, repaired)
        return solution

    def _diagnostics(self, started: float, rows: int, regions: int, repaired: List[int]) -> dict:
        return {
            "initial_rows": rows,
            "regions": regions,
            "regions_repaired": len(repaired),
            "repaired_lines": repaired,
            "moves": self._clock.moves,
            "budget_exhausted": self._clock.exhausted,
            "runtime_ms": round((perf_counter() - started) * 1000, 3),
        }

    def _initial_solution(self) -> Solution:
        cands = self.candidates
        delimiter_valid = Mask(len(cands.separators), fill=True)
        quote_valid = Mask(len(cands.quotes))
        for open_offset, close_offset in iter_quote_pairs(
            cands, self.constraints, Mask(len(cands.quotes), fill=True)
        ):
            quote_valid.set(cands.quote_rank(open_offset))
            quote_valid.set(cands.quote_rank(close_offset))
            delimiter_valid.clear_range(
                cands.first_separator_at_or_after(open_offset + 1),
                cands.first_separator_at_or_after(close_offset),
            )
        return Solution(
            raw=self.raw,
            candidates=cands,
            constraints=self.constraints,
            column_count=self.options.fixed_column_count,
            delimiter_valid=delimiter_valid,
            quote_valid=quote_valid,
            stats=ColumnStats(cands.delimiter, cands.quote),
        )

    def _seeds_stats(self, index: int, row: List[CellSpan], column_count: int) -> bool:
        return len(row) == column_count and not (index == 0 and self.options.header)

    def _content(self, span: CellSpan) -> bytes:
        return self.raw[span.content_start:span.content_end]

    def _add_row(self, stats: ColumnStats, row: List[CellSpan]) -> None:
        for column, span in enumerate(row):
            stats.add(column, self._content(span))

    def _remove_row(self, stats: ColumnStats, row: List[CellSpan]) -> None:
        for column, span in enumerate(row):
            stats.remove(column, self._content(span))

    def _resolve_region(
        self,
        solution: Solution,
        rows: List[List[CellSpan]],
        i: int,
        j: int,
        line: int,
    ) -> Tuple[int, int, bool]:
        """Search rows[i:j]; returns (next row index, output rows produced, repaired)."""
        column_count = solution.column_count
        bounds = self._bounds(rows[i][0].start, rows[j - 1][-1].end)
        logger.debug(
            "searching rows %d-%d (bytes %d-%d) for %d columns",
            i, j - 1, bounds.start, bounds.end, column_count,
        )
        result = self._search(solution.stats, bounds, column_count)
        if result.best is not None:
            if result.exhausted:
                logger.warning(
                    "search budget exhausted at line %d; keeping best assignment found (score %.6f)",
                    line, result.score,
                )
            produced = self._apply(solution, bounds, result.best)
            return j, produced, True

        error: CsvError
        if result.exhausted:
            error = CsvAmbiguity(Position(line, len(rows[i])), BUDGET_EXHAUSTED)
        elif i == j - 1 and self._joins_next(rows, j, column_count):
            self._join_next(solution, rows, j)
            logger.debug("joined row %d with row %d across one literal newline", i, j)
            return j + 1, 1, True
        else:
            cause = NOT_ENOUGH_COLUMNS if len(rows[i]) < column_count else SHAPE_MISMATCH
            error = CsvInvalid(Position(line, column_count), cause)

        logger.warning("could not resolve rows %d-%d: %s", i, j - 1, error)
        solution.failures.append(RegionFailure(rows[i][0].start, rows[j - 1][-1].end, error))
        return j, j - i, False

    def _joins_next(self, rows: List[List[CellSpan]], j: int, column_count: int) -> bool:
        """
        True when the short row rows[j - 1] and the row after it form exactly
        one row once the newline between them is read as literal data.

        Every other separator of both rows stays structural.
        """
        if j >= len(rows):
            return False
        short, following = rows[j - 1], rows[j]
        return (
            not self._is_blank(short)
            and not short[-1].quoted
            and not following[0].quoted
            and len(short) + len(following) - 1 == column_count
        )

    def _join_next(self, solution: Solution, rows: List[List[CellSpan]], j: int) -> None:
        short, following = rows[j - 1], rows[j]
        solution.delimiter_valid.set(self.candidates.separator_rank(short[-1].end), False)
        if self._seeds_stats(j, following, solution.column_count):
            self._remove_row(solution.stats, following)
        joined = short[:-1] + [CellSpan(short[-1].start, following[0].end)] + following[1:]
        if self._seeds_stats(j - 1, joined, solution.column_count):
            self._add_row(solution.stats, joined)

    def _is_blank(self, row: List[CellSpan]) -> bool:
        return len(row) == 1 and row[0].start == row[0].end

    def _bounds(self, start: int, end: int) -> _Bounds:
        cands = self.candidates
        end_rank = cands.separator_rank(end) if end < cands.length else None
        return _Bounds(
            start=start,
            end=end,
            end_rank=end_rank,
            lo=cands.first_separator_at_or_after(start),
            hi=len(cands.separators) if end_rank is None else end_rank + 1,
        )

    def _search(self, stats: ColumnStats, bounds: _Bounds, column_count: int) -> _SearchResult:
        best_path: Optional[tuple] = None
        best_key: Optional[Tuple[float, int]] = None
        weight = 0
        stack = [_Frame(bounds.start, 0, self._options(stats, bounds.start, 0, bounds, column_count))]

        while stack:
            frame = stack[-1]
            if frame.applied is not None:
                stats.remove(frame.column, self._content(frame.applied.span))
                weight -= frame.applied.weight
                frame.applied = None
            if frame.index >= len(frame.options):
                stack.pop()
                continue
            if not self._clock.spend():
                break
            option = frame.options[frame.index]
            frame.index += 1
            stats.add(frame.column, self._content(option.span))
            weight += option.weight
            frame.applied = option
            frame.path = (stack[-2].path if len(stack) > 1 else None, (frame.column, option))

            if option.terminates_row and option.span.end == bounds.end:
                score = stats.total_heterogeneity()
                key = (round(score, 9), weight)
                if best_key is None or key < best_key:
                    best_key = key
                    best_path = frame.path
                if score <= HETEROGENEITY_EPSILON:
                    break
                continue

            if option.terminates_row:
                start, column = self.candidates.separator_end(option.rank), 0
            else:
                start, column = option.span.end + 1, frame.column + 1
            stack.append(_Frame(start, column, self._options(stats, start, column, bounds, column_count)))

        for frame in stack:
            if frame.applied is not None:
                stats.remove(frame.column, self._content(frame.applied.span))

        return _SearchResult(
            best=None if best_path is None else _unwind(best_path),
            exhausted=self._clock.exhausted,
            score=None if best_key is None else best_key[0],
        )

    def _options(
        self,
        stats: ColumnStats,
        start: int,
        column: int,
        bounds: _Bounds,
        column_count: int,
    ) -> List[_Option]:
        """Ways to end the cell that starts at `start`, best first."""
        cands = self.candidates
        last = column == column_count - 1
        absorbing = self.options.absorbing_column
        restricted = absorbing is not None and column != absorbing

        def fits(rank: int) -> bool:
            # enough delimiters must remain for the rest of this row, or the next one
            after = cands.delimiters_between(rank + 1, bounds.hi)
            if last:
                if cands.separator_kinds[rank] is not SemanticClass.NEWLINE:
                    return False
                return rank == bounds.end_rank or after >= column_count - 1
            return cands.separator_kinds[rank] is SemanticClass.DELIMITER and after >= column_count - 2 - column

        scored: List[Tuple[float, int, int, _Option]] = []
        base = stats.heterogeneity(column)

        def offer(option: _Option, counts: List[int]) -> None:
            delta = stats.heterogeneity_with(column, counts) - base
            scored.append((round(delta, 12), option.span.quoted, option.span.end, option))

        # unquoted: everything up to the chosen separator becomes literal
        first = cands.first_separator_at_or_after(start, bounds.lo, bounds.hi)
        stop = min(bounds.hi, first + MAX_CELL_SEPARATORS + 1)
        running = [0] * CLASS_COUNT
        cursor = start
        blocked = False
        for rank in range(first, stop):
            offset = cands.separators[rank]
            _accumulate(running, stats.class_counts(self.raw[cursor:offset]))
            cursor = offset
            if fits(rank):
                offer(_Option(CellSpan(start, offset), rank, last), running)
            if restricted and cands.separator_kinds[rank] is SemanticClass.DELIMITER:
                blocked = True
                break
        if last and bounds.end_rank is None and not blocked and bounds.hi - first <= MAX_CELL_SEPARATORS:
            _accumulate(running, stats.class_counts(self.raw[cursor:cands.length]))
            offer(_Option(CellSpan(start, cands.length), None, True), running)

        # quoted: a can-open quote here paired with a later can-close quote
        open_rank = cands.quote_rank(start)
        if open_rank is not None and self.constraints.can_open[open_rank]:
            running = [0] * CLASS_COUNT
            cursor = start + 1
            for close_rank in range(open_rank + 1, len(cands.quotes)):
                close = cands.quotes[close_rank]
                if close >= bounds.end:
                    break
                if cands.first_separator_at_or_after(close, first, bounds.hi) - first > MAX_CELL_SEPARATORS:
                    break
                if not self.constraints.can_close[close_rank]:
                    continue
                _accumulate(running, stats.class_counts(self.raw[cursor:close]))
                cursor = close
                span = CellSpan(start, close + 1, quoted=True)
                if close + 1 == cands.length:
                    if last:
                        offer(_Option(span, None, True, open_rank, close_rank), running)
                    continue
                rank = cands.separator_rank(close + 1)
                if rank is not None and rank < bounds.hi and fits(rank):
                    offer(_Option(span, rank, last, open_rank, close_rank), running)

        scored.sort(key=lambda item: item[:3])
        return [item[3] for item in scored]

    def _apply(self, solution: Solution, bounds: _Bounds, best: List[Tuple[int, _Option]]) -> int:
        cands = self.candidates
        solution.delimiter_valid.clear_range(bounds.lo, bounds.hi)
        solution.quote_valid.clear_range(
            bisect_left(cands.quotes, bounds.start),
            bisect_left(cands.quotes, bounds.end),
        )
        produced = 0
        for column, option in best:
            solution.stats.add(column, self._content(option.span))
            if option.rank is not None:
                solution.delimiter_valid.set(option.rank)
            if option.span.quoted:
                solution.quote_valid.set(option.open_rank)
                solution.quote_valid.set(option.close_rank)
            produced += option.terminates_row
        return produced


def _accumulate(total: List[int], counts: List[int]) -> None:
    for cls, n in enumerate(counts):
        total[cls] += n


def _unwind(path: Optional[tuple]) -> List[Tuple[int, _Option]]:
    moves: List[Tuple[int, _Option]] = []
    while path is not None:
        path, move = path
        moves.append(move)
    moves.reverse()
    return moves
