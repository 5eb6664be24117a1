"""
Line-at-a-time tokenizing for input that is already well formed.

These are the deterministic, cheap paths. Prefer them over the resolver when
the input is known to have no unescaped newlines: they are easy to reason
about and never guess.
"""

from __future__ import annotations

from typing import Callable, Iterable, Iterator, List, Optional

from .errors import NOT_ENOUGH_COLUMNS, CsvError, CsvInvalid, CsvIOError, Position
from .rules import DEFAULT_DELIMITER, DEFAULT_QUOTE


def tokenize_line(line: str, delimiter: str = DEFAULT_DELIMITER, quote: str = DEFAULT_QUOTE) -> List[str]:
    """Split one line; a doubled quote inside a quoted field is a literal quote."""
    row: List[str] = []
    field: List[str] = []
    within_quotes = False
    i = 0
    n = len(line)
    while i < n:
        ch = line[i]
        if ch == quote:
            if within_quotes and i + 1 < n and line[i + 1] == quote:
                field.append(quote)
                i += 1
            else:
                within_quotes = not within_quotes
        elif ch == delimiter and not within_quotes:
            row.append("".join(field))
            field = []
        else:
            field.append(ch)
        i += 1
    row.append("".join(field))
    return row


def _lines(source: Iterable[str]) -> Iterator[str]:
    iterator = iter(source)
    while True:
        try:
            line = next(iterator)
        except StopIteration:
            return
        except (OSError, UnicodeDecodeError) as exc:
            raise CsvIOError(str(exc)) from exc
        yield line.rstrip("\r\n")


def stream_valid_csv(
    source: Iterable[str],
    delimiter: str = DEFAULT_DELIMITER,
    quote: str = DEFAULT_QUOTE,
) -> Iterator[List[str]]:
    """Read valid CSV one line at a time from any iterable of text lines."""
    for line in _lines(source):
        yield tokenize_line(line, delimiter, quote)


def repair_row(
    row: List[str],
    delimiter: str,
    invalid_column_index: int,
    expected_column_count: int,
    line: int = 0,
) -> List[str]:
    """
    Merge the excess fields of an overlong row into one column.

    The fields at invalid_column_index and after it are joined back together
    with the delimiter until the row has expected_column_count fields. A row
    with too few fields cannot be repaired this way and raises CsvInvalid.
    """
    apparent = len(row)
    if apparent < expected_column_count:
        raise CsvInvalid(Position(line, expected_column_count), NOT_ENOUGH_COLUMNS)
    if apparent == expected_column_count:
        return row
    excess = apparent - expected_column_count
    merged = delimiter.join(row[invalid_column_index:invalid_column_index + excess + 1])
    return row[:invalid_column_index] + [merged] + row[invalid_column_index + excess + 1:]


def stream_csv_with_unescaped_delimiters(
    source: Iterable[str],
    delimiter: str,
    quote: str,
    invalid_column_index: int,
    expected_column_count: int,
    on_error: Optional[Callable[[CsvError], None]] = None,
) -> Iterator[List[str]]:
    """
    Read CSV whose only defect is unescaped delimiters in one known column.

    This requires that there are no unexpected newlines. With both unescaped
    delimiters and unexpected newlines the parse is ambiguous; use the
    resolver instead. A row that cannot be repaired is raised, or handed to
    on_error and skipped.
    """
    if not 0 <= invalid_column_index < expected_column_count:
        raise ValueError("invalid_column_index must be within the expected columns")
    for line, row in enumerate(stream_valid_csv(source, delimiter, quote)):
        try:
            repaired = repair_row(row, delimiter, invalid_column_index, expected_column_count, line)
        except CsvInvalid as exc:
            if on_error is None:
                raise
            on_error(exc)
            continue
        yield repaired
