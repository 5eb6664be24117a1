"""
Resolution entry points.

Responsibilities:
- accept delimiter/quote as str, bytes or int and validate them
- run the resolver over a fully read buffer
- expose rows as a lazy sequence of cell bytes
- build the API response envelope (decoded rows + report)
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

from charset_normalizer import from_bytes

from .cells import iter_rows
from .errors import CsvError
from .rules import DEFAULT_DELIMITER, DEFAULT_QUOTE
from .solution import Solution
from .solver import ResolveOptions, Resolver

logger = logging.getLogger(__name__)

ByteLike = Union[str, bytes, int]

_UTF8_BOM = b"\xef\xbb\xbf"


def as_byte(value: ByteLike, name: str = "value") -> int:
    if isinstance(value, int):
        if not 0 <= value <= 255:
            raise ValueError(f"{name} must be a single byte, got {value!r}")
        return value
    encoded = value.encode("utf-8") if isinstance(value, str) else bytes(value)
    if len(encoded) != 1:
        raise ValueError(f"{name} must be exactly one byte, got {value!r}")
    return encoded[0]


def resolve(
    raw: bytes,
    delimiter: ByteLike = DEFAULT_DELIMITER,
    quote: ByteLike = DEFAULT_QUOTE,
    options: Optional[ResolveOptions] = None,
) -> Solution:
    return Resolver(raw, as_byte(delimiter, "delimiter"), as_byte(quote, "quote"), options).solve()


def resolve_rows(
    raw: bytes,
    delimiter: ByteLike = DEFAULT_DELIMITER,
    quote: ByteLike = DEFAULT_QUOTE,
    options: Optional[ResolveOptions] = None,
    on_error: Optional[Callable[[CsvError], None]] = None,
) -> Iterator[List[bytes]]:
    """
    Resolve raw into rows of cell bytes.

    Rows before a failure are yielded normally. At the failing row the error is
    raised, unless on_error is given, in which case it is called and the rows
    of the failed region are skipped.
    """
    return iter_rows(resolve(raw, delimiter, quote, options), on_error)


def detect_encoding(raw: bytes) -> str:
    match = from_bytes(raw).best()
    return match.encoding if match is not None else "utf-8"


def resolve_csv_bytes(
    raw: bytes,
    delimiter: ByteLike = DEFAULT_DELIMITER,
    quote: ByteLike = DEFAULT_QUOTE,
    options: Optional[ResolveOptions] = None,
) -> Dict[str, Any]:
    """
    Resolve an uploaded file.
    Returns a dict matching the API's response envelope.
    """
    bom = raw.startswith(_UTF8_BOM)
    if bom:
        raw = raw[len(_UTF8_BOM):]

    encoding = "utf-8" if bom else detect_encoding(raw)
    solution = resolve(raw, delimiter, quote, options)

    errors: List[dict] = []

    def collect(error: CsvError) -> None:
        errors.append({
            "row": error.position.line if error.position else None,
            "column": error.position.column if error.position else None,
            "issue": error.kind,
            "value": error.cause,
            "action": "skipped_rows",
        })

    rows = [
        [cell.decode(encoding, errors="replace") for cell in row]
        for row in iter_rows(solution, on_error=collect)
    ]

    warnings: List[dict] = [
        {
            "row": line,
            "column": None,
            "issue": "ambiguous_structure",
            "value": None,
            "action": "resolved_by_heterogeneity",
        }
        for line in solution.diagnostics.get("repaired_lines", [])
    ]
    if solution.diagnostics.get("budget_exhausted"):
        warnings.append({
            "row": None,
            "column": None,
            "issue": "search_budget_exhausted",
            "value": str(solution.diagnostics.get("moves")),
            "action": "kept_best_assignment",
        })
    logger.info(
        "resolved %d rows (%d repaired regions, %d errors)",
        len(rows), solution.diagnostics.get("regions_repaired", 0), len(errors),
    )

    return {
        "rows": rows,
        "report": {
            "summary": {
                "rows": len(rows),
                "columns": solution.column_count,
                "warnings": len(warnings),
                "errors": len(errors),
            },
            "resolution": {
                "encoding": {
                    "detected": encoding,
                    "bom_stripped": bom,
                    "notes": "Cells are decoded for display only; resolution runs on raw bytes.",
                },
                "delimiter": chr(solution.delimiter),
                "quote": chr(solution.quote),
                "column_count": solution.column_count,
                "column_heterogeneity": [
                    round(solution.stats.heterogeneity(column), 6)
                    for column in range(solution.stats.column_count)
                ],
                "diagnostics": dict(solution.diagnostics),
            },
            "warnings": warnings,
            "errors": errors,
        },
    }
