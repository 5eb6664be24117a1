from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Position:
    """Zero-based output row and a column number attached to a failure."""

    line: int
    column: int


class CsvError(Exception):
    """Base class for every failure surfaced by the resolver and tokenizer."""

    kind = "error"

    def __init__(self, position: Position | None, cause: str):
        self.position = position
        self.cause = cause
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.position is None:
            return f"{self.kind}: {self.cause}"
        return f"{self.kind} (line {self.position.line}, column {self.position.column}): {self.cause}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CsvError):
            return NotImplemented
        return (
            type(self) is type(other)
            and self.position == other.position
            and self.cause == other.cause
        )

    def __hash__(self) -> int:
        return hash((type(self), self.position, self.cause))


class CsvInvalid(CsvError):
    """Row shape cannot be reconciled with the expected column count."""

    kind = "invalid"


class CsvAmbiguity(CsvError):
    """The search budget ran out before any shape-valid assignment was found."""

    kind = "ambiguous"


class CsvIOError(CsvError):
    """Failure of the underlying byte or line source, wrapped unchanged."""

    kind = "io"

    def __init__(self, cause: str):
        super().__init__(None, cause)


NOT_ENOUGH_COLUMNS = "Not enough columns. There may be an unescaped newline in a field."
SHAPE_MISMATCH = "Row shape cannot be reconciled with the expected column count."
BUDGET_EXHAUSTED = "Search budget exhausted before a consistent interpretation was found."
