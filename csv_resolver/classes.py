"""
Byte classification.

Every byte belongs to exactly one semantic class. The resolver compares how
evenly these classes are mixed inside each column to judge whether a column
was split correctly.
"""

from __future__ import annotations

import string
from enum import IntEnum
from functools import lru_cache
from typing import Tuple

COMMA = ord(",")
DQUOTE = ord('"')
CR = ord("\r")
LF = ord("\n")
TAB = ord("\t")

_DIGITS = frozenset(string.digits.encode("ascii"))
_LETTERS = frozenset(string.ascii_letters.encode("ascii"))
_PUNCTUATION = frozenset(string.punctuation.encode("ascii"))
# ASCII whitespace minus tab and the line terminators, which have classes of their own
_WHITESPACE = frozenset(b" \x0c")


class SemanticClass(IntEnum):
    DIGIT = 0
    LETTER = 1
    PUNCTUATION = 2
    WHITESPACE = 3
    QUOTE = 4
    DELIMITER = 5
    TAB = 6
    NEWLINE = 7
    OTHER = 8


CLASS_COUNT = len(SemanticClass)


def classify(byte: int, delimiter: int = COMMA, quote: int = DQUOTE) -> SemanticClass:
    if byte == delimiter:
        return SemanticClass.DELIMITER
    if byte == quote:
        return SemanticClass.QUOTE
    if byte == TAB:
        return SemanticClass.TAB
    if byte in (CR, LF):
        return SemanticClass.NEWLINE
    if byte in _DIGITS:
        return SemanticClass.DIGIT
    if byte in _LETTERS:
        return SemanticClass.LETTER
    if byte in _PUNCTUATION:
        return SemanticClass.PUNCTUATION
    if byte in _WHITESPACE:
        return SemanticClass.WHITESPACE
    return SemanticClass.OTHER


@lru_cache(maxsize=64)
def class_table(delimiter: int = COMMA, quote: int = DQUOTE) -> Tuple[SemanticClass, ...]:
    """Lookup table indexed by byte value."""
    return tuple(classify(byte, delimiter, quote) for byte in range(256))
