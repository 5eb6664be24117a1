"""
Deterministic resolution rules.

This file exists to make the tunable limits explicit and enforceable.
"""

DEFAULT_DELIMITER = ","
DEFAULT_QUOTE = '"'

# Search budget: moves are single cell decisions made by the resolver.
DEFAULT_SEARCH_MOVES = 100_000
DEFAULT_SEARCH_SECONDS = 5.0

# A region total at or below this is treated as a perfect fit and ends the search.
HETEROGENEITY_EPSILON = 1e-9

# Literal separators one searched cell may swallow; bounds the work done per move.
MAX_CELL_SEPARATORS = 32

ACCEPTED_SUFFIX = ".csv"
