import csv
import io
import time

import pytest

from csv_resolver.cells import iter_cells, iter_rows
from csv_resolver.errors import (
    BUDGET_EXHAUSTED,
    NOT_ENOUGH_COLUMNS,
    CsvAmbiguity,
    CsvInvalid,
    Position,
)
from csv_resolver.resolve import as_byte, resolve, resolve_rows
from csv_resolver.solver import ResolveOptions, SearchBudget
from csv_resolver.tokenizer import stream_valid_csv


def rows_of(raw: bytes, **options):
    return list(resolve_rows(raw, options=ResolveOptions(**options)))


# ── concrete scenarios ───────────────────────────────────────────────


def test_well_formed_fixed_columns():
    assert rows_of(b"a,b,c\n1,2,3\n4,5,6", fixed_column_count=3) == [
        [b"a", b"b", b"c"],
        [b"1", b"2", b"3"],
        [b"4", b"5", b"6"],
    ]


def test_excess_fields_go_to_absorbing_column():
    rows = rows_of(b"a,b,c\n1,2,3\n4,5,6,7,8,9", fixed_column_count=3, absorbing_column=2)
    assert rows[2] == [b"4", b"5", b"6,7,8,9"]


def test_excess_fields_without_absorbing_column_keep_row_shape():
    rows = rows_of(b"a,b,c\n1,2,3\n4,5,6,7,8,9", fixed_column_count=3)
    assert len(rows) == 3
    assert len(rows[2]) == 3
    assert b",".join(rows[2]) == b"4,5,6,7,8,9"


def test_short_last_row_is_invalid():
    rows = resolve_rows(b"a,b,c\n1,2,3\n4,5", options=ResolveOptions(fixed_column_count=3))
    assert next(rows) == [b"a", b"b", b"c"]
    assert next(rows) == [b"1", b"2", b"3"]
    with pytest.raises(CsvInvalid) as excinfo:
        next(rows)
    assert excinfo.value == CsvInvalid(Position(line=2, column=3), NOT_ENOUGH_COLUMNS)


# ── repairs ──────────────────────────────────────────────────────────


def test_unescaped_delimiter_resolved_by_heterogeneity():
    raw = b"id,name,score\n1,alice,90\n2,bob,85\n3,smith, jr,70\n"
    assert rows_of(raw)[-1] == [b"3", b"smith, jr", b"70"]


def test_unescaped_newline_is_joined_back():
    raw = b"id,name,score\n1,alice,90\n2,bob\nsmith,85\n3,carol,70\n"
    solution = resolve(raw)
    assert list(iter_rows(solution)) == [
        [b"id", b"name", b"score"],
        [b"1", b"alice", b"90"],
        [b"2", b"bob\nsmith", b"85"],
        [b"3", b"carol", b"70"],
    ]
    assert solution.diagnostics["regions_repaired"] == 1
    assert solution.diagnostics["repaired_lines"] == [2]


def test_unescaped_quotes_inside_quoted_field():
    raw = b'id,text,flag\n1,hello,y\n2,"say "hi", ok",n\n'
    assert rows_of(raw)[-1] == [b"2", b'say "hi", ok', b"n"]


def test_blank_line_is_reported_and_skippable():
    errors = []
    rows = list(resolve_rows(b"a,b\n\n1,2\n", on_error=errors.append))
    assert rows == [[b"a", b"b"], [b"1", b"2"]]
    assert errors == [CsvInvalid(Position(line=1, column=2), NOT_ENOUGH_COLUMNS)]


def test_short_row_keeps_following_row_intact():
    errors = []
    rows = list(resolve_rows(b"a,b,c\n1,2,3\n4,5\n10,11,12\n", on_error=errors.append))
    assert rows == [[b"a", b"b", b"c"], [b"1", b"2", b"3"], [b"10", b"11", b"12"]]
    assert errors == [CsvInvalid(Position(line=2, column=3), NOT_ENOUGH_COLUMNS)]


def test_short_row_raises_before_following_row():
    rows = resolve_rows(b"a,b,c\n1,2,3\n4,5\n10,11,12\n")
    assert next(rows) == [b"a", b"b", b"c"]
    assert next(rows) == [b"1", b"2", b"3"]
    with pytest.raises(CsvInvalid) as excinfo:
        next(rows)
    assert excinfo.value == CsvInvalid(Position(line=2, column=3), NOT_ENOUGH_COLUMNS)


def test_single_field_row_continues_into_next_row():
    solution = resolve(b"id,text\n1,alpha\nhello\nworld,2\n")
    assert list(iter_rows(solution)) == [
        [b"id", b"text"],
        [b"1", b"alpha"],
        [b"hello\nworld", b"2"],
    ]
    assert solution.diagnostics["repaired_lines"] == [2]


# ── quoting ──────────────────────────────────────────────────────────


def test_doubled_quote_extracts_to_single_quote():
    assert rows_of(b'a,b\n1,"x""y"\n') == [[b"a", b"b"], [b"1", b'x"y']]


def test_quoted_field_with_delimiter_and_newline():
    assert rows_of(b'a,b\n"1,\n2",3\n') == [[b"a", b"b"], [b"1,\n2", b"3"]]


def test_empty_quoted_field():
    assert rows_of(b'a,b,c\n1,"",3\n') == [[b"a", b"b", b"c"], [b"1", b"", b"3"]]


def test_quote_pairs_respect_constraints():
    solution = resolve(b'id,text,flag\n1,hello,y\n2,"say "hi", ok",n\n')
    cands = solution.candidates
    pairs = solution.quote_pairs()
    assert pairs
    for open_offset, close_offset in pairs.items():
        assert solution.constraints.can_open[cands.quote_rank(open_offset)]
        assert solution.constraints.can_close[cands.quote_rank(close_offset)]


# ── properties ───────────────────────────────────────────────────────


@pytest.mark.parametrize(
    "text",
    [
        "a,b,c\n1,2,3\n4,5,6",
        "name,note\nx,\"hello, world\"\ny,\"say \"\"hi\"\"\"\n",
        "a,b\n,\n1,\n",
        "k;v\n1;2\n",
    ],
)
def test_well_formed_input_matches_strict_tokenizer(text):
    delimiter = ";" if ";" in text else ","
    resolved = [[cell.decode() for cell in row] for row in resolve_rows(text.encode(), delimiter=delimiter)]
    assert resolved == list(stream_valid_csv(text.splitlines(), delimiter))


def test_resolution_is_idempotent():
    raw = b"id,name,score\n1,alice,90\n2,bob\nsmith,85\n3,smith, jr,70\n"
    first = rows_of(raw)

    out = io.StringIO(newline="")
    writer = csv.writer(out, lineterminator="\n")
    for row in first:
        writer.writerow([cell.decode() for cell in row])

    assert rows_of(out.getvalue().encode()) == first


def test_crlf_line_endings():
    assert rows_of(b"a,b\r\n1,2\r\n") == [[b"a", b"b"], [b"1", b"2"]]


def test_tab_delimiter():
    assert list(resolve_rows(b"a\tb\n1\t2", delimiter="\t")) == [[b"a", b"b"], [b"1", b"2"]]


def test_trailing_delimiter_yields_empty_cell():
    assert rows_of(b"a,b,c\n1,2,") == [[b"a", b"b", b"c"], [b"1", b"2", b""]]


def test_empty_input():
    assert rows_of(b"") == []


def test_iter_cells_is_flat():
    assert list(iter_cells(resolve(b"a,b\n1,2"))) == [b"a", b"b", b"1", b"2"]


# ── budget ───────────────────────────────────────────────────────────

PATHOLOGICAL = b"h1,h2,h3\n" + b",".join([b"x"] * 30) + b"\n"


def test_small_budget_keeps_best_assignment():
    solution = resolve(PATHOLOGICAL, options=ResolveOptions(search_budget=SearchBudget(max_moves=5)))
    rows = list(iter_rows(solution))
    assert len(rows[1]) == 3
    assert solution.diagnostics["budget_exhausted"] is True
    assert solution.diagnostics["moves"] == 5


@pytest.mark.parametrize("moves", [0, 2])
def test_budget_without_assignment_is_ambiguous(moves):
    rows = resolve_rows(PATHOLOGICAL, options=ResolveOptions(search_budget=SearchBudget(max_moves=moves)))
    assert next(rows) == [b"h1", b"h2", b"h3"]
    with pytest.raises(CsvAmbiguity) as excinfo:
        next(rows)
    assert excinfo.value == CsvAmbiguity(Position(line=1, column=30), BUDGET_EXHAUSTED)


def test_wall_clock_budget_terminates():
    options = ResolveOptions(search_budget=SearchBudget(max_moves=None, max_seconds=0.0))
    started = time.perf_counter()
    try:
        rows = list(resolve_rows(PATHOLOGICAL, options=options))
    except CsvAmbiguity as exc:
        assert exc.cause == BUDGET_EXHAUSTED
    else:
        assert all(len(row) == 3 for row in rows)
    assert time.perf_counter() - started < 2.0


def test_default_budget_has_a_time_limit():
    assert SearchBudget().max_seconds is not None


def stray_quote_file(n: int) -> bytes:
    # the two stray quotes pair up and fold most of the file into one long row
    rows = [b"h1,h2,h3"] + [b"%d,foo,%d" % (k, k) for k in range(n)]
    rows[2] = b'2,foo,"bar'
    rows[n - 10] = b'x",n'
    return b"\n".join(rows) + b"\n"


def test_move_cost_does_not_grow_with_region_size():
    errors = []
    options = ResolveOptions(search_budget=SearchBudget(max_moves=10_000, max_seconds=None))
    started = time.perf_counter()
    rows = list(resolve_rows(stray_quote_file(3000), options=options, on_error=errors.append))
    assert time.perf_counter() - started < 10.0
    assert all(len(row) == 3 for row in rows)
    assert all(isinstance(error, (CsvAmbiguity, CsvInvalid)) for error in errors)


def test_large_region_respects_wall_clock_budget():
    errors = []
    options = ResolveOptions(search_budget=SearchBudget(max_moves=None, max_seconds=0.5))
    started = time.perf_counter()
    rows = list(resolve_rows(stray_quote_file(3000), options=options, on_error=errors.append))
    assert time.perf_counter() - started < 5.0
    assert all(len(row) == 3 for row in rows)


# ── arguments ────────────────────────────────────────────────────────


def test_as_byte():
    assert as_byte(",") == ord(",")
    assert as_byte(b";") == ord(";")
    assert as_byte(9) == 9
    with pytest.raises(ValueError):
        as_byte(",,")
    with pytest.raises(ValueError):
        as_byte("é")
    with pytest.raises(ValueError):
        as_byte(300)


def test_delimiter_equal_to_quote_is_rejected():
    with pytest.raises(ValueError):
        resolve(b"a", delimiter='"', quote='"')


@pytest.mark.parametrize(
    "kwargs",
    [
        {"fixed_column_count": 0},
        {"fixed_column_count": 3, "absorbing_column": 3},
        {"absorbing_column": -1},
    ],
)
def test_invalid_options(kwargs):
    with pytest.raises(ValueError):
        ResolveOptions(**kwargs)


def test_negative_budget_is_rejected():
    with pytest.raises(ValueError):
        SearchBudget(max_moves=-1)
