import pytest

from csv_resolver.classes import SemanticClass, class_table, classify


@pytest.mark.parametrize(
    "char, expected",
    [
        ("7", SemanticClass.DIGIT),
        ("q", SemanticClass.LETTER),
        ("Q", SemanticClass.LETTER),
        ("!", SemanticClass.PUNCTUATION),
        (" ", SemanticClass.WHITESPACE),
        ('"', SemanticClass.QUOTE),
        (",", SemanticClass.DELIMITER),
        ("\t", SemanticClass.TAB),
        ("\n", SemanticClass.NEWLINE),
        ("\r", SemanticClass.NEWLINE),
        ("\x00", SemanticClass.OTHER),
    ],
)
def test_classify_defaults(char, expected):
    assert classify(ord(char)) is expected


def test_high_bytes_are_other():
    assert classify(0xC3) is SemanticClass.OTHER
    assert classify(0xFF) is SemanticClass.OTHER


def test_configured_delimiter_wins():
    semicolon = ord(";")
    assert classify(semicolon, delimiter=semicolon) is SemanticClass.DELIMITER
    # a comma is ordinary punctuation once it is not the delimiter
    assert classify(ord(","), delimiter=semicolon) is SemanticClass.PUNCTUATION


def test_tab_delimiter_is_delimiter_not_tab():
    assert classify(ord("\t"), delimiter=ord("\t")) is SemanticClass.DELIMITER


def test_configured_quote():
    assert classify(ord("'"), quote=ord("'")) is SemanticClass.QUOTE
    assert classify(ord('"'), quote=ord("'")) is SemanticClass.PUNCTUATION


def test_class_table_matches_classify():
    table = class_table(ord("|"), ord("'"))
    assert len(table) == 256
    assert all(table[b] is classify(b, ord("|"), ord("'")) for b in range(256))
