from __future__ import annotations

from progress_tracker.core.csv_codec import decode, encode, escape_field, header_of


COLUMNS = ["id", "name", "notes"]


def test_encode_quotes_only_fields_with_special_characters() -> None:
    assert escape_field("plain text") == "plain text"
    assert escape_field("a,b") == '"a,b"'
    assert escape_field('say "hi"') == '"say ""hi"""'
    assert escape_field("line1\nline2") == '"line1\nline2"'
    assert escape_field("cr\rhere") == '"cr\rhere"'
    assert escape_field(None) == ""
    assert escape_field(3) == "3"


def test_encode_layout_header_then_rows_without_trailing_newline() -> None:
    records = [
        {"id": "1", "name": "Alice", "notes": ""},
        {"id": "2", "name": "Bob", "notes": "x,y"},
    ]
    assert encode(records, COLUMNS) == 'id,name,notes\n1,Alice,\n2,Bob,"x,y"'


def test_encode_empty_collection_emits_header_line() -> None:
    text = encode([], COLUMNS)
    assert text == "id,name,notes\n"
    assert decode(text) == []
    assert header_of(text) == COLUMNS


def test_encode_missing_fields_are_empty_and_order_follows_columns() -> None:
    text = encode([{"notes": "n", "id": "7"}], COLUMNS)
    assert text == "id,name,notes\n7,,n"


def test_round_trip_preserves_embedded_commas_quotes_and_newlines() -> None:
    records = [
        {"id": "a", "name": 'He said "yes", then left', "notes": "multi\nline\r\nnote"},
        {"id": "b", "name": "", "notes": ",,,"},
        {"id": "c", "name": '"', "notes": "trailing newline\n"},
        {"id": "d", "name": "中文", "notes": "emoji 🎉"},
    ]
    assert decode(encode(records, COLUMNS)) == records


def test_encode_is_byte_stable() -> None:
    records = [{"id": "1", "name": "x", "notes": 'q"q'}]
    assert encode(records, COLUMNS) == encode(records, COLUMNS)


def test_decode_tolerates_crlf_bom_and_trailing_blank_line() -> None:
    text = "\ufeffid,name,notes\r\n1,Alice,hello\r\n2,Bob,\r\n"
    assert decode(text) == [
        {"id": "1", "name": "Alice", "notes": "hello"},
        {"id": "2", "name": "Bob", "notes": ""},
    ]


def test_decode_header_defines_field_names_regardless_of_encoder_order() -> None:
    text = "notes,id\nhello,1"
    assert decode(text) == [{"notes": "hello", "id": "1"}]


def test_decode_pads_short_rows_and_ignores_extra_cells() -> None:
    text = "id,name,notes\n1\n2,Bob,n,extra"
    assert decode(text) == [
        {"id": "1", "name": "", "notes": ""},
        {"id": "2", "name": "Bob", "notes": "n"},
    ]


def test_decode_empty_text() -> None:
    assert decode("") == []
    assert header_of("") == []
