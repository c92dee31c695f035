import logging

import pytest

from src.engine.errors import ConfigError
from src.engine.timing import parse_prefix_map, parse_timing_table, pitch_name_to_key


def test_parses_all_markers():
    table = parse_timing_table("a.wav=a,10,100,-200,50,20\n")
    entry = table["a"]
    assert entry.filename == "a.wav"
    assert (entry.offset_ms, entry.consonant_ms, entry.cutoff_ms) == (10.0, 100.0, -200.0)
    assert (entry.preutterance_ms, entry.overlap_ms) == (50.0, 20.0)


def test_skips_malformed_lines_and_zero_fills_non_numeric():
    text = "\n".join(
        [
            "no equals sign here",
            "b.wav=,1,2,3,4,5",
            "c.wav=c,1,2,3",
            "d.wav=d,x,2,3,4,5",
        ]
    )
    table = parse_timing_table(text)
    assert list(table) == ["d"]
    assert table["d"].offset_ms == 0.0
    assert table["d"].consonant_ms == 2.0


def test_duplicate_alias_keeps_last(caplog):
    caplog.set_level(logging.WARNING)
    table = parse_timing_table("a.wav=ka,1,2,3,4,5\nb.wav=ka,6,7,8,9,10\n")
    assert table["ka"].filename == "b.wav"
    assert any("timing_alias_duplicate" in record.getMessage() for record in caplog.records)


def test_empty_table_raises_config_error():
    with pytest.raises(ConfigError) as excinfo:
        parse_timing_table("garbage\n", source="bank/oto.ini")
    assert excinfo.value.to_payload()["source"] == "bank/oto.ini"


def test_shift_jis_bytes_are_decoded():
    data = "あ.wav=- あ,0,100,0,50,20\r\n".encode("cp932")
    table = parse_timing_table(data)
    assert table["- あ"].filename == "あ.wav"


@pytest.mark.parametrize(
    "name,expected",
    [("C4", 60), ("A4", 69), ("C#4", 61), ("B3", 59), ("C-1", 0), ("72", 72)],
)
def test_pitch_name_to_key(name, expected):
    assert pitch_name_to_key(name) == expected


def test_pitch_name_to_key_rejects_unknown():
    with pytest.raises(ValueError):
        pitch_name_to_key("H4")


def test_prefix_map_trims_suffix_and_skips_bad_pitches():
    table = parse_prefix_map("C4=_C4  \nnonsense=_X\nG4=↑\n")
    assert table == {60: "_C4", 67: "↑"}


def test_prefix_map_empty_suffix_is_kept():
    assert parse_prefix_map("A4=\n") == {69: ""}


def test_prefix_map_without_entries_raises():
    with pytest.raises(ConfigError):
        parse_prefix_map("\n\n")
