"""
Voicebank timing metadata: oto.ini timing entries and prefix.map tables.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Union

from src.engine.errors import ConfigError
from src.logging_utils import get_logger

logger = get_logger(__name__)

_NOTE_VALUES = {
    "C": 0,
    "C#": 1,
    "D": 2,
    "D#": 3,
    "E": 4,
    "F": 5,
    "F#": 6,
    "G": 7,
    "G#": 8,
    "A": 9,
    "A#": 10,
    "B": 11,
}
_NOTE_NAME_RE = re.compile(r"([A-G]#?)(-?\d+)")


@dataclass(frozen=True)
class TimingEntry:
    """Millisecond markers describing how one sample is sliced and stretched."""

    filename: str
    alias: str
    offset_ms: float
    consonant_ms: float
    cutoff_ms: float
    preutterance_ms: float
    overlap_ms: float


TimingTable = Dict[str, TimingEntry]
PitchPrefixTable = Dict[int, str]


def _decode_text(data: Union[str, bytes]) -> str:
    """Decode table bytes; UTAU voicebanks are frequently Shift-JIS."""
    if isinstance(data, str):
        return data
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("cp932", errors="replace")


def _parse_ms(field: str) -> float:
    try:
        return float(field.strip())
    except ValueError:
        return 0.0


def parse_timing_table(data: Union[str, bytes], *, source: str = "oto.ini") -> TimingTable:
    """
    Parse oto.ini text into a timing table keyed by alias.

    Each line reads ``file.wav=alias,offset,consonant,cutoff,preutterance,overlap``.
    Non-numeric fields become 0. Lines without '=' or with an empty alias or
    fewer than five numeric fields are skipped. Duplicate aliases keep the
    last entry.

    Raises:
        ConfigError: when no entries could be read.
    """
    table: TimingTable = {}
    for line_no, line in enumerate(_decode_text(data).splitlines(), start=1):
        if not line.strip():
            continue
        filename, sep, value_part = line.partition("=")
        if not sep:
            continue
        fields = value_part.split(",")
        alias = fields[0].strip()
        if not alias:
            continue
        params = fields[1:]
        if len(params) < 5:
            continue
        if alias in table:
            logger.warning(
                "timing_alias_duplicate alias=%s line=%s previous_file=%s file=%s",
                alias,
                line_no,
                table[alias].filename,
                filename,
            )
        table[alias] = TimingEntry(
            filename=filename.strip(),
            alias=alias,
            offset_ms=_parse_ms(params[0]),
            consonant_ms=_parse_ms(params[1]),
            cutoff_ms=_parse_ms(params[2]),
            preutterance_ms=_parse_ms(params[3]),
            overlap_ms=_parse_ms(params[4]),
        )

    if not table:
        raise ConfigError(source=source, detail="no_timing_entries")
    logger.info("timing_table_parsed source=%s entries=%s", source, len(table))
    return table


def pitch_name_to_key(name: str) -> int:
    """
    Convert a pitch token to a MIDI key.

    Accepts integers ("60") or note names with octave ("C4" -> 60,
    "A#-1" -> 10).
    """
    token = name.strip()
    try:
        return int(token)
    except ValueError:
        pass
    match = _NOTE_NAME_RE.fullmatch(token)
    if match is None:
        raise ValueError(f"Invalid pitch name: {name!r}")
    octave = int(match.group(2)) + 1
    return octave * 12 + _NOTE_VALUES[match.group(1)]


def parse_prefix_map(data: Union[str, bytes], *, source: str = "prefix.map") -> PitchPrefixTable:
    """
    Parse prefix.map text into a pitch -> alias suffix table.

    Lines look like ``C4=_C4`` or ``60=_C4``; unparseable pitch names are
    skipped. Trailing whitespace of the suffix is dropped.

    Raises:
        ConfigError: when the text contains no usable entries.
    """
    table: PitchPrefixTable = {}
    for line in _decode_text(data).splitlines():
        if not line.strip():
            continue
        pitch_name, sep, suffix = line.partition("=")
        if not sep:
            continue
        try:
            key = pitch_name_to_key(pitch_name)
        except ValueError:
            logger.debug("prefix_map_line_skipped source=%s line=%s", source, line)
            continue
        table[key] = suffix.rstrip("\r\n\t ")

    if not table:
        raise ConfigError(source=source, detail="no_prefix_entries")
    logger.info("prefix_map_parsed source=%s entries=%s", source, len(table))
    return table
