"""Per-note flag string parsing (``B30t-20g5`` style tokens)."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict

# Recognized names always stand alone, so "NB80" reads as N then B80.
_RECOGNIZED = "tB"
_TOKEN_RE = re.compile(
    rf"([{_RECOGNIZED}]|(?:(?![{_RECOGNIZED}])[A-Za-z])+)"
    r"([+-]?(?:\d+(?:\.\d*)?|\.\d+))?"
)

DEFAULT_BREATHINESS = 50.0


@dataclass(frozen=True)
class Flags:
    """Recognized note flags; unrecognized tokens are kept in ``extra``."""

    pitch_offset_cents: float = 0.0
    breathiness: float = DEFAULT_BREATHINESS
    extra: Dict[str, float] | None = None

    @property
    def harmonic_mix(self) -> float:
        """Weight of the harmonic component; 1.0 at neutral breathiness."""
        return 1.0 - 2.0 * (self.breathiness / 100.0 - 0.5)


def parse_flags(flags: str) -> Flags:
    """
    Parse a flag string into ``Flags``.

    ``/`` separators are ignored. ``t`` sets the pitch offset in cents and
    ``B`` the breathiness (0-100). Other letter tokens are ignored.

    Raises:
        ValueError: on characters outside ``<letters><number>`` tokens or a
            breathiness outside 0-100.
    """
    text = (flags or "").replace("/", "").strip()
    pitch_offset = 0.0
    breathiness = DEFAULT_BREATHINESS
    extra: Dict[str, float] = {}
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise ValueError(f"Unexpected character {text[pos]!r} at {pos} in flags {flags!r}")
        name, raw_value = match.group(1), match.group(2)
        value = float(raw_value) if raw_value else 0.0
        if name == "t":
            pitch_offset = value
        elif name == "B":
            if raw_value is None:
                raise ValueError(f"Breathiness flag without a value in {flags!r}")
            if not 0.0 <= value <= 100.0:
                raise ValueError(f"Breathiness {value} outside 0-100 in {flags!r}")
            breathiness = value
        else:
            extra[name] = value
        pos = match.end()
    return Flags(pitch_offset_cents=pitch_offset, breathiness=breathiness, extra=extra or None)
