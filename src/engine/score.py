"""Score data model consumed by the compositor."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

from src.engine import constants


@dataclass(frozen=True)
class PitchbendPoint:
    """Pitch-bend breakpoint: ms from note start, offset in semitones."""

    offset_ms: float
    value: float


@dataclass(frozen=True)
class Note:
    alias: str
    pitch: int
    start_time_ms: float
    duration_ms: float
    pitchbend: Tuple[PitchbendPoint, ...] = ()
    flags: str = ""
    velocity: float = 100.0
    volume: float = 100.0
    modulation: float = 0.0

    @property
    def end_time_ms(self) -> float:
        return self.start_time_ms + self.duration_ms

    @property
    def is_silence(self) -> bool:
        return self.alias.lower() == constants.SILENCE_ALIAS

    @property
    def is_initial(self) -> bool:
        return self.alias.startswith(constants.INITIAL_ALIAS_MARKER)


@dataclass(frozen=True)
class Score:
    """Ordered notes; ``tempo`` is informational once times are in ms."""

    notes: Tuple[Note, ...] = field(default_factory=tuple)
    tempo: float = 120.0
