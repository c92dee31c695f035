"""
Score request parsing APIs.
"""

import json
import logging
import math
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from src.engine.errors import RequestError
from src.engine.score import Note, PitchbendPoint, Score
from src.logging_utils import get_logger, summarize_payload

logger = get_logger(__name__)

DEFAULT_TEMPO = 120.0


def _number(value: Any, field: str, *, default: Optional[float] = None) -> float:
    if value is None:
        if default is None:
            raise RequestError(detail="missing required value", field=field)
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise RequestError(detail=f"expected a number, got {type(value).__name__}", field=field)
    number = float(value)
    if not math.isfinite(number):
        raise RequestError(detail="value must be finite", field=field)
    return number


def _parse_pitchbend(raw: Any, field: str) -> List[PitchbendPoint]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise RequestError(detail="pitchbend must be a list", field=field)
    points: List[PitchbendPoint] = []
    for idx, point in enumerate(raw):
        point_field = f"{field}[{idx}]"
        if not isinstance(point, Mapping):
            raise RequestError(detail="pitchbend point must be an object", field=point_field)
        points.append(
            PitchbendPoint(
                offset_ms=_number(point.get("offset"), f"{point_field}.offset"),
                value=_number(point.get("value"), f"{point_field}.value"),
            )
        )
    return points


def _parse_note(raw: Any, index: int) -> Note:
    field = f"notes[{index}]"
    if not isinstance(raw, Mapping):
        raise RequestError(detail="note must be an object", field=field)
    alias = raw.get("alias")
    if not isinstance(alias, str):
        raise RequestError(detail="alias must be a string", field=f"{field}.alias")
    pitch = _number(raw.get("pitch"), f"{field}.pitch")
    if not pitch.is_integer():
        raise RequestError(detail="pitch must be an integer", field=f"{field}.pitch")
    duration = _number(raw.get("duration"), f"{field}.duration")
    if duration < 0.0:
        raise RequestError(detail="duration must be >= 0", field=f"{field}.duration")
    flags = raw.get("flags") or ""
    if not isinstance(flags, str):
        raise RequestError(detail="flags must be a string", field=f"{field}.flags")
    return Note(
        alias=alias,
        pitch=int(pitch),
        start_time_ms=_number(raw.get("start_time"), f"{field}.start_time"),
        duration_ms=duration,
        pitchbend=tuple(_parse_pitchbend(raw.get("pitchbend"), f"{field}.pitchbend")),
        flags=flags,
        velocity=_number(raw.get("velocity"), f"{field}.velocity", default=100.0),
        volume=_number(raw.get("volume"), f"{field}.volume", default=100.0),
        modulation=_number(raw.get("modulation"), f"{field}.modulation", default=0.0),
    )


def parse_score(request: Union[str, bytes, Path, Mapping[str, Any]]) -> Score:
    """
    Parse a synthesis request into a Score.

    Args:
        request: JSON text/bytes, a path to a JSON file, or an already
            decoded dict of the form
            {"notes": [{"alias", "pitch", "start_time", "duration",
            "pitchbend": [{"offset", "value"}], "flags", "velocity",
            "volume", "modulation"}], "tempo": float}

    Returns:
        Score with notes in request order.

    Raises:
        RequestError: malformed request or empty note list.
    """
    if isinstance(request, Path):
        request = request.read_text(encoding="utf-8")
    if isinstance(request, (str, bytes)):
        try:
            request = json.loads(request)
        except json.JSONDecodeError as exc:
            raise RequestError(detail=f"invalid JSON: {exc}") from exc
    if not isinstance(request, Mapping):
        raise RequestError(detail="request must be an object")
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("parse_score input=%s", summarize_payload(dict(request)))

    raw_notes = request.get("notes")
    if not isinstance(raw_notes, list):
        raise RequestError(detail="notes must be a list", field="notes")
    if not raw_notes:
        raise RequestError(detail="score has no notes", field="notes")
    tempo = _number(request.get("tempo"), "tempo", default=DEFAULT_TEMPO)
    notes = tuple(_parse_note(raw, idx) for idx, raw in enumerate(raw_notes))
    return Score(notes=notes, tempo=tempo)


def notes_from_beats(notes: Sequence[Dict[str, Any]], tempo: float) -> Score:
    """
    Convert beat-positioned editor notes into a ms-based Score.

    Args:
        notes: Dicts with alias, midi_pitch, start_beat, duration_beat and
            optional pitchbend ({"offset", "value"}), flags, velocity,
            volume, modulation
        tempo: Beats per minute

    Returns:
        Score with notes sorted by start beat.
    """
    if tempo <= 0.0:
        raise RequestError(detail="tempo must be > 0", field="tempo")
    ms_per_beat = 60000.0 / tempo
    ordered = sorted(notes, key=lambda note: note.get("start_beat", 0.0))
    request = {
        "tempo": tempo,
        "notes": [
            {
                "alias": note.get("alias"),
                "pitch": note.get("midi_pitch"),
                "start_time": note.get("start_beat", 0.0) * ms_per_beat,
                "duration": note.get("duration_beat", 0.0) * ms_per_beat,
                "pitchbend": [
                    {"offset": point.get("offset"), "value": point.get("value")}
                    for point in note.get("pitchbend") or []
                ],
                "flags": note.get("flags") or "",
                "velocity": note.get("velocity", 100.0),
                "volume": note.get("volume", 100.0),
                "modulation": note.get("modulation", 0.0),
            }
            for note in ordered
        ],
    }
    return parse_score(request)
