"""
Single-note renderer.

A note is rendered by warping the output timeline onto the sample's
feature timeline, resampling the feature streams there, rebuilding the
pitch contour from the note's pitch-bend breakpoints, resynthesizing with
WORLD and shaping the result with crossfade envelopes.
"""

from __future__ import annotations

import math
from typing import List, Mapping, Optional, Sequence, Tuple

import numpy as np

from src.engine import constants
from src.engine.errors import FeatureMissingError, FlagParseError
from src.engine.features import TimbreFeatures
from src.engine.flags import parse_flags
from src.engine.interpolation import akima_sample, nearest_frame
from src.engine.score import Note, PitchbendPoint
from src.engine.timing import TimingEntry
from src.logging_utils import get_logger
from src.vocoder.world import WorldVocoder

logger = get_logger(__name__)


def round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def ms_to_samples(ms: float, sample_rate: int = constants.SAMPLE_RATE) -> int:
    return round_half_away(ms / 1000.0 * sample_rate)


def midi_to_hz(midi: np.ndarray) -> np.ndarray:
    return 440.0 * np.exp2((np.asarray(midi, dtype=np.float64) - 69.0) / 12.0)


def _cutoff_seconds(entry: TimingEntry, feature_len_sec: float) -> float:
    if entry.cutoff_ms > 0.0:
        return entry.cutoff_ms / 1000.0
    if entry.cutoff_ms < 0.0:
        return feature_len_sec + entry.cutoff_ms / 1000.0
    return feature_len_sec


def map_source_frames(entry: TimingEntry, duration_ms: float, feature_frames: int) -> np.ndarray:
    """
    Map each 5 ms output frame of a note render onto a source frame position.

    The render spans ``duration_ms + overlap_ms`` and is split into:
    pre-utterance (1:1 from ``offset``), stretch (output remainder after the
    consonant, linearly squeezed onto the source interval between
    pre-utterance and consonant) and tail (1:1 after the consonant, held at
    the cutoff point). Results are fractional frame indices clamped to the
    feature range, non-decreasing in output time.
    """
    fps = constants.FRAMES_PER_SECOND
    total_render_ms = duration_ms + entry.overlap_ms
    frame_count = max(0, round_half_away(total_render_ms / constants.FRAME_PERIOD_MS))
    if frame_count == 0 or feature_frames <= 0:
        return np.zeros(0, dtype=np.float64)

    feature_len_sec = feature_frames / fps
    preutterance_ms = entry.preutterance_ms
    stretch_out_ms = max(0.0, duration_ms - entry.consonant_ms)

    src_offset_sec = entry.offset_ms / 1000.0
    stretch_start_sec = src_offset_sec + preutterance_ms / 1000.0
    stretch_len_sec = max((entry.consonant_ms - preutterance_ms) / 1000.0, 0.001)
    stretch_end_sec = stretch_start_sec + stretch_len_sec
    cutoff_sec = max(stretch_end_sec, min(_cutoff_seconds(entry, feature_len_sec), feature_len_sec))

    out_ms = np.arange(frame_count, dtype=np.float64) * constants.FRAME_PERIOD_MS
    in_pre = out_ms < preutterance_ms
    in_stretch = ~in_pre & (out_ms < preutterance_ms + stretch_out_ms)

    if stretch_out_ms > 0.0:
        ratio = (out_ms - preutterance_ms) / stretch_out_ms
    else:
        ratio = np.zeros_like(out_ms)
    tail_sec = stretch_end_sec + (out_ms - (preutterance_ms + stretch_out_ms)) / 1000.0

    src_sec = np.where(
        in_pre,
        src_offset_sec + out_ms / 1000.0,
        np.where(
            in_stretch,
            stretch_start_sec + ratio * stretch_len_sec,
            np.minimum(tail_sec, cutoff_sec),
        ),
    )
    upper = feature_len_sec - min(1.0 / fps, max(feature_len_sec, 0.001))
    return np.clip(src_sec, 0.0, max(upper, 0.0)) * fps


def normalize_pitchbend(points: Sequence[PitchbendPoint], duration_ms: float) -> List[Tuple[float, float]]:
    """Sort breakpoints and pin both ends of the note to 0 semitones."""
    normalized = sorted(((p.offset_ms, p.value) for p in points), key=lambda item: item[0])
    if not normalized or normalized[0][0] > 0.0:
        normalized.insert(0, (0.0, 0.0))
    if normalized[-1][0] < duration_ms:
        normalized.append((duration_ms, 0.0))
    return normalized


def uniform_pitch_curve(points: Sequence[PitchbendPoint], duration_ms: float) -> np.ndarray:
    """Resample pitch-bend breakpoints onto the 5 ms grid covering the note body."""
    frame_count = max(0, math.ceil(duration_ms / constants.FRAME_PERIOD_MS))
    if frame_count == 0:
        return np.zeros(0, dtype=np.float64)
    normalized = normalize_pitchbend(points, duration_ms)
    offsets = np.array([t for t, _ in normalized], dtype=np.float64)
    values = np.array([v for _, v in normalized], dtype=np.float64)
    grid = np.arange(frame_count, dtype=np.float64) * constants.FRAME_PERIOD_MS
    return np.interp(grid, offsets, values)


def source_pitch_offset(features: TimbreFeatures) -> np.ndarray:
    """Per-frame semitone deviation of the sample from its base pitch; 0 if unvoiced."""
    f0 = features.f0
    if features.base_f0 <= 0.0:
        return np.zeros_like(f0)
    voiced = f0 > 0.0
    offsets = np.zeros_like(f0)
    offsets[voiced] = 12.0 * (np.log2(f0[voiced]) - math.log2(features.base_f0))
    return offsets


def fade_in_gain(length: int) -> np.ndarray:
    ratio = np.arange(length, dtype=np.float64) / max(length - 1, 1)
    return np.sin(np.pi / 2.0 * ratio)


def fade_out_gain(length: int) -> np.ndarray:
    ratio = np.arange(length, dtype=np.float64) / max(length - 1, 1)
    return np.sin(np.pi / 2.0 * (1.0 - ratio))


def apply_crossfade_envelopes(
    pcm: np.ndarray,
    *,
    fade_in_ms: float,
    fade_out_ms: float,
    preutterance_ms: float,
    duration_ms: float,
    is_initial_alias: bool,
    sample_rate: int = constants.SAMPLE_RATE,
) -> np.ndarray:
    """
    Shape a note render in place for constant-power crossfades.

    The fade-in covers the first ``fade_in_ms`` (the previous note's
    overlap) unless the alias is an initial "- x" alias. The fade-out starts
    at the nominal body end ``preutterance_ms + duration_ms`` and spans
    ``fade_out_ms``, clipped to the buffer.
    """
    total = pcm.shape[0]
    if total == 0:
        return pcm

    if fade_in_ms > 0.0 and not is_initial_alias:
        length = min(max(ms_to_samples(fade_in_ms, sample_rate), 0), total)
        pcm[:length] *= fade_in_gain(length)

    if fade_out_ms > 0.0:
        length = max(ms_to_samples(fade_out_ms, sample_rate), 0)
        start = min(max(ms_to_samples(preutterance_ms + duration_ms, sample_rate), 0), total)
        length = min(total - start, length)
        pcm[start:start + length] *= fade_out_gain(length)
    return pcm


def render_note(
    note: Note,
    entry: TimingEntry,
    features_cache: Mapping[str, TimbreFeatures],
    prev_overlap_ms: float,
    has_next_note: bool,
    *,
    vocoder: Optional[WorldVocoder] = None,
    note_index: Optional[int] = None,
) -> np.ndarray:
    """
    Render one note to float samples at the engine sample rate.

    The pitch curve is read on the render's own frame index: render frame
    ``i`` takes the bend value at ``i * 5`` ms. The render starts
    ``preutterance_ms`` before the note, so bends sound that much ahead of
    their offsets, landing the pitch change on the consonant lead-in.

    Args:
        note: Note to render
        entry: Timing entry of the note's resolved alias
        features_cache: Filename -> features mapping
        prev_overlap_ms: Overlap of the adjacent previous note (0 if none)
        has_next_note: Whether an adjacent following note exists
        vocoder: Resynthesis adapter (default: WorldVocoder)
        note_index: Position of the note in the score, for error reports

    Returns:
        Samples spanning ``duration_ms + overlap_ms``; empty when the
        mapped span has no frames.

    Raises:
        FeatureMissingError: the entry's sample was never analyzed
        FlagParseError: the note's flag string is malformed
    """
    features = features_cache.get(entry.filename)
    if features is None:
        raise FeatureMissingError(
            alias=note.alias,
            detail="features_not_cached",
            note_index=note_index,
            filename=entry.filename,
        )
    try:
        flags = parse_flags(note.flags)
    except ValueError as exc:
        raise FlagParseError(
            alias=note.alias,
            detail=str(exc),
            note_index=note_index,
            flags=note.flags,
        ) from exc

    positions = map_source_frames(entry, note.duration_ms, features.frame_count)
    uniform_pitch = uniform_pitch_curve(note.pitchbend, note.duration_ms)
    if positions.size == 0 or uniform_pitch.size == 0:
        logger.debug(
            "note_render_degenerate note=%s alias=%s duration_ms=%s frames=%s",
            note_index,
            note.alias,
            note.duration_ms,
            features.frame_count,
        )
        return np.zeros(0, dtype=np.float64)

    voiced = nearest_frame(features.f0 != 0.0, positions)
    spectral_codes = akima_sample(features.spectral_codes, positions)
    aperiodic_codes = akima_sample(features.aperiodic_codes, positions)
    pitch_contour = akima_sample(uniform_pitch, np.arange(positions.size, dtype=np.float64))

    midi = pitch_contour + note.pitch + flags.pitch_offset_cents / 100.0
    if note.modulation:
        midi = midi + (note.modulation / 100.0) * akima_sample(source_pitch_offset(features), positions)
    f0 = np.where(voiced, midi_to_hz(midi), 0.0)

    vocoder = vocoder or WorldVocoder()
    sp, ap = vocoder.decode(spectral_codes, aperiodic_codes)
    harmonic = vocoder.synthesize_harmonic(f0, sp.copy(), ap)
    aperiodic = vocoder.synthesize_aperiodic(f0, sp.copy(), ap)
    length = min(harmonic.shape[0], aperiodic.shape[0])
    pcm = (harmonic[:length] * flags.harmonic_mix + aperiodic[:length]) * (note.volume / 100.0)
    pcm = np.asarray(pcm, dtype=np.float64)

    apply_crossfade_envelopes(
        pcm,
        fade_in_ms=prev_overlap_ms if prev_overlap_ms > 0.0 else 0.0,
        fade_out_ms=entry.overlap_ms if has_next_note else 0.0,
        preutterance_ms=entry.preutterance_ms,
        duration_ms=note.duration_ms,
        is_initial_alias=note.is_initial,
    )
    logger.debug(
        "note_rendered note=%s alias=%s frames=%s samples=%s",
        note_index,
        note.alias,
        positions.size,
        pcm.shape[0],
    )
    return pcm
