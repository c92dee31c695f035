"""
Timeline compositor: resolves aliases, detects note adjacency, renders each
note and mixes the renders into one master buffer.
"""

from __future__ import annotations

import contextvars
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from src.engine import constants
from src.engine.errors import AliasNotFoundError, NoteRenderError, RequestError
from src.engine.renderer import ms_to_samples, render_note
from src.engine.score import Note, Score
from src.engine.session import SynthSession
from src.engine.timing import PitchPrefixTable, TimingEntry, TimingTable
from src.logging_utils import get_logger, summarize_payload

logger = get_logger(__name__)


@dataclass(frozen=True)
class NoteContext:
    """Neighbour information for one note, computed before any rendering."""

    index: int
    prev_adjacent: bool
    next_adjacent: bool
    prev_overlap_ms: float


@dataclass
class CompositeResult:
    waveform: np.ndarray
    sample_rate: int
    rendered_notes: List[int] = field(default_factory=list)
    skipped_notes: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        return self.waveform.shape[0] / self.sample_rate


def resolve_alias(note: Note, prefix_map: PitchPrefixTable, timing: TimingTable) -> str:
    """
    Pick the voicebank alias for a note.

    The suffix of the nearest prefix key at or below the note pitch is
    appended when the suffixed alias exists; otherwise the raw alias is kept.
    """
    if not prefix_map:
        return note.alias
    keys_below = [key for key in prefix_map if key <= note.pitch]
    if not keys_below:
        return note.alias
    candidate = note.alias + prefix_map[max(keys_below)]
    if candidate in timing:
        return candidate
    return note.alias


def _is_contiguous(first: Note, second: Note) -> bool:
    return first.start_time_ms + first.duration_ms == second.start_time_ms


def compute_note_contexts(
    notes: Sequence[Note],
    prefix_map: PitchPrefixTable,
    timing: TimingTable,
) -> List[NoteContext]:
    """
    Compute adjacency for every note in score order.

    Two notes are adjacent when the first ends exactly where the second
    starts. Adjacency comes from positions alone: a note that ends where a
    rest begins still fades out over its overlap, and a rest never renders
    itself. The previous overlap comes from the previous note's resolved
    timing entry, or 0 when that alias has no entry.
    """
    contexts: List[NoteContext] = []
    for index, note in enumerate(notes):
        prev_adjacent = False
        next_adjacent = False
        prev_overlap_ms = 0.0
        if index > 0:
            prev = notes[index - 1]
            if _is_contiguous(prev, note):
                prev_adjacent = True
                prev_entry = timing.get(resolve_alias(prev, prefix_map, timing))
                if prev_entry is not None:
                    prev_overlap_ms = prev_entry.overlap_ms
        if index + 1 < len(notes):
            next_adjacent = _is_contiguous(note, notes[index + 1])
        contexts.append(
            NoteContext(
                index=index,
                prev_adjacent=prev_adjacent,
                next_adjacent=next_adjacent,
                prev_overlap_ms=prev_overlap_ms,
            )
        )
    return contexts


def master_length(notes: Sequence[Note], tail_padding_ms: float, sample_rate: int) -> int:
    end_ms = max(note.end_time_ms for note in notes)
    return max(0, ms_to_samples(end_ms + tail_padding_ms, sample_rate))


def mix_into(master: np.ndarray, pcm: np.ndarray, start_sample: int) -> None:
    """Add ``pcm`` into ``master`` at ``start_sample``, dropping out-of-range samples."""
    if pcm.size == 0:
        return
    src_start = max(0, -start_sample)
    dst_start = start_sample + src_start
    dst_end = min(master.shape[0], start_sample + pcm.shape[0])
    if dst_end <= dst_start:
        return
    master[dst_start:dst_end] += pcm[src_start:src_start + (dst_end - dst_start)]


def normalize_peak(master: np.ndarray) -> float:
    """Scale ``master`` in place so its peak is at most 1.0; returns the original peak."""
    if master.size == 0:
        return 0.0
    peak = float(np.max(np.abs(master)))
    if peak > 1.0:
        master /= peak
    return peak


def _render_job(
    session: SynthSession,
    note: Note,
    entry: TimingEntry,
    context: NoteContext,
) -> np.ndarray:
    return render_note(
        note,
        entry,
        session.features,
        context.prev_overlap_ms,
        context.next_adjacent,
        vocoder=session.vocoder,
        note_index=context.index,
    )


def _skip(result: CompositeResult, note: Note, error: NoteRenderError) -> None:
    payload = error.to_payload()
    logger.warning(
        "note_skipped note=%s alias=%s start_ms=%s error=%s",
        error.note_index,
        note.alias,
        note.start_time_ms,
        payload,
    )
    result.skipped_notes.append(payload)


def compose(
    session: SynthSession,
    score: Score,
    *,
    tail_padding_ms: float = constants.DEFAULT_TAIL_PADDING_MS,
    max_workers: int = 1,
) -> CompositeResult:
    """
    Render every note of ``score`` and mix them into one master buffer.

    Per-note failures (unknown alias, missing features, bad flags) are logged
    and reported in ``skipped_notes``; the rest of the score still renders.
    The mix is peak-normalized to 1.0 only when it exceeds 1.0.

    Raises:
        RequestError: when the score has no notes.
    """
    notes = list(score.notes)
    if not notes:
        raise RequestError(detail="score has no notes", field="notes")
    sample_rate = constants.SAMPLE_RATE
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "compose input=%s",
            summarize_payload(
                {
                    "notes": len(notes),
                    "tempo": score.tempo,
                    "tail_padding_ms": tail_padding_ms,
                    "max_workers": max_workers,
                }
            ),
        )

    session.freeze()
    master = np.zeros(master_length(notes, tail_padding_ms, sample_rate), dtype=np.float64)
    result = CompositeResult(waveform=master, sample_rate=sample_rate)

    contexts = compute_note_contexts(notes, session.prefix_map, session.timing)
    jobs: List[Tuple[Note, TimingEntry, NoteContext]] = []
    for note, context in zip(notes, contexts):
        if note.is_silence:
            continue
        alias = resolve_alias(note, session.prefix_map, session.timing)
        entry = session.lookup(alias)
        if entry is None:
            _skip(
                result,
                note,
                AliasNotFoundError(alias=alias, detail="timing_entry_not_found", note_index=context.index),
            )
            continue
        jobs.append((note, entry, context))

    for note, entry, context, outcome in _run_jobs(session, jobs, max_workers):
        if isinstance(outcome, NoteRenderError):
            _skip(result, note, outcome)
            continue
        start_sample = ms_to_samples(note.start_time_ms - entry.preutterance_ms, sample_rate)
        mix_into(master, outcome, start_sample)
        result.rendered_notes.append(context.index)

    peak = normalize_peak(master)
    logger.info(
        "compose_done notes=%s rendered=%s skipped=%s samples=%s peak=%.4f",
        len(notes),
        len(result.rendered_notes),
        len(result.skipped_notes),
        master.shape[0],
        peak,
    )
    return result


def _run_jobs(
    session: SynthSession,
    jobs: Sequence[Tuple[Note, TimingEntry, NoteContext]],
    max_workers: int,
) -> Iterator[Tuple[Note, TimingEntry, NoteContext, Any]]:
    """Yield each job with its render or ``NoteRenderError``, in score order."""
    if max_workers <= 1 or len(jobs) <= 1:
        for note, entry, context in jobs:
            try:
                outcome: Any = _render_job(session, note, entry, context)
            except NoteRenderError as exc:
                outcome = exc
            yield note, entry, context, outcome
        return

    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="wsynth-render") as pool:
        futures = [
            pool.submit(contextvars.copy_context().run, _render_job, session, note, entry, context)
            for note, entry, context in jobs
        ]
        for (note, entry, context), future in zip(jobs, futures):
            try:
                outcome = future.result()
            except NoteRenderError as exc:
                outcome = exc
            yield note, entry, context, outcome
