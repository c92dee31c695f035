"""
Convenience synthesize API - renders a score against a loaded voicebank.
"""

import logging
import uuid
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from src.api.score import parse_score
from src.config import Settings
from src.engine.compositor import compose
from src.engine.score import Score
from src.engine.session import SynthSession
from src.logging_utils import get_logger, log_context, summarize_payload

logger = get_logger(__name__)


def synthesize(
    score: Union[Score, str, bytes, Path, Mapping[str, Any]],
    session: SynthSession,
    *,
    settings: Optional[Settings] = None,
    max_workers: Optional[int] = None,
    tail_padding_ms: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Render a score into a mono waveform.

    Args:
        score: Score object, or a request accepted by parse_score
        session: Loaded voicebank session (see load_voicebank)
        settings: Settings (default: Settings.from_env())
        max_workers: Parallel note renders (default: WSYNTH_RENDER_WORKERS)
        tail_padding_ms: Silence after the last note end (default: WSYNTH_TAIL_PADDING_MS)

    Returns:
        Dict with:
        - waveform: numpy float64 array at 44.1kHz, peak <= 1.0
        - sample_rate: 44100
        - duration_seconds: Buffer length in seconds
        - rendered_notes: Indices of notes that produced audio
        - skipped_notes: Error payloads for notes that were skipped

    Raises:
        RequestError: malformed request or empty score
    """
    settings = settings or Settings.from_env()
    if not isinstance(score, Score):
        score = parse_score(score)
    workers = settings.render_workers if max_workers is None else max_workers
    padding = settings.tail_padding_ms if tail_padding_ms is None else tail_padding_ms
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "synthesize input=%s",
            summarize_payload(
                {
                    "notes": len(score.notes),
                    "tempo": score.tempo,
                    "voicebank": session.name,
                    "max_workers": workers,
                    "tail_padding_ms": padding,
                }
            ),
        )

    with log_context(request_id=uuid.uuid4().hex[:12], voicebank=session.name):
        composite = compose(session, score, tail_padding_ms=padding, max_workers=workers)
    result = {
        "waveform": composite.waveform,
        "sample_rate": composite.sample_rate,
        "duration_seconds": composite.duration_seconds,
        "rendered_notes": composite.rendered_notes,
        "skipped_notes": composite.skipped_notes,
    }
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("synthesize output=%s", summarize_payload(result))
    return result
