"""
Audio input/output API.
"""

import io
import logging
from fractions import Fraction
from pathlib import Path
from typing import Any, Dict, List, Union

import numpy as np
import soundfile as sf
from scipy.signal import resample_poly

from src.engine import constants
from src.logging_utils import get_logger, summarize_payload

logger = get_logger(__name__)


def _to_mono_array(waveform: Union[List[float], np.ndarray]) -> np.ndarray:
    if isinstance(waveform, list):
        waveform = np.array(waveform, dtype=np.float64)
    return np.asarray(waveform, dtype=np.float64).flatten()


def resample_audio(waveform: np.ndarray, in_rate: int, out_rate: int = constants.SAMPLE_RATE) -> np.ndarray:
    """Resample a mono signal with a polyphase filter."""
    if in_rate == out_rate:
        return np.asarray(waveform, dtype=np.float64)
    ratio = Fraction(out_rate, in_rate)
    return resample_poly(np.asarray(waveform, dtype=np.float64), ratio.numerator, ratio.denominator)


def load_audio(source: Union[str, Path, bytes], *, sample_rate: int = constants.SAMPLE_RATE) -> np.ndarray:
    """
    Decode an audio file into mono float samples at ``sample_rate``.

    Args:
        source: File path or encoded bytes (any container soundfile reads)
        sample_rate: Target sample rate (default: 44100)

    Returns:
        1-D float64 array; multi-channel input is averaged.
    """
    if isinstance(source, bytes):
        data, in_rate = sf.read(io.BytesIO(source), dtype="float64", always_2d=True)
    else:
        data, in_rate = sf.read(str(source), dtype="float64", always_2d=True)
    mono = data.mean(axis=1)
    if in_rate != sample_rate:
        logger.debug("load_audio resample from=%s to=%s samples=%s", in_rate, sample_rate, mono.shape[0])
    return resample_audio(mono, in_rate, sample_rate)


def encode_wav(
    waveform: Union[List[float], np.ndarray],
    *,
    sample_rate: int = constants.SAMPLE_RATE,
    subtype: str = "PCM_16",
) -> bytes:
    """Encode mono samples in [-1, 1] as a WAV byte string."""
    samples = np.clip(_to_mono_array(waveform), -1.0, 1.0)
    buffer = io.BytesIO()
    sf.write(buffer, samples, sample_rate, format="WAV", subtype=subtype)
    return buffer.getvalue()


def save_audio(
    waveform: Union[List[float], np.ndarray],
    output_path: Union[str, Path],
    *,
    sample_rate: int = constants.SAMPLE_RATE,
    subtype: str = "PCM_16",
) -> Dict[str, Any]:
    """
    Write audio to a WAV file.

    Args:
        waveform: Audio samples (list or numpy array)
        output_path: File path to save
        sample_rate: Sample rate (default: 44100)
        subtype: soundfile subtype (default: PCM_16)

    Returns:
        Dict with:
        - path: Absolute path to saved file
        - duration_seconds: Audio duration
        - sample_rate: Sample rate used
    """
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "save_audio input=%s",
            summarize_payload(
                {
                    "waveform": waveform,
                    "output_path": str(output_path),
                    "sample_rate": sample_rate,
                    "subtype": subtype,
                }
            ),
        )
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    if not str(output_path).endswith(".wav"):
        output_path = output_path.with_suffix(".wav")

    samples = _to_mono_array(waveform)
    output_path.write_bytes(encode_wav(samples, sample_rate=sample_rate, subtype=subtype))

    result = {
        "path": str(output_path.resolve()),
        "duration_seconds": len(samples) / sample_rate,
        "sample_rate": sample_rate,
    }
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("save_audio output=%s", summarize_payload(result))
    return result
