"""
Timbre feature records and the per-session feature cache.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, Mapping, Optional

import numpy as np

from src.engine import constants
from src.logging_utils import get_logger
from src.vocoder.world import WorldVocoder

logger = get_logger(__name__)


def _frozen(values: np.ndarray, ndim: int) -> np.ndarray:
    array = np.array(values, dtype=np.float64, copy=True)
    if array.ndim != ndim:
        raise ValueError(f"Expected a {ndim}-D feature array, got shape {array.shape}")
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class TimbreFeatures:
    """Pre-analyzed features of one voicebank sample, one row per 5 ms frame."""

    base_f0: float
    f0: np.ndarray
    spectral_codes: np.ndarray
    aperiodic_codes: np.ndarray

    @classmethod
    def create(
        cls,
        base_f0: float,
        f0: np.ndarray,
        spectral_codes: np.ndarray,
        aperiodic_codes: np.ndarray,
    ) -> "TimbreFeatures":
        """Build a record from caller-owned arrays, copying them read-only."""
        f0_arr = _frozen(f0, 1)
        sp_arr = _frozen(spectral_codes, 2)
        ap_arr = _frozen(aperiodic_codes, 2)
        if not (f0_arr.shape[0] == sp_arr.shape[0] == ap_arr.shape[0]):
            raise ValueError(
                "Feature streams disagree on frame count: "
                f"f0={f0_arr.shape[0]} spectral={sp_arr.shape[0]} aperiodic={ap_arr.shape[0]}"
            )
        return cls(
            base_f0=float(base_f0),
            f0=f0_arr,
            spectral_codes=sp_arr,
            aperiodic_codes=ap_arr,
        )

    @property
    def frame_count(self) -> int:
        return int(self.f0.shape[0])

    @property
    def duration_seconds(self) -> float:
        return self.frame_count / constants.FRAMES_PER_SECOND


def calculate_base_f0(f0: np.ndarray) -> float:
    """
    Estimate the sample's nominal pitch in Hz.

    Frames inside the analysis range are averaged with weights
    ``2 ** -(slope ** 2)`` so steady regions dominate over glides.
    Returns 0.0 when no frame is in range.
    """
    values = np.asarray(f0, dtype=np.float64)
    n = values.shape[0]
    if n < 2:
        if n == 1 and constants.F0_FLOOR <= values[0] <= constants.F0_CEIL:
            return float(values[0])
        return 0.0

    slope = np.empty(n, dtype=np.float64)
    slope[0] = values[1] - values[0]
    slope[-1] = values[n - 2] - values[n - 1]
    slope[1:-1] = 0.5 * (values[2:] - values[:-2])

    in_range = (values >= constants.F0_FLOOR) & (values <= constants.F0_CEIL)
    weights = np.exp2(-slope * slope) * in_range
    tally = weights.sum()
    if tally <= 0.0:
        return 0.0
    return float((values * weights).sum() / tally)


def generate_features(
    waveform: np.ndarray,
    vocoder: Optional[WorldVocoder] = None,
    *,
    d4c_threshold: float = constants.D4C_THRESHOLD,
) -> TimbreFeatures:
    """Analyze a mono waveform at the engine sample rate into timbre features."""
    vocoder = vocoder or WorldVocoder()
    f0, spectral_codes, aperiodic_codes = vocoder.analyze(waveform, d4c_threshold=d4c_threshold)
    features = TimbreFeatures.create(
        base_f0=calculate_base_f0(f0),
        f0=f0,
        spectral_codes=spectral_codes,
        aperiodic_codes=aperiodic_codes,
    )
    logger.debug(
        "features_generated frames=%s base_f0=%.2f",
        features.frame_count,
        features.base_f0,
    )
    return features


class FeatureCache(Mapping[str, TimbreFeatures]):
    """Filename -> features mapping; filled before synthesis, read-only after."""

    def __init__(self, entries: Optional[Mapping[str, TimbreFeatures]] = None):
        self._entries: Dict[str, TimbreFeatures] = dict(entries or {})
        self._frozen = False

    def add(self, filename: str, features: TimbreFeatures) -> None:
        if self._frozen:
            raise RuntimeError("FeatureCache is read-only once synthesis has started.")
        if not filename:
            raise ValueError("filename is required.")
        self._entries[filename] = features

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __getitem__(self, filename: str) -> TimbreFeatures:
        return self._entries[filename]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
