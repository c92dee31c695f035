from typing import Tuple

import numpy as np
import pyworld as pw

from src.engine import constants
from src.logging_utils import get_logger

logger = get_logger(__name__)

# Aperiodicity used for the harmonic-only pass; WORLD squares it, so the
# noise share is negligible.
_HARMONIC_AP_FLOOR = 1e-6
# WORLD takes the log of the envelope; keep it strictly positive.
_SP_FLOOR = 1e-16


def _as_world_array(values: np.ndarray) -> np.ndarray:
    return np.ascontiguousarray(values, dtype=np.float64)


class WorldVocoder:
    """
    WORLD analysis/resynthesis adapter.
    Analysis: waveform -> f0, coded spectral envelope, coded aperiodicity
    Synthesis: f0 + decoded envelopes -> harmonic and aperiodic waveforms
    """
    def __init__(
        self,
        sample_rate: int = constants.SAMPLE_RATE,
        frame_period_ms: float = constants.FRAME_PERIOD_MS,
        fft_size: int = constants.FFT_SIZE,
    ):
        self.sample_rate = sample_rate
        self.frame_period_ms = frame_period_ms
        self.fft_size = fft_size

    def analyze(
        self,
        waveform: np.ndarray,
        *,
        d4c_threshold: float = constants.D4C_THRESHOLD,
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Args:
            waveform: mono samples at ``sample_rate``
        Returns:
            f0: [T] Hz, 0 for unvoiced frames
            spectral_codes: [T, SPECTRAL_CODE_DIMS]
            aperiodic_codes: [T, bands]
        """
        x = _as_world_array(waveform)
        if x.shape[0] < self.fft_size:
            raise ValueError(
                f"Audio signal is too short for analysis. At least {self.fft_size} "
                f"samples are required, found {x.shape[0]}."
            )
        f0, t = pw.harvest(
            x,
            self.sample_rate,
            f0_floor=constants.F0_FLOOR,
            f0_ceil=constants.F0_CEIL,
            frame_period=self.frame_period_ms,
        )
        sp = pw.cheaptrick(
            x,
            f0,
            t,
            self.sample_rate,
            q1=constants.SPEC_Q1,
            f0_floor=constants.F0_FLOOR,
            fft_size=self.fft_size,
        )
        ap = pw.d4c(x, f0, t, self.sample_rate, threshold=d4c_threshold, fft_size=self.fft_size)
        ap = np.nan_to_num(ap, nan=0.0)

        spectral_codes = pw.code_spectral_envelope(sp, self.sample_rate, constants.SPECTRAL_CODE_DIMS)
        aperiodic_codes = pw.code_aperiodicity(ap, self.sample_rate)
        logger.debug(
            "world_analysis samples=%s frames=%s voiced=%s",
            x.shape[0],
            f0.shape[0],
            int(np.count_nonzero(f0)),
        )
        return f0, spectral_codes, aperiodic_codes

    def decode(self, spectral_codes: np.ndarray, aperiodic_codes: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Decode coded features back to full-resolution envelopes [T, fft_size/2+1]."""
        sp = pw.decode_spectral_envelope(_as_world_array(spectral_codes), self.sample_rate, self.fft_size)
        ap = pw.decode_aperiodicity(_as_world_array(aperiodic_codes), self.sample_rate, self.fft_size)
        return sp, ap

    def synthesize_harmonic(self, f0: np.ndarray, sp: np.ndarray, ap: np.ndarray) -> np.ndarray:
        """Periodic component only; ``sp`` is read, never modified."""
        ap_ratio = np.clip(_as_world_array(ap), 0.0, 1.0) ** 2
        periodic_sp = np.maximum(_as_world_array(sp) * (1.0 - ap_ratio), _SP_FLOOR)
        silent_ap = np.full_like(periodic_sp, _HARMONIC_AP_FLOOR)
        return pw.synthesize(
            _as_world_array(f0),
            periodic_sp,
            silent_ap,
            self.sample_rate,
            frame_period=self.frame_period_ms,
        )

    def synthesize_aperiodic(self, f0: np.ndarray, sp: np.ndarray, ap: np.ndarray) -> np.ndarray:
        """Noise component only; ``sp`` is read, never modified."""
        ap_ratio = np.clip(_as_world_array(ap), 0.0, 1.0) ** 2
        noise_sp = np.maximum(_as_world_array(sp) * ap_ratio, _SP_FLOOR)
        full_ap = np.ones_like(noise_sp)
        return pw.synthesize(
            _as_world_array(f0),
            noise_sp,
            full_ap,
            self.sample_rate,
            frame_period=self.frame_period_ms,
        )
