import logging

import numpy as np
import pytest

from src.engine import constants
from src.vocoder.world import WorldVocoder


def _tone(freq: float = 220.0, seconds: float = 0.5) -> np.ndarray:
    t = np.arange(int(seconds * constants.SAMPLE_RATE)) / constants.SAMPLE_RATE
    return 0.3 * np.sin(2 * np.pi * freq * t)


def test_analyze_shapes_and_module_logger(caplog):
    caplog.set_level(logging.DEBUG, logger="src.vocoder.world")
    f0, spectral_codes, aperiodic_codes = WorldVocoder().analyze(_tone())
    assert spectral_codes.shape == (f0.shape[0], constants.SPECTRAL_CODE_DIMS)
    assert aperiodic_codes.shape[0] == f0.shape[0]
    assert np.count_nonzero(f0) > 0
    records = [r for r in caplog.records if r.message.startswith("world_analysis")]
    assert records
    assert all(r.name == "src.vocoder.world" for r in records)


def test_analyze_rejects_short_audio():
    with pytest.raises(ValueError):
        WorldVocoder().analyze(np.zeros(constants.FFT_SIZE - 1))
