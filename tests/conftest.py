import numpy as np
import pytest

from src.engine import constants
from src.engine.features import FeatureCache, TimbreFeatures
from src.engine.session import SynthSession
from src.engine.timing import TimingEntry

SAMPLES_PER_FRAME = constants.SAMPLE_RATE * constants.FRAME_PERIOD_MS / 1000.0


class FakeVocoder:
    """Deterministic stand-in for WORLD: the harmonic pass is a constant 1.0 signal."""

    def __init__(self, level: float = 1.0) -> None:
        self.level = level
        self.calls = []

    def decode(self, spectral_codes, aperiodic_codes):
        frames = spectral_codes.shape[0]
        return np.ones((frames, 8)), np.zeros((frames, 8))

    def _length(self, f0) -> int:
        return int((f0.shape[0] - 1) * SAMPLES_PER_FRAME) + 1

    def synthesize_harmonic(self, f0, sp, ap):
        self.calls.append(np.array(f0, copy=True))
        return np.full(self._length(f0), self.level)

    def synthesize_aperiodic(self, f0, sp, ap):
        return np.zeros(self._length(f0))


def make_features(frames: int = 400, f0_hz: float = 220.0) -> TimbreFeatures:
    return TimbreFeatures.create(
        base_f0=f0_hz,
        f0=np.full(frames, f0_hz),
        spectral_codes=np.zeros((frames, constants.SPECTRAL_CODE_DIMS)),
        aperiodic_codes=np.zeros((frames, 5)),
    )


def make_entry(
    alias: str,
    filename: str = "a.wav",
    *,
    offset: float = 0.0,
    consonant: float = 100.0,
    cutoff: float = 0.0,
    preutterance: float = 50.0,
    overlap: float = 20.0,
) -> TimingEntry:
    return TimingEntry(
        filename=filename,
        alias=alias,
        offset_ms=offset,
        consonant_ms=consonant,
        cutoff_ms=cutoff,
        preutterance_ms=preutterance,
        overlap_ms=overlap,
    )


@pytest.fixture
def fake_vocoder():
    return FakeVocoder()


@pytest.fixture
def make_session(fake_vocoder):
    def _factory(entries, prefix_map=None, level: float = 1.0):
        fake_vocoder.level = level
        cache = FeatureCache()
        for entry in entries:
            if entry.filename not in cache:
                cache.add(entry.filename, make_features())
        return SynthSession(
            timing={entry.alias: entry for entry in entries},
            prefix_map=prefix_map or {},
            features=cache,
            vocoder=fake_vocoder,
            name="TestBank",
        )

    return _factory
