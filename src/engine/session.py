"""Explicit engine context: the read-only tables a synthesis call renders from."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from src.engine.features import FeatureCache, TimbreFeatures
from src.engine.timing import PitchPrefixTable, TimingEntry, TimingTable
from src.vocoder.world import WorldVocoder


@dataclass
class SynthSession:
    """
    Timing table, prefix table, feature cache and vocoder for one voicebank.

    Populate with ``cache_features`` before synthesis; ``freeze`` marks the
    start of rendering, after which the cache rejects writes.
    """

    timing: TimingTable
    prefix_map: PitchPrefixTable = field(default_factory=dict)
    features: FeatureCache = field(default_factory=FeatureCache)
    vocoder: WorldVocoder = field(default_factory=WorldVocoder)
    name: Optional[str] = None

    def cache_features(self, filename: str, features: TimbreFeatures) -> None:
        self.features.add(filename, features)

    def lookup(self, alias: str) -> Optional[TimingEntry]:
        return self.timing.get(alias)

    def freeze(self) -> None:
        self.features.freeze()
