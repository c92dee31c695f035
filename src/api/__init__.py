"""
WORLD singing synthesis API Module

This module exposes the public APIs for voicebank loading and rendering.
"""

from src.api.score import parse_score, notes_from_beats
from src.api.audio import encode_wav, load_audio, save_audio
from src.api.synthesize import synthesize
from src.api.voicebank import get_voicebank_info, list_voicebanks, load_voicebank

__all__ = [
    # Step 1: Score
    "parse_score",
    "notes_from_beats",
    # Step 2: Voicebank
    "load_voicebank",
    # Step 3: Render
    "synthesize",
    # Audio I/O
    "load_audio",
    "encode_wav",
    "save_audio",
    # Metadata
    "list_voicebanks",
    "get_voicebank_info",
]
