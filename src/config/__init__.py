from __future__ import annotations

"""Engine settings loader from environment variables."""

from dataclasses import dataclass
from pathlib import Path
import os

PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _env_int(name: str, default: int) -> int:
    """Read an int env var with a default."""
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return int(value)


def _env_float(name: str, default: float) -> float:
    """Read a float env var with a default."""
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return float(value)


def _app_env() -> str:
    """Return the application environment name."""
    return os.getenv("APP_ENV") or os.getenv("ENV") or "dev"


@dataclass(frozen=True)
class Settings:
    """Configuration values parsed from the environment."""
    project_root: Path
    voicebank_dir: Path
    analysis_workers: int
    render_workers: int
    tail_padding_ms: float
    output_subtype: str
    app_env: str

    @classmethod
    def from_env(cls) -> "Settings":
        """Construct settings from environment variables."""
        voicebank_dir = Path(os.getenv("WSYNTH_VOICEBANK_DIR", "assets/voicebanks"))
        if not voicebank_dir.is_absolute():
            voicebank_dir = (PROJECT_ROOT / voicebank_dir).resolve()
        analysis_workers = _env_int("WSYNTH_ANALYSIS_WORKERS", 0)
        if analysis_workers < 0:
            raise ValueError("WSYNTH_ANALYSIS_WORKERS must be >= 0.")
        render_workers = _env_int("WSYNTH_RENDER_WORKERS", 1)
        if render_workers < 1:
            raise ValueError("WSYNTH_RENDER_WORKERS must be >= 1.")
        tail_padding_ms = _env_float("WSYNTH_TAIL_PADDING_MS", 2000.0)
        if tail_padding_ms < 0.0:
            raise ValueError("WSYNTH_TAIL_PADDING_MS must be >= 0.")
        output_subtype = os.getenv("WSYNTH_OUTPUT_SUBTYPE", "PCM_16").strip().upper()
        return cls(
            project_root=PROJECT_ROOT,
            voicebank_dir=voicebank_dir,
            analysis_workers=analysis_workers,
            render_workers=render_workers,
            tail_padding_ms=tail_padding_ms,
            output_subtype=output_subtype,
            app_env=_app_env(),
        )
