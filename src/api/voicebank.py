"""
Voicebank management APIs.
"""

import logging
import os
import time
from concurrent.futures import ProcessPoolExecutor, as_completed
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import yaml

from src.api.audio import load_audio
from src.config import Settings
from src.engine.features import FeatureCache, TimbreFeatures, generate_features
from src.engine.renderer import round_half_away
from src.engine.session import SynthSession
from src.engine.timing import PitchPrefixTable, parse_prefix_map, parse_timing_table
from src.logging_utils import get_logger, log_context, summarize_payload

logger = get_logger(__name__)

OTO_FILENAME = "oto.ini"
PREFIX_MAP_FILENAME = "prefix.map"


def _read_character_name(path: Path) -> str:
    """Display name from character.yaml or character.txt, else the directory name."""
    yaml_file = path / "character.yaml"
    if yaml_file.exists():
        try:
            data = yaml.safe_load(yaml_file.read_text(encoding="utf-8"))
        except (yaml.YAMLError, UnicodeDecodeError) as exc:
            logger.warning("character_yaml_unreadable path=%s error=%s", yaml_file, exc)
            data = None
        if isinstance(data, dict) and data.get("name"):
            return str(data["name"])
    txt_file = path / "character.txt"
    if txt_file.exists():
        raw = txt_file.read_bytes()
        try:
            text = raw.decode("utf-8-sig")
        except UnicodeDecodeError:
            text = raw.decode("cp932", errors="replace")
        for line in text.splitlines():
            key, sep, value = line.partition("=")
            if sep and key.strip().lower() == "name" and value.strip():
                return value.strip()
    return path.name


def resolve_analysis_workers(configured: int, cpu_count: Optional[int] = None) -> int:
    """
    Number of analysis processes.

    A positive setting is capped at the CPU count; 0 picks
    ``round(2 + cpus * 0.1)`` while leaving one CPU free.
    """
    cpus = cpu_count or os.cpu_count() or 4
    if configured > 0:
        return max(1, min(configured, cpus))
    return max(1, min(round_half_away(2 + cpus * 0.1), cpus - 1))


def _analyze_file(path: str) -> TimbreFeatures:
    return generate_features(load_audio(path))


def analyze_samples(
    voicebank_path: Path,
    filenames: Iterable[str],
    *,
    workers: int = 1,
) -> Tuple[FeatureCache, List[Dict[str, Any]]]:
    """
    Analyze voicebank samples into a feature cache.

    Files that are missing or fail analysis are left out of the cache and
    reported in the returned failure list.
    """
    cache = FeatureCache()
    failures: List[Dict[str, Any]] = []
    pending: Dict[str, Path] = {}
    for filename in sorted(set(filenames)):
        sample_path = voicebank_path / filename
        if not sample_path.is_file():
            logger.warning("sample_missing voicebank=%s file=%s", voicebank_path.name, filename)
            failures.append({"filename": filename, "error": "file_not_found"})
            continue
        pending[filename] = sample_path

    def _record(filename: str, features: TimbreFeatures) -> None:
        cache.add(
            filename,
            TimbreFeatures.create(
                base_f0=features.base_f0,
                f0=features.f0,
                spectral_codes=features.spectral_codes,
                aperiodic_codes=features.aperiodic_codes,
            ),
        )

    def _fail(filename: str, exc: Exception) -> None:
        logger.warning("sample_analysis_failed file=%s error=%s", filename, exc)
        failures.append({"filename": filename, "error": str(exc)})

    total = len(pending)
    if workers <= 1 or total <= 1:
        for done, (filename, sample_path) in enumerate(pending.items(), start=1):
            try:
                _record(filename, _analyze_file(str(sample_path)))
            except (OSError, RuntimeError, ValueError) as exc:
                _fail(filename, exc)
            logger.debug("sample_analysis_progress done=%s total=%s", done, total)
        return cache, failures

    with ProcessPoolExecutor(max_workers=workers) as pool:
        futures = {
            pool.submit(_analyze_file, str(sample_path)): filename
            for filename, sample_path in pending.items()
        }
        for done, future in enumerate(as_completed(futures), start=1):
            filename = futures[future]
            try:
                _record(filename, future.result())
            except (OSError, RuntimeError, ValueError) as exc:
                _fail(filename, exc)
            logger.debug("sample_analysis_progress done=%s total=%s", done, total)
    return cache, failures


def load_voicebank(
    voicebank: Union[str, Path],
    *,
    settings: Optional[Settings] = None,
    analysis_workers: Optional[int] = None,
) -> SynthSession:
    """
    Load a UTAU-style voicebank into a ready synthesis session.

    Args:
        voicebank: Voicebank directory (contains oto.ini and the samples)
        settings: Settings (default: Settings.from_env())
        analysis_workers: Override for the number of analysis processes

    Returns:
        SynthSession with timing table, optional prefix map and the
        features of every sample referenced by oto.ini.

    Raises:
        FileNotFoundError: oto.ini is missing
        ConfigError: oto.ini has no usable entries
    """
    settings = settings or Settings.from_env()
    path = Path(voicebank)
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "load_voicebank input=%s",
            summarize_payload({"voicebank": str(path), "analysis_workers": analysis_workers}),
        )
    oto_path = path / OTO_FILENAME
    if not oto_path.exists():
        raise FileNotFoundError(f"{OTO_FILENAME} not found at {oto_path}")
    timing = parse_timing_table(oto_path.read_bytes(), source=str(oto_path))
    prefix_map: PitchPrefixTable = {}
    prefix_path = path / PREFIX_MAP_FILENAME
    if prefix_path.exists():
        prefix_map = parse_prefix_map(prefix_path.read_bytes(), source=str(prefix_path))

    configured = settings.analysis_workers if analysis_workers is None else analysis_workers
    workers = resolve_analysis_workers(configured)
    start = time.monotonic()
    with log_context(voicebank=path.name):
        cache, failures = analyze_samples(
            path,
            (entry.filename for entry in timing.values()),
            workers=workers,
        )
    elapsed_ms = (time.monotonic() - start) * 1000.0
    logger.info(
        "voicebank_loaded voicebank=%s aliases=%s samples=%s failed=%s workers=%s elapsed_ms=%.2f",
        path.name,
        len(timing),
        len(cache),
        len(failures),
        workers,
        elapsed_ms,
    )
    return SynthSession(
        timing=timing,
        prefix_map=prefix_map,
        features=cache,
        name=_read_character_name(path),
    )


def list_voicebanks(search_path: Optional[Union[str, Path]] = None) -> List[Dict[str, Any]]:
    """
    List available voicebanks.

    Args:
        search_path: Directory to search (default: WSYNTH_VOICEBANK_DIR)

    Returns:
        List of voicebank info dicts with:
        - id: Directory name
        - name: Display name from character.yaml / character.txt
        - path: Absolute path
    """
    if search_path is None:
        search_path = Settings.from_env().voicebank_dir
    search_path = Path(search_path)
    if not search_path.exists():
        return []

    voicebanks = []
    for item in sorted(search_path.iterdir()):
        if item.is_dir() and (item / OTO_FILENAME).exists():
            voicebanks.append(
                {
                    "id": item.name,
                    "name": _read_character_name(item),
                    "path": str(item.resolve()),
                }
            )
    return voicebanks


def get_voicebank_info(voicebank: Union[str, Path]) -> Dict[str, Any]:
    """
    Get detailed information about a voicebank without analyzing samples.

    Returns:
        Dict with:
        - name: Display name
        - path: Absolute path
        - aliases: Number of timing entries
        - samples: Number of distinct sample files referenced
        - has_prefix_map: Whether prefix.map is present
        - image: Character image filename, if declared in character.yaml
    """
    path = Path(voicebank)
    oto_path = path / OTO_FILENAME
    if not oto_path.exists():
        raise FileNotFoundError(f"{OTO_FILENAME} not found at {oto_path}")
    timing = parse_timing_table(oto_path.read_bytes(), source=str(oto_path))

    image = None
    yaml_file = path / "character.yaml"
    if yaml_file.exists():
        try:
            data = yaml.safe_load(yaml_file.read_text(encoding="utf-8"))
        except (yaml.YAMLError, UnicodeDecodeError):
            data = None
        if isinstance(data, dict):
            image = data.get("image")

    return {
        "name": _read_character_name(path),
        "path": str(path.resolve()),
        "aliases": len(timing),
        "samples": len({entry.filename for entry in timing.values()}),
        "has_prefix_map": (path / PREFIX_MAP_FILENAME).exists(),
        "image": image,
    }
