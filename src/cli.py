from __future__ import annotations

import argparse
import json
import logging
import sys
import uuid
from pathlib import Path
from typing import List, Optional

from src.api import list_voicebanks, load_voicebank, save_audio, synthesize
from src.config import Settings
from src.engine.errors import ConfigError, RequestError
from src.logging_utils import configure_logging, set_log_context, summarize_payload


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Render a note score with a WORLD voicebank.")
    parser.add_argument("--voicebank", help="Voicebank directory containing oto.ini.")
    parser.add_argument("--score", help="JSON score request file.")
    parser.add_argument("--output", default="output.wav", help="Output WAV path.")
    parser.add_argument("--workers", type=int, default=None, help="Parallel note renders.")
    parser.add_argument(
        "--analysis-workers",
        type=int,
        default=None,
        help="Sample analysis processes (0 = automatic).",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List voicebanks under WSYNTH_VOICEBANK_DIR and exit.",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging("DEBUG" if args.debug else None)
    set_log_context(session_id=uuid.uuid4().hex[:12])
    logger = logging.getLogger(__name__)
    settings = Settings.from_env()

    if args.list:
        for voicebank in list_voicebanks(settings.voicebank_dir):
            print(json.dumps(voicebank, ensure_ascii=False))
        return 0
    if not args.voicebank or not args.score:
        parser.error("--voicebank and --score are required")

    try:
        session = load_voicebank(
            args.voicebank,
            settings=settings,
            analysis_workers=args.analysis_workers,
        )
        result = synthesize(
            Path(args.score),
            session,
            settings=settings,
            max_workers=args.workers,
        )
    except (ConfigError, RequestError) as exc:
        logger.error("render_failed error=%s", exc.to_payload())
        print(str(exc), file=sys.stderr)
        return 2
    except FileNotFoundError as exc:
        logger.error("render_failed error=%s", exc)
        print(str(exc), file=sys.stderr)
        return 2

    saved = save_audio(
        result["waveform"],
        args.output,
        sample_rate=result["sample_rate"],
        subtype=settings.output_subtype,
    )
    logger.info(
        "render_done output=%s skipped=%s",
        summarize_payload(saved),
        len(result["skipped_notes"]),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
