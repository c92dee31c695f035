"""Logging helpers: bounded payload summaries and per-render context fields."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import fields, is_dataclass
from typing import Any, Dict, Iterator, Optional
from pathlib import Path
import logging
import logging.config
import json
from datetime import datetime, timezone
import os
import contextvars

import numpy as np

CONTEXT_FIELDS = ("session_id", "request_id", "voicebank")

DEFAULT_LOG_FORMAT = (
    "%(asctime)s %(levelname)s %(name)s %(filename)s:%(lineno)d:%(funcName)s "
    "session_id=%(session_id)s request_id=%(request_id)s voicebank=%(voicebank)s %(message)s"
)

_STANDARD_LOG_RECORD_KEYS = set(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
)

_context: Dict[str, contextvars.ContextVar] = {
    name: contextvars.ContextVar(f"log_{name}", default="-") for name in CONTEXT_FIELDS
}


def _summarize_array(value: np.ndarray) -> Dict[str, Any]:
    summary: Dict[str, Any] = {"__ndarray__": list(value.shape), "dtype": str(value.dtype)}
    # Waveforms and feature streams: the peak is what matters when debugging clipping.
    if value.size and np.issubdtype(value.dtype, np.floating):
        summary["peak"] = round(float(np.max(np.abs(value))), 6)
    return summary


def summarize_payload(value: Any, *, max_list: int = 20, max_str: int = 200, depth: int = 3) -> Any:
    """
    Return a size-limited, JSON-friendly summary of a payload for logging.

    Arrays collapse to shape/dtype (plus peak for float data), long lists to
    a length and a short sample, dataclasses (notes, timing entries) to
    their fields.
    """
    if depth <= 0:
        return f"<{type(value).__name__}>"

    def _child(item: Any) -> Any:
        return summarize_payload(item, max_list=max_list, max_str=max_str, depth=depth - 1)

    if isinstance(value, np.ndarray):
        return _summarize_array(value)
    if isinstance(value, np.generic):
        return value.item()
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: _child(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, dict):
        items = list(value.items())
        summarized: Dict[str, Any] = {str(key): _child(val) for key, val in items[:max_list]}
        if len(items) > max_list:
            summarized["__truncated__"] = True
            summarized["__len__"] = len(items)
        return summarized
    if isinstance(value, (list, tuple)):
        if len(value) > max_list:
            return {"__len__": len(value), "sample": [_child(item) for item in value[:5]]}
        return [_child(item) for item in value]
    if isinstance(value, str):
        return value if len(value) <= max_str else value[:max_str] + "...(truncated)"
    if isinstance(value, bytes):
        return {"__bytes__": len(value)}
    if isinstance(value, Path):
        return str(value)
    return value


def set_log_context(
    *,
    session_id: Optional[str] = None,
    request_id: Optional[str] = None,
    voicebank: Optional[str] = None,
) -> None:
    """Set context fields for log enrichment; ``None`` leaves a field as is."""
    for name, value in zip(CONTEXT_FIELDS, (session_id, request_id, voicebank)):
        if value is not None:
            _context[name].set(value)


def clear_log_context() -> None:
    """Reset log context fields to their default values."""
    for var in _context.values():
        var.set("-")


@contextmanager
def log_context(**values: Optional[str]) -> Iterator[None]:
    """Scope context fields to a block, restoring the previous values on exit."""
    unknown = set(values) - set(CONTEXT_FIELDS)
    if unknown:
        raise TypeError(f"Unknown log context fields: {sorted(unknown)}")
    tokens = [
        (_context[name], _context[name].set(value))
        for name, value in values.items()
        if value is not None
    ]
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


class LoggingContextFilter(logging.Filter):
    """Inject session/request/voicebank fields into each log record."""
    def filter(self, record: logging.LogRecord) -> bool:
        for name, var in _context.items():
            setattr(record, name, var.get())
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record, for structured logging sinks."""
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "severity": record.levelname,
            "logger": record.name,
            "file": record.filename,
            "line": record.lineno,
            "function": record.funcName,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            payload[name] = getattr(record, name, "-")
        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _STANDARD_LOG_RECORD_KEYS and key not in payload
        }
        if extras:
            payload.update(summarize_payload(extras))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def _use_json_logs() -> bool:
    """Return True when environment config requests JSON logs."""
    return os.getenv("LOG_FORMAT", "").lower() == "json" or os.getenv(
        "LOG_JSON", ""
    ).lower() in {"1", "true", "yes"}


def is_dev_env() -> bool:
    """Return True when running in development-like environments."""
    app_env = os.getenv("APP_ENV") or os.getenv("ENV") or "dev"
    return app_env.lower() in {"dev", "development", "local", "test"}


def build_formatter() -> logging.Formatter:
    """Build the active log formatter based on environment settings."""
    if _use_json_logs():
        return JsonFormatter()
    return logging.Formatter(DEFAULT_LOG_FORMAT)


def _prepare_handler(handler: logging.Handler) -> None:
    if not isinstance(handler.formatter, JsonFormatter):
        handler.setFormatter(build_formatter())
    if not any(isinstance(f, LoggingContextFilter) for f in handler.filters):
        handler.addFilter(LoggingContextFilter())


def configure_logging(level: Optional[str] = None) -> None:
    """
    Load ``config/logging.{dev,prod}.json`` and apply overrides.

    ``LOG_CONFIG`` replaces the config file; ``level`` (or
    ``WSYNTH_LOG_LEVEL``) overrides the root level.
    """
    root_dir = Path(__file__).resolve().parents[1]
    config_name = "logging.dev.json" if is_dev_env() else "logging.prod.json"
    config_path = root_dir / "config" / config_name
    override_path = os.getenv("LOG_CONFIG")
    if override_path:
        config_path = Path(override_path)
        if not config_path.is_absolute():
            config_path = root_dir / config_path
    if config_path.exists():
        config = json.loads(config_path.read_text(encoding="utf-8"))
        if _use_json_logs() and "json" in config.get("formatters", {}):
            for handler in config.get("handlers", {}).values():
                handler["formatter"] = "json"
        logging.config.dictConfig(config)
    else:
        logging.basicConfig(level=logging.INFO)
    level = level or os.getenv("WSYNTH_LOG_LEVEL")
    root = logging.getLogger()
    if level:
        root.setLevel(level.upper())
    for handler in root.handlers:
        _prepare_handler(handler)


def get_logger(module_name: str) -> logging.Logger:
    """Return a module logger; in dev also write it to ``$WSYNTH_LOG_DIR/<module>.log``."""
    logger = logging.getLogger(module_name)
    if getattr(logger, "_file_handler_attached", False) or not is_dev_env():
        return logger
    log_dir = Path(os.getenv("WSYNTH_LOG_DIR", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_dir / (module_name.replace(".", "_") + ".log"), encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    _prepare_handler(handler)
    logger.addHandler(handler)
    setattr(logger, "_file_handler_attached", True)
    return logger
