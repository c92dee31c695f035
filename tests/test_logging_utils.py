import logging
import uuid

import numpy as np

from src.logging_utils import (
    JsonFormatter,
    build_formatter,
    clear_log_context,
    get_logger,
    log_context,
    LoggingContextFilter,
    set_log_context,
    summarize_payload,
)


def _has_file_handler(logger: logging.Logger) -> bool:
    return any(isinstance(handler, logging.FileHandler) for handler in logger.handlers)


def _record() -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname="test_path.py",
        lineno=12,
        msg="hello",
        args=(),
        exc_info=None,
        func="test_func",
    )


def test_get_logger_in_prod_has_no_file_handler(monkeypatch):
    monkeypatch.setenv("APP_ENV", "prod")
    logger_name = f"test_logger_prod_{uuid.uuid4().hex}"
    logger = get_logger(logger_name)
    assert not _has_file_handler(logger)


def test_get_logger_in_dev_has_file_handler(monkeypatch, tmp_path):
    monkeypatch.setenv("APP_ENV", "dev")
    monkeypatch.setenv("WSYNTH_LOG_DIR", str(tmp_path))
    logger_name = f"test_logger_dev_{uuid.uuid4().hex}"
    logger = get_logger(logger_name)
    assert _has_file_handler(logger)
    assert any(path.name.startswith("test_logger_dev_") for path in tmp_path.iterdir())


def test_log_format_includes_context_fields(monkeypatch):
    monkeypatch.delenv("LOG_JSON", raising=False)
    monkeypatch.delenv("LOG_FORMAT", raising=False)
    formatter = build_formatter()
    record = _record()
    set_log_context(session_id="s1", request_id="r1", voicebank="TestBank")
    LoggingContextFilter().filter(record)
    formatted = formatter.format(record)
    assert "session_id=s1" in formatted
    assert "request_id=r1" in formatted
    assert "voicebank=TestBank" in formatted
    clear_log_context()


def test_json_format_includes_context_fields(monkeypatch):
    monkeypatch.setenv("LOG_FORMAT", "json")
    formatter = build_formatter()
    assert isinstance(formatter, JsonFormatter)
    record = _record()
    set_log_context(session_id="s1", request_id="r1", voicebank="TestBank")
    LoggingContextFilter().filter(record)
    formatted = formatter.format(record)
    assert '"session_id"' in formatted
    assert '"request_id"' in formatted
    assert '"voicebank"' in formatted
    clear_log_context()


def test_clear_log_context_resets_fields():
    set_log_context(voicebank="TestBank")
    clear_log_context()
    record = _record()
    LoggingContextFilter().filter(record)
    assert record.voicebank == "-"


def test_summarize_payload_truncates_arrays_and_lists():
    summary = summarize_payload({"waveform": np.zeros((3, 4)), "notes": list(range(50))})
    assert summary["waveform"] == {"__ndarray__": [3, 4], "dtype": "float64", "peak": 0.0}
    assert summary["notes"]["__len__"] == 50
    assert summary["notes"]["sample"] == [0, 1, 2, 3, 4]


def test_prod_env_logs_propagate_to_stdout(caplog, monkeypatch):
    monkeypatch.setenv("APP_ENV", "prod")
    logger_name = f"test_logger_prod_emit_{uuid.uuid4().hex}"
    logger = get_logger(logger_name)
    assert not _has_file_handler(logger)
    assert logger.propagate is True

    caplog.set_level(logging.INFO)
    logger.info("prod_log_test")
    assert any(record.message == "prod_log_test" for record in caplog.records)


def test_log_context_restores_previous_values():
    clear_log_context()
    set_log_context(voicebank="Outer")
    with log_context(request_id="r2", voicebank="Inner"):
        record = _record()
        LoggingContextFilter().filter(record)
        assert (record.request_id, record.voicebank) == ("r2", "Inner")
    record = _record()
    LoggingContextFilter().filter(record)
    assert (record.request_id, record.voicebank) == ("-", "Outer")
    clear_log_context()
