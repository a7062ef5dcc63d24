"""Tests for the exception hierarchy and logging helpers."""

import json
import logging

import pytest

from autotag.utils.errors import (
    AnalysisError,
    AutotagError,
    ConfigurationError,
    DecodeError,
    StoreError,
    TransactionConflictError,
)
from autotag.utils.logging import (
    ColoredFormatter,
    JSONFormatter,
    create_logger_with_context,
    setup_logging,
)


class TestErrors:

    @pytest.mark.parametrize("error", [
        DecodeError("bad", source="a.wav"),
        AnalysisError("bad", analyzer_name="tempo"),
        ConfigurationError("bad", config_key="audio"),
        StoreError("bad"),
        TransactionConflictError("bad", record_key="k", attempts=5),
    ])
    def test_hierarchy(self, error):
        assert isinstance(error, AutotagError)

    def test_str_includes_details(self):
        assert str(AutotagError("oops", details={"k": 1})) == "oops (Details: {'k': 1})"
        assert str(AutotagError("oops")) == "oops"

    def test_analysis_error_keeps_cause(self):
        cause = ValueError("nan")
        error = AnalysisError("failed", analyzer_name="key", original_error=cause)
        assert error.original_error is cause
        assert error.details == {"analyzer_name": "key", "original_error": "nan"}

    def test_conflict_details(self):
        error = TransactionConflictError("lost", record_key="k", attempts=3)
        assert error.details == {"record_key": "k", "attempts": 3}


def _record(msg="hello", level=logging.INFO, **attrs):
    record = logging.LogRecord("pipeline", level, __file__, 10, msg, None, None)
    for name, value in attrs.items():
        setattr(record, name, value)
    return record


class TestFormatters:

    def test_json_fields(self):
        payload = json.loads(JSONFormatter().format(_record()))
        assert payload["message"] == "hello"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "pipeline"
        assert "extra" not in payload

    def test_json_emits_context(self):
        payload = json.loads(JSONFormatter().format(_record(extra={"record_key": "k"})))
        assert payload["extra"] == {"record_key": "k"}

    def test_colored_leaves_record_untouched(self):
        record = _record(level=logging.WARNING)
        text = ColoredFormatter("%(levelname)s %(message)s").format(record)
        assert "\033[33m" in text
        assert record.levelname == "WARNING"


class TestLoggerAdapter:

    def test_context_reaches_handler(self):
        records = []

        class _Collect(logging.Handler):
            def emit(self, record):
                records.append(record)

        logger = logging.getLogger("test.context")
        handler = _Collect()
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        try:
            adapter = create_logger_with_context("test.context", {"record_key": "k"})
            adapter.info("stored", extra={"gen": "g1"})
        finally:
            logger.removeHandler(handler)

        assert records[0].extra == {"record_key": "k", "gen": "g1"}


class TestSetupLogging:

    def test_file_handler_writes_json(self, tmp_path):
        log_file = tmp_path / "logs" / "autotag.log"
        root = logging.getLogger()
        saved = (root.level, list(root.handlers))
        try:
            setup_logging(level="INFO", log_format="text", log_file=str(log_file),
                          console_enabled=False)
            logging.getLogger("reconcile").info("applied")
            for handler in root.handlers:
                handler.flush()
        finally:
            for handler in root.handlers:
                handler.close()
            root.setLevel(saved[0])
            root.handlers = saved[1]

        line = log_file.read_text().strip().splitlines()[-1]
        assert json.loads(line)["message"] == "applied"

    def test_unknown_format(self):
        with pytest.raises(ValueError):
            setup_logging(log_format="xml")
