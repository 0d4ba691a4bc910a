"""Tests for logging setup and the per-request JSON log line."""

import json
import logging
from pathlib import Path
from typing import Iterator

import pytest

from hl7_explainer.telemetry import log_request, logger, setup_logging


@pytest.fixture(autouse=True)
def _restore_logger() -> Iterator[None]:
    """Detach and close any sink a test attaches to the explainer logger."""
    handlers = list(logger.handlers)
    level = logger.level
    yield
    for handler in logger.handlers:
        if handler not in handlers:
            handler.close()
    logger.handlers = handlers
    logger.setLevel(level)


def _json_lines(path: Path):
    lines = path.read_text(encoding="utf-8").splitlines()
    return [json.loads(line[line.index("{"):]) for line in lines]


def test_file_sink_creates_directories(tmp_path: Path) -> None:
    log_file = tmp_path / "nested" / "dir" / "explainer.log"
    setup_logging(str(log_file))

    log_request(request_id="exp-1", source="203.0.113.5", outcome="success", tokens=7)

    assert log_file.exists()
    (record,) = _json_lines(log_file)
    assert record.pop("timestamp")
    assert record == {
        "request_id": "exp-1",
        "source": "203.0.113.5",
        "outcome": "success",
        "tokens": 7,
    }


def test_repeated_setup_attaches_each_sink_once(tmp_path: Path) -> None:
    log_file = tmp_path / "explainer.log"

    setup_logging(str(log_file))
    attached = len(logger.handlers)
    setup_logging(str(log_file))

    assert len(logger.handlers) == attached
    names = [h.get_name() for h in logger.handlers]
    assert names.count("console") == 1
    assert names.count("file:{}".format(log_file.resolve())) == 1


def test_stdout_only_without_log_file(tmp_path: Path) -> None:
    setup_logging(None)

    assert not any(isinstance(h, logging.FileHandler) for h in logger.handlers)
    assert list(tmp_path.iterdir()) == []


def test_level_filters_file_sink(tmp_path: Path) -> None:
    """A WARNING threshold drops routine outcomes but keeps provider errors."""
    log_file = tmp_path / "explainer.log"
    setup_logging(str(log_file), level="warning")

    log_request(request_id="exp-1", source="s", outcome="success", tokens=1)
    log_request(request_id="exp-2", source="s", outcome="provider_error", error="503")

    records = _json_lines(log_file)
    assert [r["request_id"] for r in records] == ["exp-2"]
    assert logger.level == logging.WARNING


def test_log_request_omits_unset_fields(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="explainer")
    log_request(request_id="exp-9", source="198.51.100.7", outcome="rate_limited")

    record = json.loads(caplog.records[-1].getMessage())
    assert set(record) == {"timestamp", "request_id", "source", "outcome"}
    assert caplog.records[-1].levelno == logging.INFO


def test_provider_errors_log_at_error_level(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="explainer")
    log_request(
        request_id="exp-3",
        source="s",
        outcome="provider_error",
        country="US",
        error="Provider returned HTTP 503",
    )

    last = caplog.records[-1]
    assert last.levelno == logging.ERROR
    record = json.loads(last.getMessage())
    assert record["country"] == "US"
    assert record["error"] == "Provider returned HTTP 503"
