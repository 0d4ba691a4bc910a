"""Logging and telemetry for the HL7 explainer gateway.

Emits structured log records to stdout and appends them to an append-only
log file for local review. Payload text is never logged.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

logger = logging.getLogger("explainer")


def _has_sink(name: str) -> bool:
    return any(handler.get_name() == name for handler in logger.handlers)


def _add_sink(handler: logging.Handler, name: str) -> None:
    handler.set_name(name)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)


def setup_logging(log_file: Optional[str] = None, level: str = "INFO") -> None:
    """Attach the console sink and, if ``log_file`` is given, a file sink.

    Repeated calls only adjust the level; a sink is attached once per
    destination.

    Args:
        log_file: Path to the append-only log file; parent directories are
            created. ``None`` logs to stdout only.
        level: Threshold for the explainer logger, e.g. "INFO" or "DEBUG".
    """
    logger.setLevel(level.upper())

    if not _has_sink("console"):
        _add_sink(logging.StreamHandler(sys.stdout), "console")

    if log_file:
        path = Path(log_file)
        sink = "file:{}".format(path.resolve())
        if not _has_sink(sink):
            path.parent.mkdir(parents=True, exist_ok=True)
            _add_sink(logging.FileHandler(path, mode="a", encoding="utf-8"), sink)


def log_request(
    *,
    request_id: str,
    source: str,
    outcome: str,
    country: Optional[str] = None,
    tokens: Optional[int] = None,
    error: Optional[str] = None,
) -> None:
    """Log a single /explain outcome as one JSON line.

    Args:
        request_id: Gateway-assigned request ID.
        source: The rate-limit source key (client address).
        outcome: Short outcome label (e.g. "success", "rate_limited").
        country: Geo classification, once the request was admitted.
        tokens: Total tokens billed for the call, on success.
        error: Error detail; kept server-side only.
    """
    record: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "request_id": request_id,
        "source": source,
        "outcome": outcome,
    }

    if country is not None:
        record["country"] = country

    if tokens is not None:
        record["tokens"] = tokens

    if error:
        record["error"] = error

    if outcome == "provider_error":
        logger.error(json.dumps(record))
    else:
        logger.info(json.dumps(record))
