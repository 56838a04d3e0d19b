# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Structured logging setup for hosts embedding the badge gate.

The library itself only creates module loggers. Applications call
:func:`configure_logging` once at startup to get one JSON object per
line on stdout, or plain text when ``BADGEGATE_LOG_FORMAT=text``.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Dict, Optional

from badgegate.config import LOG_FORMAT, LOG_LEVEL

_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter.

    Produces one JSON object per log line with fields ``timestamp``,
    ``level``, ``logger``, ``message``, ``module`` and ``funcName``.
    Values passed through ``extra=`` are copied in as additional keys,
    and an exception traceback is serialized as ``exception``.
    """

    _RESERVED = frozenset(vars(logging.makeLogRecord({})).keys()) | {"message", "asctime"}

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "funcName": record.funcName,
        }
        for key, value in record.__dict__.items():
            if key not in self._RESERVED and not key.startswith("_"):
                log_entry[key] = value
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def configure_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """Configure the root logger with a single stdout handler.

    Existing root handlers are removed first to prevent duplicate output
    when the host framework has already installed its own.
    """
    level = level or LOG_LEVEL
    fmt = (fmt or LOG_FORMAT).lower()

    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))

    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Suppress noisy third-party loggers.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
