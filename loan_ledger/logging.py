"""Logging setup for loan-ledger.

Ledger log calls attach entity identifiers through ``extra``::

    logger.info("Payment recorded", extra=ledger_context(loan_id=loan.loan_id))

Both formatters render those identifiers: the standard one as a trailing
``[loan_id=...]`` block, the JSON one as top-level keys.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, TextIO

CONTEXT_FIELDS = ("client_id", "loan_id", "payment_id", "receipt_id")

# Third-party loggers held at WARNING regardless of the ledger level
QUIET_LOGGERS = ("confluent_kafka", "psycopg", "faker")

STANDARD_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s%(context)s"


def ledger_context(**ids: str | None) -> dict[str, str]:
    """Build an ``extra`` mapping from entity identifiers, dropping unset ones."""
    unknown = set(ids) - set(CONTEXT_FIELDS)
    if unknown:
        raise ValueError(f"Unknown log context fields: {sorted(unknown)}")
    return {key: value for key, value in ids.items() if value is not None}


class LedgerContextFilter(logging.Filter):
    """Render the identifiers of a record into ``record.context``."""

    def filter(self, record: logging.LogRecord) -> bool:
        pairs = [f"{key}={getattr(record, key)}" for key in CONTEXT_FIELDS if getattr(record, key, None)]
        record.context = f" [{' '.join(pairs)}]" if pairs else ""
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record, with ledger identifiers as top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(
    level: str = "INFO",
    format_type: str = "standard",
    stream: TextIO | None = None,
) -> logging.Handler:
    """Configure the root logger for loan-ledger.

    Parameters
    ----------
    level : str
        Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL). Unknown names fall
        back to INFO.
    format_type : str
        Format type: "standard" or "json".
    stream : TextIO | None
        Output stream (default: stdout).

    Returns
    -------
    logging.Handler
        The installed handler, the only one left on the root logger.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if format_type == "json":
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(fmt=STANDARD_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(formatter)
    handler.addFilter(LedgerContextFilter())
    root_logger.addHandler(handler)

    logging.getLogger("loan_ledger").setLevel(log_level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return handler


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
