"""
Logging setup for the gigcrm CLI.

Engine modules log through logging.getLogger(__name__), so their loggers
(gigcrm.engine.contracts, gigcrm.api.client, ...) propagate to the parent
"gigcrm" logger. configure_logging() attaches the one rotating file handler
there, logs/gigcrm.log (5 MB, 3 backups), at the level named by LOG_LEVEL
(INFO when unset or unknown). Nothing is written to the terminal; click
commands report errors to stderr themselves.

log_call wraps the CLI commands and writes one CALL/OK/FAIL line per
invocation to the same "gigcrm" logger:

    2026-06-01 09:12:44 | INFO     | OK   contracts_send | 318ms
    2026-06-01 09:12:45 | ERROR    | FAIL contracts_send | ApiError: 404: not found | 97ms
"""

import functools
import logging
import logging.handlers
import os
import time
from pathlib import Path

_LOG_DIR = Path(__file__).parent.parent / "logs"
_LOG_FILE = _LOG_DIR / "gigcrm.log"
_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
_BACKUP_COUNT = 3


def configure_logging() -> logging.Logger:
    """
    Set up the gigcrm logger. Idempotent, safe to call on every CLI entry.
    Returns the configured logger.
    """
    _LOG_DIR.mkdir(exist_ok=True)

    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        level = logging.INFO

    logger = logging.getLogger("gigcrm")

    if logger.handlers:
        return logger

    logger.setLevel(level)

    handler = logging.handlers.RotatingFileHandler(
        _LOG_FILE,
        maxBytes=_MAX_BYTES,
        backupCount=_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT))
    logger.addHandler(handler)

    return logger


def log_call(func):
    """
    Decorator: logs entry, clean exit, and exceptions for any function.

    - DEBUG on entry   : CALL <name> | args=(...)
    - INFO  on success : OK   <name> | <N>ms
    - ERROR on failure : FAIL <name> | ExcType: message | <N>ms   (then re-raises)
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = logging.getLogger("gigcrm")
        name = func.__name__
        start = time.perf_counter()

        parts = [repr(a) for a in args] + [f"{k}={v!r}" for k, v in kwargs.items()]
        arg_str = ", ".join(parts) if parts else "—"
        logger.debug(f"CALL {name} | args=({arg_str})")

        try:
            result = func(*args, **kwargs)
            ms = int((time.perf_counter() - start) * 1000)
            logger.info(f"OK   {name} | {ms}ms")
            return result
        except Exception as exc:
            ms = int((time.perf_counter() - start) * 1000)
            logger.error(f"FAIL {name} | {type(exc).__name__}: {exc} | {ms}ms")
            raise

    return wrapper
