"""Diagnostics — structured logging, console logging, faulthandler.

Layers:
1. Structured JSON logs with RotatingFileHandler under ~/.pxsort/logs
2. Plain console logging on stderr for the CLI
3. faulthandler: C-level crash tracebacks (SIGSEGV, SIGABRT)
"""

import datetime
import faulthandler
import json
import logging
import logging.handlers
import os
import sys
from pathlib import Path

logger = logging.getLogger(__name__)

APP_DIR = "~/.pxsort"
LOG_FILE = "pxsort.log"

# Maximum log age in days
MAX_LOG_AGE_DAYS = 7


def _validate_log_dir(env_dir: str) -> str:
    """Validate PXSORT_LOG_DIR is under ~/.pxsort. Returns safe path."""
    default = os.path.join(os.path.expanduser(APP_DIR), "logs")
    if env_dir:
        resolved = os.path.realpath(env_dir)
        allowed = os.path.realpath(os.path.expanduser(APP_DIR))
        if not resolved.startswith(allowed + os.sep) and resolved != allowed:
            logger.warning("PXSORT_LOG_DIR outside allowed prefix, using default")
            return default
        return resolved
    return default


class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.datetime.fromtimestamp(
                record.created, tz=datetime.timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = {
                "type": type(record.exc_info[1]).__name__,
                "traceback": self.formatException(record.exc_info),
            }
        return json.dumps(log_entry)


def _cleanup_old_logs(log_dir: str):
    """Delete log files older than MAX_LOG_AGE_DAYS."""
    cutoff = datetime.datetime.now() - datetime.timedelta(days=MAX_LOG_AGE_DAYS)
    try:
        for f in Path(log_dir).glob(f"{LOG_FILE}*"):
            if f.stat().st_mtime < cutoff.timestamp():
                f.unlink(missing_ok=True)
    except OSError as e:
        logger.debug("Log cleanup skipped: %s", e)


def setup_structured_logging(log_dir: str | None = None) -> str:
    """Configure structured JSON logging with rotation.

    Args:
        log_dir: Override log directory (validated against ~/.pxsort prefix).

    Returns:
        The directory logs are written to.
    """
    resolved_dir = _validate_log_dir(log_dir or os.environ.get("PXSORT_LOG_DIR", ""))
    os.makedirs(resolved_dir, mode=0o700, exist_ok=True)

    log_path = os.path.join(resolved_dir, LOG_FILE)
    log_level = os.environ.get("PXSORT_LOG_LEVEL", "INFO").upper()

    # Rotating handler: 10MB max, 7 backups
    handler = logging.handlers.RotatingFileHandler(
        log_path,
        maxBytes=10_000_000,
        backupCount=7,
    )
    handler.setFormatter(JSONFormatter())

    root = logging.getLogger()
    root.setLevel(getattr(logging, log_level, logging.INFO))
    root.addHandler(handler)

    _cleanup_old_logs(resolved_dir)

    return resolved_dir


def setup_console_logging(level: int = logging.INFO) -> logging.Handler:
    """Attach a plain stderr handler to the root logger."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    root = logging.getLogger()
    if root.level > level or root.level == logging.NOTSET:
        root.setLevel(level)
    root.addHandler(handler)
    return handler


def setup_faulthandler(log_dir: str):
    """Enable faulthandler for C-level crash tracebacks.

    Uses a SEPARATE file from the main log (RotatingFileHandler would
    invalidate the faulthandler file descriptor on rotation).
    """
    fault_path = os.path.join(log_dir, "pxsort_fault.log")
    try:
        fault_file = open(fault_path, "a", buffering=1)  # noqa: SIM115
        os.chmod(fault_path, 0o600)
        faulthandler.enable(file=fault_file, all_threads=True)
    except OSError as e:
        print(f"WARNING: Could not enable faulthandler: {e}", file=sys.stderr)


def init_diagnostics(log_dir: str | None = None) -> str:
    """Initialize all diagnostic layers. Call from main.py."""
    resolved_dir = setup_structured_logging(log_dir)
    setup_faulthandler(resolved_dir)
    logger.info("Diagnostics initialized: logging=%s, faulthandler=enabled", resolved_dir)
    return resolved_dir
