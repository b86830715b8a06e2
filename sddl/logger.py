"""
Structured logging for the SDDL resolver.

Messages go to stdout and, optionally, a daily log file. Keyword context is
appended as JSON. The logger also keeps the counters used to judge
resolution health (acceptance, identifier sources, endpoint success rates).
"""

import json
import logging
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(threadName)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_LOG_DIR = Path("logs")


def _level(name: str) -> int:
    return getattr(logging, name.upper())


def _attach(logger: logging.Logger, handler: logging.Handler, level: int, fmt: str) -> None:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=fmt, datefmt=DATE_FORMAT))
    logger.addHandler(handler)


def _empty_metrics() -> dict:
    return {
        "resolutions_requested": 0,
        "resolutions_accepted": 0,
        "resolutions_dropped": {},
        "identifier_sources": {},
        "fallbacks": 0,
        "errors_by_type": {},
        "endpoint_success_rate": {},
    }


class StructuredLogger:
    """
    Logger with console and file outputs plus resolution metrics.

    Safe to share between the caller, the scheduler thread and io workers.
    """

    def __init__(
        self,
        name: str = "sddl",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = False,
        enable_console: bool = True,
    ):
        """
        Args:
            name: Name of the underlying logging.Logger
            level: Console threshold (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Where the daily file goes when enable_file is set (default: logs/)
            enable_file: Also write every record, DEBUG included, to a file
            enable_console: Write records at ``level`` and above to stdout
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(_level(level))
        # Re-creating a logger of the same name replaces its handlers
        self.logger.handlers.clear()
        self.logger.propagate = False

        self._lock = threading.Lock()
        self.metrics = _empty_metrics()

        if enable_console:
            _attach(self.logger, logging.StreamHandler(sys.stdout), _level(level), CONSOLE_FORMAT)

        if enable_file:
            log_dir = Path(log_dir) if log_dir is not None else DEFAULT_LOG_DIR
            log_dir.mkdir(parents=True, exist_ok=True)
            log_file = log_dir / f"sddl_{datetime.now():%Y%m%d}.log"
            _attach(self.logger, logging.FileHandler(log_file, encoding="utf-8"), logging.DEBUG, FILE_FORMAT)

    def debug(self, message: str, **kwargs):
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs):
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs):
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs):
        self._log(logging.ERROR, message, kwargs)

    def critical(self, message: str, **kwargs):
        self._log(logging.CRITICAL, message, kwargs)

    def _log(self, level: int, message: str, context: dict):
        if not self.logger.isEnabledFor(level):
            return
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    # Metrics

    def _bump(self, section: str, key: str) -> None:
        with self._lock:
            counts = self.metrics[section]
            counts[key] = counts.get(key, 0) + 1

    def record_resolution_requested(self):
        """Count an invocation, whether or not it is accepted."""
        with self._lock:
            self.metrics["resolutions_requested"] += 1

    def record_resolution_accepted(self):
        with self._lock:
            self.metrics["resolutions_accepted"] += 1

    def record_resolution_dropped(self, reason: str):
        """Count an invocation dropped by the gate ("in_flight") or the cold-start flag."""
        self._bump("resolutions_dropped", reason)

    def record_identifier_source(self, source: str):
        self._bump("identifier_sources", source)

    def record_fallback(self):
        """Count a by-id 404/410 converted into a try request."""
        with self._lock:
            self.metrics["fallbacks"] += 1

    def record_fetch_attempt(self, endpoint: str):
        with self._lock:
            stats = self.metrics["endpoint_success_rate"].setdefault(
                endpoint, {"attempts": 0, "successes": 0}
            )
            stats["attempts"] += 1

    def record_fetch_success(self, endpoint: str):
        with self._lock:
            stats = self.metrics["endpoint_success_rate"].get(endpoint)
            if stats is not None:
                stats["successes"] += 1

    def record_fetch_failure(self, endpoint: str, error_type: str):
        self._bump("errors_by_type", error_type)

    def get_metrics(self) -> dict:
        """
        Snapshot of the counters.

        Each endpoint entry gains a ``success_rate`` (0-1, three decimals)
        once it has at least one attempt. The snapshot is a copy; mutating it
        does not affect the logger.
        """
        with self._lock:
            snapshot = json.loads(json.dumps(self.metrics))
        for stats in snapshot["endpoint_success_rate"].values():
            if stats["attempts"]:
                stats["success_rate"] = round(stats["successes"] / stats["attempts"], 3)
        return snapshot

    def log_metrics_summary(self):
        metrics = self.get_metrics()

        self.info("=== Resolution Session Metrics ===")
        self.info(f"Resolutions: {metrics['resolutions_accepted']}/{metrics['resolutions_requested']} accepted")
        for title, section in (
            ("Dropped", "resolutions_dropped"),
            ("Identifier Sources", "identifier_sources"),
        ):
            if metrics[section]:
                self.info(f"{title}:")
                for key, count in metrics[section].items():
                    self.info(f"  {key}: {count}")

        if metrics["endpoint_success_rate"]:
            self.info("Endpoint Success Rates:")
            for endpoint, stats in metrics["endpoint_success_rate"].items():
                pct = stats.get("success_rate", 0) * 100
                self.info(f"  {endpoint}: {stats['successes']}/{stats['attempts']} ({pct:.1f}%)")
        self.info(f"Fallbacks: {metrics['fallbacks']}")

        if metrics["errors_by_type"]:
            self.info("Errors:")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


_global_logger: Optional[StructuredLogger] = None
_global_lock = threading.Lock()


def get_logger(name: str = "sddl", level: str = "INFO", **kwargs) -> StructuredLogger:
    """
    Return the process-wide logger, creating it on first use.

    Arguments only apply to the call that creates it; ``kwargs`` are passed
    to StructuredLogger.
    """
    global _global_logger

    with _global_lock:
        if _global_logger is None:
            _global_logger = StructuredLogger(name=name, level=level, **kwargs)
        return _global_logger


def reset_logger():
    """Drop the process-wide logger so the next get_logger builds a fresh one."""
    global _global_logger

    with _global_lock:
        _global_logger = None
