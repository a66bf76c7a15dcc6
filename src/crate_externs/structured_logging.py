"""
Structured logging configuration for crate-externs.

Provides machine-readable events for manifest reading and artifact
resolution. Events go to stderr so they never mix with the flags printed on
stdout.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .error_handling import get_error_handler

_RESERVED_RECORD_KEYS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "getMessage",
    "exc_info",
    "exc_text",
    "stack_info",
    "taskName",
    "message",
}


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


class PlainFormatter(logging.Formatter):
    """Human-readable formatter: event name followed by key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        fields = " ".join(
            f"{key}={value}"
            for key, value in record.__dict__.items()
            if key not in _RESERVED_RECORD_KEYS and key != "event_type"
        )
        event = getattr(record, "event_type", record.getMessage())
        return f"{record.levelname:<8} {record.name}: {event} {fields}".rstrip()


class ResolverLogger:
    """Structured logger for resolution events."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)
        self.logger.propagate = False
        self._setup_logger()
        self.run_context: Dict[str, Any] = {}

    def _setup_logger(self) -> None:
        """Setup logger with structured formatting."""
        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(StructuredFormatter())
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.WARNING)

    def set_formatter(self, formatter: logging.Formatter) -> None:
        for handler in self.logger.handlers:
            handler.setFormatter(formatter)

    def set_run_context(
        self,
        manifest_path: Optional[str] = None,
        deps_dir: Optional[str] = None,
        total_dependencies: Optional[int] = None,
    ) -> None:
        """Set run context for logging."""
        self.run_context = {}
        if manifest_path:
            self.run_context["manifest_path"] = manifest_path
        if deps_dir:
            self.run_context["deps_dir"] = deps_dir
        if total_dependencies is not None:
            self.run_context["total_dependencies"] = total_dependencies

    def clear_run_context(self) -> None:
        """Clear run context."""
        self.run_context.clear()

    def _log(self, level: str, event_type: str, **kwargs) -> None:
        log_data = {"event_type": event_type, **self.run_context, **kwargs}
        getattr(self.logger, level.lower())(event_type, extra=log_data)

    def info(self, event_type: str, **kwargs) -> None:
        """Log info level event."""
        self._log("info", event_type, **kwargs)

    def debug(self, event_type: str, **kwargs) -> None:
        """Log debug level event."""
        self._log("debug", event_type, **kwargs)


_resolver_logger = ResolverLogger("crate_externs.resolver")
_manifest_logger = ResolverLogger("crate_externs.manifest")

_ALL_LOGGERS = (_resolver_logger, _manifest_logger)


def get_resolver_logger() -> ResolverLogger:
    """Get artifact resolution logger."""
    return _resolver_logger


def get_manifest_logger() -> ResolverLogger:
    """Get manifest reading logger."""
    return _manifest_logger


def log_manifest_loaded(manifest_path: str, total_dependencies: int) -> None:
    """Log that a manifest was read."""
    get_manifest_logger().info(
        "manifest_loaded",
        manifest_path=manifest_path,
        total_dependencies=total_dependencies,
    )


def log_resolution_start(logical_name: str, symbol_name: str, patterns) -> None:
    get_resolver_logger().debug(
        "resolution_started",
        logical_name=logical_name,
        symbol_name=symbol_name,
        patterns=list(patterns),
    )


def log_candidate_rejected(logical_name: str, candidate: str) -> None:
    get_resolver_logger().debug(
        "candidate_rejected", logical_name=logical_name, candidate=candidate
    )


def log_dependency_resolved(
    logical_name: str, symbol_name: str, artifact_path: str, candidates_scanned: int
) -> None:
    """Log a successful resolution."""
    get_resolver_logger().info(
        "dependency_resolved",
        logical_name=logical_name,
        symbol_name=symbol_name,
        artifact_path=artifact_path,
        candidates_scanned=candidates_scanned,
    )


def log_resolution_failed(logical_name: str, reason: str, **kwargs) -> None:
    """Trace why a resolution failed. The error itself is reported by the error handler."""
    get_resolver_logger().debug(
        "resolution_failed", logical_name=logical_name, reason=reason, **kwargs
    )


def log_batch_resolved(deps_dir: str, resolved_count: int, duration_ms: int) -> None:
    get_resolver_logger().info(
        "batch_resolved",
        deps_dir=deps_dir,
        resolved_count=resolved_count,
        duration_ms=duration_ms,
    )


def set_run_context(
    manifest_path: Optional[str] = None,
    deps_dir: Optional[str] = None,
    total_dependencies: Optional[int] = None,
) -> None:
    """Set global run context for all loggers."""
    for logger in _ALL_LOGGERS:
        logger.set_run_context(manifest_path, deps_dir, total_dependencies)


def clear_run_context() -> None:
    """Clear global run context."""
    for logger in _ALL_LOGGERS:
        logger.clear_run_context()


def configure_logging(
    log_level: str = "WARNING",
    enable_json: bool = True,
    log_format: Optional[str] = None,
) -> None:
    """
    Configure logging for the application.

    The level applies to the event loggers and to the error handler's logger
    alike, so one setting silences or opens up all stderr diagnostics.

    Args:
        log_level: Level name such as "DEBUG" or "CRITICAL"
        enable_json: JSON events instead of plain key=value lines
        log_format: Line format for error handler records
    """
    level = getattr(logging, log_level.upper(), logging.WARNING)
    formatter = StructuredFormatter() if enable_json else PlainFormatter()

    for logger in _ALL_LOGGERS:
        logger.logger.setLevel(level)
        logger.set_formatter(formatter)

    get_error_handler().logger.configure(level, log_format)
