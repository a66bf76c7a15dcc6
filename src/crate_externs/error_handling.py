"""
Centralized error handling for crate-externs.

Provides credential-safe logging and error callbacks for the manifest reader
and the resolver.
"""

import logging
import re
import sys
import traceback
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional


class ErrorLevel(Enum):
    """Error severity levels."""

    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ErrorCategory(Enum):
    """Error categories for better classification."""

    MANIFEST = "MANIFEST"
    FILESYSTEM = "FILESYSTEM"
    RESOLUTION = "RESOLUTION"


@dataclass
class ErrorContext:
    """Structured error context information."""

    level: ErrorLevel
    category: ErrorCategory
    message: str
    module: str
    function: str
    details: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[Exception] = None
    traceback_info: Optional[str] = None
    suggestions: List[str] = field(default_factory=list)


class SecureLogger:
    """Logger that strips credentials from messages.

    Git dependency URLs in a manifest may carry a user and token, and those
    end up in error details.
    """

    SENSITIVE_PATTERNS = [
        (r"(https?://[^@\s/]+:)[^@\s]+@", r"\1[REDACTED]@"),
        (r'token["\s]*[:=]["\s]*([a-zA-Z0-9_\-+=/.]{8,})', 'token="[REDACTED]"'),
        (r'password["\s]*[:=]["\s]*([^\s"\']+)', 'password="[REDACTED]"'),
    ]

    DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    def __init__(self, name: str, level: int = logging.WARNING):
        """
        Initialize secure logger.

        Args:
            name: Logger name
            level: Logging level
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)

        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(logging.Formatter(self.DEFAULT_FORMAT))
            self.logger.addHandler(handler)

    def configure(self, level: int, log_format: Optional[str] = None) -> None:
        """Change the level and, if given, the line format of the handlers."""
        self.logger.setLevel(level)
        if log_format:
            for handler in self.logger.handlers:
                handler.setFormatter(logging.Formatter(log_format))

    def _sanitize_message(self, message: str) -> str:
        """Remove credentials from a message."""
        sanitized = message
        for pattern, replacement in self.SENSITIVE_PATTERNS:
            sanitized = re.sub(pattern, replacement, sanitized, flags=re.IGNORECASE)
        return sanitized

    def _sanitize_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Sanitize dictionary values to remove sensitive info."""
        if not isinstance(data, dict):
            return data

        sanitized = {}
        sensitive_keys = {"token", "password", "secret", "credential"}

        for key, value in data.items():
            if any(sensitive_key in key.lower() for sensitive_key in sensitive_keys):
                sanitized[key] = "[REDACTED]"
            elif isinstance(value, dict):
                sanitized[key] = self._sanitize_dict(value)
            elif isinstance(value, str):
                sanitized[key] = self._sanitize_message(value)
            else:
                sanitized[key] = value

        return sanitized

    def log_error_context(self, context: ErrorContext):
        """
        Log error context with appropriate level.

        Args:
            context: Error context to log
        """
        log_data = {
            "category": context.category.value,
            "module": context.module,
            "function": context.function,
            "details": self._sanitize_dict(context.details),
        }

        if context.exception:
            log_data["exception"] = type(context.exception).__name__

        if context.suggestions:
            log_data["suggestions"] = context.suggestions

        log_message = f"{self._sanitize_message(context.message)} | {log_data}"
        self.logger.log(getattr(logging, context.level.value), log_message)


ErrorCallback = Callable[[ErrorContext], None]


class ErrorHandler:
    """
    Centralized error handler for consistent error management.

    Provides logging and callbacks.
    """

    def __init__(
        self,
        logger_name: str = "crate_externs",
        log_level: int = logging.WARNING,
    ):
        self.logger = SecureLogger(logger_name, log_level)
        self.error_callbacks: Dict[ErrorCategory, List[ErrorCallback]] = {}
        self.global_callbacks: List[ErrorCallback] = []

    def register_callback(
        self, callback: ErrorCallback, category: Optional[ErrorCategory] = None
    ):
        """
        Register error callback.

        Args:
            callback: Function to call on errors
            category: Error category to filter, None for all errors
        """
        if category is None:
            self.global_callbacks.append(callback)
        else:
            self.error_callbacks.setdefault(category, []).append(callback)

    def unregister_callback(
        self, callback: ErrorCallback, category: Optional[ErrorCategory] = None
    ):
        """Remove a callback added with register_callback, if present."""
        callbacks = (
            self.global_callbacks
            if category is None
            else self.error_callbacks.get(category, [])
        )
        if callback in callbacks:
            callbacks.remove(callback)

    def handle_error(
        self,
        level: ErrorLevel,
        category: ErrorCategory,
        message: str,
        module: str,
        function: str,
        exception: Optional[Exception] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ) -> ErrorContext:
        """
        Handle an error with structured logging and callbacks.

        Args:
            level: Error severity level
            category: Error category
            message: Error message
            module: Module where error occurred
            function: Function where error occurred
            exception: Optional exception object
            details: Additional error details
            suggestions: Suggested fixes

        Returns:
            ErrorContext: The created error context
        """
        context = ErrorContext(
            level=level,
            category=category,
            message=message,
            module=module,
            function=function,
            details=details or {},
            exception=exception,
            traceback_info=traceback.format_exc() if exception else None,
            suggestions=suggestions or [],
        )

        self.logger.log_error_context(context)

        for callback in self.error_callbacks.get(category, []) + self.global_callbacks:
            try:
                callback(context)
            except Exception as cb_error:
                # Callback failures must not mask the original error
                self.logger.logger.error(f"Error in callback: {cb_error}")

        return context

    def error(
        self,
        category: ErrorCategory,
        message: str,
        module: str,
        function: str,
        **kwargs,
    ) -> ErrorContext:
        """Handle error level error."""
        return self.handle_error(
            ErrorLevel.ERROR, category, message, module, function, **kwargs
        )

    def critical(
        self,
        category: ErrorCategory,
        message: str,
        module: str,
        function: str,
        **kwargs,
    ) -> ErrorContext:
        """Handle critical level error."""
        return self.handle_error(
            ErrorLevel.CRITICAL, category, message, module, function, **kwargs
        )


_global_error_handler: Optional[ErrorHandler] = None


def get_error_handler() -> ErrorHandler:
    """
    Get the global error handler instance.

    Returns:
        ErrorHandler: Global error handler
    """
    global _global_error_handler
    if _global_error_handler is None:
        _global_error_handler = ErrorHandler()
    return _global_error_handler


def log_manifest_error(
    message: str,
    function: str,
    file_path: Optional[str] = None,
    dependency: Optional[str] = None,
    source: Optional[str] = None,
    exception: Optional[Exception] = None,
):
    """
    Convenience function for logging manifest errors.

    Args:
        message: Error message
        function: Function name
        file_path: Manifest being read
        dependency: Dependency being processed, if any
        source: Git URL of the dependency, credentials are redacted
        exception: Optional exception
    """
    details = {}
    if file_path is not None:
        # Only the file name, the full path is not needed to diagnose
        details["file_path"] = Path(file_path).name
    if dependency is not None:
        details["dependency"] = dependency
    if source is not None:
        details["source"] = source

    get_error_handler().error(
        ErrorCategory.MANIFEST,
        message,
        "parsers",
        function,
        details=details,
        exception=exception,
        suggestions=[
            "Check that the file is a valid Cargo.toml",
            "Pin dependencies with an exact requirement such as `= 1.2.3`",
            "Use `rev = \"...\"` for git dependencies",
        ],
    )


def log_resolution_error(
    message: str,
    function: str,
    logical_name: Optional[str] = None,
    deps_dir: Optional[str] = None,
    exception: Optional[Exception] = None,
    critical: bool = False,
):
    """
    Convenience function for logging resolution errors.

    Args:
        message: Error message
        function: Function name
        logical_name: Dependency being resolved
        deps_dir: Output directory being scanned
        exception: Optional exception
        critical: Report at CRITICAL level (stale or corrupt output directory)
    """
    details = {}
    if logical_name is not None:
        details["logical_name"] = logical_name
    if deps_dir is not None:
        details["deps_dir"] = deps_dir

    handler = get_error_handler()
    report = handler.critical if critical else handler.error
    report(
        ErrorCategory.RESOLUTION,
        message,
        "resolver",
        function,
        details=details,
        exception=exception,
        suggestions=[
            "Run `cargo build` for the same profile before resolving",
            "Run `cargo clean` if the output directory looks stale",
        ],
    )
