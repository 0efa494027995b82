"""
Logging infrastructure for the church site crawler.

Provides:
- Structured logging with millisecond timestamps
- key=value suffixes for machine-greppable context
- Console and optional file output
- Error and warning tracking for the end-of-run summary
"""

import logging
import sys
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..config import get_log_dir


class MillisecondsFormatter(logging.Formatter):
    """Formatter that includes milliseconds and aligns log levels."""

    def formatTime(self, record, datefmt=None):  # noqa: N802 - must match parent class method name
        ct = datetime.fromtimestamp(record.created)
        if datefmt and "%f" in datefmt:
            s = ct.strftime(datefmt.replace(",%f", ""))
            return s + f",{int(record.msecs):03d}"
        elif datefmt:
            return ct.strftime(datefmt)
        else:
            return ct.strftime("%Y-%m-%d %H:%M:%S") + f",{int(record.msecs):03d}"


def _format_kwargs(message: str, kwargs: dict) -> str:
    if not kwargs:
        return message
    formatted_data = " ".join(f"{k}={v}" for k, v in kwargs.items())
    return f"{message} [{formatted_data}]"


class CrawlerLogger:
    """
    Crawler logger with structured output.

    One instance is created by the entry point and handed to the crawler,
    the fetcher and the storage layer.
    """

    def __init__(
        self,
        name: str = "church_crawler",
        log_level: str = "INFO",
        log_file: Optional[str] = None,
        log_dir: Optional[Path] = None,
        phase: Optional[str] = None,
    ):
        """
        Initialize the crawler logger.

        Args:
            name: Logger name
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
            log_file: Optional log file name
            log_dir: Directory for log files (defaults to logs/)
            phase: Optional label shown in every line (e.g. the organization code)
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, log_level.upper()))
        self.phase = phase

        # Prevent propagation to root logger to avoid duplicate logs
        self.logger.propagate = False

        if self.logger.handlers:
            self.logger.handlers.clear()

        if phase:
            fmt_str = f"%(asctime)s | %(levelname)-8s | {phase} | %(filename)s:%(lineno)d | %(message)s"
        else:
            fmt_str = "%(asctime)s | %(levelname)-8s | %(filename)s:%(lineno)d | %(message)s"

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(getattr(logging, log_level.upper()))
        console_formatter = MillisecondsFormatter(fmt_str, datefmt="%Y-%m-%d %H:%M:%S,%f")
        console_handler.setFormatter(console_formatter)
        self.logger.addHandler(console_handler)

        if log_file:
            log_dir = log_dir or get_log_dir()
            log_dir.mkdir(parents=True, exist_ok=True)
            log_path = log_dir / log_file

            file_handler = logging.FileHandler(log_path, encoding="utf-8")
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(MillisecondsFormatter(fmt_str, datefmt="%Y-%m-%d %H:%M:%S,%f"))
            self.logger.addHandler(file_handler)

            self.info(f"Logging to file: {log_path}")

        self._configure_external_loggers(log_level, console_formatter)

        # Track errors for summary reporting
        self.errors = []
        self.warnings = []

    def _configure_external_loggers(self, log_level: str, formatter: logging.Formatter):
        """
        Route module and third-party loggers through the same format.

        Library modules log via logging.getLogger(__name__); they propagate to
        the root handler configured here.
        """
        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, log_level.upper()))
        root_logger.handlers.clear()

        root_handler = logging.StreamHandler(sys.stdout)
        root_handler.setLevel(getattr(logging, log_level.upper()))
        root_handler.setFormatter(formatter)
        root_logger.addHandler(root_handler)

        # Request lines from httpx are noise at INFO
        for lib_name in ["httpx", "httpcore", "LiteLLM", "pymysql"]:
            lib_logger = logging.getLogger(lib_name)
            lib_logger.handlers.clear()
            lib_logger.propagate = True
            lib_logger.setLevel(logging.WARNING)

    def debug(self, message: str, **kwargs):
        """Log debug message with optional structured data."""
        self.logger.debug(_format_kwargs(message, kwargs), stacklevel=2)

    def info(self, message: str, **kwargs):
        """Log info message with optional structured data."""
        self.logger.info(_format_kwargs(message, kwargs), stacklevel=2)

    def warning(self, message: str, **kwargs):
        """Log warning message and track for reporting."""
        message = _format_kwargs(message, kwargs)
        self.logger.warning(message, stacklevel=2)
        self.warnings.append(
            {
                "message": message,
                "timestamp": datetime.now().isoformat(),
                "data": kwargs,
            }
        )

    def error(self, message: str, exception: Optional[Exception] = None, **kwargs):
        """Log error message and track for reporting."""
        if exception:
            message = f"{message} | Exception: {str(exception)}"
        message = _format_kwargs(message, kwargs)

        self.logger.error(message, exc_info=exception is not None, stacklevel=2)
        self.errors.append(
            {
                "message": message,
                "exception": str(exception) if exception else None,
                "timestamp": datetime.now().isoformat(),
                "data": kwargs,
            }
        )

    def log_page_fetch(self, url: str, depth: int, count: int, max_pages: int, error: Optional[str] = None):
        """Log one deep-crawl fetch. Failures are warnings; the crawl goes on."""
        if error:
            self.warning(f"Failed to fetch page ({count}/{max_pages})", url=url, depth=depth, error=error)
        else:
            self.logger.debug(f"Fetched page ({count}/{max_pages}) [url={url} depth={depth}]", stacklevel=2)

    def log_crawl_start(self, code: str, url: str, deep_crawl: bool, max_depth: int, max_pages: int):
        """Log start of one organization crawl."""
        self.info("=" * 60)
        self.info(
            f"Crawl started: {code}",
            url=url,
            deep_crawl=deep_crawl,
            max_depth=max_depth,
            max_pages=max_pages,
        )
        self.info("=" * 60)

    def log_crawl_complete(
        self,
        code: str,
        success: bool,
        navigation: int,
        dictionary: int,
        errors: int,
        duration_seconds: float,
    ):
        """Log completion of one organization crawl."""
        self.info(
            f"Crawl {'completed' if success else 'FAILED'}: {code}",
            navigation=navigation,
            dictionary=dictionary,
            errors=errors,
            duration_seconds=round(duration_seconds, 2),
        )

    def log_batch_complete(self, succeeded: int, failed: int, duration_seconds: float):
        """Log completion of a batch run over several organizations."""
        self.info("=" * 60)
        self.info(
            "Batch crawl completed",
            succeeded=succeeded,
            failed=failed,
            total=succeeded + failed,
            duration_seconds=round(duration_seconds, 2),
        )
        self.info("=" * 60)

    @contextmanager
    def time_operation(self, operation: str, **context):
        """
        Context manager to time and log one crawl step.

        Usage:
            with logger.time_operation("navigation extraction", code="sarang"):
                ...
        """
        start_time = datetime.now()
        self.debug(f"Starting {operation}", **context)
        try:
            yield
        except Exception as e:
            duration = (datetime.now() - start_time).total_seconds()
            self.error(f"Failed {operation}", exception=e, duration_seconds=round(duration, 2), **context)
            raise
        duration = (datetime.now() - start_time).total_seconds()
        self.debug(f"Completed {operation}", duration_seconds=round(duration, 2), **context)

    def get_error_summary(self) -> dict:
        """Get summary of errors and warnings for reporting."""
        return {
            "total_errors": len(self.errors),
            "total_warnings": len(self.warnings),
            "errors": self.errors,
            "warnings": self.warnings,
        }

    def clear_tracking(self):
        """Clear tracked errors and warnings (between organizations in a batch)."""
        self.errors = []
        self.warnings = []
