"""Logging utilities for defectkit.

This module provides a custom STAGE log level for pipeline progress lines and
a context manager for enabling/disabling defectkit logging with loguru.

Note:
    Importing this module removes loguru's default stderr handler (ID 0) to
    prevent duplicate output when ``enable_logging()`` adds its own handler.
    If your application configures loguru handlers *before* importing
    defectkit, handler 0 may no longer be the default; in that case the
    removal is a no-op (the ``ValueError`` is suppressed). Configure loguru
    handlers *after* importing defectkit, or re-add a stderr handler
    explicitly if needed.
"""

from __future__ import annotations

import contextlib
import sys
import threading
import warnings
from typing import TYPE_CHECKING, ClassVar, Final, Literal

from loguru import logger

if TYPE_CHECKING:
    from types import TracebackType

    from loguru import Record

PACKAGE_NAME: Final[str] = __name__.split(".")[0]

with contextlib.suppress(ValueError):
    logger.remove(0)

# Register custom STAGE level (between INFO=20 and WARNING=30)
STAGE_LEVEL: Final[str] = "STAGE"
STAGE_LEVEL_NUMBER: Final[int] = 25


def _register_stage_level() -> None:
    """Register the STAGE custom log level with loguru.

    Looks up the STAGE level and registers it when missing. If it already
    exists with a different numeric value, emits a UserWarning because loguru
    does not permit changing the numeric value of an existing level.
    """
    try:
        existing_level = logger.level(STAGE_LEVEL)
    except ValueError:
        logger.level(STAGE_LEVEL, no=STAGE_LEVEL_NUMBER, icon="▶")
    else:
        if existing_level.no != STAGE_LEVEL_NUMBER:
            msg = f"STAGE level already registered as {existing_level.no}, expected {STAGE_LEVEL_NUMBER}"
            warnings.warn(msg, stacklevel=2)


_register_stage_level()

type LogLevel = Literal[
    "TRACE",
    "DEBUG",
    "INFO",
    "STAGE",
    "WARNING",
    "ERROR",
    "CRITICAL",
]

type LogFormat = Literal["short", "full"]


class LoggingHandle:
    """Handle for managing defectkit logging lifecycle.

    Stores the handler ID from logger.add() and provides cleanup via disable()
    or automatic cleanup through context manager protocol.

    Examples:
        >>> with enable_logging():  # doctest: +SKIP
        ...     run_pipeline(rows)

        >>> handle = enable_logging(level="DEBUG")  # doctest: +SKIP
        >>> handle.disable()  # doctest: +SKIP
    """

    _active_ids: ClassVar[set[int]] = set()
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, handler_id: int) -> None:
        """Initialize the logging handle.

        Args:
            handler_id (int): The loguru handler ID from logger.add().
        """
        self.handler_id: int | None = handler_id
        with LoggingHandle._lock:
            LoggingHandle._active_ids.add(handler_id)

    def disable(self) -> None:
        """Remove the handler associated with this logging handle.

        When this is the last active handle, ``logger.disable("defectkit")``
        is called to suppress defectkit log messages again.
        """
        with LoggingHandle._lock:
            if self.handler_id is None:
                return
            LoggingHandle._active_ids.discard(self.handler_id)
            with contextlib.suppress(ValueError):
                logger.remove(self.handler_id)
            self.handler_id = None
            if not LoggingHandle._active_ids:
                logger.disable(PACKAGE_NAME)

    def __enter__(self) -> LoggingHandle:
        """Enter context manager.

        Returns:
            LoggingHandle: This handle instance.
        """
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit context manager and disable logging."""
        self.disable()

    @classmethod
    def get_active_handle_count(cls) -> int:
        """Return the number of currently active logging handles.

        Returns:
            int: Count of active handles that have not been disabled.
        """
        with cls._lock:
            return len(cls._active_ids)


def enable_logging(
    *,
    level: LogLevel = STAGE_LEVEL,
    log_format: LogFormat = "short",
) -> LoggingHandle:
    """Enable defectkit logging on stderr.

    Each call returns an independent handle that manages its own handler; use
    the handle's disable() method or context manager protocol to clean up.

    Args:
        level (LogLevel): Minimum log level to display. Defaults to "STAGE",
            which surfaces exactly one line per pipeline stage. Lower to
            "DEBUG" to see dropped column names and split sizes.
        log_format (LogFormat): "short" (default) shows
            ``timestamp | level | function - message | key=value ...``; "full" adds the
            module and line number.

    Returns:
        LoggingHandle: Independent handle for managing the logging handler.

    Examples:
        >>> with enable_logging(level="DEBUG", log_format="full"):  # doctest: +SKIP
        ...     report = run_pipeline(rows)
    """
    logger.enable(PACKAGE_NAME)

    handler_id = logger.add(
        sys.stderr,
        level=level,
        filter=_is_defectkit_record,
        format=_LOG_FORMATS[log_format],
    )

    return LoggingHandle(handler_id)


def _short_format(record: Record) -> str:
    """Build the "short" format string for one record.

    Args:
        record (Record): The loguru Record being formatted.

    Returns:
        str: Loguru format string ending with the record's details, if any.
    """
    return (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "  # noqa: RUF027 - loguru format string
        "<cyan>{function}</cyan> - "
        "<level>{message}</level>" + _details_suffix(record)
    )


def _full_format(record: Record) -> str:
    """Build the "full" format string for one record.

    Args:
        record (Record): The loguru Record being formatted.

    Returns:
        str: Loguru format string ending with the record's details, if any.
    """
    return (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "  # noqa: RUF027 - loguru format string
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
        "<level>{message}</level>" + _details_suffix(record)
    )


def _details_suffix(record: Record) -> str:
    """Render bound fields as ``key=value`` pairs after the message.

    Callable loguru formats must supply their own line ending and exception slot.

    Args:
        record (Record): The loguru Record being formatted.

    Returns:
        str: Format string tail, including the trailing newline.
    """
    if not record["extra"]:
        return "\n{exception}"
    pairs = " ".join(f"{key}={{extra[{key}]}}" for key in record["extra"])
    return f" | <dim>{pairs}</dim>\n{{exception}}"


_LOG_FORMATS: Final = {"short": _short_format, "full": _full_format}


def _is_defectkit_record(record: Record) -> bool:
    """Filter to pass all defectkit module records.

    Args:
        record (Record): The loguru Record object to filter.

    Returns:
        bool: True if the record is from the defectkit package, False otherwise.
    """
    name = record["name"]
    return name is not None and name.startswith(PACKAGE_NAME)
