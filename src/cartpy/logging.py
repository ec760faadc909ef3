"""Logging utilities for cartpy.

cartpy logs through loguru and is silent by default.  ``enable_logging()``
adds a stderr handler that only passes cartpy records and returns a handle
that removes it again, either explicitly or as a context manager::

    with enable_logging(level="DEBUG"):
        tree = grow(rows)
"""
from __future__ import annotations

import contextlib
import sys
import threading
from typing import TYPE_CHECKING, ClassVar, Literal

from loguru import logger

if TYPE_CHECKING:
    from types import TracebackType

    from loguru import Record

PACKAGE_NAME: str = __name__.split(".")[0]

LogLevel = Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{function}</cyan> - "
    "<level>{message}</level>"
)


class LoggingHandle:
    """Handle owning one loguru handler added by :func:`enable_logging`.

    When the last active handle is disabled, cartpy logging is switched off
    again with ``logger.disable("cartpy")``.

    Examples:
        >>> with enable_logging(level="DEBUG"):  # doctest: +SKIP
        ...     tree = grow(rows)

        >>> handle = enable_logging()  # doctest: +SKIP
        >>> prune(tree, 0.5, notify=True)  # doctest: +SKIP
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

        Calling it again is a no-op.  When this is the last active handle,
        ``logger.disable("cartpy")`` suppresses cartpy records, including those
        routed to handlers the application added on its own.
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
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.disable()


def enable_logging(*, level: LogLevel = "INFO", sink=sys.stderr) -> LoggingHandle:
    """Enable cartpy logging.

    Args:
        level (LogLevel): Minimum level to show. ``"INFO"`` shows prune
            notifications; ``"DEBUG"`` also shows every split and merge.
        sink: Any loguru sink; defaults to ``sys.stderr``.

    Returns:
        LoggingHandle: Handle that removes the handler on ``disable()`` or on
            leaving a ``with`` block.
    """
    logger.enable(PACKAGE_NAME)
    handler_id = logger.add(sink, level=level, filter=_is_cartpy_record, format=_FORMAT)
    return LoggingHandle(handler_id)


def _is_cartpy_record(record: Record) -> bool:
    name = record["name"]
    return name is not None and name.startswith(PACKAGE_NAME)
