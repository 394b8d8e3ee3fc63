"""Opt-in loguru output for ranking runs.

fastinteract logs through loguru but keeps its records switched off until a
caller asks for them with ``enable_logging()``. Checkpoints of a run (pairs
generated, scoring started, a worker finished, ranking done) are logged at the
custom ``PROGRESS`` level so they can be shown without the per-worker DEBUG
detail.

Note:
    loguru's default stderr handler (ID 0) is removed on import, so a run with
    logging enabled prints each record once. When the host application has
    already removed or replaced that handler the removal does nothing.
"""

from __future__ import annotations

import contextlib
import sys
import threading
import warnings
from typing import TYPE_CHECKING, ClassVar, Final, Literal, TextIO

from loguru import logger

if TYPE_CHECKING:
    from pathlib import Path
    from types import TracebackType

    from loguru import Record

PACKAGE_NAME: Final[str] = __name__.split(".")[0]

with contextlib.suppress(ValueError):
    logger.remove(0)

# Above INFO so run checkpoints survive a quiet level, below WARNING.
PROGRESS_LEVEL: Final[str] = "PROGRESS"
PROGRESS_LEVEL_NUMBER: Final[int] = 25


def _register_progress_level() -> None:
    """Add `PROGRESS` to loguru's levels unless it is already there.

    Another library may have registered a `PROGRESS` level first. loguru keeps
    the first numeric value, so a mismatch is reported as a UserWarning.
    """
    try:
        existing_level = logger.level(PROGRESS_LEVEL)
    except ValueError:
        logger.level(PROGRESS_LEVEL, no=PROGRESS_LEVEL_NUMBER, icon="⏱")
    else:
        if existing_level.no != PROGRESS_LEVEL_NUMBER:
            msg = (
                f"PROGRESS level already registered with numeric value {existing_level.no},"
                f" expected {PROGRESS_LEVEL_NUMBER}"
            )
            warnings.warn(msg, stacklevel=2)


_register_progress_level()

type LogLevel = Literal[
    "TRACE",
    "DEBUG",
    "INFO",
    "PROGRESS",
    "WARNING",
    "ERROR",
    "CRITICAL",
]

type LogFormat = Literal["short", "full"]


class LoggingHandle:
    """One enabled fastinteract log handler.

    Handles are counted across threads; package records stay enabled while
    at least one handle is live. Use the handle as a context manager around
    a ranking run, or call `disable()` once the run is over.

    Examples:
        >>> with enable_logging():  # doctest: +SKIP
        ...     rank_interactions(dataset, n_workers=4)

        >>> handle = enable_logging(level="DEBUG")  # doctest: +SKIP
        >>> handle.disable()  # doctest: +SKIP
    """

    _active_ids: ClassVar[set[int]] = set()
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, handler_id: int) -> None:
        """Register a live handler.

        Args:
            handler_id (int): ID returned by `logger.add`.
        """
        self.handler_id: int | None = handler_id
        with LoggingHandle._lock:
            LoggingHandle._active_ids.add(handler_id)

    def disable(self) -> None:
        """Remove this handle's handler; the last one switches package records off.

        Calling it again does nothing.
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
        """Return the handle itself.

        Returns:
            LoggingHandle: This handle.
        """
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Disable the handler, also when the ranking run raised."""
        self.disable()

    @classmethod
    def get_active_handle_count(cls) -> int:
        """Count the handles not yet disabled.

        Returns:
            int: Number of live handles.
        """
        with cls._lock:
            return len(cls._active_ids)


_SHORT_FORMAT: Final[str] = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{function}</cyan> - "
    "<level>{message}</level> {extra}"
)
_FULL_FORMAT: Final[str] = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "{thread.name} - "
    "<level>{message}</level> {extra}"
)


def enable_logging(
    *,
    level: LogLevel = PROGRESS_LEVEL,
    log_format: LogFormat = "short",
    sink: TextIO | Path | None = None,
) -> LoggingHandle:
    """Start emitting fastinteract records.

    Every call adds its own handler and returns its own handle, so a library
    caller and the command line can enable logging independently.

    Args:
        level (LogLevel): Lowest level shown. The default, "PROGRESS", shows
            run checkpoints only; "DEBUG" adds per-worker histogram and
            scoring detail.
        log_format (LogFormat): "short" prints time, level and function;
            "full" adds module, line and the worker thread name.
        sink (TextIO | Path | None): Destination of the records. A path is
            appended to, which keeps the log of several runs in one file.
            Defaults to the current `sys.stderr`.

    Returns:
        LoggingHandle: Handle owning the new handler.
    """
    logger.enable(PACKAGE_NAME)

    handler_id = logger.add(
        sys.stderr if sink is None else sink,
        level=level,
        filter=_is_fastinteract_record,
        format=_SHORT_FORMAT if log_format == "short" else _FULL_FORMAT,
    )

    return LoggingHandle(handler_id)


def _is_fastinteract_record(record: Record) -> bool:
    """Keep records emitted from fastinteract modules only.

    Args:
        record (Record): Candidate record.

    Returns:
        bool: Whether the record's module belongs to fastinteract.
    """
    name = record["name"]
    return name is not None and name.startswith(PACKAGE_NAME)
