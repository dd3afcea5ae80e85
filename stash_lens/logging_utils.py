"""
Logging helpers for stash-lens.

Besides the usual verbosity-based setup, this module owns the format of
the execution log: one line per git invocation, appended to the
``stash_lens.executions`` logger when debugging is enabled. Embedders
attach whatever handler they like (an output panel, a file) to it.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from typing import Optional, Sequence

EXECUTION_LOGGER_NAME = "stash_lens.executions"

EXECUTION_LOG = logging.getLogger(EXECUTION_LOGGER_NAME)
_EXECUTION_HANDLER_NAME = "stash-lens-stderr"


def configure_logging(verbosity: int, debug: bool = False) -> None:
    """
    Configure logging based on a verbosity count and the debug flag.

    verbosity == 0 -> WARNING
    verbosity == 1 -> INFO
    verbosity >= 2 -> DEBUG

    With ``debug`` the execution log is echoed to stderr as bare lines.
    Calling this again reuses the same handler, so repeated runs in one
    process never duplicate execution log lines.
    """

    if verbosity <= 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not debug:
        return

    for handler in EXECUTION_LOG.handlers:
        if handler.get_name() == _EXECUTION_HANDLER_NAME:
            handler.setStream(sys.stderr)
            break
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.set_name(_EXECUTION_HANDLER_NAME)
        handler.setFormatter(logging.Formatter("%(message)s"))
        EXECUTION_LOG.addHandler(handler)
    EXECUTION_LOG.setLevel(logging.INFO)
    EXECUTION_LOG.propagate = False


def format_execution_line(
    command: str,
    args: Sequence[str],
    elapsed_ms: Optional[int] = None,
    when: Optional[datetime] = None,
) -> str:
    """Return ``2024-05-01T10:00:00 > git stash list [12ms]``."""

    timestamp = (when or datetime.now()).isoformat(timespec="seconds")
    line = f"{timestamp} > {' '.join([command, *args])}"
    if elapsed_ms is not None:
        line += f" [{elapsed_ms}ms]"
    return line


def log_execution(command: str, args: Sequence[str], elapsed_ms: int) -> None:
    EXECUTION_LOG.info(format_execution_line(command, args, elapsed_ms))


def log_execution_error(command: str, args: Sequence[str], error: BaseException) -> None:
    EXECUTION_LOG.info(format_execution_line(command, args))
    EXECUTION_LOG.info(str(error))
