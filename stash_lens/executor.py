"""
Process execution for stash-lens.

All git invocations go through ProcessExecutor so that output capture,
error classification and logging are centralized. Each call starts its
own subprocess on the running event loop; nothing is shared between
concurrent calls.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from typing import Generator, Mapping, Optional, Sequence

from .errors import LaunchFailure, ProcessFailure
from .logging_utils import log_execution, log_execution_error

LOG = logging.getLogger(__name__)


@dataclass
class ExecResult:
    """Output of a command that exited with status 0."""

    stdout: str
    stderr: str
    elapsed_ms: int

    @property
    def combined(self) -> str:
        return f"{self.stdout}{self.stderr}"


@dataclass
class Execution:
    """
    A started command: the argument vector used and its pending result.

    Awaiting the execution yields an ExecResult or raises
    ProcessFailure / LaunchFailure. It can be awaited more than once.
    """

    args: list[str]
    future: "asyncio.Future[ExecResult]"

    def __await__(self) -> Generator[object, None, ExecResult]:
        return self.future.__await__()


class ProcessExecutor:
    """
    Start external commands and collect their output.

    stdout and stderr are collected as raw bytes and decoded only once
    the process has exited, so multi-byte characters split across pipe
    reads are never corrupted.
    """

    def __init__(self, debug: bool = False, encoding: str = "utf-8") -> None:
        self.debug = debug
        self.encoding = encoding

    def run(
        self,
        command: str,
        args: Sequence[str],
        cwd: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> Execution:
        """
        Start ``command`` with ``args`` and return its Execution handle.

        Must be called from a running event loop. The process starts
        right away; callers that lose interest may drop the handle and
        the process still runs to completion.
        """

        loop = asyncio.get_running_loop()
        argv = list(args)
        task = loop.create_task(self._execute(command, argv, cwd, env))
        return Execution(args=argv, future=task)

    async def _execute(
        self,
        command: str,
        args: list[str],
        cwd: Optional[str],
        env: Optional[Mapping[str, str]],
    ) -> ExecResult:
        LOG.debug("Running command: %s (cwd=%s)", " ".join([command, *args]), cwd)
        process_env = {**os.environ, **env} if env else None
        started = time.perf_counter()

        try:
            process = await asyncio.create_subprocess_exec(
                command,
                *args,
                cwd=cwd,
                env=process_env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            failure = LaunchFailure(str(exc))
            if self.debug:
                log_execution_error(command, args, failure)
            raise failure from exc

        raw_stdout, raw_stderr = await process.communicate()
        elapsed_ms = max(0, round((time.perf_counter() - started) * 1000))

        stdout = raw_stdout.decode(self.encoding, errors="replace")
        stderr = raw_stderr.decode(self.encoding, errors="replace")

        if process.returncode != 0:
            LOG.debug("%s exited with %s: %s", command, process.returncode, stderr.strip())
            failure = ProcessFailure(process.returncode, stderr, stdout)
            if self.debug:
                log_execution_error(command, args, failure)
            raise failure

        if self.debug:
            log_execution(command, args, elapsed_ms)
        return ExecResult(stdout=stdout, stderr=stderr, elapsed_ms=elapsed_ms)
