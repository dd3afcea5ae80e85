import asyncio
import logging
import shutil
import subprocess
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

import pytest

from stash_lens.config import Config
from stash_lens.executor import ExecResult, Execution
from stash_lens.git_adapter import GitAdapter
from stash_lens.logging_utils import EXECUTION_LOG

Response = Union[str, BaseException]


class FakeExecutor:
    """
    Stand-in for ProcessExecutor that records every call.

    Responses are looked up by argument tuple, or computed by ``handler``
    from (args, cwd). Unknown commands succeed with empty output.
    """

    def __init__(
        self,
        responses: Optional[Dict[Tuple[str, ...], Response]] = None,
        handler: Optional[Callable[[List[str], Optional[str]], Response]] = None,
    ) -> None:
        self.responses = responses or {}
        self.handler = handler
        self.calls: List[Tuple[str, List[str], Optional[str]]] = []

    @property
    def argvs(self) -> List[List[str]]:
        return [args for _command, args, _cwd in self.calls]

    def run(self, command, args, cwd=None, env=None) -> Execution:
        argv = list(args)
        self.calls.append((command, argv, cwd))
        if self.handler is not None:
            response = self.handler(argv, cwd)
        else:
            response = self.responses.get(tuple(argv), "")

        future = asyncio.get_running_loop().create_future()
        if isinstance(response, BaseException):
            future.set_exception(response)
        else:
            future.set_result(ExecResult(stdout=response, stderr="", elapsed_ms=0))
        return Execution(args=argv, future=future)


@pytest.fixture
def fake_executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def make_git() -> Callable[..., Tuple[GitAdapter, FakeExecutor]]:
    def _make(responses=None, handler=None, config: Optional[Config] = None):
        executor = FakeExecutor(responses=responses, handler=handler)
        return GitAdapter(executor, config or Config()), executor

    return _make


@pytest.fixture
def isolated_execution_log():
    """Run with a pristine execution logger and restore it afterwards."""

    saved = (list(EXECUTION_LOG.handlers), EXECUTION_LOG.propagate, EXECUTION_LOG.level)
    EXECUTION_LOG.handlers = []
    EXECUTION_LOG.propagate = True
    EXECUTION_LOG.setLevel(logging.NOTSET)
    yield EXECUTION_LOG
    handlers, propagate, level = saved
    EXECUTION_LOG.handlers = handlers
    EXECUTION_LOG.propagate = propagate
    EXECUTION_LOG.setLevel(level)


requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


def run_git(args, cwd: Path) -> subprocess.CompletedProcess:
    return subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        text=True,
        capture_output=True,
        check=True,
    )


@pytest.fixture
def git_repo(tmp_path) -> Path:
    """A repository with one commit holding a.txt, dir/b.txt and old.txt."""

    repo = tmp_path / "repo"
    repo.mkdir()
    run_git(["init"], cwd=repo)
    run_git(["config", "user.name", "stash-lens"], cwd=repo)
    run_git(["config", "user.email", "stash-lens@example.com"], cwd=repo)
    run_git(["config", "commit.gpgsign", "false"], cwd=repo)

    (repo / "a.txt").write_text("alpha\n")
    (repo / "dir").mkdir()
    (repo / "dir" / "b.txt").write_text("bravo\n")
    (repo / "old.txt").write_text("renamed content\n")
    run_git(["add", "."], cwd=repo)
    run_git(["commit", "-m", "base"], cwd=repo)
    return repo


def stash_every_kind(repo: Path) -> None:
    """Leave one change of every kind in the working tree of ``repo`` and stash it as "first"."""

    (repo / "a.txt").write_text("alpha changed\n")
    run_git(["rm", "-q", "dir/b.txt"], cwd=repo)
    run_git(["mv", "old.txt", "new.txt"], cwd=repo)
    (repo / "added.txt").write_text("added\n")
    run_git(["add", "added.txt"], cwd=repo)
    (repo / "u.txt").write_text("untracked\n")

    run_git(["stash", "push", "--include-untracked", "-m", "first"], cwd=repo)
