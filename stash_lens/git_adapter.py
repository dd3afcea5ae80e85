"""
Git integration for stash-lens.

This module builds the argument vectors for every git operation the
stash hierarchy needs and parses their plain-text output into typed
records. Queries are coroutines returning parsed results; mutating
operations return the started Execution so the caller decides how to
report the outcome.

Stashes are addressed by their position in ``git stash list``
(``stash@{N}``). Positions shift after any pop/drop/branch, so an index
is only meaningful for the listing it came from.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional, Sequence

from .config import Config
from .errors import ProcessFailure, StashFilesError, StashParseError
from .executor import ExecResult, Execution, ProcessExecutor

LOG = logging.getLogger(__name__)

# https://git-scm.com/docs/git-log#_pretty_formats
STASH_LIST_FORMAT = "%gd%n%ci%n%H%n%h%n%T%n%P%n%gs%n%N"
STASH_DATE_FORMAT = "%Y-%m-%d %H:%M:%S %z"

_MIN_STASH_FIELDS = 7
_NOTE_FIELD = 7
_RENAME_RE = re.compile(r"^\d+\s+([^\t]+)\t(.+)$")
_LINE_SPLIT_RE = re.compile(r"\r?\n")
_BRANCH_PREFIX = "refs/heads/"


@dataclass
class RawStash:
    """One entry of ``git stash list`` as reported by git."""

    index: int
    date: datetime
    hash: str
    short_hash: str
    tree: str
    parents: List[str]
    subject: str
    note: Optional[str] = None


@dataclass
class RenamedPath:
    old: str
    new: str


@dataclass
class StashedFiles:
    """Repository-relative paths touched by a stash, grouped by change kind."""

    added: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    modified: List[str] = field(default_factory=list)
    renamed: List[RenamedPath] = field(default_factory=list)
    untracked: List[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.added or self.deleted or self.modified or self.renamed or self.untracked)


class BlobSource(Enum):
    """Which commit of a stash a blob is read from."""

    STASH = ""
    FIRST_PARENT = "^1"
    THIRD_PARENT = "^3"


class StashMode(Enum):
    """Flavours of ``git stash push``."""

    SIMPLE = ()
    STAGED = ("--staged",)
    KEEP_INDEX = ("--keep-index",)
    INCLUDE_UNTRACKED = ("--include-untracked",)
    INCLUDE_UNTRACKED_KEEP_INDEX = ("--include-untracked", "--keep-index")
    ALL = ("--all",)
    ALL_KEEP_INDEX = ("--all", "--keep-index")


def stash_ref(index: int, suffix: str = "") -> str:
    return f"stash@{{{index}}}{suffix}"


def stash_files_args(index: int) -> List[str]:
    """
    Arguments listing the tracked changes of ``stash@{index}``.

    A plain diff against the first parent is used instead of ``stash
    show`` so that ``stash.showIncludeUntracked`` cannot mix untracked
    files into the list. ``-M`` keeps rename detection independent of
    ``diff.renames``; ``-z`` keeps paths unquoted.
    """

    return [
        "diff",
        "--name-status",
        "-z",
        "-M",
        stash_ref(index, BlobSource.FIRST_PARENT.value),
        stash_ref(index),
    ]


def parse_stash_record(raw: str) -> RawStash:
    """
    Parse one NUL-delimited record of STASH_LIST_FORMAT output.

    Raises StashParseError when the record is too short or one of its
    fields cannot be interpreted.
    """

    tokens = raw.split("\n")
    if len(tokens) < _MIN_STASH_FIELDS:
        raise StashParseError(
            f"stash record has {len(tokens)} fields, expected at least {_MIN_STASH_FIELDS}",
            raw=[raw],
        )

    index_digits = re.sub(r"\D", "", tokens[0])
    if not index_digits:
        raise StashParseError(f"stash record has no index: {tokens[0]!r}", raw=[raw])

    try:
        date = datetime.strptime(tokens[1].strip(), STASH_DATE_FORMAT)
    except ValueError as exc:
        raise StashParseError(f"stash record has an invalid date: {tokens[1]!r}", raw=[raw]) from exc

    note: Optional[str] = None
    if len(tokens) > _NOTE_FIELD:
        note = "\n".join(tokens[_NOTE_FIELD:]).strip() or None

    return RawStash(
        index=int(index_digits),
        date=date,
        hash=tokens[2],
        short_hash=tokens[3],
        tree=tokens[4],
        parents=tokens[5].split(),
        subject=tokens[6],
        note=note,
    )


def parse_stash_list(output: str) -> List[RawStash]:
    """
    Parse the full ``git stash list -z`` output.

    Every record is parsed independently. If any of them is malformed a
    single StashParseError is raised after all records were processed;
    it carries the offending raw records and the well-formed ones.
    """

    records: List[RawStash] = []
    failures: List[str] = []
    messages: List[str] = []

    for raw in output.split("\0"):
        if not raw.strip():
            continue
        try:
            records.append(parse_stash_record(raw))
        except StashParseError as exc:
            failures.append(raw)
            messages.append(str(exc))

    if failures:
        raise StashParseError(
            f"{len(failures)} malformed stash record(s): {'; '.join(messages)}",
            raw=failures,
            records=records,
        )
    return records


def _add_stash_file(files: StashedFiles, status: str, path: str) -> None:
    if status == "A":
        files.added.append(path)
    elif status == "D":
        files.deleted.append(path)
    elif status == "M":
        files.modified.append(path)
    else:
        LOG.debug("Ignoring stash status %r for %s", status, path)


def _parse_nul_name_status(output: str) -> StashedFiles:
    files = StashedFiles()
    tokens = output.split("\0")
    position = 0

    while position < len(tokens):
        status = tokens[position]
        position += 1
        if not status.strip():
            continue

        # Renames and copies carry the source path and the destination path.
        path_count = 2 if status[:1] in ("R", "C") else 1
        paths = tokens[position:position + path_count]
        position += path_count
        if len(paths) < path_count or not all(paths):
            raise StashParseError(f"truncated name-status entry {status!r}", raw=[status, *paths])

        if status[:1] == "R":
            files.renamed.append(RenamedPath(old=paths[0], new=paths[1]))
        elif status[:1] == "C":
            files.added.append(paths[1])
        else:
            _add_stash_file(files, status[:1], paths[0])

    return files


def parse_stash_files(output: str) -> StashedFiles:
    """
    Parse ``--name-status`` output of a stash diff.

    Both the NUL-separated form (``-z``, paths verbatim) and the
    tab-separated line form are accepted. In the line form a rename reads
    ``R<score> <old><TAB><new>``; git quotes unusual paths there, so the
    gateway itself always asks for ``-z``.
    """

    if "\0" in output:
        return _parse_nul_name_status(output)

    files = StashedFiles()
    text = output.strip()
    if not text:
        return files

    for line in _LINE_SPLIT_RE.split(text):
        status = line[:1]
        path = line[1:].strip()

        if status == "R":
            match = _RENAME_RE.match(path)
            if match is None:
                raise StashParseError(f"unexpected rename line: {line!r}", raw=[line])
            files.renamed.append(RenamedPath(old=match.group(1), new=match.group(2)))
        elif line.strip():
            _add_stash_file(files, status, path)

    return files


def parse_nul_list(output: str) -> List[str]:
    return [entry for entry in output.split("\0") if entry]


def parse_branches(output: str) -> List[str]:
    return [
        line[len(_BRANCH_PREFIX):] if line.startswith(_BRANCH_PREFIX) else line
        for line in _LINE_SPLIT_RE.split(output.strip())
        if line
    ]


def has_unmerged_entries(porcelain_v2: str) -> bool:
    """
    True when ``git status --porcelain=2 -z`` lists an unmerged entry.

    Rename and copy records (``2 ...``) are followed by a separate token
    holding the original path, which is skipped rather than read as a
    record header.
    """

    tokens = iter(porcelain_v2.split("\0"))
    for entry in tokens:
        if entry.startswith("u "):
            return True
        if entry.startswith("2 "):
            next(tokens, None)
    return False


class GitAdapter:
    """
    Gateway to the git CLI for stash operations.

    The adapter holds no state besides its collaborators; every method
    receives the repository path it works on.
    """

    def __init__(self, executor: ProcessExecutor, config: Optional[Config] = None) -> None:
        self.executor = executor
        self.config = config or Config()

    def git(self, args: Sequence[str], cwd: str) -> Execution:
        return self.executor.run(self.config.git_command, args, cwd=cwd)

    async def _output(self, args: Sequence[str], cwd: str) -> ExecResult:
        return await self.git(args, cwd)

    # -- repositories ------------------------------------------------------

    async def list_repositories(
        self,
        candidate_paths: Iterable[str],
        first_only: bool = False,
    ) -> List[str]:
        """
        Return the sorted, de-duplicated top-level directories of the
        repositories containing ``candidate_paths``.

        Candidates that are not inside a repository are skipped. When
        ``first_only`` is set the search stops at the first repository.
        """

        paths: List[str] = []
        for cwd in candidate_paths:
            if not os.path.isdir(cwd):
                LOG.debug("Skipping missing candidate directory %s", cwd)
                continue
            try:
                result = await self._output(["rev-parse", "--show-toplevel"], cwd)
            except ProcessFailure as exc:
                if exc.is_launch_failure:
                    raise
                LOG.debug("%s is not inside a git repository: %s", cwd, exc)
                continue

            top_level = result.stdout.strip()
            if not top_level:
                continue
            top_level = os.path.normpath(top_level)
            if top_level in paths:
                continue
            paths.append(top_level)
            if first_only:
                break

        paths.sort()
        return paths

    async def has_repository(self, candidate_paths: Iterable[str]) -> bool:
        return bool(await self.list_repositories(candidate_paths, first_only=True))

    # -- stash queries -----------------------------------------------------

    async def get_raw_stashes(self, repo_path: str) -> Optional[str]:
        """Return the abbreviated stash hashes, one per line, or None when there are none."""

        result = await self._output(["stash", "list", "--format=%h"], repo_path)
        return result.stdout.strip() or None

    async def list_stashes(self, repo_path: str) -> List[RawStash]:
        result = await self._output(
            ["stash", "list", "-z", f"--format={STASH_LIST_FORMAT}"],
            repo_path,
        )
        return parse_stash_list(result.stdout)

    async def list_stash_files(
        self,
        repo_path: str,
        index: int,
        include_untracked: bool,
    ) -> StashedFiles:
        """
        List the files touched by ``stash@{index}``.

        Any failure is reported as StashFilesError so that "could not
        fetch" is never confused with "touches no files".
        """

        try:
            result = await self._output(stash_files_args(index), repo_path)
            files = parse_stash_files(result.stdout)
            if include_untracked:
                files.untracked = await self.list_untracked_files(repo_path, index)
        except (ProcessFailure, StashParseError) as exc:
            raise StashFilesError(
                f"could not list files of {stash_ref(index)} in {repo_path}: {exc}"
            ) from exc
        return files

    async def list_untracked_files(self, repo_path: str, index: int) -> List[str]:
        result = await self._output(
            ["ls-tree", "-r", "-z", "--name-only", stash_ref(index, BlobSource.THIRD_PARENT.value)],
            repo_path,
        )
        return parse_nul_list(result.stdout)

    async def read_blob(
        self,
        repo_path: str,
        index: int,
        path: str,
        source: BlobSource,
    ) -> str:
        """Return the text of ``path`` as stored in the given commit of the stash."""

        result = await self._output(["show", f"{stash_ref(index, source.value)}:{path}"], repo_path)
        return result.stdout

    # -- stash mutations ---------------------------------------------------

    def create_stash(
        self,
        repo_path: str,
        mode: StashMode = StashMode.SIMPLE,
        message: Optional[str] = None,
    ) -> Execution:
        args = ["stash", "push", *mode.value]
        if message:
            args += ["--message", message]
        return self.git(args, repo_path)

    def push_stash(
        self,
        repo_path: str,
        paths: Sequence[str],
        message: Optional[str] = None,
    ) -> Execution:
        """Stash the given paths only, untracked ones included."""

        args = ["stash", "push", "--include-untracked"]
        if message:
            args += ["--message", message]
        args.append("--")
        return self.git([*args, *paths], repo_path)

    def clear_stashes(self, repo_path: str) -> Execution:
        return self.git(["stash", "clear"], repo_path)

    def pop(self, repo_path: str, index: int, with_index: bool = False) -> Execution:
        args = ["stash", "pop"]
        if with_index:
            args.append("--index")
        return self.git([*args, stash_ref(index)], repo_path)

    def apply(self, repo_path: str, index: int, with_index: bool = False) -> Execution:
        args = ["stash", "apply"]
        if with_index:
            args.append("--index")
        return self.git([*args, stash_ref(index)], repo_path)

    def branch(self, repo_path: str, index: int, name: str) -> Execution:
        return self.git(["stash", "branch", name, stash_ref(index)], repo_path)

    def drop(self, repo_path: str, index: int) -> Execution:
        return self.git(["stash", "drop", stash_ref(index)], repo_path)

    def apply_single_file(self, repo_path: str, index: int, path: str) -> Execution:
        """Restore one tracked file from the stash into the working tree."""

        return self.git(["checkout", stash_ref(index), path], repo_path)

    def create_single_file(self, repo_path: str, index: int, path: str) -> Execution:
        """Restore one untracked file from the stash into the working tree."""

        return self.git(["checkout", stash_ref(index, BlobSource.THIRD_PARENT.value), path], repo_path)

    # -- branches ----------------------------------------------------------

    def list_branches(self, repo_path: str) -> Execution:
        return self.git(["for-each-ref", "--format=%(refname)", _BRANCH_PREFIX], repo_path)

    def current_branch(self, repo_path: str) -> Execution:
        return self.git(["rev-parse", "--abbrev-ref", "HEAD"], repo_path)

    def checkout_branch(self, repo_path: str, branch: str) -> Execution:
        return self.git(["checkout", branch], repo_path)

    async def get_branches(self, repo_path: str) -> List[str]:
        return parse_branches((await self.list_branches(repo_path)).stdout)

    async def get_current_branch(self, repo_path: str) -> str:
        return (await self.current_branch(repo_path)).stdout.strip()

    # -- working tree state ------------------------------------------------

    def status(self, repo_path: str) -> Execution:
        return self.git(["status", "--porcelain=2", "-z"], repo_path)

    async def has_unmerged_paths(self, repo_path: str) -> Optional[bool]:
        """
        Report whether the working tree has merge conflicts.

        Returns None when the state could not be determined; callers must
        treat that as "unknown", not as "no conflicts".
        """

        try:
            result = await self.status(repo_path)
        except ProcessFailure as exc:
            LOG.warning("Could not read status of %s: %s", repo_path, exc)
            return None
        return has_unmerged_entries(result.stdout)
