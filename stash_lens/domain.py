"""
Core domain models for stash-lens.

These dataclasses describe repositories, their stashes and the files
each stash touches. Children lists are owned by their parent and set
once per fetch; back-references (file -> stash -> repository) are plain
non-owning fields used for path composition and identity.
"""

from __future__ import annotations

import os
import posixpath
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Mapping, Optional, Tuple, Union

from .errors import StashFilesError

ROOT_DIRECTORY = "."

_SUBJECT_RE = re.compile(r"(^WIP\son|^On)\s([^:\s]+):\s(.*)", re.IGNORECASE | re.DOTALL)


class FileKind(str, Enum):
    ADDED = "a"
    DELETED = "d"
    MODIFIED = "m"
    RENAMED = "r"
    UNTRACKED = "u"


def split_relative_path(relative_path: str) -> Tuple[str, str]:
    """Split a git path into (directory, name), using ROOT_DIRECTORY for top-level files."""

    directory, name = posixpath.split(relative_path)
    return directory or ROOT_DIRECTORY, name


def join_relative_path(directory: str, name: str) -> str:
    return name if directory == ROOT_DIRECTORY else f"{directory}/{name}"


def parse_subject(subject: str) -> Tuple[str, Optional[str]]:
    """
    Split a stash subject into (message, branch).

    ``On main: fix`` and ``WIP on main: abc123 fix`` carry the branch the
    stash was created on; hand-made subjects may not, in which case the
    whole subject is the message and the branch is None.
    """

    match = _SUBJECT_RE.match(subject)
    if match is None:
        return subject, None
    return match.group(3), match.group(2)


def derive_label(path: str, workspace_folders: Optional[Mapping[str, str]] = None) -> str:
    """
    Name of the workspace folder containing ``path``, else its last segment.

    ``workspace_folders`` maps folder paths to display names.
    """

    if workspace_folders:
        best: Optional[Tuple[int, str]] = None
        for folder, name in workspace_folders.items():
            folder = os.path.normpath(folder)
            if path == folder or path.startswith(folder.rstrip(os.sep) + os.sep):
                if best is None or len(folder) > best[0]:
                    best = (len(folder), name)
        if best is not None:
            return best[1]
    return os.path.basename(path.rstrip(os.sep)) or path


@dataclass(eq=False)
class Repository:
    path: str
    label: str
    children: Optional[List["Stash"]] = field(default=None, repr=False)
    load_error: Optional[Exception] = field(default=None, repr=False)

    @classmethod
    def from_path(
        cls,
        path: str,
        workspace_folders: Optional[Mapping[str, str]] = None,
    ) -> "Repository":
        path = os.path.normpath(os.path.abspath(path))
        return cls(path=path, label=derive_label(path, workspace_folders))

    @property
    def key(self) -> str:
        return self.path

    @property
    def id(self) -> str:
        return f"R.{self.path}"

    @property
    def children_count(self) -> Optional[int]:
        return len(self.children) if self.children is not None else None

    def set_children(self, children: List["Stash"]) -> "Repository":
        self.children = children
        return self

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Repository):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)


@dataclass(eq=False)
class Stash:
    """
    One stash entry of a repository.

    ``index`` is the position in the listing it was read from and becomes
    meaningless after any pop/drop/apply/branch; re-list instead of
    reusing it.
    """

    repository: Repository = field(repr=False)
    index: int
    hash: str
    short_hash: str
    date: datetime
    subject: str
    message: str
    branch: Optional[str] = None
    parents: List[str] = field(default_factory=list)
    note: Optional[str] = None
    tree: Optional[str] = None
    children: Optional[List["FileChange"]] = field(default=None, repr=False)
    files_error: Optional[StashFilesError] = field(default=None, repr=False)

    @classmethod
    def create(
        cls,
        repository: Repository,
        index: int,
        hash: str,
        short_hash: str,
        date: datetime,
        subject: str,
        parents: Optional[List[str]] = None,
        note: Optional[str] = None,
        tree: Optional[str] = None,
    ) -> "Stash":
        message, branch = parse_subject(subject)
        return cls(
            repository=repository,
            index=index,
            hash=hash,
            short_hash=short_hash,
            date=date,
            subject=subject,
            message=message,
            branch=branch,
            parents=list(parents or []),
            note=note,
            tree=tree,
        )

    @property
    def path(self) -> str:
        """Absolute path of the owning repository."""
        return self.repository.path

    @property
    def at_index(self) -> str:
        return f"stash@{{{self.index}}}"

    @property
    def has_untracked(self) -> bool:
        # git stores untracked files in a third parent commit.
        return len(self.parents) > 2

    @property
    def key(self) -> Tuple[str, str]:
        return (self.repository.path, self.short_hash)

    @property
    def children_count(self) -> Optional[int]:
        return len(self.children) if self.children is not None else None

    def set_children(self, children: List["FileChange"]) -> "Stash":
        self.children = children
        return self

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Stash):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)


@dataclass(frozen=True)
class PreviousLocation:
    """Where a renamed file lived before the stash."""

    directory: str
    name: str

    @property
    def relative_path(self) -> str:
        return join_relative_path(self.directory, self.name)


@dataclass(frozen=True, eq=False)
class FileChange:
    """
    A file touched by a stash.

    ``previous`` is set for renamed files only, and always for them.
    """

    kind: FileKind
    stash: Stash = field(repr=False)
    directory: str
    name: str
    previous: Optional[PreviousLocation] = None

    def __post_init__(self) -> None:
        if (self.kind is FileKind.RENAMED) != (self.previous is not None):
            raise ValueError(f"previous location is required for renamed files only, got {self.kind}")

    @classmethod
    def from_path(cls, kind: FileKind, stash: Stash, relative_path: str) -> "FileChange":
        directory, name = split_relative_path(relative_path)
        return cls(kind=kind, stash=stash, directory=directory, name=name)

    @classmethod
    def renamed(cls, stash: Stash, old_path: str, new_path: str) -> "FileChange":
        directory, name = split_relative_path(new_path)
        old_directory, old_name = split_relative_path(old_path)
        return cls(
            kind=FileKind.RENAMED,
            stash=stash,
            directory=directory,
            name=name,
            previous=PreviousLocation(old_directory, old_name),
        )

    @property
    def relative_path(self) -> str:
        return join_relative_path(self.directory, self.name)

    @property
    def path(self) -> str:
        return os.path.join(self.stash.path, *self.relative_path.split("/"))

    @property
    def old_relative_path(self) -> Optional[str]:
        return self.previous.relative_path if self.previous is not None else None

    @property
    def old_path(self) -> Optional[str]:
        old = self.old_relative_path
        if old is None:
            return None
        return os.path.join(self.stash.path, *old.split("/"))

    @property
    def date(self) -> datetime:
        return self.stash.date

    @property
    def key(self) -> Tuple[str, str, str, str]:
        return (self.kind.value, self.stash.path, self.stash.short_hash, self.relative_path)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FileChange):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)


@dataclass(eq=False)
class DirectoryNode:
    """
    A synthetic directory grouping files in the tree display mode.

    ``path`` is relative to the repository root (ROOT_DIRECTORY for the
    projection root). Files are referenced, never copied.
    """

    stash: Optional[Stash] = field(repr=False)
    name: str
    path: str
    directories: List["DirectoryNode"] = field(default_factory=list)
    files: List[FileChange] = field(default_factory=list)

    @property
    def children(self) -> List[Union["DirectoryNode", FileChange]]:
        return [*self.directories, *self.files]

    @property
    def absolute_path(self) -> Optional[str]:
        if self.stash is None:
            return None
        if self.path == ROOT_DIRECTORY:
            return self.stash.path
        return os.path.join(self.stash.path, *self.path.split("/"))


@dataclass(frozen=True)
class MessageNode:
    """A placeholder row, e.g. "No stashes found."."""

    message: str
    parent: Optional[Union[Repository, Stash]] = field(default=None, repr=False, compare=False)

    @property
    def id(self) -> str:
        return f"M.{self.message}"


Node = Union[Repository, Stash, DirectoryNode, FileChange, MessageNode]
