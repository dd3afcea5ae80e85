"""
Historical content lookup for stashed files.

A diff view shows two sides of a stashed file: the content before the
stash (its first parent) and the content saved in the stash. Which
commit and which path to read depends on how the file changed.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from .domain import FileChange, FileKind
from .errors import UnsupportedFileKindError
from .git_adapter import BlobSource, GitAdapter

LOG = logging.getLogger(__name__)


class Side(str, Enum):
    CHANGE = "c"
    PARENT = "p"


class ContentResolver:
    def __init__(self, git: GitAdapter) -> None:
        self.git = git

    async def resolve(self, file_change: FileChange, side: Optional[Side] = None) -> str:
        """
        Return the text of ``file_change`` for the requested diff side.

        ``side`` defaults to CHANGE. Added and deleted files have a
        single meaningful side; untracked files always come from the
        stash's third parent.
        """

        stash = file_change.stash
        kind = file_change.kind
        path = file_change.relative_path

        if kind is FileKind.ADDED:
            source = BlobSource.STASH
        elif kind is FileKind.DELETED:
            source = BlobSource.FIRST_PARENT
        elif kind is FileKind.MODIFIED:
            source = BlobSource.FIRST_PARENT if side is Side.PARENT else BlobSource.STASH
        elif kind is FileKind.RENAMED:
            if side is Side.PARENT:
                if file_change.old_relative_path is None:
                    raise UnsupportedFileKindError(
                        f"renamed file {path} has no previous path to read the parent side from"
                    )
                path = file_change.old_relative_path
                source = BlobSource.FIRST_PARENT
            else:
                source = BlobSource.STASH
        elif kind is FileKind.UNTRACKED:
            source = BlobSource.THIRD_PARENT
        else:
            raise UnsupportedFileKindError(f"unsupported file kind: {kind!r}")

        LOG.debug("Reading %s from %s%s", path, stash.at_index, source.value)
        return await self.git.read_blob(stash.path, stash.index, path, source)
