"""
Directory-tree projection of a stash's flat file list.

build_tree never reorders anything: directories and files appear in the
order their file-changes were supplied. Use sort_file_changes first when
a name or path ordering is wanted.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Union

from .config import SortMode
from .domain import ROOT_DIRECTORY, DirectoryNode, FileChange, Stash


def build_tree(
    file_changes: Sequence[FileChange],
    stash: Optional[Stash] = None,
) -> DirectoryNode:
    """
    Group ``file_changes`` into nested DirectoryNodes.

    Returns the synthetic root node (path ROOT_DIRECTORY); its children
    are the top-level entries. Every file-change appears exactly once,
    under the node matching its full directory. ``stash`` defaults to
    the stash of the first file-change.
    """

    if stash is None and file_changes:
        stash = file_changes[0].stash
    root = DirectoryNode(stash=stash, name="", path=ROOT_DIRECTORY)
    # Directories created during this build, keyed by their path from the root.
    directories: Dict[str, DirectoryNode] = {}

    for file_change in file_changes:
        node = root
        if file_change.directory != ROOT_DIRECTORY:
            seen: List[str] = []
            for segment in file_change.directory.split("/"):
                seen.append(segment)
                path = "/".join(seen)
                child = directories.get(path)
                if child is None:
                    child = DirectoryNode(stash=stash, name=segment, path=path)
                    directories[path] = child
                    node.directories.append(child)
                node = child
        node.files.append(file_change)

    return root


def _name_key(file_change: FileChange) -> tuple:
    return (file_change.name.casefold(), file_change.name)


def _path_key(file_change: FileChange) -> tuple:
    return (file_change.relative_path.casefold(), file_change.relative_path)


def sort_file_changes(file_changes: Sequence[FileChange], mode: SortMode) -> List[FileChange]:
    """Return a sorted copy: by file name for NAME, by relative path otherwise."""

    key = _name_key if mode is SortMode.NAME else _path_key
    return sorted(file_changes, key=key)


def project_files(
    stash: Stash,
    file_changes: Sequence[FileChange],
    mode: SortMode,
) -> List[Union[DirectoryNode, FileChange]]:
    """Return the display children of a stash for the given sort mode."""

    ordered = sort_file_changes(file_changes, mode)
    if mode is SortMode.TREE:
        return build_tree(ordered, stash).children
    return list(ordered)
