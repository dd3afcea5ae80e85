"""
Repository -> stash -> file hierarchy.

StashHierarchy turns git adapter results into domain entities, attaches
them to their parents and prepares display children according to the
configured sort and empty-repository modes.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, List, Mapping, Optional, Sequence, Union

from .config import Config, EmptyDisplayMode
from .domain import DirectoryNode, FileChange, FileKind, MessageNode, Node, Repository, Stash
from .errors import ProcessFailure, StashFilesError, StashParseError
from .fingerprint import FingerprintCache
from .git_adapter import GitAdapter, RawStash, StashedFiles
from .resolver import ContentResolver, Side
from .tree import project_files

LOG = logging.getLogger(__name__)

NO_REPOSITORIES = "No repositories found."
NO_STASHES = "No stashes found."


def _stash_from_raw(repository: Repository, raw: RawStash) -> Stash:
    return Stash.create(
        repository=repository,
        index=raw.index,
        hash=raw.hash,
        short_hash=raw.short_hash,
        date=raw.date,
        subject=raw.subject,
        parents=raw.parents,
        note=raw.note,
        tree=raw.tree,
    )


def file_changes_from(stash: Stash, files: StashedFiles) -> List[FileChange]:
    changes: List[FileChange] = []
    changes += [FileChange.from_path(FileKind.ADDED, stash, path) for path in files.added]
    changes += [FileChange.from_path(FileKind.MODIFIED, stash, path) for path in files.modified]
    changes += [FileChange.renamed(stash, renamed.old, renamed.new) for renamed in files.renamed]
    changes += [FileChange.from_path(FileKind.UNTRACKED, stash, path) for path in files.untracked]
    changes += [FileChange.from_path(FileKind.DELETED, stash, path) for path in files.deleted]
    return changes


class StashHierarchy:
    def __init__(
        self,
        git: GitAdapter,
        config: Optional[Config] = None,
        workspace_folders: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.git = git
        self.config = config or git.config
        self.workspace_folders = dict(workspace_folders or {})
        self.resolver = ContentResolver(git)
        self.fingerprints = FingerprintCache(git)

    async def get_repositories(
        self,
        candidate_paths: Iterable[str],
        eager_load: Optional[bool] = None,
    ) -> List[Repository]:
        """
        Discover the repositories containing ``candidate_paths``.

        With eager loading, stashes of all repositories are fetched
        concurrently. A repository whose listing fails keeps the error in
        ``load_error`` instead of failing the whole discovery; launch
        failures still propagate.
        """

        if eager_load is None:
            eager_load = self.config.eager_load_stashes

        paths = await self.git.list_repositories(candidate_paths)
        repositories = [Repository.from_path(path, self.workspace_folders) for path in paths]

        if eager_load:
            await asyncio.gather(*(self._load_stashes(repository) for repository in repositories))
        return repositories

    async def _load_stashes(self, repository: Repository) -> None:
        try:
            await self.get_stashes(repository)
        except StashParseError as exc:
            LOG.warning("Malformed stash list in %s: %s", repository.path, exc)
            repository.load_error = exc
            repository.set_children([_stash_from_raw(repository, raw) for raw in exc.records])
        except ProcessFailure as exc:
            if exc.is_launch_failure:
                raise
            LOG.warning("Could not list stashes of %s: %s", repository.path, exc)
            repository.load_error = exc
            repository.set_children([])

    async def get_stashes(self, repository: Repository) -> List[Stash]:
        """Fetch the stashes of ``repository`` and replace its children with them."""

        raw_stashes = await self.git.list_stashes(repository.path)
        stashes = [_stash_from_raw(repository, raw) for raw in raw_stashes]
        repository.load_error = None
        repository.set_children(stashes)
        return stashes

    async def get_files(self, stash: Stash) -> List[FileChange]:
        """
        Fetch the files of ``stash`` and replace its children with them.

        A failed fetch yields an empty list for display, with the failure
        kept in ``stash.files_error`` so it can be told apart from a stash
        that touches nothing.
        """

        try:
            files = await self.git.list_stash_files(stash.path, stash.index, stash.has_untracked)
            stash.files_error = None
        except StashFilesError as exc:
            LOG.warning("%s", exc)
            stash.files_error = exc
            files = StashedFiles()

        changes = file_changes_from(stash, files)
        stash.set_children(changes)
        return changes

    async def get_children(self, stash: Stash) -> List[Union[DirectoryNode, FileChange]]:
        """Display children of ``stash`` ordered by the configured sort mode."""

        files = stash.children
        if files is None:
            files = await self.get_files(stash)
        return project_files(stash, files, self.config.file_sorting)

    def prepare_children(
        self,
        parent: Optional[Union[Repository, Stash]],
        children: Sequence[Node],
    ) -> List[Node]:
        """
        Apply the empty-repository display mode to a list of children.

        ``parent`` is None for the top level (repositories).
        """

        mode = self.config.empty_repositories
        prepared = list(children)

        if parent is None and mode is EmptyDisplayMode.HIDE and self.config.eager_load_stashes:
            prepared = [
                node for node in prepared
                if isinstance(node, Repository) and node.children_count
            ]

        if prepared:
            return prepared

        if mode is EmptyDisplayMode.INDICATE:
            if parent is None:
                return [MessageNode(NO_REPOSITORIES)]
            if isinstance(parent, Repository):
                return [MessageNode(NO_STASHES, parent)]
        return []

    async def get_file_contents(self, file_change: FileChange, side: Optional[Side] = None) -> str:
        return await self.resolver.resolve(file_change, side)

    async def needs_reload(self, repository: Repository) -> bool:
        """True when the stash list of ``repository`` changed since last checked."""

        return await self.fingerprints.has_changed(repository.path)
