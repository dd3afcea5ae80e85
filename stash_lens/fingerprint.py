"""
Cheap change detection for stash lists.

The digest is a change-detection token computed over the abbreviated
stash hashes; it is not meant to be collision-proof.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Dict, Optional

from .git_adapter import GitAdapter

LOG = logging.getLogger(__name__)


def digest(raw_stashes: Optional[str]) -> Optional[str]:
    if not raw_stashes:
        return None
    return hashlib.md5(raw_stashes.encode("utf-8"), usedforsecurity=False).hexdigest()


async def fingerprint(git: GitAdapter, repo_path: str) -> Optional[str]:
    """Digest of the repository's stash list, or None when it has no stashes."""

    return digest(await git.get_raw_stashes(repo_path))


class FingerprintCache:
    """Remembers the last fingerprint seen for each repository path."""

    def __init__(self, git: GitAdapter) -> None:
        self.git = git
        self._seen: Dict[str, Optional[str]] = {}

    async def has_changed(self, repo_path: str) -> bool:
        """
        Refresh the stored fingerprint and report whether it differs from
        the previous one. A repository seen for the first time counts as
        changed.
        """

        current = await fingerprint(self.git, repo_path)
        known = repo_path in self._seen
        previous = self._seen.get(repo_path)
        self._seen[repo_path] = current
        changed = not known or previous != current
        if changed:
            LOG.debug("Stash list of %s changed (%s -> %s)", repo_path, previous, current)
        return changed

    def forget(self, repo_path: Optional[str] = None) -> None:
        if repo_path is None:
            self._seen.clear()
        else:
            self._seen.pop(repo_path, None)
