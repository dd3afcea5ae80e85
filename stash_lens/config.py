"""
Configuration model for stash-lens.

The CLI (or any embedding editor layer) constructs a Config instance
once at startup and passes it down into the executor, the git adapter
and the hierarchy service, so behavior can be adjusted without relying
on global state.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from .errors import ConfigError

DEBUG_ENV_VAR = "STASH_LENS_DEBUG"

_TRUTHY = {"1", "true", "yes", "on"}


class SortMode(str, Enum):
    """How the files of a stash are ordered for display."""

    NAME = "name"
    PATH = "path"
    TREE = "tree"


class EmptyDisplayMode(str, Enum):
    """How repositories without stashes are presented."""

    HIDE = "hide-empty"
    INDICATE = "indicate-empty"
    SHOW = "show-empty"


SETTING_FILE_SORTING = "explorer.display.fileSorting"
SETTING_EMPTY_REPOSITORIES = "explorer.display.emptyRepositories"
SETTING_EAGER_LOAD = "explorer.eagerLoadStashes"
SETTING_NOTIFY_SUCCESS = "notifications.success.show"
SETTING_DEBUG = "debug"


@dataclass
class Config:
    """
    Top-level configuration for stash-lens.

    ``debug`` is expected to be already resolved against the
    environment (see resolve_debug) by the time the Config is built.
    """

    git_command: str = "git"
    debug: bool = False
    file_sorting: SortMode = SortMode.PATH
    empty_repositories: EmptyDisplayMode = EmptyDisplayMode.INDICATE
    eager_load_stashes: bool = False
    notify_success: bool = True
    verbosity: int = 0

    @classmethod
    def from_settings(
        cls,
        settings: Mapping[str, Any],
        environ: Optional[Mapping[str, str]] = None,
    ) -> "Config":
        """
        Build a Config from a flat key/value settings mapping.

        Keys follow the dotted names used by the editor settings, e.g.
        ``explorer.display.fileSorting``. Missing keys keep their
        defaults.
        """

        defaults = cls()
        return cls(
            git_command=str(settings.get("git.command", defaults.git_command)),
            debug=resolve_debug(bool(settings.get(SETTING_DEBUG, False)), environ),
            file_sorting=parse_sort_mode(
                settings.get(SETTING_FILE_SORTING, defaults.file_sorting.value)
            ),
            empty_repositories=parse_empty_display_mode(
                settings.get(SETTING_EMPTY_REPOSITORIES, defaults.empty_repositories.value)
            ),
            eager_load_stashes=bool(settings.get(SETTING_EAGER_LOAD, defaults.eager_load_stashes)),
            notify_success=bool(settings.get(SETTING_NOTIFY_SUCCESS, defaults.notify_success)),
        )


def resolve_debug(configured: bool, environ: Optional[Mapping[str, str]] = None) -> bool:
    """
    Resolve the debug flag once.

    The environment variable always takes precedence over the configured
    value when it is present, even if it disables debugging.
    """

    if environ is None:
        environ = os.environ
    value = environ.get(DEBUG_ENV_VAR)
    if value is None:
        return configured
    return value.strip().lower() in _TRUTHY


def parse_sort_mode(value: Any) -> SortMode:
    try:
        return SortMode(value)
    except ValueError as exc:
        choices = ", ".join(mode.value for mode in SortMode)
        raise ConfigError(f"unknown file sorting {value!r}; expected one of: {choices}") from exc


def parse_empty_display_mode(value: Any) -> EmptyDisplayMode:
    try:
        return EmptyDisplayMode(value)
    except ValueError as exc:
        choices = ", ".join(mode.value for mode in EmptyDisplayMode)
        raise ConfigError(
            f"unknown empty repositories mode {value!r}; expected one of: {choices}"
        ) from exc
