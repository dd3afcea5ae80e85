import pytest

from stash_lens.config import (
    DEBUG_ENV_VAR,
    Config,
    EmptyDisplayMode,
    SortMode,
    parse_sort_mode,
    resolve_debug,
)
from stash_lens.errors import ConfigError


def test_resolve_debug_uses_configured_value_without_environment():
    assert resolve_debug(True, {}) is True
    assert resolve_debug(False, {}) is False


def test_resolve_debug_environment_takes_precedence():
    assert resolve_debug(False, {DEBUG_ENV_VAR: "1"}) is True
    assert resolve_debug(True, {DEBUG_ENV_VAR: "0"}) is False
    assert resolve_debug(True, {DEBUG_ENV_VAR: ""}) is False


def test_resolve_debug_reads_process_environment(monkeypatch):
    monkeypatch.setenv(DEBUG_ENV_VAR, "true")
    assert resolve_debug(False) is True
    monkeypatch.delenv(DEBUG_ENV_VAR)
    assert resolve_debug(False) is False


def test_from_settings_reads_dotted_keys():
    config = Config.from_settings(
        {
            "explorer.display.fileSorting": "tree",
            "explorer.display.emptyRepositories": "hide-empty",
            "explorer.eagerLoadStashes": True,
            "notifications.success.show": False,
        },
        environ={},
    )

    assert config.file_sorting is SortMode.TREE
    assert config.empty_repositories is EmptyDisplayMode.HIDE
    assert config.eager_load_stashes is True
    assert config.notify_success is False
    assert config.debug is False


def test_from_settings_defaults():
    config = Config.from_settings({}, environ={DEBUG_ENV_VAR: "1"})

    assert config.file_sorting is SortMode.PATH
    assert config.empty_repositories is EmptyDisplayMode.INDICATE
    assert config.git_command == "git"
    assert config.debug is True


def test_unknown_modes_are_rejected():
    with pytest.raises(ConfigError):
        parse_sort_mode("size")
    with pytest.raises(ConfigError):
        Config.from_settings({"explorer.display.emptyRepositories": "sometimes"}, environ={})
