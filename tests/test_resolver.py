from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from stash_lens.domain import FileChange, FileKind, Repository, Stash
from stash_lens.errors import UnsupportedFileKindError
from stash_lens.resolver import ContentResolver, Side


@pytest.fixture
def stash() -> Stash:
    return Stash.create(
        repository=Repository(path="/repo", label="repo"),
        index=2,
        hash="c" * 40,
        short_hash="ccccccc",
        date=datetime(2024, 5, 1, tzinfo=timezone.utc),
        subject="On main: resolve",
        parents=["p1", "p2", "p3"],
    )


async def _resolve(make_git, file_change, side=None):
    git, executor = make_git(handler=lambda args, cwd: f"content of {args[-1]}")
    content = await ContentResolver(git).resolve(file_change, side)
    assert [cwd for _command, _args, cwd in executor.calls] == ["/repo"]
    return content, executor.argvs[0]


@pytest.mark.asyncio
async def test_added_file_is_read_from_the_stash_commit(make_git, stash):
    added = FileChange.from_path(FileKind.ADDED, stash, "new.txt")

    for side in (None, Side.CHANGE, Side.PARENT):
        content, argv = await _resolve(make_git, added, side)
        assert argv == ["show", "stash@{2}:new.txt"]
        assert content == "content of stash@{2}:new.txt"


@pytest.mark.asyncio
async def test_deleted_file_is_read_from_the_first_parent(make_git, stash):
    deleted = FileChange.from_path(FileKind.DELETED, stash, "dir/gone.txt")

    for side in (None, Side.CHANGE, Side.PARENT):
        _content, argv = await _resolve(make_git, deleted, side)
        assert argv == ["show", "stash@{2}^1:dir/gone.txt"]


@pytest.mark.asyncio
async def test_modified_file_defaults_to_the_change_side(make_git, stash):
    modified = FileChange.from_path(FileKind.MODIFIED, stash, "src/app.py")

    _content, argv = await _resolve(make_git, modified)
    assert argv == ["show", "stash@{2}:src/app.py"]

    _content, argv = await _resolve(make_git, modified, Side.CHANGE)
    assert argv == ["show", "stash@{2}:src/app.py"]

    _content, argv = await _resolve(make_git, modified, Side.PARENT)
    assert argv == ["show", "stash@{2}^1:src/app.py"]


@pytest.mark.asyncio
async def test_renamed_file_parent_side_reads_the_old_path(make_git, stash):
    renamed = FileChange.renamed(stash, "old/name.txt", "new/name.txt")

    _content, argv = await _resolve(make_git, renamed, Side.PARENT)
    assert argv == ["show", "stash@{2}^1:old/name.txt"]

    _content, argv = await _resolve(make_git, renamed)
    assert argv == ["show", "stash@{2}:new/name.txt"]


@pytest.mark.asyncio
async def test_untracked_file_always_reads_the_third_parent(make_git, stash):
    untracked = FileChange.from_path(FileKind.UNTRACKED, stash, "notes.md")

    for side in (None, Side.CHANGE, Side.PARENT):
        _content, argv = await _resolve(make_git, untracked, side)
        assert argv == ["show", "stash@{2}^3:notes.md"]


@pytest.mark.asyncio
async def test_renamed_parent_side_without_old_path_is_unsupported(make_git, stash):
    git, executor = make_git()
    broken = SimpleNamespace(
        kind=FileKind.RENAMED,
        stash=stash,
        relative_path="new.txt",
        old_relative_path=None,
    )

    with pytest.raises(UnsupportedFileKindError):
        await ContentResolver(git).resolve(broken, Side.PARENT)
    assert executor.calls == []


@pytest.mark.asyncio
async def test_unknown_kind_is_unsupported_rather_than_empty(make_git, stash):
    git, executor = make_git()
    unknown = SimpleNamespace(kind="copied", stash=stash, relative_path="a.txt", old_relative_path=None)

    try:
        await ContentResolver(git).resolve(unknown)
    except UnsupportedFileKindError as exc:
        assert "copied" in str(exc)
    else:
        raise AssertionError("expected UnsupportedFileKindError to be raised")
    assert executor.calls == []
