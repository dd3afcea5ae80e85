import pytest

from stash_lens import cli
from stash_lens.config import DEBUG_ENV_VAR

from conftest import requires_git, run_git, stash_every_kind


@pytest.fixture(autouse=True)
def _no_debug_env(monkeypatch):
    monkeypatch.delenv(DEBUG_ENV_VAR, raising=False)


def test_parser_reads_stash_operations():
    parser = cli.build_arg_parser()

    args = parser.parse_args(["pop", "2", "--index", "-C", "/work/repo"])
    assert (args.command, args.index, args.with_index, args.repo) == ("pop", 2, True, "/work/repo")

    args = parser.parse_args(["apply", "0"])
    assert (args.index, args.with_index, args.repo) == (0, False, ".")

    args = parser.parse_args(["--git", "/opt/git", "-vv", "create", "--mode", "all-keep-index", "-m", "wip"])
    assert (args.git, args.verbose, args.mode, args.message) == ("/opt/git", 2, "all-keep-index", "wip")

    args = parser.parse_args(["show", "1", "src/app.py", "--side", "parent"])
    assert (args.index, args.path, args.side) == (1, "src/app.py", "parent")


def test_parser_rejects_unknown_sort_mode():
    with pytest.raises(SystemExit):
        cli.build_arg_parser().parse_args(["files", "0", "--sort", "size"])


def test_summary_keeps_the_first_line_only():
    assert cli._summary("first line\nsecond line") == "first line"
    summary = cli._summary("x" * 500)
    assert len(summary) == cli.SUMMARY_LIMIT
    assert summary.endswith("...")


def test_missing_git_binary_is_reported(tmp_path, capsys):
    code = cli.main(["--git", "stash-lens-no-such-git", "list", "-C", str(tmp_path)])

    assert code == 1
    err = capsys.readouterr().err
    assert err.startswith("stash-lens: error: [launch]")


def test_repeated_debug_runs_log_each_invocation_once(tmp_path, capsys, isolated_execution_log):
    argv = ["--debug", "--git", "stash-lens-no-such-git", "list", "-C", str(tmp_path)]

    assert cli.main(argv) == 1
    assert cli.main(argv) == 1

    err = capsys.readouterr().err
    invocations = [line for line in err.splitlines() if "> stash-lens-no-such-git rev-parse --show-toplevel" in line]
    assert len(invocations) == 2
    assert len(isolated_execution_log.handlers) == 1


@requires_git
def test_directory_outside_a_repository_is_an_error(tmp_path, capsys):
    outside = tmp_path / "plain"
    outside.mkdir()
    # Stop the search at tmp_path in case it lives inside a repository.
    (tmp_path / ".git").write_text("gitdir: nowhere\n")

    assert cli.main(["list", "-C", str(outside)]) == 1
    assert "stash-lens: error:" in capsys.readouterr().err


@requires_git
def test_list_files_and_show(git_repo, capsys):
    stash_every_kind(git_repo)
    repo = str(git_repo)

    assert cli.main(["list", "-C", repo]) == 0
    (line,) = capsys.readouterr().out.splitlines()
    at_index, short_hash, _date_and_branch, message = line.split("\t")
    assert at_index == "stash@{0}"
    assert len(short_hash) >= 7
    assert message == "first"

    assert cli.main(["files", "0", "-C", repo]) == 0
    assert capsys.readouterr().out.splitlines() == [
        "M a.txt",
        "A added.txt",
        "D dir/b.txt",
        "R old.txt -> new.txt",
        "? u.txt",
    ]

    assert cli.main(["files", "0", "-C", repo, "--sort", "tree"]) == 0
    assert capsys.readouterr().out.splitlines() == [
        "dir/",
        "  D b.txt",
        "M a.txt",
        "A added.txt",
        "R new.txt",
        "? u.txt",
    ]

    assert cli.main(["show", "0", "a.txt", "-C", repo]) == 0
    assert capsys.readouterr().out == "alpha changed\n"

    assert cli.main(["show", "0", "old.txt", "-C", repo, "--side", "parent"]) == 0
    assert capsys.readouterr().out == "renamed content\n"

    assert cli.main(["show", "0", "missing.txt", "-C", repo]) == 1
    assert "missing.txt is not part of stash@{0}" in capsys.readouterr().err


@requires_git
def test_drop_and_clear(git_repo, capsys):
    repo = str(git_repo)
    for content in ("one\n", "two\n"):
        (git_repo / "a.txt").write_text(content)
        run_git(["stash", "push"], cwd=git_repo)

    assert cli.main(["fingerprint", "-C", repo]) == 0
    assert capsys.readouterr().out.strip() != ""

    assert cli.main(["drop", "0", "-C", repo]) == 0
    assert "Dropped" in capsys.readouterr().out

    assert cli.main(["list", "-C", repo]) == 0
    assert len(capsys.readouterr().out.splitlines()) == 1

    assert cli.main(["clear", "-C", repo]) == 0
    capsys.readouterr()

    assert cli.main(["list", "-C", repo]) == 0
    assert capsys.readouterr().out == "No stashes found.\n"

    assert cli.main(["fingerprint", "-C", repo]) == 0
    assert capsys.readouterr().out == "\n"

    assert cli.main(["drop", "0", "-C", repo]) == 1
    assert "stash-lens: error:" in capsys.readouterr().err
