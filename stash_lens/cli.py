"""
Command-line interface for stash-lens.

This module is responsible for argument parsing and delegating to the
stash hierarchy and git adapter. It is a thin driver: everything it
prints comes from the core's typed results.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional, Sequence, Union

from .config import Config, SortMode, parse_sort_mode, resolve_debug
from .domain import DirectoryNode, FileChange, Repository, Stash
from .errors import StashLensError, UnsupportedOperationError
from .executor import Execution, ProcessExecutor
from .fingerprint import fingerprint
from .git_adapter import GitAdapter, StashMode
from .hierarchy import StashHierarchy
from .logging_utils import configure_logging
from .resolver import Side

LOG = logging.getLogger(__name__)

SUMMARY_LIMIT = 200

_KIND_LABELS = {
    "a": "A",
    "d": "D",
    "m": "M",
    "r": "R",
    "u": "?",
}

_STASH_MODES = {
    "simple": StashMode.SIMPLE,
    "staged": StashMode.STAGED,
    "keep-index": StashMode.KEEP_INDEX,
    "include-untracked": StashMode.INCLUDE_UNTRACKED,
    "include-untracked-keep-index": StashMode.INCLUDE_UNTRACKED_KEEP_INDEX,
    "all": StashMode.ALL,
    "all-keep-index": StashMode.ALL_KEEP_INDEX,
}


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stash-lens",
        description="Browse git stashes, the files they touch and their historical content.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (can be specified multiple times).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Log every git invocation (STASH_LENS_DEBUG overrides this when set).",
    )
    parser.add_argument("--git", default="git", help="Git executable to use (default: git).")

    commands = parser.add_subparsers(dest="command", required=True)

    repos = commands.add_parser("repos", help="List repositories containing the given directories.")
    repos.add_argument("paths", nargs="*", help="Candidate directories (default: current directory).")

    def with_repo(sub: argparse.ArgumentParser) -> argparse.ArgumentParser:
        sub.add_argument("-C", "--repo", default=".", help="Repository directory (default: .).")
        return sub

    with_repo(commands.add_parser("list", help="List the stashes of a repository."))

    files = with_repo(commands.add_parser("files", help="List the files touched by a stash."))
    files.add_argument("index", type=int)
    files.add_argument(
        "--sort",
        choices=[mode.value for mode in SortMode],
        default=None,
        help="File ordering (default: path).",
    )

    show = with_repo(commands.add_parser("show", help="Print a stashed file's content."))
    show.add_argument("index", type=int)
    show.add_argument("path", help="Repository-relative path of the file.")
    show.add_argument("--side", choices=["change", "parent"], default="change")

    with_repo(commands.add_parser("fingerprint", help="Print the stash list fingerprint."))

    create = with_repo(commands.add_parser("create", help="Create a stash."))
    create.add_argument("--mode", choices=sorted(_STASH_MODES), default="simple")
    create.add_argument("-m", "--message", default=None)

    for name in ("pop", "apply"):
        sub = with_repo(commands.add_parser(name, help=f"{name.capitalize()} a stash."))
        sub.add_argument("index", type=int)
        sub.add_argument("--index", dest="with_index", action="store_true", help="Restore the index too.")

    drop = with_repo(commands.add_parser("drop", help="Drop a stash."))
    drop.add_argument("index", type=int)

    branch = with_repo(commands.add_parser("branch", help="Create a branch from a stash."))
    branch.add_argument("index", type=int)
    branch.add_argument("name")

    with_repo(commands.add_parser("clear", help="Remove all stashes."))

    return parser


def _summary(message: str) -> str:
    first_line = message.strip().splitlines()[0] if message.strip() else message
    if len(first_line) > SUMMARY_LIMIT:
        return first_line[: SUMMARY_LIMIT - 3] + "..."
    return first_line


def _print_tree(nodes: Sequence[Union[DirectoryNode, FileChange]], depth: int = 0) -> None:
    indent = "  " * depth
    for node in nodes:
        if isinstance(node, DirectoryNode):
            print(f"{indent}{node.name}/")
            _print_tree(node.children, depth + 1)
        else:
            print(f"{indent}{_KIND_LABELS[node.kind.value]} {node.name}")


def _format_file(file_change: FileChange) -> str:
    label = _KIND_LABELS[file_change.kind.value]
    if file_change.old_relative_path is not None:
        return f"{label} {file_change.old_relative_path} -> {file_change.relative_path}"
    return f"{label} {file_change.relative_path}"


async def _resolve_repository(hierarchy: StashHierarchy, path: str) -> Repository:
    repositories = await hierarchy.git.list_repositories([os.path.abspath(path)], first_only=True)
    if not repositories:
        raise UnsupportedOperationError(f"{path} is not inside a git repository")
    return Repository.from_path(repositories[0], hierarchy.workspace_folders)


async def _find_stash(hierarchy: StashHierarchy, repository: Repository, index: int) -> Stash:
    for stash in await hierarchy.get_stashes(repository):
        if stash.index == index:
            return stash
    raise UnsupportedOperationError(f"stash@{{{index}}} does not exist in {repository.path}")


async def _report(execution: Execution, config: Config) -> None:
    result = await execution
    output = result.combined.strip()
    if config.notify_success and output:
        print(output)


async def _guard_unmerged(hierarchy: StashHierarchy, repository: Repository) -> None:
    unmerged = await hierarchy.git.has_unmerged_paths(repository.path)
    if unmerged:
        raise UnsupportedOperationError("the working tree has unmerged paths; resolve them first")
    if unmerged is None:
        LOG.warning("Could not determine whether %s has unmerged paths", repository.path)


async def _dispatch(args: argparse.Namespace, config: Config) -> int:
    git = GitAdapter(ProcessExecutor(debug=config.debug), config)
    hierarchy = StashHierarchy(git, config)

    if args.command == "repos":
        candidates = [os.path.abspath(path) for path in (args.paths or ["."])]
        repositories = await hierarchy.get_repositories(candidates, eager_load=True)
        for node in hierarchy.prepare_children(None, repositories):
            if isinstance(node, Repository):
                count = node.children_count
                print(f"{node.label}\t{node.path}\t{count if count is not None else '?'}")
            else:
                print(node.message)
        return 0

    repository = await _resolve_repository(hierarchy, args.repo)

    if args.command == "list":
        stashes = await hierarchy.get_stashes(repository)
        for node in hierarchy.prepare_children(repository, stashes):
            if isinstance(node, Stash):
                branch = f" [{node.branch}]" if node.branch else ""
                print(f"{node.at_index}\t{node.short_hash}\t{node.date.isoformat()}{branch}\t{node.message}")
            else:
                print(node.message)
        return 0

    if args.command == "files":
        if args.sort is not None:
            config.file_sorting = parse_sort_mode(args.sort)
        stash = await _find_stash(hierarchy, repository, args.index)
        children = await hierarchy.get_children(stash)
        if stash.files_error is not None:
            print(f"stash-lens: warning: {_summary(str(stash.files_error))}", file=sys.stderr)
        if config.file_sorting is SortMode.TREE:
            _print_tree(children)
        else:
            for file_change in children:
                print(_format_file(file_change))  # type: ignore[arg-type]
        return 0

    if args.command == "show":
        stash = await _find_stash(hierarchy, repository, args.index)
        wanted = args.path.replace(os.sep, "/")
        for file_change in await hierarchy.get_files(stash):
            if wanted in (file_change.relative_path, file_change.old_relative_path):
                side = Side.PARENT if args.side == "parent" else Side.CHANGE
                sys.stdout.write(await hierarchy.get_file_contents(file_change, side))
                return 0
        raise UnsupportedOperationError(f"{args.path} is not part of {stash.at_index}")

    if args.command == "fingerprint":
        print(await fingerprint(git, repository.path) or "")
        return 0

    if args.command == "create":
        await _report(git.create_stash(repository.path, _STASH_MODES[args.mode], args.message), config)
    elif args.command == "pop":
        await _guard_unmerged(hierarchy, repository)
        await _report(git.pop(repository.path, args.index, args.with_index), config)
    elif args.command == "apply":
        await _guard_unmerged(hierarchy, repository)
        await _report(git.apply(repository.path, args.index, args.with_index), config)
    elif args.command == "drop":
        await _report(git.drop(repository.path, args.index), config)
    elif args.command == "branch":
        await _guard_unmerged(hierarchy, repository)
        await _report(git.branch(repository.path, args.index, args.name), config)
    elif args.command == "clear":
        await _report(git.clear_stashes(repository.path), config)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    config = Config(
        git_command=args.git,
        debug=resolve_debug(args.debug),
        verbosity=args.verbose,
    )

    configure_logging(verbosity=config.verbosity, debug=config.debug)

    try:
        return asyncio.run(_dispatch(args, config))
    except KeyboardInterrupt:
        return 130
    except StashLensError as exc:
        print(f"stash-lens: error: {_summary(str(exc))}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover - manual invocation
    raise SystemExit(main())
