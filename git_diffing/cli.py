from __future__ import annotations
import argparse
import asyncio
import os
import sys

from .config import Settings, load_settings
from .dispatch import DiffingMenu, DiffingOutcome, MenuItem
from .git_utils import DiffQueryExecutor, GitCommandError, make_runner
from .logs import configure_logging
from .models import CachedView, DiffMode, DiffRequest, Repository, Stash
from .repository import load_repository
from .resolver import DIFF_SWITCHES
from .utils import format_view_text
from .views import ViewCache

EXIT_CANCELLED = 130


def _read(prompt: str) -> str | None:
    try:
        return input(prompt)
    except EOFError:
        return None


class TerminalPrompter:
    """Prompts on stdin; an empty answer or EOF counts as cancelling."""

    async def choose_mode(self, items: list[MenuItem]) -> DiffMode | None:
        print("Diffing")
        for item in items:
            print(f"  {item.key}  {item.description}")
        key = (await asyncio.to_thread(_read, "> ") or "").strip()
        for item in items:
            if item.key == key:
                return item.mode
        return None

    async def ask(self, prompt: str, value: str = "") -> str | None:
        # value is the base directory for relative answers
        hint = f" [{value}]" if value else ""
        answer = (await asyncio.to_thread(_read, f"{prompt}{hint}: ") or "").strip()
        if not answer:
            return None
        if value and not os.path.isabs(answer):
            return os.path.join(value, answer)
        return answer

    async def choose_ref(self, repository: Repository, prompt: str, allow_head: bool, allow_commit: bool) -> str | None:
        hint = " (branch, tag or commit)" if allow_commit else " (branch or tag)"
        answer = (await asyncio.to_thread(_read, f"{prompt}{hint}: ") or "").strip()
        if answer == "HEAD" and not allow_head:
            return None
        return answer or None

    async def pick_stash(self, stashes: list[Stash]) -> Stash | None:
        if not stashes:
            print("No stashes.")
            return None
        for stash in stashes:
            print(f"  {stash.label}  {stash.description}")
        answer = (await asyncio.to_thread(_read, "Stash index: ") or "").strip()
        for stash in stashes:
            if answer in (str(stash.index), stash.label):
                return stash
        return None


class TerminalPresenter:
    def __init__(self, out: str = ""):
        self.out = out

    def present(self, view: CachedView) -> None:
        print(format_view_text(view))
        if self.out:
            with open(self.out, "w", encoding="utf-8") as f:
                f.write(view.model_dump_json(indent=2))
            print(f"\nSaved JSON: {self.out}")


def _stash_index(value: str) -> int:
    index = int(value)
    if index < 0:
        raise argparse.ArgumentTypeError("stash index must be >= 0")
    return index


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="git-diffing", description="Resolve, run and cache git diff views")
    ap.add_argument("-C", dest="directory", default=".", help="Run as if started in this directory")
    ap.add_argument("--out", default="", help="Write the view as JSON to file")
    ap.add_argument("--log-level", dest="log_level", default="", help="Log level (default from GIT_DIFFING_LOG_LEVEL)")
    for short, name in DIFF_SWITCHES.items():
        ap.add_argument(short, name, dest="switches", action="append_const", const=name, help=f"Pass {name} to git diff")

    sub = ap.add_subparsers(dest="mode")
    p = sub.add_parser("range", help="Diff a range (defaults to HEAD)")
    p.add_argument("range", nargs="?", default="")
    p = sub.add_parser("paths", help="Diff two files outside the index")
    p.add_argument("file_a", nargs="?", default="")
    p.add_argument("file_b", nargs="?", default="")
    sub.add_parser("staged", help="Diff staged changes")
    sub.add_parser("unstaged", help="Diff unstaged changes")
    sub.add_parser("worktree", help="Diff worktree against HEAD")
    p = sub.add_parser("commit", help="Show a commit")
    p.add_argument("ref", nargs="?", default="")
    p = sub.add_parser("stash", help="Show a stash with its untracked files")
    p.add_argument("index", nargs="?", type=_stash_index, default=None)
    p = sub.add_parser("file", help="Diff a single file")
    p.add_argument("path", nargs="?", default="")
    p.add_argument("--cached", action="store_true", help="Diff the staged version")
    sub.add_parser("menu", help="Choose the mode interactively")
    return ap


def _from_directory(args: argparse.Namespace, path: str) -> str:
    return os.path.abspath(os.path.join(args.directory, path))


def build_request(args: argparse.Namespace) -> DiffRequest | None:
    mode = args.mode
    if mode in (None, "menu"):
        return None
    if mode == "range":
        return DiffRequest(mode="range", range=args.range)
    if mode == "paths":
        # relative paths are taken from the -C directory
        return DiffRequest(
            mode="paths",
            file_a=_from_directory(args, args.file_a) if args.file_a else "",
            file_b=_from_directory(args, args.file_b) if args.file_b else "",
        )
    if mode == "commit":
        return DiffRequest(mode="commit", ref=args.ref)
    if mode == "stash":
        return DiffRequest(mode="stash", stash_index=args.index)
    if mode == "file":
        return DiffRequest(mode="file", path=_from_directory(args, args.path) if args.path else "", cached=args.cached)
    return DiffRequest(mode=mode)


async def run(args: argparse.Namespace, settings: Settings) -> DiffingOutcome | None:
    try:
        repository = await load_repository(make_runner(os.path.abspath(args.directory), git=settings.git))
    except (GitCommandError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return None

    switches = [*settings.switches, *(args.switches or [])]
    cache = ViewCache()
    menu = DiffingMenu(
        repository,
        DiffQueryExecutor(make_runner(repository.root, git=settings.git)),
        cache,
        TerminalPresenter(out=args.out),
        TerminalPrompter(),
        switches=switches,
    )
    try:
        return await menu.run(request=build_request(args))
    finally:
        cache.clear()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings()
    configure_logging(args.log_level or settings.log_level)

    outcome = asyncio.run(run(args, settings))
    if outcome is None:
        return 1
    if outcome.state == "Completed":
        return 0
    if outcome.error:
        print(f"error: {outcome.error}", file=sys.stderr)
        return 1
    return EXIT_CANCELLED


if __name__ == "__main__":
    sys.exit(main())
