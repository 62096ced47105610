from __future__ import annotations
import asyncio
from typing import Awaitable, Callable

import structlog

from .models import QueryDescriptor

logger = structlog.get_logger()

GitRunner = Callable[[list[str]], Awaitable[str]]


class GitCommandError(RuntimeError):
    def __init__(self, args: list[str], returncode: int, stderr: str, stdout: str = ""):
        self.git_args = list(args)
        self.returncode = returncode
        self.stderr = stderr
        self.stdout = stdout
        super().__init__(f"git {' '.join(args)} failed:\n{stderr.strip()}")


class DiffExecutionError(GitCommandError):
    """A mandatory diff query failed; the command producing the view is aborted."""


class UntrackedListingError(GitCommandError):
    """The best-effort untracked listing of a stash failed."""


def make_runner(cwd: str, git: str = "git") -> GitRunner:
    """Return a coroutine function running ``git <args>`` inside ``cwd``."""

    async def run(args: list[str]) -> str:
        return await run_git(args, cwd=cwd, git=git)

    return run


async def run_git(args: list[str], *, cwd: str | None = None, git: str = "git") -> str:
    process = await asyncio.create_subprocess_exec(
        git,
        *args,
        cwd=cwd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await process.communicate()

    if process.returncode != 0:
        error = stderr.decode(errors="replace") if stderr else f"exit code {process.returncode}"
        raise GitCommandError(args, process.returncode, error, stdout.decode(errors="replace"))

    return stdout.decode(errors="replace")


class DiffQueryExecutor:
    def __init__(self, runner: GitRunner):
        self._runner = runner

    async def execute(self, descriptor: QueryDescriptor) -> str:
        argv = descriptor.argv
        logger.debug("git_query", argv=argv, location_key=descriptor.location_key)
        try:
            return await self._runner(argv)
        except GitCommandError as e:
            if e.returncode in descriptor.ok_codes:
                return e.stdout
            raise DiffExecutionError(e.git_args, e.returncode, e.stderr, e.stdout) from e

    async def run(self, args: list[str]) -> str:
        """Run a raw git query without mapping failures."""
        return await self._runner(args)
