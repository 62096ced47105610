from __future__ import annotations
import asyncio
import re
from pathlib import PurePosixPath
from typing import Literal

import structlog
from pydantic import BaseModel, ConfigDict, Field

from .git_utils import DiffQueryExecutor, GitCommandError, UntrackedListingError
from .models import ChangeEntry, DiffResult, Repository
from .resolver import resolve_stash, untracked_listing_args

logger = structlog.get_logger()

LINE_SPLITTER = re.compile(r"\r?\n")

ListingOutcome = Literal["succeeded", "empty", "failed"]


class UntrackedListing(BaseModel):
    """Outcome of the best-effort listing of files kept in a stash's third parent."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    outcome: ListingOutcome
    entries: list[ChangeEntry] = Field(default_factory=list)
    error: UntrackedListingError | None = None


def split_lines(text: str) -> list[str]:
    lines = LINE_SPLITTER.split(text)
    if lines and lines[-1] == "":
        lines = lines[:-1]
    return lines


def _file_uri(root: str, relative_path: str) -> str:
    path = PurePosixPath(root) / relative_path
    return path.as_uri() if path.is_absolute() else str(path)


def parse_untracked(text: str, root: str) -> list[ChangeEntry]:
    entries = []
    for name in split_lines(text):
        if not name:
            continue
        uri = _file_uri(root, name)
        entries.append(
            ChangeEntry(
                uri=uri,
                original_uri=uri,
                relative_path=name,
                rename_uri=None,
                status="Untracked",
                section="Untracked",
            )
        )
    return entries


class StashAssembler:
    def __init__(self, repository: Repository, executor: DiffQueryExecutor):
        self.repository = repository
        self.executor = executor

    async def list_untracked(self, stash_index: int) -> UntrackedListing:
        args = untracked_listing_args(stash_index)
        try:
            text = await self.executor.run(args)
        except GitCommandError as e:
            error = UntrackedListingError(e.git_args, e.returncode, e.stderr, e.stdout)
            logger.warning("stash_untracked_listing_failed", stash_index=stash_index, error=str(error))
            return UntrackedListing(outcome="failed", error=error)

        entries = parse_untracked(text, self.repository.root)
        return UntrackedListing(outcome="succeeded" if entries else "empty", entries=entries)

    async def assemble_detail(self, stash_index: int) -> tuple[DiffResult, UntrackedListing]:
        """Stash view plus the outcome of its untracked listing."""
        descriptor = resolve_stash(self.repository, stash_index)

        diff_task = asyncio.create_task(self.executor.execute(descriptor))
        listing_task = asyncio.create_task(self.list_untracked(stash_index))
        try:
            # a failed diff aborts without waiting on the listing
            diff_text = await diff_task
            listing = await listing_task
        finally:
            if not listing_task.done():
                listing_task.cancel()

        logger.debug(
            "stash_assembled",
            stash_index=stash_index,
            untracked=len(listing.entries),
            listing=listing.outcome,
        )
        return DiffResult(diff_text=diff_text, untracked=listing.entries), listing

    async def assemble(self, stash_index: int) -> DiffResult:
        result, _ = await self.assemble_detail(stash_index)
        return result
