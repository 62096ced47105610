"""Tests for stash detail assembly."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from git_diffing.git_utils import DiffExecutionError, DiffQueryExecutor, GitCommandError, UntrackedListingError
from git_diffing.stash import StashAssembler, parse_untracked, split_lines

STASH_DIFF = "diff --git a/x b/x\n@@ ...\n"


def fake_git(diff=STASH_DIFF, listing="a/newfile.txt\n", diff_error=None, listing_error=None):
    async def run(args):
        if args[0] == "stash":
            if diff_error:
                raise diff_error
            return diff
        if args[0] == "ls-tree":
            if listing_error:
                raise listing_error
            return listing
        raise AssertionError(f"unexpected git call {args}")

    return AsyncMock(side_effect=run)


class TestSplitLines:
    def test_drops_single_trailing_empty_segment(self):
        assert split_lines("a\nb\n") == ["a", "b"]

    def test_keeps_last_line_without_terminator(self):
        assert split_lines("a\nb") == ["a", "b"]

    def test_crlf(self):
        assert split_lines("a\r\nb\r\n") == ["a", "b"]

    def test_empty_text(self):
        assert split_lines("") == []


class TestParseUntracked:
    def test_entry_fields(self):
        [entry] = parse_untracked("a/newfile.txt\n", "/r")
        assert entry.relative_path == "a/newfile.txt"
        assert entry.status == "Untracked"
        assert entry.section == "Untracked"
        assert entry.uri == entry.original_uri == "file:///r/a/newfile.txt"
        assert entry.rename_uri is None

    def test_blank_lines_skipped(self):
        entries = parse_untracked("one\n\ntwo\n", "/r")
        assert [e.relative_path for e in entries] == ["one", "two"]


class TestAssemble:
    @pytest.mark.asyncio
    async def test_diff_and_untracked(self, repository):
        runner = fake_git()
        result = await StashAssembler(repository, DiffQueryExecutor(runner)).assemble(0)

        assert result.diff_text == STASH_DIFF
        assert len(result.untracked) == 1
        assert result.untracked[0].relative_path == "a/newfile.txt"
        assert result.untracked[0].status == "Untracked"
        assert result.untracked[0].section == "Untracked"

    @pytest.mark.asyncio
    async def test_queries_issued(self, repository):
        runner = fake_git()
        await StashAssembler(repository, DiffQueryExecutor(runner)).assemble(1)

        calls = [c.args[0] for c in runner.await_args_list]
        assert ["stash", "show", "-p", "stash@{1}"] in calls
        assert ["ls-tree", "-r", "stash@{1}^3", "--name-only"] in calls

    @pytest.mark.asyncio
    async def test_listing_failure_is_tolerated(self, repository):
        error = GitCommandError(["ls-tree"], 128, "fatal: Not a valid object name stash@{0}^3")
        assembler = StashAssembler(repository, DiffQueryExecutor(fake_git(listing_error=error)))

        result, listing = await assembler.assemble_detail(0)

        assert result.diff_text == STASH_DIFF
        assert result.untracked == []
        assert listing.outcome == "failed"
        assert isinstance(listing.error, UntrackedListingError)
        assert "Not a valid object name" in listing.error.stderr

    @pytest.mark.asyncio
    async def test_assemble_hides_listing_failure(self, repository):
        error = GitCommandError(["ls-tree"], 128, "fatal: Not a valid object name")
        assembler = StashAssembler(repository, DiffQueryExecutor(fake_git(listing_error=error)))

        result = await assembler.assemble(0)
        assert result.diff_text == STASH_DIFF
        assert result.untracked == []

    @pytest.mark.asyncio
    async def test_empty_listing(self, repository):
        assembler = StashAssembler(repository, DiffQueryExecutor(fake_git(listing="")))
        result, listing = await assembler.assemble_detail(0)
        assert result.untracked == []
        assert listing.outcome == "empty"

    @pytest.mark.asyncio
    async def test_diff_failure_propagates(self, repository):
        error = GitCommandError(["stash", "show"], 1, "error: stash@{5} is not a valid reference")
        assembler = StashAssembler(repository, DiffQueryExecutor(fake_git(diff_error=error)))

        with pytest.raises(DiffExecutionError) as exc:
            await assembler.assemble(5)
        assert "not a valid reference" in str(exc.value)

    @pytest.mark.asyncio
    async def test_diff_failure_cancels_pending_listing(self, repository):
        listing_started = asyncio.Event()
        never = asyncio.Event()
        tasks = []

        async def run(args):
            if args[0] == "ls-tree":
                tasks.append(asyncio.current_task())
                listing_started.set()
                await never.wait()
                return ""
            await listing_started.wait()
            raise GitCommandError(args, 1, "error: bad stash")

        assembler = StashAssembler(repository, DiffQueryExecutor(AsyncMock(side_effect=run)))

        with pytest.raises(DiffExecutionError):
            await assembler.assemble(0)

        [listing_task] = tasks
        await asyncio.wait([listing_task], timeout=1)
        assert listing_task.cancelled()

    @pytest.mark.asyncio
    async def test_concurrent_stashes_keep_own_listing(self, repository):
        async def run(args):
            if args[0] == "ls-tree":
                if args[2] == "stash@{1}^3":
                    raise GitCommandError(args, 128, "fatal: Not a valid object name")
                await asyncio.sleep(0)
                return "kept.txt\n"
            return STASH_DIFF

        assembler = StashAssembler(repository, DiffQueryExecutor(AsyncMock(side_effect=run)))

        (zero, zero_listing), (one, one_listing) = await asyncio.gather(
            assembler.assemble_detail(0), assembler.assemble_detail(1)
        )

        assert zero_listing.outcome == "succeeded"
        assert [e.relative_path for e in zero.untracked] == ["kept.txt"]
        assert one_listing.outcome == "failed"
        assert one.untracked == []

    @pytest.mark.asyncio
    async def test_queries_run_concurrently(self, repository):
        started = []
        both_started = asyncio.Event()

        async def run(args):
            started.append(args[0])
            if len(started) == 2:
                both_started.set()
            await asyncio.wait_for(both_started.wait(), timeout=1)
            return "x\n" if args[0] == "ls-tree" else STASH_DIFF

        result = await StashAssembler(repository, DiffQueryExecutor(AsyncMock(side_effect=run))).assemble(0)

        assert sorted(started) == ["ls-tree", "stash"]
        assert [e.relative_path for e in result.untracked] == ["x"]
