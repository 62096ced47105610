from __future__ import annotations
from typing import Awaitable, Callable, Literal, Protocol

import structlog
from pydantic import BaseModel, Field

from .git_utils import DiffQueryExecutor, GitCommandError
from .models import CachedView, DiffMode, DiffRequest, DiffResult, QueryDescriptor, Repository, Stash
from .resolver import resolve
from .stash import StashAssembler
from .views import ViewCache, ViewPresenter

logger = structlog.get_logger()

DiffState = Literal["MenuOpen", "ModeSelected", "CollectingInputs", "Executing", "Completed", "Aborted"]

TRANSITIONS: dict[str, set[str]] = {
    "MenuOpen": {"ModeSelected", "Aborted"},
    "ModeSelected": {"CollectingInputs"},
    "CollectingInputs": {"Executing", "Aborted"},
    "Executing": {"Completed", "Aborted"},
    "Completed": set(),
    "Aborted": set(),
}


class MenuItem(BaseModel):
    key: str
    description: str
    mode: DiffMode


DIFFING_MENU = [
    MenuItem(key="r", description="Diff range", mode="range"),
    MenuItem(key="p", description="Diff paths", mode="paths"),
    MenuItem(key="u", description="Diff unstaged", mode="unstaged"),
    MenuItem(key="s", description="Diff staged", mode="staged"),
    MenuItem(key="w", description="Diff worktree", mode="worktree"),
    MenuItem(key="c", description="Show commit", mode="commit"),
    MenuItem(key="t", description="Show stash", mode="stash"),
]


class Prompter(Protocol):
    async def choose_mode(self, items: list[MenuItem]) -> DiffMode | None: ...

    async def ask(self, prompt: str, value: str = "") -> str | None: ...

    async def choose_ref(self, repository: Repository, prompt: str, allow_head: bool, allow_commit: bool) -> str | None: ...

    async def pick_stash(self, stashes: list[Stash]) -> Stash | None: ...


CommitVisitor = Callable[[Repository, str], Awaitable[object]]


class DiffingOutcome(BaseModel):
    state: DiffState = "MenuOpen"
    history: list[DiffState] = Field(default_factory=lambda: ["MenuOpen"])
    mode: DiffMode | None = None
    location_key: str | None = None
    view: CachedView | None = None
    reason: str = ""
    error: str | None = None

    def advance(self, state: DiffState) -> None:
        if state not in TRANSITIONS[self.state]:
            raise RuntimeError(f"invalid transition {self.state} -> {state}")
        self.state = state
        self.history.append(state)


class DiffingMenu:
    def __init__(
        self,
        repository: Repository,
        executor: DiffQueryExecutor,
        cache: ViewCache,
        presenter: ViewPresenter,
        prompter: Prompter,
        switches: list[str] | None = None,
        visit_commit: CommitVisitor | None = None,
    ):
        self.repository = repository
        self.executor = executor
        self.cache = cache
        self.presenter = presenter
        self.prompter = prompter
        self.switches = list(switches or [])
        self.visit_commit = visit_commit
        self.assembler = StashAssembler(repository, executor)

    async def run(self, mode: DiffMode | None = None, request: DiffRequest | None = None) -> DiffingOutcome:
        outcome = DiffingOutcome()

        if request is not None:
            mode = request.mode
        if mode is None:
            mode = await self.prompter.choose_mode(DIFFING_MENU)
            if mode is None:
                return self._abort(outcome, "cancelled")
        outcome.mode = mode
        outcome.advance("ModeSelected")

        outcome.advance("CollectingInputs")
        request = await self.collect(mode, request or DiffRequest(mode=mode))
        descriptor = resolve(self.repository, request, self.switches) if request else None
        if descriptor is None:
            return self._abort(outcome, "cancelled")

        outcome.location_key = descriptor.location_key
        outcome.advance("Executing")
        try:
            if mode == "commit" and self.visit_commit is not None:
                await self.visit_commit(self.repository, request.ref)
                outcome.advance("Completed")
                return outcome
            view = await self.cache.load(
                descriptor.location_key,
                lambda: self._query(request, descriptor),
                metadata={"mode": mode, "title": descriptor.title, "argv": descriptor.argv},
            )
        except GitCommandError as e:
            logger.error("diff_failed", mode=mode, location_key=descriptor.location_key, error=str(e))
            outcome.error = str(e)
            return self._abort(outcome, "failed")

        outcome.view = view
        self.presenter.present(view)
        outcome.advance("Completed")
        return outcome

    async def collect(self, mode: DiffMode, request: DiffRequest) -> DiffRequest | None:
        """Gather mode inputs through the prompter; ``None`` on cancellation.

        Nothing here talks to git.
        """
        if mode == "range":
            if not request.range:
                head = self.repository.head or ""
                answer = await self.prompter.ask(f"Diff for range ({head})")
                # empty or dismissed input falls back to HEAD during resolution
                request = request.model_copy(update={"range": answer or ""})
            return request

        if mode == "paths":
            file_a = request.file_a or await self.prompter.ask("First file", self.repository.root)
            if not file_a:
                return None
            file_b = request.file_b or await self.prompter.ask("Second file", self.repository.root)
            if not file_b:
                return None
            return request.model_copy(update={"file_a": file_a, "file_b": file_b})

        if mode == "commit":
            ref = request.ref or await self.prompter.choose_ref(self.repository, "Show commit", True, True)
            if not ref:
                return None
            return request.model_copy(update={"ref": ref})

        if mode == "stash":
            if request.stash_index is not None:
                return request
            stash = await self.prompter.pick_stash(self.repository.stashes)
            if stash is None:
                return None
            return request.model_copy(update={"stash_index": stash.index})

        if mode == "file":
            path = request.path or await self.prompter.ask("File")
            if not path:
                return None
            return request.model_copy(update={"path": path})

        return request

    async def _query(self, request: DiffRequest, descriptor: QueryDescriptor) -> DiffResult:
        if request.mode == "stash":
            return await self.assembler.assemble(request.stash_index)
        return DiffResult(diff_text=await self.executor.execute(descriptor))

    def _abort(self, outcome: DiffingOutcome, reason: str) -> DiffingOutcome:
        outcome.reason = reason
        if reason == "cancelled":
            logger.debug("diff_cancelled", mode=outcome.mode, state=outcome.state)
        outcome.advance("Aborted")
        return outcome
