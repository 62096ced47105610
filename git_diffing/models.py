from __future__ import annotations
from typing import Any, Literal
from pydantic import BaseModel, Field


DiffMode = Literal["range", "paths", "staged", "unstaged", "worktree", "commit", "stash", "file"]
Section = Literal["Staged", "Unstaged", "Untracked"]
Status = Literal["Added", "Modified", "Deleted", "Renamed", "Copied", "Untracked", "Ignored"]


class Stash(BaseModel):
    index: int = Field(ge=0)
    description: str = ""

    @property
    def label(self) -> str:
        return f"stash@{{{self.index}}}"


class Repository(BaseModel):
    root: str
    head: str | None = None
    stashes: list[Stash] = Field(default_factory=list)


class DiffRequest(BaseModel):
    mode: DiffMode
    range: str = ""
    file_a: str = ""
    file_b: str = ""
    ref: str = ""
    path: str = ""
    cached: bool = False
    stash_index: int | None = Field(default=None, ge=0)


class QueryDescriptor(BaseModel):
    command: str
    args: list[str] = Field(default_factory=list)
    switches: list[str] = Field(default_factory=list)
    location_key: str
    title: str = ""
    # exit codes git uses for success; diff --no-index returns 1 on differences
    ok_codes: list[int] = Field(default_factory=lambda: [0])

    @property
    def argv(self) -> list[str]:
        return [self.command, *self.switches, *self.args]


class ChangeEntry(BaseModel):
    uri: str
    original_uri: str
    relative_path: str = Field(min_length=1)
    rename_uri: str | None = None
    status: Status
    section: Section


class DiffResult(BaseModel):
    diff_text: str
    # only filled for stash views: files the stash diff does not show
    untracked: list[ChangeEntry] = Field(default_factory=list)


class CachedView(BaseModel):
    location_key: str
    result: DiffResult
    metadata: dict[str, Any] = Field(default_factory=dict)
