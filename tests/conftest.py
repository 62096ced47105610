"""Shared fixtures: a fake git runner and a fixed repository."""

from unittest.mock import AsyncMock

import pytest

from git_diffing.git_utils import DiffQueryExecutor
from git_diffing.models import Repository, Stash


@pytest.fixture
def repository() -> Repository:
    return Repository(
        root="/r",
        head="main",
        stashes=[Stash(index=0, description="WIP on main: 1a2b3c fix"), Stash(index=1, description="On main: older")],
    )


@pytest.fixture
def runner() -> AsyncMock:
    return AsyncMock(return_value="")


@pytest.fixture
def executor(runner) -> DiffQueryExecutor:
    return DiffQueryExecutor(runner)
