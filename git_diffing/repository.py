from __future__ import annotations
import re

import structlog

from .git_utils import GitCommandError, GitRunner
from .models import Repository, Stash

logger = structlog.get_logger()

STASH_LINE = re.compile(r"^stash@\{(\d+)\}:?\s*(.*)$")


def parse_stash_list(text: str) -> list[Stash]:
    stashes = []
    for line in text.splitlines():
        m = STASH_LINE.match(line.strip())
        if m:
            stashes.append(Stash(index=int(m.group(1)), description=m.group(2)))
    return stashes


async def load_repository(runner: GitRunner) -> Repository:
    root = (await runner(["rev-parse", "--show-toplevel"])).strip()

    try:
        head = (await runner(["rev-parse", "--abbrev-ref", "HEAD"])).strip() or None
    except GitCommandError:
        # unborn branch: no commit to name yet
        logger.debug("head_unresolved", root=root)
        head = None

    stashes = parse_stash_list(await runner(["stash", "list"]))
    return Repository(root=root, head=head, stashes=stashes)
