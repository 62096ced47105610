from __future__ import annotations
from urllib.parse import quote

from .models import DiffRequest, QueryDescriptor, Repository, Section

# git diff switches by menu key
DIFF_SWITCHES = {
    "-f": "--function-context",
    "-b": "--ignore-space-change",
    "-w": "--ignore-all-space",
    "-x": "--no-ext-diff",
    "-s": "--stat",
}

SECTION_ARGS: dict[str, list[str]] = {
    "Staged": ["--cached"],
    "Unstaged": [],
}


def encode_location(repository: Repository, mode: str, discriminator: str, switches: list[str] | None = None) -> str:
    """Deterministic view address for (repository, mode, discriminator).

    Switches alter git's output, so they are part of the address too.
    """
    key = f"git-diffing-{mode}:{quote(repository.root, safe='/')}?{quote(discriminator, safe='')}"
    if switches:
        key += "#" + quote(" ".join(switches), safe="")
    return key


def _diff(
    repository: Repository,
    mode: str,
    discriminator: str,
    args: list[str],
    switches: list[str] | None,
    title: str,
    ok_codes: list[int] | None = None,
) -> QueryDescriptor:
    return QueryDescriptor(
        command="diff",
        args=args,
        switches=list(switches or []),
        location_key=encode_location(repository, mode, discriminator, switches),
        title=title,
        ok_codes=list(ok_codes or [0]),
    )


def resolve_range(
    repository: Repository,
    value: str | None,
    default_range: str | None = None,
    switches: list[str] | None = None,
) -> QueryDescriptor | None:
    range_spec = (value or "").strip() or (default_range or "").strip()
    if not range_spec:
        return None
    return _diff(repository, "range", range_spec, [range_spec], switches, f"Diff {range_spec}")


def resolve_paths(
    repository: Repository,
    file_a: str | None,
    file_b: str | None,
    switches: list[str] | None = None,
) -> QueryDescriptor | None:
    if not file_a or not file_b:
        return None
    # --no-index exits 1 when the files differ
    return _diff(
        repository,
        "paths",
        f"{file_a}\0{file_b}",
        ["--no-index", file_a, file_b],
        switches,
        f"Diff {file_a} {file_b}",
        ok_codes=[0, 1],
    )


def resolve_section(repository: Repository, section: Section, switches: list[str] | None = None) -> QueryDescriptor:
    if section not in SECTION_ARGS:
        raise ValueError(f"no diff for section {section!r}")
    return _diff(repository, section.lower(), section, list(SECTION_ARGS[section]), switches, f"{section} changes")


def resolve_worktree(repository: Repository, switches: list[str] | None = None) -> QueryDescriptor:
    return _diff(repository, "worktree", "HEAD", ["HEAD"], switches, "Diff worktree")


def resolve_file(
    repository: Repository,
    path: str,
    cached: bool = False,
    switches: list[str] | None = None,
) -> QueryDescriptor | None:
    if not path:
        return None
    args = ["--cached", path] if cached else [path]
    discriminator = f"cached:{path}" if cached else path
    return _diff(repository, "file", discriminator, args, switches, f"Diff {path}")


def resolve_commit(repository: Repository, ref: str | None) -> QueryDescriptor | None:
    if not ref:
        return None
    return QueryDescriptor(
        command="show",
        args=[ref],
        location_key=encode_location(repository, "commit", ref),
        title=f"Commit {ref}",
    )


def stash_ref(stash_index: int) -> str:
    if stash_index < 0:
        raise ValueError("stash index must be non-negative")
    return f"stash@{{{stash_index}}}"


def resolve_stash(repository: Repository, stash_index: int) -> QueryDescriptor:
    ref = stash_ref(stash_index)
    return QueryDescriptor(
        command="stash",
        args=["show", "-p", ref],
        location_key=encode_location(repository, "stash", str(stash_index)),
        title=f"Stash {ref}",
    )


def untracked_listing_args(stash_index: int) -> list[str]:
    return ["ls-tree", "-r", f"{stash_ref(stash_index)}^3", "--name-only"]


def resolve(repository: Repository, request: DiffRequest, switches: list[str] | None = None) -> QueryDescriptor | None:
    """Map a request to its query; ``None`` means required input is missing."""
    mode = request.mode
    if mode == "range":
        return resolve_range(repository, request.range, repository.head, switches)
    if mode == "paths":
        return resolve_paths(repository, request.file_a, request.file_b, switches)
    if mode == "staged":
        return resolve_section(repository, "Staged", switches)
    if mode == "unstaged":
        return resolve_section(repository, "Unstaged", switches)
    if mode == "worktree":
        return resolve_worktree(repository, switches)
    if mode == "commit":
        return resolve_commit(repository, request.ref)
    if mode == "stash":
        if request.stash_index is None:
            return None
        return resolve_stash(repository, request.stash_index)
    if mode == "file":
        return resolve_file(repository, request.path, request.cached, switches)
    raise ValueError(f"unknown diff mode {mode!r}")
