from __future__ import annotations

from .models import CachedView


def format_view_text(view: CachedView) -> str:
    title = view.metadata.get("title") or view.location_key
    lines = []
    lines.append(f"=== {title} ===")

    if view.result.untracked:
        lines.append("Untracked files:")
        for i, entry in enumerate(view.result.untracked, start=1):
            lines.append(f"{i}. {entry.relative_path}")
        lines.append("")

    diff = view.result.diff_text
    lines.append(diff.rstrip("\n") if diff.strip() else "(no changes)")

    return "\n".join(lines)
