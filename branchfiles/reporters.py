from __future__ import annotations

import json
from pathlib import Path

from branchfiles.models import ResolutionResult


MODIFIED_MARK = "* "
UNMODIFIED_MARK = "  "


def format_entries(result: ResolutionResult) -> list[str]:
    return [
        f"{MODIFIED_MARK if e.modified else UNMODIFIED_MARK}{e.path}"
        for e in result.entries
    ]


def build_text_report(result: ResolutionResult) -> str:
    return "\n".join(format_entries(result))


def _title(result: ResolutionResult) -> str:
    if result.commit:
        return f"# Git File List for Commit: {result.commit}"
    return f"# Git File List for Branch: {result.branch or 'n/a'}"


def build_markdown_report(result: ResolutionResult, folder_label: str | None = None) -> str:
    lines = [
        _title(result),
        f"- Selected folder: {folder_label or result.path_filter or '.'}",
        f"- Working directory: {result.repo_path}",
        f"- Total files: {result.total} ({result.modified_count} currently modified)",
    ]
    if result.base and not result.commit:
        lines.append(f"- Base branch: {result.base}")
    lines.append(f"- Strategy: {result.provenance}{' (fallback)' if result.used_fallback else ''}")
    lines.extend(
        [
            "",
            "## File List",
            "Files with an asterisk (*) are currently modified but not yet committed.",
            "",
        ]
    )

    if not result.entries:
        lines.append("No changed files were found. Please verify your Git commands manually.")
    else:
        lines.extend(format_entries(result))

    return "\n".join(lines) + "\n"


def write_markdown_report(result: ResolutionResult, path: Path, folder_label: str | None = None) -> None:
    path.write_text(build_markdown_report(result, folder_label))


def write_json_report(result: ResolutionResult, path: Path) -> None:
    path.write_text(json.dumps(result.to_dict(), indent=2))
