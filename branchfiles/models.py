from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable


@dataclass(frozen=True)
class ChangedFileEntry:
    path: str
    modified: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ResolutionResult:
    entries: list[ChangedFileEntry]
    provenance: str
    tier: int = 1
    repo_path: str = ""
    branch: str | None = None
    base: str | None = None
    commit: str | None = None
    path_filter: str = ""
    committed_total: int = 0
    notes: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.entries)

    @property
    def modified_count(self) -> int:
        return sum(1 for e in self.entries if e.modified)

    @property
    def used_fallback(self) -> bool:
        return self.tier != 1

    @property
    def paths(self) -> list[str]:
        return [e.path for e in self.entries]

    def to_dict(self) -> dict[str, Any]:
        return {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "repo_path": self.repo_path,
            "branch": self.branch,
            "base": self.base,
            "commit": self.commit,
            "path_filter": self.path_filter,
            "provenance": self.provenance,
            "tier": self.tier,
            "used_fallback": self.used_fallback,
            "summary": {
                "total": self.total,
                "modified": self.modified_count,
                "committed": self.committed_total,
            },
            "notes": list(self.notes),
            "files": [e.to_dict() for e in self.entries],
        }


def is_directory_like(path: str) -> bool:
    # Extensionless files such as Makefile count as directories too.
    return path.endswith("/") or "." not in path


def sort_paths(paths: Iterable[str]) -> list[str]:
    return sorted(
        paths,
        key=lambda p: (
            not is_directory_like(p),
            p.casefold(),
            p,
        ),
    )


def merge_results(
    committed: Iterable[str],
    modified: Iterable[str],
    provenance: str,
    tier: int = 1,
    **context: Any,
) -> ResolutionResult:
    """Union committed and modified paths into a sorted, annotated result."""
    committed_set = {p.strip() for p in committed if p and p.strip()}
    modified_set = {p.strip() for p in modified if p and p.strip()}

    entries = [
        ChangedFileEntry(path=p, modified=p in modified_set)
        for p in sort_paths(committed_set | modified_set)
    ]
    return ResolutionResult(
        entries=entries,
        provenance=provenance,
        tier=tier,
        committed_total=len(committed_set),
        **context,
    )
