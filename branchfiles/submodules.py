"""Files changed inside submodules.

The superproject only records a submodule as one gitlink path, so both the
committed diff and the working-tree scan walk into each submodule with its
own `Git` and prefix what they find with the submodule path.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging

from branchfiles.gitcmd import Git, unquote_path


LOGGER = logging.getLogger(__name__)

GITLINK_MODE = "160000"


@dataclass(frozen=True)
class GitlinkChange:
    path: str
    old_mode: str
    new_mode: str
    old_sha: str
    new_sha: str

    @property
    def added(self) -> bool:
        return self.old_mode != GITLINK_MODE

    @property
    def removed(self) -> bool:
        return self.new_mode != GITLINK_MODE


def parse_raw_gitlinks(raw: str) -> list[GitlinkChange]:
    """Return the gitlink entries of ``git diff --raw --no-abbrev`` output.

    Lines look like ``:160000 160000 <old> <new> M<TAB>lib/sub``; renames carry
    two tab-separated paths and the new one is used.
    """
    changes: list[GitlinkChange] = []
    for line in raw.splitlines():
        if not line.startswith(":") or "\t" not in line:
            continue
        meta, _, paths = line.partition("\t")
        fields = meta[1:].split()
        if len(fields) < 4:
            continue
        old_mode, new_mode, old_sha, new_sha = fields[:4]
        if GITLINK_MODE not in (old_mode, new_mode):
            continue
        path = unquote_path(paths.split("\t")[-1]).rstrip("/")
        changes.append(GitlinkChange(path, old_mode, new_mode, old_sha, new_sha))
    return changes


def _files_in_submodule(sub: Git, change: GitlinkChange) -> list[str]:
    if change.added:
        res = sub.run("ls-tree", "-r", "--name-only", change.new_sha)
        nested: list[str] = []
    else:
        res = sub.run("diff", "--name-only", change.old_sha, change.new_sha)
        nested = expand_gitlinks(sub, change.old_sha, change.new_sha)
    if not res.ok:
        LOGGER.info("Could not diff submodule %s: %s", change.path, res.error)
        return []
    return res.lines() + nested


def expand_gitlinks(git: Git, *revisions: str) -> list[str]:
    """List files changed inside submodules whose gitlink moved between revisions.

    ``revisions`` are passed to ``git diff`` as is (``a b`` or ``a...b``). Nested
    submodules are followed. Removed submodules and unreadable ones add nothing.
    """
    res = git.run("diff", "--raw", "--no-abbrev", *revisions)
    if not res.ok:
        LOGGER.debug("No gitlink listing for %s: %s", " ".join(revisions), res.error)
        return []

    out: list[str] = []
    for change in parse_raw_gitlinks(res.stdout):
        if change.removed:
            continue
        sub = git.at(git.repo_path / change.path)
        out.extend(f"{change.path}/{p}" for p in _files_in_submodule(sub, change))
    return out


def checked_out_submodules(git: Git) -> list[str]:
    """Paths of initialized submodules, nested ones included, relative to the work tree."""
    res = git.run("submodule", "status", "--recursive")
    if not res.ok:
        LOGGER.debug("Could not list submodules: %s", res.error)
        return []

    paths: list[str] = []
    for line in res.stdout.splitlines():
        # status lines: <flag><sha> <path> [(<describe>)]; "-" means not initialized
        if not line.strip() or line.startswith("-"):
            continue
        parts = line[1:].split()
        if len(parts) >= 2:
            paths.append(parts[1])
    return paths


def modified_in_submodules(git: Git) -> list[str]:
    out: list[str] = []
    for path in checked_out_submodules(git):
        res = git.at(git.repo_path / path).run("ls-files", "--modified", "--full-name")
        if not res.ok:
            LOGGER.info("Could not list modified files in submodule %s: %s", path, res.error)
            continue
        out.extend(f"{path}/{p}" for p in res.lines())
    return out
