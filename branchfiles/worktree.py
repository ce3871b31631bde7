"""Uncommitted modifications of the checked-out branch.

`scan_modified` only looks at the working tree when the selected branch is
the one checked out. A remote-tracking branch is never considered checked
out.
"""

from __future__ import annotations

import logging

from branchfiles.gitcmd import Git, unquote_path
from branchfiles.refs import BranchRef, current_branch, normalize_branch
from branchfiles.submodules import modified_in_submodules


LOGGER = logging.getLogger(__name__)


def parse_status_line(line: str) -> str:
    """Return the path part of a ``git status --porcelain`` line.

    Rename lines like ``R  old -> new`` yield the new path.
    """
    # porcelain format: XY SP <path> [-> <path>]
    tail = line[3:].strip()
    if " -> " in tail:
        tail = tail.split(" -> ", 1)[1]
    return unquote_path(tail)


def status_files(porcelain: str) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for raw in porcelain.splitlines():
        if not raw.strip():
            continue
        path = parse_status_line(raw)
        if path and path not in seen:
            seen.add(path)
            out.append(path)
    return out


def filter_by_prefix(paths: list[str], path_filter: str) -> list[str]:
    if not path_filter:
        return paths
    return [p for p in paths if p.startswith(path_filter)]


def should_scan_modified(git: Git, branch: BranchRef, remotes: tuple[str, ...] = ("origin",)) -> bool:
    if branch.is_remote:
        LOGGER.debug("%s is a remote branch, skipping modified files", branch.argument)
        return False

    current = current_branch(git)
    if current is None or current == "HEAD":
        return False

    if normalize_branch(current, remotes) != normalize_branch(branch.canonical, remotes):
        LOGGER.debug("Not on branch %s (current: %s), skipping modified files", branch.argument, current)
        return False
    return True


def _listed_modifications(git: Git, path_filter: str) -> list[str]:
    scope = ["--", path_filter] if path_filter else []
    # --full-name keeps paths root-relative like status and diff output
    res = git.run("ls-files", "--modified", "--full-name", *scope)
    if not res.ok:
        LOGGER.info("Could not list modified files: %s", res.error)
        return []
    return res.lines()


def scan_modified(
    git: Git,
    branch: BranchRef,
    path_filter: str = "",
    remotes: tuple[str, ...] = ("origin",),
) -> set[str]:
    if not should_scan_modified(git, branch, remotes):
        return set()

    modified: set[str] = set()
    status = git.run("status", "--porcelain")
    if status.ok:
        modified.update(filter_by_prefix(status_files(status.stdout), path_filter))
    else:
        LOGGER.info("Could not read working tree status: %s", status.error)

    modified.update(_listed_modifications(git, path_filter))
    modified.update(filter_by_prefix(modified_in_submodules(git), path_filter))
    modified.discard("")
    return modified
