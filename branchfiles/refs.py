from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Union
import logging

from branchfiles.gitcmd import Git


LOGGER = logging.getLogger(__name__)

DEFAULT_REMOTES = ("origin",)
DEFAULT_BASE_BRANCHES = ("main", "master")


@dataclass(frozen=True)
class LocalBranch:
    name: str

    @property
    def canonical(self) -> str:
        return self.name

    @property
    def argument(self) -> str:
        return self.name

    @property
    def is_remote(self) -> bool:
        return False


@dataclass(frozen=True)
class RemoteBranch:
    remote: str
    name: str

    @property
    def canonical(self) -> str:
        return self.name

    @property
    def argument(self) -> str:
        return f"{self.remote}/{self.name}"

    @property
    def is_remote(self) -> bool:
        return True


BranchRef = Union[LocalBranch, RemoteBranch]


def _strip_listing_markers(raw: str) -> str:
    text = raw.strip()
    if text.startswith("* "):
        text = text[2:].strip()
    elif text.startswith("+ "):
        # checked out in another worktree
        text = text[2:].strip()
    if " -> " in text:
        text = text.split(" -> ", 1)[1].strip()
    return text


def _split_remote(text: str, remotes: Iterable[str]) -> tuple[str, str] | None:
    for remote in sorted(set(remotes), key=len, reverse=True):
        prefix = remote + "/"
        if text.startswith(prefix) and len(text) > len(prefix):
            return remote, text[len(prefix):]
    return None


def _strip_remote_prefixes(name: str, remotes: Iterable[str]) -> str:
    known = tuple(remotes)
    while True:
        if name.startswith("refs/heads/"):
            name = name[len("refs/heads/"):]
            continue
        if name.startswith("refs/remotes/"):
            name = name[len("refs/remotes/"):]
        elif name.startswith("remotes/"):
            name = name[len("remotes/"):]
        split = _split_remote(name, known)
        if split is None:
            return name
        name = split[1]


def parse_branch(raw: str, remotes: Iterable[str] = DEFAULT_REMOTES) -> BranchRef:
    """Parse a branch name in any accepted form into a LocalBranch or RemoteBranch.

    Accepts plain names, ``refs/heads/x``, ``remotes/<r>/x``,
    ``refs/remotes/<r>/x``, ``<r>/x`` for a known remote ``<r>``, and lines
    copied from ``git branch --all`` output.
    """
    known = tuple(remotes) or DEFAULT_REMOTES
    text = _strip_listing_markers(raw)
    if not text:
        raise ValueError("Branch name must not be empty")

    if text.startswith("refs/heads/"):
        return LocalBranch(name=_strip_remote_prefixes(text, ()))

    explicit_remote = False
    if text.startswith("refs/remotes/"):
        text = text[len("refs/remotes/"):]
        explicit_remote = True
    elif text.startswith("remotes/"):
        text = text[len("remotes/"):]
        explicit_remote = True

    split = _split_remote(text, known)
    if split is None and explicit_remote and "/" in text:
        # remote not registered locally, trust the listing
        remote, _, rest = text.partition("/")
        split = (remote, rest)

    if split is not None:
        remote, rest = split
        return RemoteBranch(remote=remote, name=_strip_remote_prefixes(rest, known))

    return LocalBranch(name=text)


def normalize_branch(raw: str, remotes: Iterable[str] = DEFAULT_REMOTES) -> str:
    """Return the canonical name with every remote prefix removed.

    A local ``refs/heads/origin/x`` keeps ``origin/x`` as its git argument but
    normalizes to ``x``, so normalizing a normalized name changes nothing.
    """
    known = tuple(remotes) or DEFAULT_REMOTES
    return _strip_remote_prefixes(parse_branch(raw, known).canonical, known)


def list_remotes(git: Git) -> tuple[str, ...]:
    result = git.run("remote")
    if not result.ok:
        LOGGER.info("Could not list remotes (%s), assuming %s", result.error, DEFAULT_REMOTES)
        return DEFAULT_REMOTES
    return tuple(result.lines()) or DEFAULT_REMOTES


def current_branch(git: Git) -> str | None:
    result = git.run("rev-parse", "--abbrev-ref", "HEAD")
    if not result.ok:
        LOGGER.info("Could not determine current branch: %s", result.error)
        return None
    lines = result.lines()
    return lines[0] if lines else None


def resolve_base(git: Git, candidates: tuple[str, str] = DEFAULT_BASE_BRANCHES) -> str:
    primary, fallback = candidates
    result = git.run("show-ref", "--verify", "--quiet", f"refs/heads/{primary}")
    if result.ok:
        return primary
    LOGGER.debug("No local %s branch, using %s as base", primary, fallback)
    return fallback
