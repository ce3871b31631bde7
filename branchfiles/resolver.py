from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Protocol
import logging

from branchfiles.config import ResolverSettings
from branchfiles.gitcmd import CommandResult, Git, output_lines
from branchfiles.refs import BranchRef
from branchfiles.submodules import expand_gitlinks
from branchfiles.worktree import filter_by_prefix, status_files


LOGGER = logging.getLogger(__name__)

ALL_FAILED = "all strategies failed"


class ProgressSink(Protocol):
    def report(self, percent: int, message: str) -> None:
        ...


class NullProgress:
    def report(self, percent: int, message: str) -> None:
        return None


@dataclass(frozen=True)
class ResolveContext:
    git: Git
    branch: BranchRef
    base: str
    path_filter: str = ""
    settings: ResolverSettings = field(default_factory=ResolverSettings)

    @property
    def same_branch(self) -> bool:
        return self.branch.canonical == self.base

    def scoped(self, *args: str) -> list[str]:
        if self.path_filter:
            return [*args, "--", self.path_filter]
        return list(args)


@dataclass(frozen=True)
class Strategy:
    name: str
    run: Callable[[ResolveContext], CommandResult]


@dataclass(frozen=True)
class CommittedFiles:
    files: list[str]
    provenance: str
    tier: int

    @property
    def used_fallback(self) -> bool:
        return self.tier != 1


def normalize_path_filter(path_filter: str | None) -> str:
    p = (path_filter or "").strip().replace("\\", "/")
    while p.startswith("./"):
        p = p[2:]
    p = p.rstrip("/")
    if p == ".":
        return ""
    return p


def _branch_history(ctx: ResolveContext) -> CommandResult:
    return ctx.git.run(*ctx.scoped("log", "--name-only", "--format=", ctx.branch.argument))


def _with_submodules(ctx: ResolveContext, diff: CommandResult, *revisions: str) -> CommandResult:
    if not diff.ok:
        return diff
    inner = filter_by_prefix(expand_gitlinks(ctx.git, *revisions), ctx.path_filter)
    if not inner:
        return diff
    return CommandResult(stdout="\n".join([diff.stdout.rstrip("\n"), *inner]), ok=True)


def _merge_base_diff(ctx: ResolveContext) -> CommandResult:
    mb = ctx.git.run("merge-base", ctx.base, ctx.branch.argument)
    if not mb.ok:
        return mb
    lines = mb.lines()
    if not lines:
        return CommandResult(stdout="", ok=False, error="merge-base returned no commit")
    diff = ctx.git.run(*ctx.scoped("diff", "--name-only", lines[0], ctx.branch.argument))
    return _with_submodules(ctx, diff, lines[0], ctx.branch.argument)


def _recent_history(ctx: ResolveContext) -> CommandResult:
    limit = str(ctx.settings.recent_commit_limit)
    return ctx.git.run(*ctx.scoped("log", "--name-only", "--pretty=format:", "-n", limit))


def _three_dot_diff(ctx: ResolveContext) -> CommandResult:
    revision = f"{ctx.base}...{ctx.branch.argument}"
    diff = ctx.git.run(*ctx.scoped("diff", "--name-only", revision))
    return _with_submodules(ctx, diff, revision)


def _status_fallback(ctx: ResolveContext) -> CommandResult:
    result = ctx.git.run("status", "--porcelain")
    if not result.ok:
        return result
    files = filter_by_prefix(status_files(result.stdout), ctx.path_filter)
    return CommandResult(stdout="\n".join(files), ok=True)


BRANCH_HISTORY = Strategy("branch-history", _branch_history)
MERGE_BASE_DIFF = Strategy("merge-base-diff", _merge_base_diff)
RECENT_HISTORY = Strategy("recent-history", _recent_history)
THREE_DOT_DIFF = Strategy("three-dot-diff", _three_dot_diff)
STATUS_FALLBACK = Strategy("status-fallback", _status_fallback)


def strategies_for(ctx: ResolveContext) -> list[Strategy]:
    if ctx.same_branch:
        return [BRANCH_HISTORY, RECENT_HISTORY, STATUS_FALLBACK]
    return [MERGE_BASE_DIFF, THREE_DOT_DIFF, STATUS_FALLBACK]


def run_strategies(strategies: list[Strategy], ctx: ResolveContext) -> CommittedFiles:
    """Try each strategy in order, returning the first successful one's files."""
    for tier, strategy in enumerate(strategies, start=1):
        result = strategy.run(ctx)
        if result.ok:
            files = output_lines(result.stdout)
            LOGGER.debug("%s produced %d files", strategy.name, len(files))
            return CommittedFiles(files=files, provenance=strategy.name, tier=tier)
        LOGGER.info("%s failed: %s", strategy.name, result.error)

    LOGGER.warning("All file detection strategies failed for %s", ctx.branch.argument)
    return CommittedFiles(files=[], provenance=ALL_FAILED, tier=0)


def verify_history(ctx: ResolveContext, progress: ProgressSink | None = None) -> list[str]:
    """Collect files commit by commit along the branch history.

    The oldest commit contributes its own file list, every later commit
    contributes its diff against its predecessor. Failing commits are
    skipped.
    """
    sink = progress or NullProgress()
    listing = ctx.git.run("log", "--format=%H", ctx.branch.argument)
    if not listing.ok:
        LOGGER.warning("Could not list commits of %s: %s", ctx.branch.argument, listing.error)
        return []

    commits = [line for line in listing.stdout.splitlines() if line.strip()]
    if not commits:
        return []

    out: list[str] = []
    first = ctx.git.run(*ctx.scoped("show", "--name-only", "--pretty=format:", commits[-1]))
    if first.ok:
        out.extend(first.lines())
    else:
        LOGGER.warning("Failed to read files of root commit %s: %s", commits[-1], first.error)

    pairs = len(commits) - 1
    every = max(1, ctx.settings.progress_every)
    for i in range(pairs):
        newer, older = commits[i], commits[i + 1]
        res = ctx.git.run(*ctx.scoped("diff", "--name-only", older, newer))
        if res.ok:
            out.extend(res.lines())
        else:
            LOGGER.warning("Failed to diff commit %s: %s", newer, res.error)

        if i % every == 0 or i == pairs - 1:
            done = i + 1
            sink.report(round(done / pairs * 100), f"{done}/{pairs} commits")

    return output_lines("\n".join(out))


def resolve_committed(
    git: Git,
    branch: BranchRef,
    base: str,
    path_filter: str = "",
    settings: ResolverSettings | None = None,
    progress: ProgressSink | None = None,
) -> CommittedFiles:
    ctx = ResolveContext(
        git=git,
        branch=branch,
        base=base,
        path_filter=normalize_path_filter(path_filter),
        settings=settings or ResolverSettings(),
    )
    if ctx.same_branch:
        LOGGER.debug("%s is the base branch, listing its whole history", branch.argument)

    committed = run_strategies(strategies_for(ctx), ctx)

    if ctx.same_branch and committed.tier == 1 and ctx.settings.verify_commits:
        extra = verify_history(ctx, progress)
        merged = output_lines("\n".join([*committed.files, *extra]))
        LOGGER.debug("Verification raised file count from %d to %d", len(committed.files), len(merged))
        committed = CommittedFiles(files=merged, provenance=committed.provenance, tier=committed.tier)

    return committed
