from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path, PurePosixPath
import logging

from branchfiles.config import ResolverSettings
from branchfiles.gitcmd import Git
from branchfiles.models import ResolutionResult, merge_results
from branchfiles.refs import current_branch, list_remotes, parse_branch, resolve_base
from branchfiles.resolver import ProgressSink, normalize_path_filter, resolve_committed
from branchfiles.worktree import scan_modified


LOGGER = logging.getLogger(__name__)

COMMIT_PROVENANCE = "commit"


class BranchFilesError(RuntimeError):
    pass


class NoWorkspaceError(BranchFilesError):
    def __init__(self, path: Path | str | None = None):
        self.path = path
        super().__init__("No workspace folder is open.")


class NotAGitRepositoryError(BranchFilesError):
    def __init__(self, path: Path | str, detail: str = ""):
        self.path = path
        self.detail = detail
        super().__init__(
            "The selected folder doesn't appear to be a Git repository. Please select a different folder."
        )


class BranchListError(BranchFilesError):
    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Failed to get Git branches: {detail or 'unknown error'}")


class CommitNotFoundError(BranchFilesError):
    def __init__(self, commit: str, detail: str):
        self.commit = commit
        self.detail = detail
        super().__init__(f"Failed to get changed files: {detail or f'unknown commit {commit}'}")


@dataclass(frozen=True)
class Target:
    repo_path: Path
    path_filter: str
    is_external: bool

    @property
    def label(self) -> str:
        return self.path_filter or "."


@dataclass(frozen=True)
class BranchListing:
    label: str
    is_current: bool


@dataclass(frozen=True)
class CommitSummary:
    sha: str
    subject: str


def locate_target(workspace: Path, directory: str | None = None) -> Target:
    """Work out which repository to run git in and which subtree to filter on.

    A directory inside the workspace becomes a path filter on the workspace
    repository. A directory outside it is treated as a repository of its own
    and is listed without a filter.
    """
    root = workspace.resolve()
    if not root.exists() or not root.is_dir():
        raise NoWorkspaceError(root)

    if not directory or directory.strip() in {".", "./"}:
        return Target(repo_path=root, path_filter="", is_external=False)

    chosen = Path(directory).expanduser()
    if not chosen.is_absolute():
        chosen = root / chosen
    chosen = chosen.resolve()

    try:
        rel = chosen.relative_to(root)
    except ValueError:
        LOGGER.debug("External repository at %s", chosen)
        return Target(repo_path=chosen, path_filter="", is_external=True)

    return Target(
        repo_path=root,
        path_filter=normalize_path_filter(rel.as_posix()),
        is_external=False,
    )


def ensure_work_tree(git: Git) -> None:
    result = git.run("rev-parse", "--is-inside-work-tree")
    if not result.ok or result.stdout.strip() != "true":
        raise NotAGitRepositoryError(git.repo_path, result.error)


def open_work_tree(git: Git, path_filter: str = "") -> tuple[Git, str]:
    """Check that ``git`` runs inside a work tree and move it to the top level.

    Status, diff and log print paths relative to the top level while pathspecs
    are read relative to the working directory, so a repository path below the
    top becomes part of the path filter instead.
    """
    ensure_work_tree(git)
    scope = normalize_path_filter(path_filter)

    prefix = git.run("rev-parse", "--show-prefix")
    below = normalize_path_filter(prefix.stdout) if prefix.ok else ""
    if not below:
        return git, scope

    top = git.run("rev-parse", "--show-toplevel")
    if not top.ok or not top.stdout.strip():
        LOGGER.info("Could not find the top of the work tree: %s", top.error)
        return git, scope

    LOGGER.debug("%s is below the work tree root, filtering on %s", git.repo_path, below)
    return git.at(top.stdout.strip()), normalize_path_filter(f"{below}/{scope}")


def list_branches(git: Git) -> list[BranchListing]:
    result = git.run("branch", "--all")
    if not result.ok:
        raise BranchListError(result.error)

    out: list[BranchListing] = []
    for line in result.stdout.splitlines():
        if not line.strip():
            continue
        is_current = line.startswith("*")
        label = line[1:].strip() if is_current else line.strip()
        out.append(BranchListing(label=label, is_current=is_current))
    return out


def list_directories(git: Git) -> list[str]:
    result = git.run("ls-files")
    if not result.ok:
        LOGGER.info("Could not list tracked directories: %s", result.error)
        return ["."]

    dirs = {str(PurePosixPath(p).parent) for p in result.lines()}
    dirs.discard(".")
    return ["."] + sorted(dirs)


def list_commits(git: Git, branch: str | None = None, limit: int = 20) -> list[CommitSummary]:
    args = ["log", "--format=%H%x09%s", "-n", str(limit)]
    if branch:
        args.append(parse_branch(branch, list_remotes(git)).argument)
    result = git.run(*args)
    if not result.ok:
        raise BranchFilesError(f"Failed to list commits: {result.error}")

    out: list[CommitSummary] = []
    for line in result.stdout.splitlines():
        if not line.strip():
            continue
        sha, _, subject = line.partition("\t")
        out.append(CommitSummary(sha=sha.strip(), subject=subject.strip()))
    return out


def get_branch_files(
    repo_path: Path | str,
    branch: str | None = None,
    path_filter: str = "",
    settings: ResolverSettings | None = None,
    progress: ProgressSink | None = None,
    git: Git | None = None,
) -> ResolutionResult:
    """Files changed on ``branch`` since it left the base branch, plus local edits.

    When ``branch`` is omitted the checked-out branch is used.
    """
    cfg = settings or ResolverSettings()
    git, scope = open_work_tree(git or Git(repo_path, binary=cfg.git_binary), path_filter)

    if not branch:
        branch = current_branch(git)
        if not branch or branch == "HEAD":
            raise BranchFilesError("No branch selected and the current branch could not be determined.")

    remotes = list_remotes(git)
    ref = parse_branch(branch, remotes)
    base = resolve_base(git, cfg.base_branches)

    committed = resolve_committed(git, ref, base, scope, settings=cfg, progress=progress)
    modified = scan_modified(git, ref, scope, remotes)

    notes: list[str] = []
    if committed.used_fallback:
        notes.append(f"fallback used: {committed.provenance}")

    result = merge_results(
        committed.files,
        modified,
        provenance=committed.provenance,
        tier=committed.tier,
        repo_path=str(git.repo_path),
        branch=ref.argument,
        base=base,
        path_filter=scope,
        notes=notes,
    )
    LOGGER.debug(
        "Resolved %d files (%d modified) for %s via %s",
        result.total,
        result.modified_count,
        ref.argument,
        result.provenance,
    )
    return result


def get_commit_files(
    repo_path: Path | str,
    commit: str,
    path_filter: str = "",
    settings: ResolverSettings | None = None,
    git: Git | None = None,
) -> ResolutionResult:
    cfg = settings or ResolverSettings()
    git, scope = open_work_tree(git or Git(repo_path, binary=cfg.git_binary), path_filter)

    args = ["show", "--name-only", "--pretty=format:", commit]
    if scope:
        args.extend(["--", scope])
    result = git.run(*args)
    if not result.ok:
        raise CommitNotFoundError(commit, result.error)

    return merge_results(
        result.lines(),
        [],
        provenance=COMMIT_PROVENANCE,
        repo_path=str(git.repo_path),
        commit=commit,
        path_filter=scope,
    )
