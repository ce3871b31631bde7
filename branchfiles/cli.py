from __future__ import annotations

from contextlib import ExitStack
from dataclasses import replace
from pathlib import Path
from typing import Callable, NoReturn, TypeVar
import json
import logging
import sys

import typer

from branchfiles.config import ResolverSettings, load_settings
from branchfiles.git_scope import (
    BranchFilesError,
    Target,
    ensure_work_tree,
    get_branch_files,
    get_commit_files,
    list_branches,
    list_commits,
    list_directories,
    locate_target,
)
from branchfiles.gitcmd import Git
from branchfiles.models import ResolutionResult
from branchfiles.reporters import (
    build_markdown_report,
    build_text_report,
    write_json_report,
    write_markdown_report,
)

app = typer.Typer(help="branchfiles: list the files a branch or commit changed")

OUTPUT_FORMATS = {"markdown", "text", "json"}

T = TypeVar("T")


class ProgressBarSink:
    """Draws commit verification progress on stderr.

    The bar is only opened on the first report, so runs that never verify
    commits print nothing. ``stack`` owns it and closes it on exit.
    """

    def __init__(self, stack: ExitStack, label: str):
        self.stack = stack
        self.label = label
        self._bar = None
        self._shown = 0

    def report(self, percent: int, message: str) -> None:
        if self._bar is None:
            self._bar = self.stack.enter_context(
                typer.progressbar(length=100, label=self.label, file=sys.stderr)
            )
        step = max(0, min(100, percent) - self._shown)
        self._shown += step
        self._bar.update(step)


def _fail(message: str, code: int) -> NoReturn:
    typer.secho(message, fg=typer.colors.RED, err=True)
    raise typer.Exit(code=code)


def _guarded(action: Callable[[], T]) -> T:
    try:
        return action()
    except BranchFilesError as exc:
        _fail(str(exc), 2)
    except Exception as exc:
        _fail(f"An unknown error occurred: {exc}", 1)


def _target(path: str, directory: str | None) -> Target:
    return _guarded(lambda: locate_target(Path(path), directory))


def _settings(config: str | None, target: Target) -> ResolverSettings:
    try:
        return load_settings(config, repo_path=target.repo_path)
    except (OSError, ValueError) as exc:
        _fail(f"Invalid config: {exc}", 2)


def _check_format(output_format: str) -> str:
    fmt = (output_format or "markdown").strip().lower()
    if fmt not in OUTPUT_FORMATS:
        _fail(f"Unknown format '{output_format}' (expected one of: {', '.join(sorted(OUTPUT_FORMATS))})", 2)
    return fmt


def _emit(
    result: ResolutionResult,
    output_format: str,
    folder_label: str,
    json_out: str | None,
    md_out: str | None,
) -> None:
    if output_format == "json":
        typer.echo(json.dumps(result.to_dict(), indent=2))
    elif output_format == "text":
        if result.entries:
            typer.echo(build_text_report(result))
    else:
        typer.echo(build_markdown_report(result, folder_label), nl=False)

    written = []
    if json_out:
        write_json_report(result, Path(json_out))
        written.append(json_out)
    if md_out:
        write_markdown_report(result, Path(md_out), folder_label)
        written.append(md_out)
    if written:
        typer.echo(f"Wrote: {', '.join(written)}", err=True)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log git commands and strategy decisions"),
) -> None:
    """branchfiles command group."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


@app.command()
def branch(
    path: str = typer.Option(".", help="Workspace or repository path"),
    directory: str | None = typer.Option(None, "--dir", help="Folder to limit the listing to; outside the workspace it is used as its own repository"),
    branch_name: str | None = typer.Option(None, "--branch", "-b", help="Branch to inspect (default: current branch)"),
    config: str | None = typer.Option(None, help="Config YAML path (default: <repo>/.branchfiles.yml)"),
    verify_commits: bool = typer.Option(False, "--verify-commits", help="Cross-check the base branch history commit by commit"),
    output_format: str = typer.Option("markdown", "--format", help="Output format: markdown|text|json"),
    json_out: str | None = typer.Option(None, help="Optional JSON report output path"),
    md_out: str | None = typer.Option(None, help="Optional markdown report output path"),
) -> None:
    """List files changed on a branch since it left main/master, plus local edits."""
    fmt = _check_format(output_format)
    target = _target(path, directory)
    settings = _settings(config, target)
    if verify_commits:
        settings = replace(settings, verify_commits=True)

    with ExitStack() as stack:
        progress = ProgressBarSink(stack, "Verifying commits")
        result = _guarded(
            lambda: get_branch_files(
                target.repo_path,
                branch_name,
                target.path_filter,
                settings=settings,
                progress=progress,
            )
        )

    _emit(result, fmt, target.label, json_out, md_out)
    if not result.entries:
        typer.echo(f"No files have changed in branch: {branch_name or result.branch}", err=True)


@app.command()
def commit(
    sha: str = typer.Argument(..., help="Commit to list files for"),
    path: str = typer.Option(".", help="Workspace or repository path"),
    directory: str | None = typer.Option(None, "--dir", help="Folder to limit the listing to"),
    config: str | None = typer.Option(None, help="Config YAML path"),
    output_format: str = typer.Option("markdown", "--format", help="Output format: markdown|text|json"),
    json_out: str | None = typer.Option(None, help="Optional JSON report output path"),
    md_out: str | None = typer.Option(None, help="Optional markdown report output path"),
) -> None:
    """List files touched by a single commit."""
    fmt = _check_format(output_format)
    target = _target(path, directory)
    settings = _settings(config, target)

    result = _guarded(lambda: get_commit_files(target.repo_path, sha, target.path_filter, settings=settings))
    _emit(result, fmt, target.label, json_out, md_out)
    if not result.entries:
        typer.echo(f"No files have changed in commit: {sha}", err=True)


@app.command()
def branches(
    path: str = typer.Option(".", help="Workspace or repository path"),
    config: str | None = typer.Option(None, help="Config YAML path"),
) -> None:
    """List local and remote-tracking branches; the current one is starred."""
    target = _target(path, None)
    git = Git(target.repo_path, binary=_settings(config, target).git_binary)

    def _list():
        ensure_work_tree(git)
        return list_branches(git)

    for item in _guarded(_list):
        typer.echo(f"{'*' if item.is_current else ' '} {item.label}")


@app.command()
def dirs(
    path: str = typer.Option(".", help="Workspace or repository path"),
    config: str | None = typer.Option(None, help="Config YAML path"),
) -> None:
    """List folders that contain tracked files, for use with --dir."""
    target = _target(path, None)
    git = Git(target.repo_path, binary=_settings(config, target).git_binary)

    def _list():
        ensure_work_tree(git)
        return list_directories(git)

    for d in _guarded(_list):
        typer.echo(d)


@app.command()
def commits(
    path: str = typer.Option(".", help="Workspace or repository path"),
    branch_name: str | None = typer.Option(None, "--branch", "-b", help="Branch to read (default: HEAD)"),
    limit: int = typer.Option(20, min=1, help="Number of commits to show"),
    config: str | None = typer.Option(None, help="Config YAML path"),
) -> None:
    """List recent commits, to pick one for the commit command."""
    target = _target(path, None)
    git = Git(target.repo_path, binary=_settings(config, target).git_binary)

    def _list():
        ensure_work_tree(git)
        return list_commits(git, branch_name, limit)

    for c in _guarded(_list):
        typer.echo(f"{c.sha[:12]} {c.subject}")


if __name__ == "__main__":
    app()
