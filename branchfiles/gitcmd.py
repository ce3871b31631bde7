from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import codecs
import logging
import subprocess


LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    stdout: str
    ok: bool
    error: str = ""

    def lines(self) -> list[str]:
        return output_lines(self.stdout)


def output_lines(text: str) -> list[str]:
    """Split command output into stripped, non-blank, unique lines (first seen wins)."""
    seen: set[str] = set()
    out: list[str] = []
    for line in (text or "").splitlines():
        p = line.strip()
        if not p or p in seen:
            continue
        seen.add(p)
        out.append(p)
    return out


def unquote_path(path: str) -> str:
    """Return a path printed by git with optional C-quoting unescaped."""
    if len(path) >= 2 and path[0] == '"' and path[-1] == '"':
        raw = codecs.escape_decode(path[1:-1].encode("utf-8"))[0]
        return raw.decode("utf-8", errors="replace")
    return path


class Git:
    """Runs git in one working directory. Failures are returned, never raised."""

    def __init__(self, repo_path: Path | str, binary: str = "git"):
        self.repo_path = Path(repo_path)
        self.binary = binary

    def at(self, path: Path | str) -> "Git":
        return Git(path, binary=self.binary)

    def run(self, *args: str) -> CommandResult:
        cmd = [self.binary, *args]
        LOGGER.debug("Running %s in %s", " ".join(cmd), self.repo_path)

        try:
            proc = subprocess.run(
                cmd,
                cwd=str(self.repo_path),
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            return CommandResult(stdout="", ok=False, error=str(exc) or exc.__class__.__name__)

        if proc.returncode != 0:
            stderr = (proc.stderr or "").strip()
            return CommandResult(
                stdout=proc.stdout or "",
                ok=False,
                error=stderr or f"exit code {proc.returncode}",
            )

        return CommandResult(stdout=proc.stdout or "", ok=True)
