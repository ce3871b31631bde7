from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import os
import yaml


CONFIG_FILENAME = ".branchfiles.yml"

DEFAULT_SETTINGS = {
    "verify_commits": False,
    "recent_commit_limit": 20,
    "progress_every": 5,
    "git_binary": "git",
    "base_branches": ["main", "master"],
}

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class ResolverSettings:
    verify_commits: bool = False
    recent_commit_limit: int = 20
    progress_every: int = 5
    git_binary: str = "git"
    base_branches: tuple[str, str] = ("main", "master")


def _parse_bool(value: object, key: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean for {key}: {value!r}")


def _parse_positive_int(value: object, key: str) -> int:
    try:
        parsed = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid integer for {key}: {value!r}") from exc
    if parsed < 1:
        raise ValueError(f"{key} must be at least 1, got {parsed}")
    return parsed


def _parse_base_branches(value: object) -> tuple[str, str]:
    if not isinstance(value, (list, tuple)) or len(value) != 2 or not all(isinstance(x, str) and x.strip() for x in value):
        raise ValueError("base_branches must be a list of two branch names, e.g. [main, master]")
    return (value[0].strip(), value[1].strip())


def find_config(repo_path: Path | None) -> Path | None:
    if repo_path is None:
        return None
    candidate = repo_path / CONFIG_FILENAME
    if candidate.exists() and candidate.is_file():
        return candidate
    return None


def load_settings(path: str | None = None, repo_path: Path | None = None) -> ResolverSettings:
    """Build settings from defaults, an optional YAML file, then environment overrides."""
    data = dict(DEFAULT_SETTINGS)

    config_path = Path(path) if path else find_config(repo_path)
    if path and not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    if config_path is not None:
        try:
            raw = yaml.safe_load(config_path.read_text()) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ValueError(f"Config file must contain a mapping: {config_path}")
        unknown = sorted(set(raw) - set(DEFAULT_SETTINGS))
        if unknown:
            raise ValueError(f"Unknown config keys in {config_path}: {', '.join(unknown)}")
        data.update(raw)

    env_verify = os.getenv("BRANCHFILES_VERIFY_COMMITS")
    if env_verify is not None:
        data["verify_commits"] = env_verify
    env_git = (os.getenv("BRANCHFILES_GIT") or "").strip()
    if env_git:
        data["git_binary"] = env_git
    env_limit = os.getenv("BRANCHFILES_RECENT_LIMIT")
    if env_limit:
        data["recent_commit_limit"] = env_limit

    git_binary = str(data["git_binary"] or "").strip()
    if not git_binary:
        raise ValueError("git_binary must not be empty")

    return ResolverSettings(
        verify_commits=_parse_bool(data["verify_commits"], "verify_commits"),
        recent_commit_limit=_parse_positive_int(data["recent_commit_limit"], "recent_commit_limit"),
        progress_every=_parse_positive_int(data["progress_every"], "progress_every"),
        git_binary=git_binary,
        base_branches=_parse_base_branches(data["base_branches"]),
    )
