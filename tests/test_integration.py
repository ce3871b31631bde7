from pathlib import Path
import shutil
import subprocess

import pytest

from branchfiles.git_scope import NotAGitRepositoryError, get_branch_files, get_commit_files

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


def _git(repo: Path, *args: str) -> str:
    proc = subprocess.run(
        [
            "git",
            "-c",
            "user.name=Test",
            "-c",
            "user.email=test@example.com",
            "-c",
            "commit.gpgsign=false",
            "-c",
            "protocol.file.allow=always",
            *args,
        ],
        cwd=str(repo),
        capture_output=True,
        text=True,
        check=True,
    )
    return proc.stdout


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    _git(tmp_path, "init", "-q")
    _git(tmp_path, "symbolic-ref", "HEAD", "refs/heads/main")
    (tmp_path / "README.md").write_text("hello\n")
    _git(tmp_path, "add", "README.md")
    _git(tmp_path, "commit", "-q", "-m", "initial")

    _git(tmp_path, "checkout", "-q", "-b", "feature/x")
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "b.ts").write_text("export const b = 2;\n")
    (tmp_path / "src" / "a.ts").write_text("export const a = 1;\n")
    _git(tmp_path, "add", "src")
    _git(tmp_path, "commit", "-q", "-m", "add sources")
    return tmp_path


def test_feature_branch_against_main(repo: Path):
    result = get_branch_files(repo, "feature/x")

    assert result.paths == ["src/a.ts", "src/b.ts"]
    assert result.modified_count == 0
    assert result.provenance == "merge-base-diff"


def test_main_lists_its_history(repo: Path):
    result = get_branch_files(repo, "main")

    assert result.paths == ["README.md"]
    assert result.provenance == "branch-history"


def test_local_edit_is_marked_once(repo: Path):
    (repo / "src" / "a.ts").write_text("export const a = 3;\n")
    result = get_branch_files(repo, "feature/x")

    assert result.paths == ["src/a.ts", "src/b.ts"]
    assert [e.modified for e in result.entries] == [True, False]


def test_path_filter(repo: Path):
    (repo / "README.md").write_text("changed\n")
    result = get_branch_files(repo, "feature/x", "src")

    assert result.paths == ["src/a.ts", "src/b.ts"]
    assert result.modified_count == 0


def test_repeatable(repo: Path):
    assert get_branch_files(repo, "feature/x") == get_branch_files(repo, "feature/x")


def test_single_commit(repo: Path):
    result = get_commit_files(repo, "HEAD")
    assert result.paths == ["src/a.ts", "src/b.ts"]


def test_plain_directory_is_rejected(tmp_path: Path):
    plain = tmp_path / "plain"
    plain.mkdir()
    with pytest.raises(NotAGitRepositoryError):
        get_branch_files(plain, "main")


def test_repository_path_below_top_level(repo: Path):
    (repo / "pkg").mkdir()
    (repo / "pkg" / "b.py").write_text("B = 1\n")
    _git(repo, "add", "pkg")
    _git(repo, "commit", "-q", "-m", "add pkg")
    (repo / "pkg" / "b.py").write_text("B = 2\n")

    result = get_branch_files(repo / "pkg", "feature/x")

    assert result.paths == ["pkg/b.py"]
    assert [e.modified for e in result.entries] == [True]


@pytest.fixture
def superproject(tmp_path: Path) -> Path:
    lib = tmp_path / "lib"
    lib.mkdir()
    _git(lib, "init", "-q")
    _git(lib, "symbolic-ref", "HEAD", "refs/heads/main")
    (lib / "core.c").write_text("int core;\n")
    _git(lib, "add", "core.c")
    _git(lib, "commit", "-q", "-m", "core")

    top = tmp_path / "top"
    top.mkdir()
    _git(top, "init", "-q")
    _git(top, "symbolic-ref", "HEAD", "refs/heads/main")
    _git(top, "submodule", "--quiet", "add", str(lib), "lib/sub")
    _git(top, "commit", "-q", "-m", "add lib")

    _git(top, "checkout", "-q", "-b", "feature/x")
    (top / "lib" / "sub" / "inner.c").write_text("int inner;\n")
    _git(top / "lib" / "sub", "add", "inner.c")
    _git(top / "lib" / "sub", "commit", "-q", "-m", "inner")
    _git(top, "add", "lib/sub")
    _git(top, "commit", "-q", "-m", "bump lib")
    return top


def test_submodule_bump_lists_inner_files(superproject: Path):
    result = get_branch_files(superproject, "feature/x")

    assert result.paths == ["lib/sub", "lib/sub/inner.c"]
    assert result.modified_count == 0


def test_edit_inside_submodule_is_marked(superproject: Path):
    (superproject / "lib" / "sub" / "inner.c").write_text("int inner = 1;\n")
    result = get_branch_files(superproject, "feature/x")

    assert result.paths == ["lib/sub", "lib/sub/inner.c"]
    assert [e.modified for e in result.entries] == [True, True]
