from pathlib import Path

from branchfiles.submodules import (
    checked_out_submodules,
    expand_gitlinks,
    modified_in_submodules,
    parse_raw_gitlinks,
)

OLD = "1" * 40
NEW = "2" * 40
ZERO = "0" * 40

RAW = (
    f":100644 100644 {'a' * 40} {'b' * 40} M\tsrc/a.ts\n"
    f":160000 160000 {OLD} {NEW} M\tlib/sub\n"
    f":000000 160000 {ZERO} {NEW} A\tvendor/new\n"
    f":160000 000000 {OLD} {ZERO} D\tvendor/gone\n"
)


def test_parse_raw_keeps_only_gitlinks():
    changes = parse_raw_gitlinks(RAW)

    assert [c.path for c in changes] == ["lib/sub", "vendor/new", "vendor/gone"]
    assert [(c.added, c.removed) for c in changes] == [(False, False), (True, False), (False, True)]
    assert changes[0].old_sha == OLD
    assert changes[0].new_sha == NEW


def test_parse_raw_ignores_noise():
    assert parse_raw_gitlinks("\nwarning: something\n") == []


def test_expand_moved_gitlink(make_git):
    git = make_git({("diff", "--raw", "--no-abbrev", "abc", "feature/x"): RAW})
    git.nested[Path("/repo/lib/sub")] = make_git(
        {("diff", "--name-only", OLD, NEW): "inner.c\ninclude/inner.h\n"},
        repo_path="/repo/lib/sub",
    )
    git.nested[Path("/repo/vendor/new")] = make_git(
        {("ls-tree", "-r", "--name-only", NEW): "README\n"},
        repo_path="/repo/vendor/new",
    )

    assert expand_gitlinks(git, "abc", "feature/x") == [
        "lib/sub/inner.c",
        "lib/sub/include/inner.h",
        "vendor/new/README",
    ]


def test_expand_follows_nested_submodules(make_git):
    git = make_git({("diff", "--raw", "--no-abbrev", "main...feature/x"): f":160000 160000 {OLD} {NEW} M\tlib/sub\n"})
    sub = make_git(
        {
            ("diff", "--name-only", OLD, NEW): "deps/core\n",
            ("diff", "--raw", "--no-abbrev", OLD, NEW): f":160000 160000 {'3' * 40} {'4' * 40} M\tdeps/core\n",
        },
        repo_path="/repo/lib/sub",
    )
    sub.nested[Path("/repo/lib/sub/deps/core")] = make_git(
        {("diff", "--name-only", "3" * 40, "4" * 40): "core.c\n"},
        repo_path="/repo/lib/sub/deps/core",
    )
    git.nested[Path("/repo/lib/sub")] = sub

    assert expand_gitlinks(git, "main...feature/x") == ["lib/sub/deps/core", "lib/sub/deps/core/core.c"]


def test_unreadable_submodule_adds_nothing(make_git):
    git = make_git({("diff", "--raw", "--no-abbrev", "a", "b"): f":160000 160000 {OLD} {NEW} M\tlib/sub\n"})
    assert expand_gitlinks(git, "a", "b") == []


def test_failed_raw_diff_adds_nothing(make_git):
    assert expand_gitlinks(make_git({}), "a", "b") == []


def test_checked_out_submodules_skips_uninitialized(make_git):
    git = make_git(
        {
            ("submodule", "status", "--recursive"): (
                f" {OLD} lib/sub (heads/main)\n+{NEW} lib/sub/deps/core (v1.0)\n-{ZERO} vendor/unused\n"
            )
        }
    )
    assert checked_out_submodules(git) == ["lib/sub", "lib/sub/deps/core"]


def test_modified_in_submodules_prefixes_paths(make_git):
    git = make_git({("submodule", "status", "--recursive"): f" {OLD} lib/sub (heads/main)\n"})
    git.nested[Path("/repo/lib/sub")] = make_git(
        {("ls-files", "--modified", "--full-name"): "inner.c\n"},
        repo_path="/repo/lib/sub",
    )

    assert modified_in_submodules(git) == ["lib/sub/inner.c"]
