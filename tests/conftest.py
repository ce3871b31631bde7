from pathlib import Path

import pytest

from branchfiles.gitcmd import CommandResult


class FakeGit:
    """Answers git invocations from a table keyed by argument tuple; anything else fails."""

    def __init__(self, responses=None, repo_path="/repo"):
        self.repo_path = Path(repo_path)
        self.responses = dict(responses or {})
        self.calls = []
        self.nested = {}

    def at(self, path):
        path = Path(path)
        if path in self.nested:
            return self.nested[path]
        child = FakeGit(self.responses, repo_path=path)
        child.calls = self.calls
        return child

    def run(self, *args):
        self.calls.append(args)
        answer = self.responses.get(args)
        if answer is None:
            return CommandResult(stdout="", ok=False, error=f"unexpected: git {' '.join(args)}")
        if isinstance(answer, CommandResult):
            return answer
        return CommandResult(stdout=answer, ok=True)


@pytest.fixture
def make_git():
    return FakeGit
