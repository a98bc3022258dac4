import io
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import pytest

from repomirror.git.exceptions import CommandError
from repomirror.repository import ShellGitRepository


@pytest.fixture
def capture_logs():
    """Fixture to capture log output during tests."""
    log_stream = io.StringIO()
    handler = logging.StreamHandler(log_stream)
    logger = logging.getLogger("repomirror")
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)

    yield log_stream

    logger.removeHandler(handler)
    log_stream.close()


# git fixtures


class FakeGit:
    """
    Stand-in for ``run_command`` recording every git invocation.

    Rules match on the git subcommand and its leading arguments; the most
    recently added matching rule wins. A rule answers with a string, raises
    an exception, or consumes a list of such outcomes one call at a time.
    Cloning creates the target directory like the real command would.
    """

    def __init__(self):
        self.calls: List[Tuple[List[str], Optional[Path]]] = []
        self.rules: List[Tuple[Tuple[str, ...], object]] = []

    def when(self, *prefix: str, returns="", raises=None, outcomes=None) -> "FakeGit":
        if outcomes is not None:
            outcome = list(outcomes)
        elif raises is not None:
            outcome = raises
        else:
            outcome = returns
        self.rules.append((prefix, outcome))
        return self

    def fail(self, *prefix: str, stderr: str = "fatal: boom") -> "FakeGit":
        return self.when(*prefix, raises=self.error(*prefix, stderr=stderr))

    @staticmethod
    def error(*args: str, stderr: str = "fatal: boom") -> CommandError:
        return CommandError(["git", *args], returncode=128, stderr=stderr)

    async def __call__(self, args: Sequence[str], cwd: Optional[Path] = None) -> str:
        args = list(args)
        self.calls.append((args, cwd))
        git_args = args[1:]

        for prefix, outcome in reversed(self.rules):
            if tuple(git_args[: len(prefix)]) != prefix:
                continue
            if isinstance(outcome, list):
                if not outcome:
                    continue
                outcome = outcome.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        if git_args and git_args[0] == "clone":
            Path(git_args[-1]).mkdir(parents=True, exist_ok=True)
        return ""

    def commands(self, *prefix: str) -> List[List[str]]:
        """Git argument lists (without the leading "git") starting with prefix."""
        return [
            args[1:]
            for args, _ in self.calls
            if tuple(args[1 : 1 + len(prefix)]) == prefix
        ]

    def count(self, *prefix: str) -> int:
        return len(self.commands(*prefix))


@pytest.fixture
def fake_git() -> FakeGit:
    return FakeGit()


@pytest.fixture
def storage_dir(tmp_path) -> Path:
    return tmp_path / "repositories"


@pytest.fixture
def repository(storage_dir, fake_git) -> ShellGitRepository:
    """Repository operations running against FakeGit."""
    return ShellGitRepository(storage_dir=storage_dir, runner=fake_git)


REPO_URL = "https://github.com/example/module.git"


@pytest.fixture
def repo_url() -> str:
    return REPO_URL


@pytest.fixture
def working_copy(repository, repo_url) -> Path:
    """An already cloned working copy for REPO_URL."""
    directory = repository.full_repo_path(repo_url)
    directory.mkdir(parents=True)
    return directory


# real git repositories


@pytest.fixture
def origin_repo(tmp_path):
    """
    A local repository to mirror, with two commits, a tag and a feature branch.

    Layout at the tip of main:
        README.md
        bin/run.sh          (executable)
        src/Module/a.txt
        src/Module/Test/t.txt
        src/Other/b.txt
    """
    git = pytest.importorskip("git")

    path = tmp_path / "origin" / "module.git"
    path.mkdir(parents=True)
    repo = git.Repo.init(path, initial_branch="main")
    with repo.config_writer() as writer:
        writer.set_value("user", "email", "test@example.com")
        writer.set_value("user", "name", "Test")
        writer.set_value("commit", "gpgsign", "false")
        writer.set_value("tag", "gpgsign", "false")

    (path / "README.md").write_text("first\n")
    repo.git.add("--all")
    repo.git.commit("-m", "Initial commit")
    repo.git.tag("-a", "1.0.0", "-m", "Release 1.0.0")

    (path / "bin").mkdir()
    (path / "bin" / "run.sh").write_text("#!/bin/sh\necho run\n")
    (path / "bin" / "run.sh").chmod(0o755)
    for name in ("src/Module/a.txt", "src/Module/Test/t.txt", "src/Other/b.txt"):
        (path / name).parent.mkdir(parents=True, exist_ok=True)
        (path / name).write_text(f"{name}\n")
    (path / "README.md").write_text("second\n")
    repo.git.add("--all")
    repo.git.commit("-m", "Add sources")
    repo.git.branch("feature")

    return repo


@pytest.fixture
def origin_url(origin_repo) -> str:
    # file:// so that --depth is honoured for local clones
    return Path(origin_repo.working_tree_dir).as_uri()
