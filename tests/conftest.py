import os
import subprocess  # nosec B404
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest

from branchgrep.config import SearchJobConfig


def run(cwd: Path, *args: str) -> str:
    completed = subprocess.run(  # nosec B603 B607
        ["git", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        check=True,
    )
    return completed.stdout


@pytest.fixture(autouse=True)
def git_identity(monkeypatch: pytest.MonkeyPatch) -> None:
    """Isolate git from the user's config and give commits an identity."""
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@test.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@test.com")
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", os.devnull)


@dataclass
class RemoteRepo:
    """A bare repository standing in for a remote, plus the work tree that feeds it."""

    work: Path
    bare: Path

    @property
    def url(self) -> str:
        return self.bare.as_uri()

    def commit(self, branch: str, files: dict[str, str | bytes], message: str = "update") -> None:
        existing = run(self.work, "branch", "--list", branch).strip()
        if existing:
            run(self.work, "checkout", "--quiet", branch)
        else:
            run(self.work, "checkout", "--quiet", "-b", branch)
        for rel_path, content in files.items():
            target = self.work / rel_path
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                target.write_bytes(content)
            else:
                target.write_text(content, encoding="utf-8")
        run(self.work, "add", "--all")
        run(self.work, "commit", "--quiet", "-m", message)
        run(self.work, "push", "--quiet", str(self.bare), f"{branch}:{branch}")


@pytest.fixture
def remote_factory(tmp_path: Path) -> Callable[..., RemoteRepo]:
    """Create a remote named ``<name>.git`` with one commit per listed branch.

    ``branches`` maps branch name to files; the first entry becomes ``main``'s
    base and every other branch forks from it.
    """

    def factory(name: str, branches: dict[str, dict[str, Any]]) -> RemoteRepo:
        work = tmp_path / "work" / name
        work.mkdir(parents=True)
        run(work, "init", "--quiet")
        run(work, "symbolic-ref", "HEAD", "refs/heads/main")

        bare = tmp_path / "remotes" / f"{name}.git"
        bare.parent.mkdir(parents=True, exist_ok=True)
        run(bare.parent, "init", "--quiet", "--bare", bare.name)
        run(bare, "symbolic-ref", "HEAD", "refs/heads/main")

        remote = RemoteRepo(work=work, bare=bare)
        items = list(branches.items())
        first_branch, first_files = items[0]
        remote.commit(first_branch, first_files, message="initial")
        for branch, files in items[1:]:
            run(work, "checkout", "--quiet", first_branch)
            remote.commit(branch, files, message=f"add {branch}")
        return remote

    return factory


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., SearchJobConfig]:
    def factory(
        repositories: list[str], search_terms: list[str], **overrides: Any
    ) -> SearchJobConfig:
        values: dict[str, Any] = {
            "clone_dir": tmp_path / "clones",
            "output_file": tmp_path / "out" / "results.csv",
        }
        values.update(overrides)
        return SearchJobConfig(
            repositories=tuple(repositories),
            search_terms=tuple(search_terms),
            **values,
        )

    return factory


@pytest.fixture
def events() -> list[dict[str, Any]]:
    return []


@pytest.fixture
def git() -> Callable[..., str]:
    """Run a git command in a directory and return stdout."""
    return run
