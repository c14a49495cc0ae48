"""Tests for RepositorySearcher against real local git remotes."""

import shutil
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

import branchgrep.searcher as searcher_module
from branchgrep.errors import CheckoutError, RepositoryTimeoutError, SearchError
from branchgrep.patterns import compile_search_patterns
from branchgrep.searcher import RepositorySearcher

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")

FILLER = "".join(f"line {i}\n" for i in range(1, 42))


def _searcher(config, events: list[dict[str, Any]]) -> RepositorySearcher:
    patterns = compile_search_patterns(
        config.search_terms,
        match_word=config.match_word,
        case_sensitive=config.case_sensitive,
    )
    return RepositorySearcher(config, patterns, report=events.append)


def _kinds(events: list[dict[str, Any]]) -> list[str]:
    return [e["kind"] for e in events]


class TestSearchRepository:
    def test_single_match_on_default_branch(
        self, remote_factory: Callable, make_config: Callable, events: list
    ) -> None:
        remote = remote_factory("sample", {"main": {"src/app.c": FILLER + "// TODO fix this\n"}})
        config = make_config([remote.url], ["TODO"])

        outcome = _searcher(config, events).search(remote.url)

        assert outcome.status == "searched"
        assert outcome.name == "sample"
        assert [m.as_row() for m in outcome.matches] == [
            [remote.url, "refs/remotes/origin/main", "TODO", "src/app.c", "42", "// TODO fix this"]
        ]
        assert "repo_cloned" in _kinds(events)
        assert events[-1]["kind"] == "repo_complete"

    def test_searches_every_remote_branch(
        self, remote_factory: Callable, make_config: Callable, events: list
    ) -> None:
        remote = remote_factory(
            "multi",
            {
                "main": {"a.txt": "nothing here\n"},
                "feature": {"b.txt": "TODO on feature\n"},
                "hotfix": {"c.txt": "FIXME on hotfix\n"},
            },
        )
        config = make_config([remote.url], ["TODO", "FIXME"])

        outcome = _searcher(config, events).search(remote.url)

        found = {(m.branch, m.term, m.path) for m in outcome.matches}
        assert found == {
            ("refs/remotes/origin/feature", "TODO", "b.txt"),
            ("refs/remotes/origin/hotfix", "FIXME", "c.txt"),
        }
        assert outcome.branches_total == 3
        assert outcome.branches_searched == 3

    def test_clone_failure_without_local_copy_is_skipped(
        self, tmp_path: Path, make_config: Callable, events: list
    ) -> None:
        url = (tmp_path / "remotes" / "ghost.git").as_uri()
        config = make_config([url], ["TODO"])

        outcome = _searcher(config, events).search(url)

        assert outcome.status == "skipped"
        assert outcome.matches == []
        assert outcome.error
        assert _kinds(events)[:3] == ["repo_start", "clone_failed", "repo_skipped"]

    def test_existing_copy_is_opened_and_updated(
        self,
        tmp_path: Path,
        remote_factory: Callable,
        make_config: Callable,
        events: list,
        git: Callable,
    ) -> None:
        remote = remote_factory("sample", {"main": {"a.txt": "old\n"}})
        config = make_config([remote.url], ["TODO"])
        clone_path = config.clone_dir / "sample"
        config.clone_dir.mkdir(parents=True)
        git(config.clone_dir, "clone", "--quiet", remote.url, str(clone_path))
        # The remote moves on after the local copy was made
        remote.commit("main", {"a.txt": "old\nTODO new\n"})

        outcome = _searcher(config, events).search(remote.url)

        assert "clone_failed" in _kinds(events)
        assert "repo_opened" in _kinds(events)
        assert [(m.path, m.line_number) for m in outcome.matches] == [("a.txt", 2)]

    def test_failed_update_is_best_effort(
        self,
        tmp_path: Path,
        remote_factory: Callable,
        make_config: Callable,
        events: list,
        git: Callable,
    ) -> None:
        remote = remote_factory("sample", {"main": {"a.txt": "TODO\n"}})
        config = make_config([remote.url], ["TODO"])
        clone_path = config.clone_dir / "sample"
        config.clone_dir.mkdir(parents=True)
        git(config.clone_dir, "clone", "--quiet", remote.url, str(clone_path))
        shutil.rmtree(remote.bare)

        outcome = _searcher(config, events).search(remote.url)

        assert "fetch_failed" in _kinds(events)
        assert outcome.status == "searched"
        assert len(outcome.matches) == 1

    def test_checkout_failure_skips_only_that_branch(
        self, remote_factory: Callable, make_config: Callable, events: list
    ) -> None:
        remote = remote_factory(
            "sample",
            {
                "main": {"a.txt": "TODO main\n"},
                "broken": {"b.txt": "TODO broken\n"},
                "zeta": {"z.txt": "TODO zeta\n"},
            },
        )
        config = make_config([remote.url], ["TODO"])
        real_checkout = searcher_module.checkout

        def flaky_checkout(path: Path, ref: str, *, scope) -> None:
            if ref.endswith("/broken"):
                raise CheckoutError("simulated checkout failure")
            real_checkout(path, ref, scope=scope)

        with patch("branchgrep.searcher.checkout", side_effect=flaky_checkout):
            outcome = _searcher(config, events).search(remote.url)

        assert outcome.status == "searched"
        assert outcome.branches_skipped == 1
        assert outcome.branches_searched == 2
        assert {m.branch for m in outcome.matches} == {
            "refs/remotes/origin/main",
            "refs/remotes/origin/zeta",
        }
        assert "checkout_failed" in _kinds(events)

    def test_cleanup_removes_copy(
        self, remote_factory: Callable, make_config: Callable, events: list
    ) -> None:
        remote = remote_factory("sample", {"main": {"a.txt": "TODO\n"}})
        config = make_config([remote.url], ["TODO"], clean_up=True)

        outcome = _searcher(config, events).search(remote.url)

        assert len(outcome.matches) == 1
        assert not (config.clone_dir / "sample").exists()

    def test_cleanup_removes_stale_copy_first(
        self, remote_factory: Callable, make_config: Callable, events: list
    ) -> None:
        remote = remote_factory("sample", {"main": {"a.txt": "TODO\n"}})
        config = make_config([remote.url], ["TODO"], clean_up=True)
        stale = config.clone_dir / "sample"
        stale.mkdir(parents=True)
        (stale / "junk.txt").write_text("TODO junk\n", encoding="utf-8")

        outcome = _searcher(config, events).search(remote.url)

        # Fresh clone succeeded instead of falling back to the stale directory
        assert "clone_failed" not in _kinds(events)
        assert [m.path for m in outcome.matches] == ["a.txt"]
        assert not stale.exists()

    def test_cleanup_after_skip(self, tmp_path: Path, make_config: Callable, events: list) -> None:
        url = (tmp_path / "remotes" / "ghost.git").as_uri()
        config = make_config([url], ["TODO"], clean_up=True)

        outcome = _searcher(config, events).search(url)

        assert outcome.status == "skipped"
        assert not (config.clone_dir / "ghost").exists()


class TestFailureModes:
    def test_timeout_is_a_skip(self, make_config: Callable, events: list) -> None:
        url = "https://example.com/org/slow.git"
        config = make_config([url], ["TODO"], clean_up=True)

        with patch(
            "branchgrep.searcher.clone_repository",
            side_effect=RepositoryTimeoutError("exceeded 1s"),
        ):
            outcome = _searcher(config, events).search(url)

        assert outcome.status == "timed_out"
        assert outcome.matches == []
        assert "repo_timed_out" in _kinds(events)

    def test_search_error_propagates(
        self, remote_factory: Callable, make_config: Callable, events: list
    ) -> None:
        remote = remote_factory("sample", {"main": {"a.txt": "TODO\n"}})
        config = make_config([remote.url], ["TODO"], clean_up=True)

        with patch("branchgrep.searcher.grep_worktree", side_effect=SearchError("broken")):
            with pytest.raises(SearchError):
                _searcher(config, events).search(remote.url)

        # Cleanup still runs on the way out
        assert not (config.clone_dir / "sample").exists()
