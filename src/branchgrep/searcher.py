import logging
import re
import threading
import time
from collections.abc import Mapping

from .branches import list_remote_branches, split_remote_ref
from .config import SearchJobConfig
from .errors import (
    BranchEnumerationError,
    CheckoutError,
    CloneError,
    FetchError,
    OpenError,
    RepositoryTimeoutError,
)
from .git import (
    ScanScope,
    checkout,
    clone_repository,
    fetch_branch,
    grep_worktree,
    open_repository,
    remove_working_copy,
)
from .models import MatchRecord, RepositoryHandle, RepositoryOutcome
from .observability import EventSink, emit_event

logger = logging.getLogger(__name__)


class RepositorySearcher:
    """Process one repository end to end: local copy, branches, search, cleanup.

    Repository-scoped failures (open, branch listing, timeout) produce a
    skipped outcome; a failed checkout skips only that branch. ``SearchError``
    and ``ScanCancelledError`` propagate to the caller.
    """

    def __init__(
        self,
        config: SearchJobConfig,
        patterns: Mapping[str, re.Pattern],
        *,
        report: EventSink = emit_event,
        cancel_event: threading.Event | None = None,
    ):
        self.config = config
        self.patterns = patterns
        self.report = report
        self.cancel_event = cancel_event if cancel_event is not None else threading.Event()

    def __call__(self, url: str) -> RepositoryOutcome:
        return self.search(url)

    def search(self, url: str) -> RepositoryOutcome:
        handle = self.config.handle_for(url)
        outcome = RepositoryOutcome(url=url, name=handle.name)
        scope = ScanScope(self.config.repository_timeout_seconds, self.cancel_event)
        started = time.perf_counter()
        self.report({"kind": "repo_start", "repo": url, "path": str(handle.path)})

        try:
            if self.config.clean_up:
                self._remove_copy(handle)
            self._search_repository(handle, scope, outcome)
        except RepositoryTimeoutError as exc:
            outcome.status = "timed_out"
            outcome.matches = []
            outcome.error = str(exc)
            self.report({"kind": "repo_timed_out", "repo": url, "error": str(exc)})
        finally:
            if self.config.clean_up:
                self._remove_copy(handle)
            outcome.elapsed_s = round(time.perf_counter() - started, 3)

        self.report(
            {
                "kind": "repo_complete",
                "repo": url,
                "status": outcome.status,
                "branches": outcome.branches_searched,
                "matches": len(outcome.matches),
                "elapsed_s": outcome.elapsed_s,
            }
        )
        return outcome

    def _search_repository(
        self, handle: RepositoryHandle, scope: ScanScope, outcome: RepositoryOutcome
    ) -> None:
        cloned = self._obtain_working_copy(handle, scope, outcome)
        if cloned is None:
            return

        try:
            branches = list_remote_branches(handle.path, scope=scope)
        except BranchEnumerationError as exc:
            self._skip(outcome, "branch_listing_failed", exc)
            return

        outcome.branches_total = len(branches)
        self.report({"kind": "branches_listed", "repo": handle.url, "branches": len(branches)})

        for branch in branches:
            scope.check()
            if not cloned:
                self._update_branch(handle, branch, scope)
            try:
                checkout(handle.path, branch, scope=scope)
            except CheckoutError as exc:
                outcome.branches_skipped += 1
                self.report(
                    {
                        "kind": "checkout_failed",
                        "repo": handle.url,
                        "branch": branch,
                        "error": str(exc),
                    }
                )
                continue

            found = grep_worktree(handle.path, self.patterns, scope=scope)
            before = len(outcome.matches)
            for term, matches in found.items():
                outcome.matches.extend(
                    MatchRecord(
                        repository=handle.url,
                        branch=branch,
                        term=term,
                        path=m.path,
                        line_number=m.line_number,
                        content=m.content,
                    )
                    for m in matches
                )
            outcome.branches_searched += 1
            self.report(
                {
                    "kind": "branch_searched",
                    "level": "debug",
                    "repo": handle.url,
                    "branch": branch,
                    "matches": len(outcome.matches) - before,
                }
            )

    def _obtain_working_copy(
        self, handle: RepositoryHandle, scope: ScanScope, outcome: RepositoryOutcome
    ) -> bool | None:
        """Clone, or fall back to an existing copy.

        Returns:
            True if freshly cloned, False if an existing copy was opened, None
            if no working copy is available (the outcome is marked skipped).
        """
        try:
            clone_repository(handle.url, handle.path, scope=scope)
        except CloneError as exc:
            self.report({"kind": "clone_failed", "repo": handle.url, "error": str(exc)})
        else:
            self.report({"kind": "repo_cloned", "repo": handle.url, "path": str(handle.path)})
            return True

        try:
            open_repository(handle.path, scope=scope)
        except OpenError as exc:
            self._skip(outcome, "repo_skipped", exc)
            return None
        self.report({"kind": "repo_opened", "repo": handle.url, "path": str(handle.path)})
        return False

    def _update_branch(self, handle: RepositoryHandle, branch: str, scope: ScanScope) -> None:
        remote, name = split_remote_ref(branch)
        try:
            fetch_branch(handle.path, remote, name, scope=scope)
        except FetchError as exc:
            self.report(
                {"kind": "fetch_failed", "repo": handle.url, "branch": branch, "error": str(exc)}
            )

    def _skip(self, outcome: RepositoryOutcome, kind: str, exc: Exception) -> None:
        outcome.status = "skipped"
        outcome.matches = []
        outcome.error = str(exc)
        self.report({"kind": kind, "level": "warning", "repo": outcome.url, "error": str(exc)})

    def _remove_copy(self, handle: RepositoryHandle) -> None:
        try:
            removed = remove_working_copy(handle.path)
        except OSError as exc:
            self.report(
                {
                    "kind": "cleanup_failed",
                    "repo": handle.url,
                    "path": str(handle.path),
                    "error": str(exc),
                }
            )
            return
        if removed:
            self.report(
                {
                    "kind": "repo_cleaned",
                    "level": "debug",
                    "repo": handle.url,
                    "path": str(handle.path),
                }
            )
