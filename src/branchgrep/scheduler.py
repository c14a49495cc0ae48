import logging
import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import TypeVar

from .errors import ScanCancelledError
from .models import RepositoryOutcome
from .observability import EventSink, emit_event

logger = logging.getLogger(__name__)

T = TypeVar("T")

SearchRepository = Callable[[str], RepositoryOutcome]


def partition_windows(items: Sequence[T], size: int) -> list[list[T]]:
    """Split ``items`` into consecutive windows of at most ``size`` entries."""
    if size < 1:
        raise ValueError(f"Window size must be >= 1, got {size}")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


class BatchScheduler:
    """Run one worker per repository, window by window.

    Every worker in a window finishes before the next window starts. Workers
    return private outcomes; the scheduler merges them after the barrier in
    configured order. A fatal worker error sets ``cancel_event`` so the rest of
    the window winds down, then the error is re-raised and no further window
    starts.
    """

    def __init__(
        self,
        repositories: Sequence[str],
        search_repository: SearchRepository,
        *,
        concurrency: int,
        report: EventSink = emit_event,
        cancel_event: threading.Event | None = None,
    ):
        self.repositories = list(repositories)
        self.search_repository = search_repository
        self.concurrency = concurrency
        self.report = report
        self.cancel_event = cancel_event if cancel_event is not None else threading.Event()
        self.windows = partition_windows(self.repositories, concurrency)
        self.windows_run = 0

    def run(self) -> list[RepositoryOutcome]:
        outcomes: list[RepositoryOutcome] = []
        total = len(self.windows)

        for index, window in enumerate(self.windows, 1):
            window_label = f"{index}/{total}"
            self.report({"kind": "window_start", "window": window_label, "repos": len(window)})
            started = time.perf_counter()

            window_outcomes, fatal = self._run_window(window)
            outcomes.extend(window_outcomes)
            self.windows_run += 1

            self.report(
                {
                    "kind": "window_complete",
                    "window": window_label,
                    "matches": sum(len(o.matches) for o in window_outcomes),
                    "elapsed_s": round(time.perf_counter() - started, 3),
                }
            )
            if fatal is not None:
                self.report(
                    {
                        "kind": "scan_fatal",
                        "window": window_label,
                        "error": f"{type(fatal).__name__}: {fatal}",
                    }
                )
                raise fatal

        return outcomes

    def _run_window(
        self, window: list[str]
    ) -> tuple[list[RepositoryOutcome], BaseException | None]:
        futures: list[Future[RepositoryOutcome]] = []
        with ThreadPoolExecutor(
            max_workers=len(window), thread_name_prefix="branchgrep"
        ) as executor:
            futures = [executor.submit(self.search_repository, url) for url in window]
            try:
                for future in as_completed(futures):
                    exc = future.exception()
                    if exc is not None and not isinstance(exc, ScanCancelledError):
                        self.cancel_event.set()
            except BaseException:
                # e.g. KeyboardInterrupt: stop workers before the executor joins them
                self.cancel_event.set()
                raise

        outcomes: list[RepositoryOutcome] = []
        fatal: BaseException | None = None
        cancelled: BaseException | None = None
        for url, future in zip(window, futures, strict=True):
            exc = future.exception()
            if exc is None:
                outcomes.append(future.result())
            elif isinstance(exc, ScanCancelledError):
                logger.debug("Repository %s abandoned after cancellation", url)
                cancelled = cancelled or exc
            elif fatal is None:
                fatal = exc
        return outcomes, fatal or cancelled
