import logging
import threading
import time

from .config import SearchJobConfig
from .git import ensure_git_available
from .models import ScanSummary
from .observability import EventSink, emit_event
from .patterns import compile_search_patterns
from .report import aggregate, write_report
from .scheduler import BatchScheduler
from .searcher import RepositorySearcher

logger = logging.getLogger(__name__)


def run_scan(config: SearchJobConfig, *, report: EventSink = emit_event) -> ScanSummary:
    """Scan every configured repository and write the CSV report.

    Patterns are compiled and git is located before any repository is
    touched.

    Raises:
        ConfigError: Invalid search term or git unavailable.
        SearchError: Tree search failed in some repository.
        WriteError: The report could not be written.
    """
    patterns = compile_search_patterns(
        config.search_terms,
        match_word=config.match_word,
        case_sensitive=config.case_sensitive,
    )
    logger.debug("Using %s", ensure_git_available())

    started = time.perf_counter()
    cancel_event = threading.Event()
    searcher = RepositorySearcher(config, patterns, report=report, cancel_event=cancel_event)
    scheduler = BatchScheduler(
        config.repositories,
        searcher,
        concurrency=config.concurrency,
        report=report,
        cancel_event=cancel_event,
    )
    outcomes = scheduler.run()

    matches = aggregate(outcomes)
    written = write_report(matches, config.output_file)
    if written:
        report({"kind": "report_written", "path": str(config.output_file), "matches": len(matches)})
    else:
        report({"kind": "no_results"})

    return ScanSummary.from_outcomes(
        outcomes,
        windows=scheduler.windows_run,
        elapsed_s=round(time.perf_counter() - started, 3),
        output_file=str(config.output_file) if written else None,
    )
