import csv
import logging
from collections.abc import Iterable
from pathlib import Path

from .errors import WriteError
from .models import MatchRecord, RepositoryOutcome

logger = logging.getLogger(__name__)

HEADER = ("REPO_URL", "BRANCH", "SEARCH_TERM", "FILE_NAME", "LINE_NUMBER", "CONTENT")


def aggregate(outcomes: Iterable[RepositoryOutcome]) -> list[MatchRecord]:
    """Concatenate per-repository matches in outcome order."""
    matches: list[MatchRecord] = []
    for outcome in outcomes:
        matches.extend(outcome.matches)
    return matches


def build_table(matches: Iterable[MatchRecord]) -> list[list[str]]:
    """Return the report rows, header first."""
    return [list(HEADER), *(m.as_row() for m in matches)]


def write_report(matches: list[MatchRecord], output_file: Path) -> bool:
    """Write matches to a CSV file.

    Returns:
        False (and writes nothing) when there are no matches, True otherwise.

    Raises:
        WriteError: The file could not be written.
    """
    if not matches:
        logger.info("No results found.")
        return False

    rows = build_table(matches)
    try:
        output_file.parent.mkdir(parents=True, exist_ok=True)
        with output_file.open("w", encoding="utf-8", newline="") as f:
            csv.writer(f, lineterminator="\n").writerows(rows)
    except (OSError, csv.Error) as exc:
        raise WriteError(f"Cannot write report to {output_file}: {exc}") from exc

    logger.info("Results written to: %s (%d rows)", output_file, len(matches))
    return True
