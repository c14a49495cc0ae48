import logging
import re
from collections.abc import Iterable

from .errors import ConfigError

logger = logging.getLogger(__name__)


def build_pattern(
    term: str, *, match_word: bool = False, case_sensitive: bool = False
) -> re.Pattern:
    """Compile a search term into a regex pattern.

    Args:
        term: Raw search term (a regular expression).
        match_word: Wrap the term in word-boundary anchors.
        case_sensitive: When False, the whole pattern ignores case.

    Raises:
        ConfigError: If the resulting expression is invalid.
    """
    expression = term
    if match_word:
        expression = rf"\b(?:{expression})\b"
    flags = 0 if case_sensitive else re.IGNORECASE
    try:
        return re.compile(expression, flags)
    except re.error as exc:
        raise ConfigError(f"Invalid search term {term!r}: {exc}") from exc


def compile_search_patterns(
    terms: Iterable[str],
    *,
    match_word: bool = False,
    case_sensitive: bool = False,
) -> dict[str, re.Pattern]:
    """Compile every term once, failing on the first invalid one.

    Returns:
        Mapping of term to pattern, in term order. Duplicate terms collapse.
    """
    patterns: dict[str, re.Pattern] = {}
    for term in terms:
        if term in patterns:
            logger.warning("Duplicate search term ignored: %r", term)
            continue
        patterns[term] = build_pattern(term, match_word=match_word, case_sensitive=case_sensitive)
    logger.debug(
        "Compiled %d search pattern(s) (match_word=%s, case_sensitive=%s)",
        len(patterns),
        match_word,
        case_sensitive,
    )
    return patterns
