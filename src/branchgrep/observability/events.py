import glob
import json
import logging
import threading
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from ..config import settings

logger = logging.getLogger(__name__)

EventSink = Callable[[dict[str, Any]], None]

_LOG_LOCK = threading.Lock()
_RUN_ID = uuid.uuid4().hex[:12]

_LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

# Keys rendered into the human-readable log line, in this order
_SUMMARY_KEYS = (
    "repo",
    "window",
    "branch",
    "path",
    "branches",
    "matches",
    "elapsed_s",
    "error",
)


def get_run_id() -> str:
    return _RUN_ID


def _default_level(kind: str) -> str:
    if kind.endswith(("_failed", "_skipped", "_timed_out")):
        return "warning"
    if kind.endswith(("_fatal", "_error")):
        return "error"
    return "info"


def format_event(event: dict[str, Any]) -> str:
    kind = str(event.get("kind", "event"))
    parts = [kind]
    for key in _SUMMARY_KEYS:
        if event.get(key) is not None:
            parts.append(f"{key}={event[key]}")
    return " ".join(parts)


def rotate_log_if_needed() -> None:
    try:
        log_path = settings.EVENT_LOG_PATH
        if log_path.exists() and log_path.stat().st_size > settings.MAX_EVENT_LOG_SIZE_BYTES:
            ts = datetime.now(UTC).strftime("%Y%m%d_%H%M%S")
            stem = log_path.stem
            suffix = log_path.suffix
            rotated_path = log_path.with_name(f"{stem}.{ts}{suffix}")
            log_path.rename(rotated_path)
            logger.debug("Rotated event log to %s", rotated_path)

            pattern = f"{glob.escape(stem)}.*{glob.escape(suffix)}"
            rotated_logs = sorted(log_path.parent.glob(pattern), reverse=True)
            for old_log in rotated_logs[settings.MAX_ROTATED_EVENT_LOGS :]:
                old_log.unlink(missing_ok=True)
                logger.debug("Cleaned up old event log: %s", old_log)
    except OSError as exc:
        logger.warning("Failed to rotate event log: %s", exc)


def log_event(event: dict[str, Any]) -> None:
    """Append a single JSON event to the local event log, if enabled.

    Args:
        event: Event data. Enriched with timestamp, run_id and level.
    """
    if not settings.EVENT_LOG_ENABLED:
        return

    event = dict(event)
    event.setdefault("timestamp", datetime.now(UTC).isoformat())
    event.setdefault("run_id", _RUN_ID)
    event.setdefault("level", _default_level(str(event.get("kind", ""))))

    try:
        with _LOG_LOCK:
            log_path = settings.EVENT_LOG_PATH
            if log_path.is_dir():
                logger.warning("Event log path is a directory, skipping event write")
                return
            log_path.parent.mkdir(parents=True, exist_ok=True)
            rotate_log_if_needed()
            with open(log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(event, ensure_ascii=False, default=str) + "\n")
    except OSError as exc:
        logger.warning("Failed to write event log: %s", exc)


def emit_event(event: dict[str, Any]) -> None:
    """Default event sink: log a one-line summary and append to the event log."""
    level = str(event.get("level") or _default_level(str(event.get("kind", ""))))
    logger.log(_LEVELS.get(level, logging.INFO), "%s", format_event(event))
    log_event(event)
