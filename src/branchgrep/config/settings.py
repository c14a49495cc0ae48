import logging
import os
from pathlib import Path

from platformdirs import user_cache_dir, user_state_dir

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_CLONE_DIR",
    "DEFAULT_CONCURRENCY",
    "DEFAULT_OUTPUT_FILE",
    "DEFAULT_REPOSITORY_TIMEOUT_SECONDS",
    "EVENT_LOG_ENABLED",
    "EVENT_LOG_PATH",
    "GIT_EXECUTABLE",
    "LOG_LEVEL",
    "MAX_FILE_SIZE_BYTES",
    "env_bool",
    "load_env_settings",
]


def env_bool(name: str, *, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "y", "on"}:
        return True
    if value in {"0", "false", "no", "n", "off"}:
        return False
    logger.warning("Invalid boolean for %s=%r, using default %s", name, raw, default)
    return default


# Job defaults (used when the YAML document omits a key)
DEFAULT_CLONE_DIR = Path(user_cache_dir("branchgrep", appauthor=False)) / "repos"
DEFAULT_OUTPUT_FILE = "branchgrep_results.csv"
DEFAULT_CONCURRENCY = 1
DEFAULT_REPOSITORY_TIMEOUT_SECONDS = 1800.0

# Tracked files above this size are not searched
MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024

# Structured event log (JSONL), off by default
# - Linux: ~/.local/state/branchgrep
# - macOS: ~/Library/Application Support/branchgrep
# - Windows: %LOCALAPPDATA%\branchgrep
EVENT_LOG_DIR = Path(user_state_dir("branchgrep", appauthor=False))
MAX_EVENT_LOG_SIZE_BYTES = 10 * 1024 * 1024
MAX_ROTATED_EVENT_LOGS = 5

# Environment-driven values, refreshed by load_env_settings()
LOG_LEVEL = "INFO"
GIT_EXECUTABLE = "git"
EVENT_LOG_ENABLED = False
EVENT_LOG_PATH = EVENT_LOG_DIR / "events.jsonl"


def load_env_settings() -> None:
    """(Re)read environment-driven settings, e.g. after loading a .env file."""
    global LOG_LEVEL, GIT_EXECUTABLE, EVENT_LOG_ENABLED, EVENT_LOG_PATH

    LOG_LEVEL = os.getenv("BRANCHGREP_LOG_LEVEL", "").strip().upper() or "INFO"
    # Absolute path or a name resolved through PATH
    GIT_EXECUTABLE = os.getenv("BRANCHGREP_GIT", "").strip() or "git"
    EVENT_LOG_ENABLED = env_bool("BRANCHGREP_EVENT_LOG", default=False)
    custom_path = os.getenv("BRANCHGREP_EVENT_LOG_PATH", "").strip()
    EVENT_LOG_PATH = (
        Path(custom_path).expanduser() if custom_path else EVENT_LOG_DIR / "events.jsonl"
    )


load_env_settings()
