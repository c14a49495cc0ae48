"""Configuration module for branchgrep."""

from . import settings
from .job import SearchJobConfig, load_job_config
from .settings import (
    DEFAULT_CLONE_DIR,
    DEFAULT_CONCURRENCY,
    DEFAULT_OUTPUT_FILE,
    DEFAULT_REPOSITORY_TIMEOUT_SECONDS,
    MAX_FILE_SIZE_BYTES,
    load_env_settings,
)

__all__ = [
    # Settings
    "DEFAULT_CLONE_DIR",
    "DEFAULT_CONCURRENCY",
    "DEFAULT_OUTPUT_FILE",
    "DEFAULT_REPOSITORY_TIMEOUT_SECONDS",
    "MAX_FILE_SIZE_BYTES",
    "load_env_settings",
    "settings",
    # Job
    "SearchJobConfig",
    "load_job_config",
]
