__version__ = "0.1.0"

from .cli import main
from .config import SearchJobConfig, load_job_config
from .models import MatchRecord, RepositoryHandle, RepositoryOutcome, ScanSummary
from .scan import run_scan
from .scheduler import BatchScheduler
from .searcher import RepositorySearcher

__all__ = [
    "__version__",
    "BatchScheduler",
    "MatchRecord",
    "RepositoryHandle",
    "RepositoryOutcome",
    "RepositorySearcher",
    "ScanSummary",
    "SearchJobConfig",
    "load_job_config",
    "main",
    "run_scan",
]
