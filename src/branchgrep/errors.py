class BranchgrepError(Exception):
    """Base class for all branchgrep errors."""


class ConfigError(BranchgrepError):
    """Invalid or missing job configuration (including invalid search patterns)."""


class GitUnavailableError(ConfigError):
    """The git executable could not be found or run."""


class WriteError(BranchgrepError):
    """The CSV report could not be written."""


class GitCommandError(BranchgrepError):
    """Structured error for a failed git invocation.

    Attributes:
        command: git command line that failed.
        returncode: Process exit status, or None if the process never ran.
        stderr: Captured error output (stripped).
    """

    def __init__(
        self,
        message: str,
        *,
        command: list[str] | None = None,
        returncode: int | None = None,
        stderr: str = "",
    ):
        super().__init__(message)
        self.command = command or []
        self.returncode = returncode
        self.stderr = stderr


class CloneError(GitCommandError):
    pass


class OpenError(GitCommandError):
    pass


class BranchEnumerationError(GitCommandError):
    pass


class CheckoutError(GitCommandError):
    pass


class FetchError(GitCommandError):
    pass


class SearchError(GitCommandError):
    """Tree search failed; fatal because patterns are validated before the run."""


class RepositoryTimeoutError(BranchgrepError):
    """A repository exceeded its processing deadline."""


class ScanCancelledError(BranchgrepError):
    """The run was aborted by a fatal error in another worker."""
