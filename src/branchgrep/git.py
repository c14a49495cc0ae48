"""git CLI primitives: clone, open, reference listing, fetch, checkout and tree search.

Every call that can block on the network or the filesystem runs under a
``ScanScope`` so a hung git process is killed when the repository deadline
passes or the run is cancelled.
"""

import logging
import os
import re
import shutil
import signal
import subprocess  # nosec B404
import threading
import time
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from .config import settings
from .errors import (
    BranchEnumerationError,
    CheckoutError,
    CloneError,
    FetchError,
    GitCommandError,
    GitUnavailableError,
    OpenError,
    RepositoryTimeoutError,
    ScanCancelledError,
    SearchError,
)

logger = logging.getLogger(__name__)

# Interval for re-checking the deadline and cancel flag while git runs
_POLL_SECONDS = 0.5
# Bytes inspected for a NUL byte when deciding a file is binary (same window as git)
_BINARY_SNIFF_BYTES = 8000


class ScanScope:
    """Deadline plus cancel flag bounding one repository's processing."""

    def __init__(self, timeout_seconds: float, cancel_event: threading.Event | None = None):
        self.timeout_seconds = timeout_seconds
        self.deadline = time.monotonic() + timeout_seconds
        self.cancel_event = cancel_event if cancel_event is not None else threading.Event()

    def check(self) -> None:
        if self.cancel_event.is_set():
            raise ScanCancelledError("Scan cancelled")
        if time.monotonic() >= self.deadline:
            raise RepositoryTimeoutError(
                f"Repository processing exceeded {self.timeout_seconds:g}s"
            )

    def remaining(self) -> float:
        self.check()
        return max(self.deadline - time.monotonic(), 0.001)


@dataclass(frozen=True)
class GrepMatch:
    path: str
    line_number: int
    content: str


def _git_env() -> dict[str, str]:
    env = dict(os.environ)
    # Never block on a credential prompt
    env["GIT_TERMINAL_PROMPT"] = "0"
    return env


def _kill(proc: subprocess.Popen) -> None:
    # git runs helpers (remote-https, ssh) that share its pipes; kill the whole group
    if os.name == "posix":
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
    else:
        proc.kill()


def _communicate(proc: subprocess.Popen, scope: ScanScope) -> tuple[str, str]:
    while True:
        try:
            wait = min(_POLL_SECONDS, scope.remaining())
        except (RepositoryTimeoutError, ScanCancelledError):
            _kill(proc)
            proc.communicate()
            raise
        try:
            return proc.communicate(timeout=wait)
        except subprocess.TimeoutExpired:
            continue


def run_git(
    args: list[str],
    *,
    scope: ScanScope,
    cwd: Path | None = None,
    error_cls: type[GitCommandError] = GitCommandError,
) -> str:
    """Run a git command under ``scope`` and return its stdout.

    Raises:
        error_cls: Non-zero exit status.
        GitUnavailableError: git executable missing.
        RepositoryTimeoutError: Deadline passed (the process is killed).
        ScanCancelledError: Run cancelled (the process is killed).
    """
    cmd = [settings.GIT_EXECUTABLE]
    if cwd is not None:
        cmd.extend(["-C", str(cwd)])
    cmd.extend(args)
    scope.check()
    try:
        proc = subprocess.Popen(  # nosec B603
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            stdin=subprocess.DEVNULL,
            text=True,
            encoding="utf-8",
            errors="replace",
            env=_git_env(),
            start_new_session=os.name == "posix",
        )
    except FileNotFoundError as exc:
        raise GitUnavailableError(f"git executable not found: {settings.GIT_EXECUTABLE}") from exc

    with proc:
        stdout, stderr = _communicate(proc, scope)

    if proc.returncode == 0:
        return stdout
    stderr = (stderr or stdout or "").strip()
    details = f": {stderr}" if stderr else ""
    raise error_cls(
        f"git {' '.join(args)} failed (code {proc.returncode}){details}",
        command=cmd,
        returncode=proc.returncode,
        stderr=stderr,
    )


def ensure_git_available() -> str:
    """Return the git version string.

    Raises:
        GitUnavailableError: If git is not installed or cannot run.
    """
    if shutil.which(settings.GIT_EXECUTABLE) is None:
        raise GitUnavailableError(f"git executable not found: {settings.GIT_EXECUTABLE}")
    try:
        result = subprocess.run(  # nosec B603
            [settings.GIT_EXECUTABLE, "--version"],
            capture_output=True,
            text=True,
            check=False,
            timeout=10,
        )
    except (subprocess.TimeoutExpired, OSError) as exc:
        raise GitUnavailableError(f"Cannot run {settings.GIT_EXECUTABLE}: {exc}") from exc
    if result.returncode != 0:
        raise GitUnavailableError(
            f"{settings.GIT_EXECUTABLE} --version failed: {result.stderr.strip()}"
        )
    return result.stdout.strip()


def clone_repository(url: str, dest: Path, *, scope: ScanScope) -> None:
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise CloneError(f"Cannot create clone directory {dest.parent}: {exc}") from exc
    run_git(["clone", "--quiet", "--", url, str(dest)], scope=scope, error_cls=CloneError)


def open_repository(path: Path, *, scope: ScanScope) -> None:
    """Verify ``path`` is the top level of an existing git work tree.

    A directory nested inside some other repository is rejected, so checkouts
    never touch an enclosing work tree.
    """
    if not path.is_dir():
        raise OpenError(f"No local copy at {path}")
    top = run_git(["rev-parse", "--show-toplevel"], scope=scope, cwd=path, error_cls=OpenError)
    top = top.strip()
    if not top or Path(top).resolve() != path.resolve():
        raise OpenError(f"{path} is not the top level of a git work tree")


def list_references(path: Path, *, scope: ScanScope) -> list[tuple[str, str]]:
    """Return ``(refname, symref_target)`` pairs in listing order.

    ``symref_target`` is empty for references that are not symbolic.
    """
    out = run_git(
        ["for-each-ref", "--format=%(refname)%00%(symref)"],
        scope=scope,
        cwd=path,
        error_cls=BranchEnumerationError,
    )
    refs: list[tuple[str, str]] = []
    for line in out.splitlines():
        if not line:
            continue
        name, _, target = line.partition("\0")
        refs.append((name, target))
    return refs


def fetch_branch(path: Path, remote: str, branch: str, *, scope: ScanScope) -> None:
    run_git(
        ["fetch", "--quiet", remote, f"+refs/heads/{branch}:refs/remotes/{remote}/{branch}"],
        scope=scope,
        cwd=path,
        error_cls=FetchError,
    )


def checkout(path: Path, ref: str, *, scope: ScanScope) -> None:
    run_git(
        ["checkout", "--quiet", "--force", "--detach", ref],
        scope=scope,
        cwd=path,
        error_cls=CheckoutError,
    )


def list_tracked_files(path: Path, *, scope: ScanScope) -> list[str]:
    out = run_git(["ls-files", "-z"], scope=scope, cwd=path, error_cls=SearchError)
    return [p for p in out.split("\0") if p]


def _read_searchable_text(filepath: Path) -> str | None:
    """Return file text, or None if the file is not searchable.

    Raises:
        SearchError: The file exists but cannot be read.
    """
    if filepath.is_symlink() or not filepath.is_file():
        return None
    try:
        if filepath.stat().st_size > settings.MAX_FILE_SIZE_BYTES:
            logger.debug("Skipping large file: %s", filepath)
            return None
        data = filepath.read_bytes()
    except OSError as exc:
        raise SearchError(f"Cannot read {filepath}: {exc}") from exc
    if b"\0" in data[:_BINARY_SNIFF_BYTES]:
        return None
    return data.decode("utf-8", errors="replace")


def grep_worktree(
    path: Path,
    patterns: Mapping[str, re.Pattern],
    *,
    scope: ScanScope,
) -> dict[str, list[GrepMatch]]:
    """Search tracked files of the checked-out tree line by line.

    Each file is read once and tested against every pattern.

    Args:
        path: Work tree root.
        patterns: Compiled pattern per search term.
        scope: Deadline/cancel scope, checked once per file.

    Returns:
        Matches per term, in tracked-file order then line order.
    """
    results: dict[str, list[GrepMatch]] = {term: [] for term in patterns}
    for rel_path in list_tracked_files(path, scope=scope):
        scope.check()
        text = _read_searchable_text(path / rel_path)
        if text is None:
            continue
        lines = text.split("\n")
        if lines and lines[-1] == "":
            lines.pop()
        for line_num, line in enumerate(lines, 1):
            line = line.removesuffix("\r")
            for term, pattern in patterns.items():
                if pattern.search(line):
                    results[term].append(GrepMatch(rel_path, line_num, line))
    return results


def remove_working_copy(path: Path) -> bool:
    """Delete a local copy. Returns True if something was removed."""
    if not path.exists() and not path.is_symlink():
        return False
    if path.is_symlink() or path.is_file():
        path.unlink()
    else:
        shutil.rmtree(path)
    return True
