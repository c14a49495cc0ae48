import logging
from pathlib import Path

from .git import ScanScope, list_references

logger = logging.getLogger(__name__)

REMOTE_REF_PREFIX = "refs/remotes/"


def is_remote_tracking_ref(refname: str, symref_target: str = "") -> bool:
    """Return True for a concrete remote-tracking branch reference.

    Symbolic references such as ``refs/remotes/origin/HEAD`` are excluded;
    tags and local branches never qualify, whatever their name.
    """
    if symref_target:
        return False
    if not refname.startswith(REMOTE_REF_PREFIX):
        return False
    remote, _, branch = refname[len(REMOTE_REF_PREFIX) :].partition("/")
    return bool(remote and branch)


def split_remote_ref(refname: str) -> tuple[str, str]:
    """Split ``refs/remotes/<remote>/<branch>`` into ``(remote, branch)``."""
    if not refname.startswith(REMOTE_REF_PREFIX):
        raise ValueError(f"Not a remote-tracking reference: {refname}")
    remote, _, branch = refname[len(REMOTE_REF_PREFIX) :].partition("/")
    if not remote or not branch:
        raise ValueError(f"Not a remote-tracking reference: {refname}")
    return remote, branch


def list_remote_branches(repo_path: Path, *, scope: ScanScope) -> list[str]:
    """List remote-tracking branch names of a local copy, in listing order.

    Raises:
        BranchEnumerationError: The references could not be listed.
    """
    branches: list[str] = []
    seen: set[str] = set()
    for refname, target in list_references(repo_path, scope=scope):
        if not is_remote_tracking_ref(refname, target) or refname in seen:
            continue
        seen.add(refname)
        branches.append(refname)
    logger.debug("Total branch(es) in %s: %d", repo_path, len(branches))
    return branches
