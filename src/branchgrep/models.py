from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Literal

from .errors import ConfigError

OutcomeStatus = Literal["searched", "skipped", "timed_out"]


def derive_repository_name(url: str) -> str:
    """Return the local directory name for a repository URL.

    The name is the last path segment with its trailing extension removed,
    e.g. ``https://example.com/org/sample.git`` -> ``sample``.

    Raises:
        ConfigError: If the URL has no path separator, its last segment has no
            extension separator, or the derived name is empty.
    """
    slash = url.rfind("/")
    if slash < 0:
        raise ConfigError(f"Repository URL has no path separator: {url!r}")
    segment = url[slash + 1 :]
    dot = segment.rfind(".")
    if dot < 0:
        raise ConfigError(f"Repository URL has no extension in its last segment: {url!r}")
    name = segment[:dot]
    if not name:
        raise ConfigError(f"Repository URL yields an empty local name: {url!r}")
    return name


@dataclass(frozen=True)
class RepositoryHandle:
    url: str
    name: str
    path: Path

    @classmethod
    def for_url(cls, url: str, clone_dir: Path) -> "RepositoryHandle":
        name = derive_repository_name(url)
        return cls(url=url, name=name, path=clone_dir / name)


@dataclass(frozen=True)
class MatchRecord:
    repository: str
    branch: str
    term: str
    path: str
    line_number: int
    content: str

    def as_row(self) -> list[str]:
        return [
            self.repository,
            self.branch,
            self.term,
            self.path,
            str(self.line_number),
            self.content,
        ]


@dataclass
class RepositoryOutcome:
    url: str
    name: str
    status: OutcomeStatus = "searched"
    matches: list[MatchRecord] = field(default_factory=list)
    branches_total: int = 0
    branches_searched: int = 0
    branches_skipped: int = 0
    error: str | None = None
    elapsed_s: float = 0.0


@dataclass
class ScanSummary:
    total_repositories: int
    searched: int
    skipped: int
    timed_out: int
    total_matches: int
    branches_searched: int
    branches_skipped: int
    windows: int
    elapsed_s: float
    output_file: str | None = None

    @classmethod
    def from_outcomes(
        cls,
        outcomes: list[RepositoryOutcome],
        *,
        windows: int,
        elapsed_s: float,
        output_file: str | None = None,
    ) -> "ScanSummary":
        return cls(
            total_repositories=len(outcomes),
            searched=sum(1 for o in outcomes if o.status == "searched"),
            skipped=sum(1 for o in outcomes if o.status == "skipped"),
            timed_out=sum(1 for o in outcomes if o.status == "timed_out"),
            total_matches=sum(len(o.matches) for o in outcomes),
            branches_searched=sum(o.branches_searched for o in outcomes),
            branches_skipped=sum(o.branches_skipped for o in outcomes),
            windows=windows,
            elapsed_s=elapsed_s,
            output_file=output_file,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
