import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from ..errors import ConfigError
from ..models import RepositoryHandle
from . import settings

logger = logging.getLogger(__name__)

_SECTION = "repository"

_KNOWN_KEYS = frozenset(
    {
        "names",
        "searchTerms",
        "searchCaseSensitive",
        "matchWord",
        "cloneDir",
        "cleanUpDir",
        "outputFile",
        "concurrentSearches",
        "repositoryTimeoutSeconds",
    }
)


@dataclass(frozen=True)
class SearchJobConfig:
    repositories: tuple[str, ...]
    search_terms: tuple[str, ...]
    clone_dir: Path
    output_file: Path
    case_sensitive: bool = False
    match_word: bool = False
    clean_up: bool = False
    concurrency: int = settings.DEFAULT_CONCURRENCY
    repository_timeout_seconds: float = settings.DEFAULT_REPOSITORY_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        if not self.repositories:
            raise ConfigError("At least one repository URL is required")
        if not self.search_terms:
            raise ConfigError("At least one search term is required")
        if self.concurrency < 1:
            raise ConfigError(f"Concurrency must be >= 1, got {self.concurrency}")
        if self.repository_timeout_seconds <= 0:
            raise ConfigError(
                f"Repository timeout must be > 0, got {self.repository_timeout_seconds}"
            )
        # Derive every handle now so malformed URLs and name clashes fail the run up front.
        self.handles()

    def handles(self) -> list[RepositoryHandle]:
        """Return one handle per configured repository, in configured order.

        Raises:
            ConfigError: If a URL cannot be mapped to a local name, or two URLs
                map to the same local directory.
        """
        handles: list[RepositoryHandle] = []
        owners: dict[str, str] = {}
        for url in self.repositories:
            handle = RepositoryHandle.for_url(url, self.clone_dir)
            previous = owners.get(handle.name)
            if previous is not None:
                raise ConfigError(
                    f"Repositories {previous!r} and {url!r} both map to local "
                    f"directory {handle.path}"
                )
            owners[handle.name] = url
            handles.append(handle)
        return handles

    def handle_for(self, url: str) -> RepositoryHandle:
        return RepositoryHandle.for_url(url, self.clone_dir)

    @classmethod
    def from_mapping(cls, data: Any, *, base_dir: Path | None = None) -> "SearchJobConfig":
        """Build a config from a decoded YAML document.

        Relative paths are resolved against ``base_dir`` (current directory
        when omitted).
        """
        if not isinstance(data, dict) or not isinstance(data.get(_SECTION), dict):
            raise ConfigError(f"Config must contain a '{_SECTION}' mapping")
        section: dict[str, Any] = data[_SECTION]

        unknown = sorted(set(section) - _KNOWN_KEYS)
        if unknown:
            logger.warning("Ignoring unknown config keys: %s", ", ".join(map(str, unknown)))

        root = base_dir if base_dir is not None else Path.cwd()

        clone_dir_raw = section.get("cloneDir")
        if clone_dir_raw is None:
            clone_dir = settings.DEFAULT_CLONE_DIR
        else:
            clone_dir = root / Path(_require_str(clone_dir_raw, "cloneDir")).expanduser()

        output_raw = section.get("outputFile")
        output_name = (
            settings.DEFAULT_OUTPUT_FILE
            if output_raw is None
            else _require_str(output_raw, "outputFile")
        )

        return cls(
            repositories=_require_str_list(section.get("names"), "names"),
            search_terms=_require_str_list(section.get("searchTerms"), "searchTerms"),
            clone_dir=clone_dir,
            output_file=root / Path(output_name).expanduser(),
            case_sensitive=_optional_bool(section, "searchCaseSensitive", False),
            match_word=_optional_bool(section, "matchWord", False),
            clean_up=_optional_bool(section, "cleanUpDir", False),
            concurrency=_optional_int(section, "concurrentSearches", settings.DEFAULT_CONCURRENCY),
            repository_timeout_seconds=_optional_number(
                section,
                "repositoryTimeoutSeconds",
                settings.DEFAULT_REPOSITORY_TIMEOUT_SECONDS,
            ),
        )


def load_job_config(path: str | Path) -> SearchJobConfig:
    """Read and validate a YAML job document.

    Raises:
        ConfigError: If the file is missing, unreadable, not valid YAML, or
            fails validation.
    """
    config_path = Path(path)
    logger.info("Reading config file: %s", config_path)
    try:
        with config_path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file not found: {config_path}") from exc
    except UnicodeDecodeError as exc:
        raise ConfigError(f"Config file {config_path} is not valid UTF-8: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {config_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc
    return SearchJobConfig.from_mapping(data)


def _require_str(value: Any, key: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"'{key}' must be a non-empty string")
    return value


def _require_str_list(value: Any, key: str) -> tuple[str, ...]:
    if value is None:
        raise ConfigError(f"'{key}' is required")
    if not isinstance(value, list):
        raise ConfigError(f"'{key}' must be a list of strings")
    items: list[str] = []
    for i, item in enumerate(value):
        # Repository URLs are trimmed; search terms are kept verbatim
        trimmed = item.strip() if isinstance(item, str) and key == "names" else item
        if not isinstance(trimmed, str) or not trimmed:
            raise ConfigError(f"'{key}[{i}]' must be a non-empty string")
        items.append(trimmed)
    return tuple(items)


def _optional_bool(section: dict[str, Any], key: str, default: bool) -> bool:
    value = section.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigError(f"'{key}' must be true or false")
    return value


def _optional_int(section: dict[str, Any], key: str, default: int) -> int:
    value = section.get(key)
    if value is None:
        return default
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"'{key}' must be an integer")
    return value


def _optional_number(section: dict[str, Any], key: str, default: float) -> float:
    value = section.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"'{key}' must be a number")
    return float(value)
