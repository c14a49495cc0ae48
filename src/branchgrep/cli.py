import logging
import os
import sys
from pathlib import Path

import click
from dotenv import load_dotenv

from .config import load_job_config, settings
from .errors import BranchgrepError, ConfigError
from .patterns import compile_search_patterns
from .scan import run_scan
from .scheduler import partition_windows

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    level_name = "DEBUG" if verbose else settings.LOG_LEVEL
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )


def _load_env() -> None:
    dotenv_path = os.getenv("BRANCHGREP_DOTENV_PATH", "").strip()
    if not dotenv_path:
        load_dotenv()
    elif Path(dotenv_path).expanduser().exists():
        load_dotenv(Path(dotenv_path).expanduser())
    else:
        click.echo(f"Warning: BRANCHGREP_DOTENV_PATH does not exist: {dotenv_path}", err=True)
        load_dotenv()  # Fallback to default search
    settings.load_env_settings()


@click.command()
@click.argument("config_path", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--dry-run", is_flag=True, help="Validate the config and show the plan, don't scan")
def main(config_path: Path, verbose: bool, dry_run: bool) -> None:
    """Search every remote branch of the configured repositories.

    CONFIG_PATH is the YAML job file listing repositories and search terms.
    """
    _load_env()
    _configure_logging(verbose)

    try:
        config = load_job_config(config_path)
        compile_search_patterns(
            config.search_terms,
            match_word=config.match_word,
            case_sensitive=config.case_sensitive,
        )
    except ConfigError as e:
        click.echo(f"Error loading config: {e}", err=True)
        sys.exit(1)

    if dry_run:
        handles = config.handles()
        windows = partition_windows(handles, config.concurrency)
        click.echo(f"[Dry Run] {len(handles)} repositories in {len(windows)} window(s)")
        for index, window in enumerate(windows, 1):
            click.echo(f"  window {index}:")
            for handle in window:
                click.echo(f"    - {handle.url} -> {handle.path}")
        click.echo(f"  terms:  {', '.join(config.search_terms)}")
        click.echo(f"  output: {config.output_file}")
        return

    try:
        summary = run_scan(config)
    except BranchgrepError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo("\n" + "=" * 50)
    click.echo("SCAN SUMMARY")
    click.echo("=" * 50)
    click.echo(f"Repositories:      {summary.total_repositories}")
    click.echo(f"Searched:          {summary.searched}")
    click.echo(f"Skipped:           {summary.skipped}")
    click.echo(f"Timed out:         {summary.timed_out}")
    click.echo(f"Branches searched: {summary.branches_searched}")
    click.echo(f"Branches skipped:  {summary.branches_skipped}")
    click.echo(f"Windows:           {summary.windows}")
    click.echo(f"Matches:           {summary.total_matches}")
    click.echo(f"Elapsed:           {summary.elapsed_s:.2f}s")
    click.echo(f"Report:            {summary.output_file or 'none (no results)'}")


if __name__ == "__main__":
    main()
