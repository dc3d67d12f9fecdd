"""Bundlecraft CLI — main entry point and shared utilities."""

from __future__ import annotations

import sys

import click
from rich.console import Console

from bundlecraft.assembly.matching import get_scorer
from bundlecraft.config import Settings, get_settings
from bundlecraft.core.config import AssemblyConfig
from bundlecraft.core.errors import ConfigError
from bundlecraft.core.logging import AssemblyLogger, Verbosity

console = Console()

STATUS_STYLES = {
    "AUTO": "green",
    "DOWNGRADED_TO_MANUAL": "yellow",
    "MANUAL": "red",
}


def get_status_style(status: str) -> str:
    """Return Rich style string for a pipeline status."""
    return STATUS_STYLES.get(status, "white")


def load_config(threshold: float | None = None) -> tuple[Settings, AssemblyConfig]:
    """Settings from env/.env plus the assembly config derived from them.

    Exits with an error message when the configuration is invalid.
    """
    try:
        settings = get_settings()
        config = AssemblyConfig.from_settings(settings)
        if threshold is not None:
            config = AssemblyConfig.from_dict({**config.to_dict(), "similarity_threshold": threshold})
        get_scorer(config.scorer)
    except (ConfigError, ValueError) as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        sys.exit(1)
    return settings, config


def make_logger(settings: Settings, verbose: int) -> AssemblyLogger:
    """Build the run logger; the -v count wins over the configured verbosity."""
    level = min(max(verbose, settings.verbosity), int(Verbosity.DEBUG))
    settings.ensure_log_dir()
    return AssemblyLogger(verbosity=Verbosity(level), log_dir=settings.log_dir)


@click.group()
def main():
    """Bundlecraft — deterministic bundle assembly from component outputs."""
    pass


def cli():
    """Entrypoint that loads .env before running the CLI."""
    from dotenv import load_dotenv

    load_dotenv()
    main()


# Import subcommand modules to register commands
from bundlecraft.cli.assemble_commands import assemble  # noqa: E402, F401
from bundlecraft.cli.batch_commands import batch  # noqa: E402, F401
from bundlecraft.cli.match_commands import match  # noqa: E402, F401

main.add_command(assemble)
main.add_command(batch)
main.add_command(match)
