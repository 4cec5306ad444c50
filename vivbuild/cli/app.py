"""Main Typer application: imports and registers all CLI commands.

Entry point: ``vivbuild`` (configured via pyproject.toml project.scripts).

Commands: verify, download, build, estimate, info, progress, monitor.
"""

from __future__ import annotations

import logging

import typer
from rich.logging import RichHandler

from vivbuild.cli.commands.build import build_cmd
from vivbuild.cli.commands.download import download_cmd
from vivbuild.cli.commands.estimate import estimate_cmd
from vivbuild.cli.commands.info import info_cmd
from vivbuild.cli.commands.monitor_cmd import monitor_cmd
from vivbuild.cli.commands.progress_cmd import progress_cmd
from vivbuild.cli.commands.verify_cmd import verify_cmd
from vivbuild.config import settings

app = typer.Typer(
    name="vivbuild",
    help="vivbuild: Verified, monitored Vivado container image builds.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


def configure_logging(level: str) -> None:
    """Route log records to the terminal through a single RichHandler."""
    root = logging.getLogger()
    root.setLevel(level.upper())
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        root.addHandler(RichHandler(show_path=False, markup=False))


@app.callback()
def root(
    log_level: str = typer.Option(
        settings.log_level, "--log-level", help="DEBUG, INFO, WARNING or ERROR."
    ),
) -> None:
    """Verified, monitored Vivado container image builds."""
    configure_logging(log_level)


# Register subcommands
app.command(name="verify", help="Verify the installer SHA512 against its digest file.")(verify_cmd)
app.command(name="download", help="Download the Vivado installer from an internal mirror.")(download_cmd)
app.command(name="build", help="Build the Vivado container image.")(build_cmd)
app.command(name="estimate", help="Estimate build time for this host.")(estimate_cmd)
app.command(name="info", help="Show machine information and system limits.")(info_cmd)
app.command(name="progress", help="Show the current step of a running build.")(progress_cmd)
app.command(name="monitor", help="Live resource monitor.")(monitor_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
