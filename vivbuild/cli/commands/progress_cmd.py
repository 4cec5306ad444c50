"""``vivbuild progress``: show the step a running build is on."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from vivbuild.config import BuildSettings
from vivbuild.core.progress import read_progress
from vivbuild.monitor.renderer import BuildRenderer

console = Console()


def progress_cmd(
    progress_file: Path = typer.Option(
        None,
        "--progress-file",
        help="Progress file published by a running build.",
    ),
) -> None:
    """Show the current build step, its elapsed time and the completed steps."""
    path = progress_file or BuildSettings().progress_file
    BuildRenderer(console).print_progress(read_progress(path))
