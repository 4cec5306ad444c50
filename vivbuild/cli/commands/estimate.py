"""``vivbuild estimate``: predict how long an image build will take on this host."""

from __future__ import annotations

import typer
from rich.console import Console

from vivbuild.config import BuildSettings
from vivbuild.core.container_runtime import ContainerRuntime
from vivbuild.core.estimator import estimate_build_time, profile_system
from vivbuild.models.build import RuntimeName
from vivbuild.monitor.renderer import BuildRenderer

console = Console()


def estimate_cmd(
    runtime: RuntimeName = typer.Option(None, "--runtime", "-r", help="Container runtime to estimate for."),
) -> None:
    """Estimate build time from CPU cores, RAM, free storage and runtime version."""
    name = runtime or BuildSettings().container_runtime
    engine = ContainerRuntime(name)
    version = engine.version() if engine.is_installed() else None
    if version is None:
        console.print(f"[yellow]{engine.binary} not found or not responding; assuming defaults.[/yellow]")

    profile = profile_system(engine.binary, version)
    BuildRenderer(console).print_estimate(estimate_build_time(profile))
