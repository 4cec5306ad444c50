"""``vivbuild info``: machine information and system limits relevant to a build."""

from __future__ import annotations

import typer
from rich.console import Console

from vivbuild.config import BuildSettings
from vivbuild.core import system_info
from vivbuild.core.container_runtime import ContainerRuntime
from vivbuild.models.build import RuntimeName
from vivbuild.monitor.renderer import BuildRenderer

console = Console()


def info_cmd(
    runtime: RuntimeName = typer.Option(None, "--runtime", "-r", help="Container runtime to report on."),
) -> None:
    """Show hardware, OS, container runtime and kernel limits."""
    engine = ContainerRuntime(runtime or BuildSettings().container_runtime)
    installed = engine.is_installed()
    version = engine.version() if installed else None
    buildx = engine.buildx_version() if installed and engine.is_docker else None

    sections = [system_info.machine_info(engine.binary, version, buildx)]
    sections += system_info.system_limits()
    BuildRenderer(console).print_sections(sections)
