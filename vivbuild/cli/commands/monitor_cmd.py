"""``vivbuild monitor``: live memory, disk, cache and container counts."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel

from vivbuild.config import BuildSettings
from vivbuild.core.container_runtime import ContainerRuntime
from vivbuild.core.sampler import take_sample
from vivbuild.models.build import RuntimeName
from vivbuild.monitor.renderer import BuildRenderer

console = Console()


def monitor_cmd(
    interval: float = typer.Option(None, "--interval", "-n", help="Refresh interval in seconds."),
    cache_dir: Path = typer.Option(None, "--cache-dir", help="Build cache directory to measure."),
    runtime: RuntimeName = typer.Option(None, "--runtime", "-r", help="Container runtime to query."),
    once: bool = typer.Option(False, "--once", help="Print a single sample and exit."),
) -> None:
    """Monitor host resources while a build runs. Press Ctrl+C to stop."""
    settings = BuildSettings()
    cache = cache_dir or settings.cache_dir
    engine = ContainerRuntime(runtime or settings.container_runtime)
    counts = engine.is_installed()
    renderer = BuildRenderer(console)

    def frame() -> Panel:
        sample = take_sample(cache_dir=cache)
        if not counts:
            return renderer.render_resources(sample)
        return renderer.render_resources(
            sample, engine.count_images(), engine.count_containers()
        )

    if once:
        console.print(frame())
        return
    renderer.render_live(frame, refresh_seconds=interval or settings.live_refresh_seconds)
