"""``vivbuild download``: fetch the Vivado installer from an internal mirror."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.panel import Panel

from vivbuild.cli.commands._common import EXIT_DOWNLOAD, resolve_mode, run_verification
from vivbuild.config import BuildSettings
from vivbuild.core.downloader import (
    DownloadError,
    DownloadOutcome,
    InstallerDownloader,
    ManualDownloadRequired,
)
from vivbuild.models.resources import human_size
from vivbuild.monitor.renderer import BuildRenderer

console = Console()


def download_cmd(
    version: str = typer.Option(None, "--version", "-v", help="Vivado version (e.g. 2025.1)."),
    update: str = typer.Option(None, "--update", "-u", help="Update file name to fetch as well."),
    internal: str = typer.Option(None, "--internal", "-i", help="Internal mirror base URL."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Re-download existing files without asking."),
    verify_flag: bool | None = typer.Option(
        None,
        "--verify/--no-verify",
        help="--verify fails when no digest file exists; --no-verify skips the check.",
        show_default=False,
    ),
) -> None:
    """Download the Vivado installer (and optional update) into the installer directory.

    Without an internal mirror the installer must be fetched manually from
    the vendor site; the command then explains where to put it.
    """
    settings = BuildSettings()
    spec = settings.installer_spec(version=version, update=update, internal_url=internal)

    console.print(f"[bold]Vivado version:[/bold] {spec.version}")
    console.print(f"[bold]Installer:[/bold]      {spec.installer_name}")
    if spec.update:
        console.print(f"[bold]Update:[/bold]         {spec.update}")
    console.print(f"[bold]Download URL:[/bold]   {spec.internal_url or '(manual download)'}")

    renderer = BuildRenderer(console)
    outcomes: list[DownloadOutcome] = []
    try:
        with InstallerDownloader(
            spec,
            timeout=settings.download_timeout_seconds,
            public_url=settings.public_download_url,
        ) as downloader:
            targets = [spec.installer_name] + ([spec.update] if spec.update else [])
            for name in targets:
                path = spec.installer_dir / name
                overwrite = (
                    path.exists()
                    and bool(spec.internal_url)
                    and (yes or typer.confirm(f"{path} already exists. Re-download?", default=False))
                )
                with renderer.hashing_progress() as bar:
                    task = bar.add_task(name, total=None)

                    def advance(n: int, total: int | None) -> None:
                        bar.update(task, advance=n, total=total)

                    outcomes.append(downloader.fetch(name, overwrite=overwrite, progress=advance))

            digests = downloader.fetch_digests(overwrite=yes and bool(spec.internal_url))
            if digests is not None:
                outcomes.append(digests)
    except ManualDownloadRequired as exc:
        console.print(
            Panel(
                f"{exc}\n\nDownload URL: {exc.public_url}\n"
                f"Target directory: {exc.target_dir}",
                title="[bold yellow]Manual download required[/bold yellow]",
                border_style="yellow",
            )
        )
        raise typer.Exit(code=EXIT_DOWNLOAD)
    except DownloadError as exc:
        console.print(f"[bold red]Download failed:[/bold red] {exc}")
        raise typer.Exit(code=EXIT_DOWNLOAD)

    for outcome in outcomes:
        action = "downloaded" if outcome.downloaded else "already present"
        console.print(
            f"  [green]OK[/green] {outcome.path} ({human_size(outcome.size_bytes)}, {action})"
        )

    mode, strict = resolve_mode(verify_flag)
    run_verification(
        console,
        spec.installer_path,
        spec.digest_path,
        mode,
        strict=strict or (settings.strict_verify and verify_flag is not False),
    )
    console.print("\n[bold green]Ready to build.[/bold green] Run: [cyan]vivbuild build[/cyan]")
