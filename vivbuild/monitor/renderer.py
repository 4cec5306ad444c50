"""Rich terminal renderer for vivbuild.

Turns verification results, estimates, host reports, resource samples and
build reports into Rich renderables, with an optional continuous
``Rich.Live`` resource monitor.

Color scheme
------------
- green     : VERIFIED
- red       : MISMATCH
- yellow    : NO_REFERENCE, SKIPPED
- cyan      : COMPUTED
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)
from rich.table import Table
from rich.text import Text

from vivbuild.core.progress import format_duration
from vivbuild.models.resources import human_size
from vivbuild.models.verification import VerificationResult, VerificationStatus

if TYPE_CHECKING:
    from vivbuild.core.orchestrator import BuildReport
    from vivbuild.core.system_info import Section
    from vivbuild.models.progress import ProgressSnapshot
    from vivbuild.models.resources import BuildEstimate, ResourceSample


# ---------------------------------------------------------------------------
# Status -> Rich style mapping
# ---------------------------------------------------------------------------

_STATUS_STYLES: dict[VerificationStatus, str] = {
    VerificationStatus.VERIFIED: "green",
    VerificationStatus.MISMATCH: "red",
    VerificationStatus.NO_REFERENCE: "yellow",
    VerificationStatus.SKIPPED: "yellow",
    VerificationStatus.COMPUTED: "cyan",
}

_STATUS_TITLES: dict[VerificationStatus, str] = {
    VerificationStatus.VERIFIED: "SHA512 verification PASSED - Installer integrity confirmed",
    VerificationStatus.MISMATCH: "SHA512 verification FAILED - Installer may be corrupted",
    VerificationStatus.NO_REFERENCE: "Digests file not found - Installer integrity not verified",
    VerificationStatus.SKIPPED: "SHA512 verification skipped",
    VerificationStatus.COMPUTED: "SHA512 digest computed",
}


class BuildRenderer:
    """Renders vivbuild results as Rich terminal output.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def render_verification(self, result: VerificationResult) -> Panel:
        style = _STATUS_STYLES[result.status]
        table = Table.grid(padding=(0, 2))
        table.add_column(style="bold")
        table.add_column(overflow="fold")
        table.add_row("Artifact", str(result.artifact_path))
        table.add_row("Size", f"{human_size(result.size_bytes)} ({result.size_bytes:,} bytes)")
        if result.digest_path is not None:
            table.add_row("Digests file", str(result.digest_path))
        if result.computed_digest:
            table.add_row("Calculated", result.computed_digest)
        if result.matched_digest:
            table.add_row("Expected", f"[green]{result.matched_digest}[/green]")

        parts: list = [table]
        if result.status == VerificationStatus.MISMATCH:
            parts.append(Text(""))
            if result.candidates:
                parts.append(
                    Text.from_markup(
                        f"[bold]Available hashes in digests file ({len(result.candidates)}):[/bold]"
                    )
                )
                for candidate in result.candidates:
                    parts.append(Text(f"  {candidate}", style="dim", overflow="fold"))
            else:
                parts.append(Text("No SHA512 hashes found in digests file.", style="yellow"))

        return Panel(
            Group(*parts),
            title=f"[bold {style}]{_STATUS_TITLES[result.status]}[/bold {style}]",
            border_style=style,
            padding=(1, 2),
        )

    def print_verification(self, result: VerificationResult) -> None:
        self.console.print(self.render_verification(result))

    def hashing_progress(self) -> Progress:
        """Progress bar for long-running hashes and downloads."""
        return Progress(
            TextColumn("[bold cyan]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            console=self.console,
            transient=True,
        )

    # ------------------------------------------------------------------
    # Estimate and host reports
    # ------------------------------------------------------------------

    def render_estimate(self, estimate: BuildEstimate) -> Panel:
        profile = estimate.profile
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("Phase")
        table.add_column("Base (min)", justify="right")
        for phase, minutes in estimate.base_minutes.items():
            table.add_row(phase, str(minutes))
        table.add_row("[bold]Total base time[/bold]", f"[bold]{estimate.total_base_minutes}[/bold]")

        factors = Table(show_header=True, header_style="bold cyan", expand=True)
        factors.add_column("Factor", width=10)
        factors.add_column("x", justify="right", width=6)
        factors.add_column("Note")
        for f in estimate.factors:
            colour = "green" if f.factor < 1 else "red" if f.factor > 1 else "white"
            factors.add_row(f.name, f"[{colour}]{f.factor:.2f}[/{colour}]", f.note)

        summary = Text.from_markup(
            "\n".join([
                f"[bold]System:[/bold] {profile.cpu_cores} cores, {profile.ram_gb}GB RAM, "
                f"{profile.storage_gb}GB free, {profile.runtime} "
                f"{profile.runtime_version or '(version unknown)'}",
                "",
                f"[bold green]ESTIMATED BUILD TIME: {estimate.estimated_hours} hours "
                f"({int(estimate.estimated_minutes)} minutes)[/bold green]",
                f"[bold]EXPECTED RANGE:[/bold] {estimate.best_case_hours}-"
                f"{estimate.worst_case_hours} hours",
                "",
                "[dim]Subsequent builds are typically 30-60% faster (cached layers).",
                "Clean builds use the full estimate. Add 10-20% for network issues.[/dim]",
            ])
        )
        return Panel(
            Group(table, Text(""), factors, Text(""), summary),
            title="[bold]Build Time Estimation[/bold]",
            border_style="blue",
            padding=(1, 2),
        )

    def print_estimate(self, estimate: BuildEstimate) -> None:
        self.console.print(self.render_estimate(estimate))

    def print_sections(self, sections: list[Section]) -> None:
        for title, rows in sections:
            table = Table(title=f"[bold]{title}[/bold]", show_header=False, expand=True)
            table.add_column("Item", style="cyan", min_width=24)
            table.add_column("Value", overflow="fold")
            for label, value in rows:
                table.add_row(label, value)
            self.console.print(table)

    # ------------------------------------------------------------------
    # Resource monitoring
    # ------------------------------------------------------------------

    def render_resources(
        self,
        sample: ResourceSample,
        images: int | None = None,
        containers: int | None = None,
    ) -> Panel:
        table = Table.grid(padding=(0, 2))
        table.add_column(style="bold")
        table.add_column()
        table.add_row("Memory Usage", sample.memory_display())
        table.add_row("Disk Usage", sample.disk_display())
        table.add_row("Cache Size", human_size(sample.cache_size))
        if images is not None:
            table.add_row("Container Images", str(images))
        if containers is not None:
            table.add_row("Containers", str(containers))
        stamp = sample.timestamp.astimezone().strftime("%Y-%m-%d %H:%M:%S")
        return Panel(
            table,
            title="[bold]Real-time Resource Monitoring[/bold]",
            subtitle=f"{stamp}  |  Ctrl+C to stop",
            border_style="blue",
            padding=(1, 2),
        )

    def render_live(
        self,
        frame: Callable[[], Panel],
        *,
        refresh_seconds: float = 5.0,
    ) -> None:
        """Continuously redraw ``frame()`` until Ctrl+C."""
        interval = max(refresh_seconds, 0.1)
        with Live(console=self.console, refresh_per_second=max(1 / interval, 0.2)) as live:
            try:
                while True:
                    live.update(frame())
                    time.sleep(interval)
            except KeyboardInterrupt:
                live.update(frame())

    # ------------------------------------------------------------------
    # Build progress and report
    # ------------------------------------------------------------------

    def print_progress(self, snapshot: ProgressSnapshot | None) -> None:
        if snapshot is None:
            self.console.print("[dim]No build in progress[/dim]")
            return
        if snapshot.current_step is None:
            self.console.print("[dim]No active build step found[/dim]")
        else:
            elapsed = snapshot.elapsed_seconds(datetime.now(timezone.utc))
            self.console.print(f"[bold]Current Build Step:[/bold] {snapshot.current_step}")
            self.console.print(f"[bold]Elapsed Time:[/bold] {format_duration(elapsed)}")
        if snapshot.log_file is not None:
            self.console.print(f"[bold]Log File:[/bold] {snapshot.log_file}")
        if snapshot.completed:
            table = Table(show_header=True, header_style="bold cyan")
            table.add_column("Completed step")
            table.add_column("Duration", justify="right")
            for record in snapshot.completed:
                table.add_row(record.name, format_duration(record.duration_seconds))
            self.console.print(table)

    def print_build_report(self, report: BuildReport, runtime: str) -> None:
        lines = [
            "[bold green]Build process completed successfully![/bold green]",
            "",
            f"[bold]Image:[/bold]      {report.image_name}",
            f"[bold]Size:[/bold]       {report.image_size or 'unknown'}",
            f"[bold]Smoke test:[/bold] "
            f"{'passed' if report.smoke_test_passed else '[yellow]failed[/yellow]'}",
            f"[bold]Duration:[/bold]   {format_duration(report.total_seconds)}",
            f"[bold]Log:[/bold]        {report.log_file}",
        ]
        if report.export_path is not None:
            # The sidecar names the bare file, so the check runs from its directory.
            checksum_name = report.checksum_path.name if report.checksum_path else ""
            lines += [
                "",
                f"[bold]Export file:[/bold] {report.export_path}",
                f"[bold]Checksum:[/bold]    {report.checksum_path}",
                "",
                "[dim]To load this image on another machine:[/dim]",
                f"  {runtime} load -i {report.export_path}",
                "[dim]To verify integrity:[/dim]",
                f"  cd {report.export_path.parent} && sha256sum -c {checksum_name}",
            ]
        lines += ["", f"[dim]You can now run: {runtime} run -it {report.image_name}[/dim]"]
        self.console.print(
            Panel(
                "\n".join(lines),
                title="[bold]Vivado Container Build[/bold]",
                border_style="green",
                padding=(1, 2),
            )
        )
