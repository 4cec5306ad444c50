"""``vivbuild build``: build the Vivado container image end to end."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel

from vivbuild.cli.commands._common import (
    EXIT_FAILED,
    EXIT_IO_ERROR,
    EXIT_MISSING_ARTIFACT,
    EXIT_NO_REFERENCE,
    resolve_mode,
)
from vivbuild.config import BuildSettings
from vivbuild.core.container_runtime import ContainerRuntimeError
from vivbuild.core.orchestrator import BuildOrchestrator, BuildStepError
from vivbuild.core.verifier import (
    DigestMismatchError,
    MissingArtifactError,
    MissingDigestFileError,
    VerificationIOError,
)
from vivbuild.models.build import RuntimeName
from vivbuild.monitor.renderer import BuildRenderer

console = Console()


def build_cmd(
    clean: bool = typer.Option(False, "--clean", "-c", help="Build without using the layer cache."),
    pull: bool = typer.Option(False, "--pull", "-p", help="Force pull the base image."),
    builder: str = typer.Option(None, "--builder", "-b", help="Buildx builder name (docker only)."),
    image: str = typer.Option(None, "--image", "-i", help="Name of the image to build."),
    log_file: Path = typer.Option(None, "--log", "-l", help="Build log file."),
    no_save: bool = typer.Option(False, "--no-save", "-s", help="Skip exporting the image to a tar file."),
    verify_flag: bool | None = typer.Option(
        None,
        "--verify/--no-verify",
        help="--verify fails when no digest file exists; --no-verify skips the check.",
        show_default=False,
    ),
    runtime: RuntimeName = typer.Option(None, "--runtime", "-r", help="Container runtime."),
    context: Path = typer.Option(None, "--context", help="Build context directory."),
) -> None:
    """Build the Vivado container image.

    Steps: raise file limits, check prerequisites, verify the installer,
    check the base image, set up the builder, build, smoke test and export.
    Monitor a running build with [cyan]vivbuild progress[/cyan] or
    [cyan]vivbuild monitor[/cyan].
    """
    settings = BuildSettings()
    mode, strict = resolve_mode(verify_flag)
    config = settings.build_config(
        clean_build=clean,
        force_pull=pull,
        builder_name=builder,
        image_name=image,
        log_file=log_file,
        save_image=not no_save,
        verification_mode=mode,
        strict_verify=strict or None,
        runtime=runtime,
        context_dir=context,
    )

    console.print(f"[bold]Starting Vivado container build[/bold] ({config.runtime.value})")
    console.print(f"[dim]Log file: {config.log_file}[/dim]")

    renderer = BuildRenderer(console)
    orchestrator = BuildOrchestrator(config)
    try:
        report = orchestrator.run()
    except BuildStepError as exc:
        body = str(exc)
        if exc.hints:
            body += "\n\n" + "\n".join(f"- {hint}" for hint in exc.hints)
        console.print(
            Panel(body, title="[bold red]Build failed[/bold red]", border_style="red")
        )
        raise typer.Exit(code=EXIT_FAILED)
    except DigestMismatchError as exc:
        renderer.print_verification(exc.result)
        console.print(
            "[red]Delete the installer and download it again, "
            "or use --no-verify to skip (not recommended).[/red]"
        )
        raise typer.Exit(code=EXIT_FAILED)
    except MissingDigestFileError as exc:
        console.print(f"[bold red]{exc}[/bold red]")
        raise typer.Exit(code=EXIT_NO_REFERENCE)
    except MissingArtifactError as exc:
        console.print(f"[bold red]Installer not found:[/bold red] {exc}")
        raise typer.Exit(code=EXIT_MISSING_ARTIFACT)
    except VerificationIOError as exc:
        console.print(f"[bold red]I/O error during verification:[/bold red] {exc}")
        raise typer.Exit(code=EXIT_IO_ERROR)
    except ContainerRuntimeError as exc:
        console.print(f"[bold red]Container runtime error:[/bold red] {exc}")
        raise typer.Exit(code=EXIT_FAILED)

    renderer.print_build_report(report, config.runtime.value)
