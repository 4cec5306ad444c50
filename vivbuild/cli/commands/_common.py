"""Shared helpers for CLI commands: exit codes and the verification flow."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from vivbuild.core.hasher import write_digest_file
from vivbuild.core.verifier import (
    DigestMismatchError,
    MissingArtifactError,
    MissingDigestFileError,
    VerificationIOError,
    enforce,
    verify,
)
from vivbuild.models.verification import (
    VerificationMode,
    VerificationResult,
    VerificationStatus,
)
from vivbuild.monitor.renderer import BuildRenderer

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_MISSING_ARTIFACT = 3
EXIT_IO_ERROR = 4
EXIT_NO_REFERENCE = 5
EXIT_DOWNLOAD = 6


def resolve_mode(verify_flag: bool | None, compute_only: bool = False) -> tuple[VerificationMode, bool]:
    """Map ``--verify/--no-verify`` and ``--compute-only`` to (mode, strict).

    ``--verify`` demands a reference digest, ``--no-verify`` skips hashing,
    and neither verifies leniently.
    """
    if compute_only:
        return VerificationMode.COMPUTE_ONLY, False
    if verify_flag is False:
        return VerificationMode.SKIP, False
    return VerificationMode.VERIFY, bool(verify_flag)


def run_verification(
    console: Console,
    artifact: Path,
    digests: Path | None,
    mode: VerificationMode,
    *,
    strict: bool = False,
    write_digests: bool = False,
) -> VerificationResult:
    """Verify with a progress bar, print the result and apply the exit policy.

    Raises ``typer.Exit`` with a non-zero code on any fatal outcome.
    """
    renderer = BuildRenderer(console)
    try:
        total = artifact.stat().st_size if artifact.is_file() else None
    except OSError:
        # verify() reports the same failure as VerificationIOError
        total = None
    try:
        with renderer.hashing_progress() as bar:
            task = bar.add_task(f"SHA512 {artifact.name}", total=total)
            result = verify(
                artifact,
                digests,
                mode,
                progress=lambda n: bar.advance(task, n),
            )
    except MissingArtifactError as exc:
        console.print(f"[bold red]Installer not found:[/bold red] {exc}")
        raise typer.Exit(code=EXIT_MISSING_ARTIFACT)
    except VerificationIOError as exc:
        console.print(f"[bold red]I/O error during verification:[/bold red] {exc}")
        console.print("[dim]This is a filesystem problem, not a corrupted download.[/dim]")
        raise typer.Exit(code=EXIT_IO_ERROR)

    renderer.print_verification(result)

    if write_digests and result.status == VerificationStatus.COMPUTED and digests is not None:
        write_digest_file(digests, result.computed_digest or "", artifact.name)
        console.print(f"[green]Digest written to:[/green] {digests}")

    try:
        enforce(result, strict=strict)
    except DigestMismatchError:
        raise typer.Exit(code=EXIT_FAILED)
    except MissingDigestFileError as exc:
        console.print(f"[bold red]{exc}[/bold red]")
        raise typer.Exit(code=EXIT_NO_REFERENCE)

    if result.status == VerificationStatus.NO_REFERENCE:
        console.print(
            "[yellow]Proceeding without verification. "
            "Use --verify to require a digest file.[/yellow]"
        )
    return result
