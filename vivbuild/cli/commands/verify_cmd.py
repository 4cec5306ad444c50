"""``vivbuild verify [ARTIFACT]``: check installer integrity against its digest file.

Without arguments the installer location comes from the configured version
and installer directory: ``<installer-dir>/<name>.tar`` checked against
``<installer-dir>/<name>.tar.digests``.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from vivbuild.cli.commands._common import resolve_mode, run_verification
from vivbuild.config import BuildSettings
from vivbuild.models.build import DIGEST_SUFFIX

console = Console()


def verify_cmd(
    artifact: Path = typer.Argument(
        None,
        help="Artifact to verify. Defaults to the configured Vivado installer.",
        show_default=False,
    ),
    digests: Path = typer.Option(
        None,
        "--digests",
        "-d",
        help="Digest file. Defaults to <artifact>.digests.",
    ),
    verify_flag: bool | None = typer.Option(
        None,
        "--verify/--no-verify",
        help="--verify fails when no digest file exists; --no-verify skips hashing.",
        show_default=False,
    ),
    compute_only: bool = typer.Option(
        False,
        "--compute-only",
        help="Compute and print the SHA512 without comparing.",
    ),
    write_digests: bool = typer.Option(
        False,
        "--write-digests",
        help="Append the computed digest to the digest file. Implies --compute-only.",
    ),
    version: str = typer.Option(
        None,
        "--version",
        "-v",
        help="Vivado version used to locate the installer.",
    ),
    installer_dir: Path = typer.Option(
        None,
        "--installer-dir",
        help="Directory holding the installer and its digest file.",
    ),
) -> None:
    """Verify the SHA512 of an installer archive against its digest file.

    The digest file may hold any number of SHA512 hashes in free-form text;
    the artifact passes if its hash equals any of them.
    """
    settings = BuildSettings()
    spec = settings.installer_spec(version=version, installer_dir=installer_dir)

    if artifact is None:
        artifact = spec.installer_path
        digests = digests or spec.digest_path
    else:
        digests = digests or artifact.with_name(artifact.name + DIGEST_SUFFIX)

    if write_digests and not compute_only:
        console.print("[yellow]--write-digests implies --compute-only.[/yellow]")
        compute_only = True

    mode, strict = resolve_mode(verify_flag, compute_only)
    run_verification(
        console,
        artifact,
        digests,
        mode,
        strict=strict or (settings.strict_verify and verify_flag is not False),
        write_digests=write_digests,
    )
