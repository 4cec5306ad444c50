"""Installer integrity verification.

Hashes an artifact with SHA-512 and checks the result against every digest
found in a companion digest file. The digest file is treated as free-form
text; any 128-hex-character run is a candidate.

Outcomes
--------
- ``verified``      : the computed digest equals one of the candidates.
- ``no_reference``  : the digest file does not exist.
- ``mismatch``      : the digest matches none of the candidates.
- ``skipped``       : hashing bypassed (``VerificationMode.SKIP``).
- ``computed``      : digest computed, no comparison (``VerificationMode.COMPUTE_ONLY``).

A missing artifact and an I/O failure are raised, never folded into a result.
There are no retries: re-hashing a multi-hundred-gigabyte file is left to
the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from vivbuild.core.hasher import DEFAULT_CHUNK_SIZE, extract_digests, file_digest
from vivbuild.models.verification import (
    VerificationMode,
    VerificationResult,
    VerificationStatus,
)

logger = logging.getLogger(__name__)

ALGORITHM = "sha512"


class VerificationError(RuntimeError):
    """Base class for integrity verification failures."""


class MissingArtifactError(VerificationError):
    """Raised when the artifact to verify is absent, empty or not a file."""

    def __init__(self, path: Path, reason: str = "not found") -> None:
        self.path = Path(path)
        super().__init__(f"Artifact {reason}: {self.path}")


class MissingDigestFileError(VerificationError):
    """Raised in strict mode when no digest file is available."""

    def __init__(self, result: VerificationResult) -> None:
        self.result = result
        super().__init__(
            f"Digest file not found: {result.digest_path}. "
            "Strict verification requires a reference digest."
        )


class DigestMismatchError(VerificationError):
    """Raised when the computed digest matches none of the reference digests."""

    def __init__(self, result: VerificationResult) -> None:
        self.result = result
        super().__init__(
            f"SHA-512 of {result.artifact_path} ({result.computed_digest}) matches "
            f"none of {len(result.candidates)} digest(s) in {result.digest_path}"
        )


class VerificationIOError(VerificationError):
    """Raised when the artifact or digest file cannot be read."""

    def __init__(self, path: Path, cause: OSError) -> None:
        self.path = Path(path)
        self.cause = cause
        super().__init__(f"Cannot read {self.path}: {cause}")


def _check_artifact(artifact_path: Path) -> int:
    """Return the artifact size, raising ``MissingArtifactError`` if unusable.

    Permission errors from an unsearchable parent directory surface as
    ``VerificationIOError``, not as a missing artifact.
    """
    try:
        exists = artifact_path.exists()
        is_file = exists and artifact_path.is_file()
        size = artifact_path.stat().st_size if is_file else 0
    except OSError as exc:
        raise VerificationIOError(artifact_path, exc) from exc
    if not exists:
        raise MissingArtifactError(artifact_path)
    if not is_file:
        raise MissingArtifactError(artifact_path, "is not a regular file")
    if size == 0:
        raise MissingArtifactError(artifact_path, "is empty")
    return size


def read_candidates(digest_path: Path) -> list[str] | None:
    """Return the SHA-512 digests in ``digest_path``, or ``None`` if it is absent."""
    try:
        if not digest_path.exists():
            return None
        text = digest_path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise VerificationIOError(digest_path, exc) from exc
    return extract_digests(text, ALGORITHM)


def verify(
    artifact_path: Path,
    digest_path: Path | None,
    mode: VerificationMode = VerificationMode.VERIFY,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    progress: Callable[[int], None] | None = None,
) -> VerificationResult:
    """Verify ``artifact_path`` against the digests listed in ``digest_path``.

    Parameters
    ----------
    artifact_path:
        The file to check. Must exist and be non-empty in every mode.
    digest_path:
        Companion digest file. A missing file (or ``None``) yields
        ``no_reference``; whether that is acceptable is the caller's policy
        (see ``enforce``).
    mode:
        ``VERIFY`` compares, ``SKIP`` bypasses hashing, ``COMPUTE_ONLY``
        reports the digest without comparing.
    progress:
        Called with the size of every chunk hashed.

    Raises
    ------
    MissingArtifactError
        The artifact is absent, empty or not a regular file.
    VerificationIOError
        The artifact or digest file could not be read.
    """
    artifact_path = Path(artifact_path)
    digest_path = Path(digest_path) if digest_path is not None else None
    size = _check_artifact(artifact_path)

    if mode == VerificationMode.SKIP:
        logger.warning("Skipping SHA-512 verification of %s", artifact_path)
        return VerificationResult(
            status=VerificationStatus.SKIPPED,
            artifact_path=artifact_path,
            digest_path=digest_path,
            size_bytes=size,
        )

    # Read the reference set first so an unreadable digest file fails fast,
    # before an hours-long hash.
    candidates: list[str] | None = None
    if mode == VerificationMode.VERIFY and digest_path is not None:
        candidates = read_candidates(digest_path)

    logger.info("Calculating SHA-512 of %s (%d bytes)", artifact_path, size)
    try:
        computed = file_digest(
            artifact_path, ALGORITHM, chunk_size=chunk_size, progress=progress
        )
    except OSError as exc:
        raise VerificationIOError(artifact_path, exc) from exc
    logger.info("Calculated SHA-512: %s", computed)

    if mode == VerificationMode.COMPUTE_ONLY:
        return VerificationResult(
            status=VerificationStatus.COMPUTED,
            artifact_path=artifact_path,
            digest_path=digest_path,
            computed_digest=computed,
            size_bytes=size,
        )

    if candidates is None:
        logger.warning(
            "Digest file not found: %s. Installer integrity not verified.", digest_path
        )
        return VerificationResult(
            status=VerificationStatus.NO_REFERENCE,
            artifact_path=artifact_path,
            digest_path=digest_path,
            computed_digest=computed,
            size_bytes=size,
        )

    if computed in candidates:
        logger.info("SHA-512 verification passed for %s", artifact_path)
        return VerificationResult(
            status=VerificationStatus.VERIFIED,
            artifact_path=artifact_path,
            digest_path=digest_path,
            computed_digest=computed,
            matched_digest=computed,
            candidates=candidates,
            size_bytes=size,
        )

    logger.error(
        "SHA-512 verification failed for %s: no match among %d candidate(s)",
        artifact_path,
        len(candidates),
    )
    for candidate in candidates:
        logger.error("  candidate: %s", candidate)
    return VerificationResult(
        status=VerificationStatus.MISMATCH,
        artifact_path=artifact_path,
        digest_path=digest_path,
        computed_digest=computed,
        candidates=candidates,
        size_bytes=size,
    )


def enforce(result: VerificationResult, *, strict: bool = False) -> VerificationResult:
    """Apply the proceed/abort policy to a verification result.

    A mismatch is always fatal. A missing digest file is fatal only when
    ``strict`` is set; otherwise the result is returned and the build
    proceeds unverified.
    """
    if result.status == VerificationStatus.MISMATCH:
        raise DigestMismatchError(result)
    if result.status == VerificationStatus.NO_REFERENCE and strict:
        raise MissingDigestFileError(result)
    return result
