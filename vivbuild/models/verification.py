"""Installer integrity verification models."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, model_validator


class VerificationMode(str, Enum):
    """How the verifier treats the artifact."""

    VERIFY = "verify"
    SKIP = "skip"
    COMPUTE_ONLY = "compute_only"


class VerificationStatus(str, Enum):
    """Outcome of a single verification pass."""

    VERIFIED = "verified"
    NO_REFERENCE = "no_reference"
    MISMATCH = "mismatch"
    SKIPPED = "skipped"
    COMPUTED = "computed"


class VerificationResult(BaseModel):
    """Result of checking an artifact against its digest file.

    ``candidates`` holds every digest extracted from the digest file, in
    order of first appearance, so a mismatch can be diagnosed against the
    full reference set rather than a single expected value.
    """

    model_config = ConfigDict(frozen=True)

    status: VerificationStatus
    artifact_path: Path
    digest_path: Path | None = None
    algorithm: str = "sha512"
    computed_digest: str | None = None
    matched_digest: str | None = None
    candidates: list[str] = []
    size_bytes: int = 0

    @model_validator(mode="after")
    def _verified_requires_match(self) -> VerificationResult:
        if self.status == VerificationStatus.VERIFIED:
            if not self.computed_digest or not self.matched_digest:
                raise ValueError("verified result requires computed and matched digests")
            if self.matched_digest.lower() != self.computed_digest.lower():
                raise ValueError("matched digest differs from computed digest")
            if self.matched_digest.lower() not in {c.lower() for c in self.candidates}:
                raise ValueError("matched digest is not among the extracted candidates")
        elif self.matched_digest is not None:
            raise ValueError(f"{self.status.value} result cannot carry a matched digest")
        return self

    @property
    def passed(self) -> bool:
        """True when the pipeline may proceed without any caveat."""
        return self.status in (
            VerificationStatus.VERIFIED,
            VerificationStatus.SKIPPED,
            VerificationStatus.COMPUTED,
        )
