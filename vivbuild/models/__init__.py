"""vivbuild data models: all Pydantic v2, all frozen (immutable)."""

from vivbuild.models.build import BuildConfig, InstallerSpec, RuntimeName
from vivbuild.models.progress import ProgressSnapshot, StepRecord
from vivbuild.models.resources import (
    BuildEstimate,
    EstimateFactor,
    ResourceSample,
    SystemProfile,
    human_size,
)
from vivbuild.models.verification import (
    VerificationMode,
    VerificationResult,
    VerificationStatus,
)

__all__ = [
    # build
    "BuildConfig",
    "InstallerSpec",
    "RuntimeName",
    # progress
    "ProgressSnapshot",
    "StepRecord",
    # resources
    "BuildEstimate",
    "EstimateFactor",
    "ResourceSample",
    "SystemProfile",
    "human_size",
    # verification
    "VerificationMode",
    "VerificationResult",
    "VerificationStatus",
]
