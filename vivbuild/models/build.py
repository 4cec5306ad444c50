"""Installer and build configuration models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from vivbuild.models.verification import VerificationMode

INSTALLER_PREFIX = "FPGAs_AdaptiveSoCs_Unified_SDI"
DIGEST_SUFFIX = ".digests"


class RuntimeName(str, Enum):
    """Supported container engines."""

    PODMAN = "podman"
    DOCKER = "docker"


def default_log_file() -> Path:
    """``logs/build-YYYYmmdd-HHMMSS.log`` for the current local time."""
    return Path("logs") / f"build-{datetime.now().strftime('%Y%m%d-%H%M%S')}.log"


class InstallerSpec(BaseModel):
    """Locates the Vivado installer, its digest file and an optional update.

    Layout: ``<installer_dir>/<name>.tar`` and ``<installer_dir>/<name>.tar.digests``.
    """

    model_config = ConfigDict(frozen=True)

    version: str = "2025.1"
    build_stamp: str = "0530_0145"
    update: str = ""
    installer_dir: Path = Path("vivado-installer")
    internal_url: str = ""

    @property
    def installer_name(self) -> str:
        return f"{INSTALLER_PREFIX}_{self.version}_{self.build_stamp}.tar"

    @property
    def digest_name(self) -> str:
        return f"{self.installer_name}{DIGEST_SUFFIX}"

    @property
    def installer_path(self) -> Path:
        return self.installer_dir / self.installer_name

    @property
    def digest_path(self) -> Path:
        return self.installer_dir / self.digest_name

    @property
    def update_path(self) -> Path | None:
        if not self.update:
            return None
        return self.installer_dir / self.update


class BuildConfig(BaseModel):
    """Everything one build invocation needs, passed explicitly to each step."""

    model_config = ConfigDict(frozen=True)

    image_name: str = "vyges-vivado"
    base_image: str = "ubuntu:24.04"
    builder_name: str = "vyges-builder"
    runtime: RuntimeName = RuntimeName.PODMAN
    context_dir: Path = Path(".")
    cache_dir: Path = Field(default_factory=lambda: Path.home() / ".container-cache")
    log_file: Path = Field(default_factory=default_log_file)
    progress_file: Path | None = Path("logs/build-progress.json")
    export_dir: Path = Path("exports")

    clean_build: bool = False
    force_pull: bool = False
    save_image: bool = True

    verification_mode: VerificationMode = VerificationMode.VERIFY
    strict_verify: bool = False

    monitor_interval: float = 30.0
    open_files_limit: int = 65536

    installer: InstallerSpec = InstallerSpec()
