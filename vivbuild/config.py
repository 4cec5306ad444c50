"""Build configuration, driven by the environment.

Centralized settings using pydantic-settings. Reads from a .env file and
VIVBUILD_* environment variables. The installer selectors also honour the
VIVADO_VERSION, VIVADO_UPDATE and INTERNAL_DOWNLOAD_URL variables used by
existing download workflows.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from vivbuild.models.build import BuildConfig, InstallerSpec, RuntimeName, default_log_file
from vivbuild.models.verification import VerificationMode


class BuildSettings(BaseSettings):
    """Build settings with environment variable overrides.

    Examples
    --------
    Override via environment::

        export VIVADO_VERSION=2024.2
        export INTERNAL_DOWNLOAD_URL=https://mirror.example.com/xilinx
        export VIVBUILD_CONTAINER_RUNTIME=docker
        export VIVBUILD_LOG_LEVEL=DEBUG

    Or via .env file::

        VIVBUILD_IMAGE_NAME=my-vivado
        VIVBUILD_STRICT_VERIFY=true
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="VIVBUILD_",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    log_level: str = "INFO"

    # Installer selection
    vivado_version: str = Field(
        "2025.1",
        validation_alias=AliasChoices("VIVBUILD_VIVADO_VERSION", "VIVADO_VERSION"),
    )
    vivado_update: str = Field(
        "",
        validation_alias=AliasChoices("VIVBUILD_VIVADO_UPDATE", "VIVADO_UPDATE"),
    )
    internal_download_url: str = Field(
        "",
        validation_alias=AliasChoices(
            "VIVBUILD_INTERNAL_DOWNLOAD_URL", "INTERNAL_DOWNLOAD_URL"
        ),
    )
    installer_build_stamp: str = "0530_0145"
    installer_dir: Path = Path("vivado-installer")
    public_download_url: str = "https://www.xilinx.com/support/download.html"

    # Image build
    image_name: str = "vyges-vivado"
    base_image: str = "ubuntu:24.04"
    builder_name: str = "vyges-builder"
    container_runtime: RuntimeName = RuntimeName.PODMAN
    context_dir: Path = Path(".")
    cache_dir: Path = Field(default_factory=lambda: Path.home() / ".container-cache")
    log_dir: Path = Path("logs")
    progress_file: Path = Path("logs/build-progress.json")
    export_dir: Path = Path("exports")

    # Verification policy
    strict_verify: bool = False

    # Monitoring and limits
    monitor_interval: float = 30.0
    live_refresh_seconds: float = 5.0
    open_files_limit: int = 65536

    # Downloads
    download_timeout_seconds: float = 60.0

    def installer_spec(self, **overrides: Any) -> InstallerSpec:
        """Build an ``InstallerSpec`` from these settings plus CLI overrides.

        ``None`` overrides are ignored so optional CLI flags can be passed
        through unconditionally.
        """
        values: dict[str, Any] = {
            "version": self.vivado_version,
            "build_stamp": self.installer_build_stamp,
            "update": self.vivado_update,
            "installer_dir": self.installer_dir,
            "internal_url": self.internal_download_url.rstrip("/"),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return InstallerSpec(**values)

    def build_config(self, **overrides: Any) -> BuildConfig:
        """Build a frozen ``BuildConfig`` from these settings plus CLI overrides."""
        values: dict[str, Any] = {
            "image_name": self.image_name,
            "base_image": self.base_image,
            "builder_name": self.builder_name,
            "runtime": self.container_runtime,
            "context_dir": self.context_dir,
            "cache_dir": self.cache_dir,
            "log_file": self.log_dir / default_log_file().name,
            "progress_file": self.progress_file,
            "export_dir": self.export_dir,
            "strict_verify": self.strict_verify,
            "verification_mode": VerificationMode.VERIFY,
            "monitor_interval": self.monitor_interval,
            "open_files_limit": self.open_files_limit,
            "installer": self.installer_spec(),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return BuildConfig(**values)


# Module-level singleton; import as `from vivbuild.config import settings`
settings = BuildSettings()
