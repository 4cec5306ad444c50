"""Build orchestrator: the central coordinator for an image build.

The BuildOrchestrator wires together the BuildLog, BuildProgress,
ResourceSampler, ContainerRuntime and the installer verifier, and runs the
build steps in a fixed order:

1. Optimizing System Limits
2. Checking Prerequisites
3. Verifying Vivado Installer Integrity (unless verification is skipped)
4. Checking Base Image
5. Setting Up Container Builder
6. Building Container Image
7. Saving Container Image (unless disabled)

All configuration arrives through one frozen ``BuildConfig``; all progress
state lives on the orchestrator's ``BuildProgress``.
"""

from __future__ import annotations

import logging
import os
import re
import time
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from vivbuild.core import estimator, system_info
from vivbuild.core.container_runtime import ContainerRuntime, ContainerRuntimeError
from vivbuild.core.hasher import write_checksum_file
from vivbuild.core.progress import BuildLog, BuildProgress, format_duration
from vivbuild.core.sampler import ResourceSampler, directory_size
from vivbuild.core.verifier import enforce, verify
from vivbuild.models.build import BuildConfig
from vivbuild.models.progress import StepRecord
from vivbuild.models.resources import BuildEstimate, human_size
from vivbuild.models.verification import (
    VerificationMode,
    VerificationResult,
    VerificationStatus,
)

logger = logging.getLogger(__name__)

STEP_LIMITS = "Optimizing System Limits"
STEP_PREREQUISITES = "Checking Prerequisites"
STEP_VERIFY = "Verifying Vivado Installer Integrity"
STEP_BASE_IMAGE = "Checking Base Image"
STEP_BUILDER = "Setting Up Container Builder"
STEP_BUILD = "Building Container Image"
STEP_SAVE = "Saving Container Image"

_BANNER = "=" * 40


class BuildStepError(RuntimeError):
    """Raised when a build step cannot complete."""

    def __init__(self, step: str, message: str, hints: list[str] | None = None) -> None:
        self.step = step
        self.hints = hints or []
        super().__init__(f"{step}: {message}")


class BuildReport(BaseModel):
    """Summary of a completed build."""

    model_config = ConfigDict(frozen=True)

    image_name: str
    log_file: Path
    verification: VerificationResult | None = None
    image_size: str | None = None
    smoke_test_passed: bool | None = None
    export_path: Path | None = None
    checksum_path: Path | None = None
    steps: list[StepRecord] = []
    total_seconds: float = 0.0


def export_filename(image_name: str, when: datetime | None = None) -> str:
    """``<image>-YYYYmmdd-HHMMSS.tar`` with registry/tag separators flattened."""
    stamp = (when or datetime.now()).strftime("%Y%m%d-%H%M%S")
    safe = re.sub(r"[/:@]+", "-", image_name)
    return f"{safe}-{stamp}.tar"


def estimate_lines(estimate: BuildEstimate) -> list[str]:
    """Plain-text estimate for the build log."""
    lines = ["=== CONTAINER RUNTIME BUILD TIME ESTIMATION ==="]
    lines += [f"- {phase}: {minutes} minutes" for phase, minutes in estimate.base_minutes.items()]
    lines.append(f"- Total base time: {estimate.total_base_minutes} minutes")
    lines += [f"- {f.note}" for f in estimate.factors]
    lines.append(
        f"ESTIMATED BUILD TIME: {estimate.estimated_hours} hours "
        f"({int(estimate.estimated_minutes)} minutes)"
    )
    lines.append(
        f"EXPECTED RANGE: {estimate.best_case_hours}-{estimate.worst_case_hours} hours"
    )
    return lines


class BuildOrchestrator:
    """Runs one image build end to end.

    Parameters
    ----------
    config:
        Build configuration. Uses defaults if not provided.
    runtime:
        Container engine wrapper. Created from ``config.runtime`` if not provided.
    """

    def __init__(
        self,
        config: BuildConfig | None = None,
        runtime: ContainerRuntime | None = None,
    ) -> None:
        self.config = config or BuildConfig()
        self.runtime = runtime or ContainerRuntime(self.config.runtime)
        self.log = BuildLog(self.config.log_file)
        self.progress = BuildProgress(self.log, self.config.progress_file)
        self.sampler = ResourceSampler(
            self.log,
            self.config.cache_dir,
            interval=self.config.monitor_interval,
        )
        self.use_buildx = False
        self.runtime_version: str | None = None
        self.verification: VerificationResult | None = None

    # ------------------------------------------------------------------
    # Full run
    # ------------------------------------------------------------------

    def run(self) -> BuildReport:
        """Execute every step in order and return the build report.

        The sampler is stopped and the progress snapshot removed on every
        exit path, including failures.
        """
        started = time.monotonic()
        image_size: str | None = None
        smoke_ok: bool | None = None
        export_path: Path | None = None
        checksum_path: Path | None = None
        try:
            self._write_preamble()
            self.sampler.start()

            self.optimize_system_limits()
            self.check_prerequisites()
            if self.config.verification_mode == VerificationMode.SKIP:
                self.log.write("Skipping SHA512 verification (--no-verify flag used)")
            else:
                self.verify_installer()
            self.check_base_image()
            self.setup_builder()
            image_size, smoke_ok = self.build_image()

            self.sampler.stop()
            total = time.monotonic() - started
            self.log.write(_BANNER)
            self.log.write("BUILD PROCESS COMPLETED SUCCESSFULLY!")
            self.log.write(f"Total Build Time: {format_duration(total)}")
            self.log.write(_BANNER)

            if self.config.save_image:
                export_path, checksum_path = self.save_image()
            else:
                self.log.write("Skipping automatic image export (--no-save flag used)")
        finally:
            self._cleanup()

        return BuildReport(
            image_name=self.config.image_name,
            log_file=self.config.log_file,
            verification=self.verification,
            image_size=image_size,
            smoke_test_passed=smoke_ok,
            export_path=export_path,
            checksum_path=checksum_path,
            steps=self.progress.completed,
            total_seconds=time.monotonic() - started,
        )

    def _write_preamble(self) -> None:
        cfg = self.config
        self.log.write(_BANNER)
        self.log.write("VIVADO CONTAINER BUILD STARTED")
        self.log.write(_BANNER)

        self.runtime_version = self.runtime.version()
        buildx = self.runtime.buildx_version() if self.runtime.is_docker else None
        self.log.write_lines(
            system_info.section_lines(
                system_info.machine_info(self.runtime.binary, self.runtime_version, buildx)
            )
        )
        for section in system_info.system_limits():
            self.log.write_lines(system_info.section_lines(section))

        profile = estimator.profile_system(self.runtime.binary, self.runtime_version)
        self.log.write_lines(estimate_lines(estimator.estimate_build_time(profile)))

        self.log.write("Build Configuration:")
        self.log.write_lines([
            f"- Image name: {cfg.image_name}",
            f"- Base image: {cfg.base_image}",
            f"- Builder name: {cfg.builder_name}",
            f"- Container runtime: {cfg.runtime.value}",
            f"- Clean build: {cfg.clean_build}",
            f"- Force pull: {cfg.force_pull}",
            f"- Verification: {cfg.verification_mode.value} (strict={cfg.strict_verify})",
            f"- Log file: {cfg.log_file}",
        ])
        self.log.write(_BANNER)

    def _cleanup(self) -> None:
        self.log.write("Cleaning up temporary files...")
        self.sampler.stop()
        self.progress.clear()
        self.log.write("Cleanup completed")
        self.log.close()

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def optimize_system_limits(self) -> system_info.LimitAdjustment:
        with self.progress.step(STEP_LIMITS):
            adjustment = system_info.raise_open_files_limit(self.config.open_files_limit)
            if adjustment.changed:
                self.log.write(
                    f"Open files limit raised from {adjustment.previous} to {adjustment.current}"
                )
            elif adjustment.adequate:
                self.log.write(f"Open files limit is adequate: {adjustment.current}")
            for warning in adjustment.warnings:
                self.log.warning(warning)
        return adjustment

    def check_prerequisites(self) -> None:
        rt = self.runtime
        with self.progress.step(STEP_PREREQUISITES):
            location = rt.which()
            if location is None:
                raise BuildStepError(
                    STEP_PREREQUISITES,
                    f"{rt.binary} command not found. Please install {rt.binary} and try again.",
                )
            self.log.write(f"Container runtime command found at: {location}")

            self.log.write(f"Testing {rt.binary} connection...")
            if not rt.is_reachable():
                raise BuildStepError(
                    STEP_PREREQUISITES,
                    f"Cannot connect to {rt.binary}.",
                    hints=rt.connection_hints(),
                )
            self.runtime_version = self.runtime_version or rt.version()
            self.log.write(f"{rt.binary} version: {self.runtime_version or 'unknown'}")

            if rt.is_docker:
                buildx = rt.buildx_version()
                self.use_buildx = buildx is not None
                if self.use_buildx:
                    self.log.write(f"Buildx available: {buildx}")
                else:
                    self.log.write("Buildx not available. Using standard docker build.")
            else:
                self.use_buildx = False
                self.log.write("Using Podman build (no buildx needed)")

            installer = self.config.installer
            if not installer.installer_dir.is_dir():
                raise BuildStepError(
                    STEP_PREREQUISITES,
                    f"{installer.installer_dir} directory not found. "
                    "Run 'vivbuild download' first.",
                )
            if not installer.installer_path.exists():
                self.log.warning(
                    f"Vivado installer not found: {installer.installer_path}. "
                    "Build may fail if installer is missing."
                )

    def verify_installer(self) -> VerificationResult:
        installer = self.config.installer
        with self.progress.step(STEP_VERIFY):
            self.log.write("Verifying installer integrity using SHA512...")
            self.log.write(f"Tar file: {installer.installer_path}")
            self.log.write(f"Digests file: {installer.digest_path}")
            result = verify(
                installer.installer_path,
                installer.digest_path,
                self.config.verification_mode,
            )
            self.verification = result
            self.log.write(f"File size: {human_size(result.size_bytes)}")
            if result.computed_digest:
                self.log.write(f"Calculated SHA512: {result.computed_digest}")
            if result.matched_digest:
                self.log.write(f"Expected SHA512: {result.matched_digest}")
                self.log.write("SHA512 verification successful")
            elif result.status == VerificationStatus.NO_REFERENCE:
                self.log.warning(
                    "Digests file not found. Installer integrity not verified."
                )
            elif result.status == VerificationStatus.MISMATCH:
                self.log.error("SHA512 verification failed - installer may be corrupted")
                self.log.write("Available hashes in digests file:")
                self.log.write_lines([f"  {c}" for c in result.candidates])
            enforce(result, strict=self.config.strict_verify)
        return result

    def check_base_image(self) -> None:
        image = self.config.base_image
        with self.progress.step(STEP_BASE_IMAGE):
            self.log.write(f"Checking base image: {image}")
            try:
                if self.config.force_pull:
                    self.log.write("Force pulling base image...")
                    self.runtime.pull(image)
                    self.log.write("Base image pulled successfully")
                elif self.runtime.image_exists(image):
                    self.log.write("Base image already exists locally")
                else:
                    self.log.write("Base image not found. Pulling...")
                    self.runtime.pull(image)
                    self.log.write("Base image pulled successfully")
            except ContainerRuntimeError as exc:
                raise BuildStepError(STEP_BASE_IMAGE, str(exc)) from exc

    def setup_builder(self) -> None:
        cfg = self.config
        with self.progress.step(STEP_BUILDER):
            if not self.runtime.is_docker:
                self.log.write("Using Podman (no buildx setup needed)")
                return
            if not self.use_buildx:
                self.log.write("Skipping buildx setup (not available)")
                return
            self.log.write(f"Setting up buildx builder: {cfg.builder_name}")
            try:
                active = self.runtime.ensure_builder(cfg.builder_name)
            except ContainerRuntimeError as exc:
                raise BuildStepError(STEP_BUILDER, str(exc)) from exc
            self.log.write(f"Active builder: {active}")
            self._prepare_cache_dir()

    def _prepare_cache_dir(self) -> None:
        cache = self.config.cache_dir
        self.log.write(f"Setting up cache directory: {cache}")
        try:
            cache.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise BuildStepError(STEP_BUILDER, f"Cannot create cache directory {cache}: {exc}") from exc
        if not cache.is_dir():
            raise BuildStepError(STEP_BUILDER, f"Cache directory does not exist: {cache}")
        if not os.access(cache, os.W_OK):
            raise BuildStepError(STEP_BUILDER, f"Cache directory is not writable: {cache}")
        self.log.write(
            f"Cache validation passed: {cache} ({human_size(directory_size(cache))})"
        )

    def build_image(self) -> tuple[str | None, bool]:
        cfg = self.config
        with self.progress.step(STEP_BUILD):
            self.log.write(f"Building image: {cfg.image_name}")
            self.log.write("Clean build (no cache)" if cfg.clean_build else "Build with caching")
            status = self.runtime.build(
                cfg.image_name,
                cfg.context_dir,
                clean=cfg.clean_build,
                use_buildx=self.use_buildx,
                cache_dir=cfg.cache_dir if self.use_buildx else None,
                on_line=self.log.write,
            )
            if status != 0:
                raise BuildStepError(
                    STEP_BUILD,
                    f"{self.runtime.binary} build exited with status {status}. "
                    f"Check log file: {cfg.log_file}",
                )
            self.log.write("Build completed successfully!")
            size = self.runtime.image_size(cfg.image_name)
            self.log.write(f"Image size: {size or 'unknown'}")
            self.log.write("Testing image...")
            smoke_ok = self.runtime.smoke_test(cfg.image_name)
            self.log.write("Image test passed" if smoke_ok else "Image test failed")
        return size, smoke_ok

    def save_image(self) -> tuple[Path, Path]:
        cfg = self.config
        with self.progress.step(STEP_SAVE):
            target = cfg.export_dir / export_filename(cfg.image_name)
            self.log.write(f"Saving image '{cfg.image_name}' to: {target}")
            try:
                self.runtime.save(cfg.image_name, target)
            except ContainerRuntimeError as exc:
                raise BuildStepError(
                    STEP_SAVE, f"Image export failed. Check disk space and permissions. {exc}"
                ) from exc
            size = target.stat().st_size
            self.log.write(f"File size: {human_size(size)} ({size} bytes)")
            checksum = write_checksum_file(target, "sha256")
            self.log.write(f"Checksum saved to: {checksum}")
        return target, checksum
