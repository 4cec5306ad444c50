"""Unit tests for vivbuild data models: immutability, validation and derived values."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from pydantic import ValidationError

from vivbuild.models import (
    BuildConfig,
    BuildEstimate,
    InstallerSpec,
    ProgressSnapshot,
    ResourceSample,
    RuntimeName,
    StepRecord,
    SystemProfile,
    VerificationMode,
    VerificationResult,
    VerificationStatus,
    human_size,
)


class TestVerificationResult:
    def test_frozen(self):
        result = VerificationResult(status=VerificationStatus.SKIPPED, artifact_path=Path("a.tar"))
        with pytest.raises(ValidationError):
            result.status = VerificationStatus.VERIFIED

    def test_verified_requires_matched_digest(self):
        with pytest.raises(ValidationError, match="requires computed and matched"):
            VerificationResult(
                status=VerificationStatus.VERIFIED,
                artifact_path=Path("a.tar"),
                computed_digest="a" * 128,
                candidates=["a" * 128],
            )

    def test_verified_match_must_equal_computed(self):
        with pytest.raises(ValidationError, match="differs from computed"):
            VerificationResult(
                status=VerificationStatus.VERIFIED,
                artifact_path=Path("a.tar"),
                computed_digest="a" * 128,
                matched_digest="b" * 128,
                candidates=["b" * 128],
            )

    def test_verified_match_must_be_a_candidate(self):
        with pytest.raises(ValidationError, match="not among the extracted candidates"):
            VerificationResult(
                status=VerificationStatus.VERIFIED,
                artifact_path=Path("a.tar"),
                computed_digest="a" * 128,
                matched_digest="a" * 128,
                candidates=["b" * 128],
            )

    def test_mismatch_cannot_carry_match(self):
        with pytest.raises(ValidationError, match="cannot carry a matched digest"):
            VerificationResult(
                status=VerificationStatus.MISMATCH,
                artifact_path=Path("a.tar"),
                computed_digest="a" * 128,
                matched_digest="a" * 128,
                candidates=["a" * 128],
            )

    @pytest.mark.parametrize(
        "status, passed",
        [
            (VerificationStatus.SKIPPED, True),
            (VerificationStatus.COMPUTED, True),
            (VerificationStatus.NO_REFERENCE, False),
            (VerificationStatus.MISMATCH, False),
        ],
    )
    def test_passed(self, status, passed):
        result = VerificationResult(status=status, artifact_path=Path("a.tar"))
        assert result.passed is passed

    def test_mode_values(self):
        assert VerificationMode("compute_only") is VerificationMode.COMPUTE_ONLY


class TestInstallerSpec:
    def test_layout(self):
        spec = InstallerSpec(version="2024.2", build_stamp="1113_1001", installer_dir=Path("inst"))
        assert spec.installer_name == "FPGAs_AdaptiveSoCs_Unified_SDI_2024.2_1113_1001.tar"
        assert spec.installer_path == Path("inst") / spec.installer_name
        assert spec.digest_path == Path("inst") / f"{spec.installer_name}.digests"

    def test_update_path(self):
        assert InstallerSpec().update_path is None
        spec = InstallerSpec(update="update.tar", installer_dir=Path("inst"))
        assert spec.update_path == Path("inst/update.tar")


class TestBuildConfig:
    def test_defaults(self):
        cfg = BuildConfig()
        assert cfg.image_name == "vyges-vivado"
        assert cfg.base_image == "ubuntu:24.04"
        assert cfg.runtime == RuntimeName.PODMAN
        assert cfg.verification_mode == VerificationMode.VERIFY
        assert cfg.save_image is True
        assert cfg.log_file.name.startswith("build-")

    def test_frozen(self):
        cfg = BuildConfig()
        with pytest.raises(ValidationError):
            cfg.clean_build = True


class TestResources:
    @pytest.mark.parametrize(
        "num_bytes, expected",
        [(512, "512B"), (2048, "2.0K"), (3 * 1024**3 + 1024**3 // 5, "3.2G"), (5 * 1024**4, "5.0T")],
    )
    def test_human_size(self, num_bytes, expected):
        assert human_size(num_bytes) == expected

    def test_sample_log_line(self):
        sample = ResourceSample(
            memory_used=8 * 1024**3,
            memory_total=32 * 1024**3,
            disk_used=100 * 1024**3,
            disk_total=400 * 1024**3,
            cache_size=1024**2,
        )
        assert sample.memory_percent == 25.0
        assert sample.as_log_line() == (
            "RESOURCE_MONITOR: Memory: 8.0G/32.0G (25.0%), "
            "Disk: 100.0G/400.0G (25.0%), Cache: 1.0M"
        )

    def test_zero_total_percent(self):
        sample = ResourceSample(memory_used=0, memory_total=0, disk_used=0, disk_total=0)
        assert sample.disk_percent == 0.0

    def test_estimate_hours(self):
        estimate = BuildEstimate(
            profile=SystemProfile(cpu_cores=8, ram_gb=32, storage_gb=300),
            base_minutes={"a": 200, "b": 40},
            factors=[],
            estimated_minutes=240.0,
            best_case_minutes=192.0,
            worst_case_minutes=312.0,
        )
        assert estimate.total_base_minutes == 240
        assert estimate.estimated_hours == 4.0
        assert estimate.best_case_hours == 3.2
        assert estimate.worst_case_hours == 5.2


class TestProgressModels:
    def test_step_duration(self):
        start = datetime(2025, 1, 1, tzinfo=timezone.utc)
        record = StepRecord(name="x", started_at=start, finished_at=start + timedelta(seconds=90))
        assert record.duration_seconds == 90.0

    def test_elapsed(self):
        start = datetime(2025, 1, 1, tzinfo=timezone.utc)
        snap = ProgressSnapshot(current_step="Building Container Image", step_started_at=start)
        assert snap.elapsed_seconds(start + timedelta(minutes=2)) == 120.0
        assert ProgressSnapshot().elapsed_seconds() == 0.0
