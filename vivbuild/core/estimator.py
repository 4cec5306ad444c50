"""Heuristic build-time estimation.

A full image build is dominated by I/O: unpacking and installing Vivado,
then committing and exporting very large layers. The estimate starts from a
fixed per-phase base and scales it by factors for CPU count, RAM, free
storage and the container engine in use.
"""

from __future__ import annotations

import re

import psutil

from vivbuild.models.resources import BuildEstimate, EstimateFactor, SystemProfile

GIB = 1024**3

# Base minutes per build phase.
BASE_MINUTES: dict[str, int] = {
    "Base Vivado installation": 45,
    "Container runtime layer processing": 120,
    "Cache operations": 30,
    "Image finalization": 45,
}

BEST_CASE_RATIO = 0.8
WORST_CASE_RATIO = 1.3

# (threshold, factor, note); the first threshold the value meets wins.
_CPU_TIERS: list[tuple[int, float, str]] = [
    (64, 0.85, "Very high CPU count ({v} cores): ~15% faster (parallel operations)"),
    (32, 0.90, "High CPU count ({v} cores): ~10% faster (parallel operations)"),
    (16, 0.95, "Good CPU count ({v} cores): ~5% faster (parallel operations)"),
    (8, 1.00, "Adequate CPU count ({v} cores): normal build speed"),
    (0, 1.15, "Low CPU count ({v} cores): ~15% slower (limited parallelism)"),
]

_RAM_TIERS: list[tuple[int, float, str]] = [
    (128, 0.90, "Very high RAM ({v}GB): ~10% faster (no memory pressure)"),
    (64, 0.95, "High RAM ({v}GB): ~5% faster (no memory pressure)"),
    (32, 1.00, "Good RAM ({v}GB): normal build speed"),
    (16, 1.10, "Adequate RAM ({v}GB): ~10% slower (potential memory pressure)"),
    (0, 1.25, "Low RAM ({v}GB): ~25% slower (likely swapping, consider increasing)"),
]

_STORAGE_TIERS: list[tuple[int, float, str]] = [
    (1000, 0.90, "Very high storage ({v}GB): ~10% faster (excellent I/O performance)"),
    (500, 0.95, "High storage ({v}GB): ~5% faster (good I/O performance)"),
    (200, 1.00, "Adequate storage ({v}GB): normal build speed"),
    (100, 1.15, "Low storage ({v}GB): ~15% slower (I/O bottlenecks likely)"),
    (0, 1.30, "Very low storage ({v}GB): ~30% slower (severe I/O bottlenecks)"),
]


def _tiered(name: str, value: int, tiers: list[tuple[int, float, str]]) -> EstimateFactor:
    for threshold, factor, note in tiers:
        if value >= threshold:
            return EstimateFactor(name=name, factor=factor, note=note.format(v=value))
    threshold, factor, note = tiers[-1]
    return EstimateFactor(name=name, factor=factor, note=note.format(v=value))


def cpu_factor(cores: int) -> EstimateFactor:
    return _tiered("cpu", cores, _CPU_TIERS)


def ram_factor(ram_gb: int) -> EstimateFactor:
    return _tiered("ram", ram_gb, _RAM_TIERS)


def storage_factor(storage_gb: int) -> EstimateFactor:
    return _tiered("storage", storage_gb, _STORAGE_TIERS)


def runtime_factor(runtime: str, version: str | None) -> EstimateFactor:
    """Engine adjustment; an unknown engine or version leaves the estimate unchanged."""
    if not version:
        return EstimateFactor(
            name="runtime", factor=1.0, note=f"{runtime}: version unknown, no adjustment"
        )
    if runtime == "podman":
        return EstimateFactor(
            name="runtime",
            factor=0.90,
            note=f"Podman ({version}): ~10% faster (better resource management)",
        )
    if runtime == "docker":
        match = re.match(r"(\d+)", version)
        major = int(match.group(1)) if match else 0
        if major >= 25:
            return EstimateFactor(
                name="runtime",
                factor=0.95,
                note=f"Modern Docker ({version}): ~5% faster (improved build performance)",
            )
        if major >= 20:
            return EstimateFactor(
                name="runtime", factor=1.0, note=f"Recent Docker ({version}): normal build speed"
            )
        return EstimateFactor(
            name="runtime",
            factor=1.10,
            note=f"Older Docker ({version}): ~10% slower (consider upgrading)",
        )
    return EstimateFactor(name="runtime", factor=1.0, note=f"{runtime} ({version}): no adjustment")


def estimate_build_time(profile: SystemProfile) -> BuildEstimate:
    """Scale the base build time by the profile's adjustment factors."""
    factors = [
        cpu_factor(profile.cpu_cores),
        ram_factor(profile.ram_gb),
        storage_factor(profile.storage_gb),
        runtime_factor(profile.runtime, profile.runtime_version),
    ]
    estimated = float(sum(BASE_MINUTES.values()))
    for f in factors:
        estimated *= f.factor
    return BuildEstimate(
        profile=profile,
        base_minutes=dict(BASE_MINUTES),
        factors=factors,
        estimated_minutes=estimated,
        best_case_minutes=estimated * BEST_CASE_RATIO,
        worst_case_minutes=estimated * WORST_CASE_RATIO,
    )


def profile_system(
    runtime: str = "podman",
    runtime_version: str | None = None,
    root: str = "/",
) -> SystemProfile:
    """Build a ``SystemProfile`` for this host.

    RAM and storage are whole GiB, rounded down.
    """
    return SystemProfile(
        cpu_cores=psutil.cpu_count(logical=True) or 1,
        ram_gb=psutil.virtual_memory().total // GIB,
        storage_gb=psutil.disk_usage(root).free // GIB,
        runtime=runtime,
        runtime_version=runtime_version,
    )
