"""Resource snapshot and build-time estimate models."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

_UNITS = ("B", "K", "M", "G", "T", "P")


def human_size(num_bytes: int | float) -> str:
    """Compact binary size in the style of ``free -h`` / ``du -sh`` (e.g. ``3.2G``)."""
    value = float(num_bytes)
    for unit in _UNITS:
        if abs(value) < 1024 or unit == _UNITS[-1]:
            if unit == "B":
                return f"{int(value)}B"
            return f"{value:.1f}{unit}"
        value /= 1024
    return f"{value:.1f}{_UNITS[-1]}"


def _percent(used: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round(used / total * 100, 1)


class ResourceSample(BaseModel):
    """One point-in-time reading of memory, disk and build-cache usage."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    memory_used: int
    memory_total: int
    disk_used: int
    disk_total: int
    cache_size: int = 0

    @property
    def memory_percent(self) -> float:
        return _percent(self.memory_used, self.memory_total)

    @property
    def disk_percent(self) -> float:
        return _percent(self.disk_used, self.disk_total)

    def memory_display(self) -> str:
        return (
            f"{human_size(self.memory_used)}/{human_size(self.memory_total)} "
            f"({self.memory_percent}%)"
        )

    def disk_display(self) -> str:
        return (
            f"{human_size(self.disk_used)}/{human_size(self.disk_total)} "
            f"({self.disk_percent}%)"
        )

    def as_log_line(self) -> str:
        """Single build-log line, grep-able by the ``RESOURCE_MONITOR`` tag."""
        return (
            f"RESOURCE_MONITOR: Memory: {self.memory_display()}, "
            f"Disk: {self.disk_display()}, Cache: {human_size(self.cache_size)}"
        )


class SystemProfile(BaseModel):
    """The host properties the build-time heuristic depends on."""

    model_config = ConfigDict(frozen=True)

    cpu_cores: int
    ram_gb: int
    storage_gb: int  # available on the root filesystem
    runtime: str = "podman"
    runtime_version: str | None = None


class EstimateFactor(BaseModel):
    """A multiplicative adjustment and the note explaining it."""

    model_config = ConfigDict(frozen=True)

    name: str
    factor: float
    note: str


class BuildEstimate(BaseModel):
    """Heuristic wall-clock estimate for a full image build, in minutes."""

    model_config = ConfigDict(frozen=True)

    profile: SystemProfile
    base_minutes: dict[str, int]
    factors: list[EstimateFactor]
    estimated_minutes: float
    best_case_minutes: float
    worst_case_minutes: float

    @property
    def total_base_minutes(self) -> int:
        return sum(self.base_minutes.values())

    @property
    def estimated_hours(self) -> float:
        return round(self.estimated_minutes / 60, 1)

    @property
    def best_case_hours(self) -> float:
        return round(self.best_case_minutes / 60, 1)

    @property
    def worst_case_hours(self) -> float:
        return round(self.worst_case_minutes / 60, 1)
