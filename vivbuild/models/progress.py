"""Build progress models, published for ``vivbuild progress``."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class StepRecord(BaseModel):
    """A completed build step and how long it took."""

    model_config = ConfigDict(frozen=True)

    name: str
    started_at: datetime
    finished_at: datetime

    @property
    def duration_seconds(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()


class ProgressSnapshot(BaseModel):
    """Point-in-time view of a running build."""

    model_config = ConfigDict(frozen=True)

    current_step: str | None = None
    step_started_at: datetime | None = None
    completed: list[StepRecord] = []
    log_file: Path | None = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def elapsed_seconds(self, now: datetime | None = None) -> float:
        """Seconds spent in the current step, 0 when idle."""
        if self.step_started_at is None:
            return 0.0
        now = now or datetime.now(timezone.utc)
        return max((now - self.step_started_at).total_seconds(), 0.0)
