"""Build log and step progress tracking.

``BuildLog`` appends timestamped lines to the per-build log file.
``BuildProgress`` is the explicit progress state owned by the orchestrator:
it times labelled steps, writes their start and completion to the build log,
and optionally publishes a JSON snapshot so ``vivbuild progress`` can report
on a build running in another terminal.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from vivbuild.models.progress import ProgressSnapshot, StepRecord

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s] %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
BUILD_LOGGER = "vivbuild.build"


def format_duration(seconds: float) -> str:
    """``HH:MM:SS`` for a duration in seconds (hours may exceed 24)."""
    total = max(int(seconds), 0)
    return f"{total // 3600:02d}:{(total % 3600) // 60:02d}:{total % 60:02d}"


class BuildLog:
    """Timestamped, append-only build log.

    Each instance owns a private ``logging.Logger`` with a file handler, so
    several builds (or tests) can log to different files in one process.
    The logger is not registered with the logging manager and is released
    with the instance. Records propagate to ``vivbuild.build`` for console
    output.

    Parameters
    ----------
    path:
        Log file; parent directories are created.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._logger = logging.Logger(f"{BUILD_LOGGER}.{self.path.name}", logging.INFO)
        self._logger.parent = logging.getLogger(BUILD_LOGGER)
        self._handler = logging.FileHandler(self.path, encoding="utf-8")
        self._handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
        self._logger.addHandler(self._handler)

    def write(self, message: str) -> None:
        self._logger.info(message)

    def warning(self, message: str) -> None:
        self._logger.warning(message)

    def error(self, message: str) -> None:
        self._logger.error(message)

    def write_lines(self, lines: list[str]) -> None:
        for line in lines:
            self._logger.info(line)

    def close(self) -> None:
        self._logger.removeHandler(self._handler)
        self._handler.close()

    def __enter__(self) -> BuildLog:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class BuildProgress:
    """Labelled step timer with an explicit, inspectable state.

    Parameters
    ----------
    log:
        Build log that receives step banners.
    progress_file:
        Optional JSON file to publish snapshots to. ``None`` keeps the state
        in memory only.
    """

    def __init__(self, log: BuildLog, progress_file: Path | None = None) -> None:
        self._log = log
        self._progress_file = Path(progress_file) if progress_file else None
        self._current: str | None = None
        self._started_at: datetime | None = None
        self._completed: list[StepRecord] = []

    @property
    def current_step(self) -> str | None:
        return self._current

    @property
    def completed(self) -> list[StepRecord]:
        return list(self._completed)

    def snapshot(self) -> ProgressSnapshot:
        return ProgressSnapshot(
            current_step=self._current,
            step_started_at=self._started_at,
            completed=list(self._completed),
            log_file=self._log.path,
        )

    # ------------------------------------------------------------------
    # Step lifecycle
    # ------------------------------------------------------------------

    def begin(self, step: str) -> None:
        self._current = step
        self._started_at = datetime.now(timezone.utc)
        self._log.write(f"=== BUILD STEP: {step} ===")
        self._publish()

    def complete(self, step: str) -> StepRecord:
        finished = datetime.now(timezone.utc)
        started = self._started_at if self._current == step and self._started_at else finished
        record = StepRecord(name=step, started_at=started, finished_at=finished)
        self._completed.append(record)
        self._log.write(
            f"=== COMPLETED: {step} (Duration: {format_duration(record.duration_seconds)}) ==="
        )
        self._current = None
        self._started_at = None
        self._publish()
        return record

    @contextmanager
    def step(self, name: str) -> Iterator[None]:
        """Run a block as a named step; completion is only logged on success."""
        self.begin(name)
        yield
        self.complete(name)

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    def _publish(self) -> None:
        if self._progress_file is None:
            return
        self._progress_file.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._progress_file.with_name(self._progress_file.name + ".tmp")
        tmp.write_text(self.snapshot().model_dump_json(indent=2), encoding="utf-8")
        tmp.replace(self._progress_file)

    def clear(self) -> None:
        """Drop the published snapshot; the build is no longer running."""
        self._current = None
        self._started_at = None
        if self._progress_file is not None:
            self._progress_file.unlink(missing_ok=True)


def read_progress(path: Path) -> ProgressSnapshot | None:
    """Load a published snapshot, or ``None`` when no build is in progress."""
    path = Path(path)
    if not path.exists():
        return None
    try:
        return ProgressSnapshot.model_validate_json(path.read_text(encoding="utf-8"))
    except ValidationError:
        logger.warning("Ignoring unreadable progress file %s", path)
        return None
