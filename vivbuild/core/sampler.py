"""Background resource sampler.

Periodically records memory, disk and build-cache usage into the build log
while a build runs. Cancellation is cooperative: the sampler checks a
``threading.Event`` between samples and exits once it is set. It shares no
mutable state with the build steps.
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path

import psutil

from vivbuild.core.progress import BuildLog
from vivbuild.models.resources import ResourceSample

logger = logging.getLogger(__name__)


def directory_size(path: Path | None) -> int:
    """Total size in bytes of regular files under ``path`` (0 if absent)."""
    if path is None or not Path(path).is_dir():
        return 0
    total = 0
    for root, _dirs, files in os.walk(path, onerror=lambda exc: None):
        for name in files:
            try:
                total += os.lstat(os.path.join(root, name)).st_size
            except OSError:
                continue
    return total


def take_sample(root: Path = Path("/"), cache_dir: Path | None = None) -> ResourceSample:
    """Read current memory, root-filesystem and cache-directory usage."""
    memory = psutil.virtual_memory()
    disk = psutil.disk_usage(str(root))
    return ResourceSample(
        memory_used=memory.total - memory.available,
        memory_total=memory.total,
        disk_used=disk.used,
        disk_total=disk.total,
        cache_size=directory_size(cache_dir),
    )


class ResourceSampler:
    """Appends a ``RESOURCE_MONITOR`` line to the build log every ``interval`` seconds.

    Parameters
    ----------
    log:
        Build log to append samples to.
    cache_dir:
        Build cache directory whose size is reported.
    interval:
        Seconds between samples.
    stop_event:
        Cancellation token. A private event is created if not provided.
    """

    def __init__(
        self,
        log: BuildLog,
        cache_dir: Path | None = None,
        *,
        interval: float = 30.0,
        root: Path = Path("/"),
        stop_event: threading.Event | None = None,
    ) -> None:
        self._log = log
        self._cache_dir = cache_dir
        self._interval = interval
        self._root = root
        self._stop = stop_event or threading.Event()
        self._thread: threading.Thread | None = None
        self.samples_taken = 0

    @property
    def stop_event(self) -> threading.Event:
        return self._stop

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _record(self, sample: ResourceSample) -> None:
        self._log.write(sample.as_log_line())
        self.samples_taken += 1

    def sample_once(self) -> ResourceSample:
        sample = take_sample(self._root, self._cache_dir)
        self._record(sample)
        return sample

    def run(self) -> None:
        """Sample until the stop event is set. Blocks the calling thread."""
        while not self._stop.is_set():
            try:
                sample = take_sample(self._root, self._cache_dir)
            except OSError as exc:
                logger.warning("Resource sample failed: %s", exc)
            else:
                # Stopped during a slow cache walk: the log may already be closed.
                if self._stop.is_set():
                    break
                self._record(sample)
            self._stop.wait(self._interval)
        logger.debug("Resource sampler stopped after %d samples", self.samples_taken)

    def start(self) -> None:
        """Start sampling in a daemon thread. Restarting after ``stop`` re-arms the stop event."""
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self.run, name="vivbuild-resource-sampler", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("Resource sampler did not stop within %ss", timeout)
            else:
                self._thread = None

    def __enter__(self) -> ResourceSampler:
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()
