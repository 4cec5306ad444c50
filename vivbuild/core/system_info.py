"""Host reports written at the top of every build log.

``machine_info`` and ``system_limits`` return titled sections of
``(label, value)`` rows; the renderer prints them and the orchestrator
copies them into the build log. Values that cannot be read on this host are
reported as ``unavailable`` rather than failing the build.
"""

from __future__ import annotations

import logging
import os
import platform
import resource
from datetime import datetime
from pathlib import Path

import psutil
from pydantic import BaseModel, ConfigDict

from vivbuild.models.resources import human_size

logger = logging.getLogger(__name__)

UNAVAILABLE = "unavailable"

# ``ulimit -f`` counts 1024-byte blocks.
MIN_FILE_SIZE_BLOCKS = 100_000_000

Section = tuple[str, list[tuple[str, str]]]

_RLIMITS: list[tuple[str, str]] = [
    ("Open files", "RLIMIT_NOFILE"),
    ("Max user processes", "RLIMIT_NPROC"),
    ("File size", "RLIMIT_FSIZE"),
    ("Stack size", "RLIMIT_STACK"),
    ("Core file size", "RLIMIT_CORE"),
    ("Virtual memory", "RLIMIT_AS"),
    ("Locked memory", "RLIMIT_MEMLOCK"),
]


def _read_proc(path: str) -> str:
    try:
        return Path(path).read_text(encoding="utf-8").strip()
    except OSError:
        return UNAVAILABLE


def _fmt_limit(value: int) -> str:
    return "unlimited" if value == resource.RLIM_INFINITY else str(value)


def _cpu_model() -> str:
    for line in _read_proc("/proc/cpuinfo").splitlines():
        if line.startswith("model name"):
            return line.split(":", 1)[1].strip()
    return platform.processor() or UNAVAILABLE


def _os_name() -> str:
    try:
        release = platform.freedesktop_os_release()
    except OSError:
        return platform.platform()
    return release.get("PRETTY_NAME") or release.get("NAME") or platform.platform()


def _usage(path: str) -> str:
    try:
        disk = psutil.disk_usage(path)
    except OSError:
        return UNAVAILABLE
    return (
        f"{human_size(disk.total)} total, {human_size(disk.used)} used, "
        f"{human_size(disk.free)} available"
    )


def _inodes(path: str) -> tuple[str, str, str]:
    try:
        st = os.statvfs(path)
    except OSError:
        return UNAVAILABLE, UNAVAILABLE, UNAVAILABLE
    used = st.f_files - st.f_ffree
    pct = f"{used / st.f_files * 100:.0f}%" if st.f_files else UNAVAILABLE
    return str(st.f_files), str(used), pct


def machine_info(
    runtime: str,
    runtime_version: str | None = None,
    buildx_version: str | None = None,
) -> Section:
    """Hardware, OS and container-engine summary."""
    memory = psutil.virtual_memory()
    freq = psutil.cpu_freq()
    rows = [
        ("Build Start Time", datetime.now().strftime("%Y-%m-%d %H:%M:%S")),
        ("Hostname", platform.node() or UNAVAILABLE),
        ("OS", _os_name()),
        ("Kernel", platform.release()),
        ("Architecture", platform.machine()),
        ("CPU Model", _cpu_model()),
        (
            "CPU Cores",
            f"{psutil.cpu_count(logical=False) or UNAVAILABLE} "
            f"({psutil.cpu_count(logical=True)} logical)",
        ),
        ("CPU Speed", f"{freq.current:.0f} MHz" if freq else UNAVAILABLE),
        ("Total RAM", human_size(memory.total)),
        ("Available RAM", human_size(memory.available)),
        ("Storage", _usage("/")),
        ("Container Runtime", runtime),
        ("Runtime Version", runtime_version or UNAVAILABLE),
    ]
    if runtime == "docker":
        rows.append(("Buildx Version", buildx_version or "Not available"))
    return "Machine Information", rows


def system_limits() -> list[Section]:
    """Process limits and kernel tunables that affect very large builds."""
    user_limits = []
    for label, name in _RLIMITS:
        limit = getattr(resource, name, None)
        if limit is None:
            continue
        soft, hard = resource.getrlimit(limit)
        user_limits.append((label, f"{_fmt_limit(soft)} (hard {_fmt_limit(hard)})"))

    inode_total, inode_used, inode_pct = _inodes("/")
    file_nr = _read_proc("/proc/sys/fs/file-nr")
    fs_limits = [
        ("Max open files", _read_proc("/proc/sys/fs/file-max")),
        ("Current open files", file_nr.split()[0] if file_nr != UNAVAILABLE else file_nr),
        ("Max inodes", inode_total),
        ("Used inodes", inode_used),
        ("Inode usage", inode_pct),
    ]

    memory = [
        ("Swappiness", _read_proc("/proc/sys/vm/swappiness")),
        ("Dirty ratio", _read_proc("/proc/sys/vm/dirty_ratio")),
        ("Dirty background ratio", _read_proc("/proc/sys/vm/dirty_background_ratio")),
    ]

    shared = [
        ("SHMMAX", _read_proc("/proc/sys/kernel/shmmax")),
        ("SHMMNI", _read_proc("/proc/sys/kernel/shmmni")),
        ("SHMALL", _read_proc("/proc/sys/kernel/shmall")),
    ]

    tmp_total, tmp_used, _ = _inodes("/tmp")
    tmp = [
        ("/tmp size", _usage("/tmp")),
        ("/tmp inodes", f"{tmp_total} total, {tmp_used} used"),
    ]

    return [
        ("User Limits", user_limits),
        ("File System Limits", fs_limits),
        ("Memory Management", memory),
        ("Shared Memory", shared),
        ("Temporary Directory", tmp),
    ]


def section_lines(section: Section) -> list[str]:
    """Plain-text rendering used for the build log."""
    title, rows = section
    lines = [f"=== {title.upper()} ==="]
    lines.extend(f"{label}: {value}" for label, value in rows)
    return lines


class LimitAdjustment(BaseModel):
    """What ``raise_open_files_limit`` found and did."""

    model_config = ConfigDict(frozen=True)

    previous: int
    current: int
    recommended: int
    changed: bool
    warnings: list[str] = []

    @property
    def adequate(self) -> bool:
        return self.current >= self.recommended


def raise_open_files_limit(recommended: int = 65536) -> LimitAdjustment:
    """Raise the soft open-files limit towards ``recommended``.

    The soft limit can only be raised as far as the hard limit; anything
    short of the recommendation is reported as a warning, as is a file-size
    limit that could truncate multi-gigabyte layers.
    """
    warnings: list[str] = []
    soft, hard = resource.getrlimit(resource.RLIMIT_NOFILE)
    previous = soft
    changed = False

    if soft != resource.RLIM_INFINITY and soft < recommended:
        target = recommended if hard == resource.RLIM_INFINITY else min(recommended, hard)
        if target > soft:
            try:
                resource.setrlimit(resource.RLIMIT_NOFILE, (target, hard))
                changed = True
                logger.info("Raised open files limit from %d to %d", soft, target)
            except (ValueError, OSError) as exc:
                warnings.append(f"Could not set open files limit: {exc}")
        soft, hard = resource.getrlimit(resource.RLIMIT_NOFILE)
        if soft < recommended:
            warnings.append(
                f"Open files limit is {soft} (recommended {recommended}). "
                f"Consider running: ulimit -n {recommended}"
            )

    fsize, _ = resource.getrlimit(resource.RLIMIT_FSIZE)
    if fsize != resource.RLIM_INFINITY and fsize < MIN_FILE_SIZE_BLOCKS * 1024:
        warnings.append(
            f"File size limit may be too low: {fsize // 1024} blocks. "
            "Consider setting: ulimit -f unlimited"
        )

    current = recommended if soft == resource.RLIM_INFINITY else soft
    return LimitAdjustment(
        previous=previous,
        current=current,
        recommended=recommended,
        changed=changed,
        warnings=warnings,
    )
