"""Thin wrapper over the ``docker`` / ``podman`` command line.

Every engine call goes through an injectable ``runner`` (``subprocess.run``
by default) so command construction and output parsing can be tested
without a container engine. ``build`` streams output through ``Popen``
instead, because image builds run for hours and their output is teed into
the build log as it arrives.
"""

from __future__ import annotations

import logging
import re
import shutil
import subprocess
from collections.abc import Callable, Sequence
from pathlib import Path

from vivbuild.models.build import RuntimeName

logger = logging.getLogger(__name__)

Runner = Callable[..., subprocess.CompletedProcess]

BUILD_PLATFORM = "linux/amd64"
_VERSION_RE = re.compile(r"\d+\.\d+(?:\.\d+)?")


class ContainerRuntimeError(RuntimeError):
    """Raised when the container engine fails or cannot be reached."""


def parse_version(text: str) -> str | None:
    """First ``X.Y`` or ``X.Y.Z`` version number in ``text``."""
    match = _VERSION_RE.search(text)
    return match.group(0) if match else None


class ContainerRuntime:
    """One container engine, addressed by its CLI name.

    Parameters
    ----------
    name:
        ``podman`` or ``docker``.
    runner:
        ``subprocess.run``-compatible callable used for short engine calls.
    """

    def __init__(self, name: RuntimeName | str = RuntimeName.PODMAN, runner: Runner | None = None) -> None:
        self.name = RuntimeName(name)
        self._run = runner or subprocess.run

    @property
    def binary(self) -> str:
        return self.name.value

    @property
    def is_docker(self) -> bool:
        return self.name == RuntimeName.DOCKER

    def _call(self, *args: str, check: bool = False, timeout: float | None = None) -> subprocess.CompletedProcess:
        cmd = [self.binary, *args]
        logger.debug("Running %s", " ".join(cmd))
        try:
            result = self._run(cmd, capture_output=True, text=True, timeout=timeout)
        except (OSError, subprocess.SubprocessError) as exc:
            raise ContainerRuntimeError(f"{' '.join(cmd)} failed: {exc}") from exc
        if check and result.returncode != 0:
            detail = (result.stderr or result.stdout or "").strip()
            raise ContainerRuntimeError(
                f"{' '.join(cmd)} exited with {result.returncode}: {detail}"
            )
        return result

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    def which(self) -> str | None:
        return shutil.which(self.binary)

    def is_installed(self) -> bool:
        return self.which() is not None

    def is_reachable(self) -> bool:
        """True when ``<engine> info`` succeeds (daemon/socket usable)."""
        try:
            return self._call("info", timeout=60).returncode == 0
        except ContainerRuntimeError:
            return False

    def version(self) -> str | None:
        try:
            result = self._call("--version", timeout=30)
        except ContainerRuntimeError:
            return None
        return parse_version(result.stdout) if result.returncode == 0 else None

    def connection_hints(self) -> list[str]:
        """Operator hints printed when the engine is unreachable."""
        if self.is_docker:
            return [
                "Docker service is running: sudo systemctl status docker",
                "User has Docker permissions: sudo usermod -aG docker $USER",
                "Docker socket permissions: ls -la /var/run/docker.sock",
            ]
        return [
            "Podman is properly installed",
            "User has necessary permissions",
        ]

    # ------------------------------------------------------------------
    # Buildx (docker only)
    # ------------------------------------------------------------------

    def buildx_version(self) -> str | None:
        if not self.is_docker:
            return None
        try:
            result = self._call("buildx", "version", timeout=30)
        except ContainerRuntimeError:
            return None
        if result.returncode != 0:
            return None
        lines = result.stdout.strip().splitlines()
        return lines[0] if lines else None

    def has_buildx(self) -> bool:
        return self.buildx_version() is not None

    def ensure_builder(self, builder: str) -> str:
        """Select ``builder``, creating it first if needed. Returns the active builder."""
        names = self._list_builders()
        if builder in names:
            logger.info("Builder %s already exists; selecting it", builder)
            self._call("buildx", "use", builder, check=True)
        else:
            logger.info("Creating new builder: %s", builder)
            self._call("buildx", "create", "--name", builder, "--use", check=True)
        active = [name for name, is_active in self._list_builders().items() if is_active]
        return active[0] if active else builder

    def _list_builders(self) -> dict[str, bool]:
        """Builder name -> whether it is the active one (marked ``*`` by buildx)."""
        builders: dict[str, bool] = {}
        for line in self._call("buildx", "ls", check=True).stdout.splitlines():
            parts = line.split()
            if not parts or parts[0] in ("NAME/NODE", "\\_") or line.startswith((" ", "\t")):
                continue
            name = parts[0]
            builders[name.rstrip("*")] = name.endswith("*")
        return builders

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def image_exists(self, image: str) -> bool:
        result = self._call("images", "-q", image)
        return result.returncode == 0 and bool(result.stdout.strip())

    def pull(self, image: str) -> None:
        logger.info("Pulling %s", image)
        self._call("pull", image, check=True)

    def image_size(self, image: str) -> str | None:
        result = self._call("images", image, "--format", "{{.Size}}")
        lines = result.stdout.strip().splitlines() if result.returncode == 0 else []
        return lines[-1] if lines else None

    def smoke_test(self, image: str) -> bool:
        result = self._call("run", "--rm", image, "echo", "Image test successful")
        return result.returncode == 0

    def save(self, image: str, output: Path) -> Path:
        output = Path(output)
        output.parent.mkdir(parents=True, exist_ok=True)
        self._call("save", image, "-o", str(output), check=True)
        return output

    def count_images(self) -> int:
        result = self._call("images", "-q")
        return len(result.stdout.split()) if result.returncode == 0 else 0

    def count_containers(self) -> int:
        result = self._call("ps", "-a", "-q")
        return len(result.stdout.split()) if result.returncode == 0 else 0

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def build_command(
        self,
        image: str,
        context: Path,
        *,
        clean: bool = False,
        use_buildx: bool = False,
        cache_dir: Path | None = None,
    ) -> list[str]:
        """The engine command line for building ``image`` from ``context``."""
        cmd: list[str] = [self.binary]
        if not self.is_docker:
            cmd.append("build")
            if clean:
                cmd.append("--no-cache")
            cmd += ["--format", "docker"]
        elif use_buildx:
            cmd += ["buildx", "build"]
            if clean:
                cmd.append("--no-cache")
            elif cache_dir is not None:
                cmd += [
                    "--cache-from", f"type=local,src={cache_dir}",
                    "--cache-to", f"type=local,dest={cache_dir}",
                ]
            cmd += ["--platform", BUILD_PLATFORM, "--load"]
            if not clean:
                cmd.append("--progress=plain")
        else:
            cmd.append("build")
            if clean:
                cmd.append("--no-cache")
        cmd += ["-t", image, str(context)]
        return cmd

    def build(
        self,
        image: str,
        context: Path,
        *,
        clean: bool = False,
        use_buildx: bool = False,
        cache_dir: Path | None = None,
        on_line: Callable[[str], None] | None = None,
    ) -> int:
        """Run the build, feeding each output line to ``on_line``. Returns the exit status."""
        cmd = self.build_command(
            image, context, clean=clean, use_buildx=use_buildx, cache_dir=cache_dir
        )
        return self.stream(cmd, on_line=on_line)

    def stream(self, cmd: Sequence[str], on_line: Callable[[str], None] | None = None) -> int:
        logger.info("Running %s", " ".join(cmd))
        try:
            proc = subprocess.Popen(
                list(cmd),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                bufsize=1,
            )
        except OSError as exc:
            raise ContainerRuntimeError(f"Cannot start {cmd[0]}: {exc}") from exc
        if proc.stdout is None:
            proc.kill()
            raise ContainerRuntimeError(f"No output pipe from {cmd[0]}")
        with proc.stdout:
            for line in proc.stdout:
                if on_line is not None:
                    on_line(line.rstrip("\n"))
        return proc.wait()
