"""Shared test fixtures for vivbuild."""

from __future__ import annotations

import hashlib
import subprocess
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from vivbuild.core.container_runtime import ContainerRuntime
from vivbuild.models.build import BuildConfig, InstallerSpec, RuntimeName

HELLO_SHA512 = (
    "9b71d224bd62f3785d96d46ad3ea3d73319bfbc2890caadae2dff72519673ca7"
    "2323c3d99ba5c11d7c7acc6e14b8c5da0c4663475c2e5c3adef46f73bcdec043"
)


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def hello_artifact(tmp_dir: Path) -> Path:
    """A five-byte artifact containing ``hello`` with a known SHA-512."""
    path = tmp_dir / "hello.tar"
    path.write_bytes(b"hello")
    return path


@pytest.fixture
def make_digest_file(tmp_dir: Path) -> Callable[..., Path]:
    """Factory fixture: write a digest file with arbitrary text content."""

    def _factory(text: str, name: str = "hello.tar.digests") -> Path:
        path = tmp_dir / name
        path.write_text(text, encoding="utf-8")
        return path

    return _factory


@pytest.fixture
def deny_access(monkeypatch: pytest.MonkeyPatch) -> Callable[[Path], None]:
    """Make existence checks on a path fail with EACCES.

    Stands in for a parent directory without search permission, which
    root cannot reproduce with chmod.
    """
    denied: set[Path] = set()
    real_exists = Path.exists
    real_is_file = Path.is_file

    def _guard(real: Callable[..., bool]) -> Callable[..., bool]:
        def _check(self: Path, *args: Any, **kwargs: Any) -> bool:
            if self in denied:
                raise PermissionError(13, "Permission denied", str(self))
            return real(self, *args, **kwargs)

        return _check

    monkeypatch.setattr(Path, "exists", _guard(real_exists))
    monkeypatch.setattr(Path, "is_file", _guard(real_is_file))
    return lambda path: denied.add(Path(path))


@pytest.fixture
def installer_spec(tmp_dir: Path) -> InstallerSpec:
    """An InstallerSpec rooted in a fresh temp installer directory."""
    installer_dir = tmp_dir / "vivado-installer"
    installer_dir.mkdir()
    return InstallerSpec(version="2025.1", installer_dir=installer_dir)


@pytest.fixture
def installed_payload(installer_spec: InstallerSpec) -> bytes:
    """Place a small fake installer archive and a matching digest file."""
    payload = b"not really a vivado installer"
    installer_spec.installer_path.write_bytes(payload)
    digest = hashlib.sha512(payload).hexdigest()
    installer_spec.digest_path.write_text(
        f"SHA512: {digest}\nfile: {installer_spec.installer_name}\n", encoding="utf-8"
    )
    return payload


@pytest.fixture
def make_build_config(tmp_dir: Path, installer_spec: InstallerSpec) -> Callable[..., BuildConfig]:
    """Factory fixture: a BuildConfig with every path inside the temp dir."""

    def _factory(**overrides: Any) -> BuildConfig:
        defaults: dict[str, Any] = {
            "image_name": "test-vivado",
            "runtime": RuntimeName.PODMAN,
            "context_dir": tmp_dir,
            "cache_dir": tmp_dir / "cache",
            "log_file": tmp_dir / "logs" / "build.log",
            "progress_file": tmp_dir / "logs" / "build-progress.json",
            "export_dir": tmp_dir / "exports",
            "monitor_interval": 3600.0,
            "installer": installer_spec,
        }
        defaults.update(overrides)
        return BuildConfig(**defaults)

    return _factory


# ---------------------------------------------------------------------------
# Fake container engine
# ---------------------------------------------------------------------------


class FakeRunner:
    """``subprocess.run`` stand-in that records calls and replays canned output.

    ``responses`` maps a command prefix (tuple of argv words after the
    engine binary) to ``(returncode, stdout)``. The longest matching prefix
    wins; unmatched commands succeed with empty output.
    """

    def __init__(self, responses: dict[tuple[str, ...], tuple[int, str]] | None = None) -> None:
        self.responses = responses or {}
        self.calls: list[list[str]] = []

    def __call__(self, cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess:
        self.calls.append(list(cmd))
        args = tuple(cmd[1:])
        best: tuple[int, str] = (0, "")
        best_len = -1
        for prefix, response in self.responses.items():
            if args[: len(prefix)] == prefix and len(prefix) > best_len:
                best, best_len = response, len(prefix)
        returncode, stdout = best
        return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr="")


class FakeRuntime(ContainerRuntime):
    """ContainerRuntime whose engine is always present and builds instantly."""

    def __init__(
        self,
        name: RuntimeName | str = RuntimeName.PODMAN,
        runner: FakeRunner | None = None,
        build_status: int = 0,
        build_output: list[str] | None = None,
    ) -> None:
        self.runner = runner or FakeRunner({("--version",): (0, "version 5.0.2\n")})
        super().__init__(name, runner=self.runner)
        self.build_status = build_status
        self.build_output = build_output or ["STEP 1/3: FROM ubuntu:24.04", "COMMIT test-vivado"]
        self.streamed: list[list[str]] = []

    def which(self) -> str | None:
        return f"/usr/bin/{self.binary}"

    def stream(self, cmd, on_line=None) -> int:
        self.streamed.append(list(cmd))
        for line in self.build_output:
            if on_line is not None:
                on_line(line)
        return self.build_status

    def save(self, image: str, output: Path) -> Path:
        output = Path(output)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(f"image archive for {image}".encode())
        return output


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def fake_runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
def make_fake_runtime() -> Callable[..., FakeRuntime]:
    """Factory fixture: a FakeRuntime with custom engine responses or build status."""

    def _factory(
        name: RuntimeName | str = RuntimeName.PODMAN,
        responses: dict[tuple[str, ...], tuple[int, str]] | None = None,
        **kwargs: Any,
    ) -> FakeRuntime:
        runner = FakeRunner(responses) if responses is not None else None
        return FakeRuntime(name, runner=runner, **kwargs)

    return _factory


@pytest.fixture
def make_runner() -> Callable[..., FakeRunner]:
    """Factory fixture: a FakeRunner with canned responses."""
    return FakeRunner


@pytest.fixture
def hello_sha512() -> str:
    """SHA-512 of the five bytes ``hello``."""
    return HELLO_SHA512
