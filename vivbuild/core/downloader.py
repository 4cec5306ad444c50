"""Installer download from an internal mirror.

The vendor site requires an authenticated, interactive download, so the
public path is manual: the operator fetches the archive and drops it into
the installer directory. Organisations that mirror the archive internally
can set ``INTERNAL_DOWNLOAD_URL`` and let vivbuild fetch it, together with
an optional update file and the ``.digests`` file used for verification.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

import httpx
from pydantic import BaseModel, ConfigDict

from vivbuild.models.build import InstallerSpec

logger = logging.getLogger(__name__)

PUBLIC_DOWNLOAD_URL = "https://www.xilinx.com/support/download.html"
DEFAULT_CHUNK_SIZE = 1024 * 1024


class DownloadError(RuntimeError):
    """Raised when a file cannot be fetched from the mirror."""


class ManualDownloadRequired(DownloadError):
    """Raised when no internal mirror is configured for a required file."""

    def __init__(self, filename: str, target_dir: Path, public_url: str = PUBLIC_DOWNLOAD_URL) -> None:
        self.filename = filename
        self.target_dir = Path(target_dir)
        self.public_url = public_url
        super().__init__(
            f"Please download {filename} manually from {public_url} "
            f"and place it in the {self.target_dir} directory, "
            "or set an internal download URL."
        )


class DownloadOutcome(BaseModel):
    """Where a file ended up and whether it was fetched in this run."""

    model_config = ConfigDict(frozen=True)

    path: Path
    size_bytes: int
    downloaded: bool
    url: str | None = None


class InstallerDownloader:
    """Fetches installer files described by an ``InstallerSpec``.

    Parameters
    ----------
    spec:
        Installer version, file names, target directory and mirror URL.
    client:
        ``httpx.Client`` to use. One is created (and closed by ``close``)
        when not provided.
    """

    def __init__(
        self,
        spec: InstallerSpec,
        client: httpx.Client | None = None,
        *,
        timeout: float = 60.0,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        public_url: str = PUBLIC_DOWNLOAD_URL,
    ) -> None:
        self.spec = spec
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(timeout), follow_redirects=True
        )
        self._chunk_size = chunk_size
        self._public_url = public_url

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> InstallerDownloader:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # URL resolution
    # ------------------------------------------------------------------

    def resolve_url(self, filename: str) -> str:
        if not self.spec.internal_url:
            raise ManualDownloadRequired(filename, self.spec.installer_dir, self._public_url)
        return f"{self.spec.internal_url.rstrip('/')}/{filename}"

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def fetch(
        self,
        filename: str,
        *,
        overwrite: bool = False,
        progress: Callable[[int, int | None], None] | None = None,
    ) -> DownloadOutcome:
        """Download ``filename`` into the installer directory.

        An existing file is reused unless ``overwrite`` is set. Data is
        streamed to ``<name>.part`` and renamed into place only after the
        transfer completes. ``progress`` receives ``(chunk_bytes, total_bytes)``.
        """
        target = self.spec.installer_dir / filename
        if target.exists() and not overwrite:
            logger.info("Using existing %s", target)
            return DownloadOutcome(path=target, size_bytes=target.stat().st_size, downloaded=False)

        url = self.resolve_url(filename)
        target.parent.mkdir(parents=True, exist_ok=True)
        partial = target.with_name(target.name + ".part")
        logger.info("Downloading %s", url)
        try:
            with self._client.stream("GET", url) as response:
                response.raise_for_status()
                total = response.headers.get("Content-Length")
                total_bytes = int(total) if total and total.isdigit() else None
                with partial.open("wb") as fh:
                    for chunk in response.iter_bytes(self._chunk_size):
                        fh.write(chunk)
                        if progress is not None:
                            progress(len(chunk), total_bytes)
        except httpx.HTTPStatusError as exc:
            partial.unlink(missing_ok=True)
            raise DownloadError(
                f"Failed to download {url}: HTTP {exc.response.status_code}"
            ) from exc
        except (httpx.HTTPError, OSError) as exc:
            partial.unlink(missing_ok=True)
            raise DownloadError(f"Failed to download {url}: {exc}") from exc

        partial.replace(target)
        size = target.stat().st_size
        logger.info("Downloaded %s (%d bytes)", target, size)
        return DownloadOutcome(path=target, size_bytes=size, downloaded=True, url=url)

    def fetch_installer(self, **kwargs) -> DownloadOutcome:
        return self.fetch(self.spec.installer_name, **kwargs)

    def fetch_update(self, **kwargs) -> DownloadOutcome | None:
        """Fetch the configured update file; ``None`` when no update is configured."""
        if not self.spec.update:
            return None
        return self.fetch(self.spec.update, **kwargs)

    def fetch_digests(self, **kwargs) -> DownloadOutcome | None:
        """Fetch the installer's ``.digests`` file if the mirror has one.

        A missing mirror or a 404 is not an error: verification then runs
        without a reference and the caller's policy applies.
        """
        if not self.spec.internal_url and not self.spec.digest_path.exists():
            return None
        try:
            return self.fetch(self.spec.digest_name, **kwargs)
        except DownloadError as exc:
            cause = exc.__cause__
            if isinstance(cause, httpx.HTTPStatusError) and cause.response.status_code == 404:
                logger.warning("No digest file on mirror for %s", self.spec.installer_name)
                return None
            raise
