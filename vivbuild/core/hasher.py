"""Streaming file digests and digest-file parsing.

Installer archives reach the 100+ GB range, so files are always hashed
through a bounded read buffer; memory use does not grow with file size.
"""

from __future__ import annotations

import hashlib
import logging
import re
from collections.abc import Callable
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1024 * 1024

# Hex width of each supported algorithm's output.
DIGEST_HEX_LENGTHS: dict[str, int] = {
    "sha256": 64,
    "sha512": 128,
}

_PATTERNS: dict[str, re.Pattern[str]] = {
    name: re.compile(f"[0-9a-fA-F]{{{width}}}")
    for name, width in DIGEST_HEX_LENGTHS.items()
}


def _check_algorithm(algorithm: str) -> str:
    name = algorithm.lower()
    if name not in DIGEST_HEX_LENGTHS:
        raise ValueError(
            f"Unsupported digest algorithm {algorithm!r}; "
            f"expected one of {sorted(DIGEST_HEX_LENGTHS)}"
        )
    return name


def file_digest(
    path: Path,
    algorithm: str = "sha512",
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    progress: Callable[[int], None] | None = None,
) -> str:
    """Return the lowercase hex digest of a file, read ``chunk_size`` bytes at a time.

    ``progress`` is called with the byte count of every chunk read. OS errors
    propagate to the caller unchanged.
    """
    hasher = hashlib.new(_check_algorithm(algorithm))
    with Path(path).open("rb") as stream:
        while chunk := stream.read(chunk_size):
            hasher.update(chunk)
            if progress is not None:
                progress(len(chunk))
    return hasher.hexdigest()


def sha512_file(path: Path, **kwargs) -> str:
    """SHA-512 hex digest of a file."""
    return file_digest(path, "sha512", **kwargs)


def sha256_file(path: Path, **kwargs) -> str:
    """SHA-256 hex digest of a file."""
    return file_digest(path, "sha256", **kwargs)


def extract_digests(text: str, algorithm: str = "sha512") -> list[str]:
    """Pull every fixed-width hex run out of free-form text.

    Labels, whitespace and line breaks around the digests are ignored. Runs
    are matched left to right without overlap, so a longer hex run yields
    consecutive full-width chunks. Results are lowercased and deduplicated,
    keeping the order of first appearance.
    """
    pattern = _PATTERNS[_check_algorithm(algorithm)]
    seen: dict[str, None] = {}
    for match in pattern.findall(text):
        seen.setdefault(match.lower(), None)
    return list(seen)


def format_checksum_line(digest: str, filename: str) -> str:
    """coreutils ``sha*sum`` line: ``<hex>  <name>``."""
    return f"{digest}  {filename}\n"


def write_checksum_file(artifact: Path, algorithm: str = "sha256") -> Path:
    """Hash ``artifact`` and write ``<artifact>.<algorithm>`` next to it.

    The file can be checked with ``sha256sum -c`` from the artifact's directory.
    """
    name = _check_algorithm(algorithm)
    artifact = Path(artifact)
    digest = file_digest(artifact, name)
    sidecar = artifact.with_name(f"{artifact.name}.{name}")
    sidecar.write_text(format_checksum_line(digest, artifact.name), encoding="utf-8")
    logger.debug("Wrote %s checksum for %s to %s", name, artifact, sidecar)
    return sidecar


def write_digest_file(path: Path, digest: str, filename: str) -> Path:
    """Create or extend a digest file with one ``<hex>  <name>`` record."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as fh:
        fh.write(format_checksum_line(digest, filename))
    return path
