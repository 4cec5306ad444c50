"""vivbuild: Verified, monitored Vivado container image builds.

v0.1.0:
  - SHA512 installer verification against free-form ``.digests`` files
  - Verify, skip and compute-only modes with strict or lenient policy
  - Internal-mirror installer download over httpx
  - Podman and Docker (buildx) image builds with streamed logs
  - Step progress published to a JSON file for ``vivbuild progress``
  - Background resource sampling and a live Rich monitor
  - Host-aware build time estimation
"""

__version__ = "0.1.0"
__description__ = "Verified, monitored Vivado container image builds"

from vivbuild.core.orchestrator import BuildOrchestrator
from vivbuild.core.verifier import verify
from vivbuild.cli.app import app as cli

__all__ = ["BuildOrchestrator", "verify", "cli", "__version__"]
