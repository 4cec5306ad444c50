"""Terminal rendering for vivbuild commands."""

from vivbuild.monitor.renderer import BuildRenderer

__all__ = ["BuildRenderer"]
