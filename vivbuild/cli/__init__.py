"""vivbuild CLI: Typer-based command-line interface.

Provides the ``vivbuild`` command with subcommands for verifying and
downloading the Vivado installer, building the container image, and
watching a running build.

All output uses Rich for formatted terminal display.
"""
