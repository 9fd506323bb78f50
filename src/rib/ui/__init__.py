"""Command-line surface of rib."""

from rib.ui.cli import CLIError, build_parser, run_cli
from rib.ui.render import CLIRenderer, create_renderer

__all__ = ["CLIError", "CLIRenderer", "build_parser", "create_renderer", "run_cli"]
