"""UI package exports for the CLI and plain-text rendering."""

from code_quality_tools.ui.cli import CLIError, build_parser, main, run_cli
from code_quality_tools.ui.render import CLIRenderer, create_renderer

__all__ = [
    "CLIError",
    "CLIRenderer",
    "build_parser",
    "create_renderer",
    "main",
    "run_cli",
]
