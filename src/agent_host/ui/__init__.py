"""UI package exports for the diagnostic CLI and its renderer."""

from agent_host.ui.cli import build_parser, main, run_cli
from agent_host.ui.render import CLIRenderer, create_renderer

__all__ = [
    "CLIRenderer",
    "build_parser",
    "create_renderer",
    "main",
    "run_cli",
]
