"""CLI package for GraphSearch command orchestration."""

from __future__ import annotations

__all__ = ["CommandRunner", "main"]

from GraphSearch.cli.runner import CommandRunner
from GraphSearch.cli.ui import cli


def main() -> None:
    """Run GraphSearch CLI.

    Entry point referenced by the console script in pyproject.toml.
    """
    cli()
