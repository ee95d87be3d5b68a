"""Allow ``python -m forge_cli`` invocation.

This module simply delegates to the CLI error-boundary entry point so
that ``python -m forge_cli`` behaves identically to the ``forge``
console script.
"""

from __future__ import annotations

from forge_cli.cli.app import cli

if __name__ == "__main__":
    cli()
