"""CLI console helpers.

Rich is imported lazily so that bootstrap paths (``--help``,
``--version``) work before any UI dependency is touched.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from forge_cli.exceptions import DependencyError


def _load_rich_console_class() -> type[Any]:
    """Return ``rich.console.Console`` class or raise ``DependencyError``."""
    try:
        from rich.console import Console
    except ModuleNotFoundError as exc:
        raise DependencyError(
            "rich is not installed. Install with: pip install rich",
        ) from exc
    return Console


@lru_cache(maxsize=1)
def get_rich_console() -> Any:
    """Return the shared Rich console targeting stderr."""
    console_class = _load_rich_console_class()
    return console_class(stderr=True)


def escape_markup(text: str) -> str:
    """Escape *text* so that ``[slug]`` style brackets print literally."""
    from rich.markup import escape

    return escape(text)


class _ConsoleProxy:
    """``print``-compatible proxy that resolves the Rich console per call."""

    def print(self, *objects: object, **kwargs: Any) -> None:
        get_rich_console().print(*objects, **kwargs)


console = _ConsoleProxy()
