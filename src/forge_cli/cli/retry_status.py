"""Rich status line driven by transport retry events.

While a request is being retried a single spinner line is shown and
updated in place; it disappears once the request settles.  The transport
only emits :class:`~forge_cli.infra.transport.RetryNotice` values.
"""

from __future__ import annotations

from typing import Any

from forge_cli.cli.console import escape_markup, get_rich_console
from forge_cli.infra.transport import RetryNotice


def describe_retry(notice: RetryNotice) -> str:
    """Render the one-line message for a ``"retrying"`` notice."""
    return (
        f"Failed to make request [{notice.url}]: {notice.error}. "
        f"Retrying ({notice.attempt}/{notice.max_retries - 1}) in {notice.delay:.1f}s..."
    )


class RichRetryStatus:
    """Callable ``on_retry`` adapter for Rich.

    Usage::

        with RichRetryStatus() as status:
            transport = Transport(base_url, token, on_retry=status)
    """

    def __init__(self, console: Any | None = None) -> None:
        self._console = console
        self._status: Any = None

    def __enter__(self) -> RichRetryStatus:
        return self

    def __exit__(self, *_args: object) -> None:
        self.stop()

    def stop(self) -> None:
        """Remove the status line (idempotent)."""
        if self._status is not None:
            self._status.stop()
            self._status = None

    def __call__(self, notice: RetryNotice) -> None:
        if notice.status == "settled":
            self.stop()
            return

        text = f"[yellow]{escape_markup(describe_retry(notice))}[/yellow]"
        if self._status is None:
            console = self._console or get_rich_console()
            self._status = console.status(text)
            self._status.start()
        else:
            self._status.update(text)
