"""Authenticated, retrying HTTP transport for the Forge API.

This module is the **only** place in the codebase that talks to
``httpx``.  Every ``httpx`` exception is caught here and re-raised as a
typed :class:`~forge_cli.exceptions.ForgeError` subclass, so nothing raw
escapes the infrastructure boundary.

Failure classes
---------------
fatal-auth
    HTTP 401/403.  Raised immediately as
    :class:`~forge_cli.exceptions.AuthenticationError`, never retried.
transient
    Timeouts, and any error whose message mentions 500, 502, 503, 504 or
    429.  Retried with exponential backoff plus jitter.
terminal
    Everything else.  Raised on the first occurrence.

Cancellation of the calling task interrupts both the in-flight request
and the backoff sleep; ``asyncio.CancelledError`` is never wrapped.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx

from forge_cli.exceptions import (
    APIError,
    AuthenticationError,
    ForgeError,
    MissingDataError,
    ResponseDecodeError,
    RetriesExhaustedError,
    TransientAPIError,
    TransportFailure,
    ValidationError,
)
from forge_cli.version import __version__

log = logging.getLogger(__name__)

T = TypeVar("T")

_TRANSIENT_MARKERS: tuple[str, ...] = ("500", "502", "503", "504", "429")
_AUTH_STATUSES: dict[int, str] = {401: "Unauthorized", 403: "Forbidden"}
_JITTER_DIVISOR = 2


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class RequestConfig:
    """Retry and request tunables.  Fixed defaults, not user settings."""

    max_retries: int = 5
    base_delay: float = 0.1
    timeout: float = 30.0
    content_type: str = "application/json"

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must not be negative")


@dataclass(frozen=True, slots=True)
class RetryNotice:
    """Retry progress event for a UI.

    ``status`` is ``"retrying"`` before each backoff sleep, and
    ``"settled"`` once a request that needed retries has finished,
    successfully or not.
    """

    status: str
    attempt: int
    """1-based number of the attempt that just failed."""
    max_retries: int
    url: str
    delay: float = 0.0
    error: ForgeError | None = None


RetryCallback = Callable[[RetryNotice], None]


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def backoff_delay(base: float, attempt: int, rng: random.Random | None = None) -> float:
    """Return the sleep before retry *attempt* (0-based), in seconds.

    The result lies in ``[base * 2**attempt, base * 2**attempt * 1.5]``.
    """
    source = rng or random
    backoff = base * (1 << attempt)
    return backoff + source.uniform(0, backoff / _JITTER_DIVISOR)


def is_retryable(exc: BaseException) -> bool:
    """``True`` iff *exc* is a transient failure worth another attempt."""
    if isinstance(exc, AuthenticationError):
        return False
    if isinstance(exc, TransientAPIError):
        return True
    if isinstance(exc, TransportFailure):
        return exc.transient
    return False


def _extract_message(body: bytes) -> str:
    try:
        payload = json.loads(body)
    except ValueError:
        return ""
    if isinstance(payload, dict):
        message = payload.get("message")
        if isinstance(message, str):
            return message
    return ""


def _error_from_response(response: httpx.Response) -> APIError:
    status = response.status_code

    if status in _AUTH_STATUSES:
        return AuthenticationError(
            f"{status} {_AUTH_STATUSES[status]}.",
            status_code=status,
            hint="Your login may have expired. Run `world login` again.",
        )

    message = _extract_message(response.content) or f"{status} {response.reason_phrase}".strip()
    if any(marker in message for marker in _TRANSIENT_MARKERS):
        return TransientAPIError(message, status_code=status)
    return APIError(message, status_code=status)


def parse_response(body: bytes, decoder: Callable[[Any], T]) -> T:
    """Unwrap the ``{"data": ...}`` envelope and decode its payload.

    Raises
    ------
    MissingDataError
        When the envelope carries no ``data`` field.
    ResponseDecodeError
        When *body* is not JSON or *decoder* rejects the payload.
    """
    try:
        payload = json.loads(body)
    except ValueError as exc:
        raise ResponseDecodeError(f"Failed to parse response: {exc}") from exc

    if not isinstance(payload, dict) or "data" not in payload:
        raise MissingDataError("Missing data field in response")

    try:
        return decoder(payload["data"])
    except (TypeError, ValueError, KeyError) as exc:
        raise ResponseDecodeError(f"Failed to decode response data: {exc}") from exc


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

class Transport:
    """Sends requests to the Forge API with auth, retries and error mapping.

    Usage::

        async with Transport("https://forge.world.dev", token) as transport:
            body = await transport.send("GET", "/api/user")

    Parameters
    ----------
    base_url:
        API root; request paths are appended verbatim.
    token:
        Bearer credential sent as ``Authorization: ArgusID <token>``.
    client:
        Pre-built ``httpx.AsyncClient`` (tests pass one backed by
        ``httpx.MockTransport``).  A client passed in is not closed by
        :meth:`aclose`.
    on_retry:
        Receives :class:`RetryNotice` events while a request is being retried.
    config:
        Retry tunables; defaults to :class:`RequestConfig`.
    rng:
        Jitter source; injectable for deterministic tests.
    """

    def __init__(
        self,
        base_url: str,
        token: str = "",
        *,
        client: httpx.AsyncClient | None = None,
        on_retry: RetryCallback | None = None,
        config: RequestConfig | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._config = config or RequestConfig()
        self._on_retry = on_retry
        self._rng = rng
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self._config.timeout),
            headers={"User-Agent": f"forge-cli/{__version__}"},
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def config(self) -> RequestConfig:
        return self._config

    def set_token(self, token: str) -> None:
        """Replace the credential used for subsequent requests."""
        self._token = token

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> Transport:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def _prepare(self, body: Any) -> tuple[dict[str, str], bytes | None]:
        headers: dict[str, str] = {}
        content: bytes | None = None

        if body is not None:
            try:
                content = json.dumps(body).encode("utf-8")
            except (TypeError, ValueError) as exc:
                raise ValidationError(f"Failed to encode request body: {exc}") from exc
            headers["Content-Type"] = self._config.content_type

        if self._token:
            headers["Authorization"] = f"ArgusID {self._token}"

        return headers, content

    async def _do_request(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        content: bytes | None,
    ) -> bytes:
        log.debug("%s %s", method, url)
        try:
            response = await self._client.request(
                method,
                url,
                headers=headers,
                content=content,
                timeout=self._config.timeout,
            )
        except httpx.TimeoutException as exc:
            raise TransportFailure(
                f"Request to {url} timed out",
                transient=True,
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportFailure(
                f"Request to {url} failed: {exc}",
                hint="Check your network connection.",
            ) from exc

        if response.status_code == httpx.codes.OK:
            return response.content
        raise _error_from_response(response)

    async def send(self, method: str, path: str, body: Any = None) -> bytes:
        """Send one logical request, retrying transient failures.

        Returns
        -------
        bytes
            The raw body of the first HTTP 200 response.

        Raises
        ------
        AuthenticationError
            On HTTP 401/403 (first occurrence, no retry).
        APIError, TransportFailure
            On a terminal failure.
        RetriesExhaustedError
            When every attempt failed transiently.
        """
        url = self._base_url + path
        headers, content = self._prepare(body)
        max_retries = self._config.max_retries
        failed = 0

        try:
            while True:
                try:
                    return await self._do_request(method, url, headers, content)
                except (APIError, TransportFailure) as exc:
                    if not is_retryable(exc):
                        raise
                    failed += 1
                    if failed >= max_retries:
                        raise RetriesExhaustedError(max_retries, exc) from exc
                    last_error = exc

                delay = backoff_delay(self._config.base_delay, failed - 1, self._rng)
                log.info(
                    "Request to %s failed (%s), retry %d/%d in %.2fs",
                    url, last_error, failed, max_retries - 1, delay,
                )
                self._notify(RetryNotice(
                    status="retrying",
                    attempt=failed,
                    max_retries=max_retries,
                    url=url,
                    delay=delay,
                    error=last_error,
                ))
                await asyncio.sleep(delay)
        finally:
            retried = min(failed, max_retries - 1)
            if retried:
                self._notify(RetryNotice(
                    status="settled",
                    attempt=retried,
                    max_retries=max_retries,
                    url=url,
                ))

    def _notify(self, notice: RetryNotice) -> None:
        if self._on_retry is not None:
            self._on_retry(notice)
