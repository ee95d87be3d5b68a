"""Infrastructure layer: external system integration.

This layer wraps all interaction with the Forge HTTP API, the config
file, and git.  Every raw third-party exception must be caught here and
re-raised as a :class:`~forge_cli.exceptions.ForgeError` subclass.

Rules
-----
* No imports from ``cli``.
* No user-facing output (no ``print()``, no Rich rendering).
* Must expose clean, typed interfaces consumed by the core layer.
"""

from forge_cli.infra.api_client import ForgeAPIClient
from forge_cli.infra.config_store import JsonConfigService
from forge_cli.infra.repo import GitRepoClient, GitStatus, detect_git
from forge_cli.infra.transport import (
    RequestConfig,
    RetryNotice,
    Transport,
    backoff_delay,
    parse_response,
)

__all__: list[str] = [
    "ForgeAPIClient",
    "GitRepoClient",
    "GitStatus",
    "JsonConfigService",
    "RequestConfig",
    "RetryNotice",
    "Transport",
    "backoff_delay",
    "detect_git",
    "parse_response",
]
