"""Core / service layer: command-state resolution and domain models.

Rules
-----
* No ``print()`` calls.
* No filesystem or network I/O.
* No imports from ``cli`` or ``infra``.
* Collaborators are reached only through :mod:`forge_cli.core.protocols`.
"""

from forge_cli.core.models import (
    CommandState,
    Config,
    Credential,
    KnownProject,
    LoginRequirement,
    Organization,
    Project,
    ProjectConfig,
    Requirement,
    SetupRequest,
    User,
)
from forge_cli.core.protocols import (
    APIClient,
    ConfigService,
    InputService,
    OrganizationHandler,
    ProjectHandler,
    RepoClient,
)
from forge_cli.core.resolver import CommandStateResolver

__all__: list[str] = [
    "APIClient",
    "CommandState",
    "CommandStateResolver",
    "Config",
    "ConfigService",
    "Credential",
    "InputService",
    "KnownProject",
    "LoginRequirement",
    "Organization",
    "OrganizationHandler",
    "Project",
    "ProjectConfig",
    "ProjectHandler",
    "RepoClient",
    "Requirement",
    "SetupRequest",
    "User",
]
