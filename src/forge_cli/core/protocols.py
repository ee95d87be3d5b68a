"""Protocols (interfaces) consumed by the core layer.

These define the contracts that infrastructure adapters and CLI
handlers must satisfy.  The resolver depends ONLY on these protocols,
never on concrete implementations, so every collaborator can be
replaced by a mock in tests.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from forge_cli.core.models import Config, Organization, Project, User


class APIClient(Protocol):
    """The subset of the Forge API the resolver talks to.

    Implementations must raise :class:`~forge_cli.exceptions.ForgeError`
    subclasses only, and must let ``asyncio.CancelledError`` through.
    """

    async def get_user(self) -> User: ...

    async def get_organizations(self) -> list[Organization]: ...

    async def get_organizations_invited_to(self) -> list[Organization]: ...

    async def accept_organization_invitation(self, org_id: str) -> None: ...

    async def get_organization_by_id(self, org_id: str) -> Organization: ...

    async def get_projects(self, org_id: str) -> list[Project]: ...

    async def get_project_by_id(self, org_id: str, project_id: str) -> Project: ...

    async def lookup_project_from_repo(
        self, repo_url: str, repo_path: str,
    ) -> Project | None:
        """Return the project mapped to the repo, or ``None`` if there is none."""
        ...  # pragma: no cover


class ConfigService(Protocol):
    """Contract for the persisted config store."""

    def get_config(self) -> Config:
        """Return the live, mutable config owned by this service."""
        ...  # pragma: no cover

    def save(self) -> None:
        """Persist the config.

        Raises
        ------
        ConfigSaveError
            When the config cannot be written.
        """
        ...  # pragma: no cover

    def add_known_project(
        self,
        project_id: str,
        project_name: str,
        organization_id: str,
        repo_url: str,
        repo_path: str,
    ) -> None: ...

    def remove_known_project(self, project_id: str, organization_id: str) -> None: ...


class RepoClient(Protocol):
    """Contract for git working-tree introspection."""

    def find_git_path_and_url(self) -> tuple[str, str]:
        """Return ``(path, url)`` for the current working directory.

        ``path`` is relative to the repository root (``""`` at the
        root); ``url`` is the ``origin`` remote without ``.git``.

        Raises
        ------
        RepoNotFoundError
            When not inside a git checkout with an origin remote.  The
            exception carries any partial ``path``/``url`` discovered.
        """
        ...  # pragma: no cover


class InputService(Protocol):
    """Contract for interactive terminal input.

    All methods are coroutines so that cancelling the calling task
    interrupts a pending read.
    """

    async def prompt(self, question: str, default: str = "") -> str:
        """Read one line; an empty answer yields *default*."""
        ...  # pragma: no cover

    async def confirm(self, question: str, default: str = "Y") -> bool:
        """Ask a yes/no question, re-asking until the answer is valid."""
        ...  # pragma: no cover

    async def select(
        self, title: str, options: Sequence[str], *, default_index: int = -1,
    ) -> int:
        """Let the user pick one of *options*; return its index.

        Raises
        ------
        InputCanceledError
            When the user quits the selection.
        """
        ...  # pragma: no cover

    def notify(self, message: str) -> None:
        """Show a line of information to the user."""
        ...  # pragma: no cover


class OrganizationHandler(Protocol):
    """Interactive organization flows the resolver delegates to."""

    async def create(self) -> Organization: ...

    async def prompt_for_switch(
        self, organizations: Sequence[Organization], allow_create: bool,
    ) -> Organization: ...

    def print_no_organizations(self) -> None: ...


class ProjectHandler(Protocol):
    """Interactive project flows the resolver delegates to."""

    async def create(self) -> Project: ...

    async def switch(self, allow_create: bool) -> Project: ...

    def pre_create_update_validation(self) -> tuple[str, str]:
        """Return ``(repo_path, repo_url)`` when a project can be created here.

        Raises
        ------
        RepoNotFoundError
            When the working directory cannot host a new project.
        """
        ...  # pragma: no cover

    def print_no_projects(self) -> None: ...
