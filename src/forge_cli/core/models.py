"""Domain models for forge-cli.

Remote entities (:class:`User`, :class:`Organization`, :class:`Project`)
are **frozen** dataclasses: opaque records fetched verbatim from the
Forge API.  The persisted :class:`Config` and the per-invocation
:class:`CommandState` are mutable by design: they are filled in step by
step during command-state resolution.

None of these types perform I/O or depend on external packages.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


# ---------------------------------------------------------------------------
# Remote entities
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class User:
    """The authenticated Forge user."""

    id: str = ""
    name: str = ""
    email: str = ""
    avatar_url: str = ""


@dataclass(frozen=True, slots=True)
class Organization:
    """A Forge organization.  Only ``id`` is guaranteed once resolved."""

    id: str
    name: str = ""
    slug: str = ""
    owner_id: str = ""
    avatar_url: str = ""
    created_time: str = ""
    updated_time: str = ""


ROLE_ORDER = ("owner", "admin", "member", "none")
"""Member roles in display order.  ``"none"`` marks a removed member."""


@dataclass(frozen=True, slots=True)
class OrganizationMember:
    """A user's membership in an organization."""

    role: str
    user: User = field(default_factory=User)

    @property
    def display_role(self) -> str:
        """The role, or ``"none"`` when the API sent one we do not know."""
        return self.role if self.role in ROLE_ORDER else "none"


@dataclass(frozen=True, slots=True)
class ProjectConfig:
    """Deployment settings attached to a project."""

    regions: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Project:
    """A Forge project, owned by exactly one organization."""

    id: str
    name: str = ""
    slug: str = ""
    org_id: str = ""
    owner_id: str = ""
    repo_url: str = ""
    repo_path: str = ""
    avatar_url: str = ""
    config: ProjectConfig = field(default_factory=ProjectConfig)


# ---------------------------------------------------------------------------
# Persisted local state
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class Credential:
    """Login credential written by the (external) login flow."""

    token: str = ""
    token_expires_at: datetime | None = None
    id: str = ""
    name: str = ""
    email: str = ""

    def is_valid(self, now: datetime | None = None) -> bool:
        """``True`` iff a token is present and has not expired yet."""
        if not self.token or self.token_expires_at is None:
            return False
        current = now or datetime.now(timezone.utc)
        return current < self.token_expires_at


@dataclass(frozen=True, slots=True)
class KnownProject:
    """Durable memo linking a git remote + subdirectory to a project."""

    repo_url: str
    repo_path: str
    organization_id: str
    project_id: str
    project_name: str = ""

    def matches(self, repo_url: str, repo_path: str) -> bool:
        return self.repo_url == repo_url and self.repo_path == repo_path


@dataclass(slots=True)
class Config:
    """Persisted CLI state plus per-process transient fields.

    The ``curr_*`` fields are recomputed from git state once per process
    and are never written to disk.
    """

    organization_id: str = ""
    project_id: str = ""
    credential: Credential = field(default_factory=Credential)
    known_projects: list[KnownProject] = field(default_factory=list)

    curr_repo_known: bool = False
    curr_repo_url: str = ""
    curr_repo_path: str = ""
    curr_project_name: str = ""

    def reset_transient(self) -> None:
        """Zero every field that is derived rather than persisted."""
        self.curr_repo_known = False
        self.curr_repo_url = ""
        self.curr_repo_path = ""
        self.curr_project_name = ""

    def find_known_project(self, repo_url: str, repo_path: str) -> KnownProject | None:
        """Return the entry matching ``(repo_url, repo_path)`` exactly."""
        for known in self.known_projects:
            if known.matches(repo_url, repo_path):
                return known
        return None


# ---------------------------------------------------------------------------
# Requirement descriptors
# ---------------------------------------------------------------------------

class LoginRequirement(Enum):
    """Whether a command needs an authenticated user."""

    IGNORE = "ignore"
    NEED_LOGIN = "need_login"


class Requirement(Enum):
    """What a command needs from the organization or project context."""

    IGNORE = "ignore"
    NEED_DATA = "need_data"
    NEED_ID_ONLY = "need_id_only"
    NEED_EXISTING_DATA = "need_existing_data"
    NEED_EXISTING_ID_ONLY = "need_existing_id_only"
    NEED_REPO_LOOKUP = "need_repo_lookup"
    MUST_NOT_EXIST = "must_not_exist"

    @property
    def is_id_only(self) -> bool:
        return self in (Requirement.NEED_ID_ONLY, Requirement.NEED_EXISTING_ID_ONLY)

    @property
    def allows_creation(self) -> bool:
        return self in (Requirement.NEED_DATA, Requirement.NEED_ID_ONLY)

    @property
    def is_existing_only(self) -> bool:
        return self in (Requirement.NEED_EXISTING_DATA, Requirement.NEED_EXISTING_ID_ONLY)


@dataclass(frozen=True, slots=True)
class SetupRequest:
    """Per-command declaration of the context it needs.  Immutable."""

    login: LoginRequirement = LoginRequirement.IGNORE
    organization: Requirement = Requirement.IGNORE
    project: Requirement = Requirement.IGNORE


@dataclass(slots=True)
class CommandState:
    """Resolved context handed to a subcommand.

    Entities stay ``None`` when the corresponding requirement was
    ``IGNORE``.  Built fresh for every invocation.
    """

    logged_in: bool = False
    user: User | None = None
    organization: Organization | None = None
    project: Project | None = None
