"""Typed façade over the Forge REST API.

One coroutine per remote operation.  Each method validates the IDs it
needs *before* touching the network, sends the request through
:class:`~forge_cli.infra.transport.Transport`, and decodes the
``{"data": ...}`` envelope with a parser from
:mod:`forge_cli.core.parsing`.

Transport failures are re-raised as :class:`~forge_cli.exceptions.APIError`
with an operation-specific message.  Authentication failures pass through
unchanged so the CLI can tell the user to log in again.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar
from urllib.parse import quote, urlencode

from forge_cli.core.models import Organization, OrganizationMember, Project, User
from forge_cli.core.parsing import (
    list_of,
    parse_organization,
    parse_organization_member,
    parse_project,
    parse_region_map,
    parse_user,
    project_payload,
)
from forge_cli.exceptions import (
    APIError,
    AuthenticationError,
    ForgeError,
    MissingDataError,
    MissingIDError,
    ValidationError,
)
from forge_cli.infra.transport import Transport, parse_response

T = TypeVar("T")

_parse_organizations = list_of(parse_organization)
_parse_projects = list_of(parse_project)
_parse_members = list_of(parse_organization_member)


def _require_id(value: str, what: str) -> None:
    if not value:
        raise MissingIDError(f"{what} ID is required")


def _require_field(value: str, what: str) -> None:
    if not value:
        raise ValidationError(f"{what} is required")


class ForgeAPIClient:
    """Concrete :class:`~forge_cli.core.protocols.APIClient`.

    Usage::

        async with Transport(settings.base_url, token) as transport:
            api = ForgeAPIClient(transport)
            user = await api.get_user()
    """

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    def set_auth_token(self, token: str) -> None:
        self._transport.set_token(token)

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    async def _send(self, action: str, method: str, path: str, body: Any = None) -> bytes:
        try:
            return await self._transport.send(method, path, body)
        except AuthenticationError:
            raise
        except ForgeError as exc:
            raise APIError(
                f"Failed to {action}: {exc}",
                status_code=getattr(exc, "status_code", None),
                hint=exc.hint,
            ) from exc

    async def _fetch(
        self,
        action: str,
        method: str,
        path: str,
        decoder: Callable[[Any], T],
        body: Any = None,
    ) -> T:
        return parse_response(await self._send(action, method, path, body), decoder)

    # ------------------------------------------------------------------
    # User
    # ------------------------------------------------------------------

    async def get_user(self) -> User:
        return await self._fetch("get user", "GET", "/api/user", parse_user)

    async def update_user(self, name: str, email: str, avatar_url: str) -> None:
        _require_field(email, "user email")
        _require_field(name, "user name")
        await self._send(
            "update user",
            "PUT",
            "/api/user",
            {"name": name, "email": email, "avatar_url": avatar_url},
        )

    # ------------------------------------------------------------------
    # Organizations
    # ------------------------------------------------------------------

    async def get_organizations(self) -> list[Organization]:
        return await self._fetch(
            "get organizations", "GET", "/api/organization", _parse_organizations,
        )

    async def get_organizations_invited_to(self) -> list[Organization]:
        return await self._fetch(
            "get organization invitations",
            "GET",
            "/api/organization/invited",
            _parse_organizations,
        )

    async def accept_organization_invitation(self, org_id: str) -> None:
        _require_id(org_id, "organization")
        await self._send(
            "accept organization invitation",
            "POST",
            f"/api/organization/{org_id}/accept-invitation",
        )

    async def get_organization_by_id(self, org_id: str) -> Organization:
        _require_id(org_id, "organization")
        return await self._fetch(
            "get organization by ID",
            "GET",
            f"/api/organization/{org_id}",
            parse_organization,
        )

    async def create_organization(
        self, name: str, slug: str, avatar_url: str = "",
    ) -> Organization:
        return await self._fetch(
            "create organization",
            "POST",
            "/api/organization",
            parse_organization,
            {"name": name, "slug": slug, "avatar_url": avatar_url},
        )

    async def get_organization_members(self, org_id: str) -> list[OrganizationMember]:
        _require_id(org_id, "organization")
        return await self._fetch(
            "get organization members",
            "GET",
            f"/api/organization/{org_id}/members",
            _parse_members,
        )

    async def invite_user_to_organization(self, org_id: str, email: str, role: str) -> None:
        _require_id(org_id, "organization")
        _require_field(email, "user email")
        await self._send(
            "invite user to organization",
            "POST",
            f"/api/organization/{org_id}/invite",
            {"invited_user_email": email, "role": role},
        )

    async def update_user_role_in_organization(
        self, org_id: str, email: str, role: str,
    ) -> None:
        _require_id(org_id, "organization")
        _require_field(email, "user email")
        await self._send(
            "update user role in organization",
            "POST",
            f"/api/organization/{org_id}/update-role",
            {"target_user_email": email, "role": role},
        )

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    async def get_projects(self, org_id: str) -> list[Project]:
        _require_id(org_id, "organization")
        return await self._fetch(
            "get projects",
            "GET",
            f"/api/organization/{org_id}/project",
            _parse_projects,
        )

    async def get_project_by_id(self, org_id: str, project_id: str) -> Project:
        _require_id(project_id, "project")
        _require_id(org_id, "organization")
        return await self._fetch(
            "get project by ID",
            "GET",
            f"/api/organization/{org_id}/project/{project_id}",
            parse_project,
        )

    async def lookup_project_from_repo(self, repo_url: str, repo_path: str) -> Project | None:
        """Return the project registered for this repo, or ``None``.

        The API answers "nothing registered" with an envelope that has no
        ``data`` field; only that case maps to ``None``.
        """
        path = "/api/project/?" + urlencode({"url": repo_url, "path": repo_path})
        body = await self._send("lookup project from repo", "GET", path)
        try:
            return parse_response(body, parse_project)
        except MissingDataError:
            return None

    async def create_project(self, org_id: str, project: Project) -> Project:
        _require_id(org_id, "organization")
        payload = project_payload(project)
        payload["org_id"] = org_id
        return await self._fetch(
            "create project",
            "POST",
            f"/api/organization/{org_id}/project",
            parse_project,
            payload,
        )

    async def update_project(self, org_id: str, project_id: str, project: Project) -> Project:
        _require_id(org_id, "organization")
        _require_id(project_id, "project")
        return await self._fetch(
            "update project",
            "PUT",
            f"/api/organization/{org_id}/project/{project_id}",
            parse_project,
            project_payload(project),
        )

    async def delete_project(self, org_id: str, project_id: str) -> None:
        _require_id(org_id, "organization")
        _require_id(project_id, "project")
        await self._send(
            "delete project",
            "DELETE",
            f"/api/organization/{org_id}/project/{project_id}",
        )

    async def check_project_slug_is_taken(self, org_id: str, project_id: str, slug: str) -> None:
        """Return normally if *slug* is free; raise :class:`APIError` if taken."""
        _require_id(org_id, "organization")
        _require_field(slug, "project slug")
        _require_id(project_id, "project")
        await self._send(
            "check project slug",
            "GET",
            f"/api/organization/{org_id}/project/{project_id}/{quote(slug, safe='')}/check_slug",
        )

    async def get_list_regions(self, org_id: str, project_id: str) -> list[str]:
        _require_id(org_id, "organization")
        _require_id(project_id, "project")
        return await self._fetch(
            "get regions",
            "GET",
            f"/api/organization/{org_id}/project/{project_id}/regions",
            parse_region_map,
        )
