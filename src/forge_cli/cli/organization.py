"""Interactive organization flows: create, switch, members.

Satisfies :class:`~forge_cli.core.protocols.OrganizationHandler`.  All
text goes through the injected input service so the flows can be driven
entirely by a mock in tests.
"""

from __future__ import annotations

from collections.abc import Sequence

from forge_cli.core.models import ROLE_ORDER, Organization, OrganizationMember
from forge_cli.core.protocols import ConfigService, InputService
from forge_cli.core.slug import create_slug_from_name, slug_to_sane_check, validate_name
from forge_cli.exceptions import (
    APIError,
    CreationCanceledError,
    SelectionCanceledError,
    ValidationError,
)
from forge_cli.infra.api_client import ForgeAPIClient

MAX_ORG_NAME_LEN = 50
ORG_SLUG_MIN_LEN = 3
ORG_SLUG_MAX_LEN = 15

_SLUG_TAKEN = "organization slug already exists"


def describe_organization(org: Organization) -> str:
    return f"{org.name} [{org.slug}]"


class InteractiveOrganizationHandler:
    """Organization create/switch/member flows backed by the Forge API."""

    def __init__(
        self,
        api: ForgeAPIClient,
        config_service: ConfigService,
        input_service: InputService,
    ) -> None:
        self._api = api
        self._config_service = config_service
        self._input = input_service

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def _input_name(self) -> str:
        while True:
            name = await self._input.prompt("Enter organization name")
            try:
                validate_name(name, MAX_ORG_NAME_LEN)
            except ValidationError as exc:
                self._input.notify(f"Error: {exc}")
                continue
            return name

    async def _input_slug(self, suggestion_source: str) -> str:
        suggestion = create_slug_from_name(suggestion_source, ORG_SLUG_MIN_LEN, ORG_SLUG_MAX_LEN)
        while True:
            answer = await self._input.prompt(
                f"Enter organization slug [{suggestion}]", suggestion,
            )
            try:
                return slug_to_sane_check(answer, ORG_SLUG_MIN_LEN, ORG_SLUG_MAX_LEN)
            except ValidationError as exc:
                self._input.notify(f"Error: {exc}")

    async def create(self) -> Organization:
        """Prompt for name and slug, create the organization and select it.

        Raises
        ------
        CreationCanceledError
            When the user declines the final confirmation.
        """
        self._input.notify("Create New Organization")
        name = await self._input_name()
        slug_source = name

        while True:
            slug = await self._input_slug(slug_source)

            self._input.notify("Organization Details")
            self._input.notify(f"Name: {name}")
            self._input.notify(f"Slug: {slug}")
            if not await self._input.confirm("Create organization with these details? (y/N)", "n"):
                raise CreationCanceledError("Organization creation canceled")

            try:
                org = await self._api.create_organization(name, slug)
            except APIError as exc:
                if _SLUG_TAKEN not in str(exc):
                    raise
                self._input.notify(
                    f"An Organization already exists with slug: {slug}, "
                    "please choose a different slug.",
                )
                slug_source = slug
                continue

            self._input.notify(
                f"Organization '{org.name}' with slug '{org.slug}' created successfully!",
            )
            self._select(org)
            return org

    # ------------------------------------------------------------------
    # Switch
    # ------------------------------------------------------------------

    async def prompt_for_switch(
        self, organizations: Sequence[Organization], allow_create: bool,
    ) -> Organization:
        """Let the user pick one of *organizations* (or create a new one)."""
        options = [describe_organization(org) for org in organizations]
        create_index = -1
        if allow_create:
            create_index = len(options)
            options.append("+ Create a new organization")
        quit_index = len(options)
        options.append("Quit")

        current_id = self._config_service.get_config().organization_id
        default_index = next(
            (i for i, org in enumerate(organizations) if org.id == current_id), -1,
        )

        choice = await self._input.select(
            "Available Organizations", options, default_index=default_index,
        )
        if choice == quit_index:
            raise SelectionCanceledError("Organization selection canceled")
        if choice == create_index:
            return await self.create()

        org = organizations[choice]
        self._select(org)
        self._input.notify(f"Switched to organization: {describe_organization(org)}")
        return org

    async def switch(self) -> Organization:
        """Switch the selected organization.

        Refused inside a directory that already maps to a known project,
        since that mapping pins the organization.
        """
        cfg = self._config_service.get_config()
        if cfg.curr_repo_known:
            raise ValidationError(
                "Cannot switch organization, current git working directory "
                f"belongs to project: {cfg.curr_project_name}.",
                hint="Run this command outside the project's directory.",
            )

        orgs = await self._api.get_organizations()
        if not orgs:
            self.print_no_organizations()
            raise SelectionCanceledError("Organization selection canceled")
        return await self.prompt_for_switch(orgs, False)

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    async def members_list(self, org: Organization, include_removed: bool = False) -> None:
        """Print the members of *org* grouped by role.

        Members with an unknown role are listed as removed (``none``),
        which is hidden unless *include_removed* is set.
        """
        members = await self._api.get_organization_members(org.id)
        if not members:
            self._input.notify(f"No members found for organization: {describe_organization(org)}")
            return

        by_role: dict[str, list[OrganizationMember]] = {}
        for member in members:
            by_role.setdefault(member.display_role, []).append(member)

        for role in ROLE_ORDER:
            if role == "none" and not include_removed:
                continue
            in_role = by_role.get(role)
            if not in_role:
                continue
            self._input.notify(f"  {role}  ")
            for member in in_role:
                self._input.notify(f"{member.user.name} - {member.user.email}")

    async def invite(self, org: Organization, email: str, role: str) -> None:
        await self._api.invite_user_to_organization(org.id, email, role)
        self._input.notify(
            f"Invited {email} to organization {describe_organization(org)} as {role}",
        )

    async def update_role(self, org: Organization, email: str, role: str) -> None:
        await self._api.update_user_role_in_organization(org.id, email, role)
        self._input.notify(f"Updated role of {email} in {describe_organization(org)} to {role}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def print_no_organizations(self) -> None:
        self._input.notify("No Organizations Found")
        self._input.notify("1. Use 'forge organization create' to create an organization.")
        self._input.notify("2. Have a member send an invite using 'forge organization invite'.")

    def _select(self, org: Organization) -> None:
        self._config_service.get_config().organization_id = org.id
        self._config_service.save()
