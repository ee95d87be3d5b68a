"""Command-state resolution: the context every subcommand runs against.

Given a :class:`~forge_cli.core.models.SetupRequest`, the resolver
derives *who* is logged in and *which* organization and project are in
scope.  It prefers cheap local state (the known-projects table, IDs
already in the config) over remote calls, and only prompts the user
when the answer is genuinely ambiguous.

Procedure
---------
1. Snapshot the config and match the git checkout against known projects.
2. Check the login.
3. Offer pending organization invitations.
4. Look the project up from the git remote, remembering any match.
5. Resolve the organization, then the project.
6. Save the config.

Guarantees
----------
* No ``print()``; user-facing text goes through the injected
  :class:`~forge_cli.core.protocols.InputService`.
* Authentication failures and cancellation always propagate unchanged.
* The config is saved exactly once on success (plus once more right
  after a repo discovery).
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from typing import assert_never

from forge_cli.core.models import (
    CommandState,
    Config,
    LoginRequirement,
    Organization,
    Project,
    Requirement,
    SetupRequest,
)
from forge_cli.core.protocols import (
    APIClient,
    ConfigService,
    InputService,
    OrganizationHandler,
    ProjectHandler,
    RepoClient,
)
from forge_cli.exceptions import (
    AlreadyExistsError,
    AuthenticationError,
    ConfigSaveError,
    CreationCanceledError,
    ForgeError,
    NotLoggedInError,
    RepoNotFoundError,
    SelectionCanceledError,
)

log = logging.getLogger(__name__)

LOGIN_HINT = "Run `world login` to authenticate."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CommandStateResolver:
    """Builds a fresh :class:`CommandState` for each command invocation.

    Parameters
    ----------
    config_service:
        Owner of the persisted :class:`Config`.
    repo_client:
        Git working-tree introspection.
    organization_handler, project_handler:
        Interactive create/switch flows.
    api_client:
        Forge API façade.
    input_service:
        Prompts and user-facing notices.
    clock:
        Returns the current UTC time; injectable for tests.
    """

    def __init__(
        self,
        config_service: ConfigService,
        repo_client: RepoClient,
        organization_handler: OrganizationHandler,
        project_handler: ProjectHandler,
        api_client: APIClient,
        input_service: InputService,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._config_service = config_service
        self._repo_client = repo_client
        self._organization_handler = organization_handler
        self._project_handler = project_handler
        self._api = api_client
        self._input = input_service
        self._clock = clock

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def resolve(self, request: SetupRequest) -> CommandState:
        """Run the full resolution procedure for *request*.

        Raises
        ------
        NotLoggedInError
            When a login is required (or needed for a repo lookup) and
            the stored token is missing or expired.
        AlreadyExistsError
            When a ``MUST_NOT_EXIST`` requirement is violated.
        SelectionCanceledError
            When the user declines every offered organization/project.
        ConfigSaveError
            When the final config save fails.
        """
        state = CommandState()
        cfg = self._snapshot_config()

        await self._handle_login(request.login, state, cfg)

        if state.logged_in and request.login is not LoginRequirement.IGNORE:
            await self._handle_invitations()

        await self._handle_repo_lookup(request, state, cfg)
        await self._handle_state_setup(request, state, cfg)

        try:
            self._config_service.save()
        except ConfigSaveError as exc:
            raise ConfigSaveError(
                f"failed to save config after setup: {exc}",
                hint=exc.hint,
            ) from exc

        return state

    # ------------------------------------------------------------------
    # Step 1: config snapshot
    # ------------------------------------------------------------------

    def _snapshot_config(self) -> Config:
        cfg = self._config_service.get_config()
        cfg.reset_transient()

        try:
            path, url = self._repo_client.find_git_path_and_url()
        except RepoNotFoundError as exc:
            # Keep whatever was discovered; outside a repo both are empty.
            log.debug("git introspection failed: %s", exc)
            path, url = exc.path, exc.url

        cfg.curr_repo_path = path
        cfg.curr_repo_url = url

        if url:
            known = cfg.find_known_project(url, path)
            if known is not None:
                cfg.organization_id = known.organization_id
                cfg.project_id = known.project_id
                cfg.curr_project_name = known.project_name
                cfg.curr_repo_known = True
        return cfg

    # ------------------------------------------------------------------
    # Step 2: login
    # ------------------------------------------------------------------

    async def _handle_login(
        self,
        requirement: LoginRequirement,
        state: CommandState,
        cfg: Config,
    ) -> None:
        logged_in = cfg.credential.is_valid(self._clock())

        match requirement:
            case LoginRequirement.NEED_LOGIN:
                if not logged_in:
                    raise NotLoggedInError("not logged in", hint=LOGIN_HINT)
                state.user = await self._api.get_user()
            case LoginRequirement.IGNORE:
                pass
            case _:
                assert_never(requirement)

        state.logged_in = logged_in

    # ------------------------------------------------------------------
    # Step 3: invitations
    # ------------------------------------------------------------------

    async def _handle_invitations(self) -> None:
        invitations = await self._api.get_organizations_invited_to()
        if invitations:
            self._input.notify("Organization Invitations")

        for org in invitations:
            while True:
                self._input.notify(
                    f"You are invited to join the organization: {org.name} [{org.slug}]",
                )
                answer = await self._input.prompt("Would you like to join? [Y/n]", "Y")
                if answer == "Y":
                    await self._api.accept_organization_invitation(org.id)
                    break
                if answer in ("n", ""):
                    break
                self._input.notify("Invalid input, must be capital 'Y' or 'n'")

    # ------------------------------------------------------------------
    # Step 4: repo lookup
    # ------------------------------------------------------------------

    @staticmethod
    def _needs_repo_lookup(request: SetupRequest, cfg: Config) -> bool:
        if cfg.curr_repo_known or not cfg.curr_repo_url:
            return False
        explicit = Requirement.NEED_REPO_LOOKUP in (request.organization, request.project)
        # any real project requirement implies a lookup
        implied = request.project not in (Requirement.IGNORE, Requirement.NEED_REPO_LOOKUP)
        return explicit or implied

    async def _handle_repo_lookup(
        self,
        request: SetupRequest,
        state: CommandState,
        cfg: Config,
    ) -> None:
        if not self._needs_repo_lookup(request, cfg):
            return

        if not state.logged_in:
            raise NotLoggedInError(
                "not logged in, can't lookup project from git repo",
                hint=LOGIN_HINT,
            )

        project = await self._api.lookup_project_from_repo(cfg.curr_repo_url, cfg.curr_repo_path)
        if project is None or not project.id:
            return

        self._config_service.add_known_project(
            project.id,
            project.name,
            project.org_id,
            cfg.curr_repo_url,
            cfg.curr_repo_path,
        )
        try:
            self._config_service.save()
        except ConfigSaveError as exc:
            log.warning("Failed to save config after adding known project: %s", exc)

        cfg.project_id = project.id
        cfg.organization_id = project.org_id
        cfg.curr_project_name = project.name
        cfg.curr_repo_known = True

    # ------------------------------------------------------------------
    # Step 5: organization & project
    # ------------------------------------------------------------------

    async def _handle_state_setup(
        self,
        request: SetupRequest,
        state: CommandState,
        cfg: Config,
    ) -> None:
        org_req = request.organization
        project_req = request.project
        have_org_id = bool(cfg.organization_id)
        have_project_id = bool(cfg.project_id)

        if org_req is Requirement.MUST_NOT_EXIST and have_org_id:
            raise AlreadyExistsError("organization already exists")
        if project_req is Requirement.MUST_NOT_EXIST and have_project_id:
            raise AlreadyExistsError("project already exists")
        if org_req is Requirement.MUST_NOT_EXIST and project_req is Requirement.MUST_NOT_EXIST:
            return

        if org_req.is_id_only and have_org_id and project_req.is_id_only and have_project_id:
            state.organization = Organization(id=cfg.organization_id)
            state.project = Project(id=cfg.project_id, name=cfg.curr_project_name)
            return

        if cfg.curr_repo_known and await self._load_known_repo(request, state, cfg):
            return

        if have_org_id and org_req.is_id_only:
            state.organization = Organization(id=cfg.organization_id)
        else:
            await self._resolve_organization(org_req, state, cfg)

        if have_project_id and project_req.is_id_only:
            state.project = Project(id=cfg.project_id, name=cfg.curr_project_name)
        else:
            await self._resolve_project(project_req, state, cfg)

    async def _load_known_repo(
        self,
        request: SetupRequest,
        state: CommandState,
        cfg: Config,
    ) -> bool:
        """Fetch the org/project the current repo maps to.

        Returns ``False`` when the IDs cannot be fetched any more, so
        that the caller falls back to interactive resolution.
        """
        want_org = request.organization is not Requirement.IGNORE
        want_project = request.project is not Requirement.IGNORE
        if not (want_org or want_project):
            return True

        try:
            org = await self._api.get_organization_by_id(cfg.organization_id)
            project = await self._api.get_project_by_id(cfg.organization_id, cfg.project_id)
        except AuthenticationError:
            raise
        except ForgeError as exc:
            log.info("Known project for this repo could not be loaded: %s", exc)
            return False

        if want_org:
            self._adopt_organization(cfg, state, org)
        if want_project:
            self._adopt_project(cfg, state, project)
        return True

    async def _resolve_organization(
        self,
        requirement: Requirement,
        state: CommandState,
        cfg: Config,
    ) -> None:
        if requirement.allows_creation:
            await self._need_organization(state, cfg)
        elif requirement.is_existing_only:
            await self._need_existing_organization(state, cfg)

    async def _resolve_project(
        self,
        requirement: Requirement,
        state: CommandState,
        cfg: Config,
    ) -> None:
        if requirement.allows_creation:
            await self._need_project(state, cfg)
        elif requirement.is_existing_only:
            await self._need_existing_project(state, cfg)

    # ------------------------------------------------------------------
    # Organization: fetch or create
    # ------------------------------------------------------------------

    async def _need_organization(self, state: CommandState, cfg: Config) -> None:
        orgs = await self._api.get_organizations()

        if not orgs:
            self._input.notify("No organizations found.")
            if not await self._input.confirm("Would you like to create one? (Y/n)", "Y"):
                raise CreationCanceledError("Organization creation canceled")
            org = await self._organization_handler.create()
        elif len(orgs) == 1:
            org = await self._choose_single_organization(orgs[0])
        else:
            org = await self._organization_handler.prompt_for_switch(orgs, True)

        self._adopt_organization(cfg, state, org)

    async def _choose_single_organization(self, org: Organization) -> Organization:
        self._input.notify(f"Found one organization: {org.name} [{org.slug}]")
        while True:
            choice = await self._input.prompt("Use this organization? (Y/n/c to create new)", "Y")
            if choice == "Y":
                return org
            if choice == "n":
                raise SelectionCanceledError("Organization selection canceled")
            if choice == "c":
                return await self._organization_handler.create()
            self._input.notify("Please select capital 'Y' or lowercase 'n'/'c'")

    async def _need_existing_organization(self, state: CommandState, cfg: Config) -> None:
        orgs = await self._api.get_organizations()

        if not orgs:
            self._organization_handler.print_no_organizations()
            raise SelectionCanceledError("Organization selection canceled")

        if len(orgs) == 1:
            self._adopt_organization(cfg, state, orgs[0])
            return

        current = await self._fetch_current_organization(cfg)
        if current is None:
            current = await self._organization_handler.prompt_for_switch(orgs, False)
        self._adopt_organization(cfg, state, current)

    async def _fetch_current_organization(self, cfg: Config) -> Organization | None:
        if not cfg.organization_id:
            return None
        try:
            org = await self._api.get_organization_by_id(cfg.organization_id)
        except AuthenticationError:
            raise
        except ForgeError as exc:
            log.debug("Selected organization is no longer available: %s", exc)
            return None
        return org if org.id else None

    # ------------------------------------------------------------------
    # Project: fetch or create
    # ------------------------------------------------------------------

    def _can_create_project(self) -> bool:
        try:
            self._project_handler.pre_create_update_validation()
        except ForgeError as exc:
            log.debug("Project creation not possible here: %s", exc)
            return False
        return True

    async def _need_project(self, state: CommandState, cfg: Config) -> None:
        projects = await self._api.get_projects(cfg.organization_id)

        if not projects:
            project = await self._create_first_project()
        elif len(projects) == 1:
            project = await self._choose_single_project(projects[0])
        else:
            project = await self._project_handler.switch(True)

        self._adopt_project(cfg, state, project)

    async def _create_first_project(self) -> Project:
        if not self._can_create_project():
            self._project_handler.print_no_projects()
            raise CreationCanceledError("Project creation canceled")
        if not await self._input.confirm("Would you like to create a new project? (Y/n)", "Y"):
            raise CreationCanceledError("Project creation canceled")
        return await self._project_handler.create()

    async def _choose_single_project(self, project: Project) -> Project:
        can_create = self._can_create_project()
        options = "Y/n/c to create new" if can_create else "Y/n"
        question = f"Select project: {project.name} [{project.slug}]? ({options})"
        retry_notice = _retry_notice(can_create)

        while True:
            choice = await self._input.prompt(question, "Y")
            if choice == "Y":
                return project
            if choice == "n":
                raise SelectionCanceledError("Project selection canceled")
            if choice == "c" and can_create:
                return await self._project_handler.create()
            self._input.notify(retry_notice)

    async def _need_existing_project(self, state: CommandState, cfg: Config) -> None:
        projects = await self._api.get_projects(cfg.organization_id)

        if not projects:
            self._project_handler.print_no_projects()
            raise SelectionCanceledError("Project selection canceled")

        if len(projects) == 1:
            self._adopt_project(cfg, state, projects[0])
            return

        current = await self._fetch_current_project(cfg, projects)
        if current is None:
            current = await self._project_handler.switch(False)
        self._adopt_project(cfg, state, current)

    async def _fetch_current_project(
        self, cfg: Config, projects: Sequence[Project],
    ) -> Project | None:
        if not cfg.project_id or all(p.id != cfg.project_id for p in projects):
            return None
        try:
            project = await self._api.get_project_by_id(cfg.organization_id, cfg.project_id)
        except AuthenticationError:
            raise
        except ForgeError as exc:
            log.debug("Selected project is no longer available: %s", exc)
            return None
        return project if project.id else None

    # ------------------------------------------------------------------
    # Adoption: the only places that write IDs into the config
    # ------------------------------------------------------------------

    @staticmethod
    def _adopt_organization(cfg: Config, state: CommandState, org: Organization) -> None:
        cfg.organization_id = org.id
        state.organization = org

    @staticmethod
    def _adopt_project(cfg: Config, state: CommandState, project: Project) -> None:
        cfg.project_id = project.id
        cfg.curr_project_name = project.name
        state.project = project


def _retry_notice(can_create: bool) -> str:
    if can_create:
        return "Please select capital 'Y' or lowercase 'n'/'c'"
    return "Please select capital 'Y' or lowercase 'n'"
