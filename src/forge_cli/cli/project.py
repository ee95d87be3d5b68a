"""Interactive project flows: create, update, switch, delete.

Satisfies :class:`~forge_cli.core.protocols.ProjectHandler`.  A project
can only be created from the root of a World project checkout (a
directory holding ``world.toml`` and ``cardinal/``) with a git remote.
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import replace
from pathlib import Path

from forge_cli.core.models import Project, ProjectConfig
from forge_cli.core.protocols import ConfigService, InputService, RepoClient
from forge_cli.core.slug import create_slug_from_name, slug_to_sane_check, validate_name
from forge_cli.exceptions import (
    APIError,
    AuthenticationError,
    CreationCanceledError,
    ForgeError,
    MissingIDError,
    RepoNotFoundError,
    SelectionCanceledError,
    ValidationError,
)
from forge_cli.infra.api_client import ForgeAPIClient

log = logging.getLogger(__name__)

MAX_PROJECT_NAME_LEN = 50
PROJECT_SLUG_MIN_LEN = 3
PROJECT_SLUG_MAX_LEN = 25

NIL_UUID = "00000000-0000-0000-0000-000000000000"
"""Placeholder project ID for calls made before the project exists."""

WORLD_TOML = "world.toml"
CARDINAL_DIR = "cardinal"


def describe_project(project: Project) -> str:
    return f"{project.name} [{project.slug}]"


def is_world_project_root(directory: Path) -> bool:
    """``True`` iff *directory* holds ``world.toml`` and a ``cardinal/`` dir."""
    return (directory / WORLD_TOML).is_file() and (directory / CARDINAL_DIR).is_dir()


def read_project_name(directory: Path) -> str:
    """Return ``[forge].PROJECT_NAME`` from ``world.toml``, or ``""``."""
    try:
        with open(directory / WORLD_TOML, "rb") as handle:
            data = tomllib.load(handle)
    except (OSError, tomllib.TOMLDecodeError):
        return ""
    forge = data.get("forge")
    if not isinstance(forge, dict):
        return ""
    name = forge.get("PROJECT_NAME")
    return name if isinstance(name, str) else ""


class InteractiveProjectHandler:
    """Project create/update/switch/delete flows backed by the Forge API.

    Parameters
    ----------
    workdir:
        Directory treated as the project root; defaults to the process
        working directory.
    """

    def __init__(
        self,
        api: ForgeAPIClient,
        config_service: ConfigService,
        repo_client: RepoClient,
        input_service: InputService,
        *,
        workdir: Path | None = None,
    ) -> None:
        self._api = api
        self._config_service = config_service
        self._repo = repo_client
        self._input = input_service
        self._workdir = workdir

    @property
    def workdir(self) -> Path:
        return self._workdir or Path.cwd()

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def pre_create_update_validation(self) -> tuple[str, str]:
        """Return ``(repo_path, repo_url)`` if a project can be created here."""
        path, url = self._repo.find_git_path_and_url()
        if not url:
            raise RepoNotFoundError("Not in a git repository", path=path)
        if not is_world_project_root(self.workdir):
            raise RepoNotFoundError(
                "Not in a World project root",
                path=path,
                url=url,
                hint=f"Run this command from the directory holding {WORLD_TOML}.",
            )
        return path, url

    def _refuse_in_known_repo(self, action: str) -> None:
        cfg = self._config_service.get_config()
        if cfg.curr_repo_known:
            raise ValidationError(
                f"Cannot {action} Project, current git working directory "
                f"belongs to project: {cfg.curr_project_name}.",
            )

    def _require_organization_id(self) -> str:
        org_id = self._config_service.get_config().organization_id
        if not org_id:
            raise MissingIDError(
                "No organization selected",
                hint="Use 'forge organization switch' to choose an organization.",
            )
        return org_id

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def _input_name(self, default: str) -> str:
        while True:
            question = f"Enter project name [{default}]" if default else "Enter project name"
            name = await self._input.prompt(question, default)
            try:
                validate_name(name, MAX_PROJECT_NAME_LEN)
            except ValidationError as exc:
                self._input.notify(f"Error: {exc}")
                default = ""
                continue
            return name

    async def _input_slug(
        self,
        org_id: str,
        name: str,
        project_id: str = NIL_UUID,
        current: str = "",
        default: str = "",
    ) -> str:
        suggestion = default or current or create_slug_from_name(
            name, PROJECT_SLUG_MIN_LEN, PROJECT_SLUG_MAX_LEN,
        )
        while True:
            answer = await self._input.prompt(f"Slug [{suggestion}]", suggestion)
            try:
                slug = slug_to_sane_check(answer, PROJECT_SLUG_MIN_LEN, PROJECT_SLUG_MAX_LEN)
                if slug != current:
                    await self._api.check_project_slug_is_taken(org_id, project_id, slug)
            except ValidationError as exc:
                self._input.notify(f"Error: {exc}")
                continue
            except AuthenticationError:
                raise
            except APIError as exc:
                if exc.status_code is None or exc.status_code >= 500:
                    raise
                self._input.notify(f"Project already exists with slug: {answer}")
                suggestion = create_slug_from_name(answer, PROJECT_SLUG_MIN_LEN, PROJECT_SLUG_MAX_LEN)
                continue
            return slug

    async def _choose_region(
        self, org_id: str, project_id: str = NIL_UUID, current: tuple[str, ...] = (),
    ) -> tuple[str, ...]:
        regions = await self._api.get_list_regions(org_id, project_id)
        if not regions:
            return ()
        if len(regions) == 1:
            return (regions[0],)
        default_index = next((i for i, r in enumerate(regions) if r in current), 0)
        index = await self._input.select("Choose a region", regions, default_index=default_index)
        return (regions[index],)

    async def create(self) -> Project:
        """Prompt for the project details, create it and select it.

        Raises
        ------
        RepoNotFoundError
            When the working directory cannot host a project.
        CreationCanceledError
            When the user declines the final confirmation.
        """
        self._refuse_in_known_repo("create")
        repo_path, repo_url = self.pre_create_update_validation()
        org_id = self._require_organization_id()

        self._input.notify("Project Creation")
        name = await self._input_name(read_project_name(self.workdir))
        slug = await self._input_slug(org_id, name)
        regions = await self._choose_region(org_id)

        draft = Project(
            id="",
            name=name,
            slug=slug,
            org_id=org_id,
            repo_url=repo_url,
            repo_path=repo_path,
            config=ProjectConfig(regions=regions),
        )
        self._print_details(draft)
        if not await self._input.confirm("Create project with these details? (Y/n)", "Y"):
            raise CreationCanceledError("Project creation canceled")

        project = await self._api.create_project(org_id, draft)
        self._config_service.add_known_project(
            project.id, project.name, org_id, repo_url, repo_path,
        )
        self._select(project)
        self._input.notify(f"Created project: {describe_project(project)}")
        return project

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    async def update(self, project: Project, *, name: str = "", slug: str = "") -> Project | None:
        """Re-prompt the details of *project* and save them remotely.

        *name* and *slug* override the current values as prompt defaults.
        The project is re-linked to the current checkout, so its old
        known-repo entry is forgotten.  Returns ``None`` when declined.
        """
        org_id = project.org_id or self._config_service.get_config().organization_id
        if not project.id or not org_id:
            self.print_no_projects()
            raise MissingIDError(
                "No project selected",
                hint="Use 'forge project switch' to choose a project.",
            )

        self._input.notify(f"Updating Project: {describe_project(project)}")
        repo_path, repo_url = self.pre_create_update_validation()

        self._input.notify("Project Update")
        new_name = await self._input_name(name or project.name)
        new_slug = await self._input_slug(org_id, new_name, project.id, project.slug, slug)
        regions = await self._choose_region(org_id, project.id, project.config.regions)

        draft = replace(
            project,
            name=new_name,
            slug=new_slug,
            org_id=org_id,
            repo_url=repo_url,
            repo_path=repo_path,
            config=ProjectConfig(regions=regions),
        )
        self._print_details(draft)
        if not await self._input.confirm("Update project with these details? (Y/n)", "Y"):
            self._input.notify("Project update canceled")
            return None

        updated = await self._api.update_project(org_id, project.id, draft)

        cfg = self._config_service.get_config()
        self._config_service.remove_known_project(project.id, org_id)
        if cfg.project_id == project.id:
            cfg.curr_project_name = updated.name
        self._config_service.save()

        self._input.notify(f"Project '{describe_project(updated)}' updated successfully!")
        return updated

    # ------------------------------------------------------------------
    # Switch
    # ------------------------------------------------------------------

    def _can_create(self) -> bool:
        try:
            self.pre_create_update_validation()
        except ForgeError as exc:
            log.debug("Project creation not possible here: %s", exc)
            return False
        return True

    async def switch(self, allow_create: bool) -> Project:
        """Let the user pick a project of the selected organization."""
        self._refuse_in_known_repo("switch")
        org_id = self._require_organization_id()
        projects = await self._api.get_projects(org_id)

        if not projects:
            if allow_create:
                return await self.create()
            self.print_no_projects()
            raise SelectionCanceledError("Project selection canceled")

        options = [describe_project(project) for project in projects]
        create_index = -1
        if allow_create and self._can_create():
            create_index = len(options)
            options.append("+ Create a new project")
        quit_index = len(options)
        options.append("Quit")

        current_id = self._config_service.get_config().project_id
        default_index = next((i for i, p in enumerate(projects) if p.id == current_id), -1)

        choice = await self._input.select("Available Projects", options, default_index=default_index)
        if choice == quit_index:
            raise SelectionCanceledError("Project selection canceled")
        if choice == create_index:
            return await self.create()

        project = projects[choice]
        self._select(project)
        self._input.notify(f"Switched to project: {describe_project(project)}")
        return project

    async def handle_switch(self) -> Project | None:
        """Settle the project after the organization changed.

        One project is adopted silently, a still-valid selection is kept,
        and otherwise the user picks.  With no projects, creation is
        offered when possible.
        """
        org_id = self._require_organization_id()
        projects = await self._api.get_projects(org_id)

        if len(projects) == 1:
            self._select(projects[0])
            return projects[0]

        if projects:
            current_id = self._config_service.get_config().project_id
            for project in projects:
                if project.id == current_id:
                    return project
            return await self.switch(False)

        if not self._can_create():
            self.print_no_projects()
            return None
        if not await self._input.confirm("Do you want to create a new project now? (Y/n)", "Y"):
            self._input.notify("Project creation canceled")
            return None
        return await self.create()

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def delete(self, project: Project) -> bool:
        """Delete *project* after an explicit ``Yes``.  Returns ``True`` if deleted."""
        self._input.notify("Project Deletion")
        self._print_details(project)
        self._input.notify(
            "WARNING! This action will permanently delete all deployments, "
            "logs and associated resources.",
        )

        answer = await self._input.prompt(
            f"Type 'Yes' to confirm deletion of '{project.name} ({project.slug})'", "no",
        )
        if answer != "Yes":
            if answer == "yes":
                self._input.notify("You must type 'Yes' with uppercase Y to confirm deletion")
            self._input.notify("Project deletion canceled")
            return False

        org_id = project.org_id or self._require_organization_id()
        await self._api.delete_project(org_id, project.id)

        cfg = self._config_service.get_config()
        self._config_service.remove_known_project(project.id, org_id)
        if cfg.project_id == project.id:
            cfg.project_id = ""
            cfg.curr_project_name = ""
        self._config_service.save()

        self._input.notify(f"Project deleted: {project.name} ({project.slug})")
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def print_no_projects(self) -> None:
        self._input.notify("No Projects Found")
        self._input.notify(
            f"To create a project, run 'forge project create' from the root of a "
            f"World project (the directory holding {WORLD_TOML} and {CARDINAL_DIR}/) "
            "inside a git repository with a remote.",
        )

    def _print_details(self, project: Project) -> None:
        self._input.notify("Project Details:")
        self._input.notify(f"  Name: {project.name}")
        self._input.notify(f"  Slug: {project.slug}")
        if project.repo_url:
            self._input.notify(f"  Repository: {project.repo_url}")
        if project.repo_path:
            self._input.notify(f"  Path: {project.repo_path}")
        if project.config.regions:
            self._input.notify(f"  Regions: {', '.join(project.config.regions)}")

    def _select(self, project: Project) -> None:
        cfg = self._config_service.get_config()
        cfg.project_id = project.id
        cfg.curr_project_name = project.name
        if project.org_id:
            cfg.organization_id = project.org_id
        self._config_service.save()
