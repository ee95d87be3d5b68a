"""CLI application entry point and command routing for forge.

This module is the **sole error boundary** for the entire application.
It catches :class:`~forge_cli.exceptions.ForgeError`, ``KeyboardInterrupt``,
and any unexpected ``Exception``, rendering user-friendly messages via Rich
and returning well-defined exit codes.

Architecture notes
------------------
* Every subcommand declares a :class:`~forge_cli.core.models.SetupRequest`.
  The resolver turns it into a :class:`~forge_cli.core.models.CommandState`
  before the command body runs.
* All collaborators are wired here and nowhere else.
* This module is the only place that translates between the domain world
  and the OS process exit code.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydantic import ValidationError as PydanticValidationError

from forge_cli.cli import exit_codes
from forge_cli.cli.console import console, escape_markup
from forge_cli.core.models import (
    CommandState,
    LoginRequirement,
    Requirement,
    SetupRequest,
)
from forge_cli.exceptions import (
    ConfigError,
    ForgeError,
    InputCanceledError,
    MissingIDError,
)
from forge_cli.settings import ForgeSettings
from forge_cli.version import __version__

if TYPE_CHECKING:
    from forge_cli.cli.organization import InteractiveOrganizationHandler
    from forge_cli.cli.project import InteractiveProjectHandler
    from forge_cli.cli.user import InteractiveUserHandler
    from forge_cli.infra.config_store import JsonConfigService


# ---------------------------------------------------------------------------
# Setup requests per command
# ---------------------------------------------------------------------------

_LOGIN = LoginRequirement.NEED_LOGIN
_IGNORE = Requirement.IGNORE
_LOOKUP = Requirement.NEED_REPO_LOOKUP
_EXISTING = Requirement.NEED_EXISTING_DATA

SETUP_REQUESTS: dict[tuple[str, str | None], SetupRequest] = {
    ("whoami", None): SetupRequest(login=_LOGIN),
    ("status", None): SetupRequest(),
    ("organization", "create"): SetupRequest(_LOGIN, _LOOKUP, _LOOKUP),
    ("organization", "switch"): SetupRequest(_LOGIN, _LOOKUP, _LOOKUP),
    ("organization", "invite"): SetupRequest(_LOGIN, _EXISTING, _IGNORE),
    ("organization", "update-role"): SetupRequest(_LOGIN, _EXISTING, _IGNORE),
    ("organization", "members"): SetupRequest(_LOGIN, _EXISTING, _IGNORE),
    ("project", "create"): SetupRequest(_LOGIN, _EXISTING, _LOOKUP),
    ("project", "switch"): SetupRequest(_LOGIN, _EXISTING, _LOOKUP),
    ("project", "show"): SetupRequest(_LOGIN, _EXISTING, _EXISTING),
    ("project", "update"): SetupRequest(_LOGIN, _EXISTING, _EXISTING),
    ("project", "delete"): SetupRequest(_LOGIN, _EXISTING, _EXISTING),
    ("user", "update"): SetupRequest(_LOGIN, _EXISTING, _IGNORE),
}

_ALIASES = {"org": "organization", "proj": "project"}


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="forge",
        description="Manage World Forge organizations and projects.",
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (-v info, -vv debug).",
    )

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")
    commands.add_parser("whoami", help="Show the logged-in user.")
    commands.add_parser("status", help="Show login, organization and repository context.")
    commands.add_parser("doctor", help="Run environment diagnostics.")

    org = commands.add_parser("organization", aliases=["org"], help="Manage organizations.")
    org_actions = org.add_subparsers(dest="action", metavar="ACTION", required=True)
    org_actions.add_parser("create", help="Create a new organization.")
    org_actions.add_parser("switch", help="Switch the selected organization.")
    invite = org_actions.add_parser("invite", help="Invite a user to the organization.")
    invite.add_argument("email")
    invite.add_argument("--role", default="member", help="Role to grant (default: member).")
    update_role = org_actions.add_parser("update-role", help="Change a member's role.")
    update_role.add_argument("email")
    update_role.add_argument("--role", required=True, help="New role.")
    members = org_actions.add_parser("members", help="List members of the organization.")
    members.add_argument(
        "--include-removed", action="store_true", help="Also list removed members.",
    )

    project = commands.add_parser("project", aliases=["proj"], help="Manage projects.")
    project_actions = project.add_subparsers(dest="action", metavar="ACTION", required=True)
    project_actions.add_parser("create", help="Create a project for this repository.")
    project_actions.add_parser("switch", help="Switch the selected project.")
    project_actions.add_parser("show", help="Show the selected project.")
    project_update = project_actions.add_parser("update", help="Update the selected project.")
    project_update.add_argument("--name", default="", help="New project name.")
    project_update.add_argument("--slug", default="", help="New project slug.")
    project_actions.add_parser("delete", help="Delete the selected project.")

    user = commands.add_parser("user", help="Manage your user profile.")
    user_actions = user.add_subparsers(dest="action", metavar="ACTION", required=True)
    user_update = user_actions.add_parser("update", help="Update your name and avatar.")
    user_update.add_argument("--name", default="", help="New display name.")

    return parser


# ---------------------------------------------------------------------------
# Command context
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class CommandContext:
    """Everything a command body needs once the state is resolved."""

    args: argparse.Namespace
    settings: ForgeSettings
    state: CommandState
    config_service: JsonConfigService
    organizations: InteractiveOrganizationHandler
    projects: InteractiveProjectHandler
    users: InteractiveUserHandler


CommandBody = Callable[[CommandContext], Awaitable[None]]


def _require_organization(ctx: CommandContext):
    if ctx.state.organization is None:
        raise MissingIDError(
            "No organization selected",
            hint="Use 'forge organization switch' to choose an organization.",
        )
    return ctx.state.organization


def _require_project(ctx: CommandContext):
    if ctx.state.project is None:
        raise MissingIDError(
            "No project selected",
            hint="Use 'forge project switch' to choose a project.",
        )
    return ctx.state.project


# ---------------------------------------------------------------------------
# Command bodies
# ---------------------------------------------------------------------------

async def _whoami(ctx: CommandContext) -> None:
    user = ctx.state.user
    if user is None:
        return
    console.print(f"[bold]{escape_markup(user.name or user.email)}[/bold]")
    if user.email:
        console.print(f"Email: {escape_markup(user.email)}")
    console.print(f"ID:    {escape_markup(user.id)}")


async def _status(ctx: CommandContext) -> None:
    cfg = ctx.config_service.get_config()
    login = "[green]logged in[/green]" if ctx.state.logged_in else "[yellow]not logged in[/yellow]"
    console.print(f"Environment:  {ctx.settings.env.value} ({escape_markup(ctx.settings.base_url)})")
    console.print(f"Login:        {login}")
    console.print(f"Organization: {escape_markup(cfg.organization_id or '-')}")
    project = cfg.curr_project_name or cfg.project_id or "-"
    console.print(f"Project:      {escape_markup(project)}")
    if cfg.curr_repo_url:
        known = " (known project)" if cfg.curr_repo_known else ""
        path = cfg.curr_repo_path or "."
        console.print(f"Repository:   {escape_markup(cfg.curr_repo_url)} {escape_markup(path)}{known}")
    else:
        console.print("Repository:   not in a git repository")


async def _organization_create(ctx: CommandContext) -> None:
    await ctx.organizations.create()


async def _organization_switch(ctx: CommandContext) -> None:
    await ctx.organizations.switch()
    await ctx.projects.handle_switch()


async def _organization_invite(ctx: CommandContext) -> None:
    await ctx.organizations.invite(_require_organization(ctx), ctx.args.email, ctx.args.role)


async def _organization_update_role(ctx: CommandContext) -> None:
    await ctx.organizations.update_role(_require_organization(ctx), ctx.args.email, ctx.args.role)


async def _organization_members(ctx: CommandContext) -> None:
    await ctx.organizations.members_list(
        _require_organization(ctx), ctx.args.include_removed,
    )


async def _project_create(ctx: CommandContext) -> None:
    await ctx.projects.create()


async def _project_switch(ctx: CommandContext) -> None:
    await ctx.projects.switch(True)


async def _project_show(ctx: CommandContext) -> None:
    from rich.table import Table

    project = _require_project(ctx)
    org = ctx.state.organization

    table = Table(title="Project", show_header=False, border_style="dim")
    table.add_column("Field", style="bold cyan")
    table.add_column("Value")
    rows = [
        ("Name", project.name),
        ("Slug", project.slug),
        ("ID", project.id),
        ("Organization", f"{org.name} [{org.slug}]" if org is not None else project.org_id),
        ("Repository", project.repo_url),
        ("Path", project.repo_path or "."),
        ("Regions", ", ".join(project.config.regions) or "-"),
    ]
    for field, value in rows:
        table.add_row(field, escape_markup(value))
    console.print(table)


async def _project_delete(ctx: CommandContext) -> None:
    await ctx.projects.delete(_require_project(ctx))


async def _project_update(ctx: CommandContext) -> None:
    await ctx.projects.update(
        _require_project(ctx), name=ctx.args.name, slug=ctx.args.slug,
    )


async def _user_update(ctx: CommandContext) -> None:
    await ctx.users.update(ctx.args.name)


COMMANDS: dict[tuple[str, str | None], CommandBody] = {
    ("whoami", None): _whoami,
    ("status", None): _status,
    ("organization", "create"): _organization_create,
    ("organization", "switch"): _organization_switch,
    ("organization", "invite"): _organization_invite,
    ("organization", "update-role"): _organization_update_role,
    ("organization", "members"): _organization_members,
    ("project", "create"): _project_create,
    ("project", "switch"): _project_switch,
    ("project", "show"): _project_show,
    ("project", "update"): _project_update,
    ("project", "delete"): _project_delete,
    ("user", "update"): _user_update,
}


# ---------------------------------------------------------------------------
# Command dispatch
# ---------------------------------------------------------------------------

async def run_command(
    key: tuple[str, str | None],
    args: argparse.Namespace,
    settings: ForgeSettings,
) -> int:
    """Wire collaborators, resolve the command state, run the command body."""
    from forge_cli.cli.input import QuestionaryInputService
    from forge_cli.cli.organization import InteractiveOrganizationHandler
    from forge_cli.cli.project import InteractiveProjectHandler
    from forge_cli.cli.retry_status import RichRetryStatus
    from forge_cli.cli.user import InteractiveUserHandler
    from forge_cli.core.resolver import CommandStateResolver
    from forge_cli.infra.api_client import ForgeAPIClient
    from forge_cli.infra.config_store import JsonConfigService
    from forge_cli.infra.repo import GitRepoClient
    from forge_cli.infra.transport import Transport

    config_service = JsonConfigService(settings.config_file)
    cfg = config_service.load()

    input_service = QuestionaryInputService()
    repo_client = GitRepoClient()

    with RichRetryStatus() as retry_status:
        async with Transport(
            settings.base_url, cfg.credential.token, on_retry=retry_status,
        ) as transport:
            api = ForgeAPIClient(transport)
            organizations = InteractiveOrganizationHandler(api, config_service, input_service)
            projects = InteractiveProjectHandler(api, config_service, repo_client, input_service)
            resolver = CommandStateResolver(
                config_service,
                repo_client,
                organizations,
                projects,
                api,
                input_service,
            )

            state = await resolver.resolve(SETUP_REQUESTS[key])
            ctx = CommandContext(
                args=args,
                settings=settings,
                state=state,
                config_service=config_service,
                organizations=organizations,
                projects=projects,
                users=InteractiveUserHandler(api, input_service),
            )
            await COMMANDS[key](ctx)

    return exit_codes.SUCCESS


def _load_settings() -> ForgeSettings:
    try:
        return ForgeSettings()
    except PydanticValidationError as exc:
        raise ConfigError(
            f"Invalid FORGE_CLI_* environment settings: {exc.errors()[0]['msg']}",
            hint="FORGE_CLI_ENV must be one of LOCAL, DEV or PROD.",
        ) from exc


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> int:
    """Run the forge CLI.

    Parameters
    ----------
    argv:
        Explicit argument list.  When ``None`` (default), ``sys.argv[1:]``
        is used.

    Returns
    -------
    int
        OS process exit code.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return exit_codes.SUCCESS

    settings = _load_settings()

    from forge_cli.cli.log_setup import setup_logging

    setup_logging(args.verbose, settings.log_level)

    command = _ALIASES.get(args.command, args.command)
    if command == "doctor":
        from forge_cli.cli.doctor import run_doctor

        return run_doctor(settings)

    key = (command, getattr(args, "action", None))
    return asyncio.run(run_command(key, args, settings))


# ---------------------------------------------------------------------------
# Script-level error boundary
# ---------------------------------------------------------------------------

def cli(argv: list[str] | None = None) -> None:
    """Top-level error boundary invoked by the console-script entry point.

    This function wraps :func:`main` and guarantees the process never
    exits with a raw stack trace during normal usage.
    """
    try:
        code = main(argv)
        sys.exit(code)
    except (KeyboardInterrupt, asyncio.CancelledError, InputCanceledError):
        console.print("\n[yellow]Aborted by user.[/yellow]")
        sys.exit(exit_codes.KEYBOARD_INTERRUPT)
    except ForgeError as exc:
        console.print(f"[bold red]Error:[/bold red] {escape_markup(str(exc))}")
        if exc.hint:
            console.print(f"[yellow]Hint:[/yellow] {escape_markup(exc.hint)}")
        sys.exit(exit_codes.GENERAL_ERROR)
    except Exception as exc:  # noqa: BLE001
        console.print(
            "[bold red]Unexpected error.[/bold red] "
            "Please report this issue.\n"
            f"  {type(exc).__name__}: {escape_markup(str(exc))}"
        )
        sys.exit(exit_codes.UNEXPECTED_ERROR)
