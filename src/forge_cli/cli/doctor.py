"""``forge doctor``: environment diagnostics command.

Gathers system information and renders a Rich table summarising
whether the runtime environment can run forge commands.  No business
logic resides here; it purely collects and displays diagnostic data.
"""

from __future__ import annotations

import platform
import sys
from datetime import datetime, timezone

from forge_cli.cli import exit_codes
from forge_cli.cli.console import console
from forge_cli.exceptions import ConfigError, RepoNotFoundError
from forge_cli.infra.config_store import JsonConfigService
from forge_cli.infra.repo import GitRepoClient, detect_git
from forge_cli.settings import ForgeSettings
from forge_cli.version import __version__

OK = "[green]OK[/green]"
WARN = "[yellow]WARN[/yellow]"
FAIL = "[red]FAIL[/red]"

Check = tuple[str, str, str]


# ---------------------------------------------------------------------------
# Diagnostic collectors
# ---------------------------------------------------------------------------

def _forge_version_check() -> Check:
    return "forge-cli", __version__, OK


def _python_version_check() -> Check:
    """Return (label, value, status) for the Python version row."""
    ok = sys.version_info[:2] >= (3, 11)
    return "Python", platform.python_version(), OK if ok else "[red]FAIL (>=3.11 required)[/red]"


def _git_check() -> Check:
    status = detect_git()
    if status.found:
        return "git", status.version_hint, OK
    return "git", "not found", WARN


def _environment_check(settings: ForgeSettings) -> Check:
    return "Forge API", f"{settings.env.value} {settings.base_url}", OK


def _config_and_login_checks(settings: ForgeSettings) -> list[Check]:
    path = settings.config_file
    service = JsonConfigService(path)
    try:
        cfg = service.load()
    except ConfigError as exc:
        return [("Config", str(exc), FAIL), ("Login", "unknown", WARN)]

    config_row: Check = ("Config", str(path) if path.exists() else f"{path} (not created yet)", OK)

    cred = cfg.credential
    if cred.is_valid(datetime.now(timezone.utc)):
        who = cred.email or cred.name or "logged in"
        login_row: Check = ("Login", who, OK)
    elif cred.token:
        login_row = ("Login", "token expired", WARN)
    else:
        login_row = ("Login", "not logged in", WARN)
    return [config_row, login_row]


def _repo_check() -> Check:
    try:
        path, url = GitRepoClient().find_git_path_and_url()
    except RepoNotFoundError:
        return "Git repo", "not in a git repository", WARN
    return "Git repo", f"{url} ({path or '.'})", OK


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

def collect_checks(settings: ForgeSettings) -> list[Check]:
    checks = [
        _forge_version_check(),
        _python_version_check(),
        _git_check(),
        _environment_check(settings),
    ]
    checks.extend(_config_and_login_checks(settings))
    checks.append(_repo_check())
    return checks


def run_doctor(settings: ForgeSettings | None = None) -> int:
    """Execute all diagnostic checks and render a Rich summary table.

    Returns
    -------
    int
        :data:`exit_codes.SUCCESS` when no check failed,
        :data:`exit_codes.GENERAL_ERROR` otherwise.  Warnings do not fail.
    """
    from rich.table import Table

    checks = collect_checks(settings or ForgeSettings())

    table = Table(
        title="forge doctor",
        show_header=True,
        header_style="bold cyan",
        border_style="dim",
    )
    table.add_column("Component", style="bold", min_width=12)
    table.add_column("Value", min_width=20)
    table.add_column("Status", justify="center", min_width=8)
    for label, value, status in checks:
        table.add_row(label, value, status)

    console.print()
    console.print(table)
    console.print()

    git_status = detect_git()
    if not git_status.found and git_status.install_commands:
        console.print("[yellow]git is not installed.[/yellow]")
        console.print("Install using one of the following commands:\n")
        for cmd in git_status.install_commands:
            console.print(f"  [bold]{cmd}[/bold]")
        console.print()

    if any("FAIL" in status for _, _, status in checks):
        console.print("[bold red]Some checks failed.[/bold red]")
        return exit_codes.GENERAL_ERROR

    console.print("[bold green]All checks passed.[/bold green]")
    return exit_codes.SUCCESS
