"""Infrastructure: git working-tree introspection.

Answers two questions about the current directory: which remote it
belongs to (``origin``) and where it sits inside the checkout.  Together
they key the known-projects table.

Rules
-----
* Read-only: only ``git config --get`` and ``git rev-parse`` are run.
* No ``print()``; callers handle user-facing output.
* ``subprocess`` failures are re-raised as
  :class:`~forge_cli.exceptions.RepoNotFoundError`.
"""

from __future__ import annotations

import platform
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

from forge_cli.exceptions import RepoNotFoundError


# ---------------------------------------------------------------------------
# Detection result
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class GitStatus:
    """Result of a git binary check.

    Attributes
    ----------
    found : bool
        Whether git was located on PATH.
    path : Path | None
        Absolute path to the git binary, or ``None``.
    version_hint : str
        Human-readable status (``"git version 2.43.0"`` or ``"not found"``).
    install_commands : tuple[str, ...]
        Suggested install commands; empty when git is present.
    """

    found: bool
    path: Path | None
    version_hint: str
    install_commands: tuple[str, ...]


def detect_git() -> GitStatus:
    """Probe the system for a git binary.  Never raises."""
    result = shutil.which("git")
    if result is None:
        return GitStatus(
            found=False,
            path=None,
            version_hint="not found",
            install_commands=_platform_install_commands(),
        )

    resolved = Path(result).resolve()
    try:
        completed = subprocess.run(
            [str(resolved), "--version"],
            capture_output=True,
            text=True,
            check=True,
            timeout=10,
        )
        hint = completed.stdout.strip() or f"found at {resolved}"
    except (OSError, subprocess.SubprocessError):
        hint = f"found at {resolved}"
    return GitStatus(found=True, path=resolved, version_hint=hint, install_commands=())


def _platform_install_commands() -> tuple[str, ...]:
    system = platform.system().lower()
    if system == "windows":
        return ("winget install Git.Git",)
    if system == "linux":
        return (
            "sudo apt install git",
            "sudo dnf install git",
            "sudo pacman -S git",
        )
    if system == "darwin":
        return ("xcode-select --install", "brew install git")
    return ("Please install git from https://git-scm.com/downloads",)


# ---------------------------------------------------------------------------
# Repo client
# ---------------------------------------------------------------------------

def _strip_git_suffix(url: str) -> str:
    """Remove the last ``.git`` from *url*."""
    head, sep, tail = url.rpartition(".git")
    return head + tail if sep else url


class GitRepoClient:
    """Concrete :class:`~forge_cli.core.protocols.RepoClient` using the git CLI.

    Parameters
    ----------
    cwd:
        Directory to inspect; defaults to the process working directory.
    git:
        git executable name or path.
    """

    def __init__(self, cwd: Path | None = None, git: str = "git") -> None:
        self._cwd = cwd
        self._git = git

    def _run(self, *args: str) -> str:
        completed = subprocess.run(
            [self._git, *args],
            cwd=self._cwd,
            capture_output=True,
            text=True,
            check=True,
        )
        return completed.stdout.strip()

    def find_git_path_and_url(self) -> tuple[str, str]:
        try:
            url = _strip_git_suffix(self._run("config", "--get", "remote.origin.url"))
        except (OSError, subprocess.CalledProcessError) as exc:
            raise RepoNotFoundError(
                "Not inside a git repository with an 'origin' remote",
                hint="Run this command from your project's git checkout.",
            ) from exc

        try:
            root = Path(self._run("rev-parse", "--show-toplevel")).resolve()
        except (OSError, subprocess.CalledProcessError) as exc:
            raise RepoNotFoundError(
                "Cannot determine the git repository root",
                url=url,
            ) from exc

        working_dir = (self._cwd or Path.cwd()).resolve()
        try:
            relative = working_dir.relative_to(root)
        except ValueError as exc:
            raise RepoNotFoundError(
                f"{working_dir} is outside the repository root {root}",
                url=url,
            ) from exc

        path = relative.as_posix()
        return ("" if path == "." else path), url
