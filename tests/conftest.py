"""Shared pytest fixtures and configuration for the forge-cli test suite.

Guidelines
----------
* No internet access in any test; HTTP goes through ``httpx.MockTransport``.
* Interactive prompts are scripted through :class:`ScriptedInput`.
* Core tests must be pure, with no side effects.
* Tests must not depend on the user's real config directory.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta, timezone

import pytest

from forge_cli.core.models import Config, Credential, KnownProject

NOW = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------

class ScriptedInput:
    """InputService double answering from pre-recorded lists.

    An empty answer returns the prompt's default, like the real service.
    Running out of answers fails the test loudly.
    """

    def __init__(
        self,
        answers: Sequence[str] = (),
        selections: Sequence[int] = (),
    ) -> None:
        self.answers = list(answers)
        self.selections = list(selections)
        self.prompts: list[str] = []
        self.selects: list[tuple[str, list[str], int]] = []
        self.notices: list[str] = []

    async def prompt(self, question: str, default: str = "") -> str:
        self.prompts.append(question)
        if not self.answers:
            raise AssertionError(f"unexpected prompt: {question!r}")
        return self.answers.pop(0) or default

    async def confirm(self, question: str, default: str = "Y") -> bool:
        return (await self.prompt(question, default)).lower() in ("y", "yes")

    async def select(
        self, title: str, options: Sequence[str], *, default_index: int = -1,
    ) -> int:
        self.selects.append((title, list(options), default_index))
        if not self.selections:
            raise AssertionError(f"unexpected select: {title!r}")
        return self.selections.pop(0)

    def notify(self, message: str) -> None:
        self.notices.append(message)


class MemoryConfigService:
    """ConfigService double that keeps everything in memory."""

    def __init__(self, config: Config | None = None, *, fail_save: Exception | None = None) -> None:
        self.config = config or Config()
        self.saves = 0
        self.fail_save = fail_save

    def get_config(self) -> Config:
        return self.config

    def save(self) -> None:
        if self.fail_save is not None:
            raise self.fail_save
        self.saves += 1

    def add_known_project(
        self,
        project_id: str,
        project_name: str,
        organization_id: str,
        repo_url: str,
        repo_path: str,
    ) -> None:
        self.config.known_projects = [
            k for k in self.config.known_projects if not k.matches(repo_url, repo_path)
        ]
        self.config.known_projects.append(
            KnownProject(repo_url, repo_path, organization_id, project_id, project_name),
        )

    def remove_known_project(self, project_id: str, organization_id: str) -> None:
        self.config.known_projects = [
            k
            for k in self.config.known_projects
            if not (k.project_id == project_id and k.organization_id == organization_id)
        ]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def scripted_input() -> type[ScriptedInput]:
    return ScriptedInput


@pytest.fixture
def memory_config() -> type[MemoryConfigService]:
    return MemoryConfigService


@pytest.fixture
def valid_credential() -> Credential:
    return Credential(
        token="tok-123",
        token_expires_at=NOW + timedelta(hours=1),
        id="user-1",
        name="Ada",
        email="ada@example.com",
    )


@pytest.fixture
def expired_credential() -> Credential:
    return Credential(token="tok-old", token_expires_at=NOW - timedelta(seconds=1))


@pytest.fixture
def now() -> datetime:
    return NOW
