"""JSON-file backed :class:`~forge_cli.core.protocols.ConfigService`.

The on-disk document is described by pydantic models that mirror the
persisted half of :class:`~forge_cli.core.models.Config`.  The transient
``curr_*`` fields have no counterpart here, so they can never be written.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from forge_cli.core.models import Config, Credential, KnownProject
from forge_cli.exceptions import ConfigError, ConfigSaveError

log = logging.getLogger(__name__)

_FILE_MODE = 0o600


# ---------------------------------------------------------------------------
# On-disk schema
# ---------------------------------------------------------------------------

class _CredentialDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    token: str = ""
    token_expires_at: datetime | None = None
    id: str = ""
    name: str = ""
    email: str = ""

    @field_validator("token_expires_at")
    @classmethod
    def _normalise_expiry(cls, value: datetime | None) -> datetime | None:
        if value is None or value.year <= 1:
            # "0001-01-01T00:00:00Z" is the zero time written by older clients.
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class _KnownProjectDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    repo_url: str
    repo_path: str = ""
    organization_id: str = ""
    project_id: str = ""
    project_name: str = ""


class _ConfigDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    organization_id: str = ""
    project_id: str = ""
    credential: _CredentialDocument = Field(default_factory=_CredentialDocument)
    known_projects: list[_KnownProjectDocument] | None = None

    def to_config(self) -> Config:
        cred = self.credential
        return Config(
            organization_id=self.organization_id,
            project_id=self.project_id,
            credential=Credential(
                token=cred.token,
                token_expires_at=cred.token_expires_at,
                id=cred.id,
                name=cred.name,
                email=cred.email,
            ),
            known_projects=[
                KnownProject(
                    repo_url=known.repo_url,
                    repo_path=known.repo_path,
                    organization_id=known.organization_id,
                    project_id=known.project_id,
                    project_name=known.project_name,
                )
                for known in self.known_projects or ()
            ],
        )

    @classmethod
    def from_config(cls, config: Config) -> _ConfigDocument:
        cred = config.credential
        return cls(
            organization_id=config.organization_id,
            project_id=config.project_id,
            credential=_CredentialDocument(
                token=cred.token,
                token_expires_at=cred.token_expires_at,
                id=cred.id,
                name=cred.name,
                email=cred.email,
            ),
            known_projects=[
                _KnownProjectDocument(
                    repo_url=known.repo_url,
                    repo_path=known.repo_path,
                    organization_id=known.organization_id,
                    project_id=known.project_id,
                    project_name=known.project_name,
                )
                for known in config.known_projects
            ],
        )


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class JsonConfigService:
    """Owns one :class:`Config` and the file it is persisted to.

    Call :meth:`load` once per process; :meth:`get_config` then hands out
    the same live object every time.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._config = Config()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Config:
        """Read the config file, replacing the in-memory config.

        A missing file yields an empty config.

        Raises
        ------
        ConfigError
            When the file exists but cannot be read or parsed.
        """
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            log.debug("No config file at %s, starting empty", self._path)
            self._config = Config()
            return self._config
        except OSError as exc:
            raise ConfigError(f"Cannot read config file {self._path}: {exc}") from exc

        try:
            document = _ConfigDocument.model_validate_json(raw)
        except PydanticValidationError as exc:
            raise ConfigError(
                f"Config file {self._path} is invalid",
                hint="Delete the file and log in again.",
            ) from exc

        self._config = document.to_config()
        self._config.reset_transient()
        return self._config

    def get_config(self) -> Config:
        return self._config

    def save(self) -> None:
        """Write the persisted fields to disk with owner-only permissions.

        Raises
        ------
        ConfigSaveError
            When the directory or file cannot be written.
        """
        payload = _ConfigDocument.from_config(self._config).model_dump_json(indent=2)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self._path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, _FILE_MODE)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.chmod(self._path, _FILE_MODE)
        except OSError as exc:
            raise ConfigSaveError(f"Cannot write config file {self._path}: {exc}") from exc
        log.debug("Saved config to %s", self._path)

    def add_known_project(
        self,
        project_id: str,
        project_name: str,
        organization_id: str,
        repo_url: str,
        repo_path: str,
    ) -> None:
        """Remember which project ``(repo_url, repo_path)`` belongs to.

        An existing entry for the same pair is replaced.
        """
        entry = KnownProject(
            repo_url=repo_url,
            repo_path=repo_path,
            organization_id=organization_id,
            project_id=project_id,
            project_name=project_name,
        )
        known = [k for k in self._config.known_projects if not k.matches(repo_url, repo_path)]
        known.append(entry)
        self._config.known_projects = known

    def remove_known_project(self, project_id: str, organization_id: str) -> None:
        """Forget every repo mapped to the given project."""
        self._config.known_projects = [
            k
            for k in self._config.known_projects
            if not (k.project_id == project_id and k.organization_id == organization_id)
        ]
