"""Process-level settings read from the environment.

Only deployment knobs live here (which Forge environment to talk to,
where the config file is stored, default log level).  HTTP retry
tunables are fixed in :class:`~forge_cli.infra.transport.RequestConfig`
and are intentionally not configurable.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ForgeEnv(str, Enum):
    """Forge deployment the CLI talks to."""

    LOCAL = "LOCAL"
    DEV = "DEV"
    PROD = "PROD"


_BASE_URLS: dict[ForgeEnv, str] = {
    ForgeEnv.LOCAL: "http://localhost:8001",
    ForgeEnv.DEV: "https://forge.argus.dev",
    ForgeEnv.PROD: "https://forge.world.dev",
}

CONFIG_FILE_NAME = "forge-config.json"


def default_config_dir() -> Path:
    return Path.home() / ".worldcli"


class ForgeSettings(BaseSettings):
    """Central settings contract shared by the CLI and the adapters."""

    model_config = SettingsConfigDict(
        env_prefix="FORGE_CLI_",
        extra="ignore",
        case_sensitive=False,
    )

    env: ForgeEnv = Field(
        default=ForgeEnv.PROD,
        description="Forge environment (LOCAL, DEV or PROD).",
    )
    api_base_url: str | None = Field(
        default=None,
        min_length=8,
        description="Override for the Forge API base URL.",
    )
    config_dir: Path = Field(
        default_factory=default_config_dir,
        description="Directory holding the persisted CLI config.",
    )
    log_level: str = Field(
        default="WARNING",
        description="Default log level when no -v flag is given.",
    )

    @property
    def base_url(self) -> str:
        """Effective API base URL, without a trailing slash."""
        url = self.api_base_url or _BASE_URLS[self.env]
        return url.rstrip("/")

    @property
    def config_file(self) -> Path:
        """Config file path; non-production environments get a prefix."""
        name = CONFIG_FILE_NAME
        if self.env is not ForgeEnv.PROD:
            name = f"{self.env.value.lower()}-{name}"
        return self.config_dir / name
