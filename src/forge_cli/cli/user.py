"""Interactive user profile flow."""

from __future__ import annotations

from forge_cli.core.models import User
from forge_cli.core.protocols import InputService
from forge_cli.core.slug import validate_url
from forge_cli.exceptions import ValidationError
from forge_cli.infra.api_client import ForgeAPIClient


class InteractiveUserHandler:
    def __init__(self, api: ForgeAPIClient, input_service: InputService) -> None:
        self._api = api
        self._input = input_service

    async def _input_name(self, default: str) -> str:
        while True:
            name = await self._input.prompt("Enter name", default)
            if name:
                return name
            self._input.notify("Error: Name cannot be empty")

    async def _input_avatar_url(self, default: str) -> str:
        while True:
            url = await self._input.prompt("Enter avatar URL (Empty Valid)", default)
            if not url:
                return url
            try:
                validate_url(url)
            except ValidationError as exc:
                self._input.notify(f"Error: {exc}")
                continue
            return url

    async def update(self, name: str = "") -> User:
        """Prompt for a new display name and avatar URL.

        The email address is never changed; it identifies the account.
        """
        current = await self._api.get_user()

        self._input.notify("Update User")
        new_name = await self._input_name(name or current.name)
        avatar_url = await self._input_avatar_url(current.avatar_url)

        await self._api.update_user(new_name, current.email, avatar_url)
        self._input.notify("User updated successfully")
        return User(id=current.id, name=new_name, email=current.email, avatar_url=avatar_url)
