"""questionary-backed :class:`~forge_cli.core.protocols.InputService`.

Prompts are awaited with ``unsafe_ask_async`` so the surrounding asyncio
task stays cancellable while the user is typing.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from forge_cli.cli.console import console, escape_markup
from forge_cli.exceptions import DependencyError, InputCanceledError

_YES = ("y", "yes")
_NO = ("n", "no")


def _import_questionary() -> Any:
    """Import questionary lazily for interactive prompts."""
    try:
        import questionary
    except ModuleNotFoundError as exc:
        raise DependencyError(
            "questionary is not installed. Install with: pip install questionary",
        ) from exc
    return questionary


class QuestionaryInputService:
    """Terminal prompts via questionary; notices via the Rich console.

    Parameters
    ----------
    questionary_module:
        Injected module for tests; imported lazily when ``None``.
    """

    def __init__(self, questionary_module: Any | None = None) -> None:
        self._questionary = questionary_module

    def _q(self) -> Any:
        if self._questionary is None:
            self._questionary = _import_questionary()
        return self._questionary

    @staticmethod
    async def _ask(question: Any) -> Any:
        try:
            answer = await question.unsafe_ask_async()
        except KeyboardInterrupt as exc:
            raise InputCanceledError("Input canceled") from exc
        if answer is None:
            raise InputCanceledError("Input canceled")
        return answer

    async def prompt(self, question: str, default: str = "") -> str:
        answer = await self._ask(self._q().text(question))
        answer = str(answer).strip()
        return answer or default

    async def confirm(self, question: str, default: str = "Y") -> bool:
        while True:
            answer = (await self.prompt(question, default)).lower()
            if answer in _YES:
                return True
            if answer in _NO:
                return False
            self.notify("Please answer 'y' or 'n'")

    async def select(
        self, title: str, options: Sequence[str], *, default_index: int = -1,
    ) -> int:
        if not options:
            raise InputCanceledError("Nothing to select")

        questionary = self._q()
        choices = [
            questionary.Choice(title=option, value=index)
            for index, option in enumerate(options)
        ]
        default = choices[default_index] if 0 <= default_index < len(choices) else None
        selected = await self._ask(
            questionary.select(
                title,
                choices=choices,
                default=default,
                use_arrow_keys=True,
                use_shortcuts=False,
            ),
        )
        return int(selected)

    def notify(self, message: str) -> None:
        console.print(escape_markup(message))
