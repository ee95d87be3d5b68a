"""Tests for the questionary-backed input service (cli/input.py).

questionary is replaced by a ``MagicMock`` module; no terminal is used.

Coverage:
* Prompt stripping and defaults.
* Abort paths (Ctrl-C, ``None`` answer) become ``InputCanceledError``.
* Confirm accepts y/yes/n/no and re-asks otherwise.
* Select returns the chosen index and pre-selects the default.
* Notices are printed with markup escaped.
* Missing questionary raises ``DependencyError``.
"""

from __future__ import annotations

import asyncio
import sys
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from forge_cli.cli.input import QuestionaryInputService
from forge_cli.exceptions import DependencyError, InputCanceledError


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _questionary(*answers: object) -> MagicMock:
    module = MagicMock()
    asker = AsyncMock(side_effect=list(answers))
    module.text.return_value.unsafe_ask_async = asker
    module.select.return_value.unsafe_ask_async = asker
    module.Choice.side_effect = lambda title, value: (title, value)
    return module


# ---------------------------------------------------------------------------
# prompt / confirm
# ---------------------------------------------------------------------------

class TestPrompt:
    def test_strips_answer(self) -> None:
        service = QuestionaryInputService(_questionary("  acme  "))
        assert asyncio.run(service.prompt("Name")) == "acme"

    def test_empty_answer_uses_default(self) -> None:
        q = _questionary("")
        service = QuestionaryInputService(q)
        assert asyncio.run(service.prompt("Slug [acme]", "acme")) == "acme"
        q.text.assert_called_once_with("Slug [acme]")

    @pytest.mark.parametrize("outcome", [None, KeyboardInterrupt()])
    def test_abort(self, outcome: object) -> None:
        service = QuestionaryInputService(_questionary(outcome))
        with pytest.raises(InputCanceledError):
            asyncio.run(service.prompt("Name"))


class TestConfirm:
    @pytest.mark.parametrize(("answer", "expected"), [("Y", True), ("yes", True), ("n", False), ("No", False)])
    def test_answers(self, answer: str, expected: bool) -> None:
        service = QuestionaryInputService(_questionary(answer))
        assert asyncio.run(service.confirm("Go? (Y/n)")) is expected

    def test_default_applies(self) -> None:
        service = QuestionaryInputService(_questionary(""))
        assert asyncio.run(service.confirm("Go? (y/N)", "n")) is False

    @patch("forge_cli.cli.input.console")
    def test_reasks_on_garbage(self, mock_console: MagicMock) -> None:
        service = QuestionaryInputService(_questionary("maybe", "y"))
        assert asyncio.run(service.confirm("Go?")) is True
        mock_console.print.assert_called_once()


# ---------------------------------------------------------------------------
# select
# ---------------------------------------------------------------------------

class TestSelect:
    def test_returns_index_and_default(self) -> None:
        q = _questionary(1)
        service = QuestionaryInputService(q)
        index = asyncio.run(service.select("Pick", ["A", "B", "Quit"], default_index=1))

        assert index == 1
        kwargs = q.select.call_args.kwargs
        assert kwargs["default"] == ("B", 1)
        assert kwargs["choices"] == [("A", 0), ("B", 1), ("Quit", 2)]

    def test_out_of_range_default_is_none(self) -> None:
        q = _questionary(0)
        asyncio.run(QuestionaryInputService(q).select("Pick", ["A"], default_index=-1))
        assert q.select.call_args.kwargs["default"] is None

    def test_empty_options(self) -> None:
        with pytest.raises(InputCanceledError):
            asyncio.run(QuestionaryInputService(_questionary()).select("Pick", []))


# ---------------------------------------------------------------------------
# notify / dependencies
# ---------------------------------------------------------------------------

@patch("forge_cli.cli.input.console")
def test_notify_escapes_markup(mock_console: MagicMock) -> None:
    QuestionaryInputService(MagicMock()).notify("Found one organization: Acme [acme]")
    printed = mock_console.print.call_args.args[0]
    assert printed == "Found one organization: Acme \\[acme]"


def test_missing_questionary(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setitem(sys.modules, "questionary", None)
    with pytest.raises(DependencyError, match="questionary"):
        asyncio.run(QuestionaryInputService().prompt("Name"))
