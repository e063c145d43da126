"""Interactive prompts used by the CLI commands.

Every prompt takes a validator: a callable that receives the raw text and
returns the converted value, or raises ``ValueError`` with a message that
is shown before asking again.
"""

from __future__ import annotations

import getpass
from collections.abc import Callable, Sequence
from typing import TypeVar

T = TypeVar("T")

Validator = Callable[[str], T]

_YES = {"y", "yes"}
_NO = {"n", "no"}


def _identity(value: str) -> str:
    return value


class Prompt:
    """Terminal prompts backed by ``input()`` and ``getpass``."""

    def __init__(
        self,
        input_func: Callable[[str], str] = input,
        password_func: Callable[[str], str] = getpass.getpass,
        print_func: Callable[[str], None] = print,
    ):
        self._input = input_func
        self._password = password_func
        self._print = print_func

    def print_message(self, message: str) -> None:
        self._print(message)

    def _ask(self, read: Callable[[str], str], label: str, default: str | None, validate):
        while True:
            raw = read(label).strip()
            if not raw and default is not None:
                raw = default
            try:
                return validate(raw)
            except ValueError as exc:
                self.print_message(f"  {exc}")

    def prompt_input(
        self, message: str, default: str | None = None, validate: Validator[T] = _identity
    ) -> T:
        label = f"? {message} ({default}) " if default else f"? {message} "
        return self._ask(self._input, label, default, validate)

    def prompt_choice(
        self,
        message: str,
        choices: Sequence[str],
        default: str | None = None,
        validate: Validator[T] = _identity,
    ) -> T:
        self.print_message(f"? {message}")
        for index, choice in enumerate(choices, start=1):
            marker = "*" if choice == default else " "
            self.print_message(f"  {marker} {index}) {choice}")

        def _pick(raw: str):
            # Accept the position in the list as well as the value itself.
            if raw.isdigit() and 1 <= int(raw) <= len(choices):
                raw = choices[int(raw) - 1]
            if raw not in choices:
                raise ValueError(f"Choose one of: {', '.join(choices)}")
            return validate(raw)

        return self._ask(self._input, "  Answer: ", default, _pick)

    def prompt_password(self, message: str, validate: Validator[str] = _identity) -> str:
        return self._ask(self._password, f"? {message} ", None, validate)

    def prompt_confirm(self, message: str, default: bool) -> bool:
        hint = "Y/n" if default else "y/N"

        def _yes_no(raw: str) -> bool:
            answer = raw.lower()
            if not answer:
                return default
            if answer in _YES:
                return True
            if answer in _NO:
                return False
            raise ValueError("Please answer yes or no")

        return self._ask(self._input, f"? {message} ({hint}) ", None, _yes_no)


class ScriptedPrompt(Prompt):
    """Answers prompts from a list, for tests and non-interactive runs."""

    def __init__(self, answers: Sequence[str] = ()):
        self.answers = list(answers)
        self.messages: list[str] = []
        super().__init__(self._next, self._next, self.messages.append)

    def add_answer(self, answer: str) -> None:
        self.answers.append(answer)

    def _next(self, label: str) -> str:
        if not self.answers:
            raise RuntimeError(f"No scripted answer left for prompt: {label.strip()}")
        return self.answers.pop(0)


__all__ = ["Prompt", "ScriptedPrompt", "Validator"]
