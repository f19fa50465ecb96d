"""Interactive choice prompts on the host terminal using prompt_toolkit."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Sequence

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.formatted_text import ANSI
from prompt_toolkit.input import Input
from prompt_toolkit.output import Output
from prompt_toolkit.validation import ValidationError, Validator

ANSI_ESCAPE_PATTERN = re.compile(r"\x1b\[[0-9;]*m")


def _format_prompt_for_toolkit(prompt: str):
    """Wrap prompts containing ANSI escape codes so prompt_toolkit renders them."""
    if ANSI_ESCAPE_PATTERN.search(prompt):
        return ANSI(prompt)
    return prompt


@dataclass(frozen=True)
class ChoiceResult:
    selected: Optional[str]
    index: Optional[int]
    cancelled: bool = False

    def to_dict(self) -> dict:
        if self.cancelled:
            return {"selected": None, "cancelled": True}
        return {"selected": self.selected, "index": self.index}


class _ChoiceValidator(Validator):
    def __init__(self, options: Sequence[str]) -> None:
        self._options = list(options)

    def validate(self, document) -> None:
        text = document.text.strip()
        if not text or _match_choice(text, self._options) is not None:
            return
        raise ValidationError(
            message=f"Enter a number between 1 and {len(self._options)} or one of the options",
            cursor_position=len(document.text),
        )


def _match_choice(text: str, options: Sequence[str]) -> Optional[int]:
    if text.isdigit():
        index = int(text)
        if 1 <= index <= len(options):
            return index
        return None
    for position, option in enumerate(options, start=1):
        if option == text:
            return position
    return None


class ChoicePrompter:
    """Asks the user to pick one option without blocking the host loop.

    An empty answer, EOF or Ctrl+C counts as a cancelled prompt.
    """

    def __init__(self, custom_input: Optional[Input] = None, custom_output: Optional[Output] = None) -> None:
        self._custom_input = custom_input
        self._custom_output = custom_output

    def _build_session(self, options: Sequence[str]) -> PromptSession:
        kwargs = {
            "completer": WordCompleter(list(options), sentence=True),
            "validator": _ChoiceValidator(options),
            "validate_while_typing": False,
        }
        if self._custom_input is not None:
            kwargs["input"] = self._custom_input
        if self._custom_output is not None:
            kwargs["output"] = self._custom_output
        return PromptSession(**kwargs)

    async def choose(self, prompt: str, options: Sequence[str]) -> ChoiceResult:
        session = self._build_session(options)
        listing = "\n".join(f"  {index}. {option}" for index, option in enumerate(options, start=1))
        message = _format_prompt_for_toolkit(f"{prompt}\n{listing}\n> ")
        try:
            answer = await session.prompt_async(message)
        except (EOFError, KeyboardInterrupt):
            return ChoiceResult(selected=None, index=None, cancelled=True)

        index = _match_choice(answer.strip(), options)
        if index is None:
            return ChoiceResult(selected=None, index=None, cancelled=True)
        return ChoiceResult(selected=options[index - 1], index=index)


__all__ = ["ChoicePrompter", "ChoiceResult"]
