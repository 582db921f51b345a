from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Sequence, Tuple, Union

from promptargs.utils.discord_utils import maybe_await


@dataclass(frozen=True)
class PromptData:
    """Context handed to generator templates."""

    retries: int
    infinite: bool
    message: Any
    word: str


@dataclass(frozen=True)
class Literal:
    text: str = ""

    async def resolve(self, message: Any, args: Mapping[str, Any], data: PromptData) -> str:
        return self.text


@dataclass(frozen=True)
class Lines:
    lines: Tuple[str, ...]

    async def resolve(self, message: Any, args: Mapping[str, Any], data: PromptData) -> str:
        return "\n".join(self.lines)


@dataclass(frozen=True)
class Generator:
    fn: Callable[[Any, Mapping[str, Any], PromptData], Any]

    async def resolve(self, message: Any, args: Mapping[str, Any], data: PromptData) -> str:
        res = await maybe_await(self.fn(message, args, data))
        return _flatten(res)


TextTemplate = Union[Literal, Lines, Generator]

EMPTY = Literal()


def _flatten(value: Any) -> str:
    if not value:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, Sequence):
        return "\n".join(str(line) for line in value)
    return str(value)


def text_template(raw: Optional[Union[str, Sequence[str], Callable[..., Any], TextTemplate]]) -> TextTemplate:
    if raw is None:
        return EMPTY
    if isinstance(raw, (Literal, Lines, Generator)):
        return raw
    if isinstance(raw, str):
        return Literal(raw)
    if callable(raw):
        return Generator(raw)
    if isinstance(raw, Sequence):
        return Lines(tuple(str(line) for line in raw))
    raise TypeError(f"prompt text must be a string, a list of strings or a function, got {raw!r}")
