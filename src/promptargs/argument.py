from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any, Callable, Mapping, MutableMapping, Optional, Sequence, Union

from promptargs.casting import TypeSpec, type_spec
from promptargs.matching import ArgumentMatch, MatchSpec, match_spec
from promptargs.prompt import PromptEngine, PromptOptions, check_prompt_keys
from promptargs.utils.discord_utils import maybe_await

if TYPE_CHECKING:
    from promptargs.command import Command


def _always(message: Any, args: Mapping[str, Any]) -> bool:
    return True


class Argument:
    """
    One declared argument of a command.

    The declaration is fixed at registration; process() resolves a value for a
    single invocation from the text the dispatcher matched for it.
    """

    def __init__(
        self,
        command: "Command",
        *,
        id: str,
        match: Union[str, MatchSpec] = ArgumentMatch.WORD,
        type: Any = "string",
        default: Any = None,
        allow: Callable[[Any, Mapping[str, Any]], Any] = _always,
        prompt: Optional[Mapping[str, Any]] = None,
        prefix: Optional[Union[str, Sequence[str]]] = None,
        index: Optional[int] = None,
        limit: float = math.inf,
        description: Union[str, Sequence[str]] = "",
    ) -> None:
        if not id:
            raise ValueError("argument id must not be empty")
        if prompt is not None:
            check_prompt_keys(prompt)
        self.command = command
        self.id = id
        self.match = match_spec(match)
        self.type: TypeSpec = type_spec(type)
        self.default = default if callable(default) else (lambda message, args: default)
        self.has_default = default is not None
        self.allow = allow
        self.prompt = dict(prompt) if prompt is not None else None
        self.prefix = prefix
        self.index = index
        self.limit = limit
        self.description = description if isinstance(description, str) else "\n".join(description)

    @property
    def handler(self):
        return self.command.handler

    def prompt_options(self) -> PromptOptions:
        return PromptOptions.merge(self.handler.default_prompt, self.command.default_prompt, self.prompt)

    async def process(self, word: str, message: Any, args: MutableMapping[str, Any]) -> Any:
        word = word.strip()

        # Only the argument's own prompt can make it optional.
        if not word and self.prompt is not None and self.prompt.get("optional"):
            return await self.resolve_default(message, args)

        res = await self.cast(word, message, args)
        if res is not None:
            return res

        if self.prompt is not None:
            return await self.collect(message, args, word)

        return await self.resolve_default(message, args)

    def flag_value(self, found: bool) -> bool:
        """Flags are True when present; declaring any default flips that."""
        return not found if self.has_default else found

    async def cast(self, word: str, message: Any, args: Mapping[str, Any]) -> Any:
        return await self.handler.caster.cast(self.type, word, message, args)

    async def collect(self, message: Any, args: MutableMapping[str, Any], command_input: str = "") -> Any:
        handler = self.handler
        engine = PromptEngine(
            self,
            self.prompt_options(),
            handler.caster,
            handler.transport,
            handler.tracker,
            logger=handler.logger,
        )
        return await engine.collect(message, args, command_input)

    async def resolve_default(self, message: Any, args: Mapping[str, Any]) -> Any:
        return await maybe_await(self.default(message, args))

    def __repr__(self) -> str:
        return f"<Argument id={self.id!r} command={getattr(self.command, 'id', None)!r}>"
