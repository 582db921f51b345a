from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional, Union

from promptargs.argument import Argument
from promptargs.casting import TypeCaster
from promptargs.matching import ArgumentMatch, resolve_match
from promptargs.outcome import Cancelled, is_cancelled
from promptargs.prompt import check_prompt_keys
from promptargs.services.logger_service import LoggerService
from promptargs.services.prompt_tracker_service import PromptTrackerService
from promptargs.storage import MessagePackStore
from promptargs.transport import PromptTransport
from promptargs.type_registry import TypeRegistry
from promptargs.utils.discord_utils import maybe_await, prompt_key


class Command:
    def __init__(
        self,
        id: str,
        *,
        arguments: Iterable[Union[Mapping[str, Any], Argument]] = (),
        aliases: Iterable[str] = (),
        default_prompt: Optional[Mapping[str, Any]] = None,
        description: str = "",
    ) -> None:
        if not id:
            raise ValueError("command id must not be empty")
        if default_prompt is not None:
            check_prompt_keys(default_prompt)
        self.id = id
        self.aliases = tuple(dict.fromkeys([id, *aliases]))
        self.default_prompt = dict(default_prompt or {})
        self.description = description
        self.handler: Optional[ArgumentHandler] = None
        self.arguments: list[Argument] = []
        for spec in arguments:
            if isinstance(spec, Argument):
                spec.command = self
                self._append(spec)
            else:
                self.add_argument(**spec)

    def add_argument(self, **options: Any) -> Argument:
        return self._append(Argument(self, **options))

    def _append(self, argument: Argument) -> Argument:
        if any(existing.id == argument.id for existing in self.arguments):
            raise ValueError(f"duplicate argument id {argument.id!r} in command {self.id!r}")
        self.arguments.append(argument)
        return argument

    async def resolve(self, message: Any, words: Mapping[str, Any]) -> Union[dict[str, Any], Cancelled]:
        """
        Resolve every argument in declaration order.

        Each argument sees the values resolved before it. The first Cancelled
        outcome stops the walk and is returned as-is. `words` maps argument ids
        to matched text; separate arguments may get a list of words and flag
        arguments whether their flag was present.
        """
        if self.handler is None:
            raise RuntimeError(f"command {self.id!r} is not registered with a handler")
        args: dict[str, Any] = {}
        for argument in self.arguments:
            if not await maybe_await(argument.allow(message, args)):
                continue
            matched = words.get(argument.id, "")
            match = resolve_match(argument.match, message, args)
            if match == ArgumentMatch.FLAG:
                value = argument.flag_value(bool(matched))
            elif match == ArgumentMatch.SEPARATE:
                value = await self._process_each(argument, matched, message, args)
            else:
                value = await argument.process(matched, message, args)
            if is_cancelled(value):
                return value
            args[argument.id] = value
        return args

    @staticmethod
    async def _process_each(argument: Argument, matched: Any, message: Any, args: dict[str, Any]) -> Any:
        pieces = matched.split() if isinstance(matched, str) else [str(word) for word in matched]
        if not pieces:
            return await argument.process("", message, args)
        values = []
        for piece in pieces:
            value = await argument.process(piece, message, args)
            if is_cancelled(value):
                return value
            values.append(value)
        return values

    def __repr__(self) -> str:
        return f"<Command id={self.id!r} arguments={[argument.id for argument in self.arguments]!r}>"


class ArgumentHandler:
    def __init__(
        self,
        transport: PromptTransport,
        store: MessagePackStore,
        logger: LoggerService,
        *,
        default_prompt: Optional[Mapping[str, Any]] = None,
        types: Optional[TypeRegistry] = None,
        tracker: Optional[PromptTrackerService] = None,
    ) -> None:
        if default_prompt is not None:
            check_prompt_keys(default_prompt)
        self.transport = transport
        self.store = store
        self.logger = logger
        self.default_prompt = dict(default_prompt or {})
        self.types = types or TypeRegistry()
        self.caster = TypeCaster(self.types)
        self.tracker = tracker or PromptTrackerService(logger)
        self.commands: dict[str, Command] = {}
        self._aliases: dict[str, Command] = {}
        if "command" not in self.types:
            self.types.register("command", lambda word, message, args: self.find(word))

    def register(self, command: Command) -> Command:
        for alias in command.aliases:
            if alias.lower() in self._aliases:
                raise ValueError(f"alias {alias!r} is already used by command {self._aliases[alias.lower()].id!r}")
        command.handler = self
        self.commands[command.id] = command
        for alias in command.aliases:
            self._aliases[alias.lower()] = command
        return command

    def find(self, name: str) -> Optional[Command]:
        if not name:
            return None
        return self._aliases.get(name.lower())

    def has_prompt(self, message: Any) -> bool:
        return self.tracker.has_prompt(message)

    async def run(self, command: Command, message: Any, words: Mapping[str, Any]) -> Union[dict[str, Any], Cancelled, None]:
        """
        Resolve a command's arguments for one message.

        Returns None without touching the arguments when the author already has
        a prompt open in that channel.
        """
        channel_id, user_id = prompt_key(message)
        if self.tracker.has_prompt(message):
            self.logger.log("command.suppressed", command=command.id, channel_id=channel_id, user_id=user_id)
            return None
        try:
            result = await command.resolve(message, words)
        except Exception as exc:
            self.logger.log("command.error", command=command.id, error=str(exc)[:300], user_id=user_id)
            raise
        if is_cancelled(result):
            self.store.bump_outcome(command.id, result.reason.value)
            self.logger.log(
                "command.cancelled",
                command=command.id,
                argument=result.argument_id,
                reason=result.reason.value,
                user_id=user_id,
            )
            return result
        self.store.bump_outcome(command.id, "resolved")
        self.logger.log("command.resolved", command=command.id, arguments=sorted(result), user_id=user_id)
        return result

    def stats(self, command_id: str) -> dict[str, int]:
        return dict(self.store.data["prompt_stats"].get(command_id, {}))
