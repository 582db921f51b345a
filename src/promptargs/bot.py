from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional, Sequence

import discord
from discord.ext import commands

from promptargs.command import ArgumentHandler, Command
from promptargs.config import Settings
from promptargs.matching import ArgumentMatch, resolve_match
from promptargs.outcome import is_cancelled
from promptargs.services.logger_service import LoggerService
from promptargs.storage import MessagePackStore
from promptargs.transport import DiscordTransport
from promptargs.type_registry import TypeRegistry


CommandCallback = Callable[[commands.Context, dict[str, Any]], Awaitable[None]]

POLL_REACTIONS = tuple(f"{n}\ufe0f\u20e3" for n in range(1, 10))


def _prefixes(value: Optional[str | Sequence[str]]) -> tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        return (value.lower(),)
    return tuple(prefix.lower() for prefix in value)


def assign_words(command: Command, message: Any, words: Sequence[str], content: str = "") -> dict[str, Any]:
    """
    Hand each argument the text it matches from already tokenized words.

    Words claimed by prefix/flag arguments are removed before positional
    matching. Separate arguments get their words as a list and flag arguments
    get whether the flag was given. `content` is the untokenized text after
    the command name.
    """
    claimed = tuple(prefix for argument in command.arguments for prefix in _prefixes(argument.prefix))
    positional = [word for word in words if not word.lower().startswith(claimed)] if claimed else list(words)

    assigned: dict[str, Any] = {}
    cursor = 0
    for argument in command.arguments:
        match = resolve_match(argument.match, message, {})
        start = argument.index if argument.index is not None else cursor
        if match == ArgumentMatch.WORD:
            assigned[argument.id] = positional[start] if start < len(positional) else ""
            if argument.index is None:
                cursor += 1
        elif match in (ArgumentMatch.REST, ArgumentMatch.SEPARATE, ArgumentMatch.TEXT):
            stop = len(positional) if argument.limit == float("inf") else start + int(argument.limit)
            picked = positional[start:stop]
            assigned[argument.id] = picked if match == ArgumentMatch.SEPARATE else " ".join(picked)
            if argument.index is None and match != ArgumentMatch.TEXT:
                cursor = max(cursor, stop)
        elif match == ArgumentMatch.CONTENT:
            assigned[argument.id] = content
        elif match == ArgumentMatch.PREFIX:
            prefixes = _prefixes(argument.prefix)
            found = ""
            for word in words:
                hit = next((p for p in prefixes if word.lower().startswith(p)), None)
                if hit is not None:
                    found = word[len(hit):]
                    break
            assigned[argument.id] = found
        elif match == ArgumentMatch.FLAG:
            prefixes = _prefixes(argument.prefix)
            assigned[argument.id] = any(word.lower() in prefixes for word in words)
        else:
            assigned[argument.id] = ""
    return assigned


class PromptBot(commands.Bot):
    def __init__(self, settings: Settings) -> None:
        intents = discord.Intents.default()
        intents.guilds = True
        intents.members = True
        intents.messages = True
        intents.message_content = True
        intents.dm_messages = True
        super().__init__(command_prefix=settings.command_prefix, intents=intents, help_command=None)
        self.settings = settings
        self.store = MessagePackStore(settings.store_path)
        self.logger = LoggerService(self.store, limit=settings.log_limit)
        self.argument_handler = ArgumentHandler(
            DiscordTransport(self),
            self.store,
            self.logger,
            default_prompt=settings.default_prompt(),
            types=TypeRegistry(self),
        )
        self._autosave_task: asyncio.Task[None] | None = None

    async def setup_hook(self) -> None:
        await self.store.load()
        self._autosave_task = asyncio.create_task(self.store.autosave_loop(), name="msgpack-autosave")
        self._register_commands()

    def add_prompt_command(self, command: Command, callback: CommandCallback) -> Command:
        self.argument_handler.register(command)

        async def invoke(ctx: commands.Context, *words: str) -> None:
            content = ctx.message.content[len(ctx.prefix or "") + len(ctx.invoked_with or ""):].strip()
            assigned = assign_words(command, ctx.message, words, content)
            result = await self.argument_handler.run(command, ctx.message, assigned)
            if result is None or is_cancelled(result):
                return
            await callback(ctx, result)

        self.add_command(commands.Command(invoke, name=command.id, aliases=list(command.aliases[1:])))
        return command

    def _register_commands(self) -> None:
        @self.command(name="promptstats")
        async def promptstats(ctx: commands.Context, name: str = "") -> None:
            rows = self.store.data["prompt_stats"]
            if name:
                found = self.argument_handler.find(name)
                rows = {found.id: rows.get(found.id, {})} if found else {}
            if not rows:
                await ctx.send("No prompt stats yet.")
                return
            lines = [
                f"`{command_id}` resolved={row.get('resolved', 0)} cancel={row.get('cancel', 0)} "
                f"timeout={row.get('timeout', 0)} ended={row.get('ended', 0)}"
                for command_id, row in sorted(rows.items())
            ]
            lines.append(f"Active prompts: `{self.argument_handler.tracker.active_count()}`")
            await ctx.send("\n".join(lines))

        poll = Command(
            "poll",
            arguments=[
                {
                    "id": "question",
                    "match": "content",
                    "prompt": {"start": "What should the poll ask?", "retry": "Please type a question."},
                },
                {
                    "id": "options",
                    "match": "none",
                    "prompt": {
                        "infinite": True,
                        "limit": len(POLL_REACTIONS),
                        "start": [
                            "Send the poll options, one per message.",
                            "Type `stop` when you are done or `cancel` to abort.",
                        ],
                        "retry": lambda message, args, data: (
                            "Add at least one option before stopping." if not args.get("options") else ""
                        ),
                    },
                },
            ],
            default_prompt={"retries": 2, "timeout": "Poll creation timed out.", "cancel": "Poll cancelled."},
        )
        self.add_prompt_command(poll, self._send_poll)

    async def _send_poll(self, ctx: commands.Context, args: dict[str, Any]) -> None:
        options = [str(option) for option in args["options"]]
        body = "\n".join(f"{POLL_REACTIONS[i]} {option}" for i, option in enumerate(options))
        sent = await ctx.send(f"**{args['question']}**\n{body}")
        for i in range(len(options)):
            await sent.add_reaction(POLL_REACTIONS[i])

    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot:
            return
        # Replies to an open prompt belong to that prompt, not to a new command.
        if self.argument_handler.has_prompt(message):
            return
        await self.process_commands(message)

    async def on_command_error(self, ctx: commands.Context, exception: Exception) -> None:
        if isinstance(exception, commands.CommandNotFound):
            return
        if isinstance(exception, commands.CheckFailure):
            await ctx.send("Not authorized.")
            return
        self.logger.log("command.error", error=str(exception), command=ctx.command.name if ctx.command else "unknown")
        await ctx.send(f"Command error: {exception}")

    async def close(self) -> None:
        if self._autosave_task is not None:
            self._autosave_task.cancel()
        if self.store.dirty:
            await self.store.save()
        await super().close()


def main() -> None:
    settings = Settings.load()
    bot = PromptBot(settings)
    bot.run(settings.discord_token)
