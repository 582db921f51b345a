"""
Interactive prompting for a single argument.

PromptEngine.collect() runs one prompt session as an explicit loop. Each turn
registers the prompt with the tracker, sends the start/retry text, waits for
one reply from the same author, then:

- cancel word        -> send cancel text, return Cancelled(CANCEL)
- stop word          -> infinite prompts only: finish, or count as a failed turn
                        when nothing was collected yet
- cast succeeded     -> return the value, or keep collecting (infinite)
- cast failed        -> retry, or send ended text and return Cancelled(ENDED)
                        once `retries` is spent
- no reply in `time` -> send timeout text, return Cancelled(TIMEOUT)

The tracker entry is removed exactly once when the session ends, whatever the
outcome. Transport errors other than the reply timeout propagate unchanged.
"""
from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass, fields
from typing import TYPE_CHECKING, Any, Mapping, MutableMapping, Optional

from promptargs.casting import TypeCaster
from promptargs.matching import ArgumentMatch, resolve_match
from promptargs.outcome import CancelReason, Cancelled
from promptargs.services.logger_service import LoggerService
from promptargs.services.prompt_tracker_service import PromptTrackerService
from promptargs.templating import EMPTY, PromptData, TextTemplate, text_template
from promptargs.transport import PromptTransport
from promptargs.utils.discord_utils import message_content, prompt_key

if TYPE_CHECKING:
    from promptargs.argument import Argument


TEXT_FIELDS = ("start", "retry", "timeout", "ended", "cancel")


@dataclass(frozen=True)
class PromptOptions:
    retries: int = 1
    time: float = 30.0
    cancel_word: str = "cancel"
    stop_word: str = "stop"
    optional: bool = False
    infinite: bool = False
    limit: float = math.inf
    start: TextTemplate = EMPTY
    retry: TextTemplate = EMPTY
    timeout: TextTemplate = EMPTY
    ended: TextTemplate = EMPTY
    cancel: TextTemplate = EMPTY

    @classmethod
    def merge(cls, *layers: Optional[Mapping[str, Any]]) -> "PromptOptions":
        """Shallow-merge option layers; later layers win, None values are skipped."""
        merged: dict[str, Any] = {}
        for layer in layers:
            if not layer:
                continue
            check_prompt_keys(layer)
            merged.update({key: value for key, value in layer.items() if value is not None})
        for key in TEXT_FIELDS:
            if key in merged:
                merged[key] = text_template(merged[key])
        return cls(**merged)


PROMPT_KEYS = frozenset(field.name for field in fields(PromptOptions))


def check_prompt_keys(layer: Mapping[str, Any]) -> None:
    unknown = set(layer) - PROMPT_KEYS
    if unknown:
        raise TypeError(f"unknown prompt option(s): {', '.join(sorted(unknown))}")


class PromptEngine:
    def __init__(
        self,
        argument: "Argument",
        options: PromptOptions,
        caster: TypeCaster,
        transport: PromptTransport,
        tracker: PromptTrackerService,
        logger: Optional[LoggerService] = None,
    ) -> None:
        self.argument = argument
        self.options = options
        self.caster = caster
        self.transport = transport
        self.tracker = tracker
        self.logger = logger

    async def collect(self, message: Any, args: MutableMapping[str, Any], command_input: str = "") -> Any:
        options = self.options
        match = resolve_match(self.argument.match, message, args)
        is_infinite = options.infinite and (match != ArgumentMatch.SEPARATE or not command_input)

        values: Optional[list[Any]] = [] if is_infinite else None
        if values is not None:
            args[self.argument.id] = values

        # A failing command token already used up the first attempt.
        first_retry = 1 + bool(command_input)
        retry_count = first_retry
        prev_message = message

        async def text(template: TextTemplate, context: Any, word: str) -> str:
            data = PromptData(retries=retry_count, infinite=is_infinite, message=context, word=word)
            return await template.resolve(message, args, data)

        async def say(template: TextTemplate, context: Any, word: str = "") -> Any:
            body = await text(template, context, word)
            if not body:
                return None
            return await self.transport.send(message, body)

        try:
            while True:
                self.tracker.register(message)

                sent = None
                if retry_count > 1 or not values:
                    word = command_input if retry_count <= first_retry else message_content(prev_message)
                    sent = await say(options.start if retry_count == 1 else options.retry, prev_message, word)

                def check(candidate: Any, sent: Any = sent) -> bool:
                    if sent is not None and candidate.id == sent.id:
                        return False
                    return candidate.author.id == message.author.id

                try:
                    reply = await self.transport.wait_for_reply(message, check, options.time)
                except asyncio.TimeoutError:
                    await say(options.timeout, prev_message)
                    return self._cancelled(message, CancelReason.TIMEOUT)

                content = message_content(reply)
                self._log("prompt.reply", message, retry_count=retry_count, length=len(content))

                if content.lower() == options.cancel_word.lower():
                    await say(options.cancel, reply)
                    return self._cancelled(message, CancelReason.CANCEL)

                if values is not None and content.lower() == options.stop_word.lower():
                    if values:
                        return self._resolved(message, values)
                else:
                    value = await self.caster.cast(self.argument.type, content, reply, args)
                    if value is not None:
                        if values is None:
                            return self._resolved(message, value)
                        values.append(value)
                        if len(values) >= options.limit:
                            return self._resolved(message, values)
                        retry_count = 1
                        prev_message = message
                        continue

                if retry_count > options.retries:
                    await say(options.ended, reply)
                    return self._cancelled(message, CancelReason.ENDED)
                retry_count += 1
                prev_message = reply
        finally:
            self.tracker.deregister(message)

    def _resolved(self, message: Any, value: Any) -> Any:
        self._log("prompt.resolved", message, count=len(value) if isinstance(value, list) else 1)
        return value

    def _cancelled(self, message: Any, reason: CancelReason) -> Cancelled:
        self._log("prompt.cancelled", message, reason=reason.value)
        return Cancelled(reason=reason, argument_id=self.argument.id)

    def _log(self, event: str, message: Any, **data: object) -> None:
        if self.logger is None:
            return
        channel_id, user_id = prompt_key(message)
        self.logger.log(event, argument=self.argument.id, channel_id=channel_id, user_id=user_id, **data)
