from __future__ import annotations

import inspect
from typing import Any

import discord


async def maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def prompt_key(message: discord.Message) -> tuple[int, int]:
    """
    Identity of a prompt owner: the channel the command ran in and its author.

    Works on anything shaped like a message so DMs, threads and test stubs all
    key the same way.
    """

    channel_id = int(getattr(message.channel, "id", 0) or 0)
    author_id = int(getattr(message.author, "id", 0) or 0)
    return channel_id, author_id


def message_content(message: Any) -> str:
    return str(getattr(message, "content", "") or "")
