from __future__ import annotations

from typing import Any, Callable, Protocol

import discord


class PromptTransport(Protocol):
    async def send(self, message: discord.Message, text: str) -> Any:
        """Send text to the channel of `message`, returning the sent message."""

    async def wait_for_reply(
        self,
        message: discord.Message,
        check: Callable[[discord.Message], bool],
        timeout: float,
    ) -> discord.Message:
        """Return the next message accepted by `check`; raise asyncio.TimeoutError after `timeout` seconds."""


class DiscordTransport:
    def __init__(self, client: discord.Client) -> None:
        self.client = client

    async def send(self, message: discord.Message, text: str) -> discord.Message:
        return await message.channel.send(text)

    async def wait_for_reply(
        self,
        message: discord.Message,
        check: Callable[[discord.Message], bool],
        timeout: float,
    ) -> discord.Message:
        channel_id = message.channel.id

        def scoped(candidate: discord.Message) -> bool:
            return candidate.channel.id == channel_id and check(candidate)

        return await self.client.wait_for("message", check=scoped, timeout=timeout)
