from __future__ import annotations

import discord

from promptargs.services.logger_service import LoggerService
from promptargs.utils.discord_utils import prompt_key


class PromptTrackerService:
    """Registry of outstanding prompts, keyed by (channel id, author id)."""

    def __init__(self, logger: LoggerService | None = None) -> None:
        self.logger = logger
        self._active: set[tuple[int, int]] = set()

    def register(self, message: discord.Message) -> None:
        key = prompt_key(message)
        if key in self._active:
            return
        self._active.add(key)
        if self.logger:
            self.logger.log("prompt.start", channel_id=key[0], user_id=key[1])

    def deregister(self, message: discord.Message) -> bool:
        key = prompt_key(message)
        existed = key in self._active
        self._active.discard(key)
        return existed

    def has_prompt(self, message: discord.Message) -> bool:
        return prompt_key(message) in self._active

    def active_count(self) -> int:
        return len(self._active)
