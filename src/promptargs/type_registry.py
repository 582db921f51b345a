from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

import discord
from yarl import URL

from promptargs import resolver


Caster = Callable[[str, discord.Message, Mapping[str, Any]], Union[Any, Awaitable[Any]]]


# Only the leading numeric part of a word counts: "12kg" reads as 12.
FLOAT_PREFIX_RE = re.compile(r"\s*([+-]?(?:Infinity|\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?))")
INT_PREFIX_RE = re.compile(r"\s*([+-]?\d+)")


def _number(word: str) -> Optional[float]:
    """Parse the numeric prefix of `word` ("12abc" -> 12.0); None when there is none."""
    match = FLOAT_PREFIX_RE.match(word or "")
    if not match:
        return None
    return float(match.group(1))


def _integer(word: str) -> Optional[int]:
    """Parse the leading digits of `word` ("4.7" -> 4, "1e3" -> 1); None when there are none."""
    match = INT_PREFIX_RE.match(word or "")
    if not match:
        return None
    return int(match.group(1))


def cast_string(word: str, message: Any, args: Mapping[str, Any]) -> Optional[str]:
    return word or None


def cast_lowercase(word: str, message: Any, args: Mapping[str, Any]) -> Optional[str]:
    return word.lower() if word else None


def cast_uppercase(word: str, message: Any, args: Mapping[str, Any]) -> Optional[str]:
    return word.upper() if word else None


def cast_char_codes(word: str, message: Any, args: Mapping[str, Any]) -> Optional[list[int]]:
    return [ord(char) for char in word] if word else None


def cast_number(word: str, message: Any, args: Mapping[str, Any]) -> Optional[float]:
    return _number(word)


def cast_integer(word: str, message: Any, args: Mapping[str, Any]) -> Optional[int]:
    return _integer(word)


def cast_dynamic(word: str, message: Any, args: Mapping[str, Any]) -> Optional[Union[float, str]]:
    if not word:
        return None
    value = _number(word)
    return word if value is None else value


def cast_dynamic_int(word: str, message: Any, args: Mapping[str, Any]) -> Optional[Union[int, str]]:
    if not word:
        return None
    value = _integer(word)
    return word if value is None else value


def cast_url(word: str, message: Any, args: Mapping[str, Any]) -> Optional[URL]:
    if not word:
        return None
    # Discord suppresses embeds for links wrapped in angle brackets.
    if word.startswith("<") and word.endswith(">"):
        word = word[1:-1]
    try:
        url = URL(word)
    except (TypeError, ValueError):
        return None
    if not url.scheme or not url.host:
        return None
    return url


def cast_date(word: str, message: Any, args: Mapping[str, Any]) -> Optional[datetime]:
    if not word:
        return None
    try:
        return datetime.fromisoformat(word)
    except ValueError:
        return None


def cast_color(word: str, message: Any, args: Mapping[str, Any]) -> Optional[int]:
    raw = word.replace("#", "", 1) if word else ""
    if not raw:
        return None
    try:
        color = int(raw, 16)
    except ValueError:
        return None
    if color < 0 or color > 0xFFFFFF:
        return None
    return color


def cast_member(word: str, message: discord.Message, args: Mapping[str, Any]) -> Optional[discord.Member]:
    return resolver.resolve_member(getattr(message, "guild", None), word)


def cast_channel(word: str, message: discord.Message, args: Mapping[str, Any]) -> Any:
    return resolver.resolve_channel(getattr(message, "guild", None), word)


def cast_role(word: str, message: discord.Message, args: Mapping[str, Any]) -> Optional[discord.Role]:
    return resolver.resolve_role(getattr(message, "guild", None), word)


def _mention_caster(mention: Any, getter: str) -> Caster:
    def caster(word: str, message: discord.Message, args: Mapping[str, Any]) -> Any:
        guild = getattr(message, "guild", None)
        if guild is None or not word:
            return None
        match = mention.search(word)
        if not match:
            return None
        return getattr(guild, getter)(int(match.group(1)))

    return caster


BUILTIN_TYPES: dict[str, Caster] = {
    "string": cast_string,
    "lowercase": cast_lowercase,
    "uppercase": cast_uppercase,
    "char_codes": cast_char_codes,
    "number": cast_number,
    "integer": cast_integer,
    "dynamic": cast_dynamic,
    "dynamic_int": cast_dynamic_int,
    "url": cast_url,
    "date": cast_date,
    "color": cast_color,
    "member": cast_member,
    "channel": cast_channel,
    "role": cast_role,
    "member_mention": _mention_caster(resolver.USER_MENTION_RE, "get_member"),
    "channel_mention": _mention_caster(resolver.CHANNEL_MENTION_RE, "get_channel"),
    "role_mention": _mention_caster(resolver.ROLE_MENTION_RE, "get_role"),
}


class TypeRegistry:
    """Named casting functions, looked up by the type name an argument declares."""

    def __init__(self, client: Optional[discord.Client] = None, *, builtins: bool = True) -> None:
        self.client = client
        self._types: dict[str, Caster] = dict(BUILTIN_TYPES) if builtins else {}
        if builtins:
            self._types["user"] = self._cast_user

    def _cast_user(self, word: str, message: discord.Message, args: Mapping[str, Any]) -> Any:
        return resolver.resolve_user(self.client, word)

    def register(self, name: str, caster: Caster) -> None:
        if not name or not isinstance(name, str):
            raise ValueError("type name must be a non-empty string")
        if not callable(caster):
            raise TypeError(f"caster for type {name!r} must be callable")
        self._types[name] = caster

    def unregister(self, name: str) -> bool:
        return self._types.pop(name, None) is not None

    def lookup(self, name: str) -> Optional[Caster]:
        return self._types.get(name)

    def names(self) -> list[str]:
        return sorted(self._types)

    def __contains__(self, name: object) -> bool:
        return name in self._types
