from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Mapping, Union


class ArgumentMatch(str, Enum):
    """How the dispatcher picks the text an argument receives."""

    WORD = "word"
    REST = "rest"
    SEPARATE = "separate"
    PREFIX = "prefix"
    FLAG = "flag"
    TEXT = "text"
    CONTENT = "content"
    NONE = "none"


MatchSpec = Union[ArgumentMatch, Callable[[Any, Mapping[str, Any]], Any]]


def match_spec(raw: Any) -> MatchSpec:
    if isinstance(raw, ArgumentMatch):
        return raw
    if isinstance(raw, str):
        try:
            return ArgumentMatch(raw.lower())
        except ValueError:
            raise ValueError(f"unknown match mode: {raw!r}") from None
    if callable(raw):
        return raw
    raise TypeError(f"match must be a match mode or a function, got {raw!r}")


def resolve_match(spec: MatchSpec, message: Any, args: Mapping[str, Any]) -> ArgumentMatch:
    if isinstance(spec, ArgumentMatch):
        return spec
    return ArgumentMatch(spec(message, args))
