"""
Type specifications and the caster that applies them to one token.

An argument's declared type is normalized once, at declaration time, into one
of four variants:

- NamedType: a name looked up in the TypeRegistry ("integer", "member", ...).
- Choices: candidate strings; an alias group resolves to its first entry.
- Pattern: a compiled regex; find_all collects every match (the "global" flag).
- Function: a sync or async callable (token, message, prior_args) -> value | None.

TypeCaster.cast() dispatches on the variant. A token that cannot be cast
yields None; cast() itself never raises for a failed cast, but exceptions
from user-supplied functions propagate to the caller unchanged.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Sequence, Tuple, Union

from promptargs.type_registry import TypeRegistry
from promptargs.utils.discord_utils import maybe_await


@dataclass(frozen=True)
class NamedType:
    name: str


@dataclass(frozen=True)
class Choices:
    entries: Tuple[Tuple[str, ...], ...]

    def pick(self, token: str) -> Optional[str]:
        lowered = token.lower()
        for aliases in self.entries:
            if any(alias.lower() == lowered for alias in aliases):
                return aliases[0]
        return None


@dataclass(frozen=True)
class Pattern:
    regex: re.Pattern[str]
    find_all: bool = False


@dataclass(frozen=True)
class Function:
    fn: Callable[..., Any]


TypeSpec = Union[NamedType, Choices, Pattern, Function]


@dataclass(frozen=True)
class RegexMatch:
    match: re.Match[str]
    matches: Tuple[re.Match[str], ...] = ()


def type_spec(raw: Any) -> TypeSpec:
    """Coerce a declared type into a TypeSpec variant."""
    if isinstance(raw, (NamedType, Choices, Pattern, Function)):
        return raw
    if isinstance(raw, str):
        if not raw:
            raise ValueError("type name must not be empty")
        return NamedType(raw)
    if isinstance(raw, re.Pattern):
        return Pattern(raw)
    if isinstance(raw, Sequence):
        entries = []
        for entry in raw:
            aliases = (entry,) if isinstance(entry, str) else tuple(entry)
            if not aliases or not all(isinstance(alias, str) for alias in aliases):
                raise TypeError(f"choice entries must be strings or non-empty string groups, got {entry!r}")
            entries.append(aliases)
        return Choices(tuple(entries))
    if callable(raw):
        return Function(raw)
    raise TypeError(f"unsupported argument type: {raw!r}")


class TypeCaster:
    def __init__(self, registry: TypeRegistry) -> None:
        self.registry = registry

    async def cast(self, spec: TypeSpec, token: str, message: Any, args: Mapping[str, Any]) -> Any:
        if isinstance(spec, Choices):
            return spec.pick(token)

        if isinstance(spec, Function):
            return await self._call(spec.fn, token, message, args)

        if isinstance(spec, Pattern):
            match = spec.regex.search(token)
            if match is None:
                return None
            matches = tuple(spec.regex.finditer(token)) if spec.find_all else ()
            return RegexMatch(match=match, matches=matches)

        caster = self.registry.lookup(spec.name)
        if caster is not None:
            return await self._call(caster, token, message, args)

        return token or None

    @staticmethod
    async def _call(fn: Callable[..., Any], token: str, message: Any, args: Mapping[str, Any]) -> Any:
        return await maybe_await(fn(token, message, args))
