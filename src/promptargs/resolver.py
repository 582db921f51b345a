from __future__ import annotations

import re
from dataclasses import dataclass
from difflib import SequenceMatcher
from typing import Any, Callable, Iterable, List, Optional, Tuple

import discord


USER_MENTION_RE = re.compile(r"<@!?(\d+)>")
CHANNEL_MENTION_RE = re.compile(r"<#(\d+)>")
ROLE_MENTION_RE = re.compile(r"<@&(\d+)>")


@dataclass
class ResolutionCandidate:
    entity: Any
    label: str
    score: float
    match_type: str


def normalize_token(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "", (text or "").strip().lower())


def parse_snowflake(text: str, mention: re.Pattern[str], strip: str = "") -> Optional[int]:
    if not text:
        return None
    match = mention.search(text)
    if match:
        return int(match.group(1))
    raw = text.strip().lstrip(strip) if strip else text.strip()
    if raw.isdigit():
        return int(raw)
    return None


def parse_user_id(text: str) -> Optional[int]:
    return parse_snowflake(text, USER_MENTION_RE)


def parse_channel_id(text: str) -> Optional[int]:
    return parse_snowflake(text, CHANNEL_MENTION_RE, "#")


def parse_role_id(text: str) -> Optional[int]:
    return parse_snowflake(text, ROLE_MENTION_RE, "@")


def score_label(query_norm: str, name_norm: str) -> Tuple[float, str]:
    if not query_norm or not name_norm:
        return 0.0, "none"
    if query_norm == name_norm:
        return 1.0, "exact"
    if name_norm.startswith(query_norm):
        return 0.92, "prefix"
    if query_norm in name_norm:
        return 0.86, "contains"
    ratio = SequenceMatcher(None, query_norm, name_norm).ratio()
    return 0.6 * ratio, "fuzzy"


def rank(
    query: str,
    entities: Iterable[Any],
    labels: Callable[[Any], Iterable[Optional[str]]],
    limit: int = 5,
) -> List[ResolutionCandidate]:
    query_norm = normalize_token(query)
    if not query_norm:
        return []
    scored: List[ResolutionCandidate] = []
    for entity in entities:
        best = ResolutionCandidate(entity=entity, label="", score=0.0, match_type="none")
        for label in labels(entity):
            if not label:
                continue
            score, match_type = score_label(query_norm, normalize_token(label))
            if score > best.score:
                best = ResolutionCandidate(entity=entity, label=label, score=score, match_type=match_type)
        if best.score > 0.0:
            scored.append(best)
    scored.sort(key=lambda c: (-c.score, c.label.lower()))
    return scored[:limit]


def pick_best(candidates: List[ResolutionCandidate], min_score: float = 0.82, gap: float = 0.06) -> Any:
    if not candidates:
        return None
    top = candidates[0]
    if top.score < min_score:
        return None
    if len(candidates) > 1 and (top.score - candidates[1].score) < gap:
        return None
    return top.entity


def member_labels(member: discord.Member) -> Tuple[Optional[str], ...]:
    return member.display_name, member.name, getattr(member, "global_name", None)


def user_labels(user: discord.abc.User) -> Tuple[Optional[str], ...]:
    return user.name, getattr(user, "global_name", None)


def named_labels(entity: Any) -> Tuple[Optional[str], ...]:
    return (getattr(entity, "name", None),)


def resolve_member(guild: Optional[discord.Guild], text: str) -> Optional[discord.Member]:
    if guild is None or not text:
        return None
    member_id = parse_user_id(text)
    if member_id is not None:
        return guild.get_member(member_id)
    return pick_best(rank(text, guild.members, member_labels))


def resolve_user(client: Optional[discord.Client], text: str) -> Optional[discord.abc.User]:
    if client is None or not text:
        return None
    user_id = parse_user_id(text)
    if user_id is not None:
        return client.get_user(user_id)
    return pick_best(rank(text, client.users, user_labels))


def resolve_channel(guild: Optional[discord.Guild], text: str) -> Optional[discord.abc.GuildChannel]:
    if guild is None or not text:
        return None
    channel_id = parse_channel_id(text)
    if channel_id is not None:
        return guild.get_channel(channel_id)
    return pick_best(rank(text.lstrip("#"), guild.channels, named_labels))


def resolve_role(guild: Optional[discord.Guild], text: str) -> Optional[discord.Role]:
    if guild is None or not text:
        return None
    role_id = parse_role_id(text)
    if role_id is not None:
        return guild.get_role(role_id)
    roles = [role for role in guild.roles if not role.is_default()]
    return pick_best(rank(text.lstrip("@"), roles, named_labels))
