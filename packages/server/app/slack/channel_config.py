"""Per-channel Slack configuration resolution.

A channel's effective settings are looked up, per field, through an ordered
list of resolution steps. Each step either returns a definitive value or
defers (returns ``None``) to the next one:

    requireMention: matched entry -> "*" entry -> defaultRequireMention -> True
    allowed:        no channels configured -> True
                    matched / "*" entry    -> entry value, else True
                    otherwise              -> False (not in the allow-list)
"""

import re
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Sequence, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

T = TypeVar("T")

WILDCARD = "*"

Step = Callable[[], Optional[T]]


class ChannelConfig(BaseModel):
    """One entry of the ``channels`` mapping, keyed by channel id, name or ``*``."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    require_mention: Optional[bool] = Field(
        default=None, validation_alias=AliasChoices("requireMention", "require_mention")
    )
    allowed: Optional[bool] = None
    users: Optional[list[str]] = None
    system_prompt: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("systemPrompt", "system_prompt")
    )
    skills: Optional[frozenset[str]] = None


@dataclass(frozen=True)
class ResolvedChannelConfig:
    allowed: bool
    require_mention: bool
    users: Optional[list[str]] = None
    system_prompt: Optional[str] = None
    skills: Optional[frozenset[str]] = None


def first_resolved(steps: Sequence[Step[T]], default: T) -> T:
    """Evaluate steps top to bottom; the first non-None value wins."""
    for step in steps:
        value = step()
        if value is not None:
            return value
    return default


def normalize_channel_slug(name: str) -> str:
    """'#Eng Team!' -> 'eng-team'."""
    slug = name.strip().lstrip("#").lower()
    slug = re.sub(r"[^a-z0-9_-]+", "-", slug)
    return slug.strip("-")


def _channel_keys(channel_id: str, channel_name: Optional[str]) -> list[str]:
    keys = [channel_id]
    if channel_name:
        name = channel_name.strip().lstrip("#")
        slug = normalize_channel_slug(name)
        keys.extend([name, f"#{name}", slug, f"#{slug}"])
    return list(dict.fromkeys(key for key in keys if key and key != "#"))


def _match_entry(
    channel_id: str,
    channel_name: Optional[str],
    channels: Mapping[str, ChannelConfig],
) -> Optional[ChannelConfig]:
    for key in _channel_keys(channel_id, channel_name):
        entry = channels.get(key)
        if entry is not None:
            return entry
    return None


def resolve_channel_config(
    channel_id: str,
    channel_name: Optional[str] = None,
    channels: Optional[Mapping[str, ChannelConfig]] = None,
    default_require_mention: Optional[bool] = None,
) -> ResolvedChannelConfig:
    """Resolve the effective config for one channel. Pure; safe to call per command."""
    channels = channels or {}
    matched = _match_entry(channel_id, channel_name, channels)
    fallback = channels.get(WILDCARD)
    layers = [entry for entry in (matched, fallback) if entry is not None]

    def field_steps(attr: str) -> list[Step]:
        return [lambda entry=entry: getattr(entry, attr) for entry in layers]

    require_mention = first_resolved(
        field_steps("require_mention") + [lambda: default_require_mention],
        default=True,
    )

    allowed_steps: list[Step[bool]] = [lambda: True if not channels else None]
    allowed_steps += field_steps("allowed")
    allowed_steps.append(lambda: True if layers else None)
    allowed = first_resolved(allowed_steps, default=False)

    return ResolvedChannelConfig(
        allowed=allowed,
        require_mention=require_mention,
        users=first_resolved(field_steps("users"), default=None),
        system_prompt=first_resolved(field_steps("system_prompt"), default=None),
        skills=first_resolved(field_steps("skills"), default=None),
    )
