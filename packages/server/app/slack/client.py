"""Thin async Slack Web API client for channel and user lookups.

Lookups are cached in memory with a TTL and an LRU size bound: channel names,
types and topics change rarely and every slash command needs them.
"""

import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

import httpx

from app.logging_config import get_logger

logger = get_logger(__name__)

SLACK_API_BASE_URL = "https://slack.com/api"
LOOKUP_CACHE_TTL_SECONDS = 300.0
LOOKUP_CACHE_MAXSIZE = 1000

V = TypeVar("V")


class SlackApiError(Exception):
    """Slack answered with ``ok: false``."""

    def __init__(self, method: str, error: str):
        super().__init__(f"Slack API error ({method}): {error}")
        self.method = method
        self.error = error


@dataclass(frozen=True)
class ChannelInfo:
    name: Optional[str] = None
    # im | mpim | channel | group
    type: Optional[str] = None
    topic: Optional[str] = None
    purpose: Optional[str] = None


@dataclass(frozen=True)
class UserInfo:
    name: Optional[str] = None


def _channel_type(channel: dict) -> Optional[str]:
    if channel.get("is_im"):
        return "im"
    if channel.get("is_mpim"):
        return "mpim"
    if channel.get("is_private") or channel.get("is_group"):
        return "group"
    if channel.get("is_channel"):
        return "channel"
    return None


class TTLCache(Generic[V]):
    """In-memory LRU cache whose entries expire ``ttl_seconds`` after being set."""

    def __init__(
        self,
        maxsize: int = LOOKUP_CACHE_MAXSIZE,
        ttl_seconds: float = LOOKUP_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.maxsize = maxsize
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, V]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[V]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return value

    def set(self, key: str, value: V) -> None:
        self._entries[key] = (self._clock() + self.ttl_seconds, value)
        self._entries.move_to_end(key)
        while len(self._entries) > self.maxsize:
            self._entries.popitem(last=False)


class SlackWebClient:
    def __init__(
        self,
        bot_token: str,
        base_url: str = SLACK_API_BASE_URL,
        timeout: float = 15.0,
        cache_ttl_seconds: float = LOOKUP_CACHE_TTL_SECONDS,
        cache_maxsize: int = LOOKUP_CACHE_MAXSIZE,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._bot_token = bot_token
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._channels: TTLCache[ChannelInfo] = TTLCache(
            cache_maxsize, cache_ttl_seconds, clock
        )
        self._users: TTLCache[UserInfo] = TTLCache(cache_maxsize, cache_ttl_seconds, clock)

    async def call(self, method: str, params: dict) -> dict:
        """GET a Slack Web API method and return the parsed JSON response."""
        headers = {"Authorization": f"Bearer {self._bot_token}"}
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            resp = await client.get(
                f"{self._base_url}/{method}", params=params, headers=headers
            )
            resp.raise_for_status()
            data = resp.json()

        if not data.get("ok"):
            raise SlackApiError(method, data.get("error", "unknown_error"))
        return data

    async def resolve_channel_name(self, channel_id: str) -> Optional[ChannelInfo]:
        cached = self._channels.get(channel_id)
        if cached is not None:
            return cached
        try:
            data = await self.call("conversations.info", {"channel": channel_id})
        except (SlackApiError, httpx.HTTPError) as e:
            logger.warning(f"Could not resolve Slack channel {channel_id}: {e}")
            return None

        channel = data.get("channel") or {}
        info = ChannelInfo(
            name=channel.get("name"),
            type=_channel_type(channel),
            topic=(channel.get("topic") or {}).get("value") or None,
            purpose=(channel.get("purpose") or {}).get("value") or None,
        )
        self._channels.set(channel_id, info)
        return info

    async def resolve_user_name(self, user_id: str) -> Optional[UserInfo]:
        cached = self._users.get(user_id)
        if cached is not None:
            return cached
        try:
            data = await self.call("users.info", {"user": user_id})
        except (SlackApiError, httpx.HTTPError) as e:
            logger.warning(f"Could not resolve Slack user {user_id}: {e}")
            return None

        user = data.get("user") or {}
        profile = user.get("profile") or {}
        info = UserInfo(
            name=profile.get("display_name")
            or profile.get("real_name")
            or user.get("real_name")
            or user.get("name")
            or None
        )
        self._users.set(user_id, info)
        return info


async def post_to_response_url(response_url: str, payload: dict) -> None:
    """POST a message to a slash command's response_url."""
    async with httpx.AsyncClient(timeout=15.0) as client:
        resp = await client.post(response_url, json=payload)
        resp.raise_for_status()
