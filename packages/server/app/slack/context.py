"""Collaborators the slash-command pipeline depends on.

SlackCommandContext bundles settings with the Slack Web API client, the
allow-from/pairing store and the reply dispatcher, exposing each as a single
call the pipeline can make without knowing how it is backed.
"""

from typing import Any, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.logging_config import get_logger
from app.slack import pairing
from app.slack.allow_list import allow_list_matches
from app.slack.client import ChannelInfo, SlackWebClient, UserInfo
from app.slack.config import SlackSettings
from app.slack.dispatch import Deliver, DispatchResult, OnError, RedisReplyDispatcher
from app.slack.pairing import PairingResult, StoreReadResult
from app.slack.routing import AgentRoute, RoutePeer, resolve_agent_route

logger = get_logger(__name__)

SessionFactory = Callable[[], AsyncSession]


class SlackCommandContext:
    def __init__(
        self,
        settings: SlackSettings,
        web_client: SlackWebClient,
        session_factory: SessionFactory,
        dispatcher: RedisReplyDispatcher,
    ):
        self.settings = settings
        self.web_client = web_client
        self.session_factory = session_factory
        self.dispatcher = dispatcher

    async def resolve_channel_name(self, channel_id: str) -> Optional[ChannelInfo]:
        return await self.web_client.resolve_channel_name(channel_id)

    async def resolve_user_name(self, user_id: str) -> Optional[UserInfo]:
        return await self.web_client.resolve_user_name(user_id)

    def is_channel_allowed(
        self,
        channel_id: str,
        channel_name: Optional[str] = None,
        channel_type: Optional[str] = None,
    ) -> bool:
        """Coarse per-type gate applied before the DM/room branches."""
        settings = self.settings
        if channel_type == "mpim":
            if not settings.group_dm_enabled:
                return False
            if settings.group_dm_channels and not allow_list_matches(
                settings.group_dm_channels, id=channel_id, name=channel_name
            ):
                return False
        if channel_type in ("channel", "group"):
            if settings.use_access_groups and settings.group_policy == "disabled":
                return False
        return True

    async def read_channel_allow_from_store(self, channel: str) -> StoreReadResult:
        try:
            async with self.session_factory() as session:
                entries = await pairing.read_allow_from_entries(session, channel)
        except Exception as e:
            logger.warning(f"Could not read {channel} allow-from store: {e}")
            return StoreReadResult.failure(str(e))
        return StoreReadResult.success(entries)

    async def upsert_pairing_request(
        self, channel: str, id: str, meta: Optional[dict] = None
    ) -> PairingResult:
        async with self.session_factory() as session:
            return await pairing.upsert_pairing_request(session, channel, id, meta)

    def resolve_agent_route(
        self,
        channel: str,
        account_id: str,
        peer: RoutePeer,
        team_id: Optional[str] = None,
    ) -> AgentRoute:
        return resolve_agent_route(
            bindings=self.settings.bindings,
            default_agent_id=self.settings.default_agent_id,
            channel=channel,
            account_id=account_id,
            peer=peer,
            team_id=team_id,
        )

    async def dispatch(
        self,
        ctx: dict[str, Any],
        deliver: Deliver,
        on_error: OnError,
        skill_filter: Optional[list[str]] = None,
    ) -> DispatchResult:
        return await self.dispatcher.dispatch(
            ctx, deliver=deliver, on_error=on_error, skill_filter=skill_filter
        )
