"""Slash-command authorization and routing pipeline.

Each command runs through an ordered series of checks; the first one that
fails answers the user with an ephemeral message and stops:

  1. empty prompt            -> "Message required." (as the ack itself)
  2. self message            -> dropped silently
  3. channel allowed         -> "This channel is not allowed."
  4. DM policy / pairing     -> "Slack DMs are disabled." / pairing code /
                                "You are not authorized to use this command."
  5. room access groups      -> "This channel is not allowed." (only when
                                access groups are enforced)
  6. room user allow-list    -> "You are not authorized to use this command here."

A command that passes is turned into a routed context and handed to the
dispatcher. Unexpected errors are caught once, here, and answered with a
generic failure message.
"""

from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.logging_config import get_logger
from app.models.base import now_ms
from app.slack.allow_list import (
    allow_list_matches,
    normalize_allow_list,
    resolve_user_allowed,
)
from app.slack.channel_config import ResolvedChannelConfig, resolve_channel_config
from app.slack.client import ChannelInfo
from app.slack.commands import SlashCommand
from app.slack.context import SlackCommandContext
from app.slack.pairing import build_pairing_reply
from app.slack.policy import is_room_allowed_by_policy
from app.slack.replies import deliver_slash_replies, send_empty_reply
from app.slack.routing import RoutePeer

logger = get_logger(__name__)

CHANNEL = "slack"

MESSAGE_REQUIRED_TEXT = "Message required."
CHANNEL_NOT_ALLOWED_TEXT = "This channel is not allowed."
DMS_DISABLED_TEXT = "Slack DMs are disabled."
NOT_AUTHORIZED_TEXT = "You are not authorized to use this command."
NOT_AUTHORIZED_HERE_TEXT = "You are not authorized to use this command here."
FAILURE_TEXT = "Sorry, something went wrong handling that command."

Ack = Callable[..., Awaitable[None]]
Respond = Callable[[dict], Awaitable[None]]


def _ephemeral(text: str) -> dict:
    return {"text": text, "response_type": "ephemeral"}


class SlashContextPayload(BaseModel):
    """Routed context handed to the dispatcher (serialized camelCase)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    body: str
    from_address: str = Field(alias="from")
    to: str
    chat_type: str
    group_subject: Optional[str] = None
    group_system_prompt: Optional[str] = None
    sender_name: str
    sender_id: str
    provider: str = CHANNEL
    surface: str = CHANNEL
    was_mentioned: bool = True
    message_sid: Optional[str] = None
    timestamp: int
    session_key: str
    command_target_session_key: str
    account_id: str
    command_source: str = "native"
    command_authorized: bool
    originating_channel: str = CHANNEL
    originating_to: str


def build_channel_description(topic: Optional[str], purpose: Optional[str]) -> str:
    """Topic and purpose, trimmed, deduplicated, one per line."""
    parts: list[str] = []
    for entry in (topic, purpose):
        value = (entry or "").strip()
        if value and value not in parts:
            parts.append(value)
    return "\n".join(parts)


def build_group_system_prompt(
    channel_description: str, system_prompt: Optional[str]
) -> Optional[str]:
    parts = []
    if channel_description:
        parts.append(f"Channel description: {channel_description}")
    if system_prompt and system_prompt.strip():
        parts.append(system_prompt.strip())
    return "\n\n".join(parts) if parts else None


class SlashCommandPipeline:
    def __init__(self, ctx: SlackCommandContext):
        self.ctx = ctx
        self.settings = ctx.settings

    async def handle(
        self,
        command: SlashCommand,
        ack: Ack,
        respond: Respond,
        prompt: str,
    ) -> None:
        """Authorize, route and dispatch one slash command. Never raises."""
        acked = False

        async def ack_once(payload: Optional[dict] = None) -> None:
            nonlocal acked
            if acked:
                return
            acked = True
            if payload is None:
                await ack()
            else:
                await ack(payload)

        try:
            await self._handle(command, ack_once, respond, prompt)
        except Exception as e:
            logger.error(f"slack slash handler failed: {e}", exc_info=True)
            try:
                if not acked:
                    await ack_once(_ephemeral(FAILURE_TEXT))
                else:
                    await respond(_ephemeral(FAILURE_TEXT))
            except Exception as reply_error:
                logger.error(f"slack slash failure reply failed: {reply_error}")

    async def _handle(
        self,
        command: SlashCommand,
        ack: Ack,
        respond: Respond,
        prompt: str,
    ) -> None:
        ctx = self.ctx
        settings = self.settings

        if not prompt.strip():
            await ack(_ephemeral(MESSAGE_REQUIRED_TEXT))
            return
        await ack()

        if settings.bot_user_id and command.user_id == settings.bot_user_id:
            return

        channel_info = await ctx.resolve_channel_name(command.channel_id)
        channel_type = _resolve_channel_type(command, channel_info)
        channel_name = channel_info.name if channel_info else None
        is_direct_message = channel_type == "im"
        is_group_dm = channel_type == "mpim"
        is_room = channel_type in ("channel", "group")

        if not ctx.is_channel_allowed(command.channel_id, channel_name, channel_type):
            await respond(_ephemeral(CHANNEL_NOT_ALLOWED_TEXT))
            return

        sender = await ctx.resolve_user_name(command.user_id)
        resolved_name = sender.name if sender else None

        command_authorized = True
        channel_config: Optional[ResolvedChannelConfig] = None

        if is_direct_message:
            if not settings.dm_enabled or settings.dm_policy == "disabled":
                await respond(_ephemeral(DMS_DISABLED_TEXT))
                return
            if settings.dm_policy != "open":
                if not await self._dm_sender_permitted(command.user_id, resolved_name):
                    await self._reject_dm_sender(command, resolved_name, respond)
                    return

        if is_room:
            channel_config = resolve_channel_config(
                channel_id=command.channel_id,
                channel_name=channel_name,
                channels=settings.channels,
                default_require_mention=settings.default_require_mention,
            )
            if settings.use_access_groups:
                policy_allowed = is_room_allowed_by_policy(
                    group_policy=settings.group_policy,
                    channel_allowlist_configured=bool(settings.channels),
                    channel_allowed=channel_config.allowed,
                )
                # An explicit allowed=false wins over any group policy
                if not (policy_allowed and channel_config.allowed):
                    logger.debug(f"slack slash: channel {command.channel_id} not allowed")
                    await respond(_ephemeral(CHANNEL_NOT_ALLOWED_TEXT))
                    return

        sender_name = resolved_name or command.user_name or command.user_id
        if is_room and not resolve_user_allowed(
            channel_config.users if channel_config else None,
            user_id=command.user_id,
            user_name=sender_name,
        ):
            await respond(_ephemeral(NOT_AUTHORIZED_HERE_TEXT))
            return

        peer = RoutePeer(
            kind="dm" if is_direct_message else "channel" if is_room else "group",
            id=command.user_id if is_direct_message else command.channel_id,
        )
        route = ctx.resolve_agent_route(
            channel=CHANNEL,
            account_id=settings.account_id,
            peer=peer,
            team_id=settings.team_id or command.team_id or None,
        )

        is_roomish = is_room or is_group_dm
        room_label = f"#{channel_name}" if channel_name else f"#{command.channel_id}"
        channel_description = build_channel_description(
            channel_info.topic if channel_info else None,
            channel_info.purpose if channel_info else None,
        )
        group_system_prompt = build_group_system_prompt(
            channel_description,
            channel_config.system_prompt if channel_config else None,
        )

        if is_direct_message:
            from_address = f"{CHANNEL}:{command.user_id}"
        elif is_room:
            from_address = f"{CHANNEL}:channel:{command.channel_id}"
        else:
            from_address = f"{CHANNEL}:group:{command.channel_id}"

        payload = SlashContextPayload(
            body=prompt,
            from_address=from_address,
            to=f"slash:{command.user_id}",
            chat_type="direct" if is_direct_message else "room" if is_room else "group",
            group_subject=room_label if is_roomish else None,
            group_system_prompt=group_system_prompt if is_roomish else None,
            sender_name=sender_name,
            sender_id=command.user_id,
            message_sid=command.trigger_id,
            timestamp=now_ms(),
            session_key=(
                f"agent:{route.agent_id}:{settings.slash_command.session_prefix}"
                f":{command.user_id}"
            ),
            command_target_session_key=route.session_key,
            account_id=route.account_id,
            command_authorized=command_authorized,
            originating_to=f"user:{command.user_id}",
        )

        await self._dispatch(
            payload,
            respond,
            skill_filter=(
                sorted(channel_config.skills)
                if channel_config and channel_config.skills is not None
                else None
            ),
        )

    async def _dm_sender_permitted(self, user_id: str, sender_name: Optional[str]) -> bool:
        stored = await self.ctx.read_channel_allow_from_store(CHANNEL)
        effective = normalize_allow_list([*self.settings.allow_from, *stored.entries])
        return allow_list_matches(effective, id=user_id, name=sender_name)

    async def _reject_dm_sender(
        self,
        command: SlashCommand,
        sender_name: Optional[str],
        respond: Respond,
    ) -> None:
        if self.settings.dm_policy != "pairing":
            await respond(_ephemeral(NOT_AUTHORIZED_TEXT))
            return

        result = await self.ctx.upsert_pairing_request(
            CHANNEL, command.user_id, {"name": sender_name}
        )
        if result.created:
            await respond(
                _ephemeral(
                    build_pairing_reply(
                        channel=CHANNEL,
                        id_line=f"Your Slack user id: {command.user_id}",
                        code=result.code,
                    )
                )
            )

    async def _dispatch(
        self,
        payload: SlashContextPayload,
        respond: Respond,
        skill_filter: Optional[list[str]],
    ) -> None:
        slash = self.settings.slash_command
        text_limit = self.settings.text_limit

        async def deliver(reply: dict) -> None:
            await deliver_slash_replies(
                [reply], respond, ephemeral=slash.ephemeral, text_limit=text_limit
            )

        def on_error(err: Exception, info: dict[str, Any]) -> None:
            logger.error(f"slack slash {info.get('kind')} reply failed: {err}")

        result = await self.ctx.dispatch(
            payload.model_dump(by_alias=True),
            deliver=deliver,
            on_error=on_error,
            skill_filter=skill_filter,
        )
        if result.counts.total == 0:
            await send_empty_reply(respond, ephemeral=slash.ephemeral)


def _resolve_channel_type(
    command: SlashCommand, channel_info: Optional[ChannelInfo]
) -> Optional[str]:
    if channel_info and channel_info.type:
        return channel_info.type
    if command.channel_name == "directmessage":
        return "im"
    return None
