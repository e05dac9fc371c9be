"""FastAPI dependencies for the slashgate API."""
import redis.asyncio as redis

from app.database import AsyncSessionLocal
from app.slack.client import SlackWebClient
from app.slack.config import slack_settings
from app.slack.context import SlackCommandContext
from app.slack.dispatch import RedisReplyDispatcher
from app.slack.pipeline import SlashCommandPipeline

# Global Redis client (initialized in main.py lifespan)
redis_client: redis.Redis | None = None

# Shared so channel/user lookups stay cached across commands
slack_web_client: SlackWebClient | None = None


def get_slack_web_client() -> SlackWebClient:
    global slack_web_client
    if slack_web_client is None:
        slack_web_client = SlackWebClient(bot_token=slack_settings.bot_token)
    return slack_web_client


def get_slash_pipeline() -> SlashCommandPipeline:
    """
    FastAPI dependency that builds the slash-command pipeline for one request.

    A missing Redis client is only an error at dispatch time, after the
    command has been acknowledged.
    """
    ctx = SlackCommandContext(
        settings=slack_settings,
        web_client=get_slack_web_client(),
        session_factory=AsyncSessionLocal,
        dispatcher=RedisReplyDispatcher(
            redis_client, timeout=slack_settings.dispatch_timeout_seconds
        ),
    )
    return SlashCommandPipeline(ctx)
