"""Reply dispatch to the agent engine via Redis pub/sub.

The request is published to 'slack:dispatch:request'. The engine streams
replies back on 'slack:dispatch:reply:{id}', one JSON message each:

    {"kind": "tool" | "block" | "final", "payload": {"text": "..."}}
    {"done": true}                  # end of stream
    {"error": "..."}                # engine-side failure
"""

import asyncio
import json
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

import redis.asyncio as redis

from app.logging_config import get_logger

logger = get_logger(__name__)

DISPATCH_REQUEST_CHANNEL = "slack:dispatch:request"
REPLY_KINDS = ("tool", "block", "final")

Deliver = Callable[[dict], Awaitable[None]]
OnError = Callable[[Exception, dict], None]


class DispatchError(Exception):
    """The engine failed or never answered."""


@dataclass
class DispatchCounts:
    final: int = 0
    tool: int = 0
    block: int = 0

    @property
    def total(self) -> int:
        return self.final + self.tool + self.block


@dataclass
class DispatchResult:
    counts: DispatchCounts = field(default_factory=DispatchCounts)


class RedisReplyDispatcher:
    """Publish a routed context to the engine and stream its replies back."""

    def __init__(self, client: Optional[redis.Redis], timeout: float = 120.0):
        self._client = client
        self._timeout = timeout

    async def dispatch(
        self,
        ctx: dict[str, Any],
        deliver: Deliver,
        on_error: OnError,
        skill_filter: Optional[list[str]] = None,
    ) -> DispatchResult:
        if self._client is None:
            raise DispatchError("Redis not connected")

        req_id = str(uuid.uuid4())
        reply_channel = f"slack:dispatch:reply:{req_id}"
        result = DispatchResult()

        pubsub = self._client.pubsub()
        try:
            # Subscribe to the reply channel BEFORE publishing the request
            await pubsub.subscribe(reply_channel)

            request = json.dumps(
                {
                    "id": req_id,
                    "ctx": ctx,
                    "replyOptions": {"skillFilter": skill_filter},
                }
            )
            await self._client.publish(DISPATCH_REQUEST_CHANNEL, request)

            loop = asyncio.get_running_loop()
            start = loop.time()
            while (loop.time() - start) < self._timeout:
                msg = await pubsub.get_message(
                    ignore_subscribe_messages=True, timeout=1.0
                )
                if not msg or msg["type"] != "message":
                    continue

                data = json.loads(msg["data"])
                if data.get("error"):
                    raise DispatchError(data["error"])
                if data.get("done"):
                    return result

                kind = data.get("kind", "final")
                if kind not in REPLY_KINDS:
                    logger.warning(f"Ignoring reply of unknown kind {kind!r}")
                    continue
                setattr(result.counts, kind, getattr(result.counts, kind) + 1)
                try:
                    await deliver(data.get("payload") or {})
                except Exception as e:
                    on_error(e, {"kind": kind})

            if result.counts.total == 0:
                raise DispatchError(
                    "Agent engine did not respond in time. Is the engine running?"
                )
            logger.warning(
                f"Dispatch {req_id} timed out after {result.counts.total} replies"
            )
            return result
        finally:
            await pubsub.unsubscribe(reply_channel)
            await pubsub.aclose()
