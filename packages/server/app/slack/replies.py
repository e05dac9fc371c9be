"""Delivery of agent replies back to the invoking Slack user."""

from typing import Awaitable, Callable, Iterable

Respond = Callable[[dict], Awaitable[None]]

EMPTY_REPLY_TEXT = "No response was generated for that command."


def chunk_text(text: str, limit: int) -> list[str]:
    """Split ``text`` into chunks of at most ``limit`` characters.

    Prefers newline boundaries; lines longer than the limit are hard-split.
    """
    if len(text) <= limit:
        return [text]

    chunks: list[str] = []
    current = ""
    for line in text.split("\n"):
        while len(line) > limit:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(line[:limit])
            line = line[limit:]
        candidate = f"{current}\n{line}" if current else line
        if len(candidate) > limit:
            chunks.append(current)
            current = line
        else:
            current = candidate
    if current:
        chunks.append(current)
    return chunks


def _reply_text(payload: dict) -> str:
    text = (payload.get("text") or "").strip()
    media = payload.get("mediaUrls") or (
        [payload["mediaUrl"]] if payload.get("mediaUrl") else []
    )
    parts = [text] + [url.strip() for url in media if url and url.strip()]
    return "\n".join(part for part in parts if part)


def _response_type(ephemeral: bool) -> str:
    return "ephemeral" if ephemeral else "in_channel"


async def deliver_slash_replies(
    replies: Iterable[dict],
    respond: Respond,
    ephemeral: bool,
    text_limit: int,
) -> int:
    """Send each reply (chunked) through ``respond``. Returns messages sent."""
    sent = 0
    for payload in replies:
        combined = _reply_text(payload)
        if not combined:
            continue
        for chunk in chunk_text(combined, text_limit):
            await respond({"text": chunk, "response_type": _response_type(ephemeral)})
            sent += 1
    return sent


async def send_empty_reply(respond: Respond, ephemeral: bool) -> None:
    await respond(
        {"text": EMPTY_REPLY_TEXT, "response_type": _response_type(ephemeral)}
    )
