"""Pairing flow for unrecognised direct-message senders.

An unknown sender DMing the bot under the 'pairing' DM policy gets a short
code. An administrator approves the code, which copies the sender into the
channel_allow_from store and retires the request.

Requests are unique per (channel, sender): repeating the command before
approval returns the same code with created=False, so the pipeline does not
resend instructions on every retry.
"""

import secrets
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import now_ms
from app.models.pairing import ChannelAllowFromEntry, ChannelPairingRequest
from app.logging_config import get_logger

logger = get_logger(__name__)

# No 0/O or 1/I; codes get read aloud and retyped
PAIRING_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
PAIRING_CODE_LENGTH = 8
PAIRING_TTL_MS = 60 * 60 * 1000
PAIRING_MAX_PENDING = 3


@dataclass(frozen=True)
class PairingResult:
    code: str
    created: bool


@dataclass(frozen=True)
class StoreReadResult:
    """Outcome of reading stored allow-from entries.

    A failed read and an empty store both yield no entries; ``ok`` keeps
    them apart so persistent failures can be reported.
    """

    ok: bool
    entries: tuple[str, ...] = ()
    error: Optional[str] = None

    @classmethod
    def success(cls, entries) -> "StoreReadResult":
        return cls(ok=True, entries=tuple(entries))

    @classmethod
    def failure(cls, error: str) -> "StoreReadResult":
        return cls(ok=False, entries=(), error=error)


def generate_pairing_code(taken: Optional[set[str]] = None) -> str:
    """Random code from the unambiguous alphabet, avoiding codes in ``taken``."""
    taken = taken or set()
    while True:
        code = "".join(
            secrets.choice(PAIRING_CODE_ALPHABET) for _ in range(PAIRING_CODE_LENGTH)
        )
        if code not in taken:
            return code


def build_pairing_reply(channel: str, id_line: str, code: str) -> str:
    """User-facing instructions sent with a freshly created pairing code."""
    return (
        "Access to this bot has not been set up for you yet.\n\n"
        f"{id_line}\n\n"
        f"Pairing code: {code}\n\n"
        "Ask the bot owner to approve it with:\n"
        f"POST /v1/{channel}/access/pairing/{code}/approve"
    )


async def _prune_expired(session: AsyncSession, channel: str, now: int) -> None:
    await session.execute(
        delete(ChannelPairingRequest).where(
            ChannelPairingRequest.channel == channel,
            ChannelPairingRequest.created_at < now - PAIRING_TTL_MS,
        )
    )


async def list_pairing_requests(
    session: AsyncSession, channel: str
) -> list[ChannelPairingRequest]:
    """Pending (unexpired) requests, oldest first."""
    await _prune_expired(session, channel, now_ms())
    result = await session.execute(
        select(ChannelPairingRequest)
        .where(ChannelPairingRequest.channel == channel)
        .order_by(ChannelPairingRequest.created_at)
    )
    return list(result.scalars().all())


async def _find_pairing_request(
    session: AsyncSession, channel: str, id: str
) -> Optional[ChannelPairingRequest]:
    result = await session.execute(
        select(ChannelPairingRequest).where(
            ChannelPairingRequest.channel == channel,
            ChannelPairingRequest.sender_id == id,
        )
    )
    return result.scalar_one_or_none()


async def upsert_pairing_request(
    session: AsyncSession,
    channel: str,
    id: str,
    meta: Optional[dict] = None,
) -> PairingResult:
    """Create a pairing request for ``id`` or return the pending one."""
    now = now_ms()
    name = (meta or {}).get("name")
    await _prune_expired(session, channel, now)

    existing = await _find_pairing_request(session, channel, id)
    if existing:
        existing.last_seen_at = now
        if name:
            existing.sender_name = name
        await session.commit()
        return PairingResult(code=existing.code, created=False)

    result = await session.execute(
        select(ChannelPairingRequest.code).where(ChannelPairingRequest.channel == channel)
    )
    taken = set(result.scalars().all())
    if len(taken) >= PAIRING_MAX_PENDING:
        logger.info(
            f"{channel} pairing: {len(taken)} requests already pending, "
            f"not creating one for {id}"
        )
        await session.commit()
        return PairingResult(code="", created=False)

    code = generate_pairing_code(taken)
    session.add(
        ChannelPairingRequest(
            channel=channel,
            sender_id=id,
            sender_name=name,
            code=code,
            created_at=now,
            last_seen_at=now,
        )
    )
    try:
        await session.commit()
    except IntegrityError:
        # A concurrent command from the same sender inserted first
        await session.rollback()
        existing = await _find_pairing_request(session, channel, id)
        if existing is None:
            raise
        return PairingResult(code=existing.code, created=False)
    logger.info(f"{channel} pairing: created request for {id}")
    return PairingResult(code=code, created=True)


async def read_allow_from_entries(session: AsyncSession, channel: str) -> list[str]:
    result = await session.execute(
        select(ChannelAllowFromEntry.identifier)
        .where(ChannelAllowFromEntry.channel == channel)
        .order_by(ChannelAllowFromEntry.id)
    )
    return list(result.scalars().all())


async def add_allow_from_entry(
    session: AsyncSession,
    channel: str,
    identifier: str,
    label: Optional[str] = None,
) -> ChannelAllowFromEntry:
    """Append ``identifier`` to the store; an existing entry is returned unchanged."""
    result = await session.execute(
        select(ChannelAllowFromEntry).where(
            ChannelAllowFromEntry.channel == channel,
            ChannelAllowFromEntry.identifier == identifier,
        )
    )
    existing = result.scalar_one_or_none()
    if existing:
        return existing

    now = now_ms()
    entry = ChannelAllowFromEntry(
        channel=channel,
        identifier=identifier,
        label=label,
        created_at=now,
        updated_at=now,
    )
    session.add(entry)
    await session.flush()
    return entry


async def _get_request_by_code(
    session: AsyncSession, channel: str, code: str
) -> Optional[ChannelPairingRequest]:
    await _prune_expired(session, channel, now_ms())
    result = await session.execute(
        select(ChannelPairingRequest).where(
            ChannelPairingRequest.channel == channel,
            ChannelPairingRequest.code == code.strip().upper(),
        )
    )
    return result.scalar_one_or_none()


async def approve_pairing_code(
    session: AsyncSession, channel: str, code: str
) -> Optional[ChannelAllowFromEntry]:
    """Promote the sender behind ``code`` into the allow-from store.

    Returns the stored entry, or None when no pending request has that code.
    """
    request = await _get_request_by_code(session, channel, code)
    if request is None:
        return None

    entry = await add_allow_from_entry(
        session, channel, request.sender_id, label=request.sender_name
    )
    await session.delete(request)
    await session.commit()
    logger.info(f"{channel} pairing: approved {request.sender_id}")
    return entry


async def reject_pairing_code(session: AsyncSession, channel: str, code: str) -> bool:
    request = await _get_request_by_code(session, channel, code)
    if request is None:
        return False
    await session.delete(request)
    await session.commit()
    logger.info(f"{channel} pairing: rejected {request.sender_id}")
    return True
