"""Slack access management API endpoints.

Manages the stored DM allow-list and pending pairing requests. Entries
added here (or by approving a pairing code) are combined with the static
SLACK_ALLOW_FROM list when a direct-message sender is checked.

Endpoints (all under /v1/slack/access):
  GET    /v1/slack/access/allowlist               - List allowlist entries
  POST   /v1/slack/access/allowlist               - Add entry
  DELETE /v1/slack/access/allowlist/{id}          - Delete entry
  GET    /v1/slack/access/pairing                 - List pending pairing requests
  POST   /v1/slack/access/pairing/{code}/approve  - Approve a pairing code
  DELETE /v1/slack/access/pairing/{code}          - Reject a pairing code
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.logging_config import get_logger
from app.models.pairing import ChannelAllowFromEntry, ChannelPairingRequest
from app.slack import pairing
from app.slack.allow_list import normalize_allow_list
from app.slack.config import slack_settings

logger = get_logger(__name__)

router = APIRouter()

CHANNEL = "slack"


# ─── Schemas ──────────────────────────────────────────────────────────────────


class AllowlistEntryResponse(BaseModel):
    id: int
    identifier: str
    label: Optional[str] = None
    createdAt: int
    updatedAt: int


class CreateAllowlistEntryRequest(BaseModel):
    identifier: str
    label: Optional[str] = None


class PairingRequestResponse(BaseModel):
    senderId: str
    senderName: Optional[str] = None
    code: str
    createdAt: int
    lastSeenAt: int


def _entry_to_response(entry: ChannelAllowFromEntry) -> AllowlistEntryResponse:
    return AllowlistEntryResponse(
        id=entry.id,
        identifier=entry.identifier,
        label=entry.label,
        createdAt=entry.created_at,
        updatedAt=entry.updated_at,
    )


def _request_to_response(row: ChannelPairingRequest) -> PairingRequestResponse:
    return PairingRequestResponse(
        senderId=row.sender_id,
        senderName=row.sender_name,
        code=row.code,
        createdAt=row.created_at,
        lastSeenAt=row.last_seen_at,
    )


# ─── Allowlist endpoints ──────────────────────────────────────────────────────


@router.get("/allowlist")
async def list_allowlist(
    session: AsyncSession = Depends(get_async_session),
) -> dict:
    """List stored Slack allowlist entries alongside the static ones."""
    result = await session.execute(
        select(ChannelAllowFromEntry)
        .where(ChannelAllowFromEntry.channel == CHANNEL)
        .order_by(ChannelAllowFromEntry.created_at.desc())
    )
    entries = [_entry_to_response(r) for r in result.scalars().all()]
    return {
        "entries": entries,
        "total": len(entries),
        "static": normalize_allow_list(slack_settings.allow_from),
    }


@router.post("/allowlist", response_model=AllowlistEntryResponse)
async def create_allowlist_entry(
    body: CreateAllowlistEntryRequest,
    session: AsyncSession = Depends(get_async_session),
) -> AllowlistEntryResponse:
    """Add a Slack user id or display name to the allowlist."""
    normalized = normalize_allow_list([body.identifier])
    if not normalized:
        raise HTTPException(status_code=400, detail="identifier must not be empty")

    entry = await pairing.add_allow_from_entry(
        session, CHANNEL, normalized[0], label=body.label
    )
    await session.commit()
    await session.refresh(entry)
    logger.info(f"Slack allowlist: added {entry.identifier}")
    return _entry_to_response(entry)


@router.delete("/allowlist/{entry_id}")
async def delete_allowlist_entry(
    entry_id: int,
    session: AsyncSession = Depends(get_async_session),
) -> dict:
    """Remove an allowlist entry."""
    entry = await session.get(ChannelAllowFromEntry, entry_id)
    if not entry or entry.channel != CHANNEL:
        raise HTTPException(status_code=404, detail="Allowlist entry not found")

    await session.delete(entry)
    await session.commit()
    logger.info(f"Slack allowlist: removed {entry.identifier}")
    return {"deleted": True}


# ─── Pairing endpoints ────────────────────────────────────────────────────────


@router.get("/pairing")
async def list_pairing_requests(
    session: AsyncSession = Depends(get_async_session),
) -> dict:
    """List pending (unexpired) pairing requests."""
    rows = await pairing.list_pairing_requests(session, CHANNEL)
    await session.commit()
    requests = [_request_to_response(r) for r in rows]
    return {"requests": requests, "total": len(requests)}


@router.post("/pairing/{code}/approve", response_model=AllowlistEntryResponse)
async def approve_pairing_request(
    code: str,
    session: AsyncSession = Depends(get_async_session),
) -> AllowlistEntryResponse:
    """Approve a pairing code, adding its sender to the allowlist."""
    entry = await pairing.approve_pairing_code(session, CHANNEL, code)
    if entry is None:
        raise HTTPException(status_code=404, detail="Pairing code not found or expired")
    return _entry_to_response(entry)


@router.delete("/pairing/{code}")
async def reject_pairing_request(
    code: str,
    session: AsyncSession = Depends(get_async_session),
) -> dict:
    """Reject a pending pairing code."""
    if not await pairing.reject_pairing_code(session, CHANNEL, code):
        raise HTTPException(status_code=404, detail="Pairing code not found or expired")
    return {"rejected": True}
