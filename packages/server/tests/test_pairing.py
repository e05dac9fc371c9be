"""Tests for the pairing store: requests, approval and expiry."""
import pytest
from sqlalchemy import select

from app.models import ChannelPairingRequest
from app.slack import pairing
from app.slack.pairing import (
    PAIRING_CODE_ALPHABET,
    PAIRING_CODE_LENGTH,
    PAIRING_MAX_PENDING,
    PAIRING_TTL_MS,
    StoreReadResult,
    build_pairing_reply,
    generate_pairing_code,
)


def test_generate_pairing_code_uses_unambiguous_alphabet():
    code = generate_pairing_code()
    assert len(code) == PAIRING_CODE_LENGTH
    assert all(ch in PAIRING_CODE_ALPHABET for ch in code)
    assert not set("01IO") & set(code)


def test_build_pairing_reply_mentions_code_and_approval_route():
    text = build_pairing_reply("slack", "Your Slack user id: U1", "ABCD2345")
    assert "Your Slack user id: U1" in text
    assert "Pairing code: ABCD2345" in text
    assert "/v1/slack/access/pairing/ABCD2345/approve" in text


def test_store_read_result_distinguishes_failure_from_empty():
    empty = StoreReadResult.success([])
    failed = StoreReadResult.failure("db down")
    assert empty.ok and empty.entries == ()
    assert not failed.ok and failed.entries == () and failed.error == "db down"


@pytest.mark.asyncio
async def test_upsert_is_idempotent_per_sender(test_session):
    first = await pairing.upsert_pairing_request(test_session, "slack", "U1", {"name": "alice"})
    second = await pairing.upsert_pairing_request(test_session, "slack", "U1", {"name": "alice"})

    assert first.created is True
    assert second.created is False
    assert second.code == first.code

    rows = await pairing.list_pairing_requests(test_session, "slack")
    assert [r.sender_id for r in rows] == ["U1"]
    assert rows[0].sender_name == "alice"


@pytest.mark.asyncio
async def test_upsert_losing_insert_race_returns_existing_code(
    session_factory, test_session, monkeypatch
):
    async with session_factory() as other:
        winner = await pairing.upsert_pairing_request(other, "slack", "U1")
    assert winner.created is True

    real_find = pairing._find_pairing_request
    calls = []

    async def find_misses_once(session, channel, id):
        # The first lookup runs before the concurrent insert is visible
        calls.append(id)
        if len(calls) == 1:
            return None
        return await real_find(session, channel, id)

    monkeypatch.setattr(pairing, "_find_pairing_request", find_misses_once)

    loser = await pairing.upsert_pairing_request(test_session, "slack", "U1")

    assert loser.created is False
    assert loser.code == winner.code
    assert len(calls) == 2
    rows = await pairing.list_pairing_requests(test_session, "slack")
    assert [r.sender_id for r in rows] == ["U1"]


@pytest.mark.asyncio
async def test_upsert_stops_at_max_pending(test_session):
    for i in range(PAIRING_MAX_PENDING):
        result = await pairing.upsert_pairing_request(test_session, "slack", f"U{i}")
        assert result.created is True

    overflow = await pairing.upsert_pairing_request(test_session, "slack", "U99")
    assert overflow.created is False
    assert overflow.code == ""


@pytest.mark.asyncio
async def test_expired_requests_are_pruned(test_session):
    await pairing.upsert_pairing_request(test_session, "slack", "U1")

    row = (
        await test_session.execute(
            select(ChannelPairingRequest).where(ChannelPairingRequest.sender_id == "U1")
        )
    ).scalar_one()
    row.created_at -= PAIRING_TTL_MS + 1
    await test_session.commit()

    assert await pairing.list_pairing_requests(test_session, "slack") == []

    # A fresh request is created after expiry
    again = await pairing.upsert_pairing_request(test_session, "slack", "U1")
    assert again.created is True
    rows = await pairing.list_pairing_requests(test_session, "slack")
    assert [r.code for r in rows] == [again.code]


@pytest.mark.asyncio
async def test_approve_promotes_sender_and_retires_request(test_session):
    result = await pairing.upsert_pairing_request(test_session, "slack", "U1", {"name": "alice"})

    entry = await pairing.approve_pairing_code(test_session, "slack", result.code.lower())

    assert entry is not None
    assert entry.identifier == "U1"
    assert entry.label == "alice"
    assert await pairing.read_allow_from_entries(test_session, "slack") == ["U1"]
    assert await pairing.list_pairing_requests(test_session, "slack") == []
    # The code is spent
    assert await pairing.approve_pairing_code(test_session, "slack", result.code) is None


@pytest.mark.asyncio
async def test_reject_discards_request(test_session):
    result = await pairing.upsert_pairing_request(test_session, "slack", "U1")

    assert await pairing.reject_pairing_code(test_session, "slack", result.code) is True
    assert await pairing.reject_pairing_code(test_session, "slack", result.code) is False
    assert await pairing.read_allow_from_entries(test_session, "slack") == []


@pytest.mark.asyncio
async def test_add_allow_from_entry_is_idempotent(test_session):
    first = await pairing.add_allow_from_entry(test_session, "slack", "U1")
    second = await pairing.add_allow_from_entry(test_session, "slack", "U1", label="ignored")
    await test_session.commit()

    assert first.id == second.id
    assert await pairing.read_allow_from_entries(test_session, "slack") == ["U1"]


@pytest.mark.asyncio
async def test_channels_are_isolated(test_session):
    await pairing.add_allow_from_entry(test_session, "slack", "U1")
    await pairing.add_allow_from_entry(test_session, "telegram", "12345")
    await test_session.commit()

    assert await pairing.read_allow_from_entries(test_session, "slack") == ["U1"]
