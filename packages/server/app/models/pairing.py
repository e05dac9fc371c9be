"""Channel access models: stored allow-from entries and pairing requests.

ChannelAllowFromEntry holds senders approved at runtime (via pairing or the
admin API). It is unioned with the statically configured SLACK_ALLOW_FROM
list when a DM sender is checked.

ChannelPairingRequest is a pending request from an unknown DM sender. Once
approved, the sender is copied into channel_allow_from and the request row
is deleted.
"""

from typing import Optional

from sqlalchemy import BigInteger, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin


class ChannelAllowFromEntry(TimestampMixin, Base):
    """Stored allow-list entry for one messaging channel."""

    __tablename__ = "channel_allow_from"
    __table_args__ = (
        UniqueConstraint("channel", "identifier", name="uq_channel_allow_from"),
        Index("ix_channel_allow_from_channel", "channel"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # 'slack'
    channel: Mapped[str] = mapped_column(String(32), nullable=False)
    # Sender id (e.g. U024BE7LH), display name, or '*'
    identifier: Mapped[str] = mapped_column(String(128), nullable=False)
    # Friendly label for the dashboard UI
    label: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)


class ChannelPairingRequest(Base):
    """Pending pairing request from an unrecognised direct-message sender."""

    __tablename__ = "channel_pairing_requests"
    __table_args__ = (
        UniqueConstraint("channel", "sender_id", name="uq_channel_pairing_sender"),
        UniqueConstraint("channel", "code", name="uq_channel_pairing_code"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    channel: Mapped[str] = mapped_column(String(32), nullable=False)
    sender_id: Mapped[str] = mapped_column(String(128), nullable=False)
    # Display name at the time of the request (meta.name)
    sender_name: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    code: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # Bumped on every repeat request from the same sender
    last_seen_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
