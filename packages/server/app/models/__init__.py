"""SQLAlchemy ORM models for the slashgate server."""

from app.models.base import Base, TimestampMixin, now_ms
from app.models.pairing import ChannelAllowFromEntry, ChannelPairingRequest

__all__ = [
    # SQLAlchemy base
    "Base",
    "TimestampMixin",
    "now_ms",
    # Channel access
    "ChannelAllowFromEntry",
    "ChannelPairingRequest",
]
