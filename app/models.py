import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import relationship

from .config import MAX_TITLE_LENGTH
from .database import Base

def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class EventStatus(str, enum.Enum):
    """Every status a slot can be in"""

    BUSY = "BUSY"
    SWAPPABLE = "SWAPPABLE"
    SWAP_PENDING = "SWAP_PENDING"


class SlotStatus(str, enum.Enum):
    """Statuses an owner may set directly. SWAP_PENDING is reserved for the swap engine."""

    BUSY = "BUSY"
    SWAPPABLE = "SWAPPABLE"

    def to_event_status(self) -> EventStatus:
        return EventStatus(self.value)


class SwapStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    events = relationship("Event", back_populates="owner")


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(MAX_TITLE_LENGTH), nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    status = Column(String(20), default=EventStatus.BUSY.value, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    owner = relationship("User", back_populates="events")

    __table_args__ = (Index("ix_events_status_start_time", "status", "start_time"),)


class SwapRequest(Base):
    __tablename__ = "swap_requests"

    id = Column(Integer, primary_key=True, index=True)
    requester_user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    target_user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Nullable so terminal requests survive deletion of a slot they once referenced
    requester_slot_id = Column(
        Integer, ForeignKey("events.id", ondelete="SET NULL"), nullable=True, index=True
    )
    target_slot_id = Column(
        Integer, ForeignKey("events.id", ondelete="SET NULL"), nullable=True, index=True
    )
    status = Column(String(20), default=SwapStatus.PENDING.value, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    responded_at = Column(DateTime, nullable=True)

    requester = relationship("User", foreign_keys=[requester_user_id])
    target = relationship("User", foreign_keys=[target_user_id])
    requester_slot = relationship("Event", foreign_keys=[requester_slot_id])
    target_slot = relationship("Event", foreign_keys=[target_slot_id])
