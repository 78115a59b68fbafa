"""Slot domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class EventCreate(BaseModel):
    """Schema for creating a new slot. Title and time-range rules are enforced by the service."""

    title: str
    startTime: datetime
    endTime: datetime


class EventStatusUpdate(BaseModel):
    """Schema for an owner status toggle.

    Kept as a plain string so a reserved or unknown value reaches the service
    and is reported as a validation error rather than a schema error.
    """

    status: str


class UserSummary(BaseModel):
    id: int
    name: Optional[str] = None
    email: str


class EventResponse(BaseModel):
    """Schema for slot response"""

    id: int
    title: str
    startTime: datetime
    endTime: datetime
    status: str
    userId: int
    createdAt: Optional[datetime] = None
    owner: Optional[UserSummary] = None


class MessageResponse(BaseModel):
    message: str
