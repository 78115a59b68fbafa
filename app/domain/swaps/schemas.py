"""Swap domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel

from ..slots.schemas import EventResponse, UserSummary


class SwapRequestCreate(BaseModel):
    """Schema for initiating a swap"""

    mySlotId: int
    theirSlotId: int


class SwapResponseRequest(BaseModel):
    """Schema for answering a swap request"""

    accept: bool


class SwapRequestResponse(BaseModel):
    """Swap request with users and slots resolved for display"""

    id: int
    status: str
    requesterUserId: int
    targetUserId: int
    requesterSlotId: Optional[int] = None
    targetSlotId: Optional[int] = None
    requester: UserSummary
    target: UserSummary
    requesterSlot: Optional[EventResponse] = None
    targetSlot: Optional[EventResponse] = None
    createdAt: datetime
    respondedAt: Optional[datetime] = None


class NotificationCount(BaseModel):
    count: int


class NotificationItem(BaseModel):
    id: int
    type: Literal["incoming", "outgoing"]
    status: str
    message: str
    createdAt: datetime
    isRead: bool
