"""Slot router - FastAPI endpoints for a user's own slots"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ..swaps.resolver import resolve_event
from .schemas import EventCreate, EventResponse, EventStatusUpdate, MessageResponse
from .service import SlotService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["Events"])


def get_slot_service(db: Session = Depends(get_db)) -> SlotService:
    """Dependency injection for SlotService"""
    return SlotService(db)


@router.get("", response_model=list[EventResponse])
async def get_events(
    current_user: User = Depends(get_current_user),
    service: SlotService = Depends(get_slot_service),
):
    """Get the current user's slots, earliest first"""
    return [resolve_event(e) for e in service.get_events(current_user)]


@router.post("", response_model=EventResponse, status_code=201)
async def create_event(
    data: EventCreate,
    current_user: User = Depends(get_current_user),
    service: SlotService = Depends(get_slot_service),
):
    """Create a new slot (status BUSY)"""
    return resolve_event(service.create_event(data, current_user))


@router.patch("/{event_id}/status", response_model=EventResponse)
async def update_event_status(
    event_id: int,
    data: EventStatusUpdate,
    current_user: User = Depends(get_current_user),
    service: SlotService = Depends(get_slot_service),
):
    """Toggle a slot between BUSY and SWAPPABLE"""
    return resolve_event(service.update_status(event_id, data.status, current_user))


@router.delete("/{event_id}", response_model=MessageResponse)
async def delete_event(
    event_id: int,
    current_user: User = Depends(get_current_user),
    service: SlotService = Depends(get_slot_service),
):
    """Delete a slot"""
    return service.delete_event(event_id, current_user)
