"""Slot service - Business logic for owner-driven slot operations"""

import logging

from sqlalchemy.orm import Session

from ...models import Event, EventStatus, User
from ...shared.errors import ConflictError, InvalidStateError, NotFoundError
from ...shared.validators import parse_slot_status, validate_slot_title, validate_time_range
from ..swaps.repository import SwapRequestRepository
from .repository import SlotRepository
from .schemas import EventCreate

logger = logging.getLogger(__name__)


class SlotService:
    """Service layer for slot business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = SlotRepository()
        self.swap_repo = SwapRequestRepository()

    def get_events(self, user: User) -> list[Event]:
        """Get all slots for a user, ordered by start time"""
        return self.repo.get_events(self.db, user.id)

    def get_event(self, event_id: int, user: User, for_update: bool = False) -> Event:
        """Get a slot the user owns"""
        event = self.repo.get_owned_event(self.db, event_id, user.id, for_update=for_update)
        if not event:
            raise NotFoundError("Event not found")
        return event

    def get_swappable_events(self, user: User) -> list[Event]:
        """Other users' SWAPPABLE slots"""
        return self.repo.get_swappable_events(self.db, user.id)

    def create_event(self, data: EventCreate, user: User) -> Event:
        """Create a new BUSY slot"""
        title = validate_slot_title(data.title)
        start_time, end_time = validate_time_range(data.startTime, data.endTime)

        event = self.repo.create_event(
            self.db, user.id, title=title, start_time=start_time, end_time=end_time
        )
        logger.info(f"📅 User {user.id} created slot {event.id} ({start_time} - {end_time})")
        return event

    def update_status(self, event_id: int, status, user: User) -> Event:
        """Owner toggle between BUSY and SWAPPABLE"""
        event = self.get_event(event_id, user, for_update=True)
        new_status = parse_slot_status(status)

        if event.status == EventStatus.SWAP_PENDING:
            raise InvalidStateError("Event has a pending swap request")

        # A swap may claim the slot after the read above; the write is conditional
        if not self.repo.update_event_status(self.db, event, new_status.to_event_status()):
            logger.warning(f"⚠️ Slot {event_id} was claimed by a swap before user {user.id} could update it")
            raise InvalidStateError("Event has a pending swap request")

        logger.info(f"🔁 User {user.id} set slot {event.id} to {event.status}")
        return event

    def delete_event(self, event_id: int, user: User) -> dict:
        """Delete a slot that no pending swap request references"""
        event = self.get_event(event_id, user, for_update=True)

        if self.swap_repo.find_pending_touching(self.db, [event.id]):
            raise ConflictError("Event has a pending swap request and cannot be deleted")

        if not self.repo.delete_event(self.db, event):
            logger.warning(f"⚠️ Slot {event_id} was claimed by a swap before user {user.id} could delete it")
            raise ConflictError("Event has a pending swap request and cannot be deleted")

        logger.info(f"🗑️ User {user.id} deleted slot {event_id}")
        return {"message": "Event deleted successfully"}
