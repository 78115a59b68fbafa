"""Slot repository - Database operations for events"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Event, EventStatus


class SlotRepository:
    """Repository for slot database operations.

    The owner-facing writes commit. The ``*_for_swap`` writes only stage
    changes inside the caller's open transaction; the swap engine commits.
    """

    @staticmethod
    def get_events(db: Session, user_id: int) -> list[Event]:
        """Get all slots owned by a user, earliest first"""
        return (
            db.query(Event)
            .filter(Event.user_id == user_id)
            .order_by(Event.start_time.asc(), Event.id.asc())
            .all()
        )

    @staticmethod
    def get_event_by_id(db: Session, event_id: int, for_update: bool = False) -> Optional[Event]:
        query = db.query(Event).filter(Event.id == event_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def get_owned_event(
        db: Session, event_id: int, user_id: int, for_update: bool = False
    ) -> Optional[Event]:
        """Get a slot only if the user owns it"""
        query = db.query(Event).filter(Event.id == event_id, Event.user_id == user_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def get_swappable_events(db: Session, exclude_user_id: int) -> list[Event]:
        """SWAPPABLE slots owned by anyone but the given user, earliest first"""
        return (
            db.query(Event)
            .options(joinedload(Event.owner))
            .filter(
                Event.status == EventStatus.SWAPPABLE.value,
                Event.user_id != exclude_user_id,
            )
            .order_by(Event.start_time.asc(), Event.id.asc())
            .all()
        )

    @staticmethod
    def create_event(db: Session, user_id: int, **event_data) -> Event:
        event = Event(user_id=user_id, status=EventStatus.BUSY.value, **event_data)
        db.add(event)
        db.commit()
        db.refresh(event)
        return event

    @staticmethod
    def update_event_status(db: Session, event: Event, status: EventStatus) -> int:
        """
        Owner status write, skipped if the slot has since been claimed by a swap.

        Returns the number of rows updated (0 or 1).
        """
        updated = (
            db.query(Event)
            .filter(
                Event.id == event.id,
                Event.user_id == event.user_id,
                Event.status != EventStatus.SWAP_PENDING.value,
            )
            .update({Event.status: status.value}, synchronize_session=False)
        )
        db.commit()
        if updated:
            db.refresh(event)
        return updated

    @staticmethod
    def delete_event(db: Session, event: Event) -> int:
        """Delete an owned slot unless it is SWAP_PENDING. Returns rows deleted."""
        deleted = (
            db.query(Event)
            .filter(
                Event.id == event.id,
                Event.user_id == event.user_id,
                Event.status != EventStatus.SWAP_PENDING.value,
            )
            .delete(synchronize_session=False)
        )
        if deleted:
            db.expunge(event)
        db.commit()
        return deleted

    # Swap engine writes (no commit)
    @staticmethod
    def claim_for_swap(db: Session, event_ids: list[int]) -> int:
        """
        Move the given slots SWAPPABLE -> SWAP_PENDING.

        Only rows still SWAPPABLE are touched, so a caller that sees fewer
        updated rows than ids lost a race with another swap request.
        Returns the number of rows updated.
        """
        return (
            db.query(Event)
            .filter(Event.id.in_(event_ids), Event.status == EventStatus.SWAPPABLE.value)
            .update({Event.status: EventStatus.SWAP_PENDING.value}, synchronize_session=False)
        )

    @staticmethod
    def transfer_for_swap(db: Session, event_id: int, new_owner_id: int) -> int:
        """Hand a pending slot to its new owner and mark it BUSY. Returns rows updated."""
        return (
            db.query(Event)
            .filter(Event.id == event_id, Event.status == EventStatus.SWAP_PENDING.value)
            .update(
                {Event.user_id: new_owner_id, Event.status: EventStatus.BUSY.value},
                synchronize_session=False,
            )
        )

    @staticmethod
    def release_for_swap(db: Session, event_ids: list[int]) -> int:
        """Return pending slots to SWAPPABLE with owners unchanged. Returns rows updated."""
        return (
            db.query(Event)
            .filter(Event.id.in_(event_ids), Event.status == EventStatus.SWAP_PENDING.value)
            .update({Event.status: EventStatus.SWAPPABLE.value}, synchronize_session=False)
        )
