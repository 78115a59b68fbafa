"""Swap service - the negotiation engine and its read projections.

``initiate_swap`` and ``respond_to_swap`` each run inside the request's single
database transaction. Every precondition is checked before the first write,
and status changes are conditional updates whose row counts are checked, so a
concurrent request that got there first makes this one fail with a conflict
instead of double-committing a slot. Any failure rolls the whole transaction
back.
"""

import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import RECENT_NOTIFICATIONS_LIMIT
from ...models import Event, EventStatus, SwapRequest, SwapStatus, User, utcnow
from ...shared.errors import (
    ConflictError,
    ForbiddenError,
    InvalidOperationError,
    InvalidStateError,
    NotFoundError,
)
from ..slots.repository import SlotRepository
from .repository import SwapRequestRepository

logger = logging.getLogger(__name__)


class SwapService:
    """Service layer for swap negotiation"""

    def __init__(self, db: Session):
        self.db = db
        self.slot_repo = SlotRepository()
        self.repo = SwapRequestRepository()

    # ------------------------------------------------------------------
    # Negotiation
    # ------------------------------------------------------------------

    def initiate_swap(self, requester: User, my_slot_id: int, their_slot_id: int) -> SwapRequest:
        """Offer my SWAPPABLE slot in exchange for someone else's SWAPPABLE slot"""
        try:
            my_slot = self.slot_repo.get_event_by_id(self.db, my_slot_id, for_update=True)
            if (
                not my_slot
                or my_slot.user_id != requester.id
                or my_slot.status != EventStatus.SWAPPABLE
            ):
                raise InvalidStateError("Your slot is not available for swapping")

            their_slot = self.slot_repo.get_event_by_id(self.db, their_slot_id, for_update=True)
            if not their_slot or their_slot.status != EventStatus.SWAPPABLE:
                raise InvalidStateError("Target slot is not available for swapping")

            if their_slot.user_id == requester.id:
                raise InvalidOperationError("Cannot swap with your own slot")

            if self.repo.find_pending_touching(self.db, [my_slot.id, their_slot.id]):
                raise ConflictError("One of the slots already has a pending swap request")

            target_user_id = their_slot.user_id

            claimed = self.slot_repo.claim_for_swap(self.db, [my_slot.id, their_slot.id])
            if claimed != 2:
                raise ConflictError("One of the slots was claimed by another swap request")

            swap_request = self.repo.create_request(
                self.db,
                requester_user_id=requester.id,
                target_user_id=target_user_id,
                requester_slot_id=my_slot.id,
                target_slot_id=their_slot.id,
            )
            self.db.commit()

        except HTTPException as e:
            self.db.rollback()
            logger.warning(f"⚠️ Swap request by user {requester.id} refused: {e.detail}")
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception(f"❌ Swap request by user {requester.id} failed: {str(e)}")
            raise HTTPException(status_code=500, detail="Server error") from e

        logger.info(
            f"✅ Swap request {swap_request.id} created: user {requester.id} offers slot "
            f"{my_slot_id} for slot {their_slot_id} (owner {target_user_id})"
        )
        return self.repo.get_request_with_details(self.db, swap_request.id)

    def respond_to_swap(self, responder: User, request_id: int, accept: bool) -> SwapRequest:
        """Accept (exchange ownership) or reject (release both slots) a pending request"""
        try:
            swap_request = self.repo.get_request_by_id(self.db, request_id, for_update=True)
            if not swap_request:
                raise NotFoundError("Swap request not found")

            if swap_request.target_user_id != responder.id:
                raise ForbiddenError("Not authorized to respond to this request")

            if swap_request.status != SwapStatus.PENDING:
                raise InvalidStateError("Swap request is no longer pending")

            if accept:
                self._accept(swap_request)
            else:
                self._reject(swap_request)

            self.db.commit()

        except HTTPException as e:
            self.db.rollback()
            logger.warning(
                f"⚠️ Response by user {responder.id} to swap request {request_id} refused: {e.detail}"
            )
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception(
                f"❌ Response by user {responder.id} to swap request {request_id} failed: {str(e)}"
            )
            raise HTTPException(status_code=500, detail="Server error") from e

        outcome = "accepted" if accept else "rejected"
        logger.info(f"✅ Swap request {request_id} {outcome} by user {responder.id}")
        return self.repo.get_request_with_details(self.db, request_id)

    def _accept(self, swap_request: SwapRequest) -> None:
        requester_slot = target_slot = None
        if swap_request.requester_slot_id is not None:
            requester_slot = self.slot_repo.get_event_by_id(
                self.db, swap_request.requester_slot_id, for_update=True
            )
        if swap_request.target_slot_id is not None:
            target_slot = self.slot_repo.get_event_by_id(
                self.db, swap_request.target_slot_id, for_update=True
            )

        if not requester_slot or not target_slot:
            raise InvalidStateError("One or both slots no longer exist")

        self.repo.set_outcome(self.db, swap_request.id, SwapStatus.ACCEPTED, utcnow())

        moved = self.slot_repo.transfer_for_swap(
            self.db, requester_slot.id, swap_request.target_user_id
        ) + self.slot_repo.transfer_for_swap(
            self.db, target_slot.id, swap_request.requester_user_id
        )
        if moved != 2:
            raise ConflictError("Slot ownership changed while the swap was being accepted")

    def _reject(self, swap_request: SwapRequest) -> None:
        self.repo.set_outcome(self.db, swap_request.id, SwapStatus.REJECTED, utcnow())

        slot_ids = [
            slot_id
            for slot_id in (swap_request.requester_slot_id, swap_request.target_slot_id)
            if slot_id is not None
        ]
        self.slot_repo.release_for_swap(self.db, slot_ids)

    # ------------------------------------------------------------------
    # Read projections
    # ------------------------------------------------------------------

    def get_swappable_slots(self, user: User) -> list[Event]:
        return self.slot_repo.get_swappable_events(self.db, user.id)

    def get_incoming(self, user: User) -> list[SwapRequest]:
        return self.repo.list_by_target(self.db, user.id)

    def get_outgoing(self, user: User) -> list[SwapRequest]:
        return self.repo.list_by_requester(self.db, user.id)

    def get_notification_count(self, user: User) -> int:
        return self.repo.count_pending_for_target(self.db, user.id)

    def get_recent_activity(self, user: User, limit: int = RECENT_NOTIFICATIONS_LIMIT) -> list[SwapRequest]:
        return self.repo.list_recent_for_user(self.db, user.id, limit)
