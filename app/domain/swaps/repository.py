"""Swap request repository - Database operations for swap requests"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from ...models import SwapRequest, SwapStatus
from ...shared.errors import ConflictError

_DETAIL_OPTIONS = (
    joinedload(SwapRequest.requester),
    joinedload(SwapRequest.target),
    joinedload(SwapRequest.requester_slot),
    joinedload(SwapRequest.target_slot),
)


class SwapRequestRepository:
    """Repository for swap request database operations.

    None of these methods commit; the swap engine owns the transaction.
    """

    @staticmethod
    def create_request(
        db: Session,
        requester_user_id: int,
        target_user_id: int,
        requester_slot_id: int,
        target_slot_id: int,
    ) -> SwapRequest:
        swap_request = SwapRequest(
            requester_user_id=requester_user_id,
            target_user_id=target_user_id,
            requester_slot_id=requester_slot_id,
            target_slot_id=target_slot_id,
            status=SwapStatus.PENDING.value,
        )
        db.add(swap_request)
        db.flush()
        return swap_request

    @staticmethod
    def get_request_by_id(
        db: Session, request_id: int, for_update: bool = False
    ) -> Optional[SwapRequest]:
        query = db.query(SwapRequest).filter(SwapRequest.id == request_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def get_request_with_details(db: Session, request_id: int) -> Optional[SwapRequest]:
        return (
            db.query(SwapRequest)
            .options(*_DETAIL_OPTIONS)
            .filter(SwapRequest.id == request_id)
            .first()
        )

    @staticmethod
    def find_pending_touching(db: Session, slot_ids) -> Optional[SwapRequest]:
        """Any PENDING request that references one of the slots on either side"""
        slot_ids = list(slot_ids)
        if not slot_ids:
            return None
        return (
            db.query(SwapRequest)
            .filter(
                SwapRequest.status == SwapStatus.PENDING.value,
                or_(
                    SwapRequest.requester_slot_id.in_(slot_ids),
                    SwapRequest.target_slot_id.in_(slot_ids),
                ),
            )
            .first()
        )

    @staticmethod
    def set_outcome(
        db: Session, request_id: int, outcome: SwapStatus, responded_at: datetime
    ) -> None:
        """
        Move a request PENDING -> ACCEPTED/REJECTED.

        Raises:
            ConflictError: If the request is no longer PENDING when the update runs
        """
        if outcome == SwapStatus.PENDING:
            raise ValueError("Outcome must be ACCEPTED or REJECTED")

        updated = (
            db.query(SwapRequest)
            .filter(SwapRequest.id == request_id, SwapRequest.status == SwapStatus.PENDING.value)
            .update(
                {SwapRequest.status: outcome.value, SwapRequest.responded_at: responded_at},
                synchronize_session=False,
            )
        )
        if updated != 1:
            raise ConflictError("Swap request was already answered")

    @staticmethod
    def list_by_target(db: Session, user_id: int) -> list[SwapRequest]:
        """Incoming requests, newest first"""
        return (
            db.query(SwapRequest)
            .options(*_DETAIL_OPTIONS)
            .filter(SwapRequest.target_user_id == user_id)
            .order_by(SwapRequest.created_at.desc(), SwapRequest.id.desc())
            .all()
        )

    @staticmethod
    def list_by_requester(db: Session, user_id: int) -> list[SwapRequest]:
        """Outgoing requests, newest first"""
        return (
            db.query(SwapRequest)
            .options(*_DETAIL_OPTIONS)
            .filter(SwapRequest.requester_user_id == user_id)
            .order_by(SwapRequest.created_at.desc(), SwapRequest.id.desc())
            .all()
        )

    @staticmethod
    def count_pending_for_target(db: Session, user_id: int) -> int:
        return (
            db.query(func.count(SwapRequest.id))
            .filter(
                SwapRequest.target_user_id == user_id,
                SwapRequest.status == SwapStatus.PENDING.value,
            )
            .scalar()
        )

    @staticmethod
    def list_recent_for_user(db: Session, user_id: int, limit: int = 10) -> list[SwapRequest]:
        """Most recent requests the user is on either side of"""
        return (
            db.query(SwapRequest)
            .options(*_DETAIL_OPTIONS)
            .filter(
                or_(
                    SwapRequest.target_user_id == user_id,
                    SwapRequest.requester_user_id == user_id,
                )
            )
            .order_by(SwapRequest.created_at.desc(), SwapRequest.id.desc())
            .limit(limit)
            .all()
        )
