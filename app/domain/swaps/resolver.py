"""Read-side resolver: expands user and slot references into display-ready summaries.

Used only after the write path has committed, and by the read projections.
"""

from typing import Optional

from ...models import Event, SwapRequest, SwapStatus, User
from ..slots.schemas import EventResponse, UserSummary
from .schemas import NotificationItem, SwapRequestResponse


def resolve_user(user: User) -> UserSummary:
    return UserSummary(id=user.id, name=user.full_name, email=user.email)


def resolve_event(event: Optional[Event], include_owner: bool = False) -> Optional[EventResponse]:
    if event is None:
        return None
    return EventResponse(
        id=event.id,
        title=event.title,
        startTime=event.start_time,
        endTime=event.end_time,
        status=event.status,
        userId=event.user_id,
        createdAt=event.created_at,
        owner=resolve_user(event.owner) if include_owner and event.owner else None,
    )


def resolve_swap_request(swap_request: SwapRequest) -> SwapRequestResponse:
    return SwapRequestResponse(
        id=swap_request.id,
        status=swap_request.status,
        requesterUserId=swap_request.requester_user_id,
        targetUserId=swap_request.target_user_id,
        requesterSlotId=swap_request.requester_slot_id,
        targetSlotId=swap_request.target_slot_id,
        requester=resolve_user(swap_request.requester),
        target=resolve_user(swap_request.target),
        requesterSlot=resolve_event(swap_request.requester_slot),
        targetSlot=resolve_event(swap_request.target_slot),
        createdAt=swap_request.created_at,
        respondedAt=swap_request.responded_at,
    )


def _slot_title(event: Optional[Event]) -> str:
    return event.title if event else "a deleted slot"


def resolve_notification(swap_request: SwapRequest, user_id: int) -> NotificationItem:
    """Describe a request from the point of view of one of its two users"""
    incoming = swap_request.target_user_id == user_id

    if incoming:
        requester_name = swap_request.requester.full_name or swap_request.requester.email
        message = (
            f'{requester_name} wants to swap "{_slot_title(swap_request.requester_slot)}" '
            f'for your "{_slot_title(swap_request.target_slot)}"'
        )
    else:
        message = (
            f'Your swap request for "{_slot_title(swap_request.target_slot)}" '
            f"is {swap_request.status.lower()}"
        )

    return NotificationItem(
        id=swap_request.id,
        type="incoming" if incoming else "outgoing",
        status=swap_request.status,
        message=message,
        createdAt=swap_request.created_at,
        isRead=swap_request.status != SwapStatus.PENDING,
    )
