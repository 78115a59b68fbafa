from fastapi import APIRouter, Depends

from ..auth import get_current_user
from ..domain.swaps.resolver import resolve_notification
from ..domain.swaps.router import get_swap_service
from ..domain.swaps.schemas import NotificationCount, NotificationItem
from ..domain.swaps.service import SwapService
from ..models import User

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("/count", response_model=NotificationCount)
async def get_notification_count(
    current_user: User = Depends(get_current_user),
    service: SwapService = Depends(get_swap_service)
):
    """Number of swap requests waiting for my answer"""
    return NotificationCount(count=service.get_notification_count(current_user))


@router.get("/recent", response_model=list[NotificationItem])
async def get_recent_notifications(
    current_user: User = Depends(get_current_user),
    service: SwapService = Depends(get_swap_service)
):
    """My most recent swap activity, incoming and outgoing"""
    recent = service.get_recent_activity(current_user)
    return [resolve_notification(r, current_user.id) for r in recent]
