"""Swap router - FastAPI endpoints for the swap marketplace and negotiation"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ..slots.schemas import EventResponse
from .resolver import resolve_event, resolve_swap_request
from .schemas import SwapRequestCreate, SwapRequestResponse, SwapResponseRequest
from .service import SwapService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/swaps", tags=["Swaps"])


def get_swap_service(db: Session = Depends(get_db)) -> SwapService:
    """Dependency injection for SwapService"""
    return SwapService(db)


# ============================================================================
# MARKETPLACE
# ============================================================================


@router.get("/swappable-slots", response_model=list[EventResponse])
async def get_swappable_slots(
    current_user: User = Depends(get_current_user),
    service: SwapService = Depends(get_swap_service),
):
    """Other users' SWAPPABLE slots with their owners, earliest first"""
    return [resolve_event(e, include_owner=True) for e in service.get_swappable_slots(current_user)]


# ============================================================================
# NEGOTIATION
# ============================================================================


@router.post("/swap-request", response_model=SwapRequestResponse, status_code=201)
async def create_swap_request(
    data: SwapRequestCreate,
    current_user: User = Depends(get_current_user),
    service: SwapService = Depends(get_swap_service),
):
    """Offer one of my slots for one of theirs"""
    swap_request = service.initiate_swap(current_user, data.mySlotId, data.theirSlotId)
    return resolve_swap_request(swap_request)


@router.post("/swap-response/{request_id}", response_model=SwapRequestResponse)
async def respond_to_swap_request(
    request_id: int,
    data: SwapResponseRequest,
    current_user: User = Depends(get_current_user),
    service: SwapService = Depends(get_swap_service),
):
    """Accept or reject an incoming swap request"""
    swap_request = service.respond_to_swap(current_user, request_id, data.accept)
    return resolve_swap_request(swap_request)


# ============================================================================
# REQUEST LISTS
# ============================================================================


@router.get("/incoming", response_model=list[SwapRequestResponse])
async def get_incoming_requests(
    current_user: User = Depends(get_current_user),
    service: SwapService = Depends(get_swap_service),
):
    """Requests targeting my slots, newest first"""
    return [resolve_swap_request(r) for r in service.get_incoming(current_user)]


@router.get("/outgoing", response_model=list[SwapRequestResponse])
async def get_outgoing_requests(
    current_user: User = Depends(get_current_user),
    service: SwapService = Depends(get_swap_service),
):
    """Requests I have made, newest first"""
    return [resolve_swap_request(r) for r in service.get_outgoing(current_user)]
