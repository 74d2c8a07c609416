# backend/nestswap/routes/v1/swaps.py
"""
Swap routes - API v1

Versioned swap endpoints under /api/v1/swaps.
All business logic delegated to SwapService.

Endpoints:
    GET /conflicts - Advisory check for accepted swaps overlapping a window
    GET / - List the acting user's swaps (incoming, outgoing or all)
    POST / - Create a swap request (membership required)
    GET /{swap_id} - Swap details, parties only
    PATCH /{swap_id}/status - Accept, decline or cancel a swap
"""

import asyncio
from datetime import datetime
import logging
from typing import Literal, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.params import Path

from ...api.dependencies import (
    get_current_user_id,
    get_subscription_service,
    get_swap_service,
    require_subscription,
)
from ...core.config import settings
from ...core.exceptions import DomainException
from ...database import with_db_retry
from ...models.swap import SwapStatus
from ...schemas.swap import (
    ConflictCheckResponse,
    ConflictSummary,
    SwapCreate,
    SwapCreateResponse,
    SwapListResponse,
    SwapResponse,
    SwapStatusUpdate,
)
from ...services.subscription_service import SubscriptionService
from ...services.swap_service import SwapService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["swaps-v1"])

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


# ============================================================================
# SECTION 1: Static routes (no path parameters)
# ============================================================================


@router.get("/conflicts", response_model=ConflictCheckResponse)
async def check_swap_conflicts(
    listing_a: str = Query(..., min_length=1),
    listing_b: str = Query(..., min_length=1),
    start_date: datetime = Query(...),
    end_date: datetime = Query(...),
    current_user_id: str = Depends(get_current_user_id),
    swap_service: SwapService = Depends(get_swap_service),
) -> ConflictCheckResponse:
    """
    Accepted swaps that already hold either listing during the window.

    Advisory only; acceptance re-checks under lock.
    """
    try:
        conflicts = await asyncio.to_thread(
            swap_service.check_conflicts, listing_a, listing_b, start_date, end_date
        )
        return ConflictCheckResponse(
            has_conflicts=bool(conflicts),
            conflicts=[ConflictSummary.from_swap(c) for c in conflicts],
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("", response_model=SwapListResponse)
async def list_swaps(
    direction: Literal["incoming", "outgoing", "all"] = Query("all"),
    status_filter: Optional[SwapStatus] = Query(None, alias="status"),
    current_user_id: str = Depends(get_current_user_id),
    swap_service: SwapService = Depends(get_swap_service),
) -> SwapListResponse:
    """Swaps the acting user sent or received, newest first."""
    try:
        swaps = await asyncio.to_thread(
            swap_service.list_swaps_for_user,
            current_user_id,
            direction=direction,
            status=status_filter,
        )
        return SwapListResponse(
            swaps=[SwapResponse.from_swap(swap) for swap in swaps],
            total=len(swaps),
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post("", response_model=SwapCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_swap(
    payload: SwapCreate,
    current_user_id: str = Depends(require_subscription),
    swap_service: SwapService = Depends(get_swap_service),
) -> SwapCreateResponse:
    """
    Propose a swap. Requires an active membership.

    Accepted swaps that already overlap are returned in `conflicts`;
    they do not prevent the request from being sent.
    """
    try:
        creation = await asyncio.to_thread(
            swap_service.create_swap_with_conflicts,
            requester_id=current_user_id,
            requested_user_id=payload.requested_user_id,
            requester_listing_id=payload.requester_listing_id,
            requested_listing_id=payload.requested_listing_id,
            start_date=payload.start_date,
            end_date=payload.end_date,
            notes=payload.notes,
        )
        return SwapCreateResponse.from_creation(creation.swap, creation.conflicts)
    except DomainException as e:
        handle_domain_exception(e)


# ============================================================================
# SECTION 2: Dynamic routes (/{swap_id})
# ============================================================================


@router.get("/{swap_id}", response_model=SwapResponse)
async def get_swap(
    swap_id: str = Path(
        ...,
        description="Swap ULID",
        pattern=ULID_PATH_PATTERN,
        examples=["01HF4G12ABCDEF3456789XYZAB"],
    ),
    current_user_id: str = Depends(get_current_user_id),
    swap_service: SwapService = Depends(get_swap_service),
) -> SwapResponse:
    """Swap details for either party. Anyone else gets 404."""
    try:
        swap = await asyncio.to_thread(swap_service.get_swap_for_user, swap_id, current_user_id)
        return SwapResponse.from_swap(swap)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("/{swap_id}/status", response_model=SwapResponse)
async def update_swap_status(
    payload: SwapStatusUpdate,
    swap_id: str = Path(
        ...,
        description="Swap ULID",
        pattern=ULID_PATH_PATTERN,
        examples=["01HF4G12ABCDEF3456789XYZAB"],
    ),
    current_user_id: str = Depends(get_current_user_id),
    swap_service: SwapService = Depends(get_swap_service),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
) -> SwapResponse:
    """
    Accept, decline or cancel a pending swap.

    Accepting requires an active membership. Transitions that fail on a
    lock or timeout are retried before a 503 is returned.
    """
    try:
        if payload.status == SwapStatus.ACCEPTED.value:
            await asyncio.to_thread(subscription_service.require_subscription, current_user_id)

        def _transition() -> object:
            return swap_service.transition_swap(swap_id, current_user_id, payload.status)

        swap = await asyncio.to_thread(
            with_db_retry,
            f"swap_{payload.status}",
            _transition,
            max_attempts=settings.swap_transition_max_attempts,
        )
        return SwapResponse.from_swap(swap)
    except DomainException as e:
        handle_domain_exception(e)
