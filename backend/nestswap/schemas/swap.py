# backend/nestswap/schemas/swap.py
"""
Swap schemas for the NestSwap swap engine.

Request bodies carry only what the client chooses; the requester is the
authenticated user. Field-level business rules (future start, minimum
duration, note length) are enforced by SwapService so they surface as
INVALID_INPUT with a reason rather than as schema errors.
"""

from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import ConfigDict, Field, field_validator

from ..core.timezone_utils import ensure_utc
from ..models.swap import SwapStatus
from .base import StandardizedModel, StrictRequestModel


class SwapCreate(StrictRequestModel):
    """Propose a reciprocal stay between one of your listings and another user's."""

    requested_user_id: str = Field(..., min_length=1, description="Owner of the listing you want")
    requester_listing_id: str = Field(..., min_length=1, description="Your listing on offer")
    requested_listing_id: str = Field(..., min_length=1, description="The listing you want")
    start_date: datetime = Field(..., description="Window start (inclusive), UTC if no offset")
    end_date: datetime = Field(..., description="Window end (exclusive), UTC if no offset")
    notes: Optional[str] = Field(None, description="Optional message to the other party")

    @field_validator("start_date", "end_date")
    @classmethod
    def _to_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class SwapStatusUpdate(StrictRequestModel):
    status: Literal["accepted", "declined", "cancelled"]


class PartySummary(StandardizedModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: str
    name: str
    avatar_url: Optional[str] = None


class ListingSummary(StandardizedModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: str
    title: str
    type: str = Field(validation_alias="property_type")
    city: str
    country: str


class SwapResponse(StandardizedModel):
    """
    Swap with both parties and both listings resolved for display.
    """

    id: str
    requester_id: str
    requested_user_id: str
    requester_listing_id: str
    requested_listing_id: str
    start_date: datetime
    end_date: datetime
    duration_days: int
    status: SwapStatus
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    requester: Optional[PartySummary] = None
    requested_user: Optional[PartySummary] = None
    requester_listing: Optional[ListingSummary] = None
    requested_listing: Optional[ListingSummary] = None

    @classmethod
    def _fields_from_swap(cls, swap: Any) -> dict[str, Any]:
        def _summary(model: Any, value: Any) -> Any:
            return model.model_validate(value) if value is not None else None

        return {
            "id": swap.id,
            "requester_id": swap.requester_id,
            "requested_user_id": swap.requested_user_id,
            "requester_listing_id": swap.requester_listing_id,
            "requested_listing_id": swap.requested_listing_id,
            "start_date": swap.start_utc,
            "end_date": swap.end_utc,
            "duration_days": swap.duration_days,
            "status": swap.status,
            "notes": swap.notes,
            "created_at": ensure_utc(swap.created_at),
            "updated_at": ensure_utc(swap.updated_at),
            "requester": _summary(PartySummary, swap.requester),
            "requested_user": _summary(PartySummary, swap.requested_user),
            "requester_listing": _summary(ListingSummary, swap.requester_listing),
            "requested_listing": _summary(ListingSummary, swap.requested_listing),
        }

    @classmethod
    def from_swap(cls, swap: Any) -> "SwapResponse":
        """Create SwapResponse from a SwapRequest ORM model."""
        return cls(**cls._fields_from_swap(swap))


class ConflictSummary(StandardizedModel):
    swap_id: str
    requester_listing_id: str
    requested_listing_id: str
    start_date: datetime
    end_date: datetime

    @classmethod
    def from_swap(cls, swap: Any) -> "ConflictSummary":
        return cls(
            swap_id=swap.id,
            requester_listing_id=swap.requester_listing_id,
            requested_listing_id=swap.requested_listing_id,
            start_date=swap.start_utc,
            end_date=swap.end_utc,
        )


class SwapCreateResponse(SwapResponse):
    """
    Response after creating a swap.

    Accepted swaps already overlapping this one are reported but do not
    block creation; acceptance will fail while they stand.
    """

    conflicts: List[ConflictSummary] = Field(default_factory=list)

    @classmethod
    def from_creation(cls, swap: Any, conflicts: List[Any]) -> "SwapCreateResponse":
        return cls(
            **cls._fields_from_swap(swap),
            conflicts=[ConflictSummary.from_swap(c) for c in conflicts],
        )


class SwapListResponse(StandardizedModel):
    """Response for the swap list endpoint."""

    swaps: List[SwapResponse]
    total: int


class ConflictCheckResponse(StandardizedModel):
    has_conflicts: bool
    conflicts: List[ConflictSummary]
