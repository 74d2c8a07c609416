"""
Pydantic schemas for the swap API.
"""

from .swap import (
    ConflictCheckResponse,
    ConflictSummary,
    ListingSummary,
    PartySummary,
    SwapCreate,
    SwapCreateResponse,
    SwapListResponse,
    SwapResponse,
    SwapStatusUpdate,
)

__all__ = [
    "ConflictCheckResponse",
    "ConflictSummary",
    "ListingSummary",
    "PartySummary",
    "SwapCreate",
    "SwapCreateResponse",
    "SwapListResponse",
    "SwapResponse",
    "SwapStatusUpdate",
]
