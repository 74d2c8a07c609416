"""
Swap state machine: valid lifecycle transitions and who may trigger them.

Swap lifecycle:
    PENDING -> ACCEPTED   (requested user)
    PENDING -> DECLINED   (requested user)
    PENDING -> CANCELLED  (requester)

ACCEPTED, DECLINED and CANCELLED are terminal. Nothing here touches the
database; SwapService persists the result.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Optional, Set

from ..core.exceptions import ForbiddenException, InvalidStateException, ValidationException
from ..models.swap import SwapRequest, SwapStatus


class SwapActor(str, Enum):
    REQUESTER = "requester"
    REQUESTED_USER = "requested_user"


# Valid transitions: {from_status: {allowed_to_statuses}}
_TRANSITIONS: Dict[SwapStatus, Set[SwapStatus]] = {
    SwapStatus.PENDING: {SwapStatus.ACCEPTED, SwapStatus.DECLINED, SwapStatus.CANCELLED},
    # Terminal statuses - no outgoing transitions
    SwapStatus.ACCEPTED: set(),
    SwapStatus.DECLINED: set(),
    SwapStatus.CANCELLED: set(),
}

_ALLOWED_ACTOR: Dict[SwapStatus, SwapActor] = {
    SwapStatus.ACCEPTED: SwapActor.REQUESTED_USER,
    SwapStatus.DECLINED: SwapActor.REQUESTED_USER,
    SwapStatus.CANCELLED: SwapActor.REQUESTER,
}

TRANSITION_TARGETS = frozenset(_ALLOWED_ACTOR)


class SwapStateMachine:
    """Validates swap transitions and the acting party for each."""

    @staticmethod
    def is_terminal(status: SwapStatus) -> bool:
        return not _TRANSITIONS.get(SwapStatus(status))

    @staticmethod
    def can_transition(current: SwapStatus, target: SwapStatus) -> bool:
        return SwapStatus(target) in _TRANSITIONS.get(SwapStatus(current), set())

    @staticmethod
    def parse_target(target: str) -> SwapStatus:
        """
        Parse a requested target status.

        Raises:
            ValidationException: if the value is not accepted, declined or cancelled
        """
        try:
            status = SwapStatus(target)
        except ValueError as e:
            raise ValidationException(
                f"Unknown swap status '{target}'", reason="invalid_target_status"
            ) from e
        if status not in TRANSITION_TARGETS:
            raise ValidationException(
                f"A swap cannot be moved to '{status.value}'", reason="invalid_target_status"
            )
        return status

    @staticmethod
    def actor_role(swap: SwapRequest, user_id: Optional[str]) -> Optional[SwapActor]:
        if user_id is None:
            return None
        if user_id == swap.requester_id:
            return SwapActor.REQUESTER
        if user_id == swap.requested_user_id:
            return SwapActor.REQUESTED_USER
        return None

    @staticmethod
    def authorize(swap: SwapRequest, acting_user_id: Optional[str], target: SwapStatus) -> None:
        """
        Check the acting user is the party allowed to move the swap to target.

        Once a swap is terminal either party gets InvalidState, whichever
        transition they ask for; only non-parties are refused outright.

        Raises:
            ForbiddenException: if the user is not a party or is the wrong party
            InvalidStateException: if a party acts on a terminal swap
        """
        target = SwapStatus(target)
        role = SwapStateMachine.actor_role(swap, acting_user_id)
        if role is None:
            raise ForbiddenException(
                "You are not a party to this swap", details={"swap_id": swap.id}
            )
        if SwapStateMachine.is_terminal(swap.status_enum):
            raise InvalidStateException(swap.status_enum.value, target.value)
        required = _ALLOWED_ACTOR.get(target)
        if required is not None and role != required:
            if required == SwapActor.REQUESTER:
                message = "Only the requester can cancel this swap"
            else:
                verb = "accept" if target == SwapStatus.ACCEPTED else "decline"
                message = f"Only the requested user can {verb} this swap"
            raise ForbiddenException(
                message,
                details={"swap_id": swap.id, "required_actor": required.value},
            )

    @staticmethod
    def validate(swap: SwapRequest, target: SwapStatus) -> None:
        """
        Check the swap's current status allows moving to target.

        Raises:
            InvalidStateException: if the transition is not allowed
        """
        target = SwapStatus(target)
        current = swap.status_enum
        if not SwapStateMachine.can_transition(current, target):
            raise InvalidStateException(current.value, target.value)
