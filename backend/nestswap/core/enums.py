"""
Shared enumerations for the swap engine.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Error kinds surfaced to callers of the swap engine."""

    NOT_FOUND = "not_found"
    INVALID_INPUT = "invalid_input"
    NOT_AUTHORIZED = "not_authorized"
    INVALID_STATE = "invalid_state"
    CONFLICT = "conflict"
    PAYMENT_REQUIRED = "payment_required"
    TRANSIENT = "transient"
    INTERNAL = "internal"


# Stable message categories a client renders from. Conflict and InvalidState
# share "unavailable" so both read as "this swap is no longer available".
ERROR_CATEGORIES: dict[ErrorKind, str] = {
    ErrorKind.NOT_FOUND: "not_found",
    ErrorKind.INVALID_INPUT: "invalid",
    ErrorKind.NOT_AUTHORIZED: "forbidden",
    ErrorKind.INVALID_STATE: "unavailable",
    ErrorKind.CONFLICT: "unavailable",
    ErrorKind.PAYMENT_REQUIRED: "payment_required",
    ErrorKind.TRANSIENT: "retry",
    ErrorKind.INTERNAL: "internal",
}


class SubscriptionStatus(str, Enum):
    """Billing states mirrored from the subscription provider."""

    NONE = "none"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    INCOMPLETE = "incomplete"
    TRIALING = "trialing"


ENTITLED_SUBSCRIPTION_STATUSES = frozenset(
    {SubscriptionStatus.ACTIVE.value, SubscriptionStatus.TRIALING.value}
)


class PropertyType(str, Enum):
    """Kinds of property a listing can offer."""

    CARAVAN = "caravan"
    CABIN = "cabin"
    MOTORHOME = "motorhome"
    TENT = "tent"
    OTHER = "other"
