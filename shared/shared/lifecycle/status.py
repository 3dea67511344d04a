from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet

from shared.lifecycle.exceptions import InvalidTransitionException


class RentalStatus(str, Enum):
    REQUESTED = "requested"
    PAID = "paid"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    IN_USE = "in_use"
    RETURN_SHIPPED = "return_shipped"
    RETURN_DELIVERED = "return_delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DISPUTED = "disputed"


class QCStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    ISSUE_REPORTED = "issue_reported"
    AUTO_APPROVED = "auto_approved"


class DamageLevel(str, Enum):
    NONE = "none"
    MINOR = "minor"
    MAJOR = "major"
    TOTAL = "total"


class ReporterType(str, Enum):
    USER = "user"
    CURATOR = "curator"


class TrackingLeg(str, Enum):
    OUTBOUND = "outbound"
    RETURN = "return"


S = RentalStatus

TRANSITIONS: Dict[RentalStatus, FrozenSet[RentalStatus]] = {
    S.REQUESTED: frozenset({S.PAID, S.CANCELLED}),
    S.PAID: frozenset({S.ACCEPTED, S.REJECTED, S.CANCELLED}),
    S.ACCEPTED: frozenset({S.SHIPPED, S.CANCELLED}),
    S.SHIPPED: frozenset({S.DELIVERED, S.CANCELLED}),
    S.DELIVERED: frozenset({S.IN_USE, S.DISPUTED, S.CANCELLED}),
    S.IN_USE: frozenset({S.RETURN_SHIPPED, S.DISPUTED}),
    # no cancellation while the outfit is travelling back to the curator
    S.RETURN_SHIPPED: frozenset({S.RETURN_DELIVERED}),
    S.RETURN_DELIVERED: frozenset({S.COMPLETED, S.DISPUTED}),
    S.DISPUTED: frozenset({S.COMPLETED, S.CANCELLED}),
    S.REJECTED: frozenset(),
    S.CANCELLED: frozenset(),
    S.COMPLETED: frozenset(),
}

# Edges only the delivery QC flow may take; plain status updates are refused.
QC_GATED_TRANSITIONS: FrozenSet[tuple] = frozenset(
    {(S.DELIVERED, S.IN_USE), (S.DELIVERED, S.DISPUTED)}
)

# Used when issue reports are restricted to rentals with the outfit in hand.
ISSUE_REPORTABLE_STATUSES: FrozenSet[RentalStatus] = frozenset(
    {S.DELIVERED, S.IN_USE, S.RETURN_DELIVERED}
)


def is_valid_transition(current: RentalStatus, new: RentalStatus) -> bool:
    return RentalStatus(new) in TRANSITIONS.get(RentalStatus(current), frozenset())


def apply_transition(current: RentalStatus, new: RentalStatus) -> RentalStatus:
    if not is_valid_transition(current, new):
        raise InvalidTransitionException(current, new)
    return RentalStatus(new)


@dataclass(frozen=True)
class StatusInfo:
    label: str
    category: str  # pending / active / attention / closed
    color: str
    terminal: bool = False
    blocks_calendar: bool = False


STATUS_CATALOGUE: Dict[RentalStatus, StatusInfo] = {
    S.REQUESTED: StatusInfo("Rental Requested", "pending", "#FFA500"),
    S.PAID: StatusInfo("Payment Confirmed", "pending", "#4CAF50", blocks_calendar=True),
    S.ACCEPTED: StatusInfo("Accepted by Curator", "active", "#2196F3", blocks_calendar=True),
    S.REJECTED: StatusInfo("Rejected", "closed", "#F44336", terminal=True),
    S.SHIPPED: StatusInfo("Shipped", "active", "#9C27B0", blocks_calendar=True),
    S.DELIVERED: StatusInfo("Delivered", "active", "#673AB7", blocks_calendar=True),
    S.IN_USE: StatusInfo("In Use", "active", "#00BCD4", blocks_calendar=True),
    S.RETURN_SHIPPED: StatusInfo("Return Shipped", "active", "#3F51B5", blocks_calendar=True),
    S.RETURN_DELIVERED: StatusInfo("Return Delivered", "active", "#8BC34A"),
    S.COMPLETED: StatusInfo("Completed", "closed", "#4CAF50", terminal=True),
    S.CANCELLED: StatusInfo("Cancelled", "closed", "#757575", terminal=True),
    S.DISPUTED: StatusInfo("Under Review", "attention", "#FF5722"),
}


def status_info(status: RentalStatus) -> StatusInfo:
    return STATUS_CATALOGUE[RentalStatus(status)]


def terminal_statuses() -> FrozenSet[RentalStatus]:
    return frozenset(s for s, info in STATUS_CATALOGUE.items() if info.terminal)


def calendar_blocking_statuses() -> FrozenSet[RentalStatus]:
    return frozenset(s for s, info in STATUS_CATALOGUE.items() if info.blocks_calendar)
