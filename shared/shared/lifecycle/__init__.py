from .availability import date_span, dates_to_block, find_conflicts
from .clock import Clock, FrozenClock, SystemClock
from .effects import (
    BlockDates,
    IncrementClosetStats,
    IncrementOutfitStats,
    QCResult,
    SideEffect,
    TransitionResult,
    UnblockDates,
)
from .engine import QC_WINDOW, LifecycleEngine
from .exceptions import (
    InvalidInputException,
    InvalidTransitionException,
    LifecycleException,
    NotDisputedException,
    QCAlreadySubmittedException,
    QCNotApplicableException,
)
from .models import (
    DeliveryAddress,
    DeliveryQCInput,
    IssueReportInput,
    IssueResolution,
    PaymentDetails,
    PricingSnapshot,
    Rental,
    ReturnQCInput,
    Tracking,
)
from .pricing import calculate_nights, compute_pricing
from .status import (
    STATUS_CATALOGUE,
    DamageLevel,
    QCStatus,
    RentalStatus,
    ReporterType,
    TrackingLeg,
    apply_transition,
    calendar_blocking_statuses,
    is_valid_transition,
    terminal_statuses,
)

__all__ = [
    "LifecycleEngine",
    "QC_WINDOW",
    "Clock",
    "SystemClock",
    "FrozenClock",
    "RentalStatus",
    "QCStatus",
    "DamageLevel",
    "ReporterType",
    "TrackingLeg",
    "STATUS_CATALOGUE",
    "is_valid_transition",
    "apply_transition",
    "terminal_statuses",
    "calendar_blocking_statuses",
    "compute_pricing",
    "calculate_nights",
    "date_span",
    "dates_to_block",
    "find_conflicts",
    "Rental",
    "PricingSnapshot",
    "PaymentDetails",
    "DeliveryAddress",
    "DeliveryQCInput",
    "ReturnQCInput",
    "IssueReportInput",
    "IssueResolution",
    "Tracking",
    "BlockDates",
    "UnblockDates",
    "IncrementOutfitStats",
    "IncrementClosetStats",
    "SideEffect",
    "TransitionResult",
    "QCResult",
    "LifecycleException",
    "InvalidTransitionException",
    "InvalidInputException",
    "QCNotApplicableException",
    "QCAlreadySubmittedException",
    "NotDisputedException",
]
