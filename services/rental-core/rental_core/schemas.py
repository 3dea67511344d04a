from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from shared.lifecycle.models import (
    Amount,
    DeliveryAddress,
    DeliveryQC,
    IssueReport,
    PaymentDetails,
    PricingSnapshot,
    ReturnQC,
    TimelineAnnotation,
    TimelineEntry,
    Tracking,
)
from shared.lifecycle.status import RentalStatus, TrackingLeg


class PricingRequest(BaseModel):
    outfit_id: str
    start_date: date
    end_date: date


class PricingResponse(BaseModel):
    outfit_id: str
    start_date: date
    end_date: date
    available: bool
    conflicts: List[date] = Field(default_factory=list)
    pricing: PricingSnapshot


class CreateRentalRequest(BaseModel):
    outfit_id: str
    renter_user_id: str
    start_date: date
    end_date: date
    renter_email: Optional[str] = None
    renter_name: Optional[str] = None
    delivery_address: Optional[DeliveryAddress] = None


class StatusUpdateRequest(BaseModel):
    status: Optional[RentalStatus] = None
    note: Optional[str] = None
    link: Optional[str] = None
    tracking: Optional[Tracking] = None
    leg: TrackingLeg = Field(TrackingLeg.OUTBOUND, description="Which shipment the tracking belongs to")


class BlockedDatesRequest(BaseModel):
    """Curator-set unavailability, both ends inclusive."""

    start_date: date
    end_date: date


class OutfitCalendarResponse(BaseModel):
    outfit_id: str
    blocked_dates: List[date]
    manual_dates: List[date]


class PaymentConfirmRequest(BaseModel):
    payment_id: str
    order_id: str
    signature: str


class AnnotationRequest(BaseModel):
    entry_index: int
    note: str
    author_id: str


class RentalResponse(BaseModel):
    id: str
    outfit_id: str
    curator_id: str
    renter_user_id: str
    renter_email: Optional[str] = None
    renter_name: Optional[str] = None
    delivery_address: Optional[DeliveryAddress] = None
    start_date: date
    end_date: date
    nights: int
    status: RentalStatus
    timeline: List[TimelineEntry]
    annotations: List[TimelineAnnotation] = Field(default_factory=list)
    pricing: PricingSnapshot
    curator_earnings: Amount
    delivery_qc: Optional[DeliveryQC] = None
    return_qc: Optional[ReturnQC] = None
    issue_report: Optional[IssueReport] = None
    payment_details: Optional[PaymentDetails] = None
    tracking: Optional[Tracking] = None
    return_tracking: Optional[Tracking] = None
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class StatusCatalogueEntry(BaseModel):
    status: RentalStatus
    label: str
    category: str
    color: str
    terminal: bool
    blocks_calendar: bool
    next_statuses: List[RentalStatus]


class HealthResponse(BaseModel):
    ok: bool = True
