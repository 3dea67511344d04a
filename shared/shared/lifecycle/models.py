from datetime import date, datetime
from typing import List, Optional, Union

from pydantic import BaseModel, Field

from shared.lifecycle.status import DamageLevel, QCStatus, RentalStatus, ReporterType

# whole units or fractional prices as entered by curators
Amount = Union[int, float]


class PricingSnapshot(BaseModel):
    per_night_price: Amount
    nights: int
    rental_fee: Amount
    security_deposit: Amount
    platform_fee: int
    delivery_fee: int
    return_delivery_fee: int
    total: Amount
    curator_earnings: Amount


class TimelineEntry(BaseModel):
    status: RentalStatus
    timestamp: datetime
    note: Optional[str] = None
    link: Optional[str] = None


class TimelineAnnotation(BaseModel):
    entry_index: int
    note: str
    author_id: str
    created_at: datetime


class DeliveryQC(BaseModel):
    status: QCStatus = QCStatus.PENDING
    deadline: datetime
    submitted_at: Optional[datetime] = None
    items_received: Optional[bool] = None
    condition_ok: Optional[bool] = None
    size_ok: Optional[bool] = None
    issue_description: Optional[str] = None
    return_requested: Optional[bool] = None


class ReturnQC(BaseModel):
    status: QCStatus = QCStatus.PENDING
    deadline: datetime
    submitted_at: Optional[datetime] = None
    condition_ok: Optional[bool] = None
    damage_level: Optional[DamageLevel] = None
    issue_description: Optional[str] = None
    deposit_refunded: Optional[bool] = None
    deposit_refunded_at: Optional[datetime] = None


class IssueReport(BaseModel):
    reporter_id: str
    reporter_type: ReporterType
    category: str
    description: str
    image_urls: List[str] = Field(default_factory=list)
    reported_at: datetime
    resolved_at: Optional[datetime] = None
    resolution_note: Optional[str] = None


class PaymentDetails(BaseModel):
    payment_id: str
    order_id: str
    signature: str


class Tracking(BaseModel):
    courier_name: Optional[str] = None
    tracking_number: Optional[str] = None
    estimated_delivery: Optional[datetime] = None


class DeliveryAddress(BaseModel):
    full_name: str
    phone: str
    address_line1: str
    city: str
    state: str
    zip_code: str


class Rental(BaseModel):
    id: str
    outfit_id: str
    curator_id: str
    renter_user_id: str
    renter_email: Optional[str] = None
    renter_name: Optional[str] = None
    delivery_address: Optional[DeliveryAddress] = None

    start_date: date
    end_date: date
    nights: int = Field(ge=1)

    status: RentalStatus
    timeline: List[TimelineEntry] = Field(min_length=1)
    annotations: List[TimelineAnnotation] = Field(default_factory=list)

    pricing: PricingSnapshot
    curator_earnings: Amount

    delivery_qc: Optional[DeliveryQC] = None
    return_qc: Optional[ReturnQC] = None
    issue_report: Optional[IssueReport] = None
    payment_details: Optional[PaymentDetails] = None
    tracking: Optional[Tracking] = None
    return_tracking: Optional[Tracking] = None

    version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Inputs


class DeliveryQCInput(BaseModel):
    items_received: bool
    condition_ok: bool
    size_ok: bool
    issue_description: Optional[str] = None
    return_requested: bool = False


class ReturnQCInput(BaseModel):
    condition_ok: bool
    damage_level: DamageLevel
    issue_description: Optional[str] = None


class IssueReportInput(BaseModel):
    reporter_id: str
    reporter_type: ReporterType
    category: str
    description: str
    image_urls: List[str] = Field(default_factory=list)


class IssueResolution(BaseModel):
    new_status: RentalStatus
    note: str
    curator_earnings: Optional[Amount] = None
