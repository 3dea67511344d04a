from typing import List, Optional

from loguru import logger

from rental_core.core.exceptions import (
    DatesUnavailableException,
    QCRequiredException,
    RentalNotFoundException,
)
from rental_core.core.utils import uuid4
from rental_core.monitoring.metrics import MetricsCollector
from rental_core.schemas import (
    AnnotationRequest,
    BlockedDatesRequest,
    CreateRentalRequest,
    OutfitCalendarResponse,
    PricingRequest,
    PricingResponse,
    StatusUpdateRequest,
)
from shared.db.effects import SideEffectExecutor
from shared.db.exceptions import StaleRentalException
from shared.db.repositories.outfit import OutfitRepository
from shared.db.repositories.rental import RentalRepository
from shared.lifecycle import (
    DeliveryQCInput,
    InvalidInputException,
    IssueReportInput,
    IssueResolution,
    LifecycleEngine,
    PaymentDetails,
    Rental,
    RentalStatus,
    ReturnQCInput,
    SideEffect,
    calculate_nights,
    compute_pricing,
    date_span,
    find_conflicts,
)
from shared.lifecycle.status import ISSUE_REPORTABLE_STATUSES, QC_GATED_TRANSITIONS


class RentalService:
    def __init__(
        self,
        rental_repo: RentalRepository,
        outfit_repo: OutfitRepository,
        executor: SideEffectExecutor,
        engine: LifecycleEngine,
        restrict_issue_reports: bool = False,
    ):
        self.rental_repo = rental_repo
        self.outfit_repo = outfit_repo
        self.executor = executor
        self.engine = engine
        self.restrict_issue_reports = restrict_issue_reports

    # --- reads ---

    def get_rental(self, rental_id: str) -> Rental:
        rental = self.rental_repo.get_rental(rental_id)
        if not rental:
            logger.error(f"Rental {rental_id} not found")
            raise RentalNotFoundException(rental_id)
        return rental

    def list_for_outfit(self, outfit_id: str) -> List[Rental]:
        self.outfit_repo.get_or_raise(outfit_id)
        return self.rental_repo.list_for_outfit(outfit_id)

    def list_for_curator(self, curator_id: str) -> List[Rental]:
        return self.rental_repo.list_by_curator(curator_id)

    def list_for_renter(self, renter_user_id: str) -> List[Rental]:
        return self.rental_repo.list_by_renter(renter_user_id)

    def get_calendar(self, outfit_id: str) -> OutfitCalendarResponse:
        self.outfit_repo.get_or_raise(outfit_id)
        return OutfitCalendarResponse(
            outfit_id=outfit_id,
            blocked_dates=sorted(self.outfit_repo.get_blocked_dates(outfit_id)),
            manual_dates=sorted(self.outfit_repo.get_manual_blocked_dates(outfit_id)),
        )

    def quote_price(self, request: PricingRequest) -> PricingResponse:
        outfit = self.outfit_repo.get_or_raise(request.outfit_id)
        nights = calculate_nights(request.start_date, request.end_date)
        pricing = compute_pricing(outfit.per_night_price, nights)
        conflicts = find_conflicts(
            self.outfit_repo.get_blocked_dates(outfit.id),
            request.start_date,
            request.end_date,
        )
        return PricingResponse(
            outfit_id=outfit.id,
            start_date=request.start_date,
            end_date=request.end_date,
            available=outfit.availability_enabled and not conflicts,
            conflicts=conflicts,
            pricing=pricing,
        )

    # --- curator calendar ---

    def block_dates(self, outfit_id: str, request: BlockedDatesRequest) -> OutfitCalendarResponse:
        days = date_span(request.start_date, request.end_date)
        added = self.outfit_repo.block_manual_dates(outfit_id, days)
        logger.info(f"Curator blocked {added} days on outfit {outfit_id}")
        return self.get_calendar(outfit_id)

    def unblock_dates(
        self, outfit_id: str, request: BlockedDatesRequest
    ) -> OutfitCalendarResponse:
        """Release curator blocks only; days held by rentals stay blocked."""
        self.outfit_repo.get_or_raise(outfit_id)
        days = date_span(request.start_date, request.end_date)
        removed = self.outfit_repo.unblock_manual_dates(outfit_id, days)
        logger.info(f"Curator unblocked {removed} days on outfit {outfit_id}")
        return self.get_calendar(outfit_id)

    # --- writes ---

    def create_rental(self, request: CreateRentalRequest) -> Rental:
        logger.info(
            f"Requesting rental of outfit {request.outfit_id} "
            f"{request.start_date}..{request.end_date} for user {request.renter_user_id}"
        )

        outfit = self.outfit_repo.get_or_raise(request.outfit_id)
        if not outfit.availability_enabled or outfit.status != "active":
            raise DatesUnavailableException(outfit.id)

        conflicts = find_conflicts(
            self.outfit_repo.get_blocked_dates(outfit.id),
            request.start_date,
            request.end_date,
        )
        if conflicts:
            logger.info(f"Outfit {outfit.id} already booked on {len(conflicts)} requested days")
            raise DatesUnavailableException(outfit.id, conflicts)

        rental = self.engine.create_rental(
            rental_id=uuid4(),
            outfit_id=outfit.id,
            curator_id=outfit.curator_id,
            renter_user_id=request.renter_user_id,
            start_date=request.start_date,
            end_date=request.end_date,
            per_night_price=outfit.per_night_price,
            renter_email=request.renter_email,
            renter_name=request.renter_name,
            delivery_address=request.delivery_address,
        )
        rental = self.rental_repo.create_rental(rental)
        MetricsCollector.record_rental_created()

        logger.info(f"Rental {rental.id} requested, total {rental.pricing.total}")
        return rental

    def update_status(self, rental_id: str, request: StatusUpdateRequest) -> Rental:
        if request.status is None and request.tracking is None:
            raise InvalidInputException("nothing to update: provide a status or tracking")

        rental = self.get_rental(rental_id)
        before = rental.status
        side_effects: List[SideEffect] = []

        if request.tracking is not None:
            rental = self.engine.update_tracking(rental, request.tracking, request.leg)
            logger.info(f"Rental {rental_id} {request.leg.value} tracking updated")

        if request.status is not None:
            if (rental.status, request.status) in QC_GATED_TRANSITIONS:
                raise QCRequiredException(
                    f'rental {rental_id} leaves "{rental.status.value}" only through delivery QC'
                )
            if request.status == RentalStatus.PAID:
                self._ensure_dates_free(rental)
            result = self.engine.transition_rental(
                rental, request.status, note=request.note, link=request.link
            )
            rental, side_effects = result.rental, result.side_effects

        return self._persist(before, rental, side_effects)

    def mark_paid(self, rental_id: str, payment_details: PaymentDetails) -> Rental:
        rental = self.get_rental(rental_id)
        self._ensure_dates_free(rental)
        result = self.engine.transition_rental(
            rental,
            RentalStatus.PAID,
            note="Payment confirmed",
            payment_details=payment_details,
        )
        return self._persist(rental.status, result.rental, result.side_effects)

    def cancel(self, rental_id: str, note: str) -> Rental:
        rental = self.get_rental(rental_id)
        result = self.engine.transition_rental(rental, RentalStatus.CANCELLED, note=note)
        return self._persist(rental.status, result.rental, result.side_effects)

    def submit_delivery_qc(self, rental_id: str, qc_input: DeliveryQCInput) -> Rental:
        rental = self.get_rental(rental_id)
        result = self.engine.submit_delivery_qc(rental, qc_input)
        saved = self._persist(rental.status, result.rental, result.side_effects)

        MetricsCollector.record_qc_submission("delivery", saved.delivery_qc.status.value)
        if result.next_status == RentalStatus.DISPUTED:
            MetricsCollector.record_dispute("reported")
        logger.info(f"Delivery QC for rental {rental_id}: {saved.delivery_qc.status.value}")
        return saved

    def submit_return_qc(self, rental_id: str, qc_input: ReturnQCInput) -> Rental:
        rental = self.get_rental(rental_id)
        result = self.engine.submit_return_qc(rental, qc_input)
        saved = self._persist(rental.status, result.rental, result.side_effects)

        MetricsCollector.record_qc_submission("return", saved.return_qc.status.value)
        if result.next_status == RentalStatus.DISPUTED:
            MetricsCollector.record_dispute("reported")
        logger.info(
            f"Return QC for rental {rental_id}: {saved.return_qc.status.value}, "
            f"damage={saved.return_qc.damage_level.value}"
        )
        return saved

    def report_issue(self, rental_id: str, report: IssueReportInput) -> Rental:
        rental = self.get_rental(rental_id)
        allowed_from = ISSUE_REPORTABLE_STATUSES if self.restrict_issue_reports else None
        updated = self.engine.report_issue(rental, report, allowed_from=allowed_from)
        saved = self._persist(rental.status, updated, [])

        MetricsCollector.record_dispute("reported")
        logger.warning(
            f"Issue reported on rental {rental_id} by {report.reporter_type.value} "
            f"{report.reporter_id}: {report.category}"
        )
        return saved

    def resolve_issue(self, rental_id: str, resolution: IssueResolution) -> Rental:
        rental = self.get_rental(rental_id)
        result = self.engine.resolve_issue(rental, resolution)
        saved = self._persist(rental.status, result.rental, result.side_effects)

        MetricsCollector.record_dispute("resolved")
        logger.info(f"Dispute on rental {rental_id} resolved as {saved.status.value}")
        return saved

    def annotate(self, rental_id: str, request: AnnotationRequest) -> Rental:
        rental = self.get_rental(rental_id)
        updated = self.engine.annotate_timeline(
            rental, request.entry_index, request.note, request.author_id
        )
        saved = self._persist(rental.status, updated, [])
        logger.info(
            f"Timeline entry {request.entry_index} of rental {rental_id} "
            f"annotated by {request.author_id}"
        )
        return saved

    # --- helpers ---

    def _ensure_dates_free(self, rental: Rental) -> None:
        """Other rentals may have paid for overlapping days since this one was requested."""
        taken = self.outfit_repo.get_blocked_dates(
            rental.outfit_id
        ) - self.outfit_repo.get_rental_blocked_dates(rental.outfit_id, rental.id)
        conflicts = find_conflicts(taken, rental.start_date, rental.end_date)
        if conflicts:
            raise DatesUnavailableException(rental.outfit_id, conflicts)

    def _persist(
        self,
        before: Optional[RentalStatus],
        rental: Rental,
        side_effects: List[SideEffect],
    ) -> Rental:
        try:
            saved = self.rental_repo.save_rental(rental)
        except StaleRentalException:
            MetricsCollector.record_stale_write()
            raise

        self.executor.execute(side_effects)

        if before != saved.status:
            MetricsCollector.record_transition(before.value, saved.status.value)
            logger.info(
                f"Rental {saved.id} moved {before.value} -> {saved.status.value}"
            )
        return saved
