from typing import List

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from sqlalchemy.orm import Session

from rental_core.api.dependencies import (
    get_payment_service,
    get_rental_service,
    get_session,
)
from rental_core.core.exceptions import (
    RentalCoreException,
    lifecycle_http_exception,
)
from rental_core.schemas import (
    AnnotationRequest,
    BlockedDatesRequest,
    CreateRentalRequest,
    OutfitCalendarResponse,
    PaymentConfirmRequest,
    PricingRequest,
    PricingResponse,
    RentalResponse,
    StatusCatalogueEntry,
    StatusUpdateRequest,
)
from rental_core.services.payment import PaymentService
from rental_core.services.rental import RentalService
from shared.db.exceptions import OutfitNotFoundException, StaleRentalException
from shared.lifecycle import (
    STATUS_CATALOGUE,
    DeliveryQCInput,
    IssueReportInput,
    IssueResolution,
    LifecycleException,
    Rental,
    ReturnQCInput,
)
from shared.lifecycle.status import TRANSITIONS

router = APIRouter()

# Failures a client can act on; everything else is a 500.
EXPECTED_ERRORS = (
    RentalCoreException,
    LifecycleException,
    OutfitNotFoundException,
    StaleRentalException,
)


def _response(rental: Rental) -> RentalResponse:
    return RentalResponse.model_validate(rental.model_dump())


def _fail(session: Session, exc: Exception, action: str) -> HTTPException:
    session.rollback()
    if isinstance(exc, EXPECTED_ERRORS):
        logger.info(f"Rejected {action}: {exc}")
    else:
        logger.exception(f"Error during {action}: {exc}")
    return lifecycle_http_exception(exc)


@router.get("/rentals/statuses", response_model=List[StatusCatalogueEntry])
def list_statuses():
    return [
        StatusCatalogueEntry(
            status=status,
            label=info.label,
            category=info.category,
            color=info.color,
            terminal=info.terminal,
            blocks_calendar=info.blocks_calendar,
            next_statuses=sorted(TRANSITIONS[status], key=lambda s: s.value),
        )
        for status, info in STATUS_CATALOGUE.items()
    ]


@router.post("/rentals/pricing", response_model=PricingResponse)
def quote_price(
    request: PricingRequest,
    rental_service: RentalService = Depends(get_rental_service),
    session: Session = Depends(get_session),
):
    try:
        return rental_service.quote_price(request)
    except Exception as e:
        raise _fail(session, e, "price preview")


@router.post("/rentals", response_model=RentalResponse, status_code=201)
def create_rental(
    request: CreateRentalRequest,
    rental_service: RentalService = Depends(get_rental_service),
    session: Session = Depends(get_session),
):
    try:
        rental = rental_service.create_rental(request)
        session.commit()
        return _response(rental)
    except Exception as e:
        raise _fail(session, e, "rental request")


@router.get("/rentals/{rental_id}", response_model=RentalResponse)
def get_rental(
    rental_id: str,
    rental_service: RentalService = Depends(get_rental_service),
    session: Session = Depends(get_session),
):
    try:
        return _response(rental_service.get_rental(rental_id))
    except Exception as e:
        raise _fail(session, e, f"read of rental {rental_id}")


@router.patch("/rentals/{rental_id}/status", response_model=RentalResponse)
def update_status(
    rental_id: str,
    request: StatusUpdateRequest,
    rental_service: RentalService = Depends(get_rental_service),
    session: Session = Depends(get_session),
):
    try:
        rental = rental_service.update_status(rental_id, request)
        session.commit()
        return _response(rental)
    except Exception as e:
        raise _fail(session, e, f"status update of rental {rental_id}")


@router.post("/rentals/{rental_id}/payment", response_model=RentalResponse)
def confirm_payment(
    rental_id: str,
    request: PaymentConfirmRequest,
    payment_service: PaymentService = Depends(get_payment_service),
    session: Session = Depends(get_session),
):
    try:
        rental = payment_service.confirm_payment(rental_id, request)
        session.commit()
        return _response(rental)
    except Exception as e:
        raise _fail(session, e, f"payment confirmation of rental {rental_id}")


@router.post("/rentals/{rental_id}/delivery-qc", response_model=RentalResponse)
def submit_delivery_qc(
    rental_id: str,
    request: DeliveryQCInput,
    rental_service: RentalService = Depends(get_rental_service),
    session: Session = Depends(get_session),
):
    try:
        rental = rental_service.submit_delivery_qc(rental_id, request)
        session.commit()
        return _response(rental)
    except Exception as e:
        raise _fail(session, e, f"delivery QC of rental {rental_id}")


@router.post("/rentals/{rental_id}/return-qc", response_model=RentalResponse)
def submit_return_qc(
    rental_id: str,
    request: ReturnQCInput,
    rental_service: RentalService = Depends(get_rental_service),
    session: Session = Depends(get_session),
):
    try:
        rental = rental_service.submit_return_qc(rental_id, request)
        session.commit()
        return _response(rental)
    except Exception as e:
        raise _fail(session, e, f"return QC of rental {rental_id}")


@router.post("/rentals/{rental_id}/issues", response_model=RentalResponse)
def report_issue(
    rental_id: str,
    request: IssueReportInput,
    rental_service: RentalService = Depends(get_rental_service),
    session: Session = Depends(get_session),
):
    try:
        rental = rental_service.report_issue(rental_id, request)
        session.commit()
        return _response(rental)
    except Exception as e:
        raise _fail(session, e, f"issue report on rental {rental_id}")


@router.post("/rentals/{rental_id}/issues/resolve", response_model=RentalResponse)
def resolve_issue(
    rental_id: str,
    request: IssueResolution,
    rental_service: RentalService = Depends(get_rental_service),
    session: Session = Depends(get_session),
):
    try:
        rental = rental_service.resolve_issue(rental_id, request)
        session.commit()
        return _response(rental)
    except Exception as e:
        raise _fail(session, e, f"issue resolution on rental {rental_id}")


@router.post("/rentals/{rental_id}/timeline/annotations", response_model=RentalResponse)
def annotate_timeline(
    rental_id: str,
    request: AnnotationRequest,
    rental_service: RentalService = Depends(get_rental_service),
    session: Session = Depends(get_session),
):
    try:
        rental = rental_service.annotate(rental_id, request)
        session.commit()
        return _response(rental)
    except Exception as e:
        raise _fail(session, e, f"timeline annotation on rental {rental_id}")


@router.get("/outfits/{outfit_id}/rentals", response_model=List[RentalResponse])
def list_outfit_rentals(
    outfit_id: str,
    rental_service: RentalService = Depends(get_rental_service),
    session: Session = Depends(get_session),
):
    try:
        return [_response(r) for r in rental_service.list_for_outfit(outfit_id)]
    except Exception as e:
        raise _fail(session, e, f"rental listing of outfit {outfit_id}")


@router.get("/curators/{curator_id}/rentals", response_model=List[RentalResponse])
def list_curator_rentals(
    curator_id: str,
    rental_service: RentalService = Depends(get_rental_service),
    session: Session = Depends(get_session),
):
    try:
        return [_response(r) for r in rental_service.list_for_curator(curator_id)]
    except Exception as e:
        raise _fail(session, e, f"rental listing of curator {curator_id}")


@router.get("/users/{user_id}/rentals", response_model=List[RentalResponse])
def list_user_rentals(
    user_id: str,
    rental_service: RentalService = Depends(get_rental_service),
    session: Session = Depends(get_session),
):
    try:
        return [_response(r) for r in rental_service.list_for_renter(user_id)]
    except Exception as e:
        raise _fail(session, e, f"rental listing of user {user_id}")


@router.get("/outfits/{outfit_id}/blocked-dates", response_model=OutfitCalendarResponse)
def get_outfit_calendar(
    outfit_id: str,
    rental_service: RentalService = Depends(get_rental_service),
    session: Session = Depends(get_session),
):
    try:
        return rental_service.get_calendar(outfit_id)
    except Exception as e:
        raise _fail(session, e, f"calendar read of outfit {outfit_id}")


@router.put("/outfits/{outfit_id}/blocked-dates", response_model=OutfitCalendarResponse)
def block_outfit_dates(
    outfit_id: str,
    request: BlockedDatesRequest,
    rental_service: RentalService = Depends(get_rental_service),
    session: Session = Depends(get_session),
):
    try:
        calendar = rental_service.block_dates(outfit_id, request)
        session.commit()
        return calendar
    except Exception as e:
        raise _fail(session, e, f"date blocking on outfit {outfit_id}")


@router.delete("/outfits/{outfit_id}/blocked-dates", response_model=OutfitCalendarResponse)
def unblock_outfit_dates(
    outfit_id: str,
    request: BlockedDatesRequest = Depends(),
    rental_service: RentalService = Depends(get_rental_service),
    session: Session = Depends(get_session),
):
    try:
        calendar = rental_service.unblock_dates(outfit_id, request)
        session.commit()
        return calendar
    except Exception as e:
        raise _fail(session, e, f"date unblocking on outfit {outfit_id}")
