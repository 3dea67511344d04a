from datetime import date
from typing import List

from fastapi import HTTPException

from shared.db.exceptions import OutfitNotFoundException, StaleRentalException
from shared.lifecycle.exceptions import (
    InvalidInputException,
    InvalidTransitionException,
    LifecycleException,
    NotDisputedException,
    QCAlreadySubmittedException,
    QCNotApplicableException,
)


class RentalCoreException(Exception):
    pass


class RentalNotFoundException(RentalCoreException):
    def __init__(self, rental_id: str):
        self.rental_id = rental_id
        super().__init__(f"Rental {rental_id} not found")


class DatesUnavailableException(RentalCoreException):
    def __init__(self, outfit_id: str, conflicts: List[date] = None):
        self.outfit_id = outfit_id
        self.conflicts = conflicts or []
        if self.conflicts:
            days = ", ".join(d.isoformat() for d in self.conflicts)
            message = f"Outfit {outfit_id} is not available on {days}"
        else:
            message = f"Outfit {outfit_id} is not accepting rentals"
        super().__init__(message)


class QCRequiredException(RentalCoreException):
    pass


class PaymentGatewayUnavailableException(RentalCoreException):
    """The payment verifier gave no usable answer; the confirmation can be retried."""

    def __init__(self, payment_id: str, reason: str = ""):
        self.payment_id = payment_id
        message = f"Could not verify payment {payment_id}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


def rental_not_found_exception():
    return HTTPException(status_code=404, detail="Rental not found")


def outfit_not_found_exception():
    return HTTPException(status_code=404, detail="Outfit not found")


def dates_unavailable_exception(exc: DatesUnavailableException):
    return HTTPException(status_code=409, detail=str(exc))


def invalid_transition_exception(exc: Exception):
    return HTTPException(status_code=409, detail=str(exc))


def invalid_input_exception(exc: Exception):
    return HTTPException(status_code=400, detail=str(exc))


def payment_gateway_unavailable_exception():
    return HTTPException(
        status_code=503, detail="Payment verification is unavailable, retry later"
    )


def stale_rental_exception():
    return HTTPException(
        status_code=409, detail="Rental was modified concurrently, reload and retry"
    )


def lifecycle_http_exception(exc: Exception) -> HTTPException:
    """Translate engine, persistence and service failures into HTTP errors."""
    if isinstance(exc, RentalNotFoundException):
        return rental_not_found_exception()
    if isinstance(exc, OutfitNotFoundException):
        return outfit_not_found_exception()
    if isinstance(exc, DatesUnavailableException):
        return dates_unavailable_exception(exc)
    if isinstance(exc, StaleRentalException):
        return stale_rental_exception()
    if isinstance(exc, PaymentGatewayUnavailableException):
        return payment_gateway_unavailable_exception()
    if isinstance(exc, InvalidInputException):
        return invalid_input_exception(exc)
    if isinstance(
        exc,
        (
            InvalidTransitionException,
            QCNotApplicableException,
            QCAlreadySubmittedException,
            NotDisputedException,
            QCRequiredException,
        ),
    ):
        return invalid_transition_exception(exc)
    if isinstance(exc, LifecycleException):
        return invalid_transition_exception(exc)
    return HTTPException(status_code=500, detail=str(exc))
