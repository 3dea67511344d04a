from datetime import date

from shared.lifecycle.exceptions import InvalidInputException
from shared.lifecycle.models import Amount, PricingSnapshot

PLATFORM_FEE_PER_NIGHT = 10
DELIVERY_FEE = 25  # one way
RETURN_DELIVERY_FEE = 25  # one way


def compute_pricing(per_night_price: Amount, nights: int) -> PricingSnapshot:
    """
    Price a rental.

    The security deposit is one night and refundable; the curator receives the
    whole rental fee, the platform keeps its per-night fee.
    """
    if isinstance(nights, bool) or not isinstance(nights, int) or nights < 1:
        raise InvalidInputException(f"nights must be a positive integer, got {nights!r}")
    if isinstance(per_night_price, bool) or not isinstance(per_night_price, (int, float)):
        raise InvalidInputException(f"per_night_price must be a number, got {per_night_price!r}")
    if not per_night_price > 0:
        raise InvalidInputException(f"per_night_price must be positive, got {per_night_price!r}")

    rental_fee = per_night_price * nights
    security_deposit = per_night_price
    platform_fee = PLATFORM_FEE_PER_NIGHT * nights
    total = (
        rental_fee
        + security_deposit
        + platform_fee
        + DELIVERY_FEE
        + RETURN_DELIVERY_FEE
    )

    return PricingSnapshot(
        per_night_price=per_night_price,
        nights=nights,
        rental_fee=rental_fee,
        security_deposit=security_deposit,
        platform_fee=platform_fee,
        delivery_fee=DELIVERY_FEE,
        return_delivery_fee=RETURN_DELIVERY_FEE,
        total=total,
        curator_earnings=rental_fee,
    )


def calculate_nights(start_date: date, end_date: date) -> int:
    nights = (end_date - start_date).days
    if nights < 1:
        raise InvalidInputException(
            f"end date {end_date.isoformat()} must be after start date {start_date.isoformat()}"
        )
    return nights
