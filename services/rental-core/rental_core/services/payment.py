from loguru import logger

from rental_core.clients.external import ExternalClient
from rental_core.schemas import PaymentConfirmRequest
from rental_core.services.rental import RentalService
from shared.lifecycle import InvalidTransitionException, PaymentDetails, Rental, RentalStatus


class PaymentService:
    def __init__(self, rental_service: RentalService, external_client: ExternalClient):
        self.rental_service = rental_service
        self.external_client = external_client

    def confirm_payment(self, rental_id: str, request: PaymentConfirmRequest) -> Rental:
        """
        Verify a captured payment and move the rental on.

        Only a freshly requested rental can be confirmed. A verified payment
        marks it paid and holds its dates; an explicit denial cancels it. When
        the verifier cannot answer, PaymentGatewayUnavailableException leaves
        the rental requested so the client can retry.
        """
        rental = self.rental_service.get_rental(rental_id)
        if rental.status != RentalStatus.REQUESTED:
            raise InvalidTransitionException(
                rental.status,
                RentalStatus.PAID,
                "payment can only be confirmed for a requested rental",
            )

        logger.info(f"Confirming payment {request.payment_id} for rental {rental.id}")

        verified = self.external_client.verify_payment(
            request.payment_id, request.order_id, request.signature
        )

        if not verified:
            logger.warning(f"Payment {request.payment_id} for rental {rental_id} was declined")
            return self.rental_service.cancel(rental_id, "Payment verification failed")

        return self.rental_service.mark_paid(
            rental_id,
            PaymentDetails(
                payment_id=request.payment_id,
                order_id=request.order_id,
                signature=request.signature,
            ),
        )
