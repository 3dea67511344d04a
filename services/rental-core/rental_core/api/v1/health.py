from fastapi import APIRouter, Depends

from rental_core.api.dependencies import get_external_client
from rental_core.clients.external import ExternalClient
from rental_core.schemas import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
def health_check():
    return HealthResponse(ok=True)


@router.get("/health/circuit-breakers")
def circuit_breaker_health(
    external_client: ExternalClient = Depends(get_external_client),
):
    return {
        "circuit_breakers": external_client.get_circuit_breaker_stats(),
        "status": "ok",
    }
