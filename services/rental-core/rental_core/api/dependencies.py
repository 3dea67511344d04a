from datetime import timedelta
from functools import lru_cache

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from rental_core.clients.external import ExternalClient
from rental_core.config.settings import Settings
from rental_core.db.database import get_sessionmaker
from rental_core.services.payment import PaymentService
from rental_core.services.rental import RentalService
from shared.db.effects import SideEffectExecutor
from shared.db.repositories import ClosetRepository, OutfitRepository, RentalRepository
from shared.lifecycle import LifecycleEngine, SystemClock


@lru_cache()
def get_settings() -> Settings:
    return Settings()


def get_session(settings: Settings = Depends(get_settings)) -> Session:
    sessionmaker = get_sessionmaker(settings)
    session = sessionmaker()
    try:
        yield session
    finally:
        session.close()


def get_external_client(request: Request) -> ExternalClient:
    return request.app.state.external_client


def get_lifecycle_engine(settings: Settings = Depends(get_settings)) -> LifecycleEngine:
    return LifecycleEngine(
        clock=SystemClock(), qc_window=timedelta(minutes=settings.qc_window_min)
    )


def get_rental_repository(session: Session = Depends(get_session)) -> RentalRepository:
    return RentalRepository(session)


def get_outfit_repository(session: Session = Depends(get_session)) -> OutfitRepository:
    return OutfitRepository(session)


def get_closet_repository(session: Session = Depends(get_session)) -> ClosetRepository:
    return ClosetRepository(session)


def get_side_effect_executor(
    outfit_repo: OutfitRepository = Depends(get_outfit_repository),
    closet_repo: ClosetRepository = Depends(get_closet_repository),
) -> SideEffectExecutor:
    return SideEffectExecutor(outfit_repo, closet_repo)


def get_rental_service(
    rental_repo: RentalRepository = Depends(get_rental_repository),
    outfit_repo: OutfitRepository = Depends(get_outfit_repository),
    executor: SideEffectExecutor = Depends(get_side_effect_executor),
    engine: LifecycleEngine = Depends(get_lifecycle_engine),
    settings: Settings = Depends(get_settings),
) -> RentalService:
    return RentalService(
        rental_repo,
        outfit_repo,
        executor,
        engine,
        restrict_issue_reports=settings.restrict_issue_reports,
    )


def get_payment_service(
    rental_service: RentalService = Depends(get_rental_service),
    external_client: ExternalClient = Depends(get_external_client),
) -> PaymentService:
    return PaymentService(rental_service, external_client)
