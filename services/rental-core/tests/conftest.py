from datetime import date

import pytest

from shared.db.database import get_engine, make_sessionmaker
from shared.db.effects import SideEffectExecutor
from shared.db.models import Base
from shared.db.repositories import ClosetRepository, OutfitRepository, RentalRepository
from shared.lifecycle import (
    DeliveryQCInput,
    FrozenClock,
    LifecycleEngine,
    RentalStatus,
)

START = date(2025, 3, 10)
END = date(2025, 3, 13)


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def engine(clock):
    return LifecycleEngine(clock=clock)


@pytest.fixture
def new_rental(engine):
    def _new_rental(rental_id="r1", start=START, end=END, price=450, outfit_id="outfit-1"):
        return engine.create_rental(
            rental_id=rental_id,
            outfit_id=outfit_id,
            curator_id="curator-1",
            renter_user_id="user-1",
            start_date=start,
            end_date=end,
            per_night_price=price,
        )

    return _new_rental


@pytest.fixture
def rental(new_rental):
    return new_rental()


@pytest.fixture
def drive(engine, clock):
    """Walk a rental through statuses, taking delivered -> in_use through delivery QC."""

    def _drive(rental, *statuses):
        for status in statuses:
            clock.advance(minutes=1)
            if rental.status == RentalStatus.DELIVERED and status == RentalStatus.IN_USE:
                rental = engine.submit_delivery_qc(
                    rental,
                    DeliveryQCInput(items_received=True, condition_ok=True, size_ok=True),
                ).rental
            else:
                rental = engine.transition_rental(rental, status).rental
        return rental

    return _drive


@pytest.fixture
def sqlite_sessionmaker():
    db_engine = get_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(db_engine)
    yield make_sessionmaker(db_engine)
    db_engine.dispose()


@pytest.fixture
def sqlite_session(sqlite_sessionmaker):
    session = sqlite_sessionmaker()
    yield session
    session.close()


@pytest.fixture
def repositories(sqlite_session):
    rental_repo = RentalRepository(sqlite_session)
    outfit_repo = OutfitRepository(sqlite_session)
    closet_repo = ClosetRepository(sqlite_session)
    outfit_repo.create_outfit("outfit-1", "curator-1", "Silk saree", 450)
    sqlite_session.commit()
    return rental_repo, outfit_repo, closet_repo


@pytest.fixture
def executor(repositories):
    _, outfit_repo, closet_repo = repositories
    return SideEffectExecutor(outfit_repo, closet_repo)
