import os
from datetime import date
from typing import Generator

import pytest
import requests
from sqlalchemy.orm import Session

from shared.db.database import get_engine, make_sessionmaker
from shared.db.models import Base
from shared.lifecycle import FrozenClock, LifecycleEngine


@pytest.fixture(scope="session")
def base_url() -> str:
    return os.getenv("RENTAL_CORE_BASE", "http://localhost:8000")


@pytest.fixture
def db_engine():
    engine = get_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine) -> Generator[Session, None, None]:
    SessionLocal = make_sessionmaker(db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def lifecycle(clock) -> LifecycleEngine:
    return LifecycleEngine(clock=clock)


@pytest.fixture
def make_rental(lifecycle):
    def _make_rental(rental_id: str, outfit_id: str = "outfit-1", renter: str = "user-1"):
        return lifecycle.create_rental(
            rental_id=rental_id,
            outfit_id=outfit_id,
            curator_id="curator-1",
            renter_user_id=renter,
            start_date=date(2025, 3, 10),
            end_date=date(2025, 3, 13),
            per_night_price=450,
        )

    return _make_rental


@pytest.fixture
def api_client(base_url: str):
    class APIClient:
        def __init__(self, base_url: str):
            self.base_url = base_url.rstrip("/")
            self.session = requests.Session()
            self.session.headers.update({"Content-Type": "application/json"})

        def get(self, path: str, **kwargs):
            url = f"{self.base_url}/{path.lstrip('/')}"
            response = self.session.get(url, **kwargs)
            response.raise_for_status()
            return response.json()

        def post(self, path: str, json=None, **kwargs):
            url = f"{self.base_url}/{path.lstrip('/')}"
            return self.session.post(url, json=json, **kwargs)

    return APIClient(base_url)


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")
