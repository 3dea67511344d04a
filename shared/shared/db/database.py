from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


def get_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        # in-memory databases must be shared across threads (TestClient, worker)
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url:
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, future=True, **kwargs)
    return create_engine(database_url, pool_pre_ping=True, future=True)


def get_sessionmaker(database_url: str) -> sessionmaker:
    return make_sessionmaker(get_engine(database_url))


def make_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )
