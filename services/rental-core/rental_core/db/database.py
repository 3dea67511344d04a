from functools import lru_cache

from shared.db.database import get_engine as shared_get_engine
from shared.db.database import make_sessionmaker

from rental_core.config.settings import Settings


@lru_cache()
def _engine_for(database_url: str):
    return shared_get_engine(database_url)


def get_engine(settings: Settings):
    return _engine_for(settings.database_url)


def get_sessionmaker(settings: Settings):
    return make_sessionmaker(get_engine(settings))
