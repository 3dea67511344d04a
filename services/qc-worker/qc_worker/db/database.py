from sqlalchemy.orm import sessionmaker

from shared.db.database import get_sessionmaker as shared_get_sessionmaker
from qc_worker.config.settings import Settings


def get_sessionmaker(settings: Settings) -> sessionmaker:
    return shared_get_sessionmaker(settings.database_url)
