from .database import get_engine, get_sessionmaker
from .models import Base, BlockedDate, Closet, Outfit, Rental

__all__ = [
    "Base",
    "Rental",
    "Outfit",
    "BlockedDate",
    "Closet",
    "get_sessionmaker",
    "get_engine",
]
