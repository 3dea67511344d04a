from shared.db.models import (
    Base,
    BlockedDate,
    Closet,
    Outfit,
    Rental,
)

__all__ = [
    "Base",
    "Rental",
    "Outfit",
    "BlockedDate",
    "Closet",
]
