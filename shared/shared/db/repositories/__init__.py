from .closet import ClosetRepository
from .outfit import OutfitRepository
from .rental import RentalRepository

__all__ = [
    "RentalRepository",
    "OutfitRepository",
    "ClosetRepository",
]
