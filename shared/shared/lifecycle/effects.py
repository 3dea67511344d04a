from dataclasses import dataclass
from datetime import date
from typing import FrozenSet, List, Union

from shared.lifecycle.models import Amount, Rental
from shared.lifecycle.status import RentalStatus


@dataclass(frozen=True)
class BlockDates:
    outfit_id: str
    rental_id: str
    dates: FrozenSet[date]


@dataclass(frozen=True)
class UnblockDates:
    outfit_id: str
    rental_id: str
    dates: FrozenSet[date]


@dataclass(frozen=True)
class IncrementOutfitStats:
    outfit_id: str
    rentals_count: int


@dataclass(frozen=True)
class IncrementClosetStats:
    curator_id: str
    rentals_count: int
    earnings: Amount


SideEffect = Union[BlockDates, UnblockDates, IncrementOutfitStats, IncrementClosetStats]


@dataclass
class TransitionResult:
    rental: Rental
    side_effects: List[SideEffect]


@dataclass
class QCResult:
    rental: Rental
    next_status: RentalStatus
    side_effects: List[SideEffect]
