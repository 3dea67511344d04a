from typing import Iterable

from loguru import logger

from shared.db.repositories.closet import ClosetRepository
from shared.db.repositories.outfit import OutfitRepository
from shared.lifecycle.effects import (
    BlockDates,
    IncrementClosetStats,
    IncrementOutfitStats,
    SideEffect,
    UnblockDates,
)


class SideEffectExecutor:
    """Runs engine intents inside the caller's session, next to the rental write."""

    def __init__(self, outfit_repo: OutfitRepository, closet_repo: ClosetRepository):
        self.outfit_repo = outfit_repo
        self.closet_repo = closet_repo

    def execute(self, side_effects: Iterable[SideEffect]) -> None:
        for effect in side_effects:
            self.execute_one(effect)

    def execute_one(self, effect: SideEffect) -> None:
        if isinstance(effect, BlockDates):
            added = self.outfit_repo.block_dates(
                effect.outfit_id, effect.rental_id, effect.dates
            )
            logger.info(
                f"Blocked {added} dates on outfit {effect.outfit_id} for rental {effect.rental_id}"
            )
        elif isinstance(effect, UnblockDates):
            removed = self.outfit_repo.unblock_dates(
                effect.outfit_id, effect.rental_id, effect.dates
            )
            logger.info(
                f"Unblocked {removed} dates on outfit {effect.outfit_id} for rental {effect.rental_id}"
            )
        elif isinstance(effect, IncrementOutfitStats):
            self.outfit_repo.increment_rentals_count(effect.outfit_id, effect.rentals_count)
        elif isinstance(effect, IncrementClosetStats):
            self.closet_repo.increment_stats(
                effect.curator_id,
                rentals_count=effect.rentals_count,
                earnings=effect.earnings,
            )
        else:
            raise TypeError(f"Unknown side effect: {effect!r}")
