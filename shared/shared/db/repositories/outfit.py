from datetime import date, datetime, timezone
from typing import Iterable, Optional, Set

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from shared.db.exceptions import OutfitNotFoundException
from shared.db.models import BlockedDate, Outfit
from shared.lifecycle.models import Amount


class OutfitRepository:
    """Listings together with their calendar (availability store) and rental counts."""

    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, outfit_id: str) -> Optional[Outfit]:
        return self.session.get(Outfit, outfit_id)

    def get_or_raise(self, outfit_id: str) -> Outfit:
        outfit = self.get_by_id(outfit_id)
        if not outfit:
            raise OutfitNotFoundException(outfit_id)
        return outfit

    def create_outfit(
        self,
        outfit_id: str,
        curator_id: str,
        title: str,
        per_night_price: Amount,
        availability_enabled: bool = True,
    ) -> Outfit:
        outfit = Outfit(
            id=outfit_id,
            curator_id=curator_id,
            title=title,
            per_night_price=per_night_price,
            availability_enabled=availability_enabled,
            status="active",
            rentals_count=0,
        )
        self.session.add(outfit)
        self.session.flush()
        return outfit

    # --- calendar ---

    def get_blocked_dates(self, outfit_id: str) -> Set[date]:
        days = self.session.execute(
            select(BlockedDate.day).where(BlockedDate.outfit_id == outfit_id)
        ).scalars()
        return set(days)

    def get_rental_blocked_dates(self, outfit_id: str, rental_id: str) -> Set[date]:
        days = self.session.execute(
            select(BlockedDate.day).where(
                BlockedDate.outfit_id == outfit_id, BlockedDate.rental_id == rental_id
            )
        ).scalars()
        return set(days)

    def get_manual_blocked_dates(self, outfit_id: str) -> Set[date]:
        days = self.session.execute(
            select(BlockedDate.day).where(
                BlockedDate.outfit_id == outfit_id, BlockedDate.rental_id.is_(None)
            )
        ).scalars()
        return set(days)

    def block_dates(self, outfit_id: str, rental_id: str, dates: Iterable[date]) -> int:
        self.get_or_raise(outfit_id)
        held = self.get_rental_blocked_dates(outfit_id, rental_id)
        new_days = sorted(set(dates) - held)
        for day in new_days:
            self.session.add(BlockedDate(outfit_id=outfit_id, day=day, rental_id=rental_id))
        self._touch(outfit_id)
        self.session.flush()
        logger.debug(f"Blocked {len(new_days)} days on outfit {outfit_id} for rental {rental_id}")
        return len(new_days)

    def unblock_dates(self, outfit_id: str, rental_id: str, dates: Iterable[date]) -> int:
        days = list(set(dates))
        if not days:
            return 0
        self.get_or_raise(outfit_id)
        result = self.session.execute(
            delete(BlockedDate).where(
                BlockedDate.outfit_id == outfit_id,
                BlockedDate.rental_id == rental_id,
                BlockedDate.day.in_(days),
            )
        )
        self._touch(outfit_id)
        self.session.flush()
        logger.debug(
            f"Unblocked {result.rowcount} days on outfit {outfit_id} for rental {rental_id}"
        )
        return result.rowcount

    def block_manual_dates(self, outfit_id: str, dates: Iterable[date]) -> int:
        self.get_or_raise(outfit_id)
        new_days = sorted(set(dates) - self.get_manual_blocked_dates(outfit_id))
        for day in new_days:
            self.session.add(BlockedDate(outfit_id=outfit_id, day=day, rental_id=None))
        self._touch(outfit_id)
        self.session.flush()
        return len(new_days)

    def unblock_manual_dates(self, outfit_id: str, dates: Iterable[date]) -> int:
        days = list(set(dates))
        if not days:
            return 0
        result = self.session.execute(
            delete(BlockedDate).where(
                BlockedDate.outfit_id == outfit_id,
                BlockedDate.rental_id.is_(None),
                BlockedDate.day.in_(days),
            )
        )
        self._touch(outfit_id)
        self.session.flush()
        return result.rowcount

    # --- stats ---

    def increment_rentals_count(self, outfit_id: str, delta: int = 1) -> int:
        outfit = self.get_or_raise(outfit_id)
        outfit.rentals_count = (outfit.rentals_count or 0) + delta
        outfit.updated_at = datetime.now(timezone.utc)
        self.session.flush()
        logger.debug(f"Outfit {outfit_id} rentals_count -> {outfit.rentals_count}")
        return outfit.rentals_count

    def _touch(self, outfit_id: str) -> None:
        outfit = self.get_by_id(outfit_id)
        if outfit is not None:
            outfit.updated_at = datetime.now(timezone.utc)
