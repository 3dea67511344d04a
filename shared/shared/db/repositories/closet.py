from datetime import datetime, timezone
from typing import Optional

from loguru import logger
from sqlalchemy.orm import Session

from shared.db.models import Closet
from shared.lifecycle.models import Amount


class ClosetRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_by_curator(self, curator_id: str) -> Optional[Closet]:
        return self.session.get(Closet, curator_id)

    def increment_stats(
        self,
        curator_id: str,
        rentals_count: int = 0,
        earnings: Amount = 0,
        outfits_count: int = 0,
    ) -> Closet:
        """
        Add to a curator's running totals.

        Creates the closet with the increments as its starting values when the
        curator has none yet.
        """
        now = datetime.now(timezone.utc)
        closet = self.get_by_curator(curator_id)

        if closet:
            closet.rentals_count = (closet.rentals_count or 0) + rentals_count
            closet.total_earnings = (closet.total_earnings or 0) + earnings
            closet.outfits_count = (closet.outfits_count or 0) + outfits_count
            closet.updated_at = now
            logger.debug(
                "Updated closet {}: rentals={}, earnings={}",
                curator_id,
                closet.rentals_count,
                closet.total_earnings,
            )
        else:
            closet = Closet(
                curator_id=curator_id,
                display_name="Curator",
                rentals_count=rentals_count,
                total_earnings=earnings,
                outfits_count=outfits_count,
                created_at=now,
                updated_at=now,
            )
            self.session.add(closet)
            logger.debug(
                "Created closet {} with rentals={}, earnings={}",
                curator_id,
                rentals_count,
                earnings,
            )

        self.session.flush()
        return closet
