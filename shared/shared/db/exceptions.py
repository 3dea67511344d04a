class StaleRentalException(Exception):
    """The rental changed since it was read; re-read and retry the operation."""

    def __init__(self, rental_id: str, expected_version: int):
        self.rental_id = rental_id
        self.expected_version = expected_version
        super().__init__(
            f"Rental {rental_id} was modified concurrently (expected version {expected_version})"
        )


class OutfitNotFoundException(Exception):
    def __init__(self, outfit_id: str):
        self.outfit_id = outfit_id
        super().__init__(f"Outfit {outfit_id} not found")
