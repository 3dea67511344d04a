from dataclasses import dataclass


@dataclass
class SweepResult:
    expired: int = 0
    delivery_approved: int = 0
    return_approved: int = 0
    skipped: int = 0
    failed: int = 0

    @property
    def approved(self) -> int:
        return self.delivery_approved + self.return_approved
