from datetime import datetime
from typing import Optional

from pydantic import BaseModel, computed_field


class PartySummary(BaseModel):
    """Per-party projection of the obligation store. Never stored."""
    party: str
    total_obligated_cents: int = 0
    total_paid_cents: int = 0
    total_remaining_cents: int = 0
    obligation_count: int = 0
    last_payment_at: Optional[datetime] = None

    @computed_field
    @property
    def total_due_cents(self) -> int:
        return self.total_remaining_cents
