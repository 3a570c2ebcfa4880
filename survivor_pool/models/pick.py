from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from survivor_pool.models.allocation import AllocationRef, decode
from survivor_pool.models.enums import PickStatus
from survivor_pool.utils.periods import period_slots, slot_for_period


class Pick(BaseModel):
    """A bundle of identical pick-units owned by one user."""

    id: str
    user_id: Optional[str] = None
    # picks_count column; fixed at purchase time
    unit_count: int = Field(0, ge=0)
    pick_name: Optional[str] = None
    status: PickStatus = PickStatus.PENDING
    # Playable period -> stored allocation string (None when unallocated)
    allocations: Dict[int, Optional[str]] = Field(default_factory=dict)

    def allocation_for(self, period: int) -> Optional[AllocationRef]:
        return decode(self.allocations.get(period))

    @property
    def is_eliminated(self) -> bool:
        return self.status == PickStatus.ELIMINATED

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Pick":
        """Builds a Pick from a picks row; preseason columns are ignored."""
        allocations: Dict[int, Optional[str]] = {}
        for slot in period_slots():
            value = row.get(slot.column)
            allocations[slot.period] = value if value else None

        try:
            status = PickStatus(row.get("status") or PickStatus.PENDING.value)
        except ValueError:
            status = PickStatus.PENDING

        return cls(
            id=str(row["id"]),
            user_id=row.get("user_id"),
            unit_count=row.get("picks_count") or 0,
            pick_name=row.get("pick_name"),
            status=status,
            allocations=allocations,
        )

    @staticmethod
    def column_for(period: int) -> str:
        slot = slot_for_period(period)
        if slot is None:
            raise ValueError(f"Period {period} has no allocation column")
        return slot.column
