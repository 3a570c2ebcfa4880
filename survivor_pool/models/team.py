# survivor_pool/models/team.py
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, computed_field


class Team(BaseModel):
    """Canonical team identity for one season."""

    model_config = ConfigDict(frozen=True)

    name: str
    abbreviation: str
    season: Optional[int] = None
    primary_color: Optional[str] = None
    secondary_color: Optional[str] = None

    @computed_field  # type: ignore[misc]
    @property
    def underscore_name(self) -> str:
        """The "City_Team" form used in older allocation strings."""
        return "_".join(self.name.split())

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Team":
        return cls(
            name=row["name"],
            abbreviation=row.get("abbreviation") or "",
            season=row.get("season"),
            primary_color=row.get("primary_color"),
            secondary_color=row.get("secondary_color"),
        )
