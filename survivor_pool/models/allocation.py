"""Allocation references: which contest and which side a pick-unit backs.

Stored on pick rows as ``"{contest_id}_{side_key}"``. Contest ids never
contain the separator, side keys may (``Kansas_City_Chiefs``), so decoding
splits on the first separator only.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

SEPARATOR = "_"


class AllocationRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    contest_id: str
    side_key: str

    @field_validator("contest_id")
    @classmethod
    def _contest_id_valid(cls, value: str) -> str:
        if not value or SEPARATOR in value:
            raise ValueError("contest_id must be non-empty and free of separators")
        return value

    @field_validator("side_key")
    @classmethod
    def _side_key_valid(cls, value: str) -> str:
        if not value:
            raise ValueError("side_key must be non-empty")
        return value

    def encode(self) -> str:
        return f"{self.contest_id}{SEPARATOR}{self.side_key}"

    def __str__(self) -> str:
        return self.encode()


def encode(contest_id: str, side_key: str) -> str:
    """Builds the stored form; raises ValueError for an invalid pair."""
    return AllocationRef(contest_id=contest_id, side_key=side_key).encode()


def decode(ref: Optional[str]) -> Optional[AllocationRef]:
    """Parses a stored reference. Anything malformed means "no allocation"."""
    if not ref or not isinstance(ref, str):
        return None
    contest_id, sep, side_key = ref.partition(SEPARATOR)
    if not sep or not contest_id.strip() or not side_key.strip():
        return None
    return AllocationRef(contest_id=contest_id.strip(), side_key=side_key)
