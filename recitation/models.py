"""Records exchanged with the persistence collaborator."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .scoring import StageConfig, compute_stage_config, to_number


@dataclass(frozen=True)
class Committee:
    committee_id: str
    password_hash: str


@dataclass(frozen=True)
class Contestant:
    id: int
    name: str = ""
    age: float = 0.0
    parts_count: float = 0.0
    committee_id: str = ""
    submitted: bool = False
    total_score: Optional[float] = None  # authoritative only once submitted
    grade: str = ""
    award: float = 0.0
    department: str = ""
    parts_numbers: str = ""
    submitted_at: Optional[str] = None

    def __post_init__(self):
        # Frozen: normalize through object.__setattr__
        object.__setattr__(self, "age", to_number(self.age))
        object.__setattr__(self, "parts_count", to_number(self.parts_count))
        object.__setattr__(self, "committee_id", str(self.committee_id or ""))

    @property
    def stage_config(self) -> StageConfig:
        # Never cached: an admin edit of age or parts must reshape the stage
        return compute_stage_config(self.parts_count, self.age)

    @property
    def finalized(self) -> bool:
        return self.submitted
