"""
Stage scoring: how many questions a contestant answers, what each criterion
is worth, and how per-question marks add up to a stage total.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional

from .config import (
    DOUBLE_QUESTION_PARTS_LIMIT,
    MEMORIZATION_MARKS,
    MIN_QUESTIONS,
    PERFORMANCE_MARKS,
    TAJWEED_MARKS,
    TAJWEED_MIN_AGE,
)
from .log import setup_logger
from .results import NotFoundError

logger = setup_logger("recitation.scoring")

# Eastern Arabic (U+0660..) and Persian (U+06F0..) digits typed on Arabic keyboards
_DIGITS = str.maketrans("٠١٢٣٤٥٦٧٨٩۰۱۲۳۴۵۶۷۸۹", "01234567890123456789")
_NON_NUMERIC = re.compile(r"[^0-9.\-]")
_LEADING_FLOAT = re.compile(r"-?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)")


# -----------------------
# Numeric input
# -----------------------
def to_number(value) -> float:
    """
    Normalize whatever a committee typed into a number.

    None, empty text, or text with no leading number after stripping every
    character other than digits, '.' and '-' becomes 0. "7 marks" -> 7.0,
    "1.5.2" -> 1.5, "abc" -> 0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        n = float(value)
        return n if math.isfinite(n) else 0.0
    s = str(value).strip().translate(_DIGITS)
    if not s:
        return 0.0
    s = _NON_NUMERIC.sub("", s)
    m = _LEADING_FLOAT.match(s)
    if not m:
        return 0.0
    n = float(m.group(0))
    return n if math.isfinite(n) else 0.0


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


# -----------------------
# Stage configuration
# -----------------------
class Criterion(str, Enum):
    MEMORIZATION = "memorization"
    PERFORMANCE = "performance"
    TAJWEED = "tajweed"


@dataclass(frozen=True)
class StageConfig:
    question_count: int
    max_memorization: int
    max_performance: int
    max_tajweed: int
    max_per_question: int
    stage_total: int
    tajweed_enabled: bool

    @property
    def maxima(self) -> Dict[Criterion, int]:
        return {
            Criterion.MEMORIZATION: self.max_memorization,
            Criterion.PERFORMANCE: self.max_performance,
            Criterion.TAJWEED: self.max_tajweed,
        }

    def maximum(self, criterion: Criterion) -> int:
        return self.maxima[criterion]

    def criterion_cap(self, criterion: Criterion) -> int:
        """Ceiling for one criterion summed over the whole stage."""
        return self.maximum(criterion) * self.question_count


def compute_stage_config(parts_count, age) -> StageConfig:
    """
    Derive the exam shape from how many parts a contestant memorized and their age.

    Up to one part: the minimum two questions. Up to ten parts: two questions
    per part. Beyond that: one question per part. Tajweed is scored only for
    contestants older than TAJWEED_MIN_AGE.
    """
    parts = to_number(parts_count)
    tajweed_enabled = to_number(age) > TAJWEED_MIN_AGE

    if parts <= 1:
        n = MIN_QUESTIONS
    elif parts <= DOUBLE_QUESTION_PARTS_LIMIT:
        n = _round_half_up(parts * 2)
    else:
        n = _round_half_up(parts)

    max_tajweed = TAJWEED_MARKS if tajweed_enabled else 0
    per_question = MEMORIZATION_MARKS + PERFORMANCE_MARKS + max_tajweed
    config = StageConfig(
        question_count=n,
        max_memorization=MEMORIZATION_MARKS,
        max_performance=PERFORMANCE_MARKS,
        max_tajweed=max_tajweed,
        max_per_question=per_question,
        stage_total=per_question * n,
        tajweed_enabled=tajweed_enabled,
    )
    logger.debug(f"Stage config for parts={parts_count!r} age={age!r}: {config}")
    return config


# -----------------------
# Grades
# -----------------------
@dataclass(frozen=True)
class GradeEntry:
    question_number: int
    memorization: float = 0.0
    performance: float = 0.0
    tajweed: float = 0.0
    contestant_id: Optional[int] = None

    def score(self, criterion: Criterion) -> float:
        return {
            Criterion.MEMORIZATION: self.memorization,
            Criterion.PERFORMANCE: self.performance,
            Criterion.TAJWEED: self.tajweed,
        }[criterion]


@dataclass(frozen=True)
class RunningTotal:
    total: float
    max: int

    def __str__(self) -> str:
        return f"{self.total:g} / {self.max}"


class GradeSet:
    """
    Per-question grades for one contestant, one entry for every question
    1..question_count, kept in question order.
    """

    def __init__(self, contestant_id, entries: Dict[int, GradeEntry]):
        self.contestant_id = contestant_id
        self._entries = dict(sorted(entries.items()))

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[GradeEntry]:
        return iter(self._entries.values())

    @property
    def entries(self) -> List[GradeEntry]:
        return list(self._entries.values())

    def entry(self, question_number: int) -> GradeEntry:
        try:
            return self._entries[question_number]
        except KeyError:
            raise NotFoundError(f"Question {question_number} is not part of this stage.") from None

    def set_entry(self, question_number: int, memorization, performance, tajweed) -> GradeEntry:
        """
        Overwrite one question's marks with normalized values.

        Per-criterion maxima are not enforced here; running_total clamps.
        """
        current = self.entry(question_number)
        updated = replace(
            current,
            memorization=to_number(memorization),
            performance=to_number(performance),
            tajweed=to_number(tajweed),
        )
        self._entries[question_number] = updated
        return updated

    def running_total(self, config: StageConfig) -> RunningTotal:
        """Sum each criterion, cap each sum at its own stage ceiling, then add."""
        criteria = [Criterion.MEMORIZATION, Criterion.PERFORMANCE]
        if config.tajweed_enabled:
            criteria.append(Criterion.TAJWEED)

        total = 0.0
        for criterion in criteria:
            raw = sum(e.score(criterion) for e in self._entries.values())
            total += min(raw, config.criterion_cap(criterion))
        return RunningTotal(total=total, max=config.stage_total)

    def resized(self, config: StageConfig) -> "GradeSet":
        return load_grade_set(self.contestant_id, self.entries, config)


def load_grade_set(contestant_id, existing_entries: Iterable[GradeEntry], config: StageConfig) -> GradeSet:
    """
    Build a contestant's grade set from stored entries, filling missing
    questions with zero marks. Entries outside 1..question_count are dropped;
    for duplicated questions the last one wins.
    """
    entries: Dict[int, GradeEntry] = {}
    for e in existing_entries:
        q = int(to_number(e.question_number))
        if 1 <= q <= config.question_count:
            entries[q] = replace(e, question_number=q, contestant_id=contestant_id)
        else:
            logger.debug(f"Dropping grade for question {q} outside 1..{config.question_count}")

    for q in range(1, config.question_count + 1):
        if q not in entries:
            entries[q] = GradeEntry(question_number=q, contestant_id=contestant_id)

    return GradeSet(contestant_id, entries)
