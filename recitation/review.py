from __future__ import annotations

from typing import Iterable, Optional

import pandas as pd

from .models import Contestant
from .scoring import GradeEntry

RESULT_COLUMNS = [
    "Id", "Committee", "Name", "Age", "Department", "Parts", "PartsNumbers",
    "Total", "StageTotal", "Percent", "Grade", "Award", "Submitted", "SubmittedAt",
]


def _percent(total: Optional[float], stage_total: int) -> float:
    if not stage_total:
        return 0.0
    return round((total or 0) / stage_total * 100, 2)


def results_frame(
    contestants: Iterable[Contestant],
    committee_id: Optional[str] = None,
    submitted: Optional[bool] = None,
) -> pd.DataFrame:
    """
    Administrator results table, one row per contestant in store order.

    committee_id and submitted narrow the table the way the admin filters do;
    None means no filter.
    """
    rows = []
    for c in contestants:
        if committee_id is not None and c.committee_id != str(committee_id):
            continue
        if submitted is not None and c.submitted != submitted:
            continue
        stage_total = c.stage_config.stage_total
        rows.append(
            {
                "Id": c.id,
                "Committee": c.committee_id,
                "Name": c.name,
                "Age": c.age,
                "Department": c.department,
                "Parts": c.parts_count,
                "PartsNumbers": c.parts_numbers,
                "Total": c.total_score or 0.0,
                "StageTotal": stage_total,
                "Percent": _percent(c.total_score, stage_total),
                "Grade": c.grade,
                "Award": c.award,
                "Submitted": c.submitted,
                "SubmittedAt": c.submitted_at or "",
            }
        )
    return pd.DataFrame(rows, columns=RESULT_COLUMNS)


def rank_results(results: pd.DataFrame) -> pd.DataFrame:
    """
    Rank finalized contestants by percentage of their own stage total.

    Contestants with different stage sizes are compared on Percent, not Total.
    Ties keep the lower Id first.
    """
    ranked = results.loc[results["Submitted"].astype(bool)].sort_values(
        by=["Percent", "Id"],
        ascending=[False, True],
        kind="mergesort",
    ).reset_index(drop=True)
    ranked.insert(0, "Rank", range(1, len(ranked) + 1))
    return ranked


def grades_frame(entries: Iterable[GradeEntry]) -> pd.DataFrame:
    """Per-question marks for one contestant."""
    df = pd.DataFrame(
        [
            {
                "Question": int(e.question_number),
                "Memorization": e.memorization,
                "Performance": e.performance,
                "Tajweed": e.tajweed,
            }
            for e in entries
        ],
        columns=["Question", "Memorization", "Performance", "Tajweed"],
    )
    return df.sort_values(by="Question", kind="mergesort").reset_index(drop=True)
