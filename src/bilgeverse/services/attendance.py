"""Attendance score shown to reviewers next to a weekly report.

Display-only: the score suggests a point value, the reviewer decides.
"""

from __future__ import annotations

import math
from typing import Iterable, Mapping, Optional

from bilgeverse.models.weekly_report import CriterionValue


def _round_half_up(value: float) -> int:
    # Matches the browser's Math.round; Python's round() is banker's rounding.
    return int(math.floor(value + 0.5))


def _answered(values: Iterable[object]) -> list[str]:
    out: list[str] = []
    for v in values:
        if v is None:
            continue
        s = v.value if isinstance(v, CriterionValue) else str(v)
        if s:
            out.append(s)
    return out


def attendance_score(
    fixed_criteria: Optional[Mapping[str, object]],
    variable_criteria: Optional[Mapping[str, object]],
) -> int:
    """Percentage of answered criteria marked YAPILDI, 0..100.

    YOKTU (no activity) still counts as answered. Nothing answered scores 0.
    """

    answered = _answered((fixed_criteria or {}).values()) + _answered((variable_criteria or {}).values())
    if not answered:
        return 0
    done = sum(1 for v in answered if v == CriterionValue.YAPILDI.value)
    return _round_half_up(100 * done / len(answered))


def suggested_points(score: int) -> int:
    return _round_half_up(score / 10)
