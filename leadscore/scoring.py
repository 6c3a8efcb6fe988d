import hashlib
from typing import Callable, NamedTuple, Sequence
from .models import ScoringFactorResult


GRADE_BANDS = [(90.0, "A+"), (80.0, "A"), (70.0, "B+"), (60.0, "B"), (50.0, "C+"), (40.0, "C")]
PRIORITY_BANDS = [(80.0, "urgent"), (65.0, "high"), (45.0, "medium")]

Adjustment = Callable[[str], float]


class Aggregate(NamedTuple):
    total_score: float
    grade: str
    priority: str
    conversion_probability: float


def grade_for(score: float) -> str:
    for floor, grade in GRADE_BANDS:
        if score >= floor:
            return grade
    return "D"


def priority_for(score: float) -> str:
    for floor, priority in PRIORITY_BANDS:
        if score >= floor:
            return priority
    return "low"


def normalized_score(results: Sequence[ScoringFactorResult]) -> float:
    raw_total = sum(r.score for r in results)
    max_possible = sum(r.weight for r in results)
    if max_possible <= 0:
        return 0.0
    return raw_total * 100.0 / max_possible


def aggregate(results: Sequence[ScoringFactorResult], adjustment: float = 0.0) -> Aggregate:
    total = normalized_score(results)
    probability = min(100.0, max(0.0, total + adjustment))
    return Aggregate(total, grade_for(total), priority_for(total), probability)


def hashed_adjustment(exploration_max: float) -> Adjustment:
    """Conversion-probability nudge in ``[0, exploration_max)``.

    The value is derived from the case id, so a case always gets the same
    nudge. It is an exploratory estimate layered on the score, not a
    calibrated probability.
    """

    def adjust(case_id: str) -> float:
        if exploration_max <= 0:
            return 0.0
        h = hashlib.sha256(case_id.encode()).hexdigest()
        bucket = int(h[:8], 16) / float(0x100000000)
        return bucket * exploration_max

    return adjust


def no_adjustment(case_id: str) -> float:
    return 0.0
