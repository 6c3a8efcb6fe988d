from typing import List, Sequence
from .models import ScoringFactorResult


MAX_ACTIONS = 4

BAND_ACTIONS = [
    (80.0, ["Priority lead - Schedule immediate consultation", "Fast-track documentation process"]),
    (60.0, ["Strong candidate - Follow up within 24 hours", "Provide detailed timeline and next steps"]),
    (0.0, ["Nurture lead with educational content", "Address documentation gaps"]),
]

REMEDIATIONS = {
    "financial": "Discuss payment plan options",
    "documents": "Provide document preparation assistance",
    "timeline": "Review timeline expectations",
    "engagement": "Improve communication frequency",
}


def band_actions(total_score: float) -> List[str]:
    for floor, actions in BAND_ACTIONS:
        if total_score >= floor:
            return list(actions)
    return list(BAND_ACTIONS[-1][1])


def underperforming(result: ScoringFactorResult) -> bool:
    return result.impact == "negative" or result.score < result.weight * 0.5


def recommend(results: Sequence[ScoringFactorResult], total_score: float) -> List[str]:
    candidates = band_actions(total_score)
    for r in results:
        if underperforming(r) and r.category in REMEDIATIONS:
            candidates.append(REMEDIATIONS[r.category])
    actions: List[str] = []
    for action in candidates:
        if action not in actions:
            actions.append(action)
    return actions[:MAX_ACTIONS]
