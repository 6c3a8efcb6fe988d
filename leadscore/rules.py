"""Rule predicates and single-rule evaluation.

Each predicate is a pure function of ``CaseFeatures`` returning the share of
the rule's weight earned (0..1) and an impact tag, using thresholds that
belong to that predicate alone. Predicates are looked up by name, so a
``ScoringRule`` references one through ``predicate`` (defaulting to its id).
"""

import json
import logging
from typing import Callable, Dict, Optional, Tuple
from .errors import RuleEvaluationWarning
from .models import CaseFeatures, ScoringFactorResult, ScoringRule


logger = logging.getLogger("leadscore.rules")

Outcome = Tuple[float, str]
Predicate = Callable[[CaseFeatures], Optional[Outcome]]

PREDICATES: Dict[str, Predicate] = {}


def predicate(name: str) -> Callable[[Predicate], Predicate]:
    def register(fn: Predicate) -> Predicate:
        PREDICATES[name] = fn
        return fn
    return register


@predicate("age_optimal")
def age_optimal(f: CaseFeatures) -> Optional[Outcome]:
    if f.age is None:
        return None
    if 25 <= f.age <= 35:
        return 1.0, "positive"
    return 0.5, "neutral"


EDUCATION_RATIOS = {"phd": 1.0, "masters": 0.8}


@predicate("education_level")
def education_level(f: CaseFeatures) -> Optional[Outcome]:
    if f.education_level is None:
        return None
    ratio = EDUCATION_RATIOS.get(f.education_level, 0.6)
    return ratio, "positive" if ratio >= 0.8 else "neutral"


@predicate("financial_capacity")
def financial_capacity(f: CaseFeatures) -> Optional[Outcome]:
    if f.payment_ratio is None:
        return None
    if f.payment_ratio >= 0.5:
        return 1.0, "positive"
    if f.payment_ratio >= 0.3:
        return 0.7, "positive"
    return 0.3, "negative"


@predicate("language_proficiency")
def language_proficiency(f: CaseFeatures) -> Optional[Outcome]:
    if f.language_score is None and f.toefl_score is None:
        return None
    ielts_ok = f.language_score is not None and f.language_score >= 7.0
    toefl_ok = f.toefl_score is not None and f.toefl_score >= 100
    if ielts_ok or toefl_ok:
        return 1.0, "positive"
    return 0.6, "neutral"


@predicate("timeline_urgency")
def timeline_urgency(f: CaseFeatures) -> Optional[Outcome]:
    if f.days_until_deadline is None:
        return None
    if f.days_until_deadline < 0:
        return 0.0, "negative"
    if 90 <= f.days_until_deadline <= 180:
        return 1.0, "positive"
    return 0.7, "neutral"


@predicate("engagement_level")
def engagement_level(f: CaseFeatures) -> Optional[Outcome]:
    hours, rate = f.response_time_hours, f.document_submission_rate
    if hours is None and rate is None:
        return None
    fast = hours is not None and hours <= 24
    thorough = rate is not None and rate >= 0.8
    if fast and thorough:
        return 1.0, "positive"
    if (hours is not None and hours > 72) or (rate is not None and rate < 0.3):
        return 0.5, "negative"
    return 0.5, "neutral"


@predicate("referral_source")
def referral_source(f: CaseFeatures) -> Optional[Outcome]:
    if f.referral_class is None:
        return None
    if f.referral_class in ("existing_client", "agent"):
        return 1.0, "positive"
    return 0.3, "neutral"


def _warn(event: str, rule: ScoringRule, case_id: str) -> None:
    logger.warning(json.dumps({"event": event, "category": RuleEvaluationWarning.__name__, "rule_id": rule.id, "predicate": rule.predicate_name, "case_id": case_id}))


def evaluate(rule: ScoringRule, features: CaseFeatures) -> Optional[ScoringFactorResult]:
    if not rule.enabled:
        return None
    fn = PREDICATES.get(rule.predicate_name)
    if fn is None:
        _warn("unknown_predicate", rule, features.case_id)
        return None
    outcome = fn(features)
    if outcome is None:
        _warn("feature_missing", rule, features.case_id)
        ratio, impact = 0.0, "neutral"
    else:
        ratio, impact = outcome
    score = min(rule.weight, max(0.0, rule.weight * ratio))
    return ScoringFactorResult(
        rule_id=rule.id,
        category=rule.category,
        factor_name=rule.name or rule.id,
        weight=rule.weight,
        score=score,
        impact=impact,
        description=rule.description,
    )
