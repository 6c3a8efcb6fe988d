"""Scoring orchestration: case store -> features -> rules -> score store."""

import json
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union
from .config import EngineSettings, RuleStore
from .errors import CaseNotFoundError
from .features import extract, to_case_record
from .models import BatchFailure, BatchResult, CaseRecord, LeadScore, ScoringFactorResult, ScoringRule, Summary
from .recommendations import recommend
from .rules import evaluate
from .scoring import Adjustment, aggregate, hashed_adjustment
from .stores import EventSink, InMemoryCaseStore, InMemoryScoreStore


logger = logging.getLogger("leadscore.engine")

RESCORED_EVENT = "lead.rescored"

CaseInput = Union[CaseRecord, Mapping[str, Any]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ScoringEngine:
    def __init__(
        self,
        rule_store: RuleStore,
        case_store: Optional[InMemoryCaseStore] = None,
        score_store: Optional[InMemoryScoreStore] = None,
        event_sink: Optional[EventSink] = None,
        adjustment: Optional[Adjustment] = None,
        clock: Callable[[], datetime] = _utcnow,
        max_workers: int = 4,
    ) -> None:
        self.rule_store = rule_store
        self.cases = case_store if case_store is not None else InMemoryCaseStore()
        self.scores = score_store if score_store is not None else InMemoryScoreStore()
        self.event_sink = event_sink
        self.adjustment = adjustment or hashed_adjustment(10.0)
        self.clock = clock
        self.max_workers = max_workers

    @classmethod
    def from_settings(cls, settings: EngineSettings, **kwargs: Any) -> "ScoringEngine":
        kwargs.setdefault("adjustment", hashed_adjustment(settings.exploration_max))
        kwargs.setdefault("max_workers", settings.max_workers)
        if settings.cases_path and "case_store" not in kwargs:
            kwargs["case_store"] = InMemoryCaseStore.from_csv(settings.cases_path)
        return cls(RuleStore(settings.rules_path), **kwargs)

    def rules(self) -> Tuple[ScoringRule, ...]:
        return self.rule_store.load()

    def compute(self, raw: CaseInput, rules: Sequence[ScoringRule]) -> LeadScore:
        """Run the pipeline for one record without touching any store."""
        record = to_case_record(raw)
        now = self.clock()
        features = extract(record, as_of=now)
        results: List[ScoringFactorResult] = []
        for rule in rules:
            result = evaluate(rule, features)
            if result is not None:
                results.append(result)
        agg = aggregate(results, self.adjustment(features.case_id))
        return LeadScore(
            case_id=features.case_id,
            name=record.name,
            total_score=agg.total_score,
            grade=agg.grade,
            priority=agg.priority,
            factors=results,
            conversion_probability=agg.conversion_probability,
            recommended_actions=recommend(results, agg.total_score),
            computed_at=now,
        )

    def _commit(self, score: LeadScore) -> LeadScore:
        previous = self.scores.put(score)
        if self.event_sink is not None:
            previous_priority = previous.priority if previous is not None else None
            self.event_sink({
                "type": RESCORED_EVENT,
                "case_id": score.case_id,
                "total_score": score.total_score,
                "grade": score.grade,
                "priority": score.priority,
                "previous_priority": previous_priority,
                "priority_changed": previous_priority != score.priority,
                "computed_at": score.computed_at.isoformat(),
            })
        return score

    def score_record(self, raw: CaseInput, rules: Optional[Sequence[ScoringRule]] = None) -> LeadScore:
        if rules is None:
            rules = self.rules()
        return self._commit(self.compute(raw, rules))

    def score_one(self, case_id: str) -> LeadScore:
        raw = self.cases.get(case_id)
        if raw is None:
            raise CaseNotFoundError(case_id)
        score = self.score_record(raw)
        logger.info(json.dumps({"event": "case_scored", "case_id": score.case_id, "total_score": round(score.total_score, 2), "grade": score.grade, "priority": score.priority}))
        return score

    def score_all(self, cases: Optional[Iterable[CaseInput]] = None, cancel_event: Optional[threading.Event] = None) -> BatchResult:
        start = time.time()
        items = list(cases) if cases is not None else self.cases.all()
        rules = self.rules()
        slots: List[Optional[LeadScore]] = [None] * len(items)
        failures: List[BatchFailure] = []
        skipped = threading.Event()

        def run(index: int, raw: CaseInput) -> None:
            if cancel_event is not None and cancel_event.is_set():
                skipped.set()
                return
            try:
                slots[index] = self.score_record(raw, rules)
            except Exception as e:
                failures.append(BatchFailure(
                    case_id=getattr(e, "case_id", None) or _case_id_of(raw),
                    index=index,
                    error_type=type(e).__name__,
                    error=str(e),
                ))

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [executor.submit(run, i, raw) for i, raw in enumerate(items)]
            for future in futures:
                future.result()

        failures.sort(key=lambda f: f.index)
        result = BatchResult(scores=[s for s in slots if s is not None], failures=failures, cancelled=skipped.is_set())
        logger.info(json.dumps({
            "event": "batch_scored",
            "count_in": len(items),
            "scored": len(result.scores),
            "failed": len(result.failures),
            "cancelled": result.cancelled,
            "latency_ms": int((time.time() - start) * 1000),
        }))
        for failure in failures:
            logger.warning(json.dumps({"event": "case_failed", **failure.model_dump()}))
        return result

    def update_rule(self, rule_id: str, weight: Optional[float] = None, enabled: Optional[bool] = None) -> ScoringRule:
        rule = self.rule_store.update_rule(rule_id, weight=weight, enabled=enabled)
        logger.info(json.dumps({"event": "rule_updated", "rule_id": rule.id, "weight": rule.weight, "enabled": rule.enabled}))
        return rule

    def get_score(self, case_id: str) -> Optional[LeadScore]:
        return self.scores.get(case_id)


def _case_id_of(raw: Any) -> Optional[str]:
    if isinstance(raw, CaseRecord):
        return raw.id
    if isinstance(raw, Mapping) and raw.get("id") is not None:
        return str(raw.get("id"))
    return None


SORT_KEYS: Dict[str, Callable[[LeadScore], Any]] = {
    "score": lambda s: s.total_score,
    "probability": lambda s: s.conversion_probability,
    "updated": lambda s: s.computed_at,
}


def rank_scores(
    scores: Iterable[LeadScore],
    sort_by: str = "score",
    grade: Optional[str] = None,
    priority: Optional[str] = None,
    search: Optional[str] = None,
) -> List[LeadScore]:
    if sort_by not in SORT_KEYS:
        raise ValueError(f"sort_by must be one of {sorted(SORT_KEYS)}")
    needle = search.lower() if search else None
    selected = []
    for s in scores:
        if grade and s.grade != grade:
            continue
        if priority and s.priority != priority:
            continue
        if needle and needle not in (s.name or "").lower() and needle not in s.case_id.lower():
            continue
        selected.append(s)
    return sorted(selected, key=SORT_KEYS[sort_by], reverse=True)


def summarize(scores: Sequence[LeadScore]) -> Summary:
    count = len(scores)
    avg_score = round(sum(s.total_score for s in scores) / count, 2) if count else 0.0
    by_priority: Dict[str, int] = {"urgent": 0, "high": 0, "medium": 0, "low": 0}
    for s in scores:
        by_priority[s.priority] += 1
    return Summary(
        count=count,
        avg_score=avg_score,
        high_quality=sum(1 for s in scores if s.total_score >= 70),
        conversion_ready=sum(1 for s in scores if s.conversion_probability >= 80),
        by_priority=by_priority,
    )
