import json
import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple
import pandas as pd
from .models import LeadScore


event_logger = logging.getLogger("leadscore.events")

CaseData = Mapping[str, Any]
EventSink = Callable[[Dict[str, Any]], None]


class InMemoryCaseStore:
    def __init__(self, cases: Optional[Iterable[CaseData]] = None) -> None:
        self._cases: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()
        for case in cases or []:
            self.put(case)

    def put(self, case: CaseData) -> None:
        case_id = case.get("id")
        if case_id is None or not str(case_id).strip():
            raise ValueError("case record needs an id to be stored")
        with self._lock:
            self._cases[str(case_id).strip()] = dict(case)

    def get(self, case_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            case = self._cases.get(case_id)
            return dict(case) if case is not None else None

    def all(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [dict(c) for c in self._cases.values()]

    def __len__(self) -> int:
        return len(self._cases)

    def load_frame(self, df: pd.DataFrame, column_map: Optional[Dict[str, str]] = None) -> Tuple[int, List[int]]:
        """Store every row of ``df`` that carries an id.

        Returns the number of rows stored and the positions of rows skipped
        for having no id.
        """
        loaded = 0
        rejected: List[int] = []
        for index, row in enumerate(_coerce_case_rows(df, column_map)):
            if not row.get("id"):
                rejected.append(index)
                continue
            self.put(row)
            loaded += 1
        return loaded, rejected

    @classmethod
    def from_frame(cls, df: pd.DataFrame, column_map: Optional[Dict[str, str]] = None) -> "InMemoryCaseStore":
        store = cls()
        store.load_frame(df, column_map)
        return store

    @classmethod
    def from_csv(cls, path_or_buffer: Any, column_map: Optional[Dict[str, str]] = None) -> "InMemoryCaseStore":
        df = pd.read_csv(path_or_buffer, dtype=str)
        return cls.from_frame(df, column_map)


def _coerce_case_rows(df: pd.DataFrame, column_map: Optional[Dict[str, str]] = None) -> List[Dict[str, Any]]:
    rename = {v: k for k, v in (column_map or {}).items()}
    rows: List[Dict[str, Any]] = []
    for _, row in df.iterrows():
        payload: Dict[str, Any] = {}
        for col in df.columns:
            value = row.get(col)
            if pd.isna(value):
                continue
            payload[rename.get(col, col)] = str(value).strip()
        rows.append(payload)
    return rows


class InMemoryScoreStore:
    """Latest ``LeadScore`` per case; a put replaces the previous score."""

    def __init__(self) -> None:
        self._scores: Dict[str, LeadScore] = {}
        self._lock = threading.Lock()

    def put(self, score: LeadScore) -> Optional[LeadScore]:
        with self._lock:
            previous = self._scores.get(score.case_id)
            self._scores[score.case_id] = score
            return previous

    def get(self, case_id: str) -> Optional[LeadScore]:
        with self._lock:
            return self._scores.get(case_id)

    def all(self) -> List[LeadScore]:
        with self._lock:
            return list(self._scores.values())


def log_event(event: Dict[str, Any]) -> None:
    event_logger.info(json.dumps(event, default=str))


class EventLog:
    def __init__(self) -> None:
        self.events: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def __call__(self, event: Dict[str, Any]) -> None:
        with self._lock:
            self.events.append(event)


def scores_frame(scores: Iterable[LeadScore]) -> pd.DataFrame:
    rows = []
    for s in scores:
        rows.append({
            "case_id": s.case_id,
            "name": s.name,
            "total_score": round(s.total_score, 2),
            "grade": s.grade,
            "priority": s.priority,
            "conversion_probability": round(s.conversion_probability, 2),
            "recommended_actions": " | ".join(s.recommended_actions),
            "computed_at": s.computed_at.isoformat(),
        })
    columns = ["case_id", "name", "total_score", "grade", "priority", "conversion_probability", "recommended_actions", "computed_at"]
    return pd.DataFrame(rows, columns=columns)
