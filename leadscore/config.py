import json
import os
import threading
from typing import Any, Dict, List, Optional, Tuple
from pydantic import BaseModel, Field, ValidationError
from .errors import RuleConfigError, UnknownRuleError
from .models import RulesModel, ScoringRule


DEFAULT_RULES: Dict[str, Any] = {
    "rules": [
        {
            "id": "age_optimal",
            "name": "Optimal Age Range",
            "category": "demographic",
            "weight": 15,
            "enabled": True,
            "description": "Candidates in optimal age range for immigration",
        },
        {
            "id": "education_level",
            "name": "Education Level",
            "category": "demographic",
            "weight": 20,
            "enabled": True,
            "description": "Higher education increases approval chances",
        },
        {
            "id": "financial_capacity",
            "name": "Financial Capacity",
            "category": "financial",
            "weight": 25,
            "enabled": True,
            "description": "Strong financial position indicates serious intent",
        },
        {
            "id": "language_proficiency",
            "name": "Language Test Score",
            "category": "documents",
            "weight": 15,
            "enabled": True,
            "description": "High language scores improve visa success rate",
        },
        {
            "id": "timeline_urgency",
            "name": "Application Timeline",
            "category": "timeline",
            "weight": 10,
            "enabled": True,
            "description": "Optimal timeline for thorough preparation",
        },
        {
            "id": "engagement_level",
            "name": "Client Engagement",
            "category": "engagement",
            "weight": 10,
            "enabled": True,
            "description": "Highly engaged clients have better outcomes",
        },
        {
            "id": "referral_source",
            "name": "Referral Quality",
            "category": "referral",
            "weight": 5,
            "enabled": True,
            "description": "Quality referrals indicate higher conversion probability",
        },
    ]
}


class EngineSettings(BaseModel):
    rules_path: str = Field(default_factory=lambda: os.path.join(os.path.dirname(__file__), "rules.json"))
    max_workers: int = Field(default=4, ge=1)
    exploration_max: float = Field(default=10.0, ge=0, le=100)
    log_level: str = "INFO"
    cases_path: Optional[str] = None


def load_settings(env: Optional[Dict[str, str]] = None) -> EngineSettings:
    env = os.environ if env is None else env
    data: Dict[str, Any] = {}
    mapping = {
        "LEADSCORE_RULES_PATH": "rules_path",
        "LEADSCORE_MAX_WORKERS": "max_workers",
        "LEADSCORE_EXPLORATION_MAX": "exploration_max",
        "LEADSCORE_LOG_LEVEL": "log_level",
        "LEADSCORE_CASES_PATH": "cases_path",
    }
    for var, key in mapping.items():
        if env.get(var):
            data[key] = env[var]
    return EngineSettings.model_validate(data)


def validate_rules(data: Any) -> RulesModel:
    if isinstance(data, list):
        data = {"rules": data}
    try:
        model = RulesModel.model_validate(data)
    except ValidationError as e:
        raise RuleConfigError(str(e)) from e
    seen = set()
    for rule in model.rules:
        if rule.id in seen:
            raise RuleConfigError(f"duplicate rule id: {rule.id}")
        seen.add(rule.id)
    return model


class RuleStore:
    """JSON-file backed rule configuration.

    Reads are cached by file mtime. Every write is validated first, so the
    file never holds a rule set that failed validation.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self._lock = threading.RLock()
        self._cache: Optional[Tuple[float, Tuple[ScoringRule, ...]]] = None

    def ensure_rules_file(self) -> None:
        if not os.path.exists(self.path):
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(DEFAULT_RULES, f, indent=2)

    def load(self) -> Tuple[ScoringRule, ...]:
        with self._lock:
            self.ensure_rules_file()
            mtime = os.path.getmtime(self.path)
            if self._cache and self._cache[0] == mtime:
                return self._cache[1]
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            rules = tuple(validate_rules(data).rules)
            self._cache = (mtime, rules)
            return rules

    def _write(self, model: RulesModel) -> Tuple[ScoringRule, ...]:
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(model.model_dump(), f, indent=2)
        rules = tuple(model.rules)
        self._cache = (os.path.getmtime(self.path), rules)
        return rules

    def save(self, data: Any) -> Tuple[ScoringRule, ...]:
        model = validate_rules(data)
        with self._lock:
            return self._write(model)

    def update_rule(self, rule_id: str, weight: Optional[float] = None, enabled: Optional[bool] = None) -> ScoringRule:
        with self._lock:
            current = self.load()
            rules: List[ScoringRule] = []
            updated: Optional[ScoringRule] = None
            for rule in current:
                if rule.id == rule_id:
                    changes: Dict[str, Any] = {}
                    if weight is not None:
                        changes["weight"] = weight
                    if enabled is not None:
                        changes["enabled"] = enabled
                    try:
                        updated = ScoringRule.model_validate({**rule.model_dump(), **changes})
                    except ValidationError as e:
                        raise RuleConfigError(f"invalid update for rule {rule_id}: {e}") from e
                    rule = updated
                rules.append(rule)
            if updated is None:
                raise UnknownRuleError(rule_id)
            self._write(RulesModel(rules=rules))
            return updated

    def add_rule(self, data: Dict[str, Any]) -> ScoringRule:
        with self._lock:
            current = self.load()
            model = validate_rules({"rules": [r.model_dump() for r in current] + [data]})
            self._write(model)
        return model.rules[-1]
