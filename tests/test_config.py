import json
import pytest
from leadscore.config import DEFAULT_RULES, RuleStore, load_settings, validate_rules
from leadscore.errors import RuleConfigError


def test_rules_file_seeded_with_defaults(tmp_path):
    path = tmp_path / "nested" / "rules.json"
    store = RuleStore(str(path))
    rules = store.load()
    assert path.exists()
    assert [r.id for r in rules] == [r["id"] for r in DEFAULT_RULES["rules"]]
    assert sum(r.weight for r in rules if r.enabled) == 100


def test_update_persists_to_disk(rule_store):
    rule_store.update_rule("referral_source", weight=12, enabled=False)
    with open(rule_store.path, encoding="utf-8") as f:
        data = json.load(f)
    saved = {r["id"]: r for r in data["rules"]}
    assert saved["referral_source"]["weight"] == 12
    assert saved["referral_source"]["enabled"] is False
    reopened = RuleStore(rule_store.path)
    assert {r.id: r.enabled for r in reopened.load()}["referral_source"] is False


def test_external_edit_is_picked_up(rule_store):
    rule_store.load()
    data = {"rules": [{"id": "age_optimal", "category": "demographic", "weight": 40}]}
    with open(rule_store.path, "w", encoding="utf-8") as f:
        json.dump(data, f)
    fresh = RuleStore(rule_store.path)
    assert [r.id for r in fresh.load()] == ["age_optimal"]


def test_duplicate_rule_ids_rejected(rule_store):
    before = rule_store.load()
    with pytest.raises(RuleConfigError):
        rule_store.save([
            {"id": "age_optimal", "category": "demographic", "weight": 10},
            {"id": "age_optimal", "category": "demographic", "weight": 20},
        ])
    with pytest.raises(RuleConfigError):
        rule_store.add_rule({"id": "financial_capacity", "category": "financial", "weight": 5})
    assert rule_store.load() == before


def test_invalid_rules_rejected():
    with pytest.raises(RuleConfigError):
        validate_rules([{"id": "x", "category": "astrology", "weight": 10}])
    with pytest.raises(RuleConfigError):
        validate_rules([{"id": "x", "category": "financial", "weight": 101}])
    with pytest.raises(RuleConfigError):
        validate_rules({"not_rules": []})


def test_rules_are_immutable(rule_store):
    rule = rule_store.load()[0]
    with pytest.raises(Exception):
        rule.weight = 99


def test_settings_from_env():
    settings = load_settings({
        "LEADSCORE_RULES_PATH": "/tmp/r.json",
        "LEADSCORE_MAX_WORKERS": "8",
        "LEADSCORE_EXPLORATION_MAX": "0",
        "LEADSCORE_CASES_PATH": "/tmp/cases.csv",
    })
    assert settings.rules_path == "/tmp/r.json"
    assert settings.max_workers == 8
    assert settings.exploration_max == 0.0
    assert settings.cases_path == "/tmp/cases.csv"
    assert load_settings({}).max_workers == 4
    assert load_settings({}).cases_path is None
