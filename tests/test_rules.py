import warnings
import pytest
from conftest import FIXED_NOW
from leadscore.features import extract
from leadscore.models import CaseFeatures, ScoringRule
from leadscore.rules import PREDICATES, evaluate


def rule(rule_id, category, weight, **kw):
    return ScoringRule(id=rule_id, name=rule_id, category=category, weight=weight, **kw)


def features(**kw):
    return CaseFeatures(case_id="t", **kw)


def test_financial_capacity_example():
    f = extract({"id": "fin", "paidAmount": 6000, "totalFees": 8500}, as_of=FIXED_NOW)
    r = evaluate(rule("financial_capacity", "financial", 25), f)
    assert r.score == 25
    assert r.impact == "positive"


def test_financial_capacity_bands():
    fin = rule("financial_capacity", "financial", 20)
    assert evaluate(fin, features(payment_ratio=0.35)).score == pytest.approx(14.0)
    assert evaluate(fin, features(payment_ratio=0.35)).impact == "positive"
    low = evaluate(fin, features(payment_ratio=0.1))
    assert low.score == pytest.approx(6.0)
    assert low.impact == "negative"


def test_age_optimal():
    age = rule("age_optimal", "demographic", 15)
    assert evaluate(age, features(age=25)).score == 15
    assert evaluate(age, features(age=35)).impact == "positive"
    outside = evaluate(age, features(age=36))
    assert outside.score == 7.5
    assert outside.impact == "neutral"


def test_education_level():
    edu = rule("education_level", "demographic", 20)
    assert evaluate(edu, features(education_level="phd")).score == 20
    masters = evaluate(edu, features(education_level="masters"))
    assert masters.score == pytest.approx(16.0)
    assert masters.impact == "positive"
    assert evaluate(edu, features(education_level="bachelors")).impact == "neutral"
    assert evaluate(edu, features(education_level="bachelors")).score == pytest.approx(12.0)
    assert evaluate(edu, features(education_level="secondary")).score == pytest.approx(12.0)
    assert evaluate(edu, features(education_level="other")).score == pytest.approx(12.0)


def test_language_proficiency_ielts_or_toefl():
    lang = rule("language_proficiency", "documents", 15)
    assert evaluate(lang, features(language_score=7.0)).score == 15
    assert evaluate(lang, features(language_score=6.0, toefl_score=105)).score == 15
    assert evaluate(lang, features(language_score=6.0)).score == pytest.approx(9.0)


def test_timeline_urgency():
    tl = rule("timeline_urgency", "timeline", 10)
    assert evaluate(tl, features(days_until_deadline=90)).score == 10
    assert evaluate(tl, features(days_until_deadline=180)).impact == "positive"
    assert evaluate(tl, features(days_until_deadline=30)).score == pytest.approx(7.0)
    passed = evaluate(tl, features(days_until_deadline=-1))
    assert passed.score == 0
    assert passed.impact == "negative"


def test_engagement_level():
    eng = rule("engagement_level", "engagement", 10)
    assert evaluate(eng, features(response_time_hours=12, document_submission_rate=0.9)).impact == "positive"
    assert evaluate(eng, features(response_time_hours=30, document_submission_rate=0.9)).impact == "neutral"
    slow = evaluate(eng, features(response_time_hours=100))
    assert slow.score == 5
    assert slow.impact == "negative"


def test_referral_source():
    ref = rule("referral_source", "referral", 5)
    assert evaluate(ref, features(referral_class="agent")).score == 5
    assert evaluate(ref, features(referral_class="website")).score == pytest.approx(1.5)


def test_disabled_rule_is_skipped():
    assert evaluate(rule("age_optimal", "demographic", 15, enabled=False), features(age=30)) is None


def test_missing_feature_contributes_zero(caplog):
    r = evaluate(rule("language_proficiency", "documents", 15), features())
    assert r.score == 0
    assert r.weight == 15
    assert r.impact == "neutral"
    assert "feature_missing" in caplog.text
    assert "RuleEvaluationWarning" in caplog.text


def test_unknown_predicate_is_a_logged_noop(caplog):
    r = evaluate(rule("visa_history", "documents", 10), features(age=30))
    assert r is None
    assert "unknown_predicate" in caplog.text


def test_shared_predicate():
    deposit = rule("deposit_paid", "financial", 10, predicate="financial_capacity")
    r = evaluate(deposit, features(payment_ratio=0.9))
    assert r.rule_id == "deposit_paid"
    assert r.score == 10


def test_every_default_rule_has_a_predicate():
    from leadscore.config import DEFAULT_RULES
    for data in DEFAULT_RULES["rules"]:
        assert data["id"] in PREDICATES


def test_missing_feature_survives_warnings_as_errors():
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        r = evaluate(rule("timeline_urgency", "timeline", 10), features())
    assert r.score == 0
