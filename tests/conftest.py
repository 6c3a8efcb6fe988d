from datetime import datetime, timezone
import pytest
from leadscore.config import RuleStore
from leadscore.engine import ScoringEngine
from leadscore.scoring import no_adjustment
from leadscore.stores import EventLog, InMemoryCaseStore


FIXED_NOW = datetime(2025, 6, 1, 9, 30, tzinfo=timezone.utc)


def strong_case(case_id="c1"):
    return {
        "id": case_id,
        "name": "Priya Sharma",
        "totalFees": 8500,
        "paidAmount": 6000,
        "createdAt": "2025-01-10",
        "dateOfBirth": "1994-03-15",
        "educationLevel": "Masters",
        "ieltsScore": 7.5,
        "applicationDeadline": "2025-09-29",
        "responseTimeHours": 6,
        "documentsSubmitted": 9,
        "documentsRequired": 10,
        "referralSource": "existing client",
    }


def weak_case(case_id="c2"):
    return {
        "id": case_id,
        "name": "Tom Baker",
        "totalFees": 10000,
        "paidAmount": 1000,
        "createdAt": "2025-02-01",
        "age": 50,
        "educationLevel": "High School",
        "ieltsScore": 5.5,
        "applicationDeadline": "2025-05-01",
        "responseTimeHours": 96,
        "referralSource": "facebook",
    }


@pytest.fixture
def rule_store(tmp_path):
    return RuleStore(str(tmp_path / "rules.json"))


@pytest.fixture
def events():
    return EventLog()


@pytest.fixture
def engine(rule_store, events):
    cases = InMemoryCaseStore([strong_case(), weak_case()])
    return ScoringEngine(
        rule_store,
        case_store=cases,
        event_sink=events,
        adjustment=no_adjustment,
        clock=lambda: FIXED_NOW,
        max_workers=4,
    )
