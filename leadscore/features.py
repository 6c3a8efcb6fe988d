"""Feature extraction: case record -> primitive values consumed by rules."""

from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional, Union
from pydantic import ValidationError
from .errors import MalformedCaseError
from .models import CaseFeatures, CaseRecord
from .normalizer import _clean_str, camel_to_snake, normalize_education, normalize_referral, to_date, to_float


_CORE_KEYS = set()
for _name, _field in CaseRecord.model_fields.items():
    _CORE_KEYS.add(_name)
    if _field.alias:
        _CORE_KEYS.add(_field.alias)


def to_case_record(raw: Union[CaseRecord, Mapping[str, Any]]) -> CaseRecord:
    if isinstance(raw, CaseRecord):
        record = raw
    elif isinstance(raw, Mapping):
        case_id = _clean_str(raw.get("id"))
        if case_id is None:
            raise MalformedCaseError("case record has no id")
        payload: Dict[str, Any] = {}
        custom: Dict[str, str] = {}
        for key, value in raw.items():
            if key in ("custom_fields", "customFields"):
                for ck, cv in (value or {}).items():
                    if cv is not None:
                        custom[str(ck)] = str(cv)
            elif key in _CORE_KEYS:
                payload[key] = value
            elif value is not None:
                custom[str(key)] = str(value)
        payload["id"] = case_id
        payload["custom_fields"] = custom
        try:
            record = CaseRecord.model_validate(payload)
        except ValidationError as e:
            fields = ",".join(str(err["loc"][0]) for err in e.errors() if err.get("loc"))
            raise MalformedCaseError(f"case {case_id} has invalid fields: {fields}", case_id=case_id) from e
    else:
        raise MalformedCaseError(f"case record must be a mapping, got {type(raw).__name__}")
    if not record.id.strip():
        raise MalformedCaseError("case record has a blank id")
    return record


def _lookup(record: CaseRecord, name: str) -> Optional[Any]:
    value = getattr(record, name)
    if value is not None:
        return value
    for key, raw in record.custom_fields.items():
        if camel_to_snake(key) == name:
            return raw
    return None


def _age(record: CaseRecord, as_of: date) -> Optional[int]:
    explicit = to_float(_lookup(record, "age"))
    if explicit is not None:
        return int(explicit)
    born = to_date(_lookup(record, "date_of_birth"))
    if born is None or born > as_of:
        return None
    years = as_of.year - born.year
    if (as_of.month, as_of.day) < (born.month, born.day):
        years -= 1
    return years


def _payment_ratio(record: CaseRecord) -> Optional[float]:
    total = to_float(_lookup(record, "total_fees"))
    paid = to_float(_lookup(record, "paid_amount"))
    if total is None or paid is None or total <= 0:
        return None
    return max(0.0, paid / total)


def _days_until(record: CaseRecord, as_of: date) -> Optional[int]:
    deadline = to_date(_lookup(record, "application_deadline"))
    if deadline is None:
        return None
    return (deadline - as_of).days


def _submission_rate(record: CaseRecord) -> Optional[float]:
    required = to_float(_lookup(record, "documents_required"))
    submitted = to_float(_lookup(record, "documents_submitted"))
    if not required or required <= 0:
        return None
    submitted = submitted or 0.0
    return min(1.0, max(0.0, submitted / required))


def extract(raw: Union[CaseRecord, Mapping[str, Any]], as_of: Optional[Union[date, datetime]] = None) -> CaseFeatures:
    record = to_case_record(raw)
    if as_of is None:
        as_of = date.today()
    elif isinstance(as_of, datetime):
        as_of = as_of.date()
    response = to_float(_lookup(record, "response_time_hours"))
    return CaseFeatures(
        case_id=record.id.strip(),
        age=_age(record, as_of),
        education_level=normalize_education(_lookup(record, "education_level")),
        payment_ratio=_payment_ratio(record),
        language_score=to_float(_lookup(record, "ielts_score")),
        toefl_score=to_float(_lookup(record, "toefl_score")),
        days_until_deadline=_days_until(record, as_of),
        response_time_hours=max(0.0, response) if response is not None else None,
        document_submission_rate=_submission_rate(record),
        referral_class=normalize_referral(_lookup(record, "referral_source")),
    )
