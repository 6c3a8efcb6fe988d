from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from .normalizer import parse_date


Category = Literal["demographic", "financial", "timeline", "documents", "engagement", "referral"]
Impact = Literal["positive", "neutral", "negative"]
Grade = Literal["A+", "A", "B+", "B", "C+", "C", "D"]
Priority = Literal["urgent", "high", "medium", "low"]


class ScoringRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str = ""
    category: Category
    weight: float = Field(ge=0, le=100)
    enabled: bool = True
    description: str = ""
    predicate: Optional[str] = None

    @property
    def predicate_name(self) -> str:
        return self.predicate or self.id


class RulesModel(BaseModel):
    rules: List[ScoringRule]


class RuleUpdate(BaseModel):
    weight: Optional[float] = None
    enabled: Optional[bool] = None


class CaseRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: Optional[str] = None
    total_fees: Optional[float] = Field(default=None, alias="totalFees")
    paid_amount: Optional[float] = Field(default=None, alias="paidAmount")
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    date_of_birth: Optional[str] = Field(default=None, alias="dateOfBirth")
    age: Optional[int] = None
    education_level: Optional[str] = Field(default=None, alias="educationLevel")
    ielts_score: Optional[float] = Field(default=None, alias="ieltsScore")
    toefl_score: Optional[float] = Field(default=None, alias="toeflScore")
    application_deadline: Optional[str] = Field(default=None, alias="applicationDeadline")
    response_time_hours: Optional[float] = Field(default=None, alias="responseTimeHours")
    documents_submitted: Optional[int] = Field(default=None, alias="documentsSubmitted")
    documents_required: Optional[int] = Field(default=None, alias="documentsRequired")
    referral_source: Optional[str] = Field(default=None, alias="referralSource")
    custom_fields: Dict[str, str] = Field(default_factory=dict, alias="customFields")

    @field_validator("created_at", "date_of_birth", "application_deadline", mode="before")
    @classmethod
    def _date_to_iso(cls, value: Any) -> Any:
        if isinstance(value, (date, datetime)):
            return parse_date(value)
        return value


class CaseFeatures(BaseModel):
    """Primitive values derived from one case record for a single scoring pass.

    ``None`` means the value is not available for this case. Rules treat an
    absent feature as a zero contribution; nothing here is ever guessed.
    """

    model_config = ConfigDict(frozen=True)

    case_id: str
    age: Optional[int] = None
    education_level: Optional[str] = None
    payment_ratio: Optional[float] = None
    language_score: Optional[float] = None
    toefl_score: Optional[float] = None
    days_until_deadline: Optional[int] = None
    response_time_hours: Optional[float] = None
    document_submission_rate: Optional[float] = None
    referral_class: Optional[str] = None


class ScoringFactorResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    rule_id: str
    category: Category
    factor_name: str
    weight: float
    score: float
    impact: Impact
    description: str = ""


class LeadScore(BaseModel):
    model_config = ConfigDict(frozen=True)

    case_id: str
    name: Optional[str] = None
    total_score: float
    grade: Grade
    priority: Priority
    factors: List[ScoringFactorResult] = Field(default_factory=list)
    conversion_probability: float
    recommended_actions: List[str] = Field(default_factory=list)
    computed_at: datetime


class BatchFailure(BaseModel):
    case_id: Optional[str] = None
    index: int
    error_type: str
    error: str


class BatchResult(BaseModel):
    scores: List[LeadScore] = Field(default_factory=list)
    failures: List[BatchFailure] = Field(default_factory=list)
    cancelled: bool = False


class BatchRequest(BaseModel):
    cases: Optional[List[Dict[str, Any]]] = None


class Summary(BaseModel):
    count: int
    avg_score: float
    high_quality: int
    conversion_ready: int
    by_priority: Dict[str, int] = Field(default_factory=dict)
