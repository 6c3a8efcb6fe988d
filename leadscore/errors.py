from typing import Optional


class LeadScoreError(Exception):
    pass


class MalformedCaseError(LeadScoreError):
    def __init__(self, message: str, case_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.case_id = case_id


class CaseNotFoundError(LeadScoreError):
    def __init__(self, case_id: str) -> None:
        super().__init__(f"case not found: {case_id}")
        self.case_id = case_id


class RuleConfigError(LeadScoreError, ValueError):
    pass


class UnknownRuleError(RuleConfigError):
    def __init__(self, rule_id: str) -> None:
        super().__init__(f"unknown rule id: {rule_id}")
        self.rule_id = rule_id


class RuleEvaluationWarning(UserWarning):
    """Log category for non-fatal evaluation problems: unknown predicate or missing feature."""
