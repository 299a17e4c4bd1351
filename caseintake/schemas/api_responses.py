"""
API request/response schemas for the lead, policy test and ingestion endpoints.
"""
from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, Field


class QualificationRunResponse(BaseModel):
    lead_id: str
    score: int
    disposition: str
    reasons: list[str] = Field(default_factory=list)
    lead_status: str


class IntakeDetail(BaseModel):
    id: str
    lead_id: str
    completion_status: str
    answers: dict[str, Any] = Field(default_factory=dict)
    completed_at: Optional[datetime] = None


class PolicyTestCase(BaseModel):
    """One replayable scorer case. `input` is a LeadSnapshot-shaped dict."""
    id: Optional[str] = None
    name: Optional[str] = None
    input: dict[str, Any] = Field(default_factory=dict)
    expectedDisposition: str
    expectedScore: Optional[int] = None
    expectedMinScore: Optional[int] = None


class PolicyTestSuiteCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    test_cases: list[PolicyTestCase] = Field(default_factory=list)


class PolicyTestSuiteSummary(BaseModel):
    id: str
    name: str
    case_count: int
    created_at: Optional[datetime] = None


class PolicyTestRunSummary(BaseModel):
    id: str
    suite_id: str
    status: str
    summary: dict[str, Any] = Field(default_factory=dict)
    results: list[dict[str, Any]] = Field(default_factory=list)
    created_at: Optional[datetime] = None


class IngestionOutcomeSummary(BaseModel):
    id: str
    provider: str
    event_type: str
    external_id: str
    org_id: Optional[str] = None
    status: str
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None


class IngestionOutcomeDetail(IngestionOutcomeSummary):
    payload: Optional[Any] = None
    correlation_id: Optional[str] = None


class IngestionOutcomeListResponse(BaseModel):
    outcomes: list[IngestionOutcomeSummary]
    count: int
