"""
Qualification schemas - scorer input, per-organization rules, and scorer output.
"""
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_REQUIRED_FIELDS = ["incident_date", "incident_location", "injuries"]
DEFAULT_DISQUALIFIERS = [
    "statute_of_limitations_expired",
    "no_injury",
    "pre_existing_attorney",
]
DEFAULT_WEIGHTS = {
    "injury_severity": 0.3,
    "liability_clarity": 0.25,
    "damages_potential": 0.25,
    "urgency": 0.2,
}


class SnapshotContact(BaseModel):
    phone: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None


class SnapshotIntake(BaseModel):
    complete: bool = False
    answers: dict[str, Any] = Field(default_factory=dict)


class LeadSnapshot(BaseModel):
    """
    Everything the scorer looks at. Accepts both snake_case and the
    camelCase shape stored in policy test cases (`practiceArea`).
    """
    model_config = ConfigDict(populate_by_name=True)

    contact: SnapshotContact = Field(default_factory=SnapshotContact)
    practice_area: bool = Field(default=False, alias="practiceArea")
    intake: Optional[SnapshotIntake] = None
    calls: int = 0
    flags: list[str] = Field(default_factory=list)


class QualificationRules(BaseModel):
    """Per-organization scoring configuration (ai_configs.qualification_rules)."""
    model_config = ConfigDict(populate_by_name=True)

    min_score_for_accept: int = Field(default=70, alias="minScoreForAccept")
    min_score_for_review: int = Field(default=40, alias="minScoreForReview")
    required_fields: list[str] = Field(
        default_factory=lambda: list(DEFAULT_REQUIRED_FIELDS), alias="requiredFields"
    )
    disqualifiers: list[str] = Field(default_factory=lambda: list(DEFAULT_DISQUALIFIERS))
    # Stored as `scoring_weights` in seeded ai_configs
    weights: dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_WEIGHTS), alias="scoring_weights"
    )


class ScoreFactor(BaseModel):
    name: str
    weight: int
    evidence: str


class QualificationResult(BaseModel):
    score: int
    disposition: str  # accept, review, decline
    reasons: list[str] = Field(default_factory=list)
    score_factors: list[ScoreFactor] = Field(default_factory=list)
    missing_fields: list[str] = Field(default_factory=list)
    disqualifiers: list[str] = Field(default_factory=list)
