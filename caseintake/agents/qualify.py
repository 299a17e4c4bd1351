"""
Qualify Agent - deterministic case scorer.
Pure function of (LeadSnapshot, QualificationRules); no I/O, no memoization.

Point factors (max 100 after clamping):
1. Contact reachable - phone +40, email +15
2. Practice area identified - +15
3. Intake - complete +15, partial with answers +10
4. Engagement - 1 call +5, 2+ calls +10
5. Case strength - weighted sub-scores from intake answers, up to +15

Any configured disqualifier forces `decline` regardless of score.
"""
from typing import Any, Optional

from caseintake.schemas.qualification import (
    LeadSnapshot,
    QualificationResult,
    QualificationRules,
    ScoreFactor,
)


# A reachable phone alone lands in the review band with default thresholds
PHONE_POINTS = 40
EMAIL_POINTS = 15
PRACTICE_AREA_POINTS = 15
INTAKE_COMPLETE_POINTS = 15
INTAKE_PARTIAL_POINTS = 10
ONE_CALL_POINTS = 5
MULTI_CALL_POINTS = 10
CASE_STRENGTH_MAX_POINTS = 15

# Label values accepted for weighted sub-scores, mapped onto 0.0-1.0
_LEVELS = {
    "none": 0.0,
    "low": 0.25,
    "minor": 0.25,
    "medium": 0.5,
    "moderate": 0.5,
    "high": 0.75,
    "severe": 1.0,
    "critical": 1.0,
}

_FALSY_STRINGS = {"", "false", "no", "0", "none", "n/a"}


def _is_truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in _FALSY_STRINGS
    return bool(value)


def _sub_score(value: Any) -> Optional[float]:
    """Read a 0-10 number or a severity label as 0.0-1.0. Unreadable values are ignored."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return max(0.0, min(float(value), 10.0)) / 10.0
    if isinstance(value, str):
        label = value.strip().lower()
        if label in _LEVELS:
            return _LEVELS[label]
        try:
            return max(0.0, min(float(label), 10.0)) / 10.0
        except ValueError:
            return None
    return None


def _case_strength(
    answers: dict[str, Any], weights: dict[str, float],
) -> Optional[ScoreFactor]:
    total_weight = sum(w for w in weights.values() if w > 0)
    if total_weight <= 0:
        return None

    weighted = 0.0
    seen = []
    for name, weight in weights.items():
        if weight <= 0 or name not in answers:
            continue
        value = _sub_score(answers[name])
        if value is None:
            continue
        weighted += weight * value
        seen.append(name)

    if not seen:
        return None
    points = round(CASE_STRENGTH_MAX_POINTS * weighted / total_weight)
    return ScoreFactor(
        name="case_strength",
        weight=points,
        evidence=f"Weighted case strength from {', '.join(seen)}",
    )


def _disqualifiers(snapshot: LeadSnapshot, answers: dict[str, Any], rules: QualificationRules) -> list[str]:
    flags = set(snapshot.flags)
    return [
        d for d in rules.disqualifiers
        if d in flags or (d in answers and _is_truthy(answers[d]))
    ]


def _disposition(score: int, rules: QualificationRules) -> str:
    if score >= rules.min_score_for_accept:
        return "accept"
    if score >= rules.min_score_for_review:
        return "review"
    return "decline"


def score_lead(
    snapshot: LeadSnapshot,
    rules: Optional[QualificationRules] = None,
) -> QualificationResult:
    """
    Score a lead and pick a disposition.

    Args:
        snapshot: Current contact / practice area / intake / call state.
        rules: Organization rules; defaults apply when None.

    Returns:
        QualificationResult with score in 0..100, disposition, and the
        factor-by-factor evidence behind it.
    """
    rules = rules or QualificationRules()
    factors: list[ScoreFactor] = []

    if snapshot.contact.phone:
        factors.append(ScoreFactor(name="contact_phone", weight=PHONE_POINTS, evidence="Caller phone on file"))
    if snapshot.contact.email:
        factors.append(ScoreFactor(name="contact_email", weight=EMAIL_POINTS, evidence="Caller email on file"))

    if snapshot.practice_area:
        factors.append(ScoreFactor(
            name="practice_area", weight=PRACTICE_AREA_POINTS, evidence="Practice area identified",
        ))

    answers: dict[str, Any] = {}
    if snapshot.intake is not None:
        answers = snapshot.intake.answers or {}
        if snapshot.intake.complete:
            factors.append(ScoreFactor(
                name="intake", weight=INTAKE_COMPLETE_POINTS, evidence="Intake complete",
            ))
        elif answers:
            factors.append(ScoreFactor(
                name="intake", weight=INTAKE_PARTIAL_POINTS,
                evidence=f"Partial intake ({len(answers)} answers)",
            ))

    if snapshot.calls >= 2:
        factors.append(ScoreFactor(
            name="engagement", weight=MULTI_CALL_POINTS, evidence=f"{snapshot.calls} calls",
        ))
    elif snapshot.calls == 1:
        factors.append(ScoreFactor(name="engagement", weight=ONE_CALL_POINTS, evidence="1 call"))

    strength = _case_strength(answers, rules.weights)
    if strength is not None:
        factors.append(strength)

    score = max(0, min(100, sum(f.weight for f in factors)))
    missing = [f for f in rules.required_fields if not _is_truthy(answers.get(f))]
    triggered = _disqualifiers(snapshot, answers, rules)
    disposition = "decline" if triggered else _disposition(score, rules)

    reasons = [f"Score {score}/100: {disposition}"]
    reasons.extend(f"+{f.weight} {f.evidence}" for f in factors)
    reasons.extend(f"Missing required field: {f}" for f in missing)
    reasons.extend(f"Disqualifier: {d}" for d in triggered)

    return QualificationResult(
        score=score,
        disposition=disposition,
        reasons=reasons,
        score_factors=factors,
        missing_fields=missing,
        disqualifiers=triggered,
    )
