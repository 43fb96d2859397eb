"""Shared scoring helpers for the agent evaluators."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Iterable, Optional

from compliance.types import ShiftRecord, ViolationType
from utils.time import utc_now, week_start

from ..types import AgentDecision, AgentRole, Recommendation, ScoreComponent

AGENT_NAMES = {
    AgentRole.COMPLIANCE: "Compliance Guardian",
    AgentRole.COST_OPTIMIZER: "Budget Analyst",
    AgentRole.EMPLOYEE_ADVOCATE: "Employee Advocate",
    AgentRole.OPERATIONS: "Operations Expert",
}

# (description, areas of expertise) per role
AGENT_PROFILES = {
    AgentRole.COMPLIANCE: (
        "Working-time law expert; legal limits cannot be outvoted",
        ("Daily and weekly rest periods", "Daily and weekly working hours",
         "Overtime ceilings", "Roster publication deadlines"),
    ),
    AgentRole.COST_OPTIMIZER: (
        "Labor cost specialist focused on efficient resource allocation",
        ("Labor cost calculation", "Overtime cost analysis", "Budget compliance", "Cost efficiency"),
    ),
    AgentRole.EMPLOYEE_ADVOCATE: (
        "Champion for employee wellbeing, preferences and work-life balance",
        ("Preference matching", "Work-life balance", "Burnout prevention", "Fair workload distribution"),
    ),
    AgentRole.OPERATIONS: (
        "Operational specialist ensuring adequate coverage and service quality",
        ("Staff coverage", "Skill-shift matching", "Peak hour management", "Operational continuity"),
    ),
}

CONCERN_THRESHOLD = 50


@dataclass
class ScoringComponent:
    """One weighted criterion of an agent's score."""
    name: str
    score: float  # 0-100
    weight: float
    reasoning: str
    suggestions: list[str] = field(default_factory=list)


def clip(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def determine_recommendation(
    score: float,
    has_critical_concerns: bool,
    has_moderate_concerns: bool,
) -> tuple[Recommendation, float]:
    """Map a score and concern flags to a recommendation and confidence."""
    if has_critical_concerns:
        return Recommendation.REJECT, 90.0

    if score >= 80:
        recommendation = (
            Recommendation.APPROVE_WITH_CONDITIONS if has_moderate_concerns else Recommendation.APPROVE
        )
        return recommendation, score

    if score >= 60:
        return Recommendation.APPROVE_WITH_CONDITIONS, score

    if score >= 40:
        return Recommendation.NEEDS_MODIFICATION, 70.0

    return Recommendation.REJECT, 80.0


def build_decision(
    role: AgentRole,
    recommendation: Recommendation,
    confidence: float,
    score: float,
    score_breakdown: dict[str, float],
    reasoning: Iterable[str],
    concerns: Iterable[str],
    suggestions: Iterable[str],
    hard_limit_violations: tuple[ViolationType, ...] = (),
    components: Iterable[ScoreComponent] = (),
    evaluated_at: Optional[datetime] = None,
) -> AgentDecision:
    score = round(clip(score))
    reasoning = tuple(reasoning)
    if score < 100 and not reasoning:
        reasoning = (f"Score of {score}/100 reflects the concerns raised",)

    extra = {"evaluated_at": evaluated_at} if evaluated_at else {}
    return AgentDecision(
        role=role,
        name=AGENT_NAMES[role],
        recommendation=recommendation,
        confidence=round(clip(confidence), 1),
        score=score,
        score_breakdown={k: round(clip(v), 1) for k, v in score_breakdown.items()},
        components=tuple(components),
        reasoning=reasoning,
        concerns=tuple(concerns),
        suggestions=tuple(_unique(suggestions)),
        hard_limit_violations=hard_limit_violations,
        **extra,
    )


def decision_from_components(
    role: AgentRole,
    components: list[ScoringComponent],
    critical_components: set[str],
) -> AgentDecision:
    """Weighted-average components into a decision. Low components become concerns."""
    components = merge_components(components)

    total_weight = sum(c.weight for c in components)
    final_score = (
        sum(c.score * c.weight for c in components) / total_weight if total_weight > 0 else 0.0
    )

    reasoning, concerns, suggestions = [], [], []
    has_critical = False
    for component in components:
        if component.score < CONCERN_THRESHOLD:
            concerns.append(component.reasoning)
            if component.name in critical_components:
                has_critical = True
        else:
            reasoning.append(component.reasoning)
        suggestions.extend(component.suggestions)

    recommendation, confidence = determine_recommendation(final_score, has_critical, bool(concerns))

    return build_decision(
        role=role,
        recommendation=recommendation,
        confidence=confidence,
        score=final_score,
        score_breakdown={c.name: c.score for c in components},
        components=[
            ScoreComponent(
                name=c.name,
                score=round(clip(c.score), 1),
                weight=c.weight,
                reasoning=c.reasoning,
                critical=c.name in critical_components,
            )
            for c in components
        ],
        reasoning=reasoning,
        concerns=concerns,
        suggestions=suggestions,
    )


def rescore_decision(decision: AgentDecision, scores: dict[str, float], notes: Iterable[str] = ()) -> AgentDecision:
    """
    Re-derive a decision after some of its components were given new scores.

    The agent score is the weighted mean of the component scores and the
    recommendation follows from it the same way as in a fresh evaluation.
    Decisions without components keep their score and recommendation.
    """
    if not decision.components:
        return decision

    components = tuple(
        replace(c, score=round(clip(scores[c.name]), 1)) if c.name in scores else c
        for c in decision.components
    )
    total_weight = sum(c.weight for c in components)
    score = sum(c.score * c.weight for c in components) / total_weight if total_weight > 0 else 0.0
    low = [c for c in components if c.score < CONCERN_THRESHOLD]
    recommendation, confidence = determine_recommendation(score, any(c.critical for c in low), bool(low))

    return replace(
        decision,
        recommendation=recommendation,
        confidence=round(clip(confidence), 1),
        score=round(clip(score)),
        score_breakdown={c.name: c.score for c in components},
        components=components,
        reasoning=decision.reasoning + tuple(notes),
        evaluated_at=utc_now(),
    )


def merge_components(components: list[ScoringComponent]) -> list[ScoringComponent]:
    """Average same-named components (one per evaluated shift) into one."""
    grouped: dict[str, list[ScoringComponent]] = {}
    for component in components:
        grouped.setdefault(component.name, []).append(component)

    merged = []
    for name, group in grouped.items():
        if len(group) == 1:
            merged.append(group[0])
            continue
        worst = min(group, key=lambda c: c.score)
        merged.append(ScoringComponent(
            name=name,
            score=sum(c.score for c in group) / len(group),
            weight=group[0].weight,
            reasoning=worst.reasoning,
            suggestions=list(_unique(s for c in group for s in c.suggestions)),
        ))
    return merged


def _unique(items: Iterable[str]) -> list[str]:
    seen = set()
    out = []
    for item in items:
        if item not in seen:
            seen.add(item)
            out.append(item)
    return out


# ============================================================================
# Shift helpers
# ============================================================================


@dataclass
class ShiftCost:
    regular_hours: float
    overtime_hours: float
    regular_cost: float
    overtime_cost: float

    @property
    def total_cost(self) -> float:
        return self.regular_cost + self.overtime_cost

    @property
    def total_hours(self) -> float:
        return self.regular_hours + self.overtime_hours


def shift_cost(
    shift: ShiftRecord,
    weekly_hours_before: float,
    hourly_rate: float,
    max_weekly_hours: float,
    overtime_premium: float,
) -> ShiftCost:
    """Split a shift into regular and overtime hours given the week so far."""
    hours = shift.worked_hours
    hours_until_overtime = max(0.0, max_weekly_hours - weekly_hours_before)
    regular = min(hours, hours_until_overtime)
    overtime = max(0.0, hours - hours_until_overtime)
    return ShiftCost(
        regular_hours=regular,
        overtime_hours=overtime,
        regular_cost=regular * hourly_rate,
        overtime_cost=overtime * hourly_rate * overtime_premium,
    )


def weekly_hours_before(employee_id: str, shift: ShiftRecord, shifts: Iterable[ShiftRecord]) -> float:
    """Hours the employee works earlier in the same ISO week."""
    monday = week_start(shift.start.date())
    return sum(
        s.worked_hours
        for s in shifts
        if s.employee_id == employee_id
        and s.id != shift.id
        and not s.retired
        and week_start(s.start.date()) == monday
        and s.start < shift.start
    )


def weekly_hours_with(employee_id: str, shift: ShiftRecord, shifts: Iterable[ShiftRecord]) -> float:
    """Hours the employee works in the shift's ISO week, including the shift."""
    monday = week_start(shift.start.date())
    others = sum(
        s.worked_hours
        for s in shifts
        if s.employee_id == employee_id
        and s.id != shift.id
        and not s.retired
        and week_start(s.start.date()) == monday
    )
    return others + shift.worked_hours


def shifts_overlap(a: ShiftRecord, b: ShiftRecord) -> bool:
    return a.start < b.end and b.start < a.end


def day_name(moment: datetime) -> str:
    return moment.strftime("%A")


def is_weekend(moment: datetime) -> bool:
    return moment.weekday() >= 5
