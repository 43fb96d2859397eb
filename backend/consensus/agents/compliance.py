"""Compliance Guardian: wraps the ComplianceEngine. Legal limits are not negotiable."""

from compliance.engine import ComplianceEngine
from compliance.types import ViolationType

from ..proposals import proposed_shift_changes
from ..types import (
    AgentDecision,
    AgentResponse,
    AgentRole,
    ConsensusConfig,
    DecisionContext,
    DecisionType,
    Recommendation,
    ScoreComponent,
    ShiftAssignmentProposal,
)
from .common import AGENT_NAMES, build_decision, clip

ROLE = AgentRole.COMPLIANCE

_engine = ComplianceEngine()

CATEGORIES = {
    "Rest Periods": (ViolationType.REST_DAILY, ViolationType.REST_WEEKLY),
    "Working Hours": (ViolationType.HOURS_DAILY, ViolationType.HOURS_WEEKLY),
    "Overtime": (ViolationType.OVERTIME_WEEKLY, ViolationType.OVERTIME_4WEEK, ViolationType.OVERTIME_YEARLY),
    "Publication": (ViolationType.PUBLISH_LATE, ViolationType.PUBLISH_SHORT_NOTICE),
}

SUGGESTIONS = {
    ViolationType.REST_DAILY: "Move the shift so that at least {min_daily_rest_hours}h rest separates it from adjacent shifts",
    ViolationType.REST_WEEKLY: "Free a continuous block of {min_weekly_rest_hours}h within the 7-day period",
    ViolationType.HOURS_DAILY: "Shorten or split the shift to stay within {max_daily_hours}h per day",
    ViolationType.HOURS_WEEKLY: "Reassign hours to another employee to stay within {max_weekly_hours}h per week",
    ViolationType.OVERTIME_WEEKLY: "Reduce overtime to at most {max_overtime_per_week}h this week",
    ViolationType.OVERTIME_4WEEK: "Spread overtime so the 4-week total stays within {max_overtime_per_4_weeks}h",
    ViolationType.OVERTIME_YEARLY: "Annual overtime ceiling of {max_overtime_per_year}h is reached; use other staff",
    ViolationType.PUBLISH_LATE: "Publish rosters at least {publish_deadline_days} days before they start",
    ViolationType.PUBLISH_SHORT_NOTICE: "Give employees more notice before the roster starts",
}


def evaluate(context: DecisionContext, config: ConsensusConfig) -> AgentDecision:
    proposed, existing = proposed_shift_changes(context)
    result = _engine.validate(proposed, existing, context.jurisdiction, roster=context.roster)
    findings = result.violations + result.warnings
    rules = context.jurisdiction.to_dict()

    penalty_total = 0.0
    breakdown = {name: 100.0 for name in CATEGORIES}
    for finding in findings:
        penalty = config.compliance_penalties.get(finding.kind, 0.0)
        penalty_total += penalty
        for name, kinds in CATEGORIES.items():
            if finding.kind in kinds:
                breakdown[name] = clip(breakdown[name] - penalty)
    score = clip(100 - penalty_total)

    concerns = [finding.message for finding in findings]
    suggestions = [SUGGESTIONS[kind].format(**rules) for kind in sorted({f.kind for f in findings})]
    hard_limits = tuple(sorted({v.kind for v in result.hard_limit_violations}))
    components = [
        ScoreComponent(
            name=name,
            score=round(breakdown[name], 1),
            reasoning=_category_reasoning(name, [f for f in findings if f.kind in kinds]),
            critical=True,
            editable=False,
        )
        for name, kinds in CATEGORIES.items()
    ]

    if hard_limits:
        recommendation, confidence = Recommendation.REJECT, 95.0
        reasoning = [
            f"{len(result.violations)} violation(s) of {context.jurisdiction.jurisdiction} working-time rules, "
            f"including hard limits: {', '.join(k.value for k in hard_limits)}"
        ]
    elif result.violations:
        recommendation, confidence = Recommendation.NEEDS_MODIFICATION, 85.0
        reasoning = [
            f"{len(result.violations)} violation(s) of {context.jurisdiction.jurisdiction} "
            "overtime or publication rules"
        ]
    elif result.warnings:
        recommendation, confidence = Recommendation.APPROVE_WITH_CONDITIONS, 85.0
        reasoning = [f"No violations, {len(result.warnings)} warning(s) to address"]
    else:
        recommendation, confidence = Recommendation.APPROVE, 95.0
        reasoning = [f"All working-time rules satisfied for {len(proposed)} proposed shift(s)"]

    proposal = context.proposal
    if (
        context.decision_type == DecisionType.COMPLIANCE_OVERRIDE
        and isinstance(proposal, ShiftAssignmentProposal)
        and not (proposal.justification or "").strip()
    ):
        concerns.append("Compliance override submitted without a justification")
        suggestions.append("Document the reason for the override before it is reviewed")
        if recommendation != Recommendation.REJECT:
            recommendation = Recommendation.NEEDS_MODIFICATION

    return build_decision(
        role=ROLE,
        recommendation=recommendation,
        confidence=confidence,
        score=score,
        score_breakdown=breakdown,
        reasoning=reasoning,
        concerns=concerns,
        suggestions=suggestions,
        hard_limit_violations=hard_limits,
        components=components,
    )


def _category_reasoning(name: str, findings) -> str:
    if not findings:
        return f"{name}: no findings"
    return f"{name}: " + "; ".join(f.message for f in findings)


def respond(
    context: DecisionContext,
    own: AgentDecision,
    decisions: list[AgentDecision],
    topic: str,
    config: ConsensusConfig,
) -> AgentResponse:
    if own.hard_limit_violations:
        text = "Labor law hard limits are violated; this cannot be outvoted."
    else:
        text = "Compliance assessment is based on the jurisdiction's rules and stands."
    return AgentResponse(role=ROLE, response=f"{AGENT_NAMES[ROLE]}: {text}")
