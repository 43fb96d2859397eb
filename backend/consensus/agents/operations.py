"""Operations Expert: coverage, skill match, efficiency and continuity."""

from datetime import datetime, timedelta

from compliance.types import ShiftRecord

from ..proposals import proposed_shift_changes, schedule_after_change
from ..types import (
    AgentDecision,
    AgentResponse,
    AgentRole,
    ConsensusConfig,
    CoverageGoal,
    DecisionContext,
    OptimizationProposal,
    Recommendation,
    ScheduleProposal,
    ShiftAssignmentProposal,
    SwapProposal,
)
from .common import (
    AGENT_NAMES,
    ScoringComponent,
    clip,
    decision_from_components,
    shifts_overlap,
)

ROLE = AgentRole.OPERATIONS

WEIGHTS = {
    "coverage": 0.35,
    "skill": 0.25,
    "efficiency": 0.25,
    "continuity": 0.15,
}

COVERAGE_COMPONENT = "Coverage Analysis"

PEAK_HOURS = (range(11, 15), range(17, 21))
HANDOFF_WINDOW = timedelta(hours=1)
CONTINUITY_WINDOW = timedelta(hours=2)


def evaluate(context: DecisionContext, config: ConsensusConfig) -> AgentDecision:
    proposal = context.proposal
    if isinstance(proposal, ShiftAssignmentProposal):
        components = _shift_components(context, proposal)
    elif isinstance(proposal, ScheduleProposal):
        components = _schedule_components(context)
    elif isinstance(proposal, (SwapProposal, OptimizationProposal)):
        components = [_reassignment_component(context)]
    else:
        components = []

    return decision_from_components(ROLE, components, critical_components={COVERAGE_COMPONENT})


def coverage_goals(context: DecisionContext) -> list[CoverageGoal]:
    goals = list(context.coverage_goals)
    if isinstance(context.proposal, ScheduleProposal):
        goals.extend(context.proposal.coverage_goals)
    return goals


def staff_on_goal(goal: CoverageGoal, shifts: list[ShiftRecord]) -> int:
    """Number of distinct employees on shift at any point of the goal's slot."""
    return len({s.employee_id for s in shifts if not s.retired and s.start < goal.end and goal.start < s.end})


def _overlapping_goals(goals: list[CoverageGoal], shifts: list[ShiftRecord]) -> list[CoverageGoal]:
    return [g for g in goals if any(s.start < g.end and g.start < s.end for s in shifts)]


def has_coverage_gap(context: DecisionContext) -> bool:
    """True when the proposal fills a slot that is otherwise uncovered or understaffed."""
    if not isinstance(context.proposal, (ShiftAssignmentProposal, ScheduleProposal)):
        return False

    proposed, existing = proposed_shift_changes(context)
    proposed_ids = {s.id for s in proposed}
    without = [s for s in existing if s.id not in proposed_ids and not s.retired]

    goals = _overlapping_goals(coverage_goals(context), proposed)
    if goals:
        return any(staff_on_goal(g, without) < g.minimum_employees for g in goals)

    return any(
        not any(shifts_overlap(shift, other) for other in without)
        for shift in proposed
        if not shift.retired
    )


# ============================================================================
# Shift assignment
# ============================================================================


def _shift_components(context: DecisionContext, proposal: ShiftAssignmentProposal) -> list[ScoringComponent]:
    proposed, existing = proposed_shift_changes(context)
    shift = proposed[0]
    others = [s for s in existing if s.id != shift.id and not s.retired]

    return [
        _coverage_component(context, shift, others),
        _skill_component(shift, others),
        _efficiency_component(shift, others),
        _continuity_component(shift, others),
    ]


def _is_peak(moment: datetime) -> bool:
    return any(moment.hour in hours for hours in PEAK_HOURS)


def _coverage_component(
    context: DecisionContext,
    shift: ShiftRecord,
    others: list[ShiftRecord],
) -> ScoringComponent:
    goals = _overlapping_goals(coverage_goals(context), [shift])
    if goals:
        after = others + [shift]
        met = [g for g in goals if staff_on_goal(g, after) >= g.minimum_employees]
        score = len(met) / len(goals) * 100
        if len(met) == len(goals):
            reasoning = f"Coverage goals met: {len(met)}/{len(goals)} overlapping slots staffed"
            suggestions = []
        else:
            reasoning = f"Understaffed: {len(goals) - len(met)} of {len(goals)} overlapping slots below minimum"
            suggestions = ["Operational consideration: add staff to the understaffed slots"]
        return ScoringComponent(COVERAGE_COMPONENT, score, WEIGHTS["coverage"], reasoning, suggestions)

    current = sum(1 for s in others if shifts_overlap(shift, s))
    new_coverage = current + 1
    recommended = 3 if _is_peak(shift.start) else 2
    ratio = new_coverage / recommended

    if current == 0:
        score, reasoning = 100.0, "Critical: this shift fills a coverage gap"
    elif ratio >= 1.5:
        score, reasoning = 60.0, f"Note: {new_coverage} staff during this slot may be more than needed"
    elif ratio >= 1:
        score, reasoning = 90.0, f"Good coverage: {new_coverage} staff meets operational needs"
    else:
        score, reasoning = 80.0, f"Helps: improves coverage to {new_coverage} ({recommended} recommended)"
    return ScoringComponent(COVERAGE_COMPONENT, score, WEIGHTS["coverage"], reasoning)


def _skill_component(shift: ShiftRecord, others: list[ShiftRecord]) -> ScoringComponent:
    similar = [
        s for s in others
        if s.employee_id == shift.employee_id and abs(s.start.hour - shift.start.hour) <= 2
    ]
    if len(similar) >= 3:
        score, reasoning = 90.0, f"Experienced: {len(similar)} similar shifts worked previously"
    elif similar:
        score, reasoning = 75.0, f"Some experience: {len(similar)} similar shifts worked"
    else:
        score, reasoning = 60.0, "New assignment type for this employee, consider training or support"
    return ScoringComponent("Skill Match", score, WEIGHTS["skill"], reasoning)


def _efficiency_score(shift: ShiftRecord, others: list[ShiftRecord]) -> tuple[float, list[str]]:
    score = 85.0
    suggestions = []
    hours = shift.duration_minutes / 60
    if hours < 4:
        score -= 20
        suggestions.append(f"Operational consideration: short shift ({hours:.1f}h) is less efficient")
    elif hours > 8:
        score -= 10

    handoff = any(timedelta(0) <= shift.start - s.end < HANDOFF_WINDOW for s in others)
    if handoff:
        score += 10
    return clip(score), suggestions


def _efficiency_component(shift: ShiftRecord, others: list[ShiftRecord]) -> ScoringComponent:
    score, suggestions = _efficiency_score(shift, others)
    reasoning = (
        "Operationally efficient shift structure"
        if score >= 80
        else "Some efficiency concerns with shift structure"
    )
    return ScoringComponent("Operational Efficiency", score, WEIGHTS["efficiency"], reasoning, suggestions)


def _continuity_component(shift: ShiftRecord, others: list[ShiftRecord]) -> ScoringComponent:
    score = 85.0
    suggestions = []

    before = [s for s in others if timedelta(0) < shift.start - s.end <= CONTINUITY_WINDOW]
    after = [s for s in others if timedelta(0) < s.start - shift.end <= CONTINUITY_WINDOW]

    if not before and 8 < shift.start.hour < 20:
        score -= 15
        suggestions.append("Operational consideration: no coverage immediately before this shift")
    if not after and 8 < shift.end.hour < 20:
        score -= 15
        suggestions.append("Operational consideration: no coverage immediately after this shift")

    reasoning = (
        "Good coverage continuity maintained"
        if score >= 80
        else "Potential coverage gaps around this shift"
    )
    return ScoringComponent("Coverage Continuity", score, WEIGHTS["continuity"], reasoning, suggestions)


# ============================================================================
# Schedule, swap and optimization
# ============================================================================


def _schedule_components(context: DecisionContext) -> list[ScoringComponent]:
    proposed, existing = proposed_shift_changes(context)
    after = schedule_after_change(context)
    goals = coverage_goals(context)

    met = [g for g in goals if staff_on_goal(g, after) >= g.minimum_employees]
    short = [g for g in goals if g not in met]
    goal_score = len(met) / len(goals) * 100 if goals else 80.0

    suggestions = [
        f"Operational consideration: {g.start:%a %H:%M} has {staff_on_goal(g, after)}/{g.minimum_employees} staff"
        for g in short
    ]
    if goals:
        reasoning = f"{len(met)}/{len(goals)} coverage goals met"
    else:
        reasoning = "No coverage goals stated, coverage assumed adequate"

    components = [ScoringComponent("Coverage Goals", round(goal_score), 1.0, reasoning, suggestions)]

    proposed_ids = {s.id for s in proposed}
    base = [s for s in existing if s.id not in proposed_ids and not s.retired]
    for shift in proposed:
        if shift.retired:
            continue
        neighbours = base + [s for s in proposed if s.id != shift.id and not s.retired]
        score, shift_suggestions = _efficiency_score(shift, neighbours)
        components.append(ScoringComponent(
            "Operational Efficiency",
            score,
            WEIGHTS["efficiency"],
            "Schedule shift structure is operationally efficient"
            if score >= 80
            else "Some schedule shifts are inefficiently structured",
            shift_suggestions,
        ))
    return components


def _reassignment_component(context: DecisionContext) -> ScoringComponent:
    """Swaps and reassignments keep headcount; only double booking hurts."""
    after = schedule_after_change(context)
    proposed, _ = proposed_shift_changes(context)

    double_booked = [
        shift.employee_id
        for shift in proposed
        if any(
            other.id != shift.id and other.employee_id == shift.employee_id and shifts_overlap(shift, other)
            for other in after
        )
    ]
    if double_booked:
        return ScoringComponent(
            "Reassignment Operations Impact",
            30.0,
            1.0,
            f"Double booking: {', '.join(sorted(set(double_booked)))} would hold overlapping shifts",
            ["Operational consideration: pick an employee who is free during the shift"],
        )
    return ScoringComponent(
        "Reassignment Operations Impact", 85.0, 1.0, "Change maintains current coverage levels"
    )


# ============================================================================
# Debate
# ============================================================================


def respond(
    context: DecisionContext,
    own: AgentDecision,
    decisions: list[AgentDecision],
    topic: str,
    config: ConsensusConfig,
) -> AgentResponse:
    by_role = {d.role: d for d in decisions}
    compliance = by_role.get(AgentRole.COMPLIANCE)
    employee = by_role.get(AgentRole.EMPLOYEE_ADVOCATE)
    name = AGENT_NAMES[ROLE]

    if compliance and compliance.recommendation == Recommendation.REJECT:
        return AgentResponse(
            role=ROLE,
            response=f"{name}: Operations must work within legal constraints. I support the compliance decision.",
            changed_position=own.recommendation != Recommendation.REJECT,
            new_recommendation=Recommendation.REJECT,
            new_confidence=90.0,
        )

    if has_coverage_gap(context):
        return AgentResponse(
            role=ROLE,
            response=(
                f"{name}: This fills a coverage gap. Leaving it open risks service quality; "
                "I would rather find a compromise that addresses the other concerns."
            ),
        )

    if employee and employee.score < 50:
        return AgentResponse(
            role=ROLE,
            response=f"{name}: Since coverage is adequate, I can support prioritizing employee welfare in this case.",
            changed_position=own.recommendation != employee.recommendation,
            new_recommendation=employee.recommendation,
            new_confidence=75.0,
        )

    return AgentResponse(
        role=ROLE,
        response=f"{name}: My operational assessment stands. Adequate coverage and service quality come first.",
    )
