"""Employee Advocate: preferences, work-life balance, fair workload and predictability."""

from datetime import timedelta
from statistics import mean, pstdev
from typing import Optional

from compliance.types import ShiftRecord

from ..proposals import proposed_shift_changes
from ..types import (
    AgentDecision,
    AgentResponse,
    AgentRole,
    ConsensusConfig,
    DecisionContext,
    EmployeePreference,
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
    day_name,
    decision_from_components,
    is_weekend,
    weekly_hours_with,
)

ROLE = AgentRole.EMPLOYEE_ADVOCATE

WEIGHTS = {
    "preference": 0.30,
    "fairness": 0.25,
    "balance": 0.25,
    "stability": 0.20,
}

PREFERENCE_COMPONENT = "Preference Alignment"
BALANCE_COMPONENT = "Work-Life Balance"

RECOMMENDED_NOTICE_DAYS = 14


def evaluate(context: DecisionContext, config: ConsensusConfig) -> AgentDecision:
    proposal = context.proposal
    if isinstance(proposal, (ShiftAssignmentProposal, ScheduleProposal)):
        components = _assignment_components(context)
    elif isinstance(proposal, SwapProposal):
        components = [_swap_component(context, proposal)]
    elif isinstance(proposal, OptimizationProposal):
        components = [_optimization_component(context)]
    else:
        components = []

    return decision_from_components(
        ROLE, components, critical_components={PREFERENCE_COMPONENT, BALANCE_COMPONENT}
    )


def _assignment_components(context: DecisionContext) -> list[ScoringComponent]:
    """Evaluate every proposed shift against the schedule around it."""
    proposed, existing = proposed_shift_changes(context)
    proposed_ids = {s.id for s in proposed}
    base = [s for s in existing if s.id not in proposed_ids and not s.retired]

    components = []
    for shift in sorted(proposed, key=lambda s: (s.start, s.id)):
        if shift.retired:
            continue
        others = base + [s for s in proposed if s.id != shift.id and not s.retired]
        user_shifts = [s for s in others if s.employee_id == shift.employee_id]

        components.append(_preference_component(shift, context.preference_for(shift.employee_id), user_shifts))
        components.append(_balance_component(shift, user_shifts))
        components.append(_fairness_component(shift, others))
        components.append(_stability_component(shift, user_shifts, context))
    return components


# ============================================================================
# Components
# ============================================================================


def preference_match(shift: ShiftRecord, prefs: Optional[EmployeePreference]) -> float:
    """Preference score for one shift: base 70, adjusted by day and time of day."""
    if prefs is None:
        return 70.0

    score = 70.0
    day = day_name(shift.start)
    if day in prefs.preferred_days:
        score += 15
    if day in prefs.avoid_days:
        score -= 30

    hour = shift.start.hour
    is_morning = 6 <= hour < 12
    is_evening = 12 <= hour < 20
    is_night = hour >= 20 or hour < 6
    if (prefs.prefer_morning and is_morning) or (prefs.prefer_evening and is_evening) or (
        prefs.prefer_night and is_night
    ):
        score += 10
    elif prefs.prefer_morning or prefs.prefer_evening or prefs.prefer_night:
        score -= 10

    if prefs.unavailable_from and prefs.unavailable_to:
        if prefs.unavailable_from <= shift.start <= prefs.unavailable_to:
            score = 0.0

    return clip(score)


def _preference_component(
    shift: ShiftRecord,
    prefs: Optional[EmployeePreference],
    user_shifts: list[ShiftRecord],
) -> ScoringComponent:
    if prefs is None:
        return ScoringComponent(
            PREFERENCE_COMPONENT, 70.0, WEIGHTS["preference"], "No preferences set, using neutral score"
        )

    score = preference_match(shift, prefs)
    suggestions = []
    day = day_name(shift.start)
    if day in prefs.avoid_days:
        suggestions.append(f"Consider employee welfare: {shift.employee_id} prefers to avoid {day}")
    if score == 0:
        suggestions.append(
            f"Consider employee welfare: {shift.employee_id} is unavailable "
            f"({prefs.unavailable_reason or 'personal reasons'})"
        )

    if prefs.max_hours_per_week:
        week_hours = weekly_hours_with(shift.employee_id, shift, user_shifts)
        if week_hours > prefs.max_hours_per_week:
            score = clip(score - 20)
            suggestions.append(
                f"Consider employee welfare: {week_hours:.1f}h this week exceeds the preferred "
                f"{prefs.max_hours_per_week}h"
            )

    if score >= 70:
        reasoning = f"Shift on {day} aligns with {shift.employee_id}'s preferences"
    else:
        reasoning = f"Shift on {day} conflicts with {shift.employee_id}'s stated preferences"
    return ScoringComponent(PREFERENCE_COMPONENT, score, WEIGHTS["preference"], reasoning, suggestions)


def _consecutive_work_days(shift: ShiftRecord, user_shifts: list[ShiftRecord]) -> int:
    dates = sorted({s.start.date() for s in user_shifts} | {shift.start.date()})
    longest = current = 1
    for i in range(1, len(dates)):
        if dates[i] - dates[i - 1] == timedelta(days=1):
            current += 1
            longest = max(longest, current)
        else:
            current = 1
    return longest


def _balance_component(shift: ShiftRecord, user_shifts: list[ShiftRecord]) -> ScoringComponent:
    score = 100.0
    suggestions = []

    consecutive = _consecutive_work_days(shift, user_shifts)
    if consecutive > 5:
        score -= 30
        suggestions.append(f"Consider employee welfare: {consecutive} consecutive work days, risk of burnout")
    elif consecutive > 4:
        score -= 15

    if is_weekend(shift.start):
        recent_weekend = [
            s for s in user_shifts
            if is_weekend(s.start) and abs(s.start - shift.start) <= timedelta(days=7)
        ]
        if len(recent_weekend) >= 2:
            score -= 20
            suggestions.append("Consider employee welfare: multiple weekend shifts recently")

    irregular = any(
        abs(s.start.hour - shift.start.hour) > 8 and abs(s.start - shift.start) <= timedelta(days=2)
        for s in user_shifts
    )
    if irregular:
        score -= 15
        suggestions.append("Consider employee welfare: large variation in shift start times affects sleep")

    score = clip(score)
    reasoning = (
        "Good work-life balance maintained"
        if score >= 70
        else f"Work-life balance concerns for {shift.employee_id}"
    )
    return ScoringComponent(BALANCE_COMPONENT, score, WEIGHTS["balance"], reasoning, suggestions)


def _fairness_component(shift: ShiftRecord, schedule: list[ShiftRecord]) -> ScoringComponent:
    hours: dict[str, float] = {}
    for s in schedule:
        hours[s.employee_id] = hours.get(s.employee_id, 0.0) + s.worked_hours
    hours[shift.employee_id] = hours.get(shift.employee_id, 0.0) + shift.worked_hours

    values = list(hours.values())
    average = mean(values)
    spread = pstdev(values)
    own = hours[shift.employee_id]
    deviation = (own - average) / spread if spread > 0 else 0.0

    if deviation > 2:
        score = 30.0
    elif deviation > 1:
        score = 60.0
    elif deviation < -1:
        score = 90.0
    else:
        score = 85.0

    if score >= 70:
        reasoning = f"Fair workload: {own:.1f}h is reasonable vs team avg {average:.1f}h"
        suggestions = []
    else:
        reasoning = f"Workload concern: {own:.1f}h exceeds team avg {average:.1f}h"
        suggestions = [f"Consider employee welfare: spread hours more evenly than {own:.1f}h vs {average:.1f}h"]
    return ScoringComponent("Workload Fairness", score, WEIGHTS["fairness"], reasoning, suggestions)


def _stability_component(
    shift: ShiftRecord,
    user_shifts: list[ShiftRecord],
    context: DecisionContext,
) -> ScoringComponent:
    score = 100.0
    suggestions = []

    notice_days = (shift.start.date() - context.as_of.date()).days
    if notice_days < RECOMMENDED_NOTICE_DAYS:
        score -= max(0, (RECOMMENDED_NOTICE_DAYS - notice_days) * 3)
        suggestions.append(
            f"Consider employee welfare: only {notice_days} days notice "
            f"({RECOMMENDED_NOTICE_DAYS} recommended)"
        )

    recent = sorted(user_shifts, key=lambda s: s.start)[-5:]
    if recent:
        average_hour = mean(s.start.hour for s in recent)
        if abs(shift.start.hour - average_hour) > 6:
            score -= 20
            suggestions.append("Consider employee welfare: start time differs from recent pattern")

    score = clip(score)
    reasoning = (
        "Schedule provides good predictability for the employee"
        if score >= 70
        else "Schedule stability concerns, may impact personal planning"
    )
    return ScoringComponent("Schedule Stability", score, WEIGHTS["stability"], reasoning, suggestions)


def _swap_component(context: DecisionContext, proposal: SwapProposal) -> ScoringComponent:
    requester_match = preference_match(
        proposal.shift_to_receive, context.preference_for(proposal.requesting_employee_id)
    )
    target_match = preference_match(proposal.shift_to_swap, context.preference_for(proposal.target_employee_id))
    score = round((requester_match + target_match) / 2)

    reasoning = f"Swap benefits: requester {requester_match:.0f}%, target {target_match:.0f}%"
    if proposal.reason:
        reasoning += f" (requested: {proposal.reason})"
    return ScoringComponent("Swap Preference Match", score, 1.0, reasoning)


def _optimization_component(context: DecisionContext) -> ScoringComponent:
    proposed, _ = proposed_shift_changes(context)
    matches = [preference_match(s, context.preference_for(s.employee_id)) for s in proposed]
    score = round(mean(matches))
    return ScoringComponent(
        "Reassignment Preference Match",
        score,
        1.0,
        f"Reassigned employees' preference match averages {score}%",
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
    operations = by_role.get(AgentRole.OPERATIONS)
    name = AGENT_NAMES[ROLE]

    if compliance and compliance.recommendation == Recommendation.REJECT:
        return AgentResponse(
            role=ROLE,
            response=f"{name}: I support the compliance rejection. Employee welfare includes legal protections.",
            changed_position=own.recommendation != Recommendation.REJECT,
            new_recommendation=Recommendation.REJECT,
            new_confidence=95.0,
        )

    if (
        operations
        and operations.recommendation == Recommendation.APPROVE
        and operations.confidence > 85
        and own.score >= 60
    ):
        return AgentResponse(
            role=ROLE,
            response=(
                f"{name}: I understand the operational need. "
                "I can support this with conditions that protect employee welfare."
            ),
            changed_position=own.recommendation != Recommendation.APPROVE_WITH_CONDITIONS,
            new_recommendation=Recommendation.APPROVE_WITH_CONDITIONS,
            new_confidence=70.0,
        )

    return AgentResponse(
        role=ROLE,
        response=f"{name}: Employee wellbeing remains my priority; my assessment stands.",
    )
