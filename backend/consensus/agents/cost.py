"""Budget Analyst: scores the projected labor-cost impact of a proposal."""

from dataclasses import replace

from compliance.types import ShiftRecord

from ..proposals import proposed_shift_changes
from ..types import (
    AgentDecision,
    AgentResponse,
    AgentRole,
    ConsensusConfig,
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
    ShiftCost,
    decision_from_components,
    shift_cost,
    weekly_hours_before,
)

ROLE = AgentRole.COST_OPTIMIZER

WEIGHTS = {
    "overtime": 0.35,
    "regular": 0.25,
    "budget": 0.25,
    "efficiency": 0.15,
}

OVERTIME_COMPONENT = "Overtime Cost Impact"


def evaluate(context: DecisionContext, config: ConsensusConfig) -> AgentDecision:
    proposal = context.proposal
    if isinstance(proposal, ShiftAssignmentProposal):
        components = _shift_components(context, config)
    elif isinstance(proposal, ScheduleProposal):
        components = _schedule_components(context, config)
    elif isinstance(proposal, SwapProposal):
        components = _swap_components(context, config)
    elif isinstance(proposal, OptimizationProposal):
        components = _optimization_components(proposal)
    else:
        components = []

    return decision_from_components(ROLE, components, critical_components={OVERTIME_COMPONENT})


def _rate(context: DecisionContext, config: ConsensusConfig, employee_id: str) -> float:
    return context.hourly_rates.get(employee_id, config.default_hourly_rate)


def _cost_for(
    shift: ShiftRecord,
    history: list[ShiftRecord],
    context: DecisionContext,
    config: ConsensusConfig,
) -> ShiftCost:
    before = weekly_hours_before(shift.employee_id, shift, history)
    return shift_cost(
        shift,
        before,
        _rate(context, config, shift.employee_id),
        context.jurisdiction.max_weekly_hours,
        config.overtime_premium,
    )


def _current_spending(existing: list[ShiftRecord], context: DecisionContext, config: ConsensusConfig) -> float:
    return sum(s.worked_hours * _rate(context, config, s.employee_id) for s in existing if not s.retired)


def _budget_component(projected_total: float, budget: float) -> ScoringComponent:
    utilization = projected_total / budget * 100

    if utilization <= 90:
        score = 100.0
        reasoning = f"Within budget: {utilization:.1f}% utilized ({projected_total:.2f} of {budget:.2f})"
        suggestions = []
    elif utilization <= 100:
        score = 70.0
        reasoning = f"Near budget limit: {utilization:.1f}% utilized"
        suggestions = []
    else:
        score = max(0.0, 50 - (utilization - 100))
        reasoning = f"Budget exceeded: {utilization:.1f}% ({projected_total - budget:.2f} over)"
        suggestions = [f"Consider: reduce scheduled hours by {(projected_total - budget):.2f} to meet the budget"]

    return ScoringComponent("Budget Compliance", score, WEIGHTS["budget"], reasoning, suggestions)


# ============================================================================
# Shift assignment
# ============================================================================


def _shift_components(context: DecisionContext, config: ConsensusConfig) -> list[ScoringComponent]:
    proposed, existing = proposed_shift_changes(context)
    shift = proposed[0]
    history = [s for s in existing if s.id != shift.id]

    weekly_before = weekly_hours_before(shift.employee_id, shift, history)
    cost = _cost_for(shift, history, context, config)
    rate = _rate(context, config, shift.employee_id)

    components = [_overtime_component(cost, weekly_before, config)]
    components.append(ScoringComponent(
        "Regular Cost",
        85.0,
        WEIGHTS["regular"],
        f"Regular cost: {cost.regular_cost:.2f} for {cost.regular_hours:.1f} hours at {rate:.2f}/hour",
    ))

    if context.labor_budget:
        projected = _current_spending(history, context, config) + cost.total_cost
        components.append(_budget_component(projected, context.labor_budget))

    effective_rate = cost.total_cost / cost.total_hours
    efficiency = rate / effective_rate
    components.append(ScoringComponent(
        "Cost Efficiency",
        round(efficiency * 100),
        WEIGHTS["efficiency"],
        f"Cost efficiency: {efficiency * 100:.0f}% (effective rate {effective_rate:.2f} vs base {rate:.2f})",
    ))
    return components


def _overtime_component(cost: ShiftCost, weekly_before: float, config: ConsensusConfig) -> ScoringComponent:
    if cost.overtime_hours <= 0:
        return ScoringComponent(
            OVERTIME_COMPONENT, 100.0, WEIGHTS["overtime"], "Efficient: no overtime costs for this assignment"
        )

    ratio = cost.overtime_hours / cost.total_hours
    return ScoringComponent(
        OVERTIME_COMPONENT,
        max(0.0, 100 - ratio * 100),
        WEIGHTS["overtime"],
        (
            f"Cost concern: {cost.overtime_hours:.1f}h overtime at {cost.overtime_cost:.2f} "
            f"({ratio * 100:.0f}% of shift, {weekly_before:.1f}h already worked this week)"
        ),
        [f"Consider: assign to an employee with fewer hours to avoid the {config.overtime_premium}x premium"],
    )


# ============================================================================
# Schedule, swap and optimization
# ============================================================================


def _schedule_components(context: DecisionContext, config: ConsensusConfig) -> list[ScoringComponent]:
    proposed, existing = proposed_shift_changes(context)
    proposed_ids = {s.id for s in proposed}
    history = [s for s in existing if s.id not in proposed_ids] + proposed

    costs = [_cost_for(shift, history, context, config) for shift in proposed]
    total = sum(c.total_cost for c in costs)
    overtime = sum(c.overtime_cost for c in costs)
    overtime_ratio = overtime / total if total > 0 else 0.0

    components = [ScoringComponent(
        "Schedule Total Cost",
        round((1 - overtime_ratio) * 100),
        1.0,
        f"Schedule cost: {total:.2f} ({overtime_ratio * 100:.1f}% overtime)",
        [f"Consider: rebalance hours to cut {overtime:.2f} of overtime cost"] if overtime > 0 else [],
    )]

    if context.labor_budget:
        remaining = [s for s in existing if s.id not in proposed_ids]
        projected = _current_spending(remaining, context, config) + total
        components.append(_budget_component(projected, context.labor_budget))
    return components


def _swap_components(context: DecisionContext, config: ConsensusConfig) -> list[ScoringComponent]:
    proposal: SwapProposal = context.proposal
    swapped_ids = {proposal.shift_to_swap.id, proposal.shift_to_receive.id}
    history = [s for s in context.existing_shifts if s.id not in swapped_ids]

    requester, target = proposal.requesting_employee_id, proposal.target_employee_id
    give, receive = proposal.shift_to_swap, proposal.shift_to_receive

    cost_before = (
        _cost_for(give, history, context, config).total_cost
        + _cost_for(receive, history, context, config).total_cost
    )
    cost_after = (
        _cost_for(_reassigned(receive, requester), history, context, config).total_cost
        + _cost_for(_reassigned(give, target), history, context, config).total_cost
    )
    difference = cost_after - cost_before

    if difference <= 0:
        return [ScoringComponent(
            "Swap Cost Impact", 100.0, 1.0, f"Cost-efficient: swap saves {abs(difference):.2f}"
        )]

    score = max(0.0, 100 - (difference / cost_before) * 100) if cost_before > 0 else 0.0
    return [ScoringComponent(
        "Swap Cost Impact",
        score,
        1.0,
        f"Cost increase: swap adds {difference:.2f} to labor costs",
        [f"Consider: swap adds {difference:.2f}, check for a cheaper swap partner"],
    )]


def _optimization_components(proposal: OptimizationProposal) -> list[ScoringComponent]:
    savings = proposal.expected_savings
    if savings > 0:
        return [ScoringComponent(
            "Optimization Savings",
            min(100.0, 50 + savings / 10),
            1.0,
            f"Recommended: expected savings of {savings:.2f}",
        )]
    return [ScoringComponent(
        "Optimization Savings", 30.0, 1.0, "Not recommended: no cost savings identified"
    )]


def _reassigned(shift: ShiftRecord, employee_id: str) -> ShiftRecord:
    return replace(shift, employee_id=employee_id)


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
            response=f"{name}: I defer to the compliance assessment. Cost savings cannot justify labor law violations.",
            changed_position=own.recommendation != Recommendation.REJECT,
            new_recommendation=Recommendation.REJECT,
            new_confidence=90.0,
        )

    if employee and employee.recommendation == Recommendation.REJECT and employee.concerns:
        return AgentResponse(
            role=ROLE,
            response=(
                f"{name}: I acknowledge the employee welfare concerns. "
                "A modified approach could balance cost efficiency and employee needs."
            ),
            changed_position=own.recommendation != Recommendation.APPROVE_WITH_CONDITIONS,
            new_recommendation=Recommendation.APPROVE_WITH_CONDITIONS,
            new_confidence=70.0,
        )

    return AgentResponse(
        role=ROLE,
        response=f"{name}: My cost analysis stands. The financial impact should be weighed alongside other factors.",
    )
