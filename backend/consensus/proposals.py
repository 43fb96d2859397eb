"""Proposal validation and translation of proposals into concrete shift changes."""

from dataclasses import replace

from compliance.types import ShiftRecord
from utils.errors import InvalidInputError

from .types import (
    DecisionContext,
    DecisionType,
    OptimizationProposal,
    ScheduleProposal,
    ShiftAssignmentProposal,
    SwapProposal,
)

PROPOSAL_TYPES = {
    DecisionType.SHIFT_ASSIGNMENT: ShiftAssignmentProposal,
    DecisionType.COMPLIANCE_OVERRIDE: ShiftAssignmentProposal,
    DecisionType.SCHEDULE_CREATION: ScheduleProposal,
    DecisionType.CONFLICT_RESOLUTION: ScheduleProposal,
    DecisionType.SHIFT_SWAP: SwapProposal,
    DecisionType.SCHEDULE_OPTIMIZATION: OptimizationProposal,
}


def validate_context(context: DecisionContext) -> None:
    """Reject structurally invalid contexts before any agent runs."""
    expected = PROPOSAL_TYPES.get(context.decision_type)
    if expected is None:
        raise InvalidInputError(f"Unknown decision type: {context.decision_type!r}")
    if not isinstance(context.proposal, expected):
        raise InvalidInputError(
            f"{context.decision_type.value} requires a {expected.__name__}, "
            f"got {type(context.proposal).__name__}",
            details={"decision_type": context.decision_type.value},
        )

    if context.labor_budget is not None and context.labor_budget <= 0:
        raise InvalidInputError("labor_budget must be positive", details={"labor_budget": context.labor_budget})

    proposal = context.proposal
    if isinstance(proposal, ShiftAssignmentProposal):
        if proposal.shift.employee_id != proposal.employee_id:
            raise InvalidInputError(
                f"Shift {proposal.shift.id} belongs to {proposal.shift.employee_id}, "
                f"not {proposal.employee_id}",
            )
    elif isinstance(proposal, ScheduleProposal):
        if not proposal.assignments:
            raise InvalidInputError("Schedule proposal has no assignments")
        ids = [s.id for s in proposal.assignments]
        if len(ids) != len(set(ids)):
            raise InvalidInputError("Schedule proposal contains duplicate shift ids")
    elif isinstance(proposal, SwapProposal):
        if proposal.requesting_employee_id == proposal.target_employee_id:
            raise InvalidInputError("Cannot swap a shift with the same employee")
        if proposal.shift_to_swap.employee_id != proposal.requesting_employee_id:
            raise InvalidInputError(f"Shift {proposal.shift_to_swap.id} is not held by the requester")
        if proposal.shift_to_receive.employee_id != proposal.target_employee_id:
            raise InvalidInputError(f"Shift {proposal.shift_to_receive.id} is not held by the target")
    elif isinstance(proposal, OptimizationProposal):
        if not proposal.changes:
            raise InvalidInputError("Optimization proposal has no changes")
        for change in proposal.changes:
            shift = context.shift_by_id(change.shift_id)
            if shift is None:
                raise InvalidInputError(
                    f"Optimization references unknown shift {change.shift_id}",
                    details={"shift_id": change.shift_id},
                )
            if shift.employee_id != change.current_employee_id:
                raise InvalidInputError(
                    f"Shift {change.shift_id} is held by {shift.employee_id}, not {change.current_employee_id}",
                )

    for goal in context.coverage_goals:
        if goal.end <= goal.start or goal.minimum_employees < 0:
            raise InvalidInputError("Coverage goal must have end > start and a non-negative minimum")


def proposed_shift_changes(context: DecisionContext) -> tuple[list[ShiftRecord], list[ShiftRecord]]:
    """
    The shifts the proposal would put on the schedule, and the existing
    shifts that remain around them.
    """
    proposal = context.proposal
    existing = list(context.existing_shifts)

    if isinstance(proposal, ShiftAssignmentProposal):
        if proposal.replaces_shift_id and proposal.replaces_shift_id != proposal.shift.id:
            existing = [s for s in existing if s.id != proposal.replaces_shift_id]
        return [proposal.shift], existing

    if isinstance(proposal, ScheduleProposal):
        return list(proposal.assignments), existing

    if isinstance(proposal, SwapProposal):
        # Same ids, new owners: these replace the existing records
        return [
            replace(proposal.shift_to_swap, employee_id=proposal.target_employee_id),
            replace(proposal.shift_to_receive, employee_id=proposal.requesting_employee_id),
        ], existing

    if isinstance(proposal, OptimizationProposal):
        proposed = []
        for change in proposal.changes:
            shift = context.shift_by_id(change.shift_id)
            proposed.append(replace(shift, employee_id=change.proposed_employee_id))
        return proposed, existing

    raise InvalidInputError(f"Unsupported proposal type: {type(proposal).__name__}")


def schedule_after_change(context: DecisionContext) -> list[ShiftRecord]:
    """Active shifts as they would look if the proposal were applied."""
    proposed, existing = proposed_shift_changes(context)
    by_id = {s.id: s for s in existing}
    for shift in proposed:
        by_id[shift.id] = shift
    return [s for s in by_id.values() if not s.retired]
