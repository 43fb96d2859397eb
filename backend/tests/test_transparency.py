"""Unit tests for transparent decisions and reviewer edits.

Tests the per-agent component layout, the review summary, re-scoring of
components with consensus recalculation, and the limits on what a reviewer
may change.
"""

import pytest

from compliance.types import ViolationType
from consensus.aggregation import aggregate
from consensus.transparency import (
    ComponentEdit,
    apply_user_edits,
    build_transparent_decision,
)
from consensus.types import (
    AgentDecision,
    AgentRole,
    ConsensusResult,
    ConsensusStatus,
    DecisionType,
    FinalDecision,
    Recommendation,
    ScoreComponent,
)
from utils.errors import InvalidInputError

from conftest import dt

A = Recommendation.APPROVE
R = Recommendation.REJECT


def decision(role, recommendation, confidence, components, hard_limits=()):
    total = sum(c.weight for c in components)
    return AgentDecision(
        role=role,
        name=role.value,
        recommendation=recommendation,
        confidence=confidence,
        score=round(sum(c.score * c.weight for c in components) / total),
        score_breakdown={c.name: c.score for c in components},
        components=tuple(components),
        reasoning=(f"{role.value} reasoning",),
        concerns=tuple(c.reasoning for c in components if c.score < 50),
        hard_limit_violations=hard_limits,
        evaluated_at=dt(15, 9),
    )


def consensus_result(decisions, config) -> ConsensusResult:
    aggregation = aggregate(decisions, config)
    return ConsensusResult(
        status=aggregation.status,
        final_decision=aggregation.final_decision,
        tally=aggregation.tally,
        agent_decisions=tuple(decisions),
        debate_rounds=(),
        consensus_score=aggregation.consensus_score,
        confidence_level=aggregation.confidence_level,
        summary=aggregation.summary,
        key_reasons=aggregation.key_reasons,
        remaining_concerns=aggregation.remaining_concerns,
        conditions=aggregation.conditions,
        decision_type=DecisionType.SHIFT_ASSIGNMENT,
        evaluated_at=dt(15, 9),
        duration_ms=12.5,
        hard_limit_override=aggregation.hard_limit_override,
        escalation_reason=aggregation.escalation_reason,
    )


@pytest.fixture
def split_decisions():
    """Compliance and employee approve; cost and operations reject on critical components."""
    return [
        decision(AgentRole.COMPLIANCE, A, 95, [
            ScoreComponent("Rest Periods", 100, reasoning="Rest Periods: no findings", critical=True, editable=False),
        ]),
        decision(AgentRole.COST_OPTIMIZER, R, 90, [
            ScoreComponent("Overtime Cost Impact", 0, weight=2, reasoning="Shift is all overtime", critical=True),
            ScoreComponent("Cost Efficiency", 90, reasoning="Hourly rate is average"),
        ]),
        decision(AgentRole.EMPLOYEE_ADVOCATE, A, 85, [
            ScoreComponent("Preference Alignment", 85, reasoning="Preferred day", critical=True),
        ]),
        decision(AgentRole.OPERATIONS, R, 90, [
            ScoreComponent("Coverage Analysis", 30, reasoning="Shift is already covered", critical=True),
        ]),
    ]


@pytest.fixture
def transparent(split_decisions, consensus_config):
    return build_transparent_decision(consensus_result(split_decisions, consensus_config), "audit-1")


# ============================================================================
# Layout
# ============================================================================


class TestBuildTransparentDecision:
    """Test how a result is laid out for review."""

    def test_components_per_agent(self, transparent):
        ids = [c.id for c in transparent.components]

        assert ids == [
            "compliance:Rest Periods",
            "cost_optimizer:Overtime Cost Impact",
            "cost_optimizer:Cost Efficiency",
            "employee_advocate:Preference Alignment",
            "operations:Coverage Analysis",
        ]
        assert [c.editable for c in transparent.components] == [False, True, True, True, True]
        assert all(c.current_score == c.original_score for c in transparent.components)
        assert transparent.status == "pending_review"

    def test_deadlock_needs_review(self, transparent):
        assert transparent.result.status == ConsensusStatus.ESCALATE
        assert transparent.summary.headline == "Requires Review: Agents could not reach consensus"
        assert transparent.summary.recommendation == "needs_review"
        assert transparent.summary.confidence_level == "high"
        assert transparent.summary.main_concerns == ("Shift is all overtime", "Shift is already covered")

    def test_quick_actions(self, transparent):
        actions = [a["action"] for a in transparent.summary.quick_actions]
        assert actions == ["approve", "reject", "modify", "request_alternative"]

    def test_to_dict(self, transparent):
        data = transparent.to_dict()

        assert data["id"] == "audit-1"
        assert data["decision_type"] == "shift_assignment"
        assert data["editable_components"][1]["max_score"] == 100
        assert data["agent_evaluations"][1]["components"][0]["critical"] is True
        assert data["edits"] == []

    def test_stored_result_rebuilds(self, transparent):
        stored = transparent.result.to_dict()
        assert ConsensusResult.from_dict(stored) == transparent.result


# ============================================================================
# Reviewer edits
# ============================================================================


class TestApplyUserEdits:
    """Test re-scoring components and recalculating the consensus."""

    def test_edit_recalculates_consensus(self, transparent, consensus_config):
        edit = ComponentEdit("cost_optimizer:Overtime Cost Impact", 90, "Overtime budget approved")

        updated = apply_user_edits(transparent, [edit], consensus_config)
        cost = updated.evaluations[1]

        assert cost.score == 90
        assert cost.recommendation == A
        assert cost.score_breakdown["Overtime Cost Impact"] == 90
        assert cost.reasoning[-1] == (
            "Overtime Cost Impact re-scored by reviewer from 0 to 90: Overtime budget approved"
        )
        assert updated.result.status == ConsensusStatus.MAJORITY_APPROVE
        assert updated.result.final_decision == FinalDecision.APPROVE
        assert updated.summary.recommendation == "approve"
        assert updated.status == "modified"
        assert updated.edits == (edit,)
        assert updated.result.notes[-1] == "Recalculated after 1 reviewer edit(s)"

    def test_edited_decisions_are_appended_to_history(self, transparent, consensus_config):
        edit = ComponentEdit("cost_optimizer:Overtime Cost Impact", 90, "Overtime budget approved")

        updated = apply_user_edits(transparent, [edit], consensus_config)

        assert len(updated.result.agent_decisions) == 5
        assert updated.result.agent_decisions[1].recommendation == R
        assert updated.result.final_round_decisions()[1].recommendation == A
        assert transparent.evaluations[1].recommendation == R

    def test_component_records_the_edit(self, transparent, consensus_config):
        updated = apply_user_edits(
            transparent,
            [ComponentEdit("operations:Coverage Analysis", 150, "Peak hour")],
            consensus_config,
        )
        coverage = updated.components[4]

        assert coverage.current_score == 100
        assert coverage.original_score == 30
        assert coverage.user_modified is True
        assert coverage.user_reason == "Peak hour"
        assert not updated.components[1].user_modified

    def test_low_critical_component_forces_reject(self, transparent, consensus_config):
        updated = apply_user_edits(
            transparent,
            [ComponentEdit("employee_advocate:Preference Alignment", 20, "Employee asked for the day off")],
            consensus_config,
        )
        employee = updated.evaluations[2]

        assert employee.recommendation == R
        assert employee.confidence == 90
        assert updated.result.final_decision == FinalDecision.REJECT

    def test_unedited_agents_are_untouched(self, transparent, consensus_config):
        updated = apply_user_edits(
            transparent,
            [ComponentEdit("operations:Coverage Analysis", 80, "Peak hour")],
            consensus_config,
        )

        assert updated.evaluations[0] is transparent.evaluations[0]
        assert updated.evaluations[1] is transparent.evaluations[1]

    @pytest.mark.parametrize("component_id,message", [
        ("compliance:Rest Periods", "legal requirement"),
        ("cost_optimizer:Nothing", "Unknown scoring component"),
    ])
    def test_rejected_edits(self, transparent, consensus_config, component_id, message):
        with pytest.raises(InvalidInputError) as exc_info:
            apply_user_edits(transparent, [ComponentEdit(component_id, 100, "Looks fine")], consensus_config)
        assert message in exc_info.value.message

    def test_edits_cannot_lift_hard_limits(self, split_decisions, consensus_config):
        split_decisions[0] = decision(AgentRole.COMPLIANCE, R, 95, [
            ScoreComponent("Rest Periods", 60, reasoning="Rest Periods: 10h rest", critical=True, editable=False),
        ], hard_limits=(ViolationType.REST_DAILY,))
        transparent = build_transparent_decision(consensus_result(split_decisions, consensus_config), "audit-2")

        updated = apply_user_edits(transparent, [
            ComponentEdit("cost_optimizer:Overtime Cost Impact", 100, "Approved"),
            ComponentEdit("operations:Coverage Analysis", 100, "Approved"),
        ], consensus_config)

        assert updated.result.status == ConsensusStatus.MAJORITY_REJECT
        assert updated.result.hard_limit_override is True
        assert updated.summary.recommendation == "reject"
