"""Unit tests for debate rounds between disagreeing agents."""

import pytest

from consensus.agents import EVALUATORS, AgentEvaluator
from consensus.aggregation import aggregate
from consensus.debate import DebateCoordinator, cross_evaluate, identify_topic, majority_reached
from consensus.types import (
    AgentResponse,
    AgentRole,
    ConsensusConfig,
    Recommendation,
)

from conftest import dt

A = Recommendation.APPROVE
AWC = Recommendation.APPROVE_WITH_CONDITIONS
R = Recommendation.REJECT


def holding(role):
    def respond(context, own, decisions, topic, config):
        return AgentResponse(role=role, response=f"{role.value} holds")
    return respond


def switching_to(recommendation, confidence=70.0):
    def respond(context, own, decisions, topic, config):
        return AgentResponse(
            role=own.role,
            response=f"{own.role.value} switches",
            changed_position=True,
            new_recommendation=recommendation,
            new_confidence=confidence,
        )
    return respond


@pytest.fixture
def split_decisions(make_decision):
    """Compliance and cost approve, employee and operations reject."""
    return [
        make_decision(AgentRole.COMPLIANCE, A, concerns=("Check overtime next week",)),
        make_decision(AgentRole.COST_OPTIMIZER, A),
        make_decision(AgentRole.EMPLOYEE_ADVOCATE, R, concerns=("Back-to-back night shifts",)),
        make_decision(AgentRole.OPERATIONS, R),
    ]


@pytest.fixture
def evaluators():
    """Everyone holds except the employee advocate, who moves to a conditional approval."""
    stubs = {role: AgentEvaluator(role.value, None, holding(role)) for role in AgentRole}
    stubs[AgentRole.EMPLOYEE_ADVOCATE] = AgentEvaluator("employee_advocate", None, switching_to(AWC))
    return stubs


@pytest.fixture
def coordinator(make_shift, make_context, consensus_config, evaluators):
    context = make_context(make_shift("new", dt(20, 8)))
    return DebateCoordinator(context, consensus_config, evaluators)


# ============================================================================
# Helpers
# ============================================================================


class TestTopicAndMajority:
    """Test topic selection and the head-count majority."""

    def test_topic_uses_first_rejecter_concern(self, split_decisions):
        topic = identify_topic(split_decisions, 2)
        assert topic == "Round 2: Addressing concerns - Back-to-back night shifts"

    def test_topic_without_rejecters(self, make_decision):
        decisions = [make_decision(role, A) for role in AgentRole]
        assert identify_topic(decisions, 1) == "Round 1: Reaching alignment on recommendation"

    def test_majority_reached(self, make_decision):
        three_for = [make_decision(role, rec) for role, rec in zip(AgentRole, (A, AWC, A, R))]
        two_for = [make_decision(role, rec) for role, rec in zip(AgentRole, (A, A, R, R))]

        assert majority_reached(three_for, 0.66) is True
        assert majority_reached(two_for, 0.66) is False
        assert majority_reached(two_for, 0.5) is True


# ============================================================================
# Coordinator
# ============================================================================


class TestDebateCoordinator:
    """Test round execution and revision of decisions."""

    def test_should_debate_when_not_aligned(self, coordinator, split_decisions, consensus_config):
        aggregation = aggregate(split_decisions, consensus_config)

        assert coordinator.should_debate(aggregation, 0) is True
        assert coordinator.should_debate(aggregation, consensus_config.max_debate_rounds) is False

    def test_no_debate_when_aligned(self, coordinator, make_decision, consensus_config):
        aggregation = aggregate([make_decision(role, A) for role in AgentRole], consensus_config)
        assert coordinator.should_debate(aggregation, 0) is False

    def test_no_debate_without_cross_evaluation(self, make_shift, make_context, split_decisions, evaluators):
        config = ConsensusConfig(enable_cross_evaluation=False)
        coordinator = DebateCoordinator(make_context(make_shift("new", dt(20, 8))), config, evaluators)

        assert coordinator.should_debate(aggregate(split_decisions, config), 0) is False

    def test_round_revises_positions(self, coordinator, split_decisions):
        debate_round, revised = coordinator.run_round(split_decisions, 1)

        assert debate_round.round_number == 1
        assert debate_round.topic == "Round 1: Addressing concerns - Back-to-back night shifts"
        assert debate_round.positions_changed is True
        assert debate_round.consensus_reached is True
        assert debate_round.resolution_summary == "Consensus reached in round 1"
        assert len(debate_round.responses) == 4

        employee = revised[2]
        assert employee.recommendation == AWC
        assert employee.revised_recommendation == AWC
        assert employee.confidence == 70
        assert all(d.round_number == 1 for d in revised)

    def test_earlier_round_is_not_mutated(self, coordinator, split_decisions):
        _, revised = coordinator.run_round(split_decisions, 1)

        assert split_decisions[2].recommendation == R
        assert split_decisions[2].round_number == 0
        assert revised[2] is not split_decisions[2]

    def test_cross_evaluation_fields(self, coordinator, split_decisions):
        _, revised = coordinator.run_round(split_decisions, 1)
        compliance, cost, employee, operations = revised

        assert compliance.agrees_with_others is True
        assert compliance.revised_recommendation is None
        assert operations.agrees_with_others is False
        # Concerns from the other side as it stands after the employee advocate moved
        assert operations.disagreement_points == ("Check overtime next week", "Back-to-back night shifts")
        assert cost.disagreement_points == ()

    def test_agreement_needs_a_strict_majority_of_the_others(self, make_decision):
        two_and_two = [make_decision(role, rec) for role, rec in zip(AgentRole, (A, R, AWC, R))]
        cost = cross_evaluate(two_and_two[1], two_and_two)
        compliance = cross_evaluate(two_and_two[0], two_and_two)

        assert cost.agrees_with_others is False
        assert compliance.agrees_with_others is False
        assert cross_evaluate(two_and_two[2], two_and_two[:3]).agrees_with_others is False

    def test_unanswered_roles_keep_their_position(
        self, make_shift, make_context, split_decisions, evaluators, consensus_config
    ):
        silent = DebateCoordinator(
            make_context(make_shift("new", dt(20, 8))),
            consensus_config,
            evaluators,
            runner=lambda tasks, fallbacks: dict(fallbacks),
        )

        debate_round, revised = silent.run_round(split_decisions, 1)

        assert [d.recommendation for d in revised] == [A, A, R, R]
        assert all("no response within time budget" in r.response for r in debate_round.responses)
        assert debate_round.consensus_reached is False

    def test_agents_defer_to_compliance_hard_limits(self, make_shift, make_context, consensus_config):
        context = make_context(make_shift("new", dt(20, 8)), existing=[make_shift("sun", dt(19, 14))])
        decisions = [EVALUATORS[role].evaluate(context, consensus_config) for role in AgentRole]
        assert decisions[0].recommendation == R

        debate_round, revised = DebateCoordinator(context, consensus_config).run_round(decisions, 1)

        assert [d.recommendation for d in revised] == [R, R, R, R]
        assert debate_round.consensus_reached is True
