"""Tests for the consensus orchestrator state machine."""

import threading
import time

import pytest

from compliance.types import ViolationType
from consensus.agents import AgentEvaluator
from consensus.orchestrator import ConsensusOrchestrator, conservative_reject
from consensus.types import (
    AgentResponse,
    AgentRole,
    ConsensusConfig,
    ConsensusRequest,
    ConsensusStatus,
    DecisionType,
    FinalDecision,
    Recommendation,
    ScheduleProposal,
    ShiftAssignmentProposal,
)

from conftest import dt

A = Recommendation.APPROVE
AWC = Recommendation.APPROVE_WITH_CONDITIONS
R = Recommendation.REJECT


@pytest.fixture
def stubs(make_decision):
    """
    Factory for stub evaluators.

    positions maps role -> recommendation (default approve); responders maps
    role -> respond callable (default: hold position); extra maps role ->
    make_decision kwargs.
    """
    def _stubs(positions=None, responders=None, extra=None, confidence=80):
        positions = positions or {}
        responders = responders or {}
        extra = extra or {}

        def evaluator(role):
            def evaluate(context, config):
                return make_decision(role, positions.get(role, A), confidence=confidence, **extra.get(role, {}))

            def hold(context, own, decisions, topic, config):
                return AgentResponse(role=role, response=f"{role.value} holds")

            return AgentEvaluator(role.value, evaluate, responders.get(role, hold))

        return {role: evaluator(role) for role in AgentRole}
    return _stubs


@pytest.fixture
def context(make_shift, make_context):
    return make_context(make_shift("new", dt(20, 8)))


SPLIT = {AgentRole.EMPLOYEE_ADVOCATE: R, AgentRole.OPERATIONS: R}


def switch_to(recommendation):
    def respond(context, own, decisions, topic, config):
        return AgentResponse(
            role=own.role,
            response="switching",
            changed_position=True,
            new_recommendation=recommendation,
            new_confidence=75.0,
        )
    return respond


# ============================================================================
# Normal runs
# ============================================================================


class TestEvaluate:
    """Test collection, debate and final decisions."""

    def test_unanimous_approval_skips_debate(self, stubs, context, consensus_config):
        result = ConsensusOrchestrator(consensus_config, stubs()).evaluate(context)

        assert result.status == ConsensusStatus.UNANIMOUS_APPROVE
        assert result.final_decision == FinalDecision.APPROVE
        assert result.debate_rounds == ()
        assert len(result.agent_decisions) == 4
        assert result.truncated is False
        assert result.decision_type == DecisionType.SHIFT_ASSIGNMENT
        assert result.duration_ms >= 0

    def test_unresolved_split_escalates_after_max_rounds(self, stubs, context, consensus_config):
        result = ConsensusOrchestrator(consensus_config, stubs(SPLIT)).evaluate(context)

        assert result.status == ConsensusStatus.ESCALATE
        assert result.final_decision == FinalDecision.ESCALATE
        assert result.escalation_reason == "deadlock"
        assert len(result.debate_rounds) == 3
        # Initial round plus one full set per debate round
        assert len(result.agent_decisions) == 16
        assert [d.round_number for d in result.agent_decisions[-4:]] == [3, 3, 3, 3]

    def test_position_change_ends_debate(self, stubs, context, consensus_config):
        evaluators = stubs(SPLIT, responders={AgentRole.EMPLOYEE_ADVOCATE: switch_to(AWC)})

        result = ConsensusOrchestrator(consensus_config, evaluators).evaluate(context)

        assert result.status == ConsensusStatus.MAJORITY_APPROVE
        assert result.final_decision == FinalDecision.APPROVE
        assert len(result.debate_rounds) == 1
        assert result.debate_rounds[0].positions_changed is True
        # History keeps the original rejection
        assert result.agent_decisions[2].recommendation == R
        assert result.agent_decisions[6].recommendation == AWC

    def test_override_limits_rounds(self, stubs, context, consensus_config):
        result = ConsensusOrchestrator(consensus_config, stubs(SPLIT)).evaluate(
            context, override={"max_debate_rounds": 1}
        )

        assert len(result.debate_rounds) == 1
        assert result.escalation_reason == "deadlock"

    def test_decision_type_override_applies(self, stubs, context):
        config = ConsensusConfig(
            agent_timeout_seconds=10,
            decision_type_overrides={DecisionType.SHIFT_ASSIGNMENT: {"max_debate_rounds": 0}},
        )

        result = ConsensusOrchestrator(config, stubs(SPLIT)).evaluate(context)

        assert result.debate_rounds == ()
        assert result.status == ConsensusStatus.ESCALATE

    def test_hard_limit_overrides_approving_majority(self, stubs, context, consensus_config):
        evaluators = stubs(
            {AgentRole.COMPLIANCE: R},
            extra={AgentRole.COMPLIANCE: {"hard_limit_violations": (ViolationType.REST_DAILY,)}},
        )

        result = ConsensusOrchestrator(consensus_config, evaluators).evaluate(context)

        assert result.status == ConsensusStatus.MAJORITY_REJECT
        assert result.final_decision == FinalDecision.REJECT
        assert result.hard_limit_override is True
        assert result.debate_rounds == ()

    def test_real_agents_reject_rest_violation(self, make_shift, make_context):
        shift = make_shift("new", dt(20, 8))
        context = make_context(shift, existing=[make_shift("sun", dt(19, 14))])

        result = ConsensusOrchestrator(ConsensusConfig(agent_timeout_seconds=10)).evaluate(context)

        assert result.final_decision == FinalDecision.REJECT
        assert result.agent_decisions[0].hard_limit_violations == (ViolationType.REST_DAILY,)


# ============================================================================
# Timeouts, deadlines and cancellation
# ============================================================================


class TestInterruptions:
    """Test late agents, deadlines and cancellation."""

    def test_late_agent_gets_conservative_reject(self, stubs, context):
        release = threading.Event()
        evaluators = stubs(confidence=90)

        def slow(context, config):
            release.wait(5)
            return conservative_reject(AgentRole.OPERATIONS, "never used")

        evaluators[AgentRole.OPERATIONS] = AgentEvaluator("operations", slow, evaluators[AgentRole.OPERATIONS].respond)

        try:
            result = ConsensusOrchestrator(ConsensusConfig(agent_timeout_seconds=0.2), evaluators).evaluate(context)
        finally:
            release.set()

        operations = result.agent_decisions[3]
        assert operations.recommendation == R
        assert operations.confidence == 0
        assert operations.concerns == ("operations did not respond within its time budget",)
        assert result.status == ConsensusStatus.MAJORITY_APPROVE
        assert any("operations timed out after 0.2s" in note for note in result.notes)

    def test_cancelled_before_start(self, stubs, context, consensus_config):
        cancel = threading.Event()
        cancel.set()

        result = ConsensusOrchestrator(consensus_config, stubs()).evaluate(context, cancel_event=cancel)

        assert result.truncated is True
        assert result.status == ConsensusStatus.ESCALATE
        assert result.escalation_reason == "truncated"
        assert result.agent_decisions == ()
        assert any("cancelled" in note for note in result.notes)

    def test_cancelled_during_debate(self, stubs, context, consensus_config):
        cancel = threading.Event()

        def cancel_and_hold(context, own, decisions, topic, config):
            cancel.set()
            return AgentResponse(role=own.role, response="holding")

        evaluators = stubs(SPLIT, responders={AgentRole.OPERATIONS: cancel_and_hold})

        result = ConsensusOrchestrator(consensus_config, evaluators).evaluate(context, cancel_event=cancel)

        assert result.truncated is True
        assert result.final_decision == FinalDecision.ESCALATE
        assert len(result.debate_rounds) == 1
        assert len(result.agent_decisions) == 8

    def test_past_deadline_truncates(self, stubs, context, consensus_config):
        result = ConsensusOrchestrator(consensus_config, stubs()).evaluate(
            context, deadline=time.monotonic() - 1
        )

        assert result.truncated is True
        assert result.escalation_reason == "truncated"
        assert any("deadline exceeded" in note for note in result.notes)

    def test_truncated_run_still_honours_hard_limits(self, make_decision, stubs, context, consensus_config):
        cancel = threading.Event()
        evaluators = stubs()

        def reject_and_cancel(context, config):
            cancel.set()
            return make_decision(AgentRole.COMPLIANCE, R, hard_limit_violations=(ViolationType.HOURS_WEEKLY,))

        evaluators[AgentRole.COMPLIANCE] = AgentEvaluator(
            "compliance", reject_and_cancel, evaluators[AgentRole.COMPLIANCE].respond
        )

        result = ConsensusOrchestrator(consensus_config, evaluators).evaluate(context, cancel_event=cancel)

        assert result.truncated is True
        assert result.status == ConsensusStatus.MAJORITY_REJECT
        assert result.final_decision == FinalDecision.REJECT
        assert result.hard_limit_override is True


# ============================================================================
# Request handling
# ============================================================================


class TestHandleRequest:
    """Test request wrapping and error reporting."""

    def test_successful_request(self, make_shift, consensus_config):
        shift = make_shift("new", dt(20, 8))
        request = ConsensusRequest(
            decision_type=DecisionType.SHIFT_ASSIGNMENT,
            proposal=ShiftAssignmentProposal(employee_id="emp-1", shift=shift),
            requested_by="manager-1",
            roster_id="roster-1",
        )

        response = ConsensusOrchestrator(consensus_config).handle_request(request, as_of=dt(1))

        assert response.success is True
        assert response.error is None
        assert response.result.final_decision == FinalDecision.APPROVE
        assert len(response.result.agent_decisions) == 4

    def test_wrong_proposal_type_is_invalid_input(self, make_shift, consensus_config):
        request = ConsensusRequest(
            decision_type=DecisionType.SHIFT_ASSIGNMENT,
            proposal=ScheduleProposal(assignments=(make_shift("a", dt(20, 8)),)),
            requested_by="manager-1",
        )

        response = ConsensusOrchestrator(consensus_config).handle_request(request)

        assert response.success is False
        assert response.result is None
        assert response.error_kind == "invalid_input"
        assert "ShiftAssignmentProposal" in response.error

    @pytest.mark.parametrize("override", [
        {"majority_threshold": 2},
        {"agent_timeout_seconds": 0},
        {"majority_threshold": "high"},
        {"enable_cross_evaluation": "yes"},
        {"no_such_field": True},
        {"agent_weights": {"nobody": 1.0}},
    ])
    def test_bad_override_is_configuration_error(self, make_shift, consensus_config, override):
        request = ConsensusRequest(
            decision_type=DecisionType.SHIFT_ASSIGNMENT,
            proposal=ShiftAssignmentProposal(employee_id="emp-1", shift=make_shift("new", dt(20, 8))),
            requested_by="manager-1",
            config_override=override,
        )

        response = ConsensusOrchestrator(consensus_config).handle_request(request)

        assert response.success is False
        assert response.error_kind == "configuration"
