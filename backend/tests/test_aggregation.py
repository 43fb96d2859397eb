"""Unit tests for weighted vote aggregation."""

import pytest

from compliance.types import ViolationType
from consensus.aggregation import (
    aggregate,
    consensus_score,
    determine_status,
    summarize,
    tally_votes,
)
from consensus.types import (
    AgentRole,
    ConsensusConfig,
    ConsensusStatus,
    FinalDecision,
    Recommendation,
)

A = Recommendation.APPROVE
AWC = Recommendation.APPROVE_WITH_CONDITIONS
R = Recommendation.REJECT
NM = Recommendation.NEEDS_MODIFICATION


@pytest.fixture
def votes(make_decision):
    """Factory: one decision per role, in role order. overrides maps role -> make_decision kwargs."""
    def _votes(compliance, cost, employee, operations, confidence=80, overrides=None):
        recs = dict(zip(AgentRole, (compliance, cost, employee, operations)))
        overrides = overrides or {}
        return [
            make_decision(role, rec, confidence=confidence, **overrides.get(role, {}))
            for role, rec in recs.items()
        ]
    return _votes


@pytest.fixture
def config():
    return ConsensusConfig()


# ============================================================================
# Tally and status
# ============================================================================


class TestTally:
    """Test weighted vote counting."""

    def test_weighted_fractions(self, votes, config):
        tally = tally_votes(votes(A, R, AWC, NM), config)

        assert tally.votes_for == 2
        assert tally.votes_against == 2
        assert tally.abstentions == 1
        assert tally.weighted_for == 0.5745
        assert tally.weighted_against == 0.4255

    def test_custom_weights(self, votes):
        config = ConsensusConfig(agent_weights={role: 1.0 for role in AgentRole})
        tally = tally_votes(votes(A, A, R, R), config)
        assert tally.weighted_for == 0.5


class TestDetermineStatus:
    """Test status selection from a tally."""

    @pytest.mark.parametrize("recs,expected", [
        ((A, A, AWC, A), ConsensusStatus.UNANIMOUS_APPROVE),
        ((R, NM, R, R), ConsensusStatus.UNANIMOUS_REJECT),
        ((A, R, A, A), ConsensusStatus.MAJORITY_APPROVE),
        ((R, R, R, A), ConsensusStatus.MAJORITY_REJECT),
        ((R, R, A, A), ConsensusStatus.DEADLOCK),
    ])
    def test_status(self, votes, config, recs, expected):
        assert determine_status(tally_votes(votes(*recs), config), config) == expected

    def test_require_unanimous_turns_majority_into_deadlock(self, votes):
        config = ConsensusConfig(require_unanimous=True)
        tally = tally_votes(votes(A, R, A, A), config)
        assert determine_status(tally, config) == ConsensusStatus.DEADLOCK

    def test_consensus_score_is_largest_group(self, votes):
        assert consensus_score(votes(A, A, A, R)) == 75
        assert consensus_score(votes(A, A, AWC, R)) == 50
        assert consensus_score([]) == 0


# ============================================================================
# Aggregate
# ============================================================================


class TestAggregate:
    """Test escalation, the hard-limit override and summary fields."""

    def test_unanimous_approval(self, votes, config):
        aggregation = aggregate(votes(A, A, A, A), config)

        assert aggregation.status == ConsensusStatus.UNANIMOUS_APPROVE
        assert aggregation.final_decision == FinalDecision.APPROVE
        assert aggregation.aligned is True
        assert aggregation.consensus_score == 100
        assert aggregation.confidence_level == 80

    def test_deadlock_escalates(self, votes, config):
        aggregation = aggregate(votes(R, R, A, A), config)

        assert aggregation.status == ConsensusStatus.ESCALATE
        assert aggregation.final_decision == FinalDecision.ESCALATE
        assert aggregation.escalation_reason == "deadlock"
        assert aggregation.aligned is False

    def test_deadlock_without_escalation_rejects(self, votes):
        aggregation = aggregate(votes(R, R, A, A), ConsensusConfig(escalate_on_deadlock=False))

        assert aggregation.status == ConsensusStatus.DEADLOCK
        assert aggregation.final_decision == FinalDecision.REJECT
        assert aggregation.aligned is False

    def test_low_confidence_escalates(self, votes, config):
        aggregation = aggregate(votes(A, A, A, A, confidence=40), config)

        assert aggregation.status == ConsensusStatus.ESCALATE
        assert aggregation.escalation_reason == "low_confidence"

    def test_low_confidence_escalation_can_be_disabled(self, votes):
        aggregation = aggregate(votes(A, A, A, A, confidence=40), ConsensusConfig(escalate_on_low_confidence=False))
        assert aggregation.status == ConsensusStatus.UNANIMOUS_APPROVE

    def test_hard_limit_cannot_be_outvoted(self, votes, config):
        decisions = votes(
            R, A, A, A, overrides={AgentRole.COMPLIANCE: {"hard_limit_violations": (ViolationType.REST_DAILY,)}}
        )

        aggregation = aggregate(decisions, config)

        assert aggregation.tally.weighted_for > config.majority_threshold
        assert aggregation.status == ConsensusStatus.MAJORITY_REJECT
        assert aggregation.final_decision == FinalDecision.REJECT
        assert aggregation.hard_limit_override is True
        assert aggregation.summary.startswith("Rejected: labor law hard limits violated (REST_DAILY)")

    def test_hard_limit_wins_over_escalation(self, votes, config):
        decisions = votes(
            R, A, A, A,
            confidence=30,
            overrides={AgentRole.COMPLIANCE: {"hard_limit_violations": (ViolationType.HOURS_DAILY,)}},
        )

        aggregation = aggregate(decisions, config)

        assert aggregation.final_decision == FinalDecision.REJECT
        assert aggregation.escalation_reason is None
        assert aggregation.aligned is True

    def test_hard_limit_already_rejected_is_not_an_override(self, votes, config):
        decisions = votes(
            R, R, R, A, overrides={AgentRole.COMPLIANCE: {"hard_limit_violations": (ViolationType.REST_DAILY,)}}
        )

        aggregation = aggregate(decisions, config)

        assert aggregation.status == ConsensusStatus.MAJORITY_REJECT
        assert aggregation.hard_limit_override is False

    def test_key_reasons_skip_rejecters_and_are_capped(self, votes, config):
        reasons = {"reasoning": ("one", "two", "three")}
        decisions = votes(A, A, R, A, overrides={
            AgentRole.COMPLIANCE: reasons,
            AgentRole.COST_OPTIMIZER: reasons,
            AgentRole.OPERATIONS: reasons,
            AgentRole.EMPLOYEE_ADVOCATE: {"reasoning": ("rejected because",), "concerns": ("c1", "c2", "c3")},
        })

        aggregation = aggregate(decisions, config)

        assert len(aggregation.key_reasons) == 5
        assert "rejected because" not in aggregation.key_reasons
        assert aggregation.remaining_concerns == ("c1", "c2", "c3")

    def test_conditions_come_from_conditional_approvals(self, votes, config):
        decisions = votes(A, AWC, AWC, A, overrides={
            AgentRole.COMPLIANCE: {"suggestions": ("ignored",)},
            AgentRole.COST_OPTIMIZER: {"suggestions": ("s1", "s2")},
            AgentRole.EMPLOYEE_ADVOCATE: {"suggestions": ("s3", "s4")},
        })

        aggregation = aggregate(decisions, config)

        assert aggregation.conditions == ("s1", "s2", "s3")

    def test_summary_names_rejecters(self, votes, config):
        aggregation = aggregate(votes(R, R, R, A), config)
        assert aggregation.summary.startswith("Majority rejection: compliance, cost_optimizer, employee_advocate")

    def test_summary_for_escalation_reason(self, votes):
        assert "interrupted" in summarize(ConsensusStatus.ESCALATE, votes(A, A, A, A), "truncated")
        assert "deadlock" in summarize(ConsensusStatus.ESCALATE, votes(A, A, A, A), "deadlock")
