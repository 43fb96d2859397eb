"""Weighted vote aggregation over one round of agent decisions."""

from collections import Counter
from dataclasses import dataclass
from statistics import mean
from typing import Optional

from .types import (
    AgentDecision,
    AgentRole,
    ConsensusConfig,
    ConsensusStatus,
    FinalDecision,
    Recommendation,
    VoteTally,
)

ALIGNED_STATUSES = {
    ConsensusStatus.UNANIMOUS_APPROVE,
    ConsensusStatus.UNANIMOUS_REJECT,
    ConsensusStatus.MAJORITY_APPROVE,
    ConsensusStatus.MAJORITY_REJECT,
}

MAX_KEY_REASONS = 5
MAX_REMAINING_CONCERNS = 5
MAX_CONDITIONS = 3


@dataclass(frozen=True)
class Aggregation:
    status: ConsensusStatus
    final_decision: FinalDecision
    tally: VoteTally
    consensus_score: float
    confidence_level: float
    summary: str
    key_reasons: tuple[str, ...]
    remaining_concerns: tuple[str, ...]
    conditions: tuple[str, ...]
    escalation_reason: Optional[str] = None
    hard_limit_override: bool = False

    @property
    def aligned(self) -> bool:
        return self.status in ALIGNED_STATUSES and not self.escalation_reason


def tally_votes(decisions: list[AgentDecision], config: ConsensusConfig) -> VoteTally:
    total_weight = sum(config.weight_for(d.role) for d in decisions)
    weight_for = sum(config.weight_for(d.role) for d in decisions if d.recommendation.is_for)
    weight_against = total_weight - weight_for

    return VoteTally(
        votes_for=sum(1 for d in decisions if d.recommendation.is_for),
        votes_against=sum(1 for d in decisions if not d.recommendation.is_for),
        abstentions=sum(1 for d in decisions if d.recommendation == Recommendation.NEEDS_MODIFICATION),
        weighted_for=round(weight_for / total_weight, 4) if total_weight else 0.0,
        weighted_against=round(weight_against / total_weight, 4) if total_weight else 0.0,
    )


def determine_status(tally: VoteTally, config: ConsensusConfig) -> ConsensusStatus:
    if tally.votes_against == 0:
        return ConsensusStatus.UNANIMOUS_APPROVE
    if tally.votes_for == 0:
        return ConsensusStatus.UNANIMOUS_REJECT

    if config.require_unanimous:
        if tally.weighted_against >= config.majority_threshold:
            return ConsensusStatus.MAJORITY_REJECT
        return ConsensusStatus.DEADLOCK

    if tally.weighted_for >= config.majority_threshold:
        return ConsensusStatus.MAJORITY_APPROVE
    if tally.weighted_against >= config.majority_threshold:
        return ConsensusStatus.MAJORITY_REJECT
    return ConsensusStatus.DEADLOCK


def consensus_score(decisions: list[AgentDecision]) -> float:
    """Share of agents in the largest recommendation group, 0-100."""
    if not decisions:
        return 0.0
    groups = Counter(d.recommendation for d in decisions)
    return round(max(groups.values()) / len(decisions) * 100)


def summarize(status: ConsensusStatus, decisions: list[AgentDecision], escalation_reason: Optional[str]) -> str:
    names = ", ".join(d.name for d in decisions)
    if status == ConsensusStatus.UNANIMOUS_APPROVE:
        return f"All agents ({names}) unanimously recommend approval."
    if status == ConsensusStatus.UNANIMOUS_REJECT:
        return f"All agents ({names}) unanimously recommend rejection."
    if status == ConsensusStatus.MAJORITY_APPROVE:
        approvers = ", ".join(d.name for d in decisions if d.recommendation.is_for)
        return f"Majority approval: {approvers} recommend proceeding."
    if status == ConsensusStatus.MAJORITY_REJECT:
        rejecters = ", ".join(d.name for d in decisions if not d.recommendation.is_for)
        return f"Majority rejection: {rejecters} have significant concerns."
    if status == ConsensusStatus.DEADLOCK:
        return "Agents could not reach consensus. Human review required."
    reasons = {
        "deadlock": "deadlock",
        "low_confidence": "low confidence",
        "truncated": "an interrupted evaluation",
    }
    return f"Decision escalated for human review due to {reasons.get(escalation_reason, 'low confidence or deadlock')}."


def aggregate(decisions: list[AgentDecision], config: ConsensusConfig) -> Aggregation:
    """
    Turn one round of decisions into a consensus outcome.

    Order matters: status from the vote, then escalation, then the
    compliance hard-limit override, which wins over everything else.
    """
    tally = tally_votes(decisions, config)
    status = determine_status(tally, config)
    escalation_reason = None

    if status in (ConsensusStatus.UNANIMOUS_APPROVE, ConsensusStatus.MAJORITY_APPROVE):
        final = FinalDecision.APPROVE
    elif status == ConsensusStatus.DEADLOCK:
        if config.escalate_on_deadlock:
            status, final, escalation_reason = ConsensusStatus.ESCALATE, FinalDecision.ESCALATE, "deadlock"
        else:
            final = FinalDecision.REJECT
    else:
        final = FinalDecision.REJECT

    confidence_level = round(mean(d.confidence for d in decisions), 1) if decisions else 0.0
    if config.escalate_on_low_confidence and confidence_level < config.minimum_confidence_threshold:
        status, final, escalation_reason = ConsensusStatus.ESCALATE, FinalDecision.ESCALATE, "low_confidence"

    hard_limit_override = False
    compliance = next((d for d in decisions if d.role == AgentRole.COMPLIANCE), None)
    rejected = (ConsensusStatus.UNANIMOUS_REJECT, ConsensusStatus.MAJORITY_REJECT)
    if compliance and compliance.hard_limit_violations and status not in rejected:
        status, final, escalation_reason = ConsensusStatus.MAJORITY_REJECT, FinalDecision.REJECT, None
        hard_limit_override = True

    summary = summarize(status, decisions, escalation_reason)
    if hard_limit_override:
        kinds = ", ".join(v.value for v in compliance.hard_limit_violations)
        summary = f"Rejected: labor law hard limits violated ({kinds}). {summary}"

    return Aggregation(
        status=status,
        final_decision=final,
        tally=tally,
        consensus_score=consensus_score(decisions),
        confidence_level=confidence_level,
        summary=summary,
        key_reasons=tuple(
            reason for d in decisions if d.recommendation != Recommendation.REJECT for reason in d.reasoning
        )[:MAX_KEY_REASONS],
        remaining_concerns=tuple(c for d in decisions for c in d.concerns)[:MAX_REMAINING_CONCERNS],
        conditions=tuple(
            s for d in decisions if d.recommendation == Recommendation.APPROVE_WITH_CONDITIONS for s in d.suggestions
        )[:MAX_CONDITIONS],
        escalation_reason=escalation_reason,
        hard_limit_override=hard_limit_override,
    )
