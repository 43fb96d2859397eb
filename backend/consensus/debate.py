"""Cross-evaluation rounds between agents that disagree."""

import logging
import math
from dataclasses import replace
from typing import Callable, Optional

from utils.time import utc_now

from .agents import EVALUATORS, AgentEvaluator
from .aggregation import Aggregation
from .types import (
    AgentDecision,
    AgentResponse,
    AgentRole,
    ConsensusConfig,
    DebateRound,
    DecisionContext,
    Recommendation,
)

logger = logging.getLogger(__name__)

MAX_DISAGREEMENT_POINTS = 3

# Runs one callable per role and returns their results; roles that did not
# answer in time get the fallback value instead.
Runner = Callable[[dict[AgentRole, Callable], dict[AgentRole, object]], dict[AgentRole, object]]


def run_sequentially(tasks: dict[AgentRole, Callable], fallbacks: dict[AgentRole, object]) -> dict[AgentRole, object]:
    return {role: task() for role, task in tasks.items()}


def identify_topic(decisions: list[AgentDecision], round_number: int) -> str:
    """The main point of disagreement between approvers and rejecters."""
    approvers = [d for d in decisions if d.recommendation.is_for]
    rejecters = [d for d in decisions if d.recommendation == Recommendation.REJECT]

    if approvers and rejecters:
        concerns = [c for d in rejecters for c in d.concerns]
        main = concerns[0] if concerns else "general disagreement"
        return f"Round {round_number}: Addressing concerns - {main}"
    return f"Round {round_number}: Reaching alignment on recommendation"


def majority_reached(decisions: list[AgentDecision], threshold: float) -> bool:
    """Head-count majority: one recommendation, or enough agents on one side."""
    if len({d.recommendation for d in decisions}) <= 1:
        return True
    needed = math.ceil(len(decisions) * threshold)
    votes_for = sum(1 for d in decisions if d.recommendation.is_for)
    return votes_for >= needed or len(decisions) - votes_for >= needed


class DebateCoordinator:
    """
    Runs debate rounds over a fixed context and config.

    Every round re-issues one AgentDecision per role for the new round
    number, so earlier rounds are never mutated.
    """

    def __init__(
        self,
        context: DecisionContext,
        config: ConsensusConfig,
        evaluators: Optional[dict[AgentRole, AgentEvaluator]] = None,
        runner: Optional[Runner] = None,
    ):
        self.context = context
        self.config = config
        self.evaluators = evaluators or EVALUATORS
        self.runner = runner or run_sequentially

    def should_debate(self, aggregation: Aggregation, rounds_run: int) -> bool:
        return (
            self.config.enable_cross_evaluation
            and not aggregation.aligned
            and rounds_run < self.config.max_debate_rounds
        )

    def run_round(
        self,
        decisions: list[AgentDecision],
        round_number: int,
    ) -> tuple[DebateRound, list[AgentDecision]]:
        """One round: every agent responds to the current decisions."""
        topic = identify_topic(decisions, round_number)
        logger.info(f"Debate {topic}")

        current = list(decisions)
        tasks = {
            d.role: self._respond_task(d, current, topic)
            for d in current
            if d.role in self.evaluators
        }
        fallbacks = {
            role: AgentResponse(role=role, response=f"{self.evaluators[role].name}: no response within time budget")
            for role in tasks
        }
        responses = self.runner(tasks, fallbacks)

        moved = [self._revise(d, responses.get(d.role, fallbacks.get(d.role)), round_number) for d in current]
        revised = [cross_evaluate(d, moved) for d in moved]
        reached = majority_reached(revised, self.config.majority_threshold)

        debate_round = DebateRound(
            round_number=round_number,
            topic=topic,
            responses=tuple(responses[d.role] for d in current if d.role in responses),
            consensus_reached=reached,
            resolution_summary=f"Consensus reached in round {round_number}" if reached else None,
        )
        if debate_round.positions_changed:
            changed = [r.role.value for r in debate_round.responses if r.changed_position]
            logger.info(f"Round {round_number}: positions changed for {', '.join(changed)}")
        return debate_round, revised

    def _respond_task(self, own: AgentDecision, decisions: list[AgentDecision], topic: str) -> Callable:
        evaluator = self.evaluators[own.role]
        return lambda: evaluator.respond(self.context, own, decisions, topic, self.config)

    def _revise(
        self,
        own: AgentDecision,
        response: Optional[AgentResponse],
        round_number: int,
    ) -> AgentDecision:
        recommendation = own.recommendation
        confidence = own.confidence
        revised_recommendation = None

        if response is not None and response.changed_position and response.new_recommendation:
            recommendation = response.new_recommendation
            revised_recommendation = response.new_recommendation
            if response.new_confidence is not None:
                confidence = response.new_confidence

        return replace(
            own,
            recommendation=recommendation,
            confidence=confidence,
            round_number=round_number,
            revised_recommendation=revised_recommendation,
            evaluated_at=utc_now(),
        )


def cross_evaluate(own: AgentDecision, decisions: list[AgentDecision]) -> AgentDecision:
    """Record how ``own`` stands against the other positions held at the end of the same round.

    An agent agrees with the others when a strict majority of them sit on its side
    of the vote. Disagreement points are the concerns raised from the other side.
    """
    others = [d for d in decisions if d.role != own.role]
    same_side = sum(1 for d in others if d.recommendation.is_for == own.recommendation.is_for)
    disagreement = tuple(
        concern
        for d in others
        if d.recommendation.is_for != own.recommendation.is_for
        for concern in d.concerns
    )[:MAX_DISAGREEMENT_POINTS]
    return replace(
        own,
        agrees_with_others=same_side * 2 > len(others),
        disagreement_points=disagreement,
    )
