"""
Transparent decisions: a consensus result laid out for human review.

Every agent's score is broken into its components. A reviewer may re-score
the editable ones, after which the agent scores, recommendations and the
consensus are recalculated. Compliance components are never editable, so an
edit cannot talk a proposal past a labor-law hard limit.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from utils.errors import InvalidInputError
from utils.time import utc_now

from .agents.common import rescore_decision
from .aggregation import aggregate
from .types import (
    AgentDecision,
    AgentRole,
    ConsensusConfig,
    ConsensusResult,
    FinalDecision,
)

logger = logging.getLogger(__name__)

MAX_KEY_POINTS = 4
MAX_MAIN_CONCERNS = 4
MAX_SCORE = 100.0

PENDING_REVIEW = "pending_review"
MODIFIED = "modified"


@dataclass(frozen=True)
class EditableComponent:
    id: str  # "<role>:<component name>", stable across reloads
    role: AgentRole
    name: str
    original_score: float
    current_score: float
    weight: float
    reasoning: str
    editable: bool
    user_modified: bool = False
    user_reason: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "role": self.role.value,
            "name": self.name,
            "original_score": self.original_score,
            "current_score": self.current_score,
            "max_score": MAX_SCORE,
            "weight": self.weight,
            "reasoning": self.reasoning,
            "editable": self.editable,
            "user_modified": self.user_modified,
            "user_reason": self.user_reason,
        }


@dataclass(frozen=True)
class ComponentEdit:
    component_id: str
    new_score: float
    reason: str


@dataclass(frozen=True)
class DecisionSummary:
    headline: str
    recommendation: str  # approve, reject or needs_review
    confidence_level: str  # high, medium or low
    key_points: tuple[str, ...]
    main_concerns: tuple[str, ...]
    quick_actions: tuple[dict, ...]

    def to_dict(self) -> dict:
        return {
            "headline": self.headline,
            "recommendation": self.recommendation,
            "confidence_level": self.confidence_level,
            "key_points": list(self.key_points),
            "main_concerns": list(self.main_concerns),
            "quick_actions": list(self.quick_actions),
        }


@dataclass(frozen=True)
class TransparentDecision:
    id: str
    result: ConsensusResult
    evaluations: tuple[AgentDecision, ...]
    components: tuple[EditableComponent, ...]
    summary: DecisionSummary
    status: str
    created_at: datetime
    edits: tuple[ComponentEdit, ...] = ()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "decision_type": self.result.decision_type.value,
            "status": self.status,
            "created_at": self.created_at.isoformat(),
            "agent_evaluations": [d.to_dict() for d in self.evaluations],
            "editable_components": [c.to_dict() for c in self.components],
            "consensus_result": self.result.to_dict(),
            "summary": self.summary.to_dict(),
            "edits": [
                {"component_id": e.component_id, "new_score": e.new_score, "reason": e.reason}
                for e in self.edits
            ],
        }


def component_id(role: AgentRole, name: str) -> str:
    return f"{role.value}:{name}"


def _quick_actions(recommendation: str, has_concerns: bool) -> tuple[dict, ...]:
    actions = [
        {"label": "Approve as is", "action": "approve",
         "description": "Accept the current proposal without changes"},
        {"label": "Reject", "action": "reject",
         "description": "Reject the proposal and request alternatives"},
        {"label": "Modify", "action": "modify",
         "description": "Edit individual components and recalculate"},
    ]
    if recommendation == "reject" or has_concerns:
        actions.append({"label": "Request Alternative", "action": "request_alternative",
                        "description": "Ask for a different proposal that addresses concerns"})
    return tuple(actions)


def summarize_for_review(result: ConsensusResult, evaluations: list[AgentDecision]) -> DecisionSummary:
    count = len(evaluations)
    if result.final_decision == FinalDecision.APPROVE:
        headline = f"Recommended: {result.tally.votes_for}/{count} agents approve"
        recommendation = "approve"
    elif result.final_decision == FinalDecision.REJECT:
        headline = f"Not Recommended: {result.tally.votes_against}/{count} agents have concerns"
        recommendation = "reject"
    else:
        headline = "Requires Review: Agents could not reach consensus"
        recommendation = "needs_review"

    if result.confidence_level >= 80:
        confidence_level = "high"
    elif result.confidence_level >= 60:
        confidence_level = "medium"
    else:
        confidence_level = "low"

    concerns = tuple(c for d in evaluations for c in d.concerns)[:MAX_MAIN_CONCERNS]
    return DecisionSummary(
        headline=headline,
        recommendation=recommendation,
        confidence_level=confidence_level,
        key_points=tuple(r for d in evaluations for r in d.reasoning)[:MAX_KEY_POINTS],
        main_concerns=concerns,
        quick_actions=_quick_actions(recommendation, bool(concerns)),
    )


def _components_of(evaluations: list[AgentDecision]) -> tuple[EditableComponent, ...]:
    return tuple(
        EditableComponent(
            id=component_id(d.role, c.name),
            role=d.role,
            name=c.name,
            original_score=c.score,
            current_score=c.score,
            weight=c.weight,
            reasoning=c.reasoning,
            editable=c.editable,
        )
        for d in evaluations
        for c in d.components
    )


def build_transparent_decision(
    result: ConsensusResult,
    decision_id: str,
    created_at: Optional[datetime] = None,
) -> TransparentDecision:
    """Lay out the final round of a consensus result for review."""
    evaluations = result.final_round_decisions()
    return TransparentDecision(
        id=decision_id,
        result=result,
        evaluations=tuple(evaluations),
        components=_components_of(evaluations),
        summary=summarize_for_review(result, evaluations),
        status=PENDING_REVIEW,
        created_at=created_at or utc_now(),
    )


def apply_user_edits(
    decision: TransparentDecision,
    edits: list[ComponentEdit],
    config: ConsensusConfig,
) -> TransparentDecision:
    """
    Re-score components and recalculate the consensus.

    Scores are clamped to 0-100. The edited agents get new decision values,
    appended to the result's history, and the final round is re-aggregated.

    Raises:
        InvalidInputError: An edit names an unknown or non-editable component
    """
    by_id = {c.id: c for c in decision.components}
    for edit in edits:
        component = by_id.get(edit.component_id)
        if component is None:
            raise InvalidInputError(
                f"Unknown scoring component: {edit.component_id}",
                details={"component_id": edit.component_id},
            )
        if not component.editable:
            raise InvalidInputError(
                f"Scoring component {edit.component_id} is a legal requirement and cannot be edited",
                details={"component_id": edit.component_id},
            )
        by_id[edit.component_id] = replace(
            component,
            current_score=min(MAX_SCORE, max(0.0, edit.new_score)),
            user_modified=True,
            user_reason=edit.reason,
        )

    components = tuple(by_id.values())
    edited_roles = {by_id[e.component_id].role for e in edits}
    evaluations = []
    for evaluation in decision.evaluations:
        if evaluation.role not in edited_roles:
            evaluations.append(evaluation)
            continue
        changed = [c for c in components if c.role == evaluation.role and c.user_modified]
        evaluations.append(rescore_decision(
            evaluation,
            {c.name: c.current_score for c in changed},
            notes=[
                f"{c.name} re-scored by reviewer from {c.original_score:g} to {c.current_score:g}: {c.user_reason}"
                for c in changed
            ],
        ))
        logger.info(
            f"{evaluation.name} re-scored from {evaluation.score:g} to {evaluations[-1].score:g} "
            f"({evaluations[-1].recommendation.value})"
        )

    aggregation = aggregate(evaluations, config)
    new_decisions = tuple(d for d in evaluations if d.role in edited_roles)
    result = replace(
        decision.result,
        status=aggregation.status,
        final_decision=aggregation.final_decision,
        tally=aggregation.tally,
        agent_decisions=decision.result.agent_decisions + new_decisions,
        consensus_score=aggregation.consensus_score,
        confidence_level=aggregation.confidence_level,
        summary=aggregation.summary,
        key_reasons=aggregation.key_reasons,
        remaining_concerns=aggregation.remaining_concerns,
        conditions=aggregation.conditions,
        evaluated_at=utc_now(),
        hard_limit_override=aggregation.hard_limit_override,
        escalation_reason=aggregation.escalation_reason,
        notes=decision.result.notes + (f"Recalculated after {len(edits)} reviewer edit(s)",),
    )
    logger.info(
        f"Decision {decision.id} recalculated after {len(edits)} edit(s): "
        f"{decision.result.status.value} -> {result.status.value}"
    )

    return replace(
        decision,
        result=result,
        evaluations=tuple(evaluations),
        components=components,
        summary=summarize_for_review(result, evaluations),
        status=MODIFIED,
        edits=decision.edits + tuple(edits),
    )
