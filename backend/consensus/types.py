"""Type definitions for the multi-agent consensus module."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from dateutil import parser

from compliance.types import JurisdictionConfig, RosterInfo, ShiftRecord, ViolationType
from utils.time import utc_now


class AgentRole(str, Enum):
    COMPLIANCE = "compliance"
    COST_OPTIMIZER = "cost_optimizer"
    EMPLOYEE_ADVOCATE = "employee_advocate"
    OPERATIONS = "operations"


class Recommendation(str, Enum):
    APPROVE = "approve"
    APPROVE_WITH_CONDITIONS = "approve_with_conditions"
    REJECT = "reject"
    NEEDS_MODIFICATION = "needs_modification"

    @property
    def is_for(self) -> bool:
        return self in (Recommendation.APPROVE, Recommendation.APPROVE_WITH_CONDITIONS)


class DecisionType(str, Enum):
    SHIFT_ASSIGNMENT = "shift_assignment"
    SCHEDULE_CREATION = "schedule_creation"
    SHIFT_SWAP = "shift_swap"
    SCHEDULE_OPTIMIZATION = "schedule_optimization"
    CONFLICT_RESOLUTION = "conflict_resolution"
    COMPLIANCE_OVERRIDE = "compliance_override"


class ConsensusStatus(str, Enum):
    UNANIMOUS_APPROVE = "unanimous_approve"
    MAJORITY_APPROVE = "majority_approve"
    UNANIMOUS_REJECT = "unanimous_reject"
    MAJORITY_REJECT = "majority_reject"
    DEADLOCK = "deadlock"
    ESCALATE = "escalate"


class FinalDecision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    ESCALATE = "escalate"


class OrchestrationState(str, Enum):
    COLLECTING = "collecting"
    AGGREGATING = "aggregating"
    DEBATING = "debating"
    ESCALATED = "escalated"
    FINAL = "final"


# ============================================================================
# Proposals
# ============================================================================


@dataclass(frozen=True)
class ShiftAssignmentProposal:
    """Assign (or edit) a single shift. Also used for compliance overrides."""
    employee_id: str
    shift: ShiftRecord
    is_new: bool = True
    replaces_shift_id: Optional[str] = None
    justification: Optional[str] = None


@dataclass(frozen=True)
class CoverageGoal:
    """Staffing target for a time slot."""
    start: datetime
    end: datetime
    minimum_employees: int
    preferred_employees: Optional[int] = None
    required_skills: tuple[str, ...] = ()
    department: Optional[str] = None


@dataclass(frozen=True)
class ScheduleProposal:
    """A whole roster (or the set of shifts resolving a conflict)."""
    assignments: tuple[ShiftRecord, ...]
    coverage_goals: tuple[CoverageGoal, ...] = ()


@dataclass(frozen=True)
class SwapProposal:
    requesting_employee_id: str
    target_employee_id: str
    shift_to_swap: ShiftRecord  # Currently held by the requester
    shift_to_receive: ShiftRecord  # Currently held by the target
    reason: str = ""


@dataclass(frozen=True)
class ShiftChange:
    shift_id: str
    current_employee_id: str
    proposed_employee_id: str
    reason: str = ""


@dataclass(frozen=True)
class OptimizationProposal:
    changes: tuple[ShiftChange, ...]
    expected_savings: float = 0.0
    affects_compliance: bool = False


Proposal = Union[ShiftAssignmentProposal, ScheduleProposal, SwapProposal, OptimizationProposal]


@dataclass(frozen=True)
class EmployeePreference:
    employee_id: str
    preferred_days: tuple[str, ...] = ()  # Day names, e.g. "Monday"
    avoid_days: tuple[str, ...] = ()
    prefer_morning: bool = False
    prefer_evening: bool = False
    prefer_night: bool = False
    max_hours_per_week: Optional[float] = None
    min_hours_per_week: Optional[float] = None
    unavailable_from: Optional[datetime] = None
    unavailable_to: Optional[datetime] = None
    unavailable_reason: Optional[str] = None


@dataclass(frozen=True)
class DecisionContext:
    """Everything an agent needs, resolved before orchestration starts."""
    decision_type: DecisionType
    proposal: Proposal
    existing_shifts: tuple[ShiftRecord, ...] = ()
    employee_preferences: tuple[EmployeePreference, ...] = ()
    jurisdiction: JurisdictionConfig = field(default_factory=JurisdictionConfig)
    labor_budget: Optional[float] = None
    coverage_goals: tuple[CoverageGoal, ...] = ()
    hourly_rates: dict[str, float] = field(default_factory=dict)
    roster: Optional[RosterInfo] = None
    as_of: datetime = field(default_factory=utc_now)
    roster_id: Optional[str] = None
    shift_id: Optional[str] = None
    user_id: Optional[str] = None

    def preference_for(self, employee_id: str) -> Optional[EmployeePreference]:
        for pref in self.employee_preferences:
            if pref.employee_id == employee_id:
                return pref
        return None

    def shift_by_id(self, shift_id: str) -> Optional[ShiftRecord]:
        for shift in self.existing_shifts:
            if shift.id == shift_id:
                return shift
        return None


# ============================================================================
# Agent output
# ============================================================================


@dataclass(frozen=True)
class ScoreComponent:
    """One weighted criterion behind an agent's score, as shown for review."""
    name: str
    score: float  # 0-100
    weight: float = 1.0
    reasoning: str = ""
    # Low scores on a critical component force a rejection
    critical: bool = False
    # Legal criteria are fixed; everything else may be re-scored by a reviewer
    editable: bool = True

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "score": self.score,
            "weight": self.weight,
            "reasoning": self.reasoning,
            "critical": self.critical,
            "editable": self.editable,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ScoreComponent":
        return cls(
            name=data["name"],
            score=data["score"],
            weight=data.get("weight", 1.0),
            reasoning=data.get("reasoning", ""),
            critical=data.get("critical", False),
            editable=data.get("editable", True),
        )


@dataclass(frozen=True)
class AgentDecision:
    """One agent's verdict for one round. Revisions are new values."""
    role: AgentRole
    name: str
    recommendation: Recommendation
    confidence: float
    score: float
    score_breakdown: dict[str, float] = field(default_factory=dict)
    components: tuple[ScoreComponent, ...] = ()
    reasoning: tuple[str, ...] = ()
    concerns: tuple[str, ...] = ()
    suggestions: tuple[str, ...] = ()
    hard_limit_violations: tuple[ViolationType, ...] = ()
    round_number: int = 0
    # Cross-evaluation, set only during debate rounds
    agrees_with_others: Optional[bool] = None
    disagreement_points: tuple[str, ...] = ()
    revised_recommendation: Optional[Recommendation] = None
    evaluated_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        return {
            "role": self.role.value,
            "name": self.name,
            "recommendation": self.recommendation.value,
            "confidence": self.confidence,
            "score": self.score,
            "score_breakdown": self.score_breakdown,
            "components": [c.to_dict() for c in self.components],
            "reasoning": list(self.reasoning),
            "concerns": list(self.concerns),
            "suggestions": list(self.suggestions),
            "hard_limit_violations": [v.value for v in self.hard_limit_violations],
            "round_number": self.round_number,
            "agrees_with_others": self.agrees_with_others,
            "disagreement_points": list(self.disagreement_points),
            "revised_recommendation": self.revised_recommendation.value if self.revised_recommendation else None,
            "evaluated_at": self.evaluated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AgentDecision":
        """Rebuild a decision from its stored to_dict() form."""
        revised = data.get("revised_recommendation")
        return cls(
            role=AgentRole(data["role"]),
            name=data["name"],
            recommendation=Recommendation(data["recommendation"]),
            confidence=data["confidence"],
            score=data["score"],
            score_breakdown=dict(data.get("score_breakdown", {})),
            components=tuple(ScoreComponent.from_dict(c) for c in data.get("components", [])),
            reasoning=tuple(data.get("reasoning", [])),
            concerns=tuple(data.get("concerns", [])),
            suggestions=tuple(data.get("suggestions", [])),
            hard_limit_violations=tuple(ViolationType(v) for v in data.get("hard_limit_violations", [])),
            round_number=data.get("round_number", 0),
            agrees_with_others=data.get("agrees_with_others"),
            disagreement_points=tuple(data.get("disagreement_points", [])),
            revised_recommendation=Recommendation(revised) if revised else None,
            evaluated_at=parser.isoparse(data["evaluated_at"]),
        )


@dataclass(frozen=True)
class AgentResponse:
    """An agent's reply in a debate round."""
    role: AgentRole
    response: str
    changed_position: bool = False
    new_recommendation: Optional[Recommendation] = None
    new_confidence: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "role": self.role.value,
            "response": self.response,
            "changed_position": self.changed_position,
            "new_recommendation": self.new_recommendation.value if self.new_recommendation else None,
            "new_confidence": self.new_confidence,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AgentResponse":
        new_recommendation = data.get("new_recommendation")
        return cls(
            role=AgentRole(data["role"]),
            response=data["response"],
            changed_position=data.get("changed_position", False),
            new_recommendation=Recommendation(new_recommendation) if new_recommendation else None,
            new_confidence=data.get("new_confidence"),
        )


@dataclass(frozen=True)
class DebateRound:
    round_number: int
    topic: str
    responses: tuple[AgentResponse, ...]
    consensus_reached: bool
    resolution_summary: Optional[str] = None

    @property
    def positions_changed(self) -> bool:
        return any(r.changed_position for r in self.responses)

    def to_dict(self) -> dict:
        return {
            "round_number": self.round_number,
            "topic": self.topic,
            "responses": [r.to_dict() for r in self.responses],
            "consensus_reached": self.consensus_reached,
            "positions_changed": self.positions_changed,
            "resolution_summary": self.resolution_summary,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DebateRound":
        return cls(
            round_number=data["round_number"],
            topic=data["topic"],
            responses=tuple(AgentResponse.from_dict(r) for r in data.get("responses", [])),
            consensus_reached=data["consensus_reached"],
            resolution_summary=data.get("resolution_summary"),
        )


@dataclass(frozen=True)
class VoteTally:
    votes_for: int
    votes_against: int
    abstentions: int  # needs_modification votes, counted against
    weighted_for: float
    weighted_against: float

    def to_dict(self) -> dict:
        return {
            "votes_for": self.votes_for,
            "votes_against": self.votes_against,
            "abstentions": self.abstentions,
            "weighted_for": self.weighted_for,
            "weighted_against": self.weighted_against,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "VoteTally":
        return cls(
            votes_for=data["votes_for"],
            votes_against=data["votes_against"],
            abstentions=data.get("abstentions", 0),
            weighted_for=data["weighted_for"],
            weighted_against=data["weighted_against"],
        )


# ============================================================================
# Configuration and result
# ============================================================================


DEFAULT_AGENT_WEIGHTS = {
    AgentRole.COMPLIANCE: 1.5,
    AgentRole.COST_OPTIMIZER: 1.0,
    AgentRole.EMPLOYEE_ADVOCATE: 1.2,
    AgentRole.OPERATIONS: 1.0,
}

# Score deducted per compliance finding
DEFAULT_COMPLIANCE_PENALTIES = {
    ViolationType.REST_DAILY: 40.0,
    ViolationType.REST_WEEKLY: 40.0,
    ViolationType.HOURS_DAILY: 30.0,
    ViolationType.HOURS_WEEKLY: 30.0,
    ViolationType.OVERTIME_WEEKLY: 20.0,
    ViolationType.OVERTIME_4WEEK: 20.0,
    ViolationType.OVERTIME_YEARLY: 20.0,
    ViolationType.PUBLISH_LATE: 10.0,
    ViolationType.PUBLISH_SHORT_NOTICE: 5.0,
}


@dataclass(frozen=True)
class ConsensusConfig:
    """Fully resolved consensus settings for one run."""
    require_unanimous: bool = False
    majority_threshold: float = 0.66
    max_debate_rounds: int = 3
    enable_cross_evaluation: bool = True
    agent_weights: dict[AgentRole, float] = field(default_factory=lambda: dict(DEFAULT_AGENT_WEIGHTS))
    escalate_on_deadlock: bool = True
    escalate_on_low_confidence: bool = True
    minimum_confidence_threshold: float = 60.0
    agent_timeout_seconds: float = 5.0
    compliance_penalties: dict[ViolationType, float] = field(
        default_factory=lambda: dict(DEFAULT_COMPLIANCE_PENALTIES)
    )
    default_hourly_rate: float = 200.0
    overtime_premium: float = 1.4
    # Partial overrides keyed by decision type, merged once per run
    decision_type_overrides: dict[DecisionType, dict[str, Any]] = field(default_factory=dict)

    def weight_for(self, role: AgentRole) -> float:
        return self.agent_weights.get(role, 1.0)


@dataclass(frozen=True)
class ConsensusResult:
    status: ConsensusStatus
    final_decision: FinalDecision
    tally: VoteTally
    agent_decisions: tuple[AgentDecision, ...]
    debate_rounds: tuple[DebateRound, ...]
    consensus_score: float
    confidence_level: float
    summary: str
    key_reasons: tuple[str, ...]
    remaining_concerns: tuple[str, ...]
    conditions: tuple[str, ...]
    decision_type: DecisionType
    evaluated_at: datetime
    duration_ms: float
    hard_limit_override: bool = False
    truncated: bool = False
    escalation_reason: Optional[str] = None
    notes: tuple[str, ...] = ()

    @property
    def total_rounds(self) -> int:
        return len(self.debate_rounds)

    def final_round_decisions(self) -> list[AgentDecision]:
        """Latest decision per role, in role order."""
        latest: dict[AgentRole, AgentDecision] = {}
        for decision in self.agent_decisions:
            latest[decision.role] = decision
        return [latest[role] for role in AgentRole if role in latest]

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "final_decision": self.final_decision.value,
            **self.tally.to_dict(),
            "agent_decisions": [d.to_dict() for d in self.agent_decisions],
            "debate_rounds": [r.to_dict() for r in self.debate_rounds],
            "total_rounds": self.total_rounds,
            "consensus_score": self.consensus_score,
            "confidence_level": self.confidence_level,
            "summary": self.summary,
            "key_reasons": list(self.key_reasons),
            "remaining_concerns": list(self.remaining_concerns),
            "conditions": list(self.conditions),
            "decision_type": self.decision_type.value,
            "evaluated_at": self.evaluated_at.isoformat(),
            "duration_ms": self.duration_ms,
            "hard_limit_override": self.hard_limit_override,
            "truncated": self.truncated,
            "escalation_reason": self.escalation_reason,
            "notes": list(self.notes),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ConsensusResult":
        """Rebuild a result from its stored to_dict() form, e.g. an audit entry."""
        return cls(
            status=ConsensusStatus(data["status"]),
            final_decision=FinalDecision(data["final_decision"]),
            tally=VoteTally.from_dict(data),
            agent_decisions=tuple(AgentDecision.from_dict(d) for d in data["agent_decisions"]),
            debate_rounds=tuple(DebateRound.from_dict(r) for r in data.get("debate_rounds", [])),
            consensus_score=data["consensus_score"],
            confidence_level=data["confidence_level"],
            summary=data["summary"],
            key_reasons=tuple(data.get("key_reasons", [])),
            remaining_concerns=tuple(data.get("remaining_concerns", [])),
            conditions=tuple(data.get("conditions", [])),
            decision_type=DecisionType(data["decision_type"]),
            evaluated_at=parser.isoparse(data["evaluated_at"]),
            duration_ms=data.get("duration_ms", 0.0),
            hard_limit_override=data.get("hard_limit_override", False),
            truncated=data.get("truncated", False),
            escalation_reason=data.get("escalation_reason"),
            notes=tuple(data.get("notes", [])),
        )


@dataclass(frozen=True)
class ConsensusRequest:
    decision_type: DecisionType
    proposal: Proposal
    requested_by: str
    roster_id: Optional[str] = None
    shift_id: Optional[str] = None
    user_id: Optional[str] = None
    config_override: Optional[dict[str, Any]] = None


@dataclass
class ConsensusResponse:
    success: bool
    result: Optional[ConsensusResult] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    audit_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "result": self.result.to_dict() if self.result else None,
            "error": self.error,
            "error_kind": self.error_kind,
            "audit_id": self.audit_id,
        }
