"""Multi-agent consensus for scheduling decisions."""

from .types import (
    AgentDecision,
    AgentRole,
    ConsensusConfig,
    ConsensusRequest,
    ConsensusResponse,
    ConsensusResult,
    ConsensusStatus,
    DecisionContext,
    DecisionType,
    FinalDecision,
    Recommendation,
)
from .orchestrator import ConsensusOrchestrator
from .debate import DebateCoordinator
from .audit import ConsensusAuditEntry, build_audit_entry
from .transparency import TransparentDecision, apply_user_edits, build_transparent_decision

__all__ = [
    "AgentDecision",
    "AgentRole",
    "ConsensusConfig",
    "ConsensusRequest",
    "ConsensusResponse",
    "ConsensusResult",
    "ConsensusStatus",
    "DecisionContext",
    "DecisionType",
    "FinalDecision",
    "Recommendation",
    "ConsensusOrchestrator",
    "DebateCoordinator",
    "ConsensusAuditEntry",
    "build_audit_entry",
    "TransparentDecision",
    "apply_user_edits",
    "build_transparent_decision",
]
