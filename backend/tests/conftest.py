import pytest
from datetime import datetime, timedelta, timezone

from compliance.types import JurisdictionConfig, ShiftRecord
from consensus.types import (
    AgentDecision,
    AgentRole,
    ConsensusConfig,
    DecisionContext,
    DecisionType,
    Recommendation,
    ShiftAssignmentProposal,
)


def dt(day: int, hour: int = 0, minute: int = 0, month: int = 1, year: int = 2025) -> datetime:
    """UTC timestamp helper. January 6, 2025 is a Monday."""
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


@pytest.fixture
def jurisdiction():
    """Default Norwegian working-time rules."""
    return JurisdictionConfig()


@pytest.fixture
def make_shift():
    """Factory to create ShiftRecord objects."""
    def _make_shift(
        shift_id: str,
        start: datetime,
        hours: float = 8,
        employee_id: str = "emp-1",
        break_minutes: int = 0,
        retired: bool = False,
    ) -> ShiftRecord:
        return ShiftRecord(
            id=shift_id,
            employee_id=employee_id,
            start=start,
            end=start + timedelta(hours=hours),
            break_minutes=break_minutes,
            retired=retired,
        )
    return _make_shift


@pytest.fixture
def make_week(make_shift):
    """Factory for one shift per day, starting at the given datetime."""
    def _make_week(
        prefix: str,
        first_start: datetime,
        days: int = 5,
        hours: float = 8,
        employee_id: str = "emp-1",
    ) -> list[ShiftRecord]:
        return [
            make_shift(f"{prefix}-{i}", first_start + timedelta(days=i), hours, employee_id)
            for i in range(days)
        ]
    return _make_week


@pytest.fixture
def consensus_config():
    """Consensus settings with a generous agent timeout for tests."""
    return ConsensusConfig(agent_timeout_seconds=10)


@pytest.fixture
def make_decision():
    """Factory to create AgentDecision objects."""
    def _make_decision(
        role: AgentRole,
        recommendation: Recommendation,
        confidence: float = 80,
        score: float = 80,
        reasoning: tuple = (),
        concerns: tuple = (),
        suggestions: tuple = (),
        hard_limit_violations: tuple = (),
    ) -> AgentDecision:
        return AgentDecision(
            role=role,
            name=role.value,
            recommendation=recommendation,
            confidence=confidence,
            score=score,
            reasoning=reasoning or (f"{role.value} reasoning",),
            concerns=concerns,
            suggestions=suggestions,
            hard_limit_violations=hard_limit_violations,
        )
    return _make_decision


@pytest.fixture
def make_context(jurisdiction):
    """Factory to create DecisionContext objects for a single shift assignment."""
    def _make_context(
        shift: ShiftRecord,
        existing: list[ShiftRecord] = None,
        decision_type: DecisionType = DecisionType.SHIFT_ASSIGNMENT,
        as_of: datetime = None,
        **kwargs
    ) -> DecisionContext:
        proposal = kwargs.pop("proposal", None) or ShiftAssignmentProposal(
            employee_id=shift.employee_id,
            shift=shift,
            justification=kwargs.pop("justification", None),
        )
        return DecisionContext(
            decision_type=decision_type,
            proposal=proposal,
            existing_shifts=tuple(existing or ()),
            jurisdiction=kwargs.pop("jurisdiction", jurisdiction),
            as_of=as_of or dt(1),
            **kwargs
        )
    return _make_context
