"""Audit entries for consensus decisions, retained for a fixed number of calendar years."""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from dateutil.relativedelta import relativedelta

import config as app_config
from utils.errors import RetentionViolationError
from utils.time import utc_now

from .types import ConsensusRequest, ConsensusResult, DecisionType


@dataclass(frozen=True)
class ConsensusAuditEntry:
    id: str
    result: ConsensusResult
    decision_type: DecisionType
    requested_by: str
    created_at: datetime
    retain_until: datetime
    roster_id: Optional[str] = None
    shift_id: Optional[str] = None
    user_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "result": self.result.to_dict(),
            "decision_type": self.decision_type.value,
            "requested_by": self.requested_by,
            "created_at": self.created_at.isoformat(),
            "retain_until": self.retain_until.isoformat(),
            "roster_id": self.roster_id,
            "shift_id": self.shift_id,
            "user_id": self.user_id,
        }


def retention_deadline(created_at: datetime, years: int = app_config.AUDIT_RETENTION_YEARS) -> datetime:
    """created_at plus whole calendar years (Feb 29 falls back to Feb 28)."""
    return created_at + relativedelta(years=years)


def build_audit_entry(
    request: ConsensusRequest,
    result: ConsensusResult,
    created_at: Optional[datetime] = None,
) -> ConsensusAuditEntry:
    return new_audit_entry(
        result,
        request.requested_by,
        roster_id=request.roster_id,
        shift_id=request.shift_id,
        user_id=request.user_id,
        created_at=created_at,
    )


def new_audit_entry(
    result: ConsensusResult,
    requested_by: str,
    roster_id: Optional[str] = None,
    shift_id: Optional[str] = None,
    user_id: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> ConsensusAuditEntry:
    """Audit entry for a result that did not come straight from a request, e.g. a reviewer recalculation."""
    created_at = created_at or utc_now()
    return ConsensusAuditEntry(
        id=str(uuid.uuid4()),
        result=result,
        decision_type=result.decision_type,
        requested_by=requested_by,
        created_at=created_at,
        retain_until=retention_deadline(created_at),
        roster_id=roster_id,
        shift_id=shift_id,
        user_id=user_id,
    )


def is_purgeable(retain_until: datetime, now: Optional[datetime] = None) -> bool:
    return (now or utc_now()) >= retain_until


def ensure_deletable(audit_id: str, retain_until: datetime, now: Optional[datetime] = None) -> None:
    """Raise RetentionViolationError if the entry is still inside its retention period."""
    if not is_purgeable(retain_until, now):
        raise RetentionViolationError(
            f"Audit entry {audit_id} must be retained until {retain_until.isoformat()}",
            details={"audit_id": audit_id, "retain_until": retain_until.isoformat()},
        )
