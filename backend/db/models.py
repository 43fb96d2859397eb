from datetime import datetime
from typing import Optional
from beanie import Document, Indexed
from pydantic import Field
from pymongo import IndexModel

from compliance.types import JurisdictionConfig
from utils import utc_now


class JurisdictionRuleDoc(Document):
    """Working-time limits for one jurisdiction. Overrides the built-in defaults."""
    jurisdiction: Indexed(str, unique=True)
    max_daily_hours: float = 9
    max_weekly_hours: float = 40
    min_daily_rest_hours: float = 11
    min_weekly_rest_hours: float = 35
    publish_deadline_days: int = 14
    max_overtime_per_week: float = 10
    max_overtime_per_4_weeks: float = 25
    max_overtime_per_year: float = 200
    updated_by: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "jurisdiction_rules"

    def to_config(self) -> JurisdictionConfig:
        return JurisdictionConfig.from_doc(self)


# ============================================================================
# Consensus audit
# ============================================================================


class ConsensusAuditDoc(Document):
    """
    Append-only record of one consensus decision.
    Entries may only be deleted once retain_until has passed.
    """
    audit_id: Indexed(str, unique=True)
    decision_type: str
    status: str
    final_decision: str
    requested_by: str
    roster_id: Optional[str] = None
    shift_id: Optional[str] = None
    user_id: Optional[str] = None

    # Full ConsensusResult, as produced by ConsensusResult.to_dict()
    result: dict

    created_at: datetime = Field(default_factory=utc_now)
    retain_until: datetime

    class Settings:
        name = "consensus_audit"
        indexes = [
            IndexModel([("created_at", -1)]),
            IndexModel([("retain_until", 1)]),
            IndexModel([("roster_id", 1)]),
        ]
