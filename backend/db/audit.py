"""Persistence for consensus audit entries."""

import logging
from datetime import datetime
from typing import Optional

from consensus.audit import ConsensusAuditEntry, ensure_deletable
from utils import as_utc, utc_now

from .models import ConsensusAuditDoc

logger = logging.getLogger(__name__)


async def record_consensus_audit(entry: ConsensusAuditEntry) -> ConsensusAuditDoc:
    doc = ConsensusAuditDoc(
        audit_id=entry.id,
        decision_type=entry.decision_type.value,
        status=entry.result.status.value,
        final_decision=entry.result.final_decision.value,
        requested_by=entry.requested_by,
        roster_id=entry.roster_id,
        shift_id=entry.shift_id,
        user_id=entry.user_id,
        result=entry.result.to_dict(),
        created_at=entry.created_at,
        retain_until=entry.retain_until,
    )
    await doc.insert()
    logger.info(f"Recorded consensus audit {entry.id} ({doc.status}), retained until {entry.retain_until.date()}")
    return doc


async def find_audit_entry(audit_id: str) -> Optional[ConsensusAuditDoc]:
    return await ConsensusAuditDoc.find_one(ConsensusAuditDoc.audit_id == audit_id)


async def list_audit_entries(roster_id: Optional[str] = None, limit: int = 50) -> list[ConsensusAuditDoc]:
    query = ConsensusAuditDoc.find(ConsensusAuditDoc.roster_id == roster_id) if roster_id else ConsensusAuditDoc.find()
    return await query.sort(-ConsensusAuditDoc.created_at).limit(limit).to_list()


async def delete_audit_entry(audit_id: str, now: Optional[datetime] = None) -> bool:
    """
    Delete one audit entry.

    Returns:
        False if no such entry exists

    Raises:
        RetentionViolationError: Entry is still inside its retention period
    """
    doc = await find_audit_entry(audit_id)
    if doc is None:
        return False

    # Mongo hands back naive UTC datetimes
    ensure_deletable(audit_id, as_utc(doc.retain_until), now)
    await doc.delete()
    logger.info(f"Deleted consensus audit {audit_id}")
    return True


async def purge_expired_audit_entries(now: Optional[datetime] = None) -> int:
    """Delete every entry whose retention period has ended. Returns the count."""
    now = now or utc_now()
    result = await ConsensusAuditDoc.find(ConsensusAuditDoc.retain_until <= now).delete()
    deleted = result.deleted_count if result else 0
    logger.info(f"Purged {deleted} expired consensus audit entries")
    return deleted
