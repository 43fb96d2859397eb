from .database import init_db, close_db
from .models import JurisdictionRuleDoc, ConsensusAuditDoc
from .audit import (
    record_consensus_audit,
    find_audit_entry,
    list_audit_entries,
    delete_audit_entry,
    purge_expired_audit_entries,
)

__all__ = [
    "init_db",
    "close_db",
    "JurisdictionRuleDoc",
    "ConsensusAuditDoc",
    "record_consensus_audit",
    "find_audit_entry",
    "list_audit_entries",
    "delete_audit_entry",
    "purge_expired_audit_entries",
]
