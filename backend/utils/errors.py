"""Error types shared by the compliance and consensus core.

Only structurally invalid input or configuration is a hard failure.
Violations, concerns, deadlock and low confidence are data carried on the
results, never exceptions.
"""

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Kinds of failure surfaced to callers."""
    INVALID_INPUT = "invalid_input"
    CONFIGURATION = "configuration"
    EVALUATION_TIMEOUT = "evaluation_timeout"
    # Outcome kinds, reported through ConsensusResult.escalation_reason
    DEADLOCK = "deadlock"
    LOW_CONFIDENCE = "low_confidence"
    RETENTION = "retention"


class SchedulingCoreError(Exception):
    """Base exception carrying an error kind and structured details."""

    kind: ErrorKind = ErrorKind.INVALID_INPUT

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "details": self.details,
        }


class InvalidInputError(SchedulingCoreError):
    """Malformed or missing proposal/context fields. Raised before evaluation."""
    kind = ErrorKind.INVALID_INPUT


class ConfigurationError(SchedulingCoreError):
    """Jurisdiction or consensus configuration failed its invariant checks."""
    kind = ErrorKind.CONFIGURATION


class EvaluationTimeoutError(SchedulingCoreError):
    """An agent exceeded its time budget."""
    kind = ErrorKind.EVALUATION_TIMEOUT

    def __init__(self, message: str, role: Optional[str] = None, details: Optional[dict[str, Any]] = None):
        super().__init__(message, details)
        self.role = role


class RetentionViolationError(SchedulingCoreError):
    """Attempt to delete an audit entry before its retention timestamp."""
    kind = ErrorKind.RETENTION
