"""Labor law compliance module for shift scheduling."""

from .types import (
    ComplianceContext,
    JurisdictionConfig,
    PublicationStatus,
    PublishValidation,
    RosterInfo,
    ShiftRecord,
    ValidationResult,
    Violation,
    ViolationType,
    ViolationSeverity,
)
from .engine import ComplianceEngine
from .validators import (
    BaseValidator,
    RestPeriodValidator,
    WorkingHoursValidator,
    PublicationValidator,
)

__all__ = [
    "ComplianceContext",
    "JurisdictionConfig",
    "PublicationStatus",
    "PublishValidation",
    "RosterInfo",
    "ShiftRecord",
    "ValidationResult",
    "Violation",
    "ViolationType",
    "ViolationSeverity",
    "ComplianceEngine",
    "BaseValidator",
    "RestPeriodValidator",
    "WorkingHoursValidator",
    "PublicationValidator",
]
