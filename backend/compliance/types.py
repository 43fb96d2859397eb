"""Type definitions for the compliance module."""

import os
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from config import JURISDICTION_ENV_VARS
from utils.errors import ConfigurationError, InvalidInputError
from utils.time import as_utc


class ViolationType(str, Enum):
    """Types of compliance findings."""
    REST_DAILY = "REST_DAILY"
    REST_WEEKLY = "REST_WEEKLY"
    HOURS_DAILY = "HOURS_DAILY"
    HOURS_WEEKLY = "HOURS_WEEKLY"
    OVERTIME_WEEKLY = "OVERTIME_WEEKLY"
    OVERTIME_4WEEK = "OVERTIME_4WEEK"
    OVERTIME_YEARLY = "OVERTIME_YEARLY"
    PUBLISH_LATE = "PUBLISH_LATE"
    PUBLISH_SHORT_NOTICE = "PUBLISH_SHORT_NOTICE"  # Warning only

    @property
    def is_hard_limit(self) -> bool:
        """Rest and working-hours limits cannot be outvoted."""
        return self.value.startswith(("REST_", "HOURS_"))


class ViolationSeverity(str, Enum):
    """Severity levels for findings."""
    ERROR = "error"  # Fails validation
    WARNING = "warning"  # Reported, never fails validation


class PublicationStatus(str, Enum):
    ON_TIME = "on_time"
    LATE = "late"
    NOT_PUBLISHED = "not_published"


@dataclass(frozen=True)
class JurisdictionConfig:
    """Working-time rules for one jurisdiction. Immutable once loaded."""
    jurisdiction: str = "NO"

    max_daily_hours: float = 9.0
    max_weekly_hours: float = 40.0

    min_daily_rest_hours: float = 11.0
    min_weekly_rest_hours: float = 35.0

    publish_deadline_days: int = 14

    # Overtime ceilings
    max_overtime_per_week: float = 10.0
    max_overtime_per_4_weeks: float = 25.0
    max_overtime_per_year: float = 200.0

    def __post_init__(self):
        invalid = [
            name
            for name in (
                "max_daily_hours",
                "max_weekly_hours",
                "min_daily_rest_hours",
                "min_weekly_rest_hours",
                "publish_deadline_days",
                "max_overtime_per_week",
                "max_overtime_per_4_weeks",
                "max_overtime_per_year",
            )
            if not getattr(self, name) > 0
        ]
        if invalid:
            raise ConfigurationError(
                f"Jurisdiction {self.jurisdiction}: values must be positive: {', '.join(invalid)}",
                details={"fields": invalid},
            )
        if self.min_daily_rest_hours > 24:
            raise ConfigurationError(
                f"Jurisdiction {self.jurisdiction}: min_daily_rest_hours must be <= 24",
                details={"min_daily_rest_hours": self.min_daily_rest_hours},
            )
        if self.min_weekly_rest_hours > 168:
            raise ConfigurationError(
                f"Jurisdiction {self.jurisdiction}: min_weekly_rest_hours must be <= 168",
                details={"min_weekly_rest_hours": self.min_weekly_rest_hours},
            )

    @classmethod
    def from_env(cls, jurisdiction: str = "NO") -> "JurisdictionConfig":
        """Create from environment variables, falling back to the defaults."""
        values: dict[str, Any] = {}
        for field_name, env_name in JURISDICTION_ENV_VARS.items():
            raw = os.getenv(env_name)
            if raw is None or raw == "":
                continue
            try:
                values[field_name] = int(raw) if field_name == "publish_deadline_days" else float(raw)
            except ValueError:
                raise ConfigurationError(
                    f"{env_name} must be numeric, got {raw!r}",
                    details={"variable": env_name},
                )
        return cls(jurisdiction=jurisdiction, **values)

    @classmethod
    def from_doc(cls, doc) -> "JurisdictionConfig":
        """Create from a JurisdictionRuleDoc."""
        return cls(
            jurisdiction=doc.jurisdiction,
            max_daily_hours=doc.max_daily_hours,
            max_weekly_hours=doc.max_weekly_hours,
            min_daily_rest_hours=doc.min_daily_rest_hours,
            min_weekly_rest_hours=doc.min_weekly_rest_hours,
            publish_deadline_days=doc.publish_deadline_days,
            max_overtime_per_week=doc.max_overtime_per_week,
            max_overtime_per_4_weeks=doc.max_overtime_per_4_weeks,
            max_overtime_per_year=doc.max_overtime_per_year,
        )

    def to_dict(self) -> dict:
        return {
            "jurisdiction": self.jurisdiction,
            "max_daily_hours": self.max_daily_hours,
            "max_weekly_hours": self.max_weekly_hours,
            "min_daily_rest_hours": self.min_daily_rest_hours,
            "min_weekly_rest_hours": self.min_weekly_rest_hours,
            "publish_deadline_days": self.publish_deadline_days,
            "max_overtime_per_week": self.max_overtime_per_week,
            "max_overtime_per_4_weeks": self.max_overtime_per_4_weeks,
            "max_overtime_per_year": self.max_overtime_per_year,
        }


@dataclass(frozen=True)
class ShiftRecord:
    """A scheduled shift for one employee."""
    id: str
    employee_id: str
    start: datetime
    end: datetime
    break_minutes: int = 0
    retired: bool = False  # Soft-deleted, kept for audit continuity

    def __post_init__(self):
        # Frozen, so normalization goes through object.__setattr__
        object.__setattr__(self, "start", as_utc(self.start))
        object.__setattr__(self, "end", as_utc(self.end))
        if not self.id or not self.employee_id:
            raise InvalidInputError("Shift requires an id and an employee_id", details={"shift_id": self.id})
        if self.end <= self.start:
            raise InvalidInputError(
                f"Shift {self.id} ends before it starts",
                details={"shift_id": self.id, "start": self.start.isoformat(), "end": self.end.isoformat()},
            )
        if self.break_minutes < 0 or self.break_minutes >= self.duration_minutes:
            raise InvalidInputError(
                f"Shift {self.id} break of {self.break_minutes} minutes is outside the shift duration",
                details={"shift_id": self.id, "break_minutes": self.break_minutes},
            )

    @property
    def duration_minutes(self) -> int:
        return round((self.end - self.start).total_seconds() / 60)

    @property
    def worked_minutes(self) -> int:
        """Shift duration minus the unpaid break."""
        return self.duration_minutes - self.break_minutes

    @property
    def worked_hours(self) -> float:
        return self.worked_minutes / 60

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "break_minutes": self.break_minutes,
            "retired": self.retired,
        }


@dataclass(frozen=True)
class RosterInfo:
    """Publication data for a roster."""
    id: str
    start_date: date
    published_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, "published_at", as_utc(self.published_at))


@dataclass
class Violation:
    """A single compliance finding (violation or warning)."""
    kind: ViolationType
    severity: ViolationSeverity
    message: str
    limit: float
    actual: float
    employee_id: Optional[str] = None
    shift_ids: tuple[str, ...] = ()
    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None
    details: dict = field(default_factory=dict)

    def sort_key(self) -> tuple:
        return (
            self.kind.value,
            self.employee_id or "",
            self.window_start.isoformat() if self.window_start else "",
            self.shift_ids,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "kind": self.kind.value,
            "severity": self.severity.value,
            "message": self.message,
            "limit": self.limit,
            "actual": self.actual,
            "employee_id": self.employee_id,
            "shift_ids": list(self.shift_ids),
            "window_start": self.window_start.isoformat() if self.window_start else None,
            "window_end": self.window_end.isoformat() if self.window_end else None,
            "details": self.details,
        }


@dataclass
class PublishValidation:
    """Outcome of the advance-publication check."""
    status: PublicationStatus
    can_publish: bool
    is_late: bool
    notice_days: Optional[int]
    publish_deadline: date
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "can_publish": self.can_publish,
            "is_late": self.is_late,
            "notice_days": self.notice_days,
            "publish_deadline": self.publish_deadline.isoformat(),
            "warnings": self.warnings,
        }


@dataclass
class ComplianceContext:
    """Context for running compliance validation."""
    config: JurisdictionConfig
    proposed_shifts: list[ShiftRecord]
    existing_shifts: list[ShiftRecord] = field(default_factory=list)
    roster: Optional[RosterInfo] = None

    # Config toggles
    enable_rest_periods: bool = True
    enable_working_hours: bool = True
    enable_publication: bool = True

    # Derived: active shifts per employee sorted by start, and ids under review
    timelines: dict[str, list[ShiftRecord]] = field(init=False, default_factory=dict)
    proposed_ids: frozenset[str] = field(init=False, default=frozenset())

    def __post_init__(self):
        # A proposed shift replaces any existing shift with the same id
        by_id: dict[str, ShiftRecord] = {s.id: s for s in self.existing_shifts}
        for shift in self.proposed_shifts:
            by_id[shift.id] = shift

        self.proposed_ids = frozenset(s.id for s in self.proposed_shifts if not s.retired)

        timelines: dict[str, list[ShiftRecord]] = {}
        for shift in by_id.values():
            if shift.retired:
                continue
            timelines.setdefault(shift.employee_id, []).append(shift)
        self.timelines = {
            emp: sorted(shifts, key=lambda s: (s.start, s.end, s.id))
            for emp, shifts in sorted(timelines.items())
        }

    def proposed_for(self, employee_id: str) -> list[ShiftRecord]:
        """Active proposed shifts of one employee, in start order."""
        return [s for s in self.timelines.get(employee_id, []) if s.id in self.proposed_ids]


@dataclass
class ValidationResult:
    """Result of compliance validation."""
    passed: bool = True
    violations: list[Violation] = field(default_factory=list)
    warnings: list[Violation] = field(default_factory=list)
    publication: Optional[PublishValidation] = None
    employee_weekly_hours: dict[str, dict[str, float]] = field(default_factory=dict)
    overtime_hours: dict[str, float] = field(default_factory=dict)

    def add_violation(self, violation: Violation):
        """Add a finding to the result. Warnings never fail validation."""
        if violation.severity == ViolationSeverity.WARNING:
            self.warnings.append(violation)
            return
        self.violations.append(violation)
        self.passed = False

    @property
    def hard_limit_violations(self) -> list[Violation]:
        return [v for v in self.violations if v.kind.is_hard_limit]

    @property
    def has_hard_limit_violation(self) -> bool:
        return any(v.kind.is_hard_limit for v in self.violations)

    def finalize(self) -> "ValidationResult":
        """Sort findings so identical input always yields identical output."""
        self.violations.sort(key=Violation.sort_key)
        self.warnings.sort(key=Violation.sort_key)
        return self

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "passed": self.passed,
            "violations": [v.to_dict() for v in self.violations],
            "warnings": [w.to_dict() for w in self.warnings],
            "publication": self.publication.to_dict() if self.publication else None,
            "employee_weekly_hours": self.employee_weekly_hours,
            "overtime_hours": self.overtime_hours,
        }
