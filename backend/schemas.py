from datetime import date, datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, field_validator

from compliance.types import JurisdictionConfig, RosterInfo, ShiftRecord
from consensus.types import (
    ConsensusRequest,
    CoverageGoal,
    DecisionType,
    EmployeePreference,
    OptimizationProposal,
    ScheduleProposal,
    ShiftAssignmentProposal,
    ShiftChange,
    SwapProposal,
)
from consensus.transparency import ComponentEdit
from utils.time import as_utc


class ShiftIn(BaseModel):
    id: str
    employee_id: str
    start: datetime
    end: datetime
    break_minutes: int = 0
    retired: bool = False

    @field_validator("start", "end")
    @classmethod
    def normalize_utc(cls, value):
        return as_utc(value)

    def to_record(self) -> ShiftRecord:
        return ShiftRecord(
            id=self.id,
            employee_id=self.employee_id,
            start=self.start,
            end=self.end,
            break_minutes=self.break_minutes,
            retired=self.retired,
        )


class RosterIn(BaseModel):
    id: str
    start_date: date
    published_at: datetime | None = None

    @field_validator("published_at")
    @classmethod
    def normalize_utc(cls, value):
        return as_utc(value)

    def to_roster(self) -> RosterInfo:
        return RosterInfo(id=self.id, start_date=self.start_date, published_at=self.published_at)


# ============================================================================
# Compliance
# ============================================================================


class ValidateRequest(BaseModel):
    """Validate proposed shifts against the existing schedule."""
    proposed_shifts: list[ShiftIn]
    existing_shifts: list[ShiftIn] = []
    jurisdiction: str = "NO"
    roster: RosterIn | None = None
    enable_rest_periods: bool = True
    enable_working_hours: bool = True
    enable_publication: bool = True

    def toggles(self) -> dict[str, bool]:
        return {
            "enable_rest_periods": self.enable_rest_periods,
            "enable_working_hours": self.enable_working_hours,
            "enable_publication": self.enable_publication,
        }


class PublishCheckRequest(BaseModel):
    roster: RosterIn
    jurisdiction: str = "NO"
    at: datetime | None = None  # Prospective publish moment, defaults to now

    @field_validator("at")
    @classmethod
    def normalize_utc(cls, value):
        return as_utc(value)


class JurisdictionRuleUpdate(BaseModel):
    max_daily_hours: float = 9
    max_weekly_hours: float = 40
    min_daily_rest_hours: float = 11
    min_weekly_rest_hours: float = 35
    publish_deadline_days: int = 14
    max_overtime_per_week: float = 10
    max_overtime_per_4_weeks: float = 25
    max_overtime_per_year: float = 200
    updated_by: str | None = None

    def to_config(self, jurisdiction: str) -> JurisdictionConfig:
        """Build the config, which checks the limits for consistency."""
        return JurisdictionConfig(jurisdiction=jurisdiction, **self.model_dump(exclude={"updated_by"}))


# ============================================================================
# Consensus proposals
# ============================================================================


class CoverageGoalIn(BaseModel):
    start: datetime
    end: datetime
    minimum_employees: int
    preferred_employees: int | None = None
    required_skills: list[str] = []
    department: str | None = None

    @field_validator("start", "end")
    @classmethod
    def normalize_utc(cls, value):
        return as_utc(value)

    def to_goal(self) -> CoverageGoal:
        return CoverageGoal(
            start=self.start,
            end=self.end,
            minimum_employees=self.minimum_employees,
            preferred_employees=self.preferred_employees,
            required_skills=tuple(self.required_skills),
            department=self.department,
        )


class ShiftAssignmentIn(BaseModel):
    type: Literal["shift_assignment"] = "shift_assignment"
    employee_id: str
    shift: ShiftIn
    is_new: bool = True
    replaces_shift_id: str | None = None
    justification: str | None = None

    def to_proposal(self) -> ShiftAssignmentProposal:
        return ShiftAssignmentProposal(
            employee_id=self.employee_id,
            shift=self.shift.to_record(),
            is_new=self.is_new,
            replaces_shift_id=self.replaces_shift_id,
            justification=self.justification,
        )


class ScheduleIn(BaseModel):
    type: Literal["schedule"] = "schedule"
    assignments: list[ShiftIn]
    coverage_goals: list[CoverageGoalIn] = []

    def to_proposal(self) -> ScheduleProposal:
        return ScheduleProposal(
            assignments=tuple(s.to_record() for s in self.assignments),
            coverage_goals=tuple(g.to_goal() for g in self.coverage_goals),
        )


class SwapIn(BaseModel):
    type: Literal["swap"] = "swap"
    requesting_employee_id: str
    target_employee_id: str
    shift_to_swap: ShiftIn
    shift_to_receive: ShiftIn
    reason: str = ""

    def to_proposal(self) -> SwapProposal:
        return SwapProposal(
            requesting_employee_id=self.requesting_employee_id,
            target_employee_id=self.target_employee_id,
            shift_to_swap=self.shift_to_swap.to_record(),
            shift_to_receive=self.shift_to_receive.to_record(),
            reason=self.reason,
        )


class ShiftChangeIn(BaseModel):
    shift_id: str
    current_employee_id: str
    proposed_employee_id: str
    reason: str = ""


class OptimizationIn(BaseModel):
    type: Literal["optimization"] = "optimization"
    changes: list[ShiftChangeIn]
    expected_savings: float = 0.0
    affects_compliance: bool = False

    def to_proposal(self) -> OptimizationProposal:
        return OptimizationProposal(
            changes=tuple(ShiftChange(**c.model_dump()) for c in self.changes),
            expected_savings=self.expected_savings,
            affects_compliance=self.affects_compliance,
        )


ProposalIn = Annotated[
    Union[ShiftAssignmentIn, ScheduleIn, SwapIn, OptimizationIn],
    Field(discriminator="type"),
]


class EmployeePreferenceIn(BaseModel):
    employee_id: str
    preferred_days: list[str] = []
    avoid_days: list[str] = []
    prefer_morning: bool = False
    prefer_evening: bool = False
    prefer_night: bool = False
    max_hours_per_week: float | None = None
    min_hours_per_week: float | None = None
    unavailable_from: datetime | None = None
    unavailable_to: datetime | None = None
    unavailable_reason: str | None = None

    @field_validator("unavailable_from", "unavailable_to")
    @classmethod
    def normalize_utc(cls, value):
        return as_utc(value)

    def to_preference(self) -> EmployeePreference:
        data = self.model_dump()
        data["preferred_days"] = tuple(self.preferred_days)
        data["avoid_days"] = tuple(self.avoid_days)
        return EmployeePreference(**data)


class ConsensusEvaluateRequest(BaseModel):
    decision_type: DecisionType
    proposal: ProposalIn
    requested_by: str
    roster_id: str | None = None
    shift_id: str | None = None
    user_id: str | None = None
    config_override: dict[str, Any] | None = None

    # Context the caller supplies for the agents
    existing_shifts: list[ShiftIn] = []
    employee_preferences: list[EmployeePreferenceIn] = []
    jurisdiction: str = "NO"
    labor_budget: float | None = None
    coverage_goals: list[CoverageGoalIn] = []
    hourly_rates: dict[str, float] = {}
    roster: RosterIn | None = None
    as_of: datetime | None = None

    @field_validator("as_of")
    @classmethod
    def normalize_utc(cls, value):
        return as_utc(value)

    def to_request(self) -> ConsensusRequest:
        return ConsensusRequest(
            decision_type=self.decision_type,
            proposal=self.proposal.to_proposal(),
            requested_by=self.requested_by,
            roster_id=self.roster_id,
            shift_id=self.shift_id,
            user_id=self.user_id,
            config_override=self.config_override,
        )

    def context_fields(self, jurisdiction: JurisdictionConfig) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "existing_shifts": tuple(s.to_record() for s in self.existing_shifts),
            "employee_preferences": tuple(p.to_preference() for p in self.employee_preferences),
            "jurisdiction": jurisdiction,
            "labor_budget": self.labor_budget,
            "coverage_goals": tuple(g.to_goal() for g in self.coverage_goals),
            "hourly_rates": dict(self.hourly_rates),
            "roster": self.roster.to_roster() if self.roster else None,
        }
        if self.as_of is not None:
            fields["as_of"] = self.as_of
        return fields


class ComponentEditIn(BaseModel):
    component_id: str
    new_score: float = Field(ge=0, le=100)
    reason: str = Field(min_length=1)


class DecisionEditRequest(BaseModel):
    edits: list[ComponentEditIn] = Field(min_length=1)
    edited_by: str

    def to_edits(self) -> list[ComponentEdit]:
        return [ComponentEdit(**e.model_dump()) for e in self.edits]


class AuditPurgeResponse(BaseModel):
    success: bool
    deleted: int
