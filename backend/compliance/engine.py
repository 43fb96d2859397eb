"""Compliance validation engine that orchestrates all validators."""

from datetime import date, datetime
from typing import Optional, Sequence, Union

from dateutil import parser

from utils.errors import InvalidInputError
from utils.time import as_utc

from .types import (
    ComplianceContext,
    JurisdictionConfig,
    RosterInfo,
    ShiftRecord,
    ValidationResult,
)
from .validators import (
    BaseValidator,
    PublicationValidator,
    RestPeriodValidator,
    WorkingHoursValidator,
)


class ComplianceEngine:
    """
    Main engine for running compliance validation.

    Runs the rest-period, working-hours and publication validators over a
    proposal and merges their findings. Validation is pure and deterministic:
    no I/O, no shared mutable state, safe to call from several threads.
    """

    def __init__(self):
        """Initialize with all validators."""
        self.validators: list[BaseValidator] = [
            RestPeriodValidator(),
            WorkingHoursValidator(),
            PublicationValidator(),
        ]

    def validate(
        self,
        proposal: Union[ShiftRecord, Sequence[ShiftRecord]],
        existing_shifts: Sequence[ShiftRecord],
        config: JurisdictionConfig,
        roster: Optional[RosterInfo] = None,
    ) -> ValidationResult:
        """
        Validate proposed shifts against existing ones.

        Args:
            proposal: One shift or a sequence of shifts being added or edited
            existing_shifts: Already scheduled shifts (history included)
            config: Jurisdiction rules
            roster: Roster publication data, if the publication check applies

        Returns:
            ValidationResult with violations and warnings in a stable order
        """
        proposed = [proposal] if isinstance(proposal, ShiftRecord) else list(proposal)
        context = ComplianceContext(
            config=config,
            proposed_shifts=proposed,
            existing_shifts=list(existing_shifts),
            roster=roster,
        )
        return self.validate_context(context)

    def validate_context(self, context: ComplianceContext) -> ValidationResult:
        """Run all enabled validators over a prepared context."""
        result = ValidationResult()

        for validator in self.validators:
            validator.validate(context, result)

        return result.finalize()

    @classmethod
    def build_context(
        cls,
        config: JurisdictionConfig,
        proposed: list[dict],
        existing: Optional[list[dict]] = None,
        roster: Optional[dict] = None,
        toggles: Optional[dict] = None,
    ) -> ComplianceContext:
        """
        Build a ComplianceContext from raw data.

        Args:
            config: Jurisdiction rules
            proposed: Shift dicts under review
            existing: Shift dicts already on the schedule
            roster: Dict with id, start_date and optional published_at
            toggles: Dict with enable_rest_periods / enable_working_hours / enable_publication

        Returns:
            ComplianceContext ready for validation
        """
        toggles = toggles or {}

        return ComplianceContext(
            config=config,
            proposed_shifts=cls.shifts_from_dicts(proposed),
            existing_shifts=cls.shifts_from_dicts(existing or []),
            roster=cls.roster_from_dict(roster) if roster else None,
            enable_rest_periods=toggles.get("enable_rest_periods", True),
            enable_working_hours=toggles.get("enable_working_hours", True),
            enable_publication=toggles.get("enable_publication", True),
        )

    @staticmethod
    def shifts_from_dicts(rows: list[dict]) -> list[ShiftRecord]:
        """Convert shift dicts (ISO timestamps or datetimes) to ShiftRecords."""
        shifts = []
        for row in rows:
            try:
                shifts.append(ShiftRecord(
                    id=str(row["id"]),
                    employee_id=str(row["employee_id"]),
                    start=_parse_datetime(row["start"]),
                    end=_parse_datetime(row["end"]),
                    break_minutes=int(row.get("break_minutes", 0)),
                    retired=bool(row.get("retired", False)),
                ))
            except KeyError as e:
                raise InvalidInputError(f"Shift is missing required field {e.args[0]!r}", details={"shift": row})
        return shifts

    @staticmethod
    def roster_from_dict(row: dict) -> RosterInfo:
        try:
            start_date = row["start_date"]
        except KeyError:
            raise InvalidInputError("Roster is missing required field 'start_date'", details={"roster": row})

        if isinstance(start_date, datetime):
            start_date = start_date.date()
        elif not isinstance(start_date, date):
            start_date = _parse_datetime(start_date).date()

        published_at = row.get("published_at")
        return RosterInfo(
            id=str(row.get("id", "")),
            start_date=start_date,
            published_at=_parse_datetime(published_at) if published_at else None,
        )


def _parse_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return as_utc(value)
    try:
        return as_utc(parser.isoparse(str(value)))
    except ValueError:
        raise InvalidInputError(f"Invalid timestamp: {value!r}")
