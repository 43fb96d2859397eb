"""Compliance validators for working-time rules."""

from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import NamedTuple, Optional

from utils.time import iso_week_key, minutes_between, utc_now, week_start

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

SHORT_NOTICE_DAYS = 7
WEEK = timedelta(days=7)


class WorkStretch(NamedTuple):
    """Shifts of one employee with no qualifying weekly rest between them."""
    start: datetime
    end: datetime
    longest_rest: int  # minutes
    shift_ids: list[str]


class BaseValidator(ABC):
    """Base class for compliance validators."""

    @abstractmethod
    def validate(self, context: ComplianceContext, result: ValidationResult) -> None:
        """Validate compliance and add violations to result."""
        pass


def _hours(minutes: int) -> float:
    return round(minutes / 60, 2)


class RestPeriodValidator(BaseValidator):
    """Validates minimum daily rest between shifts and weekly continuous rest."""

    def validate(self, context: ComplianceContext, result: ValidationResult) -> None:
        """Check daily and weekly rest for every employee with proposed shifts."""
        if not context.enable_rest_periods:
            return

        for emp_id, shifts in context.timelines.items():
            proposed = context.proposed_for(emp_id)
            if not proposed:
                continue
            self._check_daily_rest(emp_id, shifts, context, result)
            self._check_weekly_rest(emp_id, shifts, proposed, context.config, result)

    def _check_daily_rest(
        self,
        emp_id: str,
        shifts: list[ShiftRecord],
        context: ComplianceContext,
        result: ValidationResult,
    ) -> None:
        min_rest_minutes = round(context.config.min_daily_rest_hours * 60)

        for i in range(1, len(shifts)):
            prev_shift = shifts[i - 1]
            curr_shift = shifts[i]
            if prev_shift.id not in context.proposed_ids and curr_shift.id not in context.proposed_ids:
                continue

            rest_minutes = minutes_between(prev_shift.end, curr_shift.start)
            if rest_minutes >= min_rest_minutes:
                continue

            result.add_violation(Violation(
                kind=ViolationType.REST_DAILY,
                severity=ViolationSeverity.ERROR,
                message=(
                    f"Employee {emp_id} has only {_hours(rest_minutes)}h rest between shifts "
                    f"{prev_shift.id} and {curr_shift.id}, minimum is {context.config.min_daily_rest_hours}h"
                ),
                limit=context.config.min_daily_rest_hours,
                actual=_hours(rest_minutes),
                employee_id=emp_id,
                shift_ids=(prev_shift.id, curr_shift.id),
                window_start=prev_shift.end,
                window_end=curr_shift.start,
                details={
                    "previous_shift_end": prev_shift.end.isoformat(),
                    "next_shift_start": curr_shift.start.isoformat(),
                    "overlapping": rest_minutes < 0,
                },
            ))

    def _check_weekly_rest(
        self,
        emp_id: str,
        shifts: list[ShiftRecord],
        proposed: list[ShiftRecord],
        config: JurisdictionConfig,
        result: ValidationResult,
    ) -> None:
        """
        A 7-day window lacks weekly rest exactly when it fits inside one work
        stretch, so every stretch of 7 days or more is a violation.
        """
        min_rest_minutes = round(config.min_weekly_rest_hours * 60)

        for stretch in self.work_stretches(shifts, min_rest_minutes):
            if stretch.end - stretch.start < WEEK:
                continue
            if not any(s.end > stretch.start and s.start < stretch.end for s in proposed):
                continue

            result.add_violation(Violation(
                kind=ViolationType.REST_WEEKLY,
                severity=ViolationSeverity.ERROR,
                message=(
                    f"Employee {emp_id} has no continuous rest of {config.min_weekly_rest_hours}h "
                    f"in the 7 days from {stretch.start.isoformat()} (longest is {_hours(stretch.longest_rest)}h)"
                ),
                limit=config.min_weekly_rest_hours,
                actual=_hours(stretch.longest_rest),
                employee_id=emp_id,
                shift_ids=tuple(sorted(stretch.shift_ids)),
                window_start=stretch.start,
                window_end=stretch.end,
                details={
                    "stretch_hours": _hours(minutes_between(stretch.start, stretch.end)),
                    "last_failing_window_start": (stretch.end - WEEK).isoformat(),
                },
            ))

    @staticmethod
    def work_stretches(shifts: list[ShiftRecord], min_rest_minutes: int) -> list[WorkStretch]:
        """
        Split a timeline into stretches separated by rest blocks of at least
        min_rest_minutes. Time before the first and after the last shift is
        unknown and counts as rest.
        """
        stretches: list[WorkStretch] = []
        current: Optional[dict] = None

        for shift in sorted(shifts, key=lambda s: (s.start, s.end)):
            if current is not None:
                gap = minutes_between(current["end"], shift.start)
                if gap < min_rest_minutes:
                    current["end"] = max(current["end"], shift.end)
                    current["longest_rest"] = max(current["longest_rest"], gap)
                    current["shift_ids"].append(shift.id)
                    continue
                stretches.append(WorkStretch(**current))
            current = {"start": shift.start, "end": shift.end, "longest_rest": 0, "shift_ids": [shift.id]}

        if current is not None:
            stretches.append(WorkStretch(**current))
        return stretches


class WorkingHoursValidator(BaseValidator):
    """Validates daily and weekly hour limits plus weekly, 4-week and annual overtime."""

    def validate(self, context: ComplianceContext, result: ValidationResult) -> None:
        """Check working hours for days and weeks touched by the proposal."""
        if not context.enable_working_hours:
            return

        config = context.config

        for emp_id, shifts in context.timelines.items():
            proposed = context.proposed_for(emp_id)
            if not proposed:
                continue

            daily_minutes: dict[date, int] = defaultdict(int)
            daily_ids: dict[date, list[str]] = defaultdict(list)
            weekly_minutes: dict[date, int] = defaultdict(int)
            weekly_ids: dict[date, list[str]] = defaultdict(list)
            for shift in shifts:
                day = shift.start.date()
                monday = week_start(day)
                daily_minutes[day] += shift.worked_minutes
                daily_ids[day].append(shift.id)
                weekly_minutes[monday] += shift.worked_minutes
                weekly_ids[monday].append(shift.id)

            overtime_minutes = {
                monday: max(0, minutes - round(config.max_weekly_hours * 60))
                for monday, minutes in weekly_minutes.items()
            }

            touched_days = sorted({s.start.date() for s in proposed})
            touched_weeks = sorted({week_start(d) for d in touched_days})

            for day in touched_days:
                self._check_daily(emp_id, day, daily_minutes[day], daily_ids[day], config, result)

            reported_years: set[int] = set()
            weekly_summary: dict[str, float] = {}
            for monday in touched_weeks:
                iso_year, iso_week = iso_week_key(monday)
                weekly_summary[f"{iso_year}-W{iso_week:02d}"] = _hours(weekly_minutes[monday])

                self._check_weekly(emp_id, monday, weekly_minutes[monday], weekly_ids[monday], config, result)
                self._check_overtime_weekly(
                    emp_id, monday, overtime_minutes[monday], weekly_ids[monday], config, result
                )
                self._check_overtime_4week(emp_id, monday, overtime_minutes, weekly_ids, config, result)

                if iso_year not in reported_years:
                    reported_years.add(iso_year)
                    self._check_overtime_yearly(emp_id, monday, overtime_minutes, weekly_ids, config, result)

            result.employee_weekly_hours[emp_id] = weekly_summary
            result.overtime_hours[emp_id] = _hours(sum(overtime_minutes[m] for m in touched_weeks))

    @staticmethod
    def _check_daily(emp_id, day, minutes, shift_ids, config, result) -> None:
        if minutes <= round(config.max_daily_hours * 60):
            return
        start = datetime.combine(day, datetime.min.time())
        result.add_violation(Violation(
            kind=ViolationType.HOURS_DAILY,
            severity=ViolationSeverity.ERROR,
            message=(
                f"Employee {emp_id} scheduled for {_hours(minutes)}h on {day.isoformat()}, "
                f"exceeds max of {config.max_daily_hours}h"
            ),
            limit=config.max_daily_hours,
            actual=_hours(minutes),
            employee_id=emp_id,
            shift_ids=tuple(sorted(shift_ids)),
            window_start=start,
            window_end=start + timedelta(days=1),
        ))

    @staticmethod
    def _check_weekly(emp_id, monday, minutes, shift_ids, config, result) -> None:
        if minutes <= round(config.max_weekly_hours * 60):
            return
        start = datetime.combine(monday, datetime.min.time())
        result.add_violation(Violation(
            kind=ViolationType.HOURS_WEEKLY,
            severity=ViolationSeverity.ERROR,
            message=(
                f"Employee {emp_id} scheduled for {_hours(minutes)}h in week of {monday.isoformat()}, "
                f"exceeds max of {config.max_weekly_hours}h"
            ),
            limit=config.max_weekly_hours,
            actual=_hours(minutes),
            employee_id=emp_id,
            shift_ids=tuple(sorted(shift_ids)),
            window_start=start,
            window_end=start + timedelta(days=7),
        ))

    @staticmethod
    def _check_overtime_weekly(emp_id, monday, minutes, shift_ids, config, result) -> None:
        if minutes <= round(config.max_overtime_per_week * 60):
            return
        start = datetime.combine(monday, datetime.min.time())
        result.add_violation(Violation(
            kind=ViolationType.OVERTIME_WEEKLY,
            severity=ViolationSeverity.ERROR,
            message=(
                f"Employee {emp_id} has {_hours(minutes)}h overtime in week of {monday.isoformat()}, "
                f"ceiling is {config.max_overtime_per_week}h"
            ),
            limit=config.max_overtime_per_week,
            actual=_hours(minutes),
            employee_id=emp_id,
            shift_ids=tuple(sorted(shift_ids)),
            window_start=start,
            window_end=start + timedelta(days=7),
        ))

    @staticmethod
    def _check_overtime_4week(emp_id, monday, overtime_minutes, weekly_ids, config, result) -> None:
        """Worst of the four rolling 4-week windows that contain this week."""
        worst_total, worst_first = -1, monday
        for offset in range(4):
            first = monday - timedelta(weeks=3 - offset)
            total = sum(overtime_minutes.get(first + timedelta(weeks=k), 0) for k in range(4))
            if total > worst_total:
                worst_total, worst_first = total, first

        if worst_total <= round(config.max_overtime_per_4_weeks * 60):
            return

        ids = [
            sid
            for k in range(4)
            for sid in weekly_ids.get(worst_first + timedelta(weeks=k), [])
        ]
        start = datetime.combine(worst_first, datetime.min.time())
        result.add_violation(Violation(
            kind=ViolationType.OVERTIME_4WEEK,
            severity=ViolationSeverity.ERROR,
            message=(
                f"Employee {emp_id} has {_hours(worst_total)}h overtime in the 4 weeks from "
                f"{worst_first.isoformat()}, ceiling is {config.max_overtime_per_4_weeks}h"
            ),
            limit=config.max_overtime_per_4_weeks,
            actual=_hours(worst_total),
            employee_id=emp_id,
            shift_ids=tuple(sorted(ids)),
            window_start=start,
            window_end=start + timedelta(weeks=4),
        ))

    @staticmethod
    def _check_overtime_yearly(emp_id, monday, overtime_minutes, weekly_ids, config, result) -> None:
        iso_year = iso_week_key(monday)[0]
        weeks = sorted(m for m in overtime_minutes if iso_week_key(m)[0] == iso_year)
        total = sum(overtime_minutes[m] for m in weeks)
        if total <= round(config.max_overtime_per_year * 60):
            return

        ids = [sid for m in weeks if overtime_minutes[m] > 0 for sid in weekly_ids[m]]
        result.add_violation(Violation(
            kind=ViolationType.OVERTIME_YEARLY,
            severity=ViolationSeverity.ERROR,
            message=(
                f"Employee {emp_id} has {_hours(total)}h overtime in {iso_year}, "
                f"ceiling is {config.max_overtime_per_year}h"
            ),
            limit=config.max_overtime_per_year,
            actual=_hours(total),
            employee_id=emp_id,
            shift_ids=tuple(sorted(ids)),
            window_start=datetime.combine(date.fromisocalendar(iso_year, 1, 1), datetime.min.time()),
            window_end=datetime.combine(date.fromisocalendar(iso_year + 1, 1, 1), datetime.min.time()),
            details={"iso_year": iso_year},
        ))


class PublicationValidator(BaseValidator):
    """Validates that a roster is published a minimum number of days before it starts."""

    def validate(self, context: ComplianceContext, result: ValidationResult) -> None:
        """Check the roster's recorded publication against the deadline."""
        if not context.enable_publication or context.roster is None:
            return

        roster = context.roster
        publication = self.evaluate(roster, context.config)
        result.publication = publication

        if publication.is_late:
            result.add_violation(Violation(
                kind=ViolationType.PUBLISH_LATE,
                severity=ViolationSeverity.ERROR,
                message=(
                    f"Roster {roster.id} published {publication.notice_days} days before start, "
                    f"requires {context.config.publish_deadline_days} days"
                ),
                limit=context.config.publish_deadline_days,
                actual=publication.notice_days,
                details={
                    "roster_id": roster.id,
                    "publish_deadline": publication.publish_deadline.isoformat(),
                },
            ))

        for warning in publication.warnings:
            result.add_violation(Violation(
                kind=ViolationType.PUBLISH_SHORT_NOTICE,
                severity=ViolationSeverity.WARNING,
                message=warning,
                limit=SHORT_NOTICE_DAYS,
                actual=publication.notice_days,
                details={"roster_id": roster.id},
            ))

    def evaluate(self, roster: RosterInfo, config: JurisdictionConfig) -> PublishValidation:
        """Assess the recorded publish timestamp. Unpublished rosters are not a violation."""
        if roster.published_at is None:
            return PublishValidation(
                status=PublicationStatus.NOT_PUBLISHED,
                can_publish=True,
                is_late=False,
                notice_days=None,
                publish_deadline=self.publish_deadline(roster, config),
            )
        return self._assess(roster, roster.published_at, config)

    def check_publish(
        self,
        roster: RosterInfo,
        config: JurisdictionConfig,
        at: Optional[datetime] = None,
    ) -> PublishValidation:
        """Assess publishing the roster at a given moment (defaults to now)."""
        return self._assess(roster, at or utc_now(), config)

    @staticmethod
    def publish_deadline(roster: RosterInfo, config: JurisdictionConfig) -> date:
        """Last date on which publishing still counts as on time."""
        return roster.start_date - timedelta(days=config.publish_deadline_days)

    @staticmethod
    def publish_timing_days(roster: RosterInfo) -> Optional[int]:
        """Days of notice given, or None if the roster is unpublished."""
        if roster.published_at is None:
            return None
        return (roster.start_date - roster.published_at.date()).days

    def publish_timing_status(self, roster: RosterInfo, config: JurisdictionConfig) -> PublicationStatus:
        return self.evaluate(roster, config).status

    def was_published_on_time(self, roster: RosterInfo, config: JurisdictionConfig) -> bool:
        return self.publish_timing_status(roster, config) == PublicationStatus.ON_TIME

    def _assess(self, roster: RosterInfo, moment: datetime, config: JurisdictionConfig) -> PublishValidation:
        notice_days = (roster.start_date - moment.date()).days
        is_late = notice_days < config.publish_deadline_days

        warnings = []
        if not is_late and notice_days < SHORT_NOTICE_DAYS:
            warnings.append(
                f"Roster {roster.id} gives only {notice_days} days notice, "
                f"at least {SHORT_NOTICE_DAYS} is recommended"
            )

        return PublishValidation(
            status=PublicationStatus.LATE if is_late else PublicationStatus.ON_TIME,
            can_publish=not is_late,
            is_late=is_late,
            notice_days=notice_days,
            publish_deadline=self.publish_deadline(roster, config),
            warnings=warnings,
        )
