from .time import utc_now, as_utc, minutes_between, week_start, iso_week_key
from .errors import (
    ErrorKind,
    SchedulingCoreError,
    InvalidInputError,
    ConfigurationError,
    EvaluationTimeoutError,
    RetentionViolationError,
)
from .logging import setup_logging

__all__ = [
    "utc_now",
    "as_utc",
    "minutes_between",
    "week_start",
    "iso_week_key",
    "ErrorKind",
    "SchedulingCoreError",
    "InvalidInputError",
    "ConfigurationError",
    "EvaluationTimeoutError",
    "RetentionViolationError",
    "setup_logging",
]
