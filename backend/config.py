import os
from dotenv import load_dotenv

from utils.errors import ConfigurationError

load_dotenv()

MONGODB_URL = os.getenv("MONGODB_URL", "mongodb://localhost:27017/shift_compliance")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

APP_HOST = os.getenv("APP_HOST", "0.0.0.0")
APP_PORT = os.getenv("APP_PORT", "8000")

CONSENSUS_MAJORITY_THRESHOLD = os.getenv("CONSENSUS_MAJORITY_THRESHOLD")
CONSENSUS_MAX_DEBATE_ROUNDS = os.getenv("CONSENSUS_MAX_DEBATE_ROUNDS")
CONSENSUS_AGENT_TIMEOUT_SECONDS = os.getenv("CONSENSUS_AGENT_TIMEOUT_SECONDS")

AUDIT_RETENTION_YEARS = 2

# Jurisdiction overrides, read by JurisdictionConfig.from_env
JURISDICTION_ENV_VARS = {
    "max_daily_hours": "MAX_DAILY_WORK_HOURS",
    "max_weekly_hours": "MAX_WEEKLY_WORK_HOURS",
    "min_daily_rest_hours": "MIN_DAILY_REST_HOURS",
    "min_weekly_rest_hours": "MIN_WEEKLY_REST_HOURS",
    "publish_deadline_days": "ROSTER_PUBLISH_DEADLINE_DAYS",
    "max_overtime_per_week": "MAX_OVERTIME_PER_WEEK",
    "max_overtime_per_4_weeks": "MAX_OVERTIME_PER_4_WEEKS",
    "max_overtime_per_year": "MAX_OVERTIME_PER_YEAR",
}


def _is_number(value: str) -> bool:
    try:
        float(value)
    except ValueError:
        return False
    return True


def validate_config() -> None:
    invalid = []
    if not MONGODB_URL:
        invalid.append("MONGODB_URL")
    if not APP_PORT.isdigit():
        invalid.append("APP_PORT")

    numeric = {
        "CONSENSUS_MAJORITY_THRESHOLD": CONSENSUS_MAJORITY_THRESHOLD,
        "CONSENSUS_MAX_DEBATE_ROUNDS": CONSENSUS_MAX_DEBATE_ROUNDS,
        "CONSENSUS_AGENT_TIMEOUT_SECONDS": CONSENSUS_AGENT_TIMEOUT_SECONDS,
    }
    for env_name in JURISDICTION_ENV_VARS.values():
        numeric[env_name] = os.getenv(env_name)

    for name, value in numeric.items():
        if value is not None and not _is_number(value):
            invalid.append(name)

    if invalid:
        raise ConfigurationError(
            f"Invalid environment variables: {', '.join(invalid)}. "
            "Please fix these in your .env file.",
            details={"variables": invalid},
        )
