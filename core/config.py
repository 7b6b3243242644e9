"""
Centralized configuration for the class reminder service.

Everything is read from the environment (.env / .env.local are loaded by
the entry points with python-dotenv).
"""

import os
from dataclasses import dataclass
from datetime import timedelta


def is_dev_mode() -> bool:
    """Check if running in development mode (--dev flag or DEV_MODE env)."""
    return os.getenv("DEV_MODE", "").lower() in ("true", "1", "yes")


def is_production() -> bool:
    """Check if running on Railway (production environment)."""
    return bool(os.environ.get("RAILWAY_ENVIRONMENT"))


def get_api_port() -> int:
    """Get API server port from env or default."""
    return int(os.getenv("API_PORT", "8000"))


def get_app_url() -> str:
    """Public base URL of this service (used as the cron destination)."""
    return os.environ.get("APP_URL", f"http://localhost:{get_api_port()}").rstrip("/")


def get_frontend_url() -> str:
    """Learner-facing site, used for links inside reminders."""
    return os.environ.get(
        "FRONTEND_URL", "https://app.thekingezekielacademy.com"
    ).rstrip("/")


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("true", "1", "yes")


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        parsed = int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if parsed < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {parsed}")
    return parsed


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        parsed = float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")
    if parsed <= 0:
        raise ValueError(f"{name} must be positive, got {parsed}")
    return parsed


def split_csv(raw: str | None) -> tuple[str, ...]:
    """Split a comma-separated env value, dropping blanks and duplicates."""
    if not raw:
        return ()
    seen: list[str] = []
    for part in raw.split(","):
        part = part.strip()
        if part and part not in seen:
            seen.append(part)
    return tuple(seen)


@dataclass(frozen=True)
class ReminderSettings:
    """Tunables for one reminder dispatch run."""

    interval_minutes: int = 5
    stale_claim_after: timedelta = timedelta(minutes=10)
    max_claim_attempts: int = 3
    send_max_attempts: int = 3
    send_timeout: float = 10.0
    ledger_timeout: float = 5.0
    channel_concurrency: int = 4
    session_concurrency: int = 8
    time_budget: float = 240.0
    catch_up: bool = True
    display_timezone: str = "UTC"
    ledger_retention: timedelta = timedelta(days=90)
    telegram_group_ids: tuple[str, ...] = ()
    telegram_channel_ids: tuple[str, ...] = ()
    email_recipients: tuple[str, ...] = ()


def get_reminder_settings() -> ReminderSettings:
    """
    Build reminder settings from environment variables.

    Raises:
        ValueError: If a numeric variable is set to something invalid
    """
    return ReminderSettings(
        interval_minutes=_env_int("REMINDER_INTERVAL_MINUTES", 5),
        stale_claim_after=timedelta(
            minutes=_env_int("REMINDER_STALE_CLAIM_MINUTES", 10)
        ),
        max_claim_attempts=_env_int("REMINDER_MAX_CLAIM_ATTEMPTS", 3),
        send_max_attempts=_env_int("REMINDER_SEND_MAX_ATTEMPTS", 3),
        send_timeout=_env_float("REMINDER_SEND_TIMEOUT_SECONDS", 10.0),
        ledger_timeout=_env_float("REMINDER_LEDGER_TIMEOUT_SECONDS", 5.0),
        channel_concurrency=_env_int("REMINDER_CHANNEL_CONCURRENCY", 4),
        session_concurrency=_env_int("REMINDER_SESSION_CONCURRENCY", 8),
        time_budget=_env_float("REMINDER_TIME_BUDGET_SECONDS", 240.0),
        catch_up=_env_flag("REMINDER_CATCH_UP", True),
        display_timezone=os.environ.get("REMINDER_DISPLAY_TIMEZONE", "UTC"),
        ledger_retention=timedelta(
            days=_env_int("REMINDER_LEDGER_RETENTION_DAYS", 90)
        ),
        # Both spellings are in use in deployed environments
        telegram_group_ids=split_csv(
            os.environ.get("TELEGRAM_GROUP_IDS") or os.environ.get("TELEGRAM_GROUP_ID")
        ),
        telegram_channel_ids=split_csv(
            os.environ.get("TELEGRAM_CHANNEL_IDS") or os.environ.get("TELEGRAM_CHANNEL")
        ),
        email_recipients=split_csv(os.environ.get("REMINDER_EMAIL_RECIPIENTS")),
    )


# Required environment variables for production
# Format: (name, description, required_in_dev)
REQUIRED_ENV_VARS = [
    ("DATABASE_URL", "PostgreSQL connection string", True),
    ("TELEGRAM_BOT_TOKEN", "Telegram bot token for group/channel reminders", False),
]


def check_required_env_vars() -> tuple[bool, list[str]]:
    """
    Check that required environment variables are set.

    Returns:
        (all_ok, warnings): Tuple of success flag and list of warning messages
    """
    warnings = []
    errors = []
    in_dev = is_dev_mode()

    for name, description, required_in_dev in REQUIRED_ENV_VARS:
        value = os.environ.get(name)

        if not value:
            if is_production():
                errors.append(f"  ✗ {name}: Not set ({description})")
            elif required_in_dev or not in_dev:
                warnings.append(f"  ⚠ {name}: Not set ({description})")

    if errors:
        for error in errors:
            print(error)
        return False, warnings

    return True, warnings
