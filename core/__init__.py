"""
Core business logic for class session reminders.
Used by the cron web endpoint, the local trigger and the setup scripts.
"""

# Database (SQLAlchemy)
from .database import get_connection, get_transaction, get_engine, close_engine, is_configured

# Session source
from .sessions import ClassSession, list_sessions_between

# Timezone utilities
from .timezone import format_datetime_in_timezone, format_time_until
