"""
Application-wide constants and environment configuration.
"""
import os

# Database
DATABASE_URL = os.getenv("ORBIT_DATABASE_URL", "sqlite:///./orbit.db")

# Logging
DEFAULT_LOG_DIRECTORY_PROD = "/var/log/orbit"
DEFAULT_LOG_DIRECTORY_DEV = "./logs"

# Scheduler
SCHEDULER_ENABLED = os.getenv("ORBIT_SCHEDULER_ENABLED", "true").lower() in ("1", "true", "yes")

# CORS
CORS_ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ORBIT_CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

# Obligation instance states
INSTANCE_STATUS_PENDING = "pending"
INSTANCE_STATUS_DONE = "done"
INSTANCE_STATUS_SKIPPED = "skipped"
INSTANCE_TERMINAL_STATES = (INSTANCE_STATUS_DONE, INSTANCE_STATUS_SKIPPED)

# Recurrence rule types
RULE_TYPE_DAILY = "daily"
RULE_TYPE_WEEKLY = "weekly"
RULE_TYPE_WEEKDAYS = "weekdays"

# Ledger entry types
LEDGER_TYPE_INCOME = "income"
LEDGER_TYPE_EXPENSE = "expense"

# Point log reasons
POINT_REASON_HABIT_COMPLETION = "habit_completion"

# Timezones
DEFAULT_TIMEZONE = "UTC"

# Batch limits
MAX_MATERIALIZE_RANGE_DAYS = 30
BULK_INSERT_CHUNK_SIZE = 500
PERFECT_WEEK_LENGTH = 7
