"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_LIST_LIMIT = 20
MAX_LIST_LIMIT = 100
MAX_TEXT_LENGTH = 1000
LONG_INTERVAL_WARNING_MINUTES = 12 * 60

SECONDS_PER_MINUTE = 60
DAYS_PER_WEEK = 7
