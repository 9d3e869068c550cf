import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "timeclock_db"),
}

DEBUG = True
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

# "mysql" or "memory" (process-local, lost on restart)
STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "mysql")

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))

# "iso_weeks" counts boundary weeks whole; "calendar_days" clips them to the month
MONTHLY_SUMMARY_MODE = os.getenv("MONTHLY_SUMMARY_MODE", "iso_weeks")
LONG_INTERVAL_WARNING_MINUTES = int(os.getenv("LONG_INTERVAL_WARNING_MINUTES", "720"))

# Identity headers set by the upstream gateway
USER_ID_HEADER = os.getenv("USER_ID_HEADER", "X-User-Id")
TENANT_ID_HEADER = os.getenv("TENANT_ID_HEADER", "X-Tenant-Id")
USER_ROLE_HEADER = os.getenv("USER_ROLE_HEADER", "X-User-Role")
