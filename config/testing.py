import os

SECRET_KEY = "test-secret"

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "timeclock_test"),
}

DEBUG = False
TESTING = True
LOG_LEVEL = "WARNING"

STORAGE_BACKEND = "memory"
AUTO_INIT_DB = False

MONTHLY_SUMMARY_MODE = os.getenv("MONTHLY_SUMMARY_MODE", "iso_weeks")
LONG_INTERVAL_WARNING_MINUTES = 720

USER_ID_HEADER = "X-User-Id"
TENANT_ID_HEADER = "X-Tenant-Id"
USER_ROLE_HEADER = "X-User-Role"
