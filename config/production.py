import os

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "timeclock_db"),
}

DEBUG = False
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "mysql")
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))

MONTHLY_SUMMARY_MODE = os.getenv("MONTHLY_SUMMARY_MODE", "iso_weeks")
LONG_INTERVAL_WARNING_MINUTES = int(os.getenv("LONG_INTERVAL_WARNING_MINUTES", "720"))

USER_ID_HEADER = os.getenv("USER_ID_HEADER", "X-User-Id")
TENANT_ID_HEADER = os.getenv("TENANT_ID_HEADER", "X-Tenant-Id")
USER_ROLE_HEADER = os.getenv("USER_ROLE_HEADER", "X-User-Role")
