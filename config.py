import os
import yaml

ROOT_PATH = os.path.dirname(__file__)
CONFIG_FILE_PATH = os.path.join(ROOT_PATH, "env.yaml")

if os.path.exists(CONFIG_FILE_PATH):
    with open(CONFIG_FILE_PATH, "r") as r_file:
        data = yaml.safe_load(r_file) or dict()
else:
    data = dict()


class ApplicationConfig:
    DB_URI = data.get("DB_URI", "sqlite+aiosqlite:///./credits.db")
    DB_ECHO = bool(data.get("DB_ECHO", False))
    CREATE_TABLES_ON_STARTUP = bool(data.get("CREATE_TABLES_ON_STARTUP", True))
    API_PREFIX = data.get("API_PREFIX", "/api")
    API_PORT = data.get("API_PORT", 8000)
    API_HOST = data.get("API_HOST", "0.0.0.0")
    CORS_ORIGINS = data.get("CORS_ORIGINS", [])
    CORS_ALLOW_CREDENTIALS = data.get("CORS_ALLOW_CREDENTIALS", True)
    LOG_LEVEL = data.get("LOG_LEVEL", "INFO")

    # Request gating
    USER_ID_HEADER = data.get("USER_ID_HEADER", "x-user-id")

    # Credit ledger
    CREDIT_CACHE_TTL_SECONDS = data.get("CREDIT_CACHE_TTL_SECONDS", 30)  # 0 disables the read cache
    CREDIT_CACHE_MAX_ENTRIES = data.get("CREDIT_CACHE_MAX_ENTRIES", 10000)
    CREDIT_TRANSACTION_MAX_ATTEMPTS = data.get("CREDIT_TRANSACTION_MAX_ATTEMPTS", 5)
    CREDIT_HISTORY_DEFAULT_LIMIT = data.get("CREDIT_HISTORY_DEFAULT_LIMIT", 50)

    # Scheduled credit refresh
    CREDIT_REFRESH_ENABLED = bool(data.get("CREDIT_REFRESH_ENABLED", True))
    CREDIT_REFRESH_BATCH_SIZE = data.get("CREDIT_REFRESH_BATCH_SIZE", 100)
    CREDIT_REFRESH_INTERVAL_SECONDS = data.get("CREDIT_REFRESH_INTERVAL_SECONDS", 3600)  # Hourly

    # Usage reconciliation
    RECONCILIATION_ENABLED = bool(data.get("RECONCILIATION_ENABLED", True))
    RECONCILIATION_INTERVAL_SECONDS = data.get("RECONCILIATION_INTERVAL_SECONDS", 86400)  # Daily
