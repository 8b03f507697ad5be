import os

# PostgreSQL
POSTGRES_USER = os.getenv("POSTGRES_USER", "postgres")
POSTGRES_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
POSTGRES_DB = os.getenv("POSTGRES_DB", "activitee")
POSTGRES_HOST = os.getenv("POSTGRES_HOST", "db")
POSTGRES_PORT = os.getenv("POSTGRES_PORT", "5432")

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql+asyncpg://{POSTGRES_USER}:{POSTGRES_PASSWORD}@{POSTGRES_HOST}:{POSTGRES_PORT}/{POSTGRES_DB}",
)

# Bearer tokens issued by the identity service
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

# Push dispatch (fire-and-forget)
PUSH_DISPATCH_URL = os.getenv("PUSH_DISPATCH_URL")
PUSH_DISPATCH_TOKEN = os.getenv("PUSH_DISPATCH_TOKEN")
PUSH_TIMEOUT = float(os.getenv("PUSH_TIMEOUT", "10.0"))

# Environment
ENVIRONMENT = os.getenv("ENVIRONMENT", "production").lower()
DEBUG = ENVIRONMENT in ["development", "dev"]

# Database retry
DB_RETRY_ATTEMPTS = int(os.getenv("DB_RETRY_ATTEMPTS", "3"))
DB_RETRY_DELAY = float(os.getenv("DB_RETRY_DELAY", "1.0"))
DB_RETRY_BACKOFF_FACTOR = float(os.getenv("DB_RETRY_BACKOFF_FACTOR", "2.0"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if not DEBUG else "DEBUG")
LOG_FORMAT = os.getenv("LOG_FORMAT", "json" if not DEBUG else "text")

# Application
APP_NAME = os.getenv("APP_NAME", "Activitee Scheduling API")
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS", "http://localhost:3000,http://localhost:8080"
    ).split(",")
    if origin.strip()
]

# Scheduling
ARCHIVE_GROUP_NAME = os.getenv("ARCHIVE_GROUP_NAME", "__ARCHIVE_HISTORIQUE__")
MAX_SERIES_OCCURRENCES = int(os.getenv("MAX_SERIES_OCCURRENCES", "80"))
DEFAULT_EVENT_DURATION = int(os.getenv("DEFAULT_EVENT_DURATION", "60"))
MAX_EVENT_DURATION = int(os.getenv("MAX_EVENT_DURATION", "240"))


# Validation of critical settings
def validate_config():
    """Validate configuration at startup"""
    errors = []

    if not JWT_SECRET_KEY:
        errors.append("JWT_SECRET_KEY is required")

    if not DATABASE_URL:
        errors.append("DATABASE_URL is required")

    if DB_RETRY_ATTEMPTS < 1:
        errors.append("DB_RETRY_ATTEMPTS must be >= 1")

    if DB_RETRY_DELAY < 0:
        errors.append("DB_RETRY_DELAY must be >= 0")

    if MAX_SERIES_OCCURRENCES < 1:
        errors.append("MAX_SERIES_OCCURRENCES must be >= 1")

    if not 1 <= DEFAULT_EVENT_DURATION <= MAX_EVENT_DURATION:
        errors.append("DEFAULT_EVENT_DURATION must be within 1..MAX_EVENT_DURATION")

    if errors:
        raise ValueError(f"Configuration errors: {'; '.join(errors)}")


if os.getenv("VALIDATE_CONFIG_ON_IMPORT", "true").lower() == "true":
    try:
        validate_config()
    except ValueError as e:
        print(f"⚠️  Configuration warning: {e}")
