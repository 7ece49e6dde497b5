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
    DB_URI = data.get("DB_URI", "sqlite+aiosqlite:///./image_studio.db")
    REDIS_URL = data.get("REDIS_URL", "redis://localhost:6379/0")
    API_PREFIX = data.get("API_PREFIX", "/api")
    API_PORT = data.get("API_PORT", 8000)
    API_HOST = data.get("API_HOST", "0.0.0.0")
    CORS_ORIGINS = data.get("CORS_ORIGINS", [])
    CORS_ALLOW_CREDENTIALS = data.get("CORS_ALLOW_CREDENTIALS", True)
    LOG_LEVEL = data.get("LOG_LEVEL", "INFO")
    ENABLE_SENTRY = data.get("ENABLE_SENTRY", 0)
    DSN_SENTRY = data.get("DSN_SENTRY", "")
    SENTRY_ENVIRONMENT = data.get("SENTRY_ENVIRONMENT", "dev")

    # Admission queue
    QUEUE_BACKEND = data.get("QUEUE_BACKEND", "memory")  # memory | redis
    QUEUE_MAX_CONCURRENT = data.get("QUEUE_MAX_CONCURRENT", 5)
    QUEUE_AVERAGE_PROCESSING_MS = data.get("QUEUE_AVERAGE_PROCESSING_MS", 60000)
    QUEUE_SLOT_TTL_SECONDS = data.get("QUEUE_SLOT_TTL_SECONDS", 900)  # redis backend only

    # Rate limiting (generation requests per user)
    RATE_LIMIT_BACKEND = data.get("RATE_LIMIT_BACKEND", "memory")  # memory | redis
    RATE_LIMIT_MAX_REQUESTS = data.get("RATE_LIMIT_MAX_REQUESTS", 10)
    RATE_LIMIT_WINDOW_MS = data.get("RATE_LIMIT_WINDOW_MS", 60 * 60 * 1000)

    # Provider retry policy
    RETRY_MAX_ATTEMPTS = data.get("RETRY_MAX_ATTEMPTS", 3)
    RETRY_BASE_DELAY_MS = data.get("RETRY_BASE_DELAY_MS", 2000)

    # Stuck-job sweep
    STUCK_GENERATION_TIMEOUT_SECONDS = data.get("STUCK_GENERATION_TIMEOUT_SECONDS", 300)
    STUCK_SWEEP_INTERVAL_SECONDS = data.get("STUCK_SWEEP_INTERVAL_SECONDS", 60)
    STUCK_SWEEP_ENABLED = bool(data.get("STUCK_SWEEP_ENABLED", True))

    # Pending dispatcher
    PENDING_DISPATCH_INTERVAL_SECONDS = data.get("PENDING_DISPATCH_INTERVAL_SECONDS", 10)
    PENDING_DISPATCH_BATCH_SIZE = data.get("PENDING_DISPATCH_BATCH_SIZE", 10)

    # Balance reconciliation
    RECONCILIATION_ENABLED = bool(data.get("RECONCILIATION_ENABLED", True))
    RECONCILIATION_INTERVAL_SECONDS = data.get("RECONCILIATION_INTERVAL_SECONDS", 86400)  # Daily

    # External collaborators
    IMAGE_PROVIDER = data.get("IMAGE_PROVIDER", "mock")  # mock | http
    IMAGE_PROVIDER_URL = data.get("IMAGE_PROVIDER_URL", "http://localhost:9000")
    IMAGE_PROVIDER_API_KEY = data.get("IMAGE_PROVIDER_API_KEY", "")
    IMAGE_PROVIDER_TIMEOUT_SECONDS = data.get("IMAGE_PROVIDER_TIMEOUT_SECONDS", 120)
    STORAGE_DIR = data.get("STORAGE_DIR", os.path.join(ROOT_PATH, "data", "images"))
    STORAGE_BASE_URL = data.get("STORAGE_BASE_URL", "/media")

    # Accounts
    SIGNUP_FREE_TOKENS = data.get("SIGNUP_FREE_TOKENS", 10)

    # Caller verification for provider webhooks and internal token credits.
    # Left empty, both surfaces refuse every request.
    WEBHOOK_SECRET = data.get("WEBHOOK_SECRET", "")
    SERVICE_API_KEY = data.get("SERVICE_API_KEY", "")

    # Status polling trusts the in-memory tracker for this long
    STATUS_TRACKER_FRESHNESS_SECONDS = data.get("STATUS_TRACKER_FRESHNESS_SECONDS", 30)
