"""
Settings of the Fleet API server.

Connection settings come from the environment. Limits, thresholds and
defaults are plain module constants.
"""

from os import environ


# ---------------------------------------------------------------------------
# Application metadata
# ---------------------------------------------------------------------------
API_TITLE = "Fleet API Server"
API_VERSION = "1.0.0"


# ---------------------------------------------------------------------------
# PostgreSQL configuration
# ---------------------------------------------------------------------------
PSQL_DB_DRIVER = environ.get("PSQL_DB_DRIVER", "postgresql")
PSQL_DB_USERNAME = environ.get("PSQL_DB_USERNAME", "postgres")
PSQL_DB_PORT = environ.get("PSQL_DB_PORT", "5432")
PSQL_DB_PASSWORD = environ.get("PSQL_DB_PASSWORD", "password")
PSQL_DB_HOST = environ.get("PSQL_DB_HOST", "localhost")
PSQL_DB_NAME = environ.get("PSQL_DB_NAME", "postgres")


# ---------------------------------------------------------------------------
# External (sync target) database configuration
# ---------------------------------------------------------------------------
# Full SQLAlchemy URL, sync is disabled while empty
EXTERNAL_DB_URL = environ.get("EXTERNAL_DB_URL", "")
SYNC_BATCH_SIZE = 500  # Rows per upsert statement


# ---------------------------------------------------------------------------
# OpenObserve configuration
# ---------------------------------------------------------------------------
OPENOBSERVE_PROTOCOL = environ.get("OPENOBSERVE_PROTOCOL", "http")
OPENOBSERVE_HOST = environ.get("OPENOBSERVE_HOST", "localhost")
OPENOBSERVE_PORT = environ.get("OPENOBSERVE_PORT", "5080")
OPENOBSERVE_USERNAME = environ.get("OPENOBSERVE_USERNAME", "admin@highwayfleet.in")
OPENOBSERVE_PASSWORD = environ.get("OPENOBSERVE_PASSWORD", "password")
OPENOBSERVE_ORG = environ.get("OPENOBSERVE_ORG", "fleet")
OPENOBSERVE_STREAM = environ.get("OPENOBSERVE_STREAM", "fleet-server")


# ---------------------------------------------------------------------------
# Redis configuration
# ---------------------------------------------------------------------------
REDIS_HOST = environ.get("REDIS_HOST", "localhost")
REDIS_PORT = environ.get("REDIS_PORT", "6379")
REDIS_PASSWORD = environ.get("REDIS_PASSWORD", "password")


# ---------------------------------------------------------------------------
# MinIO configuration
# ---------------------------------------------------------------------------
MINIO_HOST = environ.get("MINIO_HOST", "localhost")
MINIO_PORT = environ.get("MINIO_PORT", "9000")
MINIO_USERNAME = environ.get("MINIO_USERNAME", "minio")
MINIO_PASSWORD = environ.get("MINIO_PASSWORD", "password")

# MinIO buckets
PAYMENT_PROOFS = "payment-proofs"
PAYMENT_QR_CODES = "payment-qr-codes"


# ---------------------------------------------------------------------------
# Map provider configuration
# ---------------------------------------------------------------------------
MAPBOX_TOKEN = environ.get("MAPBOX_TOKEN", "")


# ---------------------------------------------------------------------------
# Resource upper limits
# ---------------------------------------------------------------------------
MAX_ACCOUNT_TOKENS = 5  # Maximum tokens per account
MAX_TOKEN_VALIDITY = 7 * 24 * 60 * 60  # Token validity (in seconds, 7 days)
MAX_PAYMENT_PROOF_SIZE = 5 * 1024 * 1024  # 5 MB
MAX_QR_CODE_SIZE = 2 * 1024 * 1024  # 2 MB
IMAGE_TYPES = ["image/png", "image/jpeg", "image/webp", "image/gif"]  # Accepted uploads
RECENT_TRIP_COUNT = 5  # Trips listed on the dashboard
ORPHAN_PROOF_MAX_AGE = 24 * 60 * 60  # Unattached payment proof lifetime (in seconds)


# ---------------------------------------------------------------------------
# Account constraints
# ---------------------------------------------------------------------------
MIN_PASSWORD_LENGTH = 6


# ---------------------------------------------------------------------------
# Fleet thresholds
# ---------------------------------------------------------------------------
HEALTH_GOOD_THRESHOLD = 70  # health_score >= 70 is good
HEALTH_FAIR_THRESHOLD = 40  # health_score >= 40 is fair, below is poor
HEALTH_SERVICE_THRESHOLD = 50  # health_score < 50 needs service
MPS_TO_KMPH = 3.6


# ---------------------------------------------------------------------------
# Rate limits
# ---------------------------------------------------------------------------
BOOTSTRAP_RATE_LIMIT = 5  # Requests per window per IP
BOOTSTRAP_RATE_WINDOW = 60  # Window length (in seconds)


# ---------------------------------------------------------------------------
# Redis mutex lock constants
# ---------------------------------------------------------------------------
MUTEX_LOCK_TIMEOUT = 10  # Lock timeout (in seconds)
MUTEX_LOCK_MAX_WAIT_TIME = 60  # Max blocking wait time (in seconds)
