import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./bookingsync.db")

# Acuity Scheduling API credentials (Basic auth: user id + API key)
ACUITY_USER_ID = os.getenv("ACUITY_USER_ID")
ACUITY_API_KEY = os.getenv("ACUITY_API_KEY")
ACUITY_BASE_URL = os.getenv("ACUITY_BASE_URL", "https://acuityscheduling.com/api/v1")
ACUITY_TIMEOUT_SECONDS = float(os.getenv("ACUITY_TIMEOUT_SECONDS", "10"))

# Rate-limit backoff for outbound Acuity calls (retries after the first attempt)
ACUITY_MAX_RETRIES = int(os.getenv("ACUITY_MAX_RETRIES", "2"))
ACUITY_RETRY_BASE_DELAY = float(os.getenv("ACUITY_RETRY_BASE_DELAY", "1.0"))
ACUITY_RETRY_MAX_DELAY = float(os.getenv("ACUITY_RETRY_MAX_DELAY", "30"))

# Page size for GET /appointments (Acuity defaults to 100)
ACUITY_APPOINTMENTS_MAX = int(os.getenv("ACUITY_APPOINTMENTS_MAX", "1000"))

# Shared secret Acuity must send with webhook deliveries (?token= or X-Acuity-Token)
ACUITY_WEBHOOK_TOKEN = os.getenv("ACUITY_WEBHOOK_TOKEN")

# Availability changes quickly - keep this in minutes, not hours
AVAILABILITY_CACHE_TTL_SECONDS = int(os.getenv("AVAILABILITY_CACHE_TTL_SECONDS", "300"))
AVAILABILITY_CACHE_MAX_ENTRIES = int(os.getenv("AVAILABILITY_CACHE_MAX_ENTRIES", "2048"))

# Range lookups fan out one Acuity call per date; bound both the span and the
# number of calls in flight
AVAILABILITY_MAX_RANGE_DAYS = int(os.getenv("AVAILABILITY_MAX_RANGE_DAYS", "62"))
AVAILABILITY_RANGE_CONCURRENCY = int(os.getenv("AVAILABILITY_RANGE_CONCURRENCY", "8"))

DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "America/New_York")

# Reconciliation windows, in days relative to "now" at invocation time
SYNC_LOOKBACK_DAYS = int(os.getenv("SYNC_LOOKBACK_DAYS", "30"))
SYNC_LOOKAHEAD_DAYS = int(os.getenv("SYNC_LOOKAHEAD_DAYS", "30"))
USER_SYNC_LOOKBACK_DAYS = int(os.getenv("USER_SYNC_LOOKBACK_DAYS", "7"))
USER_SYNC_LOOKAHEAD_DAYS = int(os.getenv("USER_SYNC_LOOKAHEAD_DAYS", "60"))
SYNC_DEFAULT_NOTES = os.getenv("SYNC_DEFAULT_NOTES", "Synced from Acuity")

# HTTP surface
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]
SECURITY_HEADERS_ENABLED = os.getenv("SECURITY_HEADERS_ENABLED", "true").lower() == "true"
IS_PRODUCTION = os.getenv("ENVIRONMENT", "development").lower() == "production"
