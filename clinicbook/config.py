import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clinicbook.db")

# Scheduling rules
# Minimum bookable duration; drives "latest legal start" guidance
MIN_APPOINTMENT_MINUTES = int(os.getenv("MIN_APPOINTMENT_MINUTES", "60"))
# Implied length of a patient request submitted without an end time
DEFAULT_REQUEST_MINUTES = int(os.getenv("DEFAULT_REQUEST_MINUTES", "60"))
# Extra gap required between a new appointment and the next booked one
BUFFER_MINUTES = int(os.getenv("BUFFER_MINUTES", "0"))
# Seconds to wait for the provider-day booking lock before reporting a conflict
BOOKING_LOCK_TIMEOUT = float(os.getenv("BOOKING_LOCK_TIMEOUT", "10"))

# Facility-local zone; offset-aware input is converted to naive wall-clock time in this zone
FACILITY_TIMEZONE = os.getenv("FACILITY_TIMEZONE", "UTC")

# Change notifications
REDIS_URL = os.getenv("REDIS_URL")
REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD")
REDIS_DB = int(os.getenv("REDIS_DB", "0"))
REDIS_SSL = os.getenv("REDIS_SSL", "false").lower() == "true"
NOTIFICATIONS_REDIS_ENABLED = (
    os.getenv("NOTIFICATIONS_REDIS_ENABLED", "true" if REDIS_URL else "false").lower() == "true"
)
NOTIFICATIONS_CHANNEL_PREFIX = os.getenv("NOTIFICATIONS_CHANNEL_PREFIX", "appointments")

# Frontend origins allowed to call the API
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:3000,http://localhost:5173",
).split(",")
