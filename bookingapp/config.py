import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./bookings.db")

# Recurring bookings
# How many rows a new series persists up front when the request does not say
DEFAULT_OCCURRENCES_AHEAD = int(os.getenv("DEFAULT_OCCURRENCES_AHEAD", "8"))
# Upper bound for occurrences_ahead, requests above it are clamped
MAX_OCCURRENCES_AHEAD = int(os.getenv("MAX_OCCURRENCES_AHEAD", "24"))
# How far past today the admin/provider views expand a series
DISPLAY_HORIZON_DAYS = int(os.getenv("DISPLAY_HORIZON_DAYS", "90"))

# Frontend base URL, used for CORS defaults
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
