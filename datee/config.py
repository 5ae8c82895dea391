import os

DATABASE_URL = os.getenv("DATABASE_URL", "postgresql+psycopg2://postgres:postgres@db:5432/datee")
ADMIN_TOKEN = os.getenv("ADMIN_TOKEN", "")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

MATCH_TTL_HOURS = int(os.getenv("MATCH_TTL_HOURS", "36"))
STORE_TIMEOUT_SECONDS = float(os.getenv("STORE_TIMEOUT_SECONDS", "10"))
PROPOSAL_WINDOW_DAYS = int(os.getenv("PROPOSAL_WINDOW_DAYS", "14"))

MIN_AGE = int(os.getenv("MIN_AGE", "18"))
MAX_AGE = int(os.getenv("MAX_AGE", "60"))
TRAIT_MIN = 1
TRAIT_MAX = 5
