import json
import os
from typing import Any

DATABASE_URL = os.getenv("DATABASE_URL", "postgresql+psycopg2://postgres:postgres@db:5432/matchlink")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

ADMIN_TOKEN = os.getenv("ADMIN_TOKEN", "")
JWT_SECRET = os.getenv("JWT_SECRET", "")
ACCESS_TOKEN_TTL_MINUTES = int(os.getenv("ACCESS_TOKEN_TTL_MINUTES", "15"))
DEV_MODE = os.getenv("DEV_MODE", "false").lower() == "true"

COMPARE_MAX = int(os.getenv("COMPARE_MAX", "5"))
VIEW_RETENTION_DAYS = int(os.getenv("VIEW_RETENTION_DAYS", "7"))
TELEMETRY_TIMEZONE = os.getenv("TELEMETRY_TIMEZONE", "UTC")
REAPER_INTERVAL_SECONDS = int(os.getenv("REAPER_INTERVAL_SECONDS", "3600"))

MATCH_MIN_SCORE = int(os.getenv("MATCH_MIN_SCORE", "0"))
MATCH_PAGE_SIZE = int(os.getenv("MATCH_PAGE_SIZE", "20"))
MATCH_PAGE_SIZE_MAX = int(os.getenv("MATCH_PAGE_SIZE_MAX", "100"))
COMPAT_CACHE_SIZE = int(os.getenv("COMPAT_CACHE_SIZE", "10000"))
COMPAT_CACHE_TTL_SECONDS = int(os.getenv("COMPAT_CACHE_TTL_SECONDS", "900"))

NOTIFY_WORKERS = int(os.getenv("NOTIFY_WORKERS", "2"))

DEFAULT_SCORING_WEIGHTS: dict[str, Any] = {
    "age": float(os.getenv("AGE_W", "20")),
    "community": float(os.getenv("COMMUNITY_W", "20")),
    "location": float(os.getenv("LOCATION_W", "15")),
    "marital_status": float(os.getenv("MARITAL_W", "15")),
    "education": float(os.getenv("EDUCATION_W", "10")),
    "alcohol": float(os.getenv("ALCOHOL_W", "10")),
    "profession": float(os.getenv("PROFESSION_W", "10")),
}

if os.getenv("SCORING_WEIGHTS_JSON"):
    try:
        DEFAULT_SCORING_WEIGHTS.update(json.loads(os.getenv("SCORING_WEIGHTS_JSON", "{}")))
    except json.JSONDecodeError:
        pass

RL_CONNECTION_CREATE_LIMIT = int(os.getenv("RL_CONNECTION_CREATE_LIMIT", "30"))
RL_CONNECTION_UPDATE_LIMIT = int(os.getenv("RL_CONNECTION_UPDATE_LIMIT", "120"))
RL_FAVORITE_TOGGLE_LIMIT = int(os.getenv("RL_FAVORITE_TOGGLE_LIMIT", "120"))
RL_VIEW_RECORD_LIMIT = int(os.getenv("RL_VIEW_RECORD_LIMIT", "300"))
RL_WINDOW_SECONDS = int(os.getenv("RL_WINDOW_SECONDS", "60"))
