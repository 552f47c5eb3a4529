import json
import os
from typing import Any

DATABASE_URL = os.getenv("DATABASE_URL", "postgresql+psycopg2://postgres:postgres@db:5432/poolmatch")
ADMIN_TOKEN = os.getenv("ADMIN_TOKEN", "")

MATCHER_INTERVAL_SECONDS = int(os.getenv("MATCHER_INTERVAL_SECONDS", "3600"))
MATCH_ROUND_TIMEOUT_SECONDS = float(os.getenv("MATCH_ROUND_TIMEOUT_SECONDS", "300"))

MIN_MATCH_SIZE = 2
MAX_MATCH_SIZE = 6
DEFAULT_MATCH_SIZE = 2
MAX_MEMBERS_PER_POOL = int(os.getenv("MAX_MEMBERS_PER_POOL", "100"))
MAX_EXCLUSIONS_PER_MEMBER = int(os.getenv("MAX_EXCLUSIONS_PER_MEMBER", "20"))
MAX_POOL_NAME_LENGTH = 100
MAX_POOL_DESC_LENGTH = 500
MAX_ACTIVITY_SUGG_LENGTH = 200

POOL_FREQUENCIES = ("weekly", "biweekly", "monthly")

DEFAULT_MATCHING_CONFIG: dict[str, Any] = {
    "VARIETY_WEIGHT": float(os.getenv("VARIETY_WEIGHT", "0.6")),
    "COMPATIBILITY_WEIGHT": float(os.getenv("COMPATIBILITY_WEIGHT", "0.4")),
    "RECENCY_DAYS": int(os.getenv("RECENCY_DAYS", "30")),
}

if os.getenv("MATCHING_CONFIG_JSON"):
    try:
        DEFAULT_MATCHING_CONFIG.update(json.loads(os.getenv("MATCHING_CONFIG_JSON", "{}")))
    except json.JSONDecodeError:
        pass
