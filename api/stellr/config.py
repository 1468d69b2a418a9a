import json
import os
from typing import Any

ADMIN_TOKEN = os.getenv("ADMIN_TOKEN", "")
JWT_SECRET = os.getenv("JWT_SECRET", "")
DEV_MODE = os.getenv("DEV_MODE", "false").lower() == "true"

COMPAT_CACHE_TTL_DAYS = int(os.getenv("COMPAT_CACHE_TTL_DAYS", "7"))
EXCLUSION_CACHE_TTL_SECONDS = int(os.getenv("EXCLUSION_CACHE_TTL_SECONDS", "120"))
LIVE_SCORE_TIMEOUT_SECONDS = float(os.getenv("LIVE_SCORE_TIMEOUT_SECONDS", "2.0"))
LIVE_SCORE_WORKERS = int(os.getenv("LIVE_SCORE_WORKERS", "4"))

MATCH_REQUEST_EXPIRY_HOURS = int(os.getenv("MATCH_REQUEST_EXPIRY_HOURS", "72"))
MATCH_BONUS_POINTS = int(os.getenv("MATCH_BONUS_POINTS", "25"))

FREE_DAILY_INVITES = int(os.getenv("FREE_DAILY_INVITES", "5"))
PREMIUM_DAILY_INVITES = int(os.getenv("PREMIUM_DAILY_INVITES", "20"))
PREMIUM_TIERS = {"premium", "premium_cancelled"}

CANDIDATE_PAGE_DEFAULT = int(os.getenv("CANDIDATE_PAGE_DEFAULT", "20"))
CANDIDATE_PAGE_MAX = int(os.getenv("CANDIDATE_PAGE_MAX", "50"))

DEFAULT_SCORING_CONFIG: dict[str, Any] = {
    "ASTRO_W": float(os.getenv("ASTRO_W", "0.5")),
    "QUEST_W": float(os.getenv("QUEST_W", "0.5")),
    "NEUTRAL_SCORE": float(os.getenv("NEUTRAL_SCORE", "50")),
    "RECOMMENDED_THRESHOLD": float(os.getenv("RECOMMENDED_THRESHOLD", "70")),
}

if os.getenv("SCORING_CONFIG_JSON"):
    try:
        DEFAULT_SCORING_CONFIG.update(json.loads(os.getenv("SCORING_CONFIG_JSON", "{}")))
    except json.JSONDecodeError:
        pass

RL_MATCH_REQUEST_LIMIT = int(os.getenv("RL_MATCH_REQUEST_LIMIT", "30"))
RL_MATCH_RESPOND_LIMIT = int(os.getenv("RL_MATCH_RESPOND_LIMIT", "60"))
RL_SWIPE_LIMIT = int(os.getenv("RL_SWIPE_LIMIT", "120"))
RL_UNMATCH_LIMIT = int(os.getenv("RL_UNMATCH_LIMIT", "20"))
RL_WINDOW_SECONDS = int(os.getenv("RL_WINDOW_SECONDS", "60"))
