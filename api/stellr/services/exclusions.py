import logging
import threading
import time

from sqlalchemy import text

from ..config import EXCLUSION_CACHE_TTL_SECONDS

logger = logging.getLogger(__name__)

EXCLUSION_SQL = """
SELECT swiped_id AS other_id FROM swipe WHERE swiper_id = CAST(:uid AS uuid)
UNION
SELECT blocked_id FROM user_block WHERE blocking_id = CAST(:uid AS uuid)
UNION
SELECT blocking_id FROM user_block WHERE blocked_id = CAST(:uid AS uuid)
UNION
SELECT CASE WHEN user1_id = CAST(:uid AS uuid) THEN user2_id ELSE user1_id END
FROM match
WHERE user1_id = CAST(:uid AS uuid) OR user2_id = CAST(:uid AS uuid)
UNION
SELECT CASE WHEN requester_id = CAST(:uid AS uuid) THEN matched_user_id ELSE requester_id END
FROM match_request
WHERE (requester_id = CAST(:uid AS uuid) OR matched_user_id = CAST(:uid AS uuid))
  AND status IN ('pending', 'confirmed', 'rejected')
"""


def build_exclusion_set(db, user_id: str) -> set[str]:
    rows = db.execute(text(EXCLUSION_SQL), {"uid": user_id}).mappings().all()
    excluded = {str(r["other_id"]) for r in rows if r["other_id"] is not None}
    excluded.add(str(user_id))
    return excluded


class ExclusionCache:
    def __init__(self, ttl_seconds: int = EXCLUSION_CACHE_TTL_SECONDS) -> None:
        self.ttl_seconds = ttl_seconds
        self._entries: dict[str, tuple[float, frozenset[str]]] = {}
        self._invalidated_at: dict[str, float] = {}
        self._lock = threading.Lock()

    def get(self, db, user_id: str) -> set[str]:
        key = str(user_id)
        started = time.monotonic()
        with self._lock:
            hit = self._entries.get(key)
            if hit and started - hit[0] < self.ttl_seconds:
                return set(hit[1])
        excluded = build_exclusion_set(db, key)
        with self._lock:
            # a write landed while rebuilding; do not cache the possibly older read
            if self._invalidated_at.get(key, float("-inf")) >= started:
                return excluded
            self._entries[key] = (started, frozenset(excluded))
        return excluded

    def invalidate(self, *user_ids: str) -> None:
        now = time.monotonic()
        with self._lock:
            for uid in user_ids:
                key = str(uid)
                self._entries.pop(key, None)
                self._invalidated_at[key] = now
            cutoff = now - self.ttl_seconds
            for key in [k for k, t in self._invalidated_at.items() if t < cutoff]:
                del self._invalidated_at[key]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._invalidated_at.clear()


exclusion_cache = ExclusionCache()


def get_exclusions(db, user_id: str) -> set[str]:
    return exclusion_cache.get(db, user_id)


def invalidate_exclusions(*user_ids: str) -> None:
    exclusion_cache.invalidate(*user_ids)
    logger.debug("[exclusions] invalidated %s", ",".join(str(u) for u in user_ids))
