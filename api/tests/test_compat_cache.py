import json
from datetime import datetime, timedelta, timezone

from stellr.services import compat_cache
from stellr.services.compatibility import neutral_compatibility, score_profiles

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)
ALICE = "11111111-1111-1111-1111-111111111111"
BOB = "22222222-2222-2222-2222-222222222222"
ANSWERS = [{"category": "values", "answer": "family first"}]


class _Result:
    def __init__(self, row=None, rows=None):
        self._row = row
        self._rows = rows or []

    def mappings(self):
        return self

    def first(self):
        return self._row

    def all(self):
        return self._rows


class FakeDB:
    def __init__(self, row=None, rows=None, fail_writes=False):
        self.row = row
        self.rows = rows
        self.fail_writes = fail_writes
        self.calls = []
        self.commits = 0
        self.rollbacks = 0

    def execute(self, stmt, params):
        sql = str(stmt)
        self.calls.append((sql, params))
        if "INSERT INTO compatibility_score_cache" in sql and self.fail_writes:
            raise RuntimeError("db down")
        return _Result(self.row, self.rows)

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1


def test_canonical_pair_orders_ids():
    assert compat_cache.canonical_pair(BOB, ALICE) == (ALICE, BOB)
    assert compat_cache.canonical_pair(ALICE, BOB) == (ALICE, BOB)


def test_lookup_uses_canonical_pair_and_expiry():
    db = FakeDB()
    assert compat_cache.get_cached_score(db, BOB, ALICE, now=NOW) is None
    sql, params = db.calls[0]
    assert "expires_at > :now" in sql
    assert (params["low"], params["high"]) == (ALICE, BOB)


def test_write_sets_ttl_and_details():
    db = FakeDB()
    result = score_profiles({"questionnaire_responses": ANSWERS}, {"questionnaire_responses": ANSWERS})
    compat_cache.write_cached_score(db, BOB, ALICE, result, now=NOW, ttl_days=7)
    sql, params = db.calls[0]
    assert "ON CONFLICT (user1_id, user2_id) DO UPDATE" in sql
    assert params["low"] == ALICE
    assert params["expires_at"] == NOW + timedelta(days=7)
    assert params["astro"] is None
    assert params["quest"] == result["components"]["questionnaire"]
    assert set(json.loads(params["details"])) == {"astro", "questionnaire"}


def test_scores_for_keys_by_other_user():
    rows = [
        {"user1_id": ALICE, "user2_id": BOB, "score": 81.5},
        {"user1_id": "00000000-0000-0000-0000-000000000001", "user2_id": ALICE, "score": 40},
    ]
    out = compat_cache.get_cached_scores_for(FakeDB(rows=rows), ALICE, [BOB, "00000000-0000-0000-0000-000000000001"], now=NOW)
    assert out == {BOB: 81.5, "00000000-0000-0000-0000-000000000001": 40.0}
    assert compat_cache.get_cached_scores_for(FakeDB(), ALICE, []) == {}


def test_get_or_compute_serves_cache_hit():
    row = {
        "score": 72.0,
        "grade": "B",
        "astro_score": 64.0,
        "questionnaire_score": 80.0,
        "details": json.dumps({"astro": {"aspects": []}, "questionnaire": {}}),
    }
    calls = []
    out = compat_cache.get_or_compute(FakeDB(row=row), ALICE, BOB, lambda *a: calls.append(a), recommended_threshold=70, now=NOW)
    assert calls == []
    assert out["cached"] is True
    assert out["recommended"] is True
    assert out["components"] == {"astro": 64.0, "questionnaire": 80.0}
    assert out["astro_details"] == {"aspects": []}


def test_get_or_compute_writes_fresh_result():
    db = FakeDB()
    fresh = score_profiles({"questionnaire_responses": ANSWERS}, {"questionnaire_responses": ANSWERS})
    out = compat_cache.get_or_compute(db, ALICE, BOB, lambda *a: fresh, now=NOW)
    assert out["cached"] is False
    assert any("INSERT INTO compatibility_score_cache" in sql for sql, _ in db.calls)
    assert db.commits == 1


def test_get_or_compute_skips_write_without_data():
    db = FakeDB()
    out = compat_cache.get_or_compute(db, ALICE, BOB, lambda *a: neutral_compatibility(), now=NOW)
    assert out["overall_score"] == 50.0
    assert not any("INSERT" in sql for sql, _ in db.calls)


def test_failed_write_still_returns_result():
    db = FakeDB(fail_writes=True)
    fresh = score_profiles({"questionnaire_responses": ANSWERS}, {"questionnaire_responses": ANSWERS})
    out = compat_cache.get_or_compute(db, ALICE, BOB, lambda *a: fresh, now=NOW)
    assert out["overall_score"] == fresh["overall_score"]
    assert db.rollbacks == 1
    assert db.commits == 0


def test_invalidate_user_deletes_both_sides():
    db = FakeDB()
    compat_cache.invalidate_user(db, ALICE)
    sql, params = db.calls[0]
    assert "DELETE FROM compatibility_score_cache" in sql
    assert "user1_id = CAST(:uid AS uuid) OR user2_id = CAST(:uid AS uuid)" in sql
    assert params == {"uid": ALICE}
