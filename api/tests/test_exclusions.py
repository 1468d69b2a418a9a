from stellr.services.exclusions import ExclusionCache, build_exclusion_set

USER = "11111111-1111-1111-1111-111111111111"


class _Rows:
    def __init__(self, rows):
        self._rows = rows

    def mappings(self):
        return self

    def all(self):
        return self._rows


class FakeDB:
    def __init__(self, rows, on_execute=None):
        self.rows = rows
        self.calls = []
        self.on_execute = on_execute

    def execute(self, stmt, params):
        self.calls.append((str(stmt), params))
        if self.on_execute:
            self.on_execute()
        return _Rows(self.rows)


def test_exclusion_set_includes_self_and_all_sources():
    db = FakeDB([{"other_id": "swiped"}, {"other_id": "blocker"}, {"other_id": None}])
    excluded = build_exclusion_set(db, USER)
    assert excluded == {USER, "swiped", "blocker"}
    sql, params = db.calls[0]
    assert params == {"uid": USER}
    for fragment in ("FROM swipe", "blocking_id FROM user_block", "blocked_id FROM user_block", "FROM match", "FROM match_request"):
        assert fragment in sql
    assert "'pending', 'confirmed', 'rejected'" in sql


def test_cache_serves_until_invalidated():
    cache = ExclusionCache(ttl_seconds=300)
    db = FakeDB([{"other_id": "a"}])
    assert cache.get(db, USER) == {USER, "a"}
    assert cache.get(db, USER) == {USER, "a"}
    assert len(db.calls) == 1

    db.rows = [{"other_id": "a"}, {"other_id": "b"}]
    cache.invalidate(USER)
    assert cache.get(db, USER) == {USER, "a", "b"}
    assert len(db.calls) == 2


def test_zero_ttl_always_rebuilds():
    cache = ExclusionCache(ttl_seconds=0)
    db = FakeDB([])
    cache.get(db, USER)
    cache.get(db, USER)
    assert len(db.calls) == 2


def test_write_during_rebuild_is_not_cached():
    cache = ExclusionCache(ttl_seconds=300)
    db = FakeDB([], on_execute=lambda: cache.invalidate(USER))
    cache.get(db, USER)
    db.on_execute = None
    cache.get(db, USER)
    assert len(db.calls) == 2


def test_returned_set_is_a_copy():
    cache = ExclusionCache(ttl_seconds=300)
    db = FakeDB([{"other_id": "a"}])
    first = cache.get(db, USER)
    first.add("mutated")
    assert "mutated" not in cache.get(db, USER)
