import threading
import time

from stellr.services import compatibility as compat


def _chart(sign, degree=0):
    return {"placements": {"Sun": {"sign": sign, "degree": degree}}}


def test_blend_uses_both_scores_equally():
    score = compat.blend_scores({"has_data": True, "score": 80}, {"has_data": True, "score": 60})
    assert score == 70


def test_blend_single_source_and_neutral():
    assert compat.blend_scores({"has_data": True, "score": 82}, {"has_data": False, "score": 0}) == 82
    assert compat.blend_scores({"has_data": False, "score": 50}, {"has_data": True, "score": 64}) == 64
    assert compat.blend_scores({"has_data": False, "score": 50}, {"has_data": False, "score": 0}) == 50


def test_quest_zero_means_no_data_not_incompatible():
    result = compat.score_profiles({"natal_chart": _chart("Aries")}, {"natal_chart": _chart("Leo")})
    assert result["components"]["questionnaire"] is None
    assert result["overall_score"] == result["components"]["astro"]
    assert 50 < result["overall_score"] <= 75


def test_recommended_threshold():
    answers = [{"category": "values", "answer": "yes"}]
    result = compat.score_profiles({"questionnaire_responses": answers}, {"questionnaire_responses": answers})
    assert result["overall_score"] == 100
    assert result["recommended"] is True
    assert compat.neutral_compatibility()["recommended"] is False


def test_empty_profiles_are_neutral():
    result = compat.score_profiles({}, None)
    assert result["overall_score"] == 50
    assert result["grade"] == "F"
    assert result["components"] == {"astro": None, "questionnaire": None}


def test_compute_compatibility_uses_canonical_order(monkeypatch):
    low, high = "11111111-1111-1111-1111-111111111111", "22222222-2222-2222-2222-222222222222"
    profiles = {low: {"id": low}, high: {"id": high}}
    seen = []

    monkeypatch.setattr(compat.repo, "get_profiles", lambda db, ids: {i: profiles[i] for i in ids})

    def _capture(a, b, cfg=None, timeout_seconds=None):
        seen.append((a["id"], b["id"]))
        return compat.neutral_compatibility()

    monkeypatch.setattr(compat, "compute_compatibility_bounded", _capture)
    compat.compute_compatibility(object(), high, low)
    compat.compute_compatibility(object(), low, high)
    assert seen == [(low, high), (low, high)]


def test_missing_profile_is_neutral(monkeypatch):
    monkeypatch.setattr(compat.repo, "get_profiles", lambda db, ids: {})
    result = compat.compute_compatibility(object(), "a", "b")
    assert result["overall_score"] == 50


def test_live_scoring_falls_back_on_timeout(monkeypatch):
    def _slow(*args, **kwargs):
        time.sleep(0.5)
        return {"overall_score": 99}

    monkeypatch.setattr(compat, "score_profiles", _slow)
    result = compat.compute_compatibility_bounded({}, {}, timeout_seconds=0.05)
    assert result["overall_score"] == 50
    assert result["grade"] == "F"


def _wait_for_overruns(expected, deadline=2.0):
    end = time.monotonic() + deadline
    while compat.live_overruns() != expected and time.monotonic() < end:
        time.sleep(0.01)
    return compat.live_overruns()


def test_overrunning_tasks_stop_new_submissions(monkeypatch):
    assert _wait_for_overruns(0) == 0
    release = threading.Event()
    calls = []

    def _stuck(*args, **kwargs):
        calls.append("stuck")
        release.wait(5)
        return {"overall_score": 99}

    monkeypatch.setattr(compat, "LIVE_SCORE_WORKERS", 1)
    monkeypatch.setattr(compat, "score_profiles", _stuck)
    try:
        assert compat.compute_compatibility_bounded({}, {}, timeout_seconds=0.05)["overall_score"] == 50
        assert compat.live_overruns() == 1

        compat.compute_compatibility_bounded({}, {}, timeout_seconds=0.05)
        assert calls == ["stuck"]
    finally:
        release.set()

    assert _wait_for_overruns(0) == 0
    monkeypatch.setattr(compat, "score_profiles", lambda a, b, cfg=None: {"overall_score": 77})
    assert compat.compute_compatibility_bounded({}, {}, timeout_seconds=1.0)["overall_score"] == 77
