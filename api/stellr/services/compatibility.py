from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Any

from .. import repo
from ..config import DEFAULT_SCORING_CONFIG, LIVE_SCORE_TIMEOUT_SECONDS, LIVE_SCORE_WORKERS
from .astrology import calculate_astrological_compatibility
from .grades import clamp_score, letter_grade
from .questionnaire import calculate_questionnaire_compatibility

logger = logging.getLogger(__name__)

_executor = ThreadPoolExecutor(max_workers=LIVE_SCORE_WORKERS, thread_name_prefix="compat")
# scoring tasks still running after their caller gave up on them
_overruns = 0
_overrun_lock = threading.Lock()


def _overrun_finished(_future) -> None:
    global _overruns
    with _overrun_lock:
        _overruns -= 1


def live_overruns() -> int:
    with _overrun_lock:
        return _overruns


def blend_scores(astro: dict[str, Any], quest: dict[str, Any], cfg: dict[str, Any] | None = None) -> float:
    cfg = cfg or DEFAULT_SCORING_CONFIG
    neutral = float(cfg.get("NEUTRAL_SCORE", 50.0))
    astro_ok = bool(astro.get("has_data"))
    quest_ok = bool(quest.get("has_data"))
    if astro_ok and quest_ok:
        astro_w = float(cfg.get("ASTRO_W", 0.5))
        quest_w = float(cfg.get("QUEST_W", 0.5))
        total_w = astro_w + quest_w
        if total_w <= 0:
            return neutral
        return clamp_score((astro_w * float(astro["score"]) + quest_w * float(quest["score"])) / total_w)
    if astro_ok:
        return clamp_score(float(astro["score"]))
    if quest_ok:
        return clamp_score(float(quest["score"]))
    return neutral


def _result(overall: float, astro: dict[str, Any] | None, quest: dict[str, Any] | None, cfg: dict[str, Any]) -> dict[str, Any]:
    return {
        "overall_score": round(overall, 2),
        "grade": letter_grade(overall),
        "recommended": overall >= float(cfg.get("RECOMMENDED_THRESHOLD", 70.0)),
        "components": {
            "astro": (astro or {}).get("score") if (astro or {}).get("has_data") else None,
            "questionnaire": (quest or {}).get("score") if (quest or {}).get("has_data") else None,
        },
        "astro_details": astro or {},
        "questionnaire_details": quest or {},
    }


def neutral_compatibility(cfg: dict[str, Any] | None = None) -> dict[str, Any]:
    cfg = cfg or DEFAULT_SCORING_CONFIG
    return _result(float(cfg.get("NEUTRAL_SCORE", 50.0)), None, None, cfg)


def score_profiles(profile_a: dict[str, Any] | None, profile_b: dict[str, Any] | None, cfg: dict[str, Any] | None = None) -> dict[str, Any]:
    cfg = cfg or DEFAULT_SCORING_CONFIG
    profile_a = profile_a or {}
    profile_b = profile_b or {}
    astro = calculate_astrological_compatibility(profile_a.get("natal_chart"), profile_b.get("natal_chart"))
    quest = calculate_questionnaire_compatibility(
        profile_a.get("questionnaire_responses"),
        profile_b.get("questionnaire_responses"),
    )
    return _result(blend_scores(astro, quest, cfg), astro, quest, cfg)


def compute_compatibility_bounded(
    profile_a: dict[str, Any] | None,
    profile_b: dict[str, Any] | None,
    cfg: dict[str, Any] | None = None,
    timeout_seconds: float | None = None,
) -> dict[str, Any]:
    """Score on the shared pool, falling back to neutral past the time budget.

    A running task cannot be cancelled, so timed-out tasks are counted until they finish;
    once they fill every worker, callers get the neutral result without queueing more work.
    """
    global _overruns
    budget = LIVE_SCORE_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds
    with _overrun_lock:
        saturated = _overruns >= LIVE_SCORE_WORKERS
        stuck = _overruns
    if saturated:
        logger.warning("[compat] %s scoring tasks still overrunning, using neutral default", stuck)
        return neutral_compatibility(cfg)

    future = _executor.submit(score_profiles, profile_a, profile_b, cfg)
    try:
        return future.result(timeout=budget)
    except FutureTimeout:
        if future.cancel():
            logger.warning("[compat] live scoring queued past %.2fs budget, using neutral default", budget)
            return neutral_compatibility(cfg)
        with _overrun_lock:
            _overruns += 1
            stuck = _overruns
        future.add_done_callback(_overrun_finished)
        logger.warning("[compat] live scoring exceeded %.2fs budget (%s overrunning), using neutral default", budget, stuck)
        return neutral_compatibility(cfg)


def compute_compatibility(db, user_a: str, user_b: str, cfg: dict[str, Any] | None = None) -> dict[str, Any]:
    """Live score for a pair, always evaluated in canonical order."""
    low, high = sorted((str(user_a), str(user_b)))
    profiles = repo.get_profiles(db, [low, high])
    if low not in profiles or high not in profiles:
        logger.info("[compat] missing profile for pair %s/%s, neutral default", low, high)
        return neutral_compatibility(cfg)
    return compute_compatibility_bounded(profiles[low], profiles[high], cfg)
