from datetime import date
from typing import Any

ZODIAC_SIGNS = [
    "Aries",
    "Taurus",
    "Gemini",
    "Cancer",
    "Leo",
    "Virgo",
    "Libra",
    "Scorpio",
    "Sagittarius",
    "Capricorn",
    "Aquarius",
    "Pisces",
]

SIGN_OFFSETS: dict[str, float] = {sign: float(i * 30) for i, sign in enumerate(ZODIAC_SIGNS)}

# (month, first day) on which each sign begins, tropical zodiac
_SIGN_STARTS: list[tuple[int, int, str]] = [
    (1, 20, "Aquarius"),
    (2, 19, "Pisces"),
    (3, 21, "Aries"),
    (4, 20, "Taurus"),
    (5, 21, "Gemini"),
    (6, 21, "Cancer"),
    (7, 23, "Leo"),
    (8, 23, "Virgo"),
    (9, 23, "Libra"),
    (10, 23, "Scorpio"),
    (11, 22, "Sagittarius"),
    (12, 22, "Capricorn"),
]


def normalize_sign(value: Any) -> str | None:
    if value is None:
        return None
    v = str(value).strip().lower()
    for sign in ZODIAC_SIGNS:
        if sign.lower() == v:
            return sign
    return None


def absolute_degree(sign: Any, degree: Any) -> float | None:
    """Ecliptic longitude for a sign plus degree-within-sign, in [0, 360)."""
    canonical = normalize_sign(sign)
    if canonical is None:
        return None
    try:
        d = float(degree)
    except (TypeError, ValueError):
        return None
    if d != d:
        return None
    # Clamp just under 30 so Pisces 30 cannot wrap to 360.
    d = max(0.0, min(d, 29.999999))
    return SIGN_OFFSETS[canonical] + d


def sun_sign_for_date(day: date) -> str:
    sign = "Capricorn"
    for month, first_day, name in _SIGN_STARTS:
        if (day.month, day.day) >= (month, first_day):
            sign = name
    return sign
