GRADE_THRESHOLDS: list[tuple[float, str]] = [
    (90.0, "A"),
    (80.0, "B"),
    (70.0, "C"),
    (60.0, "D"),
]


def clamp_score(value: float) -> float:
    return max(0.0, min(100.0, float(value)))


def letter_grade(score: float) -> str:
    s = clamp_score(score)
    for threshold, grade in GRADE_THRESHOLDS:
        if s >= threshold:
            return grade
    return "F"
