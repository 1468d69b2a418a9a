from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from .services.zodiac import absolute_degree, normalize_sign


class Placement(BaseModel):
    sign: str
    degree: float = Field(ge=0, le=30)
    absolute_degree: float | None = None

    @field_validator("sign")
    @classmethod
    def _known_sign(cls, value: str) -> str:
        canonical = normalize_sign(value)
        if canonical is None:
            raise ValueError(f"unknown zodiac sign: {value!r}")
        return canonical

    @model_validator(mode="after")
    def _derive_absolute(self) -> "Placement":
        derived = absolute_degree(self.sign, self.degree)
        if self.absolute_degree is None:
            self.absolute_degree = derived
        elif not 0 <= self.absolute_degree < 360:
            raise ValueError("absolute_degree must be in [0, 360)")
        return self


class NatalChart(BaseModel):
    placements: dict[str, Placement] = Field(default_factory=dict)

    @field_validator("placements", mode="before")
    @classmethod
    def _title_case_bodies(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {str(k).strip().capitalize(): v for k, v in value.items()}
        return value


class QuestionnaireAnswer(BaseModel):
    category: str | None = None
    answer: str | None = None

    @field_validator("category", mode="before")
    @classmethod
    def _normalize_category(cls, value: Any) -> str | None:
        # any label is accepted; unlisted ones weigh 1.0 at scoring time
        if value is None:
            return None
        v = str(value).strip().lower()
        return v or None

    @field_validator("answer", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)


class CandidateFilters(BaseModel):
    zodiac_sign: str | None = None
    min_age: int | None = Field(default=None, ge=18, le=120)
    max_age: int | None = Field(default=None, ge=18, le=120)
    max_distance_km: float | None = Field(default=None, gt=0)
    activity_type: str | None = None

    @model_validator(mode="after")
    def _age_range(self) -> "CandidateFilters":
        if self.min_age is not None and self.max_age is not None and self.min_age > self.max_age:
            raise ValueError("min_age must be <= max_age")
        return self

    @field_validator("zodiac_sign")
    @classmethod
    def _zodiac(cls, value: str | None) -> str | None:
        if value is None or value.strip().lower() in {"", "any"}:
            return None
        canonical = normalize_sign(value)
        if canonical is None:
            raise ValueError(f"unknown zodiac sign: {value!r}")
        return canonical

    @field_validator("activity_type")
    @classmethod
    def _activity(cls, value: str | None) -> str | None:
        if value is None or value.strip().lower() in {"", "any"}:
            return None
        return value.strip()


class CreateMatchRequestBody(BaseModel):
    matched_user_id: str


class RespondMatchRequestBody(BaseModel):
    decision: Literal["confirm", "reject"]


class UnmatchBody(BaseModel):
    other_user_id: str
    reason: Literal["user_unmatch", "user_block", "admin_action", "policy_violation", "account_deletion"] = "user_unmatch"


class SwipeBody(BaseModel):
    swiped_id: str
    swipe_type: Literal["like", "pass"]


class BlockBody(BaseModel):
    blocked_user_id: str


class InviteResponse(BaseModel):
    allowed: bool
    remaining_today: int
