"""
Alignment analysis models.

AlignmentResult is the immutable payload produced by one successful pipeline
run and stored in the remote cache. AnalysisOutcome is what the orchestrator
returns: the result plus the `cached` / `is_error` discriminants.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from alignment_chart.models.enumerations import ErrorKind

AXIS_MIN = -100.0
AXIS_MAX = 100.0


def clamp_axis(value: float) -> float:
    """Clamp an axis score into [-100, 100]."""
    return max(AXIS_MIN, min(AXIS_MAX, float(value)))


class AlignmentResult(BaseModel):
    """
    Two-axis alignment score plus explanation.

    lawful_chaotic: -100 (lawful) .. 100 (chaotic)
    good_evil:      -100 (good)   .. 100 (evil)

    Out-of-range scores are clamped, not rejected.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    lawful_chaotic: float = Field(..., alias="lawfulChaotic")
    good_evil: float = Field(..., alias="goodEvil")
    explanation: str = ""
    author_name: Optional[str] = Field(default=None, alias="authorName")
    author_image: Optional[str] = Field(default=None, alias="authorImage")

    @field_validator("lawful_chaotic", "good_evil", mode="before")
    @classmethod
    def clamp_scores(cls, value):
        if value is None:
            raise ValueError("axis score is required")
        return clamp_axis(value)

    @classmethod
    def neutral(cls, explanation: str) -> "AlignmentResult":
        return cls(lawful_chaotic=0, good_evil=0, explanation=explanation)


class AnalysisOutcome(BaseModel):
    """Tagged result of PipelineOrchestrator.analyze. Check `is_error` before trusting `result`."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    result: AlignmentResult
    cached: bool = False
    is_error: bool = Field(default=False, alias="isError")
    error_kind: Optional[ErrorKind] = Field(default=None, alias="errorKind")
    cache_key: str = Field(default="", alias="cacheKey")

    @property
    def ok(self) -> bool:
        return not self.is_error

    @classmethod
    def success(cls, result: AlignmentResult, cache_key: str, cached: bool) -> "AnalysisOutcome":
        return cls(result=result, cache_key=cache_key, cached=cached)

    @classmethod
    def failure(cls, kind: ErrorKind, explanation: str, cache_key: str = "") -> "AnalysisOutcome":
        return cls(
            result=AlignmentResult.neutral(explanation),
            cache_key=cache_key,
            is_error=True,
            error_kind=kind,
        )
