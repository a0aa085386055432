"""
Placement models.

Placement is the in-session unit shown on the chart. StoredPlacement is its
durable projection in the local store: timestamp serialized as ISO-8601,
transient flags (loading, is_dragging) stripped.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from alignment_chart.models.alignment import AlignmentResult, AnalysisOutcome
from alignment_chart.models.enumerations import PlacementStatus

POSITION_MIN = 0.0
POSITION_MAX = 100.0


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Position(BaseModel):
    """Chart position in percent, clamped to [0, 100] on both axes."""

    x: float = 50.0
    y: float = 50.0

    @field_validator("x", "y", mode="before")
    @classmethod
    def clamp_percent(cls, value):
        return max(POSITION_MIN, min(POSITION_MAX, float(value)))

    @classmethod
    def from_alignment(cls, result: AlignmentResult) -> "Position":
        """Map lawful/chaotic to x and good/evil to y."""
        return cls(
            x=(result.lawful_chaotic + 100) / 2,
            y=(result.good_evil + 100) / 2,
        )


class Placement(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    src: str
    position: Position = Field(default_factory=Position)
    username: Optional[str] = None
    analysis: Optional[AnalysisOutcome] = None
    is_ai_placed: bool = Field(default=False, alias="isAiPlaced")
    loading: bool = False
    is_dragging: bool = Field(default=False, alias="isDragging")
    timestamp: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def pending_has_no_analysis(self):
        if self.loading and self.analysis is not None:
            raise ValueError("a loading placement cannot carry an analysis")
        return self

    @property
    def status(self) -> PlacementStatus:
        return PlacementStatus.PENDING if self.loading else PlacementStatus.RESOLVED

    @property
    def is_error(self) -> bool:
        return self.analysis is not None and self.analysis.is_error

    def to_stored(self) -> "StoredPlacement":
        return StoredPlacement(
            id=self.id,
            src=self.src,
            position=self.position,
            username=self.username,
            analysis=self.analysis,
            is_ai_placed=self.is_ai_placed,
            timestamp=self.timestamp.isoformat(),
        )


class StoredPlacement(BaseModel):
    """Durable record in the local store's `users` table."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    src: str = ""
    position: Position = Field(default_factory=Position)
    username: Optional[str] = None
    analysis: Optional[AnalysisOutcome] = None
    is_ai_placed: bool = Field(default=False, alias="isAiPlaced")
    timestamp: str = Field(default_factory=lambda: utc_now().isoformat())

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "StoredPlacement":
        """
        Build from a raw stored record, defaulting anything missing.

        Records written by an older schema version may lack fields or carry
        an analysis shape that no longer validates; those fields fall back to
        defaults instead of failing the whole load.
        """
        data = {k: v for k, v in record.items() if v is not None}
        if "analysis" in data:
            try:
                data["analysis"] = AnalysisOutcome.model_validate(data["analysis"])
            except ValidationError:
                data.pop("analysis")
        if "position" in data and not isinstance(data["position"], dict):
            data.pop("position")
        if not isinstance(data.get("timestamp"), str):
            data.pop("timestamp", None)
        return cls.model_validate(data)

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    def to_placement(self) -> Placement:
        try:
            timestamp = datetime.fromisoformat(self.timestamp)
        except ValueError:
            timestamp = utc_now()
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return Placement(
            id=self.id,
            src=self.src,
            position=self.position,
            username=self.username,
            analysis=self.analysis,
            is_ai_placed=self.is_ai_placed,
            loading=False,
            is_dragging=False,
            timestamp=timestamp,
        )
