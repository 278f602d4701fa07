"""Pydantic models and enums for manual cycle tracking input: period
records and symptom observations."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import Field, field_validator, model_validator

from src.models.base import CyclesenseBase


# ---------- Enums ----------

class FlowIntensity(str, Enum):
    light = "light"
    medium = "medium"
    heavy = "heavy"


class SymptomSeverity(str, Enum):
    mild = "mild"
    moderate = "moderate"
    severe = "severe"
    extreme = "extreme"


class SymptomCategory(str, Enum):
    physical = "physical"
    emotional = "emotional"
    skin = "skin"
    other = "other"


class SymptomType(str, Enum):
    # physical
    cramps = "cramps"
    bloating = "bloating"
    breast_tenderness = "breast-tenderness"
    headache = "headache"
    back_pain = "back-pain"
    nausea = "nausea"
    fatigue = "fatigue"
    hot_flashes = "hot-flashes"
    joint_pain = "joint-pain"
    # emotional
    mood_swings = "mood-swings"
    irritability = "irritability"
    anxiety = "anxiety"
    depression = "depression"
    mood_low = "mood-low"
    emotional_sensitivity = "emotional-sensitivity"
    brain_fog = "brain-fog"
    difficulty_concentrating = "difficulty-concentrating"
    # skin
    acne = "acne"
    skin_dryness = "skin-dryness"
    skin_oiliness = "skin-oiliness"
    dark_circles = "dark-circles"
    hair_changes = "hair-changes"
    # other
    food_cravings = "food-cravings"
    insomnia = "insomnia"
    increased_appetite = "increased-appetite"
    decreased_appetite = "decreased-appetite"
    digestive_issues = "digestive-issues"
    water_retention = "water-retention"


SYMPTOM_CATEGORIES: dict[SymptomCategory, tuple[SymptomType, ...]] = {
    SymptomCategory.physical: (
        SymptomType.cramps,
        SymptomType.bloating,
        SymptomType.breast_tenderness,
        SymptomType.headache,
        SymptomType.back_pain,
        SymptomType.nausea,
        SymptomType.fatigue,
        SymptomType.hot_flashes,
        SymptomType.joint_pain,
    ),
    SymptomCategory.emotional: (
        SymptomType.mood_swings,
        SymptomType.irritability,
        SymptomType.anxiety,
        SymptomType.depression,
        SymptomType.mood_low,
        SymptomType.emotional_sensitivity,
        SymptomType.brain_fog,
        SymptomType.difficulty_concentrating,
    ),
    SymptomCategory.skin: (
        SymptomType.acne,
        SymptomType.skin_dryness,
        SymptomType.skin_oiliness,
        SymptomType.dark_circles,
        SymptomType.hair_changes,
    ),
    SymptomCategory.other: (
        SymptomType.food_cravings,
        SymptomType.insomnia,
        SymptomType.increased_appetite,
        SymptomType.decreased_appetite,
        SymptomType.digestive_issues,
        SymptomType.water_retention,
    ),
}


class CyclePhase(str, Enum):
    menstrual = "menstrual"
    follicular = "follicular"
    ovulatory = "ovulatory"
    luteal = "luteal"


class RiskLevel(str, Enum):
    low = "low"
    moderate = "moderate"
    high = "high"
    insufficient_data = "insufficient-data"


class AnomalyKind(str, Enum):
    unusual_length = "unusual-length"
    missed_period = "missed-period"
    short_cycle = "short-cycle"


# ---------- Shared validators ----------

def _calendar_date(value: Any) -> Any:
    """ISO timestamps (e.g. "2025-01-06T00:00:00.000Z") keep their calendar date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and "T" in value:
        return value.split("T", 1)[0]
    return value


# ---------- Cycle records ----------

class CycleRecordIn(CyclesenseBase):
    id: str = Field(min_length=1)
    start_date: date = Field(alias="startDate")
    end_date: date | None = Field(default=None, alias="endDate")
    flow_intensity: FlowIntensity = Field(default=FlowIntensity.medium, alias="flowIntensity")
    symptoms: list[str] = Field(default_factory=list)
    notes: str = ""
    created_at: datetime | None = Field(default=None, alias="createdAt")

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _calendar_dates(cls, v: Any) -> Any:
        return _calendar_date(v)

    @model_validator(mode="after")
    def _end_not_before_start(self) -> "CycleRecordIn":
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("endDate precedes startDate")
        return self


# ---------- Symptom observations ----------

class SymptomObservationIn(CyclesenseBase):
    id: str = Field(min_length=1)
    type: SymptomType
    observed_on: date = Field(alias="date")
    severity: SymptomSeverity = SymptomSeverity.mild
    notes: str = ""
    timestamp: datetime | None = None

    @field_validator("observed_on", mode="before")
    @classmethod
    def _calendar_dates(cls, v: Any) -> Any:
        return _calendar_date(v)
