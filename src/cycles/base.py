"""Canonical data models consumed by the cycle analytics engine.

CycleRecord and SymptomObservation are the only inputs to every estimator,
detector, and analyzer in this package.  They are frozen: the engine reads
them, sorts copies of the lists that hold them, and never writes back.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime


@dataclass(frozen=True)
class CycleRecord:
    """One logged period, marking the start of a cycle.

    Attributes:
        id:             Record identifier assigned by the tracking UI.
        start_date:     First day of bleeding.
        end_date:       Last day of bleeding, if logged.
        flow_intensity: 'light', 'medium', or 'heavy'.
        symptoms:       Legacy per-cycle symptom tags.
        notes:          Free-text notes.
        created_at:     When the record was created.
    """

    id: str
    start_date: date
    end_date: date | None = None
    flow_intensity: str = "medium"
    symptoms: frozenset[str] = frozenset()
    notes: str = ""
    created_at: datetime | None = None

    @property
    def bleed_length(self) -> int | None:
        """Days of bleeding, inclusive of both ends, or None if unknown."""
        if self.end_date is None or self.end_date < self.start_date:
            return None
        return (self.end_date - self.start_date).days + 1


@dataclass(frozen=True)
class SymptomObservation:
    """A single symptom logged on a calendar day.

    Attributes:
        id:           Observation identifier.
        symptom_type: Symptom tag, e.g. 'cramps' or 'mood-swings'.
        date:         Day the symptom was experienced.
        severity:     'mild', 'moderate', 'severe', or 'extreme'.
        notes:        Free-text notes.
        timestamp:    When the observation was logged.
    """

    id: str
    symptom_type: str
    date: date
    severity: str = "mild"
    notes: str = ""
    timestamp: datetime | None = None
