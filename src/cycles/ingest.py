"""Validate raw tracking rows into engine records.

Rows come from whatever persistence layer hosts the engine (JSON documents,
ORM objects, CSV dicts).  Each row is validated through the pydantic schemas
in ``src.models.tracking``; rows that fail are logged and skipped so one bad
entry never blocks analysis of the rest.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from pydantic import ValidationError

from src.cycles.base import CycleRecord, SymptomObservation
from src.models.tracking import (
    SYMPTOM_CATEGORIES,
    CycleRecordIn,
    SymptomCategory,
    SymptomObservationIn,
    SymptomType,
)

logger = logging.getLogger("cyclesense.cycles.ingest")

_CATEGORY_BY_TAG = {
    tag.value: category for category, tags in SYMPTOM_CATEGORIES.items() for tag in tags
}


def _errors(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'row'}: {err['msg']}" for err in exc.errors()
    )


def parse_cycle_records(rows: Iterable[Any]) -> list[CycleRecord]:
    """Validate cycle rows and return CycleRecords sorted by start date.

    Args:
        rows: Mappings (camelCase or snake_case keys) or objects with matching
              attributes.

    Returns:
        Valid records, oldest first.  Invalid rows are skipped.
    """
    records: list[CycleRecord] = []
    skipped = 0
    for position, row in enumerate(rows):
        try:
            parsed = CycleRecordIn.model_validate(row)
        except ValidationError as exc:
            skipped += 1
            logger.warning("Skipping cycle row %d: %s", position, _errors(exc))
            continue
        records.append(
            CycleRecord(
                id=parsed.id,
                start_date=parsed.start_date,
                end_date=parsed.end_date,
                flow_intensity=parsed.flow_intensity.value,
                symptoms=frozenset(parsed.symptoms),
                notes=parsed.notes,
                created_at=parsed.created_at,
            )
        )
    if skipped:
        logger.info("Parsed %d cycle records (%d skipped)", len(records), skipped)
    records.sort(key=lambda r: r.start_date)
    return records


def parse_symptom_observations(rows: Iterable[Any]) -> list[SymptomObservation]:
    """Validate symptom rows and return observations sorted by date, then tag.

    Unknown symptom tags and severities fail validation and are skipped.
    """
    observations: list[SymptomObservation] = []
    skipped = 0
    for position, row in enumerate(rows):
        try:
            parsed = SymptomObservationIn.model_validate(row)
        except ValidationError as exc:
            skipped += 1
            logger.warning("Skipping symptom row %d: %s", position, _errors(exc))
            continue
        observations.append(
            SymptomObservation(
                id=parsed.id,
                symptom_type=parsed.type.value,
                date=parsed.observed_on,
                severity=parsed.severity.value,
                notes=parsed.notes,
                timestamp=parsed.timestamp,
            )
        )
    if skipped:
        logger.info("Parsed %d symptom observations (%d skipped)", len(observations), skipped)
    observations.sort(key=lambda o: (o.date, o.symptom_type))
    return observations


def symptom_category(tag: str | SymptomType) -> SymptomCategory:
    """Category of a symptom tag; unknown tags fall under 'other'."""
    value = tag.value if isinstance(tag, SymptomType) else tag
    return _CATEGORY_BY_TAG.get(value, SymptomCategory.other)
