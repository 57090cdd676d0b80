from datetime import date
from typing import List

from fastapi import HTTPException
from pydantic import ValidationError

from entity_engine.domain.models import DateRange


def parse_ids(raw: str) -> List[str]:
    ids = [part.strip() for part in raw.split(",")]
    ids = [i for i in ids if i]
    if not ids:
        raise HTTPException(status_code=400, detail="ids must name at least one entity")
    return list(dict.fromkeys(ids))


def parse_range(start: date, end: date) -> DateRange:
    try:
        return DateRange(start=start, end=end)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail="start must not be after end") from e
