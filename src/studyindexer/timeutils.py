"""Date parsing for repository timestamps and DDI date attributes."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)

# Tried in order, first full match wins.
EXPECTED_DATE_FORMATS = (
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%d-%m %H:%M:%S.%f",
    "%Y-%m-%d",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m",
    "%Y",
)


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse a date string using the expected date formats.

    Naive results are taken to be UTC, aware results are converted to UTC.

    Returns:
        An aware UTC datetime, or None if no format matched.
    """
    if value is None:
        return None

    candidate = value.strip()
    for fmt in EXPECTED_DATE_FORMATS:
        try:
            parsed = datetime.strptime(candidate, fmt)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)

    logger.debug(
        f"Cannot parse date string [{value}] using expected date formats "
        f"{EXPECTED_DATE_FORMATS}"
    )
    return None


def parse_year(value: Optional[str]) -> Optional[int]:
    """Four digit year of a date string, or None if it cannot be parsed."""
    parsed = parse_datetime(value)
    return parsed.year if parsed else None


def to_utc(value: datetime) -> datetime:
    """Normalise a datetime to aware UTC; naive values are assumed UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


__all__ = ["EXPECTED_DATE_FORMATS", "parse_datetime", "parse_year", "to_utc"]
