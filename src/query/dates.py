"""Date detection for loosely typed cells.

ISO strings are handled directly; anything else goes through `dateparser` with strict parsing so
that bare words ("may", "monday") or lone numbers are not mistaken for calendar dates.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time
from typing import Any

import dateparser
from dateparser.conf import Settings as DateparserSettings

_DATEPARSER_SETTINGS = DateparserSettings().replace(
    STRICT_PARSING=True,
    DATE_ORDER="YMD",
    PREFER_DATES_FROM="past",
)

_HAS_DIGIT_RE = re.compile(r"\d")
_MAX_DATE_TEXT_LEN = 40


def parse_date(value: Any) -> datetime | None:
    """Parse a cell value as a datetime.

    Returns:
        A naive or aware `datetime` if the value is a date, otherwise `None`.
    """

    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if not isinstance(value, str):
        return None

    text = value.strip()
    # A full calendar date always carries digits; skip free text early (dateparser is slow).
    if not text or len(text) > _MAX_DATE_TEXT_LEN or not _HAS_DIGIT_RE.search(text):
        return None

    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        pass

    return dateparser.parse(text, languages=["en"], settings=_DATEPARSER_SETTINGS)


def to_iso(value: Any) -> str | None:
    """ISO-normalize a date value; midnight datetimes collapse to `YYYY-MM-DD`."""

    parsed = parse_date(value)
    if parsed is None:
        return None
    if parsed.tzinfo is None and parsed.time() == time.min:
        return parsed.date().isoformat()
    return parsed.isoformat()
