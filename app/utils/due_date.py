"""Due date of a payment from its creation time and payment duration."""
import calendar
import re
from datetime import datetime, timedelta

PAYMENT_DURATION_OPTIONS: dict[str, int] = {
    "Instant": 0,
    "1 day": 1,
    "1-2 days": 2,
    "2-3 days": 3,
    "3-5 days": 5,
    "5-10 days": 10,
}

_OPTION_DAYS = {key.lower(): days for key, days in PAYMENT_DURATION_OPTIONS.items()}

# Checked in this order; first keyword found wins. Persian synonyms included.
_UNIT_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("day", ("day", "روز")),
    ("week", ("week", "هفته")),
    ("month", ("month", "ماه")),
    ("year", ("year", "سال")),
)

# \d matches any Unicode decimal digit, so Persian numerals parse too
_NUMBER_RE = re.compile(r"\d+")


def add_months(value: datetime, months: int) -> datetime:
    """Calendar month arithmetic; the day is clamped to the target month's end."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def _first_number(text: str, default: int = 1) -> int:
    match = _NUMBER_RE.search(text)
    return int(match.group(0)) if match else default


def derive_due_date(created_at: datetime, duration: str | int | None) -> datetime:
    """
    Fixed options map to day offsets; an int is a number of months; free text
    is scanned for day/week/month/year with the first embedded integer as the
    count (default 1). Anything else, blank included, means one month.
    Returns a new datetime; never reads the clock.
    """
    if isinstance(duration, bool):
        duration = None
    if isinstance(duration, int):
        return add_months(created_at, duration)
    text = (duration or "").strip().lower()
    if not text:
        return add_months(created_at, 1)
    if text in _OPTION_DAYS:
        return created_at + timedelta(days=_OPTION_DAYS[text])

    for unit, keywords in _UNIT_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            count = _first_number(text)
            if unit == "day":
                return created_at + timedelta(days=count)
            if unit == "week":
                return created_at + timedelta(weeks=count)
            if unit == "month":
                return add_months(created_at, count)
            return add_months(created_at, 12 * count)
    return add_months(created_at, 1)
