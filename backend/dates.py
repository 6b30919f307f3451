"""Date helpers: normalization of sheet dates and Monday-Friday weeks."""
import logging
import re
from datetime import date, datetime, timedelta

logger = logging.getLogger(__name__)

ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
SLASH_DATE = re.compile(r"^(\d{1,4})/(\d{1,4})/(\d{1,4})$")

# Textual formats seen in the Time Log sheet when cells are typed by hand
TEXT_FORMATS = (
    "%d %b %Y",
    "%d %B %Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%d-%b-%Y",
    "%d-%B-%Y",
    "%Y.%m.%d",
)


def format_date_iso(value: date) -> str:
    """Format date as YYYY-MM-DD."""
    return value.strftime("%Y-%m-%d")


def parse_iso_date(value: str) -> date:
    """Parse a strict YYYY-MM-DD string, raising ValueError otherwise."""
    if not isinstance(value, str) or not ISO_DATE.match(value):
        raise ValueError(f"Invalid date format: {value!r}. Use YYYY-MM-DD")
    return date.fromisoformat(value)


def _from_slash_groups(first: str, second: str, third: str) -> date | None:
    if len(first) == 4:
        year, month, day = first, second, third
    elif len(third) == 4:
        # Day first when the year is last; month-first sheets are not supported
        day, month, year = first, second, third
    else:
        return None
    if len(day) > 2 or len(month) > 2:
        return None
    try:
        return date(int(year), int(month), int(day))
    except ValueError:
        return None


def _general_parse(value: str) -> date | None:
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        pass
    for fmt in TEXT_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def normalize_date(value) -> str | None:
    """Canonicalize a sheet date cell to YYYY-MM-DD.

    Accepts YYYY-MM-DD as is, slash triples (YYYY/MM/DD or DD/MM/YYYY,
    the 4-digit group marks the year), ISO date-times and a few textual
    formats. Returns None when the value can't be read as a date.
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None

    if ISO_DATE.match(text):
        try:
            date.fromisoformat(text)
        except ValueError:
            return None
        return text

    match = SLASH_DATE.match(text)
    if match:
        parsed = _from_slash_groups(*match.groups())
        return format_date_iso(parsed) if parsed else None

    parsed = _general_parse(text)
    return format_date_iso(parsed) if parsed else None


def week_dates(day: date) -> list[date]:
    """Get the Monday-Friday dates for the week containing day."""
    monday = day - timedelta(days=day.weekday())
    return [monday + timedelta(days=offset) for offset in range(5)]


def week_end(week_start: date) -> date:
    """Friday of the week starting on week_start."""
    return week_start + timedelta(days=4)


def is_weekday(day: date) -> bool:
    return day.weekday() < 5
