"""Natural-language date parsing for rental windows.

Turns customer phrases like "next week", "Jan 20 to Jan 27" or "tomorrow for
3 days" into a concrete ``DateRange``. Parsing is pure: every rule resolves
against the ``reference_date`` passed in by the caller, never the system clock.

Supported forms:
- "today" / "tomorrow"
- "this week" / "next week"
- "this weekend" / "next weekend"
- "in N days" / "N days from now"
- "January 20" / "Jan 20th" / "1/20" / "1/20/2026"
- "January 20-27" / "Jan 20 to Feb 2" / "1/20 - 1/27"
- "<any single date> for N days"
- "2026-01-20" / "2026-01-20 to 2026-01-27"
"""

import re
from dataclasses import dataclass
from datetime import date, timedelta

# Single dates without an explicit end get a week-long window, inclusive
DEFAULT_WINDOW_DAYS = 7

PAST_DATE_MESSAGE = "That date is in the past. Please choose a future date."
UNPARSEABLE_MESSAGE = (
    "I couldn't understand those dates. Try something like 'next week', 'January 20-27', or 'tomorrow'."
)
NONEXISTENT_DATE_MESSAGE = "That date doesn't exist. Please double-check the month and day."
END_BEFORE_START_MESSAGE = "The end date is before the start date. Please check the dates."
ZERO_DURATION_MESSAGE = "A rental needs to be at least one day long."

MONTHS: dict[str, int] = {
    "january": 1, "jan": 1,
    "february": 2, "feb": 2,
    "march": 3, "mar": 3,
    "april": 4, "apr": 4,
    "may": 5,
    "june": 6, "jun": 6,
    "july": 7, "jul": 7,
    "august": 8, "aug": 8,
    "september": 9, "sep": 9, "sept": 9,
    "october": 10, "oct": 10,
    "november": 11, "nov": 11,
    "december": 12, "dec": 12,
}  # fmt: skip

_ORDINAL = r"(?:st|nd|rd|th)?"
_MONTH_DAY = rf"([a-z]+)\.?\s+(\d{{1,2}}){_ORDINAL}"
_SLASH_DATE = r"(\d{1,2})/(\d{1,2})"
_ISO_DATE = r"(\d{4})-(\d{2})-(\d{2})"
_SEPARATOR = r"\s*(?:-|–|—|to|through|thru|until)\s*"

_IN_DAYS = re.compile(r"^in\s+(\d+)\s+days?$")
_DAYS_FROM_NOW = re.compile(r"^(\d+)\s+days?\s+from\s+(?:now|today)$")
_DURATION = re.compile(r"^(?P<anchor>.+?)\s+for\s+(?P<days>\d+)\s+days?$")

_MONTH_DAY_SINGLE = re.compile(rf"^{_MONTH_DAY}$")
_SLASH_SINGLE = re.compile(rf"^{_SLASH_DATE}$")
_SLASH_WITH_YEAR = re.compile(rf"^{_SLASH_DATE}/(\d{{4}})$")
_ISO_SINGLE = re.compile(rf"^{_ISO_DATE}$")

_MONTH_DAY_TO_DAY = re.compile(rf"^{_MONTH_DAY}{_SEPARATOR}(\d{{1,2}}){_ORDINAL}$")
_MONTH_DAY_TO_MONTH_DAY = re.compile(rf"^{_MONTH_DAY}{_SEPARATOR}{_MONTH_DAY}$")
_SLASH_RANGE = re.compile(rf"^{_SLASH_DATE}{_SEPARATOR}{_SLASH_DATE}$")
_ISO_RANGE = re.compile(rf"^{_ISO_DATE}{_SEPARATOR}{_ISO_DATE}$")


class DateParseError(ValueError):
    """Raised when a date expression can't be turned into a valid rental window.

    ``message`` is written for the customer and is safe to show verbatim.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


@dataclass(frozen=True)
class DateRange:
    """An inclusive range of calendar days."""

    start_date: date
    end_date: date

    def __post_init__(self) -> None:
        if self.end_date < self.start_date:
            raise DateParseError(END_BEFORE_START_MESSAGE)

    @property
    def days(self) -> int:
        """Number of days covered, counting both ends."""
        return (self.end_date - self.start_date).days + 1

    def as_iso(self) -> tuple[str, str]:
        """Return the range as ``(YYYY-MM-DD, YYYY-MM-DD)``."""
        return self.start_date.isoformat(), self.end_date.isoformat()


def parse_natural_date(text: str, reference_date: date) -> DateRange:
    """Parse a date expression into a rental window.

    Args:
        text: Free-text date expression from the customer or the model
        reference_date: The current local day; all relative forms resolve against it

    Returns:
        The resolved range, starting on or after ``reference_date``

    Raises:
        DateParseError: If the text is empty, unrecognized, names an impossible
            date, or resolves to a window starting in the past
    """
    normalized = " ".join((text or "").lower().split())
    if not normalized:
        raise DateParseError(UNPARSEABLE_MESSAGE)

    try:
        return _parse(normalized, reference_date)
    except OverflowError as e:
        # Offsets and windows that run past the last representable date
        raise DateParseError(UNPARSEABLE_MESSAGE) from e


def _parse(normalized: str, reference_date: date) -> DateRange:
    keyword_range = _parse_keyword(normalized, reference_date)
    if keyword_range is not None:
        return keyword_range

    duration_match = _DURATION.match(normalized)
    if duration_match:
        start = _resolve_single_date(duration_match.group("anchor"), reference_date)
        if start is not None:
            days = int(duration_match.group("days"))
            if days < 1:
                raise DateParseError(ZERO_DURATION_MESSAGE)
            return _validated(start, start + timedelta(days=days - 1), reference_date)

    endpoints = _parse_explicit_range(normalized, reference_date)
    if endpoints is not None:
        return _validated(endpoints[0], endpoints[1], reference_date)

    start = _resolve_single_date(normalized, reference_date)
    if start is not None:
        return _validated(start, start + timedelta(days=DEFAULT_WINDOW_DAYS - 1), reference_date)

    raise DateParseError(UNPARSEABLE_MESSAGE)


def format_date_range(date_range: DateRange) -> str:
    """Format a range for display, e.g. ``Jan 20 - Jan 27, 2026``."""
    start, end = date_range.start_date, date_range.end_date
    return f"{start:%b} {start.day} - {end:%b} {end.day}, {end.year}"


def _validated(start: date, end: date, reference_date: date) -> DateRange:
    """Apply the past-date and ordering checks shared by every form."""
    if start < reference_date:
        raise DateParseError(PAST_DATE_MESSAGE)
    return DateRange(start_date=start, end_date=end)


def _parse_keyword(normalized: str, reference_date: date) -> DateRange | None:
    """Resolve the fixed relative phrases."""
    window = timedelta(days=DEFAULT_WINDOW_DAYS - 1)
    monday = reference_date - timedelta(days=reference_date.weekday())

    if normalized == "today":
        return DateRange(reference_date, reference_date + window)

    if normalized == "tomorrow":
        start = reference_date + timedelta(days=1)
        return DateRange(start, start + window)

    if normalized == "this week":
        return DateRange(max(reference_date, monday), monday + timedelta(days=6))

    if normalized == "next week":
        next_monday = monday + timedelta(days=7)
        return DateRange(next_monday, next_monday + timedelta(days=6))

    if normalized == "this weekend":
        return _this_weekend(reference_date)

    if normalized == "next weekend":
        saturday = _this_weekend(reference_date).start_date + timedelta(days=7)
        return DateRange(saturday, saturday + timedelta(days=1))

    return None


def _this_weekend(reference_date: date) -> DateRange:
    # The coming Saturday, or today when it is Saturday; from a Sunday that is six days out
    saturday = reference_date + timedelta(days=(5 - reference_date.weekday()) % 7)
    return DateRange(saturday, saturday + timedelta(days=1))


def _resolve_single_date(text: str, reference_date: date) -> date | None:
    """Resolve a single-day expression, or return None if ``text`` isn't one."""
    if text == "today":
        return reference_date
    if text == "tomorrow":
        return reference_date + timedelta(days=1)

    match = _IN_DAYS.match(text) or _DAYS_FROM_NOW.match(text)
    if match:
        return reference_date + timedelta(days=int(match.group(1)))

    match = _MONTH_DAY_SINGLE.match(text)
    if match:
        month = MONTHS.get(match.group(1))
        if month is None:
            return None
        return _resolve_month_day(month, int(match.group(2)), reference_date)

    match = _SLASH_SINGLE.match(text)
    if match:
        return _resolve_month_day(int(match.group(1)), int(match.group(2)), reference_date)

    match = _SLASH_WITH_YEAR.match(text)
    if match:
        return _build_date(int(match.group(3)), int(match.group(1)), int(match.group(2)))

    match = _ISO_SINGLE.match(text)
    if match:
        return _build_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))

    return None


def _parse_explicit_range(normalized: str, reference_date: date) -> tuple[date, date] | None:
    """Resolve two-ended ranges; each endpoint gets its own year inference."""
    match = _MONTH_DAY_TO_DAY.match(normalized)
    if match and match.group(1) in MONTHS:
        month = MONTHS[match.group(1)]
        return (
            _resolve_month_day(month, int(match.group(2)), reference_date),
            _resolve_month_day(month, int(match.group(3)), reference_date),
        )

    match = _MONTH_DAY_TO_MONTH_DAY.match(normalized)
    if match and match.group(1) in MONTHS and match.group(3) in MONTHS:
        return (
            _resolve_month_day(MONTHS[match.group(1)], int(match.group(2)), reference_date),
            _resolve_month_day(MONTHS[match.group(3)], int(match.group(4)), reference_date),
        )

    match = _SLASH_RANGE.match(normalized)
    if match:
        return (
            _resolve_month_day(int(match.group(1)), int(match.group(2)), reference_date),
            _resolve_month_day(int(match.group(3)), int(match.group(4)), reference_date),
        )

    match = _ISO_RANGE.match(normalized)
    if match:
        return (
            _build_date(int(match.group(1)), int(match.group(2)), int(match.group(3))),
            _build_date(int(match.group(4)), int(match.group(5)), int(match.group(6))),
        )

    return None


def _resolve_month_day(month: int, day: int, reference_date: date) -> date:
    """Pick the year for a month/day: this year, or next year if already past."""
    for year in (reference_date.year, reference_date.year + 1):
        try:
            candidate = date(year, month, day)
        except ValueError:
            continue
        if candidate >= reference_date:
            return candidate
    raise DateParseError(NONEXISTENT_DATE_MESSAGE)


def _build_date(year: int, month: int, day: int) -> date:
    try:
        return date(year, month, day)
    except ValueError as e:
        raise DateParseError(NONEXISTENT_DATE_MESSAGE) from e
