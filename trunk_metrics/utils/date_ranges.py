"""Analysis windows for trunk metrics

An analysis window is a pair of calendar dates. Commits and runs are counted on
``[start 00:00 UTC, end + 1 day 00:00 UTC)``; daily buckets cover every date from
start to end inclusive. Helpers here also compute the widened ranges the fetch
layer must request for commit mapping and MTTR.
"""

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple


class DateRangeError(ValueError):
    """Exception raised for invalid date range specifications"""


class AnalysisWindow:
    """A calendar-date analysis window

    Attributes:
        start_date: First day of the window (date)
        end_date: Last day of the window, inclusive (date)
        range_key: String identifier (e.g., "90d", "Q1-2025")
        description: Human-readable description
    """

    def __init__(self, start_date: date, end_date: date, range_key: Optional[str] = None, description: str = ""):
        """Initialize an AnalysisWindow

        Raises:
            DateRangeError: If end_date is before start_date
        """
        if isinstance(start_date, datetime):
            start_date = start_date.date()
        if isinstance(end_date, datetime):
            end_date = end_date.date()
        if end_date < start_date:
            raise DateRangeError(f"end_date must not be before start_date: {end_date} < {start_date}")

        self.start_date = start_date
        self.end_date = end_date
        self.range_key = range_key or f"custom_{start_date.isoformat()}_{end_date.isoformat()}"
        self.description = description or f"{start_date.isoformat()} to {end_date.isoformat()}"

    @classmethod
    def from_strings(cls, start: str, end: str) -> "AnalysisWindow":
        """Build a window from two ISO dates ("2025-01-01")."""
        try:
            start_date = date.fromisoformat(start)
            end_date = date.fromisoformat(end)
        except (TypeError, ValueError) as e:
            raise DateRangeError(f"Invalid date format: {e}")
        return cls(start_date, end_date)

    @property
    def start_instant(self) -> datetime:
        return datetime.combine(self.start_date, time.min, tzinfo=timezone.utc)

    @property
    def end_instant(self) -> datetime:
        """Exclusive upper bound: midnight UTC after the last day."""
        return datetime.combine(self.end_date + timedelta(days=1), time.min, tzinfo=timezone.utc)

    @property
    def days_in_range(self) -> float:
        """Days between start and end, floored at 1 (used as rate denominator)."""
        return float(max((self.end_date - self.start_date).days, 1))

    @property
    def weeks_in_range(self) -> int:
        return max((self.end_date - self.start_date).days // 7, 1)

    def contains(self, instant: datetime) -> bool:
        """True if ``instant`` falls in ``[start_instant, end_instant)``."""
        return self.start_instant <= instant < self.end_instant

    def iter_dates(self):
        """Yield every calendar date from start to end inclusive."""
        current = self.start_date
        while current <= self.end_date:
            yield current
            current += timedelta(days=1)

    def mapping_fetch_range(self, lookahead_days: int = 7) -> Tuple[datetime, datetime]:
        """Run range needed to map commits near the end of the window (forward only)."""
        return self.start_instant, self.end_instant + timedelta(days=lookahead_days)

    def recovery_fetch_range(self, lookback_days: int = 7, lookahead_days: int = 7) -> Tuple[datetime, datetime]:
        """Run range needed for MTTR so incidents spanning the boundary are seen."""
        return (
            self.start_instant - timedelta(days=lookback_days),
            self.end_instant + timedelta(days=lookahead_days),
        )

    def to_dict(self) -> dict:
        return {
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "days": self.days_in_range,
            "range_key": self.range_key,
            "description": self.description,
        }

    def __eq__(self, other) -> bool:
        if not isinstance(other, AnalysisWindow):
            return NotImplemented
        return (self.start_date, self.end_date) == (other.start_date, other.end_date)

    def __hash__(self) -> int:
        return hash((self.start_date, self.end_date))

    def __repr__(self) -> str:
        return f"AnalysisWindow({self.range_key}: {self.start_date} to {self.end_date})"


def parse_date_range(range_spec: str, reference_date: Optional[date] = None) -> AnalysisWindow:
    """Parse a date range specification into an AnalysisWindow

    Supported formats:
        - Days: "30d", "90d" (days back from reference_date, which is the last day)
        - Quarters: "Q1-2025"
        - Years: "2024" (full calendar year)
        - Custom: "2024-01-01:2024-03-31" (inclusive ISO dates)

    Args:
        range_spec: String specification of the date range
        reference_date: Reference date for relative ranges (defaults to today, UTC)

    Returns:
        AnalysisWindow

    Raises:
        DateRangeError: If range_spec is invalid or unsupported

    Examples:
        >>> parse_date_range("Q1-2025")
        AnalysisWindow(Q1-2025: 2025-01-01 to 2025-03-31)
    """
    if reference_date is None:
        reference_date = datetime.now(timezone.utc).date()
    elif isinstance(reference_date, datetime):
        reference_date = reference_date.date()

    range_spec = range_spec.strip()

    if re.match(r"^-\d+d$", range_spec, re.IGNORECASE):
        raise DateRangeError("Days must be positive")

    days_match = re.match(r"^(\d+)d$", range_spec, re.IGNORECASE)
    if days_match:
        days = int(days_match.group(1))
        if days <= 0:
            raise DateRangeError(f"Days must be positive: {days}")
        if days > 3650:  # ~10 years maximum
            raise DateRangeError(f"Days too large (max 3650): {days}")

        return AnalysisWindow(
            start_date=reference_date - timedelta(days=days),
            end_date=reference_date,
            range_key=range_spec.lower(),
            description=f"Last {days} days",
        )

    quarter_match = re.match(r"^Q([1-4])-(\d{4})$", range_spec, re.IGNORECASE)
    if quarter_match:
        quarter = int(quarter_match.group(1))
        year = _checked_year(int(quarter_match.group(2)))

        start_month = 3 * (quarter - 1) + 1
        start_date = date(year, start_month, 1)
        if quarter == 4:
            end_date = date(year, 12, 31)
        else:
            end_date = date(year, start_month + 3, 1) - timedelta(days=1)

        return AnalysisWindow(start_date, end_date, range_key=range_spec.upper(), description=f"Q{quarter} {year}")

    year_match = re.match(r"^(\d{4})$", range_spec)
    if year_match:
        year = _checked_year(int(year_match.group(1)))
        return AnalysisWindow(date(year, 1, 1), date(year, 12, 31), range_key=str(year), description=f"Year {year}")

    custom_match = re.match(r"^(\d{4}-\d{2}-\d{2}):(\d{4}-\d{2}-\d{2})$", range_spec)
    if custom_match:
        window = AnalysisWindow.from_strings(custom_match.group(1), custom_match.group(2))
        return window

    raise DateRangeError(
        f"Invalid date range format: '{range_spec}'. Supported: 30d, 90d, Q1-2025, 2024, 2024-01-01:2024-12-31"
    )


def _checked_year(year: int) -> int:
    if not (2000 <= year <= 2100):
        raise DateRangeError(f"Year out of range (2000-2100): {year}")
    return year


def format_date_for_github(dt: datetime) -> str:
    """Format a datetime the way GitHub's ``since``/``until`` parameters expect.

    Returns:
        ISO 8601 string (e.g., "2024-01-01T00:00:00Z")
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
