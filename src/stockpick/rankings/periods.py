"""Ranking period identifiers and their time bounds.

Weekly periods use a simple calendar-week count, not ISO-8601:

    week = ceil((day_of_year + jan1_weekday) / 7)

where day_of_year is 1-based and jan1_weekday counts from Sunday = 0. A
weekly period's range starts on Jan 1 plus (week - 1) * 7 days, so range
boundaries do not necessarily fall on Sundays. Historical snapshots are keyed
by these strings, so the formula must not change.

All wall-clock math happens in the contest's local timezone.
"""

from __future__ import annotations

import calendar
import math
import re
from datetime import date, datetime, timedelta, tzinfo
from zoneinfo import ZoneInfo

from stockpick.exceptions import InvalidPeriodError

WEEKLY = "weekly"
MONTHLY = "monthly"
TOTAL = "total"
RANKING_TYPES = (WEEKLY, MONTHLY, TOTAL)

TOTAL_PERIOD = "total"

DEFAULT_TIMEZONE = ZoneInfo("Asia/Shanghai")

_WEEKLY_RE = re.compile(r"^(\d{4})-W(\d{2})$")
_MONTHLY_RE = re.compile(r"^(\d{4})-(\d{2})$")

# Jan 1 on a Saturday in a leap year reaches week 54
MAX_WEEK = 54


def validate_ranking_type(ranking_type: str) -> str:
    if ranking_type not in RANKING_TYPES:
        raise InvalidPeriodError(
            f"Unknown ranking type: {ranking_type}",
            details={"ranking_type": ranking_type},
        )
    return ranking_type


def _to_local(now: datetime, tz: tzinfo) -> datetime:
    if now.tzinfo is None:
        return now.replace(tzinfo=tz)
    return now.astimezone(tz)


def week_number(d: date) -> int:
    """Calendar week of ``d`` under the contest's week rule."""
    jan1 = date(d.year, 1, 1)
    jan1_weekday = jan1.isoweekday() % 7  # Sunday = 0
    day_of_year = d.timetuple().tm_yday
    return math.ceil((day_of_year + jan1_weekday) / 7)


def parse_weekly(period: str) -> tuple[int, int]:
    match = _WEEKLY_RE.match(period)
    if match is None:
        raise InvalidPeriodError(f"Weekly period must look like YYYY-Www, got {period!r}")
    year, week = int(match.group(1)), int(match.group(2))
    if not 1 <= week <= MAX_WEEK:
        raise InvalidPeriodError(f"Week out of range in {period!r}")
    return year, week


def parse_monthly(period: str) -> tuple[int, int]:
    match = _MONTHLY_RE.match(period)
    if match is None:
        raise InvalidPeriodError(f"Monthly period must look like YYYY-MM, got {period!r}")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise InvalidPeriodError(f"Month out of range in {period!r}")
    return year, month


def validate_period(ranking_type: str, period: str) -> str:
    """Check that ``period`` has the format this ranking type produces."""
    validate_ranking_type(ranking_type)
    if ranking_type == WEEKLY:
        parse_weekly(period)
    elif ranking_type == MONTHLY:
        parse_monthly(period)
    elif period != TOTAL_PERIOD:
        raise InvalidPeriodError(f"All-time period must be {TOTAL_PERIOD!r}, got {period!r}")
    return period


def current_period(ranking_type: str, now: datetime, tz: tzinfo = DEFAULT_TIMEZONE) -> str:
    """Period identifier containing ``now``."""
    validate_ranking_type(ranking_type)
    if ranking_type == TOTAL:
        return TOTAL_PERIOD

    local = _to_local(now, tz)
    if ranking_type == WEEKLY:
        return f"{local.year}-W{week_number(local.date()):02d}"
    return f"{local.year}-{local.month:02d}"


def period_range(
    ranking_type: str, period: str, tz: tzinfo = DEFAULT_TIMEZONE,
) -> tuple[datetime | None, datetime | None]:
    """Inclusive (start, end) instants of a period; (None, None) for all-time."""
    validate_period(ranking_type, period)
    if ranking_type == TOTAL:
        return None, None

    if ranking_type == WEEKLY:
        year, week = parse_weekly(period)
        start = datetime(year, 1, 1, tzinfo=tz) + timedelta(days=(week - 1) * 7)
        end = start + timedelta(days=6, hours=23, minutes=59, seconds=59)
        return start, end

    year, month = parse_monthly(period)
    last_day = calendar.monthrange(year, month)[1]
    start = datetime(year, month, 1, tzinfo=tz)
    end = datetime(year, month, last_day, 23, 59, 59, 999999, tzinfo=tz)
    return start, end


def previous_period(ranking_type: str, period: str) -> str:
    """Period immediately before ``period``.

    Week 1 wraps to week 52 of the prior year even when that year had a 53rd
    week; all-time maps to itself.
    """
    validate_period(ranking_type, period)
    if ranking_type == TOTAL:
        return TOTAL_PERIOD

    if ranking_type == WEEKLY:
        year, week = parse_weekly(period)
        if week > 1:
            return f"{year}-W{week - 1:02d}"
        return f"{year - 1}-W52"

    year, month = parse_monthly(period)
    if month > 1:
        return f"{year}-{month - 1:02d}"
    return f"{year - 1}-12"
