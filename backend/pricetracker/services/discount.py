"""Discount period parsing, activity checks and canonical formatting.

Price tags (and the OCR/manual registrations built from them) carry the
discount window as free text. Three shapes are seen in the wild:

- ``26.01.05 ~ 26.01.19``  (YY.MM.DD, tilde)
- ``25.12.01 - 25.12.14``  (YY.MM.DD, dash)
- ``12/01 - 12/14``        (MM/DD, no year - legacy registrations)

Every function here is total: unparsable input degrades to ``None``/``False``
or to the original text, never to an exception. All "today" comparisons use
the civil date in the configured timezone (Asia/Seoul), never server local time.
"""
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from pricetracker.core.config import settings

TILDE_PATTERN = re.compile(r'(\d{2})\.(\d{2})\.(\d{2})\s*~\s*(\d{2})\.(\d{2})\.(\d{2})')
DASH_DOT_PATTERN = re.compile(r'(\d{2})\.(\d{2})\.(\d{2})\s*-\s*(\d{2})\.(\d{2})\.(\d{2})')
LEGACY_PATTERN = re.compile(r'(\d{1,2})/(\d{1,2})\s*-\s*(\d{1,2})/(\d{1,2})')


@dataclass(frozen=True)
class DiscountPeriod:
    """Resolved discount window (inclusive on both ends)."""
    start: date
    end: date


def seoul_today(now: Optional[datetime] = None) -> date:
    """Civil date in the configured timezone for ``now`` (defaults to the current instant)."""
    tz = ZoneInfo(settings.TIMEZONE)
    if now is None:
        return datetime.now(tz).date()
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")
    return now.astimezone(tz).date()


def _ymd_key(d: date) -> int:
    return d.year * 10000 + d.month * 100 + d.day


def _valid_month_day(month: int, day: int) -> bool:
    return 1 <= month <= 12 and 1 <= day <= 31


def _to_date(year: int, month: int, day: int) -> date:
    # Days past the end of the month roll into the next one (02/31 -> 03/03)
    return date(year, month, 1) + timedelta(days=day - 1)


def _parse_dotted(match: re.Match) -> Optional[DiscountPeriod]:
    start_year, start_month, start_day, end_year, end_month, end_day = (
        int(g) for g in match.groups()
    )
    if not (_valid_month_day(start_month, start_day) and _valid_month_day(end_month, end_day)):
        return None

    return DiscountPeriod(
        start=_to_date(2000 + start_year, start_month, start_day),
        end=_to_date(2000 + end_year, end_month, end_day),
    )


def _parse_legacy(match: re.Match, today: date) -> Optional[DiscountPeriod]:
    start_month, start_day, end_month, end_day = (int(g) for g in match.groups())
    if not (_valid_month_day(start_month, start_day) and _valid_month_day(end_month, end_day)):
        return None

    start_md = start_month * 100 + start_day
    end_md = end_month * 100 + end_day

    start_year = end_year = today.year
    if end_md < start_md:
        # Wrapping range ("12/20 - 01/05"): anchor on which side of the
        # start date today falls.
        today_md = today.month * 100 + today.day
        if today_md >= start_md:
            end_year = today.year + 1
        else:
            start_year = today.year - 1

    return DiscountPeriod(
        start=_to_date(start_year, start_month, start_day),
        end=_to_date(end_year, end_month, end_day),
    )


def parse_discount_period(text: Optional[str], today: Optional[date] = None) -> Optional[DiscountPeriod]:
    """
    Parse a discount period string.

    Formats are tried in order (tilde, dash-dot, legacy slash); the first
    structural match wins. A match with an out-of-range month or day yields
    ``None`` rather than falling through to the next format.

    ``today`` only matters for the legacy format, whose year is inferred.
    """
    if not text:
        return None

    match = TILDE_PATTERN.search(text)
    if match:
        return _parse_dotted(match)

    match = DASH_DOT_PATTERN.search(text)
    if match:
        return _parse_dotted(match)

    match = LEGACY_PATTERN.search(text)
    if match:
        return _parse_legacy(match, today or seoul_today())

    return None


def is_discount_active(text: Optional[str], today: Optional[date] = None) -> bool:
    """True when ``today`` falls inside the period (both ends inclusive)."""
    today = today or seoul_today()
    period = parse_discount_period(text, today)
    if period is None:
        return False

    return _ymd_key(period.start) <= _ymd_key(today) <= _ymd_key(period.end)


def _short(d: date) -> str:
    return f"{d.year % 100:02d}.{d.month:02d}.{d.day:02d}"


def format_discount_period(text: Optional[str], today: Optional[date] = None) -> Optional[str]:
    """
    Re-render any supported period as ``YY.MM.DD - YY.MM.DD``.

    Unparsable text is returned unchanged so legacy data stays displayable.
    """
    if not text:
        return None

    period = parse_discount_period(text, today)
    if period is None:
        return text

    return f"{_short(period.start)} - {_short(period.end)}"


def discount_start_key(text: Optional[str], today: Optional[date] = None) -> Optional[int]:
    """Start date as ``YYMMDD`` integer, used to sort and group records."""
    period = parse_discount_period(text, today)
    if period is None:
        return None

    start = period.start
    return (start.year % 100) * 10000 + start.month * 100 + start.day


def discount_start_display(text: Optional[str], today: Optional[date] = None) -> Optional[str]:
    """Start date as ``YY.MM.DD``."""
    period = parse_discount_period(text, today)
    if period is None:
        return None

    return _short(period.start)
