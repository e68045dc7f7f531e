"""
Logical day resolution service.
Maps instants into the calendar date of a user's timezone, the partition
key for all daily materialization and analytics.
"""
import logging
from datetime import datetime, timedelta, date, timezone as dt_timezone
from typing import Iterator, NamedTuple, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from orbit.constants import DEFAULT_TIMEZONE
from orbit.exceptions import ValidationException

logger = logging.getLogger("orbit.logical_day")


class LogicalDayResolution(NamedTuple):
    day: date
    timezone: str
    fell_back: bool


class DateService:
    """Service for logical day operations"""

    @staticmethod
    def get_zone(timezone: Optional[str]) -> tuple[ZoneInfo, bool]:
        """
        Load an IANA timezone, falling back to UTC on bad identifiers.

        Args:
            timezone: IANA identifier such as "America/New_York"

        Returns:
            Tuple of (zone, fell_back)
        """
        if not timezone:
            logger.warning(f"Empty timezone, falling back to {DEFAULT_TIMEZONE}")
            return ZoneInfo(DEFAULT_TIMEZONE), True

        try:
            return ZoneInfo(timezone), False
        except (ZoneInfoNotFoundError, ValueError, OSError) as e:
            # Directory names ("America") and overlong keys surface as OSError
            logger.warning(f"Invalid timezone '{timezone}', falling back to {DEFAULT_TIMEZONE}: {e}")
            return ZoneInfo(DEFAULT_TIMEZONE), True

    @staticmethod
    def resolve(instant: datetime, timezone: Optional[str]) -> LogicalDayResolution:
        """
        Resolve an instant into the wall-clock date of a timezone.

        Naive instants are treated as UTC. The result carries whether the
        timezone had to fall back, so batch callers can report it.

        Args:
            instant: Point in time
            timezone: IANA identifier

        Returns:
            LogicalDayResolution(day, timezone_used, fell_back)
        """
        zone, fell_back = DateService.get_zone(timezone)

        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=dt_timezone.utc)

        local = instant.astimezone(zone)
        return LogicalDayResolution(
            day=local.date(),
            timezone=zone.key,
            fell_back=fell_back
        )

    @staticmethod
    def resolve_logical_day(instant: datetime, timezone: Optional[str]) -> date:
        """Resolve an instant into its logical day (see resolve)"""
        return DateService.resolve(instant, timezone).day

    @staticmethod
    def today(timezone: Optional[str], now: Optional[datetime] = None) -> date:
        """Logical day for the current instant"""
        return DateService.resolve_logical_day(now or datetime.now(dt_timezone.utc), timezone)

    @staticmethod
    def format_logical_day(day: date) -> str:
        """Format as zero-padded YYYY-MM-DD"""
        return f"{day.year:04d}-{day.month:02d}-{day.day:02d}"

    @staticmethod
    def parse_logical_day(value: str) -> date:
        """
        Parse a YYYY-MM-DD string.

        Raises:
            ValidationException: If the string is not a calendar date
        """
        try:
            return date.fromisoformat(value)
        except (TypeError, ValueError):
            raise ValidationException("logical_day", f"'{value}' is not a YYYY-MM-DD date")

    @staticmethod
    def previous_day(day: date) -> date:
        return day - timedelta(days=1)

    @staticmethod
    def iter_days(start_date: date, end_date: date) -> Iterator[date]:
        """Yield every calendar date from start_date to end_date inclusive"""
        current = start_date
        while current <= end_date:
            yield current
            current += timedelta(days=1)

    @staticmethod
    def get_day_range(target_date: date, timezone: Optional[str]) -> tuple[datetime, datetime]:
        """
        Get the UTC instants bounding a logical day.

        A DST transition makes the day 23 or 25 hours long; both bounds
        are local midnights converted to UTC.

        Args:
            target_date: Logical day
            timezone: IANA identifier

        Returns:
            Tuple of (day_start, day_end) as aware UTC datetimes
        """
        zone, _ = DateService.get_zone(timezone)
        day_start = datetime.combine(target_date, datetime.min.time(), tzinfo=zone)
        day_end = datetime.combine(target_date + timedelta(days=1), datetime.min.time(), tzinfo=zone)
        return day_start.astimezone(dt_timezone.utc), day_end.astimezone(dt_timezone.utc)
