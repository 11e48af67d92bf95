"""
Monthly reset schedule utilities.

Pure functions deciding whether a balance reset is due. Nothing in this
module touches the database; callers supply the last reset timestamp.
"""

import calendar
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional

from dateutil.relativedelta import relativedelta

logger = logging.getLogger(__name__)

MIN_RESET_DAY = 1
MAX_RESET_DAY = 31


@dataclass(frozen=True)
class ResetConfig:
    """Parsed BALANCE_RESET_DAY setting."""

    enabled: bool
    reset_day: int

    @classmethod
    def from_value(cls, raw: Any) -> 'ResetConfig':
        """
        Parse a raw reset day setting.

        A value that is absent, zero, negative or not an integer disables
        auto-reset. Enabled values are clamped to [1, 31].

        Args:
            raw: Value from configuration (str, int or None)

        Returns:
            ResetConfig
        """
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            return cls(enabled=False, reset_day=MIN_RESET_DAY)

        try:
            day = int(str(raw).strip())
        except ValueError:
            logger.warning(f"Invalid BALANCE_RESET_DAY {raw!r}, auto-reset disabled")
            return cls(enabled=False, reset_day=MIN_RESET_DAY)

        return cls(enabled=day > 0, reset_day=clamp_reset_day(day))


def clamp_reset_day(day: int) -> int:
    return min(max(day, MIN_RESET_DAY), MAX_RESET_DAY)


def same_cycle(now: datetime, last_reset: datetime) -> bool:
    """Check whether two moments fall in the same calendar (year, month).

    Aware timestamps are compared in the timezone of ``now``.
    """
    if now.tzinfo is not None and last_reset.tzinfo is not None:
        last_reset = last_reset.astimezone(now.tzinfo)
    return (last_reset.year, last_reset.month) == (now.year, now.month)


def should_reset(now: datetime, reset_day: int, enabled: bool,
                 last_reset: Optional[datetime]) -> bool:
    """
    Decide whether the monthly balance reset is due.

    Args:
        now: Current moment (local time)
        reset_day: Configured day of month, already clamped to [1, 31]
        enabled: Whether auto-reset is enabled
        last_reset: Timestamp of the last successful reset, or None

    Returns:
        True if today is the reset day and no reset happened this month
    """
    if not enabled:
        return False

    if now.day != reset_day:
        return False

    if last_reset is not None and same_cycle(now, last_reset):
        return False

    return True


def explain_not_due(now: datetime, config: ResetConfig,
                    last_reset: Optional[datetime]) -> str:
    """Describe why a reset is not due right now."""
    last = last_reset.isoformat() if last_reset else 'never'
    if not config.enabled:
        return f"Reset not needed. Auto-reset is disabled, last reset was {last}"
    return f"Reset not needed. Reset day is {config.reset_day}, last reset was {last}"


def next_reset_date(today: date, reset_day: int,
                    last_reset: Optional[datetime] = None,
                    horizon_months: int = 24) -> Optional[date]:
    """
    Find the next date on which the due check can pass.

    Months shorter than the reset day are skipped, since the due check never
    fires in them.

    Args:
        today: Local date to search from (inclusive)
        reset_day: Configured day of month
        last_reset: Last reset timestamp; its month is skipped
        horizon_months: How many months ahead to search

    Returns:
        The next eligible date, or None if none within the horizon
    """
    month_start = today.replace(day=1)

    for offset in range(horizon_months + 1):
        current = month_start + relativedelta(months=offset)
        days_in_month = calendar.monthrange(current.year, current.month)[1]
        if reset_day > days_in_month:
            continue

        candidate = current.replace(day=reset_day)
        if candidate < today:
            continue

        if last_reset is not None and (last_reset.year, last_reset.month) == (candidate.year, candidate.month):
            continue

        return candidate

    return None
