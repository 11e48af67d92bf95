"""
Timezone utilities for BalanceCycle.

Reset decisions are made against the local calendar of the configured
timezone (SCHEDULER_TIMEZONE, from TZ); the cycle marker is stored in UTC.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from flask import current_app, has_app_context

logger = logging.getLogger(__name__)


def get_timezone() -> ZoneInfo:
    """Get the configured timezone.

    Inside an app context this is SCHEDULER_TIMEZONE, the timezone the
    background scheduler also runs in; otherwise the TZ environment variable.

    Returns:
        ZoneInfo for the configured timezone, defaults to UTC
    """
    if has_app_context():
        tz_name = current_app.config.get('SCHEDULER_TIMEZONE') or 'UTC'
    else:
        tz_name = os.environ.get('TZ', 'UTC')
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone {tz_name!r}, falling back to UTC")
        return ZoneInfo('UTC')


def local_now() -> datetime:
    """Get the current datetime in the configured timezone."""
    return datetime.now(get_timezone())


def utc_now() -> datetime:
    """Get the current datetime in UTC (timezone-aware).

    Use this for storing timestamps in the database.
    """
    return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC. Naive values are assumed to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat_or_none(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
