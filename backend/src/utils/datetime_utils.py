"""
Datetime utilities for consistent timezone handling across the application.

All business timestamps (rule creation, voucher application, finalized orders)
use the clinic's local timezone, configured as a fixed UTC offset.
"""

import logging
from datetime import datetime, timezone, timedelta
from typing import Optional

from core.config import CLINIC_UTC_OFFSET_HOURS

logger = logging.getLogger(__name__)

CLINIC_TZ = timezone(timedelta(hours=CLINIC_UTC_OFFSET_HOURS))


def clinic_now() -> datetime:
    """
    Get current datetime in the clinic timezone.

    Returns:
        Current timezone-aware datetime in the clinic timezone
    """
    return datetime.now(CLINIC_TZ)


def ensure_clinic_tz(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure a datetime is timezone-aware in the clinic timezone.

    Naive datetimes are assumed to already be clinic-local (SQLite drops
    tzinfo on round-trip).

    Args:
        dt: Datetime to normalize

    Returns:
        Timezone-aware datetime in the clinic timezone, or None if input is None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=CLINIC_TZ)
    return dt.astimezone(CLINIC_TZ)
