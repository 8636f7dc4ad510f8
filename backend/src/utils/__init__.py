"""
Utility modules for the clinic pricing application.

This package contains shared helpers used across the application, such as
clinic timezone handling.
"""

from utils.datetime_utils import clinic_now, ensure_clinic_tz

__all__ = ['clinic_now', 'ensure_clinic_tz']
