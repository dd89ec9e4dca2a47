"""
Timezone helpers so that "today" always means the hospital's local day.
"""
from datetime import date

import pytz
from django.conf import settings
from django.utils import timezone


def get_local_timezone():
    return pytz.timezone(settings.TIME_ZONE)


def get_local_now():
    """
    Current datetime in the hospital's timezone.

    Returns:
        datetime: aware datetime localized to settings.TIME_ZONE
    """
    return timezone.now().astimezone(get_local_timezone())


def get_local_today():
    """Today's date in the hospital's timezone."""
    return get_local_now().date()


def get_local_date(dt):
    """
    Convert a datetime to the hospital's timezone and extract the date.

    Naive datetimes are assumed to already be in local time.
    """
    if dt is None:
        return None

    if timezone.is_naive(dt):
        dt = get_local_timezone().localize(dt)

    return dt.astimezone(get_local_timezone()).date()


def start_of_month(day=None):
    day = day or get_local_today()
    return date(day.year, day.month, 1)
