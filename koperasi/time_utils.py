from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .config_db import env_value

_LOCAL_TZ = None

INDONESIAN_MONTHS = [
    "Januari",
    "Februari",
    "Maret",
    "April",
    "Mei",
    "Juni",
    "Juli",
    "Agustus",
    "September",
    "Oktober",
    "November",
    "Desember",
]


def _resolve_local_tz():
    global _LOCAL_TZ
    if _LOCAL_TZ is not None:
        return _LOCAL_TZ
    tz_name = env_value("APP_TIMEZONE") or env_value("TZ")
    if tz_name:
        try:
            _LOCAL_TZ = ZoneInfo(tz_name)
            return _LOCAL_TZ
        except (ZoneInfoNotFoundError, ValueError):
            _LOCAL_TZ = None
    _LOCAL_TZ = datetime.now().astimezone().tzinfo
    return _LOCAL_TZ


def local_now():
    return datetime.now(_resolve_local_tz()).replace(tzinfo=None)


def local_today():
    return local_now().date()


def period_token(value=None):
    """Token periode bulanan ``YYYY-MM`` untuk proses autodebet."""
    value = value or local_now()
    return f"{value.year:04d}-{value.month:02d}"


def period_label(token):
    year, month = token.split("-", 1)
    return f"{INDONESIAN_MONTHS[int(month) - 1]} {year}"


def parse_period_token(raw):
    raw = str(raw or "").strip()
    try:
        parsed = datetime.strptime(raw, "%Y-%m")
    except ValueError:
        return None
    return parsed
