"""
Attendance calculations
Geofence distance, shift lateness, work hours and calendar helpers.
Attendance days are calendar days in SCHEDULER_TIMEZONE; a record's date is
naive midnight on that wall clock, whatever the host time zone is.
"""

import math
from datetime import datetime, date, timedelta
from typing import Optional, Tuple, Union
from zoneinfo import ZoneInfo
from app.config import (
    DEFAULT_SHIFT_START, DEFAULT_SHIFT_END,
    DEFAULT_GRACE_PERIOD_MINUTES, DEFAULT_WORKING_HOURS, SCHEDULER_TIMEZONE
)

EARTH_RADIUS_METERS = 6371000

ATTENDANCE_TZ = ZoneInfo(SCHEDULER_TIMEZONE)

DAYS_OF_WEEK = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

STATUS_COLORS = {
    "PRESENT": "#10b981",
    "ABSENT": "#ef4444",
    "LATE": "#f59e0b",
    "ON_LEAVE": "#3b82f6",
    "HALF_DAY": "#8b5cf6",
    "WORK_FROM_HOME": "#06b6d4",
    "ON_DUTY": "#f97316",
    "HOLIDAY": "#6b7280",
}

# ==================== GEO ====================

def distance_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle (haversine) distance between two coordinates in meters"""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(math.sqrt(a))

def is_within_radius(lat: float, lon: float, center: dict, radius: float) -> Tuple[bool, float]:
    """center is a GeoJSON point; returns (inside, distance)"""
    c_lon, c_lat = center["coordinates"][0], center["coordinates"][1]
    distance = distance_meters(lat, lon, c_lat, c_lon)
    return distance <= radius, distance

# ==================== DAYS ====================

def local_now(tz: Optional[ZoneInfo] = None) -> datetime:
    """Current wall-clock time in the attendance time zone, without tzinfo"""
    return datetime.now(tz or ATTENDANCE_TZ).replace(tzinfo=None)

def midnight(value: Optional[Union[datetime, date, str]] = None) -> datetime:
    """Local midnight of a datetime, date or ISO string (today when omitted)"""
    if value is None:
        value = local_now()
    elif isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", ""))
    elif not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    elif value.tzinfo is not None:
        value = value.astimezone(ATTENDANCE_TZ)
    return value.replace(hour=0, minute=0, second=0, microsecond=0, tzinfo=None)

def day_range(day: datetime) -> Tuple[datetime, datetime]:
    start = midnight(day)
    return start, start + timedelta(days=1)

def end_of_day(value: Union[datetime, date, str]) -> datetime:
    return midnight(value) + timedelta(days=1) - timedelta(microseconds=1)

def month_range(year: int, month: int) -> Tuple[datetime, datetime]:
    start = datetime(year, month, 1)
    end = datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1)
    return start, end

def day_of_week(value: datetime) -> str:
    return DAYS_OF_WEEK[value.weekday()]

# ==================== SHIFTS ====================

def default_shift() -> dict:
    return {
        "start": DEFAULT_SHIFT_START,
        "end": DEFAULT_SHIFT_END,
        "grace_period": DEFAULT_GRACE_PERIOD_MINUTES,
        "working_hours": DEFAULT_WORKING_HOURS,
    }

def shift_from_employee(user: dict) -> dict:
    """Shift timings from the employee record, falling back to the defaults"""
    shift = ((user or {}).get("employee_record") or {}).get("shift_timings")
    if not shift:
        return default_shift()
    merged = default_shift()
    merged.update({k: v for k, v in shift.items() if v is not None})
    return merged

def scheduled_time(day: datetime, hhmm: str) -> datetime:
    hour, minute = (int(p) for p in hhmm.split(":"))
    return midnight(day).replace(hour=hour, minute=minute)

def minutes_between(earlier: datetime, later: datetime) -> int:
    return round((later - earlier).total_seconds() / 60)

def compute_lateness(check_in: datetime, shift: dict, day: Optional[datetime] = None) -> Tuple[int, bool]:
    """
    Minutes late against the shift start

    Returns:
        (late_minutes, is_late); within the grace period counts as on time
    """
    start = scheduled_time(day or check_in, shift["start"])
    if check_in <= start:
        return 0, False

    diff = minutes_between(start, check_in)
    if diff > shift["grace_period"]:
        return diff, True
    return 0, False

def compute_early_departure(check_out: datetime, shift: dict, day: Optional[datetime] = None) -> int:
    end = scheduled_time(day or check_out, shift["end"])
    if check_out >= end:
        return 0
    return max(minutes_between(check_out, end), 0)

def work_hours_between(check_in: datetime, check_out: datetime) -> float:
    return round((check_out - check_in).total_seconds() / 3600, 2)

def overtime_hours(total_work_hours: float, working_hours: float) -> float:
    return round(max(total_work_hours - working_hours, 0), 2)

def format_work_hours(hours: Optional[float]) -> str:
    if not hours:
        return "0h"
    whole = math.floor(hours)
    minutes = round((hours - whole) * 60)
    if minutes == 60:
        whole, minutes = whole + 1, 0
    return f"{whole}h {minutes}m"

def status_color(status: str) -> str:
    return STATUS_COLORS.get(status, STATUS_COLORS["HOLIDAY"])

def rate(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0.0
