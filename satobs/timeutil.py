"""Calendar and sidereal time conversions based on Modified Julian Dates."""

from __future__ import annotations

import math
import re
from datetime import datetime, timezone

MJD_J2000 = 51544.5

_NFD_PATTERN = re.compile(
    r"\s*'?\s*(-?\d{1,4})-(\d{1,2})-(\d{1,2})T(\d{1,2}):(\d{1,2}):(\d+(?:\.\d*)?)"
)


def modulo(x: float, y: float) -> float:
    """Return x modulo y in the range [0, y)."""
    x = math.fmod(x, y)
    if x < 0.0:
        x += y
    return x


def date2mjd(year: int, month: int, day: float) -> float:
    """Convert a calendar date (with fractional day) into an MJD."""
    if month < 3:
        year -= 1
        month += 12

    a = math.floor(year / 100.0)
    b = 2 - a + math.floor(a / 4.0)

    if year < 1582:
        b = 0
    if year == 1582 and month < 10:
        b = 0
    if year == 1582 and month == 10 and day <= 4:
        b = 0

    jd = (
        math.floor(365.25 * (year + 4716))
        + math.floor(30.6001 * (month + 1))
        + day
        + b
        - 1524.5
    )
    return jd - 2400000.5


def nfd2mjd(date: str) -> float:
    """Convert a ``YYYY-MM-DDTHH:MM:SS[.sss]`` timestamp into an MJD."""
    match = _NFD_PATTERN.match(date)
    if match is None:
        raise ValueError(f"not a valid timestamp: {date!r}")
    year, month, day, hour, minute = (int(g) for g in match.groups()[:5])
    sec = float(match.group(6))
    dday = day + hour / 24.0 + minute / 1440.0 + sec / 86400.0
    return date2mjd(year, month, dday)


def mjd2date(mjd: float) -> tuple[int, int, float]:
    """Convert an MJD into (year, month, fractional day)."""
    jd = mjd + 2400000.5
    jd += 0.5

    z = math.floor(jd)
    f = math.fmod(jd, 1.0)

    if z < 2299161:
        a = z
    else:
        alpha = math.floor((z - 1867216.25) / 36524.25)
        a = z + 1 + alpha - math.floor(alpha / 4.0)
    b = a + 1524
    c = math.floor((b - 122.1) / 365.25)
    d = math.floor(365.25 * c)
    e = math.floor((b - d) / 30.6001)

    day = b - d - math.floor(30.6001 * e) + f
    month = e - 1 if e < 14 else e - 13
    year = c - 4716 if month > 2 else c - 4715
    return year, month, day


def mjd2nfd(mjd: float, decimals: int = 3) -> str:
    """Format an MJD as ``YYYY-MM-DDTHH:MM:SS`` with the given second decimals."""
    if decimals < 0:
        raise ValueError("decimals must not be negative")
    year, month, dday = mjd2date(mjd)

    day = math.floor(dday)
    x = 24.0 * (dday - day)
    x = 3600.0 * abs(x) + 0.0001
    sec = math.fmod(x, 60.0)
    x = (x - sec) / 60.0
    minute = int(math.fmod(x, 60.0))
    x = (x - minute) / 60.0
    hour = int(x)
    sec = math.floor(1000.0 * sec) / 1000.0

    if decimals == 0:
        seconds = f"{sec:02.0f}"
    else:
        seconds = f"{sec:0{decimals + 3}.{decimals}f}"
    return f"{year:04d}-{month:02d}-{day:02d}T{hour:02d}:{minute:02d}:{seconds}"


def _leap_factor(year: int) -> int:
    return 1 if year % 4 == 0 and year % 400 != 0 else 2


def doy2mjd(year: int, doy: float) -> float:
    """Convert a year and fractional day of year into an MJD."""
    k = _leap_factor(year)
    month = math.floor(9.0 * (k + doy) / 275.0 + 0.98)
    if doy < 32.0:
        month = 1
    day = doy - math.floor(275.0 * month / 9.0) + k * math.floor((month + 9.0) / 12.0) + 30.0
    return date2mjd(year, month, day)


def mjd2doy(mjd: float) -> tuple[int, float]:
    """Convert an MJD into (year, fractional day of year)."""
    year, month, day = mjd2date(mjd)
    k = _leap_factor(year)
    doy = math.floor(275.0 * month / 9.0) - k * math.floor((month + 9.0) / 12.0) + day - 30
    return year, doy


def nfd_now() -> str:
    """Return the present UTC time as ``YYYY-MM-DDTHH:MM:SS``."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")


def gmst(mjd: float) -> float:
    """Greenwich Mean Sidereal Time in degrees."""
    t = (mjd - MJD_J2000) / 36525.0
    return modulo(
        280.46061837
        + 360.98564736629 * (mjd - MJD_J2000)
        + t * t * (0.000387933 - t / 38710000),
        360.0,
    )


def dgmst(mjd: float) -> float:
    """Rate of change of GMST in degrees per day."""
    t = (mjd - MJD_J2000) / 36525.0
    return 360.98564736629 + t * (0.000387933 - t / 38710000)