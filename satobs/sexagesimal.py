"""Sexagesimal angle parsing and formatting for IOD position fields."""

from __future__ import annotations

import math
import re
from enum import IntEnum


class IodAngle(IntEnum):
    """Kinds of angle written into an IOD position field."""

    RIGHT_ASCENSION = 0
    DECLINATION = 1


def dec2iod(x: float, kind: int = IodAngle.RIGHT_ASCENSION) -> str:
    """Format a decimal angle as an IOD field.

    Right ascension (in hours) becomes ``HHMMmmm``, with thousandths of a
    minute; declination (in degrees) becomes ``+DDMMmm``, with hundredths
    of a minute.
    """
    try:
        kind = IodAngle(kind)
    except ValueError:
        raise ValueError(f"unknown angle kind: {kind!r}") from None

    sign = "-" if x < 0 else "+"
    x = 60.0 * abs(x)
    minutes = math.fmod(x, 60.0)
    degrees = (x - minutes) / 60.0
    whole = math.floor(minutes)

    if kind is IodAngle.RIGHT_ASCENSION:
        fraction = math.floor(1000.0 * (minutes - whole))
        return f"{degrees:02.0f}{whole:02.0f}{fraction:03.0f}"
    fraction = math.floor(100.0 * (minutes - whole))
    return f"{sign}{degrees:02.0f}{whole:02.0f}{fraction:02.0f}"


_SEPARATORS = re.compile(r"[ :]+")


def sex2dec(s: str) -> float:
    """Convert a ``DD:MM:SS`` (or space separated) string into decimal units."""
    fields = [field for field in _SEPARATORS.split(s.strip()) if field]
    if len(fields) < 3:
        raise ValueError(f"not a sexagesimal value: {s!r}")
    try:
        deg, minutes, sec = (abs(float(field)) for field in fields[:3])
    except ValueError:
        raise ValueError(f"not a sexagesimal value: {s!r}") from None
    x = deg + minutes / 60.0 + sec / 3600.0
    if s.lstrip().startswith("-"):
        x = -x
    return x