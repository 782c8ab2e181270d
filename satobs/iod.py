"""IOD observation lines: formatting, designations and RDE conversion."""

from __future__ import annotations

import argparse
import functools
import logging
import math
import os
import struct
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional

from satobs.timeutil import mjd2date, mjd2doy

log = logging.getLogger(__name__)

UNKNOWN_SATNO = 99999
RDE_HEADER_PREFIX = "2420"
RDE_END_OF_DATA = 999


@dataclass
class Observation:
    """A single optical observation in IOD form."""

    satno: int = UNKNOWN_SATNO
    desig: str = "99999U"
    cospar: int = 0
    conditions: str = "G"
    nfd: str = "YYYYMMDDHHMMSSsss"
    terr: float = 0.2
    pos: str = "HHMMmmm+DDMMmm"
    perr: float = 0.1
    epoch: int = 5
    angle_format: int = 2
    behavior: str = "S"


def mjd2iod_time(mjd: float) -> str:
    """Format an MJD as the ``YYYYMMDDHHMMSSsss`` time field of an IOD line."""
    year, month, dday = mjd2date(mjd)
    day = math.floor(dday)
    x = 3600.0 * abs(24.0 * (dday - day))
    sec = math.fmod(x, 60.0)
    x = (x - sec) / 60.0
    minute = math.fmod(x, 60.0)
    x = (x - minute) / 60.0
    hour = x
    fsec = math.floor(1000.0 * (sec - math.floor(sec)))
    return (
        f"{int(year):04d}{int(month):02d}{int(day):02d}{int(hour):02d}"
        f"{int(minute):02d}{math.floor(sec):02.0f}{fsec:03.0f}"
    )


def fake_designation(mjd: float) -> str:
    """Placeholder designation ``YYDDDA`` with 500 added to the day of year."""
    year, doy = mjd2doy(mjd)
    doy = math.floor(doy)
    return f"{year - 2000:02d}{doy + 500:03.0f}A"


def _accuracy_code(value: float) -> tuple[int, int]:
    text = f"{value:7.1e}"
    if not text[0].isdigit():
        raise ValueError(f"accuracy must be positive: {value!r}")
    return int(text[0]), int(text[4:]) + 8


def format_iod_line(obs: Observation) -> str:
    """Format an observation as an IOD line."""
    mt, xt = _accuracy_code(obs.terr)
    if obs.angle_format != 2:
        raise ValueError(f"position format {obs.angle_format} not implemented")
    mp, xp = _accuracy_code(obs.perr)
    return (
        f"{obs.satno:05d} {obs.desig[0:1]}{obs.desig[1:2]} {obs.desig[2:]:<6} "
        f"{obs.cospar:04d} {obs.conditions} {obs.nfd:<17} {mt}{xt} "
        f"{obs.angle_format}{obs.epoch} {obs.pos:<14} {mp}{xp} {obs.behavior}"
    )


def _designation_pairs(path) -> Iterator[tuple[int, str]]:
    with open(path, encoding="utf-8", errors="replace") as handle:
        tokens = handle.read().split()
    for number, desig in zip(tokens[0::2], tokens[1::2]):
        try:
            satno = int(number)
        except ValueError:
            raise ValueError(f"malformed designation file {path}: {number!r}") from None
        yield satno, desig


def find_designation(path, satno: int) -> str:
    """International designation of a satellite number from a designation file."""
    for number, desig in _designation_pairs(path):
        if number == satno:
            return desig
    raise LookupError(f"satellite {satno} not found in {path}")


def find_satno(path, desig: str) -> int:
    """Satellite number for an international designation; 99999 when unknown."""
    for number, name in _designation_pairs(path):
        if name == desig:
            return number
    return UNKNOWN_SATNO


class _ScanError(ValueError):
    pass


class _Scanner:
    """Fixed-width field reader for column-oriented text."""

    def __init__(self, text: str, pos: int = 0) -> None:
        self.text = text
        self.pos = pos

    def skip_ws(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def integer(self, width: Optional[int] = None) -> int:
        self.skip_ws()
        limit = len(self.text) if width is None else min(len(self.text), self.pos + width)
        start = self.pos
        end = start
        if end < limit and self.text[end] in "+-":
            end += 1
        digits_start = end
        while end < limit and self.text[end].isdigit():
            end += 1
        if end == digits_start:
            raise _ScanError(f"expected integer at column {start}")
        self.pos = end
        return int(self.text[start:end])

    def char(self) -> str:
        if self.pos >= len(self.text):
            raise _ScanError("unexpected end of line")
        c = self.text[self.pos]
        self.pos += 1
        return c

    def literal(self, expected: str) -> None:
        if self.char() != expected:
            raise _ScanError(f"expected {expected!r} at column {self.pos - 1}")


def _float32(x: float) -> float:
    return struct.unpack("f", struct.pack("f", x))[0]


@dataclass(frozen=True)
class _RdeHeader:
    site: int
    year: int
    month: int
    angle_format: int
    epoch: int
    tm: float
    tx: float
    am: float
    ax: float


def _parse_header(line: str) -> _RdeHeader:
    try:
        s = _Scanner(line)
        site = s.integer(4)
        year = s.integer(2)
        month = s.integer(2)
        s = _Scanner(line, 12)
        icsec = s.integer(1)
        s.integer(1)
        angle_format = s.integer(1)
        cang = s.integer(3)
        epoch = s.integer(1)
    except _ScanError as exc:
        raise ValueError(f"malformed RDE header: {line.rstrip()!r}") from exc

    year += 1900 if year > 50 else 2000

    csec = _float32(0.1 * icsec)
    cang = _float32(float(cang))
    if csec <= 0.0 or cang <= 0.0:
        raise ValueError(f"RDE header accuracies must be positive: {line.rstrip()!r}")

    tx = math.floor(math.log10(csec)) + 8
    tm = math.floor(csec / 10.0 ** (tx - 8))
    ax = math.floor(math.log10(cang)) + 8
    am = math.floor(cang / 10.0 ** (ax - 8))
    if ax > 9.0:
        ax = 9.0
        am = 9.0
    return _RdeHeader(site, year, month, angle_format, epoch, tm, tx, am, ax)


def convert_rde(lines: Iterable[str], lookup: Callable[[str], int]) -> Iterator[str]:
    """Convert the lines of an RDE report into IOD lines.

    ``lookup`` maps a designation such as ``98067A`` to a satellite number.
    Lines that cannot be converted are skipped with a warning.
    """
    header: Optional[_RdeHeader] = None
    day: Optional[int] = None

    for line in lines:
        if header is None and line.startswith(RDE_HEADER_PREFIX):
            header = _parse_header(line)
            continue
        if len(line) < 5 and header is not None:
            try:
                day = _Scanner(line).integer()
            except _ScanError:
                continue
            if day == RDE_END_OF_DATA:
                return
            continue

        if not line[:1].isdigit():
            continue
        if len(line) < 31:
            continue

        try:
            s = _Scanner(line)
            intidy, intido, piece = s.integer(2), s.integer(3), s.integer(2)
            s = _Scanner(line, 8)
            hour, minute, sec = s.integer(2), s.integer(2), s.integer(2)
            s.literal(".")
            fsec = s.integer(2)
            s = _Scanner(line, 18)
            rah, ram, rafm = s.integer(2), s.integer(2), s.integer()
            s = _Scanner(line, 24)
            sign = s.char()
            ded, dem, defm = s.integer(2), s.integer(2), s.integer()
        except _ScanError:
            log.warning("Failed to read line:\n%s", line.rstrip("\n"))
            continue
        fsec *= 10

        if piece >= 26:
            log.warning("Failed to understand designation!\n%s", line.rstrip("\n"))
            continue
        letter = chr(piece + ord("A") - 1)
        desig = f"{intidy:02d} {intido:03d}{letter}"
        pdesig = f"{intidy:02d}{intido:03d}{letter}"

        if header is None or day is None:
            log.warning("Observation before header or date:\n%s", line.rstrip("\n"))
            continue

        if header.angle_format != 1:
            log.warning(
                "Angle format %d not implemented!\n%s",
                header.angle_format,
                line.rstrip("\n"),
            )
            continue

        if rafm < 10:
            rafm *= 100
        elif rafm < 100:
            rafm *= 10
        if defm < 10:
            defm *= 10

        satno = lookup(pdesig)
        yield (
            f"{satno:05d} {desig}   {header.site:04d} G "
            f"{header.year:04d}{header.month:02d}{day:02d}{hour:02d}{minute:02d}"
            f"{sec:02d}{fsec:03d} {header.tm:1.0f}{header.tx:1.0f} "
            f"{header.angle_format}{header.epoch} "
            f"{rah:02d}{ram:02d}{rafm:03d}{sign}{ded:02d}{dem:02d}{defm:02d} "
            f"{header.am:1.0f}{header.ax:1.0f}"
        )


def main(argv=None) -> int:
    """Convert an RDE report file into IOD lines on standard output."""
    parser = argparse.ArgumentParser(
        prog="rde2iod", description="Convert an RDE report into IOD observations."
    )
    parser.add_argument("rdefile", help="RDE report file")
    args = parser.parse_args(argv)

    datadir = os.environ.get("ST_DATADIR")
    if datadir is None:
        print("ST_DATADIR environment variable not found.", file=sys.stderr)
        return 1
    desig_path = Path(datadir) / "data" / "desig.txt"
    if not desig_path.is_file():
        print("Designation file not found!", file=sys.stderr)
        return 1

    lookup = functools.lru_cache(maxsize=None)(functools.partial(find_satno, desig_path))
    try:
        with open(args.rdefile, encoding="utf-8", errors="replace") as handle:
            for line in convert_rde(handle, lookup):
                print(line)
    except (OSError, ValueError) as exc:
        print(exc, file=sys.stderr)
        return 1
    return 0