"""Four-frame statistics images built from sequences of PGM video frames."""

from __future__ import annotations

import argparse
import math
import os
import sys
from dataclasses import dataclass, field, replace
from typing import Iterable, Optional, Sequence

import numpy as np

from satobs.fitsio import write_fits as _write_fits_file
from satobs.timeutil import mjd2nfd, nfd2mjd

DEFAULT_PGM_TIMESTAMP = "2012-01-01T00:00:00"
WRITTEN_PGM_TIMESTAMP = "2013-01-01T00:00:00"
MASKED_FRAME_NUMBER = 128.0
DUMMY_KEYWORDS = 10
DEFAULT_FRAMERATE = 25.0

USAGE = """\
pgm2fits p:w:h:s:n:Dd:x:y:c:o:gm:t:r:I

-p   image prefix
-w   image width in pixels
-h   image height in pixels
-s   number of first image to process
-n   number of images to process
-D   toggle for creating dark frame
-d   filename of dark frame to substract
-m   filename of mask frame to apply
-x   tracking rate in x (pix/s)
-y   tracking rate in y (pix/s)
-c   COSPAR [default from ST_COSPAR]
-o   observer [default "Unknown"]
-g   toggle for guiding
-t   time stamp of first image [YYYY-MM-DDTHH:MM:SS.SSS]
-r   frame rate (frames/s)
-I   integer output"""


@dataclass
class PgmFrame:
    """A single 8-bit frame with its timestamp; data rows run top to bottom."""

    timestamp: str
    data: np.ndarray


@dataclass
class FourFrame:
    """Per-pixel statistics of a frame sequence.

    ``data`` has shape (nlayer, ny, nx) with row 0 at the bottom; the layers
    are mean, standard deviation, maximum and the frame number of the
    maximum, optionally followed by a fifth layer.
    """

    data: np.ndarray
    timestamp: str
    mjd: float
    dt: list[float] = field(default_factory=list)
    cospar: int = 0
    observer: str = "Unknown"
    integer_output: bool = False

    @property
    def nlayer(self) -> int:
        return self.data.shape[0]

    @property
    def ny(self) -> int:
        return self.data.shape[1]

    @property
    def nx(self) -> int:
        return self.data.shape[2]

    @property
    def nframes(self) -> int:
        return len(self.dt)

    @property
    def exptime(self) -> float:
        return self.dt[-1] - self.dt[0] if self.dt else 0.0

    def header(self) -> dict:
        """FITS header keywords describing this image."""
        header = {
            "BSCALE": 1.0,
            "BZERO": 0.0,
            "DATAMAX": 255.0,
            "DATAMIN": 0.0,
            "DATE-OBS": self.timestamp,
            "MJD-OBS": self.mjd,
            "EXPTIME": self.exptime,
            "NFRAMES": self.nframes,
            "CRPIX1": self.nx / 2.0,
            "CRPIX2": self.ny / 2.0,
            "CRVAL1": 0.0,
            "CRVAL2": 0.0,
            "CD1_1": 0.0,
            "CD1_2": 0.0,
            "CD2_1": 0.0,
            "CD2_2": 0.0,
            "CTYPE1": "RA---TAN",
            "CTYPE2": "DEC--TAN",
            "CUNIT1": "deg",
            "CUNIT2": "deg",
            "CRRES1": 0.0,
            "CRRES2": 0.0,
            "EQUINOX": 2000.0,
            "RADECSYS": "ICRS",
            "COSPAR": self.cospar,
            "OBSERVER": self.observer,
        }
        for k, dt in enumerate(self.dt):
            header[f"DT{k:04d}"] = float(dt)
        for k in range(DUMMY_KEYWORDS):
            header[f"DUMY{k:03d}"] = 0.0
        return header

    def write_fits(self, path) -> None:
        """Write the layers as a 3-D FITS image, 8-bit or 32-bit float."""
        bitpix = 8 if self.integer_output else -32
        _write_fits_file(path, self.header(), self.data, bitpix=bitpix)


def _header_line(handle) -> str:
    return handle.readline().decode("ascii", errors="replace").rstrip("\r\n")


def read_pgm(path) -> PgmFrame:
    """Read a binary (P5) PGM frame, with an optional ``# timestamp`` line."""
    with open(path, "rb") as handle:
        if _header_line(handle) != "P5":
            raise ValueError(f"not a valid PGM file: {path}")
        line = _header_line(handle)
        if "#" in line:
            timestamp = line[2:]
            line = _header_line(handle)
        else:
            timestamp = DEFAULT_PGM_TIMESTAMP
        fields = line.split()
        try:
            nx, ny = int(fields[0]), int(fields[1])
        except (IndexError, ValueError):
            raise ValueError(f"malformed PGM size line in {path}: {line!r}") from None
        _header_line(handle)
        raw = handle.read(nx * ny)
    if len(raw) < nx * ny:
        raise ValueError(f"truncated PGM data in {path}")
    data = np.frombuffer(raw, dtype=np.uint8).reshape(ny, nx).copy()
    return PgmFrame(timestamp, data)


def write_pgm(path, data: np.ndarray) -> None:
    """Write a 2-D array (top row first) as an 8-bit PGM frame."""
    array = np.asarray(data, dtype=np.float64)
    if array.ndim != 2:
        raise ValueError("write_pgm needs a 2-D image")
    ny, nx = array.shape
    pixels = np.trunc(np.clip(array, 0.0, 255.0)).astype(np.uint8)
    with open(path, "wb") as handle:
        handle.write(f"P5\n# {WRITTEN_PGM_TIMESTAMP}\n{nx} {ny}\n255\n".encode("ascii"))
        handle.write(pixels.tobytes())


def _check_shape(frame: PgmFrame, shape: tuple, what: str) -> None:
    if frame.data.shape != shape:
        raise ValueError(f"{what} has shape {frame.data.shape}, expected {shape}")


def build_fourframe(
    frames: Iterable[PgmFrame],
    dark: Optional[PgmFrame] = None,
    mask: Optional[PgmFrame] = None,
) -> FourFrame:
    """Compute the mean, spread, maximum and maximum frame of each pixel.

    The maximum is left out of the mean and standard deviation. A dark
    frame is subtracted first; pixels where the mask is zero are reset.
    """
    frames = list(frames)
    if len(frames) < 3:
        raise ValueError("need at least three frames")
    shape = frames[0].data.shape
    for frame in frames:
        _check_shape(frame, shape, "frame")

    stack = np.stack([frame.data for frame in frames]).astype(np.float64)
    if dark is not None:
        _check_shape(dark, shape, "dark frame")
        stack -= dark.data.astype(np.float64)

    nt = len(frames)
    peak = stack.max(axis=0)
    positive = peak > 0.0
    maximum = np.where(positive, peak, 0.0)
    count = np.where(positive, stack.argmax(axis=0), 0).astype(np.float64)

    s1 = stack.sum(axis=0) - maximum
    s2 = (stack * stack).sum(axis=0) - maximum * maximum
    avg = s1 / (nt - 1)
    std = np.sqrt(np.maximum((s2 - s1 * avg) / (nt - 2), 0.0))

    if mask is not None:
        _check_shape(mask, shape, "mask frame")
        masked = mask.data == 0
        avg[masked] = 0.0
        std[masked] = 0.0
        maximum[masked] = 0.0
        count[masked] = MASKED_FRAME_NUMBER

    layers = np.ascontiguousarray(np.stack([avg, std, maximum, count])[:, ::-1, :])
    mjd0 = nfd2mjd(frames[0].timestamp)
    dt = [86400.0 * (nfd2mjd(frame.timestamp) - mjd0) for frame in frames]
    return FourFrame(layers, frames[0].timestamp, mjd0, dt)


def tracked_layer(frames: Sequence[PgmFrame], dxdn: float, dydn: float) -> np.ndarray:
    """Stack frames shifted along a track of dxdn, dydn pixels per frame.

    Returns a 2-D image with row 0 at the bottom; pixels that no shifted
    frame covers are zero.
    """
    frames = list(frames)
    if not frames:
        raise ValueError("no frames given")
    shape = frames[0].data.shape
    for frame in frames:
        _check_shape(frame, shape, "frame")
    ny, nx = shape
    nt = len(frames)

    trk = np.zeros(shape, dtype=np.float64)
    wt = np.zeros(shape, dtype=np.int64)
    for l, frame in enumerate(frames):
        di = math.floor(dxdn * (l - nt // 2) + 0.5)
        dj = math.floor(dydn * (l - nt // 2) + 0.5)
        i_lo, i_hi = max(0, 1 - di), min(nx, nx - di)
        j_lo, j_hi = max(0, 1 - dj), min(ny, ny - dj)
        if i_lo >= i_hi or j_lo >= j_hi:
            continue
        wt[j_lo:j_hi, i_lo:i_hi] += 1
        trk[j_lo:j_hi, i_lo:i_hi] += frame.data[j_lo + dj:j_hi + dj, i_lo + di:i_hi + di]

    result = np.where(wt > 0, trk / np.maximum(wt, 1), trk)
    return np.ascontiguousarray(result[::-1])


def _default_cospar() -> int:
    try:
        return int(os.environ.get("ST_COSPAR", "0"))
    except ValueError:
        return 0


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pgm2fits", add_help=False)
    parser.add_argument("-p", dest="prefix")
    parser.add_argument("-w", dest="width", type=int)
    parser.add_argument("-h", dest="height", type=int)
    parser.add_argument("-s", dest="start", type=int, default=1)
    parser.add_argument("-n", dest="count", type=int)
    parser.add_argument("-D", dest="darkout", action="store_true")
    parser.add_argument("-d", dest="darkfile")
    parser.add_argument("-m", dest="maskfile")
    parser.add_argument("-x", dest="dxdn", type=float)
    parser.add_argument("-y", dest="dydn", type=float)
    parser.add_argument("-c", dest="cospar", type=int)
    parser.add_argument("-o", dest="observer", default="Unknown")
    parser.add_argument("-g", dest="guide", action="store_true")
    parser.add_argument("-t", dest="timestamp")
    parser.add_argument("-r", dest="framerate", type=float)
    parser.add_argument("-I", dest="integer", action="store_true")
    return parser


def main(argv=None) -> int:
    """Combine numbered PGM frames into a four-frame FITS image."""
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv:
        print(USAGE)
        return 0
    args = _parser().parse_args(argv)
    if args.prefix is None or args.count is None:
        print(USAGE, file=sys.stderr)
        return 1

    cospar = _default_cospar() if args.cospar is None else args.cospar
    track = args.dxdn is not None or args.dydn is not None
    dxdn = args.dxdn or 0.0
    dydn = args.dydn or 0.0
    timereset = args.timestamp is not None or args.framerate is not None
    framerate = DEFAULT_FRAMERATE if args.framerate is None else args.framerate

    try:
        mjd0 = nfd2mjd(args.timestamp) if args.timestamp is not None else 0.0
        dark = read_pgm(args.darkfile) if args.darkfile else None
        mask = read_pgm(args.maskfile) if args.maskfile else None

        frames: list[PgmFrame] = []
        for k in range(args.count):
            filename = f"{args.prefix}{k + args.start:06d}.pgm"
            try:
                frame = read_pgm(filename)
            except FileNotFoundError:
                break
            if timereset:
                mjd = mjd0 + (k + args.start) / (86400.0 * framerate)
                frame = replace(frame, timestamp=mjd2nfd(mjd, 3))
            print(f"Read {filename}")
            frames.append(frame)
        if not frames:
            raise ValueError("no frames read")

        ny, nx = frames[0].data.shape
        if (args.width is not None and args.width != nx) or (
            args.height is not None and args.height != ny
        ):
            raise ValueError(f"frames are {nx}x{ny} pixels, not as given")

        print("Accumulating image statistics")
        ff = build_fourframe(frames, dark, mask)
        ff = replace(ff, cospar=cospar, observer=args.observer, integer_output=args.integer)

        if track:
            print("Creating tracked layer")
            layers = np.concatenate([ff.data, ff.data[:1]], axis=0)
            trk = tracked_layer(frames, dxdn, dydn)
            layers[4 if args.guide else 0] = trk
            ff = replace(ff, data=layers)

        ff.write_fits(f"{ff.timestamp}.fits")
        if args.darkout:
            write_pgm("dark.pgm", ff.data[0][::-1])
    except (OSError, ValueError) as exc:
        print(exc, file=sys.stderr)
        return 1
    return 0