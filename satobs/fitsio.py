"""Minimal reading and writing of primary-HDU FITS images."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

import numpy as np

BLOCK = 2880
CARD = 80

_DTYPES = {
    8: np.dtype("u1"),
    16: np.dtype(">i2"),
    32: np.dtype(">i4"),
    64: np.dtype(">i8"),
    -32: np.dtype(">f4"),
    -64: np.dtype(">f8"),
}

_STRUCTURAL = {"SIMPLE", "BITPIX", "NAXIS", "EXTEND", "END"}


@dataclass
class FitsImage:
    """A FITS primary header with its data as a float array (x varies fastest)."""

    header: dict[str, Any] = field(default_factory=dict)
    data: Optional[np.ndarray] = None

    def get(self, key: str, default: Any = None) -> Any:
        """Return a header value by keyword, or ``default`` when absent."""
        return self.header.get(key.upper(), default)


def _parse_value(text: str) -> Any:
    s = text.lstrip()
    if s.startswith("'"):
        chars = []
        i = 1
        while i < len(s):
            if s[i] == "'":
                if i + 1 < len(s) and s[i + 1] == "'":
                    chars.append("'")
                    i += 2
                    continue
                break
            chars.append(s[i])
            i += 1
        return "".join(chars).rstrip()
    value = s.split("/", 1)[0].strip()
    if not value:
        return None
    if value == "T":
        return True
    if value == "F":
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value.replace("D", "E"))
    except ValueError:
        return value


def _format_value(value: Any) -> str:
    if isinstance(value, (bool, np.bool_)):
        return ("T" if value else "F").rjust(20)
    if isinstance(value, (int, np.integer)):
        return str(int(value)).rjust(20)
    if isinstance(value, (float, np.floating)):
        value = float(value)
        if not math.isfinite(value):
            raise ValueError("FITS header values must be finite")
        return repr(value).upper().rjust(20)
    text = str(value).replace("'", "''")
    return "'" + text.ljust(8) + "'"


def _card(key: str, value: Any) -> str:
    key = key.upper()
    if len(key) > 8:
        raise ValueError(f"FITS keyword longer than 8 characters: {key!r}")
    card = f"{key:<8}= {_format_value(value)}"
    if len(card) > CARD:
        raise ValueError(f"FITS card too long for keyword {key!r}")
    if not card.isascii():
        raise ValueError(f"FITS card for {key!r} is not ASCII")
    return card.ljust(CARD)


def read_fits(path: str | os.PathLike) -> FitsImage:
    """Read the primary header and image of a FITS file."""
    header: dict[str, Any] = {}
    with open(path, "rb") as handle:
        first = True
        done = False
        while not done:
            block = handle.read(BLOCK)
            if len(block) < BLOCK:
                raise ValueError(f"truncated FITS header in {path}")
            text = block.decode("ascii", errors="replace")
            for start in range(0, BLOCK, CARD):
                card = text[start:start + CARD]
                key = card[:8].strip()
                if first:
                    if key != "SIMPLE":
                        raise ValueError(f"not a FITS file: {path}")
                    first = False
                if key == "END":
                    done = True
                    break
                if card[8:10] == "= " and key:
                    header[key] = _parse_value(card[10:])

        bitpix = header.get("BITPIX")
        if bitpix not in _DTYPES:
            raise ValueError(f"unsupported BITPIX {bitpix!r} in {path}")
        naxis = int(header.get("NAXIS", 0))
        dims = [int(header[f"NAXIS{i}"]) for i in range(1, naxis + 1)]
        if naxis == 0 or 0 in dims:
            return FitsImage(header, None)

        dtype = _DTYPES[bitpix]
        count = math.prod(dims)
        raw = handle.read(count * dtype.itemsize)
        if len(raw) < count * dtype.itemsize:
            raise ValueError(f"truncated FITS data in {path}")

    data = np.frombuffer(raw, dtype=dtype).astype(np.float64)
    bscale = float(header.get("BSCALE", 1.0))
    bzero = float(header.get("BZERO", 0.0))
    data = data * bscale + bzero
    return FitsImage(header, data.reshape(tuple(reversed(dims))))


def write_fits(
    path: str | os.PathLike,
    header: Optional[Mapping[str, Any]] = None,
    data: Optional[np.ndarray] = None,
    bitpix: int = -32,
) -> None:
    """Write a FITS file with the given extra header keywords and image.

    Integer outputs truncate towards zero and are clipped to the range of
    the output type.
    """
    if bitpix not in _DTYPES:
        raise ValueError(f"unsupported BITPIX {bitpix!r}")
    header = dict(header or {})
    array = None if data is None else np.asarray(data, dtype=np.float64)

    cards = [_card("SIMPLE", True), _card("BITPIX", bitpix)]
    dims = [] if array is None else list(reversed(array.shape))
    cards.append(_card("NAXIS", len(dims)))
    cards.extend(_card(f"NAXIS{i}", n) for i, n in enumerate(dims, start=1))
    for key, value in header.items():
        upper = key.upper()
        if upper in _STRUCTURAL or (upper.startswith("NAXIS") and upper[5:].isdigit()):
            continue
        cards.append(_card(upper, value))
    cards.append("END".ljust(CARD))

    text = "".join(cards)
    text += " " * (-len(text) % BLOCK)

    with open(path, "wb") as handle:
        handle.write(text.encode("ascii"))
        if array is None:
            return
        bscale = float(header.get("BSCALE", header.get("bscale", 1.0)))
        bzero = float(header.get("BZERO", header.get("bzero", 0.0)))
        stored = (array - bzero) / bscale
        dtype = _DTYPES[bitpix]
        if bitpix > 0:
            info = np.iinfo(dtype)
            stored = np.clip(np.trunc(stored), info.min, info.max)
        payload = stored.astype(dtype).tobytes()
        handle.write(payload)
        handle.write(b"\0" * (-len(payload) % BLOCK))