"""Image arrays: JPEG input and output, binning, stacking and simple measurements."""

from __future__ import annotations

import math
import os
from typing import Iterable, Sequence

import numpy as np
from PIL import Image

MAX_CATALOG_ENTRIES = 8192


def read_jpg(path: str | os.PathLike) -> np.ndarray:
    """Read a JPEG as a float array of shape (ny, nx, ncomponents), top row first."""
    with Image.open(path) as img:
        if img.mode not in ("L", "RGB"):
            img = img.convert("RGB")
        data = np.asarray(img, dtype=np.float64)
    if data.ndim == 2:
        data = data[:, :, np.newaxis]
    return data


def read_jpg_gray(path: str | os.PathLike) -> np.ndarray:
    """Read a JPEG as a single plane, bottom row first.

    Each pixel is the sum of its components divided by three.
    """
    data = read_jpg(path)
    return data.sum(axis=2)[::-1, :] / 3.0


def write_jpg(path: str | os.PathLike, data: np.ndarray) -> None:
    """Write an (ny, nx, 3) or (ny, nx) array as an RGB JPEG.

    Values are clipped to 0..255 and truncated to integers.
    """
    array = np.asarray(data, dtype=np.float64)
    if array.ndim == 3 and array.shape[2] == 1:
        array = array[:, :, 0]
    if array.ndim == 2:
        array = np.repeat(array[:, :, np.newaxis], 3, axis=2)
    if array.ndim != 3 or array.shape[2] != 3:
        raise ValueError(f"cannot write image of shape {array.shape} as RGB")
    pixels = np.trunc(np.clip(array, 0.0, 255.0)).astype(np.uint8)
    Image.fromarray(pixels, mode="RGB").save(path, format="JPEG")


def rebin(data: np.ndarray, nbin: int) -> np.ndarray:
    """Sum nbin x nbin blocks of a 2-D image; leftover edge pixels are dropped."""
    if nbin < 1:
        raise ValueError("binning factor must be at least 1")
    array = np.asarray(data, dtype=np.float64)
    if array.ndim != 2:
        raise ValueError("rebin needs a 2-D image")
    ny, nx = array.shape[0] // nbin, array.shape[1] // nbin
    trimmed = array[: ny * nbin, : nx * nbin]
    return trimmed.reshape(ny, nbin, nx, nbin).sum(axis=(1, 3))


def _as_arrays(images: Iterable[np.ndarray]) -> list[np.ndarray]:
    arrays = [np.asarray(img, dtype=np.float64) for img in images]
    if not arrays:
        raise ValueError("no images given")
    shape = arrays[0].shape
    for array in arrays[1:]:
        if array.shape != shape:
            raise ValueError(f"image shapes differ: {shape} and {array.shape}")
    return arrays


def maximum_image(images: Iterable[np.ndarray]) -> np.ndarray:
    """Pixelwise maximum of a set of images, never below zero."""
    arrays = _as_arrays(images)
    result = np.zeros_like(arrays[0])
    for array in arrays:
        np.maximum(result, array, out=result)
    return result


def stack_images(images: Iterable[np.ndarray]) -> tuple[np.ndarray, np.ndarray]:
    """Return the pixelwise average and maximum of a set of images."""
    arrays = _as_arrays(images)
    average = np.zeros_like(arrays[0])
    for array in arrays:
        average += array
    average /= float(len(arrays))
    return average, maximum_image(arrays)


def image_levels(
    data: np.ndarray, low: float = 4.0, high: float = 12.0
) -> tuple[float, float, float, float]:
    """Mean, sample standard deviation and display limits of an image.

    The limits are ``mean - low*std`` and ``mean + high*std``.
    """
    array = np.asarray(data, dtype=np.float64).ravel()
    if array.size < 2:
        raise ValueError("need at least two pixels for image levels")
    avg = float(array.mean())
    std = float(math.sqrt(((array - avg) ** 2).sum() / (array.size - 1)))
    return avg, std, avg - low * std, avg + high * std


def aperture_photometry(
    data: np.ndarray, x: float, y: float, r1: float, r2: float
) -> tuple[float, int, float, int, float]:
    """Aperture photometry on a 2-D image indexed [y, x].

    Returns the sum and pixel count inside radius r1, the sum and count in
    the annulus r1..r2, and the mean inner level minus the mean annulus level.
    """
    array = np.asarray(data, dtype=np.float64)
    if array.ndim != 2:
        raise ValueError("aperture photometry needs a 2-D image")
    yy, xx = np.indices(array.shape, dtype=np.float64)
    r = np.hypot(xx - x, yy - y)
    inner = r < r1
    outer = (r >= r1) & (r < r2)
    n1 = int(inner.sum())
    n2 = int(outer.sum())
    if n1 == 0 or n2 == 0:
        raise ValueError("aperture or annulus contains no pixels")
    s1 = float(array[inner].sum())
    s2 = float(array[outer].sum())
    return s1, n1, s2, n2, s1 / n1 - s2 / n2


def select_nearest(xs: Sequence[float], ys: Sequence[float], x: float, y: float) -> int:
    """Index of the catalog entry closest to (x, y); the first one wins ties."""
    px = np.asarray(xs, dtype=np.float64)
    py = np.asarray(ys, dtype=np.float64)
    if px.size == 0:
        raise ValueError("catalog is empty")
    if px.shape != py.shape:
        raise ValueError("coordinate arrays differ in length")
    return int(np.argmin(np.hypot(px - x, py - y)))


def read_pixel_catalog(path: str | os.PathLike) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Read x, y and magnitude columns of a pixel catalog.

    Lines holding ``#`` and lines without three numbers are skipped; at most
    8192 entries are read.
    """
    xs: list[float] = []
    ys: list[float] = []
    mags: list[float] = []
    with open(path, encoding="utf-8", errors="replace") as handle:
        for line in handle:
            if len(xs) >= MAX_CATALOG_ENTRIES:
                break
            if "#" in line:
                continue
            fields = line.split()
            try:
                x, y, mag = (float(f) for f in fields[:3])
            except ValueError:
                continue
            if len(fields) < 3:
                continue
            xs.append(x)
            ys.append(y)
            mags.append(mag)
    return np.array(xs), np.array(ys), np.array(mags)


def lfit2d(x: Sequence[float], y: Sequence[float], z: Sequence[float]) -> np.ndarray:
    """Least-squares fit of ``z = a0 + a1*x + a2*y``; returns (a0, a1, a2)."""
    px = np.asarray(x, dtype=np.float64)
    py = np.asarray(y, dtype=np.float64)
    pz = np.asarray(z, dtype=np.float64)
    if not (px.shape == py.shape == pz.shape):
        raise ValueError("input arrays differ in length")
    if px.size < 3:
        raise ValueError("need at least three points for a plane fit")
    design = np.column_stack([np.ones_like(px), px, py])
    coeffs, *_ = np.linalg.lstsq(design, pz, rcond=None)
    return coeffs


def match_catalogs(
    cat_x: Sequence[float],
    cat_y: Sequence[float],
    ast_x: Sequence[float],
    ast_y: Sequence[float],
    rmax: float,
) -> list[tuple[int, int]]:
    """Greedily pair pixel sources with astrometric stars.

    Each pixel source, in order, takes the nearest star not already taken,
    provided it lies closer than ``rmax``. Returns (source, star) index pairs.
    """
    cx = np.asarray(cat_x, dtype=np.float64)
    cy = np.asarray(cat_y, dtype=np.float64)
    ax = np.asarray(ast_x, dtype=np.float64)
    ay = np.asarray(ast_y, dtype=np.float64)
    if cx.shape != cy.shape or ax.shape != ay.shape:
        raise ValueError("coordinate arrays differ in length")
    taken = np.zeros(ax.shape, dtype=bool)
    pairs: list[tuple[int, int]] = []
    for i, (x, y) in enumerate(zip(cx, cy)):
        if taken.all():
            break
        r = np.hypot(ax - x, ay - y)
        r[taken] = np.inf
        j = int(np.argmin(r))
        if r[j] < rmax:
            taken[j] = True
            pairs.append((i, j))
    return pairs