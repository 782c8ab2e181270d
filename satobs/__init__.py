"""Tools for optical satellite observing: time conversions, IOD reports, FITS and image handling."""

__version__ = "0.1.0"