# satobs

A toolkit for optical observers of artificial satellites. It covers a
number of chores around an observing session:

- time conversions between calendar dates, Modified Julian Dates, day of
  year and sidereal time (`satobs.timeutil`);
- sexagesimal parsing and IOD position fields (`satobs.sexagesimal`);
- reading and writing simple primary-HDU FITS images (`satobs.fitsio`);
- building IOD observation lines, looking up designations and converting
  RDE reports (`satobs.iod`);
- JPEG input and output, rebinning, stacking, image levels, aperture
  photometry, plane fits and catalogue matching (`satobs.imaging`);
- combining video frames into four-layer FITS images
  (`satobs.fourframe`).

## Installation

```
pip install .
```

Tests need the `test` extra:

```
pip install ".[test]"
pytest
```

## Commands

### rde2iod

Converts an RDE-format observation report into IOD lines on standard
output:

```
rde2iod report.txt
```

Satellite numbers are looked up from `data/desig.txt` below the directory
named by the `ST_DATADIR` environment variable; designations that are not
found get the number 99999. Lines that cannot be converted are skipped with
a warning.

### pgm2fits

Combines a numbered series of binary PGM frames (`<prefix>000001.pgm`, ...)
into a four-layer FITS image holding, for each pixel, the mean, standard
deviation, maximum and frame number of the maximum (the maximum is left out
of the mean and standard deviation):

```
pgm2fits -p frames/ -w 720 -h 576 -n 250
```

Options: `-p` prefix, `-w`/`-h` expected frame size, `-s` first frame
number (default 1), `-n` number of frames, `-D` also write `dark.pgm` from
the mean layer, `-d` dark frame to subtract, `-m` mask frame (pixels where
the mask is zero are reset), `-x`/`-y` shift in pixels per frame for a
tracked layer, `-g` put the tracked layer in a fifth layer instead of the
first, `-c` COSPAR site number (default from `ST_COSPAR`), `-o` observer
(default `Unknown`), `-t` time of the first frame, `-r` frame rate (default
25 frames/s), `-I` 8-bit integer output instead of 32-bit floats. Reading
stops at the first missing frame. The output is named after the timestamp
of the first frame. Run without arguments it prints its usage.

## Library use

```python
from satobs.timeutil import nfd2mjd, mjd2nfd, gmst
from satobs.sexagesimal import sex2dec, dec2iod
from satobs.iod import Observation, format_iod_line

mjd = nfd2mjd("2000-01-01T12:00:00")   # 51544.5
print(mjd2nfd(mjd, 3))                 # calendar date back from the MJD
print(gmst(mjd))                       # Greenwich mean sidereal time, degrees
print(sex2dec("-12:30:00"))            # -12.5
print(dec2iod(-12.5, 1))               # declination as an IOD field

obs = Observation(satno=25544, desig="98067A", cospar=4171)
print(format_iod_line(obs))
```

`satobs.fitsio.read_fits` returns a `FitsImage` with a `header` dictionary
and the data as a float array; `write_fits` writes a header dictionary and
an array with the chosen `BITPIX`.

## What the package does not do

satobs does not propagate orbits, predict passes, compute observer or solar
positions, or write two-line element sets. It has no interactive image
display or measuring screen, and no ready-made commands for converting
JPEG images into FITS, stacking JPEG images or printing image statistics;
the functions in `satobs.imaging` and `satobs.fitsio` provide the pieces
for such tasks.