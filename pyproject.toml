[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "satobs"
version = "0.1.0"
description = "Tools for optical satellite observing: time conversions, IOD reports, FITS images and frame stacking"
requires-python = ">=3.10"
keywords = [
    "satellite",
    "astronomy",
    "iod",
    "fits",
    "pgm",
    "sidereal time",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Astronomy",
]
dependencies = [
    "numpy",
    "pillow",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
rde2iod = "satobs.iod:main"
pgm2fits = "satobs.fourframe:main"

[tool.hatch.build.targets.wheel]
packages = ["satobs"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
