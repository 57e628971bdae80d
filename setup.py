#!/usr/bin/env python
"""The setup script."""
import re

from setuptools import find_packages, setup

NAME = "xclimdex"
DESCRIPTION = "Climate extremes indices of the ETCCDI built with xarray."
URL = "https://github.com/xclimdex/xclimdex"
AUTHOR = "xclimdex Developers"
REQUIRES_PYTHON = ">=3.9.0"
VERSION = "0.1.0"
LICENSE = "Apache Software License 2.0"

with open("README.rst") as readme_file:
    readme = readme_file.read()

with open("HISTORY.rst") as history_file:
    history = history_file.read()

hyperlink_replacements = {
    r":issue:`([0-9]+)`": r"`GH/\1 <https://github.com/xclimdex/xclimdex/issues/\1>`_",
    r":pull:`([0-9]+)`": r"`PR/\1 <https://github.com/xclimdex/xclimdex/pull/\1>`_",
    r":user:`([a-zA-Z0-9_.-]+)`": r"`@\1 <https://github.com/\1>`_",
}

for search, replacement in hyperlink_replacements.items():
    history = re.sub(search, replacement, history)

requirements = [
    "boltons>=20.1",
    "cftime>=1.4.1",
    "dask[array]>=2.6",
    "numba",
    "numpy>=1.22",
    "pandas>=1.3",
    "pyyaml",
    "xarray>=2023.4",
]

dev_requirements = []
with open("requirements_dev.txt") as dev:
    for dependency in dev.readlines():
        dependency = dependency.strip()
        if dependency and not dependency.startswith("#"):
            dev_requirements.append(dependency)

KEYWORDS = "xclimdex climdex etccdi climate extremes indices percentiles"

setup(
    author=AUTHOR,
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: Apache Software License",
        "Natural Language :: English",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Scientific/Engineering :: Atmospheric Science",
    ],
    description=DESCRIPTION,
    python_requires=REQUIRES_PYTHON,
    install_requires=requirements,
    license=LICENSE,
    long_description=readme + "\n\n" + history,
    long_description_content_type="text/x-rst",
    include_package_data=True,
    package_data={"xclimdex": ["data/*.yml"]},
    keywords=KEYWORDS,
    name=NAME,
    packages=find_packages(include=["xclimdex", "xclimdex.*"]),
    extras_require={"dev": dev_requirements},
    url=URL,
    version=VERSION,
    zip_safe=False,
)
