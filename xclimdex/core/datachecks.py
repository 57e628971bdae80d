"""
Data Checks
===========

Utilities designed to check the validity of data inputs.
"""
from __future__ import annotations

import xarray as xr

from ._exceptions import ValidationError
from .options import datacheck


@datacheck
def check_time(var: xr.DataArray, dim: str = "time"):
    """Raise an error if the series has no datetime coordinate or if it is not monotonically increasing."""
    if dim not in var.dims or dim not in var.indexes:
        raise ValidationError(
            f"Series {var.name!r} has no {dim!r} coordinate. "
            "To mute this, set xclimdex's option data_validation='log'."
        )
    if not var.indexes[dim].is_monotonic_increasing:
        raise ValidationError(
            f"Dates of series {var.name!r} are not monotonically increasing. "
            "To mute this, set xclimdex's option data_validation='log'."
        )


@datacheck
def check_daily(var: xr.DataArray, dim: str = "time"):
    """Raise an error if the series has a regular frequency other than daily.

    Notes
    -----
    Series with gaps have no inferable frequency and pass this check.
    """
    if var.sizes[dim] < 3:
        return
    freq = xr.infer_freq(var[dim])
    if freq is not None and freq != "D":
        raise ValidationError(
            f"Frequency of series {var.name!r} is {freq}, not daily. "
            "To mute this, set xclimdex's option data_validation='log'."
        )
