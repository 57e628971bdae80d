"""
Missing Values Identification
=============================

Periods with too many missing daily values are flagged so that the indices computed over them are
masked. A period is valid when its number of missing days does not exceed the tolerance configured
for its granularity (see the ``max_missing_days`` option).
"""
from __future__ import annotations

from numbers import Real

import numpy as np
import pandas as pd
import xarray as xr

from ._exceptions import InvalidConfiguration
from .calendar import DateFactor, group_reduce, growing_season_factor, monthly_factor
from .options import MAX_MISSING_DAYS, OPTIONS
from .utils import logger

__all__ = ["gsl_na_mask", "is_missing", "missing_days", "na_mask"]


def _max_missing(factor: DateFactor, max_missing: float | None) -> float:
    if max_missing is None:
        try:
            max_missing = OPTIONS[MAX_MISSING_DAYS][factor.name]
        except KeyError as err:
            raise InvalidConfiguration(
                f"No missing days tolerance configured for the {factor.name!r} granularity."
            ) from err
    if not isinstance(max_missing, Real) or isinstance(max_missing, bool) or max_missing < 0:
        raise InvalidConfiguration(
            f"Missing days tolerance must be a non-negative number, got {max_missing!r}."
        )
    return max_missing


def missing_days(da: xr.DataArray, factor: DateFactor, dim: str = "time") -> xr.DataArray:
    """Number of missing days in each group."""
    return group_reduce(da.isnull(), factor, "sum", dim=dim).rename("missing_days")


def is_missing(
    da: xr.DataArray,
    factor: DateFactor,
    max_missing: float | None = None,
    dim: str = "time",
) -> xr.DataArray:
    """Return whether each group has more missing days than tolerated.

    Parameters
    ----------
    da : xr.DataArray
        Daily series, NaN marking missing days.
    factor : DateFactor
        Grouping of the days.
    max_missing : float, optional
        Maximal number of missing days in a valid group.
        Defaults to the ``max_missing_days`` option for the factor's granularity.
    dim : str
        Name of the time dimension.

    Returns
    -------
    xr.DataArray
        Boolean array, True where the group is invalid.
    """
    return missing_days(da, factor, dim=dim) > _max_missing(factor, max_missing)


def na_mask(
    da: xr.DataArray,
    factor: DateFactor,
    max_missing: float | None = None,
    dim: str = "time",
) -> xr.DataArray:
    """Multiplicative mask of the groups: 1 where the group is valid and NaN otherwise.

    See :py:func:`is_missing`.
    """
    logger.debug("Building the %s missing values mask of %s.", factor.name, da.name)
    invalid = is_missing(da, factor, max_missing, dim=dim)
    return xr.where(invalid, np.nan, 1.0).rename("na_mask")


def gsl_na_mask(
    da: xr.DataArray,
    dates: pd.Index,
    northern_hemisphere: bool = True,
    max_missing_annual: float | None = None,
    max_missing_monthly: float | None = None,
    dim: str = "time",
) -> xr.DataArray:
    """Mask of the growing season years.

    A season year is valid when it passes the annual tolerance and each of its months passes the
    monthly tolerance. In the southern hemisphere, the last season year is always incomplete and masked.

    Parameters
    ----------
    da : xr.DataArray
        Daily mean temperature on the complete date series `dates`.
    dates : pd.Index
        The date series.
    northern_hemisphere : bool
        Whether season years are calendar years (True) or run from July to June (False).
    max_missing_annual, max_missing_monthly : float, optional
        Tolerances, defaulting to the ``max_missing_days`` option.
    dim : str
        Name of the time dimension.

    Returns
    -------
    xr.DataArray
        1 where the season year is valid, NaN otherwise, along an "annual" dimension.
    """
    factor, inset = growing_season_factor(dates, northern_hemisphere)
    sub = da.isel({dim: inset})
    months = monthly_factor(dates[inset])

    mask = na_mask(sub, factor, max_missing_annual, dim=dim)
    bad_months = is_missing(sub, months, max_missing_monthly, dim=dim)
    bad_days = bad_months.isel(
        {months.name: xr.DataArray(months.codes, dims=dim)}
    ).drop_vars(months.name)
    any_bad = group_reduce(bad_days, factor, "any", dim=dim)
    mask = mask.where(~any_bad)
    if not northern_hemisphere:
        mask[{factor.name: -1}] = np.nan
    return mask
