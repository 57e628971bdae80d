# noqa: D100
from __future__ import annotations

import warnings

import numpy as np
import xarray as xr
from numba import njit

from xclimdex.core._exceptions import InvalidConfiguration
from xclimdex.core.calendar import DateFactor, group_reduce
from xclimdex.core.options import GSL, OPTIONS

from .run_length import select_blocks_at_least, series_lengths_at_ends

__all__ = ["growing_season_length"]

# States of the growing season automaton
_BEFORE_SEASON = 0
_WARM_RUN = 1
_IN_SEASON = 2
_COLD_RUN = 3
_ENDED = 4

GSL_MODES = ("GSL", "GSL_first", "GSL_max", "GSL_sum")


@njit
def _gsl_1d(tavg, months, transition, thresh, min_length):
    n = tavg.size
    mid = -1
    for i in range(n):
        if months[i] == transition:
            mid = i
            break
    if mid < 0:
        return np.nan

    state = _BEFORE_SEASON
    count = 0
    start = -1
    end = -1
    for i in range(n):
        if state == _BEFORE_SEASON or state == _WARM_RUN:
            # The season must start within the first half
            if i >= mid:
                break
            if tavg[i] >= thresh:
                count += 1
                state = _WARM_RUN
                if count == min_length:
                    start = i - min_length + 1
                    state = _IN_SEASON
                    count = 0
            else:
                count = 0
                state = _BEFORE_SEASON
        elif state == _IN_SEASON or state == _COLD_RUN:
            # The end is searched from the second half
            if i < mid:
                continue
            if tavg[i] < thresh:
                count += 1
                state = _COLD_RUN
                if count == min_length:
                    end = i - min_length + 1
                    state = _ENDED
                    break
            else:
                count = 0
                state = _IN_SEASON

    if start < 0:
        return 0.0
    if end < 0:
        return float(n - start)
    return float(end - start)


def _gsl_group(grp: xr.DataArray, transition, thresh, min_length, dim="time"):
    return xr.apply_ufunc(
        _gsl_1d,
        grp,
        grp[dim].dt.month,
        input_core_dims=[[dim], [dim]],
        kwargs=dict(transition=transition, thresh=thresh, min_length=min_length),
        vectorize=True,
        dask="parallelized",
        output_dtypes=[float],
    )


def _growing_runs(grp: xr.DataArray, mode: str, dim: str = "time") -> xr.DataArray:
    """Aggregate the lengths of the growing runs of a single season year."""
    # Runs are cut at the group boundaries
    lengths = series_lengths_at_ends(grp, dim=dim)
    if mode == "GSL_max":
        return lengths.max(dim=dim)
    if mode == "GSL_sum":
        return lengths.sum(dim=dim)
    positive = lengths.where(lengths > 0)
    first = positive.isel({dim: positive.notnull().argmax(dim=dim)}, drop=True)
    return first.fillna(0)


def growing_season_length(
    tavg: xr.DataArray,
    factor: DateFactor,
    northern_hemisphere: bool = True,
    thresh: float | None = None,
    min_length: int | None = None,
    mode: str = "GSL",
    mask: xr.DataArray | None = None,
    dim: str = "time",
) -> xr.DataArray:
    r"""Growing season length.

    In "GSL" mode, the season of each year starts on the first day of the first spell of at least
    `min_length` days with a mean temperature at or above `thresh` found in the first half of the year.
    It ends the day before the first spell of at least `min_length` days with a mean temperature below
    `thresh` found in the second half of the year, or at the end of the year.
    Years without a start have a length of 0.

    The alternate modes first define growing days as the days that remain after removing the warm spells
    shorter than `min_length` and then the cold spells shorter than `min_length`, and report for each year
    the length of the first ("GSL_first"), of the longest ("GSL_max") or the total length of all
    ("GSL_sum") growing spells, with spells cut at the year boundaries. They are experimental.

    Parameters
    ----------
    tavg : xr.DataArray
        Daily mean temperature [℃]. For the southern hemisphere, the series must start on July 1st,
        see :py:func:`xclimdex.core.calendar.growing_season_factor`.
    factor : DateFactor
        Grouping of the days in season years.
    northern_hemisphere : bool
        If True, the year is split in halves on July 1st. Otherwise, season years run from July to June
        and are split in halves on January 1st.
    thresh : float, optional
        Threshold temperature. Defaults to the "thresh" entry of the ``gsl`` option (5℃).
    min_length : int, optional
        Minimal spell length. Defaults to the "min_length" entry of the ``gsl`` option (6 days).
    mode : {"GSL", "GSL_first", "GSL_max", "GSL_sum"}
        Computation mode.
    mask : xr.DataArray, optional
        Multiplicative mask of the season years,
        see :py:func:`xclimdex.core.missing.gsl_na_mask`.
    dim : str
        Name of the time dimension.

    Returns
    -------
    xr.DataArray
        Growing season length [days] of each season year. NaN for years that do not reach their
        second half.

    References
    ----------
    :cite:cts:`zhang_indices_2011`
    """
    thresh = OPTIONS[GSL].get("thresh", 5.0) if thresh is None else thresh
    min_length = OPTIONS[GSL].get("min_length", 6) if min_length is None else min_length
    if mode not in GSL_MODES:
        raise InvalidConfiguration(f"Growing season mode must be one of {GSL_MODES}, got {mode!r}.")

    if mode == "GSL":
        transition = 7 if northern_hemisphere else 1
        out = group_reduce(
            tavg,
            factor,
            _gsl_group,
            transition=transition,
            thresh=thresh,
            min_length=min_length,
            dim=dim,
        )
    else:
        warnings.warn(
            f"Growing season mode {mode!r} is experimental.", stacklevel=2
        )
        warm = select_blocks_at_least(tavg >= thresh, min_length, dim=dim)
        growing = ~select_blocks_at_least(~warm, min_length, dim=dim)
        out = group_reduce(growing, factor, _growing_runs, mode=mode, dim=dim)
        out = out.astype(float)

    if mask is not None:
        out = out * mask
    return out.rename("growing_season_length")
