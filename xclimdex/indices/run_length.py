"""
Run-Length Algorithms Submodule
===============================

Computation of statistics on runs of True values in boolean arrays. The run detection is a single
sequential pass over the series, compiled with numba.
"""
from __future__ import annotations

from numbers import Integral
from typing import Sequence
from warnings import warn

import numpy as np
import xarray as xr
from numba import njit

from xclimdex.core._exceptions import InvalidConfiguration
from xclimdex.core.calendar import DateFactor, group_reduce
from xclimdex.core.missing import na_mask
from xclimdex.core.options import MIN_SPELL_LENGTH, OPTIONS
from xclimdex.core.utils import uses_dask

from .generic import Comparator, compare

__all__ = [
    "rle_1d",
    "select_blocks_at_least",
    "series_lengths_at_ends",
    "spell_length_max",
    "threshold_exceedance_duration",
]


@njit
def _rle_1d(ia):
    y = ia[1:] != ia[:-1]  # pairwise unequal (string safe)
    i = np.append(np.nonzero(y)[0], ia.size - 1)  # must include last element position
    rl = np.diff(np.append(-1, i))  # run lengths
    pos = np.cumsum(np.append(0, rl))[:-1]  # positions
    return ia[i], rl, pos


def rle_1d(
    arr: int | float | bool | Sequence[int | float | bool],
) -> tuple[np.array, np.array, np.array]:
    """Return the value, length and starting position of consecutive identical values.

    Parameters
    ----------
    arr : Sequence[Union[int, float, bool]]
        Array of values to be parsed.

    Returns
    -------
    values : np.array
        The values taken by arr over each run.
    run lengths : np.array
        The length of each run.
    start position : np.array
        The starting index of each run.

    Examples
    --------
    >>> from xclimdex.indices.run_length import rle_1d
    >>> a = [1, 1, 2, 2, 2, 2, 3, 3, 3, 3, 3, 3]
    >>> rle_1d(a)
    (array([1, 2, 3]), array([2, 4, 6]), array([0, 2, 6]))
    """
    ia = np.asarray(arr)
    if ia.size == 0:
        warn("run length array empty")
        return ia, np.array([], dtype=int), np.array([], dtype=int)
    return _rle_1d(ia)


def _select_blocks_1d(arr: np.ndarray, window: int) -> np.ndarray:
    if arr.size == 0:
        return arr.astype(bool)
    values, rl, _ = rle_1d(arr)
    return np.repeat(values & (rl >= window), rl)


def _run_lengths_1d(arr: np.ndarray, at_start: bool) -> np.ndarray:
    out = np.zeros(arr.size, dtype=int)
    if arr.size == 0:
        return out
    values, rl, pos = rle_1d(arr)
    idx = pos if at_start else pos + rl - 1
    out[idx[values]] = rl[values]
    return out


def _as_bool(da: xr.DataArray) -> xr.DataArray:
    """Missing values count as False."""
    if da.dtype == bool:
        return da
    return da.fillna(0).astype(bool)


def _apply_1d(func, da: xr.DataArray, dim: str, dtype, **kwargs) -> xr.DataArray:
    if uses_dask(da):
        da = da.chunk({dim: -1})
    return xr.apply_ufunc(
        func,
        da,
        input_core_dims=[[dim]],
        output_core_dims=[[dim]],
        kwargs=kwargs,
        vectorize=True,
        dask="parallelized",
        output_dtypes=[dtype],
    )


def _check_length(length) -> int:
    if not isinstance(length, Integral) or isinstance(length, bool) or length < 0:
        raise InvalidConfiguration(
            f"Spell length must be a non-negative integer, got {length!r}."
        )
    return int(length)


def select_blocks_at_least(
    da: xr.DataArray, min_length: int, dim: str = "time"
) -> xr.DataArray:
    """Keep only the runs of True values of at least a given length.

    Parameters
    ----------
    da : xr.DataArray
        Boolean series. Missing values are False.
    min_length : int
        Minimal length of the runs that are kept.
    dim : str
        Dimension along which to find runs.

    Returns
    -------
    xr.DataArray
        Boolean series, True on the days belonging to a run of at least `min_length` True values.

    Examples
    --------
    >>> da = xr.DataArray([True, True, False, True, True, True], dims="time")
    >>> select_blocks_at_least(da, 3).values
    array([False, False, False,  True,  True,  True])
    """
    min_length = _check_length(min_length)
    da = _as_bool(da)
    if min_length <= 1:
        return da
    return _apply_1d(_select_blocks_1d, da, dim, bool, window=min_length)


def series_lengths_at_ends(
    da: xr.DataArray, index: str = "last", dim: str = "time"
) -> xr.DataArray:
    """Return the length of each run of True values on its last (or first) day, and 0 elsewhere.

    Parameters
    ----------
    da : xr.DataArray
        Boolean series. Missing values are False.
    index : {"last", "first"}
        Whether a run length is reported on the last or on the first day of the run.
    dim : str
        Dimension along which to find runs.
    """
    if index not in ("first", "last"):
        raise InvalidConfiguration(f"index must be 'first' or 'last', got {index!r}.")
    return _apply_1d(
        _run_lengths_1d, _as_bool(da), dim, int, at_start=index == "first"
    )


def spell_length_max(
    da: xr.DataArray,
    factor: DateFactor,
    threshold: float,
    op: str | Comparator,
    spans_years: bool = True,
    index: str = "first",
    dim: str = "time",
) -> xr.DataArray:
    """Length of the longest spell of each group.

    A spell is a run of consecutive days where the comparison of the series with the threshold holds.

    Parameters
    ----------
    da : xr.DataArray
        Daily series.
    factor : DateFactor
        Grouping of the days.
    threshold : float
        Threshold compared to the series.
    op : {">", "gt", "<", "lt", ">=", "ge", "<=", "le"} or Comparator
        Comparison operator.
    spans_years : bool
        If True, spells may continue across group boundaries and are attributed to the group containing their
        first (or last) day. A group entirely covered by a spell attributed to another group has an undefined
        (NaN) length. If False, spells are cut at group boundaries.
    index : {"first", "last"}
        Day of a spell deciding which group it is attributed to, when `spans_years` is True.
    dim : str
        Name of the time dimension.

    Returns
    -------
    xr.DataArray
        Longest spell length of each group.
    """
    spells = compare(da, op, threshold)
    if not spans_years:
        return group_reduce(
            spells,
            factor,
            lambda grp, dim: series_lengths_at_ends(grp, dim=dim).max(dim=dim),
            dim=dim,
        )
    lengths = series_lengths_at_ends(spells, index=index, dim=dim)
    out = group_reduce(lengths, factor, "max", dim=dim)
    within = group_reduce(spells, factor, "all", dim=dim)
    return out.where(~((out == 0) & within))


def threshold_exceedance_duration(
    da: xr.DataArray,
    factor: DateFactor,
    day_of_year: xr.DataArray,
    thresholds: xr.DataArray | float,
    op: str | Comparator,
    min_length: int | None = None,
    spans_years: bool = True,
    max_missing: float | None = None,
    dim: str = "time",
) -> xr.DataArray:
    """Number of days of each group belonging to a spell of at least `min_length` days.

    Parameters
    ----------
    da : xr.DataArray
        Daily series.
    factor : DateFactor
        Grouping of the days.
    day_of_year : xr.DataArray
        Leap-folded day of year of each day of `da`.
    thresholds : xr.DataArray or float
        Thresholds with a "dayofyear" dimension (see :py:class:`xclimdex.core.bootstrapping.QuantileSet`),
        or a constant threshold.
    op : {">", "gt", "<", "lt", ">=", "ge", "<=", "le"} or Comparator
        Comparison operator.
    min_length : int, optional
        Minimal spell length. Defaults to the ``min_spell_length`` option.
    spans_years : bool
        If True, spells may continue across group boundaries. If False, spells are cut at group boundaries.
    max_missing : float, optional
        Missing days tolerance of the groups, defaulting to the ``max_missing_days`` option.
        Days where either the series or the threshold is missing are missing.
    dim : str
        Name of the time dimension.

    Returns
    -------
    xr.DataArray
        Day count of each group, NaN for invalid groups.
    """
    min_length = _check_length(
        OPTIONS[MIN_SPELL_LENGTH] if min_length is None else min_length
    )
    if isinstance(thresholds, xr.DataArray) and "dayofyear" in thresholds.dims:
        thresholds = thresholds.sel(dayofyear=day_of_year).drop_vars("dayofyear")
    exceed = compare(da, op, thresholds, keep_nan=True)
    mask = na_mask(exceed, factor, max_missing, dim=dim)

    if spans_years:
        days = select_blocks_at_least(exceed, min_length, dim=dim)
        out = group_reduce(days, factor, "sum", dim=dim)
    else:
        out = group_reduce(
            exceed,
            factor,
            lambda grp, dim: select_blocks_at_least(grp, min_length, dim=dim).sum(dim=dim),
            dim=dim,
        )
    return out * mask
