"""
Miscellaneous Utilities
=======================

Helper functions shared by the calendar, quantile and indices modules.
"""
from __future__ import annotations

import logging
import warnings
from typing import Sequence

import numpy as np
import xarray as xr
from dask import array as dsk

logger = logging.getLogger("xclimdex")

#: Parameters of the 8th method of Hyndman and Fan, median-unbiased regardless of the distribution.
TYPE8_ALPHA = TYPE8_BETA = 1.0 / 3.0


def uses_dask(da: xr.DataArray) -> bool:
    """Evaluate whether dask is installed and array is loaded as a dask array.

    Parameters
    ----------
    da: xr.DataArray

    Returns
    -------
    bool
    """
    if isinstance(da, xr.DataArray) and isinstance(da.data, dsk.Array):
        return True
    if isinstance(da, xr.Dataset) and any(
        isinstance(var.data, dsk.Array) for var in da.variables.values()
    ):
        return True
    return False


def calc_quantiles(
    arr: np.ndarray,
    quantiles: Sequence[float],
    alpha: float = TYPE8_ALPHA,
    beta: float = TYPE8_BETA,
    copy: bool = True,
) -> np.ndarray:
    """Compute quantiles along the last axis, ignoring NaNs, and move the quantiles' axis to the end.

    Parameters
    ----------
    arr : np.ndarray
        Samples, along the last axis.
    quantiles : sequence of float
        Quantiles in [0, 1].
    alpha, beta : float
        Plotting positions. The default gives the 8th method of :cite:t:`hyndman_sample_1996`.
    copy : bool
        Whether to work on a copy of `arr`. The sort is done in-place otherwise.
    """
    if copy:
        arr = arr.copy()
    res = nan_quantile(arr, np.asarray(quantiles, dtype=float), -1, alpha, beta)
    return np.moveaxis(res, source=0, destination=-1)


def _compute_virtual_index(
    n: np.ndarray, quantiles: np.ndarray, alpha: float, beta: float
):
    """Compute the floating point indexes of an array for the linear interpolation of quantiles.

    Based on the approach used by :cite:t:`hyndman_sample_1996`.

    Notes
    -----
    `alpha` and `beta` values depend on the chosen method (see quantile documentation).
    """
    return n * quantiles + (alpha + quantiles * (1 - alpha - beta)) - 1


def _get_indexes(
    virtual_indexes: np.ndarray, valid_values_count: np.ndarray
) -> tuple[np.ndarray, np.ndarray]:
    """Get the valid indexes neighbouring virtual_indexes.

    Indexes above the last valid value point to the last element (-1) which, after a sort, is either
    the maximum or a NaN that is later replaced by the maximum. Indexes below 0 point to the minimum.
    """
    previous_indexes = np.asanyarray(np.floor(virtual_indexes))
    next_indexes = np.asanyarray(previous_indexes + 1)
    indexes_above_bounds = virtual_indexes >= valid_values_count - 1
    if indexes_above_bounds.any():
        previous_indexes[indexes_above_bounds] = -1
        next_indexes[indexes_above_bounds] = -1
    indexes_below_bounds = virtual_indexes < 0
    if indexes_below_bounds.any():
        previous_indexes[indexes_below_bounds] = 0
        next_indexes[indexes_below_bounds] = 0
    virtual_indexes_nans = np.isnan(virtual_indexes)
    if virtual_indexes_nans.any():
        previous_indexes[virtual_indexes_nans] = -1
        next_indexes[virtual_indexes_nans] = -1
    return previous_indexes.astype(np.intp), next_indexes.astype(np.intp)


def _linear_interpolation(
    left: np.ndarray,
    right: np.ndarray,
    gamma: np.ndarray,
) -> np.ndarray:
    """Compute the linear interpolation weighted by gamma on each point of two same shape arrays."""
    diff_b_a = np.subtract(right, left)
    lerp_interpolation = np.asanyarray(np.add(left, diff_b_a * gamma))
    np.subtract(
        right, diff_b_a * (1 - gamma), out=lerp_interpolation, where=gamma >= 0.5
    )
    if lerp_interpolation.ndim == 0:
        lerp_interpolation = lerp_interpolation[()]  # unpack 0d arrays
    return lerp_interpolation


def nan_quantile(
    arr: np.ndarray,
    quantiles: np.ndarray,
    axis: int = -1,
    alpha: float = TYPE8_ALPHA,
    beta: float = TYPE8_BETA,
) -> np.ndarray:
    """Get the quantiles of the array along the given axis, ignoring NaNs.

    The quantiles' axis is prepended to the output shape. The array is sorted in-place.

    Notes
    -----
    With alpha == beta == 1/3 we get the 8th method of :cite:t:`hyndman_sample_1996`, with
    alpha == beta == 1 the 7th (numpy's default). A slice with a single valid value returns that
    value for all quantiles, a slice without valid values returns NaN.
    """
    arr = np.asarray(arr, dtype=float)
    quantiles = np.atleast_1d(quantiles)
    if axis != 0:
        arr = np.moveaxis(arr, axis, destination=0)
    data_axis_length = arr.shape[0]
    if data_axis_length == 0:
        return np.full((quantiles.size,) + arr.shape[1:], np.nan)

    valid_values_count = np.asarray(
        data_axis_length - np.isnan(arr).sum(axis=0), dtype=float
    )
    # We need at least two values to interpolate,
    # this will result in getting the only available value if it exists.
    valid_values_count[valid_values_count < 2] = np.nan

    # Quantiles are on the last axis until the end
    valid_values_count = valid_values_count[..., np.newaxis]
    virtual_indexes = np.asanyarray(
        _compute_virtual_index(valid_values_count, quantiles, alpha, beta)
    )
    previous_indexes, next_indexes = _get_indexes(virtual_indexes, valid_values_count)

    arr.sort(axis=0)
    arr = arr[..., np.newaxis]
    previous = np.take_along_axis(arr, previous_indexes[np.newaxis, ...], axis=0)[0]
    next_elements = np.take_along_axis(arr, next_indexes[np.newaxis, ...], axis=0)[0]

    gamma = np.asanyarray(virtual_indexes - previous_indexes)
    interpolation = _linear_interpolation(previous, next_elements, gamma)
    # Interpolations falling in the NaN range are clipped to the maximum
    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", "All-NaN slice", RuntimeWarning)
        result = np.where(np.isnan(interpolation), np.nanmax(arr, axis=0), interpolation)
    return np.moveaxis(result, -1, 0)
