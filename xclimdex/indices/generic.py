"""
Generic Indices Submodule
=========================

Comparison operators and helper functions to aggregate daily values over the groups of a date factor.
"""
from __future__ import annotations

import operator
from enum import Enum
from numbers import Real
from typing import Callable

import numpy as np
import xarray as xr

from xclimdex.core._exceptions import InvalidConfiguration
from xclimdex.core.calendar import DateFactor, group_reduce
from xclimdex.core.options import OPTIONS, WET_DAY_THRESHOLD

__all__ = [
    "Comparator",
    "compare",
    "get_op",
    "number_days_op_threshold",
    "simple_precipitation_intensity_index",
    "total_precip_op_threshold",
]

binary_ops = {">": "gt", "<": "lt", ">=": "ge", "<=": "le", "==": "eq", "!=": "ne"}


class Comparator(Enum):
    """Comparison of daily values with a threshold."""

    GT = ">"
    GE = ">="
    LT = "<"
    LE = "<="
    EQ = "=="
    NE = "!="

    @classmethod
    def from_op(cls, op: str | Comparator) -> Comparator:
        """Get the comparator from its symbol (">=") or its name ("ge")."""
        if isinstance(op, cls):
            return op
        names = {v: k for k, v in binary_ops.items()}
        try:
            return cls(names.get(op, op))
        except ValueError as err:
            raise InvalidConfiguration(f"Operation `{op}` not recognized.") from err

    @property
    def func(self) -> Callable:
        return getattr(operator, binary_ops[self.value])

    def __call__(self, left, right):
        return self.func(left, right)


def get_op(op: str, constrain=None) -> Callable:
    """Get python's comparing function according to its name or representation and validate allowed usage.

    Parameters
    ----------
    op : str
        Operator, a key or a value of `binary_ops`.
    constrain : sequence of str, optional
        A tuple of allowed operators.
    """
    comp = Comparator.from_op(op)
    if constrain is not None:
        if isinstance(constrain, str):
            constrain = [constrain]
        allowed = {Comparator.from_op(c) for c in constrain}
        if comp not in allowed:
            raise InvalidConfiguration(
                f"Operation `{op}` not permitted for indice, allowed: {sorted(c.value for c in allowed)}."
            )
    return comp.func


def _check_threshold(threshold):
    if isinstance(threshold, (xr.DataArray, np.ndarray)):
        if not np.issubdtype(threshold.dtype, np.number):
            raise InvalidConfiguration(f"Threshold must be numeric, got {threshold.dtype}.")
    elif not isinstance(threshold, Real) or isinstance(threshold, bool):
        raise InvalidConfiguration(f"Threshold must be numeric, got {threshold!r}.")


def compare(
    left: xr.DataArray,
    op: str | Comparator,
    right: float | np.ndarray | xr.DataArray,
    keep_nan: bool = False,
) -> xr.DataArray:
    """Compare a DataArray to a threshold using given operator.

    Parameters
    ----------
    left : xr.DataArray
        A DataArray being evaluated against `right`.
    op : {">", "gt", "<", "lt", ">=", "ge", "<=", "le", "==", "eq", "!=", "ne"} or Comparator
        Logical operator. e.g. arr > thresh.
    right : float, np.ndarray or xr.DataArray
        A value or array-like being evaluated against `left`.
    keep_nan : bool
        If True, the result is a float array of 1 and 0, NaN where either side is missing.
        Otherwise, comparisons with missing values are False.

    Returns
    -------
    xr.DataArray
    """
    _check_threshold(right)
    out = Comparator.from_op(op)(left, right)
    if keep_nan:
        valid = left.notnull()
        if isinstance(right, xr.DataArray):
            valid = valid & right.notnull()
        elif np.isnan(right).any():
            valid = valid & ~np.isnan(right)
        out = out.astype(float).where(valid)
    return out


def number_days_op_threshold(
    da: xr.DataArray,
    factor: DateFactor,
    threshold: float,
    op: str | Comparator,
    dim: str = "time",
) -> xr.DataArray:
    """Number of days of each group where the comparison with the threshold holds.

    Missing days are not counted.
    """
    return group_reduce(compare(da, op, threshold), factor, "sum", dim=dim)


def total_precip_op_threshold(
    da: xr.DataArray,
    factor: DateFactor,
    threshold: float,
    op: str | Comparator,
    dim: str = "time",
) -> xr.DataArray:
    """Sum of the values of each group where the comparison with the threshold holds."""
    return group_reduce(
        da.where(compare(da, op, threshold)), factor, "sum", dim=dim, skipna=True
    )


def simple_precipitation_intensity_index(
    da: xr.DataArray,
    factor: DateFactor,
    thresh: float | None = None,
    dim: str = "time",
) -> xr.DataArray:
    r"""Simple precipitation intensity index.

    Mean precipitation amount of the wet days of each group, 0 for groups without wet days.

    Parameters
    ----------
    da : xr.DataArray
        Daily precipitation.
    factor : DateFactor
        Grouping of the days.
    thresh : float, optional
        Wet days have precipitation at or above this amount. Defaults to the ``wet_day_threshold`` option.
    dim : str
        Name of the time dimension.

    Notes
    -----
    Let :math:`PR_{ij}` be the precipitation of day :math:`i` of group :math:`j` and :math:`W` the
    set of its wet days, then

    .. math::

       SDII_j = \frac{\sum_{i \in W} PR_{ij}}{|W|}
    """
    thresh = OPTIONS[WET_DAY_THRESHOLD] if thresh is None else thresh
    wet = da.where(compare(da, ">=", thresh))
    total = group_reduce(wet, factor, "sum", dim=dim, skipna=True)
    nwet = group_reduce(wet, factor, "count", dim=dim)
    return (total / nwet.where(nwet > 0)).fillna(0)
