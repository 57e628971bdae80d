# noqa: D100
from __future__ import annotations

from typing import Sequence

import xarray as xr

from xclimdex.core.bootstrapping import QuantileSet
from xclimdex.core.calendar import BaseRange, DateFactor, group_reduce
from xclimdex.core.missing import na_mask

from .generic import Comparator, compare

__all__ = ["exceedance", "percent_days_op_threshold"]


def _inbase_exceedance(
    da: xr.DataArray,
    day_of_year: xr.DataArray,
    inbase: xr.DataArray,
    op: str | Comparator,
    dim: str = "time",
) -> xr.DataArray:
    """Mean exceedance of the in-base days over the bootstrapped thresholds of their year.

    Replicates with a missing threshold are left out of the mean, which is NaN when all are missing.
    """
    years = xr.DataArray(da[dim].dt.year.values, dims=(dim,), coords={dim: da[dim]})
    thresholds = inbase.sel(dayofyear=day_of_year, year=years).drop_vars(
        ["dayofyear", "year"]
    )
    exceed = compare(da, op, thresholds, keep_nan=True)
    nvalid = exceed.count("replicate")
    return exceed.sum("replicate", skipna=True).where(nvalid > 0) / nvalid


def exceedance(
    da: xr.DataArray,
    day_of_year: xr.DataArray,
    outbase: xr.DataArray,
    op: str | Comparator,
    inbase: xr.DataArray | None = None,
    base_range: BaseRange | Sequence[int] | None = None,
    factor: DateFactor | None = None,
    max_missing: float | None = None,
    dim: str = "time",
) -> xr.DataArray:
    r"""Exceedance of day-of-year thresholds.

    Outside the base period, each day is compared with the out-of-base threshold of its day of year.
    Inside the base period, when bootstrapped thresholds are given and the series covers at least two
    years, each day is compared with the thresholds obtained by replacing its year by each of the other
    base years, and its exceedance is the fraction of those comparisons that hold.

    Parameters
    ----------
    da : xr.DataArray
        Daily series.
    day_of_year : xr.DataArray
        Leap-folded day of year of each day of `da`.
    outbase : xr.DataArray
        Out-of-base thresholds, along "dayofyear".
    op : {">", "gt", "<", "lt", ">=", "ge", "<=", "le"} or Comparator
        Comparison operator.
    inbase : xr.DataArray, optional
        Bootstrapped thresholds along ("dayofyear", "year", "replicate").
    base_range : BaseRange or (int, int), optional
        Base period, required with `inbase`.
    factor : DateFactor, optional
        Grouping of the days. If None, the daily exceedance is returned.
    max_missing : float, optional
        Missing days tolerance of the groups, defaulting to the ``max_missing_days`` option.
    dim : str
        Name of the time dimension.

    Returns
    -------
    xr.DataArray
        Daily exceedance in [0, 1], NaN where the series or its threshold is missing. With a `factor`,
        the percentage of exceeding days of each group, NaN for invalid groups.

    Notes
    -----
    Let :math:`X_{ij}` be the value of day :math:`i` of year :math:`j` and :math:`Q^{(j, k)}_i` the
    threshold of its day of year computed with year :math:`j` replaced by year :math:`k`.
    The in-base exceedance is

    .. math::

       E_{ij} = \frac{1}{N - 1} \sum_{k \neq j} \mathbb{1}\left[X_{ij} \mathrm{op} Q^{(j, k)}_i\right]
    """
    thresholds = outbase.sel(dayofyear=day_of_year).drop_vars("dayofyear")
    out = compare(da, op, thresholds, keep_nan=True)

    if inbase is not None and da.sizes[dim] >= 2 * 360:
        base_range = BaseRange.from_years(base_range)
        years = da[dim].dt.year.values
        inset = base_range.contains(years)
        if inset.any():
            sub = _inbase_exceedance(
                da.isel({dim: inset}), day_of_year.isel({dim: inset}), inbase, op, dim
            )
            inset_da = xr.DataArray(inset, dims=(dim,), coords={dim: da[dim]})
            out = xr.where(inset_da, sub.reindex({dim: da[dim]}), out)

    if factor is None:
        return out.rename("exceedance")
    mask = na_mask(out, factor, max_missing, dim=dim)
    return group_reduce(out, factor, "mean", dim=dim, skipna=True) * 100 * mask


def percent_days_op_threshold(
    da: xr.DataArray,
    day_of_year: xr.DataArray,
    quantiles: QuantileSet,
    q: float,
    op: str | Comparator,
    factor: DateFactor,
    max_missing: float | None = None,
    dim: str = "time",
) -> xr.DataArray:
    """Percentage of days of each group where the comparison with the `q` threshold holds.

    Convenience wrapper of :py:func:`exceedance` taking the thresholds from a QuantileSet.

    Examples
    --------
    Percentage of days with a maximal temperature above the 90th percentile, by year:

    >>> from xclimdex import ClimdexInput
    >>> ci = ClimdexInput.from_series({"tmax": tasmax}, base_range=(1961, 1990))
    >>> tx90p = percent_days_op_threshold(
    ...     ci["tmax"], ci.day_of_year, ci.quantiles("tmax"), 0.9, ">", ci.factors["annual"]
    ... )
    """
    outbase, inbase = quantiles.select(q)
    return exceedance(
        da,
        day_of_year,
        outbase,
        op,
        inbase=inbase,
        base_range=quantiles.base_range,
        factor=factor,
        max_missing=max_missing,
        dim=dim,
    )
