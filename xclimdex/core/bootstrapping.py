"""
Quantile Thresholds and Bootstrapping
=====================================

Estimation of the day-of-year quantile thresholds of a variable over a climatological base period.

Temperature thresholds are computed for each calendar day from the samples of a window centered on
that day, pooled over all base years. Exceedance rates computed against such thresholds are biased
inside the base period, since the data being compared was used to estimate the thresholds.
Following :cite:t:`zhang_avoiding_2005`, the in-base thresholds are bootstrapped: each base year is
withheld in turn and replaced by each of the other base years, giving one set of thresholds per
(withheld year, replacement year) pair.

Precipitation thresholds are not windowed: they are quantiles of all wet days of the base period.
"""
from __future__ import annotations

import warnings
from dataclasses import dataclass
from numbers import Integral, Real
from typing import Sequence

import numpy as np
import xarray as xr
from numpy.lib.stride_tricks import sliding_window_view

from ._exceptions import (
    InsufficientBaseData,
    InvalidConfiguration,
    UndefinedQuantile,
    ValidationError,
    raise_warn_or_log,
)
from .calendar import BaseRange, Calendar, fill_series, get_calendar
from .options import (
    BASE_DAYS_THRESHOLD,
    MIN_BASE_FRACTION,
    OPTIONS,
    QUANTILES,
    SHORT_BASE_PERIOD,
    UNDEFINED_QUANTILE,
    WET_DAY_THRESHOLD,
    WINDOW,
)
from .utils import calc_quantiles, logger, uses_dask

__all__ = [
    "QuantileSet",
    "base_series",
    "compute_quantiles",
    "precip_quantiles",
    "running_quantile",
    "running_quantile_bootstrap",
]

#: The window width of the ETCCDI definitions.
ETCCDI_WINDOW = 5


@dataclass(frozen=True, eq=False)
class QuantileSet:
    """Thresholds of a variable.

    Attributes
    ----------
    outbase : xr.DataArray
        Thresholds used outside the base period. For temperature, dimensions are
        ("dayofyear", "quantiles"); for precipitation, ("quantiles",).
    inbase : xr.DataArray, optional
        Bootstrapped thresholds used inside the base period, with dimensions
        ("dayofyear", "year", "replicate", "quantiles"): for each withheld base `year`, the thresholds
        obtained by replacing it by each of the other base years.
    base_range : BaseRange, optional
        The base period the thresholds were estimated on.
    """

    outbase: xr.DataArray
    inbase: xr.DataArray | None = None
    base_range: BaseRange | None = None

    @property
    def quantiles(self) -> np.ndarray:
        return self.outbase["quantiles"].values

    def has_quantiles(self, quantiles: Sequence[float]) -> bool:
        """Whether all the given quantiles were estimated."""
        return all(np.isclose(self.quantiles, q).any() for q in quantiles)

    def select(self, q: float) -> tuple[xr.DataArray, xr.DataArray | None]:
        """Return the out-of-base and in-base thresholds of a single quantile."""
        if not self.has_quantiles([q]):
            raise InvalidConfiguration(
                f"Quantile {q} is not available, got {list(self.quantiles)}."
            )
        opts = {"quantiles": q, "method": "nearest"}
        outbase = self.outbase.sel(**opts, drop=True)
        inbase = None if self.inbase is None else self.inbase.sel(**opts, drop=True)
        return outbase, inbase


def _validate_quantiles(quantiles: Sequence[float]) -> np.ndarray:
    qs = np.atleast_1d(np.asarray(quantiles, dtype=float))
    if qs.size == 0 or np.isnan(qs).any() or (qs < 0).any() or (qs > 1).any():
        raise InvalidConfiguration(f"Quantiles must be in [0, 1], got {quantiles!r}.")
    return qs


def _validate_window(window: int) -> int:
    if not isinstance(window, Integral) or isinstance(window, bool) or window < 1:
        raise InvalidConfiguration(
            f"Window size must be a positive integer, got {window!r}."
        )
    if window != ETCCDI_WINDOW:
        warnings.warn(
            f"Window size {window} differs from the ETCCDI definition ({ETCCDI_WINDOW} days), "
            "results will not be comparable with other datasets.",
            stacklevel=3,
        )
    return int(window)


def _validate_fraction(fraction: float) -> float:
    if not isinstance(fraction, Real) or not 0 <= fraction <= 1:
        raise InvalidConfiguration(
            f"Minimum fraction of base data must be in [0, 1], got {fraction!r}."
        )
    return float(fraction)


def _windowed_samples(data: np.ndarray, dpy: int, window: int) -> np.ndarray:
    """Pool the samples of the window around each day of year over all years.

    `data` holds complete years of `dpy` days along its last axis. Returns an array of shape
    (..., dpy, nyears * window). Positions before the first or after the last day are NaN.
    """
    nyears = data.shape[-1] // dpy
    half = window // 2
    pad = [(0, 0)] * (data.ndim - 1) + [(half, window - 1 - half)]
    padded = np.pad(data, pad, constant_values=np.nan)
    win = sliding_window_view(padded, window, axis=-1)
    win = win.reshape(data.shape[:-1] + (nyears, dpy, window))
    win = np.swapaxes(win, -3, -2)
    return win.reshape(data.shape[:-1] + (dpy, nyears * window))


def _running_quantile(
    data: np.ndarray,
    dpy: int,
    window: int,
    quantiles: np.ndarray,
    min_fraction: float,
) -> np.ndarray:
    """Windowed quantiles of complete years along the last axis, shape (..., dpy, nquantiles)."""
    samples = _windowed_samples(data, dpy, window)
    valid = np.count_nonzero(~np.isnan(samples), axis=-1)
    out = calc_quantiles(samples, quantiles, copy=False)
    out[valid < min_fraction * samples.shape[-1]] = np.nan
    return out


def _running_quantile_bootstrap(
    data: np.ndarray,
    dpy: int,
    window: int,
    quantiles: np.ndarray,
    min_fraction: float,
) -> np.ndarray:
    """Bootstrapped windowed quantiles of a 1D series of complete years.

    Returns an array of shape (dpy, nyears, nyears - 1, nquantiles).
    """
    nyears = data.size // dpy
    blocks = data.reshape(nyears, dpy)
    out = np.full((dpy, nyears, nyears - 1, quantiles.size), np.nan)
    for year in range(nyears):
        others = np.delete(np.arange(nyears), year)
        replicates = np.repeat(blocks[np.newaxis], nyears - 1, axis=0)
        replicates[:, year] = blocks[others]
        res = _running_quantile(
            replicates.reshape(nyears - 1, -1), dpy, window, quantiles, min_fraction
        )
        out[:, year] = np.swapaxes(res, 0, 1)
    return out


def _check_undefined(thresholds: xr.DataArray, name: str | None):
    nundef = int(thresholds.isnull().sum())
    if nundef > 0:
        raise_warn_or_log(
            UndefinedQuantile(
                f"{nundef} thresholds of {name or 'the series'} are undefined: "
                "too few valid base period samples in their window."
            ),
            OPTIONS[UNDEFINED_QUANTILE],
            stacklevel=3,
        )


def running_quantile(
    base: xr.DataArray,
    dpy: int,
    window: int,
    quantiles: Sequence[float],
    min_fraction: float,
    dim: str = "time",
) -> xr.DataArray:
    """Windowed quantiles of each day of year.

    Parameters
    ----------
    base : xr.DataArray
        Complete years of `dpy` days along `dim`, as returned by :py:func:`base_series`.
    dpy : int
        Days per year.
    window : int
        Width of the window centered on each day of year.
    quantiles : sequence of float
        Quantiles to compute, in [0, 1].
    min_fraction : float
        A quantile is NaN when less than this fraction of its ``nyears * window`` samples are valid.
    dim : str
        Name of the time dimension.

    Returns
    -------
    xr.DataArray
        Thresholds with dimensions (..., "dayofyear", "quantiles").
    """
    qs = _validate_quantiles(quantiles)
    if uses_dask(base):
        base = base.chunk({dim: -1})
    out = xr.apply_ufunc(
        _running_quantile,
        base,
        input_core_dims=[[dim]],
        output_core_dims=[["dayofyear", "quantiles"]],
        kwargs=dict(dpy=dpy, window=window, quantiles=qs, min_fraction=min_fraction),
        dask="parallelized",
        output_dtypes=[float],
        dask_gufunc_kwargs={"output_sizes": {"dayofyear": dpy, "quantiles": qs.size}},
    )
    return out.assign_coords(dayofyear=np.arange(1, dpy + 1), quantiles=qs)


def running_quantile_bootstrap(
    base: xr.DataArray,
    dpy: int,
    window: int,
    quantiles: Sequence[float],
    min_fraction: float,
    base_range: BaseRange,
    dim: str = "time",
) -> xr.DataArray:
    """Bootstrapped windowed quantiles of each day of year, for use inside the base period.

    For each base year, the year is replaced in turn by each of the other base years and the windowed
    quantiles of the modified series are computed as in :py:func:`running_quantile`.

    Returns
    -------
    xr.DataArray
        Thresholds with dimensions (..., "dayofyear", "year", "replicate", "quantiles").
    """
    qs = _validate_quantiles(quantiles)
    nyears = base_range.nyears
    if uses_dask(base):
        base = base.chunk({dim: -1})
    out = xr.apply_ufunc(
        _running_quantile_bootstrap,
        base,
        input_core_dims=[[dim]],
        output_core_dims=[["dayofyear", "year", "replicate", "quantiles"]],
        kwargs=dict(dpy=dpy, window=window, quantiles=qs, min_fraction=min_fraction),
        vectorize=True,
        dask="parallelized",
        output_dtypes=[float],
        dask_gufunc_kwargs={
            "output_sizes": {
                "dayofyear": dpy,
                "year": nyears,
                "replicate": nyears - 1,
                "quantiles": qs.size,
            }
        },
    )
    return out.assign_coords(
        dayofyear=np.arange(1, dpy + 1),
        year=base_range.years,
        replicate=np.arange(nyears - 1),
        quantiles=qs,
    )


def base_series(
    da: xr.DataArray,
    base_range: BaseRange,
    calendar: str | Calendar | None = None,
    dim: str = "time",
) -> xr.DataArray:
    """Place a series on the complete dates of the base period.

    Feb 29 is dropped in calendars of 365 days per year, so that the result holds exactly
    ``nyears * days_per_year`` days. Base years without data are entirely missing.
    """
    cal = Calendar.from_name(calendar or get_calendar(da, dim=dim))
    dates = base_range.dates(cal)
    out = fill_series(da, dates, dim=dim)
    if cal.days_per_year == 365:
        feb29 = (np.asarray(dates.month) == 2) & (np.asarray(dates.day) == 29)
        out = out.isel({dim: ~feb29})
    return out


def _check_base_days(
    da: xr.DataArray, base_range: BaseRange, days_threshold: int, dim: str
):
    inbase = xr.DataArray(
        base_range.contains(da[dim].dt.year.values), dims=(dim,), coords={dim: da[dim]}
    )
    ndays = da.where(inbase).count(dim=dim)
    if (ndays <= days_threshold).any():
        raise InsufficientBaseData(
            f"There is less than a year of {da.name or 'the'} data within the base period "
            f"{base_range.start}-{base_range.end}. "
            "Consider revising your base range and/or check your input data."
        )


def compute_quantiles(
    da: xr.DataArray,
    base_range: BaseRange | Sequence[int],
    quantiles: Sequence[float] | None = None,
    window: int | None = None,
    min_fraction: float | None = None,
    inbase: bool = True,
    days_threshold: int | None = None,
    dim: str = "time",
) -> QuantileSet:
    """Day-of-year quantile thresholds of a temperature-like variable.

    Parameters
    ----------
    da : xr.DataArray
        Daily series.
    base_range : BaseRange or (int, int)
        First and last years of the base period.
    quantiles : sequence of float, optional
        Quantiles in [0, 1]. Defaults to the "temperature" entry of the ``quantiles`` option.
    window : int, optional
        Width of the window centered on each day. Defaults to the ``window`` option.
    min_fraction : float, optional
        Minimal fraction of valid samples in a window. Defaults to the ``min_base_fraction`` option.
    inbase : bool
        Whether to compute the bootstrapped in-base thresholds.
    days_threshold : int, optional
        Series with this many valid days or fewer in the base period are rejected.
        Defaults to the ``base_days_threshold`` option.
    dim : str
        Name of the time dimension.

    Returns
    -------
    QuantileSet
        The `inbase` member is None when `inbase` is False or when the base period spans a single year.

    Raises
    ------
    InsufficientBaseData
        If the series has too few valid days in the base period.
    InvalidConfiguration
        If the window, quantiles, fraction or base range are malformed.
    """
    base_range = BaseRange.from_years(base_range)
    qs = _validate_quantiles(
        OPTIONS[QUANTILES]["temperature"] if quantiles is None else quantiles
    )
    window = _validate_window(OPTIONS[WINDOW] if window is None else window)
    min_fraction = _validate_fraction(
        OPTIONS[MIN_BASE_FRACTION] if min_fraction is None else min_fraction
    )
    days_threshold = (
        OPTIONS[BASE_DAYS_THRESHOLD] if days_threshold is None else days_threshold
    )
    _check_base_days(da, base_range, days_threshold, dim)

    cal = Calendar.from_name(get_calendar(da, dim=dim))
    dpy = cal.days_per_year
    base = base_series(da, base_range, cal, dim=dim)
    logger.info(
        "Computing %s thresholds over %s-%s with a %s-day window.",
        da.name,
        base_range.start,
        base_range.end,
        window,
    )
    outbase = running_quantile(base, dpy, window, qs, min_fraction, dim=dim)
    _check_undefined(outbase, da.name)

    inbase_thresholds = None
    if inbase and base_range.nyears >= 2:
        inbase_thresholds = running_quantile_bootstrap(
            base, dpy, window, qs, min_fraction, base_range, dim=dim
        )
    elif inbase:
        raise_warn_or_log(
            ValidationError(
                f"The base period {base_range.start}-{base_range.end} spans a single year, "
                f"in-base thresholds of {da.name or 'the series'} cannot be bootstrapped. "
                "Out-of-base thresholds are used everywhere."
            ),
            OPTIONS[SHORT_BASE_PERIOD],
            stacklevel=2,
        )
    attrs = {
        "climatology_bounds": [f"{base_range.start}-01-01", f"{base_range.end}-{cal.last_day}"],
        "window": window,
        "min_fraction": min_fraction,
        "calendar": cal.value,
    }
    outbase.attrs.update(attrs)
    if inbase_thresholds is not None:
        inbase_thresholds.attrs.update(attrs)
    return QuantileSet(outbase, inbase_thresholds, base_range)


def precip_quantiles(
    da: xr.DataArray,
    base_range: BaseRange | Sequence[int],
    quantiles: Sequence[float] | None = None,
    wet_day_threshold: float | None = None,
    days_threshold: int | None = None,
    dim: str = "time",
) -> QuantileSet:
    """Quantiles of the wet days of the base period.

    Parameters
    ----------
    da : xr.DataArray
        Daily precipitation.
    base_range : BaseRange or (int, int)
        First and last years of the base period.
    quantiles : sequence of float, optional
        Quantiles in [0, 1]. Defaults to the "precipitation" entry of the ``quantiles`` option.
    wet_day_threshold : float, optional
        Days with precipitation at or above this amount are wet. Defaults to the ``wet_day_threshold`` option.
    days_threshold : int, optional
        Series with this many valid days or fewer in the base period are rejected.
        Defaults to the ``base_days_threshold`` option.
    dim : str
        Name of the time dimension.

    Returns
    -------
    QuantileSet
        With a single `outbase` threshold per quantile, NaN when there are no wet days.
    """
    base_range = BaseRange.from_years(base_range)
    qs = _validate_quantiles(
        OPTIONS[QUANTILES]["precipitation"] if quantiles is None else quantiles
    )
    wet_day_threshold = (
        OPTIONS[WET_DAY_THRESHOLD] if wet_day_threshold is None else wet_day_threshold
    )
    days_threshold = (
        OPTIONS[BASE_DAYS_THRESHOLD] if days_threshold is None else days_threshold
    )
    _check_base_days(da, base_range, days_threshold, dim)

    inbase = xr.DataArray(
        base_range.contains(da[dim].dt.year.values), dims=(dim,), coords={dim: da[dim]}
    )
    wet = da.where(inbase & (da >= wet_day_threshold))
    logger.info(
        "Computing %s wet day thresholds over %s-%s.",
        da.name,
        base_range.start,
        base_range.end,
    )
    outbase = xr.apply_ufunc(
        calc_quantiles,
        wet,
        input_core_dims=[[dim]],
        output_core_dims=[["quantiles"]],
        kwargs=dict(quantiles=qs),
        dask="parallelized",
        output_dtypes=[float],
        dask_gufunc_kwargs={"output_sizes": {"quantiles": qs.size}},
    ).assign_coords(quantiles=qs)
    outbase.attrs.update(
        climatology_bounds=[f"{base_range.start}-01-01", f"{base_range.end}-12-31"],
        wet_day_threshold=wet_day_threshold,
    )
    return QuantileSet(outbase, None, base_range)
