"""
Climdex Input
=============

The :py:class:`ClimdexInput` object gathers, validates and prepares the daily series of a station or
grid cell once, so that any number of indices can then be computed from it: the series are placed on
a common date series, their grouping factors and missing values masks are built and their quantile
thresholds are computed on demand and kept for reuse.
"""
from __future__ import annotations

from numbers import Integral, Real
from typing import Mapping, Sequence

import numpy as np
import pandas as pd
import xarray as xr

from ._exceptions import InvalidConfiguration, MissingVariableError
from .bootstrapping import QuantileSet, compute_quantiles, precip_quantiles
from .calendar import (
    BaseRange,
    Calendar,
    DateFactor,
    common_calendar,
    date_factors,
    date_series,
    day_of_year,
    fill_series,
    growing_season_factor,
)
from .datachecks import check_daily, check_time
from .missing import gsl_na_mask, na_mask
from .options import (
    GRANULARITIES,
    MAX_MISSING_DAYS,
    MIN_BASE_FRACTION,
    OPTIONS,
    QUANTILES,
    VARIABLES,
    WINDOW,
)
from .utils import logger

__all__ = ["ClimdexInput"]


def _max_missing_days(max_missing_days: Mapping[str, float] | None) -> dict[str, float]:
    out = {**OPTIONS[MAX_MISSING_DAYS], **(max_missing_days or {})}
    unknown = set(out) - set(GRANULARITIES)
    missing = set(GRANULARITIES) - set(out)
    if unknown or missing:
        raise InvalidConfiguration(
            f"Missing days tolerances must be given for {GRANULARITIES}, "
            f"got unknown {sorted(unknown)} and missing {sorted(missing)}."
        )
    for key, val in out.items():
        if not isinstance(val, Real) or isinstance(val, bool) or val < 0:
            raise InvalidConfiguration(
                f"Missing days tolerance for {key!r} must be a non-negative number, got {val!r}."
            )
    return out


def _variable_class(name: str) -> str | None:
    for cls, names in OPTIONS[VARIABLES].items():
        if name in names:
            return cls
    return None


class ClimdexInput:
    """Daily series prepared for the computation of climate extremes indices.

    Use :py:meth:`ClimdexInput.from_series` to build it.

    Attributes
    ----------
    data : dict of xr.DataArray
        Series on the complete date series, with NaN for missing days.
    dates : pd.Index
        Daily dates from January 1st of the first year to the last day of the last year.
    calendar : Calendar
        Calendar shared by all series.
    day_of_year : xr.DataArray
        Day of year of each date, with Feb 29 folded onto Feb 28.
    factors : dict of DateFactor
        The "annual", "halfyear", "seasonal" and "monthly" groupings of the dates.
    masks : dict of dict of xr.DataArray
        Multiplicative missing values masks, by granularity and variable.
    base_range : BaseRange
        Climatological base period.
    northern_hemisphere : bool
        Hemisphere of the series, used by the growing season.
    max_missing_days : dict
        Missing days tolerance of each granularity.
    """

    def __init__(
        self,
        data: dict[str, xr.DataArray],
        dates: pd.Index,
        calendar: Calendar,
        base_range: BaseRange,
        northern_hemisphere: bool,
        max_missing_days: dict[str, float],
        window: int,
        min_base_fraction: float,
        quantiles: dict[str, QuantileSet] | None = None,
    ):
        self.data = data
        self.dates = dates
        self.calendar = calendar
        self.base_range = base_range
        self.northern_hemisphere = northern_hemisphere
        self.max_missing_days = max_missing_days
        self.window = window
        self.min_base_fraction = min_base_fraction
        self.day_of_year = day_of_year(dates, calendar)
        self.factors = date_factors(dates)
        self.masks = {
            gran: {
                name: na_mask(da, self.factors[gran], max_missing_days[gran])
                for name, da in data.items()
            }
            for gran in GRANULARITIES
        }
        self._supplied = dict(quantiles or {})
        self._cache: dict[tuple, QuantileSet] = {}

    @classmethod
    def from_series(
        cls,
        series: Mapping[str, xr.DataArray],
        base_range: Sequence[int] | BaseRange = (1961, 1990),
        northern_hemisphere: bool = True,
        max_missing_days: Mapping[str, float] | None = None,
        window: int | None = None,
        min_base_fraction: float | None = None,
        quantiles: Mapping[str, QuantileSet] | None = None,
    ) -> ClimdexInput:
        """Validate and prepare daily series.

        Parameters
        ----------
        series : mapping of str to xr.DataArray
            Daily series by variable name ("tmax", "tmin", "tavg", "prec" or any other name).
            Series may have gaps and may cover different periods. When "tavg" is not given but "tmax"
            and "tmin" are, it is computed as their mean.
        base_range : BaseRange or (int, int)
            First and last years of the base period.
        northern_hemisphere : bool
            Whether the series are located in the northern hemisphere.
        max_missing_days : mapping, optional
            Missing days tolerance by granularity, updating the ``max_missing_days`` option.
        window : int, optional
            Width of the quantile windows. Defaults to the ``window`` option.
        min_base_fraction : float, optional
            Minimal fraction of valid samples in a quantile window. Defaults to the ``min_base_fraction`` option.
        quantiles : mapping of str to QuantileSet, optional
            Precomputed thresholds by variable name, used instead of computing them from the series.

        Raises
        ------
        InvalidConfiguration
            If no series is given or if a parameter is malformed.
        CalendarMismatch
            If the series do not share the same calendar.
        """
        if not series:
            raise InvalidConfiguration("At least one variable must be supplied.")
        for name, da in series.items():
            if not isinstance(da, xr.DataArray):
                raise InvalidConfiguration(
                    f"Series {name!r} must be a DataArray, got {type(da).__name__}."
                )
            check_time(da)
            check_daily(da)

        calendar = common_calendar(list(series.values()))
        years = np.concatenate([da.time.dt.year.values for da in series.values()])
        if years.size == 0:
            raise InvalidConfiguration("Supplied series are all empty.")
        dates = date_series(int(years.min()), int(years.max()), calendar)
        data = {name: fill_series(da, dates).rename(name) for name, da in series.items()}
        if "tavg" not in data and {"tmax", "tmin"}.issubset(data):
            logger.info("Computing tavg as the mean of tmax and tmin.")
            data["tavg"] = ((data["tmax"] + data["tmin"]) / 2).rename("tavg")

        base_range = BaseRange.from_years(base_range)
        window = OPTIONS[WINDOW] if window is None else window
        if not isinstance(window, Integral) or isinstance(window, bool) or window < 1:
            raise InvalidConfiguration(
                f"Window size must be a positive integer, got {window!r}."
            )
        min_base_fraction = (
            OPTIONS[MIN_BASE_FRACTION] if min_base_fraction is None else min_base_fraction
        )
        if not isinstance(min_base_fraction, Real) or not 0 <= min_base_fraction <= 1:
            raise InvalidConfiguration(
                f"Minimum fraction of base data must be in [0, 1], got {min_base_fraction!r}."
            )
        quantiles = dict(quantiles or {})
        cls._check_quantiles(quantiles, data, calendar, base_range)
        return cls(
            data,
            dates,
            calendar,
            base_range,
            northern_hemisphere,
            _max_missing_days(max_missing_days),
            window,
            min_base_fraction,
            quantiles,
        )

    @staticmethod
    def _check_quantiles(
        quantiles: dict[str, QuantileSet],
        data: dict[str, xr.DataArray],
        calendar: Calendar,
        base_range: BaseRange,
    ):
        """Validate precomputed thresholds."""
        for name, qset in quantiles.items():
            vcls = _variable_class(name)
            if vcls is None:
                raise InvalidConfiguration(f"No thresholds are defined for {name!r}.")
            if not isinstance(qset, QuantileSet):
                raise InvalidConfiguration(
                    f"Thresholds of {name!r} must be a QuantileSet, got {type(qset).__name__}."
                )
            if not qset.has_quantiles(OPTIONS[QUANTILES][vcls]):
                raise InvalidConfiguration(
                    f"Thresholds of {name!r} must include the quantiles {OPTIONS[QUANTILES][vcls]}."
                )
            if vcls != "temperature":
                continue
            if qset.outbase.sizes.get("dayofyear") != calendar.days_per_year:
                raise InvalidConfiguration(
                    f"Thresholds of {name!r} must have {calendar.days_per_year} days of year."
                )
            if name in data and qset.inbase is None:
                years = data[name].time.dt.year.values
                has_base_data = data[name].notnull()
                others = [d for d in data[name].dims if d != "time"]
                if others:
                    has_base_data = has_base_data.any(others)
                if (base_range.contains(years) & has_base_data.values).any():
                    raise InvalidConfiguration(
                        f"Thresholds of {name!r} must include in-base thresholds, "
                        "since its data overlaps the base period."
                    )

    def __repr__(self):
        return (
            f"<ClimdexInput {sorted(self.data)} {self.dates[0]} - {self.dates[-1]} "
            f"({self.calendar.value}), base {self.base_range.start}-{self.base_range.end}>"
        )

    def __getitem__(self, name: str) -> xr.DataArray:
        try:
            return self.data[name]
        except KeyError as err:
            raise MissingVariableError(f"Variable {name!r} was not supplied.") from err

    def quantiles(self, name: str) -> QuantileSet:
        """Return the thresholds of a variable, computing them on first request.

        Raises
        ------
        MissingVariableError
            If the variable was not supplied and no thresholds were given for it.
        InvalidConfiguration
            If the variable is neither a temperature nor a precipitation.
        InsufficientBaseData
            If the variable has too few valid days in the base period.
        """
        if name in self._supplied:
            return self._supplied[name]
        da = self[name]
        vcls = _variable_class(name)
        if vcls is None:
            raise InvalidConfiguration(f"No thresholds are defined for {name!r}.")
        qs = tuple(OPTIONS[QUANTILES][vcls])
        key = (self.calendar, self.base_range, self.window, name, qs)
        if key in self._cache:
            logger.info("Reusing the %s thresholds.", name)
            return self._cache[key]

        if vcls == "temperature":
            qset = compute_quantiles(
                da,
                self.base_range,
                quantiles=qs,
                window=self.window,
                min_fraction=self.min_base_fraction,
            )
        else:
            qset = precip_quantiles(da, self.base_range, quantiles=qs)
        self._cache[key] = qset
        return qset

    def growing_season_inputs(
        self, name: str = "tavg"
    ) -> tuple[xr.DataArray, DateFactor, xr.DataArray]:
        """Return the daily mean temperature, season year factor and mask of the growing season.

        In the southern hemisphere, the series is restricted to complete July-June season years.
        """
        factor, inset = growing_season_factor(self.dates, self.northern_hemisphere)
        tavg = self[name]
        mask = gsl_na_mask(
            tavg,
            self.dates,
            self.northern_hemisphere,
            self.max_missing_days["annual"],
            self.max_missing_days["monthly"],
        )
        return tavg.isel(time=inset), factor, mask
