"""
Calendar Handling Utilities
===========================

Helper functions to build the canonical daily date series of a dataset, place sparse observations on it,
compute the leap-folded day of year and the grouping factors (annual, half-year, seasonal, monthly)
used to aggregate daily values.
"""
from __future__ import annotations

import datetime as pydt
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Sequence

import cftime
import numpy as np
import pandas as pd
import xarray as xr

from ._exceptions import CalendarMismatch, InvalidConfiguration

__all__ = [
    "BaseRange",
    "Calendar",
    "DateFactor",
    "annual_factor",
    "common_calendar",
    "date_factors",
    "date_series",
    "day_of_year",
    "fill_series",
    "get_calendar",
    "group_reduce",
    "growing_season_factor",
    "halfyear_factor",
    "max_doy",
    "monthly_factor",
    "seasonal_factor",
]

max_doy = {
    "standard": 366,
    "gregorian": 366,
    "proleptic_gregorian": 366,
    "julian": 366,
    "noleap": 365,
    "365_day": 365,
    "all_leap": 366,
    "366_day": 366,
    "360_day": 360,
}

SEASONS = {1: "DJF", 2: "MAM", 3: "JJA", 4: "SON"}
HALFYEARS = {1: "ONDJFM", 2: "AMJJAS"}


class Calendar(Enum):
    """Calendars supported by the date series builder.

    Aliases are resolved by :py:meth:`Calendar.from_name`: "gregorian" and "proleptic_gregorian" are
    the "standard" calendar, "365_day" is "noleap" and "366_day" is "all_leap".
    """

    STANDARD = "standard"
    JULIAN = "julian"
    NOLEAP = "noleap"
    ALL_LEAP = "all_leap"
    DAY_360 = "360_day"

    @classmethod
    def from_name(cls, name: str | Calendar) -> Calendar:
        """Return the calendar member for a CF calendar name."""
        if isinstance(name, cls):
            return name
        aliases = {
            "default": "standard",
            "gregorian": "standard",
            "proleptic_gregorian": "standard",
            "365_day": "noleap",
            "366_day": "all_leap",
        }
        try:
            return cls(aliases.get(str(name).lower(), str(name).lower()))
        except ValueError as err:
            raise InvalidConfiguration(f"Unsupported calendar: {name!r}.") from err

    @property
    def days_per_year(self) -> int:
        """Length of the day-of-year axis once Feb 29 is folded onto Feb 28."""
        return 360 if self is Calendar.DAY_360 else 365

    @property
    def last_day(self) -> str:
        """Last month-day of a year, as "MM-DD"."""
        return "12-30" if self is Calendar.DAY_360 else "12-31"

    def is_leap(self, years: np.ndarray) -> np.ndarray:
        """Whether each of the given years has a Feb 29."""
        years = np.asarray(years)
        if self is Calendar.DAY_360:
            return np.zeros(years.shape, dtype=bool)
        uniques, inverse = np.unique(years, return_inverse=True)
        leap = np.array(
            [cftime.is_leap_year(int(y), calendar=self.value) for y in uniques],
            dtype=bool,
        )
        return leap[inverse].reshape(years.shape)


def get_calendar(obj: Any, dim: str = "time") -> str:
    """Return the calendar of an object.

    Parameters
    ----------
    obj : Any
        An object defining some date.
        If `obj` is an array/dataset with a datetime coordinate, use `dim` to specify its name.
        Values must have either a datetime64 dtype or a cftime dtype.
        `obj` can also be a python datetime.datetime, a cftime object or a pandas Timestamp
        or an iterable of those, in which case the calendar is inferred from the first value.
    dim : str
        Name of the coordinate to check (if `obj` is a DataArray or Dataset).

    Raises
    ------
    ValueError
        If no calendar could be inferred.

    Returns
    -------
    str
        The Climate and Forecasting (CF) calendar name.
        Will always return "standard" instead of "gregorian", following CF conventions 1.9.
    """
    if isinstance(obj, (xr.DataArray, xr.Dataset)):
        return obj[dim].dt.calendar
    if isinstance(obj, xr.CFTimeIndex):
        obj = obj.values[0]
    else:
        obj = np.take(obj, 0)
    if isinstance(obj, (pydt.datetime, np.datetime64)):  # Also covers pandas Timestamp
        return "standard"
    if isinstance(obj, cftime.datetime):
        if obj.calendar == "gregorian":
            return "standard"
        return obj.calendar

    raise ValueError(f"Calendar could not be inferred from object of type {type(obj)}.")


def common_calendar(series: Sequence[xr.DataArray], dim: str = "time") -> Calendar:
    """Return the single calendar shared by all series.

    Raises
    ------
    CalendarMismatch
        If the series do not all share the same calendar.
    """
    calendars = {Calendar.from_name(get_calendar(da, dim=dim)) for da in series}
    if len(calendars) != 1:
        raise CalendarMismatch(
            "Input series must share a single calendar, got "
            f"{sorted(cal.value for cal in calendars)}."
        )
    return calendars.pop()


def _ymd(index: pd.Index) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Return the years, months and days of a DatetimeIndex or CFTimeIndex."""
    return (
        np.asarray(index.year),
        np.asarray(index.month),
        np.asarray(index.day),
    )


def date_series(
    start_year: int, end_year: int, calendar: str | Calendar = "standard"
) -> pd.Index:
    """Return the daily dates from January 1st of `start_year` to the last day of `end_year`.

    The result is a :py:class:`pandas.DatetimeIndex` for the standard calendar when the dates are
    representable and a :py:class:`xarray.CFTimeIndex` otherwise.
    """
    cal = Calendar.from_name(calendar)
    return xr.date_range(
        f"{start_year:04d}-01-01",
        f"{end_year:04d}-{cal.last_day}",
        freq="D",
        calendar=cal.value,
        use_cftime=None if cal is Calendar.STANDARD else True,
    )


def fill_series(da: xr.DataArray, dates: pd.Index, dim: str = "time") -> xr.DataArray:
    """Place the values of a possibly sparse series on a complete date series.

    Observations are matched on their (year, month, day), so the time of day is ignored. Observations
    outside `dates` are dropped and days of `dates` without observations are NaN. When a day is
    given more than once, the last value is kept.

    Parameters
    ----------
    da : xr.DataArray
        Input series, with a datetime coordinate along `dim`.
    dates : pd.Index
        Target dates, as returned by :py:func:`date_series`.
    dim : str
        Name of the time dimension.

    Returns
    -------
    xr.DataArray
        Float array with the same dimensions as `da`, indexed by `dates` along `dim`.
    """
    src = pd.MultiIndex.from_arrays(_ymd(da.indexes[dim]))
    dst = pd.MultiIndex.from_arrays(_ymd(dates))
    pos = dst.get_indexer(src)
    keep = pos >= 0

    arr = da.transpose(dim, ...)
    out = np.full((len(dates),) + arr.shape[1:], np.nan)
    out[pos[keep]] = np.asarray(arr.values, dtype=float)[keep]

    coords = {k: v for k, v in arr.coords.items() if dim not in v.dims}
    coords[dim] = dates
    filled = xr.DataArray(
        out, dims=arr.dims, coords=coords, name=da.name, attrs=da.attrs
    )
    return filled.transpose(*da.dims)


def day_of_year(dates: pd.Index, calendar: str | Calendar = "standard") -> xr.DataArray:
    """Return the day of year of each date, with Feb 29 folded onto Feb 28.

    In leap years, Feb 29 shares index 59 with Feb 28 and the following days are shifted back by one,
    so that every year maps onto ``1..days_per_year``.
    """
    cal = Calendar.from_name(calendar)
    doy = np.asarray(dates.dayofyear)
    fold = cal.is_leap(np.asarray(dates.year)) & (doy >= 60)
    return xr.DataArray(
        doy - fold.astype(int),
        dims=("time",),
        coords={"time": dates},
        name="dayofyear",
        attrs={"days_per_year": cal.days_per_year},
    )


@dataclass(frozen=True, eq=False)
class DateFactor:
    """Assignment of each day of a date series to a labelled group.

    Attributes
    ----------
    name : str
        Granularity of the grouping, used as the dimension name of grouped results.
    codes : np.ndarray
        Integer group index of each day. Groups are numbered in chronological order.
    labels : np.ndarray
        Label of each group.
    """

    name: str
    codes: np.ndarray
    labels: np.ndarray

    @classmethod
    def from_labels(cls, name: str, labels: Sequence[str]) -> DateFactor:
        """Build a factor from the label of each day, keeping groups in order of first appearance."""
        codes, uniques = pd.factorize(np.asarray(labels), sort=False)
        return cls(name, codes, np.asarray(uniques, dtype=object))

    def __len__(self):
        return len(self.labels)

    @property
    def sizes(self) -> np.ndarray:
        """Number of days in each group."""
        return np.bincount(self.codes, minlength=len(self))


def group_reduce(
    da: xr.DataArray,
    factor: DateFactor,
    func: str | Callable,
    dim: str = "time",
    **kwargs,
) -> xr.DataArray:
    """Reduce a daily series over each group of a factor.

    Parameters
    ----------
    da : xr.DataArray
        Daily series, aligned with the dates `factor` was built from.
    factor : DateFactor
        Grouping of the days.
    func : str or Callable
        Name of a reduction method of xarray's GroupBy objects ("sum", "mean", "max", "all", "count", ...)
        or a function mapped on each group, called with the `dim` keyword, which must reduce `dim`.
    dim : str
        Name of the time dimension.
    kwargs
        Passed to the reduction or to `func`.

    Returns
    -------
    xr.DataArray
        Reduced array, with a dimension named after the factor and labelled by its groups.
    """
    key = factor.name
    grouped = da.assign_coords({key: (dim, factor.codes)}).groupby(key)
    if isinstance(func, str):
        out = getattr(grouped, func)(dim=dim, **kwargs)
    else:
        out = grouped.map(func, dim=dim, **kwargs)
    return out.assign_coords({key: factor.labels[out[key].values]})


def annual_factor(dates: pd.Index) -> DateFactor:
    """Group days by calendar year ("YYYY")."""
    return DateFactor.from_labels("annual", [f"{y:04d}" for y in dates.year])


def monthly_factor(dates: pd.Index) -> DateFactor:
    """Group days by month ("YYYY-MM")."""
    return DateFactor.from_labels(
        "monthly", [f"{y:04d}-{m:02d}" for y, m in zip(dates.year, dates.month)]
    )


def seasonal_factor(dates: pd.Index) -> DateFactor:
    """Group days by meteorological season ("YYYY-DJF", "YYYY-MAM", "YYYY-JJA", "YYYY-SON").

    December belongs to the winter of the following year.
    """
    years = np.asarray(dates.year)
    season = np.asarray(dates.month) // 3 + 1
    december = season == 5
    years = years + december
    season[december] = 1
    return DateFactor.from_labels(
        "seasonal", [f"{y:04d}-{SEASONS[s]}" for y, s in zip(years, season)]
    )


def halfyear_factor(dates: pd.Index) -> DateFactor:
    """Group days by half-year ("YYYY-ONDJFM", "YYYY-AMJJAS").

    October to December belong to the October-March half of the following year.
    """
    years = np.asarray(dates.year)
    half = (np.asarray(dates.month) + 2) // 6 + 1
    autumn = half == 3
    years = years + autumn
    half[autumn] = 1
    return DateFactor.from_labels(
        "halfyear", [f"{y:04d}-{HALFYEARS[h]}" for y, h in zip(years, half)]
    )


def date_factors(dates: pd.Index) -> dict[str, DateFactor]:
    """Return the annual, half-year, seasonal and monthly factors of a date series."""
    return {
        "annual": annual_factor(dates),
        "halfyear": halfyear_factor(dates),
        "seasonal": seasonal_factor(dates),
        "monthly": monthly_factor(dates),
    }


def growing_season_factor(
    dates: pd.Index, northern_hemisphere: bool = True
) -> tuple[DateFactor, np.ndarray]:
    """Return the yearly grouping of a growing season computation and the days it covers.

    In the southern hemisphere, a season year runs from July 1st to June 30th and is labelled
    with the year of its July. The January-June days preceding the first July are excluded.

    Returns
    -------
    DateFactor
        Factor over the selected days.
    np.ndarray
        Boolean selection of the days of `dates` that are part of a season year.
    """
    years = np.asarray(dates.year)
    if northern_hemisphere:
        return annual_factor(dates), np.ones(years.shape, dtype=bool)
    months = np.asarray(dates.month)
    season_years = years - (12 - months) // 6
    inset = season_years >= years.min()
    factor = DateFactor.from_labels(
        "annual", [f"{y:04d}" for y in season_years[inset]]
    )
    return factor, inset


@dataclass(frozen=True)
class BaseRange:
    """Inclusive range of years of the climatological base period."""

    start: int
    end: int

    @classmethod
    def from_years(cls, years: Sequence[int] | BaseRange) -> BaseRange:
        """Validate a (start, end) pair of years.

        Raises
        ------
        InvalidConfiguration
            If `years` is not a pair of integer years with start <= end.
        """
        if isinstance(years, cls):
            return years
        try:
            start, end = years
        except (TypeError, ValueError) as err:
            raise InvalidConfiguration(
                f"Base range must be a pair of years, got {years!r}."
            ) from err
        if not all(
            isinstance(y, (int, np.integer)) and not isinstance(y, bool)
            for y in (start, end)
        ):
            raise InvalidConfiguration(f"Base range years must be integers, got {years!r}.")
        start, end = int(start), int(end)
        if start > end:
            raise InvalidConfiguration(
                f"Base range start ({start}) is after its end ({end})."
            )
        return cls(start, end)

    @property
    def years(self) -> np.ndarray:
        return np.arange(self.start, self.end + 1)

    @property
    def nyears(self) -> int:
        return self.end - self.start + 1

    def contains(self, years: np.ndarray) -> np.ndarray:
        """Whether each of the given years is inside the base period."""
        years = np.asarray(years)
        return (years >= self.start) & (years <= self.end)

    def dates(self, calendar: str | Calendar = "standard") -> pd.Index:
        """The complete daily date series of the base period."""
        return date_series(self.start, self.end, calendar)
