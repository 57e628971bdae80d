from __future__ import annotations

import numpy as np
import pandas as pd
import pytest
import xarray as xr

from xclimdex.core import calendar as cal
from xclimdex.core._exceptions import CalendarMismatch, InvalidConfiguration


class TestCalendar:
    @pytest.mark.parametrize(
        "name,exp",
        [
            ("standard", cal.Calendar.STANDARD),
            ("gregorian", cal.Calendar.STANDARD),
            ("proleptic_gregorian", cal.Calendar.STANDARD),
            ("365_day", cal.Calendar.NOLEAP),
            ("noleap", cal.Calendar.NOLEAP),
            ("366_day", cal.Calendar.ALL_LEAP),
            ("360_day", cal.Calendar.DAY_360),
        ],
    )
    def test_from_name(self, name, exp):
        assert cal.Calendar.from_name(name) is exp

    def test_unsupported(self):
        with pytest.raises(InvalidConfiguration):
            cal.Calendar.from_name("lunar")

    def test_days_per_year(self):
        assert cal.Calendar.STANDARD.days_per_year == 365
        assert cal.Calendar.ALL_LEAP.days_per_year == 365
        assert cal.Calendar.DAY_360.days_per_year == 360

    def test_common_calendar(self, tavg_series, tmax_series):
        a = tavg_series(np.zeros(10))
        b = tmax_series(np.zeros(10), calendar="noleap")
        assert cal.common_calendar([a, a]) is cal.Calendar.STANDARD
        with pytest.raises(CalendarMismatch):
            cal.common_calendar([a, b])


class TestDateSeries:
    @pytest.mark.parametrize(
        "calendar,length,last",
        [("standard", 731, 31), ("noleap", 730, 31), ("360_day", 720, 30)],
    )
    def test_full_years(self, calendar, length, last):
        dates = cal.date_series(2000, 2001, calendar)
        assert len(dates) == length
        assert (dates[0].year, dates[0].month, dates[0].day) == (2000, 1, 1)
        assert (dates[-1].year, dates[-1].month, dates[-1].day) == (2001, 12, last)


class TestFillSeries:
    def test_sparse(self, tavg_series):
        da = tavg_series(np.arange(10), start="2000-03-01")
        da = da.isel(time=[0, 1, 5, 9])
        dates = cal.date_series(2000, 2000)
        out = cal.fill_series(da, dates)
        assert out.sizes["time"] == 366
        assert out.isnull().sum() == 366 - 4
        np.testing.assert_array_equal(out.sel(time="2000-03-06").values, 5)
        assert np.isnan(out.sel(time="2000-03-03").values)

    def test_subdaily_and_outside(self):
        time = pd.to_datetime(["1999-12-31 12:00", "2000-01-01 12:00", "2000-01-02 06:00"])
        da = xr.DataArray([1.0, 2.0, 3.0], dims="time", coords={"time": time})
        out = cal.fill_series(da, cal.date_series(2000, 2000))
        np.testing.assert_array_equal(out.values[:3], [2, 3, np.nan])

    def test_cftime(self, tavg_series):
        da = tavg_series(np.arange(5.0), start="2001-02-26", calendar="360_day")
        out = cal.fill_series(da, cal.date_series(2001, 2001, "360_day"))
        assert out.sizes["time"] == 360
        # Feb 26 of a 360-day year is the 56th day
        np.testing.assert_array_equal(out.values[55:60], np.arange(5.0))


class TestDayOfYear:
    def test_leap_fold(self):
        doy = cal.day_of_year(cal.date_series(2000, 2001))
        leap = doy.sel(time="2000")
        assert leap.max() == 365
        # Feb 28 and Feb 29 share a key, Dec 31 is 365
        np.testing.assert_array_equal(leap.values[57:61], [58, 59, 59, 60])
        assert leap.values[-1] == leap.values[-2] + 1 == 365
        np.testing.assert_array_equal(doy.sel(time="2001").values, np.arange(1, 366))

    @pytest.mark.parametrize("calendar,dpy", [("noleap", 365), ("360_day", 360), ("all_leap", 365)])
    def test_uniform_calendars(self, calendar, dpy):
        doy = cal.day_of_year(cal.date_series(2000, 2002, calendar), calendar)
        assert doy.max() == dpy
        assert (np.bincount(doy.values)[1:] >= 3).all()


class TestFactors:
    dates = cal.date_series(2000, 2001)

    def test_annual(self):
        f = cal.annual_factor(self.dates)
        np.testing.assert_array_equal(f.labels, ["2000", "2001"])
        np.testing.assert_array_equal(f.sizes, [366, 365])

    def test_monthly(self):
        f = cal.monthly_factor(self.dates)
        assert len(f) == 24
        assert f.labels[1] == "2000-02"
        assert f.sizes[1] == 29

    def test_seasonal(self):
        f = cal.seasonal_factor(self.dates)
        np.testing.assert_array_equal(
            f.labels,
            [
                "2000-DJF", "2000-MAM", "2000-JJA", "2000-SON",
                "2001-DJF", "2001-MAM", "2001-JJA", "2001-SON", "2002-DJF",
            ],
        )
        # December 2000 is in the 2001 winter, with Jan-Feb 2001
        assert f.sizes[4] == 31 + 31 + 28
        assert f.sizes[-1] == 31

    def test_halfyear(self):
        f = cal.halfyear_factor(self.dates)
        np.testing.assert_array_equal(
            f.labels,
            ["2000-ONDJFM", "2000-AMJJAS", "2001-ONDJFM", "2001-AMJJAS", "2002-ONDJFM"],
        )
        assert f.sizes[2] == 92 + 90

    def test_date_factors(self):
        assert list(cal.date_factors(self.dates)) == ["annual", "halfyear", "seasonal", "monthly"]

    def test_growing_season_factor(self):
        dates = cal.date_series(2000, 2002, "noleap")
        f, inset = cal.growing_season_factor(dates, northern_hemisphere=True)
        assert inset.all()
        assert len(f) == 3

        f, inset = cal.growing_season_factor(dates, northern_hemisphere=False)
        assert inset.sum() == 3 * 365 - 181
        np.testing.assert_array_equal(f.labels, ["2000", "2001", "2002"])
        np.testing.assert_array_equal(f.sizes, [365, 365, 184])

    def test_group_reduce(self):
        f = cal.annual_factor(self.dates)
        da = xr.DataArray(np.ones(len(self.dates)), dims="time", coords={"time": self.dates})
        out = cal.group_reduce(da, f, "sum")
        np.testing.assert_array_equal(out, [366, 365])
        np.testing.assert_array_equal(out.annual, ["2000", "2001"])

        out = cal.group_reduce(da, f, lambda grp, dim: grp.count(dim))
        np.testing.assert_array_equal(out, [366, 365])


class TestBaseRange:
    def test_valid(self):
        br = cal.BaseRange.from_years((1961, 1990))
        assert br.nyears == 30
        np.testing.assert_array_equal(br.contains([1960, 1961, 1990, 1991]), [False, True, True, False])
        assert len(br.dates("360_day")) == 30 * 360

    @pytest.mark.parametrize("years", [(1990, 1961), (1961,), "ab", (1961.5, 1990), None])
    def test_invalid(self, years):
        with pytest.raises(InvalidConfiguration):
            cal.BaseRange.from_years(years)
