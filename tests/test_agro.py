from __future__ import annotations

import numpy as np
import pytest

from xclimdex.core._exceptions import InvalidConfiguration
from xclimdex.core.calendar import DateFactor, annual_factor, growing_season_factor
from xclimdex.core.missing import gsl_na_mask
from xclimdex.indices import growing_season_length


def _year(tavg_series, values):
    da = tavg_series(values, start="2001-01-01", calendar="noleap")
    return da, annual_factor(da.indexes["time"])


class TestGrowingSeasonLength:
    def test_start_and_end(self, tavg_series):
        values = np.zeros(365)
        values[100:300] = 10
        da, f = _year(tavg_series, values)
        np.testing.assert_array_equal(growing_season_length(da, f), [200])

    def test_no_start(self, tavg_series):
        da, f = _year(tavg_series, np.zeros(365))
        np.testing.assert_array_equal(growing_season_length(da, f), [0])

    def test_no_end(self, tavg_series):
        values = np.zeros(365)
        values[100:] = 10
        da, f = _year(tavg_series, values)
        np.testing.assert_array_equal(growing_season_length(da, f), [265])

    def test_start_before_july_only(self, tavg_series):
        # July 1st is day 181, the warm spell has only 3 days before
        values = np.zeros(365)
        values[178:250] = 10
        da, f = _year(tavg_series, values)
        np.testing.assert_array_equal(growing_season_length(da, f), [0])

    def test_end_searched_from_july(self, tavg_series):
        values = np.full(365, 10.0)
        values[:20] = 0
        values[120:140] = 0
        values[200:] = 0
        da, f = _year(tavg_series, values)
        np.testing.assert_array_equal(growing_season_length(da, f), [180])

    def test_threshold_inclusive(self, tavg_series):
        values = np.zeros(365)
        values[10:20] = 5
        da, f = _year(tavg_series, values)
        assert growing_season_length(da, f, thresh=5).item() > 0

    def test_missing_values(self, tavg_series):
        values = np.zeros(365)
        values[100:300] = 10
        values[103] = np.nan
        da, f = _year(tavg_series, values)
        np.testing.assert_array_equal(growing_season_length(da, f), [196])

    def test_southern_hemisphere(self, tavg_series):
        da = tavg_series(np.zeros(3 * 365), start="2000-01-01", calendar="noleap")
        warm = ~da.time.dt.month.isin([5, 6, 7, 8])
        da = da.where(~warm, 10.0)
        dates = da.indexes["time"]
        f, inset = growing_season_factor(dates, northern_hemisphere=False)
        mask = gsl_na_mask(da, dates, northern_hemisphere=False)
        sub = da.isel(time=inset)

        out = growing_season_length(sub, f, northern_hemisphere=False)
        np.testing.assert_array_equal(out, [242, 242, np.nan])
        np.testing.assert_array_equal(out.annual, ["2000", "2001", "2002"])
        out = growing_season_length(sub, f, northern_hemisphere=False, mask=mask)
        np.testing.assert_array_equal(out, [242, 242, np.nan])

    def test_invalid_mode(self, tavg_series):
        da, f = _year(tavg_series, np.zeros(365))
        with pytest.raises(InvalidConfiguration):
            growing_season_length(da, f, mode="GSL_min")


class TestAlternateModes:
    @pytest.mark.parametrize("mode,exp", [("GSL_first", 20), ("GSL_max", 30), ("GSL_sum", 50)])
    def test_modes(self, tavg_series, mode, exp):
        values = np.array([0] * 10 + [10] * 20 + [0] * 10 + [10] * 30 + [0] * 30, dtype=float)
        da = tavg_series(values, start="2001-01-01")
        f = DateFactor.from_labels("annual", ["2001"] * values.size)
        with pytest.warns(UserWarning, match="experimental"):
            out = growing_season_length(da, f, mode=mode)
        np.testing.assert_array_equal(out, [exp])

    def test_short_gaps_filled(self, tavg_series):
        values = np.array([0] * 10 + [10] * 20 + [0] * 3 + [10] * 30 + [0] * 30, dtype=float)
        da = tavg_series(values, start="2001-01-01")
        f = DateFactor.from_labels("annual", ["2001"] * values.size)
        with pytest.warns(UserWarning):
            out = growing_season_length(da, f, mode="GSL_max")
        np.testing.assert_array_equal(out, [53])

    @pytest.mark.parametrize(
        "mode,exp", [("GSL_first", [65, 35]), ("GSL_max", [65, 35]), ("GSL_sum", [65, 55])]
    )
    def test_spell_across_years(self, tavg_series, mode, exp):
        values = np.zeros(2 * 365)
        values[300:400] = 10
        values[500:520] = 10
        da = tavg_series(values, start="2001-01-01", calendar="noleap")
        f = annual_factor(da.indexes["time"])
        with pytest.warns(UserWarning):
            out = growing_season_length(da, f, mode=mode)
        np.testing.assert_array_equal(out, exp)

    @pytest.mark.parametrize("mode", ["GSL_first", "GSL_max", "GSL_sum"])
    def test_always_growing(self, tavg_series, mode):
        da = tavg_series(np.full(3 * 365, 10.0), start="2001-01-01", calendar="noleap")
        f = annual_factor(da.indexes["time"])
        with pytest.warns(UserWarning):
            out = growing_season_length(da, f, mode=mode)
        np.testing.assert_array_equal(out, [365, 365, 365])
