from __future__ import annotations

import numpy as np
import pytest

from xclimdex.core.utils import calc_quantiles, nan_quantile


class TestNanQuantile:
    qs = np.array([0.0, 0.1, 0.25, 0.5, 0.9, 1.0])

    def test_type8(self, random):
        arr = random.random(50)
        exp = np.quantile(arr, self.qs, method="median_unbiased")
        np.testing.assert_allclose(nan_quantile(arr.copy(), self.qs), exp)

    def test_median(self):
        np.testing.assert_allclose(nan_quantile(np.arange(1.0, 11.0), [0.5]), [5.5])

    def test_nan(self, random):
        arr = random.random((3, 40))
        arr[0, ::3] = np.nan
        exp = np.nanquantile(arr, self.qs, axis=-1, method="median_unbiased")
        out = nan_quantile(arr.copy(), self.qs, axis=-1)
        assert out.shape == (self.qs.size, 3)
        np.testing.assert_allclose(out, exp)

    def test_degenerate(self):
        arr = np.array([[np.nan, np.nan, np.nan], [np.nan, 4.0, np.nan]])
        out = calc_quantiles(arr, [0.1, 0.9])
        assert out.shape == (2, 2)
        assert np.isnan(out[0]).all()
        np.testing.assert_array_equal(out[1], [4, 4])

    def test_monotonic(self, random):
        arr = random.normal(size=(10, 30))
        out = calc_quantiles(arr, [0.1, 0.25, 0.75, 0.9])
        assert (np.diff(out, axis=-1) >= 0).all()

    def test_copy(self):
        arr = np.array([3.0, 1.0, 2.0])
        calc_quantiles(arr, [0.5])
        np.testing.assert_array_equal(arr, [3, 1, 2])
