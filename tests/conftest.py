# noqa: D104
from __future__ import annotations

from copy import deepcopy
from functools import partial

import numpy as np
import pytest

from xclimdex.core.calendar import DateFactor
from xclimdex.core.options import OPTIONS
from xclimdex.testing.helpers import seasonal_cycle, test_timeseries


@pytest.fixture
def random() -> np.random.Generator:
    return np.random.default_rng(seed=list(map(ord, "𝕽𝔞𝖓𝔡𝖔𝔪")))


@pytest.fixture
def timeseries():
    return test_timeseries


@pytest.fixture
def tmax_series():
    """Return maximum temperature time series."""
    return partial(test_timeseries, variable="tmax")


@pytest.fixture
def tmin_series():
    """Return minimum temperature time series."""
    return partial(test_timeseries, variable="tmin")


@pytest.fixture
def tavg_series():
    """Return mean temperature time series."""
    return partial(test_timeseries, variable="tavg")


@pytest.fixture
def prec_series():
    """Return precipitation time series."""
    return partial(test_timeseries, variable="prec")


@pytest.fixture
def cycle():
    return seasonal_cycle


@pytest.fixture
def groups():
    """Return a factor of consecutive groups of the given sizes."""

    def _groups(*sizes, name="annual"):
        labels = np.repeat([f"{2000 + i}" for i in range(len(sizes))], sizes)
        return DateFactor.from_labels(name, labels)

    return _groups


@pytest.fixture(autouse=True)
def reset_options():
    """Restore the options after each test."""
    old = deepcopy(OPTIONS)
    yield
    OPTIONS.clear()
    OPTIONS.update(old)
