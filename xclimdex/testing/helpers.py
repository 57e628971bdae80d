"""Helper functions to build synthetic daily series for testing."""
from __future__ import annotations

import numpy as np
import xarray as xr

__all__ = ["seasonal_cycle", "test_timeseries"]

VARIABLES = {
    "tmax": {"units": "degC", "standard_name": "air_temperature", "cell_methods": "time: maximum within days"},
    "tmin": {"units": "degC", "standard_name": "air_temperature", "cell_methods": "time: minimum within days"},
    "tavg": {"units": "degC", "standard_name": "air_temperature", "cell_methods": "time: mean within days"},
    "prec": {"units": "mm/day", "standard_name": "precipitation_amount", "cell_methods": "time: sum within days"},
}


def test_timeseries(
    values,
    variable: str = "tavg",
    start: str = "2000-01-01",
    calendar: str = "standard",
    freq: str = "D",
) -> xr.DataArray:
    """Create a daily series starting on `start`, in the given calendar."""
    coords = xr.date_range(
        start,
        periods=len(values),
        freq=freq,
        calendar=calendar,
        use_cftime=None if calendar == "standard" else True,
    )
    return xr.DataArray(
        np.asarray(values, dtype=float),
        coords=[coords],
        dims="time",
        name=variable,
        attrs=dict(VARIABLES.get(variable, {})),
    )


def seasonal_cycle(
    nyears: int,
    dpy: int = 365,
    mean: float = 10.0,
    amplitude: float = 10.0,
    noise: float = 0.0,
    seed: int = 0,
) -> np.ndarray:
    """Sine annual cycle peaking in July, with optional gaussian noise."""
    rng = np.random.default_rng(seed)
    doy = np.tile(np.arange(dpy), nyears)
    values = mean - amplitude * np.cos(2 * np.pi * (doy + 10) / dpy)
    return values + rng.normal(0, noise, values.size) if noise else values
