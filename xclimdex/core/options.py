"""
Options Submodule
=================

Global or contextual options for xclimdex, similar to xarray.set_options.

Default values are read from the packaged ``defaults.yml`` file.
"""
from __future__ import annotations

import importlib.resources as _resources
from numbers import Integral, Real
from typing import Callable

from boltons.funcutils import wraps
from yaml import safe_load

from ._exceptions import ValidationError, raise_warn_or_log

DATA_VALIDATION = "data_validation"
UNDEFINED_QUANTILE = "undefined_quantile"
SHORT_BASE_PERIOD = "short_base_period"
WINDOW = "window"
MIN_BASE_FRACTION = "min_base_fraction"
BASE_DAYS_THRESHOLD = "base_days_threshold"
MIN_SPELL_LENGTH = "min_spell_length"
WET_DAY_THRESHOLD = "wet_day_threshold"
GSL = "gsl"
QUANTILES = "quantiles"
VARIABLES = "variables"
MAX_MISSING_DAYS = "max_missing_days"

#: Granularities of the date factors, in decreasing length.
GRANULARITIES = ("annual", "halfyear", "seasonal", "monthly")

#: Classes of variables for which thresholds are estimated.
VARIABLE_CLASSES = ("temperature", "precipitation")

_DEFAULTS = safe_load(
    _resources.files("xclimdex.data").joinpath("defaults.yml").read_text()
)

OPTIONS = {
    DATA_VALIDATION: "raise",
    UNDEFINED_QUANTILE: "log",
    SHORT_BASE_PERIOD: "warn",
    **_DEFAULTS,
}

_LOUDNESS_OPTIONS = frozenset(["ignore", "log", "warn", "raise"])


def _is_number(val) -> bool:
    return isinstance(val, Real) and not isinstance(val, bool)


def _valid_max_missing(mopts) -> bool:
    return isinstance(mopts, dict) and all(
        key in GRANULARITIES and _is_number(val) and val >= 0
        for key, val in mopts.items()
    )


def _valid_quantiles(qopts) -> bool:
    return isinstance(qopts, dict) and all(
        key in VARIABLE_CLASSES
        and len(qs) > 0
        and all(_is_number(q) and 0 <= q <= 1 for q in qs)
        for key, qs in qopts.items()
    )


def _valid_variables(vopts) -> bool:
    return isinstance(vopts, dict) and all(
        key in VARIABLE_CLASSES and all(isinstance(v, str) for v in names)
        for key, names in vopts.items()
    )


def _valid_gsl(gopts) -> bool:
    return (
        isinstance(gopts, dict)
        and set(gopts).issubset({"thresh", "min_length"})
        and _is_number(gopts.get("thresh", 0))
        and isinstance(gopts.get("min_length", 1), Integral)
        and gopts.get("min_length", 1) >= 1
    )


_VALIDATORS = {
    DATA_VALIDATION: _LOUDNESS_OPTIONS.__contains__,
    UNDEFINED_QUANTILE: _LOUDNESS_OPTIONS.__contains__,
    SHORT_BASE_PERIOD: _LOUDNESS_OPTIONS.__contains__,
    WINDOW: lambda n: isinstance(n, Integral) and not isinstance(n, bool) and n > 0,
    MIN_BASE_FRACTION: lambda f: _is_number(f) and 0 <= f <= 1,
    BASE_DAYS_THRESHOLD: lambda n: isinstance(n, Integral) and n >= 0,
    MIN_SPELL_LENGTH: lambda n: isinstance(n, Integral) and n >= 1,
    WET_DAY_THRESHOLD: _is_number,
    GSL: _valid_gsl,
    QUANTILES: _valid_quantiles,
    VARIABLES: _valid_variables,
    MAX_MISSING_DAYS: _valid_max_missing,
}


def _merge_into(key):
    def _setter(value):
        OPTIONS[key] = {**OPTIONS[key], **value}

    return _setter


_SETTERS = {key: _merge_into(key) for key in [GSL, QUANTILES, VARIABLES, MAX_MISSING_DAYS]}


def _run_check(func, option, *args, **kwargs):
    """Run function and customize exception handling based on option."""
    try:
        func(*args, **kwargs)
    except ValidationError as err:
        raise_warn_or_log(err, OPTIONS[option], stacklevel=4)


def datacheck(func: Callable) -> Callable:
    """Decorate functions checking data inputs validity."""

    @wraps(func)
    def run_check(*args, **kwargs):
        return _run_check(func, DATA_VALIDATION, *args, **kwargs)

    return run_check


class set_options:
    """Set options for xclimdex in a controlled context.

    Attributes
    ----------
    data_validation : {"ignore", "log", "warn", "raise"}
        What to do with inputs that fail the data checks in :py:mod:`xclimdex.core.datachecks`.
        Default: ``"raise"``.
    undefined_quantile : {"ignore", "log", "warn", "raise"}
        What to do when a day-of-year quantile is left undefined because too few valid samples
        fell in its window. Default: ``"log"``.
    short_base_period : {"ignore", "log", "warn", "raise"}
        What to do when the base period is too short for the in-base bootstrap. Default: ``"warn"``.
    window : int
        Width in days of the window centered on each calendar day. Default: ``5``.
    min_base_fraction : float
        Minimal fraction of valid samples in a window for its quantile to be defined. Default: ``0.1``.
    base_days_threshold : int
        A variable with this many valid days or fewer inside the base period has no thresholds.
        Default: ``359``.
    min_spell_length : int
        Minimal length of the spells counted by the duration indices. Default: ``6``.
    wet_day_threshold : float
        Precipitation amount (mm/day) above or at which a day is wet. Default: ``1``.
    gsl : dict
        Growing season parameters: ``thresh`` (°C) and ``min_length`` (days).
    quantiles : dict
        Quantiles estimated for the "temperature" and "precipitation" classes of variables.
    variables : dict
        Names of the variables in the "temperature" and "precipitation" classes.
    max_missing_days : dict
        Maximal number of missing days allowed in a valid "annual", "halfyear", "seasonal" or
        "monthly" period. Default: ``{"annual": 15, "halfyear": 10, "seasonal": 8, "monthly": 3}``.

    Examples
    --------
    You can use ``set_options`` either as a context manager:

    >>> import xclimdex
    >>> with xclimdex.set_options(max_missing_days={"monthly": 5}):
    ...     ci = xclimdex.ClimdexInput.from_series({"tmax": tmax}, base_range=(1961, 1990))
    ...

    Or to set global options:

    .. code-block:: python

        import xclimdex

        xclimdex.set_options(undefined_quantile="warn")
    """

    def __init__(self, **kwargs):
        self.old = {}
        for k, v in kwargs.items():
            if k not in OPTIONS:
                raise ValueError(
                    "argument name %r is not in the set of valid options %r"
                    % (k, set(OPTIONS))
                )
            if k in _VALIDATORS and not _VALIDATORS[k](v):
                raise ValueError(f"option {k!r} given an invalid value: {v!r}")

            self.old[k] = OPTIONS[k]

        self._update(kwargs)

    def __enter__(self):
        """Context management."""
        return

    def _update(self, kwargs):
        """Update values."""
        for k, v in kwargs.items():
            if k in _SETTERS:
                _SETTERS[k](v)
            else:
                OPTIONS[k] = v

    def __exit__(self, option_type, value, traceback):
        """Context management."""
        self._update(self.old)
