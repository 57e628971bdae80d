from __future__ import annotations

import logging

import numpy as np
import pytest

from xclimdex import set_options
from xclimdex.core._exceptions import ValidationError
from xclimdex.core.datachecks import check_daily, check_time
from xclimdex.core.options import (
    GSL,
    MAX_MISSING_DAYS,
    OPTIONS,
    QUANTILES,
    WINDOW,
    datacheck,
)


@pytest.mark.parametrize(
    "option,value",
    [
        ("data_validation", "log"),
        ("data_validation", "raise"),
        ("undefined_quantile", "warn"),
        ("short_base_period", "ignore"),
        ("window", 7),
        ("min_base_fraction", 0.5),
        ("base_days_threshold", 100),
        ("min_spell_length", 3),
        ("wet_day_threshold", 0.1),
    ],
)
def test_set_options_valid(option, value):
    old = OPTIONS[option]
    with set_options(**{option: value}):
        assert OPTIONS[option] == value
    assert OPTIONS[option] == old


@pytest.mark.parametrize(
    "option,value",
    [
        ("data_validation", True),
        ("undefined_quantile", "shout"),
        ("window", 0),
        ("window", 2.5),
        ("min_base_fraction", 2),
        ("min_spell_length", 0),
        ("wet_day_threshold", "1mm"),
        ("gsl", {"thresh": 5, "min_length": 0}),
        ("gsl", {"start": 1}),
        ("quantiles", {"wind": [0.5]}),
        ("quantiles", {"temperature": [1.5]}),
        ("quantiles", {"temperature": []}),
        ("variables", {"temperature": [1]}),
        ("max_missing_days", {"weekly": 3}),
        ("max_missing_days", {"monthly": -1}),
    ],
)
def test_set_options_invalid(option, value):
    old = OPTIONS[option]
    with pytest.raises(ValueError):
        set_options(**{option: value})
    assert OPTIONS[option] == old


def test_set_options_unknown():
    with pytest.raises(ValueError, match="not in the set of valid options"):
        set_options(spam=1)


def test_set_options_merge():
    with set_options(max_missing_days={"monthly": 5}, gsl={"thresh": 6.0}):
        assert OPTIONS[MAX_MISSING_DAYS] == {
            "annual": 15,
            "halfyear": 10,
            "seasonal": 8,
            "monthly": 5,
        }
        assert OPTIONS[GSL] == {"thresh": 6.0, "min_length": 6}
    assert OPTIONS[MAX_MISSING_DAYS]["monthly"] == 3
    assert OPTIONS[GSL]["thresh"] == 5


def test_set_options_global():
    set_options(window=7, max_missing_days={"monthly": 5})
    assert OPTIONS[WINDOW] == 7
    assert OPTIONS[MAX_MISSING_DAYS]["monthly"] == 5
    assert OPTIONS[MAX_MISSING_DAYS]["annual"] == 15


def test_defaults():
    assert OPTIONS[WINDOW] == 5
    np.testing.assert_allclose(OPTIONS[QUANTILES]["temperature"], [0.1, 0.25, 0.75, 0.9])
    np.testing.assert_allclose(OPTIONS[QUANTILES]["precipitation"], [0.25, 0.75, 0.95, 0.99])


class TestDataCheck:
    @staticmethod
    @datacheck
    def _fail():
        raise ValidationError("bad data")

    def test_raise(self):
        with pytest.raises(ValidationError, match="bad data"):
            self._fail()

    def test_warn(self):
        with set_options(data_validation="warn"):
            with pytest.warns(UserWarning, match="bad data"):
                self._fail()

    def test_log(self, caplog):
        with set_options(data_validation="log"), caplog.at_level(logging.INFO, logger="xclimdex"):
            self._fail()
        assert "bad data" in caplog.text

    def test_ignore(self, recwarn):
        with set_options(data_validation="ignore"):
            self._fail()
        assert len(recwarn) == 0


class TestChecks:
    def test_check_time(self, tmax_series):
        da = tmax_series(np.arange(5))
        check_time(da)
        with pytest.raises(ValidationError, match="monotonically"):
            check_time(da.isel(time=[1, 0, 2]))
        with pytest.raises(ValidationError, match="coordinate"):
            check_time(da.rename(time="t"))

    def test_check_daily(self, tmax_series):
        check_daily(tmax_series(np.arange(5)))
        check_daily(tmax_series(np.arange(5)).isel(time=[0, 1, 3, 4]))
        with pytest.raises(ValidationError, match="not daily"):
            check_daily(tmax_series(np.arange(5), freq="h"))
