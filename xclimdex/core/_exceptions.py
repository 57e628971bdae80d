"""Exceptions and error handling utilities."""

from __future__ import annotations

import logging
import warnings

logger = logging.getLogger("xclimdex")

__all__ = [
    "CalendarMismatch",
    "InsufficientBaseData",
    "InvalidConfiguration",
    "MissingVariableError",
    "UndefinedQuantile",
    "ValidationError",
    "raise_warn_or_log",
]


class ValidationError(ValueError):
    """Error raised when inputs fail the validation tests."""

    @property
    def msg(self):  # numpydoc ignore=GL08
        return self.args[0]


class CalendarMismatch(ValidationError):
    """Error raised when input series do not share a single calendar."""


class InsufficientBaseData(ValidationError):
    """Error raised when a variable has too few observations inside the base period to estimate quantiles."""


class InvalidConfiguration(ValidationError):
    """Error raised when a parameter (tolerances, base range, window, quantiles, comparator, ...) is malformed."""


class UndefinedQuantile(ValidationError):
    """Condition signaled when a quantile has too few valid samples in its window.

    It is not raised by default: the quantile is set to NaN and the condition is reported
    according to the ``undefined_quantile`` option.
    """


class MissingVariableError(ValueError):
    """Error raised when a variable that was never supplied is requested."""


def raise_warn_or_log(
    err: Exception,
    mode: str,
    msg: str | None = None,
    err_type: type = ValueError,
    stacklevel: int = 1,
):
    """
    Raise, warn or log an error according.

    Parameters
    ----------
    err : Exception
        An error.
    mode : {'ignore', 'log', 'warn', 'raise'}
        What to do with the error.
    msg : str, optional
        The string used when logging or warning.
        Defaults to the `msg` attr of the error (if present) or to "Failed with <err>".
    err_type : type
        The type of error/exception to raise.
    stacklevel : int
        Stacklevel when warning. Relative to the call of this function (1 is added).
    """
    message = msg or getattr(err, "msg", f"Failed with {err!r}.")
    if mode == "ignore":
        pass
    elif mode == "log":
        logger.info(message)
    elif mode == "warn":
        warnings.warn(message, stacklevel=stacklevel + 1)
    else:  # mode == "raise"
        raise err from err_type(message)
