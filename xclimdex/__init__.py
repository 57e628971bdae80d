"""Climate extremes indices toolkit based on Xarray."""

from __future__ import annotations

from xclimdex import indices  # noqa
from xclimdex.core.climdex_input import ClimdexInput  # noqa
from xclimdex.core.options import set_options  # noqa

__author__ = """xclimdex Developers"""
__version__ = "0.1.0"
