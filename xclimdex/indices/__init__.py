"""
Indices Library
===============

Stateless computations of climate extremes indices from daily series and their grouping factors.
"""
from __future__ import annotations

from ._agro import *
from ._threshold import *
from .generic import *
from .run_length import (
    select_blocks_at_least,
    series_lengths_at_ends,
    spell_length_max,
    threshold_exceedance_duration,
)
