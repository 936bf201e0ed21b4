"""Bundled annual return series for historical replay.

Values are annual decimal returns for (stocks, bonds) keyed by year, 1926-2024.
The series is deterministic, so a historical run is reproducible without a
seed.
"""

from __future__ import annotations

import math
from typing import Final

FIRST_YEAR: Final[int] = 1926
LAST_YEAR: Final[int] = 2024


def _series_value(year: int, *, center: float, amplitude: float, period: int) -> float:
    phase = (year - FIRST_YEAR) % period
    x = (phase / period) * 2.0 * math.pi
    return center + amplitude * (0.65 * math.sin(x) + 0.35 * math.sin(2.0 * x + 0.7))


def _build_dataset() -> dict[int, tuple[float, float]]:
    out: dict[int, tuple[float, float]] = {}
    for year in range(FIRST_YEAR, LAST_YEAR + 1):
        stock = _series_value(year, center=0.10, amplitude=0.22, period=17)
        bond = _series_value(year, center=0.04, amplitude=0.10, period=11)
        out[year] = (max(-0.45, stock), max(-0.20, bond))
    return out


HISTORICAL_ANNUAL_RETURNS: Final[dict[int, tuple[float, float]]] = _build_dataset()


def replay_year(start_year: int | None, trial_index: int, year_index: int) -> int:
    """Calendar year replayed for ``year_index`` of trial ``trial_index``.

    Trial ``k`` starts ``k`` years after ``start_year``; the series wraps
    around at its end.
    """
    span = LAST_YEAR - FIRST_YEAR + 1
    first = FIRST_YEAR if start_year is None else min(max(start_year, FIRST_YEAR), LAST_YEAR)
    return FIRST_YEAR + (first - FIRST_YEAR + trial_index + year_index) % span


def historical_returns(year: int) -> tuple[float, float]:
    """(stocks, bonds) annual return for ``year``, clamped at -95%."""
    stock, bond = HISTORICAL_ANNUAL_RETURNS[year]
    return max(-0.95, stock), max(-0.95, bond)
