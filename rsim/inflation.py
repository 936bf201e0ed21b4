"""Inflation index construction and point-in-time inflation adjustment."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
import math

from .dates import add_months, months_between, to_monthly_rate
from .random_source import shock_sequence, stream
from .strategies import ReturnModelStrategy
from .tax_data import INFLATION_TYPES

_MIN_ANNUAL_RATE = -0.95


@dataclass(slots=True)
class InflationIndex:
    """Cumulative index per inflation type; ``series[type][0] == 1``."""

    start_date: date
    months: int
    rates: dict[str, float]
    series: dict[str, list[float]] = field(default_factory=dict)

    def offset(self, value: date) -> int | None:
        """Calendar month of ``value`` within the series; the day is ignored."""
        index = (value.year - self.start_date.year) * 12 + value.month - self.start_date.month
        if index < 0 or index > self.months:
            return None
        return index

    def value(self, inflation_type: str, month_index: int) -> float:
        values = self.series.get(inflation_type)
        if not values:
            return 1.0
        return values[max(0, min(month_index, len(values) - 1))]

    def monthly_rate(self, inflation_type: str, month_index: int) -> float:
        values = self.series.get(inflation_type)
        if not values or month_index + 1 >= len(values):
            return to_monthly_rate(self.rates.get(inflation_type, 0.0))
        return values[month_index + 1] / values[month_index] - 1.0

    def inflate(self, amount: float, inflation_type: str, from_date: date | None, to_date: date | None) -> float:
        return apply_inflation(amount, inflation_type, from_date, to_date, rates=self.rates, index=self)


def _compound(monthly_rates: list[float]) -> list[float]:
    values = [1.0]
    for rate in monthly_rates:
        values.append(values[-1] * (1.0 + rate))
    return values


def build_inflation_index(
    return_model: ReturnModelStrategy,
    start_date: date,
    months: int,
    seed: int,
) -> InflationIndex:
    rates = dict(return_model.inflation_assumptions)
    months = max(0, months)
    index = InflationIndex(start_date=start_date, months=months, rates=rates)

    stochastic = return_model.mode == "stochastic" and any(
        return_model.inflation_volatility.get(kind, 0.0) > 0 for kind in INFLATION_TYPES
    )
    if not stochastic:
        for kind in INFLATION_TYPES:
            index.series[kind] = _compound([to_monthly_rate(rates.get(kind, 0.0))] * months)
        return index

    rng = stream(seed, "inflation")
    regime = return_model.sequence_model == "regime"
    persistence = return_model.inflation_persistence
    if regime:
        years = months // 12 + 2
        shocks = shock_sequence(rng, years, persistence)
    else:
        coefficient = math.copysign(abs(persistence) ** (1.0 / 12.0), persistence) if persistence else 0.0
        shocks = shock_sequence(rng, months, coefficient)

    for kind in INFLATION_TYPES:
        annual = rates.get(kind, 0.0)
        std_dev = return_model.inflation_volatility.get(kind, 0.0)
        if kind == "none":
            index.series[kind] = [1.0] * (months + 1)
            continue
        monthly_rates = []
        for month in range(months):
            if regime:
                year_offset = add_months(start_date, month).year - start_date.year
                realized = max(_MIN_ANNUAL_RATE, annual + shocks[year_offset] * std_dev)
                monthly_rates.append(to_monthly_rate(realized))
            else:
                base = to_monthly_rate(annual)
                shocked = base + shocks[month] * std_dev / math.sqrt(12.0)
                monthly_rates.append(max(to_monthly_rate(_MIN_ANNUAL_RATE), shocked))
        index.series[kind] = _compound(monthly_rates)
    return index


def apply_inflation(
    amount: float,
    inflation_type: str,
    from_date: date | None,
    to_date: date | None,
    *,
    rates: dict[str, float],
    index: InflationIndex | None = None,
    rates_by_year: dict[int, float | dict[str, float]] | None = None,
) -> float:
    """Move ``amount`` from ``from_date`` money to ``to_date`` money.

    The precomputed index wins when both dates fall inside its domain.
    Otherwise rates compound month by month (per-year overrides first, then
    the flat assumption). Backward moves divide by the same factor.
    """
    if not math.isfinite(amount) or amount == 0:
        return amount
    if inflation_type == "none" or from_date is None or to_date is None:
        return amount
    if from_date == to_date:
        return amount

    if index is not None and inflation_type in index.series:
        start = index.offset(from_date)
        end = index.offset(to_date)
        if start is not None and end is not None:
            return amount * index.value(inflation_type, end) / index.value(inflation_type, start)

    forward = to_date >= from_date
    first, last = (from_date, to_date) if forward else (to_date, from_date)
    months = months_between(first, last)
    if months <= 0:
        return amount

    base_rate = rates.get(inflation_type, 0.0)
    if rates_by_year is None:
        if base_rate == 0:
            return amount
        factor = (1.0 + base_rate) ** (months / 12.0)
    else:
        factor = 1.0
        cursor = first
        for _ in range(months):
            entry = rates_by_year.get(cursor.year)
            if isinstance(entry, dict):
                annual = entry.get(inflation_type, base_rate)
            elif entry is None:
                annual = base_rate
            else:
                annual = entry
            factor *= 1.0 + to_monthly_rate(annual)
            cursor = add_months(cursor, 1)
    return amount * factor if forward else amount / factor
