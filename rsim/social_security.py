"""Social Security benefit estimation from an earnings record."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
import logging

from .dates import age_in_months, is_within_range
from .schema import EarningsRecord, Person, ReferenceTables, RetirementAdjustment, SpendingItem, WorkPeriod

logger = logging.getLogger(__name__)

TOP_YEARS = 35
MAX_CLAIM_AGE_MONTHS = 70 * 12
INDEXING_AGE = 60
ELIGIBILITY_AGE = 62
PIA_RATES = (0.90, 0.32, 0.15)


@dataclass(slots=True)
class SsaEstimate:
    monthly_benefit: float
    claim_year: int
    claim_age_months: int
    aime: float
    pia: float
    nra_months: int
    adjustment_factor: float
    indexed_earnings: dict[int, float] = field(default_factory=dict)
    top_years: list[int] = field(default_factory=list)
    clamped_to_table: list[str] = field(default_factory=list)


def _table_value(table: dict[int, float], year: int, cpi_rate: float) -> tuple[float, bool]:
    """Exact, else extrapolated at CPI past the end, else clamped to the nearest entry."""
    if year in table:
        return table[year], False
    first, last = min(table), max(table)
    if year > last:
        return table[last] * (1.0 + cpi_rate) ** (year - last), True
    if year < first:
        return table[first], True
    prior = max(y for y in table if y < year)
    return table[prior], False


def _bend_points(tables: ReferenceTables, year: int, cpi_rate: float) -> tuple[tuple[float, float], bool]:
    points = tables.bend_points
    if year in points:
        return points[year], False
    first, last = min(points), max(points)
    if year > last:
        factor = (1.0 + cpi_rate) ** (year - last)
        return (points[last][0] * factor, points[last][1] * factor), True
    if year < first:
        return points[first], True
    prior = max(y for y in points if y < year)
    return points[prior], False


def _adjustment_row(rows: list[RetirementAdjustment], birth_year: int) -> tuple[RetirementAdjustment | None, bool]:
    if not rows:
        return None, False
    for row in rows:
        if row.birth_year_start <= birth_year <= row.birth_year_end:
            return row, False
    ordered = sorted(rows, key=lambda row: row.birth_year_start)
    if birth_year < ordered[0].birth_year_start:
        return ordered[0], True
    return ordered[-1], True


def _months_active_in_year(start: date | None, end: date | None, year: int, cutoff: date | None = None) -> int:
    months = 0
    for month in range(1, 13):
        first_of_month = date(year, month, 1)
        if cutoff is not None and first_of_month >= cutoff:
            continue
        next_month = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
        if start is not None and next_month <= start:
            continue
        if end is not None and first_of_month >= end:
            continue
        months += 1
    return months


def project_future_earnings(
    work_periods: list[WorkPeriod],
    spending_items: list[SpendingItem],
    *,
    base_year: int,
    last_reported_year: int | None,
    claim_date: date,
    cpi_rate: float,
) -> dict[int, tuple[float, int]]:
    """Covered earnings per future year as (amount, months worked)."""
    gross: dict[int, float] = {}
    months_worked: dict[int, int] = {}
    for period in work_periods:
        if period.end_date is None:
            last_year = claim_date.year
        else:
            last_year = min(period.end_date.year, claim_date.year)
        if period.start_date is not None:
            first_year = period.start_date.year
        elif last_reported_year is not None:
            first_year = last_reported_year + 1
        else:
            first_year = base_year
        for year in range(first_year, last_year + 1):
            months = _months_active_in_year(period.start_date, period.end_date, year, cutoff=claim_date)
            if months == 0:
                continue
            growth = (1.0 + cpi_rate) ** (year - base_year)
            gross[year] = gross.get(year, 0.0) + (period.salary + period.bonus) * growth * months / 12.0
            months_worked[year] = min(12, months_worked.get(year, 0) + months)

    pre_tax = [item for item in spending_items if item.is_pre_tax]
    projected: dict[int, tuple[float, int]] = {}
    for year, amount in gross.items():
        if last_reported_year is not None and year <= last_reported_year:
            continue
        worked = months_worked[year]
        deductions = 0.0
        for item in pre_tax:
            active = _months_active_in_year(item.start_date, item.end_date, year, cutoff=claim_date)
            if active <= 0:
                continue
            item_start_year = item.start_date.year if item.start_date else base_year
            annual = (item.need_amount + item.want_amount) * 12.0 * (1.0 + cpi_rate) ** max(0, year - item_start_year)
            deductions += annual * min(active, worked) / 12.0
        projected[year] = (max(0.0, amount - deductions), worked)
    return projected


def claiming_adjustment(claim_age_months: int, nra_months: int, delayed_credit_per_year: float) -> float:
    diff = claim_age_months - nra_months
    if diff == 0:
        return 1.0
    if diff < 0:
        early = abs(diff)
        first_36 = min(36, early)
        additional = max(0, early - 36)
        reduction = first_36 * (5.0 / 900.0) + additional * (5.0 / 1200.0)
        return max(0.0, 1.0 - reduction)
    return 1.0 + diff * (delayed_credit_per_year / 12.0)


def primary_insurance_amount(aime: float, bend_points: tuple[float, float]) -> float:
    first, second = bend_points
    pieces = (
        min(aime, first),
        min(max(aime - first, 0.0), second - first),
        max(aime - second, 0.0),
    )
    return sum(piece * rate for piece, rate in zip(pieces, PIA_RATES))


def estimate_benefit(
    person: Person,
    claim_date: date,
    earnings: list[EarningsRecord],
    tables: ReferenceTables,
    cpi_rate: float,
    *,
    work_periods: list[WorkPeriod] | None = None,
    spending_items: list[SpendingItem] | None = None,
    base_year: int | None = None,
) -> SsaEstimate:
    """Estimate the monthly benefit payable from ``claim_date``."""
    birth_year = person.date_of_birth.year
    claim_year = claim_date.year
    claim_age = min(age_in_months(person.date_of_birth, claim_date), MAX_CLAIM_AGE_MONTHS)
    clamped: list[str] = []

    by_year: dict[int, float] = {}
    months_before_claim = claim_date.month - 1 if claim_date.day == 1 else claim_date.month
    for record in earnings:
        if record.person_id != person.id or record.year > claim_year:
            continue
        months = min(record.months, months_before_claim) if record.year == claim_year else record.months
        by_year[record.year] = record.amount * max(0.0, min(1.0, months / 12.0))

    if work_periods:
        last_reported = max(by_year) if by_year else None
        projected = project_future_earnings(
            [period for period in work_periods if period.person_id == person.id],
            spending_items or [],
            base_year=base_year if base_year is not None else claim_year,
            last_reported_year=last_reported,
            claim_date=claim_date,
            cpi_rate=cpi_rate,
        )
        for year, (amount, _) in projected.items():
            by_year[year] = amount

    indexing_year = birth_year + INDEXING_AGE
    awi_base, base_clamped = _table_value(tables.wage_index, indexing_year, cpi_rate)
    if base_clamped:
        clamped.append("wage_index")

    indexed: dict[int, float] = {}
    for year, amount in by_year.items():
        if year >= indexing_year:
            indexed[year] = amount
            continue
        awi_year, _ = _table_value(tables.wage_index, year, cpi_rate)
        indexed[year] = amount * (awi_base / awi_year) if awi_year else 0.0

    top = sorted(indexed, key=lambda year: indexed[year], reverse=True)[:TOP_YEARS]
    aime = sum(indexed[year] for year in top) / (TOP_YEARS * 12)

    bend, bend_clamped = _bend_points(tables, birth_year + ELIGIBILITY_AGE, cpi_rate)
    if bend_clamped:
        clamped.append("bend_points")
    pia = primary_insurance_amount(aime, bend)

    row, row_clamped = _adjustment_row(tables.retirement_adjustments, birth_year)
    if row_clamped:
        clamped.append("retirement_adjustments")
    nra_months = row.normal_retirement_age_months if row else 67 * 12
    delayed_credit = row.delayed_credit_per_year if row else 0.0
    factor = claiming_adjustment(claim_age, nra_months, delayed_credit)

    if clamped:
        logger.debug("SSA estimate for %s clamped to table bounds: %s", person.id, ", ".join(clamped))

    return SsaEstimate(
        monthly_benefit=max(0.0, pia * factor),
        claim_year=claim_year,
        claim_age_months=claim_age,
        aime=aime,
        pia=pia,
        nra_months=nra_months,
        adjustment_factor=factor,
        indexed_earnings=indexed,
        top_years=sorted(top),
        clamped_to_table=clamped,
    )


def benefit_for_month(estimate: SsaEstimate, claim_date: date, current: date, cpi_rate: float) -> float:
    """Benefit paid in ``current``, with cost-of-living growth since the claim."""
    if not is_within_range(current, claim_date, None):
        return 0.0
    months = age_in_months(claim_date, current)
    return estimate.monthly_benefit * (1.0 + cpi_rate) ** (months / 12.0)
