"""Healthcare premiums, IRMAA surcharges and long-term care costs."""

from __future__ import annotations

from datetime import date

from .explain import CashflowItem
from .pipeline import MonthContext, PathState, SimulationModule
from .schema import IrmaaTable, SimulationSnapshot
from .tax import normalize_filing_status, select_by_year
from .tax_data import MEDICARE_AGE


def select_irmaa_table(tables: list[IrmaaTable], year: int, filing_status: str) -> IrmaaTable | None:
    status = normalize_filing_status(filing_status)
    matching = [table for table in tables if table.filing_status == status]
    return select_by_year(matching, year)


def irmaa_surcharge(table: IrmaaTable | None, magi: float) -> float:
    """Combined Part B and Part D monthly surcharge for ``magi``."""
    if table is None:
        return 0.0
    for tier in table.tiers:
        if tier.max_magi is None or magi <= tier.max_magi:
            return tier.part_b_monthly + tier.part_d_monthly
    return 0.0


def employer_coverage_end(snapshot: SimulationSnapshot) -> tuple[bool, date | None]:
    """(open-ended coverage, last covered date) across insured work periods."""
    open_ended = False
    last: date | None = None
    for period in snapshot.work_periods:
        if not period.includes_health_insurance:
            continue
        if period.end_date is None:
            open_ended = True
        elif last is None or period.end_date > last:
            last = period.end_date
    return open_ended, last


class HealthcareModule(SimulationModule):
    id = "healthcare"

    def __init__(self, snapshot: SimulationSnapshot) -> None:
        super().__init__()
        self.snapshot = snapshot
        self.open_ended, self.covered_until = employer_coverage_end(snapshot)

    def _premiums(self, state: PathState, ctx: MonthContext) -> float:
        if self.open_ended or (self.covered_until is not None and ctx.date <= self.covered_until):
            return 0.0
        strategy = ctx.strategies.healthcare
        medicare = ctx.age >= MEDICARE_AGE
        if medicare:
            base = strategy.medicare_part_b_monthly + strategy.medicare_part_d_monthly + strategy.medigap_monthly
        else:
            base = strategy.pre_medicare_monthly
        if base <= 0:
            return 0.0
        total = ctx.inflate(base, strategy.inflation_type, ctx.start_date)

        declining = strategy.declining_health
        if declining.enabled and ctx.age >= declining.start_age:
            total *= (1.0 + declining.annual_increase_pct) ** (ctx.age - declining.start_age)

        if medicare and strategy.apply_irmaa:
            table = select_irmaa_table(self.snapshot.tables.irmaa_tables, ctx.date.year, ctx.strategies.tax.filing_status)
            lookback = table.lookback_years if table else 0
            magi = state.magi_history.get(ctx.year_index - lookback)
            surcharge = irmaa_surcharge(table, magi) if magi is not None else 0.0
            self.explain.add_input("IRMAA lookback MAGI", magi)
            self.explain.add_checkpoint("IRMAA surcharge", surcharge)
            total += surcharge
        return total

    def _long_term_care(self, ctx: MonthContext) -> float:
        ltc = ctx.strategies.healthcare.long_term_care
        if not ltc.enabled or ltc.monthly_cost <= 0:
            return 0.0
        if not (ltc.start_age <= ctx.age < ltc.start_age + ltc.duration_years):
            return 0.0
        return ctx.inflate(ltc.monthly_cost, ltc.inflation_type, ctx.start_date)

    def cashflows(self, state: PathState, ctx: MonthContext) -> list[CashflowItem]:
        items: list[CashflowItem] = []
        premiums = self._premiums(state, ctx)
        if premiums > 0:
            items.append(
                CashflowItem(id=f"healthcare-{ctx.month_index}", label="Healthcare", category="healthcare", cash=-premiums)
            )
        care = self._long_term_care(ctx)
        if care > 0:
            items.append(
                CashflowItem(
                    id=f"long-term-care-{ctx.month_index}",
                    label="Long-term care",
                    category="healthcare",
                    cash=-care,
                )
            )
        total = premiums + care
        state.month.medical_spend += total
        state.month.spending += total
        self.explain.add_checkpoint("Healthcare total", total)
        return items
