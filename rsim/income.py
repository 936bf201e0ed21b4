"""Income modules: future work, Social Security, pensions, one-off events."""

from __future__ import annotations

from datetime import date
import logging

from .dates import is_same_month, is_within_range
from .explain import ActionIntent, CashflowItem
from .pipeline import MonthContext, PathState, SimulationModule
from .schema import SimulationSnapshot, WorkPeriod
from .social_security import SsaEstimate, benefit_for_month, estimate_benefit
from .tax import compute_payroll_taxes

logger = logging.getLogger(__name__)


def tax_character(item: CashflowItem, amount: float, treatment: str) -> CashflowItem:
    """Tag ``item`` with the tax field named by ``treatment``."""
    if treatment == "ordinary":
        item.ordinary_income = amount
    elif treatment == "capital_gains":
        item.capital_gains = amount
    elif treatment == "tax_exempt":
        item.tax_exempt_income = amount
    return item


def active_work_periods(snapshot: SimulationSnapshot, on: date) -> list[WorkPeriod]:
    return [period for period in snapshot.work_periods if is_within_range(on, period.start_date, period.end_date)]


class FutureWorkModule(SimulationModule):
    """Salary and bonus, payroll tax, 401k deferral plus match, HSA contributions.

    The employee is assumed to defer exactly enough salary to earn the full
    employer match.
    """

    id = "future-work"

    def __init__(self, snapshot: SimulationSnapshot) -> None:
        super().__init__()
        self.snapshot = snapshot
        self.holding_ids = {holding.id for holding in snapshot.holdings}

    def cashflows(self, state: PathState, ctx: MonthContext) -> list[CashflowItem]:
        items: list[CashflowItem] = []
        filing_status = ctx.strategies.tax.filing_status
        for period in active_work_periods(self.snapshot, ctx.date):
            income = period.salary / 12 + period.bonus / 12
            if income > 0:
                items.append(
                    CashflowItem(
                        id=f"{period.id}-{ctx.month_index}-income",
                        label=period.name,
                        category="work",
                        cash=income,
                        ordinary_income=income,
                        earned_income=income,
                    )
                )
                ytd = state.ytd_wages.get(period.person_id, 0.0)
                payroll = compute_payroll_taxes(income, ytd, filing_status, ctx.date.year)
                state.ytd_wages[period.person_id] = ytd + income
                state.year_ledger.payroll_tax += payroll.total
                if payroll.total > 0:
                    items.append(
                        CashflowItem(
                            id=f"{period.id}-{ctx.month_index}-payroll",
                            label=f"{period.name} payroll tax",
                            category="payroll_tax",
                            cash=-payroll.total,
                        )
                    )

            employee = self._employee_deferral(period)
            if employee > 0 and period.retirement_holding_id in self.holding_ids:
                items.append(
                    CashflowItem(
                        id=f"{period.id}-{ctx.month_index}-deferral",
                        label=f"{period.name} 401k deferral",
                        category="work",
                        cash=-employee,
                        deductions=employee,
                    )
                )
            hsa = period.hsa_annual_contribution / 12
            if hsa > 0 and period.hsa_holding_id in self.holding_ids:
                items.append(
                    CashflowItem(
                        id=f"{period.id}-{ctx.month_index}-hsa",
                        label=f"{period.name} HSA contribution",
                        category="work",
                        cash=-hsa,
                        deductions=hsa,
                    )
                )
        state.month.income += sum(item.cash for item in items if item.category == "work" and item.cash > 0)
        return items

    def intents(self, state: PathState, ctx: MonthContext) -> list[ActionIntent]:
        intents: list[ActionIntent] = []
        for index, period in enumerate(active_work_periods(self.snapshot, ctx.date)):
            employee = self._employee_deferral(period)
            total = employee + employee * period.match_ratio
            if total > 0 and period.retirement_holding_id in self.holding_ids:
                intents.append(
                    ActionIntent(
                        kind="deposit",
                        amount=total,
                        label=f"{period.name} 401k contribution",
                        target_holding_id=period.retirement_holding_id,
                        from_cash=False,
                        priority=10 + index,
                    )
                )
            hsa = period.hsa_annual_contribution / 12
            if hsa > 0 and period.hsa_holding_id in self.holding_ids:
                intents.append(
                    ActionIntent(
                        kind="deposit",
                        amount=hsa,
                        label=f"{period.name} HSA contribution",
                        target_holding_id=period.hsa_holding_id,
                        from_cash=False,
                        priority=10 + index,
                    )
                )
        state.month.contributions += sum(intent.amount for intent in intents)
        return intents

    @staticmethod
    def _employee_deferral(period: WorkPeriod) -> float:
        return period.salary * period.match_pct_cap / 12


class SocialSecurityModule(SimulationModule):
    id = "social-security"

    def __init__(self, snapshot: SimulationSnapshot, start_date: date, cpi_rate: float) -> None:
        super().__init__()
        people = {person.id: person for person in snapshot.people}
        self.cpi_rate = cpi_rate
        self.benefits: list[tuple[str, str, date, SsaEstimate]] = []
        for strategy in snapshot.social_security:
            person = people.get(strategy.person_id)
            if person is None:
                logger.warning("social security strategy references unknown person '%s'", strategy.person_id)
                continue
            estimate = estimate_benefit(
                person,
                strategy.claim_date,
                snapshot.earnings,
                snapshot.tables,
                cpi_rate,
                work_periods=snapshot.work_periods,
                spending_items=snapshot.spending_items,
                base_year=start_date.year,
            )
            self.benefits.append((person.id, person.name or person.id, strategy.claim_date, estimate))

    def cashflows(self, state: PathState, ctx: MonthContext) -> list[CashflowItem]:
        items: list[CashflowItem] = []
        for person_id, name, claim_date, estimate in self.benefits:
            if person_id in state.deceased:
                continue
            amount = benefit_for_month(estimate, claim_date, ctx.date, self.cpi_rate)
            if amount <= 0:
                continue
            items.append(
                CashflowItem(
                    id=f"{person_id}-{ctx.month_index}-ssa",
                    label=f"{name} Social Security",
                    category="social_security",
                    cash=amount,
                    social_security_income=amount,
                )
            )
        total = sum(item.cash for item in items)
        state.month.income += total
        self.explain.add_input("CPI rate", self.cpi_rate)
        self.explain.add_checkpoint("Benefit total", total)
        return items


class PensionModule(SimulationModule):
    id = "pensions"

    def cashflows(self, state: PathState, ctx: MonthContext) -> list[CashflowItem]:
        items: list[CashflowItem] = []
        for index, pension in enumerate(ctx.strategies.pensions):
            if not is_within_range(ctx.date, pension.start_date, pension.end_date):
                continue
            amount = ctx.inflate(pension.monthly_amount, pension.inflation_type, pension.start_date)
            if amount <= 0:
                continue
            item = CashflowItem(
                id=f"pension-{index}-{ctx.month_index}",
                label=pension.name,
                category="pension",
                cash=amount,
            )
            items.append(tax_character(item, amount, pension.tax_treatment))
        state.month.income += sum(item.cash for item in items)
        return items


class EventModule(SimulationModule):
    id = "events"

    def cashflows(self, state: PathState, ctx: MonthContext) -> list[CashflowItem]:
        items: list[CashflowItem] = []
        for index, event in enumerate(ctx.strategies.events):
            if not is_same_month(ctx.date, event.date):
                continue
            item = CashflowItem(
                id=f"event-{index}-{ctx.month_index}",
                label=event.name,
                category="event",
                cash=event.amount,
            )
            if event.amount > 0:
                tax_character(item, event.amount, event.tax_treatment)
                state.month.income += event.amount
            else:
                state.month.spending -= event.amount
            items.append(item)
        return items
