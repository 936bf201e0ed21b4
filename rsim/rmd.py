"""Required Minimum Distribution helpers and the yearly RMD module."""

from __future__ import annotations

from .explain import ActionIntent, CashflowItem
from .ledger import HoldingState
from .pipeline import MonthContext, PathState, SimulationModule
from .spending import qcd_annual_amount
from .tax_data import QCD_AGE, UNIFORM_LIFETIME_DIVISORS


def _age_whole_years(age_years: float) -> int:
    return int(max(0.0, age_years))


def divisor_for_age(age_years: float, table: dict[int, float] | None = None) -> float | None:
    """Uniform Lifetime divisor; past the last row it keeps shrinking by one a year."""
    table = table or UNIFORM_LIFETIME_DIVISORS
    age = _age_whole_years(age_years)
    if age < min(table):
        return None
    if age in table:
        return table[age]
    last_age = max(table)
    if age > last_age:
        return max(1.0, table[last_age] - (age - last_age))
    # A gap inside a sparse table uses the nearest younger row.
    return table[max(key for key in table if key < age)]


def compute_rmd_amount(prior_year_end_balance: float, age_years: float, table: dict[int, float] | None = None) -> float:
    divisor = divisor_for_age(age_years, table)
    if divisor is None or prior_year_end_balance <= 0:
        return 0.0
    return max(0.0, prior_year_end_balance / divisor)


class RmdModule(SimulationModule):
    """Takes the year's RMD in the first month of each simulation year, largest eligible holdings first.

    A planned QCD for the year counts toward the requirement. Withholding is
    paid as tax cash and credited back when the year's tax is settled.
    """

    id = "rmd"

    def _eligible(self, state: PathState, ctx: MonthContext) -> list[HoldingState]:
        types = ctx.strategies.rmd.account_types
        return [holding for holding in state.ledger.holdings if holding.tax_type in types and holding.balance > 0]

    def _required(self, state: PathState, ctx: MonthContext) -> float:
        strategy = ctx.strategies.rmd
        if not strategy.enabled or not ctx.is_start_of_year or ctx.age < strategy.start_age:
            return 0.0
        balance = sum(holding.balance for holding in self._eligible(state, ctx))
        required = compute_rmd_amount(balance, ctx.age, ctx.snapshot.tables.rmd_divisors)
        charitable = ctx.strategies.charitable
        if required > 0 and charitable.use_qcd and charitable.annual_giving > 0 and ctx.age >= QCD_AGE:
            required = max(0.0, required - qcd_annual_amount(charitable.annual_giving, charitable.qcd_annual_amount))
        return required

    def cashflows(self, state: PathState, ctx: MonthContext) -> list[CashflowItem]:
        required = self._required(state, ctx)
        withholding = required * max(0.0, ctx.strategies.rmd.withholding_rate)
        if withholding <= 0:
            return []
        state.month.taxes += withholding
        return [
            CashflowItem(
                id=f"rmd-withholding-{ctx.year_index}",
                label="RMD withholding",
                category="tax",
                cash=-withholding,
                withholding=withholding,
            )
        ]

    def intents(self, state: PathState, ctx: MonthContext) -> list[ActionIntent]:
        required = self._required(state, ctx)
        self.explain.add_input("Age", ctx.age)
        self.explain.add_checkpoint("Required distribution", required)
        if required <= 0:
            return []

        intents: list[ActionIntent] = []
        remaining = required
        priority = 30
        for holding in sorted(self._eligible(state, ctx), key=lambda holding: holding.balance, reverse=True):
            if remaining <= 0:
                break
            amount = min(remaining, holding.balance)
            intents.append(
                ActionIntent(
                    kind="rmd",
                    amount=amount,
                    label="RMD",
                    source_holding_id=holding.id,
                    priority=priority,
                )
            )
            state.year_ledger.rmd_distributions += amount
            remaining -= amount
            priority += 1

        handling = ctx.strategies.rmd.excess_handling
        if handling != "spend":
            target_type = "roth" if handling == "roth" else "taxable"
            targets = sorted(
                state.ledger.holdings_of(target_type), key=lambda holding: holding.balance, reverse=True
            )
            reinvest = (required - remaining) * (1.0 - max(0.0, ctx.strategies.rmd.withholding_rate))
            if targets and reinvest > 0:
                intents.append(
                    ActionIntent(
                        kind="deposit",
                        amount=reinvest,
                        label="Reinvest RMD",
                        target_holding_id=targets[0].id,
                        priority=priority + 5,
                    )
                )
        return intents
