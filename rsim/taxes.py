"""Year-end income tax settlement."""

from __future__ import annotations

import logging

from .dates import add_months
from .explain import ActionIntent, CashflowItem
from .pipeline import MonthContext, PathState, SimulationModule
from .schema import TaxPolicy
from .tax import TaxComputation, compute_tax, select_tax_policy
from .withdrawals import plan_withdrawals

logger = logging.getLogger(__name__)


def policy_for_year(ctx: MonthContext) -> TaxPolicy | None:
    """Policy named by the tax strategy, indexed at CPI to the current year when enabled."""
    tax = ctx.strategies.tax
    policies = ctx.snapshot.tables.tax_policies
    policy = select_tax_policy(policies, tax.policy_year or ctx.date.year, tax.filing_status)
    if policy is None or not tax.index_brackets or ctx.date.year <= policy.year:
        return policy
    return select_tax_policy([policy], ctx.date.year, policy.filing_status, ctx.cpi_rate)


def compute_year_tax(state: PathState, ctx: MonthContext) -> TaxComputation | None:
    policy = policy_for_year(ctx)
    if policy is None:
        logger.warning("no tax policy for %s in %d; year left untaxed", ctx.strategies.tax.filing_status, ctx.date.year)
        return None
    tax = ctx.strategies.tax
    ledger = state.year_ledger
    return compute_tax(
        ordinary_income=ledger.ordinary_income,
        capital_gains=ledger.capital_gains,
        deductions=ledger.deductions,
        tax_exempt_income=ledger.tax_exempt_income,
        policy=policy,
        filing_status=tax.filing_status,
        state_code=tax.state_code,
        state_tax_rate=tax.state_tax_rate,
        use_standard_deduction=tax.use_standard_deduction,
        apply_capital_gains_rates=tax.apply_capital_gains_rates,
        social_security_benefits=ledger.social_security_income,
        niit_enabled=tax.niit_enabled,
    )


def settle_year(state: PathState, ctx: MonthContext) -> CashflowItem | None:
    """Tax the open year, record its MAGI, and roll to a fresh year ledger.

    Returns the payment item (negative cash) or a refund when withholding
    exceeded the bill; ``None`` when nothing is owed either way.
    """
    result = compute_year_tax(state, ctx)
    ledger = state.year_ledger
    if result is not None:
        ledger.tax_owed = result.tax_owed
        ledger.state_tax = result.state_tax
        ledger.magi = result.magi
        state.magi_history[ctx.year_index] = result.magi
    due = ledger.tax_owed + ledger.penalties - ledger.withholding
    logger.debug(
        "year %d settled: owed %.2f, penalties %.2f, withheld %.2f", ledger.year, ledger.tax_owed, ledger.penalties, ledger.withholding
    )
    state.roll_year(add_months(ctx.date, 1).year)
    if abs(due) < 1e-9:
        return None
    state.month.taxes += due
    return CashflowItem(
        id=f"tax-{ctx.year_index}",
        label="Income tax" if due > 0 else "Tax refund",
        category="tax",
        cash=-due,
    )


class TaxesModule(SimulationModule):
    """Settles the year's tax in December (or the last simulated month)."""

    id = "taxes"
    covers_deficit = True

    def cashflows(self, state: PathState, ctx: MonthContext) -> list[CashflowItem]:
        if not ctx.is_end_of_year:
            return []
        ledger = state.year_ledger
        self.explain.add_input("Ordinary income", ledger.ordinary_income)
        self.explain.add_input("Capital gains", ledger.capital_gains)
        self.explain.add_input("Deductions", ledger.deductions)
        self.explain.add_input("Social Security", ledger.social_security_income)
        item = settle_year(state, ctx)
        closed = state.closed_years[-1]
        self.explain.add_checkpoint("Tax owed", closed.tax_owed)
        self.explain.add_checkpoint("MAGI", closed.magi)
        return [item] if item is not None else []

    def intents(self, state: PathState, ctx: MonthContext) -> list[ActionIntent]:
        if not ctx.is_end_of_year:
            return []
        return plan_withdrawals(need=-state.ledger.total_cash, state=state, ctx=ctx, label="Pay taxes")
