"""Household spending and charitable giving."""

from __future__ import annotations

from .dates import is_within_range
from .explain import ActionIntent, CashflowItem
from .guardrails import discounted_balance
from .pipeline import MonthContext, PathState, SimulationModule, SpendingHandoff
from .schema import SimulationSnapshot
from .tax_data import QCD_AGE


class SpendingModule(SimulationModule):
    """Books need spending and hands wants to funding.

    The discounted portfolio balance is captured before any of this month's
    spending leaves cash, so the guardrail sees the same balance whatever the
    other modules do later in the month.
    """

    id = "spending"

    def __init__(self, snapshot: SimulationSnapshot) -> None:
        super().__init__()
        self.items = snapshot.spending_items

    def cashflows(self, state: PathState, ctx: MonthContext) -> list[CashflowItem]:
        handoff = SpendingHandoff(
            discounted_balance=discounted_balance(state.ledger),
            total_balance=state.ledger.total_balance,
        )
        items: list[CashflowItem] = []
        for item in self.items:
            if not is_within_range(ctx.date, item.start_date, item.end_date):
                continue
            need = ctx.inflate(item.need_amount, item.inflation_type, item.start_date)
            want = ctx.inflate(item.want_amount, item.inflation_type, item.start_date)
            if need > 0:
                items.append(
                    CashflowItem(
                        id=f"{item.id}-{ctx.month_index}-need",
                        label=item.name,
                        category="spending_need",
                        cash=-need,
                        deductions=need if item.is_pre_tax else 0.0,
                    )
                )
                handoff.need += need
            if want > 0:
                handoff.want += want
                handoff.want_items.append((item.id, item.name, want, item.is_pre_tax))

        state.spending = handoff
        state.month.spending += handoff.need
        self.explain.add_input("Line items", len(self.items))
        self.explain.add_checkpoint("Need total", handoff.need)
        self.explain.add_checkpoint("Want total", handoff.want)
        self.explain.add_checkpoint("Discounted balance", handoff.discounted_balance)
        return items


def qcd_annual_amount(annual_giving: float, qcd_annual: float) -> float:
    if qcd_annual > 0:
        return min(annual_giving, qcd_annual)
    return annual_giving


class CharitableModule(SimulationModule):
    """Monthly giving; past 70.5 the QCD share comes straight from traditional money."""

    id = "charitable"

    def _giving_active(self, ctx: MonthContext) -> bool:
        strategy = ctx.strategies.charitable
        if strategy.annual_giving <= 0:
            return False
        if strategy.start_age > 0 and ctx.age < strategy.start_age:
            return False
        if strategy.end_age > 0 and ctx.age > strategy.end_age:
            return False
        return True

    def cashflows(self, state: PathState, ctx: MonthContext) -> list[CashflowItem]:
        if not self._giving_active(ctx):
            return []
        strategy = ctx.strategies.charitable
        monthly = strategy.annual_giving / 12
        deduction = monthly
        if strategy.use_qcd and ctx.age >= QCD_AGE:
            qcd_monthly = qcd_annual_amount(strategy.annual_giving, strategy.qcd_annual_amount) / 12
            deduction = max(0.0, monthly - qcd_monthly)
        state.month.spending += monthly
        return [
            CashflowItem(
                id=f"charitable-{ctx.month_index}",
                label="Charitable giving",
                category="charitable",
                cash=-monthly,
                deductions=deduction,
            )
        ]

    def intents(self, state: PathState, ctx: MonthContext) -> list[ActionIntent]:
        strategy = ctx.strategies.charitable
        if not self._giving_active(ctx) or not strategy.use_qcd or ctx.age < QCD_AGE:
            return []
        monthly_qcd = qcd_annual_amount(strategy.annual_giving, strategy.qcd_annual_amount) / 12
        sources = sorted(state.ledger.holdings_of("traditional"), key=lambda holding: holding.balance, reverse=True)
        if monthly_qcd <= 0 or not sources or sources[0].balance <= 0:
            return []
        return [
            ActionIntent(
                kind="withdraw",
                amount=monthly_qcd,
                label="QCD",
                source_holding_id=sources[0].id,
                tax_treatment="qcd",
                priority=40,
            )
        ]
