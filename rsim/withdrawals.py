"""Withdrawal planning and action resolution against the ledger."""

from __future__ import annotations

import logging

from .explain import ActionIntent, ActionRecord, CashflowItem
from .guardrails import evaluate_guardrail
from .ledger import HoldingState, Ledger
from .pipeline import MonthContext, PathState, SimulationModule
from .strategies import ScenarioStrategies
from .tax_data import EARLY_WITHDRAWAL_AGE

logger = logging.getLogger(__name__)

PENALTY_AGE = EARLY_WITHDRAWAL_AGE


def penalized_buckets(strategies: ScenarioStrategies, age: float) -> set[str]:
    """Buckets whose withdrawals would draw an early-withdrawal penalty at ``age``."""
    if age >= PENALTY_AGE:
        return set()
    early = strategies.early_retirement
    penalized = set()
    if not early.use_72t:
        penalized.add("traditional")
    if not early.use_roth_basis_first:
        penalized.add("roth")
    return penalized


def ordered_buckets(strategies: ScenarioStrategies, age: float, ytd_gains: float) -> tuple[list[str], bool]:
    """Return (bucket order, harvesting gains) after early-penalty and harvest rules."""
    withdrawal = strategies.withdrawal
    order = withdrawal.bucket_order

    penalized = penalized_buckets(strategies, age)
    if penalized:
        if withdrawal.avoid_early_penalty:
            order = [bucket for bucket in order if bucket not in penalized] + [
                bucket for bucket in order if bucket in penalized
            ]
        if not strategies.early_retirement.allow_penalty:
            allowed = [bucket for bucket in order if bucket not in penalized]
            if allowed:
                order = allowed

    target = max(withdrawal.taxable_gain_harvest_target, strategies.taxable_lot.gain_realization_target)
    harvesting = target > 0 and ytd_gains < target
    if harvesting and "taxable" in order:
        order = ["taxable"] + [bucket for bucket in order if bucket != "taxable"]
    return order, harvesting


def _bucket_holdings(ledger: Ledger, bucket: str, strategies: ScenarioStrategies, harvesting: bool) -> list[HoldingState]:
    tax_type = "roth" if bucket == "roth_basis" else bucket
    holdings = [holding for holding in ledger.holdings_of(tax_type) if holding.balance > 0]
    if tax_type != "taxable":
        return sorted(holdings, key=lambda holding: holding.balance, reverse=True)
    if harvesting:
        return sorted(holdings, key=lambda holding: holding.gain, reverse=True)
    if strategies.taxable_lot.harvest_losses:
        return sorted(holdings, key=lambda holding: holding.gain)
    return sorted(holdings, key=lambda holding: holding.balance, reverse=True)


def plan_withdrawals(
    *,
    need: float,
    state: PathState,
    ctx: MonthContext,
    label: str = "Cover cash deficit",
    priority: int = 100,
) -> list[ActionIntent]:
    """Withdraw intents covering ``need`` from holdings in bucket order."""
    if need <= 0:
        return []

    strategies = ctx.strategies
    ledger = state.ledger
    order, harvesting = ordered_buckets(strategies, ctx.age, state.year_ledger.capital_gains)
    remaining = need
    planned: dict[str, float] = {}
    intents: list[ActionIntent] = []

    for bucket in order:
        if remaining <= 0:
            break
        for holding in _bucket_holdings(ledger, bucket, strategies, harvesting):
            if remaining <= 0:
                break
            available = holding.balance - planned.get(holding.id, 0.0)
            if bucket == "roth_basis":
                available = min(available, ledger.roth_basis_available(holding.id, ctx.date) - planned.get(holding.id, 0.0))
            amount = min(remaining, available)
            if amount <= 0:
                continue
            intents.append(
                ActionIntent(
                    kind="withdraw",
                    amount=amount,
                    label=label,
                    source_holding_id=holding.id,
                    priority=priority,
                    roth_basis_only=bucket == "roth_basis",
                )
            )
            planned[holding.id] = planned.get(holding.id, 0.0) + amount
            priority += 1
            remaining -= amount

    if remaining > 1e-6:
        logger.debug("month %d: %.2f of %.2f could not be planned from holdings", ctx.month_index, remaining, need)
    return intents


def _route_sale(
    holding: HoldingState,
    proceeds: float,
    gain: float,
    intent: ActionIntent,
    state: PathState,
    ctx: MonthContext,
) -> tuple[CashflowItem, str, bool]:
    """Tax character of a sale: (tax item, treatment label, early penalty applied)."""
    item = CashflowItem(
        id=f"{intent.kind}-{holding.id}-{ctx.month_index}",
        label=f"{intent.label or intent.kind} ({holding.name or holding.id})",
        category="other",
    )
    age = ctx.age
    penalty_rate = ctx.strategies.early_retirement.penalty_rate
    early = age < PENALTY_AGE

    if intent.step_up:
        return item, "estate", False

    if holding.tax_type == "traditional" and intent.tax_treatment == "qcd":
        # Paid straight to charity; excluded from income.
        state.year_ledger.qcd += proceeds
        return item, "qcd", False

    if holding.tax_type == "taxable":
        item.capital_gains = gain
        return item, "capital_gains", False

    if holding.tax_type == "traditional":
        item.ordinary_income = proceeds
        if early and not ctx.strategies.early_retirement.use_72t and intent.kind != "rmd":
            item.penalty = proceeds * penalty_rate
            return item, "ordinary", True
        return item, "ordinary", False

    if holding.tax_type == "roth":
        basis_part = state.ledger.consume_roth_basis(holding.id, proceeds, ctx.date)
        earnings = max(0.0, proceeds - basis_part)
        item.tax_exempt_income = basis_part
        if earnings <= 0 or not early:
            item.tax_exempt_income += earnings
            return item, "tax_exempt", False
        item.ordinary_income = earnings
        item.penalty = earnings * penalty_rate
        return item, "ordinary", True

    if holding.tax_type == "hsa":
        medical_left = max(0.0, state.month.medical_spend - state.month.hsa_medical_used)
        exempt = min(proceeds, medical_left)
        state.month.hsa_medical_used += exempt
        item.tax_exempt_income = exempt
        item.ordinary_income = proceeds - exempt
        return item, "tax_exempt" if item.ordinary_income <= 0 else "ordinary", False

    item.ordinary_income = proceeds
    return item, "ordinary", False


def _trim_roth_basis(ledger: Ledger, holding: HoldingState) -> None:
    excess = sum(entry.amount for entry in holding.roth_basis) - holding.balance
    if excess > 1e-9:
        ledger.drop_roth_basis(holding.id, excess)


def _withdraw(intent: ActionIntent, state: PathState, ctx: MonthContext) -> tuple[ActionRecord, list[CashflowItem]]:
    ledger = state.ledger
    record = ActionRecord(
        kind=intent.kind,
        requested=intent.amount,
        resolved=0.0,
        label=intent.label,
        source_holding_id=intent.source_holding_id,
        to_cash=intent.to_cash,
        tax_treatment=intent.tax_treatment,
    )
    holding = ledger.holding(intent.source_holding_id) if intent.source_holding_id else None
    if holding is None or intent.amount <= 0:
        return record, []

    amount = intent.amount
    if intent.roth_basis_only:
        amount = min(amount, ledger.roth_basis_available(holding.id, ctx.date))
    sale = ledger.withdraw(holding.id, amount)
    if sale.proceeds <= 0:
        return record, []

    if intent.roth_basis_only:
        consumed = ledger.consume_roth_basis(holding.id, sale.proceeds, ctx.date)
        item = CashflowItem(
            id=f"{intent.kind}-{holding.id}-{ctx.month_index}",
            label=f"{intent.label or intent.kind} ({holding.name or holding.id})",
            category="other",
            tax_exempt_income=consumed,
        )
        treatment, early_penalty = "tax_exempt", False
    else:
        item, treatment, early_penalty = _route_sale(holding, sale.proceeds, sale.gain, intent, state, ctx)
    if holding.tax_type == "roth":
        _trim_roth_basis(ledger, holding)

    if intent.to_cash:
        ledger.adjust_cash(sale.proceeds)
    record.resolved = sale.proceeds
    record.tax_treatment = intent.tax_treatment or treatment
    record.early_penalty = early_penalty
    return record, [item]


def _deposit(intent: ActionIntent, state: PathState, ctx: MonthContext) -> tuple[ActionRecord, list[CashflowItem]]:
    ledger = state.ledger
    record = ActionRecord(
        kind="deposit",
        requested=intent.amount,
        resolved=0.0,
        label=intent.label,
        target_holding_id=intent.target_holding_id,
        from_cash=intent.from_cash,
        tax_treatment=intent.tax_treatment,
    )
    if intent.target_holding_id is None or ledger.holding(intent.target_holding_id) is None:
        return record, []
    amount = intent.amount
    if intent.from_cash:
        amount = min(amount, max(0.0, ledger.total_cash))
    if amount <= 0:
        return record, []
    ledger.deposit(intent.target_holding_id, amount, ctx.date)
    if intent.from_cash:
        ledger.adjust_cash(-amount)
    record.resolved = amount
    return record, []


def _convert(intent: ActionIntent, state: PathState, ctx: MonthContext) -> tuple[ActionRecord, list[CashflowItem]]:
    ledger = state.ledger
    record = ActionRecord(
        kind="convert",
        requested=intent.amount,
        resolved=0.0,
        label=intent.label,
        source_holding_id=intent.source_holding_id,
        target_holding_id=intent.target_holding_id,
        from_cash=False,
        to_cash=False,
        tax_treatment="ordinary",
    )
    if (
        intent.source_holding_id is None
        or intent.target_holding_id is None
        or ledger.holding(intent.source_holding_id) is None
        or ledger.holding(intent.target_holding_id) is None
    ):
        return record, []
    converted = ledger.convert(intent.source_holding_id, intent.target_holding_id, intent.amount, ctx.date)
    if converted <= 0:
        return record, []
    state.year_ledger.roth_conversions += converted
    record.resolved = converted
    item = CashflowItem(
        id=f"convert-{intent.source_holding_id}-{ctx.month_index}",
        label=intent.label or "Roth conversion",
        category="other",
        ordinary_income=converted,
    )
    return record, [item]


def _rebalance(intent: ActionIntent, state: PathState, ctx: MonthContext) -> tuple[ActionRecord, list[CashflowItem]]:
    ledger = state.ledger
    record = ActionRecord(
        kind="rebalance",
        requested=intent.amount,
        resolved=0.0,
        label=intent.label,
        source_holding_id=intent.source_holding_id,
        target_holding_id=intent.target_holding_id,
        from_cash=False,
        to_cash=False,
    )
    source = ledger.holding(intent.source_holding_id) if intent.source_holding_id else None
    target = ledger.holding(intent.target_holding_id) if intent.target_holding_id else None
    if source is None or target is None or intent.amount <= 0:
        return record, []
    sale = ledger.move(source.id, target.id, intent.amount, ctx.date)
    if sale.proceeds <= 0:
        return record, []
    record.resolved = sale.proceeds
    items: list[CashflowItem] = []
    if source.tax_type == "taxable":
        record.tax_treatment = "capital_gains"
        items.append(
            CashflowItem(
                id=f"rebalance-{source.id}-{ctx.month_index}",
                label=intent.label or "Rebalance",
                category="other",
                capital_gains=sale.gain,
            )
        )
    return record, items


_RESOLVERS = {
    "withdraw": _withdraw,
    "rmd": _withdraw,
    "deposit": _deposit,
    "convert": _convert,
    "rebalance": _rebalance,
}


def resolve_intent(intent: ActionIntent, state: PathState, ctx: MonthContext) -> tuple[ActionRecord, list[CashflowItem]]:
    """Apply one intent; the record carries requested and resolved amounts."""
    try:
        resolver = _RESOLVERS[intent.kind]
    except KeyError:
        raise ValueError(f"unknown action kind '{intent.kind}'") from None
    record, items = resolver(intent, state, ctx)
    if record.kind in ("withdraw", "rmd") and record.to_cash:
        state.month.withdrawals += record.resolved
    return record, items


class FundingModule(SimulationModule):
    """Applies the guardrail to wants, then withdraws to cover any cash deficit."""

    id = "funding"
    covers_deficit = True

    def cashflows(self, state: PathState, ctx: MonthContext) -> list[CashflowItem]:
        handoff = state.spending
        rule = ctx.strategies.withdrawal.guardrail
        decision = evaluate_guardrail(
            rule,
            need=handoff.need,
            want=handoff.want,
            balance=handoff.discounted_balance,
            state=state.guardrail,
            ctx=ctx,
            total_balance=handoff.total_balance,
        )
        self.explain.add_input("Guardrail", rule.kind)
        self.explain.add_checkpoint("Guardrail factor", decision.factor)
        if decision.health is not None:
            self.explain.add_checkpoint("Portfolio health", decision.health)

        items: list[CashflowItem] = []
        for item_id, name, amount, is_pre_tax in handoff.want_items:
            spend = amount * decision.factor
            if spend <= 0:
                continue
            items.append(
                CashflowItem(
                    id=f"{item_id}-{ctx.month_index}-want",
                    label=name,
                    category="spending_want",
                    cash=-spend,
                    deductions=spend if is_pre_tax else 0.0,
                )
            )
        state.month.spending += sum(-item.cash for item in items)
        return items

    def intents(self, state: PathState, ctx: MonthContext) -> list[ActionIntent]:
        deficit = -state.ledger.total_cash
        self.explain.add_checkpoint("Cash deficit", max(0.0, deficit))
        return plan_withdrawals(need=deficit, state=state, ctx=ctx)
