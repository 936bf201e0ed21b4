"""Spending guardrails: how much of this month's wants the portfolio can afford."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Callable, Final

from .dates import add_months
from .ledger import Ledger
from .pipeline import GuardrailState, MonthContext
from .schema import MinimumBalanceRun, WorkPeriod
from .strategies import (
    CapWantsGuardrail,
    Guardrail,
    GuytonGuardrail,
    LegacyGuardrail,
    MinBalanceHealthGuardrail,
    NoGuardrail,
    PortfolioHealthGuardrail,
)

TAX_DISCOUNT: Final[dict[str, float]] = {
    "traditional": 0.85,
    "taxable": 0.95,
    "roth": 1.0,
    "hsa": 1.0,
}


@dataclass(slots=True)
class GuardrailDecision:
    factor: float = 1.0
    active: bool = False
    health: float | None = None


def clamp01(value: float) -> float:
    return min(1.0, max(0.0, value))


def discounted_balance(ledger: Ledger) -> float:
    """Cash in full plus holdings haircut by the tax still owed on them."""
    total = ledger.total_cash
    for holding in ledger.holdings:
        total += holding.balance * TAX_DISCOUNT.get(holding.tax_type, 1.0)
    return total


def retirement_start(work_periods: list[WorkPeriod], start_date: date) -> date:
    """First of the month after the last work period ends."""
    ends = [period.end_date for period in work_periods if period.end_date is not None]
    if not work_periods or not ends:
        return start_date
    latest = max(ends)
    return add_months(latest.replace(day=1), 1)


def interpolate_health(health: float, points: tuple[tuple[float, float], ...]) -> float:
    if not points:
        return 1.0
    ordered = sorted(points)
    if health <= ordered[0][0]:
        return 0.0
    if health >= ordered[-1][0]:
        return 1.0
    for (lower_health, lower_factor), (upper_health, upper_factor) in zip(ordered, ordered[1:]):
        if health <= upper_health:
            span = max(1e-9, upper_health - lower_health)
            ratio = (health - lower_health) / span
            return clamp01(lower_factor + (upper_factor - lower_factor) * ratio)
    return 1.0


def min_balance_target(run: MinimumBalanceRun | None, on: date, year_index: int) -> float | None:
    """Minimum balance for ``on``, interpolated between dated points.

    Dates before the first point or after the last take that point's balance.
    A timeline without dates steps by year index instead.
    """
    if run is None or not run.timeline:
        return None
    dated = sorted((point for point in run.timeline if point.date is not None), key=lambda point: point.date)
    if not dated:
        by_year = sorted(run.timeline, key=lambda point: point.year_index)
        candidate = by_year[0]
        for point in by_year[1:]:
            if point.year_index > year_index:
                break
            candidate = point
        return candidate.balance
    if on <= dated[0].date:
        return dated[0].balance
    for lower, upper in zip(dated, dated[1:]):
        if on <= upper.date:
            span = (upper.date - lower.date).days
            if span <= 0:
                return upper.balance
            ratio = (on - lower.date).days / span
            return lower.balance + (upper.balance - lower.balance) * ratio
    return dated[-1].balance


@dataclass(slots=True)
class GuardrailInputs:
    need: float
    want: float
    balance: float
    state: GuardrailState
    ctx: MonthContext
    total_balance: float = 0.0

    @property
    def target_balance(self) -> float:
        if self.state.target_balance is None:
            return self.balance
        return self.state.target_balance


def _no_guardrail(rule: NoGuardrail, inputs: GuardrailInputs) -> GuardrailDecision:
    return GuardrailDecision()


def _legacy(rule: LegacyGuardrail, inputs: GuardrailInputs) -> GuardrailDecision:
    active = rule.pct > 0 and inputs.balance < inputs.target_balance * (1 - rule.pct)
    return GuardrailDecision(factor=1 - rule.pct if active else 1.0, active=active)


def _cap_wants(rule: CapWantsGuardrail, inputs: GuardrailInputs) -> GuardrailDecision:
    if inputs.want <= 0 or rule.withdrawal_rate_limit <= 0:
        return GuardrailDecision()
    monthly_limit = inputs.balance * rule.withdrawal_rate_limit / 12
    factor = clamp01((monthly_limit - inputs.need) / inputs.want)
    return GuardrailDecision(factor=factor, active=factor < 1.0)


def _portfolio_health(rule: PortfolioHealthGuardrail, inputs: GuardrailInputs) -> GuardrailDecision:
    ctx = inputs.ctx
    target_date = inputs.state.target_date or ctx.date
    inflated = ctx.inflate(inputs.target_balance, "cpi", target_date)
    health = inputs.balance / inflated if inflated > 0 else 1.0
    factor = interpolate_health(health, rule.points)
    return GuardrailDecision(factor=factor, active=factor < 1.0, health=health)


def _min_balance_health(rule: MinBalanceHealthGuardrail, inputs: GuardrailInputs) -> GuardrailDecision:
    ctx = inputs.ctx
    target = min_balance_target(ctx.snapshot.min_balance_run, ctx.date, ctx.year_index)
    if target is None or target <= 0:
        return GuardrailDecision()
    health = inputs.total_balance / target
    factor = interpolate_health(health, rule.points)
    return GuardrailDecision(factor=factor, active=factor < 1.0, health=health)


def _guyton(rule: GuytonGuardrail, inputs: GuardrailInputs) -> GuardrailDecision:
    state = inputs.state
    baseline_balance = inputs.target_balance
    baseline_spending = state.baseline_need + state.baseline_want
    baseline_rate = baseline_spending / baseline_balance * 12 if baseline_balance > 0 else 0.0
    current_rate = (inputs.need + inputs.want) / inputs.balance * 12 if inputs.balance > 0 else 0.0
    if baseline_rate > 0 and current_rate > baseline_rate * (1 + rule.trigger_rate_increase):
        state.guyton_months_remaining = max(state.guyton_months_remaining, rule.duration_months)
    if state.guyton_months_remaining > 0:
        state.guyton_months_remaining -= 1
        return GuardrailDecision(factor=clamp01(1 - rule.applied_pct), active=True)
    return GuardrailDecision()


EVALUATORS: Final[dict[str, Callable[..., GuardrailDecision]]] = {
    NoGuardrail.kind: _no_guardrail,
    LegacyGuardrail.kind: _legacy,
    CapWantsGuardrail.kind: _cap_wants,
    PortfolioHealthGuardrail.kind: _portfolio_health,
    MinBalanceHealthGuardrail.kind: _min_balance_health,
    GuytonGuardrail.kind: _guyton,
}


def capture_target(state: GuardrailState, ctx: MonthContext, *, balance: float, need: float, want: float) -> None:
    """Fix the baseline the first month on or after retirement starts."""
    if state.target_date is not None:
        return
    start = retirement_start(ctx.snapshot.work_periods, ctx.start_date)
    if ctx.date >= start:
        state.target_date = ctx.date
        state.target_balance = balance
        state.baseline_need = need
        state.baseline_want = want


def evaluate_guardrail(
    rule: Guardrail,
    *,
    need: float,
    want: float,
    balance: float,
    state: GuardrailState,
    ctx: MonthContext,
    total_balance: float | None = None,
) -> GuardrailDecision:
    """Evaluate ``rule`` for this month and record the factor on ``state``.

    Guardrails only apply once every work period has ended; before that the
    factor is always 1. ``balance`` is the tax-discounted balance;
    ``total_balance`` (default: ``balance``) is the undiscounted one.
    """
    capture_target(state, ctx, balance=balance, need=need, want=want)
    start = retirement_start(ctx.snapshot.work_periods, ctx.start_date)
    enabled = not ctx.snapshot.work_periods or ctx.date >= start
    decision = GuardrailDecision()
    if enabled:
        evaluator = EVALUATORS[rule.kind]
        inputs = GuardrailInputs(
            need=need,
            want=want,
            balance=balance,
            state=state,
            ctx=ctx,
            total_balance=balance if total_balance is None else total_balance,
        )
        decision = evaluator(rule, inputs)
    state.record(decision.factor)
    return decision
