"""Core month-by-month simulation of one path."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
import logging

from .dates import add_months, age_in_years
from .explain import CashflowItem, ModuleRunExplanation, MonthExplanation
from .healthcare import HealthcareModule
from .income import EventModule, FutureWorkModule, PensionModule, SocialSecurityModule
from .inflation import build_inflation_index
from .ledger import Ledger, TaxLedger
from .legacy import DeathLegacyModule
from .pipeline import MODULE_IDS, MonthContext, MonthTotals, PathState, SimulationModule
from .portfolio import CashBufferModule, RebalancingModule, ReturnShocks, ReturnsModule, build_return_shocks
from .rmd import RmdModule
from .roth import ConversionModule
from .schema import SimulationInput, SimulationSnapshot
from .spending import CharitableModule, SpendingModule
from .taxes import TaxesModule
from .withdrawals import FundingModule, resolve_intent

logger = logging.getLogger(__name__)

RECONCILIATION_TOLERANCE = 0.01
SHORTFALL_TOLERANCE = 1e-6


class ReconciliationError(RuntimeError):
    """Module and market totals for a month do not explain the balance change."""


@dataclass(slots=True)
class TimelinePoint:
    index: int
    date: date
    age: float
    balance: float
    cash_balance: float
    investment_balance: float
    contributions: float = 0.0
    income: float = 0.0
    spending: float = 0.0
    withdrawals: float = 0.0
    taxes: float = 0.0
    shortfall: float = 0.0
    legacy: float = 0.0
    tax_ledger: TaxLedger | None = None


@dataclass(slots=True)
class PathResult:
    seed: int
    trial_index: int
    yearly: list[TimelinePoint] = field(default_factory=list)
    monthly: list[TimelinePoint] = field(default_factory=list)
    explanations: list[MonthExplanation] = field(default_factory=list)
    starting_balance: float = 0.0
    ending_balance: float = 0.0
    min_balance: float = 0.0
    max_balance: float = 0.0
    total_shortfall: float = 0.0
    first_shortfall_month: int | None = None
    months_simulated: int = 0
    guardrail_factor_avg: float = 1.0
    guardrail_factor_min: float = 1.0
    guardrail_below_pct: float = 0.0
    legacy_total: float = 0.0
    bequests: dict[str, float] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.total_shortfall <= SHORTFALL_TOLERANCE


def build_modules(
    snapshot: SimulationSnapshot,
    start_date: date,
    shocks: ReturnShocks,
    *,
    record_explanations: bool = False,
) -> list[SimulationModule]:
    """Fresh module instances for one path, in pipeline order."""
    cpi_rate = snapshot.scenario.strategies.return_model.inflation_assumptions.get("cpi", 0.0)
    modules: list[SimulationModule] = [
        FutureWorkModule(snapshot),
        SocialSecurityModule(snapshot, start_date, cpi_rate),
        PensionModule(),
        EventModule(),
        SpendingModule(snapshot),
        HealthcareModule(snapshot),
        CharitableModule(),
        CashBufferModule(snapshot),
        RebalancingModule(),
        ConversionModule(),
        RmdModule(),
        FundingModule(),
        TaxesModule(),
        DeathLegacyModule(snapshot),
        ReturnsModule(shocks),
    ]
    ids = tuple(module.id for module in modules)
    if ids != MODULE_IDS:
        raise RuntimeError(f"module instances {ids} do not match the pipeline order {MODULE_IDS}")
    for module in modules:
        module.explain.enabled = record_explanations
    return modules


def _book_shortfall(state: PathState, ctx: MonthContext, run: ModuleRunExplanation) -> None:
    cash = state.ledger.total_cash
    if cash >= -SHORTFALL_TOLERANCE:
        return
    item = CashflowItem(
        id=f"shortfall-{run.module_id}-{ctx.month_index}",
        label="Unfunded spending",
        category="shortfall",
        cash=-cash,
    )
    state.book(item)
    run.cashflows.append(item)
    state.month.shortfall += -cash


def run_month(modules: list[SimulationModule], state: PathState, ctx: MonthContext) -> MonthExplanation:
    """Run every module once and check that the month reconciles."""
    ledger = state.ledger
    month = MonthExplanation(month_index=ctx.month_index, date=ctx.date, total_before=ledger.total_balance)
    last = len(modules) - 1
    for position, module in enumerate(modules):
        run = ModuleRunExplanation(module_id=module.id)
        for item in module.cashflows(state, ctx):
            state.book(item)
            run.cashflows.append(item)
        for intent in sorted(module.intents(state, ctx), key=lambda intent: intent.priority):
            record, items = resolve_intent(intent, state, ctx)
            run.actions.append(record)
            for item in items:
                state.book(item)
                run.cashflows.append(item)
        run.market_returns.extend(module.market_returns(state, ctx))
        if module.covers_deficit or position == last:
            _book_shortfall(state, ctx, run)
        run.inputs, run.checkpoints = module.explain.drain()
        month.modules.append(run)

    month.total_after = ledger.total_balance
    month.balances = ledger.balances()
    month.contributions = state.month.contributions
    explained = month.module_total + month.market_total
    measured = month.total_after - month.total_before
    if abs(explained - measured) > RECONCILIATION_TOLERANCE:
        raise ReconciliationError(
            f"month {ctx.month_index} ({ctx.date.isoformat()}): modules explain {explained:.4f} "
            f"but balances moved {measured:.4f}"
        )
    return month


def _point(index: int, ctx: MonthContext, ledger: Ledger, totals: MonthTotals) -> TimelinePoint:
    return TimelinePoint(
        index=index,
        date=ctx.date,
        age=ctx.age,
        balance=ledger.total_balance,
        cash_balance=ledger.total_cash,
        investment_balance=ledger.total_investments,
        contributions=totals.contributions,
        income=totals.income,
        spending=totals.spending,
        withdrawals=totals.withdrawals,
        taxes=totals.taxes,
        shortfall=totals.shortfall,
        legacy=totals.legacy,
    )


def _accumulate(year: MonthTotals, month: MonthTotals) -> None:
    year.income += month.income
    year.spending += month.spending
    year.contributions += month.contributions
    year.withdrawals += month.withdrawals
    year.taxes += month.taxes
    year.shortfall += month.shortfall
    year.legacy += month.legacy


def run_path(
    sim_input: SimulationInput,
    *,
    seed: int,
    trial_index: int = 0,
    record_explanations: bool = False,
) -> PathResult:
    """Simulate one path with its own ledger, inflation index and return shocks."""
    snapshot = sim_input.snapshot
    strategies = snapshot.scenario.strategies
    start = sim_input.settings.start_date
    months = max(0, sim_input.settings.months)

    ledger = Ledger.from_snapshot(snapshot, strategies.taxable_lot.cost_basis_method)
    state = PathState(ledger=ledger, year_ledger=TaxLedger(year=start.year))
    inflation = build_inflation_index(strategies.return_model, start, months, seed)
    shocks = build_return_shocks(strategies.return_model, ledger.holdings, months, seed)
    modules = build_modules(snapshot, start, shocks, record_explanations=record_explanations)

    result = PathResult(seed=seed, trial_index=trial_index, starting_balance=ledger.total_balance)
    result.min_balance = result.max_balance = ledger.total_balance
    year_totals = MonthTotals()
    logger.debug("trial %d: %d months from %s, seed %d", trial_index, months, start.isoformat(), seed)

    for month_index in range(months):
        on = add_months(start, month_index)
        ctx = MonthContext(
            snapshot=snapshot,
            strategies=strategies,
            start_date=start,
            months=months,
            month_index=month_index,
            date=on,
            inflation=inflation,
            ages={person.id: age_in_years(person.date_of_birth, on) for person in snapshot.people},
            seed=seed,
            trial_index=trial_index,
        )
        state.month = MonthTotals()
        explanation = run_month(modules, state, ctx)
        if record_explanations:
            result.explanations.append(explanation)

        if state.month.shortfall > 0 and result.first_shortfall_month is None:
            result.first_shortfall_month = month_index
        result.total_shortfall += state.month.shortfall
        result.monthly.append(_point(month_index, ctx, ledger, state.month))
        result.min_balance = min(result.min_balance, ledger.total_balance)
        result.max_balance = max(result.max_balance, ledger.total_balance)
        _accumulate(year_totals, state.month)
        result.months_simulated = month_index + 1

        if ctx.is_end_of_year or state.estate_settled:
            point = _point(ctx.year_index, ctx, ledger, year_totals)
            point.tax_ledger = state.closed_years[-1] if state.closed_years else state.year_ledger
            result.yearly.append(point)
            year_totals = MonthTotals()
        if state.estate_settled:
            logger.debug("trial %d: estate settled in month %d", trial_index, month_index)
            break

    result.ending_balance = ledger.total_balance
    result.guardrail_factor_avg = state.guardrail.average
    result.guardrail_factor_min = state.guardrail.factor_min
    result.guardrail_below_pct = state.guardrail.below_pct
    result.legacy_total = state.legacy_total
    result.bequests = dict(state.bequests)
    return result
