"""Portfolio modules: cash buffer, rebalancing with glidepath, market returns."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import math
from typing import Final

from .cost_basis import CostBasisTracker
from .dates import is_within_range, to_monthly_rate
from .explain import ActionIntent, MarketReturn
from .historical_data import historical_returns, replay_year
from .ledger import HoldingState, Ledger
from .pipeline import MonthContext, PathState, SimulationModule
from .random_source import shock_sequence, stream
from .schema import SimulationSnapshot
from .strategies import AllocationTarget, ReturnModelStrategy
from .tax_data import HOLDING_TYPE_DEFAULTS

logger = logging.getLogger(__name__)

NON_CASH_ASSETS: Final[tuple[str, ...]] = ("equity", "bonds", "real_estate", "other")

ASSET_HOLDING_TYPE: Final[dict[str, str]] = {
    "equity": "sp500",
    "bonds": "bonds",
    "real_estate": "real_estate",
    "other": "other",
}

TAX_AWARE_SELL_PRIORITY: Final[dict[str, int]] = {
    "traditional": 0,
    "hsa": 1,
    "roth": 2,
    "taxable": 3,
}

REFILL_ORDERS: Final[dict[str, tuple[str, ...]]] = {
    "tax_deferred_first": ("traditional", "taxable", "roth", "hsa"),
    "taxable_first": ("taxable", "traditional", "roth", "hsa"),
}

REFILL_PRIORITIES: Final[tuple[str, ...]] = ("pro_rata", *REFILL_ORDERS)


def asset_class(holding_type: str) -> str:
    if holding_type in ("bonds", "cash", "other"):
        return holding_type
    if holding_type == "real_estate":
        return "real_estate"
    return "equity"


def expected_return(holding: HoldingState) -> float:
    if holding.return_rate is not None:
        return holding.return_rate
    return HOLDING_TYPE_DEFAULTS.get(holding.holding_type, (0.0, 0.0))[0]


def return_std_dev(holding: HoldingState) -> float:
    if holding.return_std_dev is not None:
        return holding.return_std_dev
    return HOLDING_TYPE_DEFAULTS.get(holding.holding_type, (0.0, 0.0))[1]


def monthly_spending(snapshot: SimulationSnapshot, ctx: MonthContext) -> float:
    total = 0.0
    for item in snapshot.spending_items:
        if not is_within_range(ctx.date, item.start_date, item.end_date):
            continue
        total += ctx.inflate(item.need_amount + item.want_amount, item.inflation_type, item.start_date)
    return total


class CashBufferModule(SimulationModule):
    """Refill cash below the floor back to target; invest cash above the ceiling."""

    id = "cash-buffer"

    def __init__(self, snapshot: SimulationSnapshot) -> None:
        super().__init__()
        self.snapshot = snapshot

    def intents(self, state: PathState, ctx: MonthContext) -> list[ActionIntent]:
        strategy = ctx.strategies.cash_buffer
        if not strategy.enabled:
            return []
        spending = monthly_spending(self.snapshot, ctx)
        if spending <= 0:
            return []

        bridge_months = max(0.0, ctx.strategies.early_retirement.bridge_cash_years) * 12
        target_months = max(strategy.target_months, bridge_months)
        min_months = strategy.min_months if ctx.strategies.withdrawal.use_cash_first else target_months
        max_months = max(strategy.max_months, target_months)
        target = spending * target_months
        floor = spending * min_months
        ceiling = spending * max_months
        cash = state.ledger.total_cash

        self.explain.add_input("Monthly spending", spending)
        self.explain.add_checkpoint("Cash", cash)
        self.explain.add_checkpoint("Target", target)

        if cash < floor:
            return self._refill(state.ledger, max(0.0, target - cash), strategy.refill_priority)
        if cash > ceiling:
            holdings = sorted(state.ledger.holdings, key=lambda holding: holding.balance, reverse=True)
            if not holdings:
                return []
            return [
                ActionIntent(
                    kind="deposit",
                    amount=cash - target,
                    label="Invest excess cash",
                    target_holding_id=holdings[0].id,
                    priority=70,
                )
            ]
        return []

    @staticmethod
    def _refill(ledger: Ledger, needed: float, priority_rule: str) -> list[ActionIntent]:
        intents: list[ActionIntent] = []
        if needed <= 0:
            return intents
        priority = 60
        if priority_rule == "pro_rata":
            total = ledger.total_investments
            if total <= 0:
                return intents
            share = min(1.0, needed / total)
            for holding in ledger.holdings:
                amount = holding.balance * share
                if amount > 0:
                    intents.append(
                        ActionIntent(
                            kind="withdraw",
                            amount=amount,
                            label="Refill cash buffer",
                            source_holding_id=holding.id,
                            priority=priority,
                        )
                    )
                    priority += 1
            return intents

        remaining = needed
        for tax_type in REFILL_ORDERS.get(priority_rule, REFILL_ORDERS["taxable_first"]):
            for holding in sorted(ledger.holdings_of(tax_type), key=lambda item: item.balance, reverse=True):
                if remaining <= 0:
                    return intents
                amount = min(remaining, holding.balance)
                if amount <= 0:
                    continue
                intents.append(
                    ActionIntent(
                        kind="withdraw",
                        amount=amount,
                        label="Refill cash buffer",
                        source_holding_id=holding.id,
                        priority=priority,
                    )
                )
                priority += 1
                remaining -= amount
        return intents


def interpolate_targets(targets: list[AllocationTarget], key: float) -> AllocationTarget | None:
    ordered = sorted(targets, key=lambda target: target.key)
    if not ordered:
        return None
    if key <= ordered[0].key:
        return ordered[0]
    if key >= ordered[-1].key:
        return ordered[-1]
    for lower, upper in zip(ordered, ordered[1:]):
        if key <= upper.key:
            ratio = (key - lower.key) / max(1e-9, upper.key - lower.key)

            def mix(a: float, b: float) -> float:
                return a + (b - a) * ratio

            return AllocationTarget(
                key=key,
                equity=mix(lower.equity, upper.equity),
                bonds=mix(lower.bonds, upper.bonds),
                cash=mix(lower.cash, upper.cash),
                real_estate=mix(lower.real_estate, upper.real_estate),
                other=mix(lower.other, upper.other),
            )
    return ordered[-1]


def normalize_weights(weights: dict[str, float]) -> dict[str, float] | None:
    total = sum(weights.get(asset, 0.0) for asset in NON_CASH_ASSETS)
    if total <= 0:
        return None
    return {asset: weights.get(asset, 0.0) / total for asset in NON_CASH_ASSETS}


def current_weights(holdings: list[HoldingState]) -> tuple[dict[str, float], float]:
    totals = {asset: 0.0 for asset in NON_CASH_ASSETS}
    for holding in holdings:
        asset = asset_class(holding.holding_type)
        if asset in totals:
            totals[asset] += holding.balance
    return totals, sum(totals.values())


class RebalancingModule(SimulationModule):
    """Trade non-cash holdings back toward glidepath or opening weights.

    Trades stay inside one account and one tax type; a missing asset class is
    bought into a new holding of that account.
    """

    id = "rebalancing"

    def __init__(self) -> None:
        super().__init__()
        self.baseline: dict[str, float] | None = None
        self.created = 0

    def _due(self, ctx: MonthContext) -> bool:
        frequency = ctx.strategies.rebalancing.frequency
        if frequency == "quarterly":
            return ctx.month_index % 3 == 2
        if frequency == "annual":
            return ctx.is_end_of_year
        return True

    def _targets(self, holdings: list[HoldingState], ctx: MonthContext) -> dict[str, float] | None:
        glidepath = ctx.strategies.glidepath
        if glidepath.enabled and glidepath.targets:
            key = ctx.year_index if glidepath.mode == "year" else ctx.age
            target = interpolate_targets(glidepath.targets, key)
            if target is None:
                return None
            return normalize_weights(
                {"equity": target.equity, "bonds": target.bonds, "real_estate": target.real_estate, "other": target.other}
            )
        if self.baseline is None:
            totals, total = current_weights(holdings)
            self.baseline = normalize_weights(totals) if total > 0 else None
        return self.baseline

    def _buy_holding(self, ledger: Ledger, account_id: str, asset: str, tax_type: str, reference: HoldingState | None) -> HoldingState:
        for holding in ledger.holdings:
            if (
                holding.account_id == account_id
                and holding.tax_type == tax_type
                and asset_class(holding.holding_type) == asset
            ):
                return holding
        holding_type = reference.holding_type if reference else ASSET_HOLDING_TYPE[asset]
        self.created += 1
        logger.debug("rebalancing opened %s holding in account %s (%s)", asset, account_id, tax_type)
        return ledger.add_holding(
            HoldingState(
                id=f"{account_id}:{asset}:{tax_type}",
                account_id=account_id,
                name=reference.name if reference else holding_type,
                tax_type=tax_type,
                holding_type=holding_type,
                balance=0.0,
                return_rate=reference.return_rate if reference else None,
                return_std_dev=reference.return_std_dev if reference else None,
                basis=CostBasisTracker(method=ledger.holdings[0].basis.method if ledger.holdings else "average"),
            )
        )

    def intents(self, state: PathState, ctx: MonthContext) -> list[ActionIntent]:
        rebalancing = ctx.strategies.rebalancing
        if not rebalancing.enabled:
            return []
        ledger = state.ledger
        holdings = [holding for holding in ledger.holdings if asset_class(holding.holding_type) != "cash"]
        targets = self._targets(holdings, ctx)
        due = self._due(ctx)
        self.explain.add_input("Frequency", rebalancing.frequency)
        self.explain.add_checkpoint("Should rebalance", due)
        if not due or targets is None:
            return []

        totals, total = current_weights(holdings)
        if total <= 0:
            return []
        drifted = any(abs(totals[asset] / total - targets[asset]) > rebalancing.drift_threshold for asset in NON_CASH_ASSETS)
        if not drifted and (rebalancing.frequency == "threshold" or rebalancing.drift_threshold > 0):
            return []

        buy = {asset: 0.0 for asset in NON_CASH_ASSETS}
        sell = {asset: 0.0 for asset in NON_CASH_ASSETS}
        for asset in NON_CASH_ASSETS:
            delta = targets[asset] * total - totals[asset]
            if abs(delta) < rebalancing.min_trade_amount:
                continue
            if delta > 0:
                buy[asset] = delta
            elif delta < 0:
                sell[asset] = -delta
        if sum(buy.values()) <= 0 or sum(sell.values()) <= 0:
            return []

        references: dict[str, HoldingState] = {}
        for holding in holdings:
            references.setdefault(asset_class(holding.holding_type), holding)

        by_account: dict[str, list[HoldingState]] = {}
        for holding in holdings:
            by_account.setdefault(holding.account_id, []).append(holding)

        def account_rank(items: list[HoldingState]) -> int:
            return min(TAX_AWARE_SELL_PRIORITY.get(item.tax_type, 3) for item in items)

        accounts = sorted(
            by_account.items(),
            key=lambda entry: (account_rank(entry[1]), -sum(item.balance for item in entry[1])),
        )

        def sale_order(items: list[HoldingState]) -> list[HoldingState]:
            if rebalancing.tax_aware:
                return sorted(items, key=lambda item: (TAX_AWARE_SELL_PRIORITY.get(item.tax_type, 3), -item.balance))
            return sorted(items, key=lambda item: -item.balance)

        intents: list[ActionIntent] = []
        priority = 20
        for account_id, account_holdings in accounts:
            for asset in NON_CASH_ASSETS:
                if sell[asset] <= 0:
                    continue
                candidates = [item for item in account_holdings if asset_class(item.holding_type) == asset]
                for holding in sale_order(candidates):
                    remaining = min(holding.balance, sell[asset])
                    while remaining > 1e-9:
                        buy_asset = max(NON_CASH_ASSETS, key=lambda item: buy[item])
                        if buy[buy_asset] <= 0:
                            break
                        target = self._buy_holding(ledger, account_id, buy_asset, holding.tax_type, references.get(buy_asset))
                        amount = min(remaining, buy[buy_asset])
                        intents.append(
                            ActionIntent(
                                kind="rebalance",
                                amount=amount,
                                label="Rebalance",
                                source_holding_id=holding.id,
                                target_holding_id=target.id,
                                from_cash=False,
                                to_cash=False,
                                priority=priority,
                            )
                        )
                        priority += 1
                        remaining -= amount
                        sell[asset] = max(0.0, sell[asset] - amount)
                        buy[buy_asset] = max(0.0, buy[buy_asset] - amount)
        self.explain.add_checkpoint("Trades", len(intents))
        return intents


@dataclass(slots=True)
class ReturnShocks:
    """Standard-normal shocks per holding (or per asset class when correlated)."""

    by_key: dict[str, list[float]]
    per_year: bool
    correlated: bool

    def shock(self, holding: HoldingState, month_index: int) -> float:
        key = asset_class(holding.holding_type) if self.correlated else holding.id
        values = self.by_key.get(key)
        if not values:
            return 0.0
        index = month_index // 12 if self.per_year else month_index
        return values[min(index, len(values) - 1)]


def build_return_shocks(
    return_model: ReturnModelStrategy,
    holdings: list[HoldingState],
    months: int,
    seed: int,
) -> ReturnShocks:
    per_year = return_model.sequence_model == "regime"
    correlated = return_model.correlation_model == "asset_class"
    length = math.ceil(months / 12) if per_year else months
    keys = sorted({asset_class(holding.holding_type) if correlated else holding.id for holding in holdings})
    by_key: dict[str, list[float]] = {}
    if return_model.mode == "stochastic":
        for key in keys:
            by_key[key] = shock_sequence(stream(seed, f"returns:{key}"), length, return_model.return_persistence)
    return ReturnShocks(by_key=by_key, per_year=per_year, correlated=correlated)


class ReturnsModule(SimulationModule):
    """Monthly cash interest and holding returns; always the last module."""

    id = "returns"

    def __init__(self, shocks: ReturnShocks) -> None:
        super().__init__()
        self.shocks = shocks

    def _holding_rate(self, holding: HoldingState, ctx: MonthContext) -> float:
        model = ctx.strategies.return_model
        expected = expected_return(holding)
        if model.mode == "historical":
            asset = asset_class(holding.holding_type)
            if asset in ("equity", "bonds"):
                year = replay_year(model.historical_start_year, ctx.trial_index, ctx.year_index)
                stocks, bonds = historical_returns(year)
                return to_monthly_rate(stocks if asset == "equity" else bonds)
            return to_monthly_rate(expected)
        monthly = to_monthly_rate(expected)
        if model.mode != "stochastic":
            return monthly
        annual_vol = return_std_dev(holding) * model.volatility_scale
        volatility = annual_vol / (12 if self.shocks.per_year else math.sqrt(12))
        return max(-0.95, monthly + self.shocks.shock(holding, ctx.month_index) * volatility)

    def market_returns(self, state: PathState, ctx: MonthContext) -> list[MarketReturn]:
        records: list[MarketReturn] = []
        cash_yield = ctx.strategies.return_model.cash_yield_rate
        for account in state.ledger.cash:
            annual = account.interest_rate if account.interest_rate is not None else cash_yield
            rate = to_monthly_rate(annual)
            before = account.balance
            amount = before * rate if before > 0 else 0.0
            account.balance += amount
            records.append(MarketReturn(account_id=account.id, kind="cash", balance_before=before, rate=rate, amount=amount))

        for holding in state.ledger.holdings:
            before = holding.balance
            rate = self._holding_rate(holding, ctx)
            state.ledger.apply_return(holding.id, rate)
            amount = holding.balance - before
            records.append(
                MarketReturn(account_id=holding.id, kind=holding.tax_type, balance_before=before, rate=rate, amount=amount)
            )
        self.explain.add_checkpoint("Market total", sum(record.amount for record in records))
        return records
