import pytest

from rsim.dates import to_monthly_rate
from rsim.historical_data import FIRST_YEAR, LAST_YEAR, historical_returns, replay_year
from rsim.portfolio import (
    CashBufferModule,
    RebalancingModule,
    ReturnsModule,
    asset_class,
    build_return_shocks,
    interpolate_targets,
)
from rsim.strategies import AllocationTarget
from tests.helpers import build_input, holding, make_context, make_state, minimal_input

BUFFER = {"enabled": True, "target_months": 6, "min_months": 3, "max_months": 12}
SPENDING = [{"id": "living", "name": "Living", "need_amount": 1_000.0}]


def _buffer_setup(cash, **strategies):
    holdings = [holding("brokerage", "taxable", 60_000.0), holding("ira", "traditional", 40_000.0)]
    strategies.setdefault("cash_buffer", BUFFER)
    sim_input = build_input(minimal_input(cash=cash, holdings=holdings, spending=SPENDING, strategies=strategies))
    return CashBufferModule(sim_input.snapshot), make_state(sim_input), make_context(sim_input)


def _intents(module, state, ctx):
    return [(intent.kind, intent.source_holding_id or intent.target_holding_id, intent.amount) for intent in module.intents(state, ctx)]


def test_cash_below_floor_refills_to_target():
    module, state, ctx = _buffer_setup(1_000.0)
    assert _intents(module, state, ctx) == [("withdraw", "brokerage", 5_000.0)]


def test_refill_order_can_prefer_tax_deferred_money():
    module, state, ctx = _buffer_setup(1_000.0, cash_buffer={**BUFFER, "refill_priority": "tax_deferred_first"})
    assert _intents(module, state, ctx) == [("withdraw", "ira", 5_000.0)]


def test_pro_rata_refill_draws_from_every_holding():
    module, state, ctx = _buffer_setup(1_000.0, cash_buffer={**BUFFER, "refill_priority": "pro_rata"})
    assert _intents(module, state, ctx) == [
        ("withdraw", "brokerage", pytest.approx(3_000.0)),
        ("withdraw", "ira", pytest.approx(2_000.0)),
    ]


def test_cash_above_ceiling_is_invested_in_the_largest_holding():
    module, state, ctx = _buffer_setup(20_000.0)
    assert _intents(module, state, ctx) == [("deposit", "brokerage", 14_000.0)]


def test_cash_inside_the_band_is_left_alone():
    module, state, ctx = _buffer_setup(8_000.0)
    assert module.intents(state, ctx) == []


def test_without_cash_first_the_floor_is_the_target():
    module, state, ctx = _buffer_setup(5_000.0, withdrawal={"use_cash_first": False})
    assert _intents(module, state, ctx) == [("withdraw", "brokerage", 1_000.0)]


def test_bridge_years_raise_the_target():
    module, state, ctx = _buffer_setup(1_000.0, early_retirement={"bridge_cash_years": 1})
    assert _intents(module, state, ctx) == [("withdraw", "brokerage", 11_000.0)]


def _rebalance_setup(holdings, **rebalancing):
    strategies = {
        "glidepath": {"enabled": True, "targets": [{"key": 0, "equity": 0.6, "bonds": 0.4}]},
        "rebalancing": {"enabled": True, "frequency": "monthly", "drift_threshold": 0.05, **rebalancing},
    }
    sim_input = build_input(minimal_input(holdings=holdings, strategies=strategies))
    return make_state(sim_input), make_context(sim_input)


def test_rebalancing_trades_within_an_account():
    state, ctx = _rebalance_setup(
        [
            holding("stocks", "taxable", 80_000.0, account_id="brokerage"),
            holding("bonds", "taxable", 20_000.0, account_id="brokerage", holding_type="bonds"),
        ]
    )
    intents = RebalancingModule().intents(state, ctx)
    assert [(intent.source_holding_id, intent.target_holding_id) for intent in intents] == [("stocks", "bonds")]
    assert intents[0].amount == pytest.approx(20_000.0)


def test_rebalancing_opens_a_missing_asset_class():
    state, ctx = _rebalance_setup([holding("stocks", "traditional", 100_000.0, account_id="ira")])
    module = RebalancingModule()
    intents = module.intents(state, ctx)

    assert module.created == 1
    created = state.ledger.holding("ira:bonds:traditional")
    assert created is not None
    assert created.holding_type == "bonds"
    assert intents[0].target_holding_id == created.id
    assert intents[0].amount == pytest.approx(40_000.0)


def test_small_drift_is_ignored():
    state, ctx = _rebalance_setup(
        [
            holding("stocks", "taxable", 62_000.0, account_id="brokerage"),
            holding("bonds", "taxable", 38_000.0, account_id="brokerage", holding_type="bonds"),
        ]
    )
    assert RebalancingModule().intents(state, ctx) == []


def test_annual_rebalancing_waits_for_year_end():
    state, ctx = _rebalance_setup(
        [
            holding("stocks", "taxable", 80_000.0, account_id="brokerage"),
            holding("bonds", "taxable", 20_000.0, account_id="brokerage", holding_type="bonds"),
        ],
        frequency="annual",
    )
    assert RebalancingModule().intents(state, ctx) == []


def test_interpolate_targets_between_keys():
    targets = [AllocationTarget(key=40, equity=0.8, bonds=0.2), AllocationTarget(key=60, equity=0.6, bonds=0.4)]
    mid = interpolate_targets(targets, 50)
    assert mid.equity == pytest.approx(0.7)
    assert interpolate_targets(targets, 30).equity == 0.8
    assert interpolate_targets(targets, 90).equity == 0.6
    assert interpolate_targets([], 50) is None


def test_asset_classes():
    assert asset_class("sp500") == "equity"
    assert asset_class("emerging_markets") == "equity"
    assert asset_class("bonds") == "bonds"
    assert asset_class("real_estate") == "real_estate"


def test_deterministic_returns_and_cash_interest():
    sim_input = build_input(minimal_input(cash=1_000.0, cash_rate=0.05, holdings=[holding("h", "taxable", 10_000.0, rate=0.12)]))
    state = make_state(sim_input)
    shocks = build_return_shocks(sim_input.snapshot.scenario.strategies.return_model, state.ledger.holdings, 12, 7)
    records = ReturnsModule(shocks).market_returns(state, make_context(sim_input))

    assert records[0].kind == "cash"
    assert records[0].amount == pytest.approx(1_000.0 * to_monthly_rate(0.05))
    assert state.ledger.holding("h").balance == pytest.approx(10_000.0 * (1 + to_monthly_rate(0.12)))


def test_stochastic_shocks_are_seeded_per_holding():
    sim_input = build_input(
        minimal_input(
            holdings=[holding("a", "taxable", 1.0), holding("b", "taxable", 1.0)],
            strategies={"return_model": {"mode": "stochastic"}},
        )
    )
    model = sim_input.snapshot.scenario.strategies.return_model
    holdings = make_state(sim_input).ledger.holdings

    first = build_return_shocks(model, holdings, 24, 11)
    again = build_return_shocks(model, holdings, 24, 11)
    other = build_return_shocks(model, holdings, 24, 12)
    assert first.by_key == again.by_key
    assert first.by_key["a"] != first.by_key["b"]
    assert first.by_key["a"] != other.by_key["a"]
    assert len(first.by_key["a"]) == 24


def test_regime_shocks_are_yearly_and_correlated_by_asset_class():
    sim_input = build_input(
        minimal_input(
            holdings=[holding("a", "taxable", 1.0), holding("b", "roth", 1.0)],
            strategies={"return_model": {"mode": "stochastic", "sequence_model": "regime", "correlation_model": "asset_class"}},
        )
    )
    model = sim_input.snapshot.scenario.strategies.return_model
    holdings = make_state(sim_input).ledger.holdings
    shocks = build_return_shocks(model, holdings, 25, 3)

    assert list(shocks.by_key) == ["equity"]
    assert len(shocks.by_key["equity"]) == 3
    assert shocks.shock(holdings[0], 5) == shocks.shock(holdings[1], 11)


def test_historical_replay_wraps_and_offsets_by_trial():
    assert replay_year(None, 0, 0) == FIRST_YEAR
    assert replay_year(2020, 10, 0) == 1931
    assert replay_year(1800, 0, 1) == FIRST_YEAR + 1
    assert replay_year(LAST_YEAR, 0, 1) == FIRST_YEAR
    for year in range(FIRST_YEAR, LAST_YEAR + 1):
        stocks, bonds = historical_returns(year)
        assert -0.95 <= stocks < 1.0
        assert -0.95 <= bonds < 1.0
