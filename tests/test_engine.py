import pytest

from rsim.engine import ReconciliationError, run_month, run_path
from rsim.explain import ACTION_KINDS, CASHFLOW_CATEGORIES
from rsim.pipeline import MODULE_IDS, SimulationModule
from rsim.schema import load_input
from tests.helpers import SAMPLE_INPUT, build_input, holding, make_context, make_state, minimal_input


def test_cash_interest_compounds_to_the_annual_rate():
    result = run_path(build_input(minimal_input(cash=100_000.0, cash_rate=0.05)), seed=1)

    assert result.ending_balance == pytest.approx(105_000.0, abs=0.01)
    assert len(result.monthly) == 12
    assert len(result.yearly) == 1
    assert result.yearly[0].balance == pytest.approx(105_000.0, abs=0.01)
    assert result.succeeded


def test_sample_input_reconciles_every_month():
    result = run_path(load_input(SAMPLE_INPUT), seed=1, record_explanations=True)

    assert result.months_simulated == 360
    assert len(result.yearly) == 30
    assert [point.index for point in result.yearly] == list(range(30))
    assert len(result.explanations) == 360
    for month in result.explanations:
        assert tuple(module.module_id for module in month.modules) == MODULE_IDS
        assert month.total_after - month.total_before == pytest.approx(month.module_total + month.market_total, abs=0.01)
        for key, balance in month.balances.items():
            assert balance >= -1e-6, (month.month_index, key, balance)
        for module in month.modules:
            assert all(item.category in CASHFLOW_CATEGORIES for item in module.cashflows)
            assert all(action.kind in ACTION_KINDS for action in module.actions)
            assert all(action.resolved <= action.requested + 1e-6 for action in module.actions)


def test_unfunded_spending_is_recorded_as_shortfall():
    spending = [{"id": "living", "name": "Living", "need_amount": 500.0}]
    result = run_path(build_input(minimal_input(cash=1_000.0, spending=spending)), seed=1)

    assert result.first_shortfall_month == 2
    assert result.total_shortfall == pytest.approx(5_000.0)
    assert not result.succeeded
    assert result.ending_balance == pytest.approx(0.0, abs=1e-6)
    assert result.yearly[0].shortfall == pytest.approx(5_000.0)


def test_spending_is_funded_from_holdings_before_shortfall():
    spending = [{"id": "living", "name": "Living", "need_amount": 500.0}]
    data = minimal_input(cash=1_000.0, spending=spending, holdings=[holding("roth", "roth", 10_000.0)])
    result = run_path(build_input(data), seed=1)

    assert result.succeeded
    assert result.ending_balance == pytest.approx(5_000.0)


def test_workplace_contributions_reach_the_retirement_holding():
    data = minimal_input(cash=0.0, holdings=[holding("401k", "traditional", 0.0)])
    data["snapshot"]["work_periods"] = [
        {
            "id": "job",
            "person_id": "p1",
            "salary": 120_000.0,
            "match_pct_cap": 0.05,
            "match_ratio": 0.5,
            "retirement_holding_id": "401k",
        }
    ]
    result = run_path(build_input(data), seed=1, record_explanations=True)

    # 500 deferred plus 250 of match every month.
    assert result.yearly[0].contributions == pytest.approx(9_000.0)
    assert result.explanations[-1].balances["401k"] == pytest.approx(9_000.0)


def test_explanations_are_only_recorded_on_request():
    sim_input = build_input(minimal_input(cash=1_000.0))
    assert run_path(sim_input, seed=1).explanations == []
    assert len(run_path(sim_input, seed=1, record_explanations=True).explanations) == 12


class _Leak(SimulationModule):
    id = "leak"

    def cashflows(self, state, ctx):
        state.ledger.adjust_cash(100.0)
        return []


def test_unexplained_balance_change_raises():
    sim_input = build_input(minimal_input(cash=1_000.0))
    with pytest.raises(ReconciliationError, match="month 0"):
        run_month([_Leak()], make_state(sim_input), make_context(sim_input))


def test_inflation_advances_every_month_from_a_month_end_start():
    spending = [{"id": "living", "name": "Living", "need_amount": 1_000.0}]
    data = minimal_input(
        cash=100_000.0,
        spending=spending,
        months=6,
        start_date="2025-01-31",
        strategies={"return_model": {"inflation_assumptions": {"cpi": 0.12}}},
    )
    result = run_path(build_input(data), seed=1, record_explanations=True)

    needs = []
    for month in result.explanations:
        spending_run = next(module for module in month.modules if module.module_id == "spending")
        needs.append(-sum(item.cash for item in spending_run.cashflows))
    assert [month.date.isoformat() for month in result.explanations][:3] == ["2025-01-31", "2025-02-28", "2025-03-31"]
    assert needs[0] == pytest.approx(1_000.0)
    assert all(later > earlier for earlier, later in zip(needs, needs[1:]))
    assert needs[5] == pytest.approx(1_000.0 * 1.12 ** (5 / 12))


def test_holdings_outside_the_configured_order_still_fund_spending():
    spending = [{"id": "living", "name": "Living", "need_amount": 1_000.0}]
    data = minimal_input(
        spending=spending,
        holdings=[holding("ira", "traditional", 100_000.0)],
        strategies={"withdrawal": {"order": ["taxable"]}},
    )
    result = run_path(build_input(data), seed=1)

    assert result.succeeded
    assert result.total_shortfall == 0.0
    assert result.ending_balance < 100_000.0
