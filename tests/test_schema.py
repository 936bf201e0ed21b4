from datetime import date

import pytest

from rsim.fields import SchemaError
from rsim.schema import SimulationInput, load_input
from rsim.strategies import (
    CapWantsGuardrail,
    GuytonGuardrail,
    MinBalanceHealthGuardrail,
    NoGuardrail,
    ScenarioStrategies,
    default_strategies,
    merge_guardrail,
    merge_strategies,
)
from rsim.tax_data import INFLATION_DEFAULTS
from tests.helpers import SAMPLE_INPUT, clone_input, minimal_input, write_input


def test_sample_input_loads():
    sim_input = load_input(SAMPLE_INPUT)

    assert sim_input.snapshot.scenario.id == "sample-retirement"
    assert sim_input.settings.start_date == date(2025, 1, 1)
    assert sim_input.settings.months == 360
    assert [person.id for person in sim_input.snapshot.people] == ["alex", "sam"]
    assert sim_input.snapshot.primary.id == "alex"
    brokerage = sim_input.snapshot.holdings[0]
    assert [lot.amount for lot in brokerage.cost_basis_lots] == [90_000, 110_000]
    assert sim_input.snapshot.scenario.strategies.withdrawal.guardrail == CapWantsGuardrail(withdrawal_rate_limit=0.05)


def test_missing_strategies_take_every_default():
    strategies = ScenarioStrategies.from_dict(None)
    assert strategies == default_strategies()
    assert strategies.withdrawal.order == ["taxable", "traditional", "roth", "hsa"]
    assert strategies.rmd.enabled
    assert not strategies.death.enabled
    assert strategies.return_model.inflation_assumptions == INFLATION_DEFAULTS


def test_partial_override_keeps_sibling_defaults():
    strategies = merge_strategies(
        default_strategies(),
        {"cash_buffer": {"enabled": True, "target_months": 9}, "return_model": {"inflation_assumptions": {"cpi": 0.05}}},
        "strategies",
    )
    assert strategies.cash_buffer.enabled
    assert strategies.cash_buffer.target_months == 9
    assert strategies.cash_buffer.min_months == 6.0
    assert strategies.return_model.inflation_assumptions["cpi"] == 0.05
    assert strategies.return_model.inflation_assumptions["medical"] == INFLATION_DEFAULTS["medical"]


def test_overrides_stack_on_earlier_overrides():
    first = merge_strategies(default_strategies(), {"rmd": {"withholding_rate": 0.2}}, "strategies")
    second = merge_strategies(first, {"rmd": {"start_age": 75}}, "strategies")
    assert (second.rmd.start_age, second.rmd.withholding_rate) == (75, 0.2)


def test_null_fields_fall_back_to_defaults():
    strategies = merge_strategies(default_strategies(), {"charitable": {"annual_giving": None}}, "strategies")
    assert strategies.charitable.annual_giving == 0.0


def test_guardrail_variants():
    assert merge_guardrail(NoGuardrail(), {"strategy": "guyton", "applied_pct": 0.2}, "g") == GuytonGuardrail(applied_pct=0.2)
    assert merge_guardrail(GuytonGuardrail(), {"strategy": "none"}, "g") == NoGuardrail()
    assert merge_guardrail(CapWantsGuardrail(0.03), {}, "g") == CapWantsGuardrail(0.03)
    assert merge_guardrail(NoGuardrail(), {"strategy": "min_balance_health"}, "g") == MinBalanceHealthGuardrail()


def test_guardrail_parameters_do_not_leak_across_variants():
    changed = merge_guardrail(GuytonGuardrail(applied_pct=0.5), {"strategy": "cap_wants"}, "g")
    assert changed == CapWantsGuardrail()

    kept = merge_guardrail(GuytonGuardrail(applied_pct=0.5), {"duration_months": 6}, "g")
    assert kept == GuytonGuardrail(applied_pct=0.5, duration_months=6)


def test_health_points_are_sorted():
    rule = merge_guardrail(
        NoGuardrail(),
        {"strategy": "portfolio_health", "points": [{"health": 1.0, "factor": 1.0}, {"health": 0.8, "factor": 0.2}]},
        "g",
    )
    assert rule.points == ((0.8, 0.2), (1.0, 1.0))


def test_unknown_guardrail_is_a_schema_error():
    with pytest.raises(SchemaError, match=r"g\.strategy: 'panic' is not valid"):
        merge_guardrail(NoGuardrail(), {"strategy": "panic"}, "g")


def test_min_balance_run_is_optional():
    assert SimulationInput.from_dict(minimal_input()).snapshot.min_balance_run is None

    data = minimal_input()
    data["snapshot"]["min_balance_run"] = {
        "multiplier": 0.8,
        "ending_balance": 1_000.0,
        "timeline": [
            {"year_index": 0, "age": 65.0, "balance": 400_000.0, "date": "2025-01-01"},
            {"year_index": 1, "age": 66.0, "balance": 380_000.0},
        ],
    }
    run = SimulationInput.from_dict(data).snapshot.min_balance_run
    assert run.multiplier == 0.8
    assert [(point.year_index, point.date) for point in run.timeline] == [(0, date(2025, 1, 1)), (1, None)]

    del data["snapshot"]["min_balance_run"]["timeline"][1]["balance"]
    with pytest.raises(SchemaError, match=r"snapshot\.min_balance_run\.timeline\[1\]\.balance: missing required field"):
        SimulationInput.from_dict(data)


def test_root_must_be_an_object(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("[]", encoding="utf-8")
    with pytest.raises(SchemaError, match="input: root must be a JSON object"):
        load_input(path)


def test_missing_required_field(tmp_path):
    data = minimal_input()
    del data["settings"]["start_date"]
    with pytest.raises(SchemaError, match=r"settings\.start_date: missing required field"):
        load_input(write_input(tmp_path, data))


def test_missing_person_field_reports_its_index():
    data = minimal_input()
    del data["snapshot"]["people"][0]["date_of_birth"]
    with pytest.raises(SchemaError, match=r"snapshot\.people\[0\]\.date_of_birth: missing required field"):
        SimulationInput.from_dict(data)


@pytest.mark.parametrize(
    ("mutate", "message"),
    [
        (lambda d: d["settings"].update({"months": "12"}), r"settings\.months: expected integer"),
        (lambda d: d["settings"].update({"months": 12.5}), r"settings\.months: expected integer"),
        (lambda d: d["settings"].update({"start_date": "2025-13-01"}), r"settings\.start_date: expected ISO date"),
        (lambda d: d["snapshot"]["cash_accounts"][0].update({"balance": True}), r"cash_accounts\[0\]\.balance: expected number"),
        (lambda d: d["snapshot"].update({"holdings": {}}), r"snapshot\.holdings: expected array"),
        (
            lambda d: d["snapshot"]["scenario"]["strategies"].update({"rmd": {"enabled": "yes"}}),
            r"snapshot\.scenario\.strategies\.rmd\.enabled: expected boolean",
        ),
        (
            lambda d: d["snapshot"]["scenario"]["strategies"].update({"withdrawal": []}),
            r"snapshot\.scenario\.strategies\.withdrawal: expected object",
        ),
    ],
)
def test_bad_values_name_their_path(mutate, message):
    data = clone_input(minimal_input())
    mutate(data)
    with pytest.raises(SchemaError, match=message):
        SimulationInput.from_dict(data)
