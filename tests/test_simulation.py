import pytest

from rsim.progress import ProgressChannel
from rsim.random_source import hash_string_to_seed
from rsim.simulation import CancelToken, base_seed, run_simulation, with_overrides
from tests.helpers import build_input, holding, minimal_input

SPENDING = [{"id": "living", "name": "Living", "need_amount": 1_500.0}]


def _stochastic_input(mode="stochastic", runs=20, months=24):
    data = minimal_input(
        cash=5_000.0,
        holdings=[holding("brokerage", "taxable", 100_000.0, rate=0.07), holding("ira", "traditional", 50_000.0, rate=0.05)],
        spending=SPENDING,
        months=months,
        strategies={"return_model": {"mode": mode, "stochastic_runs": runs}},
    )
    return build_input(data)


def _endings(result):
    return [run.ending_balance for run in result.stochastic_runs]


def test_deterministic_mode_runs_one_path():
    result = run_simulation(_stochastic_input(mode="deterministic"))

    assert result.mode == "deterministic"
    assert result.stochastic_runs is None
    assert result.summary.success_rate == 1.0
    assert len(result.timeline) == 2
    assert len(result.explanations) == 24


def test_stochastic_runs_are_reproducible():
    sim_input = _stochastic_input(runs=200)
    first = run_simulation(sim_input)
    second = run_simulation(sim_input)

    assert len(first.stochastic_runs) == 200
    assert _endings(first) == _endings(second)
    assert first.stochastic_runs[-1].ending_balance == second.stochastic_runs[-1].ending_balance
    assert len(set(_endings(first))) > 1
    assert [run.trial_index for run in first.stochastic_runs] == list(range(200))
    assert first.summary.runs_completed == 200
    # Trial 0 is the canonical path.
    assert first.summary.ending_balance == first.stochastic_runs[0].ending_balance
    assert len(first.explanations) == 24


def test_different_seeds_give_different_trials():
    sim_input = _stochastic_input(runs=3)
    first = run_simulation(with_overrides(sim_input, seed=1))
    second = run_simulation(with_overrides(sim_input, seed=2))
    assert _endings(first) != _endings(second)


def test_percentiles_are_ordered():
    result = run_simulation(_stochastic_input())
    percentiles = result.summary.ending_balance_percentiles

    assert list(percentiles) == ["p10", "p25", "p50", "p75", "p90"]
    values = list(percentiles.values())
    assert values == sorted(values)
    assert 0.0 <= result.summary.success_rate <= 1.0


def test_cancel_before_start_still_returns_the_canonical_trial():
    token = CancelToken()
    token.cancel()
    token.cancel()
    result = run_simulation(_stochastic_input(), cancel=token)

    assert len(result.stochastic_runs) == 1
    assert result.stochastic_runs_cancelled
    assert result.summary.runs_completed == 1


def test_cancel_from_a_progress_listener():
    token = CancelToken()
    channel = ProgressChannel()
    updates = []

    def listener(update):
        updates.append(update)
        if update.completed >= 3:
            token.cancel()

    channel.subscribe("run-1", listener)
    result = run_simulation(_stochastic_input(), cancel=token, progress=channel, run_id="run-1")

    assert len(result.stochastic_runs) == 3
    assert result.stochastic_runs_cancelled
    assert [update.completed for update in updates] == [1, 2, 3, 3]
    assert updates[-1].cancelled
    assert all(update.target == 20 for update in updates)


def test_historical_mode_runs_every_trial():
    result = run_simulation(_stochastic_input(mode="historical", runs=4))

    assert result.mode == "historical"
    assert len(result.stochastic_runs) == 4
    assert not result.stochastic_runs_cancelled
    assert len(set(_endings(result))) > 1


def test_overrides_replace_return_model_settings():
    sim_input = _stochastic_input(mode="deterministic")
    changed = with_overrides(sim_input, mode="stochastic", runs=5, seed=99)
    model = changed.snapshot.scenario.strategies.return_model

    assert (model.mode, model.stochastic_runs, model.seed) == ("stochastic", 5, 99)
    assert sim_input.snapshot.scenario.strategies.return_model.mode == "deterministic"
    assert with_overrides(sim_input) is sim_input


def test_seed_defaults_to_a_hash_of_scenario_and_start():
    data = minimal_input()
    del data["snapshot"]["scenario"]["strategies"]["return_model"]["seed"]
    assert base_seed(build_input(data)) == hash_string_to_seed("test:2025-01-01")
    assert base_seed(build_input(minimal_input())) == 7


@pytest.mark.parametrize("runs", [0, 1])
def test_at_least_one_trial_runs(runs):
    result = run_simulation(_stochastic_input(runs=runs))
    assert len(result.stochastic_runs) == 1


def test_trial_summaries_carry_guardrail_statistics():
    data = minimal_input(
        holdings=[holding("brokerage", "taxable", 200_000.0, rate=0.07)],
        spending=[{"id": "living", "name": "Living", "need_amount": 500.0, "want_amount": 1_000.0}],
        months=24,
        strategies={
            "return_model": {"mode": "stochastic", "stochastic_runs": 5},
            "withdrawal": {"guardrail": {"strategy": "cap_wants", "withdrawal_rate_limit": 0.04}},
        },
    )
    result = run_simulation(build_input(data))

    for run in result.stochastic_runs:
        assert 0.0 <= run.guardrail_factor_min <= run.guardrail_factor_avg < 1.0
        assert run.guardrail_below_pct == pytest.approx(1.0)
    assert result.summary.guardrail_factor_min == result.stochastic_runs[0].guardrail_factor_min
