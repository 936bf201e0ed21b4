from rsim.engine import ReconciliationError
import rsim.run
from rsim.run import execute_run
from tests.helpers import clone_input, minimal_input


def test_sample_run_succeeds(sample_input_dict):
    run = execute_run(sample_input_dict, run_id="run-1")

    assert run.status == "success"
    assert run.error_message is None
    assert run.id == "run-1"
    assert run.scenario_id == "sample-retirement"
    assert run.result is not None
    assert len(run.result.timeline) == 30
    assert run.snapshot is not None
    assert run.finished_at >= run.started_at


def test_runs_get_generated_ids():
    first = execute_run(minimal_input())
    second = execute_run(minimal_input())
    assert first.id and first.id != second.id


def test_schema_error_becomes_an_error_run():
    data = minimal_input()
    del data["settings"]
    run = execute_run(data)

    assert run.status == "error"
    assert run.error_message == "input.settings: missing required field"
    assert run.scenario_id == "test"
    assert run.result is None


def test_non_object_input_has_no_scenario_id():
    run = execute_run([])
    assert run.status == "error"
    assert run.scenario_id == ""


def test_validation_error_becomes_an_error_run():
    data = clone_input(minimal_input())
    data["settings"]["months"] = -1
    run = execute_run(data)

    assert run.status == "error"
    assert "settings.months: must be >= 0" in run.error_message
    assert run.validation is not None
    assert run.validation.errors == ["settings.months: must be >= 0"]


def test_reconciliation_failure_is_reported(monkeypatch):
    def _fail(*args, **kwargs):
        raise ReconciliationError("month 3 (2025-04-01): modules explain 1.0000 but balances moved 2.0000")

    monkeypatch.setattr(rsim.run, "run_simulation", _fail)
    run = execute_run(minimal_input())

    assert run.status == "error"
    assert run.error_message.startswith("month 3")


def test_unexpected_fault_is_reported_with_its_type(monkeypatch):
    def _fail(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(rsim.run, "run_simulation", _fail)
    run = execute_run(minimal_input())

    assert run.status == "error"
    assert run.error_message == "RuntimeError: boom"
    assert run.finished_at is not None
