import json

from rsim.__main__ import main
from tests.helpers import SAMPLE_INPUT, clone_input, write_input


def test_validate_mode_exits_zero(capsys):
    code = main([str(SAMPLE_INPUT), "--validate"])
    assert code == 0
    assert "Input is valid." in capsys.readouterr().out


def test_invalid_input_returns_one(tmp_path, sample_input_dict, capsys):
    data = clone_input(sample_input_dict)
    data["snapshot"]["holdings"][0]["account_id"] = "nowhere"
    path = write_input(tmp_path, data)

    code = main([str(path), "--validate"])
    assert code == 1
    assert "ERROR: snapshot.holdings[0].account_id" in capsys.readouterr().err


def test_missing_input_file_returns_two(tmp_path):
    assert main([str(tmp_path / "nope.json"), "--validate"]) == 2


def test_malformed_input_returns_two(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("{not json", encoding="utf-8")
    assert main([str(path)]) == 2


def test_runs_must_be_positive(tmp_path, sample_input_dict):
    path = write_input(tmp_path, sample_input_dict)
    assert main([str(path), "--mode", "stochastic", "--runs", "0"]) == 2


def test_summary_mode_writes_output(tmp_path, sample_input_dict, capsys):
    input_path = write_input(tmp_path, sample_input_dict)
    output_path = tmp_path / "out.json"
    code = main([str(input_path), "--summary", "--mode", "deterministic", "-o", str(output_path)])

    assert code == 0
    out = capsys.readouterr().out
    assert "Mode: deterministic" in out
    assert f"Wrote result to {output_path}" in out
    payload = json.loads(output_path.read_text(encoding="utf-8"))
    assert payload["status"] == "success"
    assert "monthly_timeline" not in payload["result"]


def test_stochastic_override(tmp_path, sample_input_dict):
    data = clone_input(sample_input_dict)
    data["settings"]["months"] = 24
    input_path = write_input(tmp_path, data)
    output_path = tmp_path / "out.json"
    code = main([str(input_path), "--mode", "stochastic", "--runs", "3", "--seed", "5", "--explain", "-o", str(output_path)])

    assert code == 0
    result = json.loads(output_path.read_text(encoding="utf-8"))["result"]
    assert result["mode"] == "stochastic"
    assert result["seed"] == 5
    assert len(result["stochastic_runs"]) == 3
    assert len(result["monthly_timeline"]) == 24
    assert len(result["explanations"]) == 24
