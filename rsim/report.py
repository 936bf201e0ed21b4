"""JSON and plain-text rendering of simulation runs."""

from __future__ import annotations

from dataclasses import asdict
from datetime import date, datetime
import json
from pathlib import Path
from typing import Any

from .engine import TimelinePoint
from .explain import month_to_dict
from .run import SimulationRun
from .simulation import SimulationResult


def _money(value: float) -> str:
    return f"${value:,.0f}"


def _json_default(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    raise TypeError(f"{type(value).__name__} is not JSON serializable")


def point_to_dict(point: TimelinePoint) -> dict[str, Any]:
    out = asdict(point)
    out["date"] = point.date.isoformat()
    if point.tax_ledger is None:
        out.pop("tax_ledger")
    return out


def result_to_dict(result: SimulationResult, *, include_monthly: bool = False, include_explanations: bool = False) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "mode": result.mode,
        "seed": result.seed,
        "summary": asdict(result.summary),
        "timeline": [point_to_dict(point) for point in result.timeline],
        "bequests": dict(result.bequests),
        "stochastic_runs_cancelled": result.stochastic_runs_cancelled,
    }
    if result.stochastic_runs is not None:
        payload["stochastic_runs"] = [asdict(run) for run in result.stochastic_runs]
    if include_monthly:
        payload["monthly_timeline"] = [point_to_dict(point) for point in result.monthly_timeline]
    if include_explanations:
        payload["explanations"] = [month_to_dict(month) for month in result.explanations]
    return payload


def run_to_dict(run: SimulationRun, *, include_monthly: bool = False, include_explanations: bool = False) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": run.id,
        "scenario_id": run.scenario_id,
        "started_at": run.started_at.isoformat(),
        "finished_at": run.finished_at.isoformat() if run.finished_at else None,
        "status": run.status,
        "error_message": run.error_message,
        "result": None,
    }
    if run.validation is not None:
        payload["warnings"] = list(run.validation.warnings)
        if run.validation.errors:
            payload["errors"] = list(run.validation.errors)
    if run.result is not None:
        payload["result"] = result_to_dict(
            run.result, include_monthly=include_monthly, include_explanations=include_explanations
        )
    return payload


def summary_lines(result: SimulationResult) -> list[str]:
    summary = result.summary
    lines = [f"Mode: {result.mode}", f"Seed: {result.seed}"]
    if result.timeline:
        first = result.timeline[0]
        last = result.timeline[-1]
        lines.append(f"Years: {first.date.year}-{last.date.year}")
    lines.append(f"Ending balance: {_money(summary.ending_balance)}")
    lines.append(f"Min/max balance: {_money(summary.min_balance)} / {_money(summary.max_balance)}")
    if summary.success_rate is not None:
        lines.append(f"Success rate: {summary.success_rate:.1%} ({summary.runs_completed} runs)")
    for label, value in summary.ending_balance_percentiles.items():
        lines.append(f"  {label}: {_money(value)}")
    if summary.total_shortfall > 0:
        lines.append(f"Total shortfall: {_money(summary.total_shortfall)}")
    if summary.legacy_total > 0:
        lines.append(f"Legacy: {_money(summary.legacy_total)}")
    if summary.guardrail_factor_min < 1.0:
        lines.append(
            f"Guardrail factor: avg {summary.guardrail_factor_avg:.3f}, min {summary.guardrail_factor_min:.3f}, "
            f"below 1.0 in {summary.guardrail_below_pct:.1%} of months"
        )
    if result.stochastic_runs_cancelled:
        lines.append("Stochastic runs were cancelled before completion.")
    return lines


def write_json(path: str | Path, payload: dict[str, Any]) -> None:
    Path(path).write_text(json.dumps(payload, indent=2, default=_json_default), encoding="utf-8")
