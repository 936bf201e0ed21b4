"""Simulation orchestration: one deterministic path or many trials."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import logging
import math
import threading

from .engine import PathResult, TimelinePoint, run_path
from .explain import MonthExplanation
from .progress import ProgressChannel, make_update
from .random_source import hash_string_to_seed, trial_seed
from .schema import SimulationInput

logger = logging.getLogger(__name__)

PERCENTILES = (0.10, 0.25, 0.50, 0.75, 0.90)


class CancelToken:
    """Checked between trials; cancelling twice is harmless."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(slots=True)
class StochasticRunSummary:
    trial_index: int
    seed: int
    ending_balance: float
    min_balance: float
    max_balance: float
    total_shortfall: float
    first_shortfall_month: int | None
    succeeded: bool
    legacy_total: float
    guardrail_factor_avg: float
    guardrail_factor_min: float
    guardrail_below_pct: float
    months_simulated: int

    @property
    def terminal_value(self) -> float:
        """Money left at the end, whether still invested or already bequeathed."""
        return self.ending_balance + self.legacy_total


@dataclass(slots=True)
class ResultSummary:
    ending_balance: float
    min_balance: float
    max_balance: float
    guardrail_factor_avg: float = 1.0
    guardrail_factor_min: float = 1.0
    guardrail_below_pct: float = 0.0
    legacy_total: float = 0.0
    total_shortfall: float = 0.0
    success_rate: float | None = None
    ending_balance_percentiles: dict[str, float] = field(default_factory=dict)
    runs_completed: int = 1


@dataclass(slots=True)
class SimulationResult:
    mode: str
    seed: int
    timeline: list[TimelinePoint]
    summary: ResultSummary
    monthly_timeline: list[TimelinePoint] = field(default_factory=list)
    explanations: list[MonthExplanation] = field(default_factory=list)
    stochastic_runs: list[StochasticRunSummary] | None = None
    stochastic_runs_cancelled: bool = False
    bequests: dict[str, float] = field(default_factory=dict)


def _percentile(values: list[float], pct: float) -> float:
    ordered = sorted(values)
    if not ordered:
        return 0.0
    if len(ordered) == 1:
        return ordered[0]
    position = (len(ordered) - 1) * pct
    low = int(math.floor(position))
    high = int(math.ceil(position))
    if low == high:
        return ordered[low]
    weight = position - low
    return (ordered[low] * (1.0 - weight)) + (ordered[high] * weight)


def base_seed(sim_input: SimulationInput) -> int:
    """Configured seed, else a stable hash of scenario id and start date."""
    configured = sim_input.snapshot.scenario.strategies.return_model.seed
    if configured is not None:
        return configured
    scenario_id = sim_input.snapshot.scenario.id
    return hash_string_to_seed(f"{scenario_id}:{sim_input.settings.start_date.isoformat()}")


def with_overrides(
    sim_input: SimulationInput,
    *,
    mode: str | None = None,
    runs: int | None = None,
    seed: int | None = None,
) -> SimulationInput:
    """Copy of ``sim_input`` with return-model settings replaced."""
    if mode is None and runs is None and seed is None:
        return sim_input
    scenario = sim_input.snapshot.scenario
    model = scenario.strategies.return_model
    model = replace(
        model,
        mode=mode if mode is not None else model.mode,
        stochastic_runs=runs if runs is not None else model.stochastic_runs,
        seed=seed if seed is not None else model.seed,
    )
    strategies = replace(scenario.strategies, return_model=model)
    snapshot = replace(sim_input.snapshot, scenario=replace(scenario, strategies=strategies))
    return replace(sim_input, snapshot=snapshot)


def summarize_trial(path: PathResult) -> StochasticRunSummary:
    return StochasticRunSummary(
        trial_index=path.trial_index,
        seed=path.seed,
        ending_balance=path.ending_balance,
        min_balance=path.min_balance,
        max_balance=path.max_balance,
        total_shortfall=path.total_shortfall,
        first_shortfall_month=path.first_shortfall_month,
        succeeded=path.succeeded,
        legacy_total=path.legacy_total,
        guardrail_factor_avg=path.guardrail_factor_avg,
        guardrail_factor_min=path.guardrail_factor_min,
        guardrail_below_pct=path.guardrail_below_pct,
        months_simulated=path.months_simulated,
    )


def _path_summary(path: PathResult) -> ResultSummary:
    return ResultSummary(
        ending_balance=path.ending_balance,
        min_balance=path.min_balance,
        max_balance=path.max_balance,
        guardrail_factor_avg=path.guardrail_factor_avg,
        guardrail_factor_min=path.guardrail_factor_min,
        guardrail_below_pct=path.guardrail_below_pct,
        legacy_total=path.legacy_total,
        total_shortfall=path.total_shortfall,
    )


def _aggregate(canonical: PathResult, runs: list[StochasticRunSummary]) -> ResultSummary:
    summary = _path_summary(canonical)
    if not runs:
        return summary
    terminal = [run.terminal_value for run in runs]
    summary.success_rate = sum(1 for run in runs if run.succeeded) / len(runs)
    summary.ending_balance_percentiles = {f"p{round(pct * 100)}": _percentile(terminal, pct) for pct in PERCENTILES}
    summary.runs_completed = len(runs)
    return summary


def run_simulation(
    sim_input: SimulationInput,
    *,
    cancel: CancelToken | None = None,
    progress: ProgressChannel | None = None,
    run_id: str = "",
) -> SimulationResult:
    """Run the scenario's return model.

    Deterministic mode runs one path with explanations. Stochastic and
    historical modes run ``stochastic_runs`` trials; trial 0 is the canonical
    path whose timeline and explanations are returned.
    """
    model = sim_input.snapshot.scenario.strategies.return_model
    mode = model.mode
    seed = base_seed(sim_input)

    if mode == "deterministic":
        path = run_path(sim_input, seed=seed, record_explanations=True)
        summary = _path_summary(path)
        summary.success_rate = 1.0 if path.succeeded else 0.0
        return SimulationResult(
            mode=mode,
            seed=seed,
            timeline=path.yearly,
            summary=summary,
            monthly_timeline=path.monthly,
            explanations=path.explanations,
            bequests=path.bequests,
        )

    target = max(1, model.stochastic_runs)
    canonical: PathResult | None = None
    runs: list[StochasticRunSummary] = []
    cancelled = False
    for trial_index in range(target):
        if trial_index > 0 and cancel is not None and cancel.cancelled:
            cancelled = True
            logger.info("run %s cancelled after %d of %d trials", run_id or "-", len(runs), target)
            break
        path = run_path(
            sim_input,
            seed=trial_seed(seed, trial_index),
            trial_index=trial_index,
            record_explanations=trial_index == 0,
        )
        if trial_index == 0:
            canonical = path
        runs.append(summarize_trial(path))
        if progress is not None:
            progress.publish(make_update(run_id, len(runs), target))
        logger.debug("trial %d finished: ending balance %.2f", trial_index, path.ending_balance)

    if cancelled and progress is not None:
        progress.publish(make_update(run_id, len(runs), target, cancelled=True))
    logger.info("%s run finished %d of %d trials", mode, len(runs), target)

    if canonical is None:
        raise RuntimeError("trial 0 did not run")
    return SimulationResult(
        mode=mode,
        seed=seed,
        timeline=canonical.yearly,
        summary=_aggregate(canonical, runs),
        monthly_timeline=canonical.monthly,
        explanations=canonical.explanations,
        stochastic_runs=runs,
        stochastic_runs_cancelled=cancelled,
        bequests=canonical.bequests,
    )
