"""Validated run boundary: raw input in, SimulationRun out."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from typing import Any
import uuid

from .engine import ReconciliationError
from .fields import SchemaError
from .progress import ProgressChannel
from .schema import SimulationInput, SimulationSnapshot
from .simulation import CancelToken, SimulationResult, run_simulation
from .validate import ValidationError, ValidationResult, validate_input

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SimulationRun:
    id: str
    scenario_id: str
    started_at: datetime
    finished_at: datetime | None = None
    status: str = "success"
    error_message: str | None = None
    result: SimulationResult | None = None
    snapshot: SimulationSnapshot | None = None
    validation: ValidationResult | None = None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _scenario_id(raw: Any) -> str:
    try:
        return str(raw["snapshot"]["scenario"]["id"])
    except (KeyError, TypeError):
        return ""


def prepare_input(raw_or_input: SimulationInput | dict[str, Any]) -> tuple[SimulationInput, ValidationResult]:
    """Parse if needed and validate; raises SchemaError or ValidationError."""
    sim_input = raw_or_input if isinstance(raw_or_input, SimulationInput) else SimulationInput.from_dict(raw_or_input)
    validation = validate_input(sim_input)
    if not validation.is_valid:
        raise ValidationError(validation)
    return sim_input, validation


def execute_run(
    raw_or_input: SimulationInput | dict[str, Any],
    *,
    cancel: CancelToken | None = None,
    progress: ProgressChannel | None = None,
    run_id: str | None = None,
) -> SimulationRun:
    """Run a simulation and report the outcome as a record; never raises.

    Bad input and internal faults both come back with ``status="error"`` and a
    message. A cancelled stochastic run is a success carrying partial results.
    """
    if isinstance(raw_or_input, SimulationInput):
        scenario_id = raw_or_input.snapshot.scenario.id
    else:
        scenario_id = _scenario_id(raw_or_input)
    run = SimulationRun(id=run_id or uuid.uuid4().hex, scenario_id=scenario_id, started_at=_now())
    logger.info("run %s requested for scenario '%s'", run.id, scenario_id)

    try:
        sim_input, validation = prepare_input(raw_or_input)
        run.snapshot = sim_input.snapshot
        run.validation = validation
        for warning in validation.warnings:
            logger.warning("run %s: %s", run.id, warning)
        logger.info("run %s: input accepted, %d months", run.id, sim_input.settings.months)
        run.result = run_simulation(sim_input, cancel=cancel, progress=progress, run_id=run.id)
    except ValidationError as exc:
        run.status = "error"
        run.error_message = str(exc)
        run.validation = exc.result
        logger.warning("run %s rejected: %s", run.id, exc)
    except SchemaError as exc:
        run.status = "error"
        run.error_message = str(exc)
        logger.warning("run %s rejected: %s", run.id, exc)
    except ReconciliationError as exc:
        run.status = "error"
        run.error_message = str(exc)
        logger.error("run %s failed reconciliation: %s", run.id, exc)
    except Exception as exc:
        run.status = "error"
        run.error_message = f"{type(exc).__name__}: {exc}"
        logger.exception("run %s failed", run.id)
    run.finished_at = _now()
    return run
