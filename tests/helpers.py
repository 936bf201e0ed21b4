import copy
from datetime import date
import json
from pathlib import Path

from rsim.dates import add_months, age_in_years
from rsim.inflation import build_inflation_index
from rsim.ledger import Ledger, TaxLedger
from rsim.pipeline import MonthContext, PathState
from rsim.schema import SimulationInput

SAMPLE_INPUT = Path(__file__).resolve().parent.parent / "sample_input.json"


def write_input(tmp_path: Path, data: dict, filename: str = "input.json") -> Path:
    path = tmp_path / filename
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def clone_input(data: dict) -> dict:
    return copy.deepcopy(data)


def minimal_input(
    *,
    cash: float = 0.0,
    cash_rate: float | None = 0.0,
    holdings: list[dict] | None = None,
    spending: list[dict] | None = None,
    strategies: dict | None = None,
    months: int = 12,
    start_date: str = "2025-01-01",
    date_of_birth: str = "1960-01-01",
    life_expectancy: int = 95,
) -> dict:
    """One person, one cash account, no inflation and no market growth unless given."""
    holdings = holdings or []
    account_ids = sorted({holding["account_id"] for holding in holdings})
    base_strategies = {
        "return_model": {"mode": "deterministic", "seed": 7, "inflation_assumptions": {"cpi": 0.0, "medical": 0.0, "housing": 0.0, "education": 0.0}},
        "rmd": {"enabled": False},
    }
    for key, value in (strategies or {}).items():
        if isinstance(value, dict) and isinstance(base_strategies.get(key), dict):
            base_strategies[key] = {**base_strategies[key], **value}
        else:
            base_strategies[key] = value
    cash_account = {"id": "cash", "name": "Cash", "balance": cash}
    if cash_rate is not None:
        cash_account["interest_rate"] = cash_rate
    return {
        "snapshot": {
            "scenario": {"id": "test", "name": "Test", "strategies": base_strategies},
            "people": [
                {"id": "p1", "name": "Pat", "date_of_birth": date_of_birth, "life_expectancy": life_expectancy}
            ],
            "cash_accounts": [cash_account],
            "investment_accounts": [{"id": account_id, "name": account_id} for account_id in account_ids],
            "holdings": holdings,
            "spending_items": spending or [],
        },
        "settings": {"start_date": start_date, "months": months},
    }


def holding(holding_id: str, tax_type: str, balance: float, *, rate: float = 0.0, holding_type: str = "sp500", **extra) -> dict:
    data = {
        "id": holding_id,
        "account_id": f"{holding_id}-account",
        "name": holding_id,
        "tax_type": tax_type,
        "holding_type": holding_type,
        "balance": balance,
        "return_rate": rate,
        "return_std_dev": 0.15,
    }
    data.update(extra)
    return data


def build_input(data: dict) -> SimulationInput:
    return SimulationInput.from_dict(data)


def make_state(sim_input: SimulationInput) -> PathState:
    snapshot = sim_input.snapshot
    ledger = Ledger.from_snapshot(snapshot, snapshot.scenario.strategies.taxable_lot.cost_basis_method)
    return PathState(ledger=ledger, year_ledger=TaxLedger(year=sim_input.settings.start_date.year))


def make_context(sim_input: SimulationInput, month_index: int = 0, on: date | None = None, age: float | None = None) -> MonthContext:
    snapshot = sim_input.snapshot
    strategies = snapshot.scenario.strategies
    start = sim_input.settings.start_date
    current = on or add_months(start, month_index)
    ages = {person.id: age_in_years(person.date_of_birth, current) for person in snapshot.people}
    if age is not None and snapshot.people:
        ages[snapshot.people[0].id] = age
    return MonthContext(
        snapshot=snapshot,
        strategies=strategies,
        start_date=start,
        months=sim_input.settings.months,
        month_index=month_index,
        date=current,
        inflation=build_inflation_index(strategies.return_model, start, sim_input.settings.months, 7),
        ages=ages,
        seed=7,
    )
