"""Simulation input dataclasses and JSON loading."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
import json
from pathlib import Path
from typing import Any

from .fields import (
    SchemaError,
    _bool,
    _date,
    _expect_dict,
    _expect_list,
    _float,
    _int,
    _optional,
    _optional_date,
    _require,
    _str,
)
from .strategies import ScenarioStrategies
from .tax_data import (
    CAPITAL_GAINS_BRACKETS,
    FEDERAL_BRACKETS,
    IRMAA_BRACKETS,
    IRMAA_LOOKBACK_YEARS,
    SSA_BEND_POINTS,
    SSA_RETIREMENT_ADJUSTMENTS,
    SSA_WAGE_INDEX,
    STANDARD_DEDUCTIONS,
    UNIFORM_LIFETIME_DIVISORS,
)

__all__ = [
    "SchemaError",
    "Person",
    "SocialSecurityStrategy",
    "EarningsRecord",
    "WorkPeriod",
    "SpendingItem",
    "CashAccount",
    "InvestmentAccount",
    "CostBasisLot",
    "RothBasisEntry",
    "Holding",
    "TaxPolicy",
    "IrmaaTier",
    "IrmaaTable",
    "RetirementAdjustment",
    "ReferenceTables",
    "MinimumBalancePoint",
    "MinimumBalanceRun",
    "Scenario",
    "SimulationSnapshot",
    "SimulationSettings",
    "SimulationInput",
    "load_input",
]


def _list_of(data: dict[str, Any], key: str, path: str, record_cls) -> list:
    return [
        record_cls.from_dict(_expect_dict(item, f"{path}.{key}[{idx}]"), f"{path}.{key}[{idx}]")
        for idx, item in enumerate(_expect_list(_optional(data, key, []), f"{path}.{key}"))
    ]


@dataclass(slots=True)
class Person:
    id: str
    name: str
    date_of_birth: date
    life_expectancy: int = 95

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "Person":
        return cls(
            id=_str(_require(data, "id", path), f"{path}.id"),
            name=_str(_optional(data, "name", ""), f"{path}.name"),
            date_of_birth=_date(_require(data, "date_of_birth", path), f"{path}.date_of_birth"),
            life_expectancy=_int(_optional(data, "life_expectancy", 95), f"{path}.life_expectancy"),
        )


@dataclass(slots=True)
class SocialSecurityStrategy:
    person_id: str
    claim_date: date

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "SocialSecurityStrategy":
        return cls(
            person_id=_str(_require(data, "person_id", path), f"{path}.person_id"),
            claim_date=_date(_require(data, "claim_date", path), f"{path}.claim_date"),
        )


@dataclass(slots=True)
class EarningsRecord:
    person_id: str
    year: int
    amount: float
    months: int = 12

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "EarningsRecord":
        return cls(
            person_id=_str(_require(data, "person_id", path), f"{path}.person_id"),
            year=_int(_require(data, "year", path), f"{path}.year"),
            amount=_float(_require(data, "amount", path), f"{path}.amount"),
            months=_int(_optional(data, "months", 12), f"{path}.months"),
        )


@dataclass(slots=True)
class WorkPeriod:
    id: str
    person_id: str
    name: str
    salary: float
    bonus: float
    start_date: date | None
    end_date: date | None
    match_pct_cap: float = 0.0
    match_ratio: float = 0.0
    retirement_holding_id: str | None = None
    hsa_annual_contribution: float = 0.0
    hsa_holding_id: str | None = None
    includes_health_insurance: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "WorkPeriod":
        return cls(
            id=_str(_require(data, "id", path), f"{path}.id"),
            person_id=_str(_require(data, "person_id", path), f"{path}.person_id"),
            name=_str(_optional(data, "name", "Work"), f"{path}.name"),
            salary=_float(_optional(data, "salary", 0.0), f"{path}.salary"),
            bonus=_float(_optional(data, "bonus", 0.0), f"{path}.bonus"),
            start_date=_optional_date(data, "start_date", path),
            end_date=_optional_date(data, "end_date", path),
            match_pct_cap=_float(_optional(data, "match_pct_cap", 0.0), f"{path}.match_pct_cap"),
            match_ratio=_float(_optional(data, "match_ratio", 0.0), f"{path}.match_ratio"),
            retirement_holding_id=_optional(data, "retirement_holding_id"),
            hsa_annual_contribution=_float(
                _optional(data, "hsa_annual_contribution", 0.0), f"{path}.hsa_annual_contribution"
            ),
            hsa_holding_id=_optional(data, "hsa_holding_id"),
            includes_health_insurance=_bool(
                _optional(data, "includes_health_insurance", False), f"{path}.includes_health_insurance"
            ),
        )


@dataclass(slots=True)
class SpendingItem:
    id: str
    name: str
    need_amount: float
    want_amount: float
    start_date: date | None = None
    end_date: date | None = None
    inflation_type: str = "cpi"
    is_pre_tax: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "SpendingItem":
        return cls(
            id=_str(_require(data, "id", path), f"{path}.id"),
            name=_str(_optional(data, "name", ""), f"{path}.name"),
            need_amount=_float(_optional(data, "need_amount", 0.0), f"{path}.need_amount"),
            want_amount=_float(_optional(data, "want_amount", 0.0), f"{path}.want_amount"),
            start_date=_optional_date(data, "start_date", path),
            end_date=_optional_date(data, "end_date", path),
            inflation_type=_str(_optional(data, "inflation_type", "cpi"), f"{path}.inflation_type"),
            is_pre_tax=_bool(_optional(data, "is_pre_tax", False), f"{path}.is_pre_tax"),
        )


@dataclass(slots=True)
class CashAccount:
    id: str
    name: str
    balance: float
    interest_rate: float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "CashAccount":
        rate = _optional(data, "interest_rate")
        return cls(
            id=_str(_require(data, "id", path), f"{path}.id"),
            name=_str(_optional(data, "name", ""), f"{path}.name"),
            balance=_float(_require(data, "balance", path), f"{path}.balance"),
            interest_rate=None if rate is None else _float(rate, f"{path}.interest_rate"),
        )


@dataclass(slots=True)
class InvestmentAccount:
    id: str
    name: str

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "InvestmentAccount":
        return cls(
            id=_str(_require(data, "id", path), f"{path}.id"),
            name=_str(_optional(data, "name", ""), f"{path}.name"),
        )


@dataclass(slots=True)
class CostBasisLot:
    date: date
    amount: float

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "CostBasisLot":
        return cls(
            date=_date(_require(data, "date", path), f"{path}.date"),
            amount=_float(_require(data, "amount", path), f"{path}.amount"),
        )


@dataclass(slots=True)
class RothBasisEntry:
    date: date
    amount: float
    kind: str = "contribution"

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "RothBasisEntry":
        return cls(
            date=_date(_require(data, "date", path), f"{path}.date"),
            amount=_float(_require(data, "amount", path), f"{path}.amount"),
            kind=_str(_optional(data, "kind", "contribution"), f"{path}.kind"),
        )


@dataclass(slots=True)
class Holding:
    id: str
    account_id: str
    name: str
    tax_type: str
    holding_type: str
    balance: float
    return_rate: float | None = None
    return_std_dev: float | None = None
    cost_basis_lots: list[CostBasisLot] = field(default_factory=list)
    roth_basis_entries: list[RothBasisEntry] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "Holding":
        rate = _optional(data, "return_rate")
        std_dev = _optional(data, "return_std_dev")
        return cls(
            id=_str(_require(data, "id", path), f"{path}.id"),
            account_id=_str(_require(data, "account_id", path), f"{path}.account_id"),
            name=_str(_optional(data, "name", ""), f"{path}.name"),
            tax_type=_str(_require(data, "tax_type", path), f"{path}.tax_type"),
            holding_type=_str(_optional(data, "holding_type", "sp500"), f"{path}.holding_type"),
            balance=_float(_require(data, "balance", path), f"{path}.balance"),
            return_rate=None if rate is None else _float(rate, f"{path}.return_rate"),
            return_std_dev=None if std_dev is None else _float(std_dev, f"{path}.return_std_dev"),
            cost_basis_lots=_list_of(data, "cost_basis_lots", path, CostBasisLot),
            roth_basis_entries=_list_of(data, "roth_basis_entries", path, RothBasisEntry),
        )


Brackets = list[tuple[float | None, float]]


def _brackets(value: Any, path: str) -> Brackets:
    out: Brackets = []
    for idx, item in enumerate(_expect_list(value, path)):
        entry = _expect_dict(item, f"{path}[{idx}]")
        up_to = _optional(entry, "up_to")
        out.append(
            (
                None if up_to is None else _float(up_to, f"{path}[{idx}].up_to"),
                _float(_require(entry, "rate", f"{path}[{idx}]"), f"{path}[{idx}].rate"),
            )
        )
    return out


@dataclass(slots=True)
class TaxPolicy:
    year: int
    filing_status: str
    standard_deduction: float
    ordinary_brackets: Brackets
    capital_gains_brackets: Brackets

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "TaxPolicy":
        return cls(
            year=_int(_require(data, "year", path), f"{path}.year"),
            filing_status=_str(_require(data, "filing_status", path), f"{path}.filing_status"),
            standard_deduction=_float(_require(data, "standard_deduction", path), f"{path}.standard_deduction"),
            ordinary_brackets=_brackets(_require(data, "ordinary_brackets", path), f"{path}.ordinary_brackets"),
            capital_gains_brackets=_brackets(
                _require(data, "capital_gains_brackets", path), f"{path}.capital_gains_brackets"
            ),
        )


@dataclass(slots=True)
class IrmaaTier:
    max_magi: float | None
    part_b_monthly: float
    part_d_monthly: float

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "IrmaaTier":
        max_magi = _optional(data, "max_magi")
        return cls(
            max_magi=None if max_magi is None else _float(max_magi, f"{path}.max_magi"),
            part_b_monthly=_float(_optional(data, "part_b_monthly", 0.0), f"{path}.part_b_monthly"),
            part_d_monthly=_float(_optional(data, "part_d_monthly", 0.0), f"{path}.part_d_monthly"),
        )


@dataclass(slots=True)
class IrmaaTable:
    year: int
    filing_status: str
    lookback_years: int
    tiers: list[IrmaaTier]

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "IrmaaTable":
        return cls(
            year=_int(_require(data, "year", path), f"{path}.year"),
            filing_status=_str(_require(data, "filing_status", path), f"{path}.filing_status"),
            lookback_years=_int(_optional(data, "lookback_years", IRMAA_LOOKBACK_YEARS), f"{path}.lookback_years"),
            tiers=_list_of(data, "tiers", path, IrmaaTier),
        )


@dataclass(slots=True)
class RetirementAdjustment:
    birth_year_start: int
    birth_year_end: int
    normal_retirement_age_months: int
    delayed_credit_per_year: float


def _default_tax_policies() -> list[TaxPolicy]:
    policies: list[TaxPolicy] = []
    for year, by_status in FEDERAL_BRACKETS.items():
        for status, brackets in by_status.items():
            policies.append(
                TaxPolicy(
                    year=year,
                    filing_status=status,
                    standard_deduction=STANDARD_DEDUCTIONS[year][status],
                    ordinary_brackets=list(brackets),
                    capital_gains_brackets=list(CAPITAL_GAINS_BRACKETS[year][status]),
                )
            )
    return policies


def _default_irmaa_tables() -> list[IrmaaTable]:
    tables: list[IrmaaTable] = []
    for year, by_status in IRMAA_BRACKETS.items():
        for status, tiers in by_status.items():
            tables.append(
                IrmaaTable(
                    year=year,
                    filing_status=status,
                    lookback_years=IRMAA_LOOKBACK_YEARS,
                    tiers=[IrmaaTier(max_magi=upper, part_b_monthly=b, part_d_monthly=d) for upper, (b, d) in tiers],
                )
            )
    return tables


def _default_retirement_adjustments() -> list[RetirementAdjustment]:
    return [RetirementAdjustment(*row) for row in SSA_RETIREMENT_ADJUSTMENTS]


def _year_map(value: Any, path: str) -> dict[int, float]:
    return {int(year): _float(amount, f"{path}.{year}") for year, amount in _expect_dict(value, path).items()}


@dataclass(slots=True)
class ReferenceTables:
    """Tax, benefit, and distribution tables; defaults come from ``tax_data``."""

    wage_index: dict[int, float] = field(default_factory=lambda: dict(SSA_WAGE_INDEX))
    bend_points: dict[int, tuple[float, float]] = field(default_factory=lambda: dict(SSA_BEND_POINTS))
    retirement_adjustments: list[RetirementAdjustment] = field(default_factory=_default_retirement_adjustments)
    tax_policies: list[TaxPolicy] = field(default_factory=_default_tax_policies)
    irmaa_tables: list[IrmaaTable] = field(default_factory=_default_irmaa_tables)
    rmd_divisors: dict[int, float] = field(default_factory=lambda: dict(UNIFORM_LIFETIME_DIVISORS))

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "tables") -> "ReferenceTables":
        tables = cls()
        if "wage_index" in data:
            tables.wage_index = _year_map(data["wage_index"], f"{path}.wage_index")
        if "bend_points" in data:
            raw = _expect_dict(data["bend_points"], f"{path}.bend_points")
            tables.bend_points = {}
            for year, pair in raw.items():
                values = _expect_list(pair, f"{path}.bend_points.{year}")
                if len(values) != 2:
                    raise SchemaError(f"{path}.bend_points.{year}: expected [first, second]")
                tables.bend_points[int(year)] = (
                    _float(values[0], f"{path}.bend_points.{year}[0]"),
                    _float(values[1], f"{path}.bend_points.{year}[1]"),
                )
        if "tax_policies" in data:
            tables.tax_policies = _list_of(data, "tax_policies", path, TaxPolicy)
        if "irmaa_tables" in data:
            tables.irmaa_tables = _list_of(data, "irmaa_tables", path, IrmaaTable)
        if "rmd_divisors" in data:
            tables.rmd_divisors = _year_map(data["rmd_divisors"], f"{path}.rmd_divisors")
        return tables


@dataclass(slots=True)
class MinimumBalancePoint:
    year_index: int
    age: float
    balance: float
    date: date | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "MinimumBalancePoint":
        return cls(
            year_index=_int(_require(data, "year_index", path), f"{path}.year_index"),
            age=_float(_require(data, "age", path), f"{path}.age"),
            balance=_float(_require(data, "balance", path), f"{path}.balance"),
            date=_optional_date(data, "date", path),
        )


@dataclass(slots=True)
class MinimumBalanceRun:
    """Yearly balances of the leanest portfolio that still funds the plan."""

    multiplier: float
    ending_balance: float
    timeline: list[MinimumBalancePoint] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "MinimumBalanceRun":
        return cls(
            multiplier=_float(_require(data, "multiplier", path), f"{path}.multiplier"),
            ending_balance=_float(_require(data, "ending_balance", path), f"{path}.ending_balance"),
            timeline=_list_of(data, "timeline", path, MinimumBalancePoint),
        )


@dataclass(slots=True)
class Scenario:
    id: str
    name: str
    strategies: ScenarioStrategies

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "scenario") -> "Scenario":
        return cls(
            id=_str(_require(data, "id", path), f"{path}.id"),
            name=_str(_optional(data, "name", ""), f"{path}.name"),
            strategies=ScenarioStrategies.from_dict(
                _expect_dict(_optional(data, "strategies", {}), f"{path}.strategies"), f"{path}.strategies"
            ),
        )


def _min_balance_run(data: dict[str, Any], path: str) -> MinimumBalanceRun | None:
    raw = _optional(data, "min_balance_run", None)
    if raw is None:
        return None
    return MinimumBalanceRun.from_dict(_expect_dict(raw, f"{path}.min_balance_run"), f"{path}.min_balance_run")


@dataclass(slots=True)
class SimulationSnapshot:
    """Everything a run reads. The engine copies it and never mutates the original."""

    scenario: Scenario
    people: list[Person]
    social_security: list[SocialSecurityStrategy] = field(default_factory=list)
    earnings: list[EarningsRecord] = field(default_factory=list)
    work_periods: list[WorkPeriod] = field(default_factory=list)
    spending_items: list[SpendingItem] = field(default_factory=list)
    cash_accounts: list[CashAccount] = field(default_factory=list)
    investment_accounts: list[InvestmentAccount] = field(default_factory=list)
    holdings: list[Holding] = field(default_factory=list)
    tables: ReferenceTables = field(default_factory=ReferenceTables)
    min_balance_run: MinimumBalanceRun | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "snapshot") -> "SimulationSnapshot":
        return cls(
            scenario=Scenario.from_dict(
                _expect_dict(_require(data, "scenario", path), f"{path}.scenario"), f"{path}.scenario"
            ),
            people=_list_of(data, "people", path, Person),
            social_security=_list_of(data, "social_security", path, SocialSecurityStrategy),
            earnings=_list_of(data, "earnings", path, EarningsRecord),
            work_periods=_list_of(data, "work_periods", path, WorkPeriod),
            spending_items=_list_of(data, "spending_items", path, SpendingItem),
            cash_accounts=_list_of(data, "cash_accounts", path, CashAccount),
            investment_accounts=_list_of(data, "investment_accounts", path, InvestmentAccount),
            holdings=_list_of(data, "holdings", path, Holding),
            tables=ReferenceTables.from_dict(
                _expect_dict(_optional(data, "tables", {}), f"{path}.tables"), f"{path}.tables"
            ),
            min_balance_run=_min_balance_run(data, path),
        )

    @property
    def primary(self) -> Person | None:
        return self.people[0] if self.people else None


@dataclass(slots=True)
class SimulationSettings:
    start_date: date
    months: int

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "settings") -> "SimulationSettings":
        return cls(
            start_date=_date(_require(data, "start_date", path), f"{path}.start_date"),
            months=_int(_require(data, "months", path), f"{path}.months"),
        )


@dataclass(slots=True)
class SimulationInput:
    snapshot: SimulationSnapshot
    settings: SimulationSettings

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SimulationInput":
        data = _expect_dict(data, "input")
        return cls(
            snapshot=SimulationSnapshot.from_dict(_expect_dict(_require(data, "snapshot", "input"), "snapshot")),
            settings=SimulationSettings.from_dict(_expect_dict(_require(data, "settings", "input"), "settings")),
        )


def load_input(path: str | Path) -> SimulationInput:
    """Load simulation input JSON into strongly-typed dataclasses."""
    source = Path(path)
    raw = json.loads(source.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise SchemaError("input: root must be a JSON object")
    return SimulationInput.from_dict(raw)
