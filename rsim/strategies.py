"""Scenario strategy records and their defaults.

Every strategy sub-struct has a complete default. A partial override coming
from raw JSON is applied with that struct's ``merge`` classmethod, which reads
each field explicitly and falls back to the default value field by field, so
the engine never sees a missing setting.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Union

from .fields import (
    SchemaError,
    _bool,
    _date,
    _expect_dict,
    _expect_list,
    _field,
    _float,
    _int,
    _optional,
    _optional_date,
    _require,
    _str,
)
from .tax_data import DEFAULT_POLICY_YEAR, INFLATION_DEFAULTS

WITHDRAWAL_BUCKETS = ("taxable", "traditional", "roth_basis", "roth", "hsa")
# Every holding tax type; roth_basis is optional because roth covers the same dollars.
DEFAULT_WITHDRAWAL_ORDER = ("taxable", "traditional", "roth", "hsa")


def _str_list(value: Any, path: str) -> list[str]:
    return [_str(item, f"{path}[{idx}]") for idx, item in enumerate(_expect_list(value, path))]


def _rate_map(value: Any, path: str, defaults: dict[str, float]) -> dict[str, float]:
    merged = dict(defaults)
    for key, rate in _expect_dict(value, path).items():
        merged[key] = _float(rate, f"{path}.{key}")
    return merged


@dataclass(slots=True)
class ReturnModelStrategy:
    mode: str = "deterministic"
    sequence_model: str = "independent"
    volatility_scale: float = 1.0
    correlation_model: str = "none"
    cash_yield_rate: float = 0.0
    seed: int | None = None
    stochastic_runs: int = 100
    inflation_assumptions: dict[str, float] = field(default_factory=lambda: dict(INFLATION_DEFAULTS))
    inflation_volatility: dict[str, float] = field(default_factory=dict)
    inflation_persistence: float = 0.0
    return_persistence: float = 0.0
    historical_start_year: int | None = None

    @classmethod
    def merge(cls, defaults: "ReturnModelStrategy", data: dict[str, Any], path: str) -> "ReturnModelStrategy":
        return cls(
            mode=_field(data, "mode", defaults.mode, path, _str),
            sequence_model=_field(data, "sequence_model", defaults.sequence_model, path, _str),
            volatility_scale=_field(data, "volatility_scale", defaults.volatility_scale, path, _float),
            correlation_model=_field(data, "correlation_model", defaults.correlation_model, path, _str),
            cash_yield_rate=_field(data, "cash_yield_rate", defaults.cash_yield_rate, path, _float),
            seed=_field(data, "seed", defaults.seed, path, _int),
            stochastic_runs=_field(data, "stochastic_runs", defaults.stochastic_runs, path, _int),
            inflation_assumptions=_rate_map(
                _optional(data, "inflation_assumptions", {}),
                f"{path}.inflation_assumptions",
                defaults.inflation_assumptions,
            ),
            inflation_volatility=_rate_map(
                _optional(data, "inflation_volatility", {}),
                f"{path}.inflation_volatility",
                defaults.inflation_volatility,
            ),
            inflation_persistence=_field(data, "inflation_persistence", defaults.inflation_persistence, path, _float),
            return_persistence=_field(data, "return_persistence", defaults.return_persistence, path, _float),
            historical_start_year=_field(data, "historical_start_year", defaults.historical_start_year, path, _int),
        )


@dataclass(slots=True)
class AllocationTarget:
    key: float
    equity: float
    bonds: float
    cash: float = 0.0
    real_estate: float = 0.0
    other: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "AllocationTarget":
        return cls(
            key=_float(_require(data, "key", path), f"{path}.key"),
            equity=_float(_optional(data, "equity", 0.0), f"{path}.equity"),
            bonds=_float(_optional(data, "bonds", 0.0), f"{path}.bonds"),
            cash=_float(_optional(data, "cash", 0.0), f"{path}.cash"),
            real_estate=_float(_optional(data, "real_estate", 0.0), f"{path}.real_estate"),
            other=_float(_optional(data, "other", 0.0), f"{path}.other"),
        )

    @property
    def total(self) -> float:
        return self.equity + self.bonds + self.cash + self.real_estate + self.other


def _default_glidepath_targets() -> list[AllocationTarget]:
    return [
        AllocationTarget(key=40, equity=0.8, bonds=0.15, cash=0.03, real_estate=0.02, other=0.0),
        AllocationTarget(key=60, equity=0.6, bonds=0.3, cash=0.05, real_estate=0.05, other=0.0),
    ]


@dataclass(slots=True)
class GlidepathStrategy:
    enabled: bool = False
    mode: str = "age"
    targets: list[AllocationTarget] = field(default_factory=_default_glidepath_targets)

    @classmethod
    def merge(cls, defaults: "GlidepathStrategy", data: dict[str, Any], path: str) -> "GlidepathStrategy":
        targets = defaults.targets
        if "targets" in data:
            targets = [
                AllocationTarget.from_dict(_expect_dict(item, f"{path}.targets[{idx}]"), f"{path}.targets[{idx}]")
                for idx, item in enumerate(_expect_list(data["targets"], f"{path}.targets"))
            ]
        return cls(
            enabled=_field(data, "enabled", defaults.enabled, path, _bool),
            mode=_field(data, "mode", defaults.mode, path, _str),
            targets=list(targets),
        )


@dataclass(slots=True)
class RebalancingStrategy:
    enabled: bool = False
    frequency: str = "annual"
    drift_threshold: float = 0.05
    tax_aware: bool = False
    min_trade_amount: float = 0.0

    @classmethod
    def merge(cls, defaults: "RebalancingStrategy", data: dict[str, Any], path: str) -> "RebalancingStrategy":
        return cls(
            enabled=_field(data, "enabled", defaults.enabled, path, _bool),
            frequency=_field(data, "frequency", defaults.frequency, path, _str),
            drift_threshold=_field(data, "drift_threshold", defaults.drift_threshold, path, _float),
            tax_aware=_field(data, "tax_aware", defaults.tax_aware, path, _bool),
            min_trade_amount=_field(data, "min_trade_amount", defaults.min_trade_amount, path, _float),
        )


@dataclass(slots=True)
class CashBufferStrategy:
    enabled: bool = False
    target_months: float = 12.0
    min_months: float = 6.0
    max_months: float = 24.0
    refill_priority: str = "taxable_first"

    @classmethod
    def merge(cls, defaults: "CashBufferStrategy", data: dict[str, Any], path: str) -> "CashBufferStrategy":
        return cls(
            enabled=_field(data, "enabled", defaults.enabled, path, _bool),
            target_months=_field(data, "target_months", defaults.target_months, path, _float),
            min_months=_field(data, "min_months", defaults.min_months, path, _float),
            max_months=_field(data, "max_months", defaults.max_months, path, _float),
            refill_priority=_field(data, "refill_priority", defaults.refill_priority, path, _str),
        )


@dataclass(slots=True, frozen=True)
class NoGuardrail:
    kind = "none"


@dataclass(slots=True, frozen=True)
class LegacyGuardrail:
    """Cut wants by ``pct`` while the portfolio sits below (1 - pct) of its retirement value."""

    pct: float = 0.1
    kind = "legacy"


@dataclass(slots=True, frozen=True)
class CapWantsGuardrail:
    """Limit total spending to ``withdrawal_rate_limit`` of the portfolio per year."""

    withdrawal_rate_limit: float = 0.04
    kind = "cap_wants"


@dataclass(slots=True, frozen=True)
class PortfolioHealthGuardrail:
    """Scale wants by a piecewise-linear curve of (health ratio, factor) points."""

    points: tuple[tuple[float, float], ...] = ((0.7, 0.0), (0.9, 0.5), (1.0, 1.0))
    kind = "portfolio_health"


@dataclass(slots=True, frozen=True)
class MinBalanceHealthGuardrail:
    """Scale wants by a curve of (balance / minimum-balance run, factor) points."""

    points: tuple[tuple[float, float], ...] = ((1.0, 0.0), (1.5, 0.5), (2.0, 1.0))
    kind = "min_balance_health"


@dataclass(slots=True, frozen=True)
class GuytonGuardrail:
    """Apply a fixed cut for a hold period when the withdrawal rate drifts up."""

    trigger_rate_increase: float = 0.2
    applied_pct: float = 0.1
    duration_months: int = 12
    kind = "guyton"


Guardrail = Union[
    NoGuardrail,
    LegacyGuardrail,
    CapWantsGuardrail,
    PortfolioHealthGuardrail,
    MinBalanceHealthGuardrail,
    GuytonGuardrail,
]

GUARDRAIL_KINDS = ("none", "legacy", "cap_wants", "portfolio_health", "min_balance_health", "guyton")


def _health_points(value: Any, path: str) -> tuple[tuple[float, float], ...]:
    points = []
    for idx, item in enumerate(_expect_list(value, path)):
        entry = _expect_dict(item, f"{path}[{idx}]")
        points.append(
            (
                _float(_require(entry, "health", f"{path}[{idx}]"), f"{path}[{idx}].health"),
                _float(_require(entry, "factor", f"{path}[{idx}]"), f"{path}[{idx}].factor"),
            )
        )
    return tuple(sorted(points))


def merge_guardrail(defaults: Guardrail, data: dict[str, Any], path: str) -> Guardrail:
    kind = _field(data, "strategy", defaults.kind, path, _str)
    if kind == "none":
        return NoGuardrail()
    # Parameters carry over only when the variant is unchanged.
    base = defaults if defaults.kind == kind else None
    if kind == "legacy":
        base = base or LegacyGuardrail()
        return LegacyGuardrail(pct=_field(data, "pct", base.pct, path, _float))
    if kind == "cap_wants":
        base = base or CapWantsGuardrail()
        return CapWantsGuardrail(
            withdrawal_rate_limit=_field(data, "withdrawal_rate_limit", base.withdrawal_rate_limit, path, _float)
        )
    if kind == "portfolio_health":
        base = base or PortfolioHealthGuardrail()
        return PortfolioHealthGuardrail(points=_field(data, "points", base.points, path, _health_points))
    if kind == "min_balance_health":
        base = base or MinBalanceHealthGuardrail()
        return MinBalanceHealthGuardrail(points=_field(data, "points", base.points, path, _health_points))
    if kind == "guyton":
        base = base or GuytonGuardrail()
        return GuytonGuardrail(
            trigger_rate_increase=_field(data, "trigger_rate_increase", base.trigger_rate_increase, path, _float),
            applied_pct=_field(data, "applied_pct", base.applied_pct, path, _float),
            duration_months=_field(data, "duration_months", base.duration_months, path, _int),
        )
    raise SchemaError(f"{path}.strategy: '{kind}' is not valid; expected one of {list(GUARDRAIL_KINDS)}")


@dataclass(slots=True)
class WithdrawalStrategy:
    order: list[str] = field(default_factory=lambda: list(DEFAULT_WITHDRAWAL_ORDER))
    use_cash_first: bool = True
    avoid_early_penalty: bool = True
    taxable_gain_harvest_target: float = 0.0
    guardrail: Guardrail = field(default_factory=NoGuardrail)

    @property
    def missing_buckets(self) -> list[str]:
        return [bucket for bucket in DEFAULT_WITHDRAWAL_ORDER if bucket not in self.order]

    @property
    def bucket_order(self) -> list[str]:
        """The configured order, then any omitted bucket in default order."""
        return list(self.order) + self.missing_buckets

    @classmethod
    def merge(cls, defaults: "WithdrawalStrategy", data: dict[str, Any], path: str) -> "WithdrawalStrategy":
        return cls(
            order=list(_field(data, "order", defaults.order, path, _str_list)),
            use_cash_first=_field(data, "use_cash_first", defaults.use_cash_first, path, _bool),
            avoid_early_penalty=_field(data, "avoid_early_penalty", defaults.avoid_early_penalty, path, _bool),
            taxable_gain_harvest_target=_field(
                data, "taxable_gain_harvest_target", defaults.taxable_gain_harvest_target, path, _float
            ),
            guardrail=merge_guardrail(
                defaults.guardrail,
                _expect_dict(_optional(data, "guardrail", {}), f"{path}.guardrail"),
                f"{path}.guardrail",
            ),
        )


@dataclass(slots=True)
class TaxableLotStrategy:
    cost_basis_method: str = "average"
    harvest_losses: bool = False
    gain_realization_target: float = 0.0

    @classmethod
    def merge(cls, defaults: "TaxableLotStrategy", data: dict[str, Any], path: str) -> "TaxableLotStrategy":
        return cls(
            cost_basis_method=_field(data, "cost_basis_method", defaults.cost_basis_method, path, _str),
            harvest_losses=_field(data, "harvest_losses", defaults.harvest_losses, path, _bool),
            gain_realization_target=_field(data, "gain_realization_target", defaults.gain_realization_target, path, _float),
        )


@dataclass(slots=True)
class EarlyRetirementStrategy:
    use_roth_basis_first: bool = True
    allow_penalty: bool = False
    penalty_rate: float = 0.1
    use_72t: bool = False
    bridge_cash_years: float = 0.0

    @classmethod
    def merge(cls, defaults: "EarlyRetirementStrategy", data: dict[str, Any], path: str) -> "EarlyRetirementStrategy":
        return cls(
            use_roth_basis_first=_field(data, "use_roth_basis_first", defaults.use_roth_basis_first, path, _bool),
            allow_penalty=_field(data, "allow_penalty", defaults.allow_penalty, path, _bool),
            penalty_rate=_field(data, "penalty_rate", defaults.penalty_rate, path, _float),
            use_72t=_field(data, "use_72t", defaults.use_72t, path, _bool),
            bridge_cash_years=_field(data, "bridge_cash_years", defaults.bridge_cash_years, path, _float),
        )


@dataclass(slots=True)
class RothConversionStrategy:
    enabled: bool = False
    start_age: float = 0.0
    end_age: float = 0.0
    target_bracket_rate: float = 0.0
    min_conversion: float = 0.0
    max_conversion: float = 0.0
    respect_irmaa: bool = True

    @classmethod
    def merge(cls, defaults: "RothConversionStrategy", data: dict[str, Any], path: str) -> "RothConversionStrategy":
        return cls(
            enabled=_field(data, "enabled", defaults.enabled, path, _bool),
            start_age=_field(data, "start_age", defaults.start_age, path, _float),
            end_age=_field(data, "end_age", defaults.end_age, path, _float),
            target_bracket_rate=_field(data, "target_bracket_rate", defaults.target_bracket_rate, path, _float),
            min_conversion=_field(data, "min_conversion", defaults.min_conversion, path, _float),
            max_conversion=_field(data, "max_conversion", defaults.max_conversion, path, _float),
            respect_irmaa=_field(data, "respect_irmaa", defaults.respect_irmaa, path, _bool),
        )


@dataclass(slots=True)
class RothLadderStrategy:
    enabled: bool = False
    lead_time_years: float = 5.0
    start_age: float = 0.0
    end_age: float = 0.0
    target_after_tax_spending: float = 0.0
    annual_conversion: float = 0.0

    @classmethod
    def merge(cls, defaults: "RothLadderStrategy", data: dict[str, Any], path: str) -> "RothLadderStrategy":
        return cls(
            enabled=_field(data, "enabled", defaults.enabled, path, _bool),
            lead_time_years=_field(data, "lead_time_years", defaults.lead_time_years, path, _float),
            start_age=_field(data, "start_age", defaults.start_age, path, _float),
            end_age=_field(data, "end_age", defaults.end_age, path, _float),
            target_after_tax_spending=_field(
                data, "target_after_tax_spending", defaults.target_after_tax_spending, path, _float
            ),
            annual_conversion=_field(data, "annual_conversion", defaults.annual_conversion, path, _float),
        )


@dataclass(slots=True)
class RmdStrategy:
    enabled: bool = True
    start_age: float = 73.0
    account_types: list[str] = field(default_factory=lambda: ["traditional"])
    excess_handling: str = "taxable"
    withholding_rate: float = 0.0

    @classmethod
    def merge(cls, defaults: "RmdStrategy", data: dict[str, Any], path: str) -> "RmdStrategy":
        return cls(
            enabled=_field(data, "enabled", defaults.enabled, path, _bool),
            start_age=_field(data, "start_age", defaults.start_age, path, _float),
            account_types=list(_field(data, "account_types", defaults.account_types, path, _str_list)),
            excess_handling=_field(data, "excess_handling", defaults.excess_handling, path, _str),
            withholding_rate=_field(data, "withholding_rate", defaults.withholding_rate, path, _float),
        )


@dataclass(slots=True)
class CharitableStrategy:
    annual_giving: float = 0.0
    start_age: float = 0.0
    end_age: float = 0.0
    use_qcd: bool = False
    qcd_annual_amount: float = 0.0

    @classmethod
    def merge(cls, defaults: "CharitableStrategy", data: dict[str, Any], path: str) -> "CharitableStrategy":
        return cls(
            annual_giving=_field(data, "annual_giving", defaults.annual_giving, path, _float),
            start_age=_field(data, "start_age", defaults.start_age, path, _float),
            end_age=_field(data, "end_age", defaults.end_age, path, _float),
            use_qcd=_field(data, "use_qcd", defaults.use_qcd, path, _bool),
            qcd_annual_amount=_field(data, "qcd_annual_amount", defaults.qcd_annual_amount, path, _float),
        )


@dataclass(slots=True)
class LongTermCareStrategy:
    enabled: bool = False
    start_age: float = 85.0
    duration_years: float = 3.0
    monthly_cost: float = 0.0
    inflation_type: str = "medical"

    @classmethod
    def merge(cls, defaults: "LongTermCareStrategy", data: dict[str, Any], path: str) -> "LongTermCareStrategy":
        return cls(
            enabled=_field(data, "enabled", defaults.enabled, path, _bool),
            start_age=_field(data, "start_age", defaults.start_age, path, _float),
            duration_years=_field(data, "duration_years", defaults.duration_years, path, _float),
            monthly_cost=_field(data, "monthly_cost", defaults.monthly_cost, path, _float),
            inflation_type=_field(data, "inflation_type", defaults.inflation_type, path, _str),
        )


@dataclass(slots=True)
class DecliningHealthStrategy:
    enabled: bool = False
    start_age: float = 75.0
    annual_increase_pct: float = 0.0

    @classmethod
    def merge(cls, defaults: "DecliningHealthStrategy", data: dict[str, Any], path: str) -> "DecliningHealthStrategy":
        return cls(
            enabled=_field(data, "enabled", defaults.enabled, path, _bool),
            start_age=_field(data, "start_age", defaults.start_age, path, _float),
            annual_increase_pct=_field(data, "annual_increase_pct", defaults.annual_increase_pct, path, _float),
        )


@dataclass(slots=True)
class HealthcareStrategy:
    pre_medicare_monthly: float = 0.0
    medicare_part_b_monthly: float = 0.0
    medicare_part_d_monthly: float = 0.0
    medigap_monthly: float = 0.0
    inflation_type: str = "medical"
    apply_irmaa: bool = True
    long_term_care: LongTermCareStrategy = field(default_factory=LongTermCareStrategy)
    declining_health: DecliningHealthStrategy = field(default_factory=DecliningHealthStrategy)

    @classmethod
    def merge(cls, defaults: "HealthcareStrategy", data: dict[str, Any], path: str) -> "HealthcareStrategy":
        return cls(
            pre_medicare_monthly=_field(data, "pre_medicare_monthly", defaults.pre_medicare_monthly, path, _float),
            medicare_part_b_monthly=_field(
                data, "medicare_part_b_monthly", defaults.medicare_part_b_monthly, path, _float
            ),
            medicare_part_d_monthly=_field(
                data, "medicare_part_d_monthly", defaults.medicare_part_d_monthly, path, _float
            ),
            medigap_monthly=_field(data, "medigap_monthly", defaults.medigap_monthly, path, _float),
            inflation_type=_field(data, "inflation_type", defaults.inflation_type, path, _str),
            apply_irmaa=_field(data, "apply_irmaa", defaults.apply_irmaa, path, _bool),
            long_term_care=LongTermCareStrategy.merge(
                defaults.long_term_care,
                _expect_dict(_optional(data, "long_term_care", {}), f"{path}.long_term_care"),
                f"{path}.long_term_care",
            ),
            declining_health=DecliningHealthStrategy.merge(
                defaults.declining_health,
                _expect_dict(_optional(data, "declining_health", {}), f"{path}.declining_health"),
                f"{path}.declining_health",
            ),
        )


@dataclass(slots=True)
class TaxStrategy:
    filing_status: str = "single"
    state_code: str | None = None
    state_tax_rate: float | None = 0.0
    use_standard_deduction: bool = True
    apply_capital_gains_rates: bool = True
    policy_year: int = DEFAULT_POLICY_YEAR
    index_brackets: bool = True
    niit_enabled: bool = False

    @classmethod
    def merge(cls, defaults: "TaxStrategy", data: dict[str, Any], path: str) -> "TaxStrategy":
        state_code = _field(data, "state_code", defaults.state_code, path, _str)
        state_tax_rate = defaults.state_tax_rate
        if "state_tax_rate" in data:
            state_tax_rate = None if data["state_tax_rate"] is None else _float(data["state_tax_rate"], f"{path}.state_tax_rate")
        elif "state_code" in data:
            # A state code without an explicit rate selects that state's schedule.
            state_tax_rate = None
        return cls(
            filing_status=_field(data, "filing_status", defaults.filing_status, path, _str),
            state_code=state_code,
            state_tax_rate=state_tax_rate,
            use_standard_deduction=_field(data, "use_standard_deduction", defaults.use_standard_deduction, path, _bool),
            apply_capital_gains_rates=_field(
                data, "apply_capital_gains_rates", defaults.apply_capital_gains_rates, path, _bool
            ),
            policy_year=_field(data, "policy_year", defaults.policy_year, path, _int),
            index_brackets=_field(data, "index_brackets", defaults.index_brackets, path, _bool),
            niit_enabled=_field(data, "niit_enabled", defaults.niit_enabled, path, _bool),
        )


@dataclass(slots=True)
class Beneficiary:
    name: str
    share_pct: float
    assumed_ordinary_rate: float = 0.22
    assumed_capital_gains_rate: float = 0.15
    state_of_residence: str = "none"
    relationship: str = "child"

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "Beneficiary":
        return cls(
            name=_str(_require(data, "name", path), f"{path}.name"),
            share_pct=_float(_require(data, "share_pct", path), f"{path}.share_pct"),
            assumed_ordinary_rate=_float(_optional(data, "assumed_ordinary_rate", 0.22), f"{path}.assumed_ordinary_rate"),
            assumed_capital_gains_rate=_float(
                _optional(data, "assumed_capital_gains_rate", 0.15), f"{path}.assumed_capital_gains_rate"
            ),
            state_of_residence=_str(_optional(data, "state_of_residence", "none"), f"{path}.state_of_residence"),
            relationship=_str(_optional(data, "relationship", "child"), f"{path}.relationship"),
        )


@dataclass(slots=True)
class DeathStrategy:
    enabled: bool = False
    funeral_disposition: str = "funeral"
    funeral_cost_override: float = 0.0
    estate_tax_exemption: float = 13_610_000.0
    estate_tax_rate: float = 0.40
    taxable_step_up: bool = True
    beneficiaries: list[Beneficiary] = field(default_factory=list)

    @classmethod
    def merge(cls, defaults: "DeathStrategy", data: dict[str, Any], path: str) -> "DeathStrategy":
        beneficiaries = defaults.beneficiaries
        if "beneficiaries" in data:
            beneficiaries = [
                Beneficiary.from_dict(_expect_dict(item, f"{path}.beneficiaries[{idx}]"), f"{path}.beneficiaries[{idx}]")
                for idx, item in enumerate(_expect_list(data["beneficiaries"], f"{path}.beneficiaries"))
            ]
        return cls(
            enabled=_field(data, "enabled", defaults.enabled, path, _bool),
            funeral_disposition=_field(data, "funeral_disposition", defaults.funeral_disposition, path, _str),
            funeral_cost_override=_field(data, "funeral_cost_override", defaults.funeral_cost_override, path, _float),
            estate_tax_exemption=_field(data, "estate_tax_exemption", defaults.estate_tax_exemption, path, _float),
            estate_tax_rate=_field(data, "estate_tax_rate", defaults.estate_tax_rate, path, _float),
            taxable_step_up=_field(data, "taxable_step_up", defaults.taxable_step_up, path, _bool),
            beneficiaries=list(beneficiaries),
        )


@dataclass(slots=True)
class CashflowEvent:
    name: str
    date: date
    amount: float
    tax_treatment: str = "tax_exempt"

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "CashflowEvent":
        return cls(
            name=_str(_require(data, "name", path), f"{path}.name"),
            date=_date(_require(data, "date", path), f"{path}.date"),
            amount=_float(_require(data, "amount", path), f"{path}.amount"),
            tax_treatment=_str(_optional(data, "tax_treatment", "tax_exempt"), f"{path}.tax_treatment"),
        )


@dataclass(slots=True)
class PensionIncome:
    name: str
    start_date: date
    end_date: date | None
    monthly_amount: float
    inflation_type: str = "none"
    tax_treatment: str = "ordinary"

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "PensionIncome":
        return cls(
            name=_str(_require(data, "name", path), f"{path}.name"),
            start_date=_date(_require(data, "start_date", path), f"{path}.start_date"),
            end_date=_optional_date(data, "end_date", path),
            monthly_amount=_float(_require(data, "monthly_amount", path), f"{path}.monthly_amount"),
            inflation_type=_str(_optional(data, "inflation_type", "none"), f"{path}.inflation_type"),
            tax_treatment=_str(_optional(data, "tax_treatment", "ordinary"), f"{path}.tax_treatment"),
        )


@dataclass(slots=True)
class ScenarioStrategies:
    return_model: ReturnModelStrategy = field(default_factory=ReturnModelStrategy)
    glidepath: GlidepathStrategy = field(default_factory=GlidepathStrategy)
    rebalancing: RebalancingStrategy = field(default_factory=RebalancingStrategy)
    cash_buffer: CashBufferStrategy = field(default_factory=CashBufferStrategy)
    withdrawal: WithdrawalStrategy = field(default_factory=WithdrawalStrategy)
    taxable_lot: TaxableLotStrategy = field(default_factory=TaxableLotStrategy)
    early_retirement: EarlyRetirementStrategy = field(default_factory=EarlyRetirementStrategy)
    roth_conversion: RothConversionStrategy = field(default_factory=RothConversionStrategy)
    roth_ladder: RothLadderStrategy = field(default_factory=RothLadderStrategy)
    rmd: RmdStrategy = field(default_factory=RmdStrategy)
    charitable: CharitableStrategy = field(default_factory=CharitableStrategy)
    healthcare: HealthcareStrategy = field(default_factory=HealthcareStrategy)
    tax: TaxStrategy = field(default_factory=TaxStrategy)
    death: DeathStrategy = field(default_factory=DeathStrategy)
    events: list[CashflowEvent] = field(default_factory=list)
    pensions: list[PensionIncome] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None, path: str = "scenario.strategies") -> "ScenarioStrategies":
        return merge_strategies(default_strategies(), data or {}, path)


def default_strategies() -> ScenarioStrategies:
    return ScenarioStrategies()


def _section(data: dict[str, Any], key: str, path: str) -> dict[str, Any]:
    return _expect_dict(_optional(data, key, {}), f"{path}.{key}")


def merge_strategies(defaults: ScenarioStrategies, data: dict[str, Any], path: str) -> ScenarioStrategies:
    """Apply a partial override onto ``defaults`` one sub-struct at a time."""
    data = _expect_dict(data, path)
    events = defaults.events
    if "events" in data:
        events = [
            CashflowEvent.from_dict(_expect_dict(item, f"{path}.events[{idx}]"), f"{path}.events[{idx}]")
            for idx, item in enumerate(_expect_list(data["events"], f"{path}.events"))
        ]
    pensions = defaults.pensions
    if "pensions" in data:
        pensions = [
            PensionIncome.from_dict(_expect_dict(item, f"{path}.pensions[{idx}]"), f"{path}.pensions[{idx}]")
            for idx, item in enumerate(_expect_list(data["pensions"], f"{path}.pensions"))
        ]
    return ScenarioStrategies(
        return_model=ReturnModelStrategy.merge(
            defaults.return_model, _section(data, "return_model", path), f"{path}.return_model"
        ),
        glidepath=GlidepathStrategy.merge(defaults.glidepath, _section(data, "glidepath", path), f"{path}.glidepath"),
        rebalancing=RebalancingStrategy.merge(
            defaults.rebalancing, _section(data, "rebalancing", path), f"{path}.rebalancing"
        ),
        cash_buffer=CashBufferStrategy.merge(
            defaults.cash_buffer, _section(data, "cash_buffer", path), f"{path}.cash_buffer"
        ),
        withdrawal=WithdrawalStrategy.merge(defaults.withdrawal, _section(data, "withdrawal", path), f"{path}.withdrawal"),
        taxable_lot=TaxableLotStrategy.merge(
            defaults.taxable_lot, _section(data, "taxable_lot", path), f"{path}.taxable_lot"
        ),
        early_retirement=EarlyRetirementStrategy.merge(
            defaults.early_retirement, _section(data, "early_retirement", path), f"{path}.early_retirement"
        ),
        roth_conversion=RothConversionStrategy.merge(
            defaults.roth_conversion, _section(data, "roth_conversion", path), f"{path}.roth_conversion"
        ),
        roth_ladder=RothLadderStrategy.merge(
            defaults.roth_ladder, _section(data, "roth_ladder", path), f"{path}.roth_ladder"
        ),
        rmd=RmdStrategy.merge(defaults.rmd, _section(data, "rmd", path), f"{path}.rmd"),
        charitable=CharitableStrategy.merge(
            defaults.charitable, _section(data, "charitable", path), f"{path}.charitable"
        ),
        healthcare=HealthcareStrategy.merge(
            defaults.healthcare, _section(data, "healthcare", path), f"{path}.healthcare"
        ),
        tax=TaxStrategy.merge(defaults.tax, _section(data, "tax", path), f"{path}.tax"),
        death=DeathStrategy.merge(defaults.death, _section(data, "death", path), f"{path}.death"),
        events=list(events),
        pensions=list(pensions),
    )
