"""Semantic and cross-reference validation for simulation input."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .cost_basis import COST_BASIS_METHODS
from .portfolio import REFILL_PRIORITIES
from .schema import SimulationInput
from .strategies import GUARDRAIL_KINDS, WITHDRAWAL_BUCKETS, ScenarioStrategies
from .tax_data import (
    BENEFICIARY_RELATIONSHIPS,
    CONTRIBUTION_LIMITS,
    FILING_STATUSES,
    FUNERAL_COSTS,
    HOLDING_TYPE_DEFAULTS,
    INFLATION_TYPES,
    STATE_BASE_RATES,
)

TAX_TYPES = {"taxable", "traditional", "roth", "hsa"}
RETURN_MODES = {"deterministic", "stochastic", "historical"}
SEQUENCE_MODELS = {"independent", "regime"}
CORRELATION_MODELS = {"none", "asset_class"}
REBALANCE_FREQUENCIES = {"monthly", "quarterly", "annual", "threshold"}
GLIDEPATH_MODES = {"age", "year"}
EXCESS_HANDLING = {"spend", "taxable", "roth"}
INCOME_TAX_TREATMENTS = {"ordinary", "capital_gains", "tax_exempt"}
ROTH_BASIS_KINDS = {"contribution", "conversion"}

SHARE_TOLERANCE = 1e-6


class ValidationError(ValueError):
    """Input failed semantic validation; carries the full result."""

    def __init__(self, result: "ValidationResult") -> None:
        super().__init__("; ".join(result.errors))
        self.result = result


@dataclass(slots=True)
class ValidationResult:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _check_enum(result: ValidationResult, path: str, value: str, allowed: Iterable[str]) -> None:
    allowed_set = set(allowed)
    if value not in allowed_set:
        expected = ", ".join(sorted(allowed_set))
        result.errors.append(f"{path}: '{value}' is not valid; expected one of [{expected}]")


def _check_rate(result: ValidationResult, path: str, value: float, low: float = 0.0, high: float = 1.0) -> None:
    if not low <= value <= high:
        result.errors.append(f"{path}: {value} is outside [{low}, {high}]")


def _check_ages(result: ValidationResult, path: str, start_age: float, end_age: float) -> None:
    if start_age > 0 and end_age > 0 and start_age > end_age:
        result.errors.append(f"{path}.start_age/{path}.end_age: start_age must be <= end_age")


def _validate_strategies(result: ValidationResult, strategies: ScenarioStrategies, path: str) -> None:
    model = strategies.return_model
    base = f"{path}.return_model"
    _check_enum(result, f"{base}.mode", model.mode, RETURN_MODES)
    _check_enum(result, f"{base}.sequence_model", model.sequence_model, SEQUENCE_MODELS)
    _check_enum(result, f"{base}.correlation_model", model.correlation_model, CORRELATION_MODELS)
    if model.volatility_scale < 0:
        result.errors.append(f"{base}.volatility_scale: must be >= 0")
    if model.mode != "deterministic" and model.stochastic_runs < 1:
        result.errors.append(f"{base}.stochastic_runs: must be >= 1")
    for key in model.inflation_assumptions:
        _check_enum(result, f"{base}.inflation_assumptions.{key}", key, INFLATION_TYPES)
    for key, value in model.inflation_volatility.items():
        _check_enum(result, f"{base}.inflation_volatility.{key}", key, INFLATION_TYPES)
        if value < 0:
            result.errors.append(f"{base}.inflation_volatility.{key}: must be >= 0")
    _check_rate(result, f"{base}.inflation_persistence", model.inflation_persistence, -1.0, 1.0)
    _check_rate(result, f"{base}.return_persistence", model.return_persistence, -1.0, 1.0)

    glidepath = strategies.glidepath
    base = f"{path}.glidepath"
    _check_enum(result, f"{base}.mode", glidepath.mode, GLIDEPATH_MODES)
    if glidepath.enabled and not glidepath.targets:
        result.errors.append(f"{base}.targets: at least one target is required when the glidepath is enabled")
    keys = [target.key for target in glidepath.targets]
    if len(set(keys)) != len(keys):
        result.errors.append(f"{base}.targets: duplicate key")
    for idx, target in enumerate(glidepath.targets):
        weights = (target.equity, target.bonds, target.cash, target.real_estate, target.other)
        if any(weight < 0 for weight in weights):
            result.errors.append(f"{base}.targets[{idx}]: weights must be >= 0")
        elif target.total <= 0:
            result.errors.append(f"{base}.targets[{idx}]: weights must not all be zero")
        elif abs(target.total - 1.0) > 0.01:
            result.warnings.append(f"{base}.targets[{idx}]: weights sum to {target.total:.3f}; they will be normalized")

    rebalancing = strategies.rebalancing
    _check_enum(result, f"{path}.rebalancing.frequency", rebalancing.frequency, REBALANCE_FREQUENCIES)
    _check_rate(result, f"{path}.rebalancing.drift_threshold", rebalancing.drift_threshold)

    buffer = strategies.cash_buffer
    base = f"{path}.cash_buffer"
    _check_enum(result, f"{base}.refill_priority", buffer.refill_priority, REFILL_PRIORITIES)
    if buffer.enabled and not buffer.min_months <= buffer.target_months <= buffer.max_months:
        result.errors.append(f"{base}: expected min_months <= target_months <= max_months")

    withdrawal = strategies.withdrawal
    base = f"{path}.withdrawal"
    if not withdrawal.order:
        result.errors.append(f"{base}.order: at least one bucket is required")
    for idx, bucket in enumerate(withdrawal.order):
        _check_enum(result, f"{base}.order[{idx}]", bucket, WITHDRAWAL_BUCKETS)
    if len(set(withdrawal.order)) != len(withdrawal.order):
        result.errors.append(f"{base}.order: duplicate bucket")
    if withdrawal.order and withdrawal.missing_buckets:
        missing = ", ".join(withdrawal.missing_buckets)
        result.warnings.append(f"{base}.order: missing [{missing}]; they are drawn last in default order")
    _check_enum(result, f"{base}.guardrail.strategy", withdrawal.guardrail.kind, GUARDRAIL_KINDS)

    _check_enum(result, f"{path}.taxable_lot.cost_basis_method", strategies.taxable_lot.cost_basis_method, COST_BASIS_METHODS)
    _check_rate(result, f"{path}.early_retirement.penalty_rate", strategies.early_retirement.penalty_rate)

    conversion = strategies.roth_conversion
    _check_ages(result, f"{path}.roth_conversion", conversion.start_age, conversion.end_age)
    if conversion.min_conversion > 0 and conversion.max_conversion > 0 and conversion.min_conversion > conversion.max_conversion:
        result.errors.append(f"{path}.roth_conversion: min_conversion must be <= max_conversion")
    _check_ages(result, f"{path}.roth_ladder", strategies.roth_ladder.start_age, strategies.roth_ladder.end_age)

    rmd = strategies.rmd
    _check_enum(result, f"{path}.rmd.excess_handling", rmd.excess_handling, EXCESS_HANDLING)
    for idx, tax_type in enumerate(rmd.account_types):
        _check_enum(result, f"{path}.rmd.account_types[{idx}]", tax_type, TAX_TYPES)
    _check_rate(result, f"{path}.rmd.withholding_rate", rmd.withholding_rate)

    _check_ages(result, f"{path}.charitable", strategies.charitable.start_age, strategies.charitable.end_age)
    healthcare = strategies.healthcare
    _check_enum(result, f"{path}.healthcare.inflation_type", healthcare.inflation_type, INFLATION_TYPES)
    _check_enum(
        result,
        f"{path}.healthcare.long_term_care.inflation_type",
        healthcare.long_term_care.inflation_type,
        INFLATION_TYPES,
    )

    _check_enum(result, f"{path}.tax.filing_status", strategies.tax.filing_status, FILING_STATUSES)
    if strategies.tax.state_tax_rate is not None:
        _check_rate(result, f"{path}.tax.state_tax_rate", strategies.tax.state_tax_rate)

    death = strategies.death
    base = f"{path}.death"
    _check_enum(result, f"{base}.funeral_disposition", death.funeral_disposition, FUNERAL_COSTS)
    _check_rate(result, f"{base}.estate_tax_rate", death.estate_tax_rate)
    if death.beneficiaries:
        total = sum(item.share_pct for item in death.beneficiaries)
        if abs(total - 1.0) > SHARE_TOLERANCE:
            result.errors.append(f"{base}.beneficiaries: share_pct must sum to 1 (got {total:.6f})")
        for idx, item in enumerate(death.beneficiaries):
            if item.share_pct < 0:
                result.errors.append(f"{base}.beneficiaries[{idx}].share_pct: must be >= 0")
            _check_enum(result, f"{base}.beneficiaries[{idx}].relationship", item.relationship, BENEFICIARY_RELATIONSHIPS)
            state = item.state_of_residence.upper()
            if state != "NONE" and state not in STATE_BASE_RATES:
                result.errors.append(
                    f"{base}.beneficiaries[{idx}].state_of_residence: '{item.state_of_residence}' is not a state code"
                )
    elif death.enabled:
        result.warnings.append(f"{base}.beneficiaries: none listed; the estate is reported as a single bequest")

    for idx, event in enumerate(strategies.events):
        _check_enum(result, f"{path}.events[{idx}].tax_treatment", event.tax_treatment, INCOME_TAX_TREATMENTS)
    for idx, pension in enumerate(strategies.pensions):
        base = f"{path}.pensions[{idx}]"
        _check_enum(result, f"{base}.tax_treatment", pension.tax_treatment, INCOME_TAX_TREATMENTS)
        _check_enum(result, f"{base}.inflation_type", pension.inflation_type, INFLATION_TYPES)
        if pension.end_date is not None and pension.end_date < pension.start_date:
            result.errors.append(f"{base}.start_date/{base}.end_date: start_date must be <= end_date")


def validate_input(sim_input: SimulationInput) -> ValidationResult:
    result = ValidationResult()
    snapshot = sim_input.snapshot
    settings = sim_input.settings

    if settings.months < 0:
        result.errors.append("settings.months: must be >= 0")
    if not snapshot.people:
        result.errors.append("snapshot.people: at least one person is required")

    person_ids: set[str] = set()
    for idx, person in enumerate(snapshot.people):
        base = f"snapshot.people[{idx}]"
        if person.id in person_ids:
            result.errors.append(f"{base}.id: duplicate person id '{person.id}'")
        person_ids.add(person.id)
        if person.date_of_birth > settings.start_date:
            result.errors.append(f"{base}.date_of_birth: after settings.start_date")
        if person.life_expectancy <= 0:
            result.errors.append(f"{base}.life_expectancy: must be > 0")

    for idx, strategy in enumerate(snapshot.social_security):
        if strategy.person_id not in person_ids:
            result.errors.append(
                f"snapshot.social_security[{idx}].person_id: '{strategy.person_id}' does not match any person"
            )
    for idx, record in enumerate(snapshot.earnings):
        base = f"snapshot.earnings[{idx}]"
        if record.person_id not in person_ids:
            result.errors.append(f"{base}.person_id: '{record.person_id}' does not match any person")
        if not 1 <= record.months <= 12:
            result.errors.append(f"{base}.months: must be between 1 and 12")

    account_ids = {account.id for account in snapshot.investment_accounts}
    holding_ids: set[str] = set()
    tax_type_by_holding: dict[str, str] = {}
    for idx, holding in enumerate(snapshot.holdings):
        base = f"snapshot.holdings[{idx}]"
        if holding.id in holding_ids:
            result.errors.append(f"{base}.id: duplicate holding id '{holding.id}'")
        holding_ids.add(holding.id)
        tax_type_by_holding[holding.id] = holding.tax_type
        if holding.account_id not in account_ids:
            result.errors.append(f"{base}.account_id: '{holding.account_id}' does not match any investment account")
        _check_enum(result, f"{base}.tax_type", holding.tax_type, TAX_TYPES)
        if holding.return_rate is None and holding.holding_type not in HOLDING_TYPE_DEFAULTS:
            result.errors.append(
                f"{base}.holding_type: '{holding.holding_type}' has no default return; set return_rate"
            )
        if holding.balance < 0:
            result.errors.append(f"{base}.balance: must be >= 0")
        for entry_idx, entry in enumerate(holding.roth_basis_entries):
            _check_enum(result, f"{base}.roth_basis_entries[{entry_idx}].kind", entry.kind, ROTH_BASIS_KINDS)
        if holding.roth_basis_entries and holding.tax_type != "roth":
            result.warnings.append(f"{base}.roth_basis_entries: ignored on a '{holding.tax_type}' holding")

    for idx, account in enumerate(snapshot.cash_accounts):
        if account.balance < 0:
            result.errors.append(f"snapshot.cash_accounts[{idx}].balance: must be >= 0")
    if not snapshot.cash_accounts:
        result.warnings.append("snapshot.cash_accounts: none listed; a zero-balance cash account is assumed")

    limits = CONTRIBUTION_LIMITS[max(CONTRIBUTION_LIMITS)]
    for idx, period in enumerate(snapshot.work_periods):
        base = f"snapshot.work_periods[{idx}]"
        if period.person_id not in person_ids:
            result.errors.append(f"{base}.person_id: '{period.person_id}' does not match any person")
        if period.start_date and period.end_date and period.start_date > period.end_date:
            result.errors.append(f"{base}.start_date/{base}.end_date: start_date must be <= end_date")
        if period.retirement_holding_id is not None:
            tax_type = tax_type_by_holding.get(period.retirement_holding_id)
            if tax_type is None:
                result.errors.append(
                    f"{base}.retirement_holding_id: '{period.retirement_holding_id}' does not match any holding"
                )
            elif tax_type not in {"traditional", "roth"}:
                result.warnings.append(f"{base}.retirement_holding_id: 401k deposits go to a '{tax_type}' holding")
        if period.hsa_holding_id is not None and period.hsa_holding_id not in holding_ids:
            result.errors.append(f"{base}.hsa_holding_id: '{period.hsa_holding_id}' does not match any holding")
        if period.salary * period.match_pct_cap > limits["401k"]:
            result.warnings.append(f"{base}.match_pct_cap: deferral exceeds the 401k limit of {limits['401k']:.0f}")
        if period.hsa_annual_contribution > limits["hsa"]:
            result.warnings.append(f"{base}.hsa_annual_contribution: exceeds the HSA limit of {limits['hsa']:.0f}")

    for idx, item in enumerate(snapshot.spending_items):
        base = f"snapshot.spending_items[{idx}]"
        _check_enum(result, f"{base}.inflation_type", item.inflation_type, INFLATION_TYPES)
        if item.need_amount < 0 or item.want_amount < 0:
            result.errors.append(f"{base}: need_amount and want_amount must be >= 0")
        if item.start_date and item.end_date and item.start_date > item.end_date:
            result.errors.append(f"{base}.start_date/{base}.end_date: start_date must be <= end_date")

    min_run = snapshot.min_balance_run
    if min_run is not None:
        if min_run.multiplier < 0:
            result.errors.append("snapshot.min_balance_run.multiplier: must be >= 0")
        for idx, point in enumerate(min_run.timeline):
            if point.year_index < 0:
                result.errors.append(f"snapshot.min_balance_run.timeline[{idx}].year_index: must be >= 0")
    if snapshot.scenario.strategies.withdrawal.guardrail.kind == "min_balance_health" and not (min_run and min_run.timeline):
        result.warnings.append("snapshot.min_balance_run: no timeline; the min_balance_health guardrail never cuts wants")

    _validate_strategies(result, snapshot.scenario.strategies, "snapshot.scenario.strategies")
    return result
