"""Tax computation helpers for federal/state/payroll/estate calculations."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable, Sequence, TypeVar

from .schema import TaxPolicy
from .strategies import Beneficiary
from .tax_data import (
    ADDITIONAL_MEDICARE_THRESHOLDS,
    INHERITANCE_TAX_POLICIES,
    NIIT_RATE,
    NIIT_THRESHOLDS,
    PAYROLL_TAX,
    SS_PROVISIONAL_INCOME_BRACKETS,
    STATE_BASE_RATES,
    STATE_PROGRESSIVE_BRACKETS,
)

Brackets = Sequence[tuple[float | None, float]]

_T = TypeVar("_T")


@dataclass(slots=True)
class TaxComputation:
    ordinary_tax: float
    capital_gains_tax: float
    state_tax: float
    niit_tax: float
    tax_owed: float
    magi: float
    taxable_ordinary_income: float
    taxable_capital_gains: float
    taxable_social_security: float
    standard_deduction_applied: float


@dataclass(slots=True)
class PayrollTax:
    social_security_tax: float
    medicare_tax: float

    @property
    def total(self) -> float:
        return self.social_security_tax + self.medicare_tax


def normalize_filing_status(filing_status: str) -> str:
    if filing_status == "qualifying_surviving_spouse":
        return "married_filing_jointly"
    if filing_status in NIIT_THRESHOLDS:
        return filing_status
    return "single"


def select_by_year(records: Iterable[_T], year: int, key=lambda record: record.year) -> _T | None:
    """Exact year, else the latest prior year, else the earliest record."""
    ordered = sorted(records, key=key)
    if not ordered:
        return None
    prior = None
    for record in ordered:
        record_year = key(record)
        if record_year == year:
            return record
        if record_year < year:
            prior = record
    return prior if prior is not None else ordered[0]


def _indexed(brackets: Brackets, factor: float) -> list[tuple[float | None, float]]:
    return [(None if upper is None else upper * factor, rate) for upper, rate in brackets]


def select_tax_policy(
    policies: list[TaxPolicy],
    year: int,
    filing_status: str,
    index_rate: float = 0.0,
) -> TaxPolicy | None:
    """Pick the policy for ``year`` and index its bounds forward from the policy year."""
    status = normalize_filing_status(filing_status)
    matching = [policy for policy in policies if policy.filing_status == status]
    policy = select_by_year(matching, year)
    if policy is None:
        return None
    delta = year - policy.year
    if delta <= 0 or index_rate == 0:
        return policy
    factor = (1.0 + index_rate) ** delta
    return replace(
        policy,
        year=year,
        standard_deduction=policy.standard_deduction * factor,
        ordinary_brackets=_indexed(policy.ordinary_brackets, factor),
        capital_gains_brackets=_indexed(policy.capital_gains_brackets, factor),
    )


def progressive_tax(amount: float, brackets: Brackets) -> float:
    if amount <= 0:
        return 0.0

    remaining = amount
    lower = 0.0
    tax = 0.0
    for upper, rate in brackets:
        if remaining <= 0:
            break
        if upper is None:
            taxable_at_rate = remaining
        else:
            span = max(0.0, upper - lower)
            taxable_at_rate = min(remaining, span)
        tax += taxable_at_rate * rate
        remaining -= taxable_at_rate
        if upper is None:
            break
        lower = upper
    return max(0.0, tax)


def bracket_ceiling(brackets: Brackets, rate: float) -> float | None:
    """Upper bound of the highest bracket taxed at ``rate`` or less."""
    ceiling: float | None = 0.0
    for upper, bracket_rate in brackets:
        if bracket_rate > rate + 1e-12:
            break
        ceiling = upper
        if upper is None:
            break
    return ceiling


def compute_capital_gains_tax(gains: float, ordinary_taxable: float, brackets: Brackets) -> float:
    """Tax gains stacked on top of ordinary taxable income."""
    if gains <= 0:
        return 0.0

    ordinary_taxable = max(0.0, ordinary_taxable)
    remaining = ordinary_taxable + gains
    remaining_ordinary = ordinary_taxable
    lower = 0.0
    tax = 0.0
    for upper, rate in brackets:
        span = float("inf") if upper is None else upper - lower
        taxable = max(0.0, min(remaining, span))
        if taxable <= 0:
            break
        ordinary_part = max(0.0, min(remaining_ordinary, span))
        tax += (taxable - ordinary_part) * rate
        remaining -= taxable
        remaining_ordinary -= ordinary_part
        if upper is None:
            break
        lower = upper
    return max(0.0, tax)


def compute_taxable_social_security(
    benefits: float,
    ordinary_income: float,
    capital_gains: float,
    tax_exempt_income: float,
    bracket: tuple[float, float] | None,
) -> tuple[float, float]:
    """Return (taxable benefits, provisional income)."""
    if benefits <= 0:
        return 0.0, 0.0
    if bracket is None:
        return benefits, 0.0

    provisional = max(0.0, ordinary_income) + max(0.0, capital_gains) + max(0.0, tax_exempt_income) + benefits * 0.5
    base, adjusted = bracket
    if base == 0 and adjusted == 0:
        # Married filing separately while living together.
        return benefits * 0.85, provisional
    if provisional <= base:
        return 0.0, provisional
    if provisional <= adjusted:
        return min(benefits * 0.5, 0.5 * (provisional - base)), provisional
    base_taxable = 0.5 * min(benefits, adjusted - base)
    additional = 0.85 * (provisional - adjusted)
    return min(benefits * 0.85, base_taxable + additional), provisional


def provisional_bracket(filing_status: str) -> tuple[float, float] | None:
    return SS_PROVISIONAL_INCOME_BRACKETS.get(normalize_filing_status(filing_status))


def compute_state_tax(
    taxable_income: float,
    *,
    filing_status: str,
    state_code: str | None = None,
    state_tax_rate: float | None = None,
) -> float:
    """Flat explicit rate, else the state's schedule, else its base rate."""
    if taxable_income <= 0:
        return 0.0
    if state_tax_rate is not None:
        return max(0.0, taxable_income * state_tax_rate)
    if not state_code:
        return 0.0
    code = state_code.upper()
    schedules = STATE_PROGRESSIVE_BRACKETS.get(code)
    if schedules:
        status = normalize_filing_status(filing_status)
        key = "married_filing_jointly" if status == "married_filing_jointly" else "single"
        return progressive_tax(taxable_income, schedules[key])
    return taxable_income * STATE_BASE_RATES.get(code, 0.0)


def compute_niit(investment_income: float, magi: float, filing_status: str) -> float:
    if investment_income <= 0:
        return 0.0
    threshold = NIIT_THRESHOLDS[normalize_filing_status(filing_status)]
    excess = max(0.0, magi - threshold)
    return min(investment_income, excess) * NIIT_RATE


def compute_tax(
    *,
    ordinary_income: float,
    capital_gains: float,
    deductions: float,
    tax_exempt_income: float,
    policy: TaxPolicy,
    filing_status: str | None = None,
    state_code: str | None = None,
    state_tax_rate: float | None = 0.0,
    use_standard_deduction: bool = True,
    apply_capital_gains_rates: bool = True,
    social_security_benefits: float = 0.0,
    niit_enabled: bool = False,
) -> TaxComputation:
    status = filing_status or policy.filing_status
    standard = policy.standard_deduction if use_standard_deduction else 0.0
    taxable_benefits, _ = compute_taxable_social_security(
        social_security_benefits,
        ordinary_income,
        capital_gains,
        tax_exempt_income,
        provisional_bracket(status),
    )
    taxable_ordinary = max(0.0, ordinary_income + taxable_benefits - deductions - standard)
    taxable_gains = max(0.0, capital_gains)

    ordinary_tax = progressive_tax(taxable_ordinary, policy.ordinary_brackets)
    if apply_capital_gains_rates:
        gains_tax = compute_capital_gains_tax(taxable_gains, taxable_ordinary, policy.capital_gains_brackets)
    else:
        gains_tax = progressive_tax(taxable_gains, policy.ordinary_brackets)

    state_tax = compute_state_tax(
        taxable_ordinary + taxable_gains,
        filing_status=status,
        state_code=state_code,
        state_tax_rate=state_tax_rate,
    )
    magi = ordinary_income + taxable_benefits + capital_gains + tax_exempt_income
    niit_tax = compute_niit(taxable_gains, magi, status) if niit_enabled else 0.0

    return TaxComputation(
        ordinary_tax=ordinary_tax,
        capital_gains_tax=gains_tax,
        state_tax=state_tax,
        niit_tax=niit_tax,
        tax_owed=ordinary_tax + gains_tax + state_tax + niit_tax,
        magi=magi,
        taxable_ordinary_income=taxable_ordinary,
        taxable_capital_gains=taxable_gains,
        taxable_social_security=taxable_benefits,
        standard_deduction_applied=standard,
    )


def compute_payroll_taxes(wages: float, ytd_wages: float, filing_status: str, year: int) -> PayrollTax:
    """Employee FICA on ``wages`` given wages already paid this year."""
    if wages <= 0:
        return PayrollTax(0.0, 0.0)

    policy_year = select_by_year(PAYROLL_TAX.keys(), year, key=lambda item: item)
    base = PAYROLL_TAX[policy_year]
    ytd_wages = max(0.0, ytd_wages)

    ss_taxable = max(0.0, min(wages, base["social_security_wage_base"] - ytd_wages))
    ss_tax = ss_taxable * base["social_security_rate"]
    medicare_tax = wages * base["medicare_rate"]

    threshold = ADDITIONAL_MEDICARE_THRESHOLDS[normalize_filing_status(filing_status)]
    additional_taxable = max(0.0, (ytd_wages + wages) - threshold)
    additional_taxable -= max(0.0, ytd_wages - threshold)
    medicare_tax += max(0.0, additional_taxable) * base["additional_medicare_rate"]

    return PayrollTax(social_security_tax=ss_tax, medicare_tax=medicare_tax)


def compute_estate_tax(gross_estate: float, exemption: float, rate: float) -> float:
    return max(0.0, gross_estate - max(0.0, exemption)) * max(0.0, rate)


def beneficiary_shares(beneficiaries: list[Beneficiary]) -> list[float]:
    """Normalized shares; equal split when every share is zero."""
    if not beneficiaries:
        return []
    total = sum(max(0.0, item.share_pct) for item in beneficiaries)
    if total <= 0:
        return [1.0 / len(beneficiaries)] * len(beneficiaries)
    return [max(0.0, item.share_pct) / total for item in beneficiaries]


def allocate_estate(net_estate: float, beneficiaries: list[Beneficiary]) -> dict[str, float]:
    shares = beneficiary_shares(beneficiaries)
    allocation: dict[str, float] = {}
    for item, share in zip(beneficiaries, shares):
        allocation[item.name] = allocation.get(item.name, 0.0) + max(0.0, net_estate) * share
    return allocation


def select_inheritance_policy(state_code: str, year: int) -> dict | None:
    """State inheritance tax policy for ``year``; None where the state has none."""
    if not state_code or state_code.lower() == "none":
        return None
    by_year = INHERITANCE_TAX_POLICIES.get(state_code.upper())
    if not by_year:
        return None
    chosen = select_by_year(by_year, year, key=lambda policy_year: policy_year)
    return by_year[chosen] if chosen is not None else None


def inheritance_taxable_assets(assets: Iterable[tuple[float, set[str]]], policy: dict) -> float:
    """Sum of asset amounts the policy's tag filters leave taxable."""
    include = set(policy.get("include_tags", ()))
    exclude = set(policy.get("exclude_tags", ()))
    total = 0.0
    for amount, tags in assets:
        if include and not include & tags:
            continue
        if exclude & tags:
            continue
        total += amount
    return total


def compute_inheritance_tax(amount: float, relationship: str, policy: dict) -> float:
    """Tax on one beneficiary's taxable inheritance under their relationship class.

    A relationship no class lists is taxed as unrelated.
    """
    if amount <= 0:
        return 0.0
    classes = policy.get("classes", {}).values()
    chosen = next((item for item in classes if relationship in item["relationships"]), None)
    if chosen is None:
        chosen = next((item for item in classes if "unrelated" in item["relationships"]), None)
    if chosen is None:
        return 0.0
    return progressive_tax(amount - chosen["exemption"], chosen["brackets"])
