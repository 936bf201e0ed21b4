import pytest

from rsim.schema import ReferenceTables
from rsim.strategies import Beneficiary
from rsim.tax import (
    allocate_estate,
    bracket_ceiling,
    compute_capital_gains_tax,
    compute_estate_tax,
    compute_inheritance_tax,
    compute_payroll_taxes,
    compute_state_tax,
    compute_tax,
    compute_taxable_social_security,
    inheritance_taxable_assets,
    progressive_tax,
    provisional_bracket,
    select_inheritance_policy,
    select_tax_policy,
)
from rsim.tax_data import CAPITAL_GAINS_BRACKETS, FEDERAL_BRACKETS


def _policy(year: int = 2024, status: str = "single"):
    return select_tax_policy(ReferenceTables().tax_policies, year, status)


def test_progressive_tax_walks_the_brackets():
    brackets = FEDERAL_BRACKETS[2024]["single"]
    assert progressive_tax(0, brackets) == 0.0
    assert progressive_tax(-500, brackets) == 0.0
    assert progressive_tax(50_000, brackets) == pytest.approx(6_053.0)


def test_progressive_tax_is_monotonic():
    brackets = FEDERAL_BRACKETS[2024]["married_filing_jointly"]
    previous = 0.0
    for income in range(0, 1_000_001, 25_000):
        tax = progressive_tax(float(income), brackets)
        assert tax >= previous
        previous = tax


def test_bracket_ceiling():
    brackets = FEDERAL_BRACKETS[2024]["single"]
    assert bracket_ceiling(brackets, 0.12) == 47_150.0
    assert bracket_ceiling(brackets, 0.37) is None
    assert bracket_ceiling(brackets, 0.05) == 0.0


def test_capital_gains_stack_on_ordinary_income():
    brackets = CAPITAL_GAINS_BRACKETS[2024]["single"]
    assert compute_capital_gains_tax(20_000, 40_000, brackets) == pytest.approx(12_975 * 0.15)
    assert compute_capital_gains_tax(20_000, 0, brackets) == 0.0
    assert compute_capital_gains_tax(20_000, 120_000, brackets) > compute_capital_gains_tax(20_000, 40_000, brackets)


@pytest.mark.parametrize(
    ("ordinary", "expected"),
    [
        (10_000, 0.0),
        (20_000, 2_500.0),
        (30_000, 9_600.0),
        (500_000, 17_000.0),
    ],
)
def test_taxable_social_security_worksheet(ordinary, expected):
    taxable, _ = compute_taxable_social_security(20_000, ordinary, 0.0, 0.0, provisional_bracket("single"))
    assert taxable == pytest.approx(expected)


def test_married_filing_separately_taxes_85_percent_of_benefits():
    taxable, _ = compute_taxable_social_security(10_000, 0.0, 0.0, 0.0, provisional_bracket("married_filing_separately"))
    assert taxable == pytest.approx(8_500.0)


def test_compute_tax_applies_standard_deduction():
    result = compute_tax(
        ordinary_income=64_600,
        capital_gains=0.0,
        deductions=0.0,
        tax_exempt_income=0.0,
        policy=_policy(),
    )
    assert result.taxable_ordinary_income == pytest.approx(50_000)
    assert result.tax_owed == pytest.approx(6_053.0)
    assert result.magi == pytest.approx(64_600)


def test_compute_tax_of_nothing_is_zero():
    result = compute_tax(ordinary_income=0, capital_gains=0, deductions=0, tax_exempt_income=0, policy=_policy())
    assert result.tax_owed == 0.0


def test_compute_tax_includes_state_tax_on_all_taxable_income():
    result = compute_tax(
        ordinary_income=64_600,
        capital_gains=10_000,
        deductions=0.0,
        tax_exempt_income=0.0,
        policy=_policy(),
        state_tax_rate=0.05,
    )
    assert result.state_tax == pytest.approx(3_000.0)


def test_state_tax_sources():
    assert compute_state_tax(100_000, filing_status="single", state_tax_rate=0.05) == pytest.approx(5_000)
    assert compute_state_tax(100_000, filing_status="single") == 0.0
    assert compute_state_tax(100_000, filing_status="single", state_code="tx") == 0.0
    assert compute_state_tax(100_000, filing_status="single", state_code="IL") == pytest.approx(4_950)
    assert compute_state_tax(5_000, filing_status="married_filing_jointly", state_code="OK") == pytest.approx(
        2_000 * 0.0025 + 3_000 * 0.0075
    )


def test_policy_indexing_and_year_selection():
    tables = ReferenceTables()
    indexed = select_tax_policy(tables.tax_policies, 2025, "single", index_rate=0.03)
    assert indexed.year == 2025
    assert indexed.standard_deduction == pytest.approx(14_600 * 1.03)
    assert indexed.ordinary_brackets[0][0] == pytest.approx(11_600 * 1.03)

    exact = select_tax_policy(tables.tax_policies, 2026, "single", index_rate=0.03)
    assert exact.standard_deduction == 16_100.0

    early = select_tax_policy(tables.tax_policies, 2010, "qualifying_surviving_spouse")
    assert early.year == 2024
    assert early.filing_status == "married_filing_jointly"


def test_payroll_taxes_respect_the_wage_base():
    near_cap = compute_payroll_taxes(10_000, 165_000, "single", 2025)
    assert near_cap.social_security_tax == pytest.approx(3_600 * 0.062)
    assert near_cap.medicare_tax == pytest.approx(145.0)

    past_threshold = compute_payroll_taxes(50_000, 180_000, "single", 2025)
    assert past_threshold.social_security_tax == 0.0
    assert past_threshold.medicare_tax == pytest.approx(725.0 + 30_000 * 0.009)
    assert compute_payroll_taxes(0, 0, "single", 2025).total == 0.0


def test_estate_tax_and_allocation():
    assert compute_estate_tax(15_000_000, 13_610_000, 0.4) == pytest.approx(556_000)
    assert compute_estate_tax(1_000_000, 13_610_000, 0.4) == 0.0

    heirs = [Beneficiary(name="A", share_pct=0.6), Beneficiary(name="B", share_pct=0.4)]
    assert allocate_estate(100_000, heirs) == pytest.approx({"A": 60_000, "B": 40_000})

    unweighted = [Beneficiary(name="A", share_pct=0.0), Beneficiary(name="B", share_pct=0.0)]
    assert allocate_estate(100_000, unweighted) == pytest.approx({"A": 50_000, "B": 50_000})


def test_inheritance_policy_lookup():
    assert select_inheritance_policy("nj", 2030) is select_inheritance_policy("NJ", 2024)
    assert select_inheritance_policy("NJ", 2010) is not None
    assert select_inheritance_policy("TX", 2024) is None
    assert select_inheritance_policy("none", 2024) is None


def test_inheritance_tax_depends_on_the_relationship_class():
    policy = select_inheritance_policy("NJ", 2024)

    assert compute_inheritance_tax(500_000, "child", policy) == 0.0
    assert compute_inheritance_tax(500_000, "charity", policy) == 0.0
    # Class C: 25,000 exempt, then 11% up to 1,075,000 and 16% above.
    assert compute_inheritance_tax(125_000, "sibling", policy) == pytest.approx(11_000.0)
    assert compute_inheritance_tax(20_000, "sibling", policy) == 0.0
    assert compute_inheritance_tax(1_200_000, "sibling", policy) == pytest.approx(1_075_000 * 0.11 + 100_000 * 0.16)
    assert compute_inheritance_tax(100_000, "friend", policy) == pytest.approx(15_000.0)
    # Relationships no class lists are taxed as unrelated.
    assert compute_inheritance_tax(100_000, "business_partner", policy) == pytest.approx(15_000.0)
    assert compute_inheritance_tax(0.0, "friend", policy) == 0.0


def test_inheritance_assets_are_filtered_by_tag():
    policy = select_inheritance_policy("NJ", 2024)
    assets = [
        (100.0, {"cash"}),
        (200.0, {"traditional"}),
        (300.0, {"taxable", "real_estate"}),
        (400.0, {"roth"}),
        (500.0, {"taxable"}),
    ]
    assert inheritance_taxable_assets(assets, policy) == pytest.approx(900.0)
    assert inheritance_taxable_assets(assets, {}) == pytest.approx(1_500.0)
