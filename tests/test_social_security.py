from datetime import date

import pytest

from rsim.schema import EarningsRecord, Person, ReferenceTables, SpendingItem, WorkPeriod
from rsim.social_security import (
    benefit_for_month,
    claiming_adjustment,
    estimate_benefit,
    primary_insurance_amount,
    project_future_earnings,
)

PERSON = Person(id="p1", name="Pat", date_of_birth=date(1960, 1, 1))


def _career(years: range, amount: float = 60_000.0) -> list[EarningsRecord]:
    return [EarningsRecord(person_id="p1", year=year, amount=amount) for year in years]


def test_claiming_adjustment_early_and_delayed():
    nra = 67 * 12
    assert claiming_adjustment(nra, nra, 0.08) == 1.0
    assert claiming_adjustment(62 * 12, nra, 0.08) == pytest.approx(0.7)
    assert claiming_adjustment(nra - 12, nra, 0.08) == pytest.approx(1 - 12 * 5 / 900)
    assert claiming_adjustment(70 * 12, nra, 0.08) == pytest.approx(1.24)


@pytest.mark.parametrize(
    ("aime", "expected"),
    [
        (1_000.0, 900.0),
        (5_000.0, 1_174 * 0.9 + 3_826 * 0.32),
        (10_000.0, 1_174 * 0.9 + 5_904 * 0.32 + 2_922 * 0.15),
    ],
)
def test_primary_insurance_amount(aime, expected):
    assert primary_insurance_amount(aime, (1_174.0, 7_078.0)) == pytest.approx(expected)


def test_claim_age_scales_the_same_pia():
    earnings = _career(range(1980, 2020))
    tables = ReferenceTables()
    at_62 = estimate_benefit(PERSON, date(2022, 1, 1), earnings, tables, 0.02)
    at_nra = estimate_benefit(PERSON, date(2027, 1, 1), earnings, tables, 0.02)
    at_70 = estimate_benefit(PERSON, date(2030, 1, 1), earnings, tables, 0.02)

    assert at_nra.pia == pytest.approx(at_62.pia)
    assert at_nra.nra_months == 67 * 12
    assert at_62.monthly_benefit == pytest.approx(at_nra.monthly_benefit * 0.7)
    assert at_70.monthly_benefit == pytest.approx(at_nra.monthly_benefit * 1.24)
    assert len(at_nra.top_years) == 35
    assert "bend_points" in at_nra.clamped_to_table


def test_no_earnings_means_no_benefit():
    estimate = estimate_benefit(PERSON, date(2027, 1, 1), [], ReferenceTables(), 0.02)
    assert estimate.aime == 0.0
    assert estimate.monthly_benefit == 0.0


def test_other_peoples_earnings_are_ignored():
    others = [EarningsRecord(person_id="p2", year=2000, amount=100_000.0)]
    estimate = estimate_benefit(PERSON, date(2027, 1, 1), others, ReferenceTables(), 0.02)
    assert estimate.monthly_benefit == 0.0


def test_benefit_starts_at_claim_and_grows_with_cola():
    estimate = estimate_benefit(PERSON, date(2027, 1, 1), _career(range(1980, 2020)), ReferenceTables(), 0.02)
    claim = date(2027, 1, 1)

    assert benefit_for_month(estimate, claim, date(2026, 12, 1), 0.02) == 0.0
    assert benefit_for_month(estimate, claim, claim, 0.02) == pytest.approx(estimate.monthly_benefit)
    assert benefit_for_month(estimate, claim, date(2028, 1, 1), 0.02) == pytest.approx(estimate.monthly_benefit * 1.02)


def test_future_work_is_projected_net_of_pre_tax_spending():
    period = WorkPeriod(
        id="job",
        person_id="p1",
        name="Job",
        salary=120_000.0,
        bonus=0.0,
        start_date=date(2025, 1, 1),
        end_date=date(2027, 1, 1),
    )
    pre_tax = SpendingItem(id="hsa", name="HSA", need_amount=500.0, want_amount=0.0, is_pre_tax=True)

    projected = project_future_earnings(
        [period],
        [pre_tax],
        base_year=2025,
        last_reported_year=2024,
        claim_date=date(2030, 1, 1),
        cpi_rate=0.0,
    )
    assert projected == {2025: (114_000.0, 12), 2026: (114_000.0, 12)}


def test_projected_work_raises_the_estimate():
    earnings = _career(range(1990, 2020), amount=30_000.0)
    period = WorkPeriod(
        id="job",
        person_id="p1",
        name="Job",
        salary=150_000.0,
        bonus=0.0,
        start_date=date(2020, 1, 1),
        end_date=date(2027, 1, 1),
    )
    tables = ReferenceTables()
    without = estimate_benefit(PERSON, date(2027, 1, 1), earnings, tables, 0.02)
    with_work = estimate_benefit(
        PERSON, date(2027, 1, 1), earnings, tables, 0.02, work_periods=[period], base_year=2025
    )
    assert with_work.monthly_benefit > without.monthly_benefit
