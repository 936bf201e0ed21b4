import pytest

from rsim.healthcare import HealthcareModule, irmaa_surcharge, select_irmaa_table
from rsim.schema import ReferenceTables
from tests.helpers import build_input, make_context, make_state, minimal_input

PREMIUMS = {
    "pre_medicare_monthly": 800.0,
    "medicare_part_b_monthly": 175.0,
    "medicare_part_d_monthly": 40.0,
    "medigap_monthly": 100.0,
}


def _run(age, *, month_index=0, healthcare=None, work_periods=None, magi_history=None):
    data = minimal_input(months=36, strategies={"healthcare": {**PREMIUMS, **(healthcare or {})}})
    data["snapshot"]["work_periods"] = work_periods or []
    sim_input = build_input(data)
    state = make_state(sim_input)
    state.magi_history.update(magi_history or {})
    items = HealthcareModule(sim_input.snapshot).cashflows(state, make_context(sim_input, month_index, age=age))
    return items, state


@pytest.mark.parametrize(
    ("magi", "expected"),
    [(50_000, 0.0), (120_000, 69.9 + 12.9), (600_000, 419.3 + 81.0)],
)
def test_irmaa_surcharge_tiers(magi, expected):
    table = select_irmaa_table(ReferenceTables().irmaa_tables, 2025, "single")
    assert table.year == 2024
    assert irmaa_surcharge(table, magi) == pytest.approx(expected)


def test_no_table_means_no_surcharge():
    assert irmaa_surcharge(None, 1_000_000) == 0.0


def test_pre_medicare_premium():
    items, state = _run(60.0)
    assert [item.cash for item in items] == [pytest.approx(-800.0)]
    assert state.month.medical_spend == pytest.approx(800.0)


def test_medicare_premium_adds_irmaa_from_the_lookback_year():
    # 2027 uses the 2026 table.
    items, _ = _run(66.0, month_index=24, magi_history={0: 120_000})
    assert items[0].cash == pytest.approx(-(315.0 + 74.0 + 13.0))

    items, _ = _run(66.0, month_index=24)
    assert items[0].cash == pytest.approx(-315.0)


def test_employer_coverage_waives_premiums():
    work = [{"id": "job", "person_id": "p1", "salary": 50_000, "includes_health_insurance": True}]
    items, _ = _run(60.0, work_periods=work)
    assert items == []


def test_long_term_care_window():
    ltc = {"long_term_care": {"enabled": True, "start_age": 85, "duration_years": 2, "monthly_cost": 5_000.0}}
    items, _ = _run(86.0, healthcare=ltc)
    assert [item.label for item in items] == ["Healthcare", "Long-term care"]
    assert items[1].cash == pytest.approx(-5_000.0)

    items, _ = _run(87.5, healthcare=ltc)
    assert [item.label for item in items] == ["Healthcare"]


def test_declining_health_raises_premiums():
    declining = {"declining_health": {"enabled": True, "start_age": 75, "annual_increase_pct": 0.1}}
    items, _ = _run(77.0, healthcare={**declining, "apply_irmaa": False})
    assert items[0].cash == pytest.approx(-315.0 * 1.1**2)
