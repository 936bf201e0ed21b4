from datetime import date

import pytest

from rsim.cost_basis import COST_BASIS_METHODS, CostBasisTracker

OPENING_LOTS = [(date(2015, 1, 1), 500.0), (date(2010, 1, 1), 300.0)]


def _grown_tracker(method: str) -> tuple[CostBasisTracker, float]:
    """Open at 1000 with 800 of basis, grow 50%, then buy 1500 more."""
    tracker = CostBasisTracker.opening(method, 1_000.0, OPENING_LOTS)
    balance = 1_000.0 * 1.5
    tracker.add_basis(1_500.0, balance, date(2025, 1, 1))
    return tracker, balance + 1_500.0


def test_opening_lots_are_sorted_and_priced_at_one_unit_per_dollar():
    tracker = CostBasisTracker.opening("fifo", 1_000.0, OPENING_LOTS)
    assert tracker.units == 1_000.0
    assert [lot.date.year for lot in tracker.lots] == [2010, 2015]
    assert [lot.units for lot in tracker.lots] == pytest.approx([375.0, 625.0])
    assert tracker.total_basis == pytest.approx(800.0)


def test_opening_basis_above_balance_is_scaled_down():
    tracker = CostBasisTracker.opening("average", 500.0, [(date(2010, 1, 1), 1_000.0)])
    assert tracker.total_basis == pytest.approx(500.0)


def test_average_merges_lots():
    tracker = CostBasisTracker.opening("average", 1_000.0, OPENING_LOTS)
    assert len(tracker.lots) == 1
    assert tracker.lots[0].date == date(2010, 1, 1)


@pytest.mark.parametrize(
    ("method", "expected_basis"),
    [("fifo", 400.0), ("lifo", 750.0), ("average", 575.0)],
)
def test_partial_sale_basis_by_method(method, expected_basis):
    tracker, balance = _grown_tracker(method)
    assert tracker.withdraw(750.0, balance) == pytest.approx(expected_basis)


@pytest.mark.parametrize("method", COST_BASIS_METHODS)
def test_full_liquidation_consumes_all_basis(method):
    tracker, balance = _grown_tracker(method)
    first = tracker.withdraw(750.0, balance)
    rest = tracker.withdraw(balance - 750.0, balance - 750.0)

    assert first + rest == pytest.approx(2_300.0)
    assert tracker.units == 0.0
    assert tracker.lots == []


def test_unlotted_units_are_sold_first_under_fifo():
    tracker = CostBasisTracker.opening("fifo", 1_000.0, [])
    tracker.add_basis(1_000.0, 1_000.0, date(2025, 1, 1))

    assert tracker.withdraw(500.0, 2_000.0) == 0.0
    assert tracker.total_basis == pytest.approx(1_000.0)


def test_write_down_caps_basis_at_balance():
    tracker = CostBasisTracker.opening("fifo", 1_000.0, [(date(2010, 1, 1), 1_000.0)])
    tracker.write_down(600.0)
    assert tracker.total_basis == pytest.approx(600.0)

    tracker.write_down(900.0)
    assert tracker.total_basis == pytest.approx(600.0)


def test_buying_into_an_empty_holding_resets_units():
    tracker = CostBasisTracker.opening("lifo", 0.0, [])
    tracker.add_basis(250.0, 0.0, date(2025, 1, 1))
    assert tracker.units == 250.0
    assert tracker.total_basis == 250.0
