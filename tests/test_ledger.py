from datetime import date

import pytest

from rsim.ledger import Ledger
from tests.helpers import build_input, holding, minimal_input


def _ledger(holdings, *, cash=0.0, extra_cash=None, method="average") -> Ledger:
    data = minimal_input(cash=cash, holdings=holdings)
    if extra_cash:
        data["snapshot"]["cash_accounts"].extend(extra_cash)
    return Ledger.from_snapshot(build_input(data).snapshot, method)


def _roth(holding_id: str, balance: float, entries: list[dict]) -> dict:
    return holding(holding_id, "roth", balance, account_id="roth-account", roth_basis_entries=entries)


def test_debits_drain_secondary_accounts_before_the_primary():
    ledger = _ledger([], cash=1_000.0, extra_cash=[{"id": "savings", "name": "Savings", "balance": 500.0}])

    ledger.adjust_cash(-700.0)
    assert [account.balance for account in ledger.cash] == [800.0, 0.0]

    ledger.adjust_cash(-900.0)
    assert ledger.cash[0].balance == pytest.approx(-100.0)

    ledger.adjust_cash(300.0)
    assert ledger.cash[0].balance == pytest.approx(200.0)


def test_missing_cash_accounts_get_a_default():
    data = minimal_input()
    data["snapshot"]["cash_accounts"] = []
    ledger = Ledger.from_snapshot(build_input(data).snapshot)
    assert [account.id for account in ledger.cash] == ["cash"]


def test_withdraw_never_overdraws():
    ledger = _ledger([holding("h", "taxable", 1_000.0, cost_basis_lots=[{"date": "2010-01-01", "amount": 400.0}])])

    sale = ledger.withdraw("h", 2_500.0)
    assert sale.proceeds == 1_000.0
    assert sale.gain == pytest.approx(600.0)
    assert ledger.holding("h").balance == 0.0
    assert ledger.withdraw("h", 10.0).proceeds == 0.0


def test_losses_write_basis_down():
    ledger = _ledger([holding("h", "taxable", 1_000.0, cost_basis_lots=[{"date": "2010-01-01", "amount": 1_000.0}])])
    ledger.apply_return("h", -0.25)
    assert ledger.holding("h").balance == pytest.approx(750.0)
    assert ledger.holding("h").cost_basis == pytest.approx(750.0)


def test_conversion_tranches_season_for_five_years():
    entries = [
        {"date": "2010-01-01", "amount": 10_000.0, "kind": "contribution"},
        {"date": "2023-06-01", "amount": 5_000.0, "kind": "conversion"},
    ]
    ledger = _ledger([_roth("roth", 50_000.0, entries)])

    assert ledger.roth_basis_available("roth", date(2025, 1, 1)) == 10_000.0
    assert ledger.roth_basis_available("roth", date(2028, 6, 1)) == 15_000.0

    consumed = ledger.consume_roth_basis("roth", 12_000.0, date(2025, 1, 1))
    assert consumed == 10_000.0
    assert [entry.kind for entry in ledger.holding("roth").roth_basis] == ["conversion"]


def test_convert_adds_a_conversion_tranche():
    ledger = _ledger([holding("ira", "traditional", 20_000.0), _roth("roth", 0.0, [])])

    moved = ledger.convert("ira", "roth", 8_000.0, date(2025, 1, 1))
    roth = ledger.holding("roth")
    assert moved == 8_000.0
    assert roth.balance == 8_000.0
    assert [(entry.kind, entry.amount) for entry in roth.roth_basis] == [("conversion", 8_000.0)]


def test_moving_between_roth_holdings_carries_basis():
    entries = [{"date": "2010-01-01", "amount": 15_000.0, "kind": "contribution"}]
    ledger = _ledger([_roth("source", 20_000.0, entries), _roth("target", 5_000.0, [])])

    ledger.move("source", "target", 20_000.0, date(2025, 1, 1))
    assert ledger.holding("source").roth_basis == []
    assert sum(entry.amount for entry in ledger.holding("target").roth_basis) == pytest.approx(15_000.0)
    assert ledger.holding("target").balance == pytest.approx(25_000.0)


def test_balance_views():
    ledger = _ledger([holding("a", "taxable", 100.0), holding("b", "roth", 50.0)], cash=25.0)
    assert ledger.total_balance == 175.0
    assert ledger.balance_by_tax_type() == {"taxable": 100.0, "roth": 50.0}
    assert ledger.balances() == {"cash": 25.0, "a": 100.0, "b": 50.0}
