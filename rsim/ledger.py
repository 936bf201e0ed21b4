"""Account ledger: cash accounts, holdings, cost basis and the yearly tax ledger."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from .cost_basis import CostBasisTracker
from .dates import months_between
from .schema import SimulationSnapshot
from .tax_data import ROTH_CONVERSION_SEASONING_MONTHS

DEFAULT_CASH_ID = "cash"


@dataclass(slots=True)
class CashState:
    id: str
    name: str
    balance: float
    interest_rate: float | None = None


@dataclass(slots=True)
class BasisEntry:
    date: date
    amount: float
    kind: str = "contribution"


@dataclass(slots=True)
class HoldingState:
    id: str
    account_id: str
    name: str
    tax_type: str
    holding_type: str
    balance: float
    return_rate: float | None
    return_std_dev: float | None
    basis: CostBasisTracker
    roth_basis: list[BasisEntry] = field(default_factory=list)

    @property
    def cost_basis(self) -> float:
        return self.basis.total_basis

    @property
    def gain(self) -> float:
        return self.balance - self.cost_basis


@dataclass(slots=True)
class LotSale:
    proceeds: float
    basis: float

    @property
    def gain(self) -> float:
        return self.proceeds - self.basis


@dataclass(slots=True)
class TaxLedger:
    """Income and tax totals for one tax year."""

    year: int
    ordinary_income: float = 0.0
    earned_income: float = 0.0
    capital_gains: float = 0.0
    deductions: float = 0.0
    tax_exempt_income: float = 0.0
    social_security_income: float = 0.0
    penalties: float = 0.0
    payroll_tax: float = 0.0
    withholding: float = 0.0
    roth_conversions: float = 0.0
    rmd_distributions: float = 0.0
    qcd: float = 0.0
    tax_owed: float = 0.0
    state_tax: float = 0.0
    magi: float = 0.0


class Ledger:
    """Authoritative balances for one simulation path."""

    def __init__(self, cash: list[CashState], holdings: list[HoldingState]) -> None:
        self.cash = cash or [CashState(id=DEFAULT_CASH_ID, name="Cash", balance=0.0)]
        self.holdings = holdings
        self._by_id = {holding.id: holding for holding in holdings}

    @classmethod
    def from_snapshot(cls, snapshot: SimulationSnapshot, cost_basis_method: str = "average") -> "Ledger":
        cash = [
            CashState(id=item.id, name=item.name, balance=max(0.0, item.balance), interest_rate=item.interest_rate)
            for item in snapshot.cash_accounts
        ]
        holdings = []
        for item in snapshot.holdings:
            balance = max(0.0, item.balance)
            tracker = CostBasisTracker.opening(
                cost_basis_method,
                balance,
                [(lot.date, lot.amount) for lot in item.cost_basis_lots],
            )
            holdings.append(
                HoldingState(
                    id=item.id,
                    account_id=item.account_id,
                    name=item.name,
                    tax_type=item.tax_type,
                    holding_type=item.holding_type,
                    balance=balance,
                    return_rate=item.return_rate,
                    return_std_dev=item.return_std_dev,
                    basis=tracker,
                    roth_basis=[
                        BasisEntry(date=entry.date, amount=entry.amount, kind=entry.kind)
                        for entry in sorted(item.roth_basis_entries, key=lambda entry: entry.date)
                    ],
                )
            )
        return cls(cash, holdings)

    # Balances

    @property
    def total_cash(self) -> float:
        return sum(item.balance for item in self.cash)

    @property
    def total_investments(self) -> float:
        return sum(item.balance for item in self.holdings)

    @property
    def total_balance(self) -> float:
        return self.total_cash + self.total_investments

    def holding(self, holding_id: str) -> HoldingState | None:
        return self._by_id.get(holding_id)

    def holdings_of(self, *tax_types: str) -> list[HoldingState]:
        return [holding for holding in self.holdings if holding.tax_type in tax_types]

    def balances(self) -> dict[str, float]:
        out = {item.id: item.balance for item in self.cash}
        out.update({holding.id: holding.balance for holding in self.holdings})
        return out

    def balance_by_tax_type(self) -> dict[str, float]:
        out: dict[str, float] = {}
        for holding in self.holdings:
            out[holding.tax_type] = out.get(holding.tax_type, 0.0) + holding.balance
        return out

    # Cash

    def adjust_cash(self, delta: float) -> None:
        """Credit the primary account or debit accounts in order.

        A debit larger than all cash leaves the primary account negative until
        funding covers it or the shortfall is recorded.
        """
        if delta >= 0:
            self.cash[0].balance += delta
            return
        remaining = -delta
        for account in self.cash[1:]:
            taken = min(max(0.0, account.balance), remaining)
            account.balance -= taken
            remaining -= taken
        self.cash[0].balance -= remaining

    # Holdings

    def add_holding(self, holding: HoldingState) -> HoldingState:
        self.holdings.append(holding)
        self._by_id[holding.id] = holding
        return holding

    def deposit(self, holding_id: str, amount: float, on: date, *, roth_kind: str | None = "contribution") -> float:
        holding = self._by_id[holding_id]
        if amount <= 0:
            return 0.0
        holding.basis.add_basis(amount, holding.balance, on)
        holding.balance += amount
        if holding.tax_type == "roth" and roth_kind is not None:
            holding.roth_basis.append(BasisEntry(date=on, amount=amount, kind=roth_kind))
        return amount

    def withdraw(self, holding_id: str, amount: float) -> LotSale:
        """Sell up to ``amount``; never drives the balance below zero."""
        holding = self._by_id[holding_id]
        proceeds = min(max(0.0, amount), holding.balance)
        if proceeds <= 0:
            return LotSale(0.0, 0.0)
        basis = holding.basis.withdraw(proceeds, holding.balance)
        holding.balance -= proceeds
        if holding.balance < 1e-9:
            holding.balance = 0.0
        holding.basis.write_down(holding.balance)
        return LotSale(proceeds=proceeds, basis=basis)

    def convert(self, source_id: str, target_id: str, amount: float, on: date) -> float:
        """Move traditional dollars into a Roth holding as a conversion tranche."""
        sale = self.withdraw(source_id, amount)
        if sale.proceeds <= 0:
            return 0.0
        self.deposit(target_id, sale.proceeds, on, roth_kind="conversion")
        return sale.proceeds

    def apply_return(self, holding_id: str, rate: float) -> float:
        holding = self._by_id[holding_id]
        change = holding.balance * rate
        holding.balance = max(0.0, holding.balance + change)
        holding.basis.write_down(holding.balance)
        return change

    # Roth basis

    def roth_basis_available(self, holding_id: str, on: date) -> float:
        """Contributions plus conversion tranches past the seasoning period."""
        holding = self._by_id[holding_id]
        available = sum(
            entry.amount
            for entry in holding.roth_basis
            if entry.kind != "conversion" or months_between(entry.date, on) >= ROTH_CONVERSION_SEASONING_MONTHS
        )
        return min(available, holding.balance)

    def consume_roth_basis(self, holding_id: str, amount: float, on: date) -> float:
        holding = self._by_id[holding_id]
        remaining = max(0.0, amount)
        consumed = 0.0
        for entry in holding.roth_basis:
            if remaining <= 0:
                break
            if entry.kind == "conversion" and months_between(entry.date, on) < ROTH_CONVERSION_SEASONING_MONTHS:
                continue
            taken = min(entry.amount, remaining)
            entry.amount -= taken
            remaining -= taken
            consumed += taken
        holding.roth_basis = [entry for entry in holding.roth_basis if entry.amount > 1e-9]
        return consumed

    def drop_roth_basis(self, holding_id: str, amount: float) -> None:
        """Release basis for a Roth withdrawal of earnings-free dollars, oldest first."""
        holding = self._by_id[holding_id]
        remaining = max(0.0, amount)
        for entry in holding.roth_basis:
            if remaining <= 0:
                break
            taken = min(entry.amount, remaining)
            entry.amount -= taken
            remaining -= taken
        holding.roth_basis = [entry for entry in holding.roth_basis if entry.amount > 1e-9]

    def move(self, source_id: str, target_id: str, amount: float, on: date) -> LotSale:
        """Sell from one holding and buy another; Roth basis moves with the dollars."""
        sale = self.withdraw(source_id, amount)
        if sale.proceeds <= 0:
            return sale
        source = self._by_id[source_id]
        target = self._by_id[target_id]
        self.deposit(target_id, sale.proceeds, on, roth_kind=None)
        if source.tax_type == "roth" and target.tax_type == "roth":
            excess = sum(entry.amount for entry in source.roth_basis) - source.balance
            remaining = max(0.0, excess)
            for entry in source.roth_basis:
                if remaining <= 0:
                    break
                taken = min(entry.amount, remaining)
                entry.amount -= taken
                remaining -= taken
                target.roth_basis.append(BasisEntry(date=entry.date, amount=taken, kind=entry.kind))
            source.roth_basis = [entry for entry in source.roth_basis if entry.amount > 1e-9]
            target.roth_basis.sort(key=lambda entry: entry.date)
        return sale
