"""Lot-level cost basis tracking for holdings (average, FIFO, LIFO)."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

COST_BASIS_METHODS = ("average", "fifo", "lifo")

_EPSILON = 1e-9


@dataclass(slots=True)
class Lot:
    date: date
    amount: float
    units: float


@dataclass(slots=True)
class CostBasisTracker:
    """Units and basis lots for one holding.

    ``units`` counts every unit the holding owns. Units not covered by a lot
    carry zero basis and are treated as the oldest units on hand.
    """

    method: str = "average"
    units: float = 0.0
    lots: list[Lot] = field(default_factory=list)

    @property
    def total_basis(self) -> float:
        return sum(lot.amount for lot in self.lots)

    @property
    def lotted_units(self) -> float:
        return sum(lot.units for lot in self.lots)

    @classmethod
    def opening(cls, method: str, balance: float, lots: list[tuple[date, float]]) -> "CostBasisTracker":
        """Start with one unit per dollar; opening lots share the holding's gain ratio."""
        tracker = cls(method=method, units=max(0.0, balance))
        basis = sum(max(0.0, amount) for _, amount in lots)
        if balance <= 0 or basis <= 0:
            return tracker
        scale = min(1.0, balance / basis)
        units_per_basis = balance / basis
        for lot_date, amount in sorted(lots, key=lambda item: item[0]):
            if amount <= 0:
                continue
            tracker.lots.append(Lot(date=lot_date, amount=amount * scale, units=amount * units_per_basis))
        if method == "average" and len(tracker.lots) > 1:
            tracker._merge()
        return tracker

    def _merge(self) -> None:
        first = self.lots[0].date
        self.lots = [Lot(date=first, amount=self.total_basis, units=self.lotted_units)]

    def add_basis(self, amount: float, balance_before: float, on: date) -> None:
        """Buy ``amount`` worth of units at the current unit price."""
        if amount <= 0:
            return
        price = balance_before / self.units if self.units > _EPSILON and balance_before > _EPSILON else 1.0
        if self.units <= _EPSILON:
            self.units = 0.0
            self.lots = []
        bought = amount / price
        self.units += bought
        if self.method == "average" and self.lots:
            lot = self.lots[0]
            lot.amount += amount
            lot.units += bought
            return
        self.lots.append(Lot(date=on, amount=amount, units=bought))

    def withdraw(self, amount: float, balance_before: float) -> float:
        """Sell ``amount`` worth of units and return the basis consumed."""
        if amount <= 0 or balance_before <= 0 or self.units <= _EPSILON:
            return 0.0

        fraction = min(1.0, amount / balance_before)
        units_sold = self.units * fraction
        if fraction >= 1.0 - _EPSILON:
            basis = self.total_basis
            self.units = 0.0
            self.lots = []
            return basis

        if self.method == "average":
            basis = 0.0
            for lot in self.lots:
                consumed = lot.amount * fraction
                basis += consumed
                lot.amount -= consumed
                lot.units -= lot.units * fraction
            self.units -= units_sold
            return basis

        basis = self._consume_in_order(units_sold)
        self.units -= units_sold
        self.lots = [lot for lot in self.lots if lot.units > _EPSILON]
        return basis

    def _consume_in_order(self, units_sold: float) -> float:
        remaining = units_sold
        unlotted = max(0.0, self.units - self.lotted_units)
        ordered = sorted(self.lots, key=lambda lot: lot.date)
        if self.method == "lifo":
            ordered.reverse()
        else:
            # Zero-basis units are the oldest on hand.
            taken = min(remaining, unlotted)
            remaining -= taken
        basis = 0.0
        for lot in ordered:
            if remaining <= _EPSILON:
                break
            taken = min(remaining, lot.units)
            consumed = lot.amount * (taken / lot.units) if lot.units > 0 else 0.0
            basis += consumed
            lot.amount -= consumed
            lot.units -= taken
            remaining -= taken
        return basis

    def write_down(self, balance: float) -> None:
        """Keep total basis at or below the holding balance."""
        basis = self.total_basis
        if basis <= balance or basis <= 0:
            return
        scale = max(0.0, balance) / basis
        for lot in self.lots:
            lot.amount *= scale
