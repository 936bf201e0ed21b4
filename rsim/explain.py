"""Per-month audit records: cashflows, actions, market returns, checkpoints."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any

ACTION_KINDS = ("withdraw", "deposit", "convert", "rebalance", "rmd")

CASHFLOW_CATEGORIES = (
    "work",
    "payroll_tax",
    "spending_need",
    "spending_want",
    "social_security",
    "pension",
    "healthcare",
    "event",
    "charitable",
    "tax",
    "estate",
    "shortfall",
    "other",
)


@dataclass(slots=True)
class CashflowItem:
    """One cash movement and its tax character.

    ``cash`` is the signed change to household cash. The tax fields feed the
    year's tax ledger and may be set on items whose cash is zero (for example
    the realized gain of a sale).
    """

    id: str
    label: str
    category: str
    cash: float = 0.0
    ordinary_income: float = 0.0
    earned_income: float = 0.0
    capital_gains: float = 0.0
    deductions: float = 0.0
    tax_exempt_income: float = 0.0
    social_security_income: float = 0.0
    penalty: float = 0.0
    withholding: float = 0.0


@dataclass(slots=True)
class ActionIntent:
    kind: str
    amount: float
    label: str = ""
    source_holding_id: str | None = None
    target_holding_id: str | None = None
    from_cash: bool = True
    to_cash: bool = True
    priority: int = 0
    tax_treatment: str | None = None
    roth_basis_only: bool = False
    step_up: bool = False


@dataclass(slots=True)
class ActionRecord:
    kind: str
    requested: float
    resolved: float
    label: str = ""
    source_holding_id: str | None = None
    target_holding_id: str | None = None
    from_cash: bool = True
    to_cash: bool = True
    tax_treatment: str | None = None
    early_penalty: bool = False


@dataclass(slots=True)
class MarketReturn:
    account_id: str
    kind: str
    balance_before: float
    rate: float
    amount: float


@dataclass(slots=True)
class ModuleRunExplanation:
    module_id: str
    cashflows: list[CashflowItem] = field(default_factory=list)
    actions: list[ActionRecord] = field(default_factory=list)
    market_returns: list[MarketReturn] = field(default_factory=list)
    inputs: list[tuple[str, Any]] = field(default_factory=list)
    checkpoints: list[tuple[str, Any]] = field(default_factory=list)

    @property
    def cash_total(self) -> float:
        return sum(item.cash for item in self.cashflows)

    @property
    def external_total(self) -> float:
        """Money entering or leaving holdings without passing through cash."""
        total = 0.0
        for action in self.actions:
            if action.kind == "deposit" and not action.from_cash:
                total += action.resolved
            elif action.kind in ("withdraw", "rmd") and not action.to_cash:
                total -= action.resolved
        return total

    @property
    def total(self) -> float:
        return self.cash_total + self.external_total

    @property
    def market_total(self) -> float:
        return sum(item.amount for item in self.market_returns)


@dataclass(slots=True)
class MonthExplanation:
    month_index: int
    date: date
    modules: list[ModuleRunExplanation] = field(default_factory=list)
    balances: dict[str, float] = field(default_factory=dict)
    contributions: float = 0.0
    total_before: float = 0.0
    total_after: float = 0.0

    @property
    def module_total(self) -> float:
        return sum(module.total for module in self.modules)

    @property
    def market_total(self) -> float:
        return sum(module.market_total for module in self.modules)


class ExplainTracker:
    """Collects inputs and checkpoints for one module run; a no-op when disabled."""

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self.inputs: list[tuple[str, Any]] = []
        self.checkpoints: list[tuple[str, Any]] = []

    def add_input(self, label: str, value: Any) -> None:
        if self.enabled:
            self.inputs.append((label, value))

    def add_checkpoint(self, label: str, value: Any) -> None:
        if self.enabled:
            self.checkpoints.append((label, value))

    def drain(self) -> tuple[list[tuple[str, Any]], list[tuple[str, Any]]]:
        inputs, checkpoints = self.inputs, self.checkpoints
        self.inputs, self.checkpoints = [], []
        return inputs, checkpoints


_ALWAYS_KEPT = ("id", "label", "category", "cash")


def _cashflow_to_dict(item: CashflowItem) -> dict[str, Any]:
    return {key: value for key, value in asdict(item).items() if key in _ALWAYS_KEPT or value}


def module_to_dict(module: ModuleRunExplanation) -> dict[str, Any]:
    return {
        "module_id": module.module_id,
        "cashflows": [_cashflow_to_dict(item) for item in module.cashflows],
        "actions": [asdict(action) for action in module.actions],
        "market_returns": [asdict(item) for item in module.market_returns],
        "inputs": [{"label": label, "value": value} for label, value in module.inputs],
        "checkpoints": [{"label": label, "value": value} for label, value in module.checkpoints],
        "total": module.total,
    }


def month_to_dict(month: MonthExplanation) -> dict[str, Any]:
    return {
        "month_index": month.month_index,
        "date": month.date.isoformat(),
        "modules": [module_to_dict(module) for module in month.modules],
        "balances": dict(month.balances),
        "contributions": month.contributions,
        "total_before": month.total_before,
        "total_after": month.total_after,
    }
