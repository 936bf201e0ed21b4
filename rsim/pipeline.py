"""Monthly module pipeline: path state, month context, and module order.

Modules run once per month in ``MODULE_ORDER``. Each one first returns its
cashflow items (applied to cash and the year's tax ledger), then its action
intents, which the engine resolves against the ledger in priority order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING

from .explain import ActionIntent, CashflowItem, ExplainTracker, MarketReturn
from .ledger import Ledger, TaxLedger

if TYPE_CHECKING:
    from .inflation import InflationIndex
    from .schema import Person, SimulationSnapshot
    from .strategies import ScenarioStrategies


@dataclass(frozen=True, slots=True)
class ModuleSpec:
    id: str
    after: tuple[str, ...] = ()
    description: str = ""


INCOME_MODULES = ("future-work", "social-security", "pensions", "events")
WITHDRAWAL_MODULES = ("conversions", "rmd", "funding")

MODULE_ORDER: tuple[ModuleSpec, ...] = (
    ModuleSpec("future-work", description="salary, payroll tax, 401k and HSA contributions"),
    ModuleSpec("social-security", description="estimated benefits from the claim date"),
    ModuleSpec("pensions", description="recurring dated income"),
    ModuleSpec("events", description="one-off dated cashflows"),
    ModuleSpec("spending", after=INCOME_MODULES, description="need spending; wants handed to funding"),
    ModuleSpec("healthcare", after=("spending",), description="premiums, IRMAA, long-term care"),
    ModuleSpec("charitable", after=("spending",), description="giving and qualified charitable distributions"),
    ModuleSpec("cash-buffer", after=("spending", "healthcare", "charitable"), description="refill or invest cash"),
    ModuleSpec("rebalancing", after=("cash-buffer",), description="drift back to target weights"),
    ModuleSpec("conversions", after=INCOME_MODULES, description="Roth conversions and ladder tranches"),
    ModuleSpec("rmd", after=("conversions",), description="required minimum distributions"),
    ModuleSpec(
        "funding",
        after=("spending", "healthcare", "charitable", "cash-buffer", "rmd"),
        description="guardrail, want spending, deficit withdrawals",
    ),
    ModuleSpec("taxes", after=INCOME_MODULES + WITHDRAWAL_MODULES, description="year-end tax and payment"),
    ModuleSpec("death-legacy", after=("taxes",), description="funeral, estate tax, bequests"),
    ModuleSpec(
        "returns",
        after=("future-work", "spending", "funding", "taxes", "death-legacy"),
        description="market returns on cash and holdings",
    ),
)


def check_module_order(order: tuple[ModuleSpec, ...]) -> None:
    """Raise ValueError unless every module runs after everything it depends on."""
    position: dict[str, int] = {}
    for index, spec in enumerate(order):
        if spec.id in position:
            raise ValueError(f"module '{spec.id}' appears twice in the pipeline")
        position[spec.id] = index
    for spec in order:
        for dependency in spec.after:
            if dependency not in position:
                raise ValueError(f"module '{spec.id}' depends on unknown module '{dependency}'")
            if position[dependency] >= position[spec.id]:
                raise ValueError(f"module '{spec.id}' must run after '{dependency}'")
    if order and order[-1].id != "returns":
        raise ValueError("market returns must be the last module of the month")


check_module_order(MODULE_ORDER)

MODULE_IDS: tuple[str, ...] = tuple(spec.id for spec in MODULE_ORDER)


@dataclass(slots=True)
class MonthTotals:
    income: float = 0.0
    spending: float = 0.0
    contributions: float = 0.0
    withdrawals: float = 0.0
    taxes: float = 0.0
    shortfall: float = 0.0
    medical_spend: float = 0.0
    hsa_medical_used: float = 0.0
    legacy: float = 0.0


@dataclass(slots=True)
class GuardrailState:
    target_date: date | None = None
    target_balance: float | None = None
    baseline_need: float = 0.0
    baseline_want: float = 0.0
    guyton_months_remaining: int = 0
    factor_sum: float = 0.0
    factor_count: int = 0
    factor_min: float = 1.0
    below_count: int = 0

    def record(self, factor: float) -> None:
        self.factor_sum += factor
        self.factor_count += 1
        self.factor_min = min(self.factor_min, factor)
        if factor < 1.0:
            self.below_count += 1

    @property
    def average(self) -> float:
        return self.factor_sum / self.factor_count if self.factor_count else 1.0

    @property
    def below_pct(self) -> float:
        return self.below_count / self.factor_count if self.factor_count else 0.0


@dataclass(slots=True)
class SpendingHandoff:
    """What the spending module leaves for funding in the current month."""

    need: float = 0.0
    want: float = 0.0
    want_items: list[tuple[str, str, float, bool]] = field(default_factory=list)
    discounted_balance: float = 0.0
    total_balance: float = 0.0


@dataclass(slots=True)
class PathState:
    ledger: Ledger
    year_ledger: TaxLedger
    closed_years: list[TaxLedger] = field(default_factory=list)
    magi_history: dict[int, float] = field(default_factory=dict)
    guardrail: GuardrailState = field(default_factory=GuardrailState)
    spending: SpendingHandoff = field(default_factory=SpendingHandoff)
    month: MonthTotals = field(default_factory=MonthTotals)
    ytd_wages: dict[str, float] = field(default_factory=dict)
    deceased: set[str] = field(default_factory=set)
    estate_settled: bool = False
    legacy_total: float = 0.0
    bequests: dict[str, float] = field(default_factory=dict)

    def book(self, item: CashflowItem) -> None:
        """Apply a cashflow item to cash and the year's tax ledger."""
        if item.cash:
            self.ledger.adjust_cash(item.cash)
        year = self.year_ledger
        year.ordinary_income += item.ordinary_income
        year.earned_income += item.earned_income
        year.capital_gains += item.capital_gains
        year.deductions += item.deductions
        year.tax_exempt_income += item.tax_exempt_income
        year.social_security_income += item.social_security_income
        year.penalties += item.penalty
        year.withholding += item.withholding

    def roll_year(self, next_year: int) -> TaxLedger:
        closed = self.year_ledger
        self.closed_years.append(closed)
        self.year_ledger = TaxLedger(year=next_year)
        self.ytd_wages = {}
        return closed


@dataclass(slots=True)
class MonthContext:
    snapshot: "SimulationSnapshot"
    strategies: "ScenarioStrategies"
    start_date: date
    months: int
    month_index: int
    date: date
    inflation: "InflationIndex"
    ages: dict[str, float]
    seed: int
    trial_index: int = 0

    @property
    def year_index(self) -> int:
        return self.month_index // 12

    @property
    def is_start_of_year(self) -> bool:
        return self.month_index % 12 == 0

    @property
    def is_final_month(self) -> bool:
        return self.month_index == self.months - 1

    @property
    def is_end_of_year(self) -> bool:
        return self.month_index % 12 == 11 or self.is_final_month

    @property
    def primary(self) -> "Person | None":
        return self.snapshot.primary

    @property
    def age(self) -> float:
        primary = self.primary
        return self.ages.get(primary.id, 0.0) if primary else 0.0

    @property
    def cpi_rate(self) -> float:
        return self.strategies.return_model.inflation_assumptions.get("cpi", 0.0)

    def inflate(self, amount: float, inflation_type: str, from_date: date | None) -> float:
        """Inflate ``amount`` from ``from_date`` (default: path start) to this month."""
        if from_date is None or from_date == self.start_date:
            return amount * self.inflation.value(inflation_type, self.month_index)
        return self.inflation.inflate(amount, inflation_type, from_date, self.date)


class SimulationModule:
    """One stage of the monthly pipeline; subclasses override what they need."""

    id = "module"
    # Deficit left in cash after this module runs is recorded as a shortfall.
    covers_deficit = False

    def __init__(self) -> None:
        self.explain = ExplainTracker()

    def cashflows(self, state: PathState, ctx: MonthContext) -> list[CashflowItem]:
        return []

    def intents(self, state: PathState, ctx: MonthContext) -> list[ActionIntent]:
        return []

    def market_returns(self, state: PathState, ctx: MonthContext) -> list[MarketReturn]:
        return []