"""Roth conversions: bracket filling, IRMAA headroom, and the conversion ladder."""

from __future__ import annotations

from .explain import ActionIntent
from .healthcare import select_irmaa_table
from .pipeline import MonthContext, PathState, SimulationModule
from .tax import bracket_ceiling
from .taxes import policy_for_year


def _age_in_window(age: float, start_age: float, end_age: float) -> bool:
    if start_age > 0 and age < start_age:
        return False
    if end_age > 0 and age > end_age:
        return False
    return True


def bracket_headroom(state: PathState, ctx: MonthContext) -> float | None:
    """Ordinary income that still fits under the target bracket this year.

    ``None`` when no target bracket is configured or the bracket is the
    unbounded top one.
    """
    strategy = ctx.strategies.roth_conversion
    if strategy.target_bracket_rate <= 0:
        return None
    tax = ctx.strategies.tax
    policy = policy_for_year(ctx)
    if policy is None:
        return None
    ceiling = bracket_ceiling(policy.ordinary_brackets, strategy.target_bracket_rate)
    if ceiling is None:
        return None
    # Bracket bounds apply to taxable income, so the standard deduction widens the room.
    if tax.use_standard_deduction:
        ceiling += policy.standard_deduction
    return max(0.0, ceiling + state.year_ledger.deductions - state.year_ledger.ordinary_income)


def irmaa_headroom(state: PathState, ctx: MonthContext) -> float | None:
    """MAGI left before the first IRMAA tier, indexed at CPI from the table year."""
    table = select_irmaa_table(
        ctx.snapshot.tables.irmaa_tables, ctx.date.year, ctx.strategies.tax.filing_status
    )
    if table is None or not table.tiers or not table.tiers[0].max_magi:
        return None
    years = max(0, ctx.date.year - table.year)
    limit = table.tiers[0].max_magi * (1.0 + ctx.cpi_rate) ** years
    ledger = state.year_ledger
    magi = ledger.ordinary_income + ledger.capital_gains + ledger.tax_exempt_income
    return max(0.0, limit - magi)


def ladder_amount(ctx: MonthContext) -> float:
    """Annual ladder tranche, converted ``lead_time_years`` ahead of spending it."""
    ladder = ctx.strategies.roth_ladder
    if not ladder.enabled:
        return 0.0
    start = ladder.start_age - ladder.lead_time_years if ladder.start_age > 0 else 0.0
    end = ladder.end_age - ladder.lead_time_years if ladder.end_age > 0 else 0.0
    if not _age_in_window(ctx.age, max(0.0, start), max(0.0, end)):
        return 0.0
    base = ladder.annual_conversion if ladder.annual_conversion > 0 else ladder.target_after_tax_spending
    if base <= 0:
        return 0.0
    return ctx.inflate(base, "cpi", ctx.start_date)


def conversion_candidate(state: PathState, ctx: MonthContext) -> float:
    strategy = ctx.strategies.roth_conversion
    if not strategy.enabled or not _age_in_window(ctx.age, strategy.start_age, strategy.end_age):
        return 0.0
    candidate = bracket_headroom(state, ctx) or 0.0
    if strategy.respect_irmaa:
        headroom = irmaa_headroom(state, ctx)
        if headroom is not None:
            candidate = min(candidate, headroom)
    if strategy.min_conversion > 0:
        candidate = max(candidate, ctx.inflate(strategy.min_conversion, "cpi", ctx.start_date))
    if strategy.max_conversion > 0:
        candidate = min(candidate, ctx.inflate(strategy.max_conversion, "cpi", ctx.start_date))
    return candidate


class ConversionModule(SimulationModule):
    """Converts traditional money to Roth once a year, in the first month of each simulation year."""

    id = "conversions"

    def intents(self, state: PathState, ctx: MonthContext) -> list[ActionIntent]:
        if not ctx.is_start_of_year:
            return []
        ladder = ladder_amount(ctx)
        candidate = conversion_candidate(state, ctx)
        amount = max(ladder, candidate)
        self.explain.add_input("Ladder tranche", ladder)
        self.explain.add_input("Bracket candidate", candidate)
        self.explain.add_checkpoint("Conversion amount", amount)
        if amount <= 0:
            return []

        sources = sorted(
            (holding for holding in state.ledger.holdings_of("traditional") if holding.balance > 0),
            key=lambda holding: holding.balance,
            reverse=True,
        )
        targets = state.ledger.holdings_of("roth")
        if not sources or not targets:
            return []

        intents: list[ActionIntent] = []
        remaining = amount
        priority = 40
        for holding in sources:
            if remaining <= 0:
                break
            tranche = min(remaining, holding.balance)
            intents.append(
                ActionIntent(
                    kind="convert",
                    amount=tranche,
                    label="Roth conversion",
                    source_holding_id=holding.id,
                    target_holding_id=targets[0].id,
                    from_cash=False,
                    to_cash=False,
                    priority=priority,
                )
            )
            remaining -= tranche
            priority += 1
        return intents
