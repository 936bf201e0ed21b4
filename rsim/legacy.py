"""Death, funeral costs, estate tax and bequests."""

from __future__ import annotations

import logging

from .explain import ActionIntent, CashflowItem
from .pipeline import MonthContext, PathState, SimulationModule
from .schema import Person, SimulationSnapshot
from .ledger import Ledger
from .tax import (
    allocate_estate,
    beneficiary_shares,
    compute_estate_tax,
    compute_inheritance_tax,
    inheritance_taxable_assets,
    select_inheritance_policy,
)
from .tax_data import FUNERAL_COSTS
from .taxes import settle_year

logger = logging.getLogger(__name__)


def funeral_cost(ctx: MonthContext) -> float:
    death = ctx.strategies.death
    base = death.funeral_cost_override if death.funeral_cost_override > 0 else FUNERAL_COSTS.get(death.funeral_disposition, 0.0)
    return ctx.inflate(base, "cpi", ctx.start_date)


def deferred_heir_taxes(state: PathState, ctx: MonthContext) -> dict[str, float]:
    """Income tax each beneficiary will owe later on inherited pre-tax money and gains."""
    death = ctx.strategies.death
    pre_tax = sum(holding.balance for holding in state.ledger.holdings_of("traditional", "hsa"))
    gains = 0.0
    if not death.taxable_step_up:
        gains = sum(max(0.0, holding.gain) for holding in state.ledger.holdings_of("taxable"))
    out: dict[str, float] = {}
    for beneficiary, share in zip(death.beneficiaries, beneficiary_shares(death.beneficiaries)):
        owed = pre_tax * share * beneficiary.assumed_ordinary_rate + gains * share * beneficiary.assumed_capital_gains_rate
        out[beneficiary.name] = out.get(beneficiary.name, 0.0) + owed
    return out


def inheritance_assets(ledger: Ledger) -> list[tuple[float, set[str]]]:
    """Every cash account and holding with the tags inheritance policies filter on."""
    assets = [(account.balance, {"cash"}) for account in ledger.cash]
    for holding in ledger.holdings:
        tags = {holding.tax_type}
        if holding.holding_type == "real_estate":
            tags.add("real_estate")
        assets.append((holding.balance, tags))
    return assets


def inheritance_taxes(state: PathState, ctx: MonthContext, estate_costs: float) -> dict[str, float]:
    """State inheritance tax each beneficiary owes on their share of the estate.

    Each state taxes its share of the assets its policy covers, less the
    estate's costs. Beneficiaries living in a state without the tax owe none.
    """
    death = ctx.strategies.death
    assets = inheritance_assets(state.ledger)
    year = ctx.strategies.tax.policy_year or ctx.date.year
    taxable_by_state: dict[str, tuple[dict | None, float]] = {}
    out: dict[str, float] = {}
    for beneficiary, share in zip(death.beneficiaries, beneficiary_shares(death.beneficiaries)):
        code = beneficiary.state_of_residence.upper()
        if code not in taxable_by_state:
            policy = select_inheritance_policy(code, year)
            taxable = max(0.0, inheritance_taxable_assets(assets, policy) - estate_costs) if policy else 0.0
            taxable_by_state[code] = (policy, taxable)
        policy, taxable = taxable_by_state[code]
        if policy is None or taxable <= 0:
            continue
        owed = compute_inheritance_tax(taxable * share, beneficiary.relationship, policy)
        out[beneficiary.name] = out.get(beneficiary.name, 0.0) + owed
    return out


class DeathLegacyModule(SimulationModule):
    """Marks deaths at life expectancy and settles the estate after the last one.

    Settlement also happens in the final simulated month when death modeling
    is on. The estate pays the final year's income tax, the funeral and the
    estate tax. Heirs living in an inheritance-tax state pay that tax out of
    their shares. Every holding is then sold at stepped-up basis and the rest
    leaves the household as bequests, which ends the path.
    """

    id = "death-legacy"
    covers_deficit = True

    def __init__(self, snapshot: SimulationSnapshot) -> None:
        super().__init__()
        self.people = snapshot.people

    def _deaths(self, state: PathState, ctx: MonthContext) -> list[Person]:
        return [
            person
            for person in self.people
            if person.id not in state.deceased and ctx.ages.get(person.id, 0.0) >= person.life_expectancy
        ]

    def cashflows(self, state: PathState, ctx: MonthContext) -> list[CashflowItem]:
        death = ctx.strategies.death
        if not death.enabled or state.estate_settled:
            return []

        items: list[CashflowItem] = []
        for person in self._deaths(state, ctx):
            state.deceased.add(person.id)
            cost = funeral_cost(ctx)
            logger.debug("month %d: %s reached life expectancy", ctx.month_index, person.id)
            self.explain.add_input("Death", person.name or person.id)
            if cost > 0:
                items.append(
                    CashflowItem(
                        id=f"funeral-{person.id}-{ctx.month_index}",
                        label=f"Funeral ({person.name or person.id})",
                        category="estate",
                        cash=-cost,
                    )
                )

        state.month.spending += sum(-item.cash for item in items)
        everyone_gone = bool(self.people) and len(state.deceased) >= len(self.people)
        if not (everyone_gone or ctx.is_final_month):
            return items

        if not ctx.is_end_of_year:
            final_tax = settle_year(state, ctx)
            if final_tax is not None:
                items.append(final_tax)

        gross = state.ledger.total_balance + sum(item.cash for item in items)
        estate_tax = compute_estate_tax(gross, death.estate_tax_exemption, death.estate_tax_rate)
        if estate_tax > 0:
            items.append(
                CashflowItem(id=f"estate-tax-{ctx.month_index}", label="Estate tax", category="estate", cash=-estate_tax)
            )
        net = max(0.0, gross - estate_tax)

        deferred = deferred_heir_taxes(state, ctx)
        allocation = allocate_estate(net, death.beneficiaries) or {"estate": net}
        owed = inheritance_taxes(state, ctx, max(0.0, state.ledger.total_balance - net))
        inheritance_tax = 0.0
        for name, tax in owed.items():
            tax = min(tax, allocation.get(name, 0.0))
            allocation[name] -= tax
            inheritance_tax += tax
        if inheritance_tax > 0:
            items.append(
                CashflowItem(
                    id=f"inheritance-tax-{ctx.month_index}",
                    label="State inheritance tax",
                    category="estate",
                    cash=-inheritance_tax,
                )
            )
        for name, amount in allocation.items():
            state.bequests[name] = amount - deferred.get(name, 0.0)
            if amount > 0:
                items.append(
                    CashflowItem(id=f"bequest-{name}-{ctx.month_index}", label=f"Bequest to {name}", category="estate", cash=-amount)
                )

        state.legacy_total = net - inheritance_tax
        state.month.legacy += net - inheritance_tax
        state.estate_settled = True
        self.explain.add_checkpoint("Gross estate", gross)
        self.explain.add_checkpoint("Estate tax", estate_tax)
        self.explain.add_checkpoint("Inheritance tax", inheritance_tax)
        self.explain.add_checkpoint("Deferred heir taxes", sum(deferred.values()))
        logger.debug("month %d: estate settled, %.2f to beneficiaries", ctx.month_index, net)
        return items

    def intents(self, state: PathState, ctx: MonthContext) -> list[ActionIntent]:
        if not state.estate_settled or state.ledger.total_investments <= 0:
            return []
        return [
            ActionIntent(
                kind="withdraw",
                amount=holding.balance,
                label="Liquidate estate",
                source_holding_id=holding.id,
                step_up=True,
            )
            for holding in state.ledger.holdings
            if holding.balance > 0
        ]
