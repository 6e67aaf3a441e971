from __future__ import annotations

from decimal import Decimal
from typing import List, Union

from ..domain.money import Money, round_money
from ..engine.context import LineKind, Settlement, SettlementLine
from ..rule_types.base import DEFAULT_CURRENCY, PricingRule, RateType, Tier

D = Decimal

_LINE_LABELS = {
    LineKind.COMMISSION: "Commission",
    LineKind.FEE: "Marketplace fee",
    LineKind.SHIPPING: "Shipping",
    LineKind.COD: "COD fee",
}


def _clean_step(s: str) -> str:
    s = str(s).replace("\r", "").replace("\n", " ").replace("\t", " ").strip()
    return s


def _plain(value: D) -> str:
    # 5.00 -> "5", 1.50 -> "1.5", 10 -> "10" (normalize() alone gives 1E+1)
    return format(value.normalize(), "f")


def format_amount(amount: D, currency: str = DEFAULT_CURRENCY) -> str:
    return f"{round_money(amount):,} {currency}"


def format_money(money: Money) -> str:
    """15000 VND -> '15,000 VND'."""
    return format_amount(money.amount, money.currency)


def format_rate(target: Union[PricingRule, Tier], currency: str = DEFAULT_CURRENCY) -> str:
    """
    Display-only rate label: '5%', '15,000 VND', or 'Tiered' when a rule has
    more than one tier. Never used to compute anything.
    """
    if isinstance(target, PricingRule):
        if len(target.tiers) > 1:
            return "Tiered"
        return format_rate(target.tiers[0], currency=target.currency)

    if target.rate_type == RateType.PERCENTAGE:
        return f"{_plain(target.rate)}%"
    return format_amount(target.rate, currency)


def format_line(line: SettlementLine) -> str:
    label = _LINE_LABELS[line.kind]
    if line.no_rule_matched:
        return _clean_step(f"{label}: {format_money(line.computed_amount)} (no rule matched)")

    rate = ""
    if line.rate is not None and line.rate_type == RateType.PERCENTAGE:
        rate = f" @ {_plain(line.rate)}%"
    rule = f" [{line.rule_id}]" if line.rule_id else ""
    return _clean_step(f"{label}{rate}: {format_money(line.computed_amount)}{rule}")


def format_settlement_lines(settlement: Settlement, bullet: str = "•") -> List[str]:
    """
    One bullet per line item followed by the totals. Return List[str] so a UI
    can map() it; mail can join it (see format_settlement_text).
    """
    items = [format_line(ln) for ln in settlement.lines]
    items.append(f"Platform deductions: {format_money(settlement.platform_deductions)}")
    items.append(f"Net payable to seller: {format_money(settlement.net_payable)}")
    if settlement.buyer_charges.amount:
        items.append(f"Charged to buyer: {format_money(settlement.buyer_charges)}")
    return [f"{bullet} {s}" for s in items if s.strip()]


def format_settlement_text(settlement: Settlement, bullet: str = "•") -> str:
    """Mail: one text block, one bullet per row."""
    return "\n".join(format_settlement_lines(settlement, bullet=bullet))
