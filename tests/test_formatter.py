from __future__ import annotations

from decimal import Decimal

from marketfee.domain.money import Money
from marketfee.engine.aggregator import FeeAggregator
from marketfee.explain.formatter import (
    format_money,
    format_rate,
    format_settlement_lines,
    format_settlement_text,
)
from marketfee.rule_store.catalog import RuleCatalog
from marketfee.rule_types.base import RateType, Tier

D = Decimal


def test_format_rate():
    assert format_rate(Tier(min=D("0"), max=None, rate=D("5"))) == "5%"
    assert format_rate(Tier(min=D("0"), max=None, rate=D("1.50"))) == "1.5%"
    assert format_rate(Tier(min=D("0"), max=None, rate=D("10"))) == "10%"
    assert format_rate(Tier(min=D("0"), max=None, rate=D("15000"), rate_type=RateType.FIXED)) == "15,000 VND"


def test_format_rate_of_rules(make_commission, make_fee):
    assert format_rate(make_commission(rate="5")) == "5%"
    assert format_rate(make_fee()) == "Tiered"


def test_format_money():
    assert format_money(Money("VND", D("1234567"))) == "1,234,567 VND"
    assert format_money(Money("VND", D("0"))) == "0 VND"


def test_settlement_lines(sample_catalog, settings, cod_order):
    s = FeeAggregator(sample_catalog, settings=settings).compute_settlement(cod_order)
    lines = format_settlement_lines(s)

    assert lines == [
        "• Commission @ 3%: 6,000 VND [commission-shop-bat-trang]",
        "• Marketplace fee @ 2%: 5,000 VND [fee-global-default]",
        "• Shipping: 15,000 VND [shipping-urban-standard]",
        "• COD fee @ 2%: 5,000 VND [shipping-urban-standard]",
        "• Platform deductions: 11,000 VND",
        "• Net payable to seller: 189,000 VND",
        "• Charged to buyer: 20,000 VND",
    ]
    assert format_settlement_text(s, bullet="-").splitlines()[0].startswith("- Commission")


def test_unmatched_line_is_labelled(settings, plain_order):
    s = FeeAggregator(RuleCatalog(rules=()), settings=settings).compute_settlement(plain_order)
    assert format_settlement_lines(s)[0] == "• Commission: 0 VND (no rule matched)"
