from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from marketfee.domain.scope import CategoryScope, GlobalScope, ShopScope
from marketfee.errors import PricingError, StructuralInvalid
from marketfee.rule_store.validation import validate
from marketfee.rule_types.base import FixedComponent, RateType, Tier
from marketfee.rule_types.commission import CommissionRule
from marketfee.rule_types.shipping import CodFeeRule

D = Decimal

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _tiers(*bounds):
    """(min, max, rate) triples -> percentage tiers."""
    return tuple(
        Tier(min=D(str(lo)), max=None if hi is None else D(str(hi)), rate=D(str(rate)))
        for lo, hi, rate in bounds
    )


def _invalid(**kw) -> StructuralInvalid:
    kw.setdefault("id", "c1")
    kw.setdefault("scope", GlobalScope())
    kw.setdefault("tiers", _tiers((0, None, 5)))
    kw.setdefault("effective_from", T0)
    with pytest.raises(StructuralInvalid) as exc:
        CommissionRule(**kw)
    return exc.value


def test_valid_rule_passes(make_commission):
    rule = make_commission()
    result = validate(rule)

    assert result.ok is True
    assert result.errors == []
    assert result.error is None


def test_structural_invalid_is_value_error():
    err = _invalid(id="")
    assert isinstance(err, ValueError)
    assert isinstance(err, PricingError)
    assert err.code == "MISSING_ID"


@pytest.mark.parametrize(
    "scope, code, field",
    [
        (ShopScope(shop_ref=""), "MISSING_SHOP_REF", "shopRef"),
        (CategoryScope(category_ref=""), "MISSING_CATEGORY_REF", "categoryRef"),
    ],
)
def test_scope_requires_reference(scope, code, field):
    err = _invalid(scope=scope)
    assert err.code == code
    assert err.field == field
    assert err.rule_id == "c1"


def test_unknown_scope_object_rejected():
    err = _invalid(scope="SHOP")
    assert err.code == "INVALID_SCOPE"


def test_no_tiers():
    assert _invalid(tiers=()).code == "NO_TIERS"


@pytest.mark.parametrize(
    "tiers, code, field",
    [
        (_tiers((10, None, 5)), "COVERAGE_GAP", "tiers[0].min"),
        (_tiers((0, 100, 5), (150, None, 3)), "COVERAGE_GAP", "tiers[1].min"),
        (_tiers((0, 100, 5), (50, None, 3)), "OVERLAP", "tiers[1].min"),
        (_tiers((0, 100, 5), (0, None, 3)), "NOT_SORTED", "tiers[1].min"),
        (_tiers((0, None, 5), (100, None, 3)), "UNBOUNDED_NOT_LAST", "tiers[0].max"),
        (_tiers((0, 100, 5)), "LAST_TIER_BOUNDED", "tiers[0].max"),
        (_tiers((0, 0, 5), (0, None, 3)), "INVALID_RANGE", "tiers[0].max"),
    ],
)
def test_tier_layout(tiers, code, field):
    err = _invalid(tiers=tiers)
    assert err.code == code
    assert err.field == field


def test_negative_rate():
    err = _invalid(tiers=_tiers((0, None, -1)))
    assert err.code == "NEGATIVE_VALUE"
    assert err.field == "tiers[0].rate"


def test_percentage_above_100_rejected_but_fixed_amount_is_not():
    assert _invalid(tiers=_tiers((0, None, 101))).code == "OUT_OF_RANGE"

    fixed = CommissionRule(
        id="c-fixed",
        scope=GlobalScope(),
        tiers=(Tier(min=D("0"), max=None, rate=D("150000"), rate_type=RateType.FIXED),),
        effective_from=T0,
    )
    assert validate(fixed).ok


def test_cap_below_floor():
    err = _invalid(minimum_amount=D("5000"), maximum_amount=D("1000"))
    assert err.code == "INVALID_RANGE"
    assert err.field == "maximumAmount"


def test_negative_fixed_component():
    err = _invalid(fixed_component=FixedComponent(currency="VND", amount=D("-1")))
    assert err.code == "NEGATIVE_VALUE"
    assert err.field == "fixedComponent.amount"


def test_fixed_component_currency_must_match():
    err = _invalid(fixed_component=FixedComponent(currency="USD", amount=D("1")))
    assert err.code == "CURRENCY_MISMATCH"


def test_missing_effective_from():
    assert _invalid(effective_from=None).code == "MISSING_EFFECTIVE_FROM"


def test_naive_datetime_rejected():
    err = _invalid(effective_from=datetime(2024, 1, 1))
    assert err.code == "NAIVE_DATETIME"
    assert err.field == "effectiveFrom"


@pytest.mark.parametrize("delta", [timedelta(0), timedelta(days=-1)])
def test_window_must_be_ordered(delta):
    err = _invalid(effective_to=T0 + delta)
    assert err.code == "INVALID_WINDOW"


def test_first_violation_wins():
    # scope error reported although tiers and window are broken too
    err = _invalid(scope=ShopScope(shop_ref=""), tiers=(), effective_from=None)
    assert err.code == "MISSING_SHOP_REF"

    # tier layout is checked before numbers
    err = _invalid(tiers=_tiers((0, 100, -5), (150, None, 3)))
    assert err.code == "COVERAGE_GAP"


def test_shipping_numbers_validated(make_tariff):
    with pytest.raises(StructuralInvalid) as exc:
        make_tariff(base_rate=D("-1"))
    assert exc.value.field == "baseRate"

    with pytest.raises(StructuralInvalid) as exc:
        make_tariff(cod_fee=CodFeeRule(type=RateType.PERCENTAGE, rate=D("120")))
    assert exc.value.code == "OUT_OF_RANGE"
    assert exc.value.field == "codFee.rate"

    with pytest.raises(StructuralInvalid) as exc:
        make_tariff(free_shipping_threshold=D("-5"))
    assert exc.value.field == "freeShippingThreshold"


def test_shipping_fixed_cod_above_100_is_an_amount(make_tariff, cod_2pct):
    tariff = make_tariff(cod_fee=CodFeeRule(type=RateType.FIXED, rate=D("10000")))
    assert validate(tariff).ok
    assert validate(make_tariff(cod_fee=cod_2pct)).ok


def test_tiers_list_is_frozen_to_tuple():
    rule = CommissionRule(id="c1", scope=GlobalScope(), tiers=list(_tiers((0, None, 5))), effective_from=T0)
    assert isinstance(rule.tiers, tuple)
