from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

import marketfee.rule_types  # noqa: F401 (register all rule kinds)

from marketfee.config import Settings
from marketfee.domain.scope import GlobalScope
from marketfee.engine.context import OrderContext
from marketfee.rule_store.loader import DEFAULT_CATALOG_PATH, load_catalog_file
from marketfee.rule_types.base import RateType, Tier
from marketfee.rule_types.commission import CommissionRule
from marketfee.rule_types.fee import FeeRule
from marketfee.rule_types.shipping import CodFeeRule, ShippingTariff

D = Decimal

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def fixed_now():
    return datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def settings():
    # explicit values so local env / .env files cannot leak into tests
    return Settings(
        currency="VND",
        allow_zero_weight=False,
        cod_payment_methods=["COD"],
        settle_max_workers=4,
        log_to_file=False,
    )


@pytest.fixture
def make_commission():
    def _make(rule_id="commission-global", scope=None, rate="5", tiers=None, **kw):
        kw.setdefault("effective_from", T0)
        return CommissionRule(
            id=rule_id,
            scope=scope or GlobalScope(),
            tiers=tiers or (Tier(min=D("0"), max=None, rate=D(rate)),),
            **kw,
        )

    return _make


@pytest.fixture
def make_fee():
    def _make(rule_id="fee-global", scope=None, tiers=None, **kw):
        kw.setdefault("effective_from", T0)
        return FeeRule(
            id=rule_id,
            scope=scope or GlobalScope(),
            tiers=tiers
            or (
                Tier(min=D("0"), max=D("1000000"), rate=D("2")),
                Tier(min=D("1000000"), max=D("10000000"), rate=D("1.5")),
                Tier(min=D("10000000"), max=None, rate=D("1")),
            ),
            **kw,
        )

    return _make


@pytest.fixture
def make_tariff():
    def _make(rule_id="shipping-standard", scope=None, tiers=None, **kw):
        kw.setdefault("effective_from", T0)
        kw.setdefault("base_rate", D("15000"))
        return ShippingTariff(
            id=rule_id,
            scope=scope or GlobalScope(),
            tiers=tiers
            or (
                Tier(min=D("0"), max=D("5"), rate=D("0"), rate_type=RateType.FIXED),
                Tier(min=D("5"), max=None, rate=D("10000"), rate_type=RateType.FIXED),
            ),
            **kw,
        )

    return _make


@pytest.fixture
def cod_2pct():
    return CodFeeRule(type=RateType.PERCENTAGE, rate=D("2"), min_amount=D("5000"))


@pytest.fixture
def sample_catalog():
    # the packaged sample catalog (also validates it against the JSON schema)
    return load_catalog_file(DEFAULT_CATALOG_PATH)


@pytest.fixture
def plain_order(fixed_now):
    return OrderContext(
        total_amount=D("1000000"),
        shop_ref="shop-unknown",
        payment_method="BANK_TRANSFER",
        order_ref="ORD-1",
        as_of=fixed_now,
    )


@pytest.fixture
def cod_order(fixed_now):
    return OrderContext(
        total_amount=D("200000"),
        shop_ref="shop-bat-trang",
        category_ref="cat-handicraft",
        weight_kg=D("5.0"),
        payment_method="COD",
        shipping_zone="URBAN_HN_HCM",
        shipping_method="STANDARD",
        order_ref="ORD-2",
        as_of=fixed_now,
    )
